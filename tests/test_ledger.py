from __future__ import annotations

import json
from pathlib import Path

from outage_alerts.ledger import load_ledger, save_ledger


def test_missing_ledger_is_empty(tmp_path: Path) -> None:
    assert load_ledger(tmp_path / "reported-outages.json") == {}


def test_corrupt_ledger_degrades_to_empty(tmp_path: Path) -> None:
    p = tmp_path / "reported-outages.json"
    p.write_text("{not json", encoding="utf-8")
    assert load_ledger(p) == {}

    p.write_text(json.dumps([1, 2, 3]), encoding="utf-8")
    assert load_ledger(p) == {}


def test_invalid_entries_are_dropped(tmp_path: Path) -> None:
    p = tmp_path / "reported-outages.json"
    p.write_text(json.dumps({"a": 1700000000000, "b": "oops", "c": True, "d": 12.0}), encoding="utf-8")
    assert load_ledger(p) == {"a": 1700000000000, "d": 12}


def test_save_then_load(tmp_path: Path) -> None:
    p = tmp_path / "state" / "reported-outages.json"
    assert save_ledger(p, {"svcA": 1700000000000}) is True
    assert load_ledger(p) == {"svcA": 1700000000000}
    assert not p.with_name("reported-outages.json.tmp").exists()
    assert p.read_text(encoding="utf-8").startswith("{\n  ")


def test_save_failure_is_swallowed(tmp_path: Path) -> None:
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("x", encoding="utf-8")
    assert save_ledger(blocker / "reported-outages.json", {"a": 1}) is False
