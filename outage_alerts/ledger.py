from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any


LOGGER = logging.getLogger("outage-alerts")


def _coerce_ledger(value: Any) -> dict[str, int]:
    if not isinstance(value, dict):
        return {}
    ledger: dict[str, int] = {}
    for k, v in value.items():
        if not isinstance(k, str) or isinstance(v, bool):
            continue
        try:
            ledger[k] = int(v)
        except Exception:
            continue
    return ledger


def load_ledger(path: Path) -> dict[str, int]:
    """
    Read the reported-outages ledger. Any failure degrades to an empty ledger,
    which at worst re-alerts an outage that was already reported.
    """
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return {}
    except Exception as exc:
        LOGGER.warning("Failed to read ledger file path=%s error=%s", path, exc)
        return {}

    if not isinstance(raw, dict):
        LOGGER.warning("Ignoring ledger file that is not a JSON object path=%s", path)
        return {}
    return _coerce_ledger(raw)


def _write_ledger_atomic(path: Path, ledger: dict[str, int]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(f"{path.name}.tmp")
    tmp.write_text(json.dumps(ledger, ensure_ascii=False, indent=2, sort_keys=True), encoding="utf-8")
    tmp.replace(path)


def save_ledger(path: Path, ledger: dict[str, int]) -> bool:
    try:
        _write_ledger_atomic(path, ledger)
    except Exception as exc:
        LOGGER.warning("Failed to write ledger file path=%s error=%s", path, exc)
        return False
    return True
