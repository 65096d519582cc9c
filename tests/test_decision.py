from __future__ import annotations

from datetime import datetime, timedelta, timezone

from outage_alerts.decision import commit_ledger, decide
from outage_alerts.observations import Observation, ServiceCheck
from outage_alerts.outages import Outage, reconstruct


T0 = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
THRESHOLD = timedelta(minutes=20)


def _outage(service: str, minutes: float) -> Outage:
    return Outage(service=service, start_time=T0, duration=timedelta(minutes=minutes), error="boom")


def _scenario_observations() -> list[Observation]:
    return [
        Observation(timestamp=T0, checks=(ServiceCheck("svcA", "ok"),)),
        Observation(
            timestamp=T0 + timedelta(minutes=5),
            checks=(ServiceCheck("svcA", "error", "timeout"),),
        ),
        Observation(
            timestamp=T0 + timedelta(minutes=30),
            checks=(ServiceCheck("svcA", "error", "timeout"),),
        ),
    ]


def test_scenario_new_outage_is_alerted_with_empty_ledger() -> None:
    outages = reconstruct(_scenario_observations(), T0 + timedelta(minutes=31))
    decision = decide({}, outages, THRESHOLD)
    assert [o.service for o in decision.to_alert] == ["svcA"]
    assert decision.to_alert[0].duration == timedelta(minutes=26)
    assert decision.ledger_after_cleanup == {}


def test_scenario_already_reported_outage_is_not_realerted() -> None:
    outages = reconstruct(_scenario_observations(), T0 + timedelta(minutes=31))
    ledger = {"svcA": 1_700_000_000_000}
    decision = decide(ledger, outages, THRESHOLD)
    assert decision.to_alert == []
    assert decision.ledger_after_cleanup == ledger
    assert decision.over_threshold == ["svcA"]


def test_scenario_recovery_removes_service_from_ledger() -> None:
    observations = _scenario_observations() + [
        Observation(timestamp=T0 + timedelta(minutes=40), checks=(ServiceCheck("svcA", "ok"),)),
    ]
    outages = reconstruct(observations, T0 + timedelta(minutes=41))
    decision = decide({"svcA": 1_700_000_000_000}, outages, THRESHOLD)
    assert decision.ledger_after_cleanup == {}
    assert decision.resolved == ["svcA"]
    assert decision.to_alert == []


def test_cleanup_removes_exactly_absent_keys_and_keeps_values() -> None:
    ledger = {"a": 1, "b": 2, "c": 3}
    outages = {"a": _outage("a", 5), "c": _outage("c", 50), "d": _outage("d", 1)}
    decision = decide(ledger, outages, THRESHOLD)
    assert decision.ledger_after_cleanup == {"a": 1, "c": 3}
    assert decision.resolved == ["b"]
    assert ledger == {"a": 1, "b": 2, "c": 3}


def test_threshold_is_inclusive_and_result_sorted_by_service() -> None:
    outages = {
        "zeta": _outage("zeta", 45),
        "alpha": _outage("alpha", 20),
        "mid": _outage("mid", 19.99),
    }
    decision = decide({}, outages, THRESHOLD)
    assert [o.service for o in decision.to_alert] == ["alpha", "zeta"]


def test_ledger_entry_blocks_alert_even_when_over_threshold() -> None:
    outages = {"a": _outage("a", 300), "b": _outage("b", 300)}
    decision = decide({"a": 10}, outages, THRESHOLD)
    assert [o.service for o in decision.to_alert] == ["b"]


def test_commit_ledger_stamps_only_on_delivery() -> None:
    outages = {"a": _outage("a", 30), "b": _outage("b", 30)}
    decision = decide({"a": 10, "gone": 5}, outages, THRESHOLD)
    now = T0 + timedelta(hours=1)

    assert commit_ledger(decision, delivered=False, now=now) == {"a": 10}

    committed = commit_ledger(decision, delivered=True, now=now)
    assert committed == {"a": 10, "b": int(now.timestamp() * 1000)}
    assert decision.ledger_after_cleanup == {"a": 10}
