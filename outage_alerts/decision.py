from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Mapping

from outage_alerts.outages import Outage


@dataclass(frozen=True)
class Decision:
    ledger_after_cleanup: dict[str, int]
    to_alert: list[Outage]
    resolved: list[str] = field(default_factory=list)
    over_threshold: list[str] = field(default_factory=list)


def decide(
    ledger: Mapping[str, int],
    outages: Mapping[str, Outage],
    threshold: timedelta,
) -> Decision:
    """
    Drop ledger entries for services that recovered, then pick the outages that are
    at least `threshold` old and not in the cleaned ledger. Does not mutate inputs.
    """
    ledger_after_cleanup = {name: ts for name, ts in ledger.items() if name in outages}
    resolved = sorted(name for name in ledger if name not in outages)

    long_outages = sorted(
        (outage for outage in outages.values() if outage.duration >= threshold),
        key=lambda o: o.service,
    )
    to_alert = [outage for outage in long_outages if outage.service not in ledger_after_cleanup]

    return Decision(
        ledger_after_cleanup=ledger_after_cleanup,
        to_alert=to_alert,
        resolved=resolved,
        over_threshold=[outage.service for outage in long_outages],
    )


def commit_ledger(decision: Decision, *, delivered: bool, now: datetime) -> dict[str, int]:
    """Ledger to persist after the run; alerted services are stamped only once delivery succeeded."""
    updated = dict(decision.ledger_after_cleanup)
    if delivered:
        stamp = int(now.timestamp() * 1000)
        for outage in decision.to_alert:
            updated[outage.service] = stamp
    return updated
