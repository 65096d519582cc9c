from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable

from outage_alerts.observations import STATUS_ERROR, STATUS_OK, Observation


LOGGER = logging.getLogger("outage-alerts")

UNKNOWN_ERROR = "Unknown error"


@dataclass
class ServiceState:
    service: str
    status: str
    since: datetime
    error: str | None = None


@dataclass
class Outage:
    service: str
    start_time: datetime
    duration: timedelta
    error: str
    is_ongoing: bool = True

    @property
    def duration_ms(self) -> int:
        return int(self.duration / timedelta(milliseconds=1))


def _normalize_error(value: str | None) -> str:
    s = (value or "").strip()
    return s or UNKNOWN_ERROR


def reconstruct(observations: Iterable[Observation], now: datetime) -> dict[str, Outage]:
    """
    Replay observations in timestamp order and return the outages still open at `now`.

    An outage starts at the first error after an ok (or unseen) status and ends at the
    next ok. While it stays open, later errors keep the original start time and the
    first error message.
    """
    service_state: dict[str, ServiceState] = {}
    outages: dict[str, Outage] = {}

    for observation in sorted(observations, key=lambda o: o.timestamp):
        ts = observation.timestamp
        for check in observation.checks:
            name = check.service
            state = service_state.get(name)

            if check.status == STATUS_ERROR:
                if state is not None and state.status == STATUS_ERROR:
                    continue
                error = _normalize_error(check.error)
                service_state[name] = ServiceState(service=name, status=STATUS_ERROR, since=ts, error=error)
                outages[name] = Outage(service=name, start_time=ts, duration=timedelta(0), error=error)
            elif check.status == STATUS_OK:
                if state is None or state.status != STATUS_ERROR:
                    continue
                service_state[name] = ServiceState(service=name, status=STATUS_OK, since=ts)
                outages.pop(name, None)

    for name, outage in outages.items():
        outage.duration = max(timedelta(0), now - outage.start_time)
        LOGGER.debug(
            "Outage service=%s start=%s now=%s duration_ms=%s",
            name,
            outage.start_time.isoformat(),
            now.isoformat(),
            outage.duration_ms,
        )
    return outages
