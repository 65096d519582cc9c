from __future__ import annotations

import json
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable


STATUS_OK = "ok"
STATUS_ERROR = "error"
VALID_STATUSES = frozenset({STATUS_OK, STATUS_ERROR})

# fromisoformat on 3.10 only takes 3 or 6 fractional digits.
_FRACTION_RE = re.compile(r"(\d{2}:\d{2}:\d{2})\.(\d+)")


class ObservationParseError(ValueError):
    """Raised when a line of the observation log cannot be decoded."""

    def __init__(self, line_no: int, reason: str) -> None:
        super().__init__(f"line {line_no}: {reason}")
        self.line_no = line_no
        self.reason = reason


@dataclass(frozen=True)
class ServiceCheck:
    service: str
    status: str
    error: str | None = None

    @property
    def is_error(self) -> bool:
        return self.status == STATUS_ERROR


@dataclass(frozen=True)
class Observation:
    timestamp: datetime
    checks: tuple[ServiceCheck, ...] = ()


def parse_timestamp(value: Any) -> datetime:
    """
    Accepts ISO-8601 strings (a trailing "Z" is allowed) or epoch milliseconds.
    Naive datetimes are taken as UTC.
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid timestamp {value!r}")

    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(float(value) / 1000.0, tz=timezone.utc)
        except (OverflowError, OSError) as exc:
            raise ValueError(f"Timestamp out of range {value!r}") from exc

    s = str(value or "").strip()
    if not s:
        raise ValueError("timestamp is empty")

    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    s = _FRACTION_RE.sub(lambda m: f"{m.group(1)}.{(m.group(2) + '000000')[:6]}", s, count=1)
    dt = datetime.fromisoformat(s)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _parse_check(raw: Any, idx: int) -> ServiceCheck:
    if not isinstance(raw, dict):
        raise ValueError(f"checks[{idx}] must be an object, got {type(raw).__name__}")

    service = raw.get("service")
    if not isinstance(service, str) or not service.strip():
        raise ValueError(f"checks[{idx}].service is required")

    status = raw.get("status")
    if status not in VALID_STATUSES:
        raise ValueError(f"checks[{idx}].status must be 'ok' or 'error', got {status!r}")

    error = raw.get("error")
    if status == STATUS_ERROR and error is not None:
        error = str(error)
    else:
        error = None
    return ServiceCheck(service=service, status=status, error=error)


def parse_observation(raw: Any) -> Observation:
    if not isinstance(raw, dict):
        raise ValueError(f"record must be an object, got {type(raw).__name__}")
    if "timestamp" not in raw:
        raise ValueError("timestamp is required")
    timestamp = parse_timestamp(raw.get("timestamp"))

    checks_raw = raw.get("checks")
    if not isinstance(checks_raw, list):
        raise ValueError("checks must be a list")

    checks: list[ServiceCheck] = []
    seen: set[str] = set()
    for idx, item in enumerate(checks_raw):
        check = _parse_check(item, idx)
        if check.service in seen:
            raise ValueError(f"duplicate service {check.service!r} in one observation")
        seen.add(check.service)
        checks.append(check)
    return Observation(timestamp=timestamp, checks=tuple(checks))


def parse_observation_lines(lines: Iterable[str]) -> list[Observation]:
    observations: list[Observation] = []
    for line_no, line in enumerate(lines, start=1):
        s = line.strip()
        if not s:
            continue
        try:
            raw = json.loads(s)
        except json.JSONDecodeError as exc:
            raise ObservationParseError(line_no, f"invalid JSON ({exc.msg})") from exc
        try:
            observations.append(parse_observation(raw))
        except (ValueError, OverflowError) as exc:
            raise ObservationParseError(line_no, str(exc)) from exc
    return observations


def load_observations(path: Path) -> list[Observation]:
    """
    Read the whole JSON Lines status log. Any malformed line aborts the load;
    a partial history could fabricate outages or recoveries.
    """
    with open(path, "r", encoding="utf-8") as f:
        return parse_observation_lines(f)
