from __future__ import annotations

import argparse
import asyncio
import logging
import os
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import httpx
import yaml
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from outage_alerts.decision import commit_ledger, decide
from outage_alerts.ledger import load_ledger, save_ledger
from outage_alerts.observations import load_observations
from outage_alerts.outages import reconstruct
from outage_alerts.slack import (
    DEFAULT_TIMEOUT_SECONDS,
    SlackConfig,
    build_outage_message,
    redact_slack_response,
    send_slack_message,
)


LOGGER = logging.getLogger("outage-alerts")

DEFAULT_STATUSES_PATH = "./statuses.jsonl"
DEFAULT_LEDGER_PATH = "./reported-outages.json"
DEFAULT_THRESHOLD_MINUTES = 20.0


class ConfigError(ValueError):
    pass


@dataclass(frozen=True)
class AlertSettings:
    statuses_path: Path
    ledger_path: Path
    threshold: timedelta = timedelta(minutes=DEFAULT_THRESHOLD_MINUTES)
    timezone_name: str = "UTC"
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS


def load_config(path: Path) -> dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        return {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid config YAML path={path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError("Config YAML must be a mapping")
    return data


def _positive_float(value: Any, *, key: str) -> float:
    try:
        f = float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{key} must be a number, got {value!r}") from exc
    if f <= 0:
        raise ConfigError(f"{key} must be positive, got {value!r}")
    return f


def build_settings(
    config: dict[str, Any],
    *,
    statuses_path: str | None = None,
    ledger_path: str | None = None,
    threshold_minutes: float | None = None,
) -> AlertSettings:
    statuses = (
        statuses_path
        or os.getenv("OUTAGE_ALERTS_STATUSES_PATH")
        or config.get("statuses_path")
        or DEFAULT_STATUSES_PATH
    )
    ledger = ledger_path or os.getenv("OUTAGE_ALERTS_LEDGER_PATH") or config.get("ledger_path") or DEFAULT_LEDGER_PATH

    if threshold_minutes is None:
        threshold_minutes = config.get("threshold_minutes", DEFAULT_THRESHOLD_MINUTES)
    minutes = _positive_float(threshold_minutes, key="threshold_minutes")
    timeout_seconds = _positive_float(config.get("timeout_seconds", DEFAULT_TIMEOUT_SECONDS), key="timeout_seconds")

    return AlertSettings(
        statuses_path=Path(str(statuses)),
        ledger_path=Path(str(ledger)),
        threshold=timedelta(minutes=minutes),
        timezone_name=str(config.get("timezone") or "UTC"),
        timeout_seconds=timeout_seconds,
    )


def _load_timezone(name: str):
    cleaned = (name or "").strip()
    if not cleaned or cleaned.upper() == "UTC":
        return timezone.utc
    try:
        return ZoneInfo(cleaned)
    except ZoneInfoNotFoundError:
        LOGGER.warning("Timezone not found; falling back to UTC tz=%s", cleaned)
        return timezone.utc


async def run_once(settings: AlertSettings, slack_cfg: SlackConfig, *, now: datetime | None = None) -> int:
    """
    One alerting pass. Returns 0 when there was nothing to send or the message went
    out, 1 when delivery failed. The ledger is written once, after the send result
    is known, so undelivered services are retried on the next run.
    """
    now = now or datetime.now(timezone.utc)

    LOGGER.info("Reading status checks path=%s", settings.statuses_path)
    observations = load_observations(settings.statuses_path)
    LOGGER.info("Found status checks count=%s", len(observations))

    ledger = load_ledger(settings.ledger_path)
    outages = reconstruct(observations, now)
    LOGGER.info("Found current outages count=%s", len(outages))

    decision = decide(ledger, outages, settings.threshold)
    for service in decision.resolved:
        LOGGER.info("Service resolved; removing from ledger service=%s", service)
    LOGGER.info(
        "Outages over threshold count=%s threshold_minutes=%s",
        len(decision.over_threshold),
        round(settings.threshold / timedelta(minutes=1), 2),
    )

    if not decision.to_alert:
        if decision.over_threshold:
            LOGGER.info("All current outages have already been reported")
        else:
            LOGGER.info("No long outages to report")
        save_ledger(settings.ledger_path, commit_ledger(decision, delivered=False, now=now))
        return 0

    services = [outage.service for outage in decision.to_alert]
    LOGGER.info("Sending Slack notification count=%s services=%s", len(services), ",".join(services))
    message = build_outage_message(decision.to_alert, tz=_load_timezone(settings.timezone_name))
    async with httpx.AsyncClient() as client:
        ok, resp = await send_slack_message(client, slack_cfg, message)

    if ok:
        LOGGER.info("Slack notification sent response=%s", redact_slack_response(resp))
    else:
        LOGGER.error("Failed to send Slack notification response=%s", redact_slack_response(resp))

    save_ledger(settings.ledger_path, commit_ledger(decision, delivered=ok, now=now))
    return 0 if ok else 1


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Slack alerts for ongoing service outages")
    parser.add_argument(
        "--config",
        default=str(Path(__file__).with_name("config.yaml")),
        help="Path to YAML config",
    )
    parser.add_argument("--statuses", default=None, help="Path to the statuses JSON Lines log")
    parser.add_argument("--ledger", default=None, help="Path to the reported-outages ledger")
    parser.add_argument("--threshold-minutes", type=float, default=None, help="Minimum outage age before alerting")
    parser.add_argument(
        "--log-level",
        default=os.getenv("LOG_LEVEL", "INFO"),
        help="Logging level (INFO, WARNING, ...)",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    # The webhook URL is a secret; keep request lines out of the log.
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    webhook_url = (os.getenv("SLACK_WEBHOOK_URL") or "").strip()
    if not webhook_url:
        LOGGER.error("SLACK_WEBHOOK_URL environment variable is not set")
        return 1

    try:
        settings = build_settings(
            load_config(Path(args.config)),
            statuses_path=args.statuses,
            ledger_path=args.ledger,
            threshold_minutes=args.threshold_minutes,
        )
    except ConfigError as exc:
        LOGGER.error("Invalid configuration: %s", exc)
        return 1

    slack_cfg = SlackConfig(webhook_url=webhook_url, timeout_seconds=settings.timeout_seconds)
    try:
        return asyncio.run(run_once(settings, slack_cfg))
    except Exception as exc:
        LOGGER.exception("Outage alert run failed error=%s", exc)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
