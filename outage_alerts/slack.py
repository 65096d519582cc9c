from __future__ import annotations

import asyncio
import json
import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Any, Iterable

import httpx

from outage_alerts.outages import Outage


HEADER_TEXT = "🚨 Service Outage Notification"
DEFAULT_TIMEOUT_SECONDS = 10.0


@dataclass(frozen=True)
class SlackConfig:
    webhook_url: str
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS


def format_duration(duration: timedelta) -> str:
    """
    Minutes rounded half-up: "{m}min" below an hour, "{h}hr {mm}min" from an hour on.
    """
    ms = max(0.0, duration / timedelta(milliseconds=1))
    total_minutes = int(math.floor(ms / 60_000.0 + 0.5))
    if total_minutes >= 60:
        hours, minutes = divmod(total_minutes, 60)
        return f"{hours}hr {minutes:02}min"
    return f"{total_minutes}min"


def format_start_time(start_time: datetime, tz: tzinfo = timezone.utc) -> str:
    return start_time.astimezone(tz).strftime("%m/%d/%Y, %I:%M:%S %p")


def build_outage_blocks(outages: Iterable[Outage], *, tz: tzinfo = timezone.utc) -> list[dict[str, Any]]:
    blocks: list[dict[str, Any]] = [
        {
            "type": "header",
            "text": {"type": "plain_text", "text": HEADER_TEXT, "emoji": True},
        }
    ]
    for outage in outages:
        text = (
            f"*Service:* {outage.service}\n"
            f"*Duration:* {format_duration(outage.duration)}\n"
            f"*Start Time:* {format_start_time(outage.start_time, tz)}\n"
            f"*Error:* {outage.error}"
        )
        blocks.append({"type": "section", "text": {"type": "mrkdwn", "text": text}})
        blocks.append({"type": "divider"})
    return blocks


def build_outage_message(outages: Iterable[Outage], *, tz: tzinfo = timezone.utc) -> dict[str, Any]:
    return {"blocks": build_outage_blocks(outages, tz=tz)}


async def send_slack_message(
    client: httpx.AsyncClient, config: SlackConfig, message: dict[str, Any]
) -> tuple[bool, dict]:
    """
    POST a Block Kit message to the incoming webhook. Only a 2xx status counts as
    delivered; transport errors and timeouts are reported, not raised.

    httpx timeouts apply per phase, so the whole call is also bounded by wait_for.
    """
    try:
        resp = await asyncio.wait_for(
            client.post(config.webhook_url, json=message, timeout=config.timeout_seconds),
            timeout=config.timeout_seconds,
        )
    except Exception as e:
        msg = f"{type(e).__name__}: {e}"
        if config.webhook_url:
            msg = msg.replace(config.webhook_url, "<redacted>")
        return False, {"ok": False, "error": msg}

    ok = 200 <= resp.status_code < 300
    data: dict[str, Any] = {"ok": ok, "status_code": resp.status_code}
    if not ok:
        data["body"] = resp.text[:500]
    return ok, data


def redact_slack_response(data: dict) -> str:
    safe = {"ok": data.get("ok")}
    if data.get("status_code") is not None:
        safe["status_code"] = data.get("status_code")
    if data.get("body"):
        safe["body"] = data.get("body")
    if data.get("error"):
        safe["error"] = data.get("error")
    return json.dumps(safe, ensure_ascii=False)
