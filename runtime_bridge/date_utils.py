"""Timestamp normalization for raw telemetry records."""
from __future__ import annotations

import math
import re
import time
from datetime import datetime, timezone
from typing import Any

_DATE_ONLY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def now_ms() -> int:
    return int(time.time() * 1000)


def _parse_datetime_token(token: str) -> datetime | None:
    cleaned = token.strip()
    if not cleaned:
        return None
    if _DATE_ONLY_RE.match(cleaned):
        try:
            return datetime.fromisoformat(cleaned).replace(tzinfo=timezone.utc)
        except ValueError:
            return None
    try:
        return datetime.fromisoformat(cleaned.replace("Z", "+00:00"))
    except ValueError:
        pass
    for fmt in ("%Y/%m/%d", "%m/%d/%Y", "%Y-%m-%d %H:%M:%S"):
        try:
            return datetime.strptime(cleaned, fmt).replace(tzinfo=timezone.utc)
        except ValueError:
            continue
    return None


def iso_to_epoch_ms(value: str) -> int | None:
    """Parse an ISO-ish date string into epoch milliseconds.

    Naive datetimes are read as UTC. Returns None when the string cannot be
    parsed.
    """
    parsed = _parse_datetime_token(value)
    if parsed is None:
        return None
    dt = parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return int(round(dt.astimezone(timezone.utc).timestamp() * 1000))


def resolve_timestamp(value: Any, default_ms: int | None = None) -> int:
    """Resolve a record `timestamp` field into epoch milliseconds.

    Numbers are taken as-is, strings are parsed as dates, and anything else
    (including unparseable strings) falls back to the current wall clock.
    """
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        if math.isfinite(value):
            return int(value)
    if isinstance(value, str):
        parsed = iso_to_epoch_ms(value)
        if parsed is not None:
            return parsed
    return default_ms if default_ms is not None else now_ms()
