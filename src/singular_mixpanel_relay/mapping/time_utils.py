"""Timestamp conversion and ISO-8601 formatting for UTC enforcement.

Singular sends install times as Unix epoch seconds; Mixpanel properties carry
ISO-8601 strings and tracked events carry integer epoch seconds. All datetimes
produced here are timezone-aware UTC.

ISO Format:
    Millisecond precision with a literal `Z` suffix, e.g.
    `2023-11-14T22:13:20.000Z`, matching what JavaScript `toISOString()`
    emits so profiles written by older integrations stay comparable.

Public Functions:
    epoch_seconds_to_dt: Convert epoch seconds to UTC-aware datetime
    to_iso_z: Format an aware datetime as ISO-8601 UTC with `Z`
    utc_now: Current UTC-aware datetime

Design Invariant:
    Naive datetimes (no tzinfo) are forbidden. Tests scan the codebase for
    datetime.utcnow() usage and fail if found.  # allow-naive-datetime
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

__all__ = ["epoch_seconds_to_dt", "parse_epoch_seconds", "to_iso_z", "utc_now"]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_epoch_seconds(value: Any) -> Optional[float]:
    """Coerce a postback epoch value to float seconds.

    Accepts ints, floats and numeric strings (query-string postbacks deliver
    everything as text). Booleans and anything unparseable yield None.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def epoch_seconds_to_dt(seconds: float) -> datetime:
    """Convert epoch seconds to a timezone-aware UTC datetime."""
    return datetime.fromtimestamp(seconds, tz=timezone.utc)


def to_iso_z(dt: datetime) -> str:
    """Format an aware datetime as `YYYY-MM-DDTHH:MM:SS.mmmZ`."""
    if dt.tzinfo is None:
        raise ValueError("naive datetime not allowed")
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
