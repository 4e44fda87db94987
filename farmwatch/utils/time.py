"""Utility functions for time handling.

All timestamps are UTC and timezone-aware internally. Display strings are
rendered in the configured display timezone (``FARMWATCH_TIMEZONE``,
``APP_TIMEZONE`` or ``TZ``), falling back to the system local zone.
"""

from __future__ import annotations

import logging
import os
from datetime import datetime, timezone, tzinfo
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)

DEFAULT_LOCAL_FORMAT = "%Y-%m-%d %H:%M:%S %Z"

# Epoch magnitude thresholds: seconds ~1e9, milliseconds ~1e12, microseconds ~1e15
_MILLIS_THRESHOLD = 1e11
_MICROS_THRESHOLD = 1e14


def utc_now() -> datetime:
    """Return current UTC time as an aware datetime."""
    return datetime.now(timezone.utc)


def iso_now(*, timespec: str | None = None) -> str:
    """Return current UTC time as an ISO8601 string (timezone-aware)."""
    now = utc_now()
    if timespec:
        return now.isoformat(timespec=timespec)
    return now.isoformat()


def _from_epoch(number: float) -> datetime | None:
    if number >= _MICROS_THRESHOLD:
        seconds = number / 1_000_000
    elif number >= _MILLIS_THRESHOLD:
        seconds = number / 1000
    else:
        seconds = number
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def coerce_datetime(value: Any) -> datetime | None:
    """
    Coerce value to datetime, returning None on failure.

    Accepts datetimes, ISO-8601 strings (``Z`` suffix allowed) and epoch
    numbers in seconds, milliseconds or microseconds (numeric strings too).

    Args:
        value: String, number or datetime to coerce

    Returns:
        Datetime in timezone.utc or None if invalid
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)):
        return _from_epoch(float(value))
    elif isinstance(value, str):
        raw = value.strip()
        if not raw:
            return None
        try:
            return _from_epoch(float(raw))
        except ValueError:
            pass
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(raw)
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc)
    else:
        parsed = parsed.replace(tzinfo=timezone.utc)

    return parsed


def resolve_timezone(name: str | None = None) -> tzinfo | None:
    """
    Resolve a display timezone.

    Args:
        name: IANA zone name; when omitted the environment is consulted

    Returns:
        A tzinfo, or None to mean "system local time"
    """
    name = name or os.getenv("FARMWATCH_TIMEZONE") or os.getenv("APP_TIMEZONE") or os.getenv("TZ")
    if not name:
        return None
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.debug("Unknown display timezone '%s'; using system local time", name)
        return None


def convert_utc_to_local(utc_dt: datetime, tz: tzinfo | None = None) -> datetime:
    """Convert a UTC datetime (aware or naive) to ``tz`` or the local timezone."""
    if utc_dt.tzinfo is None:
        utc_dt = utc_dt.replace(tzinfo=timezone.utc)
    return utc_dt.astimezone(tz)


def format_datetime(dt: datetime, fmt: str = DEFAULT_LOCAL_FORMAT) -> str:
    """Format a datetime into a string based on the given format."""
    return dt.strftime(fmt)


def format_timestamp_local(value: Any, tz: tzinfo | None = None, fmt: str = DEFAULT_LOCAL_FORMAT) -> str | None:
    """Render any timestamp-like value in the display timezone, or None if unparseable."""
    dt = coerce_datetime(value)
    if dt is None:
        return None
    return format_datetime(convert_utc_to_local(dt, tz), fmt).strip()
