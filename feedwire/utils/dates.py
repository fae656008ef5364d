"""Datetime helpers."""

from __future__ import annotations

import os
from datetime import date, datetime, timezone

import pendulum

DEFAULT_TZ = "UTC"


def timezone_name() -> str:
    return os.environ.get("TIMEZONE", DEFAULT_TZ)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def today_in_tz() -> date:
    return pendulum.now(pendulum.timezone(timezone_name())).date()


def format_date(value: date) -> str:
    return value.strftime("%Y-%m-%d")


def elapsed_ms(started: float, finished: float) -> int:
    """Milliseconds between two ``time.perf_counter`` readings."""
    return max(int(round((finished - started) * 1000)), 0)


def to_utc(value: datetime | str) -> datetime:
    """Aware UTC datetime from a datetime or ISO 8601 text; naive values are taken as UTC."""
    if not isinstance(value, datetime):
        parsed = pendulum.parse(str(value), tz="UTC")
        if not isinstance(parsed, datetime):
            raise ValueError(f"Not a timestamp: {value!r}")
        value = parsed
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
