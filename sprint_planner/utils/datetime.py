"""
Utilities for working with timezone-aware UTC datetimes.
"""

from __future__ import annotations

from datetime import UTC, date, datetime


def utc_now() -> datetime:
    """Return a timezone-aware datetime in UTC."""
    return datetime.now(UTC)


def utc_now_isoformat(with_z_suffix: bool = True) -> str:
    """Return an ISO 8601 timestamp for the current UTC time."""
    value = utc_now().isoformat()
    if with_z_suffix:
        return value.replace("+00:00", "Z")
    return value


def format_day(value: date | datetime | None, default: str = "Not specified") -> str:
    """Render a date as ``YYYY-MM-DD`` or ``default`` when it is missing."""
    if value is None:
        return default
    return value.strftime("%Y-%m-%d")


def whole_days_between(start: datetime | None, end: datetime | None) -> int:
    """Whole days from ``start`` to ``end``; 0 unless both are known."""
    if start is None or end is None:
        return 0
    return int((end - start).total_seconds() / 86400)


__all__ = ["format_day", "utc_now", "utc_now_isoformat", "whole_days_between"]
