"""Shared helpers."""

from .datetime import format_day, utc_now, utc_now_isoformat, whole_days_between
from .retry import RetryPolicy, with_exponential_backoff

__all__ = [
    "RetryPolicy",
    "format_day",
    "utc_now",
    "utc_now_isoformat",
    "whole_days_between",
    "with_exponential_backoff",
]
