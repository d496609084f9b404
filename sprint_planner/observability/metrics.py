"""Prometheus metrics instrumentation for the sprint planner."""

from __future__ import annotations

from contextlib import contextmanager
from time import perf_counter

from prometheus_client import Counter, Histogram, generate_latest

planning_requests_total = Counter(
    "planning_requests_total",
    "Sprint planning requests grouped by outcome",
    labelnames=("outcome",),
)

planner_call_attempts_total = Counter(
    "planner_call_attempts_total",
    "Planning service call attempts grouped by result",
    labelnames=("result",),
)

planning_duration_seconds = Histogram(
    "planning_duration_seconds",
    "Sprint planning end-to-end duration in seconds",
    buckets=(0.1, 0.5, 1, 2, 5, 10, 20, 30, 60),
)

planner_fallback_total = Counter(
    "planner_fallback_total",
    "Rule-based fallback plans served grouped by reason",
    labelnames=("reason",),
)


@contextmanager
def record_planning_request():
    start = perf_counter()
    try:
        yield
    finally:
        planning_duration_seconds.observe(perf_counter() - start)


def record_planning_outcome(outcome: str) -> None:
    planning_requests_total.labels(outcome=outcome).inc()


def record_planner_attempt(result: str) -> None:
    planner_call_attempts_total.labels(result=result).inc()


def record_fallback(reason: str) -> None:
    planner_fallback_total.labels(reason=reason).inc()


def latest_metrics() -> bytes:
    return generate_latest()


__all__ = [
    "latest_metrics",
    "planner_call_attempts_total",
    "planner_fallback_total",
    "planning_duration_seconds",
    "planning_requests_total",
    "record_fallback",
    "record_planner_attempt",
    "record_planning_outcome",
    "record_planning_request",
]
