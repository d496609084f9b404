"""JSON log lines for planning requests, keyed by a per-request correlation id.

Each line carries the request's correlation id from a ``ContextVar``. Planning
fields passed through ``extra=`` (project, team, stage, error kind, attempts)
are lifted to the top level; a failure's ``details`` stay nested so they never
collide with them.
"""

from __future__ import annotations

import json
import logging
import uuid
from contextvars import ContextVar
from typing import Any

from ..errors import PlanningError
from ..utils.datetime import utc_now_isoformat

correlation_id: ContextVar[str] = ContextVar("correlation_id", default="")

PLANNING_FIELDS = ("project_id", "team_id", "stage", "kind", "attempts")


def get_correlation_id() -> str:
    """Get current correlation ID or generate new one."""
    cid = correlation_id.get()
    if not cid:
        cid = str(uuid.uuid4())
        correlation_id.set(cid)
    return cid


def set_correlation_id(cid: str) -> None:
    correlation_id.set(cid)


def planning_extra(error: PlanningError) -> dict[str, Any]:
    """``extra=`` payload describing a planning failure."""
    extra: dict[str, Any] = {"stage": error.stage, "kind": error.kind.value, "details": error.details}
    attempts = getattr(error, "attempts", None)
    if attempts is not None:
        extra["attempts"] = attempts
    return extra


class StructuredFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": utc_now_isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "correlation_id": get_correlation_id(),
        }
        for field in PLANNING_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                log_data[field] = value
        details = getattr(record, "details", None)
        if details:
            log_data["details"] = details

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def configure_structured_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging for all loggers."""
    handler = logging.StreamHandler()
    handler.setFormatter(StructuredFormatter())

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)


__all__ = [
    "PLANNING_FIELDS",
    "StructuredFormatter",
    "configure_structured_logging",
    "correlation_id",
    "get_correlation_id",
    "planning_extra",
    "set_correlation_id",
]
