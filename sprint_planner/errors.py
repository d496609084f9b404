"""Error taxonomy for the sprint planning engine.

Every failure the engine can report is a ``PlanningError`` subclass. Errors
are returned as values (see ``sprint_planner.result``) rather than raised
across component boundaries; the one exception is ``TransientCallError``,
which the planner client raises internally so the retry loop can see it.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    TRANSIENT = "transient"
    PARSE = "parse"
    PLANNING_FAILED = "planning_failed"
    TIMEOUT = "timeout"


class PlanningError(Exception):
    """
    Base class for planning failures.

    Attributes:
        kind: Machine-readable failure category
        message: Human-readable message that is safe to show to callers
        stage: Orchestrator stage the failure was raised in, when known
        details: Extra structured context for logs; never shown to callers
    """

    kind: ErrorKind = ErrorKind.PLANNING_FAILED

    def __init__(
        self,
        message: str,
        *,
        stage: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.stage = stage
        self.details = details or {}
        super().__init__(message)

    def at_stage(self, stage: str) -> PlanningError:
        """Tag the error with the stage it surfaced in, keeping any earlier tag."""
        if self.stage is None:
            self.stage = stage
        return self

    def to_dict(self) -> dict[str, Any]:
        """Caller-facing representation; ``details`` stay in the logs."""
        return {
            "kind": self.kind.value,
            "message": self.message,
            "stage": self.stage,
        }


class ValidationError(PlanningError):
    """
    Raised for input that is known-bad before any external call.

    This covers:
    - Blank sprint name
    - Non-positive team id
    - Team missing, inactive, or owned by another project
    - Due date before start date, negative target points
    """

    kind = ErrorKind.VALIDATION

    def __init__(self, message: str, *, field: str | None = None, stage: str | None = None) -> None:
        super().__init__(message, stage=stage, details={"field": field} if field else None)
        self.field = field


class NotFoundError(PlanningError):
    """Raised when the project being planned does not exist."""

    kind = ErrorKind.NOT_FOUND

    def __init__(self, project_id: Any, *, stage: str | None = None) -> None:
        super().__init__(
            f"Project {project_id} not found",
            stage=stage,
            details={"project_id": str(project_id)},
        )
        self.project_id = project_id


class TransientCallError(PlanningError):
    """
    Raised for planner calls that may succeed when repeated.

    This covers non-2xx responses, transport failures, and envelopes that
    are missing the expected ``candidates[0].content.parts[0].text`` shape.
    """

    kind = ErrorKind.TRANSIENT

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        original_error: BaseException | None = None,
    ) -> None:
        super().__init__(message, details={"status_code": status_code} if status_code else None)
        self.status_code = status_code
        self.original_error = original_error

    def __str__(self) -> str:
        if self.status_code:
            return f"[{self.status_code}] {self.message}"
        return self.message


class ParseError(PlanningError):
    """Raised when a successful planner answer cannot be decoded into a plan."""

    kind = ErrorKind.PARSE


class PlanningFailed(PlanningError):
    """Terminal planner failure: retries exhausted, deadline hit, or an unexpected error."""

    kind = ErrorKind.PLANNING_FAILED

    def __init__(
        self,
        message: str = "Sprint planning failed. Please try again.",
        *,
        stage: str | None = None,
        attempts: int | None = None,
        cause: PlanningError | None = None,
        kind: ErrorKind | None = None,
    ) -> None:
        details: dict[str, Any] = {}
        if attempts is not None:
            details["attempts"] = attempts
        if cause is not None:
            details["cause"] = str(cause)
        super().__init__(message, stage=stage, details=details)
        self.attempts = attempts
        self.cause = cause
        if kind is not None:
            self.kind = kind


__all__ = [
    "ErrorKind",
    "NotFoundError",
    "ParseError",
    "PlanningError",
    "PlanningFailed",
    "TransientCallError",
    "ValidationError",
]
