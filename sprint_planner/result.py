"""Tagged success/failure values passed between planning steps."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar

from .errors import PlanningError

T = TypeVar("T")


@dataclass(frozen=True)
class Success(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Failure:
    error: PlanningError

    @property
    def ok(self) -> bool:
        return False


Result = Success[T] | Failure


__all__ = ["Failure", "Result", "Success"]
