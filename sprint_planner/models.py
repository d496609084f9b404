"""Pydantic models used by FastAPI routes and the orchestrator boundary."""

from __future__ import annotations

import uuid
from datetime import date
from decimal import Decimal
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class PlanSprintBody(BaseModel):
    sprint_name: str = Field("", description="Name of the sprint being planned")
    sprint_goal: str | None = Field(None, description="Optional sprint goal")
    team_id: int | None = Field(None, description="Plan against this team's velocity when set")
    start_date: date | None = None
    due_date: date | None = None
    target_story_points: Decimal | None = None
    requesting_user_id: int = Field(0, description="Caller identity, already authorized upstream")


class PlanSprintRequest(PlanSprintBody):
    project_id: uuid.UUID


class ApiResponse(BaseModel, Generic[T]):
    """Uniform response wrapper: ``status`` mirrors the HTTP status code."""

    status: int
    data: T | None = None
    message: str
    error: dict[str, Any] | None = None


__all__ = ["ApiResponse", "PlanSprintBody", "PlanSprintRequest"]
