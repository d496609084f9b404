"""Structured sprint plan returned by the planning service."""

from __future__ import annotations

import uuid

from pydantic import BaseModel, ConfigDict, Field, field_validator


class _PlanModel(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")


class SelectedIssue(_PlanModel):
    issue_id: uuid.UUID
    issue_key: str = ""
    title: str = ""
    story_points: float = 0.0
    suggested_assignee_id: int | None = None
    rationale: str = ""


class Recommendation(_PlanModel):
    type: str = Field(default="info", description="capacity|priority|risk|dependency|team_balance")
    severity: str = Field(default="info", description="info|warning|critical")
    message: str


class CapacityAnalysis(_PlanModel):
    team_capacity_utilization: float = 0.0
    estimated_completion_probability: float = 0.0
    risk_factors: list[str] = Field(default_factory=list)

    @field_validator("risk_factors", mode="before")
    @classmethod
    def _ensure_list(cls, value: object) -> list[str]:
        if value is None:
            return []
        if isinstance(value, list):
            return [str(item).strip() for item in value if str(item).strip()]
        if isinstance(value, str):
            return [item.strip() for item in value.splitlines() if item.strip()]
        return []


class PlanResult(_PlanModel):
    selected_issues: list[SelectedIssue] = Field(default_factory=list)
    total_story_points: float = 0.0
    summary: str = ""
    recommendations: list[Recommendation] = Field(default_factory=list)
    capacity_analysis: CapacityAnalysis = Field(default_factory=CapacityAnalysis)

    @field_validator("selected_issues", "recommendations", mode="before")
    @classmethod
    def _none_as_empty(cls, value: object) -> object:
        return [] if value is None else value


class SprintPlanEnvelope(_PlanModel):
    """Top-level answer shape: ``{"sprint_plan": {...}}``."""

    sprint_plan: PlanResult


__all__ = [
    "CapacityAnalysis",
    "PlanResult",
    "Recommendation",
    "SelectedIssue",
    "SprintPlanEnvelope",
]
