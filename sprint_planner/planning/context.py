"""Request-scoped planning context handed from the builder to the prompt."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from enum import Enum
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, field_serializer, model_validator


class _Snapshot(BaseModel):
    model_config = ConfigDict(frozen=True)


class VelocityTrend(str, Enum):
    INCREASING = "increasing"
    STABLE = "stable"
    DECREASING = "decreasing"


class ProjectInfo(_Snapshot):
    id: uuid.UUID
    key: str = ""
    name: str


class NewSprint(_Snapshot):
    name: str
    goal: str | None = None
    team_id: int | None = None
    start_date: date | None = None
    due_date: date | None = None
    target_story_points: float | None = None


class BacklogIssue(_Snapshot):
    id: uuid.UUID
    key: str = ""
    title: str
    type: str
    priority: str = "MEDIUM"
    story_points: int | None = None
    assignee_id: int | None = None
    epic_id: uuid.UUID | None = None
    labels: frozenset[str] = Field(default_factory=frozenset)
    parent_issue_id: uuid.UUID | None = None

    @field_serializer("labels")
    def _sorted_labels(self, labels: frozenset[str]) -> list[str]:
        return sorted(labels)


class HistoricalSprint(_Snapshot):
    sprint_id: uuid.UUID
    name: str
    status: str
    duration_days: int = 0
    planned_points: float = 0.0
    completed_points: float = 0.0
    completion_rate: float = 0.0


class MemberVelocity(_Snapshot):
    user_id: int
    name: str
    avg_points_per_sprint: float
    completion_rate: float
    issue_types_preference: tuple[str, ...] = ()


class TeamVelocity(_Snapshot):
    team_id: int
    team_name: str
    member_count: int = 0
    historical_sprints: tuple[HistoricalSprint, ...] = ()
    average_velocity: float = 0.0
    recent_velocity_trend: VelocityTrend = VelocityTrend.STABLE
    member_velocities: tuple[MemberVelocity, ...] = ()


class InProgressSprint(_Snapshot):
    sprint_id: uuid.UUID
    name: str
    due_date: datetime | None = None
    allocated_points: float = 0.0
    remaining_points: float = 0.0
    team_member_ids: tuple[int, ...] = ()


class PlannedSprint(_Snapshot):
    sprint_id: uuid.UUID
    name: str
    start_date: datetime | None = None
    allocated_points: float = 0.0
    team_member_ids: tuple[int, ...] = ()


class TeamScoped(_Snapshot):
    scope: Literal["team"] = "team"
    team_velocity: TeamVelocity


class ProjectWide(_Snapshot):
    scope: Literal["project"] = "project"
    historical_sprints: tuple[HistoricalSprint, ...] = ()


VelocityScope = Annotated[TeamScoped | ProjectWide, Field(discriminator="scope")]


class PlanningContext(_Snapshot):
    """Everything the planner is told about the sprint being planned.

    Velocity data is either team-scoped or project-wide, never both; which
    one is decided by whether the new sprint names a team.
    """

    project: ProjectInfo
    new_sprint: NewSprint
    backlog_issues: tuple[BacklogIssue, ...] = ()
    velocity: VelocityScope
    in_progress_sprints: tuple[InProgressSprint, ...] = ()
    planned_sprints: tuple[PlannedSprint, ...] = ()

    @model_validator(mode="after")
    def _scope_matches_team(self) -> PlanningContext:
        team_given = self.new_sprint.team_id is not None
        if team_given != isinstance(self.velocity, TeamScoped):
            raise ValueError("velocity scope must be team-scoped exactly when a team id is given")
        return self

    @property
    def team_velocity(self) -> TeamVelocity | None:
        if isinstance(self.velocity, TeamScoped):
            return self.velocity.team_velocity
        return None

    @property
    def historical_sprints(self) -> tuple[HistoricalSprint, ...] | None:
        if isinstance(self.velocity, ProjectWide):
            return self.velocity.historical_sprints
        return None

    @property
    def backlog_by_id(self) -> dict[uuid.UUID, BacklogIssue]:
        return {issue.id: issue for issue in self.backlog_issues}


__all__ = [
    "BacklogIssue",
    "HistoricalSprint",
    "InProgressSprint",
    "MemberVelocity",
    "NewSprint",
    "PlannedSprint",
    "PlanningContext",
    "ProjectInfo",
    "ProjectWide",
    "TeamScoped",
    "TeamVelocity",
    "VelocityScope",
    "VelocityTrend",
]
