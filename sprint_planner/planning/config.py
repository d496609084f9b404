"""Immutable configuration injected into the planning components."""

from __future__ import annotations

from dataclasses import dataclass

from ..settings import DEFAULT_BACKLOG_STATUS_NAMES, DEFAULT_COMPLETED_STATUS_NAMES, Settings


@dataclass(frozen=True)
class PlanningConfig:
    max_retries: int = 3
    backoff_base_seconds: float = 1.0
    deadline_seconds: float = 60.0
    completed_status_names: frozenset[str] = frozenset(DEFAULT_COMPLETED_STATUS_NAMES)
    backlog_status_names: frozenset[str] = frozenset(DEFAULT_BACKLOG_STATUS_NAMES)
    completed_points_include_all_issues: bool = True
    prompt_backlog_limit: int = 50
    historical_sprint_limit: int = 10
    project_history_limit: int = 15
    fallback_on_failure: bool = False

    @classmethod
    def from_settings(cls, settings: Settings) -> PlanningConfig:
        return cls(
            max_retries=settings.planner_max_retries,
            backoff_base_seconds=settings.planner_backoff_base_seconds,
            deadline_seconds=settings.planning_deadline_seconds,
            completed_status_names=frozenset(settings.completed_status_names),
            backlog_status_names=frozenset(settings.backlog_status_names),
            completed_points_include_all_issues=settings.completed_points_include_all_issues,
            prompt_backlog_limit=settings.prompt_backlog_limit,
            historical_sprint_limit=settings.historical_sprint_limit,
            project_history_limit=settings.project_history_limit,
            fallback_on_failure=settings.fallback_on_failure,
        )


__all__ = ["PlanningConfig"]
