"""Velocity analytics over historical sprint and issue snapshots.

Everything here is pure: callers load the snapshots, these helpers only do
the arithmetic. Two behaviours are kept on purpose even though they skew
the numbers (see ``DESIGN.md``):

* a sprint's completed points count every linked issue, whatever its
  status, unless ``include_all_issues=False`` is passed;
* a member's ``avg_points_per_sprint`` is a mean over their issues, not
  over the sprints in the window.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime
from statistics import fmean

from ..utils.datetime import whole_days_between
from .context import HistoricalSprint, MemberVelocity, VelocityTrend

TREND_WINDOW = 3
TREND_SPREAD_THRESHOLD = 5.0


@dataclass(frozen=True)
class SprintIssue:
    """Minimal view of an issue linked to a sprint."""

    sprint_id: uuid.UUID
    story_points: int | None
    status_name: str | None
    issue_type: str = ""
    assignee_id: int | None = None


def compute_completion_rate(planned: float, completed: float) -> float:
    """Completed share of planned points as a percentage (may exceed 100)."""
    if planned <= 0:
        return 0.0
    return round(completed / planned * 100, 2)


def classify_trend(completed_points: Sequence[float]) -> VelocityTrend:
    """Classify recent velocity from completed points, most recent sprint first.

    Only the first three entries are looked at. The spread between their
    maximum and minimum is signed by where the extremes sit in the window:
    positive when the maximum comes after the minimum, negative otherwise.
    """
    if len(completed_points) < TREND_WINDOW:
        return VelocityTrend.STABLE

    window = list(completed_points[:TREND_WINDOW])
    high, low = max(window), min(window)
    spread = high - low
    if window.index(high) < window.index(low):
        spread = -spread

    if spread > TREND_SPREAD_THRESHOLD:
        return VelocityTrend.INCREASING
    if spread < -TREND_SPREAD_THRESHOLD:
        return VelocityTrend.DECREASING
    return VelocityTrend.STABLE


def average_velocity(sprints: Iterable[HistoricalSprint]) -> float:
    points = [sprint.completed_points for sprint in sprints]
    if not points:
        return 0.0
    return fmean(points)


def build_historical_sprint(
    sprint_id: uuid.UUID,
    name: str,
    status: str | None,
    start_date: datetime | None,
    due_date: datetime | None,
    issues: Iterable[SprintIssue],
    completed_status_names: Iterable[str],
    include_all_issues: bool = True,
) -> HistoricalSprint:
    issues = list(issues)
    done = frozenset(completed_status_names)
    planned = float(sum(issue.story_points or 0 for issue in issues))
    if include_all_issues:
        completed = planned
    else:
        completed = float(
            sum(issue.story_points or 0 for issue in issues if (issue.status_name or "") in done)
        )
    return HistoricalSprint(
        sprint_id=sprint_id,
        name=name,
        status=status or "UNKNOWN",
        duration_days=whole_days_between(start_date, due_date),
        planned_points=planned,
        completed_points=completed,
        completion_rate=compute_completion_rate(planned, completed),
    )


def compute_member_velocities(
    team_user_ids: Iterable[int],
    completed_sprint_ids: Iterable[uuid.UUID],
    issues_by_assignee: Mapping[int, Sequence[SprintIssue]],
    user_names: Mapping[int, str],
    completed_status_names: Iterable[str],
) -> list[MemberVelocity]:
    """Per-member performance inside the team's completed sprints.

    Members without issues in those sprints, or without a known user record,
    are left out.
    """
    sprint_ids = frozenset(completed_sprint_ids)
    done = frozenset(completed_status_names)
    velocities: list[MemberVelocity] = []

    for user_id in sorted(set(team_user_ids)):
        name = user_names.get(user_id)
        if name is None:
            continue
        issues = [issue for issue in issues_by_assignee.get(user_id, ()) if issue.sprint_id in sprint_ids]
        if not issues:
            continue

        completed_count = sum(1 for issue in issues if (issue.status_name or "") in done)
        preferred_types: list[str] = []
        for issue in issues:
            if issue.issue_type and issue.issue_type not in preferred_types:
                preferred_types.append(issue.issue_type)

        velocities.append(
            MemberVelocity(
                user_id=user_id,
                name=name,
                avg_points_per_sprint=fmean(issue.story_points or 0 for issue in issues),
                completion_rate=round(completed_count / len(issues) * 100, 1),
                issue_types_preference=tuple(preferred_types),
            )
        )
    return velocities


__all__ = [
    "SprintIssue",
    "average_velocity",
    "build_historical_sprint",
    "classify_trend",
    "compute_completion_rate",
    "compute_member_velocities",
]
