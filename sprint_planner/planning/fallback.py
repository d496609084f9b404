"""Rule-based sprint plan used when the planning service is unavailable."""

from __future__ import annotations

import logging

from .context import PlanningContext, VelocityTrend
from .context_builder import priority_rank
from .schemas import CapacityAnalysis, PlanResult, Recommendation, SelectedIssue
from .velocity import average_velocity

logger = logging.getLogger(__name__)

MIN_ISSUES = 3
ENOUGH_ISSUES = 5
DECREASING_LOAD_FACTOR = 0.85


def fallback_target(context: PlanningContext) -> int:
    """Target points: explicit target, else proven velocity, cut by 15% on a decreasing trend."""
    team = context.team_velocity
    if context.new_sprint.target_story_points is not None:
        target = int(context.new_sprint.target_story_points)
    elif team is not None:
        target = int(team.average_velocity)
    else:
        target = int(average_velocity(context.historical_sprints or ()))

    if team is not None and team.recent_velocity_trend is VelocityTrend.DECREASING:
        target = int(target * DECREASING_LOAD_FACTOR)
    return target


def build_fallback_plan(context: PlanningContext) -> PlanResult:
    logger.info("Generating rule-based fallback sprint plan")
    team = context.team_velocity
    trend = team.recent_velocity_trend if team is not None else VelocityTrend.STABLE
    target = fallback_target(context)

    ordered = sorted(
        context.backlog_issues,
        key=lambda issue: (-priority_rank(issue.priority), -(issue.story_points or 0)),
    )

    selected: list[SelectedIssue] = []
    total = 0
    for issue in ordered:
        points = issue.story_points or 0
        if total + points <= target or len(selected) < MIN_ISSUES:
            selected.append(
                SelectedIssue(
                    issue_id=issue.id,
                    issue_key=issue.key,
                    title=issue.title,
                    story_points=points,
                    suggested_assignee_id=issue.assignee_id,
                    rationale=f"{issue.priority} priority {issue.type} issue selected for sprint",
                )
            )
            total += points
        if total >= target and len(selected) >= ENOUGH_ISSUES:
            break

    utilization = total / target * 100 if target > 0 else 0.0
    selected_ids = {s.issue_id for s in selected}
    critical_count = sum(
        1 for issue in context.backlog_issues if issue.priority == "CRITICAL" and issue.id in selected_ids
    )

    recommendations = [
        Recommendation(type="priority", severity="info", message="This is a fallback plan generated using rule-based logic."),
        Recommendation(
            type="capacity",
            severity="info",
            message=f"Team velocity trend is {trend.value}; adjust future sprint planning accordingly.",
        ),
    ]
    if critical_count:
        recommendations.append(
            Recommendation(
                type="priority",
                severity="warning",
                message="Sprint includes critical priority items; ensure adequate focus.",
            )
        )
    else:
        recommendations.append(
            Recommendation(
                type="priority",
                severity="info",
                message="Consider including high-priority items for maximum value delivery.",
            )
        )

    if utilization > 110:
        recommendations.append(
            Recommendation(
                type="capacity",
                severity="warning",
                message="Sprint may be overloaded; consider removing low-priority items.",
            )
        )
    elif utilization < 70:
        recommendations.append(
            Recommendation(
                type="capacity",
                severity="info",
                message="Sprint has capacity for additional work; consider adding more issues.",
            )
        )
    else:
        recommendations.append(
            Recommendation(type="capacity", severity="info", message="Sprint capacity utilization is healthy.")
        )

    risk_factors: list[str] = []
    if trend is VelocityTrend.DECREASING:
        risk_factors.append("Team velocity is decreasing")
    if utilization > 110:
        risk_factors.append("Sprint overloaded beyond team capacity")
    if critical_count > 3:
        risk_factors.append("High number of critical priority items")

    velocity = team.average_velocity if team is not None else average_velocity(context.historical_sprints or ())
    return PlanResult(
        selected_issues=selected,
        total_story_points=float(total),
        summary=(
            f"Rule-based sprint plan generated with {len(selected)} issues totaling {total} story points. "
            f"Target was {target} points (velocity: {velocity:.1f}, trend: {trend.value})."
        ),
        recommendations=recommendations,
        capacity_analysis=CapacityAnalysis(
            team_capacity_utilization=float(int(utilization)),
            estimated_completion_probability=float(min(95, 100 - abs(int(utilization - 90)))),
            risk_factors=risk_factors,
        ),
    )


__all__ = ["build_fallback_plan", "fallback_target"]
