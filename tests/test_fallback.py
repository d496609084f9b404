from sprint_planner.planning.context import NewSprint, ProjectWide, VelocityTrend
from sprint_planner.planning.fallback import build_fallback_plan, fallback_target

from conftest import ISSUE_A, ISSUE_B, ISSUE_C, ISSUE_D


def _with_trend(context, trend):
    team = context.team_velocity.model_copy(update={"recent_velocity_trend": trend})
    return context.model_copy(update={"velocity": context.velocity.model_copy(update={"team_velocity": team})})


def _with_target(context, target):
    return context.model_copy(update={"new_sprint": context.new_sprint.model_copy(update={"target_story_points": target})})


def test_fallback_fills_to_average_velocity(sample_context):
    plan = build_fallback_plan(sample_context)

    assert [s.issue_id for s in plan.selected_issues] == [ISSUE_B, ISSUE_A, ISSUE_C, ISSUE_D]
    assert plan.total_story_points == 18
    assert plan.capacity_analysis.team_capacity_utilization == 85
    assert plan.capacity_analysis.estimated_completion_probability == 95
    assert plan.capacity_analysis.risk_factors == []
    messages = [r.message for r in plan.recommendations]
    assert "This is a fallback plan generated using rule-based logic." in messages
    assert "Sprint includes critical priority items; ensure adequate focus." in messages
    assert "Sprint capacity utilization is healthy." in messages
    assert plan.selected_issues[0].rationale == "CRITICAL priority TASK issue selected for sprint"


def test_fallback_takes_three_issues_even_over_target(sample_context):
    plan = build_fallback_plan(_with_target(sample_context, 10))

    assert [s.issue_id for s in plan.selected_issues] == [ISSUE_B, ISSUE_A, ISSUE_C]
    assert plan.total_story_points == 16
    assert plan.capacity_analysis.team_capacity_utilization == 160
    assert "Sprint overloaded beyond team capacity" in plan.capacity_analysis.risk_factors
    assert any(r.severity == "warning" and r.type == "capacity" for r in plan.recommendations)


def test_decreasing_trend_reduces_target(sample_context):
    context = _with_trend(sample_context, VelocityTrend.DECREASING)

    assert fallback_target(sample_context) == 21
    assert fallback_target(context) == 17
    assert "Team velocity is decreasing" in build_fallback_plan(context).capacity_analysis.risk_factors


def test_project_wide_target_uses_history(sample_context):
    context = sample_context.model_copy(
        update={
            "new_sprint": NewSprint(name="Sprint 4"),
            "velocity": ProjectWide(historical_sprints=sample_context.team_velocity.historical_sprints),
        }
    )
    assert fallback_target(context) == 21


def test_empty_backlog_gives_empty_plan(sample_context):
    plan = build_fallback_plan(sample_context.model_copy(update={"backlog_issues": ()}))

    assert plan.selected_issues == []
    assert plan.total_story_points == 0
    assert "Sprint has capacity for additional work; consider adding more issues." in [
        r.message for r in plan.recommendations
    ]
