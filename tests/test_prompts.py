from sprint_planner.planning.config import PlanningConfig
from sprint_planner.planning.context import NewSprint, ProjectWide, VelocityTrend
from sprint_planner.planning.prompts import PromptComposer


def test_prompt_is_deterministic(sample_context):
    composer = PromptComposer()
    assert composer.compose(sample_context) == composer.compose(sample_context)


def test_prompt_covers_rules_schema_and_backlog(sample_context):
    prompt = PromptComposer().compose(sample_context)

    assert "expert agile sprint planner" in prompt
    assert '"sprint_plan"' in prompt
    assert '"selected_issues"' in prompt
    assert "CRITICAL > HIGH > MEDIUM > LOW" in prompt
    assert "85-95% of the team's average velocity (21.00 points)" in prompt
    assert "Never invent issues" in prompt
    assert "Velocity is STABLE" in prompt
    assert "## TEAM VELOCITY" in prompt
    assert "Ada (ID: 1): Avg 10.7 pts/sprint, 67% completion rate" in prompt
    assert "Preferred types: STORY, BUG" in prompt
    assert "## ACTIVE/IN-PROGRESS SPRINTS (Same Team)" in prompt
    assert "No active sprints currently running." in prompt
    assert "Labels: frontend, ui" in prompt
    for issue in sample_context.backlog_issues:
        assert f"- Issue ID: {issue.id}" in prompt


def test_prompt_embeds_full_context_json(sample_context):
    prompt = PromptComposer().compose(sample_context)
    assert sample_context.model_dump_json(indent=2) in prompt


def test_prompt_caps_listed_backlog(sample_context):
    prompt = PromptComposer(PlanningConfig(prompt_backlog_limit=2)).compose(sample_context)

    listed = [issue for issue in sample_context.backlog_issues if f"- Issue ID: {issue.id}" in prompt]
    assert listed == list(sample_context.backlog_issues[:2])
    assert "Total backlog issues: 4" in prompt


def test_prompt_uses_target_points_when_given(sample_context):
    context = sample_context.model_copy(
        update={"new_sprint": sample_context.new_sprint.model_copy(update={"target_story_points": 30.0})}
    )
    prompt = PromptComposer().compose(context)

    assert "Target Story Points: 30" in prompt
    assert "85-95% of the target of 30 story points" in prompt


def test_prompt_trend_guidance_follows_velocity(sample_context):
    team = sample_context.team_velocity.model_copy(update={"recent_velocity_trend": VelocityTrend.DECREASING})
    context = sample_context.model_copy(update={"velocity": sample_context.velocity.model_copy(update={"team_velocity": team})})

    assert "reduce sprint load by 10-15%" in PromptComposer().compose(context)


def test_project_wide_prompt(sample_context):
    context = sample_context.model_copy(
        update={
            "new_sprint": NewSprint(name="Sprint 4"),
            "velocity": ProjectWide(historical_sprints=sample_context.team_velocity.historical_sprints),
        }
    )
    prompt = PromptComposer().compose(context)

    assert "## HISTORICAL SPRINT PERFORMANCE (All Teams, COMPLETED sprints only)" in prompt
    assert "Total historical sprints available: 3" in prompt
    assert "(All Teams)" in prompt
    assert "(Same Team)" not in prompt
    assert "Sprint Goal: Not specified" in prompt
