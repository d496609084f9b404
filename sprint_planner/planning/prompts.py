"""Jinja templates for sprint planning prompts."""

from __future__ import annotations

from jinja2 import StrictUndefined, Template

from ..utils.datetime import format_day
from .config import PlanningConfig
from .context import PlanningContext, VelocityTrend

TEAM_SPRINT_PROMPT_LIMIT = 10
PROJECT_SPRINT_PROMPT_LIMIT = 15

OUTPUT_SCHEMA = """{
  "sprint_plan": {
    "selected_issues": [
      {
        "issue_id": "exact-uuid-from-backlog-list",
        "issue_key": "string like PHX-201",
        "title": "exact title from the backlog issue",
        "story_points": number,
        "suggested_assignee_id": number or null,
        "rationale": "brief explanation why this issue was selected"
      }
    ],
    "total_story_points": number,
    "summary": "comprehensive summary of the sprint plan",
    "recommendations": [
      {
        "type": "capacity|priority|risk|dependency|team_balance",
        "severity": "info|warning|critical",
        "message": "recommendation text"
      }
    ],
    "capacity_analysis": {
      "team_capacity_utilization": number (percentage),
      "estimated_completion_probability": number (percentage),
      "risk_factors": ["string"]
    }
  }
}"""

SPRINT_PLANNING_TEMPLATE = Template(
    """You are an expert agile sprint planner. Your task is to create an optimal sprint plan based on the provided project data, backlog issues, team velocity, and constraints.

## OUTPUT REQUIREMENTS
1. Return ONLY valid JSON, with no explanatory text and no markdown formatting.
2. Provide a non-empty summary and recommendations.
3. For each selected issue, "issue_id" MUST be the exact UUID of a backlog issue listed below.
4. The response must match this JSON structure:
{{ schema }}

## PROJECT CONTEXT
- Project: {{ project.name }} ({{ project.key or "N/A" }})
- Sprint: {{ sprint.name }}
- Sprint Goal: {{ sprint.goal or "Not specified, suggest one based on the selected issues" }}
- Sprint Duration: {{ start_date }} to {{ due_date }}
- Target Story Points: {% if sprint.target_story_points is not none %}{{ '%.0f' | format(sprint.target_story_points) }}{% else %}Not specified (use team velocity as guide){% endif %}

{% if team %}
## TEAM VELOCITY
- Team: {{ team.team_name }} (ID: {{ team.team_id }})
- Team Size: {{ team.member_count }} members
- Average Velocity: {{ '%.2f' | format(team.average_velocity) }} story points per sprint
- Velocity Trend: {{ team.recent_velocity_trend.value }}
{% if team.historical_sprints %}
- Historical Sprint Performance (team-specific, COMPLETED sprints only):
{% for s in team.historical_sprints[:team_sprint_limit] %}  * {{ s.name }}: Status={{ s.status }}, Completed={{ points(s.completed_points) }}/{{ points(s.planned_points) }} points ({{ '%.0f' | format(s.completion_rate) }}% completion), Duration={{ s.duration_days }} days
{% endfor %}
{% else %}
- No historical sprint data available (new team or first sprint)
{% endif %}
{% if team.member_velocities %}
- Team Member Performance:
{% for m in team.member_velocities %}  * {{ m.name }} (ID: {{ m.user_id }}): Avg {{ '%.1f' | format(m.avg_points_per_sprint) }} pts/sprint, {{ '%.0f' | format(m.completion_rate) }}% completion rate
{% if m.issue_types_preference %}    Preferred types: {{ m.issue_types_preference | join(", ") }}
{% endif %}{% endfor %}
{% endif %}
{% elif history %}
## HISTORICAL SPRINT PERFORMANCE (All Teams, COMPLETED sprints only)
Total historical sprints available: {{ history | length }}

{% for s in history[:project_sprint_limit] %}- {{ s.name }}:
  * Status: {{ s.status }}
  * Completed: {{ points(s.completed_points) }}/{{ points(s.planned_points) }} points ({{ '%.0f' | format(s.completion_rate) }}% completion)
  * Duration: {{ s.duration_days }} days
{% endfor %}

Note: No specific team velocity data available. Use historical sprint patterns to estimate capacity.
{% else %}
## TEAM VELOCITY
- No team specified and no historical sprint data available
- Plan conservatively based on backlog complexity and story points
{% endif %}

## AVAILABLE BACKLOG ISSUES
Total backlog issues: {{ backlog | length }}

IMPORTANT: Each issue has a unique "id". Every selected issue MUST carry that exact id as "issue_id".
Do NOT alter, regenerate, or invent ids, and do NOT select issues that are not in this list.

{% for issue in backlog[:backlog_limit] %}- Issue ID: {{ issue.id }}
  * Key: {{ issue.key }}
  * Title: "{{ issue.title }}"
  * Type: {{ issue.type }}, Priority: {{ issue.priority }}
  * Story Points: {{ issue.story_points or 0 }}
{% if issue.parent_issue_id %}  * Parent Issue ID: {{ issue.parent_issue_id }}
{% endif %}{% if issue.assignee_id is not none %}  * Assigned to: User ID {{ issue.assignee_id }}
{% endif %}{% if issue.labels %}  * Labels: {{ issue.labels | sort | join(", ") }}
{% endif %}{% else %}No backlog issues available.
{% endfor %}

## ACTIVE/IN-PROGRESS SPRINTS {{ scope_label }}
{% for s in in_progress %}{% if loop.first %}These sprints are currently ACTIVE. Consider their workload when planning:
{% endif %}- {{ s.name }}:
  * Allocated: {{ points(s.allocated_points) }} points
  * Remaining: {{ points(s.remaining_points) }} points ({% if s.allocated_points > 0 %}{{ '%.0f' | format(s.remaining_points / s.allocated_points * 100) }}%{% else %}N/A{% endif %} remaining)
  * Due Date: {{ day(s.due_date, "No due date") }}
{% else %}No active sprints currently running.
{% endfor %}

## PLANNED SPRINTS {{ scope_label }}
{% for s in planned %}{% if loop.first %}These sprints are already planned but not yet started:
{% endif %}- {{ s.name }}:
  * Allocated: {{ points(s.allocated_points) }} points
  * Start Date: {{ day(s.start_date, "No start date") }}
{% else %}No future sprints are currently planned.
{% endfor %}

## PLANNING CONSTRAINTS & RULES
1. Aim for 85-95% of {{ capacity_basis }}, and never exceed average velocity + 20%.
2. Prioritize issues in this order: CRITICAL > HIGH > MEDIUM > LOW.
3. Respect dependencies: a child issue must not be selected without its parent unless the parent is already scheduled.
4. Never invent issues and never change the story points supplied for an issue.
5. Balance story point distribution across team members (if a team is specified).
6. Consider the velocity trend:
   - {{ trend_guidance }}
7. Assign issues to team members based on their historical performance.
8. Identify and flag any capacity or risk concerns.

## FULL PLANNING CONTEXT (JSON)
{{ context_json }}

Return ONLY the JSON sprint plan, with no additional text.
""",
    undefined=StrictUndefined,
    trim_blocks=False,
    keep_trailing_newline=True,
)

TREND_GUIDANCE = {
    VelocityTrend.DECREASING: "Velocity is DECREASING: reduce sprint load by 10-15%",
    VelocityTrend.INCREASING: "Velocity is INCREASING: sprint load can increase slightly",
    VelocityTrend.STABLE: "Velocity is STABLE: plan at the average velocity level",
}


def _points(value: float) -> str:
    return f"{value:g}"


class PromptComposer:
    """Render a planning context into the instruction document sent to the planner."""

    def __init__(self, config: PlanningConfig | None = None) -> None:
        self._config = config or PlanningConfig()

    def compose(self, context: PlanningContext) -> str:
        team = context.team_velocity
        sprint = context.new_sprint
        trend = team.recent_velocity_trend if team is not None else VelocityTrend.STABLE

        if sprint.target_story_points is not None:
            capacity_basis = f"the target of {sprint.target_story_points:g} story points"
        elif team is not None:
            capacity_basis = f"the team's average velocity ({team.average_velocity:.2f} points)"
        else:
            capacity_basis = "the historical average velocity"

        return SPRINT_PLANNING_TEMPLATE.render(
            schema=OUTPUT_SCHEMA,
            project=context.project,
            sprint=sprint,
            start_date=format_day(sprint.start_date),
            due_date=format_day(sprint.due_date),
            team=team,
            history=context.historical_sprints or (),
            backlog=context.backlog_issues,
            in_progress=context.in_progress_sprints,
            planned=context.planned_sprints,
            scope_label="(Same Team)" if sprint.team_id is not None else "(All Teams)",
            capacity_basis=capacity_basis,
            trend_guidance=TREND_GUIDANCE[trend],
            backlog_limit=self._config.prompt_backlog_limit,
            team_sprint_limit=TEAM_SPRINT_PROMPT_LIMIT,
            project_sprint_limit=PROJECT_SPRINT_PROMPT_LIMIT,
            context_json=context.model_dump_json(indent=2),
            points=_points,
            day=format_day,
        )


__all__ = ["OUTPUT_SCHEMA", "PromptComposer", "SPRINT_PLANNING_TEMPLATE", "TREND_GUIDANCE"]
