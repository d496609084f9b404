#!/usr/bin/env python3
"""CLI utility to plan a sprint against the configured database."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
import uuid
from datetime import date
from decimal import Decimal

from sprint_planner.clients import GeminiPlannerClient
from sprint_planner.models import PlanSprintRequest
from sprint_planner.observability.logging import configure_logging
from sprint_planner.planning.config import PlanningConfig
from sprint_planner.planning.orchestrator import PlanningOrchestrator, PlanningOutcome
from sprint_planner.settings import settings
from sprint_planner.storage.database import dispose_engine, get_session_factory


def _print_text(outcome: PlanningOutcome) -> None:
    if not outcome.success or outcome.plan is None:
        error = outcome.error or {}
        print(f"Planning failed at {error.get('stage')}: {error.get('message')} ({error.get('kind')})")
        return

    plan = outcome.plan
    label = " (rule-based fallback)" if outcome.used_fallback else ""
    print(f"Sprint plan{label}: {len(plan.selected_issues)} issues, {plan.total_story_points:g} points")
    for issue in plan.selected_issues:
        assignee = f" -> user {issue.suggested_assignee_id}" if issue.suggested_assignee_id is not None else ""
        print(f"  {issue.issue_key or issue.issue_id} [{issue.story_points:g}] {issue.title}{assignee}")
    if plan.summary:
        print(f"Summary: {plan.summary}")
    for rec in plan.recommendations:
        print(f"  ({rec.severity}) {rec.type}: {rec.message}")


async def _run(request: PlanSprintRequest) -> PlanningOutcome:
    orchestrator = PlanningOrchestrator(
        session_factory=get_session_factory(),
        client=GeminiPlannerClient.from_settings(settings),
        config=PlanningConfig.from_settings(settings),
    )
    try:
        return await orchestrator.plan(request)
    finally:
        await dispose_engine()


def main() -> None:
    parser = argparse.ArgumentParser(description="Plan a sprint from the project backlog")
    parser.add_argument("project_id", type=uuid.UUID, help="Project UUID")
    parser.add_argument("--name", required=True, help="Sprint name")
    parser.add_argument("--goal", default=None, help="Sprint goal")
    parser.add_argument("--team", type=int, default=None, help="Team id to plan against")
    parser.add_argument("--start", type=date.fromisoformat, default=None, help="Start date (YYYY-MM-DD)")
    parser.add_argument("--due", type=date.fromisoformat, default=None, help="Due date (YYYY-MM-DD)")
    parser.add_argument("--target", type=Decimal, default=None, help="Target story points")
    parser.add_argument(
        "--format",
        choices={"text", "json"},
        default="text",
        help="Output format",
    )
    args = parser.parse_args()

    configure_logging(settings.log_level)
    request = PlanSprintRequest(
        project_id=args.project_id,
        sprint_name=args.name,
        sprint_goal=args.goal,
        team_id=args.team,
        start_date=args.start,
        due_date=args.due,
        target_story_points=args.target,
    )
    outcome = asyncio.run(_run(request))

    if args.format == "json":
        print(
            json.dumps(
                {
                    "success": outcome.success,
                    "state": outcome.state.value,
                    "used_fallback": outcome.used_fallback,
                    "plan": outcome.plan.model_dump(mode="json") if outcome.plan else None,
                    "error": outcome.error,
                },
                indent=2,
            )
        )
    else:
        _print_text(outcome)

    if not outcome.success:
        sys.exit(1)


if __name__ == "__main__":
    main()
