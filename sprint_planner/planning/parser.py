"""Decode planner answers into validated ``PlanResult`` objects."""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from ..errors import ParseError
from .context import PlanningContext
from .schemas import PlanResult, SprintPlanEnvelope

logger = logging.getLogger(__name__)

_FENCE_OPEN = re.compile(r"```(?:json)?\s*", re.IGNORECASE)
_FENCE_CLOSE = re.compile(r"\s*```\s*$")

CANONICAL_KEYS = (
    "sprint_plan",
    "selected_issues",
    "issue_id",
    "issue_key",
    "title",
    "story_points",
    "suggested_assignee_id",
    "rationale",
    "total_story_points",
    "summary",
    "recommendations",
    "type",
    "severity",
    "message",
    "capacity_analysis",
    "team_capacity_utilization",
    "estimated_completion_probability",
    "risk_factors",
)
_KEY_LOOKUP = {key.replace("_", ""): key for key in CANONICAL_KEYS}


def strip_code_fence(text: str) -> str:
    """Remove a surrounding markdown code fence, if any, and trim whitespace."""
    text = text.strip()
    if text.startswith("```"):
        text = _FENCE_OPEN.sub("", text, count=1)
        text = _FENCE_CLOSE.sub("", text)
    return text.strip()


def normalize_keys(value: Any) -> Any:
    """Map camelCase, PascalCase or snake_case keys onto the canonical field names."""
    if isinstance(value, dict):
        normalized: dict[str, Any] = {}
        for key, item in value.items():
            folded = str(key).replace("_", "").replace("-", "").lower()
            normalized[_KEY_LOOKUP.get(folded, key)] = normalize_keys(item)
        return normalized
    if isinstance(value, list):
        return [normalize_keys(item) for item in value]
    return value


def parse_plan(text: str) -> PlanResult:
    """Parse the planner's text answer.

    Raises:
        ParseError: the text is not JSON or does not match the plan schema
    """
    cleaned = strip_code_fence(text)
    if not cleaned:
        raise ParseError("Planner returned an empty answer")
    try:
        payload = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        logger.debug("Undecodable planner answer: %s", cleaned)
        raise ParseError(
            "Planner answer is not valid JSON",
            details={"position": exc.pos, "reason": exc.msg},
        ) from exc

    if not isinstance(payload, dict):
        raise ParseError("Planner answer must be a JSON object")

    try:
        envelope = SprintPlanEnvelope.model_validate(normalize_keys(payload))
    except PydanticValidationError as exc:
        raise ParseError(
            "Planner answer does not match the sprint plan schema",
            details={"errors": exc.errors(include_url=False, include_context=False)},
        ) from exc
    return envelope.sprint_plan


def reconcile_with_backlog(plan: PlanResult, context: PlanningContext) -> PlanResult:
    """Keep only selections that exist in the backlog and fill in missing titles.

    When selections are dropped the total is recomputed from what remains.
    An answer that selected issues, none of which are in the backlog, is a
    ``ParseError``; an answer that selected nothing is returned unchanged.
    """
    if not plan.selected_issues:
        return plan

    backlog = context.backlog_by_id
    valid = [selected for selected in plan.selected_issues if selected.issue_id in backlog]
    dropped = len(plan.selected_issues) - len(valid)

    if not valid:
        raise ParseError(
            "Planner selected no issues from the backlog",
            details={"invalid_ids": [str(s.issue_id) for s in plan.selected_issues]},
        )

    enriched = []
    for selected in valid:
        source = backlog[selected.issue_id]
        update: dict[str, Any] = {}
        if not selected.title:
            update["title"] = source.title
        if not selected.issue_key and source.key:
            update["issue_key"] = source.key
        enriched.append(selected.model_copy(update=update) if update else selected)

    update_plan: dict[str, Any] = {"selected_issues": enriched}
    if dropped:
        logger.warning(
            "Dropped %s selected issues not present in the backlog: %s",
            dropped,
            ", ".join(str(s.issue_id) for s in plan.selected_issues if s.issue_id not in backlog),
        )
        update_plan["total_story_points"] = float(sum(s.story_points for s in enriched))
    return plan.model_copy(update=update_plan)


__all__ = ["normalize_keys", "parse_plan", "reconcile_with_backlog", "strip_code_fence"]
