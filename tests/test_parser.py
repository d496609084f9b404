import json
import uuid

import pytest

from sprint_planner.errors import ErrorKind, ParseError
from sprint_planner.planning.parser import normalize_keys, parse_plan, reconcile_with_backlog, strip_code_fence
from sprint_planner.planning.schemas import PlanResult, SelectedIssue

from conftest import ISSUE_A, ISSUE_B

CAMEL_ANSWER = {
    "sprintPlan": {
        "selectedIssues": [
            {
                "issueId": str(ISSUE_A),
                "issueKey": "PHX-1",
                "title": "Fix checkout crash",
                "storyPoints": 5,
                "suggestedAssigneeId": 1,
                "rationale": "Critical bug",
            }
        ],
        "totalStoryPoints": 5,
        "summary": "Focus on stability",
        "recommendations": [{"type": "risk", "severity": "warning", "message": "Tight sprint"}],
        "capacityAnalysis": {
            "teamCapacityUtilization": 24,
            "estimatedCompletionProbability": 90,
            "riskFactors": ["New payment provider"],
        },
    }
}


def test_strip_code_fence():
    assert strip_code_fence('```json\n{"a": 1}\n```') == '{"a": 1}'
    assert strip_code_fence('```\n{"a": 1}```  ') == '{"a": 1}'
    assert strip_code_fence('  {"a": 1}  ') == '{"a": 1}'


def test_normalize_keys_handles_mixed_case():
    assert normalize_keys({"SprintPlan": {"Total_Story_Points": 3, "custom": [{"IssueID": "x"}]}}) == {
        "sprint_plan": {"total_story_points": 3, "custom": [{"issue_id": "x"}]}
    }


def test_parse_camel_case_answer_in_fence():
    plan = parse_plan(f"```json\n{json.dumps(CAMEL_ANSWER)}\n```")

    assert plan.total_story_points == 5
    assert plan.summary == "Focus on stability"
    (selected,) = plan.selected_issues
    assert selected.issue_id == ISSUE_A
    assert selected.suggested_assignee_id == 1
    assert plan.recommendations[0].severity == "warning"
    assert plan.capacity_analysis.risk_factors == ["New payment provider"]


def test_parse_snake_case_answer():
    answer = {"sprint_plan": {"selected_issues": None, "summary": "Nothing fits"}}
    plan = parse_plan(json.dumps(answer))

    assert plan.selected_issues == []
    assert plan.summary == "Nothing fits"


@pytest.mark.parametrize(
    "text",
    [
        "not json at all",
        "",
        "[1, 2, 3]",
        '{"plan": {}}',
        '{"sprint_plan": {"selected_issues": [{"issue_id": "not-a-uuid"}]}}',
    ],
)
def test_unparseable_answers_raise_parse_error(text):
    with pytest.raises(ParseError) as exc_info:
        parse_plan(text)
    assert exc_info.value.kind is ErrorKind.PARSE


def test_reconcile_drops_unknown_issues_and_recomputes_total(sample_context):
    stranger = uuid.uuid4()
    plan = PlanResult(
        selected_issues=[
            SelectedIssue(issue_id=ISSUE_A, issue_key="PHX-1", story_points=5),
            SelectedIssue(issue_id=stranger, issue_key="PHX-99", title="Invented", story_points=13),
            SelectedIssue(issue_id=ISSUE_B, title="Patch CVE now", story_points=8),
        ],
        total_story_points=26,
    )

    reconciled = reconcile_with_backlog(plan, sample_context)

    assert [s.issue_id for s in reconciled.selected_issues] == [ISSUE_A, ISSUE_B]
    assert reconciled.total_story_points == 13
    assert reconciled.selected_issues[0].title == "Fix checkout crash"
    assert reconciled.selected_issues[1].title == "Patch CVE now"
    assert reconciled.selected_issues[1].issue_key == "PHX-3"


def test_reconcile_keeps_total_when_nothing_dropped(sample_context):
    plan = PlanResult(
        selected_issues=[SelectedIssue(issue_id=ISSUE_A, story_points=5)],
        total_story_points=7,
    )
    assert reconcile_with_backlog(plan, sample_context).total_story_points == 7


def test_reconcile_rejects_fully_invented_selection(sample_context):
    plan = PlanResult(selected_issues=[SelectedIssue(issue_id=uuid.uuid4(), story_points=3)])

    with pytest.raises(ParseError):
        reconcile_with_backlog(plan, sample_context)


def test_reconcile_returns_empty_selection_unchanged(sample_context):
    plan = PlanResult(summary="Backlog needs grooming")
    assert reconcile_with_backlog(plan, sample_context) is plan
