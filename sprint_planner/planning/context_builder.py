"""Assemble a ``PlanningContext`` from a read-only store snapshot."""

from __future__ import annotations

import json
import logging
import uuid
from collections import defaultdict
from collections.abc import Iterable
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..errors import NotFoundError, PlanningError, PlanningFailed, ValidationError
from ..models import PlanSprintRequest
from ..result import Failure, Result, Success
from ..storage.database import Issue, Project, ProjectMember, Sprint, Status, Team, TeamMember, User
from .config import PlanningConfig
from .context import (
    BacklogIssue,
    HistoricalSprint,
    InProgressSprint,
    MemberVelocity,
    NewSprint,
    PlannedSprint,
    PlanningContext,
    ProjectInfo,
    ProjectWide,
    TeamScoped,
    TeamVelocity,
)
from .velocity import (
    SprintIssue,
    average_velocity,
    build_historical_sprint,
    classify_trend,
    compute_member_velocities,
)

logger = logging.getLogger(__name__)

PRIORITY_RANK = {"CRITICAL": 4, "HIGH": 3, "MEDIUM": 2, "LOW": 1}
DEFAULT_PRIORITY = "MEDIUM"

SPRINT_ACTIVE = "ACTIVE"
SPRINT_PLANNED = "PLANNED"
SPRINT_COMPLETED = "COMPLETED"


def priority_rank(priority: str | None) -> int:
    return PRIORITY_RANK.get((priority or DEFAULT_PRIORITY).upper(), 0)


def _decode_labels(raw: object) -> frozenset[str]:
    if raw is None or raw == "":
        return frozenset()
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            logger.warning("Ignoring undecodable issue labels: %r", raw)
            return frozenset()
    if isinstance(raw, list):
        return frozenset(str(label) for label in raw if str(label).strip())
    return frozenset()


class ContextBuilder:
    """Reads projects, teams, sprints and issues and builds the planning context.

    The builder only issues SELECTs, so two builds over an unchanged snapshot
    produce equal contexts.
    """

    def __init__(self, session: AsyncSession, config: PlanningConfig) -> None:
        self._session = session
        self._config = config

    async def build(self, project_id: uuid.UUID, request: PlanSprintRequest) -> Result[PlanningContext]:
        step = "resolve_project"
        try:
            project = await self._resolve_project(project_id)

            team: Team | None = None
            if request.team_id is not None:
                step = "resolve_team"
                team = await self._resolve_team(project_id, request.team_id)

            step = "collect_backlog"
            backlog = await self._collect_backlog(project_id)

            step = "collect_sprint_load"
            team_id = team.id if team is not None else None
            in_progress = await self._collect_in_progress(project_id, team_id)
            planned = await self._collect_planned(project_id, team_id)

            step = "collect_velocity"
            if team is not None:
                velocity: TeamScoped | ProjectWide = TeamScoped(
                    team_velocity=await self._team_velocity(project_id, team)
                )
            else:
                velocity = ProjectWide(historical_sprints=tuple(await self._project_history(project_id)))

            context = PlanningContext(
                project=project,
                new_sprint=NewSprint(
                    name=request.sprint_name,
                    goal=request.sprint_goal,
                    team_id=request.team_id,
                    start_date=request.start_date,
                    due_date=request.due_date,
                    target_story_points=(
                        float(request.target_story_points) if request.target_story_points is not None else None
                    ),
                ),
                backlog_issues=tuple(backlog),
                velocity=velocity,
                in_progress_sprints=tuple(in_progress),
                planned_sprints=tuple(planned),
            )
        except PlanningError as exc:
            exc.details.setdefault("step", step)
            return Failure(exc)
        except SQLAlchemyError as exc:
            logger.exception("Store read failed while building context (step=%s)", step)
            error = PlanningFailed("Unable to load planning data. Please try again.")
            error.details.update({"step": step, "cause": type(exc).__name__})
            return Failure(error)

        logger.info(
            "Planning context built for project %s: %s backlog issues, scope=%s",
            project.id,
            len(context.backlog_issues),
            context.velocity.scope,
        )
        return Success(context)

    async def _resolve_project(self, project_id: uuid.UUID) -> ProjectInfo:
        project = await self._session.get(Project, project_id)
        if project is None:
            raise NotFoundError(project_id)
        return ProjectInfo(id=project.id, key=project.key or "", name=project.name)

    async def _resolve_team(self, project_id: uuid.UUID, team_id: int) -> Team:
        stmt = select(Team).where(
            Team.id == team_id,
            Team.project_id == project_id,
            Team.is_active.is_(True),
        )
        team = (await self._session.execute(stmt)).scalar_one_or_none()
        if team is None:
            raise ValidationError(
                f"Team {team_id} not found or does not belong to project {project_id}",
                field="team_id",
            )
        return team

    async def _collect_backlog(self, project_id: uuid.UUID) -> list[BacklogIssue]:
        stmt = (
            select(Issue, Status.status_name)
            .outerjoin(Status, Issue.status_id == Status.id)
            .where(Issue.project_id == project_id, Issue.sprint_id.is_(None))
        )
        rows = (await self._session.execute(stmt)).all()
        backlog_statuses = self._config.backlog_status_names
        candidates = [issue for issue, status_name in rows if status_name is None or status_name in backlog_statuses]
        candidates.sort(
            key=lambda issue: (-priority_rank(issue.priority), issue.created_at or datetime.min, str(issue.id))
        )
        return [
            BacklogIssue(
                id=issue.id,
                key=issue.key or "",
                title=issue.title,
                type=issue.type,
                priority=(issue.priority or DEFAULT_PRIORITY).upper(),
                story_points=issue.story_points,
                assignee_id=issue.assignee_id,
                epic_id=issue.epic_id,
                labels=_decode_labels(issue.labels),
                parent_issue_id=issue.parent_issue_id,
            )
            for issue in candidates
        ]

    async def _sprints(
        self,
        project_id: uuid.UUID,
        status: str,
        team_id: int | None = None,
        newest_first: bool = False,
        limit: int | None = None,
    ) -> list[Sprint]:
        stmt = select(Sprint).where(Sprint.project_id == project_id, Sprint.status == status)
        if team_id is not None:
            stmt = stmt.where(Sprint.team_id == team_id)
        if newest_first:
            stmt = stmt.order_by(Sprint.created_at.desc(), Sprint.id)
        else:
            stmt = stmt.order_by(Sprint.created_at, Sprint.id)
        if limit is not None:
            stmt = stmt.limit(limit)
        return list((await self._session.execute(stmt)).scalars().all())

    async def _sprint_issues(self, sprint_ids: Iterable[uuid.UUID]) -> dict[uuid.UUID, list[SprintIssue]]:
        sprint_ids = list(sprint_ids)
        grouped: dict[uuid.UUID, list[SprintIssue]] = defaultdict(list)
        if not sprint_ids:
            return grouped
        stmt = (
            select(Issue.sprint_id, Issue.story_points, Status.status_name, Issue.type, Issue.assignee_id)
            .outerjoin(Status, Issue.status_id == Status.id)
            .where(Issue.sprint_id.in_(sprint_ids))
            .order_by(Issue.created_at, Issue.id)
        )
        for sprint_id, points, status_name, issue_type, assignee_id in (await self._session.execute(stmt)).all():
            grouped[sprint_id].append(
                SprintIssue(
                    sprint_id=sprint_id,
                    story_points=points,
                    status_name=status_name,
                    issue_type=issue_type or "",
                    assignee_id=assignee_id,
                )
            )
        return grouped

    @staticmethod
    def _member_ids(issues: list[SprintIssue]) -> tuple[int, ...]:
        seen: list[int] = []
        for issue in issues:
            if issue.assignee_id is not None and issue.assignee_id not in seen:
                seen.append(issue.assignee_id)
        return tuple(seen)

    async def _collect_in_progress(self, project_id: uuid.UUID, team_id: int | None) -> list[InProgressSprint]:
        sprints = await self._sprints(project_id, SPRINT_ACTIVE, team_id)
        issues = await self._sprint_issues(sprint.id for sprint in sprints)
        done = self._config.completed_status_names
        load: list[InProgressSprint] = []
        for sprint in sprints:
            sprint_issues = issues.get(sprint.id, [])
            load.append(
                InProgressSprint(
                    sprint_id=sprint.id,
                    name=sprint.name,
                    due_date=sprint.due_date,
                    allocated_points=float(sum(i.story_points or 0 for i in sprint_issues)),
                    remaining_points=float(
                        sum(i.story_points or 0 for i in sprint_issues if (i.status_name or "") not in done)
                    ),
                    team_member_ids=self._member_ids(sprint_issues),
                )
            )
        return load

    async def _collect_planned(self, project_id: uuid.UUID, team_id: int | None) -> list[PlannedSprint]:
        sprints = await self._sprints(project_id, SPRINT_PLANNED, team_id)
        issues = await self._sprint_issues(sprint.id for sprint in sprints)
        return [
            PlannedSprint(
                sprint_id=sprint.id,
                name=sprint.name,
                start_date=sprint.start_date,
                allocated_points=float(sum(i.story_points or 0 for i in issues.get(sprint.id, []))),
                team_member_ids=self._member_ids(issues.get(sprint.id, [])),
            )
            for sprint in sprints
        ]

    async def _historical(self, sprints: list[Sprint]) -> list[HistoricalSprint]:
        issues = await self._sprint_issues(sprint.id for sprint in sprints)
        return [
            build_historical_sprint(
                sprint_id=sprint.id,
                name=sprint.name,
                status=sprint.status,
                start_date=sprint.start_date,
                due_date=sprint.due_date,
                issues=issues.get(sprint.id, []),
                completed_status_names=self._config.completed_status_names,
                include_all_issues=self._config.completed_points_include_all_issues,
            )
            for sprint in sprints
        ]

    async def _project_history(self, project_id: uuid.UUID) -> list[HistoricalSprint]:
        sprints = await self._sprints(
            project_id,
            SPRINT_COMPLETED,
            newest_first=True,
            limit=self._config.project_history_limit,
        )
        return await self._historical(sprints)

    async def _team_velocity(self, project_id: uuid.UUID, team: Team) -> TeamVelocity:
        member_count = (
            await self._session.execute(select(func.count()).select_from(TeamMember).where(TeamMember.team_id == team.id))
        ).scalar_one()

        recent = await self._sprints(
            project_id,
            SPRINT_COMPLETED,
            team_id=team.id,
            newest_first=True,
            limit=self._config.historical_sprint_limit,
        )
        historical = await self._historical(recent)

        return TeamVelocity(
            team_id=team.id,
            team_name=team.name,
            member_count=member_count,
            historical_sprints=tuple(historical),
            average_velocity=average_velocity(historical),
            recent_velocity_trend=classify_trend([sprint.completed_points for sprint in historical]),
            member_velocities=tuple(await self._member_velocities(project_id, team.id)),
        )

    async def _member_velocities(self, project_id: uuid.UUID, team_id: int) -> list[MemberVelocity]:
        user_ids = [
            user_id
            for user_id in (
                await self._session.execute(
                    select(ProjectMember.user_id)
                    .join(TeamMember, TeamMember.project_member_id == ProjectMember.id)
                    .where(TeamMember.team_id == team_id)
                )
            ).scalars()
            if user_id is not None
        ]
        if not user_ids:
            return []

        completed_sprint_ids = [sprint.id for sprint in await self._sprints(project_id, SPRINT_COMPLETED, team_id)]
        if not completed_sprint_ids:
            return []

        stmt = (
            select(Issue.sprint_id, Issue.story_points, Status.status_name, Issue.type, Issue.assignee_id)
            .outerjoin(Status, Issue.status_id == Status.id)
            .where(
                Issue.project_id == project_id,
                Issue.sprint_id.in_(completed_sprint_ids),
                Issue.assignee_id.in_(user_ids),
            )
            .order_by(Issue.created_at, Issue.id)
        )
        by_assignee: dict[int, list[SprintIssue]] = defaultdict(list)
        for sprint_id, points, status_name, issue_type, assignee_id in (await self._session.execute(stmt)).all():
            by_assignee[assignee_id].append(
                SprintIssue(
                    sprint_id=sprint_id,
                    story_points=points,
                    status_name=status_name,
                    issue_type=issue_type or "",
                    assignee_id=assignee_id,
                )
            )

        names = dict((await self._session.execute(select(User.id, User.name).where(User.id.in_(user_ids)))).tuples().all())
        return compute_member_velocities(
            team_user_ids=user_ids,
            completed_sprint_ids=completed_sprint_ids,
            issues_by_assignee=by_assignee,
            user_names=names,
            completed_status_names=self._config.completed_status_names,
        )


__all__ = ["ContextBuilder", "PRIORITY_RANK", "priority_rank"]
