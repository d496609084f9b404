import uuid
from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from sprint_planner.planning.context import (
    BacklogIssue,
    HistoricalSprint,
    MemberVelocity,
    NewSprint,
    PlanningContext,
    ProjectInfo,
    TeamScoped,
    TeamVelocity,
    VelocityTrend,
)
from sprint_planner.storage.database import (
    Base,
    Issue,
    Project,
    ProjectMember,
    Sprint,
    Status,
    Team,
    TeamMember,
    User,
)

BASE_TIME = datetime(2024, 1, 1, 9, 0)

TODO, DONE, IN_PROGRESS, OPEN = 1, 2, 3, 4


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'planner.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    factory = async_sessionmaker(engine, expire_on_commit=False)
    yield factory
    await engine.dispose()


@pytest_asyncio.fixture
async def seeded(session_factory):
    """Project with team 1 (users 1 and 2), three completed team sprints of 20/22/21 points,
    four backlog issues (two CRITICAL, two LOW) and some active/planned load."""
    ids = SimpleNamespace(
        project=uuid.uuid4(),
        other_project=uuid.uuid4(),
        team=1,
        inactive_team=2,
        foreign_team=3,
        sprint_recent=uuid.uuid4(),
        sprint_middle=uuid.uuid4(),
        sprint_oldest=uuid.uuid4(),
        sprint_no_team=uuid.uuid4(),
        active_team=uuid.uuid4(),
        active_no_team=uuid.uuid4(),
        planned_team=uuid.uuid4(),
        backlog_critical_old=uuid.uuid4(),
        backlog_critical_new=uuid.uuid4(),
        backlog_low_old=uuid.uuid4(),
        backlog_low_new=uuid.uuid4(),
    )

    def at(days: int) -> datetime:
        return BASE_TIME + timedelta(days=days)

    def sprint(sprint_id, name, status, team_id, created, start=None, due=None, project_id=ids.project):
        return Sprint(
            id=sprint_id,
            project_id=project_id,
            team_id=team_id,
            name=name,
            status=status,
            start_date=start,
            due_date=due,
            created_at=created,
        )

    def issue(title, points, status_id, created, sprint_id=None, assignee_id=None, issue_type="STORY", **extra):
        extra.setdefault("project_id", ids.project)
        return Issue(
            id=extra.pop("id", uuid.uuid4()),
            key=extra.pop("key", None),
            title=title,
            type=issue_type,
            story_points=points,
            status_id=status_id,
            sprint_id=sprint_id,
            assignee_id=assignee_id,
            created_at=created,
            **extra,
        )

    async with session_factory() as session:
        session.add_all(
            [
                Project(id=ids.project, key="PHX", name="Phoenix", created_at=at(0)),
                Project(id=ids.other_project, key="OTH", name="Other", created_at=at(0)),
                Status(id=TODO, status_name="To Do"),
                Status(id=DONE, status_name="Done"),
                Status(id=IN_PROGRESS, status_name="In Progress"),
                Status(id=OPEN, status_name="Open"),
                User(id=1, name="Ada", email="ada@example.com"),
                User(id=2, name="Grace", email="grace@example.com"),
                User(id=3, name="Linus", email="linus@example.com"),
                ProjectMember(id=1, project_id=ids.project, user_id=1),
                ProjectMember(id=2, project_id=ids.project, user_id=2),
                ProjectMember(id=3, project_id=ids.project, user_id=3),
                Team(id=ids.team, project_id=ids.project, name="Core", is_active=True),
                Team(id=ids.inactive_team, project_id=ids.project, name="Legacy", is_active=False),
                Team(id=ids.foreign_team, project_id=ids.other_project, name="Elsewhere", is_active=True),
                TeamMember(id=1, team_id=ids.team, project_member_id=1),
                TeamMember(id=2, team_id=ids.team, project_member_id=2),
                sprint(ids.sprint_no_team, "Kickoff", "COMPLETED", None, at(1)),
                sprint(ids.sprint_oldest, "Sprint 1", "COMPLETED", ids.team, at(10), at(10), at(24)),
                sprint(ids.sprint_middle, "Sprint 2", "COMPLETED", ids.team, at(24), at(24), at(38)),
                sprint(ids.sprint_recent, "Sprint 3", "COMPLETED", ids.team, at(38), at(38), at(52)),
                sprint(ids.active_team, "Sprint 4", "ACTIVE", ids.team, at(52), at(52), at(66)),
                sprint(ids.active_no_team, "Ops", "ACTIVE", None, at(53), at(53), at(60)),
                sprint(ids.planned_team, "Sprint 5", "PLANNED", ids.team, at(54), at(66), at(80)),
                # Sprint 1: 21 points
                issue("Search index", 21, DONE, at(11), ids.sprint_oldest, assignee_id=2, issue_type="TASK"),
                # Sprint 2: 22 points
                issue("Login page", 10, DONE, at(25), ids.sprint_middle, assignee_id=2),
                issue("Audit trail", 12, DONE, at(26), ids.sprint_middle, assignee_id=1),
                # Sprint 3: 20 points, only 8 of them done
                issue("Billing export", 8, DONE, at(39), ids.sprint_recent, assignee_id=1),
                issue("Rate limiter", 12, IN_PROGRESS, at(40), ids.sprint_recent, assignee_id=1, issue_type="BUG"),
                # Active and planned load
                issue("Webhooks", 5, DONE, at(53), ids.active_team, assignee_id=1),
                issue("Dashboards", 3, TODO, at(54), ids.active_team, assignee_id=2),
                issue("Pager rota", 4, TODO, at(54), ids.active_no_team, assignee_id=3),
                issue("Data retention", 5, TODO, at(55), ids.planned_team, assignee_id=2),
                # Backlog
                issue(
                    "Fix checkout crash",
                    5,
                    TODO,
                    at(2),
                    id=ids.backlog_critical_old,
                    key="PHX-1",
                    priority="CRITICAL",
                    labels=["payments", "backend"],
                ),
                issue("Patch CVE", 8, OPEN, at(4), id=ids.backlog_critical_new, key="PHX-3", priority="CRITICAL"),
                issue(
                    "Tidy footer",
                    2,
                    TODO,
                    at(1),
                    id=ids.backlog_low_old,
                    key="PHX-4",
                    priority="LOW",
                    parent_issue_id=ids.backlog_critical_old,
                ),
                issue("Rename button", 3, TODO, at(3), id=ids.backlog_low_new, key="PHX-2", priority="low"),
                # Not backlog: done without a sprint, and another project's issue
                issue("Old chore", 1, DONE, at(5), priority="HIGH"),
                issue("Foreign", 13, TODO, at(5), project_id=ids.other_project, priority="CRITICAL"),
            ]
        )
        await session.commit()
    return ids


ISSUE_A = uuid.UUID("00000000-0000-0000-0000-00000000000a")
ISSUE_B = uuid.UUID("00000000-0000-0000-0000-00000000000b")
ISSUE_C = uuid.UUID("00000000-0000-0000-0000-00000000000c")
ISSUE_D = uuid.UUID("00000000-0000-0000-0000-00000000000d")
PROJECT_ID = uuid.UUID("00000000-0000-0000-0000-000000000100")


@pytest.fixture
def sample_context() -> PlanningContext:
    sprints = tuple(
        HistoricalSprint(
            sprint_id=uuid.UUID(int=200 + index),
            name=f"Sprint {3 - index}",
            status="COMPLETED",
            duration_days=14,
            planned_points=points,
            completed_points=points,
            completion_rate=100.0,
        )
        for index, points in enumerate((20.0, 22.0, 21.0))
    )
    return PlanningContext(
        project=ProjectInfo(id=PROJECT_ID, key="PHX", name="Phoenix"),
        new_sprint=NewSprint(name="Sprint 4", goal="Ship billing", team_id=1),
        backlog_issues=(
            BacklogIssue(id=ISSUE_A, key="PHX-1", title="Fix checkout crash", type="BUG", priority="CRITICAL", story_points=5),
            BacklogIssue(id=ISSUE_B, key="PHX-3", title="Patch CVE", type="TASK", priority="CRITICAL", story_points=8),
            BacklogIssue(
                id=ISSUE_C,
                key="PHX-4",
                title="Tidy footer",
                type="STORY",
                priority="LOW",
                story_points=3,
                labels=frozenset({"ui", "frontend"}),
            ),
            BacklogIssue(id=ISSUE_D, key="PHX-2", title="Rename button", type="STORY", priority="LOW", story_points=2),
        ),
        velocity=TeamScoped(
            team_velocity=TeamVelocity(
                team_id=1,
                team_name="Core",
                member_count=2,
                historical_sprints=sprints,
                average_velocity=21.0,
                recent_velocity_trend=VelocityTrend.STABLE,
                member_velocities=(
                    MemberVelocity(
                        user_id=1,
                        name="Ada",
                        avg_points_per_sprint=10.67,
                        completion_rate=66.7,
                        issue_types_preference=("STORY", "BUG"),
                    ),
                ),
            )
        ),
    )
