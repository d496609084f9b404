"""Entry point that turns a sprint planning request into a plan or a failure."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from sqlalchemy.ext.asyncio import AsyncSession

from ..errors import ErrorKind, PlanningError, PlanningFailed, ValidationError
from ..models import PlanSprintRequest
from ..observability.metrics import record_fallback, record_planning_outcome, record_planning_request
from ..observability.structured import planning_extra
from ..result import Failure, Result, Success
from .config import PlanningConfig
from .context import PlanningContext
from .context_builder import ContextBuilder
from .fallback import build_fallback_plan
from .prompts import PromptComposer
from .schemas import PlanResult

if TYPE_CHECKING:
    from ..clients.gemini_client import PlannerClient

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], AbstractAsyncContextManager[AsyncSession]]


class PlanningState(str, Enum):
    VALIDATING = "validating"
    BUILDING_CONTEXT = "building_context"
    COMPOSING = "composing"
    CALLING_PLANNER = "calling_planner"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class PlanningOutcome:
    """Uniform result handed back to callers.

    ``state`` is ``DONE`` on success and ``FAILED`` otherwise; the stage a
    failure happened in is reported in ``error["stage"]``.
    """

    success: bool
    state: PlanningState
    plan: PlanResult | None = None
    error: dict[str, Any] | None = None
    used_fallback: bool = False

    @property
    def error_kind(self) -> ErrorKind | None:
        if self.error is None:
            return None
        return ErrorKind(self.error["kind"])


def validate_request(request: PlanSprintRequest) -> ValidationError | None:
    """Checks that need no store access; the first problem found is returned."""
    if not request.sprint_name or not request.sprint_name.strip():
        return ValidationError("Sprint name is required", field="sprint_name")
    if request.team_id is not None and request.team_id <= 0:
        return ValidationError("Team id must be a positive integer", field="team_id")
    if request.start_date and request.due_date and request.due_date < request.start_date:
        return ValidationError("Due date must not be before start date", field="due_date")
    if request.target_story_points is not None and request.target_story_points < 0:
        return ValidationError("Target story points must not be negative", field="target_story_points")
    return None


class _Run:
    """Per-request progress marker so a deadline overrun can name its stage."""

    def __init__(self) -> None:
        self.state = PlanningState.VALIDATING
        self.used_fallback = False

    def advance(self, state: PlanningState) -> None:
        logger.debug("Planning state %s -> %s", self.state.value, state.value)
        self.state = state


class PlanningOrchestrator:
    def __init__(
        self,
        session_factory: SessionFactory,
        client: PlannerClient,
        config: PlanningConfig | None = None,
        composer: PromptComposer | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._client = client
        self._config = config or PlanningConfig()
        self._composer = composer or PromptComposer(self._config)

    async def plan(self, request: PlanSprintRequest) -> PlanningOutcome:
        run = _Run()
        logger.info(
            "Sprint planning requested for project %s (team=%s)",
            request.project_id,
            request.team_id,
            extra={"project_id": str(request.project_id), "team_id": request.team_id},
        )
        with record_planning_request():
            try:
                async with asyncio.timeout(self._config.deadline_seconds):
                    result = await self._execute(request, run)
            except TimeoutError:
                logger.error(
                    "Sprint planning exceeded %.1fs deadline in state %s",
                    self._config.deadline_seconds,
                    run.state.value,
                )
                result = Failure(
                    PlanningFailed(
                        "Sprint planning timed out. Please try again.",
                        stage=run.state.value,
                        kind=ErrorKind.TIMEOUT,
                    )
                )
            except Exception:
                logger.exception("Unexpected error during sprint planning in state %s", run.state.value)
                result = Failure(PlanningFailed(stage=run.state.value))

        if isinstance(result, Failure):
            error = result.error.at_stage(run.state.value)
            logger.warning(
                "Sprint planning failed at %s: %s (%s)",
                error.stage,
                error.message,
                error.kind.value,
                extra=planning_extra(error),
            )
            record_planning_outcome(error.kind.value)
            return PlanningOutcome(success=False, state=PlanningState.FAILED, error=error.to_dict())

        run.advance(PlanningState.DONE)
        record_planning_outcome("fallback" if run.used_fallback else "success")
        return PlanningOutcome(
            success=True,
            state=PlanningState.DONE,
            plan=result.value,
            used_fallback=run.used_fallback,
        )

    async def _execute(self, request: PlanSprintRequest, run: _Run) -> Result[PlanResult]:
        invalid = validate_request(request)
        if invalid is not None:
            return Failure(invalid)

        run.advance(PlanningState.BUILDING_CONTEXT)
        async with self._session_factory() as session:
            built = await ContextBuilder(session, self._config).build(request.project_id, request)
        if isinstance(built, Failure):
            return built
        context: PlanningContext = built.value

        run.advance(PlanningState.COMPOSING)
        prompt = self._composer.compose(context)

        run.advance(PlanningState.CALLING_PLANNER)
        planned = await self._client.plan(prompt, context)
        if isinstance(planned, Success):
            return planned

        if self._should_fall_back(planned.error):
            logger.warning("Planning service failed (%s); serving rule-based plan", planned.error.message)
            record_fallback("planner_failed")
            run.used_fallback = True
            return Success(build_fallback_plan(context))
        return planned

    def _should_fall_back(self, error: PlanningError) -> bool:
        return self._config.fallback_on_failure and error.kind is ErrorKind.PLANNING_FAILED


__all__ = ["PlanningOrchestrator", "PlanningOutcome", "PlanningState", "validate_request"]
