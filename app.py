"""FastAPI service exposing sprint planning."""

from __future__ import annotations

import logging
import uuid
from contextlib import asynccontextmanager
from functools import lru_cache
from typing import Annotated, Any

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse

from sprint_planner.clients import GeminiPlannerClient
from sprint_planner.errors import ErrorKind
from sprint_planner.models import ApiResponse, PlanSprintBody, PlanSprintRequest
from sprint_planner.observability.logging import configure_logging
from sprint_planner.observability.metrics import latest_metrics
from sprint_planner.observability.structured import (
    configure_structured_logging,
    set_correlation_id,
)
from sprint_planner.planning.config import PlanningConfig
from sprint_planner.planning.orchestrator import PlanningOrchestrator
from sprint_planner.settings import settings
from sprint_planner.storage.database import dispose_engine, get_session_factory

if settings.log_format == "json":
    configure_structured_logging(settings.log_level)
else:
    configure_logging(settings.log_level)

logger = logging.getLogger(__name__)

STATUS_BY_KIND = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.TRANSIENT: 502,
    ErrorKind.PARSE: 502,
    ErrorKind.PLANNING_FAILED: 502,
    ErrorKind.TIMEOUT: 504,
}


@asynccontextmanager
async def lifespan(_app: FastAPI):
    logger.info("Sprint planner service started (dry_run=%s)", settings.dry_run)
    try:
        yield
    finally:
        await dispose_engine()
        logger.info("Sprint planner service stopped")


app = FastAPI(title="Sprint Planner", version="0.1.0", lifespan=lifespan)


@lru_cache(maxsize=1)
def get_orchestrator() -> PlanningOrchestrator:
    config = PlanningConfig.from_settings(settings)
    return PlanningOrchestrator(
        session_factory=get_session_factory(),
        client=GeminiPlannerClient.from_settings(settings),
        config=config,
    )


OrchestratorDep = Annotated[PlanningOrchestrator, Depends(get_orchestrator)]


def _respond(status: int, message: str, data: Any = None, error: dict[str, Any] | None = None) -> JSONResponse:
    body = ApiResponse[Any](status=status, data=data, message=message, error=error)
    return JSONResponse(status_code=status, content=body.model_dump(mode="json"))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
    fields = [".".join(str(part) for part in err.get("loc", ())) for err in exc.errors()]
    return _respond(
        400,
        "Invalid sprint planning request",
        error={"kind": ErrorKind.VALIDATION.value, "message": "Invalid request fields", "stage": "request", "fields": fields},
    )


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok", "dry_run": str(settings.dry_run)}


@app.get("/metrics")
async def metrics() -> PlainTextResponse:
    content = latest_metrics()
    return PlainTextResponse(content, media_type="text/plain; version=0.0.4")


@app.post("/projects/{project_id}/sprints/plan")
async def plan_sprint(project_id: uuid.UUID, body: PlanSprintBody, orchestrator: OrchestratorDep) -> JSONResponse:
    set_correlation_id(str(uuid.uuid4()))
    logger.info(
        "Sprint plan request received",
        extra={"project_id": str(project_id)},
    )
    request = PlanSprintRequest(project_id=project_id, **body.model_dump())
    outcome = await orchestrator.plan(request)

    if outcome.success and outcome.plan is not None:
        message = "Sprint plan generated successfully"
        if outcome.used_fallback:
            message = "Sprint plan generated with rule-based fallback"
        return _respond(200, message, data=outcome.plan.model_dump(mode="json"))

    error = outcome.error or {"kind": ErrorKind.PLANNING_FAILED.value, "message": "Sprint planning failed", "stage": None}
    status = STATUS_BY_KIND.get(ErrorKind(error["kind"]), 502)
    return _respond(status, error["message"], error=error)
