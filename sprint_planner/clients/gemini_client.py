"""HTTPX-based client for the Gemini planning service with dry-run support."""

from __future__ import annotations

import hashlib
import logging
from typing import Any, Protocol

import httpx

from ..errors import ParseError, PlanningFailed, TransientCallError
from ..observability.metrics import record_fallback, record_planner_attempt
from ..planning.context import PlanningContext
from ..planning.fallback import build_fallback_plan
from ..planning.parser import parse_plan, reconcile_with_backlog
from ..planning.schemas import PlanResult
from ..result import Failure, Result, Success
from ..settings import Settings
from ..utils.retry import RetryPolicy, with_exponential_backoff

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_MODEL = "gemini-2.5-flash-lite"


class PlannerClient(Protocol):
    """Anything that can turn a planning prompt into a validated plan."""

    async def plan(self, prompt: str, context: PlanningContext | None = None) -> Result[PlanResult]: ...


def extract_text(envelope: Any) -> str:
    """Pull ``candidates[0].content.parts[0].text`` out of a generateContent response."""
    try:
        text = envelope["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError) as exc:
        raise TransientCallError("Planning service response is missing candidate text") from exc
    if not isinstance(text, str) or not text.strip():
        raise TransientCallError("Planning service returned an empty candidate")
    return text


class _AttemptTally:
    """Attempt counter owned by a single ``plan()`` call."""

    __slots__ = ("count",)

    def __init__(self) -> None:
        self.count = 0


class GeminiPlannerClient:
    def __init__(
        self,
        api_key: str | None,
        *,
        model: str = DEFAULT_MODEL,
        base_url: str = DEFAULT_BASE_URL,
        temperature: float = 0.7,
        max_output_tokens: int = 4096,
        timeout: float = 30.0,
        retry_policy: RetryPolicy | None = None,
        dry_run: bool = False,
        http_client: httpx.AsyncClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.temperature = temperature
        self.max_output_tokens = max_output_tokens
        self.timeout = timeout
        self.retry_policy = retry_policy or RetryPolicy()
        self.dry_run = dry_run
        self._http_client = http_client
        self._transport = transport
        # Attempts of the most recently finished call; informational only.
        self.last_attempts = 0

    @classmethod
    def from_settings(cls, settings: Settings, **overrides: Any) -> GeminiPlannerClient:
        options: dict[str, Any] = {
            "model": settings.gemini_model,
            "base_url": settings.gemini_base_url,
            "temperature": settings.gemini_temperature,
            "max_output_tokens": settings.gemini_max_output_tokens,
            "timeout": settings.planner_request_timeout,
            "retry_policy": RetryPolicy(
                max_attempts=settings.planner_max_retries,
                backoff_base_seconds=settings.planner_backoff_base_seconds,
            ),
            "dry_run": settings.dry_run,
        }
        options.update(overrides)
        return cls(settings.gemini_api_key, **options)

    @property
    def enabled(self) -> bool:
        return bool(self._api_key)

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/models/{self.model}:generateContent"

    def _redact(self, text: str) -> str:
        if self._api_key:
            return text.replace(self._api_key, "***")
        return text

    def _dry_run_plan(self, prompt: str, context: PlanningContext | None) -> PlanResult:
        record_fallback("dry_run")
        if context is not None:
            return build_fallback_plan(context)
        digest = hashlib.sha1(prompt.encode()).hexdigest()[:8]
        return PlanResult(summary=f"[dry-run] plan stub #{digest}")

    def _request_body(self, prompt: str) -> dict[str, Any]:
        return {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": self.temperature,
                "maxOutputTokens": self.max_output_tokens,
                "responseMimeType": "application/json",
            },
        }

    async def _generate(self, client: httpx.AsyncClient, prompt: str) -> str:
        logger.debug("POST %s (prompt %s chars)", self.endpoint, len(prompt))
        try:
            response = await client.post(
                self.endpoint,
                json=self._request_body(prompt),
                headers={"x-goog-api-key": self._api_key or "", "Accept": "application/json"},
                timeout=self.timeout,
            )
        except httpx.HTTPError as exc:
            logger.debug("Planning service transport failure: %s", self._redact(repr(exc)))
            raise TransientCallError(
                f"Planning service request failed ({type(exc).__name__})", original_error=exc
            ) from exc

        if not response.is_success:
            logger.debug("Planning service error body: %s", self._redact(response.text))
            raise TransientCallError("Planning service returned an error status", status_code=response.status_code)

        try:
            envelope = response.json()
        except ValueError as exc:
            raise TransientCallError("Planning service returned a non-JSON body", status_code=response.status_code) from exc

        text = extract_text(envelope)
        logger.debug("Planning service answer: %s", text)
        return text

    async def _plan_with_client(self, client: httpx.AsyncClient, prompt: str, tally: _AttemptTally) -> PlanResult:
        async def attempt() -> PlanResult:
            tally.count += 1
            try:
                text = await self._generate(client, prompt)
            except TransientCallError:
                record_planner_attempt("transient_error")
                raise
            try:
                plan = parse_plan(text)
            except ParseError:
                record_planner_attempt("parse_error")
                raise
            record_planner_attempt("success")
            return plan

        return await with_exponential_backoff(attempt, self.retry_policy, retry_on=(TransientCallError,))

    async def plan(self, prompt: str, context: PlanningContext | None = None) -> Result[PlanResult]:
        tally = _AttemptTally()
        try:
            return await self._plan(prompt, context, tally)
        finally:
            self.last_attempts = tally.count

    async def _plan(self, prompt: str, context: PlanningContext | None, tally: _AttemptTally) -> Result[PlanResult]:
        if not self.enabled:
            if self.dry_run:
                logger.info("DRY_RUN enabled without GEMINI_API_KEY; serving rule-based plan")
                return Success(self._dry_run_plan(prompt, context))
            return Failure(PlanningFailed("Planning service is not configured."))

        logger.debug("Planner prompt:\n%s", prompt)
        try:
            if self._http_client is not None:
                plan = await self._plan_with_client(self._http_client, prompt, tally)
            else:
                async with httpx.AsyncClient(transport=self._transport, timeout=self.timeout) as client:
                    plan = await self._plan_with_client(client, prompt, tally)
        except TransientCallError as exc:
            logger.error(
                "Planning service unavailable after %s attempts: %s",
                tally.count,
                self._redact(str(exc)),
                extra={"attempts": tally.count},
            )
            return Failure(PlanningFailed(attempts=tally.count, cause=exc))
        except ParseError as exc:
            logger.warning("Planner answer rejected after %s attempts: %s", tally.count, exc.message)
            return Failure(exc)

        if context is not None:
            try:
                plan = reconcile_with_backlog(plan, context)
            except ParseError as exc:
                logger.warning("Planner answer rejected: %s", exc.message)
                return Failure(exc)

        logger.info(
            "Sprint plan received with %s issues (%s points) after %s attempts",
            len(plan.selected_issues),
            plan.total_story_points,
            tally.count,
        )
        return Success(plan)


__all__ = ["GeminiPlannerClient", "PlannerClient", "extract_text"]
