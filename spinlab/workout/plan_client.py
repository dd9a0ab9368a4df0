"""HTTP client for the training plan service."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

import httpx

from spinlab.workout.model import WorkoutPlan
from spinlab.workout.parser import PlanParseError, parse_workout_plan

logger = logging.getLogger(__name__)

FetchPlan = Callable[[int, int], Awaitable[WorkoutPlan]]


class PlanFetchError(RuntimeError):
    """Raised when a plan cannot be obtained from the service."""

    def __init__(self, message: str, *, retryable: bool = True) -> None:
        super().__init__(message)
        self.retryable = retryable


class TrainingPlanClient:
    """Client for the plan generator endpoint."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url
        self.timeout = timeout
        self._transport = transport

    async def fetch_plan(self, duration_seconds: int, intensity: int) -> WorkoutPlan:
        params = {"duration_seconds": duration_seconds, "intensity": intensity}
        logger.info("Fetching workout plan from %s with %s", self.base_url, params)

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.get(self.base_url, params=params)
        except httpx.ConnectError as exc:
            raise PlanFetchError(
                f"Cannot connect to plan service at {self.base_url}. Is it running?"
            ) from exc
        except httpx.TimeoutException as exc:
            raise PlanFetchError(
                "Connection timeout. Plan service may be slow or unreachable."
            ) from exc
        except httpx.HTTPError as exc:
            raise PlanFetchError(f"Plan request failed: {exc}") from exc

        if response.status_code != 200:
            body = response.text or "No error details"
            logger.error("Plan service returned HTTP %s: %s", response.status_code, body)
            raise PlanFetchError(
                f"HTTP {response.status_code}: {body}",
                retryable=response.status_code >= 500,
            )

        try:
            plan = parse_workout_plan(response.json())
        except ValueError as exc:
            # json.JSONDecodeError and PlanParseError are both ValueErrors
            message = str(exc) if isinstance(exc, PlanParseError) else f"Invalid JSON: {exc}"
            raise PlanFetchError(f"Malformed plan payload: {message}", retryable=False) from exc

        logger.info(
            "Fetched plan %s with %d intervals", plan.workout_id, len(plan.intervals)
        )
        return plan


def with_retries(fetch_plan: FetchPlan, retries: int, delay_seconds: float = 1.0) -> FetchPlan:
    """Call ``fetch_plan`` up to ``retries`` more times after any PlanFetchError.

    Every failure is retried; ``retryable`` only decides offline fallback.
    """

    async def fetch(duration_seconds: int, intensity: int) -> WorkoutPlan:
        attempt = 0
        while True:
            try:
                return await fetch_plan(duration_seconds, intensity)
            except PlanFetchError as exc:
                if attempt >= retries:
                    raise
                attempt += 1
                logger.warning(
                    "Plan fetch failed (%s), retry %d/%d in %.1fs",
                    exc,
                    attempt,
                    retries,
                    delay_seconds,
                )
                await asyncio.sleep(delay_seconds)

    return fetch
