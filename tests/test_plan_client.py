from __future__ import annotations

import asyncio
from typing import Callable

import httpx
import pytest

from spinlab.workout.model import WorkoutPlan
from spinlab.workout.plan_client import PlanFetchError, TrainingPlanClient, with_retries


PLAN_URL = "http://plans.test/api/v1/training-plan"

PLAN_PAYLOAD = {
    "workout_id": "wk-7",
    "total_duration_seconds": 600,
    "intensity_level": 3,
    "intervals": [
        {
            "interval_number": 1,
            "name": "Steady",
            "duration_seconds": 600,
            "target_cadence": {"min": 85, "max": 95, "unit": "rpm"},
            "target_resistance": {"min": 40, "max": 50, "unit": "%"},
        }
    ],
    "metadata": {"generated_at": "2026-10-19T08:00:00Z", "algorithm_version": "2.1"},
}


def _client(handler: Callable[[httpx.Request], httpx.Response]) -> TrainingPlanClient:
    return TrainingPlanClient(PLAN_URL, timeout=1.0, transport=httpx.MockTransport(handler))


def test_fetch_plan_sends_query_and_parses_plan() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=PLAN_PAYLOAD)

    plan = asyncio.run(_client(handler).fetch_plan(600, 3))

    assert plan.workout_id == "wk-7"
    assert plan.intervals[0].target_cadence.max == 95.0
    assert seen[0].url.params["duration_seconds"] == "600"
    assert seen[0].url.params["intensity"] == "3"


def test_fetch_plan_server_error_is_retryable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, text="generator offline")

    with pytest.raises(PlanFetchError) as excinfo:
        asyncio.run(_client(handler).fetch_plan(600, 3))

    assert excinfo.value.retryable is True
    assert "HTTP 503" in str(excinfo.value)
    assert "generator offline" in str(excinfo.value)


def test_fetch_plan_client_error_is_not_retryable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(422, json={"detail": "intensity must be 3, 6 or 8"})

    with pytest.raises(PlanFetchError) as excinfo:
        asyncio.run(_client(handler).fetch_plan(600, 5))

    assert excinfo.value.retryable is False


def test_fetch_plan_malformed_payload() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"workout_id": "wk-8", "intervals": "nope"})

    with pytest.raises(PlanFetchError, match="Malformed plan payload") as excinfo:
        asyncio.run(_client(handler).fetch_plan(600, 3))

    assert excinfo.value.retryable is False


def test_fetch_plan_invalid_json_body() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>oops</html>")

    with pytest.raises(PlanFetchError, match="Invalid JSON"):
        asyncio.run(_client(handler).fetch_plan(600, 3))


def test_fetch_plan_connection_failure() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(PlanFetchError, match="Cannot connect") as excinfo:
        asyncio.run(_client(handler).fetch_plan(600, 3))

    assert excinfo.value.retryable is True


def test_fetch_plan_timeout() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("too slow", request=request)

    with pytest.raises(PlanFetchError, match="timeout"):
        asyncio.run(_client(handler).fetch_plan(600, 3))


def test_with_retries_refetches_after_any_failure() -> None:
    calls: list[int] = []
    plan = _client(lambda request: httpx.Response(200, json=PLAN_PAYLOAD))

    async def flaky(duration_seconds: int, intensity: int) -> WorkoutPlan:
        calls.append(duration_seconds)
        if len(calls) == 1:
            raise PlanFetchError("HTTP 404: no generator", retryable=False)
        return await plan.fetch_plan(duration_seconds, intensity)

    fetched = asyncio.run(with_retries(flaky, retries=2, delay_seconds=0)(600, 3))

    assert fetched.workout_id == "wk-7"
    assert calls == [600, 600]


def test_with_retries_gives_up_after_last_attempt() -> None:
    attempts: list[int] = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(1)
        return httpx.Response(503, text="busy")

    with pytest.raises(PlanFetchError, match="HTTP 503"):
        asyncio.run(with_retries(_client(handler).fetch_plan, retries=2, delay_seconds=0)(600, 3))

    assert len(attempts) == 3
