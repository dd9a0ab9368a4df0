"""Live session driver: state machine, one-second clock and sampler."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from dataclasses import dataclass
from typing import Callable, Literal, Optional, Union

from spinlab.core.config import TrainingSessionConfig
from spinlab.core.state import SensorState
from spinlab.workout.collector import DataCollector
from spinlab.workout.model import (
    SessionDataPoint,
    TargetStatus,
    TrainingSession,
    WorkoutInterval,
    WorkoutPlan,
)
from spinlab.workout.plan_client import FetchPlan

logger = logging.getLogger(__name__)


class SessionStateError(RuntimeError):
    """Raised on a transition the current session state does not allow."""


@dataclass(frozen=True)
class IdleState:
    kind: Literal["idle"] = "idle"


@dataclass
class ActiveState:
    session: TrainingSession
    current_index: int = -1
    previous_interval: WorkoutInterval | None = None
    current_interval: WorkoutInterval | None = None
    next_interval: WorkoutInterval | None = None
    is_paused: bool = False
    pause_started_ms: int | None = None
    total_elapsed_ms: int = 0
    total_remaining_seconds: int = 0
    interval_elapsed_seconds: int = 0
    interval_remaining_seconds: int = 0
    progress: float = 0.0
    cadence_status: TargetStatus = TargetStatus.WITHIN_RANGE
    resistance_status: TargetStatus = TargetStatus.WITHIN_RANGE
    interval_changed: bool = False
    kind: Literal["active"] = "active"


@dataclass(frozen=True)
class CompletedState:
    session: TrainingSession
    kind: Literal["completed"] = "completed"


SessionState = Union[IdleState, ActiveState, CompletedState]


@dataclass(frozen=True)
class SessionSnapshot:
    workout_id: str
    is_paused: bool
    interval_index: int
    interval_total: int
    previous_interval: WorkoutInterval | None
    current_interval: WorkoutInterval | None
    next_interval: WorkoutInterval | None
    interval_elapsed_seconds: int
    interval_remaining_seconds: int
    total_elapsed_seconds: int
    total_remaining_seconds: int
    total_duration_seconds: int
    progress: float
    cadence_status: TargetStatus
    resistance_status: TargetStatus
    cadence_rpm: float | None
    resistance_pct: float | None
    power_watts: float | None
    interval_changed: bool


SnapshotCallback = Callable[[SessionSnapshot], None]
FinishCallback = Callable[[TrainingSession], None]


def _wall_clock_ms() -> int:
    return int(time.time() * 1000)


def _current_task() -> Optional[asyncio.Task[None]]:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None


class SessionMachine:
    """Owns the Idle -> Active -> Completed lifecycle of one ride.

    All mutation runs on the asyncio loop that called ``start_session``: the
    clock task and the collector task only ever call ``tick`` and ``collect``,
    so there is a single writer per field and no locking. Without a running
    loop no tasks are started and callers drive ``tick``/``collect`` directly.
    """

    def __init__(
        self,
        sensors: SensorState | None = None,
        *,
        now_ms: Callable[[], int] | None = None,
        on_snapshot: SnapshotCallback | None = None,
        on_finish: FinishCallback | None = None,
        tick_seconds: float = 1.0,
    ) -> None:
        self.sensors = sensors or SensorState()
        self._now_ms = now_ms or _wall_clock_ms
        self.on_snapshot = on_snapshot
        self.on_finish = on_finish
        self._tick_seconds = tick_seconds
        self._collector = DataCollector(self.sensors)
        self._state: SessionState = IdleState()
        self._clock_task: Optional[asyncio.Task[None]] = None
        self._collector_task: Optional[asyncio.Task[None]] = None
        self._retired_tasks: list[asyncio.Task[None]] = []
        self._finished_event = asyncio.Event()

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._state.kind == "active"

    @property
    def is_paused(self) -> bool:
        state = self._state
        return state.kind == "active" and state.is_paused

    @property
    def session(self) -> TrainingSession | None:
        state = self._state
        if state.kind == "idle":
            return None
        return state.session

    @property
    def current_interval(self) -> WorkoutInterval | None:
        state = self._state
        if state.kind != "active":
            return None
        return state.current_interval

    def start_session(self, plan: WorkoutPlan) -> TrainingSession:
        now = self._now_ms()
        session = TrainingSession(workout_plan=plan, session_start_time_ms=now)
        active = ActiveState(session=session, next_interval=plan.interval_at(0))
        self._transition(active, allowed=("idle",))
        logger.info(
            "Session %s started: plan %s, %d intervals, %ds",
            session.session_id,
            plan.workout_id,
            len(plan.intervals),
            plan.total_duration_seconds,
        )
        if plan.planned_interval_seconds != plan.total_duration_seconds:
            logger.debug(
                "Plan %s intervals sum to %ds but total is %ds",
                plan.workout_id,
                plan.planned_interval_seconds,
                plan.total_duration_seconds,
            )

        if not self._advance_interval(active, notify=False):
            logger.warning("Plan %s has no intervals, ending session", plan.workout_id)
            self._finish(completed=False, now_ms=now)
            return session

        self._refresh_timing(active, now)
        self._start_tasks()
        return session

    def pause_session(self) -> None:
        state = self._state
        if state.kind != "active" or state.is_paused:
            return
        now = self._now_ms()
        self._refresh_timing(state, now)
        state.pause_started_ms = now
        state.is_paused = True
        logger.info("Session %s paused", state.session.session_id)
        self._emit_snapshot(state)

    def resume_session(self) -> None:
        state = self._state
        if state.kind != "active" or not state.is_paused:
            return
        now = self._now_ms()
        self._close_pause(state, now)
        self._refresh_timing(state, now)
        logger.info(
            "Session %s resumed, %.1fs paused in total",
            state.session.session_id,
            state.session.paused_seconds,
        )
        self._emit_snapshot(state)

    def end_session(self, completed: bool = False) -> None:
        if self._state.kind != "active":
            return
        self._finish(completed=completed, now_ms=self._now_ms())

    def dismiss_interval_notification(self) -> None:
        state = self._state
        if state.kind == "active":
            state.interval_changed = False

    def total_elapsed_millis(self, now_ms: int | None = None) -> int:
        state = self._state
        if state.kind == "idle":
            return 0
        session = state.session
        if state.kind == "completed":
            return session.calculate_total_elapsed_millis(session.session_end_time_ms)
        if state.is_paused and state.pause_started_ms is not None:
            return session.calculate_total_elapsed_millis(state.pause_started_ms)
        return session.calculate_total_elapsed_millis(self._resolve_now(now_ms))

    def tick(self, now_ms: int | None = None) -> None:
        """One clock step: timing, then interval transition, then completion."""
        state = self._state
        if state.kind != "active" or state.is_paused:
            return
        now = self._resolve_now(now_ms)
        self._refresh_timing(state, now)

        if state.current_interval is None:
            logger.warning("No current interval at index %d, ending session", state.current_index)
            self._finish(completed=False, now_ms=now)
            return

        while state.interval_remaining_seconds <= 0:
            if not self._advance_interval(state, notify=True):
                self._finish(completed=True, now_ms=now)
                return
            self._refresh_timing(state, now)

        if state.total_remaining_seconds <= 0:
            self._finish(completed=True, now_ms=now)
            return

        self._emit_snapshot(state)

    def collect(self, now_ms: int | None = None) -> SessionDataPoint | None:
        """One sampler step; does nothing while paused or not active."""
        state = self._state
        if state.kind != "active" or state.is_paused or state.current_interval is None:
            return None
        return self._collector.sample(
            state.session, state.current_index, self._resolve_now(now_ms)
        )

    def snapshot(self) -> SessionSnapshot | None:
        state = self._state
        if state.kind != "active":
            return None
        plan = state.session.workout_plan
        return SessionSnapshot(
            workout_id=plan.workout_id,
            is_paused=state.is_paused,
            interval_index=state.current_index,
            interval_total=len(plan.intervals),
            previous_interval=state.previous_interval,
            current_interval=state.current_interval,
            next_interval=state.next_interval,
            interval_elapsed_seconds=state.interval_elapsed_seconds,
            interval_remaining_seconds=max(0, state.interval_remaining_seconds),
            total_elapsed_seconds=state.total_elapsed_ms // 1000,
            total_remaining_seconds=state.total_remaining_seconds,
            total_duration_seconds=plan.total_duration_seconds,
            progress=state.progress,
            cadence_status=state.cadence_status,
            resistance_status=state.resistance_status,
            cadence_rpm=self.sensors.cadence_rpm,
            resistance_pct=self.sensors.resistance_pct,
            power_watts=self.sensors.power_watts,
            interval_changed=state.interval_changed,
        )

    async def wait_finished(self) -> TrainingSession:
        """Resolve once Completed and both periodic tasks have exited."""
        await self._finished_event.wait()
        current = _current_task()
        while self._retired_tasks:
            task = self._retired_tasks.pop()
            if task is current:
                continue
            with contextlib.suppress(asyncio.CancelledError):
                await task
        state = self._state
        assert state.kind == "completed"
        return state.session

    def _transition(self, new_state: SessionState, *, allowed: tuple[str, ...]) -> None:
        if self._state.kind not in allowed:
            raise SessionStateError(
                f"Cannot move from {self._state.kind} to {new_state.kind}"
            )
        self._state = new_state

    def _resolve_now(self, now_ms: int | None) -> int:
        return self._now_ms() if now_ms is None else now_ms

    def _advance_interval(self, state: ActiveState, *, notify: bool) -> bool:
        upcoming = state.next_interval
        if upcoming is None:
            return False
        plan = state.session.workout_plan
        state.previous_interval = state.current_interval
        state.current_interval = upcoming
        state.current_index += 1
        state.next_interval = plan.interval_at(state.current_index + 1)
        if notify:
            state.interval_changed = True
            logger.info(
                "Interval %d/%d: %s",
                state.current_index + 1,
                len(plan.intervals),
                upcoming.name,
            )
        return True

    def _refresh_timing(self, state: ActiveState, now_ms: int) -> None:
        session = state.session
        plan = session.workout_plan
        elapsed_ms = session.calculate_total_elapsed_millis(now_ms)
        total_ms = plan.total_duration_seconds * 1000

        state.total_elapsed_ms = elapsed_ms
        state.total_remaining_seconds = max(0, plan.total_duration_seconds - elapsed_ms // 1000)
        state.progress = min(1.0, max(0.0, elapsed_ms / total_ms)) if total_ms > 0 else 1.0

        interval = state.current_interval
        if interval is not None:
            state.interval_elapsed_seconds = session.calculate_interval_elapsed_seconds(
                state.current_index, now_ms
            )
            state.interval_remaining_seconds = (
                interval.duration_seconds - state.interval_elapsed_seconds
            )
            if self.sensors.cadence_rpm is not None:
                state.cadence_status = interval.target_cadence.classify(self.sensors.cadence_rpm)
            if self.sensors.resistance_pct is not None:
                state.resistance_status = interval.target_resistance.classify(
                    self.sensors.resistance_pct
                )

    def _close_pause(self, state: ActiveState, now_ms: int) -> None:
        if state.pause_started_ms is not None:
            pause_seconds = max(0, now_ms - state.pause_started_ms) / 1000
            state.session.paused_seconds += pause_seconds
        state.pause_started_ms = None
        state.is_paused = False

    def _finish(self, *, completed: bool, now_ms: int) -> None:
        state = self._state
        if state.kind != "active":
            return
        # Both periodic tasks stop before the session is frozen.
        self._cancel_tasks()
        if state.is_paused:
            self._close_pause(state, now_ms)
        session = state.session
        session.end(completed, now_ms)
        self._transition(CompletedState(session=session), allowed=("active",))
        logger.info(
            "Session %s ended (%s) with %d samples",
            session.session_id,
            "completed" if completed else "stopped",
            len(session.data_points),
        )
        self._finished_event.set()
        if self.on_finish is not None:
            self.on_finish(session)

    def _emit_snapshot(self, state: ActiveState) -> None:
        if self.on_snapshot is None:
            return
        snapshot = self.snapshot()
        if snapshot is not None:
            self.on_snapshot(snapshot)

    def _start_tasks(self) -> None:
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop, clock and sampler must be driven manually")
            return
        self._clock_task = asyncio.create_task(self._periodic(self.tick))
        self._collector_task = asyncio.create_task(self._periodic(self.collect))

    def _cancel_tasks(self) -> None:
        current = _current_task()
        for task in (self._clock_task, self._collector_task):
            if task is None:
                continue
            if task is not current and not task.done():
                task.cancel()
            self._retired_tasks.append(task)
        self._clock_task = None
        self._collector_task = None

    async def _periodic(self, step: Callable[[], object]) -> None:
        while self.is_active:
            await asyncio.sleep(self._tick_seconds)
            step()


async def run_session(
    machine: SessionMachine,
    fetch_plan: FetchPlan,
    config: TrainingSessionConfig,
) -> TrainingSession:
    """Fetch a plan, ride it to the end and return the finished session.

    A failed fetch propagates and leaves the machine Idle.
    """
    plan = await fetch_plan(config.duration_seconds, config.intensity)
    machine.start_session(plan)
    return await machine.wait_finished()
