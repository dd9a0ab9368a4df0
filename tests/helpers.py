"""Shared builders for the test suite."""

from __future__ import annotations

from spinlab.workout.model import TargetRange, WorkoutInterval, WorkoutMetadata, WorkoutPlan


class FakeClock:
    """Millisecond clock advanced by hand."""

    def __init__(self, start_ms: int = 1_700_000_000_000) -> None:
        self.now = start_ms

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: float) -> int:
        self.now += int(round(seconds * 1000))
        return self.now


def build_plan(
    durations: tuple[int, ...],
    *,
    total: int | None = None,
    cadence: tuple[float, float] = (60.0, 70.0),
    resistance: tuple[float, float] = (40.0, 50.0),
    workout_id: str = "plan-1",
) -> WorkoutPlan:
    intervals = tuple(
        WorkoutInterval(
            number=i + 1,
            name=f"Block {i + 1}",
            duration_seconds=duration,
            target_cadence=TargetRange(cadence[0], cadence[1], "rpm"),
            target_resistance=TargetRange(resistance[0], resistance[1], "%"),
        )
        for i, duration in enumerate(durations)
    )
    return WorkoutPlan(
        workout_id=workout_id,
        total_duration_seconds=sum(durations) if total is None else total,
        intensity_level=6,
        intervals=intervals,
        metadata=WorkoutMetadata(generated_at="2026-10-19T08:00:00Z", algorithm_version="test"),
    )
