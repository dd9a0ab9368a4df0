"""Workout domain models."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class TargetStatus(str, Enum):
    WITHIN_RANGE = "within_range"
    BELOW_MIN = "below_min"
    ABOVE_MAX = "above_max"


class PlanDifficultyAssessment(str, Enum):
    TOO_EASY = "too_easy"
    TOO_HARD = "too_hard"
    APPROPRIATE = "appropriate"
    MIXED = "mixed"


@dataclass(frozen=True)
class TargetRange:
    min: float
    max: float
    unit: str

    def __post_init__(self) -> None:
        if self.min > self.max:
            raise ValueError(f"Target min {self.min} must be <= max {self.max}")

    @property
    def midpoint(self) -> float:
        return (self.min + self.max) / 2.0

    def classify(self, value: float) -> TargetStatus:
        if value < self.min:
            return TargetStatus.BELOW_MIN
        if value > self.max:
            return TargetStatus.ABOVE_MAX
        return TargetStatus.WITHIN_RANGE


@dataclass(frozen=True)
class WorkoutInterval:
    number: int
    name: str
    duration_seconds: int
    target_cadence: TargetRange
    target_resistance: TargetRange
    notes: str | None = None

    def __post_init__(self) -> None:
        if self.duration_seconds <= 0:
            raise ValueError(f"Interval {self.number}: duration_seconds must be > 0")


@dataclass(frozen=True)
class WorkoutMetadata:
    generated_at: str
    algorithm_version: str


@dataclass(frozen=True)
class WorkoutPlan:
    workout_id: str
    total_duration_seconds: int
    intensity_level: int
    intervals: tuple[WorkoutInterval, ...]
    metadata: WorkoutMetadata
    name: str | None = None
    description: str | None = None

    @property
    def planned_interval_seconds(self) -> int:
        return sum(interval.duration_seconds for interval in self.intervals)

    def interval_at(self, index: int) -> WorkoutInterval | None:
        if 0 <= index < len(self.intervals):
            return self.intervals[index]
        return None

    def seconds_before(self, index: int) -> int:
        """Planned seconds of every interval that precedes ``index``."""
        return sum(interval.duration_seconds for interval in self.intervals[:max(0, index)])


@dataclass(frozen=True)
class SessionDataPoint:
    timestamp_ms: int
    cadence: float
    resistance: float
    interval_index: int
    interval_elapsed_seconds: int
    power: float | None = None


@dataclass
class TrainingSession:
    """Mutable record of one ride.

    ``session_start_time_ms`` is wall clock time. Data point timestamps are
    elapsed milliseconds since the start with pauses removed.
    """

    workout_plan: WorkoutPlan
    session_start_time_ms: int
    session_end_time_ms: int = 0
    paused_seconds: float = 0.0
    was_completed: bool = False
    data_points: list[SessionDataPoint] = field(default_factory=list)

    @property
    def session_id(self) -> str:
        return str(self.session_start_time_ms)

    @property
    def has_ended(self) -> bool:
        return self.session_end_time_ms > 0

    def end(self, completed: bool, now_ms: int) -> None:
        self.session_end_time_ms = now_ms
        self.was_completed = completed

    def calculate_total_elapsed_millis(self, now_ms: int) -> int:
        elapsed = (now_ms - self.session_start_time_ms) - int(round(self.paused_seconds * 1000))
        return max(0, elapsed)

    def calculate_interval_elapsed_seconds(self, index: int, now_ms: int) -> int:
        total_elapsed_sec = self.calculate_total_elapsed_millis(now_ms) // 1000
        return max(0, total_elapsed_sec - self.workout_plan.seconds_before(index))

    def total_energy_kcal(self) -> float:
        return sum(point.power or 0.0 for point in self.data_points) / 4186.8
