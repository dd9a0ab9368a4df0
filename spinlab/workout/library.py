"""Built-in offline plan used when the plan service cannot be reached."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone

from spinlab.workout.model import TargetRange, WorkoutInterval, WorkoutMetadata, WorkoutPlan


OFFLINE_ALGORITHM_VERSION = "1.0-offline"


@dataclass(frozen=True)
class IntensityProfile:
    cadence_min_rpm: float
    resistance_min_pct: float


INTENSITY_PROFILES: dict[int, IntensityProfile] = {
    3: IntensityProfile(cadence_min_rpm=85.0, resistance_min_pct=40.0),
    6: IntensityProfile(cadence_min_rpm=90.0, resistance_min_pct=50.0),
    8: IntensityProfile(cadence_min_rpm=95.0, resistance_min_pct=60.0),
}
DEFAULT_INTENSITY = 6


def intensity_profile(intensity: int) -> IntensityProfile:
    return INTENSITY_PROFILES.get(intensity, INTENSITY_PROFILES[DEFAULT_INTENSITY])


def build_offline_plan(
    duration_seconds: int,
    intensity: int,
    now: datetime | None = None,
) -> WorkoutPlan:
    """Warm-up / main effort / cool-down split 1:2:1.

    The main effort absorbs rounding so the intervals always add up to
    ``duration_seconds``.
    """
    if duration_seconds < 4:
        raise ValueError("Offline plans need at least 4 seconds")

    generated = now or datetime.now(tz=timezone.utc)
    quarter = duration_seconds // 4
    main_duration = duration_seconds - (2 * quarter)
    profile = intensity_profile(intensity)

    intervals = (
        WorkoutInterval(
            number=1,
            name="Warm-up",
            duration_seconds=quarter,
            target_cadence=TargetRange(80.0, 90.0, "rpm"),
            target_resistance=TargetRange(30.0, 35.0, "%"),
            notes="Gradual warm-up to prepare for main effort",
        ),
        WorkoutInterval(
            number=2,
            name="Main Effort",
            duration_seconds=main_duration,
            target_cadence=TargetRange(
                profile.cadence_min_rpm, profile.cadence_min_rpm + 10.0, "rpm"
            ),
            target_resistance=TargetRange(
                profile.resistance_min_pct, profile.resistance_min_pct + 10.0, "%"
            ),
            notes="Sustained effort at target intensity",
        ),
        WorkoutInterval(
            number=3,
            name="Cool-down",
            duration_seconds=quarter,
            target_cadence=TargetRange(70.0, 80.0, "rpm"),
            target_resistance=TargetRange(25.0, 30.0, "%"),
            notes="Gradual cool-down",
        ),
    )

    return WorkoutPlan(
        workout_id=f"offline-{int(generated.timestamp() * 1000)}",
        total_duration_seconds=duration_seconds,
        intensity_level=intensity,
        intervals=intervals,
        metadata=WorkoutMetadata(
            generated_at=generated.strftime("%Y-%m-%dT%H:%M:%SZ"),
            algorithm_version=OFFLINE_ALGORITHM_VERSION,
        ),
        name=f"Offline {duration_seconds // 60} min @ {intensity}",
    )
