"""Plan and session codecs (JSON-shaped dicts)."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from spinlab.workout.model import (
    SessionDataPoint,
    TargetRange,
    TrainingSession,
    WorkoutInterval,
    WorkoutMetadata,
    WorkoutPlan,
)


class PlanParseError(ValueError):
    """Raised when a plan or session payload is invalid."""


def load_plan_file(path: str | Path) -> WorkoutPlan:
    file_path = Path(path)
    if file_path.suffix.lower() != ".json":
        raise PlanParseError(f"Unsupported plan format '{file_path.suffix}'. Use .json")
    try:
        data = json.loads(file_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise PlanParseError(f"Invalid JSON: {exc}") from exc
    return parse_workout_plan(data)


def parse_workout_plan(payload: object, *, normalize: bool = True) -> WorkoutPlan:
    """Build a plan from its wire form.

    With ``normalize`` (plan service payloads) text fields are stripped, blank
    ones become None and unnamed intervals get "Interval N". Without it every
    field is taken exactly as written, so stored plans load back unchanged.
    """
    if not isinstance(payload, dict):
        raise PlanParseError("Workout plan must be an object")

    workout_id = payload.get("workout_id")
    if not isinstance(workout_id, str) or not workout_id.strip():
        raise PlanParseError("Workout field 'workout_id' must be a non-empty string")

    intervals_obj = payload.get("intervals")
    if not isinstance(intervals_obj, list):
        raise PlanParseError("Workout field 'intervals' must be an array")

    intervals: list[WorkoutInterval] = []
    for i, raw in enumerate(intervals_obj):
        if not isinstance(raw, dict):
            raise PlanParseError(f"Interval {i + 1}: must be an object")
        intervals.append(_build_interval(raw, index=i, normalize=normalize))

    metadata_obj = payload.get("metadata")
    if not isinstance(metadata_obj, dict):
        raise PlanParseError("Workout field 'metadata' must be an object")

    return WorkoutPlan(
        workout_id=workout_id.strip() if normalize else workout_id,
        total_duration_seconds=_parse_int(payload.get("total_duration_seconds"), "total_duration_seconds"),
        intensity_level=_parse_int(payload.get("intensity_level"), "intensity_level"),
        intervals=tuple(intervals),
        metadata=WorkoutMetadata(
            generated_at=str(metadata_obj.get("generated_at", "")),
            algorithm_version=str(metadata_obj.get("algorithm_version", "")),
        ),
        name=_optional_str(payload.get("name"), normalize),
        description=_optional_str(payload.get("description"), normalize),
    )


def plan_to_dict(plan: WorkoutPlan) -> dict[str, Any]:
    return {
        "workout_id": plan.workout_id,
        "name": plan.name,
        "description": plan.description,
        "total_duration_seconds": plan.total_duration_seconds,
        "intensity_level": plan.intensity_level,
        "intervals": [
            {
                "interval_number": interval.number,
                "name": interval.name,
                "duration_seconds": interval.duration_seconds,
                "target_cadence": _range_to_dict(interval.target_cadence),
                "target_resistance": _range_to_dict(interval.target_resistance),
                "notes": interval.notes,
            }
            for interval in plan.intervals
        ],
        "metadata": {
            "generated_at": plan.metadata.generated_at,
            "algorithm_version": plan.metadata.algorithm_version,
        },
    }


def session_to_dict(session: TrainingSession) -> dict[str, Any]:
    return {
        "workout_id": session.workout_plan.workout_id,
        "session_start_time_ms": session.session_start_time_ms,
        "session_end_time_ms": session.session_end_time_ms,
        "paused_seconds": session.paused_seconds,
        "was_completed": session.was_completed,
        "data_points": [
            {
                "timestamp_ms": point.timestamp_ms,
                "cadence": point.cadence,
                "resistance": point.resistance,
                "power": point.power,
                "interval_index": point.interval_index,
                "interval_elapsed_seconds": point.interval_elapsed_seconds,
            }
            for point in session.data_points
        ],
    }


def parse_session(payload: object, plan: WorkoutPlan) -> TrainingSession:
    if not isinstance(payload, dict):
        raise PlanParseError("Session must be an object")
    if payload.get("workout_id") != plan.workout_id:
        raise PlanParseError(
            f"Session references plan {payload.get('workout_id')!r}, got {plan.workout_id!r}"
        )

    points_obj = payload.get("data_points")
    if not isinstance(points_obj, list):
        raise PlanParseError("Session field 'data_points' must be an array")

    points: list[SessionDataPoint] = []
    for i, raw in enumerate(points_obj):
        if not isinstance(raw, dict):
            raise PlanParseError(f"Data point {i + 1}: must be an object")
        power_obj = raw.get("power")
        points.append(
            SessionDataPoint(
                timestamp_ms=_parse_int(raw.get("timestamp_ms"), "timestamp_ms", i, "Data point"),
                cadence=_parse_float(raw.get("cadence"), "cadence", i, "Data point"),
                resistance=_parse_float(raw.get("resistance"), "resistance", i, "Data point"),
                interval_index=_parse_int(raw.get("interval_index"), "interval_index", i, "Data point"),
                interval_elapsed_seconds=_parse_int(
                    raw.get("interval_elapsed_seconds"), "interval_elapsed_seconds", i, "Data point"
                ),
                power=None if power_obj is None else _parse_float(power_obj, "power", i, "Data point"),
            )
        )

    return TrainingSession(
        workout_plan=plan,
        session_start_time_ms=_parse_int(payload.get("session_start_time_ms"), "session_start_time_ms"),
        session_end_time_ms=_parse_int(payload.get("session_end_time_ms", 0), "session_end_time_ms"),
        paused_seconds=_parse_float(payload.get("paused_seconds", 0), "paused_seconds"),
        was_completed=bool(payload.get("was_completed", False)),
        data_points=points,
    )


def _build_interval(raw: dict[str, Any], *, index: int, normalize: bool) -> WorkoutInterval:
    duration_seconds = _parse_int(raw.get("duration_seconds"), "duration_seconds", index)
    if duration_seconds <= 0:
        raise PlanParseError(f"Interval {index + 1}: duration_seconds must be > 0")

    name_obj = raw.get("name")
    name = "" if name_obj is None else str(name_obj)
    if normalize:
        name = name.strip() or f"Interval {index + 1}"

    number_obj = raw.get("interval_number")
    number = index + 1 if number_obj is None else _parse_int(number_obj, "interval_number", index)

    return WorkoutInterval(
        number=number,
        name=name,
        duration_seconds=duration_seconds,
        target_cadence=_build_range(raw.get("target_cadence"), "target_cadence", index),
        target_resistance=_build_range(raw.get("target_resistance"), "target_resistance", index),
        notes=_optional_str(raw.get("notes"), normalize),
    )


def _build_range(raw: object, field_name: str, index: int) -> TargetRange:
    if not isinstance(raw, dict):
        raise PlanParseError(f"Interval {index + 1}: {field_name} must be an object")
    low = _parse_float(raw.get("min"), f"{field_name}.min", index)
    high = _parse_float(raw.get("max"), f"{field_name}.max", index)
    if low > high:
        raise PlanParseError(f"Interval {index + 1}: {field_name}.min must be <= max")
    return TargetRange(min=low, max=high, unit=str(raw.get("unit", "")))


def _range_to_dict(target: TargetRange) -> dict[str, Any]:
    return {"min": target.min, "max": target.max, "unit": target.unit}


def _optional_str(raw: object, normalize: bool) -> str | None:
    if raw is None:
        return None
    if not normalize:
        return str(raw)
    return str(raw).strip() or None


def _describe(field_name: str, index: int | None, label: str) -> str:
    if index is None:
        return f"invalid {field_name}"
    return f"{label} {index + 1}: invalid {field_name}"


def _parse_int(raw: object, field_name: str, index: int | None = None, label: str = "Interval") -> int:
    if raw is None or isinstance(raw, bool):
        raise PlanParseError(_describe(field_name, index, label))
    if isinstance(raw, float):
        if not raw.is_integer():
            raise PlanParseError(_describe(field_name, index, label))
        return int(raw)
    try:
        return int(str(raw).strip())
    except ValueError as exc:
        raise PlanParseError(_describe(field_name, index, label)) from exc


def _parse_float(raw: object, field_name: str, index: int | None = None, label: str = "Interval") -> float:
    if raw is None or isinstance(raw, bool):
        raise PlanParseError(_describe(field_name, index, label))
    try:
        return float(str(raw).strip())
    except ValueError as exc:
        raise PlanParseError(_describe(field_name, index, label)) from exc
