"""Post-session plan fit analysis and recommendations."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Iterable, Mapping, Sequence

from spinlab.workout.model import (
    PlanDifficultyAssessment,
    SessionDataPoint,
    TargetRange,
    TargetStatus,
    TrainingSession,
    WorkoutInterval,
)

logger = logging.getLogger(__name__)

TOO_EASY_SHARE = 0.5
TOO_HARD_SHARE = 0.5
APPROPRIATE_SHARE = 0.4
PLAN_MAJORITY_SHARE = 0.6
LOW_FIT_PCT = 60.0
HIGH_FIT_PCT = 80.0

StatusSummary = Mapping[TargetStatus, int]


@dataclass(frozen=True)
class IntervalPerformance:
    interval: WorkoutInterval
    actual_duration_seconds: int
    data_points: tuple[SessionDataPoint, ...]
    average_cadence: float
    average_resistance: float
    average_power: float
    max_power: float
    total_power: float
    cadence_target_fit: float
    resistance_target_fit: float
    cadence_status_summary: StatusSummary
    resistance_status_summary: StatusSummary
    was_too_easy: bool
    was_too_hard: bool
    was_appropriate: bool


@dataclass(frozen=True)
class SessionPerformance:
    session: TrainingSession
    actual_duration_seconds: int
    intervals: tuple[IntervalPerformance, ...]
    overall_cadence_fit: float
    overall_resistance_fit: float
    overall_average_power: float
    overall_max_power: float
    total_power_generated: float
    energy_kcal: float
    plan_difficulty_assessment: PlanDifficultyAssessment


@dataclass(frozen=True)
class SessionEvaluation:
    plan_difficulty_assessment: PlanDifficultyAssessment
    cadence_fit: float
    resistance_fit: float
    intervals_too_easy: int
    intervals_too_hard: int
    intervals_appropriate: int
    problematic_intervals: tuple[int, ...]
    recommendations: tuple[str, ...]


def calculate_session_performance(
    session: TrainingSession,
    now_ms: int | None = None,
) -> SessionPerformance | None:
    """Aggregate a finished session; None when no samples were recorded."""
    if not session.data_points:
        logger.warning("No data points collected for session %s", session.session_id)
        return None

    end_ms = session.session_end_time_ms
    if end_ms <= 0:
        end_ms = int(time.time() * 1000) if now_ms is None else now_ms
    actual_duration = int((end_ms - session.session_start_time_ms) // 1000 - session.paused_seconds)

    by_index: dict[int, list[SessionDataPoint]] = {}
    for point in session.data_points:
        by_index.setdefault(point.interval_index, []).append(point)

    intervals = tuple(
        calculate_interval_performance(interval, by_index.get(index, ()))
        for index, interval in enumerate(session.workout_plan.intervals)
    )

    powers = [point.power for point in session.data_points if point.power is not None]
    total_power = float(sum(powers))

    return SessionPerformance(
        session=session,
        actual_duration_seconds=max(0, actual_duration),
        intervals=intervals,
        overall_cadence_fit=_weighted_fit(intervals, cadence=True),
        overall_resistance_fit=_weighted_fit(intervals, cadence=False),
        overall_average_power=total_power / len(powers) if powers else 0.0,
        overall_max_power=float(max(powers)) if powers else 0.0,
        total_power_generated=total_power,
        energy_kcal=session.total_energy_kcal(),
        plan_difficulty_assessment=assess_plan_difficulty(intervals),
    )


def calculate_interval_performance(
    interval: WorkoutInterval,
    data_points: Sequence[SessionDataPoint],
) -> IntervalPerformance:
    points = tuple(data_points)
    if not points:
        return IntervalPerformance(
            interval=interval,
            actual_duration_seconds=interval.duration_seconds,
            data_points=(),
            average_cadence=0.0,
            average_resistance=0.0,
            average_power=0.0,
            max_power=0.0,
            total_power=0.0,
            cadence_target_fit=0.0,
            resistance_target_fit=0.0,
            cadence_status_summary={},
            resistance_status_summary={},
            was_too_easy=False,
            was_too_hard=False,
            was_appropriate=False,
        )

    if len(points) > 1:
        actual_duration = (points[-1].timestamp_ms - points[0].timestamp_ms) // 1000 + 1
    else:
        actual_duration = interval.duration_seconds

    cadence_counts = _status_counts((p.cadence for p in points), interval.target_cadence)
    resistance_counts = _status_counts((p.resistance for p in points), interval.target_resistance)

    total = len(points)
    total_checks = total * 2
    above = cadence_counts[TargetStatus.ABOVE_MAX] + resistance_counts[TargetStatus.ABOVE_MAX]
    below = cadence_counts[TargetStatus.BELOW_MIN] + resistance_counts[TargetStatus.BELOW_MIN]
    within = cadence_counts[TargetStatus.WITHIN_RANGE] + resistance_counts[TargetStatus.WITHIN_RANGE]

    too_easy = above / total_checks > TOO_EASY_SHARE
    too_hard = below / total_checks > TOO_HARD_SHARE
    appropriate = not too_easy and not too_hard and within / total_checks > APPROPRIATE_SHARE

    powers = [p.power for p in points if p.power is not None]
    total_power = float(sum(powers))

    return IntervalPerformance(
        interval=interval,
        actual_duration_seconds=actual_duration,
        data_points=points,
        average_cadence=sum(p.cadence for p in points) / total,
        average_resistance=sum(p.resistance for p in points) / total,
        average_power=total_power / len(powers) if powers else 0.0,
        max_power=float(max(powers)) if powers else 0.0,
        total_power=total_power,
        cadence_target_fit=cadence_counts[TargetStatus.WITHIN_RANGE] / total * 100.0,
        resistance_target_fit=resistance_counts[TargetStatus.WITHIN_RANGE] / total * 100.0,
        cadence_status_summary=cadence_counts,
        resistance_status_summary=resistance_counts,
        was_too_easy=too_easy,
        was_too_hard=too_hard,
        was_appropriate=appropriate,
    )


def assess_plan_difficulty(
    intervals: Sequence[IntervalPerformance],
) -> PlanDifficultyAssessment:
    if not intervals:
        return PlanDifficultyAssessment.MIXED

    total = len(intervals)
    appropriate_ratio = sum(1 for i in intervals if i.was_appropriate) / total
    too_easy_ratio = sum(1 for i in intervals if i.was_too_easy) / total
    too_hard_ratio = sum(1 for i in intervals if i.was_too_hard) / total

    if appropriate_ratio > PLAN_MAJORITY_SHARE:
        return PlanDifficultyAssessment.APPROPRIATE
    if too_easy_ratio > PLAN_MAJORITY_SHARE:
        return PlanDifficultyAssessment.TOO_EASY
    if too_hard_ratio > PLAN_MAJORITY_SHARE:
        return PlanDifficultyAssessment.TOO_HARD
    return PlanDifficultyAssessment.MIXED


def evaluate_session(performance: SessionPerformance) -> SessionEvaluation:
    intervals = performance.intervals
    too_easy = sum(1 for i in intervals if i.was_too_easy)
    too_hard = sum(1 for i in intervals if i.was_too_hard)
    appropriate = sum(1 for i in intervals if i.was_appropriate)
    problematic = tuple(
        index for index, i in enumerate(intervals) if i.was_too_easy or i.was_too_hard
    )

    return SessionEvaluation(
        plan_difficulty_assessment=performance.plan_difficulty_assessment,
        cadence_fit=performance.overall_cadence_fit,
        resistance_fit=performance.overall_resistance_fit,
        intervals_too_easy=too_easy,
        intervals_too_hard=too_hard,
        intervals_appropriate=appropriate,
        problematic_intervals=problematic,
        recommendations=tuple(
            _recommendations(performance, too_easy, too_hard, appropriate, problematic)
        ),
    )


def _status_counts(values: Iterable[float], target: TargetRange) -> dict[TargetStatus, int]:
    counts = {status: 0 for status in TargetStatus}
    for value in values:
        counts[target.classify(value)] += 1
    return counts


def _weighted_fit(intervals: Sequence[IntervalPerformance], *, cadence: bool) -> float:
    total_weight = sum(i.actual_duration_seconds for i in intervals)
    if total_weight <= 0:
        return 0.0
    weighted = sum(
        (i.cadence_target_fit if cadence else i.resistance_target_fit) * i.actual_duration_seconds
        for i in intervals
    )
    return weighted / total_weight


def _recommendations(
    performance: SessionPerformance,
    too_easy: int,
    too_hard: int,
    appropriate: int,
    problematic: tuple[int, ...],
) -> list[str]:
    out: list[str] = []
    total = len(performance.intervals)
    assessment = performance.plan_difficulty_assessment

    if assessment is PlanDifficultyAssessment.TOO_EASY:
        out.append("The training plan was too easy for your fitness level.")
        out.append("Consider selecting a higher intensity level for your next session.")
        if too_easy > total // 2:
            out.append(
                "Most intervals were below your capabilities - you may be ready for "
                "more challenging workouts."
            )
    elif assessment is PlanDifficultyAssessment.TOO_HARD:
        out.append("The training plan was too hard for your current fitness level.")
        out.append(
            "Consider selecting a lower intensity level or shorter duration for your "
            "next session."
        )
        if too_hard > total // 2:
            out.append(
                "Most intervals were above your current capabilities - focus on "
                "building endurance gradually."
            )
    elif assessment is PlanDifficultyAssessment.APPROPRIATE:
        out.append("Great job! The training plan matched your fitness level well.")
        if appropriate == total:
            out.append(
                "You stayed within target ranges throughout the entire session - "
                "excellent consistency!"
            )
        else:
            out.append("You maintained good performance across most intervals.")
    else:
        out.append(
            "The training plan had mixed difficulty - some intervals were too easy, "
            "others too hard."
        )
        if too_easy > too_hard:
            out.append(
                "More intervals were too easy than too hard - consider slightly "
                "increasing intensity."
            )
        elif too_hard > too_easy:
            out.append(
                "More intervals were too hard than too easy - consider slightly "
                "decreasing intensity."
            )
        out.append(
            "This could indicate varied interval types or inconsistent pacing - try "
            "to maintain steady effort."
        )

    if performance.overall_cadence_fit < LOW_FIT_PCT:
        out.append(
            "Your cadence was frequently outside target ranges - focus on maintaining "
            "a consistent pedaling rhythm."
        )
    if performance.overall_resistance_fit < LOW_FIT_PCT:
        out.append(
            "Your resistance was frequently outside target ranges - work on adjusting "
            "resistance more gradually."
        )

    if 1 <= len(problematic) <= 2:
        names = ", ".join(
            performance.intervals[index].interval.name or f"Interval {index + 1}"
            for index in problematic
        )
        out.append(
            f"Pay attention to: {names} - these intervals may need adjustment in "
            "future sessions."
        )

    if performance.overall_cadence_fit > HIGH_FIT_PCT and performance.overall_resistance_fit > HIGH_FIT_PCT:
        out.append(
            "Excellent target compliance! You maintained cadence and resistance within "
            "ranges very well."
        )

    return out
