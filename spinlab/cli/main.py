"""Terminal CLI entrypoint for spinlab."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
import time

from spinlab.core.config import ALLOWED_INTENSITIES, AppConfig, TrainingSessionConfig, load_app_config
from spinlab.core.state import SensorState
from spinlab.sensors.simulator import SimulatedSensorFeed
from spinlab.workout.evaluator import calculate_session_performance, evaluate_session
from spinlab.workout.library import build_offline_plan
from spinlab.workout.model import TargetStatus, TrainingSession, WorkoutPlan
from spinlab.workout.plan_client import FetchPlan, PlanFetchError, TrainingPlanClient, with_retries
from spinlab.workout.runner import SessionMachine, SessionSnapshot, run_session
from spinlab.workout.session_store import SessionRepository


_STATUS_LABELS = {
    TargetStatus.WITHIN_RANGE: "ok",
    TargetStatus.BELOW_MIN: "low",
    TargetStatus.ABOVE_MAX: "high",
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="spinlab interval training sessions")
    parser.add_argument("--data-dir", default=None, help="Where plans and sessions are stored")
    parser.add_argument("--verbose", action="store_true", help="Log session lifecycle events")
    parser.add_argument("--debug", action="store_true", help="Log per-tick details")
    sub = parser.add_subparsers(dest="command")

    ride = sub.add_parser("ride", help="Ride a session with simulated sensors")
    ride.add_argument("--duration-min", type=int, default=30, help="Session length in minutes")
    ride.add_argument(
        "--intensity",
        type=int,
        choices=ALLOWED_INTENSITIES,
        default=6,
        help="Plan intensity level",
    )
    ride.add_argument("--plan-url", default=None, help="Training plan service endpoint")
    ride.add_argument(
        "--offline",
        action="store_true",
        help="Use the built-in offline plan instead of the plan service",
    )
    ride.add_argument(
        "--offline-fallback",
        action="store_true",
        help="Fall back to the offline plan when the plan service is unreachable",
    )
    ride.add_argument(
        "--speed",
        type=float,
        default=1.0,
        help="Time acceleration factor (10 rides a 10 minute plan in 1 minute)",
    )
    ride.add_argument(
        "--retries",
        type=int,
        default=2,
        help="Extra plan fetch attempts before giving up",
    )
    ride.add_argument(
        "--retry-delay",
        type=float,
        default=1.0,
        help="Seconds to wait between plan fetch attempts",
    )
    ride.add_argument("--seed", type=int, default=20260225, help="Simulated rider seed")

    sub.add_parser("sessions", help="List saved sessions, newest first")

    report = sub.add_parser("report", help="Evaluate a saved session")
    report.add_argument("session_id", help="Session id as printed by 'sessions'")
    return parser


class ScaledClock:
    """Millisecond wall clock running ``speed`` times faster than real time."""

    def __init__(self, speed: float) -> None:
        self._origin = time.time()
        self._speed = speed

    def __call__(self) -> int:
        return int((self._origin + (time.time() - self._origin) * self._speed) * 1000)


def _format_clock(seconds: int) -> str:
    minutes, secs = divmod(max(0, seconds), 60)
    return f"{minutes:02d}:{secs:02d}"


def _format_value(value: float | None, unit: str) -> str:
    return "N/A" if value is None else f"{value:.1f} {unit}"


def _print_snapshot(machine: SessionMachine, snapshot: SessionSnapshot) -> None:
    if snapshot.interval_changed and snapshot.current_interval is not None:
        interval = snapshot.current_interval
        print(
            f"[SESSION] Interval {snapshot.interval_index + 1}/{snapshot.interval_total}: "
            f"{interval.name} ({interval.duration_seconds}s, "
            f"cadence {interval.target_cadence.min:.0f}-{interval.target_cadence.max:.0f} "
            f"{interval.target_cadence.unit}, resistance {interval.target_resistance.min:.0f}-"
            f"{interval.target_resistance.max:.0f} {interval.target_resistance.unit})"
        )
        machine.dismiss_interval_notification()

    paused = " PAUSED" if snapshot.is_paused else ""
    name = snapshot.current_interval.name if snapshot.current_interval else "-"
    print(
        f"[SESSION]{paused} {name} {_format_clock(snapshot.interval_remaining_seconds)} | "
        f"total {_format_clock(snapshot.total_remaining_seconds)} left "
        f"({snapshot.progress * 100:.0f}%) | "
        f"Cadence: {_format_value(snapshot.cadence_rpm, 'rpm')} "
        f"[{_STATUS_LABELS[snapshot.cadence_status]}] | "
        f"Resistance: {_format_value(snapshot.resistance_pct, '%')} "
        f"[{_STATUS_LABELS[snapshot.resistance_status]}] | "
        f"Power: {_format_value(snapshot.power_watts, 'W')}"
    )


def _build_fetch_plan(args: argparse.Namespace, app_config: AppConfig) -> FetchPlan:
    async def offline(duration_seconds: int, intensity: int) -> WorkoutPlan:
        return build_offline_plan(duration_seconds, intensity)

    if args.offline:
        return offline

    client = TrainingPlanClient(app_config.plan_service_url, timeout=app_config.request_timeout)
    fetch_online = with_retries(client.fetch_plan, args.retries, args.retry_delay)
    if not args.offline_fallback:
        return fetch_online

    async def with_fallback(duration_seconds: int, intensity: int) -> WorkoutPlan:
        try:
            return await fetch_online(duration_seconds, intensity)
        except PlanFetchError as exc:
            if not exc.retryable:
                raise
            print(f"[PLAN] {exc} - using offline plan")
            return await offline(duration_seconds, intensity)

    return with_fallback


async def _ride(
    machine: SessionMachine,
    feed: SimulatedSensorFeed,
    fetch_plan: FetchPlan,
    config: TrainingSessionConfig,
) -> TrainingSession:
    feed.start()
    try:
        return await run_session(machine, fetch_plan, config)
    finally:
        await feed.stop()


def run_ride(args: argparse.Namespace, app_config: AppConfig) -> int:
    try:
        config = TrainingSessionConfig(
            duration_seconds=args.duration_min * 60, intensity=args.intensity
        )
    except ValueError as exc:
        print(f"Invalid session settings: {exc}")
        return 2
    if args.speed <= 0:
        print("Invalid session settings: --speed must be > 0")
        return 2
    if args.retries < 0 or args.retry_delay < 0:
        print("Invalid session settings: --retries and --retry-delay must be >= 0")
        return 2

    sensors = SensorState()
    machine = SessionMachine(
        sensors,
        now_ms=ScaledClock(args.speed),
        tick_seconds=1.0 / args.speed,
    )
    machine.on_snapshot = lambda snapshot: _print_snapshot(machine, snapshot)
    feed = SimulatedSensorFeed(
        sensors,
        target_provider=lambda: machine.current_interval,
        seed=args.seed,
        period_seconds=1.0 / args.speed,
    )

    fetch_plan = _build_fetch_plan(args, app_config)
    session: TrainingSession | None = None
    try:
        while session is None:
            try:
                session = asyncio.run(_ride(machine, feed, fetch_plan, config))
            except PlanFetchError as exc:
                print(f"[PLAN] Unable to load a workout plan: {exc}")
                if not _confirm_retry():
                    print("[PLAN] Run again or raise --retries to keep trying")
                    return 2
    except KeyboardInterrupt:
        machine.end_session(completed=False)
        session = machine.session
        if session is None:
            return 130
        print("\n[SESSION] Stopped early")

    repository = SessionRepository(app_config.data_dir)
    repository.save_session(session)
    print(f"[SESSION] Saved session {session.session_id}")
    _print_report(session)
    return 0


def _confirm_retry() -> bool:
    if not sys.stdin.isatty():
        return False
    try:
        answer = input("[PLAN] Retry? [y/N] ")
    except (EOFError, OSError):
        return False
    return answer.strip().lower() in {"y", "yes"}


def run_sessions(app_config: AppConfig) -> int:
    sessions = SessionRepository(app_config.data_dir).load_all_sessions()
    if not sessions:
        print("No saved sessions")
        return 0
    for session in sessions:
        status = "completed" if session.was_completed else "stopped"
        print(
            f"{session.session_id:<16} {session.workout_plan.workout_id:<28} "
            f"{status:<10} samples={len(session.data_points)}"
        )
    return 0


def run_report(session_id: str, app_config: AppConfig) -> int:
    session = SessionRepository(app_config.data_dir).load_session(session_id)
    if session is None:
        print(f"Session {session_id} not found")
        return 1
    _print_report(session)
    return 0


def _print_report(session: TrainingSession) -> None:
    performance = calculate_session_performance(session)
    if performance is None:
        print("No performance data for this session")
        return
    evaluation = evaluate_session(performance)

    print(
        f"Duration: {_format_clock(performance.actual_duration_seconds)} | "
        f"Assessment: {evaluation.plan_difficulty_assessment.name} | "
        f"Cadence fit: {evaluation.cadence_fit:.0f}% | "
        f"Resistance fit: {evaluation.resistance_fit:.0f}% | "
        f"Energy: {performance.energy_kcal:.1f} kcal"
    )
    for index, item in enumerate(performance.intervals):
        flag = (
            "too easy"
            if item.was_too_easy
            else "too hard"
            if item.was_too_hard
            else "ok"
            if item.was_appropriate
            else "-"
        )
        print(
            f"  {index + 1}. {item.interval.name:<16} {len(item.data_points):>5} samples "
            f"cadence {item.cadence_target_fit:5.1f}% resistance {item.resistance_target_fit:5.1f}% "
            f"[{flag}]"
        )
    for line in evaluation.recommendations:
        print(f"- {line}")


def _configure_logging(args: argparse.Namespace) -> None:
    level = logging.WARNING
    if args.verbose:
        level = logging.INFO
    if args.debug:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args)

    try:
        app_config = load_app_config(
            plan_service_url=getattr(args, "plan_url", None),
            data_dir=args.data_dir,
        )
    except ValueError as exc:
        print(f"Invalid configuration: {exc}")
        return 2

    if args.command == "ride":
        return run_ride(args, app_config)
    if args.command == "sessions":
        return run_sessions(app_config)
    if args.command == "report":
        return run_report(args.session_id, app_config)

    parser.print_help()
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
