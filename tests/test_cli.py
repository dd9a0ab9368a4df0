from __future__ import annotations

from pathlib import Path

import pytest

import spinlab.cli.main as main_module
from spinlab.cli.main import main
from spinlab.workout.library import build_offline_plan
from spinlab.workout.model import WorkoutPlan
from spinlab.workout.plan_client import PlanFetchError
from spinlab.workout.session_store import SessionRepository


def test_offline_ride_saves_and_reports(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    code = main(
        [
            "--data-dir",
            str(tmp_path),
            "ride",
            "--duration-min",
            "1",
            "--intensity",
            "3",
            "--offline",
            "--speed",
            "120",
            "--seed",
            "5",
        ]
    )

    assert code == 0
    out = capsys.readouterr().out
    assert "[SESSION] Interval 2/3: Main Effort" in out
    assert "Assessment:" in out

    sessions = SessionRepository(tmp_path).load_all_sessions()
    assert len(sessions) == 1
    session = sessions[0]
    assert session.was_completed is True
    assert session.workout_plan.intensity_level == 3
    assert session.data_points

    assert main(["--data-dir", str(tmp_path), "sessions"]) == 0
    assert session.session_id in capsys.readouterr().out

    assert main(["--data-dir", str(tmp_path), "report", session.session_id]) == 0
    assert "Cadence fit:" in capsys.readouterr().out


def test_report_unknown_session(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["--data-dir", str(tmp_path), "report", "123"]) == 1
    assert "not found" in capsys.readouterr().out


def test_sessions_when_empty(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["--data-dir", str(tmp_path), "sessions"]) == 0
    assert "No saved sessions" in capsys.readouterr().out


def test_ride_without_plan_service_fails_cleanly(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    code = main(
        [
            "--data-dir",
            str(tmp_path),
            "ride",
            "--duration-min",
            "1",
            "--plan-url",
            "http://127.0.0.1:9/api/v1/training-plan",
            "--retries",
            "0",
        ]
    )

    assert code == 2
    assert "Unable to load a workout plan" in capsys.readouterr().out
    assert SessionRepository(tmp_path).load_all_sessions() == []


class _Pipe:
    def isatty(self) -> bool:
        return False


class _RejectOnceClient:
    calls = 0

    def __init__(self, base_url: str, timeout: float = 10.0) -> None:
        self.base_url = base_url

    async def fetch_plan(self, duration_seconds: int, intensity: int) -> WorkoutPlan:
        type(self).calls += 1
        if type(self).calls == 1:
            raise PlanFetchError("HTTP 404: no such route", retryable=False)
        return build_offline_plan(duration_seconds, intensity)


def test_ride_retries_failed_plan_fetch(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.setattr(main_module, "TrainingPlanClient", _RejectOnceClient)
    _RejectOnceClient.calls = 0

    code = main(
        [
            "--data-dir",
            str(tmp_path),
            "ride",
            "--duration-min",
            "1",
            "--retries",
            "1",
            "--retry-delay",
            "0",
            "--speed",
            "120",
        ]
    )

    assert code == 0
    assert _RejectOnceClient.calls == 2
    assert "Unable to load" not in capsys.readouterr().out
    sessions = SessionRepository(tmp_path).load_all_sessions()
    assert len(sessions) == 1
    assert sessions[0].was_completed is True


def test_ride_reports_failure_once_retries_are_spent(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.setattr(main_module, "TrainingPlanClient", _RejectOnceClient)
    monkeypatch.setattr(main_module.sys, "stdin", _Pipe())
    _RejectOnceClient.calls = 0

    code = main(["--data-dir", str(tmp_path), "ride", "--duration-min", "1", "--retries", "0"])

    assert code == 2
    out = capsys.readouterr().out
    assert "HTTP 404" in out
    assert "--retries" in out


class _Terminal:
    def isatty(self) -> bool:
        return True


def test_ride_asks_to_retry_on_a_terminal(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.setattr(main_module, "TrainingPlanClient", _RejectOnceClient)
    monkeypatch.setattr(main_module.sys, "stdin", _Terminal())
    monkeypatch.setattr("builtins.input", lambda prompt: "y")
    _RejectOnceClient.calls = 0

    code = main(
        ["--data-dir", str(tmp_path), "ride", "--duration-min", "1", "--retries", "0", "--speed", "120"]
    )

    assert code == 0
    assert _RejectOnceClient.calls == 2
    assert "Unable to load a workout plan: HTTP 404" in capsys.readouterr().out
    assert len(SessionRepository(tmp_path).load_all_sessions()) == 1
