"""Local persistence for workout plans and finished sessions."""

from __future__ import annotations

import json
import logging
from pathlib import Path

from spinlab.core.config import default_data_dir
from spinlab.workout.model import TrainingSession, WorkoutPlan
from spinlab.workout.parser import (
    PlanParseError,
    parse_session,
    parse_workout_plan,
    plan_to_dict,
    session_to_dict,
)

logger = logging.getLogger(__name__)


class SessionRepository:
    """JSON files under ``workout_plans/`` and ``sessions/``.

    Reads never raise: anything unreadable is reported as not found.
    """

    def __init__(self, base_dir: Path | None = None) -> None:
        root = base_dir or default_data_dir()
        self.plans_dir = root / "workout_plans"
        self.sessions_dir = root / "sessions"

    def save_plan(self, plan: WorkoutPlan) -> Path:
        self.plans_dir.mkdir(parents=True, exist_ok=True)
        out = self.plans_dir / f"{plan.workout_id}.json"
        if out.exists():
            return out
        out.write_text(
            json.dumps(plan_to_dict(plan), ensure_ascii=True, indent=2), encoding="utf-8"
        )
        return out

    def load_plan(self, workout_id: str) -> WorkoutPlan | None:
        path = self.plans_dir / f"{workout_id}.json"
        if not path.exists():
            return None
        try:
            return parse_workout_plan(
                json.loads(path.read_text(encoding="utf-8")), normalize=False
            )
        except (OSError, ValueError) as exc:
            logger.warning("Skipping unreadable plan %s: %s", path.name, exc)
            return None

    def save_session(self, session: TrainingSession) -> Path:
        self.save_plan(session.workout_plan)
        self.sessions_dir.mkdir(parents=True, exist_ok=True)
        out = self.sessions_dir / f"{session.session_id}.json"
        out.write_text(
            json.dumps(session_to_dict(session), ensure_ascii=True, indent=2), encoding="utf-8"
        )
        logger.info("Saved session %s to %s", session.session_id, out)
        return out

    def load_session(self, session_id: str) -> TrainingSession | None:
        path = self.sessions_dir / f"{session_id}.json"
        if not path.exists():
            return None
        return self._read_session(path)

    def load_all_sessions(self) -> list[TrainingSession]:
        if not self.sessions_dir.exists():
            return []
        out: list[TrainingSession] = []
        for file in self.sessions_dir.glob("*.json"):
            session = self._read_session(file)
            if session is not None:
                out.append(session)
        out.sort(key=lambda s: s.session_start_time_ms, reverse=True)
        return out

    def delete_session(self, session_id: str) -> bool:
        path = self.sessions_dir / f"{session_id}.json"
        if not path.exists():
            return False
        path.unlink()
        return True

    def _read_session(self, path: Path) -> TrainingSession | None:
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Skipping corrupt session file %s: %s", path.name, exc)
            return None
        if not isinstance(payload, dict):
            logger.warning("Skipping corrupt session file %s: not an object", path.name)
            return None

        plan = self.load_plan(str(payload.get("workout_id", "")))
        if plan is None:
            logger.warning("Session %s references a missing plan", path.name)
            return None
        try:
            return parse_session(payload, plan)
        except PlanParseError as exc:
            logger.warning("Skipping corrupt session file %s: %s", path.name, exc)
            return None
