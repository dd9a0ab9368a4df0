"""Runtime configuration: session choices and service/storage settings."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


ALLOWED_INTENSITIES: tuple[int, ...] = (3, 6, 8)
DEFAULT_PLAN_SERVICE_URL = "http://127.0.0.1:3001/api/v1/training-plan"
DEFAULT_REQUEST_TIMEOUT = 10.0


def default_data_dir() -> Path:
    return Path.home() / ".spinlab"


@dataclass(frozen=True)
class TrainingSessionConfig:
    duration_seconds: int
    intensity: int

    def __post_init__(self) -> None:
        if self.duration_seconds <= 0:
            raise ValueError("duration_seconds must be > 0")
        if self.intensity not in ALLOWED_INTENSITIES:
            allowed = ", ".join(str(level) for level in ALLOWED_INTENSITIES)
            raise ValueError(f"intensity must be one of {allowed}")


@dataclass(frozen=True)
class AppConfig:
    plan_service_url: str
    data_dir: Path
    request_timeout: float


def load_app_config(
    *,
    plan_service_url: str | None = None,
    data_dir: str | Path | None = None,
    request_timeout: float | None = None,
) -> AppConfig:
    """Explicit arguments win over SPINLAB_* environment variables."""
    url = plan_service_url or os.getenv("SPINLAB_PLAN_URL") or DEFAULT_PLAN_SERVICE_URL

    raw_dir = data_dir or os.getenv("SPINLAB_DATA_DIR")
    resolved_dir = Path(raw_dir).expanduser() if raw_dir else default_data_dir()

    timeout = request_timeout
    if timeout is None:
        raw_timeout = os.getenv("SPINLAB_REQUEST_TIMEOUT")
        try:
            timeout = float(raw_timeout) if raw_timeout else DEFAULT_REQUEST_TIMEOUT
        except ValueError as exc:
            raise ValueError(
                f"SPINLAB_REQUEST_TIMEOUT must be a number, got {raw_timeout!r}"
            ) from exc
    if timeout <= 0:
        raise ValueError("request_timeout must be > 0")

    return AppConfig(plan_service_url=url, data_dir=resolved_dir, request_timeout=timeout)
