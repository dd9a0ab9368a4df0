"""Simulated bike sensors feeding the latest-value cells (no hardware required)."""

from __future__ import annotations

import asyncio
import contextlib
import math
import random
from dataclasses import dataclass
from typing import Callable, Optional

from spinlab.core.state import SensorState
from spinlab.workout.model import WorkoutInterval


TargetProvider = Callable[[], Optional[WorkoutInterval]]

IDLE_CADENCE_RPM = 75.0
IDLE_RESISTANCE_PCT = 30.0


@dataclass(frozen=True)
class SimulatedReading:
    cadence_rpm: float
    resistance_pct: float
    power_watts: float


class SimulatedSensorFeed:
    """Random-walk rider that drifts around the current interval targets.

    The rider alternates between steady, surge and recovery phases; surges
    overshoot the targets and recoveries undershoot them.
    """

    def __init__(
        self,
        sensors: SensorState,
        target_provider: TargetProvider,
        seed: int = 20260225,
        period_seconds: float = 1.0,
    ) -> None:
        self._sensors = sensors
        self._target_provider = target_provider
        self._period_seconds = period_seconds
        self._rng = random.Random(seed)
        self._tick = 0
        self._mode = "steady"
        self._mode_remaining = 0
        self._cadence = IDLE_CADENCE_RPM
        self._resistance = IDLE_RESISTANCE_PCT
        self._task: Optional[asyncio.Task[None]] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def step(self) -> SimulatedReading:
        self._tick += 1
        self._roll_mode()

        interval = self._target_provider()
        if interval is None:
            cadence_goal = IDLE_CADENCE_RPM
            resistance_goal = IDLE_RESISTANCE_PCT
        else:
            cadence_goal = interval.target_cadence.midpoint
            resistance_goal = interval.target_resistance.midpoint

        cadence_offset = 0.0
        resistance_offset = 0.0
        if self._mode == "surge":
            cadence_offset = self._rng.uniform(6.0, 14.0)
            resistance_offset = self._rng.uniform(4.0, 10.0)
        elif self._mode == "recovery":
            cadence_offset = -self._rng.uniform(6.0, 14.0)
            resistance_offset = -self._rng.uniform(4.0, 10.0)

        cadence_periodic = 3.0 * math.sin(self._tick / 3.8) + 2.0 * math.sin(self._tick / 8.5)
        cadence_target = (
            cadence_goal + cadence_offset + cadence_periodic + self._rng.uniform(-2.5, 2.5)
        )
        resistance_target = resistance_goal + resistance_offset + self._rng.uniform(-1.5, 1.5)

        self._cadence += max(-5.5, min(5.5, (cadence_target - self._cadence) * 0.55))
        self._resistance += max(-4.0, min(4.0, (resistance_target - self._resistance) * 0.40))
        self._cadence = max(0.0, min(140.0, self._cadence))
        self._resistance = max(0.0, min(100.0, self._resistance))

        power = self._cadence * (0.5 + self._resistance / 25.0)
        reading = SimulatedReading(
            cadence_rpm=round(self._cadence, 1),
            resistance_pct=round(self._resistance, 1),
            power_watts=round(power, 1),
        )
        self._sensors.update_cadence(reading.cadence_rpm)
        self._sensors.update_resistance(reading.resistance_pct)
        self._sensors.update_power(reading.power_watts)
        return reading

    def start(self) -> None:
        if self.is_running:
            return
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None

    async def _run(self) -> None:
        while True:
            self.step()
            await asyncio.sleep(self._period_seconds)

    def _roll_mode(self) -> None:
        if self._mode_remaining <= 0:
            roll = self._rng.random()
            if roll < 0.12:
                self._mode = "surge"
                self._mode_remaining = self._rng.randint(8, 20)
            elif roll < 0.24:
                self._mode = "recovery"
                self._mode_remaining = self._rng.randint(8, 18)
            else:
                self._mode = "steady"
                self._mode_remaining = self._rng.randint(18, 45)
        self._mode_remaining -= 1
