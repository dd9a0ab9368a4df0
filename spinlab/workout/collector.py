"""Once-per-second sampling of the latest sensor values into a session."""

from __future__ import annotations

import logging

from spinlab.core.state import SensorState
from spinlab.workout.model import SessionDataPoint, TrainingSession

logger = logging.getLogger(__name__)


class DataCollector:
    """Sole writer of ``TrainingSession.data_points``.

    Only the most recent cached reading is sampled; updates that land between
    two samples are overwritten, never buffered.
    """

    def __init__(self, sensors: SensorState) -> None:
        self._sensors = sensors
        self._skipped = 0

    @property
    def skipped_samples(self) -> int:
        return self._skipped

    def sample(
        self,
        session: TrainingSession,
        interval_index: int,
        now_ms: int,
    ) -> SessionDataPoint | None:
        cadence = self._sensors.cadence_rpm
        resistance = self._sensors.resistance_pct
        if cadence is None or resistance is None:
            self._skipped += 1
            logger.debug("No sensor reading yet, skipping sample at %d ms", now_ms)
            return None

        point = SessionDataPoint(
            timestamp_ms=session.calculate_total_elapsed_millis(now_ms),
            cadence=cadence,
            resistance=resistance,
            interval_index=interval_index,
            interval_elapsed_seconds=session.calculate_interval_elapsed_seconds(
                interval_index, now_ms
            ),
            power=self._sensors.power_watts,
        )
        session.data_points.append(point)
        return point
