"""Latest-value sensor cells shared by the session clock and the collector."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class SensorState:
    cadence_rpm: float | None = None
    resistance_pct: float | None = None
    power_watts: float | None = None

    @property
    def has_reading(self) -> bool:
        return self.cadence_rpm is not None and self.resistance_pct is not None

    def update_cadence(self, value: float) -> None:
        self.cadence_rpm = float(value)

    def update_resistance(self, value: float) -> None:
        self.resistance_pct = float(value)

    def update_power(self, value: float | None) -> None:
        self.power_watts = None if value is None else float(value)
