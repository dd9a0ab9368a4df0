from __future__ import annotations

from helpers import build_plan
from spinlab.core.state import SensorState
from spinlab.workout.collector import DataCollector
from spinlab.workout.model import TrainingSession


def test_sample_tags_elapsed_time_and_interval() -> None:
    sensors = SensorState()
    sensors.update_cadence(88.0)
    sensors.update_resistance(41.0)
    session = TrainingSession(workout_plan=build_plan((10, 20)), session_start_time_ms=5_000)
    session.paused_seconds = 2.0
    collector = DataCollector(sensors)

    point = collector.sample(session, 1, now_ms=20_000)

    assert point is not None
    assert point.timestamp_ms == 13_000
    assert point.interval_index == 1
    assert point.interval_elapsed_seconds == 3
    assert point.power is None
    assert session.data_points == [point]


def test_sample_skipped_until_both_readings_exist() -> None:
    sensors = SensorState()
    session = TrainingSession(workout_plan=build_plan((10,)), session_start_time_ms=0)
    collector = DataCollector(sensors)

    assert collector.sample(session, 0, now_ms=1_000) is None
    sensors.update_cadence(80.0)
    assert collector.sample(session, 0, now_ms=2_000) is None

    assert collector.skipped_samples == 2
    assert session.data_points == []


def test_only_latest_reading_is_sampled() -> None:
    sensors = SensorState()
    session = TrainingSession(workout_plan=build_plan((10,)), session_start_time_ms=0)
    collector = DataCollector(sensors)

    for cadence in (70.0, 75.0, 81.0):
        sensors.update_cadence(cadence)
    sensors.update_resistance(44.0)
    sensors.update_power(180.0)
    collector.sample(session, 0, now_ms=1_000)

    assert len(session.data_points) == 1
    assert session.data_points[0].cadence == 81.0
    assert session.data_points[0].power == 180.0
