from __future__ import annotations

import pytest

from helpers import FakeClock, build_plan
from spinlab.workout.model import WorkoutPlan


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def three_block_plan() -> WorkoutPlan:
    return build_plan((10, 20, 10))
