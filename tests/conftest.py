"""
Shared fixtures: every test runs on a fresh scheduler driven by a fake
clock, so delays cost no wall time.
"""

import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

import timers


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture(autouse=True)
def scheduler(clock):
    scheduler = timers.Scheduler(clock=clock, sleep=clock.sleep)
    previous = timers.set_scheduler(scheduler)
    yield scheduler
    timers.set_scheduler(previous)
