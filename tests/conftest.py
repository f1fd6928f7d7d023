# tests/conftest.py
"""
Shared pytest fixtures and configuration for deep_suppressor tests.

Time is always injected: FakeClock drives both the monotonic seconds used
by targets and the scheduler, and the wall-clock datetime used for
hour-of-day and learning progress, so scenarios are deterministic.
"""

import logging
from datetime import datetime, timedelta

import pytest

from deep_suppressor.habits import HabitStore, InMemoryHabitsStorage, PersistenceConfig
from deep_suppressor.models import Target
from deep_suppressor.probes import RecordingTerminationAction, ScriptedActivityProbe, StaticPressureProbe
from deep_suppressor.scheduler import Scheduler, SchedulerConfig

# Configure logging for tests
logging.basicConfig(level=logging.WARNING)
logging.getLogger("deep_suppressor").setLevel(logging.DEBUG)

START = datetime(2026, 1, 5, 9, 0, 0)


class FakeClock:
    """Monotonic seconds and wall-clock time that advance together."""

    def __init__(self, start: datetime = START):
        self.start = start
        self.seconds = 0.0

    def monotonic(self) -> float:
        return self.seconds

    def now(self) -> datetime:
        return self.start + timedelta(seconds=self.seconds)

    def advance(self, seconds: float) -> None:
        self.seconds += seconds

    def set(self, seconds: float) -> None:
        self.seconds = seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def storage():
    return InMemoryHabitsStorage()


@pytest.fixture
def store(storage, clock):
    return HabitStore(storage, clock=clock.now, monotonic=clock.monotonic)


@pytest.fixture
def make_target():
    def _make(app_id="com.example.app", patterns=None, **kwargs):
        return Target(app_id=app_id, process_patterns=patterns or [f"{app_id}:push"], **kwargs)

    return _make


@pytest.fixture
def probe():
    return ScriptedActivityProbe()


@pytest.fixture
def termination():
    return RecordingTerminationAction()


@pytest.fixture
def pressure():
    return StaticPressureProbe()


@pytest.fixture
def make_scheduler(store, probe, termination, pressure, clock, make_target):
    """Scheduler factory; defaults to a single target with scripted collaborators."""

    def _make(targets=None, config=None, **kwargs):
        return Scheduler(
            targets if targets is not None else [make_target()],
            kwargs.pop("store", store),
            kwargs.pop("activity_probe", probe),
            kwargs.pop("termination", termination),
            pressure_probe=kwargs.pop("pressure_probe", pressure),
            config=config or SchedulerConfig(),
            monotonic=clock.monotonic,
            clock=clock.now,
            **kwargs,
        )

    return _make


@pytest.fixture
def persistence_config():
    return PersistenceConfig(full_save_interval=3600, incremental_save_interval=300, incremental_sample_trigger=5)


# Test markers
def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "scenario: End-to-end control loop scenarios")
