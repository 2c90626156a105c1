"""Shared test fixtures for task board tests."""

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Ensure the repo root is importable without an install
sys.path.insert(0, str(Path(__file__).parent.parent))

from taskboard.hub import SyncHub
from taskboard.store import TaskStore

T0 = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Deterministic clock: returns start, then advances by step on each call."""

    def __init__(self, start: datetime = T0, step: timedelta = timedelta(seconds=1)):
        self.now = start
        self.step = step

    def __call__(self) -> datetime:
        current = self.now
        self.now = self.now + self.step
        return current


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(tmp_path):
    return TaskStore(str(tmp_path / "tasks.db"))


@pytest.fixture
def hub(store, clock):
    return SyncHub(store, clock=clock)


@pytest.fixture
def received(hub):
    """Every event the hub broadcasts, in order."""
    events = []
    hub.subscribe(events.append)
    return events
