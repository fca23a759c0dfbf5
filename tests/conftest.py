from __future__ import annotations

import random
from datetime import datetime, timedelta
from pathlib import Path

import pytest
from zoneinfo import ZoneInfo

from campus_explorer.config import ExplorerConfig
from campus_explorer.session import ExplorerSession
from campus_explorer.store import JsonStateStore

TZ = ZoneInfo("Asia/Kolkata")


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    # A Wednesday morning.
    return FakeClock(datetime(2025, 3, 12, 10, 0, tzinfo=TZ))


@pytest.fixture
def config() -> ExplorerConfig:
    return ExplorerConfig(tz_name="Asia/Kolkata")


@pytest.fixture
def state_path(tmp_path: Path) -> Path:
    return tmp_path / "explorer_state.json"


@pytest.fixture
def store(state_path: Path) -> JsonStateStore:
    return JsonStateStore(state_path)


@pytest.fixture
def session(store: JsonStateStore, config: ExplorerConfig, clock: FakeClock) -> ExplorerSession:
    return ExplorerSession(store, config=config, clock=clock, rng=random.Random(7))
