"""Shared fixtures."""

from datetime import datetime, timedelta

import pytest

from intake.logging import LogConfig, set_config


@pytest.fixture(autouse=True)
def isolated_logs(tmp_path):
    """Write JSONL logs under the test's tmp dir instead of ~/.intake."""
    config = LogConfig(log_dir=tmp_path / "logs")
    set_config(config)
    return config


class FakeClock:
    """Manually advanced monotonic clock (seconds)."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeDateClock:
    """Manually advanced wall clock."""

    def __init__(self):
        self.now = datetime(2026, 1, 1, 12, 0, 0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def date_clock():
    return FakeDateClock()
