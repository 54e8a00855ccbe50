"""
Shared test fixtures for battery alarm tests.

Provides a fake ``/sys/class/power_supply`` tree in ``tmp_path`` and cleans
all BATTERY_ALARM_* environment variables before each test.

CHANGELOG:
- 2026-10-19: Add a local time zone fixture with daylight saving time (STORY-006)
- 2026-10-19: Initial creation (STORY-001)

TODO:
- None
"""

from __future__ import annotations

import time
from collections.abc import Iterator
from pathlib import Path

import pytest

# All AlarmSettings environment variable names, used for cleanup.
_ALL_ALARM_ENV_VARS = (
    "BATTERY_ALARM_CHECK_INTERVAL_S",
    "BATTERY_ALARM_POWER_SUPPLY_ROOT",
    "BATTERY_ALARM_CONFIG_DIR",
    "BATTERY_ALARM_DATA_DIR",
    "BATTERY_ALARM_LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def _clean_alarm_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Remove all alarm env vars and isolate from .env files before each test.

    Changes working directory to tmp_path so no .env file is accidentally
    loaded by Pydantic BaseSettings.
    """
    for var in _ALL_ALARM_ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)


def write_device(device: Path, **files: str) -> Path:
    """Create a fake power-supply device directory with the given files."""
    device.mkdir(parents=True, exist_ok=True)
    for name, value in files.items():
        (device / name).write_text(f"{value}\n")
    return device


@pytest.fixture()
def power_supply_root(tmp_path: Path) -> Path:
    """A power-supply root with an AC adapter and a charging Li-ion BAT0.

    BAT0 reports 3.9 V, +0.5 A, 55 % and a 4.2 V design max voltage.
    """
    root = tmp_path / "power_supply"
    write_device(root / "AC", online="1", type="Mains")
    write_device(
        root / "BAT0",
        status="Charging",
        voltage_now="3900000",
        current_now="500000",
        capacity="55",
        voltage_max_design="4200000",
        technology="Li-ion",
        type="Battery",
    )
    return root


@pytest.fixture()
def make_device():
    """Return the fake device directory builder."""
    return write_device


@pytest.fixture()
def eastern_time(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Run the test with US Eastern local time.

    Clocks spring forward at 2026-03-08 02:00 local (07:00 UTC).
    """
    monkeypatch.setenv("TZ", "EST5EDT,M3.2.0,M11.1.0")
    time.tzset()
    yield
    monkeypatch.undo()
    time.tzset()
