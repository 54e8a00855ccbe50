"""
Tests for the power-supply sysfs reader.

Tests verify:
- Device discovery picks the first directory exposing voltage_now.
- Micro-unit scaling, status parsing and capacity reading.
- E correction with the internal resistance, and no correction in manual
  switch mode while charging.
- Missing or malformed files degrade to zero instead of raising.
- Invalid readers (no device / missing mandatory file) return zero readings.
- Design max voltage fallbacks.

CHANGELOG:
- 2026-10-19: Default clock gives UTC timestamps (STORY-003)
- 2026-10-19: Initial creation -- TDD tests written first (STORY-003)

TODO:
- None
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta
from pathlib import Path

import pytest
from battery_alarm.src.sensor import (
    LI_ION_DESIGN_MAX_V,
    UNKNOWN_DESIGN_MAX_V,
    PowerSupplyReader,
    find_power_supply,
)

_TS = datetime(2026, 10, 19, 12, 0, 0)


def _reader(root: Path, **kwargs: object) -> PowerSupplyReader:
    return PowerSupplyReader(root=root, clock=lambda: _TS, **kwargs)


class TestFindPowerSupply:
    """Device discovery."""

    def test_skips_devices_without_voltage(self, power_supply_root: Path) -> None:
        assert find_power_supply(power_supply_root) == power_supply_root / "BAT0"

    def test_missing_root_returns_none(self, tmp_path: Path) -> None:
        assert find_power_supply(tmp_path / "nope") is None

    def test_picks_first_by_name(self, tmp_path: Path, make_device: Callable) -> None:
        make_device(tmp_path / "BAT1", voltage_now="1")
        make_device(tmp_path / "BAT0", voltage_now="1")
        assert find_power_supply(tmp_path) == tmp_path / "BAT0"


class TestAutomaticRead:
    """Automatic mode reads the status and capacity files."""

    def test_scaled_values(self, power_supply_root: Path) -> None:
        reader = _reader(power_supply_root, internal_resistance=0.1)
        assert reader.valid

        reading = reader.read()

        assert reading.timestamp == _TS
        assert reading.charging is True
        assert reading.full is False
        assert reading.voltage == pytest.approx(3.9)
        assert reading.current == pytest.approx(0.5)
        assert reading.e == pytest.approx(3.9 - 0.5 * 0.1)
        assert reading.capacity == 55
        assert reading.out_of_range is False

    @pytest.mark.parametrize(
        ("status", "charging", "full"),
        [
            ("Full", True, True),
            ("Charging", True, False),
            ("Discharging", False, False),
            ("Not charging", False, False),
            ("Unknown", False, False),
        ],
    )
    def test_status_parsing(
        self, power_supply_root: Path, status: str, charging: bool, full: bool
    ) -> None:
        (power_supply_root / "BAT0" / "status").write_text(status + "\n")
        reading = _reader(power_supply_root).read()
        assert reading.charging is charging
        assert reading.full is full

    def test_default_clock_is_utc(self, power_supply_root: Path) -> None:
        reading = PowerSupplyReader(root=power_supply_root).read()

        assert reading.timestamp.utcoffset() == timedelta(0)
        assert reading.timestamp.microsecond == 0

    def test_discharging_e_above_terminal_voltage(self, power_supply_root: Path) -> None:
        (power_supply_root / "BAT0" / "status").write_text("Discharging\n")
        (power_supply_root / "BAT0" / "current_now").write_text("-1000000\n")
        reading = _reader(power_supply_root, internal_resistance=0.2).read()
        assert reading.e == pytest.approx(3.9 + 0.2)

    def test_zero_current_keeps_e_equal_to_voltage(self, power_supply_root: Path) -> None:
        (power_supply_root / "BAT0" / "current_now").write_text("0\n")
        reading = _reader(power_supply_root, internal_resistance=0.2).read()
        assert reading.e == reading.voltage

    def test_malformed_current_reads_zero(self, power_supply_root: Path) -> None:
        (power_supply_root / "BAT0" / "current_now").write_text("garbage\n")
        reading = _reader(power_supply_root).read()
        assert reading.current == 0.0

    def test_vanished_voltage_reads_zero(self, power_supply_root: Path) -> None:
        reader = _reader(power_supply_root)
        (power_supply_root / "BAT0" / "voltage_now").unlink()
        reading = reader.read()
        assert reading.voltage == 0.0

    def test_missing_capacity_is_none(self, power_supply_root: Path) -> None:
        (power_supply_root / "BAT0" / "capacity").unlink()
        assert _reader(power_supply_root).read().capacity is None


class TestManualRead:
    """Manual switch mode takes the charging flag from the caller."""

    def test_uses_override_and_skips_capacity(self, power_supply_root: Path) -> None:
        (power_supply_root / "BAT0" / "status").write_text("Discharging\n")
        reader = _reader(power_supply_root, manual_switch=True, internal_resistance=0.1)

        reader.charging = True
        reading = reader.read()

        assert reading.charging is True
        assert reading.capacity is None
        # No correction while charging in manual mode.
        assert reading.e == reading.voltage

    def test_discharging_override_applies_correction(self, power_supply_root: Path) -> None:
        (power_supply_root / "BAT0" / "current_now").write_text("-800000\n")
        reader = _reader(power_supply_root, manual_switch=True, internal_resistance=0.1)

        reader.charging = False
        reading = reader.read()

        assert reading.charging is False
        assert reading.e == pytest.approx(3.9 + 0.08)


class TestValidity:
    """Reader validity and zero readings."""

    def test_no_device_is_invalid(self, tmp_path: Path) -> None:
        reader = _reader(tmp_path)
        assert reader.valid is False
        reading = reader.read()
        assert reading.voltage == 0.0
        assert reading.current == 0.0

    @pytest.mark.parametrize("missing", ["status", "current_now"])
    def test_missing_mandatory_file_is_invalid(
        self, power_supply_root: Path, missing: str
    ) -> None:
        (power_supply_root / "BAT0" / missing).unlink()
        assert _reader(power_supply_root).valid is False

    def test_capacity_is_optional(self, power_supply_root: Path) -> None:
        (power_supply_root / "BAT0" / "capacity").unlink()
        assert _reader(power_supply_root).valid is True


class TestDesignMaxVoltage:
    """voltage_max_design and its fallbacks."""

    def test_reads_design_file(self, power_supply_root: Path) -> None:
        reader = _reader(power_supply_root)
        assert reader.design_max_voltage() == pytest.approx(4.2)
        assert reader.technology() == "Li-ion"

    def test_li_ion_fallback(self, power_supply_root: Path) -> None:
        (power_supply_root / "BAT0" / "voltage_max_design").unlink()
        assert _reader(power_supply_root).design_max_voltage() == LI_ION_DESIGN_MAX_V

    def test_unknown_technology_fallback(self, power_supply_root: Path) -> None:
        (power_supply_root / "BAT0" / "voltage_max_design").unlink()
        (power_supply_root / "BAT0" / "technology").unlink()
        reader = _reader(power_supply_root)
        assert reader.technology() == ""
        assert reader.design_max_voltage() == UNKNOWN_DESIGN_MAX_V
