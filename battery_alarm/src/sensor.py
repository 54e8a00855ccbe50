"""
Power-supply sysfs reader for the battery gauge.

Locates the first power-supply device under ``/sys/class/power_supply``
that exposes ``voltage_now`` and turns its pseudo-files into one
:class:`~battery_alarm.src.models.Reading` per call.  Designed to be robust:

- A missing or malformed sensor file yields 0 for that field instead of
  raising, so a driver hiccup never breaks the sampling loop.
- The internal-resistance correction (E) is applied here.
- In manual switch mode the charging state is taken from the ``charging``
  attribute set by the caller, not from the ``status`` file.

Sysfs files used (integers in micro-units unless noted):

- ``status``: text, first letter f(ull) / c(harging) / other.
- ``voltage_now``: microvolts (mandatory).
- ``current_now``: microamps, positive while charging (mandatory).
- ``capacity``: percent (optional).
- ``voltage_max_design``: microvolts (optional).
- ``technology``: text, e.g. ``Li-ion`` (optional).

CHANGELOG:
- 2026-10-19: Fall back to technology-based design max voltage (STORY-003)
- 2026-10-19: Initial creation (STORY-003)

TODO:
- None
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path

from battery_alarm.src.models import Reading

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

DEFAULT_POWER_SUPPLY_ROOT = Path("/sys/class/power_supply")

MICRO: float = 1e-6
"""Scale from sysfs micro-units (µV, µA) to volts / amperes."""

LI_ION_DESIGN_MAX_V: float = 4.35
"""Design max voltage assumed for Li-ion cells without voltage_max_design."""

UNKNOWN_DESIGN_MAX_V: float = 5.0
"""Design max voltage used when no real ceiling is known."""

_MANDATORY_FILES = ("status", "voltage_now", "current_now")


# ---------------------------------------------------------------------------
# File helpers
# ---------------------------------------------------------------------------


def _readable(path: Path) -> bool:
    """Return True if *path* exists and the process may read it."""
    return path.is_file() and os.access(path, os.R_OK)


def _read_str(path: Path) -> str | None:
    """Read the first whitespace-separated token of a sysfs text file."""
    try:
        raw = path.read_text().split()
    except OSError:
        logger.debug("Unreadable sensor file %s", path)
        return None
    return raw[0] if raw else None


def _read_int(path: Path) -> int | None:
    """Read a sysfs integer file, returning None when missing or malformed."""
    raw = _read_str(path)
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError:
        logger.debug("Non-numeric value in %s: %s", path, raw)
        return None


def find_power_supply(root: str | Path = DEFAULT_POWER_SUPPLY_ROOT) -> Path | None:
    """Return the first device directory under *root* exposing voltage_now.

    Entries are visited in name order so the choice is stable across runs.
    """
    root = Path(root)
    try:
        candidates = sorted(root.iterdir())
    except OSError:
        logger.warning("Power-supply root %s is not accessible", root)
        return None
    for candidate in candidates:
        if (candidate / "voltage_now").exists():
            return candidate
    return None


def _now() -> datetime:
    """Current UTC time truncated to whole seconds."""
    return datetime.now(tz=UTC).replace(microsecond=0)


# ---------------------------------------------------------------------------
# Reader
# ---------------------------------------------------------------------------


class PowerSupplyReader:
    """Turns a power-supply device directory into Readings.

    The reader is valid only when a device directory was found and its
    ``status``, ``voltage_now`` and ``current_now`` files are readable.
    Callers must check :attr:`valid` once after construction; an invalid
    reader's :meth:`read` returns a zero-valued Reading.

    Args:
        root: Directory holding the power-supply devices.
        manual_switch: Charging state is supplied by the caller through
            :attr:`charging` instead of the ``status`` file.
        internal_resistance: Battery internal resistance in ohms.
        clock: Callable returning the sample timestamp (injectable for tests).
    """

    def __init__(
        self,
        *,
        root: str | Path = DEFAULT_POWER_SUPPLY_ROOT,
        manual_switch: bool = False,
        internal_resistance: float = 0.0,
        clock: Callable[[], datetime] = _now,
    ) -> None:
        self._manual_switch = manual_switch
        self._internal_resistance = internal_resistance
        self._clock = clock
        # Manual override; only consulted in manual switch mode.
        self.charging: bool = False

        self.device_path = find_power_supply(root)
        self.valid = self.device_path is not None and all(
            _readable(self.device_path / name) for name in _MANDATORY_FILES
        )
        if self.device_path is None:
            logger.error("No power-supply device exposing voltage_now under %s", root)
        elif not self.valid:
            logger.error(
                "Power-supply device %s lacks a readable status/voltage_now/current_now",
                self.device_path,
            )

        self._technology = ""
        self._design_max_voltage = UNKNOWN_DESIGN_MAX_V
        if self.valid:
            self._technology = _read_str(self.device_path / "technology") or ""
            design_uv = _read_int(self.device_path / "voltage_max_design")
            if design_uv:
                self._design_max_voltage = design_uv * MICRO
            elif self._technology.startswith("Li-ion"):
                self._design_max_voltage = LI_ION_DESIGN_MAX_V

    def technology(self) -> str:
        """Battery technology string (e.g. ``Li-ion``), empty if unknown."""
        return self._technology

    def design_max_voltage(self) -> float:
        """Designed maximum cell voltage in volts."""
        return self._design_max_voltage

    def read(self) -> Reading:
        """Take one sample from the gauge.

        Returns:
            A Reading with the out-of-range tag cleared, or a zero-valued
            Reading when the reader is invalid.
        """
        if not self.valid:
            return Reading.empty()
        device = self.device_path

        full = False
        if not self._manual_switch:
            status = (_read_str(device / "status") or "").lower()
            full = status.startswith("f")
            self.charging = full or status.startswith("c")
        charging = self.charging

        voltage = (_read_int(device / "voltage_now") or 0) * MICRO
        current = (_read_int(device / "current_now") or 0) * MICRO

        if self._manual_switch and charging:
            # Charging current bypasses the gauge, so no drop can be modelled.
            e = voltage
        else:
            e = voltage + (-current) * self._internal_resistance

        capacity = None
        if not self._manual_switch:
            capacity = _read_int(device / "capacity")

        return Reading(
            timestamp=self._clock(),
            charging=charging,
            full=full,
            voltage=voltage,
            e=e,
            current=current,
            capacity=capacity,
        )
