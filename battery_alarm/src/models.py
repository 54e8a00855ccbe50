"""
Pydantic models for battery power-supply readings.

Defines the Reading model that represents a single snapshot of the battery
gauge after the raw sysfs micro-unit integers have been scaled to volts and
amperes and the internal-resistance correction has been applied.

CHANGELOG:
- 2026-10-19: Initial creation (STORY-002)

TODO:
- None
"""

from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict


class Reading(BaseModel):
    """A single battery sample taken from the power-supply gauge.

    Readings are immutable once built by the sensor reader.  The only field
    that changes after construction is ``out_of_range``, which the alarm
    evaluator sets through :meth:`tagged` (returning a new instance).

    Attributes:
        timestamp: Absolute (UTC) time of the sample, second resolution.
            Converted to local time only for display.
        charging: True while the battery is charging (or full).
        full: True when the gauge reports a full battery.
        voltage: Measured terminal voltage in volts.
        e: Modelled equilibrium (open-circuit) voltage in volts, i.e. the
            terminal voltage with the internal-resistance drop removed.
        current: Battery current in amperes.
            Positive = charging, negative = discharging.
        capacity: Remaining capacity in percent (0-100), or None when the
            gauge does not report it.
        out_of_range: Set by the alarm evaluator, never by the reader.
    """

    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    charging: bool = False
    full: bool = False
    voltage: float = 0.0
    e: float = 0.0
    current: float = 0.0
    capacity: int | None = None
    out_of_range: bool = False

    def power(self) -> float:
        """Return the power absorbed by the battery in watts.

        While charging the power is taken against the terminal voltage;
        while discharging it is taken against E so the resistive drop
        inside the cell is not counted as delivered energy.  In manual
        switch mode while charging E equals the terminal voltage and the
        value is the (negative) power drawn by the computer circuit.
        """
        if self.current >= 0:
            return self.voltage * self.current
        return self.e * self.current

    def tagged(self, out_of_range: bool) -> Reading:
        """Return a copy of this reading with the out-of-range tag set."""
        return self.model_copy(update={"out_of_range": out_of_range})

    @classmethod
    def empty(cls) -> Reading:
        """Return the zero-valued reading produced by an invalid reader."""
        return cls(timestamp=datetime.fromtimestamp(0, tz=UTC))
