"""
Session statistics derived from a closed charging/discharging session.

:func:`compute_statistics` is a pure projection of a
:class:`~battery_alarm.src.session.ClosedSession` into a
:class:`SessionStatistics` model.  It may be called any number of times on
the same session and always yields the same values; rendering to text lives
in :mod:`battery_alarm.src.formatting`.

Derived values:

- span, percentage of readings out of range, first/last voltage, E and
  capacity;
- net energy: for an automatic-mode charging session the resistive loss is
  subtracted (it heated the cell instead of charging it); otherwise the
  absolute integrated energy.  In manual switch mode a charging session's
  energy is the consumption of the computer circuit;
- average, peak and average resistive power; efficiency;
- full capacity estimate when the gauge capacity moved by at least
  ``MIN_CAPACITY_DELTA_PCT`` points (automatic mode only).

CHANGELOG:
- 2026-10-19: Add full capacity estimate (STORY-007)
- 2026-10-19: Initial creation (STORY-007)

TODO:
- None
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict

if TYPE_CHECKING:
    from battery_alarm.src.session import ClosedSession

MIN_CAPACITY_DELTA_PCT: int = 5
"""Capacity change (percentage points) needed for a full capacity estimate."""


class SessionStatistics(BaseModel):
    """Statistics of one closed session.

    Energy values keep the battery sign convention (positive = into the
    battery) except ``net_energy_wh``, which is a magnitude.
    """

    model_config = ConfigDict(frozen=True)

    charging: bool
    manual_switch: bool
    start: datetime
    end: datetime
    span_s: int
    sample_count: int
    out_of_range_pct: int
    first_voltage: float
    last_voltage: float
    first_e: float
    last_e: float
    first_capacity: int | None = None
    last_capacity: int | None = None
    capacity_delta: int | None = None
    energy_wh: float
    charge_mah: float
    resistive_loss_wh: float
    net_energy_wh: float
    avg_power_w: float | None = None
    avg_resistive_power_w: float | None = None
    peak_power_w: float
    efficiency_pct: int | None = None
    full_capacity_wh: float | None = None
    full_capacity_mah: float | None = None

    @property
    def direction(self) -> str:
        """``Charging`` or ``Discharging``, used in text and file names."""
        return "Charging" if self.charging else "Discharging"

    @property
    def circuit_consumption(self) -> bool:
        """True when the energy figure is the computer's own consumption."""
        return self.manual_switch and self.charging


def compute_statistics(session: ClosedSession) -> SessionStatistics:
    """Project a closed session into its statistics.

    This is a **pure function**: no I/O, no clock, and the session is not
    modified.

    Args:
        session: A closed session holding at least one reading.

    Returns:
        The derived :class:`SessionStatistics`.
    """
    first = session.readings[0]
    last = session.readings[-1]
    sample_count = len(session.readings)
    span_s = int((last.timestamp - first.timestamp).total_seconds())

    energy_wh = session.energy_wh
    loss_wh = session.resistive_loss_wh
    if session.charging and not session.manual_switch:
        net_energy_wh = energy_wh - loss_wh
    else:
        net_energy_wh = abs(energy_wh)

    avg_power_w = avg_resistive_power_w = None
    if span_s > 0:
        avg_power_w = energy_wh * 3600 / span_s
        avg_resistive_power_w = loss_wh * 3600 / span_s

    efficiency_pct = None
    if energy_wh != 0 and not (session.manual_switch and session.charging):
        efficiency_pct = round((1 - loss_wh / abs(energy_wh)) * 100)

    first_capacity = last_capacity = capacity_delta = None
    full_capacity_wh = full_capacity_mah = None
    if not session.manual_switch:
        first_capacity = first.capacity
        last_capacity = last.capacity
        if first_capacity is not None and last_capacity is not None:
            capacity_delta = last_capacity - first_capacity
            if abs(capacity_delta) >= MIN_CAPACITY_DELTA_PCT:
                scale = 100 / abs(capacity_delta)
                full_capacity_wh = net_energy_wh * scale
                full_capacity_mah = abs(session.charge_mah) * scale

    return SessionStatistics(
        charging=session.charging,
        manual_switch=session.manual_switch,
        start=first.timestamp,
        end=last.timestamp,
        span_s=span_s,
        sample_count=sample_count,
        out_of_range_pct=int(session.out_of_range_count * 100 / sample_count),
        first_voltage=first.voltage,
        last_voltage=last.voltage,
        first_e=first.e,
        last_e=last.e,
        first_capacity=first_capacity,
        last_capacity=last_capacity,
        capacity_delta=capacity_delta,
        energy_wh=energy_wh,
        charge_mah=session.charge_mah,
        resistive_loss_wh=loss_wh,
        net_energy_wh=net_energy_wh,
        avg_power_w=avg_power_w,
        avg_resistive_power_w=avg_resistive_power_w,
        peak_power_w=session.peak_power_w,
        efficiency_pct=efficiency_pct,
        full_capacity_wh=full_capacity_wh,
        full_capacity_mah=full_capacity_mah,
    )
