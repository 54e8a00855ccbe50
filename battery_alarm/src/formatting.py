"""
Text rendering for readings and session statistics.

Pure string builders for the terminal output, the statistics log and the
per-session detail logs.  Nothing here performs I/O.

Reading line::

    2026-10-19 14:03:05 Charging 55%, 3.912 V (E: 3.862 V), 0.500 A, 1.956 W   !

The ``(E: ...)`` part is shown only when E differs from the terminal
voltage, the capacity only when the gauge reports it, and the trailing ``!``
marks an out-of-range reading.  The power column is the terminal power
(voltage times current); statistics and alarms use the E-based figure from
:meth:`Reading.power` instead.  Timestamps are shown in local time.

CHANGELOG:
- 2026-10-19: Show terminal power and local time in reading lines (STORY-008)
- 2026-10-19: Initial creation (STORY-008)

TODO:
- None
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from battery_alarm.src.models import Reading
    from battery_alarm.src.statistics import SessionStatistics

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
FILENAME_TIMESTAMP_FORMAT = "%Y-%m-%d_%H_%M_%S"


def format_timestamp(ts: datetime, *, for_filename: bool = False) -> str:
    """Render a timestamp in local time; naive values are taken as local already."""
    if ts.tzinfo is not None:
        ts = ts.astimezone()
    return ts.strftime(FILENAME_TIMESTAMP_FORMAT if for_filename else TIMESTAMP_FORMAT)


def status_word(reading: Reading) -> str:
    """Return Full / Charging / Discharging for a reading."""
    if reading.charging:
        return "Full" if reading.full else "Charging"
    return "Discharging"


def format_reading(reading: Reading, *, with_status: bool = True) -> str:
    """Render one reading as a single line (without trailing newline).

    Args:
        reading: The tagged reading.
        with_status: Include the status word.  Detail logs omit it because
            the whole file belongs to one direction.
    """
    parts = [format_timestamp(reading.timestamp)]
    if with_status:
        parts.append(status_word(reading))
    line = " ".join(parts) + " "
    if reading.capacity is not None:
        line += f"{reading.capacity}%, "
    line += f"{reading.voltage:.3f} V"
    if reading.e != reading.voltage:
        line += f" (E: {reading.e:.3f} V)"
    line += f", {reading.current:.3f} A, {reading.voltage * reading.current:.3f} W"
    if reading.out_of_range:
        line += "   !"
    return line


def _capacity_suffix(capacity: int | None) -> str:
    return f" ({capacity}%)" if capacity is not None else ""


def render_statistics(stats: SessionStatistics) -> str:
    """Render the multi-line statistics block of a closed session.

    The result always ends with a newline.  Rendering the same statistics
    twice yields identical text.
    """
    lines = [
        f"{stats.direction} for {stats.span_s} seconds "
        f"(out of range in {stats.out_of_range_pct}% of time)",
        f"from {format_timestamp(stats.start)} to {format_timestamp(stats.end)},",
        f"Battery voltage changed from {stats.first_e:.3f} V"
        f"{_capacity_suffix(stats.first_capacity)} to {stats.last_e:.3f} V"
        f"{_capacity_suffix(stats.last_capacity)},",
    ]

    mah = round(abs(stats.charge_mah))
    if stats.circuit_consumption:
        outcome = "of energy spent by the computer circuit."
    elif stats.charging:
        outcome = "Charged."
    else:
        outcome = "Discharged."
    lines.append(f"{stats.net_energy_wh:.3f} Wh (about {mah} mAh) {outcome}")

    if stats.avg_power_w is not None:
        if stats.circuit_consumption:
            lines.append(f"Average computer power: {abs(stats.avg_power_w):.3f} W,")
        else:
            lines.append(
                f"Average power: {stats.avg_power_w:.3f} W "
                f"(resistive loss: {stats.avg_resistive_power_w:.3f} W),"
            )
    lines.append(f"Peak power: {stats.peak_power_w:.3f} W.")

    if stats.efficiency_pct is not None and stats.efficiency_pct < 100:
        lines.append(f"Efficiency: {stats.efficiency_pct}%.")

    if stats.full_capacity_wh is not None and stats.full_capacity_mah is not None:
        lines.append(
            f"Estimated full capacity: {stats.full_capacity_wh:.3f} Wh "
            f"(about {round(stats.full_capacity_mah)} mAh)."
        )
    return "\n".join(lines) + "\n"
