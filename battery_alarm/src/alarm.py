"""
Pure alarm evaluator for battery readings.

Maps a Reading plus the configured thresholds to two independent decisions:

- ``out_of_range``: the reading is recorded as out of range and counts
  towards the session statistics.
- ``sound_alarm``: the terminal bell should ring.  This ignores two benign
  artifacts: a low terminal voltage right after the charger is plugged in
  (the gauge already says charging while the current is still settling) and
  E relaxing down through the upper limit while discharging.

Both are computed from their own formula; neither is derived from the other.

CHANGELOG:
- 2026-10-19: Include design max voltage in both decisions (STORY-004)
- 2026-10-19: Initial creation (STORY-004)

TODO:
- None
"""

from __future__ import annotations

from typing import TYPE_CHECKING, NamedTuple

if TYPE_CHECKING:
    from battery_alarm.src.config import AlarmConfig
    from battery_alarm.src.models import Reading


class AlarmDecision(NamedTuple):
    """Result of classifying one reading."""

    out_of_range: bool
    sound_alarm: bool

    @property
    def beep(self) -> bool:
        """True when the bell should actually ring for this reading."""
        return self.out_of_range and self.sound_alarm


def classify(
    reading: Reading,
    config: AlarmConfig,
    design_max_voltage: float,
) -> AlarmDecision:
    """Classify a reading against the alarm thresholds.

    This is a **pure function**: no I/O and no state.

    Args:
        reading: The sample to classify.
        config: Alarm thresholds and mode.
        design_max_voltage: Designed maximum cell voltage from the gauge.

    Returns:
        The pair of out-of-range / sound-alarm decisions.
    """
    power = abs(reading.power())
    too_low = reading.voltage < config.min_voltage
    over_design = reading.voltage > design_max_voltage
    e_too_high = reading.e > config.max_voltage
    too_much_power = power > config.max_power

    out_of_range = too_low or e_too_high or over_design or too_much_power

    actually_discharging = not reading.charging or (
        not config.manual_switch and reading.current < 0
    )
    sound_alarm = (
        (actually_discharging and too_low)
        or over_design
        or (reading.charging and e_too_high)
        or too_much_power
    )
    return AlarmDecision(out_of_range=out_of_range, sound_alarm=sound_alarm)
