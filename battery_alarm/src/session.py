"""
Session accumulator for the battery sampling loop.

Folds the stream of tagged Readings into running totals for the current
charging or discharging session and decides when the session ends:

- the charging flag of a new reading differs from the session's flag,
- the gap since the previous reading exceeded the suspend ceiling
  (``SUSPEND_GAP_FACTOR`` sampling intervals, e.g. laptop sleep),
- the session holds ``MAX_SESSION_READINGS`` readings,
- the program is exiting.

Energy is integrated with the *previous* reading's instantaneous values over
the elapsed time, so the step that ends a session is still credited to it.
The reading that triggers a state change, follows a suspend gap or hits the
size cap seeds the next session, also when the program is exiting.

CHANGELOG:
- 2026-10-19: Keep post-suspend reading out of the session closed on exit (STORY-006)
- 2026-10-19: Drop trailing manual-switch artifacts before closing (STORY-006)
- 2026-10-19: Clamp integration step and close session on suspend gaps (STORY-006)
- 2026-10-19: Initial creation (STORY-005)

TODO:
- None
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from battery_alarm.src.models import Reading

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

MAX_SESSION_READINGS: int = 0x20000
"""Hard cap on readings kept per session (about 4 MB of samples)."""

MIN_STATISTICS_READINGS: int = 5
"""Sessions shorter than this produce no statistics block."""

SUSPEND_GAP_FACTOR: int = 5
"""Integration steps are capped at this many sampling intervals."""

ARTIFACT_LOOKBACK: int = 3
"""Readings between the reference and the last reading in manual mode."""

ARTIFACT_TRAILING: int = 2
"""At most this many trailing readings are dropped as manual-switch lag."""

ARTIFACT_VOLTAGE_JUMP_V: float = 0.1
"""Voltage jump over the lookback span that marks a manual-switch artifact."""


# ---------------------------------------------------------------------------
# Closed session snapshot
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ClosedSession:
    """A finished session handed to the statistics formatter.

    Attributes:
        charging: Charging state that defined the session.
        manual_switch: True when the session was recorded in manual mode.
        readings: The session's readings in sampling order.
        energy_wh: Energy absorbed by the battery (negative when discharging).
        charge_mah: Charge absorbed by the battery (negative when discharging).
        resistive_loss_wh: Energy dissipated in the internal resistance.
        peak_power_w: Signed power of the largest magnitude seen.
        out_of_range_count: Number of readings tagged out of range.
    """

    charging: bool
    manual_switch: bool
    readings: tuple[Reading, ...]
    energy_wh: float
    charge_mah: float
    resistive_loss_wh: float
    peak_power_w: float
    out_of_range_count: int


def drop_manual_switch_artifacts(readings: list[Reading]) -> int:
    """Remove trailing readings recorded before a manual toggle took effect.

    The last reading (and the one before it) is compared with the reading
    ``ARTIFACT_LOOKBACK`` samples before the last one.  Trailing readings
    whose voltage jumped by ``ARTIFACT_VOLTAGE_JUMP_V`` or more are popped,
    newest first, stopping at the first one that did not jump.

    Args:
        readings: Session readings; modified in place.

    Returns:
        Number of removed readings that were tagged out of range.
    """
    if len(readings) <= ARTIFACT_LOOKBACK:
        return 0
    reference = readings[-1 - ARTIFACT_LOOKBACK]
    removed_out_of_range = 0
    for _ in range(ARTIFACT_TRAILING):
        if abs(readings[-1].voltage - reference.voltage) < ARTIFACT_VOLTAGE_JUMP_V:
            break
        dropped = readings.pop()
        if dropped.out_of_range:
            removed_out_of_range += 1
        logger.info("Dropped manual-switch artifact reading at %s", dropped.timestamp)
    return removed_out_of_range


# ---------------------------------------------------------------------------
# Accumulator
# ---------------------------------------------------------------------------


class SessionAccumulator:
    """Stateful aggregator of readings into charging/discharging sessions.

    Args:
        check_interval_s: Nominal sampling interval in seconds.
        manual_switch: True in manual switch mode.
        max_readings: Session size cap (defaults to MAX_SESSION_READINGS).
    """

    def __init__(
        self,
        *,
        check_interval_s: float,
        manual_switch: bool = False,
        max_readings: int = MAX_SESSION_READINGS,
    ) -> None:
        self._max_dtime_s = SUSPEND_GAP_FACTOR * check_interval_s
        self._manual_switch = manual_switch
        self._max_readings = max_readings
        self._previous: Reading | None = None
        self.reset()

    # -- Read-only views ----------------------------------------------------

    @property
    def readings(self) -> tuple[Reading, ...]:
        return tuple(self._readings)

    @property
    def charging(self) -> bool | None:
        """Charging state of the open session, None while it is empty."""
        return self._charging

    @property
    def energy_wh(self) -> float:
        return self._energy_wh

    @property
    def charge_mah(self) -> float:
        return self._charge_mah

    @property
    def resistive_loss_wh(self) -> float:
        return self._resistive_loss_wh

    @property
    def peak_power_w(self) -> float:
        return self._peak_power_w

    @property
    def out_of_range_count(self) -> int:
        return self._out_of_range_count

    # -- State transitions --------------------------------------------------

    def reset(self) -> None:
        """Discard the open session and zero all running sums."""
        self._readings: list[Reading] = []
        self._charging: bool | None = None
        self._energy_wh = 0.0
        self._charge_mah = 0.0
        self._resistive_loss_wh = 0.0
        self._peak_power_w = 0.0
        self._out_of_range_count = 0

    def fold(self, reading: Reading, *, exit_requested: bool = False) -> ClosedSession | None:
        """Fold one tagged reading into the open session.

        Args:
            reading: The new reading, already tagged by the alarm evaluator.
            exit_requested: True when the program is shutting down; closes
                the session after this reading.

        Returns:
            The closed session when this reading ended one that holds at
            least MIN_STATISTICS_READINGS readings, otherwise None.
        """
        previous = self._previous
        self._previous = reading
        if previous is None:
            self._seed(reading)
            if exit_requested:
                return self._close()
            return None

        gap_s = (reading.timestamp - previous.timestamp).total_seconds()
        suspended = gap_s > self._max_dtime_s
        dtime_s = min(max(gap_s, 0.0), self._max_dtime_s)
        if suspended:
            logger.warning(
                "Gap of %.0fs between samples (suspend?), integrating %.0fs only",
                gap_s,
                dtime_s,
            )
        self._integrate(previous, dtime_s)

        full = len(self._readings) >= self._max_readings
        state_changed = reading.charging != self._charging
        if not (full or state_changed or suspended or exit_requested):
            self._add(reading)
            return None

        if exit_requested and not (full or state_changed or suspended):
            self._add(reading)
            return self._close()

        closed = self._close()
        self._seed(reading)
        return closed

    def flush(self) -> ClosedSession | None:
        """Close the open session without folding a new reading."""
        return self._close()

    # -- Internals ----------------------------------------------------------

    def _integrate(self, previous: Reading, dtime_s: float) -> None:
        hours = dtime_s / 3600
        self._energy_wh += previous.power() * hours
        self._charge_mah += previous.current * 1000 * hours
        if not (self._manual_switch and previous.charging):
            self._resistive_loss_wh += abs((previous.e - previous.voltage) * previous.current) * hours

    def _seed(self, reading: Reading) -> None:
        self._charging = reading.charging
        self._add(reading)

    def _add(self, reading: Reading) -> None:
        self._readings.append(reading)
        if reading.out_of_range:
            self._out_of_range_count += 1
        power = reading.power()
        if abs(power) > abs(self._peak_power_w):
            self._peak_power_w = power

    def _close(self) -> ClosedSession | None:
        readings = self._readings
        out_of_range_count = self._out_of_range_count
        if self._manual_switch:
            out_of_range_count -= drop_manual_switch_artifacts(readings)

        closed = None
        if len(readings) >= MIN_STATISTICS_READINGS and self._charging is not None:
            closed = ClosedSession(
                charging=self._charging,
                manual_switch=self._manual_switch,
                readings=tuple(readings),
                energy_wh=self._energy_wh,
                charge_mah=self._charge_mah,
                resistive_loss_wh=self._resistive_loss_wh,
                peak_power_w=self._peak_power_w,
                out_of_range_count=out_of_range_count,
            )
        else:
            logger.info("Session of %d readings closed without statistics", len(readings))
        self.reset()
        return closed
