"""
Interactive first-run configuration wizard.

Asks whether the machine needs manual switch mode, measures the battery
internal resistance from two samples taken at different load currents, and
asks for the voltage window and power ceiling.  Prompts go through an
injectable ``prompt`` callable (``input`` by default) so the flow can be
driven from tests.

Internal resistance (DC two-point method, currents in the discharging
direction)::

    U1 = E - I1 * r
    U2 = E - I2 * r      =>   r = (U2 - U1) / (I1 - I2)

CHANGELOG:
- 2026-10-19: Initial creation (STORY-012)

TODO:
- None
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Callable
from typing import TYPE_CHECKING, TextIO

from pydantic import ValidationError

from battery_alarm.src.config import AlarmConfig

if TYPE_CHECKING:
    from battery_alarm.src.models import Reading
    from battery_alarm.src.sensor import PowerSupplyReader

logger = logging.getLogger(__name__)

MIN_CURRENT_CHANGE_A: float = 0.001
"""Smallest current change that allows a resistance estimate."""


def estimate_internal_resistance(first: Reading, second: Reading) -> float | None:
    """Estimate internal resistance from two discharging samples.

    Returns:
        The resistance in ohms, or ``None`` when the current did not change
        enough between the samples.
    """
    u1, i1 = first.voltage, -first.current
    u2, i2 = second.voltage, -second.current
    if abs(i1 - i2) < MIN_CURRENT_CHANGE_A:
        return None
    return (u2 - u1) / (i1 - i2)


def _is_yes(answer: str) -> bool:
    return answer.strip().lower().startswith("y")


def run_wizard(
    reader: PowerSupplyReader,
    *,
    prompt: Callable[[str], str] = input,
    out: TextIO | None = None,
) -> AlarmConfig:
    """Walk the user through creating an AlarmConfig.

    Args:
        reader: A valid reader built in automatic mode with zero internal
            resistance, used for the two measurement samples.
        prompt: Line input function.
        out: Where informational text is written (defaults to stdout).

    Returns:
        The new configuration.  Answers that cannot be used keep the
        default values.
    """
    out = out if out is not None else sys.stdout
    defaults = AlarmConfig()

    out.write(
        "\tConfig not found, we'll start configuration.\n\n"
        "\tRequirement: driver support of your fuel gauge in the running kernel.\n\n"
    )
    manual_switch = _is_yes(
        prompt(
            "\tHas the charge circuit been modified so the battery is charged "
            "directly and the power gauge cannot see the charging status? (Y/n) "
        )
    )
    if manual_switch:
        out.write(
            "\tNotice: the gauge percentage may be wrong because charging current "
            "does not flow through it.\n"
        )

    technology = reader.technology()
    if technology:
        out.write(f"\tBattery technology: {technology}\n")
    if not technology.startswith("Li-ion"):
        out.write("\tThis program is made for Li-ion batteries, it might be improper for yours.\n")
    out.write(f"\tDesigned max voltage: {reader.design_max_voltage():.3f} V\n\n")

    out.write("\tWe'll measure the internal resistance of the battery.\n")
    if manual_switch:
        prompt("\tPlease make sure you're discharging, then press Enter to continue...")
    first = reader.read()
    out.write(f"\tSample 1: {first.voltage:.3f} V, {-first.current:.3f} A.\n")
    prompt(
        "\tPlease do something to make the current change"
        + (" (but keep discharging)" if manual_switch else "")
        + ", then press Enter to continue..."
    )
    second = reader.read()
    out.write(f"\tSample 2: {second.voltage:.3f} V, {-second.current:.3f} A.\n")

    internal_resistance = defaults.internal_resistance
    measured = estimate_internal_resistance(first, second)
    if measured is None:
        out.write(
            f"\tThe current has not changed, r was set to default: {internal_resistance} Ω.\n"
        )
    elif measured < 0:
        out.write(f"\tMeasured r ({measured:.4f} Ω) is negative, using default.\n")
    elif _is_yes(prompt(f"\tr: {measured:.4f} Ω. Do you think it's the right value? (Y/n) ")):
        internal_resistance = measured
    else:
        out.write(f"\tr was set to default: {internal_resistance} Ω.\n")
    out.write("\n")

    values = {}
    try:
        values["min_voltage"] = float(
            prompt("\tPlease input Min voltage (V, alarm while lower than this): ")
        )
        values["max_voltage"] = float(
            prompt("\tMax voltage (V, not very well for the battery if higher): ")
        )
        values["max_power"] = float(prompt("\tMax power (W, absolute): "))
    except ValueError:
        values = {}

    try:
        config = AlarmConfig(
            manual_switch=manual_switch, internal_resistance=internal_resistance, **values
        )
    except ValidationError:
        logger.warning("Rejected threshold input %s", values, exc_info=True)
        values = {}
        config = AlarmConfig(manual_switch=manual_switch, internal_resistance=internal_resistance)
    if not values:
        out.write(
            "\n\tSorry, the thresholds are not usable. Default values will be used: "
            f"{config.min_voltage}~{config.max_voltage} V, {config.max_power} W.\n"
        )
    return config
