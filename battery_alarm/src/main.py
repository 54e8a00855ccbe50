"""
Battery alarm entrypoint and sampling loop.

Runs two threads of control:
1. **Sampling loop** (asyncio): every ``check_interval_s`` seconds reads one
   sample from the power-supply gauge, classifies it, prints its line, rings
   the terminal bell when needed, and folds it into the session accumulator.
   When a session closes its statistics are printed, appended to the
   statistics log and, if log saving is on, written to a detail log.
2. **Input listener** (daemon thread): reads commands from stdin and updates
   the shared ControlFlags.  It is never joined.

The sampling loop checks the exit flag once per tick; the tick that observes
it performs the final session flush and then returns.  SIGTERM/SIGINT set
the same flag.  An exception inside one tick is logged and does not stop
the loop.

Structured JSON logging on stderr is used for diagnostics; the reading lines
and statistics blocks go to stdout.

CHANGELOG:
- 2026-10-19: Flush the open session when the exit tick fails (STORY-013)
- 2026-10-19: Load config through the wizard when missing or damaged (STORY-012)
- 2026-10-19: Initial creation (STORY-013)

TODO:
- None
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import signal
import sys
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, TextIO

from pydantic import ValidationError

from battery_alarm.src.alarm import classify
from battery_alarm.src.formatting import format_reading, render_statistics
from battery_alarm.src.logs import SUMMARY_LOG_FILENAME, SummaryLog, write_detail_log
from battery_alarm.src.statistics import compute_statistics

if TYPE_CHECKING:
    from battery_alarm.src.config import AlarmConfig, AlarmSettings
    from battery_alarm.src.controls import ControlFlags
    from battery_alarm.src.sensor import PowerSupplyReader
    from battery_alarm.src.session import ClosedSession, SessionAccumulator

logger = logging.getLogger(__name__)

VERSION = "1.10"


# ---------------------------------------------------------------------------
# Structured JSON logging setup
# ---------------------------------------------------------------------------


def configure_logging(level: str = "WARNING") -> None:
    """Configure structured JSON logging on stderr.

    Args:
        level: Root logger level name.
    """

    class _JsonFormatter(logging.Formatter):
        """Minimal JSON log formatter."""

        def format(self, record: logging.LogRecord) -> str:
            log_entry = {
                "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
                "level": record.levelname,
                "logger": record.name,
                "msg": record.getMessage(),
            }
            if record.exc_info and record.exc_info[1] is not None:
                log_entry["exception"] = self.formatException(record.exc_info)
            return json.dumps(log_entry)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(_JsonFormatter())
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)


def log_settings_summary(settings: AlarmSettings) -> None:
    """Log the runtime settings at startup."""
    logger.info(
        "Battery alarm starting with settings: "
        "check_interval_s=%s, power_supply_root=%s, config_dir=%s, data_dir=%s",
        settings.check_interval_s,
        settings.power_supply_root,
        settings.config_dir,
        settings.data_dir,
    )


# ---------------------------------------------------------------------------
# Single-tick functions (easily testable)
# ---------------------------------------------------------------------------


def _flush_session(
    closed: ClosedSession,
    *,
    out: TextIO,
    summary_log: SummaryLog,
    data_dir: Path,
    save_detail: bool,
) -> str:
    """Emit the statistics of a closed session to every sink.

    Returns:
        The rendered statistics block.
    """
    stats = compute_statistics(closed)
    text = render_statistics(stats)
    out.write("\n" + text + "\n")
    summary_log.append(text)
    if save_detail:
        path = write_detail_log(data_dir, text, stats, closed)
        if path is not None:
            out.write(f"log file {path} saved.\n\n")
    out.flush()
    return text


def _sample_once(
    *,
    reader: PowerSupplyReader,
    config: AlarmConfig,
    accumulator: SessionAccumulator,
    flags: ControlFlags,
    out: TextIO,
    summary_log: SummaryLog,
    data_dir: Path,
    exit_requested: bool,
) -> ClosedSession | None:
    """Execute a single read-classify-print-fold cycle.

    Args:
        reader: The power-supply reader.
        config: Alarm thresholds and mode.
        accumulator: The session accumulator.
        flags: Shared control flags (manual charging, log saving).
        out: Terminal output stream.
        summary_log: Append-only statistics log.
        data_dir: Directory for detail logs.
        exit_requested: Exit flag snapshot taken at the start of the tick.

    Returns:
        The session closed by this tick, if it produced statistics.
    """
    if config.manual_switch:
        reader.charging = flags.manual_charging
    reading = reader.read()

    decision = classify(reading, config, reader.design_max_voltage())
    reading = reading.tagged(decision.out_of_range)
    out.write(format_reading(reading) + "\n")
    if decision.beep:
        out.write("\a")
    out.flush()

    closed = accumulator.fold(reading, exit_requested=exit_requested)
    if closed is not None:
        _flush_session(
            closed,
            out=out,
            summary_log=summary_log,
            data_dir=data_dir,
            save_detail=flags.log_saving,
        )
    return closed


# ---------------------------------------------------------------------------
# Loop runner
# ---------------------------------------------------------------------------


async def run_sampler(
    *,
    reader: PowerSupplyReader,
    config: AlarmConfig,
    accumulator: SessionAccumulator,
    flags: ControlFlags,
    check_interval_s: float,
    data_dir: Path,
    out: TextIO | None = None,
    summary_log: SummaryLog | None = None,
) -> None:
    """Run the sampling loop until the exit flag has been observed.

    The tick that sees ``flags.exit_requested`` folds its reading with the
    exit marker (closing the open session) and the loop returns.  If that
    tick fails, the open session is flushed without a final reading.

    Args:
        reader: A valid power-supply reader.
        config: Alarm thresholds and mode.
        accumulator: The session accumulator.
        flags: Shared control flags.
        check_interval_s: Seconds between samples.
        data_dir: Directory for the statistics log and detail logs.
        out: Terminal output stream (defaults to stdout).
        summary_log: Statistics log (defaults to data_dir/statistics.log).
    """
    out = out if out is not None else sys.stdout
    data_dir = Path(data_dir)
    if summary_log is None:
        summary_log = SummaryLog(data_dir / SUMMARY_LOG_FILENAME)

    logger.info("Sampling loop started (interval=%ss)", check_interval_s)
    while True:
        exit_requested = flags.exit_requested
        try:
            _sample_once(
                reader=reader,
                config=config,
                accumulator=accumulator,
                flags=flags,
                out=out,
                summary_log=summary_log,
                data_dir=data_dir,
                exit_requested=exit_requested,
            )
        except Exception:
            logger.error("Sampling tick error", exc_info=True)
            if exit_requested:
                # The exit fold never ran; close the open session directly.
                closed = accumulator.flush()
                if closed is not None:
                    _flush_session(
                        closed,
                        out=out,
                        summary_log=summary_log,
                        data_dir=data_dir,
                        save_detail=flags.log_saving,
                    )
        if exit_requested:
            break
        await asyncio.sleep(check_interval_s)
    logger.info("Sampling loop stopped")


# ---------------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------------


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="battery-alarm",
        description=(
            "Make alarm sound in the terminal while battery voltage is out of "
            "range, and print charge/discharge statistics."
        ),
    )
    parser.add_argument("-l", "--log", action="store_true", help="Enable log saving")
    parser.add_argument("-c", "--configure", action="store_true", help="Reconfigure")
    return parser.parse_args(argv)


def _resolve_config(
    settings: AlarmSettings, *, reconfigure: bool, out: TextIO
) -> AlarmConfig | None:
    """Load the saved AlarmConfig or run the wizard to create one.

    Returns:
        The config, or ``None`` when no usable power-supply device exists.
    """
    from battery_alarm.src.config import load_config, save_config
    from battery_alarm.src.sensor import PowerSupplyReader
    from battery_alarm.src.wizard import run_wizard

    config = None if reconfigure else load_config(settings.config_path)
    if config is not None:
        out.write(
            f"{settings.config_path} found:\n{config.describe()}\n"
            "You can reconfigure the program (remeasure internal resistance) "
            "by adding parameter -c.\n"
        )
        return config

    probe = PowerSupplyReader(root=settings.power_supply_root)
    if not probe.valid:
        out.write(
            "Sorry: Failed to find device file. "
            "Maybe this program doesn't support your computer.\n"
        )
        return None

    out.write(f"simple-battery-voltage-alarm Version {VERSION}\n")
    config = run_wizard(probe, out=out)
    if save_config(config, settings.config_path):
        out.write("\tConfig saved successfully.\n\n")
    return config


async def async_main(
    settings: AlarmSettings, config: AlarmConfig, *, log_saving: bool
) -> int:
    """Async entrypoint: build components, start the listener, run the loop.

    Sets up SIGTERM/SIGINT handlers that request exit.

    Returns:
        Process exit status.
    """
    from battery_alarm.src.controls import ControlFlags, InputListener
    from battery_alarm.src.sensor import PowerSupplyReader
    from battery_alarm.src.session import SessionAccumulator

    reader = PowerSupplyReader(
        root=settings.power_supply_root,
        manual_switch=config.manual_switch,
        internal_resistance=config.internal_resistance,
    )
    if not reader.valid:
        print("Error: Failed to read power status.", file=sys.stderr)
        return 1

    flags = ControlFlags(log_saving=log_saving)

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, lambda: _handle_signal(flags))

    InputListener(flags, manual_switch=config.manual_switch).start()

    accumulator = SessionAccumulator(
        check_interval_s=settings.check_interval_s,
        manual_switch=config.manual_switch,
    )
    await run_sampler(
        reader=reader,
        config=config,
        accumulator=accumulator,
        flags=flags,
        check_interval_s=settings.check_interval_s,
        data_dir=settings.data_dir,
    )
    return 0


def _handle_signal(flags: ControlFlags) -> None:
    """Handle SIGTERM/SIGINT by requesting exit.

    Args:
        flags: The shared control flags.
    """
    logger.info("Received shutdown signal, finishing the current session")
    flags.request_exit()


def main(argv: list[str] | None = None) -> int:
    """Synchronous entrypoint for the battery alarm."""
    from battery_alarm.src.config import AlarmSettings

    args = parse_args(argv)
    try:
        settings = AlarmSettings()
    except ValidationError as exc:
        print(f"Invalid settings: {exc}", file=sys.stderr)
        return 1
    configure_logging(settings.log_level)
    log_settings_summary(settings)

    config = _resolve_config(settings, reconfigure=args.configure, out=sys.stdout)
    if config is None:
        return 1
    return asyncio.run(async_main(settings, config, log_saving=args.log))


if __name__ == "__main__":
    raise SystemExit(main())
