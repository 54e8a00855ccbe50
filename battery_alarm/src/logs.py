"""
Statistics and per-session detail log writers.

- :class:`SummaryLog` appends every statistics block to one text file that
  accumulates across process restarts.
- :func:`write_detail_log` writes one file per closed session, named after
  the session direction and start time, holding the statistics block
  followed by every reading line.

Loss of a log is not loss of the live alarm: write failures are logged and
skipped, never raised and never retried.

CHANGELOG:
- 2026-10-19: Initial creation (STORY-010)

TODO:
- None
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from battery_alarm.src.formatting import format_reading, format_timestamp

if TYPE_CHECKING:
    from battery_alarm.src.session import ClosedSession
    from battery_alarm.src.statistics import SessionStatistics

logger = logging.getLogger(__name__)

SUMMARY_LOG_FILENAME = "statistics.log"


class SummaryLog:
    """Append-only statistics log.

    Args:
        path: Filesystem path for the log file. Accepts str or Path.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def append(self, text: str) -> bool:
        """Append one statistics block followed by a blank line.

        Returns:
            True when the block was written, False on any I/O error.
        """
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("a", encoding="utf-8") as fh:
                fh.write(text + "\n")
        except OSError:
            logger.warning("Failed to append statistics to %s", self.path, exc_info=True)
            return False
        return True


def detail_log_name(stats: SessionStatistics) -> str:
    """File name of a session's detail log, e.g. ``Charging_2026-10-19_14_03_05.log``."""
    return f"{stats.direction}_{format_timestamp(stats.start, for_filename=True)}.log"


def write_detail_log(
    directory: str | Path,
    stats_text: str,
    stats: SessionStatistics,
    session: ClosedSession,
) -> Path | None:
    """Write the detail log of one closed session.

    Args:
        directory: Directory to create the file in.
        stats_text: Rendered statistics block.
        stats: Statistics of the session (used for the file name).
        session: The closed session whose readings are written.

    Returns:
        The written file path, or ``None`` when writing failed.
    """
    path = Path(directory) / detail_log_name(stats)
    body = [stats_text]
    body.extend(format_reading(r, with_status=False) for r in session.readings)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("\n".join(body) + "\n", encoding="utf-8")
    except OSError:
        logger.warning("Failed to write detail log %s", path, exc_info=True)
        return None
    logger.info("Detail log written to %s", path)
    return path
