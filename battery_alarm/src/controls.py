"""
Runtime control flags and the stdin command listener.

The sampling loop and the input listener share exactly one
:class:`ControlFlags` object.  The listener is the only writer of each flag
and the sampler only reads them, once per tick; a flag may change between
two reads and the latest value wins.

Commands (one or more whitespace-separated words per line, only the first
letter of each word matters, case insensitive):

- ``e``: request exit (end of input does the same).
- ``l``: toggle saving of per-session detail logs.
- ``c`` / ``d``: manual switch mode only, set charging / discharging.

CHANGELOG:
- 2026-10-19: Replace process-wide flags with a shared ControlFlags object (STORY-011)
- 2026-10-19: Initial creation (STORY-011)

TODO:
- None
"""

from __future__ import annotations

import logging
import sys
import threading
from typing import TextIO

logger = logging.getLogger(__name__)


class ControlFlags:
    """Thread-safe boolean flags shared by the listener and the sampler.

    Args:
        log_saving: Initial state of detail-log saving (``-l`` flag).
    """

    def __init__(self, *, log_saving: bool = False) -> None:
        self._lock = threading.Lock()
        self._exit_requested = False
        self._manual_charging = False
        self._log_saving = log_saving

    @property
    def exit_requested(self) -> bool:
        with self._lock:
            return self._exit_requested

    @property
    def manual_charging(self) -> bool:
        with self._lock:
            return self._manual_charging

    @property
    def log_saving(self) -> bool:
        with self._lock:
            return self._log_saving

    def request_exit(self) -> None:
        with self._lock:
            self._exit_requested = True

    def set_manual_charging(self, charging: bool) -> None:
        with self._lock:
            self._manual_charging = charging

    def toggle_log_saving(self) -> bool:
        """Flip log saving and return the new state."""
        with self._lock:
            self._log_saving = not self._log_saving
            return self._log_saving


def apply_command(flags: ControlFlags, line: str, *, manual_switch: bool) -> list[str]:
    """Apply every command word of one input line to *flags*.

    Unknown words, and ``c``/``d`` outside manual switch mode, are ignored.

    Returns:
        Feedback messages for the user (one per log-saving toggle).
    """
    messages: list[str] = []
    for word in line.split():
        command = word[0].lower()
        if command == "e":
            flags.request_exit()
        elif command == "l":
            enabled = flags.toggle_log_saving()
            messages.append(f"Log Saving {'Enabled' if enabled else 'Disabled'}.")
        elif command in ("c", "d") and manual_switch:
            flags.set_manual_charging(command == "c")
        else:
            logger.debug("Ignoring input word %r", word)
    return messages


def usage_hint(manual_switch: bool) -> str:
    """Return the command help printed when the listener starts."""
    hint = (
        "press Ctrl+D or input 'e' to end the program, "
        "input 'l' to enable/disable log saving"
    )
    if manual_switch:
        return (
            hint
            + ", input 'c' (charging) or 'd' (discharging) to switch charging status.\n"
            "Notice: in manual switch mode the alarm follows your charging setting.\n"
        )
    return hint + ".\n"


class InputListener:
    """Reads command lines from a stream and updates the shared flags.

    Runs in a daemon thread that the sampler never joins.  End of input (or
    :meth:`stop`, which closes the stream) requests exit.

    Args:
        flags: The shared control flags.
        manual_switch: Accept ``c``/``d`` commands.
        stream: Line-oriented input (defaults to stdin).
        out: Where feedback messages are written (defaults to stdout).
    """

    def __init__(
        self,
        flags: ControlFlags,
        *,
        manual_switch: bool = False,
        stream: TextIO | None = None,
        out: TextIO | None = None,
    ) -> None:
        self._flags = flags
        self._manual_switch = manual_switch
        self._stream = stream if stream is not None else sys.stdin
        self._out = out if out is not None else sys.stdout
        self._thread: threading.Thread | None = None

    def start(self) -> threading.Thread:
        """Start listening in a daemon thread and return it."""
        self._out.write(usage_hint(self._manual_switch) + "\n")
        self._out.flush()
        self._thread = threading.Thread(target=self.run, name="input-listener", daemon=True)
        self._thread.start()
        return self._thread

    def run(self) -> None:
        """Consume the stream until end of input, then request exit."""
        try:
            for line in self._stream:
                for message in apply_command(self._flags, line, manual_switch=self._manual_switch):
                    self._out.write(message + "\n")
                    self._out.flush()
        except (OSError, ValueError):
            # ValueError: the stream was closed underneath us by stop().
            logger.debug("Input stream closed", exc_info=True)
        self._flags.request_exit()
        logger.info("Input ended, exit requested")

    def stop(self) -> None:
        """Close the input stream so :meth:`run` returns."""
        try:
            self._stream.close()
        except OSError:
            logger.debug("Failed to close input stream", exc_info=True)
