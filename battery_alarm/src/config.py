"""
Battery alarm configuration.

Two layers of configuration live here:

- :class:`AlarmConfig` holds the per-battery alarm thresholds and the
  internal resistance estimate.  It is produced by the first-run wizard and
  persisted as JSON in the config directory.  A missing or malformed file is
  treated as "not configured" so the wizard runs again instead of crashing.
- :class:`AlarmSettings` holds the runtime settings (sampling interval,
  sysfs root, directories, log level) loaded from environment variables or
  a ``.env`` file via Pydantic BaseSettings.

CHANGELOG:
- 2026-10-19: Replace line-ordered config text with validated JSON (STORY-009)
- 2026-10-19: Initial creation (STORY-001)

TODO:
- None
"""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "config.json"
"""Name of the persisted AlarmConfig file inside the config directory."""

DEFAULT_CONFIG_DIR = Path.home() / ".config" / "simple-battery-voltage-alarm"


class AlarmConfig(BaseModel):
    """Alarm thresholds and battery model for one machine.

    Attributes:
        manual_switch: True when the gauge cannot report the charging state
            and the user toggles it by hand (the measured current is then
            the computer circuit's consumption).
        internal_resistance: Estimated battery internal resistance in ohms.
        min_voltage: Alarm while the terminal voltage is lower than this.
        max_voltage: Alarm while E (equilibrium voltage) is higher than this.
        max_power: Alarm while the absolute battery power exceeds this (W).
    """

    manual_switch: bool = False
    internal_resistance: float = 0.1
    min_voltage: float = 3.8
    max_voltage: float = 4.15
    max_power: float = 5.0

    @field_validator("internal_resistance")
    @classmethod
    def internal_resistance_must_be_non_negative(cls, v: float) -> float:
        """Validate the internal resistance is not negative."""
        if v < 0:
            raise ValueError("internal_resistance must be >= 0")
        return v

    @field_validator("max_power")
    @classmethod
    def max_power_must_be_positive(cls, v: float) -> float:
        """Validate the power ceiling is a positive magnitude."""
        if v <= 0:
            raise ValueError("max_power must be > 0")
        return v

    @model_validator(mode="after")
    def _voltage_window_must_be_ordered(self) -> AlarmConfig:
        """Reject a voltage window whose lower bound is not below the upper."""
        if self.min_voltage >= self.max_voltage:
            raise ValueError(
                f"min_voltage ({self.min_voltage}) must be lower than "
                f"max_voltage ({self.max_voltage})"
            )
        return self

    def describe(self) -> str:
        """Return a human-readable multi-line summary of the config."""
        return (
            f"Manual switch: {'Enabled' if self.manual_switch else 'Disabled'}\n"
            f"Internal resistance: {self.internal_resistance:.4f} Ω\n"
            f"Min voltage: {self.min_voltage:.3f} V\n"
            f"Max voltage: {self.max_voltage:.3f} V\n"
            f"Max power: {self.max_power:.3f} W\n"
        )


class AlarmSettings(BaseSettings):
    """Runtime settings for the battery alarm.

    All values may be overridden with ``BATTERY_ALARM_*`` environment
    variables or a ``.env`` file in the working directory.

    Attributes:
        check_interval_s: Seconds between samples (min 1).
        power_supply_root: Directory holding the power-supply devices.
        config_dir: Directory holding ``config.json``.
        data_dir: Directory for the statistics log and per-session detail
            logs.  Defaults to config_dir if not set.
        log_level: Level for the diagnostic JSON log on stderr.
    """

    check_interval_s: int = 5
    power_supply_root: Path = Path("/sys/class/power_supply")
    config_dir: Path = Field(default_factory=lambda: DEFAULT_CONFIG_DIR)
    data_dir: Path | None = None
    log_level: str = "WARNING"

    @model_validator(mode="after")
    def _default_data_dir(self) -> AlarmSettings:
        """Default data_dir to config_dir when not explicitly set."""
        if self.data_dir is None:
            self.data_dir = self.config_dir
        return self

    @field_validator("check_interval_s")
    @classmethod
    def check_interval_must_be_positive(cls, v: int) -> int:
        """Validate the sampling interval is at least one second."""
        if v < 1:
            raise ValueError("BATTERY_ALARM_CHECK_INTERVAL_S must be >= 1")
        return v

    @field_validator("log_level")
    @classmethod
    def log_level_must_be_known(cls, v: str) -> str:
        """Validate and normalise the logging level name."""
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"BATTERY_ALARM_LOG_LEVEL is not a logging level: {v!r}")
        return level

    @property
    def config_path(self) -> Path:
        """Path of the persisted AlarmConfig file."""
        return self.config_dir / CONFIG_FILENAME

    model_config = {
        "env_prefix": "BATTERY_ALARM_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
    }


def load_config(path: str | Path) -> AlarmConfig | None:
    """Load a persisted AlarmConfig.

    Args:
        path: Location of the JSON config file.

    Returns:
        The validated config, or ``None`` when the file is missing,
        unreadable or does not validate.  ``None`` means the caller should
        run the configuration wizard.
    """
    path = Path(path)
    if not path.exists():
        logger.info("Config file %s not found", path)
        return None
    try:
        return AlarmConfig.model_validate_json(path.read_text(encoding="utf-8"))
    except (OSError, ValidationError):
        logger.warning("Config file %s is damaged, reconfiguring", path, exc_info=True)
        return None


def save_config(config: AlarmConfig, path: str | Path) -> bool:
    """Persist an AlarmConfig as JSON, creating parent directories.

    Returns:
        True when the file was written, False otherwise.
    """
    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(config.model_dump_json(indent=2) + "\n", encoding="utf-8")
    except OSError:
        logger.warning("Failed to save config to %s", path, exc_info=True)
        return False
    return True
