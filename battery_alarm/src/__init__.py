"""
Battery voltage alarm package.

Samples the laptop/tablet battery through the Linux power-supply sysfs files,
rings the terminal bell while readings are out of the configured range, and
prints per-session charge/discharge statistics whenever the charging state
changes or the program exits.

CHANGELOG:
- 2026-10-19: Initial creation (STORY-001)

TODO:
- None
"""
