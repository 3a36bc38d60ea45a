"""
Numeric Log Levels.

voice-studio uses four verbosity levels instead of Python's five:

    1 = MINIMAL  - startup, quota rejections, fatal errors
    2 = NORMAL   - batch lifecycle, segment outcomes (default)
    3 = VERBOSE  - per-worker claims, provider timings
    4 = DEBUG    - full request payload previews, store internals

Mapping to Python levels:
    MINIMAL -> WARNING, NORMAL -> INFO, VERBOSE -> DEBUG, DEBUG -> DEBUG - 5
"""
from __future__ import annotations

import logging
from enum import IntEnum
from typing import Any


class LogLevel(IntEnum):
    """Verbosity levels, increasing from 1 to 4."""
    MINIMAL = 1
    NORMAL = 2
    VERBOSE = 3
    DEBUG = 4


LEVEL_MAP = {
    LogLevel.MINIMAL: logging.WARNING,
    LogLevel.NORMAL: logging.INFO,
    LogLevel.VERBOSE: logging.DEBUG,
    LogLevel.DEBUG: logging.DEBUG - 5,
}

LEVEL_NAMES = {
    1: "MINIMAL",
    2: "NORMAL",
    3: "VERBOSE",
    4: "DEBUG",
}

_NAME_TO_LEVEL = {
    "MINIMAL": LogLevel.MINIMAL,
    "NORMAL": LogLevel.NORMAL,
    "VERBOSE": LogLevel.VERBOSE,
    "DEBUG": LogLevel.DEBUG,
    "TRACE": LogLevel.DEBUG,
    # Python level names
    "CRITICAL": LogLevel.MINIMAL,
    "ERROR": LogLevel.MINIMAL,
    "WARNING": LogLevel.MINIMAL,
    "WARN": LogLevel.MINIMAL,
    "INFO": LogLevel.NORMAL,
}


def coerce_level(value: Any) -> LogLevel:
    """
    Convert an int, level name or LogLevel into a LogLevel.

    Integers 1-4 are taken literally; larger integers are read as Python
    logging levels. Unknown input falls back to NORMAL.

    Examples:
        >>> coerce_level("verbose")
        <LogLevel.VERBOSE: 3>
        >>> coerce_level(logging.WARNING)
        <LogLevel.MINIMAL: 1>
    """
    if isinstance(value, LogLevel):
        return value

    if isinstance(value, int):
        if 1 <= value <= 4:
            return LogLevel(value)
        if value >= logging.WARNING:
            return LogLevel.MINIMAL
        if value >= logging.INFO:
            return LogLevel.NORMAL
        return LogLevel.DEBUG

    if isinstance(value, str):
        text = value.strip().upper()
        if text.isdigit():
            return coerce_level(int(text))
        return _NAME_TO_LEVEL.get(text, LogLevel.NORMAL)

    return LogLevel.NORMAL
