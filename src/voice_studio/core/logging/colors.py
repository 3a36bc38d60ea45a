"""
ANSI colors for console log output.

Colors are disabled when stdout is not a TTY, when NO_COLOR is set, or
when VOICE_STUDIO_NO_COLOR=1.
"""
from __future__ import annotations

import os
import sys


class Colors:
    """ANSI escape codes used by the console formatter."""
    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"

    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    MAGENTA = "\033[35m"
    CYAN = "\033[36m"
    GRAY = "\033[90m"

    BRIGHT_RED = "\033[91m"
    BRIGHT_GREEN = "\033[92m"
    BRIGHT_YELLOW = "\033[93m"
    BRIGHT_CYAN = "\033[96m"


_TAG_COLORS = {
    "SUCCESS": Colors.BRIGHT_GREEN,
    "FAIL": Colors.BRIGHT_RED,
    "ERROR": Colors.BRIGHT_RED,
    "WARN": Colors.BRIGHT_YELLOW,
    "INFO": Colors.BRIGHT_CYAN,
    "DEBUG": Colors.GRAY,
}


def supports_color() -> bool:
    """Return True when ANSI colors should be emitted on stdout."""
    if os.getenv("VOICE_STUDIO_NO_COLOR", "0") == "1":
        return False
    if os.getenv("NO_COLOR"):
        return False
    isatty = getattr(sys.stdout, "isatty", None)
    if isatty is None or not isatty():
        return False
    return sys.platform != "win32" or "WT_SESSION" in os.environ


USE_COLORS = supports_color()


def colorize(text: str, color: str) -> str:
    """Wrap text in a color code when colors are enabled."""
    if not USE_COLORS:
        return text
    return f"{color}{text}{Colors.RESET}"


def get_tag_color(tag: str) -> str:
    """Color used for a log tag such as INFO or FAIL."""
    return _TAG_COLORS.get(tag.upper(), Colors.RESET)
