"""
Log Formatters.

    JsonlFormatter: one JSON object per line for the rotating log file
    ColoredConsoleFormatter: ``HH:MM:SS [ TAG ] (rid) message k=v 0.123s``

Output Examples:
    {"ts":"2026-10-18T14:30:05+02:00","level":2,"tag":"SUCCESS","message":"segment_done","request_id":"b-1a2b3c","extra":{"segment":"seg-1"}}

    14:30:05 [SUCCESS] (b-1a2b3c) segment_done segment=seg-1 worker=0 1.204s
"""
from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any, Dict

from . import colors
from .colors import Colors, get_tag_color


def _paint(text: str, color: str) -> str:
    # Read the flag at call time so tests can toggle it
    if not colors.USE_COLORS:
        return text
    return f"{color}{text}{Colors.RESET}"


class JsonlFormatter(logging.Formatter):
    """Format records as single-line JSON objects."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created).astimezone().isoformat(),
            "level": getattr(record, "numeric_level", 2),
            "tag": getattr(record, "tag", record.levelname),
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", "-"),
        }

        event = getattr(record, "event", None)
        if event:
            payload["event"] = event

        seconds = getattr(record, "seconds", None)
        if seconds is not None:
            payload["seconds"] = seconds

        extra_data = getattr(record, "extra_data", None)
        if extra_data:
            payload["extra"] = extra_data

        return json.dumps(payload, ensure_ascii=False, default=str)


class ColoredConsoleFormatter(logging.Formatter):
    """
    Human-readable console lines.

    Timing values are green under 0.5s, yellow under 5s and red above
    (provider calls routinely take a few seconds). Quota fields turn red
    when nothing is left.
    """

    def format(self, record: logging.LogRecord) -> str:
        ts = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        tag = getattr(record, "tag", record.levelname)
        rid = getattr(record, "request_id", "-")

        parts = [
            _paint(ts, Colors.DIM),
            _paint(f"[{tag:^7}]", get_tag_color(tag)),
        ]
        if rid != "-":
            parts.append(_paint(f"({rid})", Colors.DIM + Colors.CYAN))
        parts.append(record.getMessage())

        event = getattr(record, "event", None)
        if event:
            parts.append(_paint(f"event={event}", Colors.MAGENTA))

        extra_data = getattr(record, "extra_data", None)
        if extra_data:
            for key, value in extra_data.items():
                parts.append(_paint(f"{key}={value}", self._field_color(key, value)))

        seconds = getattr(record, "seconds", None)
        if seconds is not None:
            if seconds < 0.5:
                time_color = Colors.GREEN
            elif seconds < 5.0:
                time_color = Colors.YELLOW
            else:
                time_color = Colors.RED
            parts.append(_paint(f"{seconds:.3f}s", time_color))

        return " ".join(parts)

    @staticmethod
    def _field_color(key: str, value: Any) -> str:
        if key in ("remaining", "quota_remaining") and isinstance(value, int):
            return Colors.RED if value <= 0 else Colors.GREEN
        if key in ("failed", "error_kind") and value:
            return Colors.YELLOW
        if key == "error":
            return Colors.RED
        return Colors.DIM
