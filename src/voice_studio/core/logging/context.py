"""
Correlation Context and Logging State.

A ``contextvars`` correlation id ties together every log line emitted for
one batch run or one HTTP request. Because each asyncio task copies the
context at creation time, worker tasks spawned by a batch inherit the
batch id automatically.

Environment Variables:
    - VOICE_STUDIO_LOG_LEVEL: level override (1-4 or name)
    - VOICE_STUDIO_LOG_DIR: directory for the JSONL log file
    - VOICE_STUDIO_JSONL_FILE: JSONL file name
    - VOICE_STUDIO_LOG_ROTATE_BYTES / VOICE_STUDIO_LOG_ROTATE_BACKUP
"""
from __future__ import annotations

import os
from contextvars import ContextVar
from typing import Any, Dict

import yaml

from .levels import LEVEL_NAMES, LogLevel

_correlation_id: ContextVar[str] = ContextVar("correlation_id", default="-")

_configured: bool = False
_log_config: Dict[str, Any] = {}
_current_level: LogLevel = LogLevel.NORMAL


def get_request_id() -> str:
    """Current correlation id, or "-" outside any batch/request."""
    return _correlation_id.get()


def set_request_id(rid: str) -> None:
    """Bind a correlation id to the current context."""
    _correlation_id.set(rid)


def get_level() -> LogLevel:
    return _current_level


def set_level(level: LogLevel) -> None:
    global _current_level
    _current_level = level


def get_level_name() -> str:
    return LEVEL_NAMES.get(_current_level, "NORMAL")


def is_configured() -> bool:
    return _configured


def set_configured(value: bool) -> None:
    global _configured
    _configured = value


def get_log_config() -> Dict[str, Any]:
    return _log_config


def set_log_config(config: Dict[str, Any]) -> None:
    global _log_config
    _log_config = config


def read_logging_config() -> Dict[str, Any]:
    """
    Resolve logging options from the settings file and environment.

    The settings file is located through VOICE_STUDIO_SETTINGS
    (default ``config/settings.yaml``); a missing file simply yields
    defaults. Environment variables win over the file.
    """
    cfg: Dict[str, Any] = {}

    settings_path = os.getenv("VOICE_STUDIO_SETTINGS", "config/settings.yaml")
    try:
        from voice_studio.core.config import load_settings
        settings = load_settings(settings_path)
        cfg.update(settings.raw.get("logging", {}) or {})
    except (FileNotFoundError, ValueError, yaml.YAMLError):
        pass

    if os.getenv("VOICE_STUDIO_LOG_LEVEL"):
        cfg["level"] = os.environ["VOICE_STUDIO_LOG_LEVEL"]
    if os.getenv("VOICE_STUDIO_LOG_DIR"):
        cfg["log_dir"] = os.environ["VOICE_STUDIO_LOG_DIR"]
    if os.getenv("VOICE_STUDIO_JSONL_FILE"):
        cfg["jsonl_file"] = os.environ["VOICE_STUDIO_JSONL_FILE"]
    for env_name, key in (
        ("VOICE_STUDIO_LOG_ROTATE_BYTES", "rotate_max_bytes"),
        ("VOICE_STUDIO_LOG_ROTATE_BACKUP", "rotate_backup_count"),
    ):
        raw = os.getenv(env_name)
        if raw and raw.isdigit():
            cfg[key] = int(raw)

    return cfg
