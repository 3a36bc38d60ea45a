"""
Persisted Session State and Artifact Files.

The state file is a small JSON document holding what must survive a
restart:

    {
        "voice_studio_user_keys": ["AIza...", "AIza..."],
        "voice_studio_usage_count": 3,
        "voice_studio_usage_start_time": 1760791805.12
    }

Older installs stored a single key under ``voice_studio_user_key``. On
load it is moved into the list (unless already present) and the legacy
field is removed, once.

All writes are atomic: write a sibling ``.tmp`` file, then replace.
Write failures are logged and swallowed; losing a usage counter update is
preferable to failing a finished generation.
"""
from __future__ import annotations

import json
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List

from voice_studio.core.logging import get_logger, info, warn
from voice_studio.tts.quota import UsageWindow
from voice_studio.utils.timeit import timeit

_LOG = get_logger("voice-studio.storage")

KEY_USER_KEYS = "voice_studio_user_keys"
KEY_LEGACY_USER_KEY = "voice_studio_user_key"
KEY_USAGE_COUNT = "voice_studio_usage_count"
KEY_USAGE_START = "voice_studio_usage_start_time"


@dataclass
class PersistedState:
    user_keys: List[str] = field(default_factory=list)
    usage: UsageWindow = field(default_factory=UsageWindow)


def _atomic_write(path: Path, data: bytes) -> float:
    path.parent.mkdir(parents=True, exist_ok=True)
    with timeit("storage_write") as t:
        tmp = path.with_suffix(path.suffix + ".tmp")
        tmp.write_bytes(data)
        tmp.replace(path)
    return t.seconds


class StateStore:
    """JSON-file store for user keys and shared-quota counters."""

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._lock = threading.Lock()

    def _read_raw(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            warn(_LOG, "state_read_error", path=str(self.path), error=str(e))
            return {}
        if not isinstance(raw, dict):
            warn(_LOG, "state_not_object", path=str(self.path))
            return {}
        return raw

    def _write_raw(self, raw: Dict[str, Any]) -> None:
        payload = json.dumps(raw, ensure_ascii=False, indent=2).encode("utf-8")
        try:
            seconds = _atomic_write(self.path, payload)
        except OSError as e:
            warn(_LOG, "state_write_error", path=str(self.path), error=str(e))
            tmp = self.path.with_suffix(self.path.suffix + ".tmp")
            if tmp.exists():
                tmp.unlink(missing_ok=True)
            return
        info(_LOG, "state_saved", bytes=len(payload), seconds=round(seconds, 4))

    @staticmethod
    def _migrate_legacy(raw: Dict[str, Any]) -> bool:
        legacy = raw.pop(KEY_LEGACY_USER_KEY, None)
        if legacy is None:
            return False
        keys = [k for k in raw.get(KEY_USER_KEYS) or [] if isinstance(k, str)]
        legacy = str(legacy).strip()
        if legacy and legacy not in keys:
            keys.append(legacy)
        raw[KEY_USER_KEYS] = keys
        return True

    def load(self) -> PersistedState:
        """Read the state file, migrating a legacy single key if present."""
        with self._lock:
            raw = self._read_raw()
            if self._migrate_legacy(raw):
                info(_LOG, "legacy_key_migrated", keys=len(raw[KEY_USER_KEYS]))
                self._write_raw(raw)

        keys = [str(k).strip() for k in raw.get(KEY_USER_KEYS) or [] if str(k).strip()]
        try:
            count = int(raw.get(KEY_USAGE_COUNT, 0) or 0)
            start = float(raw.get(KEY_USAGE_START, 0) or 0)
        except (TypeError, ValueError):
            warn(_LOG, "state_usage_invalid")
            count, start = 0, 0.0

        return PersistedState(user_keys=keys, usage=UsageWindow(count=count, window_start=start))

    def save_user_keys(self, keys: List[str]) -> None:
        with self._lock:
            raw = self._read_raw()
            raw[KEY_USER_KEYS] = list(keys)
            raw.pop(KEY_LEGACY_USER_KEY, None)
            self._write_raw(raw)

    def save_usage(self, window: UsageWindow) -> None:
        with self._lock:
            raw = self._read_raw()
            raw[KEY_USAGE_COUNT] = window.count
            raw[KEY_USAGE_START] = window.window_start
            self._write_raw(raw)


def save_artifact(output_dir: str | Path, filename: str, wav_bytes: bytes) -> Path:
    """
    Write a WAV artifact atomically and return its path.

    Unlike state writes, failures here propagate: the caller asked for
    this file.
    """
    path = Path(output_dir) / filename
    seconds = _atomic_write(path, wav_bytes)
    info(_LOG, "artifact_saved", file=filename, bytes=len(wav_bytes), seconds=round(seconds, 4))
    return path
