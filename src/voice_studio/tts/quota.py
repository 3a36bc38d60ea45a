"""
Usage Quota for the Shared Credential.

The shared (system) credential allows ``max_usage`` successful generations
per rolling window of ``window_seconds``. User-supplied credentials are
never counted.

Window Semantics:
    - The state is a UsageWindow ``(count, window_start)``.
    - Before any read or increment, a stale window is reset to ``(0, 0)``.
      A window is stale when ``now - window_start > window_seconds``, or
      when ``window_start`` is 0 (nothing recorded yet).
    - The first successful generation in a fresh window stamps
      ``window_start = now``. The window is therefore anchored to first
      use, not to a fixed clock boundary.

Two-Phase Accounting:
    1. ``try_reserve(now, n)`` checks that ``n`` more generations fit. It
       does not mutate; it raises QuotaExceeded when they don't.
    2. ``record_success(now)`` increments after a generation succeeded.

    Concurrent workers that each passed step 1 may overshoot ``max_usage``
    by at most ``workers - 1``; a batch precheck of the whole work set
    keeps that rare.

Usage:
    tracker = QuotaTracker(max_usage=10, window_seconds=7200)
    tracker.try_reserve(time.time(), n=len(work))
    ...
    tracker.record_success(time.time())
    print(tracker.remaining(time.time()))
"""
from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

from voice_studio.core.errors import QuotaExceeded
from voice_studio.core.logging import debug, get_logger, info, warn

_LOG = get_logger("voice-studio.quota")


@dataclass(frozen=True)
class UsageWindow:
    """Usage count and the epoch second (0 = unset) the window opened."""
    count: int = 0
    window_start: float = 0.0


@dataclass
class QuotaStatus:
    """Snapshot for API responses and logging."""
    count: int
    max_usage: int
    remaining: int
    window_start: float
    resets_at: Optional[float]


class QuotaTracker:
    """
    Lock-protected usage window.

    Args:
        max_usage: Generations allowed per window.
        window_seconds: Window length.
        window: Initial state (e.g. restored from the state store).
        on_change: Called with the latest UsageWindow after every mutation,
            outside the counter lock. Calls are serialized and always see
            the newest state, so the last persisted window is current.
    """

    def __init__(
        self,
        max_usage: int = 10,
        window_seconds: float = 2 * 60 * 60,
        window: Optional[UsageWindow] = None,
        on_change: Optional[Callable[[UsageWindow], None]] = None,
    ):
        self.max_usage = max_usage
        self.window_seconds = window_seconds
        self._window = window or UsageWindow()
        self._on_change = on_change
        self._lock = threading.Lock()
        self._notify_lock = threading.Lock()

    def _is_stale(self, now: float) -> bool:
        start = self._window.window_start
        return start == 0 or (now - start) > self.window_seconds

    def _reset_if_stale(self, now: float) -> bool:
        # Caller holds the lock
        if self._is_stale(now) and self._window != UsageWindow():
            debug(_LOG, "quota_window_reset", previous_count=self._window.count)
            self._window = UsageWindow()
            return True
        return False

    def _notify(self) -> None:
        if self._on_change is None:
            return
        with self._notify_lock:
            self._on_change(self.window)

    @property
    def window(self) -> UsageWindow:
        with self._lock:
            return self._window

    def check_and_reset(self, now: Optional[float] = None) -> UsageWindow:
        """Reset a stale window and return the current state."""
        now = time.time() if now is None else now
        with self._lock:
            changed = self._reset_if_stale(now)
            window = self._window
        if changed:
            self._notify()
        return window

    def remaining(self, now: Optional[float] = None) -> int:
        """Generations still allowed in the current window."""
        window = self.check_and_reset(now)
        return max(0, self.max_usage - window.count)

    def try_reserve(self, now: Optional[float] = None, n: int = 1) -> int:
        """
        Check that ``n`` more generations fit in the window.

        Returns:
            Remaining count (unchanged; nothing is reserved).

        Raises:
            QuotaExceeded: If ``count + n > max_usage``.
        """
        window = self.check_and_reset(now)
        remaining = max(0, self.max_usage - window.count)
        if window.count + n > self.max_usage:
            warn(_LOG, "quota_rejected", requested=n, remaining=remaining)
            raise QuotaExceeded(remaining=remaining, requested=n, max_usage=self.max_usage)
        return remaining

    def record_success(self, now: Optional[float] = None) -> int:
        """
        Count one successful generation.

        Returns:
            The new count, read back under the same lock.
        """
        now = time.time() if now is None else now
        with self._lock:
            self._reset_if_stale(now)
            start = self._window.window_start or now
            self._window = UsageWindow(count=self._window.count + 1, window_start=start)
            window = self._window
        self._notify()
        info(_LOG, "quota_used", count=window.count, remaining=max(0, self.max_usage - window.count))
        return window.count

    def status(self, now: Optional[float] = None) -> QuotaStatus:
        window = self.check_and_reset(now)
        return QuotaStatus(
            count=window.count,
            max_usage=self.max_usage,
            remaining=max(0, self.max_usage - window.count),
            window_start=window.window_start,
            resets_at=(window.window_start + self.window_seconds) if window.window_start else None,
        )
