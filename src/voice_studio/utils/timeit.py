"""
Timing Utilities.

Wall-clock measurement for code blocks and coroutines, used for provider
call latency, segmentation timings and batch duration in log lines.

Example Usage:
    with timeit("segment") as t:
        result = segment_text(text)
    print(f"Took {t.timing.seconds:.3f}s")

    async with atimeit("provider_call", meta={"segment": sid}) as t:
        out = await provider.synthesize(text, voice, key)
"""
from __future__ import annotations

from dataclasses import dataclass
from time import perf_counter
from typing import Any, Dict, Optional


@dataclass
class Timing:
    """
    Timing measurement result.

    Attributes:
        name: Identifier for what was timed (e.g., "segment", "provider_call").
        seconds: Duration in seconds.
        meta: Optional metadata dictionary for additional context.
    """
    name: str
    seconds: float
    meta: Optional[Dict[str, Any]] = None


class timeit:
    """
    Context manager for timing code blocks.

    ``timing`` is populated on exit, including when the block raises, so a
    failed provider call still reports how long it took.
    """

    def __init__(self, name: str, meta: Optional[Dict[str, Any]] = None):
        self.name = name
        self.meta = meta
        self._t0: float | None = None
        self.timing: Timing | None = None

    def __enter__(self) -> "timeit":
        self._t0 = perf_counter()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        t1 = perf_counter()
        assert self._t0 is not None
        self.timing = Timing(name=self.name, seconds=(t1 - self._t0), meta=self.meta)

    @property
    def seconds(self) -> float:
        """Elapsed seconds, or -1.0 before the block has exited."""
        return self.timing.seconds if self.timing else -1.0


class atimeit(timeit):
    """Async variant for ``async with`` blocks around awaited calls."""

    async def __aenter__(self) -> "atimeit":
        self.__enter__()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.__exit__(exc_type, exc, tb)
