"""
Segment Records and the Segment Store.

A Segment is one unit of generation work. The store keeps all segments of
the current session indexed by id, in segmentation order, and serializes
every mutation so batch workers can publish results one by one while
readers take consistent snapshots.

Lifecycle:
    created idle (bulk, from segmentation)
    idle/failed/completed -> pending      (claimed by a batch or single-shot)
    pending -> completed | failed         (provider result)

Invariants enforced here:
    - ``audio`` is present exactly when status is completed.
    - ``error`` is set only when status is failed.
    - ``selected`` can only be True while completed; leaving completed
      clears it.
"""
from __future__ import annotations

import threading
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional

from voice_studio.core.errors import SegmentNotFound


class SegmentStatus(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class Segment:
    id: str
    text: str
    status: SegmentStatus = SegmentStatus.IDLE
    audio: Optional[bytes] = None
    error: Optional[str] = None
    selected: bool = False

    @property
    def has_audio(self) -> bool:
        return self.status is SegmentStatus.COMPLETED and bool(self.audio)

    def as_pending(self) -> "Segment":
        return replace(self, status=SegmentStatus.PENDING, audio=None, error=None, selected=False)

    def as_completed(self, audio: bytes, text: Optional[str] = None) -> "Segment":
        return replace(
            self,
            status=SegmentStatus.COMPLETED,
            audio=audio,
            error=None,
            text=self.text if text is None else text,
        )

    def as_failed(self, error: str) -> "Segment":
        return replace(self, status=SegmentStatus.FAILED, audio=None, error=error, selected=False)

    def with_selected(self, selected: bool) -> "Segment":
        return replace(self, selected=selected and self.status is SegmentStatus.COMPLETED)


def make_segment_ids(prefix_ms: int, count: int) -> List[str]:
    return [f"seg-{prefix_ms}-{i}" for i in range(count)]


class SegmentStore:
    """
    Id-indexed, order-preserving segment collection.

    Point updates (``update``) and whole-store maps (``map_all``) take the
    same re-entrant lock, so a batch worker publishing one result never
    interleaves with a select-all or a replace.
    """

    def __init__(self, segments: Iterable[Segment] = ()):
        self._lock = threading.RLock()
        self._order: List[str] = []
        self._items: Dict[str, Segment] = {}
        self.replace_all(segments)

    def __len__(self) -> int:
        with self._lock:
            return len(self._order)

    def __contains__(self, segment_id: object) -> bool:
        with self._lock:
            return segment_id in self._items

    def replace_all(self, segments: Iterable[Segment]) -> None:
        """Swap in a new segment list (text changed)."""
        segments = list(segments)
        with self._lock:
            self._order = [s.id for s in segments]
            self._items = {s.id: s for s in segments}
            if len(self._items) != len(self._order):
                raise ValueError("duplicate segment ids")

    def get(self, segment_id: str) -> Segment:
        with self._lock:
            try:
                return self._items[segment_id]
            except KeyError:
                raise SegmentNotFound(segment_id) from None

    def snapshot(self) -> List[Segment]:
        """All segments in segmentation order."""
        with self._lock:
            return [self._items[sid] for sid in self._order]

    def ids(self) -> List[str]:
        with self._lock:
            return list(self._order)

    def update(self, segment_id: str, fn: Callable[[Segment], Segment]) -> Segment:
        """Apply ``fn`` to one segment atomically and store the result."""
        with self._lock:
            current = self.get(segment_id)
            updated = fn(current)
            if updated.id != segment_id:
                raise ValueError("segment id cannot change")
            self._items[segment_id] = updated
            return updated

    def map_all(self, fn: Callable[[Segment], Segment]) -> List[Segment]:
        with self._lock:
            for sid in self._order:
                self._items[sid] = fn(self._items[sid])
            return self.snapshot()

    def select(self, predicate: Callable[[Segment], bool]) -> List[Segment]:
        with self._lock:
            return [s for s in self.snapshot() if predicate(s)]
