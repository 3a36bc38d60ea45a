"""
Batch Orchestrator.

Fans generation work out over the credential pool and stitches the results
back into one WAV file.

Batch Flow:
    1. Work set = every segment whose status is not completed.
    2. Shared pool: the quota must cover the whole work set, otherwise
       QuotaExceeded is raised before anything changes.
    3. Work-set segments are marked pending.
    4. One asyncio task per credential. Each task repeatedly claims the
       next segment id from a shared queue (``get_nowait`` is the atomic
       claim) and calls the provider with its own fixed credential, so a
       credential never has two calls in flight. Every result is
       published to the store as soon as it arrives.
    5. When all tasks have drained the queue, audio is concatenated in
       segmentation order (completion order is irrelevant) and wrapped
       in a WAV header.

Failure Semantics:
    A failing segment is marked failed and the batch carries on; there is
    no retry. If no segment has audio at the end, NoAudioProduced is
    raised. Quota is only consumed by successful generations.

Batch States:
    idle -> running -> completed | aborted

    Only one batch can be running; a second start raises
    BatchAlreadyRunning and does not touch the running batch.

Example:
    orchestrator = BatchOrchestrator(store, pool, provider, quota)
    result = await orchestrator.run_batch(VoiceConfig(voice_name="Kore"))
    Path(result.filename).write_bytes(result.wav_bytes)
"""
from __future__ import annotations

import asyncio
import threading
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional, Set

from voice_studio.core.config import AudioConfig
from voice_studio.core.errors import (
    BatchAlreadyRunning,
    NoAudioProduced,
    ProviderError,
    QuotaExceeded,
    SegmentGenerationFailed,
)
from voice_studio.core.logging import (
    error,
    fail,
    get_logger,
    get_request_id,
    info,
    set_request_id,
    success,
    verbose,
)
from voice_studio.core.metrics import metrics
from voice_studio.tts.credentials import CredentialPool
from voice_studio.tts.provider import BaseSynthesisProvider, VoiceConfig
from voice_studio.tts.quota import QuotaTracker
from voice_studio.tts.segments import Segment, SegmentStatus, SegmentStore
from voice_studio.tts.voices import PREVIEW_TEXT
from voice_studio.utils.audio import concatenate_pcm, decode_payload, encode_wav
from voice_studio.utils.timeit import atimeit

_LOG = get_logger("voice-studio.batch")

INTERNAL_ERROR_KIND = "internal"


class BatchState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    ABORTED = "aborted"


@dataclass
class Batch:
    """
    One batch run.

    Attributes:
        id: Correlation id (also used in log lines).
        order: Segment ids in segmentation order at batch start.
        work: Segment ids to generate.
        pool: Credential pool fixed for the whole run.
        shared: Whether successes count against the shared quota.
        claims: segment id -> index of the worker (credential) that took it.
        results: segment id -> PCM bytes, for every segment with audio.
        failures: segment id -> error message.
    """
    id: str
    order: List[str]
    work: List[str]
    pool: Optional[CredentialPool] = None
    shared: bool = False
    state: BatchState = BatchState.IDLE
    claims: Dict[str, int] = field(default_factory=dict)
    results: Dict[str, bytes] = field(default_factory=dict)
    failures: Dict[str, str] = field(default_factory=dict)
    started_at: float = 0.0
    finished_at: float = 0.0


@dataclass
class BatchResult:
    batch_id: str
    wav_bytes: bytes
    filename: str
    completed: List[str]
    failed: Dict[str, str]
    duration_s: float


@dataclass
class ExportResult:
    wav_bytes: bytes
    filename: str
    segment_ids: List[str]


@dataclass
class _Outcome:
    ok: bool
    audio: bytes = b""
    text: str = ""
    kind: str = ""
    message: str = ""


class BatchOrchestrator:
    """
    Args:
        store: Segment store of the current session.
        pool: Credential pool; batch workers = len(pool).
        provider: Synthesis provider.
        quota: Tracker applied when the pool is shared.
        audio: PCM layout used for the WAV header.
        clock: Epoch-seconds source (injectable for tests).
    """

    def __init__(
        self,
        store: SegmentStore,
        pool: CredentialPool,
        provider: BaseSynthesisProvider,
        quota: Optional[QuotaTracker] = None,
        audio: Optional[AudioConfig] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.pool = pool
        self.provider = provider
        self.quota = quota or QuotaTracker()
        self.audio = audio or AudioConfig()
        self.clock = clock
        self._state_lock = threading.Lock()
        self._current: Optional[Batch] = None
        self._single_flight: Set[str] = set()

    # ─────────────────────────────────────────────────────────────────────────
    # State
    # ─────────────────────────────────────────────────────────────────────────

    @property
    def state(self) -> BatchState:
        with self._state_lock:
            return self._current.state if self._current else BatchState.IDLE

    @property
    def current_batch(self) -> Optional[Batch]:
        return self._current

    def is_running(self) -> bool:
        return self.state is BatchState.RUNNING

    def _begin(self, batch: Batch) -> None:
        with self._state_lock:
            if self._current is not None and self._current.state is BatchState.RUNNING:
                raise BatchAlreadyRunning(self._current.id)
            if self._single_flight:
                raise BatchAlreadyRunning(
                    "",
                    "A single-segment generation is in progress",
                    {"segment_ids": sorted(self._single_flight)},
                )
            batch.state = BatchState.RUNNING
            batch.started_at = self.clock()
            self._current = batch

    def _claim_single(self, segment_id: str) -> None:
        with self._state_lock:
            if self._current is not None and self._current.state is BatchState.RUNNING:
                raise BatchAlreadyRunning(self._current.id)
            if segment_id in self._single_flight:
                raise BatchAlreadyRunning(
                    "",
                    f"Segment {segment_id} is already being generated",
                    {"segment_ids": [segment_id]},
                )
            self._single_flight.add(segment_id)

    def _release_single(self, segment_id: str) -> None:
        with self._state_lock:
            self._single_flight.discard(segment_id)

    def _finish(self, batch: Batch, state: BatchState) -> None:
        with self._state_lock:
            batch.state = state
            batch.finished_at = self.clock()
        metrics.record_batch(state.value)

    def _ms(self) -> int:
        return int(self.clock() * 1000)

    def _encode(self, pcm: bytes) -> bytes:
        return encode_wav(
            pcm,
            sample_rate=self.audio.sample_rate,
            channels=self.audio.channels,
            bits_per_sample=self.audio.bits_per_sample,
        )

    # ─────────────────────────────────────────────────────────────────────────
    # Provider call
    # ─────────────────────────────────────────────────────────────────────────

    async def _call(self, text: str, voice: VoiceConfig, credential: str, segment_id: str) -> _Outcome:
        """One provider call, classified. Never raises for provider failures."""
        async with atimeit("provider_call") as t:
            try:
                output = await self.provider.synthesize(text, voice, credential)
                pcm = decode_payload(output.audio_b64)
            except ProviderError as e:
                outcome = _Outcome(ok=False, kind=e.kind, message=e.message)
            except ValueError as e:
                outcome = _Outcome(ok=False, kind="no-audio-returned", message=str(e))
            else:
                if pcm:
                    outcome = _Outcome(ok=True, audio=pcm, text=output.normalized_text or text)
                else:
                    outcome = _Outcome(ok=False, kind="no-audio-returned", message="Provider returned empty audio")

        metrics.record_segment(
            "completed" if outcome.ok else "failed",
            duration=t.seconds,
            error_kind=outcome.kind or None,
            audio_bytes=len(outcome.audio),
        )
        if outcome.ok:
            success(_LOG, "segment_done", segment=segment_id, bytes=len(outcome.audio), seconds=round(t.seconds, 3))
        else:
            fail(_LOG, "segment_failed", segment=segment_id, error_kind=outcome.kind,
                 error=outcome.message, seconds=round(t.seconds, 3))
        return outcome

    def _record_usage(self) -> None:
        self.quota.record_success(self.clock())
        metrics.set_quota_remaining(self.quota.remaining(self.clock()))

    async def _count_success(self, shared: bool) -> None:
        # Persisting the window writes the state file; keep it off the loop
        if shared:
            await asyncio.to_thread(self._record_usage)

    def _publish(self, segment_id: str, outcome: _Outcome) -> Segment:
        if outcome.ok:
            return self.store.update(segment_id, lambda s: s.as_completed(outcome.audio, outcome.text))
        return self.store.update(segment_id, lambda s: s.as_failed(outcome.message))

    def _check_quota(self, n: int, shared: bool) -> None:
        if not shared:
            return
        try:
            self.quota.try_reserve(self.clock(), n=n)
        except QuotaExceeded:
            metrics.record_quota_rejection()
            raise

    # ─────────────────────────────────────────────────────────────────────────
    # Batch
    # ─────────────────────────────────────────────────────────────────────────

    async def _call_guarded(self, text: str, voice: VoiceConfig, credential: str, segment_id: str) -> _Outcome:
        """
        Like _call, but anything unexpected becomes an ``internal`` failure.

        A cancelled call is recorded as failed on the segment before the
        cancellation propagates, so no segment is left pending.
        """
        try:
            return await self._call(text, voice, credential, segment_id)
        except asyncio.CancelledError:
            self._publish(segment_id, _Outcome(ok=False, kind=INTERNAL_ERROR_KIND, message="Generation cancelled"))
            raise
        except Exception as e:
            error(_LOG, "segment_internal_error", segment=segment_id, error=str(e), error_type=type(e).__name__)
            return _Outcome(ok=False, kind=INTERNAL_ERROR_KIND, message=str(e) or type(e).__name__)

    async def _worker(self, index: int, credential: str, queue: asyncio.Queue, batch: Batch, voice: VoiceConfig) -> None:
        while True:
            try:
                segment_id = queue.get_nowait()
            except asyncio.QueueEmpty:
                verbose(_LOG, "worker_exit", worker=index)
                return

            batch.claims[segment_id] = index
            segment = self.store.get(segment_id)
            verbose(_LOG, "claimed", segment=segment_id, worker=index)

            outcome = await self._call_guarded(segment.text, voice, credential, segment_id)

            self._publish(segment_id, outcome)
            if outcome.ok:
                batch.results[segment_id] = outcome.audio
                await self._count_success(batch.shared)
            else:
                batch.failures[segment_id] = outcome.message

    async def run_batch(self, voice: VoiceConfig) -> BatchResult:
        """
        Generate every non-completed segment and return the merged WAV.

        The credential pool is captured at start; replacing ``self.pool``
        later does not affect the running batch.

        Raises:
            BatchAlreadyRunning: Another batch or a single-segment
                generation is running.
            QuotaExceeded: Shared pool cannot cover the work set.
            NoAudioProduced: No segment has audio after the run.
        """
        pool = self.pool
        snapshot = self.store.snapshot()
        batch = Batch(
            id=f"b-{uuid.uuid4().hex[:8]}",
            order=[s.id for s in snapshot],
            work=[s.id for s in snapshot if s.status is not SegmentStatus.COMPLETED],
            pool=pool,
            shared=pool.is_shared,
        )
        self._begin(batch)

        previous_rid = get_request_id()
        set_request_id(batch.id)
        try:
            try:
                self._check_quota(len(batch.work), batch.shared)
            except QuotaExceeded:
                self._finish(batch, BatchState.ABORTED)
                raise

            for segment in snapshot:
                if segment.has_audio:
                    batch.results[segment.id] = segment.audio or b""

            for segment_id in batch.work:
                self.store.update(segment_id, lambda s: s.as_pending())

            info(_LOG, "batch_start", segments=len(batch.order), work=len(batch.work),
                 workers=len(pool), shared=batch.shared)

            queue: asyncio.Queue = asyncio.Queue()
            for segment_id in batch.work:
                queue.put_nowait(segment_id)

            workers = [
                asyncio.create_task(self._worker(i, pool.for_worker(i), queue, batch, voice))
                for i in range(len(pool))
            ]
            await asyncio.gather(*workers)
            self._finish(batch, BatchState.COMPLETED)

            duration = batch.finished_at - batch.started_at
            info(_LOG, "batch_done", completed=len(batch.results), failed=len(batch.failures),
                 seconds=round(duration, 3))

            buffers = [batch.results[sid] for sid in batch.order if sid in batch.results]
            if not buffers:
                raise NoAudioProduced(
                    "No segment produced audio",
                    {"failed": len(batch.failures), "batch_id": batch.id},
                )

            return BatchResult(
                batch_id=batch.id,
                wav_bytes=self._encode(concatenate_pcm(buffers)),
                filename=f"voice-studio-full-package-{self._ms()}.wav",
                completed=[sid for sid in batch.order if sid in batch.results],
                failed=dict(batch.failures),
                duration_s=duration,
            )
        finally:
            if batch.state is BatchState.RUNNING:
                # Cancelled or crashed mid-run
                self._finish(batch, BatchState.ABORTED)
            set_request_id(previous_rid)

    # ─────────────────────────────────────────────────────────────────────────
    # Single-shot operations
    # ─────────────────────────────────────────────────────────────────────────

    async def generate_one(self, segment_id: str, voice: VoiceConfig) -> Segment:
        """
        Regenerate one segment with a random credential.

        While the call is in flight a batch cannot start, and the same
        segment cannot be generated twice.

        Raises:
            BatchAlreadyRunning: A batch is running, or this segment is
                already being generated.
            QuotaExceeded: Shared pool is exhausted.
            SegmentGenerationFailed: The provider call failed (the failure
                is recorded on the segment first).
        """
        segment = self.store.get(segment_id)
        self._claim_single(segment_id)
        try:
            pool = self.pool
            self._check_quota(1, pool.is_shared)
            self.store.update(segment_id, lambda s: s.as_pending())

            outcome = await self._call_guarded(segment.text, voice, pool.any(), segment_id)
            updated = self._publish(segment_id, outcome)
            if not outcome.ok:
                raise SegmentGenerationFailed(segment_id, outcome.kind, outcome.message)

            await self._count_success(pool.is_shared)
            return updated
        finally:
            self._release_single(segment_id)

    async def preview(self, voice: VoiceConfig, text: str = PREVIEW_TEXT) -> bytes:
        """
        Synthesize a sample sentence with the first credential.

        Counts against the shared quota; does not touch the segment store.

        Raises:
            QuotaExceeded: Shared pool is exhausted.
            ProviderError: The provider call failed.
        """
        pool = self.pool
        self._check_quota(1, pool.is_shared)
        outcome = await self._call(text, voice, pool.first(), "preview")
        if not outcome.ok:
            raise ProviderError(outcome.kind, outcome.message)
        await self._count_success(pool.is_shared)
        return self._encode(outcome.audio)

    # ─────────────────────────────────────────────────────────────────────────
    # Export
    # ─────────────────────────────────────────────────────────────────────────

    def export_selected(self) -> ExportResult:
        """
        Merge the selected, completed segments in segmentation order.

        Raises:
            NoAudioProduced: Nothing is selected.
        """
        chosen = self.store.select(lambda s: s.selected and s.has_audio)
        if not chosen:
            raise NoAudioProduced("No completed segment is selected")

        pcm = concatenate_pcm(s.audio or b"" for s in chosen)
        info(_LOG, "export_selected", segments=len(chosen), bytes=len(pcm))
        return ExportResult(
            wav_bytes=self._encode(pcm),
            filename=f"voice-studio-merged-{self._ms()}.wav",
            segment_ids=[s.id for s in chosen],
        )

    def segment_wav(self, segment_id: str) -> ExportResult:
        """
        Raises:
            SegmentNotFound: Unknown id.
            NoAudioProduced: Segment has no audio.
        """
        segment = self.store.get(segment_id)
        if not segment.has_audio:
            raise NoAudioProduced(f"Segment {segment_id} has no audio", {"status": segment.status.value})
        return ExportResult(
            wav_bytes=self._encode(segment.audio or b""),
            filename=f"voice-studio-{segment_id}.wav",
            segment_ids=[segment_id],
        )
