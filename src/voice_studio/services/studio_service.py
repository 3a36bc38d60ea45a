"""
StudioService - Session Facade.

Single entry point used by the API and the CLI. It owns one editing session:
the segment store, the active credential pool, the shared-quota tracker, the
provider and the batch orchestrator, and keeps the persisted state file in
sync.

Architecture:
    load_text -> segment_text -> SegmentStore (idle records)
    generate_all -> BatchOrchestrator -> provider (one worker per key)
    export_selected / segment_wav -> WAV artifacts

Credential Modes:
    - "user": keys supplied by the user (persisted, never quota-counted)
    - "shared": the system key from settings/env, limited by the quota
    - "none": no usable key; generation raises InvalidCredential

Example:
    >>> service = StudioService(load_settings(), user_keys=["AIza..."])
    >>> service.load_text(open("chapter.txt").read())
    >>> result = asyncio.run(service.generate_all())
    >>> save_artifact("./output", result.filename, result.wav_bytes)
"""
from __future__ import annotations

import threading
import time
from dataclasses import replace
from typing import Any, Callable, Dict, List, Optional

from voice_studio.core.config import Settings, StudioConfig
from voice_studio.core.errors import (
    BatchAlreadyRunning,
    InvalidCredential,
    QuotaExceeded,
)
from voice_studio.core.logging import debug, get_logger, info, warn
from voice_studio.core.metrics import metrics
from voice_studio.services.validators import ValidationError, validate_credentials, validate_text
from voice_studio.tts.chunker import segment_text
from voice_studio.tts.credentials import CredentialPool
from voice_studio.tts.orchestrator import BatchOrchestrator, BatchResult, ExportResult
from voice_studio.tts.provider import BaseSynthesisProvider, VoiceConfig, get_provider
from voice_studio.tts.quota import QuotaStatus, QuotaTracker
from voice_studio.tts.segments import Segment, SegmentStatus, SegmentStore, make_segment_ids
from voice_studio.tts.storage import StateStore
from voice_studio.tts.voices import PREVIEW_TEXT

_LOG = get_logger("voice-studio.service")


class StudioService:
    """
    Args:
        settings: Raw settings; validated into a StudioConfig.
        provider: Synthesis provider (defaults to the configured one).
        state_store: Persisted state (defaults to ``storage.state_file``).
        user_keys: Keys to use instead of the persisted ones.
        clock: Epoch-seconds source (injectable for tests).
    """

    def __init__(
        self,
        settings: Settings,
        provider: Optional[BaseSynthesisProvider] = None,
        state_store: Optional[StateStore] = None,
        user_keys: Optional[List[str]] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.settings = settings
        self.config: StudioConfig = settings.get_studio_config()
        self.clock = clock
        self.provider = provider or get_provider(settings)
        self.state_store = state_store or StateStore(self.config.storage.state_file)

        persisted = self.state_store.load()
        self.quota = QuotaTracker(
            max_usage=self.config.quota.max_usage,
            window_seconds=self.config.quota.window_seconds,
            window=persisted.usage,
            on_change=self.state_store.save_usage,
        )
        self.store = SegmentStore()
        self._source_text: Optional[str] = None
        self._source_max_words: Optional[int] = None
        self._lock = threading.RLock()

        self._pool: Optional[CredentialPool] = None
        self._orchestrator: Optional[BatchOrchestrator] = None

        if user_keys:
            self.set_user_credentials(user_keys)
        elif persisted.user_keys:
            self._set_pool(CredentialPool(persisted.user_keys))
        elif settings.system_key:
            self._set_pool(CredentialPool([settings.system_key], shared=True))

        metrics.set_quota_remaining(self.quota.remaining(self.clock()))
        info(_LOG, "service_ready", mode=self.credential_mode, provider=self.provider.name)

    # ─────────────────────────────────────────────────────────────────────────
    # Credentials
    # ─────────────────────────────────────────────────────────────────────────

    def _set_pool(self, pool: CredentialPool) -> None:
        """
        Raises:
            BatchAlreadyRunning: Credentials cannot change mid-batch.
        """
        with self._lock:
            self._ensure_idle()
            self._pool = pool
            if self._orchestrator is None:
                self._orchestrator = BatchOrchestrator(
                    self.store,
                    pool,
                    self.provider,
                    quota=self.quota,
                    audio=self.config.audio,
                    clock=self.clock,
                )
            else:
                self._orchestrator.pool = pool

    @property
    def credential_mode(self) -> str:
        if self._pool is None:
            return "none"
        return "shared" if self._pool.is_shared else "user"

    @property
    def orchestrator(self) -> BatchOrchestrator:
        if self._orchestrator is None or self._pool is None:
            raise InvalidCredential("No API key configured")
        return self._orchestrator

    def set_user_credentials(self, keys: List[str]) -> Dict[str, Any]:
        """
        Replace the pool with user keys and persist them.

        Raises:
            ValidationError: Empty list or a blank key.
            BatchAlreadyRunning: A batch is running.
        """
        cleaned = validate_credentials(keys)
        pool = CredentialPool(cleaned)
        self._set_pool(pool)
        self.state_store.save_user_keys(pool.keys)
        info(_LOG, "credentials_set", mode="user", workers=len(pool))
        return self.credential_summary()

    def use_shared_credential(self) -> Dict[str, Any]:
        """
        Switch to the shared key and forget persisted user keys.

        Raises:
            InvalidCredential: No shared key is configured.
            QuotaExceeded: The shared quota is already exhausted.
            BatchAlreadyRunning: A batch is running.
        """
        system_key = self.settings.system_key
        if not system_key:
            raise InvalidCredential("No shared API key is configured")

        remaining = self.quota.remaining(self.clock())
        if remaining <= 0:
            metrics.record_quota_rejection()
            raise QuotaExceeded(remaining=0, requested=1, max_usage=self.quota.max_usage)

        self._set_pool(CredentialPool([system_key], shared=True))
        self.state_store.save_user_keys([])
        info(_LOG, "credentials_set", mode="shared", quota_remaining=remaining)
        return self.credential_summary()

    def credential_summary(self) -> Dict[str, Any]:
        pool = self._pool
        return {
            "mode": self.credential_mode,
            "workers": len(pool) if pool else 0,
            "keys": pool.masked() if pool and not pool.is_shared else [],
        }

    # ─────────────────────────────────────────────────────────────────────────
    # Segments
    # ─────────────────────────────────────────────────────────────────────────

    def _ensure_idle(self) -> None:
        orch = self._orchestrator
        if orch is not None and orch.is_running():
            raise BatchAlreadyRunning(orch.current_batch.id if orch.current_batch else "")

    def load_text(self, text: str, max_words: Optional[int] = None) -> List[Segment]:
        """
        Segment ``text`` into the session.

        The same text and word limit as the last load keeps the existing
        segments (and their audio); anything else replaces them with fresh
        idle records.
        """
        text = validate_text(text)
        max_words = max_words or self.config.segmentation.max_words
        self._ensure_idle()

        with self._lock:
            if text == self._source_text and max_words == self._source_max_words and len(self.store):
                info(_LOG, "text_unchanged", segments=len(self.store))
                return self.store.snapshot()

            chunks = segment_text(text, max_words).chunks
            ids = make_segment_ids(int(self.clock() * 1000), len(chunks))
            self.store.replace_all(Segment(id=sid, text=chunk) for sid, chunk in zip(ids, chunks))
            self._source_text = text
            self._source_max_words = max_words

        info(_LOG, "text_loaded", segments=len(chunks), chars=len(text))
        debug(_LOG, "text_preview", text=text[: self.config.logging.text_preview_chars])
        return self.store.snapshot()

    def segments(self) -> List[Segment]:
        return self.store.snapshot()

    def full_text(self) -> str:
        """Segments' current texts joined by single spaces."""
        return " ".join(s.text for s in self.store.snapshot())

    def edit_segment(self, segment_id: str, text: str) -> Segment:
        """Change a segment's text; its status and audio are kept."""
        text = validate_text(text)
        segment = self.store.update(segment_id, lambda s: replace(s, text=text))
        with self._lock:
            self._source_text = self.full_text()
        return segment

    def toggle_selection(self, segment_id: str) -> Segment:
        segment = self.store.get(segment_id)
        if segment.status is not SegmentStatus.COMPLETED:
            raise ValidationError(
                f"Segment {segment_id} is not completed and cannot be selected",
                "SEGMENT_NOT_COMPLETED",
            )
        return self.store.update(segment_id, lambda s: s.with_selected(not s.selected))

    def toggle_select_all(self) -> List[Segment]:
        """Select every completed segment, or clear all if all already are."""
        with self._lock:
            completed = [s for s in self.store.snapshot() if s.status is SegmentStatus.COMPLETED]
            all_selected = bool(completed) and all(s.selected for s in completed)
            return self.store.map_all(lambda s: s.with_selected(not all_selected))

    # ─────────────────────────────────────────────────────────────────────────
    # Generation
    # ─────────────────────────────────────────────────────────────────────────

    def default_voice(self) -> VoiceConfig:
        v = self.config.voice
        return VoiceConfig(voice_name=v.name, style=v.style, temperature=v.temperature, language=v.language)

    async def generate_segment(self, segment_id: str, voice: Optional[VoiceConfig] = None) -> Segment:
        return await self.orchestrator.generate_one(segment_id, voice or self.default_voice())

    async def preview_voice(self, voice: Optional[VoiceConfig] = None, text: str = PREVIEW_TEXT) -> bytes:
        return await self.orchestrator.preview(voice or self.default_voice(), text)

    async def generate_all(self, voice: Optional[VoiceConfig] = None) -> BatchResult:
        if not len(self.store):
            raise ValidationError("No text loaded", "TEXT_REQUIRED")
        return await self.orchestrator.run_batch(voice or self.default_voice())

    def export_selected(self) -> ExportResult:
        return self.orchestrator.export_selected()

    def segment_wav(self, segment_id: str) -> ExportResult:
        return self.orchestrator.segment_wav(segment_id)

    def quota_status(self) -> QuotaStatus:
        status = self.quota.status(self.clock())
        metrics.set_quota_remaining(status.remaining)
        return status

    def batch_state(self) -> str:
        if self._orchestrator is None:
            return "idle"
        return self._orchestrator.state.value

    async def aclose(self) -> None:
        await self.provider.aclose()


_service: Optional[StudioService] = None
_service_lock = threading.Lock()


def get_service(settings: Settings) -> StudioService:
    """Get or create the global StudioService (thread-safe lazy singleton)."""
    global _service
    if _service is None:
        with _service_lock:
            if _service is None:
                _service = StudioService(settings)
    return _service


def reset_service() -> None:
    """Reset the global service instance (for tests)."""
    global _service
    with _service_lock:
        if _service is not None:
            warn(_LOG, "service_reset")
        _service = None
