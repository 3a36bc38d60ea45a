"""Shared fixtures: a scriptable in-process synthesis provider."""
from __future__ import annotations

import asyncio
import base64
from collections import defaultdict
from typing import Dict, List, Optional, Tuple

import pytest

from voice_studio.core.config import Settings
from voice_studio.core.errors import ProviderError
from voice_studio.tts.provider import BaseSynthesisProvider, SynthesisOutput, VoiceConfig


def pcm_for(text: str) -> bytes:
    """Deterministic, even-length fake PCM for a text."""
    raw = text.encode("utf-8")
    return raw + (b"\x00" if len(raw) % 2 else b"")


class FakeProvider(BaseSynthesisProvider):
    """
    Provider double.

    Args:
        fail: text -> ProviderError kind to raise for that text.
        delays: text -> seconds to sleep before answering.
        normalize: Suffix appended to the returned normalized text.
        crash: text -> exception instance raised as-is for that text.
    """

    name = "fake"

    def __init__(
        self,
        fail: Optional[Dict[str, str]] = None,
        delays: Optional[Dict[str, float]] = None,
        normalize: str = "",
        crash: Optional[Dict[str, BaseException]] = None,
    ):
        super().__init__(Settings(raw={}))
        self.fail = fail or {}
        self.delays = delays or {}
        self.normalize = normalize
        self.crash = crash or {}
        self.calls: List[Tuple[str, str, VoiceConfig]] = []
        self.completion_order: List[str] = []
        self._in_flight: Dict[str, int] = defaultdict(int)
        self.max_in_flight_per_credential: Dict[str, int] = defaultdict(int)
        self.max_in_flight = 0
        self._total_in_flight = 0
        self.closed = False

    async def synthesize(self, text: str, voice: VoiceConfig, credential: str) -> SynthesisOutput:
        self.calls.append((text, credential, voice))
        self._in_flight[credential] += 1
        self._total_in_flight += 1
        self.max_in_flight_per_credential[credential] = max(
            self.max_in_flight_per_credential[credential], self._in_flight[credential]
        )
        self.max_in_flight = max(self.max_in_flight, self._total_in_flight)
        try:
            await asyncio.sleep(self.delays.get(text, 0))
            if text in self.crash:
                raise self.crash[text]
            if text in self.fail:
                raise ProviderError(self.fail[text], f"scripted failure: {self.fail[text]}")
            self.completion_order.append(text)
            return SynthesisOutput(
                audio_b64=base64.b64encode(pcm_for(text)).decode("ascii"),
                normalized_text=text + self.normalize,
            )
        finally:
            self._in_flight[credential] -= 1
            self._total_in_flight -= 1

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def fake_provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(raw={
        "quota": {"max_usage": 10, "window_seconds": 7200},
        "storage": {
            "state_file": str(tmp_path / "state.json"),
            "output_dir": str(tmp_path / "output"),
        },
        "voice": {"name": "Puck", "language": ""},
    })
