"""
Synthesis Provider Contract.

A provider turns one segment of text into base64 PCM audio. The rest of
the pipeline only depends on this contract:

    output = await provider.synthesize(text, voice, credential)
    output.audio_b64         # base64 raw PCM (16-bit LE mono 24 kHz)
    output.normalized_text   # translated/cleaned text actually spoken

Failures are raised as ProviderError with ``kind`` set to one of
ProviderErrorKind (safety-blocked, recitation-blocked, malformed-config,
no-audio-returned, transport-error, translation-failed).

Adding a Provider:
    class MyProvider(BaseSynthesisProvider):
        name = "my"

        async def synthesize(self, text, voice, credential):
            ...
            return SynthesisOutput(audio_b64=..., normalized_text=text)

    Then register it in _create_provider().
"""
from __future__ import annotations

from dataclasses import dataclass

from voice_studio.core.config import Settings
from voice_studio.core.errors import ProviderError, ProviderErrorKind

__all__ = [
    "BaseSynthesisProvider",
    "ProviderError",
    "ProviderErrorKind",
    "SynthesisOutput",
    "VoiceConfig",
    "get_provider",
]


@dataclass(frozen=True)
class VoiceConfig:
    """
    Generation parameters applied to every segment of a request.

    Attributes:
        voice_name: Prebuilt voice name (see tts/voices.py).
        style: Free-text delivery instruction, prepended to the prompt.
        temperature: Sampling temperature, 0.0-2.0.
        language: Target language code; empty disables translation.
    """
    voice_name: str = "Puck"
    style: str = ""
    temperature: float = 1.0
    language: str = "vi"


@dataclass(frozen=True)
class SynthesisOutput:
    audio_b64: str
    normalized_text: str


class BaseSynthesisProvider:
    """Base class for synthesis providers."""

    name: str = "base"

    def __init__(self, settings: Settings):
        self.settings = settings

    async def synthesize(self, text: str, voice: VoiceConfig, credential: str) -> SynthesisOutput:
        """
        Synthesize one segment.

        Raises:
            ProviderError: On any failure; ``kind`` classifies it.
        """
        raise NotImplementedError

    async def aclose(self) -> None:
        """Release network resources."""
        return None


def _create_provider(name: str, settings: Settings) -> BaseSynthesisProvider:
    if name == "gemini":
        from voice_studio.tts.providers.gemini_provider import GeminiProvider
        return GeminiProvider(settings)
    raise ValueError(f"Unknown provider: {name}")


def get_provider(settings: Settings) -> BaseSynthesisProvider:
    """Create the provider configured under ``provider.name``."""
    return _create_provider(settings.provider_name, settings)
