"""
Gemini Synthesis Provider.

Two calls per segment through the google-genai SDK:

    1. Translation (only when ``voice.language`` is set): the text model is
       asked to return the text in the target language, or unchanged if it
       already is. Its output is what gets spoken and is returned as
       ``normalized_text``.
    2. Speech: the TTS model is called with AUDIO response modality and a
       prebuilt voice. A style instruction is prepended to the prompt as
       ``"{style}: {text}"``; the TTS model rejects system instructions.

The SDK decodes the inline audio to bytes; it is re-encoded to base64 here
so every provider hands the pipeline the same transport payload.

Error Mapping:
    finish_reason SAFETY            -> safety-blocked
    finish_reason RECITATION        -> recitation-blocked
    text part instead of audio      -> no-audio-returned
    no audio at all                 -> no-audio-returned
    HTTP 400                        -> malformed-config
    other API / network failure     -> transport-error
    translation call failure        -> translation-failed
"""
from __future__ import annotations

import base64
import re
from typing import Any, Dict, Optional

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from voice_studio.core.config import Settings
from voice_studio.core.errors import ProviderError, ProviderErrorKind
from voice_studio.core.logging import debug, get_logger, verbose, warn
from voice_studio.tts.provider import BaseSynthesisProvider, SynthesisOutput, VoiceConfig
from voice_studio.tts.voices import language_name

_LOG = get_logger("voice-studio.gemini")

_QUOTES = re.compile(r"^[\"']|[\"']$")

_TRANSLATE_PROMPT = (
    "You are a professional translator.\n"
    "Target Language: {language}.\n"
    "\n"
    "Instruction:\n"
    "1. Detect the language of the provided text.\n"
    "2. If the text is already in {language}, return the original text exactly as is.\n"
    "3. If the text is in a different language, translate it into natural, high-quality {language}.\n"
    "4. Output ONLY the final text. Do not output any introductory notes, explanations, or quotes.\n"
    "\n"
    "Text to process:\n"
    "\"{text}\""
)


def build_prompt(text: str, style: str) -> str:
    style = (style or "").strip()
    if style:
        return f"{style}: {text}"
    return text


def _first_part(response: Any) -> tuple[Optional[Any], Optional[str]]:
    """Return (first content part, finish reason name) of a response."""
    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        return None, None
    candidate = candidates[0]
    reason = getattr(candidate, "finish_reason", None)
    reason_name = getattr(reason, "name", reason)
    content = getattr(candidate, "content", None)
    parts = getattr(content, "parts", None) or []
    return (parts[0] if parts else None), (str(reason_name) if reason_name else None)


class GeminiProvider(BaseSynthesisProvider):
    """Gemini TTS over google-genai, one SDK client per credential."""

    name = "gemini"

    def __init__(self, settings: Settings):
        super().__init__(settings)
        cfg = settings.get_studio_config().provider
        self.tts_model = cfg.tts_model
        self.text_model = cfg.text_model
        self.timeout_ms = int(cfg.timeout_s * 1000)
        self._clients: Dict[str, genai.Client] = {}

    def _client_for(self, credential: str) -> genai.Client:
        client = self._clients.get(credential)
        if client is None:
            client = genai.Client(
                api_key=credential,
                http_options=types.HttpOptions(timeout=self.timeout_ms),
            )
            self._clients[credential] = client
        return client

    async def translate(self, text: str, language: str, credential: str) -> str:
        """
        Return ``text`` in ``language`` (unchanged if it already is).

        An empty model answer keeps the original text.

        Raises:
            ProviderError: kind translation-failed on any call failure.
        """
        prompt = _TRANSLATE_PROMPT.format(language=language_name(language), text=text)
        client = self._client_for(credential)
        try:
            response = await client.aio.models.generate_content(
                model=self.text_model,
                contents=prompt,
            )
        except (genai_errors.APIError, httpx.HTTPError) as e:
            warn(_LOG, "translation_failed", language=language, error=str(e))
            raise ProviderError(
                ProviderErrorKind.TRANSLATION_FAILED,
                "Translation/language processing failed. Please try again.",
                {"cause": str(e)},
            ) from e

        part, _ = _first_part(response)
        translated = getattr(part, "text", None) if part is not None else None
        if not translated:
            warn(_LOG, "translation_empty", language=language)
            return text

        cleaned = _QUOTES.sub("", translated.strip())
        debug(_LOG, "translated", language=language, chars_in=len(text), chars_out=len(cleaned))
        return cleaned

    async def synthesize(self, text: str, voice: VoiceConfig, credential: str) -> SynthesisOutput:
        text_to_speak = text
        if voice.language:
            text_to_speak = await self.translate(text, voice.language, credential)

        config = types.GenerateContentConfig(
            response_modalities=["AUDIO"],
            speech_config=types.SpeechConfig(
                voice_config=types.VoiceConfig(
                    prebuilt_voice_config=types.PrebuiltVoiceConfig(voice_name=voice.voice_name)
                )
            ),
            temperature=voice.temperature,
        )

        client = self._client_for(credential)
        try:
            response = await client.aio.models.generate_content(
                model=self.tts_model,
                contents=build_prompt(text_to_speak, voice.style),
                config=config,
            )
        except genai_errors.APIError as e:
            if e.code == 400:
                raise ProviderError(
                    ProviderErrorKind.MALFORMED_CONFIG,
                    "Configuration error (400). Try a shorter style instruction.",
                    {"status": 400},
                ) from e
            raise ProviderError(
                ProviderErrorKind.TRANSPORT_ERROR,
                f"Provider request failed: {e}",
                {"status": e.code},
            ) from e
        except httpx.HTTPError as e:
            raise ProviderError(
                ProviderErrorKind.TRANSPORT_ERROR,
                f"Provider request failed: {e}",
            ) from e

        part, finish_reason = _first_part(response)
        inline = getattr(part, "inline_data", None) if part is not None else None
        data = getattr(inline, "data", None) if inline is not None else None

        if not data:
            text_reply = getattr(part, "text", None) if part is not None else None
            warn(_LOG, "no_audio", finish_reason=finish_reason, text_reply=bool(text_reply))
            if finish_reason == "SAFETY":
                raise ProviderError(ProviderErrorKind.SAFETY_BLOCKED, "Content blocked by the safety filter.")
            if finish_reason == "RECITATION":
                raise ProviderError(
                    ProviderErrorKind.RECITATION_BLOCKED,
                    "Content blocked for recitation/copyright.",
                )
            if text_reply:
                raise ProviderError(
                    ProviderErrorKind.NO_AUDIO_RETURNED,
                    "The model returned text instead of audio (try a simpler style instruction).",
                )
            raise ProviderError(ProviderErrorKind.NO_AUDIO_RETURNED, "No audio data received from Gemini.")

        if isinstance(data, str):
            audio_b64 = data
        else:
            audio_b64 = base64.b64encode(data).decode("ascii")

        verbose(_LOG, "synthesized", voice=voice.voice_name, chars=len(text_to_speak))
        return SynthesisOutput(audio_b64=audio_b64, normalized_text=text_to_speak)

    async def aclose(self) -> None:
        self._clients.clear()
