"""Tests for the Gemini provider with a mocked google-genai client."""
from __future__ import annotations

import asyncio
import base64
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import pytest


def _audio_response(data: bytes, finish_reason="STOP"):
    part = SimpleNamespace(inline_data=SimpleNamespace(data=data, mime_type="audio/L16;rate=24000"), text=None)
    return SimpleNamespace(candidates=[SimpleNamespace(
        content=SimpleNamespace(parts=[part]),
        finish_reason=SimpleNamespace(name=finish_reason),
    )])


def _text_response(text: str, finish_reason="STOP"):
    part = SimpleNamespace(inline_data=None, text=text)
    return SimpleNamespace(candidates=[SimpleNamespace(
        content=SimpleNamespace(parts=[part]),
        finish_reason=SimpleNamespace(name=finish_reason),
    )])


def _blocked_response(finish_reason: str):
    return SimpleNamespace(candidates=[SimpleNamespace(
        content=None,
        finish_reason=SimpleNamespace(name=finish_reason),
    )])


def _fake_client(*responses):
    generate = AsyncMock(side_effect=list(responses))
    return SimpleNamespace(aio=SimpleNamespace(models=SimpleNamespace(generate_content=generate))), generate


def _provider():
    from voice_studio.core.config import Settings
    from voice_studio.tts.providers.gemini_provider import GeminiProvider

    return GeminiProvider(Settings(raw={}))


def _voice(**kw):
    from voice_studio.tts.provider import VoiceConfig

    params = {"voice_name": "Kore", "language": ""}
    params.update(kw)
    return VoiceConfig(**params)


class TestPrompt:
    """Test prompt construction."""

    def test_style_prefix(self):
        from voice_studio.tts.providers.gemini_provider import build_prompt

        assert build_prompt("Hello.", "Cheerful") == "Cheerful: Hello."
        assert build_prompt("Hello.", "  ") == "Hello."


class TestSynthesize:
    """Test audio extraction and error mapping."""

    def test_audio_is_base64_encoded(self):
        provider = _provider()
        client, generate = _fake_client(_audio_response(b"\x01\x02\x03\x04"))

        with patch.object(provider, "_client_for", return_value=client):
            out = asyncio.run(provider.synthesize("Hello.", _voice(style="Calm"), "key"))

        assert base64.b64decode(out.audio_b64) == b"\x01\x02\x03\x04"
        assert out.normalized_text == "Hello."
        kwargs = generate.call_args.kwargs
        assert kwargs["contents"] == "Calm: Hello."
        assert kwargs["model"] == provider.tts_model
        config = kwargs["config"]
        assert config.response_modalities == ["AUDIO"]
        assert config.speech_config.voice_config.prebuilt_voice_config.voice_name == "Kore"

    @pytest.mark.parametrize("reason,kind", [
        ("SAFETY", "safety-blocked"),
        ("RECITATION", "recitation-blocked"),
        ("OTHER", "no-audio-returned"),
    ])
    def test_blocked(self, reason, kind):
        from voice_studio.core.errors import ProviderError

        provider = _provider()
        client, _ = _fake_client(_blocked_response(reason))
        with patch.object(provider, "_client_for", return_value=client):
            with pytest.raises(ProviderError) as exc:
                asyncio.run(provider.synthesize("Hello.", _voice(), "key"))
        assert exc.value.kind == kind

    def test_text_instead_of_audio(self):
        from voice_studio.core.errors import ProviderError

        provider = _provider()
        client, _ = _fake_client(_text_response("I cannot read that aloud."))
        with patch.object(provider, "_client_for", return_value=client):
            with pytest.raises(ProviderError) as exc:
                asyncio.run(provider.synthesize("Hello.", _voice(), "key"))
        assert exc.value.kind == "no-audio-returned"
        assert "text instead of audio" in exc.value.message

    def test_empty_candidates(self):
        from voice_studio.core.errors import ProviderError

        provider = _provider()
        client, _ = _fake_client(SimpleNamespace(candidates=[]))
        with patch.object(provider, "_client_for", return_value=client):
            with pytest.raises(ProviderError) as exc:
                asyncio.run(provider.synthesize("Hello.", _voice(), "key"))
        assert exc.value.kind == "no-audio-returned"

    def test_bad_request_is_malformed_config(self):
        from google.genai import errors as genai_errors
        from voice_studio.core.errors import ProviderError

        provider = _provider()
        err = genai_errors.ClientError(400, {"error": {"code": 400, "message": "bad", "status": "INVALID_ARGUMENT"}})
        client, _ = _fake_client(err)
        with patch.object(provider, "_client_for", return_value=client):
            with pytest.raises(ProviderError) as exc:
                asyncio.run(provider.synthesize("Hello.", _voice(), "key"))
        assert exc.value.kind == "malformed-config"

    def test_server_error_is_transport(self):
        from google.genai import errors as genai_errors
        from voice_studio.core.errors import ProviderError

        provider = _provider()
        err = genai_errors.ServerError(503, {"error": {"code": 503, "message": "busy", "status": "UNAVAILABLE"}})
        client, _ = _fake_client(err)
        with patch.object(provider, "_client_for", return_value=client):
            with pytest.raises(ProviderError) as exc:
                asyncio.run(provider.synthesize("Hello.", _voice(), "key"))
        assert exc.value.kind == "transport-error"

    def test_network_error_is_transport(self):
        import httpx
        from voice_studio.core.errors import ProviderError

        provider = _provider()
        client, _ = _fake_client(httpx.ConnectError("refused"))
        with patch.object(provider, "_client_for", return_value=client):
            with pytest.raises(ProviderError) as exc:
                asyncio.run(provider.synthesize("Hello.", _voice(), "key"))
        assert exc.value.kind == "transport-error"


class TestTranslation:
    """Test the optional translation step."""

    def test_translated_text_is_spoken(self):
        provider = _provider()
        client, generate = _fake_client(_text_response('"Xin chào."'), _audio_response(b"\x00\x00"))

        with patch.object(provider, "_client_for", return_value=client):
            out = asyncio.run(provider.synthesize("Hello.", _voice(language="vi"), "key"))

        assert out.normalized_text == "Xin chào."
        first, second = generate.call_args_list
        assert first.kwargs["model"] == provider.text_model
        assert "Vietnamese" in first.kwargs["contents"]
        assert second.kwargs["contents"] == "Xin chào."

    def test_empty_translation_keeps_text(self):
        provider = _provider()
        client, _ = _fake_client(_text_response(""), _audio_response(b"\x00\x00"))

        with patch.object(provider, "_client_for", return_value=client):
            out = asyncio.run(provider.synthesize("Hello.", _voice(language="vi"), "key"))

        assert out.normalized_text == "Hello."

    def test_translation_failure(self):
        import httpx
        from voice_studio.core.errors import ProviderError

        provider = _provider()
        client, generate = _fake_client(httpx.ReadTimeout("slow"))
        with patch.object(provider, "_client_for", return_value=client):
            with pytest.raises(ProviderError) as exc:
                asyncio.run(provider.synthesize("Hello.", _voice(language="vi"), "key"))
        assert exc.value.kind == "translation-failed"
        assert generate.call_count == 1


class TestClientCache:
    """Test per-credential client reuse."""

    def test_one_client_per_credential(self):
        provider = _provider()
        with patch("voice_studio.tts.providers.gemini_provider.genai.Client") as factory:
            factory.side_effect = lambda **kw: object()
            a1 = provider._client_for("a")
            a2 = provider._client_for("a")
            b = provider._client_for("b")
        assert a1 is a2
        assert a1 is not b
        assert factory.call_count == 2

        asyncio.run(provider.aclose())
        assert provider._clients == {}
