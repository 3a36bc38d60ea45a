"""Tests for the StudioService session facade."""
from __future__ import annotations

import asyncio

import pytest

from conftest import FakeProvider, pcm_for

T0 = 1_760_000_000.0


@pytest.fixture(autouse=True)
def no_env_key(monkeypatch):
    monkeypatch.delenv("VOICE_STUDIO_SYSTEM_KEY", raising=False)


def _with_system_key(settings, key="system-key-0123456789"):
    from voice_studio.core.config import Settings

    raw = dict(settings.raw)
    raw["credentials"] = {"system_key": key}
    return Settings(raw=raw)


def _service(settings, provider=None, **kw):
    from voice_studio.services.studio_service import StudioService

    return StudioService(settings, provider=provider or FakeProvider(), clock=lambda: T0, **kw)


class TestCredentials:
    """Test credential modes and persistence."""

    def test_no_key(self, settings):
        from voice_studio.core.errors import InvalidCredential

        service = _service(settings)
        assert service.credential_mode == "none"
        service.load_text("Hello there.")
        with pytest.raises(InvalidCredential):
            asyncio.run(service.generate_all())

    def test_system_key_is_shared(self, settings):
        service = _service(_with_system_key(settings))
        assert service.credential_mode == "shared"
        assert service.credential_summary() == {"mode": "shared", "workers": 1, "keys": []}

    def test_user_keys_persist(self, settings):
        service = _service(settings)
        summary = service.set_user_credentials(["key-aaaaaaaaaa", " key-bbbbbbbbbb "])
        assert summary["mode"] == "user"
        assert summary["workers"] == 2
        assert summary["keys"] == ["key-aa...aaaa", "key-bb...bbbb"]

        restored = _service(settings)
        assert restored.credential_mode == "user"
        assert restored.orchestrator.pool.keys == ["key-aaaaaaaaaa", "key-bbbbbbbbbb"]

    def test_user_keys_win_over_system_key(self, settings):
        service = _service(_with_system_key(settings), user_keys=["mine-0123456789"])
        assert service.credential_mode == "user"

    def test_blank_key_rejected(self, settings):
        from voice_studio.services.validators import ValidationError

        service = _service(settings)
        with pytest.raises(ValidationError) as exc:
            service.set_user_credentials(["good-key", ""])
        assert exc.value.reason == "CREDENTIAL_BLANK"
        assert service.credential_mode == "none"

    def test_switch_to_shared_forgets_user_keys(self, settings):
        s = _with_system_key(settings)
        service = _service(s, user_keys=["mine-0123456789"])
        service.use_shared_credential()
        assert service.credential_mode == "shared"
        assert _service(s).credential_mode == "shared"

    def test_shared_without_system_key(self, settings):
        from voice_studio.core.errors import InvalidCredential

        with pytest.raises(InvalidCredential):
            _service(settings).use_shared_credential()

    def test_shared_rejected_when_exhausted(self, settings):
        from voice_studio.core.errors import QuotaExceeded
        from voice_studio.tts.quota import UsageWindow
        from voice_studio.tts.storage import StateStore

        s = _with_system_key(settings)
        StateStore(s.get_studio_config().storage.state_file).save_usage(UsageWindow(10, T0 - 60))
        service = _service(s, user_keys=["mine-0123456789"])

        with pytest.raises(QuotaExceeded):
            service.use_shared_credential()
        assert service.credential_mode == "user"

    def test_credentials_locked_while_batch_runs(self, settings):
        from voice_studio.core.errors import BatchAlreadyRunning

        s = _with_system_key(settings)
        texts = ["One.", "Two.", "Three."]
        provider = FakeProvider(delays={t: 0.05 for t in texts})
        service = _service(s, provider=provider)
        service.load_text(" ".join(texts), max_words=1)

        async def scenario():
            task = asyncio.create_task(service.generate_all())
            await asyncio.sleep(0.01)
            with pytest.raises(BatchAlreadyRunning):
                service.set_user_credentials(["user-key-0123456789"])
            with pytest.raises(BatchAlreadyRunning):
                service.use_shared_credential()
            await task

        asyncio.run(scenario())
        assert service.credential_mode == "shared"
        assert {c[1] for c in provider.calls} == {"system-key-0123456789"}
        assert service.quota_status().count == 3
        assert service.state_store.load().user_keys == []


class TestSegments:
    """Test text loading, editing and selection."""

    def test_load_text(self, settings):
        service = _service(settings)
        segs = service.load_text("One two. Three four. Five six.", max_words=2)
        assert [s.text for s in segs] == ["One two.", "Three four.", "Five six."]
        assert segs[0].id == f"seg-{int(T0 * 1000)}-0"

    def test_same_text_keeps_segments(self, settings):
        service = _service(settings, user_keys=["k-0123456789"])
        service.load_text("Alpha. Beta.")
        asyncio.run(service.generate_all())

        segs = service.load_text("Alpha. Beta.")
        assert all(s.has_audio for s in segs)

    def test_new_text_replaces_segments(self, settings):
        service = _service(settings, user_keys=["k-0123456789"])
        service.load_text("Alpha. Beta.")
        asyncio.run(service.generate_all())

        segs = service.load_text("Gamma.")
        assert [s.text for s in segs] == ["Gamma."]
        assert not segs[0].has_audio

    def test_new_word_limit_resegments(self, settings):
        service = _service(settings, user_keys=["k-0123456789"])
        service.load_text("One two. Three four.", max_words=4)
        asyncio.run(service.generate_all())

        segs = service.load_text("One two. Three four.", max_words=2)
        assert [s.text for s in segs] == ["One two.", "Three four."]
        assert not any(s.has_audio for s in segs)

        again = service.load_text("One two. Three four.", max_words=2)
        assert [s.id for s in again] == [s.id for s in segs]

    def test_blank_text_rejected(self, settings):
        from voice_studio.services.validators import ValidationError

        with pytest.raises(ValidationError) as exc:
            _service(settings).load_text("   ")
        assert exc.value.reason == "TEXT_REQUIRED"

    def test_edit_keeps_audio_and_source(self, settings):
        service = _service(settings, user_keys=["k-0123456789"])
        service.load_text("Alpha. Beta.")
        asyncio.run(service.generate_all())
        first = service.segments()[0].id

        edited = service.edit_segment(first, "Alpha edited.")
        assert edited.text == "Alpha edited."
        assert edited.has_audio

        segs = service.load_text("Alpha edited. Beta.")
        assert segs[0].id == first

    def test_toggle_selection(self, settings):
        from voice_studio.services.validators import ValidationError

        service = _service(settings, user_keys=["k-0123456789"])
        service.load_text("Alpha.")
        sid = service.segments()[0].id
        with pytest.raises(ValidationError):
            service.toggle_selection(sid)

        asyncio.run(service.generate_all())
        assert service.toggle_selection(sid).selected is True
        assert service.toggle_selection(sid).selected is False

    def test_toggle_select_all(self, settings):
        provider = FakeProvider(fail={"Beta.": "safety-blocked"})
        service = _service(settings, provider=provider, user_keys=["k-0123456789"])
        service.load_text("Alpha. Beta. Gamma.", max_words=1)
        asyncio.run(service.generate_all())

        assert [s.selected for s in service.toggle_select_all()] == [True, False, True]
        assert [s.selected for s in service.toggle_select_all()] == [False, False, False]


class TestGeneration:
    """Test batch, export and quota through the facade."""

    def test_generate_all_and_export(self, settings):
        service = _service(settings, user_keys=["k1-0123456789", "k2-0123456789"])
        service.load_text("One. Two. Three.", max_words=1)

        result = asyncio.run(service.generate_all())
        assert len(result.completed) == 3
        assert service.batch_state() == "completed"

        service.toggle_select_all()
        export = service.export_selected()
        assert export.wav_bytes[44:] == pcm_for("One.") + pcm_for("Two.") + pcm_for("Three.")

    def test_generate_without_text(self, settings):
        from voice_studio.services.validators import ValidationError

        with pytest.raises(ValidationError):
            asyncio.run(_service(settings, user_keys=["k-0123456789"]).generate_all())

    def test_shared_usage_is_persisted(self, settings):
        s = _with_system_key(settings)
        service = _service(s)
        service.load_text("One. Two.", max_words=1)
        asyncio.run(service.generate_all())

        assert service.quota_status().count == 2
        restored = _service(s)
        assert restored.quota_status().count == 2
        assert restored.quota_status().remaining == 8

    def test_load_rejected_while_running(self, settings):
        from voice_studio.core.errors import BatchAlreadyRunning

        provider = FakeProvider(delays={"Slow.": 0.05})
        service = _service(settings, provider=provider, user_keys=["k-0123456789"])
        service.load_text("Slow.")

        async def scenario():
            task = asyncio.create_task(service.generate_all())
            await asyncio.sleep(0.01)
            with pytest.raises(BatchAlreadyRunning):
                service.load_text("Other text.")
            await task

        asyncio.run(scenario())

    def test_aclose(self, settings):
        provider = FakeProvider()
        asyncio.run(_service(settings, provider=provider).aclose())
        assert provider.closed


class TestSingleton:
    """Test the module-level service accessor."""

    def test_get_service_is_cached(self, settings):
        from unittest.mock import patch

        from voice_studio.services import studio_service

        studio_service.reset_service()
        try:
            with patch.object(studio_service, "get_provider", return_value=FakeProvider()):
                first = studio_service.get_service(settings)
                assert studio_service.get_service(settings) is first
        finally:
            studio_service.reset_service()
