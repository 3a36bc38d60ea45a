"""Tests for the HTTP API using TestClient with an injected service."""
from __future__ import annotations

import pytest

from conftest import FakeProvider, pcm_for

T0 = 1_760_000_000.0


@pytest.fixture
def make_client(settings, monkeypatch):
    """Build a TestClient around a StudioService with a fake provider."""
    from fastapi.testclient import TestClient

    from voice_studio.api.dependencies import get_studio_service
    from voice_studio.main import create_app
    from voice_studio.services.studio_service import StudioService

    monkeypatch.delenv("VOICE_STUDIO_SYSTEM_KEY", raising=False)

    def factory(provider=None, user_keys=None, app_settings=None):
        service = StudioService(
            app_settings or settings,
            provider=provider or FakeProvider(),
            user_keys=user_keys,
            clock=lambda: T0,
        )
        app = create_app()
        app.dependency_overrides[get_studio_service] = lambda: service
        return TestClient(app), service

    return factory


class TestSession:
    """Test loading and listing segments."""

    def test_load_and_list(self, make_client):
        client, _ = make_client()

        r = client.post("/v1/session", json={"text": "One two. Three four.", "max_words": 2})
        assert r.status_code == 200
        body = r.json()
        assert [s["text"] for s in body["segments"]] == ["One two.", "Three four."]
        assert all(s["status"] == "idle" for s in body["segments"])
        assert body["full_text"] == "One two. Three four."

        r = client.get("/v1/segments")
        assert len(r.json()["segments"]) == 2

    def test_blank_text_is_400(self, make_client):
        client, _ = make_client()
        r = client.post("/v1/session", json={"text": "   "})
        assert r.status_code == 400
        body = r.json()
        assert body["ok"] is False
        assert body["error"] == "INVALID_INPUT"
        assert body["details"]["reason"] == "TEXT_REQUIRED"

    def test_edit_unknown_segment_is_404(self, make_client):
        client, _ = make_client()
        r = client.patch("/v1/segments/seg-nope", json={"text": "x"})
        assert r.status_code == 404
        assert r.json()["error"] == "SEGMENT_NOT_FOUND"


class TestBatch:
    """Test batch generation over HTTP."""

    def test_batch_returns_wav(self, make_client):
        client, _ = make_client(user_keys=["k1-0123456789", "k2-0123456789"])
        client.post("/v1/session", json={"text": "One. Two.", "max_words": 1})

        r = client.post("/v1/batch", json={"voice": {"voice_name": "Kore", "language": ""}})

        assert r.status_code == 200
        assert r.headers["content-type"] == "audio/wav"
        assert r.content[:4] == b"RIFF"
        assert r.content[44:] == pcm_for("One.") + pcm_for("Two.")
        assert r.headers["X-Completed"] == "2"
        assert r.headers["X-Failed"] == "0"
        assert r.headers["Content-Disposition"].startswith('attachment; filename="voice-studio-full-package-')

    def test_batch_reports_failures(self, make_client):
        provider = FakeProvider(fail={"Two.": "safety-blocked"})
        client, service = make_client(provider=provider, user_keys=["k-0123456789"])
        client.post("/v1/session", json={"text": "One. Two.", "max_words": 1})

        r = client.post("/v1/batch")

        assert r.status_code == 200
        assert r.headers["X-Failed"] == "1"
        assert r.headers["X-Failed-Segments"] == service.segments()[1].id
        seg = client.get("/v1/segments").json()["segments"][1]
        assert seg["status"] == "failed"
        assert "safety-blocked" in seg["error"]

    def test_all_failed_is_422(self, make_client):
        provider = FakeProvider(fail={"One.": "transport-error"})
        client, _ = make_client(provider=provider, user_keys=["k-0123456789"])
        client.post("/v1/session", json={"text": "One."})

        r = client.post("/v1/batch")
        assert r.status_code == 422
        assert r.json()["error"] == "NO_AUDIO"

    def test_no_credentials_is_400(self, make_client):
        client, _ = make_client()
        client.post("/v1/session", json={"text": "One."})
        r = client.post("/v1/batch")
        assert r.status_code == 400
        assert r.json()["error"] == "INVALID_CREDENTIAL"

    def test_unknown_voice_is_400(self, make_client):
        client, _ = make_client(user_keys=["k-0123456789"])
        client.post("/v1/session", json={"text": "One."})
        r = client.post("/v1/batch", json={"voice": {"voice_name": "Nobody"}})
        assert r.status_code == 400
        assert r.json()["details"]["reason"] == "VOICE_UNSUPPORTED"

    def test_quota_exceeded_is_429(self, make_client, settings):
        from voice_studio.core.config import Settings

        raw = dict(settings.raw)
        raw["credentials"] = {"system_key": "system-key-0123456789"}
        raw["quota"] = {"max_usage": 1, "window_seconds": 7200}
        client, _ = make_client(app_settings=Settings(raw=raw))
        client.post("/v1/session", json={"text": "One. Two.", "max_words": 1})

        r = client.post("/v1/batch")
        assert r.status_code == 429
        body = r.json()
        assert body["error"] == "QUOTA_EXCEEDED"
        assert body["details"]["remaining"] == 1


class TestSegmentsAndExport:
    """Test single-segment routes and export."""

    def test_generate_select_export(self, make_client):
        client, service = make_client(user_keys=["k-0123456789"])
        client.post("/v1/session", json={"text": "One. Two.", "max_words": 1})
        first, second = [s.id for s in service.segments()]

        r = client.post(f"/v1/segments/{second}/generate")
        assert r.status_code == 200
        assert r.json()["status"] == "completed"

        r = client.get(f"/v1/segments/{second}/audio")
        assert r.content[44:] == pcm_for("Two.")

        r = client.post(f"/v1/segments/{first}/select")
        assert r.status_code == 400

        r = client.post(f"/v1/segments/{second}/select")
        assert r.json()["selected"] is True

        r = client.post("/v1/export")
        assert r.status_code == 200
        assert r.headers["X-Segments"] == "1"
        assert r.content[44:] == pcm_for("Two.")

    def test_generate_failure_is_502(self, make_client):
        provider = FakeProvider(fail={"One.": "recitation-blocked"})
        client, service = make_client(provider=provider, user_keys=["k-0123456789"])
        client.post("/v1/session", json={"text": "One."})
        sid = service.segments()[0].id

        r = client.post(f"/v1/segments/{sid}/generate")
        assert r.status_code == 502
        assert r.json()["details"]["kind"] == "recitation-blocked"

    def test_export_without_selection_is_422(self, make_client):
        client, _ = make_client(user_keys=["k-0123456789"])
        client.post("/v1/session", json={"text": "One."})
        client.post("/v1/batch")
        assert client.post("/v1/export").status_code == 422

    def test_preview(self, make_client):
        provider = FakeProvider()
        client, _ = make_client(provider=provider, user_keys=["k-0123456789"])
        r = client.post("/v1/preview", json={"voice": {"voice_name": "Puck", "language": ""}, "text": "Sample."})
        assert r.status_code == 200
        assert r.content[44:] == pcm_for("Sample.")
        assert provider.calls[0][2].voice_name == "Puck"


class TestCredentialsAndInfo:
    """Test credentials, quota, catalogue and health routes."""

    def test_put_credentials(self, make_client):
        client, _ = make_client()
        r = client.put("/v1/credentials", json={"keys": ["abcdefghijklmnop"]})
        assert r.status_code == 200
        assert r.json() == {"mode": "user", "workers": 1, "keys": ["abcdef...mnop"]}
        assert client.get("/v1/credentials").json()["mode"] == "user"

    def test_empty_key_list_is_422(self, make_client):
        client, _ = make_client()
        assert client.put("/v1/credentials", json={"keys": []}).status_code == 422

    def test_shared_without_system_key(self, make_client):
        client, _ = make_client()
        r = client.post("/v1/credentials/shared")
        assert r.status_code == 400
        assert r.json()["error"] == "INVALID_CREDENTIAL"

    def test_quota(self, make_client):
        client, _ = make_client()
        body = client.get("/v1/quota").json()
        assert body["remaining"] == 10
        assert body["applies"] is False

    def test_voices(self, make_client):
        client, _ = make_client()
        body = client.get("/v1/voices").json()
        assert len(body["voices"]) == 30
        assert {"code": "vi", "name": "Vietnamese"} in body["languages"]

    def test_health(self, make_client):
        client, _ = make_client()
        body = client.get("/health").json()
        assert body["status"] == "degraded"
        assert body["provider"] == "fake"

    def test_metrics(self, make_client):
        client, _ = make_client(user_keys=["k-0123456789"])
        client.post("/v1/session", json={"text": "One."})
        client.post("/v1/batch")
        r = client.get("/metrics")
        assert r.status_code == 200
        assert "voice_studio_segments_total" in r.text
