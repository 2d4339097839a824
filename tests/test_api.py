"""
Tests for the HTTP API.

Tests cover:
- /health
- /v1/voices listing, lookup and VOICES_UNAVAILABLE
- /v1/ssml/preview and /v1/ssml/compile, including 400/409 errors
- /v1/tts/synthesize with text, with SSML, and with a failing backend
- /v1/sessions: membership gating, the select/patch/compile flow,
  text replacement, characters, synthesis, error statuses
- X-Request-Id propagation
- StudioService builds and closes the Azure client only when used

The StudioService is replaced through ``app.dependency_overrides`` with
one that uses a fake speech backend and an in-memory voice list.
"""
from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from ssml_studio.api.dependencies import get_service
from ssml_studio.core.config import Settings, StudioConfig
from ssml_studio.errors import SynthesisError, VoicesUnavailableError
from ssml_studio.main import create_app
from ssml_studio.services import studio
from ssml_studio.services.azure import AzureSpeechBackend
from ssml_studio.services.studio import StudioService
from ssml_studio.services.voices import VoiceCatalogService
from ssml_studio.ssml.compiler import speak_open

VOICES = [
    {"ShortName": "en-US-JennyNeural", "DisplayName": "Jenny", "Gender": "Female",
     "Locale": "en-US", "LocaleName": "English (United States)", "StyleList": ["cheerful", "sad"], "Status": "GA"},
    {"ShortName": "zh-CN-XiaoxiaoNeural", "DisplayName": "Xiaoxiao", "Gender": "Female",
     "Locale": "zh-CN", "LocaleName": "Chinese (Mandarin, Simplified)", "StyleList": ["cheerful"], "Status": "GA"},
]

PRO = {"X-Membership-Tier": "pro"}


class FakeBackend:
    def __init__(self):
        self.calls = []
        self.exc = None

    def synthesize(self, markup: str) -> bytes:
        self.calls.append(markup)
        if self.exc is not None:
            raise self.exc
        return b"ID3fake-audio"


class VoiceSource:
    def __init__(self):
        self.fail = False

    def __call__(self):
        if self.fail:
            raise VoicesUnavailableError("Azure unreachable")
        return VOICES


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def voice_source():
    return VoiceSource()


@pytest.fixture
def service(tmp_path, monkeypatch, backend, voice_source):
    monkeypatch.delenv("AZURE_SPEECH_KEY", raising=False)
    monkeypatch.delenv("AZURE_SPEECH_REGION", raising=False)
    config = StudioConfig.from_settings(Settings(raw={
        "ssml": {"global_voice": "en-US-JennyNeural", "global_language": "en-US"},
        "audio": {"base_dir": str(tmp_path / "tts")},
    }))
    voices = VoiceCatalogService(voice_source, ttl_seconds=0)
    return StudioService(config, backend=backend, voices=voices)


@pytest.fixture
def client(service):
    app = create_app()
    app.dependency_overrides[get_service] = lambda: service
    with TestClient(app) as c:
        yield c


def new_session(client, text="Hello world") -> str:
    r = client.post("/v1/sessions", json={"text": text}, headers=PRO)
    assert r.status_code == 201
    return r.json()["id"]


class TestHealth:
    def test_health(self, client):
        r = client.get("/health")
        assert r.status_code == 200
        j = r.json()
        assert j["ok"] is True
        assert j["status"] == "degraded"
        assert j["quota"]["total_keys"] == 0
        assert "version" in j

    def test_request_id_echoed(self, client):
        r = client.get("/health", headers={"X-Request-Id": "abc123"})
        assert r.headers["X-Request-Id"] == "abc123"

    def test_request_id_generated(self, client):
        r = client.get("/health")
        assert len(r.headers["X-Request-Id"]) == 12


class TestVoices:
    def test_list(self, client):
        j = client.get("/v1/voices").json()
        assert j["ok"] is True
        assert j["stale"] is False
        assert j["count"] == 2
        assert [lang["locale"] for lang in j["languages"]] == ["en-US", "zh-CN"]
        assert j["voices"]["en-US"][0]["style_list"] == ["cheerful", "sad"]

    def test_get_voice(self, client):
        j = client.get("/v1/voices/zh-CN-XiaoxiaoNeural").json()
        assert j["voice"]["display_name"] == "Xiaoxiao"

    def test_unknown_voice(self, client):
        r = client.get("/v1/voices/xx-XX-Nobody")
        assert r.status_code == 404
        assert r.json()["error"] == "NOT_FOUND"

    def test_unavailable(self, client, voice_source):
        voice_source.fail = True
        r = client.get("/v1/voices")
        assert r.status_code == 503
        assert r.json() == {"ok": False, "error": "VOICES_UNAVAILABLE", "message": "Azure unreachable"}


class TestStatelessSSML:
    def test_preview(self, client):
        r = client.post("/v1/ssml/preview", json={
            "text": "你好", "voice": "zh-CN-XiaoxiaoNeural", "language": "zh-CN",
            "style": "cheerful", "rate": 1.2,
        })
        assert r.status_code == 200
        assert r.json()["ssml"] == (
            speak_open("zh-CN")
            + '<voice name="zh-CN-XiaoxiaoNeural"><prosody rate="1.2">'
            + '<mstts:express-as style="cheerful">你好</mstts:express-as></prosody></voice></speak>'
        )

    def test_preview_uses_configured_defaults(self, client):
        ssml = client.post("/v1/ssml/preview", json={"text": "hi"}).json()["ssml"]
        assert 'xml:lang="en-US"' in ssml
        assert '<voice name="en-US-JennyNeural">hi</voice>' in ssml

    def test_preview_bad_language(self, client):
        r = client.post("/v1/ssml/preview", json={"text": "hi", "language": "en_US"})
        assert r.status_code == 400
        j = r.json()
        assert j["error"] == "INVALID_INPUT"
        assert j["details"]["reason"] == "LANGUAGE_INVALID"

    def test_compile(self, client):
        r = client.post("/v1/ssml/compile", json={
            "text": "Hello world",
            "segments": [{"start_index": 6, "end_index": 11, "style": "cheerful", "rate": 1.2, "break_time": "1s"}],
        })
        assert r.status_code == 200
        assert (
            '<voice name="en-US-JennyNeural"><prosody rate="1.2">'
            '<mstts:express-as style="cheerful">world</mstts:express-as></prosody></voice><break time="1s"/>'
        ) in r.json()["ssml"]

    def test_compile_overlap(self, client):
        r = client.post("/v1/ssml/compile", json={
            "text": "Hello world",
            "segments": [{"start_index": 0, "end_index": 6}, {"start_index": 5, "end_index": 11}],
        })
        assert r.status_code == 409
        assert r.json()["error"] == "OVERLAP"

    def test_compile_out_of_range(self, client):
        r = client.post("/v1/ssml/compile", json={
            "text": "Hi", "segments": [{"start_index": 0, "end_index": 9}],
        })
        assert r.status_code == 400

    def test_compile_bad_break(self, client):
        r = client.post("/v1/ssml/compile", json={
            "text": "Hi", "segments": [{"start_index": 0, "end_index": 2, "break_time": "forever"}],
        })
        assert r.status_code == 400
        assert r.json()["details"]["reason"] == "BREAK_TIME_INVALID"

    def test_compile_always_present_policy_by_default(self, client):
        ssml = client.post("/v1/ssml/compile", json={
            "text": "Hi", "segments": [{"start_index": 0, "end_index": 2, "rate": 1.0}],
        }).json()["ssml"]
        assert '<prosody rate="1">' in ssml

    def test_compile_omit_default_policy(self, client):
        ssml = client.post("/v1/ssml/compile", json={
            "text": "Hi", "policy": "omit_default",
            "segments": [{"start_index": 0, "end_index": 2, "rate": 1.0}],
        }).json()["ssml"]
        assert "prosody" not in ssml


class TestSynthesize:
    def test_text(self, client, backend, service):
        r = client.post("/v1/tts/synthesize", json={"text": "Hello", "style": "cheerful"})
        assert r.status_code == 200
        j = r.json()
        assert j["ok"] is True
        assert j["audio_url"].startswith("/uploads/tts/")
        assert j["file_size"] == len(b"ID3fake-audio")
        assert 'style="cheerful"' in backend.calls[0]
        name = j["audio_url"].rsplit("/", 1)[1].split(".")[0]
        assert service.audio_store.load(name) == b"ID3fake-audio"

    def test_ssml_sent_verbatim(self, client, backend):
        markup = '<speak version="1.0" xml:lang="en-US"><voice name="x">raw</voice></speak>'
        r = client.post("/v1/tts/synthesize", json={"ssml": markup})
        assert r.status_code == 200
        assert backend.calls == [markup]

    def test_missing_text(self, client):
        r = client.post("/v1/tts/synthesize", json={})
        assert r.status_code == 400
        assert r.json()["details"]["reason"] == "TEXT_REQUIRED"

    def test_backend_failure(self, client, backend):
        backend.exc = SynthesisError("Azure Speech API error: 400", {"status": 400, "upstream": "bad ssml"})
        r = client.post("/v1/tts/synthesize", json={"text": "Hello"})
        assert r.status_code == 502
        j = r.json()
        assert j["error"] == "SYNTHESIS_FAILED"
        assert j["details"]["upstream"] == "bad ssml"


class TestSessionGating:
    def test_free_tier_locked(self, client):
        r = client.post("/v1/sessions", json={"text": "Hi"})
        assert r.status_code == 403
        j = r.json()
        assert j["error"] == "FEATURE_LOCKED"
        assert j["details"] == {"feature": "ssml_advanced", "tier": "free"}

    def test_unknown_tier(self, client):
        r = client.post("/v1/sessions", json={"text": "Hi"}, headers={"X-Membership-Tier": "gold"})
        assert r.status_code == 400

    def test_premium_allowed(self, client):
        r = client.post("/v1/sessions", json={"text": "Hi"}, headers={"X-Membership-Tier": "premium"})
        assert r.status_code == 201


class TestSessionFlow:
    def test_hello_world(self, client):
        sid = new_session(client)

        r = client.post(f"/v1/sessions/{sid}/selection", json={"start": 6, "end": 11}, headers=PRO)
        assert r.status_code == 200
        assert r.json()["persisted"] is False
        assert r.json()["active_segment"]["text"] == "world"

        r = client.patch(f"/v1/sessions/{sid}/segment", json={"style": "cheerful", "rate": 1.2}, headers=PRO)
        assert r.json()["persisted"] is True

        ssml = client.get(f"/v1/sessions/{sid}/ssml", headers=PRO).json()["ssml"]
        assert ssml == (
            speak_open("en-US")
            + '<voice name="en-US-JennyNeural">Hello </voice>'
            + '<voice name="en-US-JennyNeural"><prosody rate="1.2">'
            + '<mstts:express-as style="cheerful">world</mstts:express-as>'
            + "</prosody></voice></speak>"
        )

    def test_session_state(self, client):
        sid = new_session(client)
        client.post(f"/v1/sessions/{sid}/selection", json={"start": 0, "end": 5}, headers=PRO)
        client.patch(f"/v1/sessions/{sid}/segment", json={"pitch": 3}, headers=PRO)
        j = client.get(f"/v1/sessions/{sid}", headers=PRO).json()
        assert j["text"] == "Hello world"
        assert len(j["segments"]) == 1
        assert j["segments"][0]["pitch"] == 3

    def test_patch_without_selection(self, client):
        sid = new_session(client)
        r = client.patch(f"/v1/sessions/{sid}/segment", json={"rate": 1.1}, headers=PRO)
        assert r.status_code == 409
        assert r.json()["error"] == "NO_ACTIVE_SEGMENT"

    def test_overlap(self, client):
        sid = new_session(client)
        client.post(f"/v1/sessions/{sid}/selection", json={"start": 0, "end": 5}, headers=PRO)
        client.patch(f"/v1/sessions/{sid}/segment", json={"rate": 1.1}, headers=PRO)
        client.post(f"/v1/sessions/{sid}/selection", json={"start": 3, "end": 8}, headers=PRO)
        r = client.patch(f"/v1/sessions/{sid}/segment", json={"rate": 1.2}, headers=PRO)
        assert r.status_code == 409
        assert r.json()["error"] == "OVERLAP"

    def test_selection_out_of_range(self, client):
        sid = new_session(client)
        r = client.post(f"/v1/sessions/{sid}/selection", json={"start": 0, "end": 50}, headers=PRO)
        assert r.status_code == 400

    def test_clear_override_with_null(self, client):
        sid = new_session(client)
        client.post(f"/v1/sessions/{sid}/selection", json={"start": 0, "end": 5}, headers=PRO)
        client.patch(f"/v1/sessions/{sid}/segment", json={"style": "sad", "rate": 1.3}, headers=PRO)
        j = client.patch(f"/v1/sessions/{sid}/segment", json={"style": None}, headers=PRO).json()
        assert j["active_segment"]["style"] is None
        assert j["active_segment"]["rate"] == 1.3

    def test_patch_and_remove_by_id(self, client):
        sid = new_session(client)
        client.post(f"/v1/sessions/{sid}/selection", json={"start": 0, "end": 5}, headers=PRO)
        seg_id = client.patch(f"/v1/sessions/{sid}/segment", json={"rate": 1.1}, headers=PRO).json()["active_segment"]["id"]

        j = client.patch(f"/v1/sessions/{sid}/segments/{seg_id}", json={"volume": 80}, headers=PRO).json()
        assert j["active_segment"]["volume"] == 80
        assert j["active_segment"]["rate"] == 1.1

        r = client.delete(f"/v1/sessions/{sid}/segments/{seg_id}", headers=PRO)
        assert r.json()["removed"]["id"] == seg_id
        assert client.delete(f"/v1/sessions/{sid}/segments/{seg_id}", headers=PRO).status_code == 404

    def test_replace_text_drops_segments(self, client):
        sid = new_session(client)
        client.post(f"/v1/sessions/{sid}/selection", json={"start": 6, "end": 11}, headers=PRO)
        seg_id = client.patch(f"/v1/sessions/{sid}/segment", json={"rate": 1.1}, headers=PRO).json()["active_segment"]["id"]
        j = client.put(f"/v1/sessions/{sid}/text", json={"text": "Hello there"}, headers=PRO).json()
        assert j["dropped"] == [seg_id]
        assert j["session"]["segments"] == []

    def test_update_globals(self, client):
        sid = new_session(client)
        j = client.patch(f"/v1/sessions/{sid}", json={"global_voice": "en-US-GuyNeural"}, headers=PRO).json()
        assert j["global_voice"] == "en-US-GuyNeural"
        assert j["global_language"] == "en-US"

    def test_characters(self, client):
        sid = new_session(client)
        r = client.post(
            f"/v1/sessions/{sid}/characters",
            json={"name": "Narrator", "voice": "en-US-GuyNeural", "style": "calm"},
            headers=PRO,
        )
        assert r.status_code == 201
        cid = r.json()["character"]["id"]

        client.post(f"/v1/sessions/{sid}/selection", json={"start": 0, "end": 5}, headers=PRO)
        j = client.post(f"/v1/sessions/{sid}/characters/{cid}/apply", headers=PRO).json()
        assert j["active_segment"]["character_id"] == cid
        assert j["active_segment"]["voice"] == "en-US-GuyNeural"

        assert client.delete(f"/v1/sessions/{sid}/characters/{cid}", headers=PRO).status_code == 200
        r = client.post(f"/v1/sessions/{sid}/characters/{cid}/apply", headers=PRO)
        assert r.status_code == 404

    def test_synthesize_session(self, client, backend):
        sid = new_session(client)
        client.post(f"/v1/sessions/{sid}/selection", json={"start": 6, "end": 11}, headers=PRO)
        client.patch(f"/v1/sessions/{sid}/segment", json={"style": "cheerful"}, headers=PRO)
        r = client.post(f"/v1/sessions/{sid}/synthesize", headers=PRO)
        assert r.status_code == 200
        assert r.json()["ok"] is True
        assert "cheerful" in backend.calls[0]

    def test_delete_session(self, client):
        sid = new_session(client)
        assert client.delete(f"/v1/sessions/{sid}", headers=PRO).json() == {"ok": True}
        r = client.get(f"/v1/sessions/{sid}", headers=PRO)
        assert r.status_code == 404
        assert r.json()["details"] == {"kind": "session", "id": sid}


class TestServiceLifecycle:
    """Test which HTTP clients StudioService builds and closes."""

    @pytest.fixture
    def config(self, tmp_path, monkeypatch):
        monkeypatch.delenv("AZURE_SPEECH_KEY", raising=False)
        return StudioConfig.from_settings(Settings(raw={"audio": {"base_dir": str(tmp_path / "tts")}}))

    def test_injected_parts_build_no_azure_client(self, config, backend, voice_source):
        service = StudioService(config, backend=backend, voices=VoiceCatalogService(voice_source))
        assert service._azure is None
        assert service.backend is backend
        service.close()

    def test_azure_voice_list_needs_a_client(self, config, backend):
        service = StudioService(config, backend=backend)
        assert isinstance(service._azure, AzureSpeechBackend)
        assert service.backend is backend
        service.close()

    def test_close_releases_default_backend(self, config):
        service = StudioService(config)
        assert isinstance(service.backend, AzureSpeechBackend)
        http = service.backend._client
        service.close()
        assert http.is_closed
        assert service._azure is None
        service.close()

    def test_reset_service_closes_singleton(self, config, monkeypatch):
        service = StudioService(config)
        http = service.backend._client
        monkeypatch.setattr(studio, "_service", service)
        studio.reset_service()
        assert studio._service is None
        assert http.is_closed
