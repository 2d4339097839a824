"""
Tests for the Azure Speech backend and credential pool.

Tests cover:
- KeyPool selection, reservation, quota deduction and stats
- synthesize(): request headers and body, quota deduction
- Rotation to the next key on 401/403/429
- SYNTHESIS_FAILED on other error statuses, empty audio, transport errors
- QUOTA_EXCEEDED when no key has enough quota
- fetch_voices() success and failures

No network access: requests go through httpx.MockTransport.
"""
from __future__ import annotations

import httpx
import pytest

from ssml_studio.core.config import AzureConfig, AzureKeyConfig
from ssml_studio.errors import (
    InvalidInputError,
    NotFoundError,
    QuotaExceededError,
    SynthesisError,
    VoicesUnavailableError,
)
from ssml_studio.services.azure import AzureKey, AzureSpeechBackend, KeyPool, synthesis_url, voices_url

MARKUP = '<speak version="1.0" xml:lang="en-US"><voice name="en-US-JennyNeural">Hi</voice></speak>'


def key(key_id, used=0, total=10_000, active=True, region="eastasia") -> AzureKey:
    return AzureKey(
        id=key_id,
        speech_key=f"secret-{key_id}",
        speech_region=region,
        total_quota=total,
        used_quota=used,
        is_active=active,
    )


def backend_with(handler, *keys) -> AzureSpeechBackend:
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return AzureSpeechBackend(KeyPool(keys), AzureConfig(), client=client)


class TestKeyPool:
    """Test KeyPool."""

    def test_picks_least_used(self):
        pool = KeyPool([key("a", used=500), key("b", used=100)])
        assert pool.available().id == "b"

    def test_skips_inactive_and_exhausted(self):
        pool = KeyPool([key("a", active=False), key("b", used=10_000), key("c", used=9_000)])
        assert pool.available().id == "c"

    def test_exclude(self):
        pool = KeyPool([key("a"), key("b", used=1)])
        assert pool.available(exclude=["a"]).id == "b"
        assert pool.available(exclude=["a", "b"]) is None

    def test_use_quota(self):
        pool = KeyPool([key("a", used=100)])
        assert pool.use_quota("a", 50).used_quota == 150

    def test_use_quota_over_total(self):
        pool = KeyPool([key("a", used=9_990)])
        with pytest.raises(QuotaExceededError):
            pool.use_quota("a", 20)

    def test_use_quota_errors(self):
        pool = KeyPool([key("a", active=False)])
        with pytest.raises(NotFoundError):
            pool.use_quota("zzz", 1)
        with pytest.raises(QuotaExceededError):
            pool.use_quota("a", 1)
        with pytest.raises(InvalidInputError):
            pool.use_quota("a", -1)

    def test_reserve_holds_quota(self):
        pool = KeyPool([key("a", used=100), key("b", used=50)])
        held = pool.reserve(30)
        assert held.id == "b"
        assert held.used_quota == 80
        pool.release("b", 30)
        assert held.used_quota == 50

    def test_reserve_skips_keys_without_room(self):
        pool = KeyPool([key("a", used=0, total=10), key("b", used=500)])
        assert pool.reserve(20).id == "b"
        assert pool.reserve(20_000) is None

    def test_release_unknown_key_is_ignored(self):
        pool = KeyPool([key("a")])
        pool.release("zzz", 10)
        assert pool.stats()["used_quota"] == 0

    def test_reset_quota(self):
        pool = KeyPool([key("a", used=400)])
        assert pool.reset_quota("a").used_quota == 0

    def test_stats(self):
        pool = KeyPool([key("a", used=100, total=1000), key("b", active=False, total=500)])
        assert pool.stats() == {
            "total_keys": 2,
            "active_keys": 1,
            "total_quota": 1500,
            "used_quota": 100,
            "available_quota": 1400,
            "keys_with_quota": 1,
        }

    def test_keys_hide_secret(self):
        pool = KeyPool([key("a")])
        (entry,) = pool.keys()
        assert "speech_key" not in entry
        assert entry["remaining"] == 10_000

    def test_from_config(self):
        pool = KeyPool.from_config([AzureKeyConfig(id="p", speech_key="k", speech_region="westus", total_quota=42)])
        assert len(pool) == 1
        assert pool.available().total_quota == 42
        assert pool.has_quota(42)
        assert not pool.has_quota(43)


class TestSynthesize:
    """Test AzureSpeechBackend.synthesize()."""

    def test_success(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, content=b"ID3audio")

        backend = backend_with(handler, key("a"))
        assert backend.synthesize(MARKUP) == b"ID3audio"

        request = seen[0]
        assert str(request.url) == synthesis_url("eastasia")
        assert request.headers["Ocp-Apim-Subscription-Key"] == "secret-a"
        assert request.headers["Content-Type"] == "application/ssml+xml"
        assert request.headers["X-Microsoft-OutputFormat"] == "audio-16khz-128kbitrate-mono-mp3"
        assert request.content.decode("utf-8") == MARKUP
        assert backend.pool.stats()["used_quota"] == len(MARKUP)

    @pytest.mark.parametrize("status", [401, 403, 429])
    def test_rotates_on_rejected_key(self, status):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request.headers["Ocp-Apim-Subscription-Key"])
            if request.headers["Ocp-Apim-Subscription-Key"] == "secret-a":
                return httpx.Response(status)
            return httpx.Response(200, content=b"audio")

        backend = backend_with(handler, key("a"), key("b", used=1))
        assert backend.synthesize(MARKUP) == b"audio"
        assert calls == ["secret-a", "secret-b"]
        (a, b) = backend.pool.keys()
        assert a["used_quota"] == 0
        assert b["used_quota"] == 1 + len(MARKUP)

    def test_all_keys_rejected(self):
        backend = backend_with(lambda request: httpx.Response(401), key("a"), key("b"))
        with pytest.raises(QuotaExceededError) as exc_info:
            backend.synthesize(MARKUP)
        assert sorted(exc_info.value.details["tried"]) == ["a", "b"]

    def test_no_keys(self):
        backend = backend_with(lambda request: httpx.Response(200, content=b"x"))
        with pytest.raises(QuotaExceededError):
            backend.synthesize(MARKUP)

    def test_not_enough_quota(self):
        backend = backend_with(lambda request: httpx.Response(200, content=b"x"), key("a", used=9_999))
        with pytest.raises(QuotaExceededError):
            backend.synthesize(MARKUP)

    def test_bad_request_is_not_rotated(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(400, text="Invalid SSML")

        backend = backend_with(handler, key("a"), key("b"))
        with pytest.raises(SynthesisError) as exc_info:
            backend.synthesize(MARKUP)
        assert len(calls) == 1
        assert exc_info.value.details == {"status": 400, "upstream": "Invalid SSML"}

    def test_concurrent_spend_keeps_delivered_audio(self):
        pool = KeyPool([key("k", total=100)])

        def handler(request: httpx.Request) -> httpx.Response:
            # Another request drains the key while this one is in flight
            with pytest.raises(QuotaExceededError):
                pool.use_quota("k", 60)
            pool.use_quota("k", 50)
            return httpx.Response(200, content=b"audio")

        client = httpx.Client(transport=httpx.MockTransport(handler))
        backend = AzureSpeechBackend(pool, AzureConfig(), client=client)
        assert backend.synthesize("x" * 50) == b"audio"
        assert pool.stats()["used_quota"] == 100

    def test_failed_request_releases_quota(self):
        backend = backend_with(lambda request: httpx.Response(500, text="boom"), key("a", used=10))
        with pytest.raises(SynthesisError):
            backend.synthesize(MARKUP)
        assert backend.pool.stats()["used_quota"] == 10

    def test_empty_audio(self):
        backend = backend_with(lambda request: httpx.Response(200, content=b""), key("a"))
        with pytest.raises(SynthesisError, match="No audio"):
            backend.synthesize(MARKUP)
        assert backend.pool.stats()["used_quota"] == 0

    def test_transport_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        backend = backend_with(handler, key("a"))
        with pytest.raises(SynthesisError):
            backend.synthesize(MARKUP)


class TestFetchVoices:
    """Test AzureSpeechBackend.fetch_voices()."""

    def test_success(self):
        payload = [{"ShortName": "en-US-JennyNeural", "Locale": "en-US"}]

        def handler(request: httpx.Request) -> httpx.Response:
            assert str(request.url) == voices_url("westus")
            return httpx.Response(200, json=payload)

        backend = backend_with(handler, key("a", region="westus"))
        assert backend.fetch_voices() == payload

    def test_no_key(self):
        backend = backend_with(lambda request: httpx.Response(200, json=[]))
        with pytest.raises(VoicesUnavailableError):
            backend.fetch_voices()

    def test_http_error(self):
        backend = backend_with(lambda request: httpx.Response(500), key("a"))
        with pytest.raises(VoicesUnavailableError):
            backend.fetch_voices()

    def test_not_a_list(self):
        backend = backend_with(lambda request: httpx.Response(200, json={"voices": []}), key("a"))
        with pytest.raises(VoicesUnavailableError):
            backend.fetch_voices()

    def test_bad_json(self):
        backend = backend_with(lambda request: httpx.Response(200, text="<html>"), key("a"))
        with pytest.raises(VoicesUnavailableError):
            backend.fetch_voices()
