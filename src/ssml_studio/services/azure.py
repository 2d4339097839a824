"""
Azure Speech backend.

Sends SSML to the Azure neural TTS REST endpoint and fetches the voice
list. Credentials come from a KeyPool: each key has a character quota,
and the least used active key with quota left serves the next request.

Endpoints:
    POST https://{region}.tts.speech.microsoft.com/cognitiveservices/v1
    GET  https://{region}.tts.speech.microsoft.com/cognitiveservices/voices/list

Rotation:
    A 401, 403 or 429 answer marks the key as spent for this call and the
    next key is tried. Any other error status is returned to the caller
    straight away. Successful calls deduct ``len(markup)`` characters.

Usage:
    pool = KeyPool.from_config(config.azure.keys)
    backend = AzureSpeechBackend(pool, config.azure)
    audio = backend.synthesize(markup)
"""
from __future__ import annotations

import threading
from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterable, List, Optional

import httpx

from ssml_studio.core.config import AzureConfig, AzureKeyConfig
from ssml_studio.core.logging import fail, get_logger, info, verbose, warn
from ssml_studio.errors import (
    InvalidInputError,
    NotFoundError,
    QuotaExceededError,
    SynthesisError,
    VoicesUnavailableError,
)
from ssml_studio.utils.timeit import timeit

_LOG = get_logger("ssml-studio.azure")

# Answers that mean "this credential cannot serve the call"
_ROTATE_STATUSES = (401, 403, 429)


class _KeyRejected(Exception):
    """Azure refused one credential; the next one may still work."""


def synthesis_url(region: str) -> str:
    return f"https://{region}.tts.speech.microsoft.com/cognitiveservices/v1"


def voices_url(region: str) -> str:
    return f"https://{region}.tts.speech.microsoft.com/cognitiveservices/voices/list"


@dataclass
class AzureKey:
    id: str
    speech_key: str
    speech_region: str
    total_quota: int
    used_quota: int = 0
    is_active: bool = True

    @property
    def remaining(self) -> int:
        return max(self.total_quota - self.used_quota, 0)

    @property
    def usable(self) -> bool:
        return self.is_active and self.used_quota < self.total_quota

    def public_dict(self) -> Dict[str, Any]:
        """Key state without the secret."""
        data = asdict(self)
        data.pop("speech_key")
        data["remaining"] = self.remaining
        return data


class KeyPool:
    """
    Thread-safe set of Azure credentials with character quotas.

    Quota is tracked in memory only; a restart starts from the
    configured ``used_quota`` values.
    """

    def __init__(self, keys: Iterable[AzureKey] = ()):
        self._keys: Dict[str, AzureKey] = {}
        self._lock = threading.Lock()
        for key in keys:
            self._keys[key.id] = key

    @classmethod
    def from_config(cls, keys: Iterable[AzureKeyConfig]) -> "KeyPool":
        return cls(
            AzureKey(
                id=k.id,
                speech_key=k.speech_key,
                speech_region=k.speech_region,
                total_quota=k.total_quota,
                used_quota=k.used_quota,
                is_active=k.is_active,
            )
            for k in keys
        )

    def __len__(self) -> int:
        return len(self._keys)

    def available(self, exclude: Iterable[str] = ()) -> Optional[AzureKey]:
        """The usable key with the lowest usage, skipping ids in ``exclude``."""
        skip = set(exclude)
        with self._lock:
            candidates = [k for k in self._keys.values() if k.usable and k.id not in skip]
            if not candidates:
                return None
            return min(candidates, key=lambda k: k.used_quota)

    def has_quota(self, chars: int = 1) -> bool:
        key = self.available()
        return key is not None and key.remaining >= chars

    def use_quota(self, key_id: str, chars: int) -> AzureKey:
        """
        Deduct characters from a key.

        Raises:
            NotFoundError: Unknown key.
            QuotaExceededError: Key inactive or deduction would pass its total.
        """
        if chars < 0:
            raise InvalidInputError(f"Character count must be non-negative, got {chars}")
        with self._lock:
            key = self._keys.get(key_id)
            if key is None:
                raise NotFoundError("azure key", key_id)
            if not key.is_active:
                raise QuotaExceededError(f"Azure key {key_id} is not active", {"key_id": key_id})
            if key.used_quota + chars > key.total_quota:
                raise QuotaExceededError(
                    f"Azure key {key_id} quota exceeded",
                    {"key_id": key_id, "remaining": key.remaining, "requested": chars},
                )
            key.used_quota += chars
            return key

    def reserve(self, chars: int, exclude: Iterable[str] = ()) -> Optional[AzureKey]:
        """
        Pick the least-used key with ``chars`` left and hold them on it.

        The characters count as used until ``release`` gives them back,
        so concurrent requests cannot spend the same quota twice.
        """
        skip = set(exclude)
        with self._lock:
            candidates = [
                k for k in self._keys.values()
                if k.usable and k.id not in skip and k.remaining >= chars
            ]
            if not candidates:
                return None
            key = min(candidates, key=lambda k: k.used_quota)
            key.used_quota += chars
            return key

    def release(self, key_id: str, chars: int) -> None:
        """Return characters held by ``reserve`` after a failed request."""
        with self._lock:
            key = self._keys.get(key_id)
            if key is not None:
                key.used_quota = max(key.used_quota - chars, 0)

    def reset_quota(self, key_id: str) -> AzureKey:
        with self._lock:
            key = self._keys.get(key_id)
            if key is None:
                raise NotFoundError("azure key", key_id)
            key.used_quota = 0
            return key

    def stats(self) -> Dict[str, int]:
        with self._lock:
            keys = list(self._keys.values())
        total = sum(k.total_quota for k in keys)
        used = sum(k.used_quota for k in keys)
        return {
            "total_keys": len(keys),
            "active_keys": sum(1 for k in keys if k.is_active),
            "total_quota": total,
            "used_quota": used,
            "available_quota": total - used,
            "keys_with_quota": sum(1 for k in keys if k.usable),
        }

    def keys(self) -> List[Dict[str, Any]]:
        with self._lock:
            return [k.public_dict() for k in self._keys.values()]


class AzureSpeechBackend:
    """
    Synthesis and voice-list calls against Azure Speech.

    Args:
        pool: Credentials to draw from.
        config: Output format, timeout and user agent.
        client: Optional httpx.Client (tests pass one with a MockTransport).
    """

    def __init__(self, pool: KeyPool, config: Optional[AzureConfig] = None, client: Optional[httpx.Client] = None):
        self._pool = pool
        self._config = config or AzureConfig()
        self._client = client or httpx.Client(timeout=self._config.timeout_s)

    @property
    def pool(self) -> KeyPool:
        return self._pool

    def close(self) -> None:
        self._client.close()

    def synthesize(self, markup: str) -> bytes:
        """
        Turn SSML into audio bytes.

        Returns:
            Encoded audio in the configured output format.

        Raises:
            QuotaExceededError: No credential has enough quota left.
            SynthesisError: Azure answered with an error, an empty body, or
                could not be reached.
        """
        chars = len(markup)
        tried: List[str] = []

        while True:
            key = self._pool.reserve(chars, exclude=tried)
            if key is None:
                warn(_LOG, "no_key_available", chars=chars, tried=len(tried))
                raise QuotaExceededError(
                    "No Azure Speech credential has enough quota left",
                    {"chars": chars, "tried": list(tried)},
                )
            tried.append(key.id)

            try:
                audio, seconds = self._post(key, markup)
            except _KeyRejected:
                self._pool.release(key.id, chars)
                continue
            except SynthesisError:
                self._pool.release(key.id, chars)
                raise

            info(
                _LOG, "azure_synthesized",
                key=key.id, chars=chars, bytes=len(audio),
                quota_left_pct=round(100.0 * key.remaining / key.total_quota, 1),
                seconds=round(seconds, 3),
            )
            return audio

    def _post(self, key: AzureKey, markup: str) -> tuple[bytes, float]:
        """
        One synthesis request with one key.

        Raises:
            _KeyRejected: Azure refused the key (401/403/429).
            SynthesisError: Any other failure.
        """
        headers = {
            "Ocp-Apim-Subscription-Key": key.speech_key,
            "Content-Type": "application/ssml+xml",
            "X-Microsoft-OutputFormat": self._config.output_format,
            "User-Agent": self._config.user_agent,
        }

        with timeit("azure_synthesize") as t:
            try:
                response = self._client.post(
                    synthesis_url(key.speech_region),
                    content=markup.encode("utf-8"),
                    headers=headers,
                )
            except httpx.HTTPError as exc:
                fail(_LOG, "azure_transport_error", key=key.id, error=str(exc))
                raise SynthesisError(f"Azure Speech request failed: {exc}", {"key_id": key.id}) from exc

        if response.status_code in _ROTATE_STATUSES:
            warn(_LOG, "azure_key_rejected", key=key.id, status=response.status_code)
            raise _KeyRejected(response.status_code)

        if response.status_code >= 400:
            fail(_LOG, "azure_error", key=key.id, status=response.status_code, error=response.text[:200])
            raise SynthesisError(
                f"Azure Speech API error: {response.status_code}",
                {"status": response.status_code, "upstream": response.text[:500]},
            )

        audio = response.content
        if not audio:
            fail(_LOG, "azure_empty_audio", key=key.id)
            raise SynthesisError("No audio content received from Azure Speech Service", {"key_id": key.id})

        return audio, t.seconds

    def fetch_voices(self) -> List[Dict[str, Any]]:
        """
        Fetch the raw voice list.

        Raises:
            VoicesUnavailableError: No credential configured, or the call failed.
        """
        key = self._pool.available()
        if key is None:
            raise VoicesUnavailableError("No Azure Speech credential configured")

        try:
            with timeit("azure_voices") as t:
                response = self._client.get(
                    voices_url(key.speech_region),
                    headers={"Ocp-Apim-Subscription-Key": key.speech_key, "User-Agent": self._config.user_agent},
                )
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            fail(_LOG, "voices_fetch_failed", key=key.id, error=str(exc))
            raise VoicesUnavailableError(f"Failed to fetch voice list: {exc}") from exc

        if not isinstance(payload, list):
            raise VoicesUnavailableError("Voice list response is not a JSON array")

        verbose(_LOG, "voices_fetched", count=len(payload), seconds=round(t.seconds, 3))
        return payload
