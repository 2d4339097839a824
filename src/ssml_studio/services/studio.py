"""
StudioService: the object graph behind the API and CLI.

Wires configuration to the credential pool, Azure backend, audio store,
synthesis invoker, voice catalog and session registry, so callers hold
one object instead of six.

Lifecycle:
    service = get_service(settings)   # process-wide singleton
    ...
    reset_service()                   # shutdown, tests, or after a config change
"""
from __future__ import annotations

import threading
import time
from typing import Any, Dict, Optional

from ssml_studio import __version__
from ssml_studio.core.config import Settings, StudioConfig
from ssml_studio.core.logging import get_level_name, get_logger, info
from ssml_studio.services.audio_store import AudioStore
from ssml_studio.services.azure import AzureSpeechBackend, KeyPool
from ssml_studio.services.synthesis import SpeechBackend, SynthesisInvoker
from ssml_studio.services.voices import VoiceCatalogService
from ssml_studio.ssml.session import SessionRegistry

_LOG = get_logger("ssml-studio.service")


class StudioService:
    """
    Args:
        config: Validated configuration.
        backend: Speech backend; defaults to AzureSpeechBackend over the
            configured credentials.
        voices: Voice catalog service; defaults to the configured voices
            file, else the backend's voice list.
    """

    def __init__(
        self,
        config: StudioConfig,
        backend: Optional[SpeechBackend] = None,
        voices: Optional[VoiceCatalogService] = None,
    ):
        self.config = config
        self.pool = KeyPool.from_config(config.azure.keys)
        needs_azure_voices = voices is None and not config.voices.file
        # The Azure client is built only when synthesis or the voice list uses it
        self._azure: Optional[AzureSpeechBackend] = (
            AzureSpeechBackend(self.pool, config.azure) if backend is None or needs_azure_voices else None
        )
        self.backend: SpeechBackend = backend or self._azure
        self.audio_store = AudioStore(config.audio)
        self.invoker = SynthesisInvoker(self.backend, self.audio_store)

        if voices is not None:
            self.voices = voices
        elif config.voices.file:
            self.voices = VoiceCatalogService.from_file(
                config.voices.file,
                ttl_seconds=config.voices.cache_ttl_seconds,
                only_ga=config.voices.only_ga,
            )
        else:
            self.voices = VoiceCatalogService(
                self._azure.fetch_voices,
                ttl_seconds=config.voices.cache_ttl_seconds,
                only_ga=config.voices.only_ga,
            )

        self.sessions = SessionRegistry(
            max_sessions=config.sessions.max_sessions,
            idle_ttl_seconds=config.sessions.idle_ttl_seconds,
            max_text_chars=config.ssml.max_text_chars,
        )
        self._started = time.time()

        info(
            _LOG, "service_ready",
            keys=len(self.pool), voice=config.ssml.global_voice, language=config.ssml.global_language,
        )

    def close(self) -> None:
        """Release the Azure HTTP client, if one was built."""
        if self._azure is not None:
            self._azure.close()
            self._azure = None
            info(_LOG, "service_closed")

    def get_health_info(self) -> Dict[str, Any]:
        return {
            "ok": True,
            "status": "healthy" if self.pool.has_quota() else "degraded",
            "version": __version__,
            "uptime_s": round(time.time() - self._started, 1),
            "sessions": len(self.sessions),
            "quota": self.pool.stats(),
            "log_level": get_level_name(),
        }


_service: Optional[StudioService] = None
_service_lock = threading.Lock()


def get_service(settings: Settings) -> StudioService:
    """Process-wide StudioService, built on first call."""
    global _service
    with _service_lock:
        if _service is None:
            _service = StudioService(StudioConfig.from_settings(settings))
        return _service


def reset_service() -> None:
    """Close and drop the process-wide StudioService."""
    global _service
    with _service_lock:
        if _service is not None:
            _service.close()
        _service = None
