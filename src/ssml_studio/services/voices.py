"""
Voice catalog.

Loads the list of available voices (from Azure or a static file),
keeps it for a configurable time and answers lookups for the editors:
voices per locale, styles per voice, supported languages.

Failure handling:
    ``VoiceCatalogService.load()`` never raises. When the source fails it
    serves the last good catalog marked ``stale``; with nothing cached it
    returns ``ok=False`` and VOICES_UNAVAILABLE so editors can show a
    placeholder instead of failing.

Static file format (YAML or JSON), same fields as the Azure voices list:
    - ShortName: en-US-JennyNeural
      DisplayName: Jenny
      LocalName: Jenny
      Gender: Female
      Locale: en-US
      LocaleName: English (United States)
      StyleList: [cheerful, sad]
      Status: GA
"""
from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional

import yaml

from ssml_studio.core.config import Defaults
from ssml_studio.core.logging import get_logger, info, warn
from ssml_studio.errors import ErrorCode, StudioError, VoicesUnavailableError
from ssml_studio.ssml.models import Voice

_LOG = get_logger("ssml-studio.voices")

VoiceFetcher = Callable[[], List[Dict[str, Any]]]


class VoiceCatalog:
    """Read-only voice lookups."""

    def __init__(self, voices: Iterable[Voice]):
        self._voices: Dict[str, Voice] = {}
        for voice in voices:
            self._voices.setdefault(voice.short_name, voice)

    def __len__(self) -> int:
        return len(self._voices)

    def all(self) -> List[Voice]:
        return sorted(self._voices.values(), key=lambda v: (v.locale, v.short_name))

    def find(self, short_name: str) -> Optional[Voice]:
        return self._voices.get(short_name)

    def styles_for(self, short_name: str) -> List[str]:
        """Styles of a voice; empty for unknown voices."""
        voice = self.find(short_name)
        return list(voice.style_list) if voice else []

    def for_language(self, locale: str) -> List[Voice]:
        return [v for v in self.all() if v.locale.lower() == locale.lower()]

    def by_locale(self) -> Dict[str, List[Voice]]:
        """Voices grouped by locale, locales in ascending order."""
        grouped: Dict[str, List[Voice]] = {}
        for voice in self.all():
            grouped.setdefault(voice.locale, []).append(voice)
        return grouped

    def languages(self) -> List[Dict[str, Any]]:
        out = []
        for locale, voices in self.by_locale().items():
            out.append({
                "locale": locale,
                "locale_name": next((v.locale_name for v in voices if v.locale_name), locale),
                "voice_count": len(voices),
            })
        return out


@dataclass
class CatalogResult:
    """
    Attributes:
        ok: True when a catalog is available.
        catalog: The catalog, possibly stale.
        stale: True when served from cache after a failed refresh.
        error: VOICES_UNAVAILABLE when no catalog could be produced.
    """
    ok: bool
    catalog: Optional[VoiceCatalog] = None
    stale: bool = False
    error: Optional[str] = None
    message: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)


def load_voices_file(path: str) -> List[Dict[str, Any]]:
    """
    Read raw voice entries from a YAML/JSON file.

    Raises:
        VoicesUnavailableError: Missing, unreadable or malformed file.
    """
    p = Path(path)
    try:
        with p.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as exc:
        raise VoicesUnavailableError(f"Cannot read voices file {p}: {exc}") from exc

    if isinstance(data, dict):
        data = data.get("voices")
    if not isinstance(data, list):
        raise VoicesUnavailableError(f"Voices file {p} must hold a list of voices")
    return data


def parse_voices(raw: Iterable[Dict[str, Any]], only_ga: bool = False) -> List[Voice]:
    """Convert raw entries, skipping malformed ones and (optionally) non-GA voices."""
    voices = []
    skipped = 0
    for entry in raw:
        try:
            voice = Voice.from_azure(entry)
        except (KeyError, TypeError, AttributeError):
            skipped += 1
            continue
        if only_ga and voice.status and voice.status != "GA":
            continue
        voices.append(voice)
    if skipped:
        warn(_LOG, "voices_skipped", count=skipped)
    return voices


class VoiceCatalogService:
    """
    Cached access to the voice catalog.

    Args:
        fetcher: Returns raw voice entries (e.g. AzureSpeechBackend.fetch_voices).
        ttl_seconds: Cache lifetime; 0 re-fetches on every load.
        only_ga: Hide preview voices.
        clock: Time source, for tests.
    """

    def __init__(
        self,
        fetcher: VoiceFetcher,
        ttl_seconds: int = Defaults.VOICES_CACHE_TTL_SECONDS,
        only_ga: bool = Defaults.VOICES_ONLY_GA,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._fetcher = fetcher
        self._ttl = ttl_seconds
        self._only_ga = only_ga
        self._clock = clock
        self._catalog: Optional[VoiceCatalog] = None
        self._loaded_at: float = 0.0
        self._lock = threading.Lock()

    @classmethod
    def from_file(cls, path: str, **kwargs: Any) -> "VoiceCatalogService":
        return cls(lambda: load_voices_file(path), **kwargs)

    def invalidate(self) -> None:
        with self._lock:
            self._catalog = None

    def load(self, force: bool = False) -> CatalogResult:
        """Return the catalog, refreshing it when expired or forced."""
        with self._lock:
            fresh = (
                self._catalog is not None
                and not force
                and self._clock() - self._loaded_at < self._ttl
            )
            if fresh:
                return CatalogResult(ok=True, catalog=self._catalog)

            try:
                catalog = VoiceCatalog(parse_voices(self._fetcher(), only_ga=self._only_ga))
            except StudioError as exc:
                return self._fallback(exc)

            self._catalog = catalog
            self._loaded_at = self._clock()
            info(_LOG, "voices_loaded", count=len(catalog), locales=len(catalog.by_locale()))
            return CatalogResult(ok=True, catalog=catalog)

    def _fallback(self, exc: StudioError) -> CatalogResult:
        if self._catalog is not None:
            warn(_LOG, "voices_stale", error=exc.message)
            return CatalogResult(ok=True, catalog=self._catalog, stale=True, message=exc.message)
        warn(_LOG, "voices_unavailable", error=exc.message)
        return CatalogResult(
            ok=False,
            error=ErrorCode.VOICES_UNAVAILABLE,
            message=exc.message,
            details=exc.details,
        )
