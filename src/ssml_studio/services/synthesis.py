"""
Synthesis Invoker.

Hands compiled markup to a speech backend, stores the audio and
returns a SynthesisResult. It never raises for expected failures:
backend errors come back as ``ok=False`` with the error code and the
upstream message.

No retries happen here. Credential rotation is the backend's business.
Markup is compiled from a snapshot of the session, so edits made while
a call is in flight do not leak into it.

Usage:
    invoker = SynthesisInvoker(backend, AudioStore(config.audio))
    result = invoker.synthesize(markup, language="en-US", voice="en-US-JennyNeural")
    if result.ok:
        print(result.audio_url)
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional, Protocol

from ssml_studio.core.logging import error, fail, get_logger, info, success
from ssml_studio.errors import ErrorCode, StudioError
from ssml_studio.services.audio_store import AudioStore
from ssml_studio.ssml.compiler import EmitPolicy, compile_markup, compile_preview
from ssml_studio.ssml.models import VoiceSettings
from ssml_studio.ssml.session import EditingSession
from ssml_studio.utils.timeit import timeit

_LOG = get_logger("ssml-studio.synthesis")


class SpeechBackend(Protocol):
    def synthesize(self, markup: str) -> bytes: ...


@dataclass
class SynthesisResult:
    """
    Outcome of one synthesis call.

    On success ``audio_url`` and ``file_size`` are set; on failure
    ``error`` holds an ErrorCode value and ``message`` the reason.
    """
    ok: bool
    audio_url: Optional[str] = None
    file_size: int = 0
    chars: int = 0
    voice: Optional[str] = None
    language: Optional[str] = None
    seconds: float = 0.0
    markup: Optional[str] = None
    error: Optional[str] = None
    message: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        if self.ok:
            for key in ("error", "message", "details"):
                data.pop(key)
        return data

    @classmethod
    def failure(cls, exc: StudioError, **kwargs: Any) -> "SynthesisResult":
        return cls(ok=False, error=exc.code, message=exc.message, details=exc.details, **kwargs)


class SynthesisInvoker:
    """Markup in, stored audio out."""

    def __init__(self, backend: SpeechBackend, audio_store: AudioStore):
        self._backend = backend
        self._audio = audio_store

    def synthesize(self, markup: str, language: Optional[str] = None, voice: Optional[str] = None) -> SynthesisResult:
        """
        Synthesize SSML markup.

        Args:
            markup: A complete SSML document.
            language: Document language, reported back and logged.
            voice: Main voice, reported back and logged.

        Returns:
            SynthesisResult; never raises for backend or quota failures.
        """
        common = {"chars": len(markup), "voice": voice, "language": language, "markup": markup}

        if not markup.strip():
            return SynthesisResult(
                ok=False,
                error=ErrorCode.INVALID_INPUT,
                message="Nothing to synthesize: the text is empty",
                **common,
            )

        info(_LOG, "synth_start", chars=len(markup), voice=voice, language=language)
        try:
            with timeit("synthesize") as t:
                audio = self._backend.synthesize(markup)
                stored = self._audio.save(audio)
        except StudioError as exc:
            fail(_LOG, "synth_failed", code=exc.code, error=exc.message)
            return SynthesisResult.failure(exc, **common)
        except OSError as exc:
            error(_LOG, "audio_store_failed", error=str(exc))
            return SynthesisResult(
                ok=False,
                error=ErrorCode.INTERNAL_ERROR,
                message=f"Failed to store audio: {exc}",
                **common,
            )

        success(_LOG, "synth_done", bytes=stored.file_size, url=stored.url, seconds=round(t.seconds, 3))
        return SynthesisResult(
            ok=True,
            audio_url=stored.url,
            file_size=stored.file_size,
            seconds=round(t.seconds, 4),
            **common,
        )

    def synthesize_session(self, session: EditingSession, policy: EmitPolicy = EmitPolicy.ALWAYS_PRESENT) -> SynthesisResult:
        """Compile a snapshot of the session and synthesize it."""
        text, document = session.snapshot()
        try:
            markup = compile_markup(text, document, policy)
        except StudioError as exc:
            return SynthesisResult.failure(exc, voice=document.global_voice, language=document.global_language)
        return self.synthesize(markup, language=document.global_language, voice=document.global_voice)

    def synthesize_text(self, text: str, settings: VoiceSettings) -> SynthesisResult:
        """Simple path: one voice over the whole text."""
        markup = compile_preview(text, settings)
        return self.synthesize(markup, language=settings.language, voice=settings.voice)
