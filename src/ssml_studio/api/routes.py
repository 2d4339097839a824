"""
Stateless API routes.

Endpoints:
    GET  /health              - Liveness plus quota summary
    GET  /v1/voices           - Voice catalog grouped by locale
    GET  /v1/voices/{name}    - One voice and its styles
    POST /v1/ssml/preview     - Single-voice SSML (neutral values omitted)
    POST /v1/ssml/compile     - Multi-segment SSML from text + segments
    POST /v1/tts/synthesize   - SSML or plain text -> stored audio URL

Error Handling:
    Errors use the standard body
        {"ok": false, "error": "<ERROR_CODE>", "message": "..."}
    with the status from errors.HTTP_STATUS, e.g. OVERLAP -> 409,
    SYNTHESIS_FAILED -> 502, VOICES_UNAVAILABLE -> 503.

Example:
    curl -X POST http://localhost:8000/v1/ssml/preview \\
        -H "Content-Type: application/json" \\
        -d '{"text": "你好", "style": "cheerful", "rate": 1.2}'
"""
from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from ssml_studio.api.dependencies import get_service
from ssml_studio.api.schemas import CompileRequest, PreviewRequest, SynthesizeRequest
from ssml_studio.core.logging import get_logger, info
from ssml_studio.errors import NotFoundError, status_for
from ssml_studio.services.studio import StudioService
from ssml_studio.services.synthesis import SynthesisResult
from ssml_studio.services.validators import (
    validate_break_time,
    validate_language,
    validate_text,
    validate_voice,
)
from ssml_studio.services.voices import CatalogResult
from ssml_studio.ssml.compiler import compile_markup, compile_preview
from ssml_studio.ssml.models import DocumentSettings, Segment, VoiceSettings

router = APIRouter()

_LOG = get_logger("ssml-studio.api")


def result_error(result: SynthesisResult | CatalogResult) -> JSONResponse:
    """Render a failed result object as an error response."""
    content: Dict[str, Any] = {"ok": False, "error": result.error, "message": result.message}
    if result.details:
        content["details"] = result.details
    return JSONResponse(status_code=status_for(result.error or ""), content=content)


def synthesis_response(result: SynthesisResult) -> Any:
    if not result.ok:
        return result_error(result)
    return result.to_dict()


def voice_settings(service: StudioService, body: PreviewRequest | SynthesizeRequest) -> VoiceSettings:
    ssml_cfg = service.config.ssml
    return VoiceSettings(
        language=validate_language(body.language) or ssml_cfg.global_language,
        voice=validate_voice(body.voice) or ssml_cfg.global_voice,
        style=body.style,
        rate=body.rate,
        pitch=body.pitch,
        volume=body.volume,
        emotion_intensity=body.emotion_intensity,
    )


@router.get("/health")
def health(service: StudioService = Depends(get_service)):
    return service.get_health_info()


@router.get("/v1/voices")
def list_voices(service: StudioService = Depends(get_service)):
    """
    Voice catalog grouped by locale.

    Returns 503 VOICES_UNAVAILABLE when the catalog cannot be loaded;
    editors then fall back to free-text voice names.
    """
    result = service.voices.load()
    if not result.ok or result.catalog is None:
        return result_error(result)

    catalog = result.catalog
    return {
        "ok": True,
        "stale": result.stale,
        "count": len(catalog),
        "languages": catalog.languages(),
        "voices": {
            locale: [v.to_dict() for v in voices]
            for locale, voices in catalog.by_locale().items()
        },
    }


@router.get("/v1/voices/{short_name}")
def get_voice(short_name: str, service: StudioService = Depends(get_service)):
    result = service.voices.load()
    if not result.ok or result.catalog is None:
        return result_error(result)
    voice = result.catalog.find(short_name)
    if voice is None:
        raise NotFoundError("voice", short_name)
    return {"ok": True, "voice": voice.to_dict()}


@router.post("/v1/ssml/preview")
def ssml_preview(req: PreviewRequest, service: StudioService = Depends(get_service)):
    settings = voice_settings(service, req)
    return {"ok": True, "ssml": compile_preview(req.text, settings)}


@router.post("/v1/ssml/compile")
def ssml_compile(req: CompileRequest, service: StudioService = Depends(get_service)):
    """
    Compile text plus segments without creating a session.

    Segments are checked against the text and against each other;
    bad ranges are 400, overlaps 409.
    """
    ssml_cfg = service.config.ssml
    segments = []
    for body in req.segments:
        data = body.model_dump()
        data["break_time"] = validate_break_time(body.break_time)
        segments.append(Segment.from_dict(data))

    document = DocumentSettings(
        global_voice=validate_voice(req.global_voice) or ssml_cfg.global_voice,
        global_language=validate_language(req.global_language) or ssml_cfg.global_language,
        segments=segments,
    )
    return {"ok": True, "ssml": compile_markup(req.text, document, req.policy)}


@router.post("/v1/tts/synthesize")
def tts_synthesize(req: SynthesizeRequest, service: StudioService = Depends(get_service)):
    """
    Synthesize SSML (sent verbatim) or plain text (single-voice document).

    Returns:
        {"ok": true, "audio_url": "/uploads/tts/<uuid>.mp3", "file_size": ..., ...}
    """
    if req.ssml:
        info(_LOG, "synthesize_request", mode="ssml", chars=len(req.ssml))
        return synthesis_response(service.invoker.synthesize(req.ssml, language=req.language, voice=req.voice))

    text = validate_text(req.text, service.config.ssml.max_text_chars)
    info(_LOG, "synthesize_request", mode="text", chars=len(text))
    return synthesis_response(service.invoker.synthesize_text(text, voice_settings(service, req)))
