"""
API request schemas.

Pydantic models for the ssml-studio HTTP endpoints. Responses are
plain dicts built from the domain objects' ``to_dict()``.

Patch semantics:
    SegmentPatch is read with ``model_dump(exclude_unset=True)``, so a
    field missing from the JSON body leaves the segment alone while an
    explicit ``null`` or ``""`` clears the override.

Example Requests:
    POST /v1/ssml/preview
        {"text": "你好", "voice": "zh-CN-XiaoxiaoNeural", "style": "cheerful", "rate": 1.2}

    PATCH /v1/sessions/{id}/segment
        {"style": null, "pitch": 5}
"""
from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field

from ssml_studio.core.config import Defaults
from ssml_studio.ssml.compiler import EmitPolicy

MAX_TEXT = Defaults.SSML_MAX_TEXT_CHARS


class PreviewRequest(BaseModel):
    """Single-voice preview: one voice, one style, neutral values omitted."""
    text: str = Field(..., max_length=MAX_TEXT, description="Text to speak")
    language: str | None = Field(default=None, description="Document language, e.g. 'zh-CN'")
    voice: str | None = Field(default=None, description="Voice short name")
    style: str | None = Field(default=None, description="Speaking style; 'default' means none")
    rate: float = Field(default=Defaults.SSML_RATE, description="Rate multiplier, 1.0 is neutral")
    pitch: float = Field(default=Defaults.SSML_PITCH, description="Pitch shift in Hz")
    volume: float = Field(default=Defaults.SSML_VOLUME, description="Volume in percent")
    emotion_intensity: float = Field(default=Defaults.SSML_STYLE_DEGREE, description="Style degree")


class SegmentBody(BaseModel):
    """A segment in a stateless compile request."""
    id: str | None = None
    text: str | None = None
    start_index: int = Field(..., ge=0)
    end_index: int = Field(..., ge=0)
    voice: str | None = None
    style: str | None = None
    style_degree: float | None = None
    rate: float | None = None
    pitch: float | None = None
    volume: float | None = None
    break_time: str | None = None
    character_id: str | None = None


class CompileRequest(BaseModel):
    text: str = Field(..., max_length=MAX_TEXT)
    global_voice: str | None = None
    global_language: str | None = None
    segments: List[SegmentBody] = Field(default_factory=list)
    policy: EmitPolicy = EmitPolicy.ALWAYS_PRESENT


class SynthesizeRequest(BaseModel):
    """
    Either ``ssml`` (sent as is) or ``text`` (wrapped in the preview
    document using the voice fields) must be given.
    """
    ssml: str | None = Field(default=None, description="Complete SSML document")
    text: str | None = Field(default=None, max_length=MAX_TEXT, description="Plain text")
    language: str | None = None
    voice: str | None = None
    style: str | None = None
    rate: float = Defaults.SSML_RATE
    pitch: float = Defaults.SSML_PITCH
    volume: float = Defaults.SSML_VOLUME
    emotion_intensity: float = Defaults.SSML_STYLE_DEGREE


class SessionCreate(BaseModel):
    text: str = Field(default="", max_length=MAX_TEXT)
    global_voice: str | None = None
    global_language: str | None = None


class SessionUpdate(BaseModel):
    global_voice: str | None = None
    global_language: str | None = None


class TextUpdate(BaseModel):
    text: str = Field(..., max_length=MAX_TEXT)


class SelectionRequest(BaseModel):
    start: int = Field(..., ge=0)
    end: int = Field(..., ge=0)


class SegmentPatch(BaseModel):
    voice: str | None = None
    style: str | None = None
    style_degree: float | None = None
    rate: float | None = None
    pitch: float | None = None
    volume: float | None = None
    break_time: str | None = None
    character_id: str | None = None


class CharacterCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    voice: str
    language: str | None = None
    style: str | None = None
    rate: float | None = None
    pitch: float | None = None
    volume: float | None = None
    description: str | None = Field(default=None, max_length=500)
    color: str | None = None
