"""
Data model for the SSML editor.

    Voice            - read-only catalog entry (Azure voices list)
    Segment          - a half-open range of the source text with overrides
    Character        - reusable voice/prosody preset stamped onto segments
    DocumentSettings - global voice and language plus characters and segments
    VoiceSettings    - the one-voice settings of the simple preview path

Offsets are indices into the Python ``str`` of the source text, so a
segment's text is always ``source_text[start_index:end_index]``.
"""
from __future__ import annotations

import random
import uuid
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from ssml_studio.core.config import Defaults

# Segment fields an override patch may touch
PATCHABLE_FIELDS: Tuple[str, ...] = (
    "voice",
    "style",
    "style_degree",
    "rate",
    "pitch",
    "volume",
    "break_time",
    "character_id",
)

# Style values that mean "no style wrapper"
NO_STYLE_SENTINELS = ("", "default")


def new_id() -> str:
    """Opaque identifier for segments and characters."""
    return uuid.uuid4().hex[:12]


def is_no_style(style: Optional[str]) -> bool:
    return style is None or style in NO_STYLE_SENTINELS


@dataclass(frozen=True)
class Voice:
    """
    One voice from the speech catalog.

    Attributes:
        short_name: Unique id used in markup (e.g. "zh-CN-XiaoxiaoNeural").
        display_name: English display name.
        local_name: Name in the voice's own language.
        gender: "Male" or "Female".
        locale: BCP-47 locale (e.g. "zh-CN").
        style_list: Speaking styles the voice supports, in catalog order.
    """
    short_name: str
    display_name: str
    local_name: str
    gender: str
    locale: str
    style_list: Tuple[str, ...] = ()
    name: str = ""
    locale_name: str = ""
    voice_type: str = ""
    status: str = ""

    @classmethod
    def from_azure(cls, payload: Dict[str, Any]) -> "Voice":
        """
        Build a Voice from one entry of the Azure voices-list response.

        Raises:
            KeyError: If ShortName is missing.
        """
        short_name = payload["ShortName"]
        styles = payload.get("StyleList") or []
        # Keep the first occurrence of each style
        seen: Dict[str, None] = dict.fromkeys(str(s) for s in styles)
        return cls(
            short_name=short_name,
            display_name=payload.get("DisplayName") or short_name,
            local_name=payload.get("LocalName") or payload.get("DisplayName") or short_name,
            gender=payload.get("Gender") or "",
            locale=payload.get("Locale") or "",
            style_list=tuple(seen),
            name=payload.get("Name") or "",
            locale_name=payload.get("LocaleName") or "",
            voice_type=payload.get("VoiceType") or "",
            status=payload.get("Status") or "",
        )

    def supports_style(self, style: str) -> bool:
        return style in self.style_list

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["style_list"] = list(self.style_list)
        return data


@dataclass
class Segment:
    """
    A range of the source text with its own voice, prosody and style.

    ``text`` is a display copy taken at selection time; the compiler
    always slices the source text by offsets. Unset overrides are None.
    """
    id: str
    text: str
    start_index: int
    end_index: int
    voice: Optional[str] = None
    style: Optional[str] = None
    style_degree: Optional[float] = None
    rate: Optional[float] = None
    pitch: Optional[float] = None
    volume: Optional[float] = None
    break_time: Optional[str] = None
    character_id: Optional[str] = None

    @classmethod
    def from_selection(cls, source_text: str, start: int, end: int, voice: Optional[str] = None) -> "Segment":
        return cls(
            id=new_id(),
            text=source_text[start:end],
            start_index=start,
            end_index=end,
            voice=voice,
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Segment":
        """
        Build a Segment from a plain mapping (API body or document file).

        ``start_index``/``end_index`` are required; ``id`` is generated
        when absent. Unknown keys are ignored.
        """
        kwargs = {k: data.get(k) for k in PATCHABLE_FIELDS if k in data}
        return cls(
            id=str(data.get("id") or new_id()),
            text=str(data.get("text") or ""),
            start_index=int(data["start_index"]),
            end_index=int(data["end_index"]),
            **kwargs,
        )

    @property
    def length(self) -> int:
        return self.end_index - self.start_index

    def overlaps(self, other: "Segment") -> bool:
        """True if the two half-open ranges share at least one index."""
        return self.start_index < other.end_index and other.start_index < self.end_index

    def same_range(self, start: int, end: int) -> bool:
        return self.start_index == start and self.end_index == end

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _random_color() -> str:
    return f"hsl({random.randint(0, 359)}, 70%, 50%)"


@dataclass
class Character:
    """
    A named preset of voice settings, e.g. a narrator or a role in a dialogue.

    Segments link to a character by id only. Deleting the character
    leaves the link dangling; lookups then resolve to None.
    """
    id: str
    name: str
    voice: str
    language: str
    style: Optional[str] = None
    rate: float = Defaults.SSML_RATE
    pitch: float = Defaults.SSML_PITCH
    volume: float = Defaults.SSML_VOLUME
    description: Optional[str] = None
    color: str = field(default_factory=_random_color)

    @classmethod
    def create(
        cls,
        name: str,
        voice: str,
        language: str,
        style: Optional[str] = None,
        rate: Optional[float] = None,
        pitch: Optional[float] = None,
        volume: Optional[float] = None,
        description: Optional[str] = None,
        color: Optional[str] = None,
    ) -> "Character":
        """Create a character with a fresh id, filling neutral prosody for missing values."""
        return cls(
            id=new_id(),
            name=name,
            voice=voice,
            language=language,
            style=None if is_no_style(style) else style,
            rate=Defaults.SSML_RATE if rate is None else rate,
            pitch=Defaults.SSML_PITCH if pitch is None else pitch,
            volume=Defaults.SSML_VOLUME if volume is None else volume,
            description=description,
            color=color or _random_color(),
        )

    def as_patch(self) -> Dict[str, Any]:
        """The segment override patch that applying this character amounts to."""
        return {
            "character_id": self.id,
            "voice": self.voice,
            "style": self.style,
            "rate": self.rate,
            "pitch": self.pitch,
            "volume": self.volume,
        }

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class DocumentSettings:
    """Everything the compiler needs besides the source text."""
    global_voice: str = Defaults.SSML_GLOBAL_VOICE
    global_language: str = Defaults.SSML_GLOBAL_LANGUAGE
    characters: List[Character] = field(default_factory=list)
    segments: List[Segment] = field(default_factory=list)


@dataclass
class VoiceSettings:
    """
    Settings of the single-voice preview.

    ``emotion_intensity`` becomes the style degree of the style wrapper.
    """
    language: str = Defaults.SSML_GLOBAL_LANGUAGE
    voice: str = Defaults.SSML_GLOBAL_VOICE
    style: Optional[str] = None
    rate: float = Defaults.SSML_RATE
    pitch: float = Defaults.SSML_PITCH
    volume: float = Defaults.SSML_VOLUME
    emotion_intensity: float = Defaults.SSML_STYLE_DEGREE
