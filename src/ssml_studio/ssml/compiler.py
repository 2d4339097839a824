"""
Markup Compiler.

Serializes a source text and its segments into Azure Speech SSML.

Document shape (no whitespace is added between elements):

    <speak version="1.0" xmlns="http://www.w3.org/2001/10/synthesis"
           xmlns:mstts="https://www.w3.org/2001/mstts" xml:lang="en-US">
      <voice name="GLOBAL">gap text</voice>
      <voice name="SEGMENT VOICE or GLOBAL">
        <prosody rate="1.2" pitch="+5Hz" volume="80%">
          <mstts:express-as style="cheerful" styledegree="1.5">segment text</mstts:express-as>
        </prosody>
      </voice>
      <break time="1s"/>
      <voice name="GLOBAL">trailing gap</voice>
    </speak>

Rules:
    - Gaps between segments always use the global voice and are emitted
      verbatim, whitespace-only gaps included.
    - Breaks follow the segment's closing voice tag, never inside it.
    - Every text run is XML-escaped; attribute values escape quotes too.
    - Empty source text compiles to "". Whitespace-only text is still a
      document, since segments and breaks may sit on it.
    - Pitch and volume are rounded to whole Hz and percent.
    - Prosody attributes follow an EmitPolicy: the simple preview omits
      neutral values (rate 1, pitch 0, volume 100), the segment editor
      emits whatever is set on the segment.

The compiler is a pure function of its inputs.
"""
from __future__ import annotations

from decimal import Decimal
from enum import Enum
from numbers import Real
from typing import List, Optional, Sequence

from ssml_studio.core.config import Defaults
from ssml_studio.core.logging import get_logger, verbose
from ssml_studio.errors import InvalidInputError, OverlapError
from ssml_studio.ssml.models import DocumentSettings, Segment, VoiceSettings, is_no_style
from ssml_studio.utils.timeit import timeit

_LOG = get_logger("ssml-studio.compiler")

SSML_NAMESPACE = "http://www.w3.org/2001/10/synthesis"
MSTTS_NAMESPACE = "https://www.w3.org/2001/mstts"


class EmitPolicy(str, Enum):
    """When a prosody attribute is written."""
    OMIT_DEFAULT = "omit_default"       # Skip rate 1, pitch 0, volume 100
    ALWAYS_PRESENT = "always_present"   # Write every value set on the segment


def escape_text(text: str) -> str:
    """Escape a literal text run."""
    return text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


def escape_attr(value: str) -> str:
    """Escape a double-quoted attribute value."""
    return escape_text(value).replace('"', "&quot;").replace("'", "&apos;")


def format_number(value: Real) -> str:
    """
    Render a number without a redundant fractional part.

    Always fixed-point, never scientific notation.

    >>> format_number(1.0), format_number(1.2), format_number(-3), format_number(0.00001)
    ('1', '1.2', '-3', '0.00001')
    """
    if isinstance(value, int):
        return str(value)
    f = float(value)
    if f.is_integer():
        return str(int(f))
    # repr() gives the shortest round-trip digits; Decimal lays them out fixed-point
    return format(Decimal(repr(f)), "f")


def format_rate(rate: Real) -> str:
    return format_number(rate)


def format_pitch(pitch: Real) -> str:
    """Signed pitch shift in whole Hz: "+5Hz", "-3Hz", "0Hz"."""
    hz = int(round(pitch))
    sign = "+" if hz > 0 else ""
    return f"{sign}{hz}Hz"


def format_volume(volume: Real) -> str:
    """Volume in whole percent: "80%"."""
    return f"{int(round(volume))}%"


def speak_open(language: str) -> str:
    return (
        f'<speak version="1.0" xmlns="{SSML_NAMESPACE}" '
        f'xmlns:mstts="{MSTTS_NAMESPACE}" xml:lang="{escape_attr(language)}">'
    )


def _prosody_attrs(
    rate: Optional[Real],
    pitch: Optional[Real],
    volume: Optional[Real],
    policy: EmitPolicy,
) -> List[str]:
    attrs: List[str] = []
    omit = policy is EmitPolicy.OMIT_DEFAULT
    if rate is not None and not (omit and rate == Defaults.SSML_RATE):
        attrs.append(f'rate="{format_rate(rate)}"')
    if pitch is not None and not (omit and pitch == Defaults.SSML_PITCH):
        attrs.append(f'pitch="{format_pitch(pitch)}"')
    if volume is not None and not (omit and volume == Defaults.SSML_VOLUME):
        attrs.append(f'volume="{format_volume(volume)}"')
    return attrs


def _voice_body(
    text: str,
    rate: Optional[Real],
    pitch: Optional[Real],
    volume: Optional[Real],
    style: Optional[str],
    style_degree: Optional[Real],
    policy: EmitPolicy,
) -> str:
    """Prosody and style wrappers around one escaped text run."""
    body = escape_text(text)

    if not is_no_style(style):
        style_attrs = [f'style="{escape_attr(style)}"']
        if style_degree is not None and style_degree != Defaults.SSML_STYLE_DEGREE:
            style_attrs.append(f'styledegree="{format_number(style_degree)}"')
        body = f"<mstts:express-as {' '.join(style_attrs)}>{body}</mstts:express-as>"

    prosody = _prosody_attrs(rate, pitch, volume, policy)
    if prosody:
        body = f"<prosody {' '.join(prosody)}>{body}</prosody>"

    return body


def _plain_voice(voice: str, text: str) -> str:
    return f'<voice name="{escape_attr(voice)}">{escape_text(text)}</voice>'


def check_segments(source_text: str, segments: Sequence[Segment]) -> List[Segment]:
    """
    Sort segments and check them against the text.

    Raises:
        InvalidInputError: If a range is empty or outside the text.
        OverlapError: If two segments overlap.
    """
    ordered = sorted(segments, key=lambda s: s.start_index)
    previous: Optional[Segment] = None
    for seg in ordered:
        if not (0 <= seg.start_index < seg.end_index <= len(source_text)):
            raise InvalidInputError(
                f"Segment {seg.id} range [{seg.start_index}, {seg.end_index}) "
                f"does not fit text of length {len(source_text)}",
                {"segment_id": seg.id},
            )
        if previous is not None and seg.start_index < previous.end_index:
            raise OverlapError(seg.id, previous.id)
        previous = seg
    return ordered


def compile_markup(
    source_text: str,
    settings: DocumentSettings,
    policy: EmitPolicy = EmitPolicy.ALWAYS_PRESENT,
) -> str:
    """
    Compile text and segments into one SSML document.

    Args:
        source_text: The full text being spoken.
        settings: Global voice and language plus the segments.
        policy: Prosody emission policy for segment attributes.

    Returns:
        The SSML document, or "" when the text is empty.

    Raises:
        InvalidInputError: If a segment range does not fit the text.
        OverlapError: If segments overlap.
    """
    if source_text == "":
        return ""

    with timeit("compile") as t:
        parts: List[str] = [speak_open(settings.global_language)]

        if not settings.segments:
            parts.append(_plain_voice(settings.global_voice, source_text))
        else:
            cursor = 0
            for seg in check_segments(source_text, settings.segments):
                if cursor < seg.start_index:
                    parts.append(_plain_voice(settings.global_voice, source_text[cursor:seg.start_index]))

                voice = seg.voice or settings.global_voice
                parts.append(f'<voice name="{escape_attr(voice)}">')
                parts.append(_voice_body(
                    source_text[seg.start_index:seg.end_index],
                    seg.rate, seg.pitch, seg.volume,
                    seg.style, seg.style_degree,
                    policy,
                ))
                parts.append("</voice>")

                if seg.break_time:
                    parts.append(f'<break time="{escape_attr(seg.break_time)}"/>')

                cursor = seg.end_index

            if cursor < len(source_text):
                parts.append(_plain_voice(settings.global_voice, source_text[cursor:]))

        parts.append("</speak>")
        markup = "".join(parts)

    verbose(
        _LOG, "compiled",
        chars=len(source_text), segments=len(settings.segments), seconds=round(t.seconds, 4),
    )
    return markup


def compile_preview(text: str, settings: VoiceSettings) -> str:
    """
    Compile the single-voice preview document.

    Neutral prosody values are left out and the emotion intensity
    becomes ``styledegree`` when a style is set and it is not 1.

    Returns:
        The SSML document, or "" when the text is empty.
    """
    if text == "":
        return ""

    body = _voice_body(
        text,
        settings.rate, settings.pitch, settings.volume,
        settings.style, settings.emotion_intensity,
        EmitPolicy.OMIT_DEFAULT,
    )
    return (
        f"{speak_open(settings.language)}"
        f'<voice name="{escape_attr(settings.voice)}">{body}</voice>'
        "</speak>"
    )
