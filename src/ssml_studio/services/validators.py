"""
Input validation for ssml-studio.

Validation happens at the edges (API bodies, CLI arguments, session
text) so the compiler only ever sees well-formed values.

Rules:
    - Source text: may be empty in an editing session, max 5000 chars
    - Text to synthesize: required, max 5000 chars
    - Voice name: optional, max 100 characters, no whitespace
    - Language: optional, BCP-47 shaped, max 16 characters
    - Break time: "<number>s" or "<number>ms", at most 10 seconds

All validators raise ValidationError, whose ``reason`` is a finer code:
    - {FIELD}_REQUIRED: Missing required field
    - {FIELD}_TOO_LONG: Exceeds max length
    - {FIELD}_INVALID: Wrong format

Usage:
    from ssml_studio.services.validators import validate_text, ValidationError

    try:
        text = validate_text(body.text)
    except ValidationError as e:
        return JSONResponse(status_code=400, content=e.to_dict())
"""
from __future__ import annotations

import re
from typing import Optional

from ssml_studio.core.config import Defaults
from ssml_studio.core.logging import get_logger, warn
from ssml_studio.errors import ValidationError

_LOG = get_logger("ssml-studio.validators")

_LANGUAGE_RE = re.compile(r"^[A-Za-z]{2,3}(-[A-Za-z0-9]{2,8})*$")
_BREAK_RE = re.compile(r"^(\d+(?:\.\d+)?)(ms|s)$")

MAX_BREAK_MS = 10_000


def validate_source_text(text: str, max_length: int = Defaults.SSML_MAX_TEXT_CHARS) -> str:
    """
    Validate the text of an editing session.

    Empty text is allowed and the text is NOT stripped: segment offsets
    index into it exactly as given.

    Raises:
        ValidationError: If the text is not a string or too long.
    """
    if not isinstance(text, str):
        raise ValidationError("Text must be a string", "TEXT_INVALID")
    if len(text) > max_length:
        raise ValidationError(
            f"Text exceeds maximum length ({len(text)} > {max_length})",
            "TEXT_TOO_LONG",
        )
    return text


def validate_text(text: Optional[str], max_length: int = Defaults.SSML_MAX_TEXT_CHARS) -> str:
    """
    Validate text that is about to be synthesized.

    Returns:
        The text, unchanged.

    Raises:
        ValidationError: If the text is blank or too long.
    """
    if not text or not text.strip():
        raise ValidationError("Text is required", "TEXT_REQUIRED")
    return validate_source_text(text, max_length)


def validate_voice(voice: Optional[str], max_length: int = 100) -> Optional[str]:
    if not voice:
        return None
    if len(voice) > max_length:
        raise ValidationError(
            f"Voice name exceeds maximum length ({len(voice)} > {max_length})",
            "VOICE_TOO_LONG",
        )
    if any(ch.isspace() for ch in voice):
        raise ValidationError(f"Voice name must not contain whitespace: {voice!r}", "VOICE_INVALID")
    return voice


def validate_language(language: Optional[str], max_length: int = 16) -> Optional[str]:
    """
    Validate a locale such as "zh-CN" or "en-US".

    Raises:
        ValidationError: If the code is too long or not locale-shaped.
    """
    if not language:
        return None
    if len(language) > max_length:
        raise ValidationError(
            f"Language code exceeds maximum length ({len(language)} > {max_length})",
            "LANGUAGE_TOO_LONG",
        )
    if not _LANGUAGE_RE.match(language):
        raise ValidationError(f"Invalid language code: {language!r}", "LANGUAGE_INVALID")
    return language


def validate_break_time(value: Optional[str]) -> Optional[str]:
    """
    Validate a pause duration such as "1s" or "500ms".

    Azure ignores pauses longer than 10 seconds, so those are rejected.
    """
    if not value:
        return None
    match = _BREAK_RE.match(value.strip())
    if not match:
        warn(_LOG, "break_time_rejected", value=value)
        raise ValidationError(f"Invalid break time: {value!r} (expected e.g. '1s' or '500ms')", "BREAK_TIME_INVALID")
    amount, unit = float(match.group(1)), match.group(2)
    millis = amount if unit == "ms" else amount * 1000
    if millis > MAX_BREAK_MS:
        raise ValidationError(f"Break time {value!r} exceeds 10s", "BREAK_TIME_TOO_LONG")
    return value.strip()
