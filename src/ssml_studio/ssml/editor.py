"""
Override Editor.

Merges an attribute patch into the active segment and persists the
result in the Segment Store.

Patch semantics:
    - key absent            -> field left as it is
    - key present, None/""  -> override cleared
    - style "default"       -> cleared (same as no style)

Values are not range-checked; a rate of 7.5 reaches the markup as
``rate="7.5"``. Only the type is checked so the compiler never sees a
string where it expects a number.
"""
from __future__ import annotations

import dataclasses
import math
from numbers import Real
from typing import Any, Dict, Mapping, Optional

from ssml_studio.core.logging import debug, get_logger
from ssml_studio.errors import InvalidInputError, NoActiveSegmentError
from ssml_studio.ssml.models import NO_STYLE_SENTINELS, PATCHABLE_FIELDS, Character, Segment
from ssml_studio.ssml.store import SegmentStore

_LOG = get_logger("ssml-studio.editor")

_NUMERIC_FIELDS = ("rate", "pitch", "volume", "style_degree")


def normalize_patch(patch: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Validate patch keys and map clearing values to None.

    Raises:
        InvalidInputError: On unknown keys or non-numeric prosody values.
    """
    unknown = sorted(set(patch) - set(PATCHABLE_FIELDS))
    if unknown:
        raise InvalidInputError(
            f"Unknown segment attribute(s): {', '.join(unknown)}",
            {"unknown": unknown, "allowed": list(PATCHABLE_FIELDS)},
        )

    out: Dict[str, Any] = {}
    for key, value in patch.items():
        if value is None or value == "":
            out[key] = None
        elif key == "style" and value in NO_STYLE_SENTINELS:
            out[key] = None
        elif key in _NUMERIC_FIELDS:
            if isinstance(value, bool) or not isinstance(value, Real) or not math.isfinite(value):
                raise InvalidInputError(f"{key} must be a finite number, got {value!r}", {"field": key})
            out[key] = value
        else:
            out[key] = str(value)
    return out


def merge(segment: Segment, patch: Mapping[str, Any]) -> Segment:
    """Pure merge: a new Segment with the patch applied. The input is not modified."""
    return dataclasses.replace(segment, **normalize_patch(patch))


class OverrideEditor:
    """Applies patches to the active segment of one store."""

    def __init__(self, store: SegmentStore):
        self._store = store

    def apply(self, active_segment: Optional[Segment], patch: Mapping[str, Any]) -> Segment:
        """
        Merge ``patch`` into ``active_segment`` and persist it.

        Returns:
            The merged segment, now stored.

        Raises:
            NoActiveSegmentError: If nothing is selected.
            InvalidInputError: On a malformed patch.
            OverlapError: If the segment collides with another stored one;
                the store is left unchanged.
        """
        if active_segment is None:
            raise NoActiveSegmentError()

        merged = merge(active_segment, patch)
        self._store.insert_or_update(merged)
        debug(_LOG, "patch_applied", segment=merged.id, patch=dict(patch))
        return merged

    def apply_character(self, active_segment: Optional[Segment], character: Character) -> Segment:
        """Stamp a character's id, voice, style and prosody onto the active segment."""
        return self.apply(active_segment, character.as_patch())
