"""
Selection Tracker.

Turns a text selection into a candidate segment.

Policy:
    A non-empty selection yields a candidate that becomes the session's
    active segment right away. It is only written to the Segment Store
    when the first override patch is applied to it, so clicking around
    the text never creates empty-override segments. A selection that
    covers exactly the range of a stored segment re-selects that
    segment instead of producing a duplicate candidate.
"""
from __future__ import annotations

from typing import Iterable, Optional

from ssml_studio.errors import InvalidInputError
from ssml_studio.ssml.models import Segment


def on_select(
    source_text: str,
    start: int,
    end: int,
    current_segments: Iterable[Segment],
    global_voice: Optional[str] = None,
) -> Optional[Segment]:
    """
    Resolve a selection to a segment.

    Args:
        source_text: Current text snapshot.
        start: Selection start (inclusive).
        end: Selection end (exclusive).
        current_segments: Segments already in the store.
        global_voice: Voice a fresh candidate starts with.

    Returns:
        None for a caret-only selection (start == end), the stored segment
        when the range matches one exactly, otherwise a fresh candidate.

    Raises:
        InvalidInputError: If the offsets fall outside the text or are reversed.
    """
    if not (0 <= start <= end <= len(source_text)):
        raise InvalidInputError(
            f"Selection [{start}, {end}) is outside the text (length {len(source_text)})",
            {"start": start, "end": end, "length": len(source_text)},
        )

    if start == end:
        return None

    for seg in current_segments:
        if seg.same_range(start, end):
            return seg

    return Segment.from_selection(source_text, start, end, voice=global_voice)
