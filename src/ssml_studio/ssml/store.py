"""
Segment Store.

Holds the segments of one editing session and guarantees that no two
stored segments overlap and that none is empty. A rejected insert
leaves the store exactly as it was.

Usage:
    store = SegmentStore()
    store.insert_or_update(segment)       # raises OverlapError on conflict
    for seg in store.all():               # ordered by start_index
        ...
"""
from __future__ import annotations

import copy
from typing import Dict, Iterator, List, Optional

from ssml_studio.core.logging import get_logger, verbose
from ssml_studio.errors import InvalidInputError, OverlapError
from ssml_studio.ssml.models import Segment

_LOG = get_logger("ssml-studio.store")


class SegmentStore:
    """Non-overlapping segments keyed by id."""

    def __init__(self, segments: Optional[List[Segment]] = None):
        self._segments: Dict[str, Segment] = {}
        for seg in segments or []:
            self.insert_or_update(seg)

    def __len__(self) -> int:
        return len(self._segments)

    def __iter__(self) -> Iterator[Segment]:
        return iter(self.all())

    def __contains__(self, segment_id: object) -> bool:
        return segment_id in self._segments

    def get(self, segment_id: str) -> Optional[Segment]:
        return self._segments.get(segment_id)

    def find_conflict(self, segment: Segment) -> Optional[Segment]:
        """First stored segment (other than ``segment`` itself) that overlaps it."""
        for other in self.all():
            if other.id != segment.id and other.overlaps(segment):
                return other
        return None

    def insert_or_update(self, segment: Segment) -> None:
        """
        Insert a new segment or replace the stored one with the same id.

        Raises:
            InvalidInputError: If the range is empty or negative.
            OverlapError: If the range intersects another stored segment.
        """
        if segment.start_index < 0 or segment.start_index >= segment.end_index:
            raise InvalidInputError(
                f"Segment range [{segment.start_index}, {segment.end_index}) is empty or invalid",
                {"segment_id": segment.id},
            )

        conflict = self.find_conflict(segment)
        if conflict is not None:
            verbose(_LOG, "overlap_rejected", segment=segment.id, conflicting=conflict.id)
            raise OverlapError(segment.id, conflict.id)

        action = "updated" if segment.id in self._segments else "inserted"
        self._segments[segment.id] = segment
        verbose(
            _LOG, f"segment_{action}",
            segment=segment.id, start=segment.start_index, end=segment.end_index,
        )

    def remove(self, segment_id: str) -> Optional[Segment]:
        """
        Delete a segment. Returns the removed segment, or None if unknown.

        Clearing the session's active slot is the caller's job.
        """
        removed = self._segments.pop(segment_id, None)
        if removed is not None:
            verbose(_LOG, "segment_removed", segment=segment_id)
        return removed

    def all(self) -> List[Segment]:
        """Segments ordered by start_index ascending."""
        return sorted(self._segments.values(), key=lambda s: s.start_index)

    def snapshot(self) -> List[Segment]:
        """Copies of ``all()``; later edits to the store do not affect them."""
        return [copy.copy(s) for s in self.all()]

    def clear(self) -> None:
        self._segments.clear()

    def drop_after(self, index: int) -> List[Segment]:
        """
        Remove every segment whose range ends after ``index``.

        Used when the source text changes at ``index``: offsets of those
        segments no longer point at the text they were created for.

        Returns:
            The removed segments, ordered by start_index.
        """
        dropped = [s for s in self.all() if s.end_index > index]
        for seg in dropped:
            del self._segments[seg.id]
        if dropped:
            verbose(_LOG, "segments_invalidated", edit_index=index, count=len(dropped))
        return dropped
