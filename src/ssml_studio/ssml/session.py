"""
Editing Session.

One EditingSession owns everything a single editor works on: the source
text, the global voice and language, the character presets, the
Segment Store and the active-segment slot. Nothing is shared between
sessions.

Active segment:
    ``select()`` fills the slot with a candidate (see selection.py for the
    policy). ``apply_patch()`` merges into it and stores it. A caret-only
    selection clears the slot.

Text edits:
    The store is only valid for the text it was built against. When the
    text changes, every segment ending after the first changed index is
    dropped; segments fully before the edit survive untouched.

Errors:
    Methods raise StudioError subclasses. ``attempt()`` runs any of them
    and returns an EditResult instead, for callers that render errors
    inline.
"""
from __future__ import annotations

import threading
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional

from ssml_studio.core.config import Defaults
from ssml_studio.core.logging import get_logger, info, verbose
from ssml_studio.errors import NotFoundError, StudioError
from ssml_studio.services.validators import validate_source_text
from ssml_studio.ssml.compiler import EmitPolicy, compile_markup
from ssml_studio.ssml.editor import OverrideEditor
from ssml_studio.ssml.models import Character, DocumentSettings, Segment, new_id
from ssml_studio.ssml.selection import on_select
from ssml_studio.ssml.store import SegmentStore

_LOG = get_logger("ssml-studio.session")


@dataclass
class EditResult:
    """
    Outcome of one session operation.

    Attributes:
        ok: True when the operation succeeded.
        value: What the operation returned (segment, character, markup...).
        active: The active segment after the operation.
        error: ErrorCode value on failure.
        message: Human-readable failure message.
        details: Extra failure context, e.g. the conflicting segment id.
    """
    ok: bool
    value: Any = None
    active: Optional[Segment] = None
    error: Optional[str] = None
    message: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)


def first_difference(old: str, new: str) -> Optional[int]:
    """Index of the first differing character, or None if the strings are equal."""
    if old == new:
        return None
    limit = min(len(old), len(new))
    for i in range(limit):
        if old[i] != new[i]:
            return i
    return limit


class EditingSession:
    """State of one SSML editor."""

    def __init__(
        self,
        source_text: str = "",
        global_voice: str = Defaults.SSML_GLOBAL_VOICE,
        global_language: str = Defaults.SSML_GLOBAL_LANGUAGE,
        session_id: Optional[str] = None,
        max_text_chars: int = Defaults.SSML_MAX_TEXT_CHARS,
    ):
        self.id = session_id or new_id()
        self._max_text_chars = max_text_chars
        self._text = validate_source_text(source_text, max_text_chars)
        self.global_voice = global_voice
        self.global_language = global_language
        self.store = SegmentStore()
        self._editor = OverrideEditor(self.store)
        self._characters: "OrderedDict[str, Character]" = OrderedDict()
        self._active: Optional[Segment] = None
        self._lock = threading.RLock()
        self.created_at = time.time()

    # ─────────────────────────────────────────────────────────────────────
    # State
    # ─────────────────────────────────────────────────────────────────────

    @property
    def text(self) -> str:
        return self._text

    @property
    def active_segment(self) -> Optional[Segment]:
        return self._active

    @property
    def characters(self) -> List[Character]:
        return list(self._characters.values())

    def is_persisted(self, segment: Optional[Segment]) -> bool:
        """True if ``segment`` is in the store, False for an unsaved candidate."""
        return segment is not None and segment.id in self.store

    def set_globals(self, voice: Optional[str] = None, language: Optional[str] = None) -> None:
        """Change the document voice and/or language. None leaves a value as is."""
        with self._lock:
            if voice:
                self.global_voice = voice
            if language:
                self.global_language = language

    def set_text(self, text: str) -> List[Segment]:
        """
        Replace the source text.

        Returns:
            Segments dropped because they end after the first changed index.

        Raises:
            ValidationError: If the text is too long.
        """
        with self._lock:
            text = validate_source_text(text, self._max_text_chars)
            edit_at = first_difference(self._text, text)
            self._text = text
            if edit_at is None:
                return []

            dropped = self.store.drop_after(edit_at)
            if self._active is not None and self._active.end_index > edit_at:
                self._active = None
            if dropped:
                info(_LOG, "segments_dropped", edit_index=edit_at, count=len(dropped))
            return dropped

    # ─────────────────────────────────────────────────────────────────────
    # Selection and overrides
    # ─────────────────────────────────────────────────────────────────────

    def select(self, start: int, end: int) -> Optional[Segment]:
        """
        Make the selection [start, end) the active segment.

        Returns:
            The active segment, or None for a caret-only selection.

        Raises:
            InvalidInputError: If the offsets do not fit the text.
        """
        with self._lock:
            self._active = on_select(self._text, start, end, self.store.all(), self.global_voice)
            return self._active

    def clear_selection(self) -> None:
        with self._lock:
            self._active = None

    def apply_patch(self, patch: Mapping[str, Any]) -> Segment:
        """
        Apply an override patch to the active segment and store it.

        Raises:
            NoActiveSegmentError: If nothing is selected.
            InvalidInputError: On a malformed patch.
            OverlapError: If the segment collides with a stored one.
        """
        with self._lock:
            self._active = self._editor.apply(self._active, patch)
            return self._active

    def remove_segment(self, segment_id: str) -> Segment:
        """
        Delete a stored segment, clearing the active slot if it pointed at it.

        Raises:
            NotFoundError: If no stored segment has this id.
        """
        with self._lock:
            removed = self.store.remove(segment_id)
            if removed is None:
                raise NotFoundError("segment", segment_id)
            if self._active is not None and self._active.id == segment_id:
                self._active = None
            return removed

    def get_segment(self, segment_id: str) -> Segment:
        seg = self.store.get(segment_id)
        if seg is None:
            raise NotFoundError("segment", segment_id)
        return seg

    # ─────────────────────────────────────────────────────────────────────
    # Characters
    # ─────────────────────────────────────────────────────────────────────

    def create_character(self, name: str, voice: str, language: Optional[str] = None, **kwargs: Any) -> Character:
        """Add a character preset. ``language`` defaults to the document language."""
        with self._lock:
            character = Character.create(name, voice, language or self.global_language, **kwargs)
            self._characters[character.id] = character
            verbose(_LOG, "character_created", character=character.id, voice=voice)
            return character

    def get_character(self, character_id: str) -> Character:
        character = self._characters.get(character_id)
        if character is None:
            raise NotFoundError("character", character_id)
        return character

    def delete_character(self, character_id: str) -> Character:
        """
        Delete a character. Segments linked to it keep their overrides
        and their now dangling character_id.

        Raises:
            NotFoundError: If the character does not exist.
        """
        with self._lock:
            character = self._characters.pop(character_id, None)
            if character is None:
                raise NotFoundError("character", character_id)
            return character

    def apply_character(self, character_id: str) -> Segment:
        """
        Stamp a character onto the active segment.

        Raises:
            NotFoundError: If the character does not exist.
            NoActiveSegmentError: If nothing is selected.
            OverlapError: If the segment collides with a stored one.
        """
        with self._lock:
            character = self.get_character(character_id)
            self._active = self._editor.apply_character(self._active, character)
            return self._active

    def character_for(self, segment: Segment) -> Optional[Character]:
        """The character a segment links to, or None when unlinked or dangling."""
        if not segment.character_id:
            return None
        return self._characters.get(segment.character_id)

    # ─────────────────────────────────────────────────────────────────────
    # Compilation
    # ─────────────────────────────────────────────────────────────────────

    def document(self) -> DocumentSettings:
        """A consistent snapshot of the document for compilation."""
        with self._lock:
            return DocumentSettings(
                global_voice=self.global_voice,
                global_language=self.global_language,
                characters=list(self._characters.values()),
                segments=self.store.snapshot(),
            )

    def snapshot(self) -> tuple[str, DocumentSettings]:
        with self._lock:
            return self._text, self.document()

    def compile(self, policy: EmitPolicy = EmitPolicy.ALWAYS_PRESENT) -> str:
        """
        Compile the stored segments. The active slot is ignored; an
        unsaved candidate does not appear in the markup.
        """
        text, document = self.snapshot()
        return compile_markup(text, document, policy)

    # ─────────────────────────────────────────────────────────────────────
    # Result boundary
    # ─────────────────────────────────────────────────────────────────────

    def attempt(self, operation: Callable[..., Any], *args: Any, **kwargs: Any) -> EditResult:
        """
        Run a session operation and wrap its outcome.

        Example:
            result = session.attempt(session.apply_patch, {"style": "sad"})
            if not result.ok:
                show(result.error, result.message)
        """
        try:
            value = operation(*args, **kwargs)
        except StudioError as exc:
            return EditResult(
                ok=False,
                active=self._active,
                error=exc.code,
                message=exc.message,
                details=exc.details,
            )
        return EditResult(ok=True, value=value, active=self._active)

    def to_dict(self) -> Dict[str, Any]:
        with self._lock:
            active = self._active
            return {
                "id": self.id,
                "text": self._text,
                "global_voice": self.global_voice,
                "global_language": self.global_language,
                "segments": [s.to_dict() for s in self.store.all()],
                "characters": [c.to_dict() for c in self._characters.values()],
                "active_segment": active.to_dict() if active else None,
                "active_persisted": self.is_persisted(active),
            }


class SessionRegistry:
    """
    In-memory sessions for the HTTP API.

    Bounded in size (least recently used session evicted first) and
    sessions idle longer than ``idle_ttl_seconds`` expire. A TTL of 0
    disables expiry.
    """

    def __init__(
        self,
        max_sessions: int = Defaults.SESSIONS_MAX,
        idle_ttl_seconds: int = Defaults.SESSIONS_IDLE_TTL_SECONDS,
        max_text_chars: int = Defaults.SSML_MAX_TEXT_CHARS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._max_sessions = max_sessions
        self._ttl = idle_ttl_seconds
        self._max_text_chars = max_text_chars
        self._clock = clock
        self._sessions: "OrderedDict[str, tuple[EditingSession, float]]" = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def create(
        self,
        text: str = "",
        global_voice: str = Defaults.SSML_GLOBAL_VOICE,
        global_language: str = Defaults.SSML_GLOBAL_LANGUAGE,
    ) -> EditingSession:
        session = EditingSession(
            text,
            global_voice=global_voice,
            global_language=global_language,
            max_text_chars=self._max_text_chars,
        )
        with self._lock:
            self._purge_locked()
            while len(self._sessions) >= self._max_sessions:
                evicted, _ = self._sessions.popitem(last=False)
                info(_LOG, "session_evicted", session=evicted)
            self._sessions[session.id] = (session, self._clock())
        info(_LOG, "session_created", session=session.id, chars=len(text))
        return session

    def get(self, session_id: str) -> EditingSession:
        """
        Look up a live session and mark it as used.

        Raises:
            NotFoundError: If the id is unknown or the session expired.
        """
        with self._lock:
            self._purge_locked()
            entry = self._sessions.get(session_id)
            if entry is None:
                raise NotFoundError("session", session_id)
            self._sessions[session_id] = (entry[0], self._clock())
            self._sessions.move_to_end(session_id)
            return entry[0]

    def delete(self, session_id: str) -> None:
        with self._lock:
            if self._sessions.pop(session_id, None) is None:
                raise NotFoundError("session", session_id)
        info(_LOG, "session_deleted", session=session_id)

    def purge_expired(self) -> int:
        """Drop expired sessions. Returns how many were dropped."""
        with self._lock:
            return self._purge_locked()

    def _purge_locked(self) -> int:
        if self._ttl <= 0:
            return 0
        cutoff = self._clock() - self._ttl
        expired = [sid for sid, (_, touched) in self._sessions.items() if touched < cutoff]
        for sid in expired:
            del self._sessions[sid]
        if expired:
            info(_LOG, "sessions_expired", count=len(expired))
        return len(expired)
