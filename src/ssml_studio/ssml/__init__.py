"""
SSML document model and compiler.

    - models.py: Voice, Segment, Character, DocumentSettings, VoiceSettings
    - selection.py: Selection Tracker (selection -> candidate segment)
    - store.py: Segment Store (non-overlapping segments)
    - editor.py: Override Editor (patch merge + persist)
    - compiler.py: Markup Compiler
    - session.py: EditingSession and SessionRegistry
"""
from .compiler import EmitPolicy, compile_markup, compile_preview, escape_attr, escape_text
from .editor import OverrideEditor
from .models import Character, DocumentSettings, Segment, Voice, VoiceSettings
from .selection import on_select
from .session import EditingSession, EditResult, SessionRegistry
from .store import SegmentStore

__all__ = [
    "Character",
    "DocumentSettings",
    "EditResult",
    "EditingSession",
    "EmitPolicy",
    "OverrideEditor",
    "Segment",
    "SegmentStore",
    "SessionRegistry",
    "Voice",
    "VoiceSettings",
    "compile_markup",
    "compile_preview",
    "escape_attr",
    "escape_text",
    "on_select",
]
