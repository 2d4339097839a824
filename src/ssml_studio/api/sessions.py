"""
Editing session routes (the Pro editor).

Every route needs the ``ssml_advanced`` feature; free callers get 403
FEATURE_LOCKED.

Endpoints:
    POST   /v1/sessions                                 - Create
    GET    /v1/sessions/{sid}                           - Full state
    PATCH  /v1/sessions/{sid}                           - Global voice/language
    DELETE /v1/sessions/{sid}                           - Delete
    PUT    /v1/sessions/{sid}/text                      - Replace text
    POST   /v1/sessions/{sid}/selection                 - Select a range
    PATCH  /v1/sessions/{sid}/segment                   - Patch the active segment
    PATCH  /v1/sessions/{sid}/segments/{seg_id}         - Patch a stored segment
    DELETE /v1/sessions/{sid}/segments/{seg_id}         - Remove a segment
    POST   /v1/sessions/{sid}/characters                - Create a character
    DELETE /v1/sessions/{sid}/characters/{cid}          - Delete a character
    POST   /v1/sessions/{sid}/characters/{cid}/apply    - Stamp onto active segment
    GET    /v1/sessions/{sid}/ssml                      - Compiled markup
    POST   /v1/sessions/{sid}/synthesize                - Compile + synthesize

Typical flow:
    POST selection {"start": 6, "end": 11}
    PATCH segment  {"style": "cheerful", "rate": 1.2}
    GET ssml
"""
from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends

from ssml_studio.api.dependencies import get_membership, get_service
from ssml_studio.api.routes import synthesis_response
from ssml_studio.api.schemas import (
    CharacterCreate,
    SegmentPatch,
    SelectionRequest,
    SessionCreate,
    SessionUpdate,
    TextUpdate,
)
from ssml_studio.core.logging import set_session_id
from ssml_studio.services.membership import MembershipInfo, require_feature
from ssml_studio.services.studio import StudioService
from ssml_studio.services.validators import validate_break_time, validate_language, validate_voice
from ssml_studio.ssml.compiler import EmitPolicy
from ssml_studio.ssml.session import EditingSession


def require_pro(membership: MembershipInfo = Depends(get_membership)) -> MembershipInfo:
    return require_feature(membership, "ssml_advanced")


router = APIRouter(prefix="/v1/sessions", dependencies=[Depends(require_pro)])


def _session(sid: str, service: StudioService) -> EditingSession:
    session = service.sessions.get(sid)
    set_session_id(sid)
    return session


def _patch_dict(body: SegmentPatch) -> Dict[str, Any]:
    patch = body.model_dump(exclude_unset=True)
    if patch.get("break_time"):
        patch["break_time"] = validate_break_time(patch["break_time"])
    if patch.get("voice"):
        patch["voice"] = validate_voice(patch["voice"])
    return patch


def _active_state(session: EditingSession) -> Dict[str, Any]:
    active = session.active_segment
    return {
        "ok": True,
        "active_segment": active.to_dict() if active else None,
        "persisted": session.is_persisted(active),
    }


@router.post("", status_code=201)
def create_session(body: SessionCreate, service: StudioService = Depends(get_service)):
    ssml_cfg = service.config.ssml
    session = service.sessions.create(
        body.text,
        global_voice=validate_voice(body.global_voice) or ssml_cfg.global_voice,
        global_language=validate_language(body.global_language) or ssml_cfg.global_language,
    )
    set_session_id(session.id)
    return session.to_dict()


@router.get("/{sid}")
def get_session(sid: str, service: StudioService = Depends(get_service)):
    return _session(sid, service).to_dict()


@router.patch("/{sid}")
def update_session(sid: str, body: SessionUpdate, service: StudioService = Depends(get_service)):
    session = _session(sid, service)
    session.set_globals(validate_voice(body.global_voice), validate_language(body.global_language))
    return session.to_dict()


@router.delete("/{sid}")
def delete_session(sid: str, service: StudioService = Depends(get_service)):
    service.sessions.delete(sid)
    return {"ok": True}


@router.put("/{sid}/text")
def replace_text(sid: str, body: TextUpdate, service: StudioService = Depends(get_service)):
    """Replace the text; segments ending after the first change are dropped."""
    session = _session(sid, service)
    dropped = session.set_text(body.text)
    return {"ok": True, "dropped": [s.id for s in dropped], "session": session.to_dict()}


@router.post("/{sid}/selection")
def select(sid: str, body: SelectionRequest, service: StudioService = Depends(get_service)):
    """A caret-only selection (start == end) clears the active segment."""
    session = _session(sid, service)
    session.select(body.start, body.end)
    return _active_state(session)


@router.patch("/{sid}/segment")
def patch_active_segment(sid: str, body: SegmentPatch, service: StudioService = Depends(get_service)):
    session = _session(sid, service)
    session.apply_patch(_patch_dict(body))
    return _active_state(session)


@router.patch("/{sid}/segments/{segment_id}")
def patch_segment(sid: str, segment_id: str, body: SegmentPatch, service: StudioService = Depends(get_service)):
    """Select a stored segment by id and patch it."""
    session = _session(sid, service)
    segment = session.get_segment(segment_id)
    session.select(segment.start_index, segment.end_index)
    session.apply_patch(_patch_dict(body))
    return _active_state(session)


@router.delete("/{sid}/segments/{segment_id}")
def remove_segment(sid: str, segment_id: str, service: StudioService = Depends(get_service)):
    session = _session(sid, service)
    removed = session.remove_segment(segment_id)
    return {"ok": True, "removed": removed.to_dict()}


@router.post("/{sid}/characters", status_code=201)
def create_character(sid: str, body: CharacterCreate, service: StudioService = Depends(get_service)):
    session = _session(sid, service)
    character = session.create_character(
        body.name,
        validate_voice(body.voice) or session.global_voice,
        validate_language(body.language),
        style=body.style,
        rate=body.rate,
        pitch=body.pitch,
        volume=body.volume,
        description=body.description,
        color=body.color,
    )
    return {"ok": True, "character": character.to_dict()}


@router.delete("/{sid}/characters/{character_id}")
def delete_character(sid: str, character_id: str, service: StudioService = Depends(get_service)):
    session = _session(sid, service)
    character = session.delete_character(character_id)
    return {"ok": True, "removed": character.to_dict()}


@router.post("/{sid}/characters/{character_id}/apply")
def apply_character(sid: str, character_id: str, service: StudioService = Depends(get_service)):
    session = _session(sid, service)
    session.apply_character(character_id)
    return _active_state(session)


@router.get("/{sid}/ssml")
def session_ssml(
    sid: str,
    policy: EmitPolicy = EmitPolicy.ALWAYS_PRESENT,
    service: StudioService = Depends(get_service),
):
    session = _session(sid, service)
    return {"ok": True, "ssml": session.compile(policy)}


@router.post("/{sid}/synthesize")
def session_synthesize(sid: str, service: StudioService = Depends(get_service)):
    session = _session(sid, service)
    return synthesis_response(service.invoker.synthesize_session(session))
