from typing import Any, Dict, List

from fastapi import APIRouter, File, HTTPException, UploadFile

from portal.core.catalog import get_catalog
from portal.core.errors import (
    ConfigurationError,
    DraftNotFound,
    IllegalTransition,
    ParticipantNotFound,
    PhotoRejected,
    ValidationFailed,
)
from portal.schemas.requests import DeleteRequestBody, DraftPatch, GenerateSlotsRequest
from portal.services.gateway import MatchKey
from portal.services.sessions import get_registry
from portal.services.team_session import TeamSession

router = APIRouter()


def _session(team_id: str) -> TeamSession:
    if team_id not in get_catalog().teams:
        raise HTTPException(status_code=404, detail=f"Unknown team '{team_id}'")
    try:
        return get_registry().get(team_id)
    except ConfigurationError as exc:
        raise HTTPException(status_code=500, detail=str(exc))


def _as_http(exc: Exception) -> HTTPException:
    if isinstance(exc, (DraftNotFound, ParticipantNotFound)):
        return HTTPException(status_code=404, detail=str(exc))
    return HTTPException(status_code=400, detail=str(exc))


@router.get("/{team_id}")
def team_summary(team_id: str) -> Dict[str, Any]:
    return _session(team_id).summary()


@router.post("/{team_id}/sync")
def sync_team(team_id: str) -> Dict[str, Any]:
    session = _session(team_id)
    session.manual_sync()
    return session.summary()


@router.post("/{team_id}/flush")
def flush_team(team_id: str) -> Dict[str, Any]:
    session = _session(team_id)
    result = session.flush_pending()
    return dict(session.summary(), flush=result.as_dict())


@router.get("/{team_id}/dead-letters")
def dead_letters(team_id: str) -> List[Dict[str, Any]]:
    return _session(team_id).queue.dead_letters()


@router.post("/{team_id}/drafts")
def generate_drafts(team_id: str, body: GenerateSlotsRequest) -> Dict[str, Any]:
    session = _session(team_id)
    try:
        session.generate_slots(body.count)
    except ValidationFailed as exc:
        raise _as_http(exc)
    return session.summary()


@router.patch("/{team_id}/drafts/{index}")
def update_draft(team_id: str, index: int, body: DraftPatch) -> Dict[str, Any]:
    session = _session(team_id)
    try:
        session.update_draft(index, body.changes())
    except (DraftNotFound, ValidationFailed) as exc:
        raise _as_http(exc)
    return session.summary()


@router.delete("/{team_id}/drafts/{index}")
def remove_draft(team_id: str, index: int) -> Dict[str, Any]:
    session = _session(team_id)
    try:
        session.remove_draft(index)
    except DraftNotFound as exc:
        raise _as_http(exc)
    return session.summary()


@router.post("/{team_id}/drafts/{index}/photo")
async def upload_photo(
    team_id: str,
    index: int,
    file: UploadFile = File(..., description="JPG or PNG, at most 200 KB"),
) -> Dict[str, Any]:
    session = _session(team_id)
    content = await file.read()
    try:
        session.attach_photo(index, content, file.content_type)
    except (DraftNotFound, PhotoRejected) as exc:
        raise _as_http(exc)
    return session.summary()


@router.post("/{team_id}/submit")
def submit_drafts(team_id: str) -> Dict[str, Any]:
    session = _session(team_id)
    try:
        session.submit_all()
    except (ValidationFailed, IllegalTransition) as exc:
        raise _as_http(exc)
    return session.summary()


@router.post("/{team_id}/request-delete")
def request_delete(team_id: str, body: DeleteRequestBody) -> Dict[str, Any]:
    session = _session(team_id)
    key = MatchKey(id=body.id, team_id=team_id, timestamp=body.timestamp)
    if not key.usable:
        raise HTTPException(status_code=400, detail="Provide the row id or its timestamp")
    try:
        session.request_delete(key, reason=body.reason, requester=body.requester)
    except (ParticipantNotFound, IllegalTransition) as exc:
        raise _as_http(exc)
    return session.summary()
