from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import Response

from portal.core.errors import ConfigurationError, IllegalTransition, ParticipantNotFound, PhotoRejected, RemoteError
from portal.schemas.requests import RowRef
from portal.services.admin_service import AdminConsole, get_admin_console
from portal.services.export_service import EXPORT_FILENAME
from portal.services.gateway import MatchKey

router = APIRouter()


def _console() -> AdminConsole:
    try:
        return get_admin_console()
    except ConfigurationError as exc:
        raise HTTPException(status_code=500, detail=str(exc))


def _key(ref: RowRef) -> MatchKey:
    if ref.id is None and not ref.timestamp:
        raise HTTPException(status_code=400, detail="Provide the row id or its timestamp")
    return MatchKey(id=ref.id, team_id=ref.team_id, timestamp=ref.timestamp)


@router.post("/load")
def load_rows() -> Dict[str, Any]:
    console = _console()
    return {"message": console.load(), "teams": console.teams()}


@router.get("/participants")
def participants(
    team: Optional[str] = Query(None),
    status: Optional[str] = Query(None, description="Active, Requested, Deleted or Rejected"),
    sport: Optional[str] = Query(None),
) -> Dict[str, Any]:
    console = _console()
    rows = console.filter(team=team, status=status, sport=sport)
    return {"message": console.message, "teams": console.teams(), "rows": [r.to_api() for r in rows]}


@router.get("/export.csv")
def export_rows(
    team: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    sport: Optional[str] = Query(None),
) -> Response:
    content = _console().export(team=team, status=status, sport=sport)
    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{EXPORT_FILENAME}"'},
    )


@router.get("/delete-requests")
def delete_requests(status: Optional[str] = Query(None, description="pending, approved or rejected")) -> List[Dict[str, Any]]:
    return [r.to_api() for r in _console().delete_requests(status)]


@router.post("/approve")
def approve_delete(body: RowRef) -> Dict[str, str]:
    try:
        return {"message": _console().approve_delete(_key(body))}
    except ParticipantNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except IllegalTransition as exc:
        raise HTTPException(status_code=400, detail=str(exc))


@router.post("/reject")
def reject_delete(body: RowRef) -> Dict[str, str]:
    try:
        return {"message": _console().reject_delete(_key(body))}
    except ParticipantNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except IllegalTransition as exc:
        raise HTTPException(status_code=400, detail=str(exc))


@router.get("/photo")
def download_photo(
    id: Optional[str] = Query(None),
    team_id: Optional[str] = Query(None, alias="teamId"),
    timestamp: Optional[str] = Query(None),
) -> Response:
    console = _console()
    try:
        photo = console.photo(_key(RowRef(id=id, team_id=team_id, timestamp=timestamp)))
    except ParticipantNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except PhotoRejected as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except RemoteError as exc:
        raise HTTPException(status_code=502, detail=console.message or str(exc))
    return Response(
        content=photo.content,
        media_type=photo.mime_type,
        headers={"Content-Disposition": f'attachment; filename="{photo.filename}"'},
    )
