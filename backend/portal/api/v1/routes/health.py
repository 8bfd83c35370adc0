from fastapi import APIRouter

from portal.core.config import get_settings
from portal.services.sessions import get_registry

router = APIRouter()


@router.get("/live")
def live() -> dict:
    """Liveness probe for platform health checks."""
    return {"status": "ok"}


@router.get("/ready")
def ready() -> dict:
    """Readiness probe reporting the configured store and mounted team sessions."""
    settings = get_settings()
    sessions = get_registry().sessions()
    return {
        "status": "ready",
        "store": settings.store_backend,
        "sessions": {s.team_id: s.state.value for s in sessions},
    }
