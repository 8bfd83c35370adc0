import json
import logging

import requests
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from portal.core.config import get_settings
from portal.core.errors import ConfigurationError
from portal.services.proxy_service import forward

logger = logging.getLogger(__name__)

router = APIRouter()


@router.api_route("", methods=["GET", "POST", "PUT", "PATCH", "DELETE"])
async def proxy(request: Request) -> Response:
    settings = get_settings()
    raw = await request.body()
    try:
        body = json.loads(raw) if raw else None
    except ValueError:
        body = None
    try:
        result = forward(settings.proxy_upstream_url, request.method, body, timeout=settings.remote_timeout)
    except ConfigurationError as exc:
        return JSONResponse(status_code=500, content={"success": False, "error": str(exc)})
    except requests.RequestException as exc:
        logger.error("Proxy error: %s", exc)
        return JSONResponse(status_code=502, content={"success": False, "error": "Proxy failed", "details": str(exc)})
    if result.is_json:
        return JSONResponse(status_code=result.status_code, content=result.body)
    return PlainTextResponse(status_code=result.status_code, content=result.body)
