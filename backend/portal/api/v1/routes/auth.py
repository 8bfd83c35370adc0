from typing import Dict

from fastapi import APIRouter, HTTPException

from portal.core.config import get_settings
from portal.core.errors import InvalidCredentials
from portal.schemas.requests import LoginRequest
from portal.services.auth_service import login

router = APIRouter()


@router.post("/login")
def login_user(body: LoginRequest) -> Dict[str, str]:
    try:
        return login(get_settings(), body.username, body.password)
    except InvalidCredentials as exc:
        raise HTTPException(status_code=401, detail=str(exc))
