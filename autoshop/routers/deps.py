from typing import Optional

from fastapi import Header, HTTPException, Request

from autoshop.services.errors import InvalidPhoneError
from autoshop.services.orchestrator import SessionOrchestrator
from autoshop.services.phone import normalize_phone
from autoshop.services.result import ErrorCode, Result

STATUS_BY_ERROR_CODE = {
    ErrorCode.NOT_FOUND.value: 404,
    ErrorCode.INVALID_TRANSITION.value: 409,
}


def get_orchestrator(request: Request) -> SessionOrchestrator:
    return request.app.state.orchestrator


def require_admin_token(request: Request, x_admin_token: Optional[str] = Header(default=None)) -> None:
    expected = request.app.state.core.settings.admin_token
    if not expected:
        raise HTTPException(status_code=500, detail="ADMIN_TOKEN not configured")
    if not x_admin_token or x_admin_token != expected:
        raise HTTPException(status_code=401, detail="Invalid admin token")


def path_phone(phone: str) -> str:
    """Phone path parameter, accepted as digits, formatted number or JID."""
    try:
        return normalize_phone(phone)
    except InvalidPhoneError as e:
        raise HTTPException(status_code=422, detail=str(e))


def raise_for_outcome(result: Result) -> None:
    if not result.ok:
        raise HTTPException(status_code=STATUS_BY_ERROR_CODE.get(result.error_code, 400), detail=result.error)
