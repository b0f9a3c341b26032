from fastapi import APIRouter, Depends

from autoshop.routers.deps import get_orchestrator, path_phone, require_admin_token
from autoshop.schemas.session import SessionResponse
from autoshop.services.orchestrator import SessionOrchestrator

router = APIRouter(prefix="/sessions", tags=["sessions"], dependencies=[Depends(require_admin_token)])


@router.get("/{phone}", response_model=SessionResponse)
def get_session(phone: str = Depends(path_phone), orchestrator: SessionOrchestrator = Depends(get_orchestrator)):
    return SessionResponse.model_validate(orchestrator.sessions.get(phone))


@router.delete("/{phone}", response_model=SessionResponse)
def reset_session(phone: str = Depends(path_phone), orchestrator: SessionOrchestrator = Depends(get_orchestrator)):
    """Close any open ticket and put the session back to idle."""
    return SessionResponse.model_validate(orchestrator.reset(phone))
