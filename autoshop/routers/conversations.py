from typing import Optional

from fastapi import APIRouter, Depends, Query

from autoshop.routers.deps import get_orchestrator, path_phone, require_admin_token
from autoshop.schemas.conversation import (
    HistoryResponse,
    LogStatsResponse,
    MarkReadResponse,
    TurnItem,
    UnreadItem,
    UnreadResponse,
)
from autoshop.schemas.session import SessionResponse
from autoshop.services.orchestrator import SessionOrchestrator

router = APIRouter(prefix="/conversations", tags=["conversations"], dependencies=[Depends(require_admin_token)])


@router.get("/unread", response_model=UnreadResponse)
def unread_conversations(orchestrator: SessionOrchestrator = Depends(get_orchestrator)):
    """Customers with unread inbound messages, most recent first."""
    rows = orchestrator.log.unread_summary()
    return UnreadResponse(count=len(rows), conversations=[UnreadItem.model_validate(row) for row in rows])


@router.get("/stats", response_model=LogStatsResponse)
def conversation_stats(orchestrator: SessionOrchestrator = Depends(get_orchestrator)):
    return LogStatsResponse.model_validate(orchestrator.log.stats())


@router.get("/{phone}", response_model=HistoryResponse)
def conversation_history(
    phone: str = Depends(path_phone),
    limit: Optional[int] = Query(default=None, ge=1, le=500),
    before: Optional[int] = Query(default=None, ge=1),
    orchestrator: SessionOrchestrator = Depends(get_orchestrator),
):
    """Page of history, oldest first. Pass the smallest id as `before` for the previous page."""
    turns = orchestrator.log.history(phone, limit=limit, before=before)
    session = orchestrator.sessions.get(phone)
    return HistoryResponse(
        phone=phone,
        count=len(turns),
        messages=[TurnItem.model_validate(turn) for turn in turns],
        session=SessionResponse.model_validate(session),
    )


@router.post("/{phone}/read", response_model=MarkReadResponse)
def mark_read(phone: str = Depends(path_phone), orchestrator: SessionOrchestrator = Depends(get_orchestrator)):
    return MarkReadResponse(phone=phone, marked=orchestrator.log.mark_read(phone))
