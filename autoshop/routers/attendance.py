from fastapi import APIRouter, Depends, HTTPException

from autoshop.routers.deps import get_orchestrator, path_phone, raise_for_outcome, require_admin_token
from autoshop.schemas.attendance import (
    ClaimRequest,
    EnqueueRequest,
    EnqueueResponse,
    FinishRequest,
    QueueItem,
    QueueResponse,
    QueueStatsResponse,
    TicketActionResponse,
    TicketItem,
)
from autoshop.services.attendance_queue import Placement
from autoshop.services.orchestrator import SessionOrchestrator

router = APIRouter(prefix="/attendance", tags=["attendance"], dependencies=[Depends(require_admin_token)])


def _queue_item(placement: Placement) -> QueueItem:
    return QueueItem(
        ticket=TicketItem.model_validate(placement.ticket),
        position=placement.position,
        customer_name=placement.customer_name,
    )


def _queue_response(placements: list[Placement]) -> QueueResponse:
    return QueueResponse(count=len(placements), items=[_queue_item(p) for p in placements])


@router.get("/queue", response_model=QueueResponse)
def list_queue(orchestrator: SessionOrchestrator = Depends(get_orchestrator)):
    """Waiting customers in service order."""
    return _queue_response(orchestrator.list_waiting())


@router.get("/active", response_model=QueueResponse)
def list_active(orchestrator: SessionOrchestrator = Depends(get_orchestrator)):
    return _queue_response(orchestrator.list_in_service())


@router.get("/stats", response_model=QueueStatsResponse)
def queue_stats(orchestrator: SessionOrchestrator = Depends(get_orchestrator)):
    stats = orchestrator.stats()
    return QueueStatsResponse(
        waiting_count=stats.waiting_count,
        in_service_count=stats.in_service_count,
        finished_today=stats.finished_today,
        average_service_minutes=stats.average_service_minutes,
    )


@router.get("/next", response_model=TicketItem)
def next_in_queue(orchestrator: SessionOrchestrator = Depends(get_orchestrator)):
    ticket = orchestrator.peek_next()
    if ticket is None:
        raise HTTPException(status_code=404, detail="Queue is empty")
    return TicketItem.model_validate(ticket)


@router.post("/next/claim", response_model=TicketActionResponse)
def claim_next(request: ClaimRequest, orchestrator: SessionOrchestrator = Depends(get_orchestrator)):
    """Take whoever is first in line."""
    result = orchestrator.claim_next(request.operator_id, request.operator_name or "")
    raise_for_outcome(result)
    return TicketActionResponse(
        success=True,
        phone=result.value.phone,
        action="claim",
        ticket=TicketItem.model_validate(result.value),
        message="Attendance started",
    )


@router.post("/{phone}", response_model=EnqueueResponse)
def enqueue(
    request: EnqueueRequest,
    phone: str = Depends(path_phone),
    orchestrator: SessionOrchestrator = Depends(get_orchestrator),
):
    """Put a customer in the queue. An already queued customer gets their current placement back."""
    result = orchestrator.enqueue(phone, request.reason, request.priority)
    return EnqueueResponse(
        created=result.ok,
        phone=phone,
        placement=_queue_item(result.value),
        message=None if result.ok else result.error,
    )


@router.post("/{phone}/claim", response_model=TicketActionResponse)
def claim(
    request: ClaimRequest,
    phone: str = Depends(path_phone),
    orchestrator: SessionOrchestrator = Depends(get_orchestrator),
):
    result = orchestrator.claim(phone, request.operator_id, request.operator_name or "")
    raise_for_outcome(result)
    return TicketActionResponse(
        success=True,
        phone=phone,
        action="claim",
        ticket=TicketItem.model_validate(result.value),
        message="Attendance started",
    )


@router.post("/{phone}/finish", response_model=TicketActionResponse)
def finish(
    request: FinishRequest,
    phone: str = Depends(path_phone),
    orchestrator: SessionOrchestrator = Depends(get_orchestrator),
):
    result = orchestrator.finish(phone, request.notes or "")
    raise_for_outcome(result)
    return TicketActionResponse(
        success=True,
        phone=phone,
        action="finish",
        ticket=TicketItem.model_validate(result.value),
        message="Attendance finished",
    )


@router.post("/{phone}/cancel", response_model=TicketActionResponse)
def cancel(phone: str = Depends(path_phone), orchestrator: SessionOrchestrator = Depends(get_orchestrator)):
    result = orchestrator.cancel(phone)
    raise_for_outcome(result)
    return TicketActionResponse(
        success=True,
        phone=phone,
        action="cancel",
        ticket=TicketItem.model_validate(result.value),
        message="Customer removed from queue",
    )
