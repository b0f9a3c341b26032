from datetime import datetime
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict


class TicketItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    phone: str
    reason: Optional[str] = None
    status: str
    priority: int
    claimed_by_id: Optional[str] = None
    claimed_by_name: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None


class QueueItem(BaseModel):
    ticket: TicketItem
    position: int
    customer_name: Optional[str] = None


class QueueResponse(BaseModel):
    count: int
    items: list[QueueItem]


class QueueStatsResponse(BaseModel):
    waiting_count: int
    in_service_count: int
    finished_today: int
    average_service_minutes: int


class EnqueueRequest(BaseModel):
    reason: str = ""
    priority: Optional[int] = None


class EnqueueResponse(BaseModel):
    created: bool
    phone: str
    placement: QueueItem
    message: Optional[str] = None


class ClaimRequest(BaseModel):
    operator_id: Union[int, str]
    operator_name: Optional[str] = None


class FinishRequest(BaseModel):
    notes: Optional[str] = None


class TicketActionResponse(BaseModel):
    success: bool
    phone: str
    action: str
    ticket: TicketItem
    message: Optional[str] = None
