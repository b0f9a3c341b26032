from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict

from autoshop.schemas.session import SessionResponse


class TurnItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    direction: str
    origin: str
    text: str
    read: bool
    created_at: datetime


class HistoryResponse(BaseModel):
    phone: str
    count: int
    messages: list[TurnItem]
    session: SessionResponse


class MarkReadResponse(BaseModel):
    phone: str
    marked: int


class UnreadItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    phone: str
    name: Optional[str] = None
    unread_count: int
    last_message_at: Optional[datetime] = None


class UnreadResponse(BaseModel):
    count: int
    conversations: list[UnreadItem]


class LogStatsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total: int
    today: int
    by_origin: dict[str, int]
