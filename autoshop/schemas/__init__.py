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
from autoshop.schemas.conversation import (
    HistoryResponse,
    LogStatsResponse,
    MarkReadResponse,
    TurnItem,
    UnreadItem,
    UnreadResponse,
)
from autoshop.schemas.session import SessionResponse

__all__ = [
    "ClaimRequest",
    "EnqueueRequest",
    "EnqueueResponse",
    "FinishRequest",
    "HistoryResponse",
    "LogStatsResponse",
    "MarkReadResponse",
    "QueueItem",
    "QueueResponse",
    "QueueStatsResponse",
    "SessionResponse",
    "TicketActionResponse",
    "TicketItem",
    "TurnItem",
    "UnreadItem",
    "UnreadResponse",
]
