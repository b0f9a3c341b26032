from enum import Enum
from typing import Optional


# Bot flow steps ("menu", "scheduling", ...) are free strings owned by the
# message handlers; only these three carry meaning for the core.
class SessionState(str, Enum):
    IDLE = "idle"
    WAITING_HUMAN = "waiting_human"
    IN_ATTENDANCE = "in_attendance"


ATTENDANCE_STATES = (SessionState.WAITING_HUMAN.value, SessionState.IN_ATTENDANCE.value)


class TicketStatus(str, Enum):
    WAITING = "waiting"
    IN_SERVICE = "in_service"
    FINISHED = "finished"
    CANCELLED = "cancelled"


ACTIVE_STATUSES = (TicketStatus.WAITING.value, TicketStatus.IN_SERVICE.value)

VALID_TRANSITIONS = {
    TicketStatus.WAITING: [TicketStatus.IN_SERVICE, TicketStatus.CANCELLED],
    TicketStatus.IN_SERVICE: [TicketStatus.FINISHED],
    TicketStatus.FINISHED: [],
    TicketStatus.CANCELLED: [],
}

# Session state that must accompany a ticket in the given status.
PAIRED_SESSION_STATE = {
    TicketStatus.WAITING: SessionState.WAITING_HUMAN,
    TicketStatus.IN_SERVICE: SessionState.IN_ATTENDANCE,
    TicketStatus.FINISHED: SessionState.IDLE,
    TicketStatus.CANCELLED: SessionState.IDLE,
}


class Direction(str, Enum):
    INBOUND = "inbound"
    OUTBOUND = "outbound"


class Origin(str, Enum):
    CUSTOMER = "customer"
    BOT = "bot"
    AI = "ai"
    HUMAN = "human"


CONTEXT_ROLES = {
    Direction.INBOUND: "user",
    Direction.OUTBOUND: "assistant",
}


class InvalidTransitionError(Exception):
    def __init__(self, from_status: TicketStatus, to_status: TicketStatus):
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(f"Invalid transition: {from_status.value} -> {to_status.value}")


def can_transition(from_status: TicketStatus, to_status: TicketStatus) -> bool:
    """Check if ticket transition is valid."""
    allowed = VALID_TRANSITIONS.get(TicketStatus(from_status), [])
    return TicketStatus(to_status) in allowed


def transition(from_status: TicketStatus, to_status: TicketStatus) -> TicketStatus:
    """Perform ticket transition. Raises InvalidTransitionError if not allowed."""
    from_status, to_status = TicketStatus(from_status), TicketStatus(to_status)
    if not can_transition(from_status, to_status):
        raise InvalidTransitionError(from_status, to_status)
    return to_status


def is_attendance_state(state: Optional[str]) -> bool:
    return state in ATTENDANCE_STATES


def paired_session_state(status: str) -> str:
    """Session state that must accompany a ticket in `status`."""
    return PAIRED_SESSION_STATE[TicketStatus(status)].value
