from autoshop.models.attendance import AttendanceTicket
from autoshop.models.conversation_turn import ConversationTurn
from autoshop.models.customer import Customer
from autoshop.models.session import ChatSession

__all__ = [
    "Customer",
    "ChatSession",
    "ConversationTurn",
    "AttendanceTicket",
]
