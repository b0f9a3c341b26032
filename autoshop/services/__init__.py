from autoshop.services.attendance_queue import AttendanceQueue, Placement
from autoshop.services.conversation_log import ConversationLog
from autoshop.services.errors import CoreError, InvalidPhoneError, ProtectedStateError, StorageError
from autoshop.services.orchestrator import SessionOrchestrator
from autoshop.services.result import ErrorCode, Result
from autoshop.services.session_store import SessionStore
from autoshop.services.state_machine import Direction, Origin, SessionState, TicketStatus
