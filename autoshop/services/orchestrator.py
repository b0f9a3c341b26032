"""Session orchestrator: keeps session state and attendance tickets in step.

waiting_human  <=> the phone has a waiting ticket
in_attendance  <=> the phone has an in_service ticket
anything else  <=> no active ticket

Each public transition runs under the phone lock in a single transaction, so
callers never observe one side without the other.
"""

from typing import Optional

from autoshop.logging_config import for_phone, get_logger
from autoshop.models import AttendanceTicket
from autoshop.services.attendance_queue import AttendanceQueue, Placement, QueueStats
from autoshop.services.conversation_log import ConversationLog
from autoshop.services.core import CoreContext
from autoshop.services.customer_service import register_contact
from autoshop.services.phone import normalize_phone
from autoshop.services.result import ErrorCode, Result
from autoshop.services.session_store import SessionSnapshot, SessionStore
from autoshop.services.state_machine import (
    ACTIVE_STATUSES,
    Direction,
    Origin,
    SessionState,
    TicketStatus,
    is_attendance_state,
    paired_session_state,
)

logger = get_logger("orchestrator")

RESET_NOTES = "session reset"


class SessionOrchestrator:
    def __init__(
        self,
        core: CoreContext,
        sessions: Optional[SessionStore] = None,
        log: Optional[ConversationLog] = None,
        queue: Optional[AttendanceQueue] = None,
    ):
        self.core = core
        self.sessions = sessions or SessionStore(core)
        self.log = log or ConversationLog(core, self.sessions)
        self.queue = queue or AttendanceQueue(core)

    # Message path

    def record_inbound(self, raw_sender: str, text: str, push_name: Optional[str] = None) -> tuple[str, SessionSnapshot]:
        """Register an incoming customer message and return the phone and its live session."""
        phone = normalize_phone(raw_sender)
        with self.core.locks.identity(phone), self.core.unit_of_work("inbound") as db:
            register_contact(db, phone, self.core.now(), name=push_name)
            self.sessions.get(phone, db=db)
            self.log.append(phone, text, Direction.INBOUND.value, Origin.CUSTOMER.value, db=db)
            return phone, self.sessions.get(phone, db=db)

    def record_outbound(self, phone: str, text: str, origin: str = Origin.BOT.value) -> int:
        """Log a reply the transport already delivered."""
        return self.log.append(phone, text, Direction.OUTBOUND.value, origin)

    # Queue transitions

    def enqueue(self, phone: str, reason: str = "", priority: Optional[int] = None) -> Result[Placement]:
        """Put `phone` in the waiting queue; a duplicate returns the existing placement."""
        with self.core.locks.identity(phone), self.core.locks.waiting_bucket():
            with self.core.unit_of_work("attendance.enqueue") as db:
                result = self.queue.enqueue(db, phone, reason, priority)
                if result.ok:
                    self.sessions.set_attendance_state(db, phone, SessionState.WAITING_HUMAN.value)
                return result

    def claim(self, phone: str, operator_id, operator_name: str = "") -> Result[AttendanceTicket]:
        """waiting -> in_service for this phone; the session moves to in_attendance."""
        with self.core.locks.identity(phone), self.core.unit_of_work("attendance.claim") as db:
            result = self.queue.claim(db, phone, operator_id, operator_name)
            if result.ok:
                self.sessions.set_attendance_state(db, phone, SessionState.IN_ATTENDANCE.value)
            else:
                for_phone(logger, phone).info(
                    f"Claim refused: {result.error}",
                    context={"error_code": result.error_code, "operator_id": operator_id},
                )
            return result

    def claim_next(self, operator_id, operator_name: str = "") -> Result[AttendanceTicket]:
        """Claim whoever peek_next ranks first. A lost race reports the winner's claim."""
        ticket = self.peek_next()
        if ticket is None:
            return Result.failure("Queue is empty", ErrorCode.NOT_FOUND.value)
        return self.claim(ticket.phone, operator_id, operator_name)

    def finish(self, phone: str, notes: str = "") -> Result[AttendanceTicket]:
        """in_service -> finished; the session is cleared back to idle."""
        with self.core.locks.identity(phone), self.core.unit_of_work("attendance.finish") as db:
            result = self.queue.finish(db, phone, notes)
            if result.ok:
                self.sessions.release_attendance(db, phone)
            return result

    def cancel(self, phone: str) -> Result[AttendanceTicket]:
        """waiting -> cancelled; the session is cleared back to idle."""
        with self.core.locks.identity(phone), self.core.unit_of_work("attendance.cancel") as db:
            result = self.queue.cancel(db, phone)
            if result.ok:
                self.sessions.release_attendance(db, phone)
            return result

    def reset(self, phone: str) -> SessionSnapshot:
        """Admin reset: close whatever ticket is open, then clear the session."""
        with self.core.locks.identity(phone), self.core.unit_of_work("session.reset") as db:
            ticket = self.queue.active_ticket(db, phone)
            if ticket is not None and ticket.status == TicketStatus.WAITING.value:
                self.queue.cancel(db, phone)
            elif ticket is not None:
                self.queue.finish(db, phone, RESET_NOTES)
            row = self.sessions.release_attendance(db, phone)
            for_phone(logger, phone).info(
                "Session reset", context={"closed_ticket": ticket.id if ticket is not None else None}
            )
            return SessionSnapshot.from_row(row)

    # Queue reads

    def position(self, phone: str) -> int:
        with self.core.locks.waiting_bucket(), self.core.unit_of_work("attendance.position") as db:
            return self.queue.position(db, phone)

    def peek_next(self) -> Optional[AttendanceTicket]:
        with self.core.locks.waiting_bucket(), self.core.unit_of_work("attendance.peek_next") as db:
            return self.queue.peek_next(db)

    def list_waiting(self) -> list[Placement]:
        with self.core.locks.waiting_bucket(), self.core.unit_of_work("attendance.list_waiting") as db:
            return self.queue.list_waiting(db)

    def list_in_service(self) -> list[Placement]:
        with self.core.unit_of_work("attendance.list_in_service") as db:
            return self.queue.list_in_service(db)

    def stats(self) -> QueueStats:
        with self.core.unit_of_work("attendance.stats") as db:
            return self.queue.stats(db)

    def report_waiting(self) -> int:
        """Log how many customers are waiting; run periodically by the maintenance loop."""
        with self.core.unit_of_work("attendance.report") as db:
            waiting = self.queue.count_waiting(db)
        if waiting:
            logger.info(f"{waiting} customer(s) waiting for attendance", extra={"context": {"waiting": waiting}})
        return waiting

    # Diagnostics

    def check_invariants(self, phone: str) -> list[str]:
        """Report pairing violations for one phone. Empty list means consistent."""
        violations = []
        with self.core.locks.identity(phone), self.core.unit_of_work("attendance.check_invariants") as db:
            session = self.sessions.get(phone, db=db)
            active = (
                db.query(AttendanceTicket)
                .filter(AttendanceTicket.phone == phone, AttendanceTicket.status.in_(ACTIVE_STATUSES))
                .all()
            )

        if len(active) > 1:
            violations.append("multiple_active_tickets")

        if not active:
            if session.state == SessionState.WAITING_HUMAN.value:
                violations.append("waiting_human_without_ticket")
            elif session.state == SessionState.IN_ATTENDANCE.value:
                violations.append("in_attendance_without_ticket")
        elif any(paired_session_state(ticket.status) != session.state for ticket in active):
            if is_attendance_state(session.state):
                violations.append("session_state_mismatch")
            else:
                violations.append("ticket_without_session_state")

        return violations
