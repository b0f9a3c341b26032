"""Human attendance queue: ticket lifecycle and waiting-list ordering.

Tickets move waiting -> in_service -> finished, or waiting -> cancelled.
Waiting tickets are served by priority (higher first), then by arrival; two
tickets created at the same instant fall back to insertion order (id).

Every method here works inside a transaction owned by the caller and never
touches the customer's session; SessionOrchestrator pairs each transition
with the matching session state.
"""

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import and_, func, or_
from sqlalchemy.orm import Query, Session

from autoshop.logging_config import get_logger
from autoshop.models import AttendanceTicket, Customer
from autoshop.services.clock import ensure_timezone, start_of_day
from autoshop.services.core import CoreContext
from autoshop.services.customer_service import get_customer
from autoshop.services.result import ErrorCode, Result
from autoshop.services.state_machine import ACTIVE_STATUSES, TicketStatus, transition

logger = get_logger("attendance_queue")


@dataclass
class Placement:
    ticket: AttendanceTicket
    position: int
    customer_name: Optional[str] = None


@dataclass
class QueueStats:
    waiting_count: int
    in_service_count: int
    finished_today: int
    average_service_minutes: int


def _describe_holder(ticket: AttendanceTicket) -> str:
    return ticket.claimed_by_name or ticket.claimed_by_id or "another operator"


class AttendanceQueue:
    def __init__(self, core: CoreContext):
        self.core = core

    # Reads

    def active_ticket(self, db: Session, phone: str) -> Optional[AttendanceTicket]:
        return (
            db.query(AttendanceTicket)
            .filter(AttendanceTicket.phone == phone, AttendanceTicket.status.in_(ACTIVE_STATUSES))
            .order_by(AttendanceTicket.id.desc())
            .first()
        )

    def _waiting(self, db: Session) -> Query:
        return db.query(AttendanceTicket).filter(AttendanceTicket.status == TicketStatus.WAITING.value)

    def _ranked(self, db: Session) -> Query:
        return self._waiting(db).order_by(
            AttendanceTicket.priority.desc(),
            AttendanceTicket.created_at.asc(),
            AttendanceTicket.id.asc(),
        )

    def position_of(self, db: Session, ticket: AttendanceTicket) -> int:
        """1-based rank of a waiting ticket; 0 for any other status."""
        if ticket.status != TicketStatus.WAITING.value:
            return 0
        ahead = (
            self._waiting(db)
            .filter(
                or_(
                    AttendanceTicket.priority > ticket.priority,
                    and_(
                        AttendanceTicket.priority == ticket.priority,
                        or_(
                            AttendanceTicket.created_at < ticket.created_at,
                            and_(
                                AttendanceTicket.created_at == ticket.created_at,
                                AttendanceTicket.id < ticket.id,
                            ),
                        ),
                    ),
                )
            )
            .count()
        )
        return ahead + 1

    def position(self, db: Session, phone: str) -> int:
        ticket = self.active_ticket(db, phone)
        if ticket is None:
            return 0
        return self.position_of(db, ticket)

    def peek_next(self, db: Session) -> Optional[AttendanceTicket]:
        return self._ranked(db).first()

    def _with_names(self, db: Session, query: Query) -> list[tuple[AttendanceTicket, Optional[str]]]:
        return (
            query.outerjoin(Customer, Customer.phone == AttendanceTicket.phone)
            .with_entities(AttendanceTicket, Customer.name)
            .all()
        )

    def list_waiting(self, db: Session) -> list[Placement]:
        rows = self._with_names(db, self._ranked(db))
        return [
            Placement(ticket=ticket, position=index, customer_name=name)
            for index, (ticket, name) in enumerate(rows, start=1)
        ]

    def list_in_service(self, db: Session) -> list[Placement]:
        query = (
            db.query(AttendanceTicket)
            .filter(AttendanceTicket.status == TicketStatus.IN_SERVICE.value)
            .order_by(AttendanceTicket.started_at.asc(), AttendanceTicket.id.asc())
        )
        return [Placement(ticket=ticket, position=0, customer_name=name) for ticket, name in self._with_names(db, query)]

    def count_waiting(self, db: Session) -> int:
        return self._waiting(db).count()

    def stats(self, db: Session) -> QueueStats:
        today = start_of_day(self.core.now())
        waiting = self.count_waiting(db)
        in_service = (
            db.query(func.count(AttendanceTicket.id))
            .filter(AttendanceTicket.status == TicketStatus.IN_SERVICE.value)
            .scalar()
        )
        finished = (
            db.query(AttendanceTicket.created_at, AttendanceTicket.finished_at)
            .filter(
                AttendanceTicket.status == TicketStatus.FINISHED.value,
                AttendanceTicket.finished_at.isnot(None),
                AttendanceTicket.finished_at >= today,
            )
            .all()
        )

        minutes = [
            (ensure_timezone(finished_at) - ensure_timezone(created_at)).total_seconds() / 60
            for created_at, finished_at in finished
        ]
        # half-up, not banker's rounding
        average = math.floor(sum(minutes) / len(minutes) + 0.5) if minutes else 0

        return QueueStats(
            waiting_count=waiting,
            in_service_count=in_service or 0,
            finished_today=len(finished),
            average_service_minutes=average,
        )

    # Transitions

    def enqueue(self, db: Session, phone: str, reason: str = "", priority: Optional[int] = None) -> Result[Placement]:
        """Open a waiting ticket, or report the active one already open for `phone`."""
        existing = self.active_ticket(db, phone)
        if existing is not None:
            placement = Placement(ticket=existing, position=self.position_of(db, existing))
            return Result.failure(
                f"{phone} already has an active ticket ({existing.status})",
                ErrorCode.ALREADY_EXISTS.value,
                value=placement,
            )

        if priority is None:
            priority = self.core.settings.default_priority

        now = self.core.now()
        customer = get_customer(db, phone)
        ticket = AttendanceTicket(
            customer_id=customer.id if customer else None,
            phone=phone,
            reason=reason or "",
            status=TicketStatus.WAITING.value,
            priority=priority,
            created_at=now,
            updated_at=now,
        )
        db.add(ticket)
        db.flush()

        position = self.position_of(db, ticket)
        logger.info(
            f"Customer added to queue: {phone} (position {position})",
            extra={"context": {"phone": phone, "ticket_id": ticket.id, "priority": priority}},
        )
        return Result.success(
            Placement(ticket=ticket, position=position, customer_name=customer.name if customer else None)
        )

    def _expect(self, db: Session, phone: str, status: TicketStatus) -> Result[AttendanceTicket]:
        """Active ticket for `phone` if it is in `status`, otherwise the reason it is not."""
        ticket = self.active_ticket(db, phone)
        if ticket is None:
            return Result.failure(f"No active ticket for {phone}", ErrorCode.NOT_FOUND.value)

        if ticket.status != status.value:
            if ticket.status == TicketStatus.IN_SERVICE.value:
                message = f"Already being attended by {_describe_holder(ticket)}"
            else:
                message = f"{phone} is still waiting in the queue"
            return Result.failure(message, ErrorCode.INVALID_TRANSITION.value, value=ticket)

        return Result.success(ticket)

    def _move(self, ticket: AttendanceTicket, to_status: TicketStatus, now: datetime) -> None:
        ticket.status = transition(TicketStatus(ticket.status), to_status).value
        ticket.updated_at = now

    def claim(self, db: Session, phone: str, operator_id, operator_name: str = "") -> Result[AttendanceTicket]:
        found = self._expect(db, phone, TicketStatus.WAITING)
        if not found.ok:
            return found

        ticket = found.value
        now = self.core.now()
        self._move(ticket, TicketStatus.IN_SERVICE, now)
        ticket.claimed_by_id = str(operator_id) if operator_id is not None else None
        ticket.claimed_by_name = operator_name or None
        ticket.started_at = now
        db.flush()

        logger.info(
            f"Operator {operator_name or operator_id} started attendance: {phone}",
            extra={"context": {"phone": phone, "ticket_id": ticket.id, "operator_id": ticket.claimed_by_id}},
        )
        return Result.success(ticket)

    def finish(self, db: Session, phone: str, notes: str = "") -> Result[AttendanceTicket]:
        found = self._expect(db, phone, TicketStatus.IN_SERVICE)
        if not found.ok:
            return found

        ticket = found.value
        now = self.core.now()
        self._move(ticket, TicketStatus.FINISHED, now)
        ticket.notes = notes or ""
        ticket.finished_at = now
        db.flush()

        logger.info(f"Attendance finished: {phone}", extra={"context": {"phone": phone, "ticket_id": ticket.id}})
        return Result.success(ticket)

    def cancel(self, db: Session, phone: str) -> Result[AttendanceTicket]:
        found = self._expect(db, phone, TicketStatus.WAITING)
        if not found.ok:
            return found

        ticket = found.value
        self._move(ticket, TicketStatus.CANCELLED, self.core.now())
        db.flush()

        logger.info(f"Customer removed from queue: {phone}", extra={"context": {"phone": phone, "ticket_id": ticket.id}})
        return Result.success(ticket)
