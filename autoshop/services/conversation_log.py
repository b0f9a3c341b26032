"""Append-only conversation log; mirrors every turn into the session's AI context."""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from autoshop.logging_config import get_logger
from autoshop.models import ConversationTurn, Customer
from autoshop.services.clock import ensure_timezone, start_of_day
from autoshop.services.core import CoreContext
from autoshop.services.customer_service import get_customer
from autoshop.services.session_store import SessionStore
from autoshop.services.state_machine import CONTEXT_ROLES, Direction, Origin

logger = get_logger("conversation_log")


@dataclass
class UnreadConversation:
    phone: str
    name: Optional[str]
    unread_count: int
    last_message_at: Optional[datetime]


@dataclass
class LogStats:
    total: int
    today: int
    by_origin: dict[str, int]


def resolve_origin(direction: Direction, origin: Optional[str]) -> Origin:
    """Inbound turns always come from the customer; outbound ones default to the bot."""
    if direction == Direction.INBOUND:
        return Origin.CUSTOMER
    if origin is None or origin == Origin.CUSTOMER.value:
        return Origin.BOT
    return Origin(origin)


class ConversationLog:
    def __init__(self, core: CoreContext, sessions: SessionStore):
        self.core = core
        self.sessions = sessions

    def append(
        self,
        phone: str,
        text: str,
        direction: str,
        origin: Optional[str] = None,
        db: Optional[Session] = None,
    ) -> int:
        """Write one turn and push it onto the AI context. Returns the turn id."""
        direction = Direction(direction)
        resolved_origin = resolve_origin(direction, origin)

        with self.core.locks.identity(phone), self.core.unit_of_work("log.append", db) as db:
            customer = get_customer(db, phone)
            turn = ConversationTurn(
                customer_id=customer.id if customer else None,
                phone=phone,
                direction=direction.value,
                text=text,
                origin=resolved_origin.value,
                read=False,
                created_at=self.core.now(),
            )
            db.add(turn)
            db.flush()

            self.sessions.append_context(phone, CONTEXT_ROLES[direction], text, db=db)
            return turn.id

    def history(
        self,
        phone: str,
        limit: Optional[int] = None,
        before: Optional[int] = None,
    ) -> list[ConversationTurn]:
        """Most recent `limit` turns (older than turn `before`, if given), oldest first."""
        if limit is None:
            limit = self.core.settings.history_default_limit
        with self.core.unit_of_work("log.history") as db:
            query = db.query(ConversationTurn).filter(ConversationTurn.phone == phone)
            if before is not None:
                query = query.filter(ConversationTurn.id < before)
            rows = query.order_by(ConversationTurn.id.desc()).limit(limit).all()
        rows.reverse()
        return rows

    def recent_for_ai(self, phone: str, limit: Optional[int] = None) -> list[dict[str, str]]:
        """Rebuild an AI context from the log (role/content pairs, oldest first)."""
        if limit is None:
            limit = self.core.settings.ai_context_limit
        return [
            {"role": CONTEXT_ROLES[Direction(turn.direction)], "content": turn.text}
            for turn in self.history(phone, limit=limit)
        ]

    def count(self, phone: str) -> int:
        with self.core.unit_of_work("log.count") as db:
            return db.query(ConversationTurn).filter(ConversationTurn.phone == phone).count()

    def mark_read(self, phone: str) -> int:
        """Flag every unread inbound turn as read. Returns how many changed."""
        with self.core.locks.identity(phone), self.core.unit_of_work("log.mark_read") as db:
            changed = (
                db.query(ConversationTurn)
                .filter(
                    ConversationTurn.phone == phone,
                    ConversationTurn.direction == Direction.INBOUND.value,
                    ConversationTurn.read.is_(False),
                )
                .update({ConversationTurn.read: True}, synchronize_session=False)
            )
        if changed:
            logger.debug(f"Marked {changed} messages as read: {phone}")
        return changed

    def unread_summary(self) -> list[UnreadConversation]:
        last_message_at = func.max(ConversationTurn.created_at)
        with self.core.unit_of_work("log.unread_summary") as db:
            rows = (
                db.query(
                    ConversationTurn.phone,
                    Customer.name,
                    func.count(ConversationTurn.id),
                    last_message_at,
                )
                .outerjoin(Customer, Customer.phone == ConversationTurn.phone)
                .filter(
                    ConversationTurn.direction == Direction.INBOUND.value,
                    ConversationTurn.read.is_(False),
                )
                .group_by(ConversationTurn.phone, Customer.name)
                .order_by(last_message_at.desc())
                .all()
            )
        return [
            UnreadConversation(
                phone=phone,
                name=name,
                unread_count=unread,
                last_message_at=ensure_timezone(last_at),
            )
            for phone, name, unread, last_at in rows
        ]

    def stats(self) -> LogStats:
        """Totals for the dashboard; the origin breakdown covers today only."""
        today = start_of_day(self.core.now())
        with self.core.unit_of_work("log.stats") as db:
            total = db.query(func.count(ConversationTurn.id)).scalar() or 0
            today_count = (
                db.query(func.count(ConversationTurn.id)).filter(ConversationTurn.created_at >= today).scalar() or 0
            )
            by_origin = (
                db.query(ConversationTurn.origin, func.count(ConversationTurn.id))
                .filter(ConversationTurn.created_at >= today)
                .group_by(ConversationTurn.origin)
                .all()
            )
        return LogStats(total=total, today=today_count, by_origin={origin: count for origin, count in by_origin})
