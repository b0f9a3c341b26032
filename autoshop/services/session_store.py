"""Session store: one sliding-expiry session per customer phone."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import delete
from sqlalchemy.orm import Session

from autoshop.logging_config import for_phone, get_logger
from autoshop.models import ChatSession
from autoshop.services.clock import ensure_timezone, expires_at, is_expired
from autoshop.services.core import CoreContext
from autoshop.services.errors import ProtectedStateError
from autoshop.services.state_machine import ATTENDANCE_STATES, SessionState, is_attendance_state

logger = get_logger("session_store")


@dataclass
class SessionSnapshot:
    phone: str
    state: str
    data: dict[str, Any] = field(default_factory=dict)
    ai_context: list[dict[str, str]] = field(default_factory=list)
    expires_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def in_attendance_flow(self) -> bool:
        return is_attendance_state(self.state)

    @classmethod
    def from_row(cls, row: ChatSession) -> "SessionSnapshot":
        return cls(
            phone=row.phone,
            state=row.state,
            data=dict(row.data or {}),
            ai_context=[dict(turn) for turn in (row.ai_context or [])],
            expires_at=ensure_timezone(row.expires_at),
            created_at=ensure_timezone(row.created_at),
            updated_at=ensure_timezone(row.updated_at),
        )


class SessionStore:
    def __init__(self, core: CoreContext):
        self.core = core

    @property
    def ttl_minutes(self) -> int:
        return self.core.settings.session_ttl_minutes

    @property
    def context_limit(self) -> int:
        return self.core.settings.ai_context_limit

    def _reset_row(self, row: ChatSession, now: datetime) -> None:
        row.state = SessionState.IDLE.value
        row.data = {}
        row.ai_context = []
        row.expires_at = expires_at(now, self.ttl_minutes)
        row.updated_at = now

    def _load_live(self, db: Session, phone: str) -> ChatSession:
        """Return the live row for `phone`, creating or recycling it as needed.

        Sessions paired with an active attendance ticket are never treated as
        expired; the queue owns their lifetime.
        """
        now = self.core.now()
        row = db.query(ChatSession).filter(ChatSession.phone == phone).first()

        if row is None:
            row = ChatSession(phone=phone, created_at=now)
            self._reset_row(row, now)
            db.add(row)
            db.flush()
            logger.debug(f"Session created: {phone}")
            return row

        if is_expired(row.expires_at, now) and not is_attendance_state(row.state):
            self._reset_row(row, now)
            row.created_at = now
            db.flush()
            logger.debug(f"Expired session replaced: {phone}")

        return row

    def get(self, phone: str, db: Optional[Session] = None) -> SessionSnapshot:
        """Live session for `phone`; a fresh idle one when absent or expired."""
        with self.core.locks.identity(phone), self.core.unit_of_work("session.get", db) as db:
            return SessionSnapshot.from_row(self._load_live(db, phone))

    def touch(
        self,
        phone: str,
        state: Optional[str] = None,
        data: Optional[dict[str, Any]] = None,
        db: Optional[Session] = None,
    ) -> SessionSnapshot:
        """Merge `data`, optionally move to `state`, and extend the expiry.

        Attendance-linked states are owned by the orchestrator: asking for one
        raises ProtectedStateError, and a session already in one keeps it (the
        data patch is still applied). Leaving the queue goes through
        SessionOrchestrator.cancel / finish.
        """
        if state is not None and state in ATTENDANCE_STATES:
            raise ProtectedStateError(state)

        with self.core.locks.identity(phone), self.core.unit_of_work("session.touch", db) as db:
            row = self._load_live(db, phone)
            now = self.core.now()

            if data:
                row.data = {**(row.data or {}), **data}

            if state is not None and state != row.state:
                if is_attendance_state(row.state):
                    for_phone(logger, phone).warning(
                        "Ignoring bot state change while attendance is active",
                        context={"current_state": row.state, "requested_state": state},
                    )
                else:
                    row.state = state

            row.expires_at = expires_at(now, self.ttl_minutes)
            row.updated_at = now
            db.flush()
            return SessionSnapshot.from_row(row)

    def clear(self, phone: str, db: Optional[Session] = None) -> bool:
        """Reset to idle with empty data and context. Idempotent.

        Returns False (and changes nothing) when the session is paired with an
        active attendance ticket.
        """
        with self.core.locks.identity(phone), self.core.unit_of_work("session.clear", db) as db:
            row = self._load_live(db, phone)
            if is_attendance_state(row.state):
                for_phone(logger, phone).warning(
                    "Refusing to clear a session with active attendance",
                    context={"state": row.state},
                )
                return False
            self._reset_row(row, self.core.now())
            db.flush()
            logger.debug(f"Session cleared: {phone}")
            return True

    def append_context(self, phone: str, role: str, content: str, db: Optional[Session] = None) -> list[dict[str, str]]:
        """Push one turn onto the AI context and keep the most recent N."""
        with self.core.locks.identity(phone), self.core.unit_of_work("session.append_context", db) as db:
            row = self._load_live(db, phone)
            context = list(row.ai_context or [])
            context.append({"role": role, "content": content})
            row.ai_context = context[-self.context_limit :]
            row.updated_at = self.core.now()
            db.flush()
            return list(row.ai_context)

    def sweep_expired(self) -> int:
        """Delete sessions whose expiry passed. Attendance-linked sessions are kept."""
        now = self.core.now()
        with self.core.unit_of_work("session.sweep_scan") as db:
            phones = [
                phone
                for (phone,) in db.query(ChatSession.phone)
                .filter(ChatSession.expires_at < now, ChatSession.state.notin_(ATTENDANCE_STATES))
                .all()
            ]

        removed = 0
        for phone in phones:
            # re-check under the phone lock: the customer may have come back meanwhile
            with self.core.locks.identity(phone), self.core.unit_of_work("session.sweep") as db:
                result = db.execute(
                    delete(ChatSession).where(
                        ChatSession.phone == phone,
                        ChatSession.expires_at < now,
                        ChatSession.state.notin_(ATTENDANCE_STATES),
                    )
                )
                removed += result.rowcount or 0

        if removed:
            logger.info(f"Expired sessions removed: {removed}", extra={"context": {"removed": removed}})
        return removed

    # Attendance writers. Only SessionOrchestrator calls these, inside its own
    # transaction and under the phone lock.

    def set_attendance_state(self, db: Session, phone: str, state: str) -> ChatSession:
        """Move to waiting_human or in_attendance and extend the expiry."""
        row = self._load_live(db, phone)
        now = self.core.now()
        row.state = state
        row.expires_at = expires_at(now, self.ttl_minutes)
        row.updated_at = now
        db.flush()
        return row

    def release_attendance(self, db: Session, phone: str) -> ChatSession:
        """Back to a clean idle session once the ticket is closed."""
        row = self._load_live(db, phone)
        self._reset_row(row, self.core.now())
        db.flush()
        return row
