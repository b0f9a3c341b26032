from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, Text, text

from autoshop.database import Base

_ACTIVE = text("status IN ('waiting', 'in_service')")


class AttendanceTicket(Base):
    __tablename__ = "attendance_tickets"
    __table_args__ = (
        Index("ix_attendance_tickets_queue", "status", "priority", "created_at"),
        # at most one waiting/in_service ticket per phone
        Index(
            "uq_attendance_tickets_active_phone",
            "phone",
            unique=True,
            postgresql_where=_ACTIVE,
            sqlite_where=_ACTIVE,
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    customer_id = Column(Integer, ForeignKey("customers.id", ondelete="SET NULL"))
    phone = Column(String(20), nullable=False, index=True)
    reason = Column(Text)
    status = Column(String(20), nullable=False, default="waiting")  # waiting, in_service, finished, cancelled
    priority = Column(Integer, nullable=False, default=0)
    claimed_by_id = Column(String(100))
    claimed_by_name = Column(Text)
    notes = Column(Text)
    created_at = Column(DateTime(timezone=True), nullable=False)
    started_at = Column(DateTime(timezone=True))
    finished_at = Column(DateTime(timezone=True))
    updated_at = Column(DateTime(timezone=True), nullable=False)
