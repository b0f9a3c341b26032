from sqlalchemy import Column, DateTime, Integer, String

from autoshop.database import Base, JSONType


class ChatSession(Base):
    __tablename__ = "sessions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    phone = Column(String(20), nullable=False, unique=True, index=True)
    state = Column(String(50), nullable=False, default="idle")  # idle, <bot flow step>, waiting_human, in_attendance
    data = Column(JSONType, nullable=False, default=dict)
    ai_context = Column(JSONType, nullable=False, default=list)
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)
