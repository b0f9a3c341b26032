from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, String, Text

from autoshop.database import Base


class ConversationTurn(Base):
    __tablename__ = "conversation_turns"
    __table_args__ = (Index("ix_conversation_turns_unread", "phone", "direction", "read"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    customer_id = Column(Integer, ForeignKey("customers.id", ondelete="SET NULL"))
    phone = Column(String(20), nullable=False, index=True)
    direction = Column(String(10), nullable=False)  # inbound, outbound
    text = Column(Text, nullable=False)
    origin = Column(String(10), nullable=False)  # customer, bot, ai, human
    read = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, index=True)
