from sqlalchemy import Column, DateTime, Integer, String, Text

from autoshop.database import Base


class Customer(Base):
    __tablename__ = "customers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    phone = Column(String(20), nullable=False, unique=True, index=True)
    name = Column(Text)
    total_interactions = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False)
    last_contact_at = Column(DateTime(timezone=True))
