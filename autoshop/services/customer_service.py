from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from autoshop.models import Customer


def get_customer(db: Session, phone: str) -> Optional[Customer]:
    return db.query(Customer).filter(Customer.phone == phone).first()


def register_contact(db: Session, phone: str, now: datetime, name: Optional[str] = None) -> Customer:
    """Find customer by phone or create one; counts the contact either way.

    A name is only stored when the customer has none yet.
    """
    customer = get_customer(db, phone)

    if not customer:
        customer = Customer(phone=phone, name=name or None, total_interactions=0, created_at=now)
        db.add(customer)
    elif name and not customer.name:
        customer.name = name

    customer.total_interactions = (customer.total_interactions or 0) + 1
    customer.last_contact_at = now
    db.flush()
    return customer
