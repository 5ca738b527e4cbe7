"""
Invoice model, issued once per paid payment.
"""

import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from dompet.core.clock import utcnow
from dompet.db.base import Base
from dompet.db.types import GUID


class Invoice(Base):
    """Invoice created as a side effect of a payment becoming paid."""

    __tablename__ = "invoices"

    id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    payment_id = Column(GUID(), ForeignKey("payments.id"), nullable=False, unique=True)
    household_id = Column(GUID(), ForeignKey("households.id"), nullable=False, index=True)
    subscription_id = Column(GUID(), ForeignKey("subscriptions.id"), nullable=True)

    invoice_number = Column(String(32), nullable=False, unique=True)  # INV-YYYYMMDD-NNNN
    amount = Column(Integer, nullable=False)
    currency = Column(String(3), nullable=False, default="IDR")
    status = Column(String(20), nullable=False, default="paid")
    description = Column(Text)

    issued_at = Column(DateTime, default=utcnow)
    paid_at = Column(DateTime)
    created_at = Column(DateTime, default=utcnow, index=True)

    # Relationships
    payment = relationship("Payment", back_populates="invoice")
    subscription = relationship("Subscription", back_populates="invoices")

    def __repr__(self):
        return f"<Invoice(number={self.invoice_number}, amount={self.amount})>"
