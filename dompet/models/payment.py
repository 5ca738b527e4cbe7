"""
Payment model. Created at checkout, mutated only by reconciliation, never deleted.
"""

import enum
import uuid

from sqlalchemy import JSON, Column, DateTime, Enum, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from dompet.core.clock import utcnow
from dompet.db.base import Base
from dompet.db.types import GUID


class PaymentStatus(str, enum.Enum):
    """Payment states accepted by reconciliation."""

    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"


class Payment(Base):
    """A checkout attempt against a subscription."""

    __tablename__ = "payments"

    id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    user_id = Column(GUID(), ForeignKey("users.id"), nullable=True, index=True)
    household_id = Column(GUID(), ForeignKey("households.id"), nullable=False, index=True)
    subscription_id = Column(GUID(), ForeignKey("subscriptions.id"), nullable=True, index=True)

    amount = Column(Integer, nullable=False)
    currency = Column(String(3), nullable=False, default="IDR")
    status = Column(
        Enum(PaymentStatus, native_enum=False, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=PaymentStatus.PENDING,
        index=True,
    )
    payment_method = Column(String(50), nullable=False, default="xendit")

    # Gateway references used by webhook lookup
    payment_token = Column(String(255), unique=True, index=True)  # PAYMENT-<id>
    payment_gateway_id = Column(String(255), index=True)

    paid_at = Column(DateTime)
    failed_at = Column(DateTime)
    extra_data = Column(JSON, default=dict)

    created_at = Column(DateTime, default=utcnow, index=True)
    updated_at = Column(DateTime, onupdate=utcnow)

    # Relationships
    user = relationship("User", back_populates="payments")
    household = relationship("Household")
    subscription = relationship("Subscription", back_populates="payments")
    invoice = relationship("Invoice", back_populates="payment", uselist=False)

    def merge_extra_data(self, data: dict | None) -> None:
        """Merge gateway metadata into `extra_data` (reassigned so the change is flushed)."""
        if not data:
            return
        merged = dict(self.extra_data or {})
        merged.update({k: v for k, v in data.items() if v is not None})
        self.extra_data = merged

    def __repr__(self):
        return f"<Payment(id={self.id}, status={self.status}, amount={self.amount})>"
