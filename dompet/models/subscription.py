"""
Subscription model binding a household to a plan.
"""

import enum
import uuid

from sqlalchemy import Boolean, Column, DateTime, Enum, ForeignKey, String, Text
from sqlalchemy.orm import relationship

from dompet.core.clock import utcnow
from dompet.db.base import Base
from dompet.db.types import GUID


class SubscriptionStatus(str, enum.Enum):
    """Lifecycle states of a subscription."""

    PENDING = "pending"
    ACTIVE = "active"
    EXPIRED = "expired"
    CANCELED = "canceled"


class BillingCycle(str, enum.Enum):
    """Chosen billing interval; drives expires_at on activation."""

    FREE = "free"
    MONTHLY = "monthly"
    YEARLY = "yearly"
    LIFETIME = "lifetime"


class Subscription(Base):
    """Subscription record with lifecycle status and expiry."""

    __tablename__ = "subscriptions"

    id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    household_id = Column(GUID(), ForeignKey("households.id"), nullable=False, index=True)
    plan_id = Column(GUID(), ForeignKey("plans.id"), nullable=False)

    status = Column(
        Enum(SubscriptionStatus, native_enum=False, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=SubscriptionStatus.PENDING,
        index=True,
    )
    billing_cycle = Column(
        Enum(BillingCycle, native_enum=False, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=BillingCycle.MONTHLY,
    )

    started_at = Column(DateTime)
    expires_at = Column(DateTime, index=True)  # None = lifetime
    canceled_at = Column(DateTime)
    cancellation_reason = Column(Text)
    auto_renew = Column(Boolean, default=False)

    created_at = Column(DateTime, default=utcnow, index=True)
    updated_at = Column(DateTime, onupdate=utcnow)

    # Relationships
    household = relationship(
        "Household", back_populates="subscriptions", foreign_keys=[household_id]
    )
    plan = relationship("Plan", back_populates="subscriptions")
    payments = relationship("Payment", back_populates="subscription")
    invoices = relationship("Invoice", back_populates="subscription")

    def __repr__(self):
        return (
            f"<Subscription(id={self.id}, status={self.status}, "
            f"expires_at={self.expires_at})>"
        )
