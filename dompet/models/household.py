"""
Household model: the billing and ownership unit.
"""

import uuid

from sqlalchemy import Column, DateTime, ForeignKey, String
from sqlalchemy.orm import relationship

from dompet.core.clock import utcnow
from dompet.db.base import Base
from dompet.db.types import GUID


class Household(Base):
    """A group of users sharing finances and one current subscription."""

    __tablename__ = "households"

    id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    created_by = Column(GUID(), nullable=True)

    # Pointer to the subscription access checks read. Moved on activation.
    current_subscription_id = Column(
        GUID(),
        ForeignKey("subscriptions.id", use_alter=True, name="fk_households_current_subscription"),
        nullable=True,
    )

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, onupdate=utcnow)

    # Relationships
    users = relationship("User", back_populates="household")
    current_subscription = relationship(
        "Subscription", foreign_keys=[current_subscription_id], post_update=True
    )
    subscriptions = relationship(
        "Subscription",
        back_populates="household",
        foreign_keys="Subscription.household_id",
        cascade="all, delete-orphan",
        order_by="Subscription.created_at",
    )
    usage_logs = relationship(
        "UsageLog", back_populates="household", cascade="all, delete-orphan"
    )
    transactions = relationship(
        "Transaction", back_populates="household", cascade="all, delete-orphan"
    )

    def __repr__(self):
        return f"<Household(id={self.id}, name={self.name!r})>"
