"""
Household transaction model (income and expense entries).
"""

import enum
import uuid

from sqlalchemy import Column, DateTime, Enum, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from dompet.core.clock import utcnow
from dompet.db.base import Base
from dompet.db.types import GUID


class TransactionType(str, enum.Enum):
    """Direction of money movement."""

    INCOME = "income"
    EXPENSE = "expense"


class Transaction(Base):
    """A single income or expense entry of a household."""

    __tablename__ = "transactions"

    id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    household_id = Column(GUID(), ForeignKey("households.id"), nullable=False, index=True)
    user_id = Column(GUID(), ForeignKey("users.id"), nullable=True)

    type = Column(
        Enum(TransactionType, native_enum=False, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
    )
    amount = Column(Integer, nullable=False)
    category = Column(String(100))
    description = Column(Text)
    occurred_at = Column(DateTime, nullable=False, default=utcnow, index=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, onupdate=utcnow)

    # Relationships
    household = relationship("Household", back_populates="transactions")
