"""
Usage log model: append-only record of metered feature consumption.

Monthly usage is the sum of `quantity` for a household and feature inside the
calendar month.
"""

import uuid

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import relationship

from dompet.core.clock import utcnow
from dompet.db.base import Base
from dompet.db.types import GUID


class Feature:
    """Metered feature keys."""
    TRANSACTION = "transaction"
    AI_SCAN = "ai_scan"
    STORAGE = "storage"


class UsageLog(Base):
    """One consumption event."""

    __tablename__ = "usage_logs"
    __table_args__ = (
        Index("ix_usage_logs_household_feature_time", "household_id", "feature", "recorded_at"),
    )

    id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    household_id = Column(GUID(), ForeignKey("households.id"), nullable=False)
    user_id = Column(GUID(), ForeignKey("users.id"), nullable=True)
    feature = Column(String(50), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    recorded_at = Column(DateTime, nullable=False, default=utcnow)
    extra_data = Column(JSON, default=dict)

    # Relationships
    household = relationship("Household", back_populates="usage_logs")

    def __repr__(self):
        return (
            f"<UsageLog(household={self.household_id}, feature={self.feature}, "
            f"quantity={self.quantity})>"
        )
