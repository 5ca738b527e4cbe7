"""
Plan model for subscription tiers.
"""

import enum
import uuid

from sqlalchemy import JSON, Boolean, Column, DateTime, Enum, Integer, String, Text
from sqlalchemy.orm import relationship

from dompet.core.clock import utcnow
from dompet.db.base import Base
from dompet.db.types import GUID

UNLIMITED = -1


class PlanType(str, enum.Enum):
    """Billing interval of a plan."""

    FREE = "free"
    MONTHLY = "monthly"
    YEARLY = "yearly"
    LIFETIME = "lifetime"


class Plan(Base):
    """Subscription tier with its feature map.

    `features` maps keys to values: numeric limits (-1 is unlimited),
    booleans for module switches, or strings for access levels.
    """

    __tablename__ = "plans"

    id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    name = Column(String(50), nullable=False)  # Premium, Pertalite, Pertamax, Turbo
    slug = Column(String(100), nullable=False, unique=True, index=True)
    type = Column(
        Enum(PlanType, native_enum=False, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=PlanType.MONTHLY,
    )
    price = Column(Integer, nullable=False, default=0)
    currency = Column(String(3), nullable=False, default="IDR")
    features = Column(JSON, nullable=False, default=dict)
    description = Column(Text)
    is_active = Column(Boolean, default=True)
    is_popular = Column(Boolean, default=False)
    sort_order = Column(Integer, default=0, index=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, onupdate=utcnow)

    # Relationships
    subscriptions = relationship("Subscription", back_populates="plan")

    def get_feature(self, key: str, default=None):
        """Feature value with default fallback."""
        return (self.features or {}).get(key, default)

    def get_limit(self, key: str, default: int = 0) -> int:
        """Numeric limit for a feature key; non-numeric values count as `default`."""
        value = self.get_feature(key, default)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return default
        return int(value)

    def is_unlimited(self, key: str) -> bool:
        return self.get_limit(key) == UNLIMITED

    @property
    def is_free(self) -> bool:
        return self.type == PlanType.FREE

    @property
    def is_recurring(self) -> bool:
        return self.type in (PlanType.MONTHLY, PlanType.YEARLY)

    def price_for_cycle(self, cycle: str) -> int:
        """Price for a billing cycle, preferring `price_<cycle>` from the feature map."""
        return self.get_limit(f"price_{cycle}", self.price)

    def __repr__(self):
        return f"<Plan(slug={self.slug}, type={self.type}, sort_order={self.sort_order})>"
