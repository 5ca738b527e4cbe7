"""
User model for authentication and household membership.
"""

import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String
from sqlalchemy.orm import relationship

from dompet.core.clock import utcnow
from dompet.db.base import Base
from dompet.db.types import GUID


class HouseholdRole:
    """Role of a user inside their household."""
    OWNER = "owner"
    MEMBER = "member"


class User(Base):
    """User model for authentication and household membership."""

    __tablename__ = "users"

    id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    email = Column(String(255), unique=True, index=True, nullable=False)
    username = Column(String(100), unique=True, index=True, nullable=False)
    full_name = Column(String(255))
    hashed_password = Column(String(255), nullable=False)

    # Household membership
    household_id = Column(GUID(), ForeignKey("households.id"), nullable=True, index=True)
    household_role = Column(String(20), default=HouseholdRole.OWNER)

    # Status fields
    is_active = Column(Boolean, default=True)
    is_superuser = Column(Boolean, default=False)
    is_verified = Column(Boolean, default=False)

    # Timestamps
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, onupdate=utcnow)
    last_login = Column(DateTime)

    # Relationships
    household = relationship("Household", back_populates="users")
    payments = relationship("Payment", back_populates="user")

    @property
    def is_household_owner(self) -> bool:
        return self.household_role == HouseholdRole.OWNER
