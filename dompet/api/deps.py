"""API Dependencies for dependency injection."""

from collections.abc import Callable, Generator
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from dompet.core.exceptions import (
    EmailNotVerified,
    InactiveSubscription,
    NoHousehold,
    NoSubscription,
    Unauthenticated,
)
from dompet.db.base import SessionLocal
from dompet.db.types import parse_uuid
from dompet.models.household import Household
from dompet.models.subscription import Subscription, SubscriptionStatus
from dompet.models.user import User
from dompet.services.auth import AuthService
from dompet.services.entitlement import Capability, Decision, EntitlementGate
from dompet.services.subscription_ledger import SubscriptionLedger

# Security scheme - auto_error=False so a missing header becomes our 401 body
security = HTTPBearer(auto_error=False)


def get_db() -> Generator[Session, None, None]:
    """Get database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    """Get current authenticated user."""
    if not credentials:
        raise Unauthenticated()

    token = credentials.credentials
    if not token or token in ("undefined", "null"):
        raise Unauthenticated("Invalid token format")

    token_data = AuthService.verify_token(token)
    if not token_data:
        raise Unauthenticated("Could not validate credentials")

    user_id = parse_uuid(token_data.user_id)
    user = db.get(User, user_id) if user_id else None
    if not user or not user.is_active:
        raise Unauthenticated()

    return user


async def get_current_superuser(
    current_user: User = Depends(get_current_user),
) -> User:
    """Get current superuser."""
    if not current_user.is_superuser:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="The user doesn't have enough privileges",
        )
    return current_user


async def get_current_household(
    current_user: User = Depends(get_current_user),
) -> Household:
    """Household of the current user."""
    if current_user.household is None:
        raise NoHousehold()
    return current_user.household


async def require_verified_email(
    current_user: User = Depends(get_current_user),
) -> User:
    if not current_user.is_verified:
        raise EmailNotVerified(current_user.email)
    return current_user


async def require_subscription(
    household: Household = Depends(get_current_household),
    db: Session = Depends(get_db),
) -> Subscription:
    """Current subscription, which must be active for the route to run."""
    ledger = SubscriptionLedger(db)
    subscription = ledger.current_subscription(household)
    if subscription is None:
        raise NoSubscription()

    if not ledger.is_active(subscription):
        effective = ledger.effective_status(subscription)
        if effective == SubscriptionStatus.CANCELED:
            raise InactiveSubscription(
                effective.value,
                message="Subscription has been canceled",
                canceled_at=_isoformat(subscription.canceled_at),
            )
        if effective == SubscriptionStatus.EXPIRED:
            raise InactiveSubscription(
                effective.value,
                message="Subscription has expired",
                expired_at=_isoformat(subscription.expires_at),
            )
        raise InactiveSubscription(effective.value)

    return subscription


def require_module(module: str) -> Callable:
    """Dependency factory gating a route on a plan module."""

    async def dependency(
        household: Household = Depends(get_current_household),
        db: Session = Depends(get_db),
    ) -> Decision:
        return EntitlementGate(db).check(household, Capability.module(module))

    return dependency


def require_feature(feature: str) -> Callable:
    """
    Dependency factory gating a route on a metered feature.

    Reads always pass for a household with a subscription. Writes need an
    active subscription, and creates (POST) also need room under the monthly
    limit.
    """

    async def dependency(
        request: Request,
        household: Household = Depends(get_current_household),
        db: Session = Depends(get_db),
    ) -> Decision:
        capability = Capability.for_method(feature, request.method)
        return EntitlementGate(db).check(household, capability)

    return dependency


def _isoformat(value) -> Optional[str]:
    return value.isoformat() if value else None
