import itertools
import os

# Settings read the environment at import time
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("XENDIT_WEBHOOK_TOKEN", "test-callback-token")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from dompet.api.deps import get_db
from dompet.db.base import Base
from dompet.db.seed import seed_plans
from dompet.main import app
from dompet.models import (
    Household,
    HouseholdRole,
    Payment,
    PaymentStatus,
    Plan,
    Subscription,
    SubscriptionStatus,
    User,
)
from dompet.services.auth import AuthService
from dompet.services.subscription_ledger import SubscriptionLedger
from dompet.services.usage_counter import UsageCounter

# In-memory SQLite shared across connections for a single test
engine = create_engine(
    "sqlite:///:memory:",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

TEST_PASSWORD = "testpassword"


@pytest.fixture(scope="function")
def db():
    """Fresh schema per test."""
    Base.metadata.create_all(bind=engine)
    db_session = TestingSessionLocal()
    try:
        yield db_session
    finally:
        db_session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db: Session):
    """Create a test client with the test database."""
    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def plans(db: Session) -> dict:
    """Default catalog keyed by slug."""
    seed_plans(db)
    return {plan.slug: plan for plan in db.query(Plan).all()}


@pytest.fixture(scope="function")
def make_user(db: Session):
    """Factory for users; each gets their own household unless told otherwise."""
    counter = itertools.count(1)

    def _make_user(
        *,
        verified: bool = True,
        superuser: bool = False,
        with_household: bool = True,
        role: str = HouseholdRole.OWNER,
    ) -> User:
        n = next(counter)
        household = None
        if with_household:
            household = Household(name=f"Household {n}")
            db.add(household)
            db.flush()

        user = User(
            email=f"user{n}@example.com",
            username=f"user{n}",
            full_name=f"User {n}",
            hashed_password=AuthService.get_password_hash(TEST_PASSWORD),
            household_id=household.id if household else None,
            household_role=role,
            is_active=True,
            is_verified=verified,
            is_superuser=superuser,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make_user


@pytest.fixture(scope="function")
def subscribe(db: Session, plans: dict):
    """
    Put a household on a plan.

    `status` is where the subscription ends up: active, expired, canceled, or
    pending (pending subscriptions are not current).
    """

    def _subscribe(household: Household, slug: str, status=SubscriptionStatus.ACTIVE, now=None):
        ledger = SubscriptionLedger(db)
        subscription = ledger.open(household, plans[slug], now=now)
        status = SubscriptionStatus(status)
        if status != SubscriptionStatus.PENDING and subscription.status != SubscriptionStatus.ACTIVE:
            ledger.activate(subscription, now=now)
        if status == SubscriptionStatus.EXPIRED:
            ledger.expire(subscription)
        elif status == SubscriptionStatus.CANCELED:
            ledger.cancel(subscription, reason="test")
        db.commit()
        db.refresh(subscription)
        return subscription

    return _subscribe


@pytest.fixture(scope="function")
def record_usage(db: Session):
    def _record_usage(household: Household, feature: str, quantity: int = 1, at=None):
        UsageCounter(db).record(household.id, feature, quantity=quantity, at=at)
        db.commit()

    return _record_usage


@pytest.fixture(scope="function")
def make_payment(db: Session, plans: dict):
    """Pending subscription plus its pending payment, as checkout leaves them."""

    def _make_payment(user: User, slug: str = "pertalite", amount: int = 50000) -> Payment:
        subscription = SubscriptionLedger(db).open(user.household, plans[slug])
        payment = Payment(
            user_id=user.id,
            household_id=user.household_id,
            subscription_id=subscription.id,
            amount=amount,
            currency="IDR",
            status=PaymentStatus.PENDING,
        )
        db.add(payment)
        db.flush()
        payment.payment_token = f"PAYMENT-{payment.id}"
        db.commit()
        db.refresh(payment)
        return payment

    return _make_payment


def headers_for(user: User) -> dict:
    token = AuthService.create_access_token(
        data={"sub": str(user.id), "email": user.email, "username": user.username}
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(scope="function")
def auth_headers():
    """Build bearer headers for a user."""
    return headers_for


@pytest.fixture(scope="function")
def owner(make_user) -> User:
    return make_user()


@pytest.fixture(scope="function")
def admin(make_user) -> User:
    return make_user(superuser=True, with_household=False)


@pytest.fixture(scope="function")
def subscription_for(db: Session):
    def _subscription_for(household: Household) -> Subscription | None:
        db.refresh(household)
        return household.current_subscription

    return _subscription_for
