"""Household subscription endpoints."""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from dompet.api import deps
from dompet.core.exceptions import NoSubscription
from dompet.models.household import Household
from dompet.models.user import User
from dompet.schemas.billing import (
    CancelRequest,
    CurrentSubscription,
    SubscribeRequest,
    SubscribeResponse,
    SubscriptionResponse,
)
from dompet.services.plan_catalog import PlanCatalog
from dompet.services.subscription_ledger import SubscriptionLedger

logger = logging.getLogger(__name__)

router = APIRouter()


def _owned_current_subscription(current_user: User, household: Household, db: Session):
    if not current_user.is_household_owner:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the household owner can manage the subscription",
        )
    subscription = SubscriptionLedger(db).current_subscription(household)
    if subscription is None:
        raise NoSubscription()
    return subscription


@router.get("/", response_model=CurrentSubscription)
def get_current_subscription(
    household: Household = Depends(deps.get_current_household),
    db: Session = Depends(deps.get_db),
):
    """Current subscription with its derived status."""
    ledger = SubscriptionLedger(db)
    subscription = ledger.current_subscription(household)
    if subscription is None:
        return {"subscription": None}

    return {
        "subscription": subscription,
        "effective_status": ledger.effective_status(subscription),
        "is_active": ledger.is_active(subscription),
        "days_remaining": ledger.days_remaining(subscription),
    }


@router.post(
    "/subscribe/{slug}",
    response_model=SubscribeResponse,
    status_code=status.HTTP_201_CREATED,
)
def subscribe(
    slug: str,
    body: SubscribeRequest | None = None,
    current_user: User = Depends(deps.require_verified_email),
    household: Household = Depends(deps.get_current_household),
    db: Session = Depends(deps.get_db),
):
    """
    Subscribe the household to a plan.

    Free plans are active at once. Paid plans create a pending subscription
    plus a pending payment; the current subscription keeps working until that
    payment reconciles.
    """
    body = body or SubscribeRequest()

    plan = PlanCatalog(db).get_plan(slug)
    if not plan or not plan.is_active:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Plan not available")

    if not current_user.is_household_owner:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the household owner can manage the subscription",
        )

    ledger = SubscriptionLedger(db)
    cycle = body.billing_cycle.value if body.billing_cycle else None
    subscription = ledger.open(household, plan, billing_cycle=cycle)

    if plan.is_free:
        db.commit()
        db.refresh(subscription)
        logger.info("Household %s activated free plan %s", household.id, plan.slug)
        return {"message": "Subscription activated", "subscription": subscription}

    payment = ledger.open_payment(
        subscription, user_id=current_user.id, payment_method=body.payment_method
    )
    db.commit()
    db.refresh(subscription)
    db.refresh(payment)

    logger.info(
        "Household %s started checkout for %s (payment %s)",
        household.id, plan.slug, payment.id,
    )
    return {
        "message": "Subscription created, please complete payment",
        "subscription": subscription,
        "payment": payment,
    }


@router.post("/cancel", response_model=SubscriptionResponse)
def cancel_subscription(
    body: CancelRequest | None = None,
    current_user: User = Depends(deps.get_current_user),
    household: Household = Depends(deps.get_current_household),
    db: Session = Depends(deps.get_db),
):
    """Cancel the current subscription. Data stays readable."""
    subscription = _owned_current_subscription(current_user, household, db)
    SubscriptionLedger(db).cancel(subscription, reason=body.reason if body else None)
    db.commit()
    db.refresh(subscription)
    return subscription


@router.post("/auto-renew/enable", response_model=SubscriptionResponse)
def enable_auto_renew(
    current_user: User = Depends(deps.get_current_user),
    household: Household = Depends(deps.get_current_household),
    db: Session = Depends(deps.get_db),
):
    """Open a renewal payment shortly before each expiry."""
    subscription = _owned_current_subscription(current_user, household, db)
    ledger = SubscriptionLedger(db)
    blocker = ledger.renewal_blocker(subscription)
    if blocker:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=blocker)

    ledger.set_auto_renew(subscription, True)
    db.commit()
    db.refresh(subscription)
    return subscription


@router.post("/auto-renew/disable", response_model=SubscriptionResponse)
def disable_auto_renew(
    current_user: User = Depends(deps.get_current_user),
    household: Household = Depends(deps.get_current_household),
    db: Session = Depends(deps.get_db),
):
    subscription = _owned_current_subscription(current_user, household, db)
    SubscriptionLedger(db).set_auto_renew(subscription, False)
    db.commit()
    db.refresh(subscription)
    return subscription
