"""
Admin endpoints for manual payment and subscription management.

Every override runs through the same reconciliation and ledger rules as the
webhook path; admins cannot force a transition the state machine rejects.
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from dompet.api import deps
from dompet.core.exceptions import PaymentNotFound
from dompet.models.payment import Payment, PaymentStatus
from dompet.models.subscription import Subscription
from dompet.models.user import User
from dompet.schemas.billing import (
    CancelRequest,
    PaymentResponse,
    PaymentStatusUpdate,
    ReconciliationResponse,
    SubscriptionResponse,
    SubscriptionUpdate,
    SweepResponse,
)
from dompet.services.reconciliation import PaymentReconciler
from dompet.services.subscription_ledger import SubscriptionLedger

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_subscription(db: Session, subscription_id: UUID) -> Subscription:
    subscription = db.get(Subscription, subscription_id)
    if not subscription:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Subscription not found"
        )
    return subscription


@router.get("/payments", response_model=list[PaymentResponse])
def list_payments(
    status_filter: PaymentStatus | None = None,
    limit: int = 100,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_superuser),
):
    """List payments across households, newest first."""
    query = db.query(Payment)
    if status_filter:
        query = query.filter(Payment.status == status_filter)
    return query.order_by(Payment.created_at.desc()).limit(limit).all()


@router.get("/payments/{payment_id}", response_model=PaymentResponse)
def get_payment(
    payment_id: UUID,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_superuser),
):
    payment = db.get(Payment, payment_id)
    if not payment:
        raise PaymentNotFound(payment_id)
    return payment


@router.put("/payments/{payment_id}", response_model=ReconciliationResponse)
def update_payment_status(
    payment_id: UUID,
    update: PaymentStatusUpdate,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_superuser),
):
    """Manually reconcile a payment to paid or failed."""
    logger.info(
        "Admin %s setting payment %s to %s", current_user.email, payment_id, update.status
    )
    gateway_data = {"admin_note": update.note, "updated_by": str(current_user.id)}
    result = PaymentReconciler(db).reconcile(payment_id, update.status, gateway_data)
    return {
        "message": result.message,
        "applied": result.applied,
        "duplicate": result.duplicate,
        "payment": result.payment,
        "invoice": result.invoice,
    }


@router.put("/subscriptions/{subscription_id}", response_model=SubscriptionResponse)
def update_subscription(
    subscription_id: UUID,
    update: SubscriptionUpdate,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_superuser),
):
    """Override a subscription's status through the ledger's transition table."""
    subscription = _get_subscription(db, subscription_id)
    try:
        SubscriptionLedger(db).apply_status(
            subscription, update.status, expires_at=update.expires_at, reason=update.reason
        )
    except Exception:
        db.rollback()
        raise
    db.commit()
    db.refresh(subscription)
    logger.info(
        "Admin %s set subscription %s to %s",
        current_user.email, subscription_id, subscription.status.value,
    )
    return subscription


@router.post("/subscriptions/{subscription_id}/cancel", response_model=SubscriptionResponse)
def cancel_subscription(
    subscription_id: UUID,
    body: CancelRequest | None = None,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_superuser),
):
    subscription = _get_subscription(db, subscription_id)
    try:
        SubscriptionLedger(db).cancel(
            subscription, reason=(body.reason if body else None) or "Canceled by admin"
        )
    except Exception:
        db.rollback()
        raise
    db.commit()
    db.refresh(subscription)
    return subscription


@router.post("/subscriptions/sweep", response_model=SweepResponse)
def sweep_subscriptions(
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_superuser),
):
    """Run the expiry sweep now."""
    expired = SubscriptionLedger(db).sweep_expired()
    db.commit()
    return {"expired": expired}
