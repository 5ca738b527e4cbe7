"""
Celery tasks for subscription housekeeping.
"""

import logging

from dompet.core.celery_app import celery_app
from dompet.db.base import SessionLocal
from dompet.services.subscription_ledger import SubscriptionLedger

logger = logging.getLogger(__name__)


def get_db_session():
    """Get a database session for task execution."""
    return SessionLocal()


@celery_app.task(name="dompet.tasks.expire_subscriptions")
def expire_subscriptions_task() -> dict:
    """Mark lapsed active subscriptions as expired."""
    db = get_db_session()
    try:
        expired = SubscriptionLedger(db).sweep_expired()
        db.commit()
        logger.info("Subscription sweep finished: %d expired", expired)
        return {"expired": expired}
    except Exception:
        db.rollback()
        logger.exception("Subscription sweep failed")
        raise
    finally:
        db.close()


@celery_app.task(name="dompet.tasks.renew_subscriptions")
def renew_subscriptions_task() -> dict:
    """
    Open a pending renewal payment for each auto-renewing subscription that
    expires soon. Paying it extends the same subscription.
    """
    db = get_db_session()
    try:
        ledger = SubscriptionLedger(db)
        payments = []
        for subscription in ledger.due_for_renewal():
            owner = next(
                (user for user in subscription.household.users if user.is_household_owner),
                None,
            )
            payment = ledger.open_payment(subscription, user_id=owner.id if owner else None)
            logger.info(
                "Renewal payment %s opened for subscription %s (expires %s)",
                payment.id, subscription.id, subscription.expires_at,
            )
            payments.append(payment)
        db.commit()
        logger.info("Renewal run finished: %d payment(s) opened", len(payments))
        return {"renewals": len(payments), "payment_ids": [str(p.id) for p in payments]}
    except Exception:
        db.rollback()
        logger.exception("Renewal run failed")
        raise
    finally:
        db.close()
