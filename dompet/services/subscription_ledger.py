"""
Subscription Ledger.

Owns the subscription state machine: which status changes are legal, how
expiry is computed from the billing cycle, and which subscription a household
currently reads. Whether a subscription grants access is derived on read from
`status` and `expires_at`; the periodic sweep only tidies rows for reporting.
"""

import logging
from datetime import datetime, timedelta
from types import MappingProxyType
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from dompet.core.clock import add_months, utcnow
from dompet.core.exceptions import InvalidStatusTransition
from dompet.models.household import Household
from dompet.models.payment import Payment, PaymentStatus
from dompet.models.plan import Plan, PlanType
from dompet.models.subscription import BillingCycle, Subscription, SubscriptionStatus

logger = logging.getLogger(__name__)

SUPERSEDED_REASON = "Superseded by plan change"

# Renewal payments are opened this long before expiry
RENEWAL_WINDOW = timedelta(days=3)

RENEWING_CYCLES = frozenset({BillingCycle.MONTHLY, BillingCycle.YEARLY})

ALLOWED_TRANSITIONS = MappingProxyType({
    SubscriptionStatus.PENDING: frozenset({
        SubscriptionStatus.ACTIVE,
        SubscriptionStatus.EXPIRED,
        SubscriptionStatus.CANCELED,
    }),
    SubscriptionStatus.ACTIVE: frozenset({
        SubscriptionStatus.ACTIVE,
        SubscriptionStatus.EXPIRED,
        SubscriptionStatus.CANCELED,
    }),
    SubscriptionStatus.EXPIRED: frozenset({SubscriptionStatus.ACTIVE}),
    SubscriptionStatus.CANCELED: frozenset({
        SubscriptionStatus.ACTIVE,
        SubscriptionStatus.EXPIRED,
    }),
})


def parse_status(value: Any) -> SubscriptionStatus:
    """Coerce a raw status into the enum, rejecting anything outside it."""
    if isinstance(value, SubscriptionStatus):
        return value
    try:
        return SubscriptionStatus(str(value).lower())
    except ValueError:
        raise InvalidStatusTransition("subscription", None, value)


def billing_cycle_for(plan: Plan, requested: Optional[str] = None) -> BillingCycle:
    """Billing cycle for a new subscription; free and lifetime plans ignore `requested`."""
    if plan.type == PlanType.FREE:
        return BillingCycle.FREE
    if plan.type == PlanType.LIFETIME:
        return BillingCycle.LIFETIME
    if requested:
        try:
            return BillingCycle(requested)
        except ValueError:
            pass
    return BillingCycle(getattr(plan.type, "value", plan.type))


def compute_expiry(cycle: BillingCycle, start: datetime) -> Optional[datetime]:
    if cycle == BillingCycle.MONTHLY:
        return add_months(start, 1)
    if cycle == BillingCycle.YEARLY:
        return add_months(start, 12)
    # Free and lifetime subscriptions never expire
    return None


class SubscriptionLedger:
    """
    Lifecycle operations on subscriptions.

    Methods mutate and flush but never commit; the caller owns the transaction.
    """

    def __init__(self, db: Session):
        self.db = db

    # ─────────────────────────────────────────────────────────────────
    # Derived state
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    def is_active(subscription: Optional[Subscription], now: Optional[datetime] = None) -> bool:
        if subscription is None or subscription.status != SubscriptionStatus.ACTIVE:
            return False
        now = now or utcnow()
        return subscription.expires_at is None or subscription.expires_at > now

    @classmethod
    def effective_status(
        cls, subscription: Subscription, now: Optional[datetime] = None
    ) -> SubscriptionStatus:
        """Stored status, except an active row past its expiry reads as expired."""
        status = parse_status(subscription.status)
        if status == SubscriptionStatus.ACTIVE and not cls.is_active(subscription, now):
            return SubscriptionStatus.EXPIRED
        return status

    @staticmethod
    def days_remaining(subscription: Subscription, now: Optional[datetime] = None) -> Optional[int]:
        if subscription.expires_at is None:
            return None
        delta = subscription.expires_at - (now or utcnow())
        return max(0, delta.days)

    def current_subscription(self, household: Optional[Household]) -> Optional[Subscription]:
        if household is None:
            return None
        return household.current_subscription

    # ─────────────────────────────────────────────────────────────────
    # Transitions
    # ─────────────────────────────────────────────────────────────────

    def check_transition(self, subscription: Subscription, target: Any) -> bool:
        """
        Validate `current -> target` against the transition table.

        Returns False for a same-state no-op, True when the change should be
        applied. Raises InvalidStatusTransition otherwise, before anything is
        mutated.
        """
        target = parse_status(target)
        current = parse_status(subscription.status)
        if current == target and target != SubscriptionStatus.ACTIVE:
            return False
        if target not in ALLOWED_TRANSITIONS[current]:
            raise InvalidStatusTransition("subscription", current, target)
        return True

    def open(
        self,
        household: Household,
        plan: Plan,
        billing_cycle: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Subscription:
        """
        Start a subscription for `household` on `plan`.

        Paid plans begin pending until their payment reconciles. Free plans are
        activated straight away.
        """
        subscription = Subscription(
            household_id=household.id,
            plan_id=plan.id,
            status=SubscriptionStatus.PENDING,
            billing_cycle=billing_cycle_for(plan, billing_cycle),
            auto_renew=False,
        )
        subscription.household = household
        subscription.plan = plan
        self.db.add(subscription)
        self.db.flush()

        if plan.is_free:
            self.activate(subscription, now=now)
        return subscription

    def activate(
        self,
        subscription: Subscription,
        now: Optional[datetime] = None,
        expires_at: Optional[datetime] = None,
    ) -> Subscription:
        """
        Make `subscription` active and current for its household.

        A subscription that is still running is extended from its current
        expiry; anything else restarts from `now`. An explicit `expires_at`
        overrides the computed one.
        """
        now = now or utcnow()
        self.check_transition(subscription, SubscriptionStatus.ACTIVE)

        running = self.is_active(subscription, now)
        if not running:
            subscription.started_at = now
        base = subscription.expires_at if running and subscription.expires_at else now

        subscription.status = SubscriptionStatus.ACTIVE
        subscription.expires_at = expires_at or compute_expiry(
            BillingCycle(subscription.billing_cycle), base
        )
        subscription.canceled_at = None
        subscription.cancellation_reason = None

        self._make_current(subscription, now)
        self.db.flush()

        logger.info(
            "Subscription %s active until %s",
            subscription.id,
            subscription.expires_at or "lifetime",
        )
        return subscription

    def expire(self, subscription: Subscription) -> Subscription:
        if self.check_transition(subscription, SubscriptionStatus.EXPIRED):
            subscription.status = SubscriptionStatus.EXPIRED
            subscription.auto_renew = False
            self.db.flush()
            logger.info("Subscription %s expired", subscription.id)
        return subscription

    def cancel(
        self,
        subscription: Subscription,
        reason: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Subscription:
        if self.check_transition(subscription, SubscriptionStatus.CANCELED):
            subscription.status = SubscriptionStatus.CANCELED
            subscription.canceled_at = now or utcnow()
            subscription.cancellation_reason = reason
            subscription.auto_renew = False
            self.db.flush()
            logger.info("Subscription %s canceled: %s", subscription.id, reason or "no reason given")
        return subscription

    def apply_status(
        self,
        subscription: Subscription,
        status: Any,
        expires_at: Optional[datetime] = None,
        reason: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Subscription:
        """Administrative override routed through the same transition table."""
        target = parse_status(status)
        if target == SubscriptionStatus.ACTIVE:
            return self.activate(subscription, now=now, expires_at=expires_at)
        if target == SubscriptionStatus.EXPIRED:
            return self.expire(subscription)
        if target == SubscriptionStatus.CANCELED:
            return self.cancel(subscription, reason=reason, now=now)
        # Only pending -> pending reaches here, which is a no-op
        self.check_transition(subscription, target)
        return subscription

    def sweep_expired(self, now: Optional[datetime] = None) -> int:
        """
        Flip lapsed `active` rows without auto-renew to `expired`.

        Access checks already treat these rows as expired; the sweep keeps the
        stored status honest for reporting.
        """
        now = now or utcnow()
        lapsed = (
            self.db.query(Subscription)
            .filter(
                Subscription.status == SubscriptionStatus.ACTIVE,
                Subscription.expires_at.isnot(None),
                Subscription.expires_at < now,
                Subscription.auto_renew.isnot(True),
            )
            .with_for_update()
            .all()
        )
        for subscription in lapsed:
            subscription.status = SubscriptionStatus.EXPIRED
        self.db.flush()

        if lapsed:
            logger.info("Expired %d lapsed subscription(s)", len(lapsed))
        return len(lapsed)

    # ─────────────────────────────────────────────────────────────────
    # Renewal
    # ─────────────────────────────────────────────────────────────────

    def renewal_blocker(
        self, subscription: Subscription, now: Optional[datetime] = None
    ) -> Optional[str]:
        """Why `subscription` cannot auto-renew, or None when it can."""
        cycle = BillingCycle(subscription.billing_cycle)
        if cycle not in RENEWING_CYCLES:
            return f"{cycle.value.capitalize()} plan does not need renewal"
        if not self.is_active(subscription, now):
            return "Only an active subscription can renew"
        return None

    def set_auto_renew(self, subscription: Subscription, enabled: bool) -> Subscription:
        subscription.auto_renew = enabled
        self.db.flush()
        logger.info(
            "Auto-renew %s for subscription %s",
            "enabled" if enabled else "disabled",
            subscription.id,
        )
        return subscription

    def due_for_renewal(self, now: Optional[datetime] = None) -> list[Subscription]:
        """
        Active auto-renewing subscriptions expiring within RENEWAL_WINDOW that
        have no pending payment yet.
        """
        now = now or utcnow()
        pending = select(Payment.subscription_id).where(
            Payment.status == PaymentStatus.PENDING,
            Payment.subscription_id.isnot(None),
        )
        return (
            self.db.query(Subscription)
            .filter(
                Subscription.status == SubscriptionStatus.ACTIVE,
                Subscription.auto_renew.is_(True),
                Subscription.expires_at.isnot(None),
                Subscription.expires_at > now,
                Subscription.expires_at <= now + RENEWAL_WINDOW,
                Subscription.id.notin_(pending),
            )
            .order_by(Subscription.expires_at)
            .all()
        )

    def open_payment(
        self,
        subscription: Subscription,
        user_id: Any = None,
        payment_method: str = "xendit",
    ) -> Payment:
        """
        Pending payment for one billing period of `subscription`.

        Used at checkout and for renewals; reconciling it as paid activates or
        extends the subscription. Flushes so the `PAYMENT-<id>` token is set.
        """
        plan = subscription.plan
        payment = Payment(
            user_id=user_id,
            household_id=subscription.household_id,
            subscription_id=subscription.id,
            amount=plan.price_for_cycle(BillingCycle(subscription.billing_cycle).value),
            currency=plan.currency,
            status=PaymentStatus.PENDING,
            payment_method=payment_method,
        )
        self.db.add(payment)
        self.db.flush()
        payment.payment_token = f"PAYMENT-{payment.id}"
        self.db.flush()
        return payment

    # ─────────────────────────────────────────────────────────────────
    # Helpers
    # ─────────────────────────────────────────────────────────────────

    def _make_current(self, subscription: Subscription, now: datetime) -> None:
        household = subscription.household or self.db.get(Household, subscription.household_id)
        previous = household.current_subscription
        if (
            previous is not None
            and previous.id != subscription.id
            and previous.status == SubscriptionStatus.ACTIVE
        ):
            self.cancel(previous, reason=SUPERSEDED_REASON, now=now)
        household.current_subscription = subscription
