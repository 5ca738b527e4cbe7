"""
Payment Reconciliation.

Applies a normalized `(payment, status)` event, from the Xendit webhook or an
admin override, to the Payment, its Subscription and the Invoice table. Each
call is one transaction scoped to a single locked payment row: either every
side effect lands or none does.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from dompet.core.clock import utcnow
from dompet.core.exceptions import (
    DuplicateReconciliation,
    InvalidStatusTransition,
    PaymentNotFound,
)
from dompet.db.types import parse_uuid
from dompet.models.invoice import Invoice
from dompet.models.payment import Payment, PaymentStatus
from dompet.models.subscription import SubscriptionStatus
from dompet.services.subscription_ledger import SubscriptionLedger

logger = logging.getLogger(__name__)

INVOICE_PREFIX = "INV"

RECONCILE_ATTEMPTS = 3

# Payment status moves reconciliation may apply; same-status is a duplicate
PAYMENT_TRANSITIONS = {
    PaymentStatus.PENDING: frozenset({PaymentStatus.PAID, PaymentStatus.FAILED}),
    PaymentStatus.FAILED: frozenset({PaymentStatus.PAID}),
    PaymentStatus.PAID: frozenset(),
}


@dataclass
class ReconciliationResult:
    payment: Payment
    status: PaymentStatus
    applied: bool
    duplicate: bool = False
    invoice: Optional[Invoice] = None
    message: str = ""


def parse_payment_status(value: Any) -> PaymentStatus:
    """Accept only the terminal statuses a gateway or admin may report."""
    try:
        status = value if isinstance(value, PaymentStatus) else PaymentStatus(str(value).lower())
    except ValueError:
        raise InvalidStatusTransition("payment", None, value)
    if status == PaymentStatus.PENDING:
        raise InvalidStatusTransition("payment", None, status)
    return status


def next_invoice_number(db: Session, at: Optional[datetime] = None) -> str:
    """INV-YYYYMMDD-NNNN, numbered per day."""
    prefix = f"{INVOICE_PREFIX}-{(at or utcnow()).strftime('%Y%m%d')}-"
    last = (
        db.query(Invoice.invoice_number)
        .filter(Invoice.invoice_number.like(f"{prefix}%"))
        .order_by(Invoice.invoice_number.desc())
        .first()
    )
    sequence = int(last[0][-4:]) + 1 if last else 1
    return f"{prefix}{sequence:04d}"


class PaymentReconciler:
    """
    Usage:
        result = PaymentReconciler(db).reconcile(payment.id, "paid", gateway_data)

    `reconcile` commits on success and rolls back on any failure.
    """

    def __init__(self, db: Session, ledger: Optional[SubscriptionLedger] = None):
        self.db = db
        self.ledger = ledger or SubscriptionLedger(db)

    def reconcile(
        self,
        payment_id: UUID | str,
        new_status: Any,
        gateway_data: Optional[dict[str, Any]] = None,
        now: Optional[datetime] = None,
    ) -> ReconciliationResult:
        now = now or utcnow()
        for attempt in range(1, RECONCILE_ATTEMPTS + 1):
            try:
                return self._reconcile_once(payment_id, new_status, gateway_data, now)
            except IntegrityError:
                # Another payment took the same invoice number; the transaction
                # was rolled back, so start over from the payment lock
                if attempt == RECONCILE_ATTEMPTS:
                    raise
                logger.warning(
                    "Invoice number clash reconciling payment %s, retrying (%d/%d)",
                    payment_id, attempt, RECONCILE_ATTEMPTS,
                )

    def _reconcile_once(
        self,
        payment_id: UUID | str,
        new_status: Any,
        gateway_data: Optional[dict[str, Any]],
        now: datetime,
    ) -> ReconciliationResult:
        try:
            target = parse_payment_status(new_status)

            payment = self._lock_payment(payment_id)
            if payment is None:
                raise PaymentNotFound(payment_id)

            try:
                self._check_transition(payment, target)
            except DuplicateReconciliation as duplicate:
                self.db.rollback()
                logger.info("Payment %s already %s, skipping", payment_id, target.value)
                return ReconciliationResult(
                    payment=payment,
                    status=target,
                    applied=False,
                    duplicate=True,
                    invoice=payment.invoice,
                    message=duplicate.message,
                )

            invoice = None
            if target == PaymentStatus.PAID:
                invoice = self._apply_paid(payment, gateway_data or {}, now)
            else:
                self._apply_failed(payment, gateway_data or {}, now)

            self.db.commit()
        except InvalidStatusTransition as exc:
            self.db.rollback()
            logger.error("Rejected reconciliation of payment %s: %s", payment_id, exc.message)
            raise
        except Exception:
            self.db.rollback()
            raise

        logger.info("Payment %s reconciled to %s", payment.id, target.value)
        return ReconciliationResult(
            payment=payment,
            status=target,
            applied=True,
            invoice=invoice,
            message=f"Payment marked as {target.value}",
        )

    # ─────────────────────────────────────────────────────────────────
    # Steps
    # ─────────────────────────────────────────────────────────────────

    def _lock_payment(self, payment_id: UUID | str) -> Optional[Payment]:
        key = parse_uuid(payment_id)
        if key is None:
            return None
        return (
            self.db.query(Payment)
            .filter(Payment.id == key)
            .with_for_update()
            .populate_existing()
            .one_or_none()
        )

    def _check_transition(self, payment: Payment, target: PaymentStatus) -> None:
        current = PaymentStatus(payment.status)
        if current == target:
            raise DuplicateReconciliation(payment.id, target)
        if target not in PAYMENT_TRANSITIONS[current]:
            raise InvalidStatusTransition("payment", current, target)

    def _apply_paid(
        self, payment: Payment, gateway_data: dict[str, Any], now: datetime
    ) -> Invoice:
        payment.status = PaymentStatus.PAID
        payment.paid_at = now
        if gateway_data.get("id") and not payment.payment_gateway_id:
            payment.payment_gateway_id = str(gateway_data["id"])
        payment.merge_extra_data({
            "paid_amount": gateway_data.get("paid_amount") or gateway_data.get("amount"),
            "payment_channel": gateway_data.get("payment_channel")
            or gateway_data.get("bank_code"),
            "gateway_event": gateway_data or None,
        })

        subscription = payment.subscription
        if subscription is not None:
            self.ledger.activate(subscription, now=now)

        return self._issue_invoice(payment, now)

    def _apply_failed(
        self, payment: Payment, gateway_data: dict[str, Any], now: datetime
    ) -> None:
        payment.status = PaymentStatus.FAILED
        payment.failed_at = now
        payment.merge_extra_data({
            "failure_code": gateway_data.get("failure_code"),
            "failure_reason": gateway_data.get("failure_reason")
            or gateway_data.get("failure_message"),
            "gateway_event": gateway_data or None,
        })

        subscription = payment.subscription
        if subscription is not None:
            if subscription.status == SubscriptionStatus.ACTIVE:
                # A failed renewal leaves the paid-up period running
                self.ledger.set_auto_renew(subscription, False)
            else:
                self.ledger.expire(subscription)
        self.db.flush()

    def _issue_invoice(self, payment: Payment, now: datetime) -> Invoice:
        invoice = payment.invoice
        if invoice is not None:
            invoice.status = "paid"
            invoice.paid_at = payment.paid_at
            self.db.flush()
            return invoice

        plan = payment.subscription.plan if payment.subscription else None
        invoice = Invoice(
            payment_id=payment.id,
            household_id=payment.household_id,
            subscription_id=payment.subscription_id,
            invoice_number=next_invoice_number(self.db, now),
            amount=payment.amount,
            currency=payment.currency,
            status="paid",
            description=f"Subscription Payment - {plan.name if plan else 'Unknown Plan'}",
            issued_at=now,
            paid_at=payment.paid_at,
        )
        self.db.add(invoice)
        self.db.flush()
        payment.invoice = invoice
        logger.info("Invoice %s issued for payment %s", invoice.invoice_number, payment.id)
        return invoice
