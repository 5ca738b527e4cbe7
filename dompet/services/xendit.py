"""
Xendit webhook normalization.

Turns a Xendit callback (legacy flat "V1" payloads or event-based "V2"
payloads) into the `(payment, status)` pair that reconciliation consumes.
No Xendit SDK calls are made here; only the callback contract is handled.
"""

import hmac
import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from sqlalchemy.orm import Session

from dompet.db.types import parse_uuid
from dompet.models.payment import Payment, PaymentStatus

logger = logging.getLogger(__name__)

REFERENCE_PREFIXES = ("PAYMENT-", "VA-", "EWALLET-", "QRIS-")

PAID_STATUSES = frozenset({"PAID", "SETTLED", "SUCCEEDED", "CAPTURED", "COMPLETED"})
FAILED_STATUSES = frozenset({"FAILED"})


class Channel:
    INVOICE = "invoice"
    VIRTUAL_ACCOUNT = "virtual_account"
    EWALLET = "ewallet"
    QRIS = "qris"
    PAYMENT_REQUEST = "payment_request"
    UNKNOWN = "unknown"


@dataclass
class WebhookEvent:
    """A callback payload with its version and payment channel resolved."""

    version: str
    channel: str
    data: dict[str, Any] = field(default_factory=dict)
    event: Optional[str] = None

    @property
    def raw_status(self) -> str:
        return str(self.data.get("status") or "").upper()


def verify_callback_token(received: Optional[str], expected: Optional[str]) -> bool:
    """Constant-time comparison of the `x-callback-token` header."""
    if not expected or not received:
        return False
    return hmac.compare_digest(received.encode(), expected.encode())


def _channel_for_event(event: str) -> str:
    if event.startswith("invoice."):
        return Channel.INVOICE
    if event.startswith("ewallet."):
        return Channel.EWALLET
    if event.startswith("qr."):
        return Channel.QRIS
    if event.startswith(("fva.", "virtual_account.")):
        return Channel.VIRTUAL_ACCOUNT
    if event.startswith("payment."):
        return Channel.PAYMENT_REQUEST
    return Channel.UNKNOWN


def _channel_for_flat(data: dict[str, Any]) -> str:
    external_id = str(data.get("external_id") or "")
    reference_id = str(data.get("reference_id") or "")

    if external_id.startswith("PAYMENT-"):
        return Channel.INVOICE
    if external_id.startswith("VA-"):
        return Channel.VIRTUAL_ACCOUNT
    if reference_id.startswith("EWALLET-"):
        return Channel.EWALLET
    if reference_id.startswith("QRIS-"):
        return Channel.QRIS
    # Xendit dashboard test callbacks carry no prefix
    if "callback_virtual_account_id" in data:
        return Channel.VIRTUAL_ACCOUNT
    if "payment_channel" in data and "paid_amount" in data:
        return Channel.INVOICE
    return Channel.UNKNOWN


def parse_webhook(payload: dict[str, Any]) -> WebhookEvent:
    if isinstance(payload.get("event"), str) and isinstance(payload.get("data"), dict):
        return WebhookEvent(
            version="v2",
            channel=_channel_for_event(payload["event"]),
            data=payload["data"],
            event=payload["event"],
        )
    return WebhookEvent(version="v1", channel=_channel_for_flat(payload), data=payload)


def normalize_status(event: WebhookEvent) -> Optional[PaymentStatus]:
    """
    Map a gateway status onto a reconcilable PaymentStatus.

    Returns None for statuses that need no action (pending, expired, voided
    and anything unrecognized).
    """
    status = event.raw_status
    if status in PAID_STATUSES:
        return PaymentStatus.PAID
    if status in FAILED_STATUSES:
        return PaymentStatus.FAILED
    # Virtual account callbacks only fire once money has arrived
    if (
        not status
        and event.channel == Channel.VIRTUAL_ACCOUNT
        and ("callback_virtual_account_id" in event.data or "amount" in event.data)
    ):
        return PaymentStatus.PAID
    return None


def gateway_details(event: WebhookEvent) -> dict[str, Any]:
    """Subset of the payload stored on the payment after reconciliation."""
    data = event.data
    paid_amount = (
        data.get("paid_amount")
        or data.get("charge_amount")
        or data.get("capture_amount")
        or data.get("amount")
    )
    return {
        "id": data.get("id"),
        "event": event.event,
        "payment_channel": data.get("payment_channel") or event.channel.upper(),
        "paid_amount": paid_amount,
        "bank_code": data.get("bank_code"),
        "channel_code": data.get("channel_code"),
        "failure_code": data.get("failure_code"),
        "status": data.get("status"),
    }


def find_payment(db: Session, data: dict[str, Any]) -> Optional[Payment]:
    """
    Locate the payment a callback refers to.

    Tried in order: reference_id and external_id against payment_token, the
    Xendit id against payment_gateway_id, the payment id embedded after one of
    our reference prefixes, and finally the same lookup on a nested `data`.
    """
    reference_id = data.get("reference_id")
    external_id = data.get("external_id")
    gateway_id = data.get("id")

    for token in (reference_id, external_id):
        if token:
            payment = db.query(Payment).filter(Payment.payment_token == str(token)).first()
            if payment:
                logger.info("Payment %s found by payment_token %s", payment.id, token)
                return payment

    if gateway_id:
        payment = (
            db.query(Payment)
            .filter(Payment.payment_gateway_id == str(gateway_id))
            .first()
        )
        if payment:
            logger.info("Payment %s found by gateway id %s", payment.id, gateway_id)
            return payment

    for reference in (external_id, reference_id):
        if not reference:
            continue
        for prefix in REFERENCE_PREFIXES:
            if str(reference).startswith(prefix):
                payment_id = parse_uuid(str(reference)[len(prefix):])
                if payment_id is None:
                    continue
                payment = db.get(Payment, payment_id)
                if payment:
                    logger.info("Payment %s found from reference %s", payment.id, reference)
                    return payment

    nested = data.get("data")
    if isinstance(nested, dict):
        return find_payment(db, nested)

    logger.warning(
        "Payment not found (reference_id=%s, external_id=%s, id=%s)",
        reference_id, external_id, gateway_id,
    )
    return None
