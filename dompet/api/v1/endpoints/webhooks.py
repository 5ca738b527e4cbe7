"""Payment gateway callbacks."""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, Header
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from dompet.api import deps
from dompet.core.config import settings
from dompet.models.payment import PaymentStatus
from dompet.services.reconciliation import PaymentReconciler
from dompet.services.xendit import (
    find_payment,
    gateway_details,
    normalize_status,
    parse_webhook,
    verify_callback_token,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/xendit")
def xendit_webhook(
    payload: dict[str, Any] = Body(...),
    x_callback_token: Optional[str] = Header(None),
    db: Session = Depends(deps.get_db),
):
    """
    Reconcile a Xendit payment callback.

    Anything we cannot act on still gets a 200 so Xendit stops retrying; only
    a bad callback token is rejected.
    """
    if not verify_callback_token(x_callback_token, settings.XENDIT_WEBHOOK_TOKEN):
        logger.warning("Rejected Xendit webhook with invalid callback token")
        return JSONResponse(status_code=401, content={"message": "Unauthorized"})

    event = parse_webhook(payload)
    logger.info(
        "Xendit %s webhook received (channel=%s, event=%s)",
        event.version, event.channel, event.event,
    )

    payment = find_payment(db, event.data)
    if payment is None:
        return {"success": True, "message": "Payment not found, skipped"}

    if payment.status == PaymentStatus.PAID:
        logger.info("Payment %s already paid, skipping", payment.id)
        return {"success": True, "message": "Already processed"}

    status = normalize_status(event)
    if status is None:
        logger.warning(
            "Xendit status %r for payment %s needs no action",
            event.raw_status or None, payment.id,
        )
        return {"success": True, "message": "No action for this status"}

    result = PaymentReconciler(db).reconcile(payment.id, status, gateway_details(event))
    return {
        "success": True,
        "message": result.message,
        "payment_id": str(result.payment.id),
        "status": result.status.value,
        "duplicate": result.duplicate,
    }
