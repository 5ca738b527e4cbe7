"""Household payment and invoice history."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from dompet.api import deps
from dompet.models.household import Household
from dompet.models.invoice import Invoice
from dompet.models.payment import Payment
from dompet.schemas.billing import InvoiceResponse, PaymentResponse

router = APIRouter()
invoice_router = APIRouter()


@router.get("/", response_model=list[PaymentResponse])
def list_payments(
    household: Household = Depends(deps.get_current_household),
    db: Session = Depends(deps.get_db),
    limit: int = 50,
):
    return (
        db.query(Payment)
        .filter(Payment.household_id == household.id)
        .order_by(Payment.created_at.desc())
        .limit(limit)
        .all()
    )


@router.get("/{payment_id}", response_model=PaymentResponse)
def get_payment(
    payment_id: UUID,
    household: Household = Depends(deps.get_current_household),
    db: Session = Depends(deps.get_db),
):
    payment = (
        db.query(Payment)
        .filter(Payment.id == payment_id, Payment.household_id == household.id)
        .first()
    )
    if not payment:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Payment not found")
    return payment


@invoice_router.get("/", response_model=list[InvoiceResponse])
def list_invoices(
    household: Household = Depends(deps.get_current_household),
    db: Session = Depends(deps.get_db),
    limit: int = 50,
):
    return (
        db.query(Invoice)
        .filter(Invoice.household_id == household.id)
        .order_by(Invoice.created_at.desc())
        .limit(limit)
        .all()
    )


@invoice_router.get("/{invoice_id}", response_model=InvoiceResponse)
def get_invoice(
    invoice_id: UUID,
    household: Household = Depends(deps.get_current_household),
    db: Session = Depends(deps.get_db),
):
    invoice = (
        db.query(Invoice)
        .filter(Invoice.id == invoice_id, Invoice.household_id == household.id)
        .first()
    )
    if not invoice:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invoice not found")
    return invoice
