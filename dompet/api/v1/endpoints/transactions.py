"""
Household transactions: the metered resource behind the `transaction` feature.

Creating a transaction consumes one unit of the monthly allowance. The gate
dependency rejects over-limit creates up front; `consume` re-checks under the
household lock after the row is written, so concurrent creates cannot
overshoot the limit. Listing, editing and deleting consume nothing and are
never held to the limit.
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.orm import Session

from dompet.api import deps
from dompet.core.clock import utcnow
from dompet.core.exceptions import LimitExceeded
from dompet.models.household import Household
from dompet.models.transaction import Transaction
from dompet.models.usage_log import Feature
from dompet.models.user import User
from dompet.schemas.transactions import (
    TransactionCreate,
    TransactionResponse,
    TransactionUpdate,
)
from dompet.services.entitlement import Decision
from dompet.services.plan_catalog import PlanCatalog
from dompet.services.usage_counter import UsageCounter

logger = logging.getLogger(__name__)

router = APIRouter()

require_transaction = deps.require_feature(Feature.TRANSACTION)


def _get_transaction(db: Session, household: Household, transaction_id: UUID) -> Transaction:
    transaction = (
        db.query(Transaction)
        .filter(Transaction.id == transaction_id, Transaction.household_id == household.id)
        .first()
    )
    if not transaction:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Transaction not found")
    return transaction


@router.get("/", response_model=list[TransactionResponse])
def list_transactions(
    household: Household = Depends(deps.get_current_household),
    _: Decision = Depends(require_transaction),
    db: Session = Depends(deps.get_db),
    limit: int = 100,
):
    return (
        db.query(Transaction)
        .filter(Transaction.household_id == household.id)
        .order_by(Transaction.occurred_at.desc())
        .limit(limit)
        .all()
    )


@router.post("/", response_model=TransactionResponse, status_code=status.HTTP_201_CREATED)
def create_transaction(
    body: TransactionCreate,
    current_user: User = Depends(deps.get_current_user),
    household: Household = Depends(deps.get_current_household),
    decision: Decision = Depends(require_transaction),
    db: Session = Depends(deps.get_db),
):
    transaction = Transaction(
        household_id=household.id,
        user_id=current_user.id,
        type=body.type,
        amount=body.amount,
        category=body.category,
        description=body.description,
        occurred_at=body.occurred_at or utcnow(),
    )
    db.add(transaction)
    db.flush()

    try:
        UsageCounter(db).consume(
            household.id,
            Feature.TRANSACTION,
            limit=decision.limit,
            user_id=current_user.id,
            extra_data={"transaction_id": str(transaction.id)},
        )
    except LimitExceeded as exc:
        db.rollback()
        # Suggest against the usage read under the household lock
        exc.details["upgrade_message"] = PlanCatalog(db).feature_upgrade_suggestion(
            decision.plan, Feature.TRANSACTION, exc.details["current_usage"]
        )
        raise
    db.commit()
    db.refresh(transaction)
    return transaction


@router.put("/{transaction_id}", response_model=TransactionResponse)
def update_transaction(
    transaction_id: UUID,
    body: TransactionUpdate,
    household: Household = Depends(deps.get_current_household),
    _: Decision = Depends(require_transaction),
    db: Session = Depends(deps.get_db),
):
    transaction = _get_transaction(db, household, transaction_id)
    for field, value in body.model_dump(exclude_unset=True).items():
        setattr(transaction, field, value)
    db.commit()
    db.refresh(transaction)
    return transaction


@router.delete("/{transaction_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_transaction(
    transaction_id: UUID,
    household: Household = Depends(deps.get_current_household),
    _: Decision = Depends(require_transaction),
    db: Session = Depends(deps.get_db),
):
    transaction = _get_transaction(db, household, transaction_id)
    db.delete(transaction)
    db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
