"""Module-gated reporting: analytics and budget."""

from collections import defaultdict
from datetime import datetime

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from dompet.api import deps
from dompet.core.clock import utcnow
from dompet.models.household import Household
from dompet.models.transaction import Transaction, TransactionType
from dompet.schemas.transactions import AnalyticsSummary, BudgetOverview
from dompet.services.entitlement import Decision
from dompet.services.usage_counter import month_window

analytics_router = APIRouter()
budget_router = APIRouter()


def _transactions_between(
    db: Session, household: Household, start: datetime, end: datetime
) -> list[Transaction]:
    return (
        db.query(Transaction)
        .filter(
            Transaction.household_id == household.id,
            Transaction.occurred_at >= start,
            Transaction.occurred_at < end,
        )
        .all()
    )


@analytics_router.get("/summary", response_model=AnalyticsSummary)
def analytics_summary(
    household: Household = Depends(deps.get_current_household),
    _: Decision = Depends(deps.require_module("analytics")),
    db: Session = Depends(deps.get_db),
):
    """Income and expense totals for the current month, with expenses by category."""
    start, end = month_window(utcnow())
    income = expense = 0
    by_category: dict[str, int] = defaultdict(int)
    for transaction in _transactions_between(db, household, start, end):
        if transaction.type == TransactionType.INCOME:
            income += transaction.amount
        else:
            expense += transaction.amount
            by_category[transaction.category or "uncategorized"] += transaction.amount

    return {
        "period_start": start,
        "period_end": end,
        "total_income": income,
        "total_expense": expense,
        "net": income - expense,
        "by_category": dict(by_category),
    }


@budget_router.get("/overview", response_model=BudgetOverview)
def budget_overview(
    household: Household = Depends(deps.get_current_household),
    _: Decision = Depends(deps.require_module("budget")),
    db: Session = Depends(deps.get_db),
):
    """Spending against income for the current month."""
    now = utcnow()
    start, end = month_window(now)
    transactions = _transactions_between(db, household, start, end)
    income = sum(t.amount for t in transactions if t.type == TransactionType.INCOME)
    expense = sum(t.amount for t in transactions if t.type == TransactionType.EXPENSE)

    return {
        "month": now.strftime("%Y-%m"),
        "income": income,
        "expense": expense,
        "remaining": income - expense,
        "spent_percentage": round(expense / income * 100) if income else 0,
    }
