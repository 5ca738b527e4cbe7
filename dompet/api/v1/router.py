from fastapi import APIRouter

from dompet.api.v1.endpoints import (
    admin,
    auth,
    payments,
    plans,
    reports,
    subscriptions,
    transactions,
    usage,
    webhooks,
)

api_router = APIRouter()

api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(plans.router, prefix="/plans", tags=["plans"])
api_router.include_router(
    subscriptions.router, prefix="/subscriptions", tags=["subscriptions"]
)
api_router.include_router(payments.router, prefix="/payments", tags=["payments"])
api_router.include_router(payments.invoice_router, prefix="/invoices", tags=["invoices"])
api_router.include_router(usage.router, prefix="/usage", tags=["usage"])
api_router.include_router(
    transactions.router, prefix="/transactions", tags=["transactions"]
)
api_router.include_router(reports.analytics_router, prefix="/analytics", tags=["analytics"])
api_router.include_router(reports.budget_router, prefix="/budget", tags=["budget"])
api_router.include_router(webhooks.router, prefix="/webhooks", tags=["webhooks"])
api_router.include_router(admin.router, prefix="/admin", tags=["admin"])
