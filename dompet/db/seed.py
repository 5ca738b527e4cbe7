"""Default plan catalog, shared by the seed script and the test suite."""

import logging

from sqlalchemy.orm import Session

from dompet.core.config import settings
from dompet.models.plan import Plan, PlanType

logger = logging.getLogger(__name__)

DEFAULT_PLANS = [
    {
        "name": "Premium",
        "slug": "premium-free",
        "type": PlanType.FREE,
        "price": 0,
        "description": "Mulai kelola keuangan pribadi",
        "is_popular": False,
        "sort_order": 1,
        "features": {
            # Users & access
            "max_users": 1,
            "invite_members": False,
            "web_access": False,
            # Limits
            "max_transactions_per_month": 100,
            "max_ai_scans_per_month": 5,
            "max_accounts": 2,
            "storage_mb": 100,
            # Modules
            "dashboard": "basic",
            "transactions": True,
            "categories": "default",
            "accounts": "limited",
            "budget": False,
            "analytics": False,
            "assets": False,
            "debts": False,
            # Features
            "export_data": False,
            "custom_categories": False,
            "recurring_transactions": False,
            "notifications": False,
            "reports": "last_30_days",
            "multi_currency": False,
            "api_access": False,
            "priority_support": False,
        },
    },
    {
        "name": "Pertalite",
        "slug": "pertalite",
        "type": PlanType.MONTHLY,
        "price": 10000,
        "description": "Tracking lengkap untuk keluarga kecil",
        "is_popular": True,
        "sort_order": 2,
        "features": {
            "price_monthly": 10000,
            "price_yearly": 49000,
            "max_users": 3,
            "invite_members": True,
            "web_access": False,
            "max_transactions_per_month": 500,
            "max_ai_scans_per_month": 100,
            "max_accounts": -1,
            "storage_mb": 500,
            "dashboard": "advanced",
            "transactions": True,
            "categories": "custom",
            "accounts": True,
            "budget": True,
            "analytics": "basic",
            "assets": True,
            "debts": False,
            "export_data": "pdf",
            "custom_categories": True,
            "recurring_transactions": True,
            "notifications": "in_app",
            "reports": "last_12_months",
            "budget_templates": ["50/30/20"],
            "multi_currency": False,
            "api_access": False,
            "priority_support": False,
        },
    },
    {
        "name": "Pertamax",
        "slug": "pertamax",
        "type": PlanType.MONTHLY,
        "price": 19000,
        "description": "Kontrol penuh keuangan keluarga",
        "is_popular": False,
        "sort_order": 3,
        "features": {
            "price_monthly": 19000,
            "price_yearly": 99000,
            "max_users": 6,
            "invite_members": True,
            "web_access": True,
            "max_transactions_per_month": 2000,
            "max_ai_scans_per_month": 500,
            "max_accounts": -1,
            "storage_mb": 2000,
            "dashboard": "comprehensive",
            "transactions": True,
            "categories": "custom",
            "accounts": True,
            "budget": True,
            "analytics": "advanced",
            "assets": True,
            "debts": True,
            "networth": "basic",
            "export_data": "all",
            "custom_categories": True,
            "recurring_transactions": True,
            "notifications": "multi_channel",
            "reports": "unlimited",
            "budget_templates": "all",
            "multi_currency": True,
            "scheduled_exports": "monthly",
            "api_access": False,
            "priority_support": False,
        },
    },
    {
        "name": "Turbo",
        "slug": "turbo",
        "type": PlanType.LIFETIME,
        "price": 149000,
        "description": "Sekali bayar, pakai selamanya",
        "is_popular": False,
        "sort_order": 4,
        "features": {
            "max_users": -1,
            "invite_members": True,
            "web_access": True,
            "max_transactions_per_month": -1,
            "max_ai_scans_per_month": -1,
            "max_accounts": -1,
            "storage_mb": 10000,
            "dashboard": "ai_powered",
            "transactions": True,
            "categories": "custom",
            "accounts": True,
            "budget": True,
            "analytics": "ai_powered",
            "assets": True,
            "debts": True,
            "networth": "advanced",
            "investments": True,
            "export_data": "all",
            "custom_categories": True,
            "recurring_transactions": True,
            "notifications": "premium",
            "reports": "unlimited",
            "budget_templates": "all",
            "multi_currency": True,
            "scheduled_exports": "custom",
            "api_access": True,
            "priority_support": True,
            "early_access": True,
            "financial_insights_ai": True,
            "anomaly_detection": True,
            "custom_reports": True,
        },
    },
]


def seed_plans(db: Session) -> list[Plan]:
    """Insert any default plan whose slug is missing. Existing plans are left alone."""
    existing = {slug for (slug,) in db.query(Plan.slug).all()}
    created = []
    for data in DEFAULT_PLANS:
        if data["slug"] in existing:
            continue
        plan = Plan(currency=settings.DEFAULT_CURRENCY, is_active=True, **data)
        db.add(plan)
        created.append(plan)
        logger.info("Created plan: %s", data["name"])
    db.commit()
    return created
