"""
Database models for the Dompet API.
"""

from dompet.models.household import Household
from dompet.models.invoice import Invoice
from dompet.models.payment import Payment, PaymentStatus
from dompet.models.plan import UNLIMITED, Plan, PlanType
from dompet.models.subscription import BillingCycle, Subscription, SubscriptionStatus
from dompet.models.transaction import Transaction, TransactionType
from dompet.models.usage_log import Feature, UsageLog
from dompet.models.user import HouseholdRole, User

__all__ = [
    "Household",
    "User",
    "HouseholdRole",
    "Plan",
    "PlanType",
    "UNLIMITED",
    "Subscription",
    "SubscriptionStatus",
    "BillingCycle",
    "Payment",
    "PaymentStatus",
    "Invoice",
    "UsageLog",
    "Feature",
    "Transaction",
    "TransactionType",
]
