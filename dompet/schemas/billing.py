from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from dompet.models.payment import PaymentStatus
from dompet.models.plan import PlanType
from dompet.models.subscription import BillingCycle, SubscriptionStatus


class PlanResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    slug: str
    type: PlanType
    price: int
    currency: str
    features: dict[str, Any]
    description: str | None = None
    is_popular: bool = False
    sort_order: int = 0


class SubscriptionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    household_id: UUID
    status: SubscriptionStatus
    billing_cycle: BillingCycle
    started_at: datetime | None = None
    expires_at: datetime | None = None
    canceled_at: datetime | None = None
    cancellation_reason: str | None = None
    auto_renew: bool | None = False
    created_at: datetime
    plan: PlanResponse


class CurrentSubscription(BaseModel):
    """Current subscription with the derived view used by clients."""

    subscription: SubscriptionResponse | None
    effective_status: SubscriptionStatus | None = None
    is_active: bool = False
    days_remaining: int | None = None


class SubscribeRequest(BaseModel):
    billing_cycle: BillingCycle | None = Field(
        None, description="monthly or yearly; ignored for free and lifetime plans"
    )
    payment_method: str = "xendit"


class PaymentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    household_id: UUID
    subscription_id: UUID | None = None
    amount: int
    currency: str
    status: PaymentStatus
    payment_method: str
    payment_token: str | None = None
    payment_gateway_id: str | None = None
    paid_at: datetime | None = None
    failed_at: datetime | None = None
    created_at: datetime


class SubscribeResponse(BaseModel):
    message: str
    subscription: SubscriptionResponse
    payment: PaymentResponse | None = None


class InvoiceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    payment_id: UUID
    household_id: UUID
    subscription_id: UUID | None = None
    invoice_number: str
    amount: int
    currency: str
    status: str
    description: str | None = None
    issued_at: datetime | None = None
    paid_at: datetime | None = None


class CancelRequest(BaseModel):
    reason: str | None = Field(None, max_length=500)


class PaymentStatusUpdate(BaseModel):
    """Admin override of a payment's status."""

    status: str = Field(..., description="paid or failed")
    note: str | None = None


class SubscriptionUpdate(BaseModel):
    """Admin override of a subscription's status."""

    status: str
    expires_at: datetime | None = None
    reason: str | None = None


class ReconciliationResponse(BaseModel):
    message: str
    applied: bool
    duplicate: bool = False
    payment: PaymentResponse
    invoice: InvoiceResponse | None = None


class FeatureUsage(BaseModel):
    used: int
    limit: int
    remaining: int | None = None
    percentage: int = 0
    unlimited: bool = False


class UsagePeriod(BaseModel):
    current_month: str
    resets_at: datetime


class UsageResponse(BaseModel):
    plan_name: str
    plan_slug: str
    status: SubscriptionStatus
    expires_at: datetime | None = None
    usage: dict[str, FeatureUsage]
    period: UsagePeriod


class CanUseRequest(BaseModel):
    feature: str = Field(..., min_length=1, max_length=50)
    write: bool = True


class CanUseResponse(BaseModel):
    allowed: bool
    feature: str
    limit: int | None = None
    current_usage: int | None = None
    remaining: int | None = None
    reason: str | None = None
    action: str | None = None
    message: str | None = None


class SweepResponse(BaseModel):
    expired: int
