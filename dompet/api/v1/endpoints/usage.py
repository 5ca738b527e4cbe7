"""Usage endpoints: monthly summary and dry-run limit checks."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from dompet.api import deps
from dompet.models.household import Household
from dompet.models.subscription import Subscription
from dompet.schemas.billing import CanUseRequest, CanUseResponse, UsageResponse
from dompet.services.entitlement import Capability, EntitlementGate
from dompet.services.plan_catalog import PlanCatalog
from dompet.services.usage_counter import UsageCounter

router = APIRouter()


@router.get("/", response_model=UsageResponse)
def get_usage(
    household: Household = Depends(deps.get_current_household),
    subscription: Subscription = Depends(deps.require_subscription),
    db: Session = Depends(deps.get_db),
):
    """This month's usage against the current plan."""
    catalog = PlanCatalog(db)
    plan = subscription.plan
    summary = UsageCounter(db).usage_summary(
        household, plan, dict(catalog.feature_limit_keys)
    )
    return {
        "plan_name": plan.name,
        "plan_slug": plan.slug,
        "status": subscription.status,
        "expires_at": subscription.expires_at,
        **summary,
    }


@router.post("/can-use", response_model=CanUseResponse)
def can_use(
    body: CanUseRequest,
    household: Household = Depends(deps.get_current_household),
    subscription: Subscription = Depends(deps.require_subscription),
    db: Session = Depends(deps.get_db),
):
    """Would the next use of a feature be allowed? Nothing is recorded."""
    decision = EntitlementGate(db).evaluate(
        household, Capability.feature(body.feature, write=body.write)
    )
    error = decision.error
    return CanUseResponse(
        allowed=decision.allowed,
        feature=body.feature,
        limit=decision.limit,
        current_usage=decision.usage,
        remaining=decision.remaining,
        reason=decision.reason,
        action=decision.action,
        message=error.message if error else None,
    )
