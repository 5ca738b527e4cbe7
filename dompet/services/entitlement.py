"""
Entitlement Gate.

Decides whether a household may use a module or a metered feature. The gate
combines the Subscription Ledger, the Plan Catalog and the Usage Counter and
never writes anything: recording usage is left to the handler that performed
the write (see `UsageCounter.consume`).
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from dompet.core.clock import utcnow
from dompet.core.exceptions import (
    EntitlementError,
    InactiveSubscription,
    LimitExceeded,
    ModuleNotEntitled,
    NoHousehold,
    NoSubscription,
)
from dompet.models.household import Household
from dompet.models.plan import UNLIMITED, Plan
from dompet.services.plan_catalog import PlanCatalog
from dompet.services.subscription_ledger import SubscriptionLedger
from dompet.services.usage_counter import UsageCounter, remaining_for

logger = logging.getLogger(__name__)

WRITE_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})
CONSUMING_METHODS = frozenset({"POST"})


@dataclass(frozen=True)
class Capability:
    """
    What a request needs: a module, or a metered feature read or written.

    `consumes` marks a write that uses up one unit of the monthly allowance;
    only those are held to the limit. Editing or deleting existing data is a
    write that consumes nothing.
    """

    kind: str
    name: str
    write: bool = False
    consumes: bool = False

    MODULE = "module"
    FEATURE = "feature"

    @classmethod
    def module(cls, name: str) -> "Capability":
        return cls(cls.MODULE, name)

    @classmethod
    def feature(
        cls, name: str, write: bool = False, consumes: Optional[bool] = None
    ) -> "Capability":
        return cls(cls.FEATURE, name, write, write if consumes is None else consumes)

    @classmethod
    def for_method(cls, feature: str, method: str) -> "Capability":
        """Feature capability classified by HTTP method."""
        method = method.upper()
        return cls.feature(
            feature,
            write=method in WRITE_METHODS,
            consumes=method in CONSUMING_METHODS,
        )

    @property
    def is_module(self) -> bool:
        return self.kind == self.MODULE


@dataclass
class Decision:
    """Outcome of a gate evaluation. `error` is set exactly when denied."""

    allowed: bool
    capability: Capability
    plan: Optional[Plan] = None
    limit: Optional[int] = None
    usage: Optional[int] = None
    remaining: Optional[int] = None
    error: Optional[EntitlementError] = None
    extra: dict = field(default_factory=dict)

    @property
    def reason(self) -> Optional[str]:
        return self.error.reason if self.error else None

    @property
    def action(self) -> Optional[str]:
        return self.error.action if self.error else None

    def raise_for_denial(self) -> "Decision":
        if self.error is not None:
            raise self.error
        return self


class EntitlementGate:
    """
    Usage:
        gate = EntitlementGate(db)
        decision = gate.evaluate(household, Capability.feature("transaction", write=True))
        decision.raise_for_denial()
    """

    def __init__(
        self,
        db: Session,
        catalog: Optional[PlanCatalog] = None,
        ledger: Optional[SubscriptionLedger] = None,
        usage: Optional[UsageCounter] = None,
    ):
        self.db = db
        self.catalog = catalog or PlanCatalog(db)
        self.ledger = ledger or SubscriptionLedger(db)
        self.usage = usage or UsageCounter(db)

    def evaluate(
        self,
        household: Optional[Household],
        capability: Capability,
        now: Optional[datetime] = None,
    ) -> Decision:
        now = now or utcnow()

        if household is None:
            return self._deny(capability, NoHousehold())

        subscription = self.ledger.current_subscription(household)
        if subscription is None:
            return self._deny(capability, NoSubscription())

        plan = subscription.plan

        if not self.ledger.is_active(subscription, now):
            status = self.ledger.effective_status(subscription, now).value
            if capability.is_module:
                return self._deny(capability, InactiveSubscription(status), plan)
            if not capability.write:
                return Decision(allowed=True, capability=capability, plan=plan)
            return self._deny(
                capability,
                InactiveSubscription(
                    status,
                    message=f"Your subscription is {status}. Renew to add or change data.",
                ),
                plan,
            )

        if capability.is_module:
            return self._evaluate_module(household, plan, capability)
        if not capability.consumes:
            return Decision(allowed=True, capability=capability, plan=plan)
        return self._evaluate_feature(household, plan, capability, now)

    def check(
        self,
        household: Optional[Household],
        capability: Capability,
        now: Optional[datetime] = None,
    ) -> Decision:
        """Evaluate and raise the denial, if any."""
        return self.evaluate(household, capability, now).raise_for_denial()

    # ─────────────────────────────────────────────────────────────────
    # Active subscription checks
    # ─────────────────────────────────────────────────────────────────

    def _evaluate_module(
        self, household: Household, plan: Plan, capability: Capability
    ) -> Decision:
        module = capability.name
        if self.catalog.plan_allows_module(plan, module):
            return Decision(allowed=True, capability=capability, plan=plan)

        error = ModuleNotEntitled(
            module,
            current_plan=plan.name,
            required_plans=self.catalog.required_plans(module),
            upgrade_message=self.catalog.module_upgrade_suggestion(plan, module),
        )
        return self._deny(capability, error, plan)

    def _evaluate_feature(
        self,
        household: Household,
        plan: Plan,
        capability: Capability,
        now: datetime,
    ) -> Decision:
        feature = capability.name
        limit = self.catalog.feature_limit(plan, feature)
        if limit == UNLIMITED:
            return Decision(allowed=True, capability=capability, plan=plan, limit=limit)

        usage = self.usage.monthly_usage(household.id, feature, now)
        if usage >= limit:
            error = LimitExceeded(
                feature,
                current_usage=usage,
                limit=limit,
                upgrade_message=self.catalog.feature_upgrade_suggestion(plan, feature, usage),
            )
            return self._deny(capability, error, plan, limit=limit, usage=usage)

        return Decision(
            allowed=True,
            capability=capability,
            plan=plan,
            limit=limit,
            usage=usage,
            remaining=remaining_for(limit, usage),
        )

    def _deny(
        self,
        capability: Capability,
        error: EntitlementError,
        plan: Optional[Plan] = None,
        **values,
    ) -> Decision:
        logger.debug("Denied %s %s: %s", capability.kind, capability.name, error.reason)
        return Decision(
            allowed=False,
            capability=capability,
            plan=plan,
            error=error,
            remaining=0 if isinstance(error, LimitExceeded) else None,
            **values,
        )
