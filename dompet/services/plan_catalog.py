"""
Plan Catalog.

Resolves plans and their feature limits, and answers which plans qualify for a
module. The feature-key and module tables are configuration data handed to
the catalog at construction, so adding a plan or a metered feature does not
need a code change.
"""

import logging
from types import MappingProxyType
from typing import Callable, Iterable, Mapping, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from dompet.db.types import parse_uuid
from dompet.models.plan import Plan

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────────────────────
# Lookup tables
# ─────────────────────────────────────────────────────────────────────────────

# Metered feature -> key of its monthly limit inside Plan.features
DEFAULT_FEATURE_LIMIT_KEYS: Mapping[str, str] = MappingProxyType({
    "transaction": "max_transactions_per_month",
    "ai_scan": "max_ai_scans_per_month",
    "storage": "storage_mb",
})

# Gated module -> plan names that may access it
DEFAULT_MODULE_PLANS: Mapping[str, tuple[str, ...]] = MappingProxyType({
    "budget": ("Pertalite", "Pertamax", "Turbo"),
    "analytics": ("Pertalite", "Pertamax", "Turbo"),
    "assets": ("Pertalite", "Pertamax", "Turbo"),
    "debts": ("Pertamax", "Turbo"),
    "networth": ("Pertamax", "Turbo"),
    "investments": ("Turbo",),
})


def _freeze(table: Mapping) -> Mapping:
    return MappingProxyType({key: tuple(value) if isinstance(value, (list, tuple)) else value
                             for key, value in table.items()})


class PlanCatalog:
    """
    Read-only view over plans plus the feature/module lookup tables.

    Usage:
        catalog = PlanCatalog(db)
        limit = catalog.feature_limit(plan, "transaction")
        if not catalog.plan_allows_module(plan, "investments"):
            ...
    """

    def __init__(
        self,
        db: Session,
        feature_limit_keys: Mapping[str, str] = DEFAULT_FEATURE_LIMIT_KEYS,
        module_plans: Mapping[str, Iterable[str]] = DEFAULT_MODULE_PLANS,
    ):
        self.db = db
        self.feature_limit_keys = _freeze(feature_limit_keys)
        self.module_plans = _freeze(module_plans)

    # ─────────────────────────────────────────────────────────────────
    # Plan lookup
    # ─────────────────────────────────────────────────────────────────

    def active_plans(self) -> list[Plan]:
        """Active plans ordered from lowest to highest tier."""
        return (
            self.db.query(Plan)
            .filter(Plan.is_active.is_(True))
            .order_by(Plan.sort_order)
            .all()
        )

    def get_plan(self, identifier: UUID | str) -> Optional[Plan]:
        """Find a plan by id or slug."""
        plan_id = parse_uuid(identifier)
        if plan_id is not None:
            plan = self.db.query(Plan).filter(Plan.id == plan_id).first()
            if plan:
                return plan
        return self.db.query(Plan).filter(Plan.slug == str(identifier)).first()

    # ─────────────────────────────────────────────────────────────────
    # Features and modules
    # ─────────────────────────────────────────────────────────────────

    def limit_key(self, feature: str) -> str:
        return self.feature_limit_keys.get(feature, f"max_{feature}s_per_month")

    def feature_limit(self, plan: Plan, feature: str) -> int:
        """Monthly limit for a metered feature; 0 when the plan does not define it."""
        return plan.get_limit(self.limit_key(feature), 0)

    def required_plans(self, module: str) -> list[str]:
        return list(self.module_plans.get(module, ()))

    def plan_allows_module(self, plan: Plan, module: str) -> bool:
        return plan.name in self.module_plans.get(module, ())

    # ─────────────────────────────────────────────────────────────────
    # Upgrade hints
    # ─────────────────────────────────────────────────────────────────

    def upgrade_suggestion(
        self,
        plan: Plan,
        qualifies: Optional[Callable[[Plan], bool]] = None,
        unlocks: str = "more features",
    ) -> Optional[str]:
        """
        Name the next tier above `plan` that satisfies `qualifies`.

        Returns None when the household is already on the top qualifying tier.
        """
        for candidate in self.active_plans():
            if (candidate.sort_order or 0) <= (plan.sort_order or 0):
                continue
            if qualifies is None or qualifies(candidate):
                return f"Upgrade to {candidate.name} to unlock {unlocks}."
        return None

    def module_upgrade_suggestion(self, plan: Plan, module: str) -> Optional[str]:
        return self.upgrade_suggestion(
            plan,
            qualifies=lambda candidate: self.plan_allows_module(candidate, module),
            unlocks=f"the {module} module",
        )

    def feature_upgrade_suggestion(
        self, plan: Plan, feature: str, current_usage: int
    ) -> Optional[str]:
        def has_headroom(candidate: Plan) -> bool:
            limit = self.feature_limit(candidate, feature)
            return limit == -1 or limit > current_usage

        return self.upgrade_suggestion(
            plan,
            qualifies=has_headroom,
            unlocks=f"a higher {feature.replace('_', ' ')} limit",
        )
