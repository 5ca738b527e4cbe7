"""
Usage Counter.

Monthly aggregation of metered feature consumption per household, plus the
locked check-and-record used by business handlers after a successful write.
"""

import logging
from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from dompet.core.clock import add_months, start_of_month, utcnow
from dompet.core.exceptions import LimitExceeded
from dompet.models.household import Household
from dompet.models.plan import UNLIMITED, Plan
from dompet.models.usage_log import UsageLog

logger = logging.getLogger(__name__)


def month_window(at: datetime) -> tuple[datetime, datetime]:
    """Calendar month containing `at` as a half-open range [start, next_start)."""
    start = start_of_month(at)
    return start, add_months(start, 1)


def remaining_for(limit: int, usage: int) -> Optional[int]:
    """Units left under `limit`; None means unlimited."""
    if limit == UNLIMITED:
        return None
    return max(0, limit - usage)


class UsageCounter:
    """Reads and records UsageLog rows for one database session."""

    def __init__(self, db: Session):
        self.db = db

    def monthly_usage(
        self, household_id: UUID, feature: str, at: Optional[datetime] = None
    ) -> int:
        """Sum of quantities logged for `feature` in the month containing `at`."""
        start, end = month_window(at or utcnow())
        total = (
            self.db.query(func.coalesce(func.sum(UsageLog.quantity), 0))
            .filter(
                UsageLog.household_id == household_id,
                UsageLog.feature == feature,
                UsageLog.recorded_at >= start,
                UsageLog.recorded_at < end,
            )
            .scalar()
        )
        return int(total or 0)

    def record(
        self,
        household_id: UUID,
        feature: str,
        quantity: int = 1,
        user_id: Optional[UUID] = None,
        extra_data: Optional[dict[str, Any]] = None,
        at: Optional[datetime] = None,
    ) -> UsageLog:
        """Append a usage event. Flushes; the caller commits."""
        log = UsageLog(
            household_id=household_id,
            user_id=user_id,
            feature=feature,
            quantity=quantity,
            recorded_at=at or utcnow(),
            extra_data=extra_data or {},
        )
        self.db.add(log)
        self.db.flush()
        return log

    def consume(
        self,
        household_id: UUID,
        feature: str,
        limit: int,
        quantity: int = 1,
        user_id: Optional[UUID] = None,
        extra_data: Optional[dict[str, Any]] = None,
        upgrade_message: Optional[str] = None,
        at: Optional[datetime] = None,
    ) -> UsageLog:
        """
        Record `quantity` units only if the household stays within `limit`.

        The household row is locked first, so two requests for the same
        household cannot both read the same usage and both record past the
        limit. Runs inside the caller's transaction; nothing is committed here.

        Raises:
            LimitExceeded: when `usage + quantity` would exceed a finite limit.
        """
        at = at or utcnow()
        (
            self.db.query(Household)
            .filter(Household.id == household_id)
            .with_for_update()
            .one_or_none()
        )

        usage = self.monthly_usage(household_id, feature, at)
        if limit != UNLIMITED and usage + quantity > limit:
            logger.info(
                "Household %s over %s limit: %d + %d > %d",
                household_id, feature, usage, quantity, limit,
            )
            raise LimitExceeded(feature, usage, limit, upgrade_message)

        return self.record(household_id, feature, quantity, user_id, extra_data, at)

    def usage_summary(
        self,
        household: Household,
        plan: Plan,
        features: dict[str, str],
        at: Optional[datetime] = None,
    ) -> dict[str, Any]:
        """
        Per-feature usage against the plan's limits.

        `features` maps each metered feature to its limit key in the plan.
        """
        at = at or utcnow()
        _, resets_at = month_window(at)

        usage: dict[str, Any] = {}
        for feature, limit_key in features.items():
            used = self.monthly_usage(household.id, feature, at)
            limit = plan.get_limit(limit_key, 0)
            unlimited = limit == UNLIMITED
            usage[feature] = {
                "used": used,
                "limit": limit,
                "remaining": remaining_for(limit, used),
                "percentage": 0 if unlimited or limit <= 0 else min(100, round(used / limit * 100)),
                "unlimited": unlimited,
            }

        max_users = plan.get_limit("max_users", 1)
        user_count = len(household.users)
        usage["users"] = {
            "used": user_count,
            "limit": max_users,
            "remaining": remaining_for(max_users, user_count),
            "percentage": 0 if max_users in (UNLIMITED, 0) else min(100, round(user_count / max_users * 100)),
            "unlimited": max_users == UNLIMITED,
        }

        return {
            "usage": usage,
            "period": {
                "current_month": at.strftime("%Y-%m"),
                "resets_at": resets_at,
            },
        }
