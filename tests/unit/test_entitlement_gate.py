"""Entitlement gate decisions across subscription states, modules and limits."""

from datetime import datetime, timedelta

import pytest

from dompet.core.clock import utcnow
from dompet.core.exceptions import (
    InactiveSubscription,
    LimitExceeded,
    ModuleNotEntitled,
    NoHousehold,
    NoSubscription,
)
from dompet.models import Feature, UsageLog
from dompet.services.entitlement import Capability, EntitlementGate
from dompet.services.usage_counter import UsageCounter

TRANSACTION_WRITE = Capability.feature(Feature.TRANSACTION, write=True)
TRANSACTION_READ = Capability.feature(Feature.TRANSACTION, write=False)
TRANSACTION_EDIT = Capability.feature(Feature.TRANSACTION, write=True, consumes=False)


def _set_limit(db, plan, key, value):
    plan.features = {**plan.features, key: value}
    db.commit()


class TestCapability:
    def test_method_classification(self):
        assert Capability.for_method("transaction", "post").write
        assert Capability.for_method("transaction", "DELETE").write
        assert not Capability.for_method("transaction", "GET").write

    def test_only_creates_consume(self):
        assert Capability.for_method("transaction", "POST").consumes
        for method in ("GET", "PUT", "PATCH", "DELETE"):
            assert not Capability.for_method("transaction", method).consumes
        assert TRANSACTION_WRITE.consumes
        assert not TRANSACTION_EDIT.consumes

    def test_module_capability(self):
        capability = Capability.module("budget")
        assert capability.is_module
        assert not capability.write


class TestHouseholdAndSubscription:
    def test_no_household(self, db):
        decision = EntitlementGate(db).evaluate(None, TRANSACTION_READ)
        assert not decision.allowed
        assert isinstance(decision.error, NoHousehold)
        assert decision.error.status_code == 403

    def test_no_subscription(self, db, owner, plans):
        decision = EntitlementGate(db).evaluate(owner.household, Capability.module("budget"))
        assert not decision.allowed
        assert isinstance(decision.error, NoSubscription)
        assert decision.reason == "no_subscription"
        assert decision.action == "subscribe"
        assert decision.error.status_code == 402

    def test_pending_subscription_is_not_current(self, db, owner, subscribe):
        subscribe(owner.household, "pertalite", status="pending")
        decision = EntitlementGate(db).evaluate(owner.household, TRANSACTION_READ)
        assert isinstance(decision.error, NoSubscription)


class TestInactiveSubscription:
    def test_expired_allows_reads(self, db, owner, subscribe):
        subscribe(owner.household, "pertalite", status="expired")
        decision = EntitlementGate(db).evaluate(owner.household, TRANSACTION_READ)
        assert decision.allowed
        assert decision.error is None

    def test_expired_denies_writes_with_renew(self, db, owner, subscribe):
        subscribe(owner.household, "pertalite", status="expired")
        decision = EntitlementGate(db).evaluate(owner.household, TRANSACTION_WRITE)
        assert not decision.allowed
        assert isinstance(decision.error, InactiveSubscription)
        assert decision.action == "renew"
        assert decision.error.status_code == 402
        assert decision.error.body["status"] == "expired"

    def test_canceled_denies_writes_with_reactivate(self, db, owner, subscribe):
        subscribe(owner.household, "pertalite", status="canceled")
        decision = EntitlementGate(db).evaluate(owner.household, TRANSACTION_WRITE)
        assert decision.reason == "inactive_subscription"
        assert decision.action == "reactivate"

    def test_lapsed_active_row_is_treated_as_expired(self, db, owner, subscribe):
        subscribe(owner.household, "pertalite", now=utcnow() - timedelta(days=40))
        gate = EntitlementGate(db)
        assert gate.evaluate(owner.household, TRANSACTION_READ).allowed
        decision = gate.evaluate(owner.household, TRANSACTION_WRITE)
        assert decision.action == "renew"

    def test_inactive_denies_modules(self, db, owner, subscribe):
        subscribe(owner.household, "turbo", status="canceled")
        decision = EntitlementGate(db).evaluate(owner.household, Capability.module("budget"))
        assert not decision.allowed
        assert isinstance(decision.error, InactiveSubscription)


class TestModules:
    def test_module_in_plan(self, db, owner, subscribe):
        subscribe(owner.household, "pertalite")
        decision = EntitlementGate(db).evaluate(owner.household, Capability.module("budget"))
        assert decision.allowed
        assert decision.plan.name == "Pertalite"

    def test_module_outside_plan(self, db, owner, subscribe):
        subscribe(owner.household, "pertalite")
        decision = EntitlementGate(db).evaluate(owner.household, Capability.module("investments"))
        assert not decision.allowed
        assert isinstance(decision.error, ModuleNotEntitled)
        body = decision.error.body
        assert decision.error.status_code == 403
        assert body["current_plan"] == "Pertalite"
        assert body["required_plans"] == ["Turbo"]
        assert body["upgrade_message"] == "Upgrade to Turbo to unlock the investments module."
        assert body["action"] == "upgrade_plan"

    def test_unknown_module_is_denied(self, db, owner, subscribe):
        subscribe(owner.household, "turbo")
        decision = EntitlementGate(db).evaluate(owner.household, Capability.module("teleport"))
        assert not decision.allowed
        assert decision.error.body["required_plans"] == []


class TestFeatureLimits:
    def test_allows_until_the_limit(self, db, owner, plans, subscribe, record_usage):
        _set_limit(db, plans["premium-free"], "max_transactions_per_month", 50)
        subscribe(owner.household, "premium-free")
        record_usage(owner.household, Feature.TRANSACTION, quantity=49)

        gate = EntitlementGate(db)
        decision = gate.evaluate(owner.household, TRANSACTION_WRITE)
        assert decision.allowed
        assert decision.limit == 50
        assert decision.usage == 49
        assert decision.remaining == 1

        # The handler records after its write succeeds
        UsageCounter(db).consume(owner.household_id, Feature.TRANSACTION, decision.limit)
        db.commit()

        decision = gate.evaluate(owner.household, TRANSACTION_WRITE)
        assert not decision.allowed
        assert isinstance(decision.error, LimitExceeded)
        assert decision.error.status_code == 429
        assert decision.remaining == 0
        assert decision.error.body["current_usage"] == 50
        assert decision.error.body["limit"] == 50
        assert decision.error.body["message"] == "Transaction limit reached"
        assert decision.error.body["upgrade_message"] == (
            "Upgrade to Pertalite to unlock a higher transaction limit."
        )

    def test_limit_only_holds_back_consumption(self, db, owner, subscribe, record_usage):
        subscribe(owner.household, "premium-free")
        record_usage(owner.household, Feature.TRANSACTION, quantity=100)

        gate = EntitlementGate(db)
        assert gate.evaluate(owner.household, TRANSACTION_READ).allowed
        assert gate.evaluate(owner.household, TRANSACTION_EDIT).allowed
        assert isinstance(gate.evaluate(owner.household, TRANSACTION_WRITE).error, LimitExceeded)

    def test_inactive_still_blocks_edits(self, db, owner, subscribe):
        subscribe(owner.household, "pertalite", status="expired")
        decision = EntitlementGate(db).evaluate(owner.household, TRANSACTION_EDIT)
        assert isinstance(decision.error, InactiveSubscription)

    def test_unlimited_plan(self, db, owner, subscribe, record_usage):
        subscribe(owner.household, "turbo")
        record_usage(owner.household, Feature.TRANSACTION, quantity=10_000)
        decision = EntitlementGate(db).evaluate(owner.household, TRANSACTION_WRITE)
        assert decision.allowed
        assert decision.limit == -1
        assert decision.remaining is None

    def test_missing_limit_denies(self, db, owner, subscribe):
        subscribe(owner.household, "pertalite")
        decision = EntitlementGate(db).evaluate(owner.household, Capability.feature("export", write=True))
        assert not decision.allowed
        assert decision.error.body["limit"] == 0

    def test_previous_month_usage_does_not_count(self, db, owner, plans, subscribe, record_usage):
        _set_limit(db, plans["premium-free"], "max_transactions_per_month", 50)
        subscribe(owner.household, "premium-free")
        now = utcnow()
        last_month = datetime(now.year, now.month, 1) - timedelta(days=1)
        record_usage(owner.household, Feature.TRANSACTION, quantity=50, at=last_month)
        assert EntitlementGate(db).evaluate(owner.household, TRANSACTION_WRITE).allowed

    def test_evaluation_records_nothing(self, db, owner, subscribe):
        subscribe(owner.household, "pertalite")
        gate = EntitlementGate(db)
        for _ in range(3):
            gate.evaluate(owner.household, TRANSACTION_WRITE)
        assert db.query(UsageLog).count() == 0

    def test_check_raises_the_denial(self, db, owner, subscribe):
        subscribe(owner.household, "pertalite")
        gate = EntitlementGate(db)
        with pytest.raises(ModuleNotEntitled):
            gate.check(owner.household, Capability.module("investments"))
        assert gate.check(owner.household, Capability.module("budget")).allowed
