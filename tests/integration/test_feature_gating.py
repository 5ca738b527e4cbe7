"""HTTP-level entitlement checks on transactions, reports and usage."""

from datetime import timedelta

from dompet.core.clock import utcnow
from dompet.models import Feature, Transaction, UsageLog
from dompet.services.usage_counter import UsageCounter

TRANSACTIONS = "/api/v1/transactions/"
EXPENSE = {"type": "expense", "amount": 25000, "category": "groceries"}


def _set_limit(db, plan, key, value):
    plan.features = {**plan.features, key: value}
    db.commit()


class TestNoSubscription:
    def test_write_requires_subscription(self, client, owner, plans, auth_headers):
        response = client.post(TRANSACTIONS, json=EXPENSE, headers=auth_headers(owner))
        assert response.status_code == 402
        assert response.json() == {"message": "No subscription found", "action": "subscribe"}

    def test_user_without_household(self, client, make_user, auth_headers):
        user = make_user(with_household=False)
        response = client.get(TRANSACTIONS, headers=auth_headers(user))
        assert response.status_code == 403
        assert response.json()["message"] == "No household found"

    def test_unauthenticated(self, client):
        assert client.get(TRANSACTIONS).status_code == 401


class TestTransactions:
    def test_create_records_usage(self, client, db, owner, subscribe, auth_headers):
        subscribe(owner.household, "pertalite")
        response = client.post(TRANSACTIONS, json=EXPENSE, headers=auth_headers(owner))
        assert response.status_code == 201
        data = response.json()
        assert data["amount"] == 25000
        assert data["household_id"] == str(owner.household_id)

        log = db.query(UsageLog).one()
        assert log.feature == Feature.TRANSACTION
        assert log.extra_data["transaction_id"] == data["id"]

    def test_limit_reached_returns_429(self, client, db, owner, plans, subscribe, record_usage, auth_headers):
        _set_limit(db, plans["premium-free"], "max_transactions_per_month", 50)
        subscribe(owner.household, "premium-free")
        record_usage(owner.household, Feature.TRANSACTION, quantity=49)
        headers = auth_headers(owner)

        assert client.post(TRANSACTIONS, json=EXPENSE, headers=headers).status_code == 201

        response = client.post(TRANSACTIONS, json=EXPENSE, headers=headers)
        assert response.status_code == 429
        body = response.json()
        assert body["message"] == "Transaction limit reached"
        assert body["current_usage"] == 50
        assert body["limit"] == 50
        assert body["remaining"] == 0
        assert body["action"] == "upgrade_plan"
        assert body["upgrade_message"] == "Upgrade to Pertalite to unlock a higher transaction limit."

        assert db.query(Transaction).count() == 1
        assert UsageCounter(db).monthly_usage(owner.household_id, Feature.TRANSACTION) == 50

    def test_read_edit_and_delete_at_the_limit(self, client, db, owner, plans, subscribe, auth_headers):
        _set_limit(db, plans["premium-free"], "max_transactions_per_month", 2)
        subscribe(owner.household, "premium-free")
        headers = auth_headers(owner)
        first = client.post(TRANSACTIONS, json=EXPENSE, headers=headers).json()
        second = client.post(TRANSACTIONS, json=EXPENSE, headers=headers).json()

        listing = client.get(TRANSACTIONS, headers=headers)
        assert listing.status_code == 200
        assert len(listing.json()) == 2
        edited = client.put(f"{TRANSACTIONS}{first['id']}", json={"amount": 1000}, headers=headers)
        assert edited.status_code == 200
        assert client.delete(f"{TRANSACTIONS}{second['id']}", headers=headers).status_code == 204

        # Deleting does not hand the unit back
        response = client.post(TRANSACTIONS, json=EXPENSE, headers=headers)
        assert response.status_code == 429
        assert response.json()["current_usage"] == 2
        assert response.json()["upgrade_message"] == "Upgrade to Pertalite to unlock a higher transaction limit."

    def test_concurrent_usage_caught_under_the_lock(
        self, client, db, owner, subscribe, record_usage, auth_headers, monkeypatch
    ):
        subscribe(owner.household, "premium-free")
        record_usage(owner.household, Feature.TRANSACTION, quantity=99)
        consume = UsageCounter.consume

        def consume_after_another_request(self, household_id, feature, *args, **kwargs):
            self.record(household_id, feature, quantity=600)
            return consume(self, household_id, feature, *args, **kwargs)

        monkeypatch.setattr(UsageCounter, "consume", consume_after_another_request)
        response = client.post(TRANSACTIONS, json=EXPENSE, headers=auth_headers(owner))

        assert response.status_code == 429
        body = response.json()
        assert body["current_usage"] == 699
        assert body["limit"] == 100
        assert body["upgrade_message"] == "Upgrade to Pertamax to unlock a higher transaction limit."
        assert db.query(Transaction).count() == 0

    def test_update_and_delete(self, client, db, owner, subscribe, auth_headers):
        subscribe(owner.household, "pertalite")
        headers = auth_headers(owner)
        created = client.post(TRANSACTIONS, json=EXPENSE, headers=headers).json()

        updated = client.put(f"{TRANSACTIONS}{created['id']}", json={"amount": 30000}, headers=headers)
        assert updated.status_code == 200
        assert updated.json()["amount"] == 30000

        assert client.delete(f"{TRANSACTIONS}{created['id']}", headers=headers).status_code == 204
        assert db.query(Transaction).count() == 0
        # Only creation is metered
        assert db.query(UsageLog).count() == 1

    def test_other_household_transaction_is_hidden(self, client, make_user, subscribe, auth_headers):
        first, second = make_user(), make_user()
        subscribe(first.household, "pertalite")
        subscribe(second.household, "pertalite")
        created = client.post(TRANSACTIONS, json=EXPENSE, headers=auth_headers(first)).json()
        response = client.delete(f"{TRANSACTIONS}{created['id']}", headers=auth_headers(second))
        assert response.status_code == 404


class TestInactiveSubscription:
    def test_expired_can_read_but_not_write(self, client, owner, subscribe, auth_headers):
        subscribe(owner.household, "pertalite", now=utcnow() - timedelta(days=40))
        headers = auth_headers(owner)

        assert client.get(TRANSACTIONS, headers=headers).status_code == 200

        response = client.post(TRANSACTIONS, json=EXPENSE, headers=headers)
        assert response.status_code == 402
        assert response.json() == {
            "message": "Your subscription is expired. Renew to add or change data.",
            "status": "expired",
            "action": "renew",
        }

    def test_canceled_write_asks_to_reactivate(self, client, owner, subscribe, auth_headers):
        subscribe(owner.household, "pertalite", status="canceled")
        response = client.post(TRANSACTIONS, json=EXPENSE, headers=auth_headers(owner))
        assert response.status_code == 402
        assert response.json()["action"] == "reactivate"

    def test_canceled_denies_modules(self, client, owner, subscribe, auth_headers):
        subscribe(owner.household, "turbo", status="canceled")
        response = client.get("/api/v1/budget/overview", headers=auth_headers(owner))
        assert response.status_code == 402
        assert response.json()["status"] == "canceled"


class TestModules:
    def test_module_outside_plan(self, client, owner, subscribe, auth_headers):
        subscribe(owner.household, "premium-free")
        response = client.get("/api/v1/analytics/summary", headers=auth_headers(owner))
        assert response.status_code == 403
        body = response.json()
        assert body["current_plan"] == "Premium"
        assert body["required_plans"] == ["Pertalite", "Pertamax", "Turbo"]
        assert body["action"] == "upgrade_plan"
        assert body["upgrade_message"] == "Upgrade to Pertalite to unlock the analytics module."

    def test_analytics_and_budget(self, client, owner, subscribe, auth_headers):
        subscribe(owner.household, "pertalite")
        headers = auth_headers(owner)
        client.post(TRANSACTIONS, json={"type": "income", "amount": 100000}, headers=headers)
        client.post(TRANSACTIONS, json=EXPENSE, headers=headers)

        summary = client.get("/api/v1/analytics/summary", headers=headers).json()
        assert summary["total_income"] == 100000
        assert summary["total_expense"] == 25000
        assert summary["net"] == 75000
        assert summary["by_category"] == {"groceries": 25000}

        budget = client.get("/api/v1/budget/overview", headers=headers).json()
        assert budget["remaining"] == 75000
        assert budget["spent_percentage"] == 25


class TestUsageEndpoints:
    def test_usage_summary(self, client, owner, subscribe, record_usage, auth_headers):
        subscribe(owner.household, "pertalite")
        record_usage(owner.household, Feature.TRANSACTION, quantity=125)
        response = client.get("/api/v1/usage/", headers=auth_headers(owner))
        assert response.status_code == 200
        data = response.json()
        assert data["plan_slug"] == "pertalite"
        assert data["status"] == "active"
        assert data["usage"]["transaction"]["used"] == 125
        assert data["usage"]["transaction"]["remaining"] == 375
        assert data["usage"]["users"]["limit"] == 3
        assert data["period"]["current_month"] == utcnow().strftime("%Y-%m")

    def test_usage_requires_active_subscription(self, client, owner, subscribe, auth_headers):
        subscribe(owner.household, "pertalite", status="expired")
        response = client.get("/api/v1/usage/", headers=auth_headers(owner))
        assert response.status_code == 402
        assert response.json()["message"] == "Subscription has expired"
        assert response.json()["action"] == "renew"

    def test_can_use_does_not_record(self, client, db, owner, subscribe, auth_headers):
        subscribe(owner.household, "pertalite")
        response = client.post(
            "/api/v1/usage/can-use", json={"feature": "transaction"}, headers=auth_headers(owner)
        )
        assert response.status_code == 200
        assert response.json()["allowed"] is True
        assert response.json()["remaining"] == 500
        assert db.query(UsageLog).count() == 0

    def test_can_use_at_limit(self, client, owner, subscribe, record_usage, auth_headers):
        subscribe(owner.household, "premium-free")
        record_usage(owner.household, Feature.AI_SCAN, quantity=5)
        response = client.post(
            "/api/v1/usage/can-use", json={"feature": "ai_scan"}, headers=auth_headers(owner)
        )
        data = response.json()
        assert data["allowed"] is False
        assert data["reason"] == "limit_reached"
        assert data["action"] == "upgrade_plan"
        assert data["remaining"] == 0
