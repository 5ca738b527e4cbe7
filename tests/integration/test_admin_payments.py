"""Admin overrides for payments and subscriptions."""

from datetime import timedelta

from dompet.core.clock import utcnow
from dompet.models import Invoice, Payment, PaymentStatus, SubscriptionStatus


def _payment_url(payment):
    return f"/api/v1/admin/payments/{payment.id}"


class TestAccess:
    def test_regular_user_is_forbidden(self, client, owner, make_payment, auth_headers):
        payment = make_payment(owner)
        response = client.put(_payment_url(payment), json={"status": "paid"}, headers=auth_headers(owner))
        assert response.status_code == 403

    def test_list_payments_with_filter(self, client, db, admin, make_user, make_payment, auth_headers):
        paid = make_payment(make_user())
        make_payment(make_user())
        paid.status = PaymentStatus.FAILED
        db.commit()

        everything = client.get("/api/v1/admin/payments", headers=auth_headers(admin)).json()
        assert len(everything) == 2
        failed = client.get(
            "/api/v1/admin/payments", params={"status_filter": "failed"}, headers=auth_headers(admin)
        ).json()
        assert [p["id"] for p in failed] == [str(paid.id)]

    def test_missing_payment(self, client, admin, auth_headers):
        response = client.get(
            "/api/v1/admin/payments/00000000-0000-0000-0000-000000000000", headers=auth_headers(admin)
        )
        assert response.status_code == 404
        assert response.json()["message"] == "Payment not found"


class TestReconcile:
    def test_marking_paid_twice_issues_one_invoice(self, client, db, admin, owner, make_payment, auth_headers):
        payment = make_payment(owner, amount=50000)
        headers = auth_headers(admin)

        first = client.put(_payment_url(payment), json={"status": "paid", "note": "Transfer manual"}, headers=headers)
        assert first.status_code == 200
        body = first.json()
        assert body["applied"] is True
        assert body["payment"]["status"] == "paid"
        assert body["invoice"]["amount"] == 50000
        assert body["invoice"]["invoice_number"].startswith("INV-")

        second = client.put(_payment_url(payment), json={"status": "paid"}, headers=headers)
        assert second.status_code == 200
        assert second.json()["duplicate"] is True
        assert second.json()["applied"] is False

        db.expire_all()
        assert db.query(Invoice).filter(Invoice.payment_id == payment.id).count() == 1
        stored = db.get(Payment, payment.id)
        assert stored.extra_data["admin_note"] == "Transfer manual"
        assert stored.subscription.status == SubscriptionStatus.ACTIVE

    def test_marking_failed(self, client, db, admin, owner, make_payment, auth_headers):
        payment = make_payment(owner)
        response = client.put(_payment_url(payment), json={"status": "failed"}, headers=auth_headers(admin))
        assert response.json()["payment"]["status"] == "failed"
        assert response.json()["invoice"] is None

    def test_paid_to_failed_is_rejected(self, client, db, admin, owner, make_payment, auth_headers):
        payment = make_payment(owner)
        headers = auth_headers(admin)
        client.put(_payment_url(payment), json={"status": "paid"}, headers=headers)

        response = client.put(_payment_url(payment), json={"status": "failed"}, headers=headers)
        assert response.status_code == 422
        assert response.json()["current_status"] == "paid"
        db.expire_all()
        assert db.get(Payment, payment.id).status == PaymentStatus.PAID

    def test_unknown_status_is_rejected(self, client, admin, owner, make_payment, auth_headers):
        payment = make_payment(owner)
        response = client.put(_payment_url(payment), json={"status": "refunded"}, headers=auth_headers(admin))
        assert response.status_code == 422


class TestSubscriptionOverrides:
    def test_reactivate_with_new_expiry(self, client, admin, owner, subscribe, auth_headers):
        subscription = subscribe(owner.household, "pertalite", status="expired")
        response = client.put(
            f"/api/v1/admin/subscriptions/{subscription.id}",
            json={"status": "active", "expires_at": "2030-01-01T00:00:00"},
            headers=auth_headers(admin),
        )
        assert response.status_code == 200
        assert response.json()["status"] == "active"
        assert response.json()["expires_at"].startswith("2030-01-01")

    def test_disallowed_override(self, client, admin, owner, subscribe, auth_headers):
        subscription = subscribe(owner.household, "pertalite", status="expired")
        response = client.put(
            f"/api/v1/admin/subscriptions/{subscription.id}",
            json={"status": "pending"},
            headers=auth_headers(admin),
        )
        assert response.status_code == 422

    def test_admin_cancel(self, client, admin, owner, subscribe, auth_headers):
        subscription = subscribe(owner.household, "pertamax")
        response = client.post(
            f"/api/v1/admin/subscriptions/{subscription.id}/cancel", headers=auth_headers(admin)
        )
        assert response.json()["status"] == "canceled"
        assert response.json()["cancellation_reason"] == "Canceled by admin"

    def test_sweep(self, client, db, admin, make_user, subscribe, auth_headers):
        lapsed = subscribe(make_user().household, "pertalite", now=utcnow() - timedelta(days=40))
        subscribe(make_user().household, "pertalite")

        response = client.post("/api/v1/admin/subscriptions/sweep", headers=auth_headers(admin))
        assert response.json() == {"expired": 1}
        db.refresh(lapsed)
        assert lapsed.status == SubscriptionStatus.EXPIRED
        assert lapsed.expires_at < utcnow()
