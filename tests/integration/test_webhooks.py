"""Xendit callback endpoint."""

from dompet.models import Invoice, Payment, PaymentStatus, SubscriptionStatus

WEBHOOK = "/api/v1/webhooks/xendit"
TOKEN = {"x-callback-token": "test-callback-token"}


class TestCallbackToken:
    def test_missing_token(self, client, owner, make_payment):
        payment = make_payment(owner)
        response = client.post(WEBHOOK, json={"external_id": payment.payment_token, "status": "PAID"})
        assert response.status_code == 401
        assert response.json() == {"message": "Unauthorized"}

    def test_wrong_token(self, client, db, owner, make_payment):
        payment = make_payment(owner)
        response = client.post(
            WEBHOOK,
            json={"external_id": payment.payment_token, "status": "PAID"},
            headers={"x-callback-token": "guess"},
        )
        assert response.status_code == 401
        db.expire_all()
        assert db.get(Payment, payment.id).status == PaymentStatus.PENDING


class TestPaid:
    def test_v1_invoice_callback(self, client, db, owner, make_payment, subscription_for):
        payment = make_payment(owner, amount=10000)
        response = client.post(
            WEBHOOK,
            json={
                "id": "xnd-inv-1",
                "external_id": payment.payment_token,
                "status": "PAID",
                "paid_amount": 10000,
                "payment_channel": "BCA",
            },
            headers=TOKEN,
        )
        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["status"] == "paid"
        assert data["payment_id"] == str(payment.id)
        assert data["duplicate"] is False

        db.expire_all()
        payment = db.get(Payment, payment.id)
        assert payment.status == PaymentStatus.PAID
        assert payment.payment_gateway_id == "xnd-inv-1"
        assert payment.extra_data["payment_channel"] == "BCA"
        assert subscription_for(owner.household).id == payment.subscription_id
        assert subscription_for(owner.household).status == SubscriptionStatus.ACTIVE
        assert db.query(Invoice).count() == 1

    def test_v2_event_callback(self, client, db, owner, make_payment):
        payment = make_payment(owner)
        response = client.post(
            WEBHOOK,
            json={
                "event": "ewallet.capture",
                "data": {"reference_id": payment.payment_token, "status": "SUCCEEDED", "capture_amount": 50000},
            },
            headers=TOKEN,
        )
        assert response.json()["status"] == "paid"
        db.expire_all()
        assert db.get(Payment, payment.id).status == PaymentStatus.PAID

    def test_virtual_account_callback_without_status(self, client, db, owner, make_payment):
        payment = make_payment(owner)
        response = client.post(
            WEBHOOK,
            json={
                "callback_virtual_account_id": "cva-1",
                "external_id": f"VA-{payment.id}",
                "amount": 50000,
                "bank_code": "BNI",
            },
            headers=TOKEN,
        )
        assert response.json()["status"] == "paid"
        db.expire_all()
        assert db.get(Payment, payment.id).status == PaymentStatus.PAID

    def test_repeated_callback_is_skipped(self, client, db, owner, make_payment):
        payment = make_payment(owner)
        payload = {"external_id": payment.payment_token, "status": "PAID"}
        client.post(WEBHOOK, json=payload, headers=TOKEN)

        response = client.post(WEBHOOK, json=payload, headers=TOKEN)
        assert response.status_code == 200
        assert response.json() == {"success": True, "message": "Already processed"}
        assert db.query(Invoice).count() == 1


class TestNoAction:
    def test_failed(self, client, db, owner, make_payment):
        payment = make_payment(owner)
        response = client.post(
            WEBHOOK,
            json={"external_id": payment.payment_token, "status": "FAILED", "failure_code": "EXPIRED_CARD"},
            headers=TOKEN,
        )
        assert response.json()["status"] == "failed"
        db.expire_all()
        payment = db.get(Payment, payment.id)
        assert payment.status == PaymentStatus.FAILED
        assert payment.subscription.status == SubscriptionStatus.EXPIRED
        assert db.query(Invoice).count() == 0

    def test_pending_status(self, client, db, owner, make_payment):
        payment = make_payment(owner)
        response = client.post(
            WEBHOOK, json={"external_id": payment.payment_token, "status": "PENDING"}, headers=TOKEN
        )
        assert response.json() == {"success": True, "message": "No action for this status"}
        db.expire_all()
        assert db.get(Payment, payment.id).status == PaymentStatus.PENDING

    def test_unknown_payment(self, client, db):
        response = client.post(
            WEBHOOK, json={"external_id": "PAYMENT-does-not-exist", "status": "PAID"}, headers=TOKEN
        )
        assert response.status_code == 200
        assert response.json() == {"success": True, "message": "Payment not found, skipped"}
