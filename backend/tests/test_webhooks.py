"""
Payment gateway webhook tests.

Verifies:
- Signature enforcement on the raw body
- payment.captured commits stock exactly once, however often it is replayed
- payment.failed and refund.created move only orders in the expected state
- Unknown events are acknowledged without side effects
"""

import json

import pytest

from conftest import create_order, verify_order, webhook_body, webhook_headers
from sugarsphere.extensions import db
from sugarsphere.models import InventoryTransaction, Notification, Order, Product

WEBHOOK_PATH = "/api/webhooks/gateway"


def _post(client, body, headers=None):
    if headers is None:
        headers = webhook_headers(body)
    return client.post(WEBHOOK_PATH, data=body, headers=headers)


def _captured(order_data, payment_id="pay_hook_1"):
    return webhook_body("payment.captured", "payment", {
        "id": payment_id,
        "order_id": order_data["chargeIntentId"],
        "status": "captured",
        "amount": order_data["amount"],
    })


def _reload(model, ident):
    db.session.expire_all()
    return db.session.get(model, ident)


@pytest.fixture
def pending(client, buyer_headers, make_product):
    product = make_product("Soan Papdi", quantity=20)
    data = create_order(client, buyer_headers, [{"productId": product.id, "quantity": 2}])
    data["productId"] = product.id
    return data


# =============================================================================
# SIGNATURES
# =============================================================================


class TestWebhookSignature:

    def test_invalid_signature_rejected(self, client, pending):
        body = _captured(pending)
        resp = _post(client, body, webhook_headers(body, secret="not-the-secret"))

        assert resp.status_code == 400
        assert resp.get_json() == {"success": False, "message": "Invalid webhook signature"}
        assert _reload(Order, pending["orderId"]).status == "created"

    def test_missing_signature_rejected(self, client, pending):
        resp = _post(client, _captured(pending), {"Content-Type": "application/json"})
        assert resp.status_code == 400

    def test_signature_covers_exact_bytes(self, client, pending):
        body = _captured(pending)
        headers = webhook_headers(body)
        tampered = body.replace(b'"captured"', b'"captured" ')

        assert _post(client, tampered, headers).status_code == 400
        assert _reload(Product, pending["productId"]).quantity == 20

    def test_unconfigured_secret_refuses(self, client, gateway, pending):
        gateway.webhook_secret = ""
        body = _captured(pending)

        resp = _post(client, body, {"Content-Type": "application/json"})
        assert resp.status_code == 500
        assert resp.get_json()["message"] == "Webhook signature verification is not configured"
        assert _reload(Order, pending["orderId"]).status == "created"

    def test_unsigned_allowed_when_enabled(self, app, client, gateway, monkeypatch, pending):
        gateway.webhook_secret = ""
        monkeypatch.setitem(app.config, "WEBHOOK_ALLOW_UNSIGNED", True)

        resp = _post(client, _captured(pending), {"Content-Type": "application/json"})
        assert resp.status_code == 200
        assert resp.get_json()["data"] == {"received": True, "applied": True}


# =============================================================================
# EVENTS
# =============================================================================


class TestPaymentCaptured:

    def test_applies_once_across_replays(self, client, buyer, pending):
        body = _captured(pending)

        first = _post(client, body)
        assert first.status_code == 200
        assert first.get_json()["data"] == {"received": True, "applied": True}

        for _ in range(2):
            replay = _post(client, body)
            assert replay.status_code == 200
            assert replay.get_json()["data"] == {"received": True, "applied": False}

        order = _reload(Order, pending["orderId"])
        assert order.status == "paid"
        assert order.payment_id == "pay_hook_1"
        assert _reload(Product, pending["productId"]).quantity == 18
        assert db.session.query(InventoryTransaction).count() == 1
        assert db.session.query(Notification).filter_by(user_id=buyer.id, title="Order Confirmed").count() == 1

    def test_after_verify_is_a_no_op(self, client, buyer_headers, pending):
        assert verify_order(client, buyer_headers, pending).status_code == 200

        resp = _post(client, _captured(pending))
        assert resp.get_json()["data"]["applied"] is False
        assert _reload(Product, pending["productId"]).quantity == 18

    def test_verify_after_webhook_is_rejected(self, client, buyer_headers, pending):
        assert _post(client, _captured(pending)).get_json()["data"]["applied"] is True

        resp = verify_order(client, buyer_headers, pending)
        assert resp.status_code == 400
        assert resp.get_json()["message"] == "Order already processed"
        assert _reload(Product, pending["productId"]).quantity == 18

    def test_unknown_intent_ignored(self, client, pending):
        body = webhook_body("payment.captured", "payment", {"id": "pay_x", "order_id": "order_unknown"})
        resp = _post(client, body)
        assert resp.status_code == 200
        assert resp.get_json()["data"]["applied"] is False

    def test_insufficient_stock_is_acknowledged_not_applied(self, client, pending):
        product = _reload(Product, pending["productId"])
        product.quantity = 1
        db.session.commit()

        resp = _post(client, _captured(pending))
        assert resp.status_code == 200
        assert resp.get_json()["data"]["applied"] is False

        assert _reload(Order, pending["orderId"]).status == "created"
        assert _reload(Product, pending["productId"]).quantity == 1
        assert db.session.query(InventoryTransaction).count() == 0

    def test_malformed_payload(self, client):
        body = json.dumps({"event": "payment.captured", "payload": {}}).encode()
        resp = _post(client, body)
        assert resp.status_code == 400
        assert resp.get_json()["message"] == "payload.payment.entity is required"

    @pytest.mark.parametrize("event, kind, entity, message", [
        ("payment.captured", "payment", {"id": "pay_1", "order_id": {"$ne": None}},
         "payload.payment.entity.order_id must be a string"),
        ("payment.captured", "payment", {"id": ["pay_1"], "order_id": "order_x"},
         "payload.payment.entity.id must be a string"),
        ("payment.failed", "payment", {"id": "pay_1", "order_id": 42},
         "payload.payment.entity.order_id must be a string"),
        ("refund.created", "refund", {"id": "rfnd_1", "payment_id": {"id": "pay_1"}},
         "payload.refund.entity.payment_id must be a string"),
    ])
    def test_non_string_ids_rejected(self, client, event, kind, entity, message):
        resp = _post(client, webhook_body(event, kind, entity))
        assert resp.status_code == 400
        assert resp.get_json() == {"success": False, "message": message}


class TestPaymentFailed:

    def test_marks_created_order_failed(self, client, buyer, pending):
        body = webhook_body("payment.failed", "payment", {
            "id": "pay_bad", "order_id": pending["chargeIntentId"], "status": "failed",
        })
        resp = _post(client, body)
        assert resp.get_json()["data"]["applied"] is True

        assert _reload(Order, pending["orderId"]).status == "failed"
        assert _reload(Product, pending["productId"]).quantity == 20
        titles = [n.title for n in db.session.query(Notification).filter_by(user_id=buyer.id)]
        assert titles == ["Payment Failed"]

        assert _post(client, body).get_json()["data"]["applied"] is False

    def test_does_not_touch_paid_order(self, client, buyer_headers, pending):
        verify_order(client, buyer_headers, pending)
        body = webhook_body("payment.failed", "payment", {"id": "pay_bad", "order_id": pending["chargeIntentId"]})

        assert _post(client, body).get_json()["data"]["applied"] is False
        assert _reload(Order, pending["orderId"]).status == "paid"


class TestRefundCreated:

    def test_refunds_paid_order(self, client, buyer, buyer_headers, pending):
        verify_order(client, buyer_headers, pending, payment_id="pay_refund_me")
        body = webhook_body("refund.created", "refund", {"id": "rfnd_1", "payment_id": "pay_refund_me"})

        resp = _post(client, body)
        assert resp.get_json()["data"]["applied"] is True
        assert _reload(Order, pending["orderId"]).status == "refunded"
        assert db.session.query(Notification).filter_by(user_id=buyer.id, title="Order Refunded").count() == 1

        assert _post(client, body).get_json()["data"]["applied"] is False

    def test_ignores_unknown_payment(self, client, pending):
        body = webhook_body("refund.created", "refund", {"id": "rfnd_2", "payment_id": "pay_nobody"})
        assert _post(client, body).get_json()["data"]["applied"] is False
        assert _reload(Order, pending["orderId"]).status == "created"


class TestUnknownEvent:

    def test_acknowledged_without_changes(self, client, pending):
        body = json.dumps({"event": "subscription.charged", "payload": {}}).encode()
        resp = _post(client, body)

        assert resp.status_code == 200
        assert resp.get_json()["data"] == {"received": True, "applied": False}
        assert _reload(Order, pending["orderId"]).status == "created"
