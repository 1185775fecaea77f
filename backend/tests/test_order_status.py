"""
Admin order status tests.

Verifies:
- Fulfilment moves forward only and terminal states stay terminal
- Every status change notifies the buyer exactly once
- Marking a created order paid takes stock like a real capture
"""

import pytest

from conftest import create_order, verify_order
from sugarsphere.extensions import db
from sugarsphere.models import InventoryTransaction, Notification, Order, Product
from sugarsphere.services.order_state import can_transition


def _set_status(order_id, status):
    order = db.session.get(Order, order_id)
    order.status = status
    db.session.commit()


def _status_path(order_id):
    return f"/api/orders/admin/{order_id}/status"


@pytest.fixture
def paid_order(client, buyer_headers, make_product):
    product = make_product(quantity=50)
    data = create_order(client, buyer_headers, [{"productId": product.id, "quantity": 1}])
    assert verify_order(client, buyer_headers, data).status_code == 200
    return data


# =============================================================================
# TRANSITION RULES
# =============================================================================


class TestTransitionRules:

    @pytest.mark.parametrize("current,target", [
        ("created", "paid"),
        ("created", "failed"),
        ("created", "cancelled"),
        ("paid", "processing"),
        ("paid", "shipped"),
        ("processing", "shipped"),
        ("shipped", "delivered"),
        ("paid", "refunded"),
        ("delivered", "refunded"),
    ])
    def test_allowed(self, current, target):
        assert can_transition(current, target)

    @pytest.mark.parametrize("current,target", [
        ("paid", "paid"),
        ("paid", "created"),
        ("shipped", "processing"),
        ("delivered", "shipped"),
        ("paid", "cancelled"),
        ("cancelled", "paid"),
        ("failed", "paid"),
        ("refunded", "paid"),
        ("created", "shipped"),
        ("created", "refunded"),
    ])
    def test_rejected(self, current, target):
        assert not can_transition(current, target)


# =============================================================================
# ADMIN ENDPOINT
# =============================================================================


class TestAdminStatusUpdate:

    def test_requires_admin(self, client, buyer_headers, paid_order):
        resp = client.put(_status_path(paid_order["orderId"]), json={"status": "shipped"}, headers=buyer_headers)
        assert resp.status_code == 403

    def test_paid_to_shipped_notifies_buyer_once(self, client, buyer, admin_headers, paid_order, outbox):
        order_id = paid_order["orderId"]
        before = db.session.query(Notification).filter_by(user_id=buyer.id).count()
        outbox.clear()

        resp = client.put(_status_path(order_id), json={"status": "shipped"}, headers=admin_headers)
        assert resp.status_code == 200
        assert resp.get_json()["data"]["status"] == "shipped"

        db.session.expire_all()
        assert db.session.get(Order, order_id).status == "shipped"

        added = (
            db.session.query(Notification)
            .filter_by(user_id=buyer.id)
            .order_by(Notification.id.asc())
            .all()[before:]
        )
        assert len(added) == 1
        assert added[0].type == "order"
        assert added[0].title == "Order Status Updated"
        assert added[0].message == f"Your order #{order_id} status changed to: shipped"

        assert len(outbox) == 1
        assert outbox[0]["Subject"] == f"Order #{order_id} is now shipped"
        assert "Your order has been shipped and is on its way!" in outbox[0].get_content()

    def test_walks_the_fulfilment_chain(self, client, admin_headers, paid_order):
        order_id = paid_order["orderId"]
        for status in ("processing", "shipped", "delivered"):
            resp = client.put(_status_path(order_id), json={"status": status}, headers=admin_headers)
            assert resp.status_code == 200, resp.get_json()

        db.session.expire_all()
        assert db.session.get(Order, order_id).status == "delivered"

    @pytest.mark.parametrize("current,target", [
        ("delivered", "processing"),
        ("shipped", "paid"),
        ("cancelled", "paid"),
        ("failed", "processing"),
        ("paid", "cancelled"),
    ])
    def test_illegal_transition_changes_nothing(self, client, buyer, admin_headers, paid_order, current, target):
        order_id = paid_order["orderId"]
        _set_status(order_id, current)
        before = db.session.query(Notification).filter_by(user_id=buyer.id).count()

        resp = client.put(_status_path(order_id), json={"status": target}, headers=admin_headers)
        assert resp.status_code == 400
        assert resp.get_json()["message"] == f"Cannot change order status from {current} to {target}"

        db.session.expire_all()
        assert db.session.get(Order, order_id).status == current
        assert db.session.query(Notification).filter_by(user_id=buyer.id).count() == before

    @pytest.mark.parametrize("status", ["refunded", "created", "failed", "teleported", 7, None])
    def test_rejects_unknown_or_reserved_status(self, client, admin_headers, paid_order, status):
        resp = client.put(_status_path(paid_order["orderId"]), json={"status": status}, headers=admin_headers)
        assert resp.status_code == 400
        assert resp.get_json()["message"] == "Invalid status"

    def test_missing_order(self, client, admin_headers):
        resp = client.put(_status_path(424242), json={"status": "shipped"}, headers=admin_headers)
        assert resp.status_code == 404
        assert resp.get_json()["message"] == "Order not found"

    def test_admin_can_cancel_created_order(self, client, buyer_headers, admin_headers, make_product):
        product = make_product()
        data = create_order(client, buyer_headers, [{"productId": product.id, "quantity": 1}])

        resp = client.put(_status_path(data["orderId"]), json={"status": "cancelled"}, headers=admin_headers)
        assert resp.status_code == 200
        assert resp.get_json()["data"]["status"] == "cancelled"


class TestManualCapture:

    def test_created_to_paid_takes_stock(self, client, buyer, buyer_headers, admin_headers, make_product):
        product = make_product("Barfi", quantity=30)
        data = create_order(client, buyer_headers, [{"productId": product.id, "quantity": 4}])

        resp = client.put(_status_path(data["orderId"]), json={"status": "paid"}, headers=admin_headers)
        assert resp.status_code == 200
        assert resp.get_json()["data"]["status"] == "paid"

        db.session.expire_all()
        assert db.session.get(Product, product.id).quantity == 26
        entries = db.session.query(InventoryTransaction).filter_by(order_id=data["orderId"]).all()
        assert [e.quantity_change for e in entries] == [-4]

        buyer_notes = db.session.query(Notification).filter_by(user_id=buyer.id).all()
        assert [n.title for n in buyer_notes] == ["Order Confirmed"]

    def test_created_to_paid_without_stock_fails_cleanly(self, client, buyer_headers, admin_headers, make_product):
        product = make_product("Peda", quantity=2)
        data = create_order(client, buyer_headers, [{"productId": product.id, "quantity": 2}])
        product.quantity = 1
        db.session.commit()

        resp = client.put(_status_path(data["orderId"]), json={"status": "paid"}, headers=admin_headers)
        assert resp.status_code == 400
        assert resp.get_json()["message"] == "Insufficient stock for Peda"

        db.session.expire_all()
        assert db.session.get(Order, data["orderId"]).status == "created"
        assert db.session.get(Product, product.id).quantity == 1
