# Overview: Service-layer operations for orders; creation, payment capture, and status changes.

"""
Order Flow

Orders are created against a gateway charge intent with no stock reserved.
Stock only moves when a payment is captured, which happens from exactly
three places:

- verify_payment: the buyer returns from checkout with a signed payment id
- webhook payment.captured: the gateway tells us directly
- update_status created -> paid: an admin records a manual capture

All three run _capture(), one database transaction that claims the order
(created -> paid), decrements every line with a conditional UPDATE, writes
the ledger and notifications, and commits. Any failure rolls the whole
attempt back and the order stays created.

Side effects that leave the process (socket pushes, email) run only after
the commit and never fail the caller.

Status changes use a compare-and-set UPDATE on the current status so two
requests cannot both move the same order.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field

from flask import current_app

from ..errors import ConflictError, InsufficientStockError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Notification, Order, OrderItem, Product, User
from ..models.notifications import NOTIFICATION_INVENTORY, NOTIFICATION_ORDER
from ..responses import paginate
from .. import sockets
from . import email_service, inventory_service, notification_service
from .concurrency import atomic, run_with_retry
from .order_state import (
    ADMIN_SETTABLE_STATUSES,
    ALL_STATUSES,
    CANCELLED,
    COMPLETED_STATUSES,
    CREATED,
    FAILED,
    PAID,
    REFUNDED,
    can_transition,
    status_message,
)
from .payment_gateway import get_gateway
from ..validation import parse_order_items

RECENT_ORDERS_LIMIT = 50
ADMIN_ORDERS_LIMIT = 100


@dataclass
class CaptureOutcome:
    order: Order
    notifications: list[Notification] = field(default_factory=list)
    low_stock: list[dict] = field(default_factory=list)


# =============================================================================
# CREATION
# =============================================================================

def create_order(user: User, raw_items) -> Order:
    """
    Price the cart from the live catalogue and open a charge intent.

    Raises ValidationError for malformed input or unavailable products,
    InsufficientStockError when a line asks for more than is on hand, and
    UpstreamError if the gateway fails (nothing is persisted in that case).
    """
    requested = parse_order_items(raw_items)
    product_ids = [product_id for product_id, _ in requested]

    products = {
        product.id: product
        for product in db.session.query(Product).filter(
            Product.id.in_(product_ids),
            Product.is_active.is_(True),
        ).all()
    }
    if len(products) != len(product_ids):
        raise ValidationError("Some products are not available")

    lines = []
    total_cents = 0
    for product_id, quantity in requested:
        product = products[product_id]
        if product.quantity < quantity:
            raise InsufficientStockError(product.name)

        subtotal = product.price_cents * quantity
        lines.append(OrderItem(
            product_id=product.id,
            name=product.name,
            unit_price_cents=product.price_cents,
            quantity=quantity,
            subtotal_cents=subtotal,
        ))
        total_cents += subtotal

    currency = current_app.config["ORDER_CURRENCY"]
    intent = get_gateway().create_charge_intent(
        amount_cents=total_cents,
        currency=currency,
        receipt=f"order_{int(time.time() * 1000)}",
        notes={"userId": str(user.id)},
    )

    order = Order(
        user_id=user.id,
        status=CREATED,
        total_amount_cents=total_cents,
        currency=currency,
        charge_intent_id=intent["id"],
        items=lines,
    )
    db.session.add(order)
    db.session.commit()

    current_app.logger.info(
        "Order created: id=%s user=%s total=%s intent=%s",
        order.id, user.id, total_cents, order.charge_intent_id,
    )
    sockets.push_to_admins("order:new", {
        "orderId": order.id,
        "userId": user.id,
        "userName": user.name,
        "totalAmountCents": order.total_amount_cents,
        "currency": order.currency,
        "itemCount": len(lines),
    })
    return order


# =============================================================================
# PAYMENT CAPTURE
# =============================================================================

def _transition(order: Order, target: str, *, conflict_message: str | None = None, **values) -> None:
    """
    Compare-and-set the status. Raises ConflictError if the move is illegal
    or another request changed the order first. Caller commits.
    """
    current = order.status
    if not can_transition(current, target):
        raise ConflictError(conflict_message or f"Cannot change order status from {current} to {target}")

    matched = db.session.query(Order).filter(
        Order.id == order.id,
        Order.status == current,
    ).update({"status": target, **values}, synchronize_session="evaluate")
    if matched != 1:
        raise ConflictError(conflict_message or "Order was modified by another request")


def _apply_capture(order: Order, *, payment_id: str | None, signature: str | None) -> CaptureOutcome:
    """Stock commit for one order. Runs inside the caller's transaction."""
    _transition(
        order,
        PAID,
        conflict_message="Order already processed",
        payment_id=payment_id,
        payment_signature=signature,
    )

    threshold = current_app.config["LOW_STOCK_THRESHOLD"]
    outcome = CaptureOutcome(order=order)

    for item in order.items:
        remaining = inventory_service.decrement_stock(
            item.product_id, item.quantity, product_name=item.name
        )
        inventory_service.record_purchase(
            item.product_id, item.quantity, user_id=order.user_id, order_id=order.id
        )

        if inventory_service.is_low_stock(remaining, threshold):
            outcome.low_stock.append({
                "productId": item.product_id,
                "name": item.name,
                "quantity": remaining,
            })
            outcome.notifications.extend(notification_service.notify_admins(
                NOTIFICATION_INVENTORY,
                "Low Stock Alert",
                f"{item.name} is running low ({remaining} left)",
                commit=False,
            ))

    outcome.notifications.append(notification_service.create_notification(
        order.user_id,
        NOTIFICATION_ORDER,
        "Order Confirmed",
        f"Your order #{order.id} has been confirmed!",
        commit=False,
    ))
    return outcome


def capture_payment(order_id: int, *, payment_id: str | None, signature: str | None = None) -> CaptureOutcome:
    """
    Move a created order to paid and take its stock, all or nothing.

    Raises ConflictError("Order already processed") if the order left
    created, InsufficientStockError if any line cannot be covered.
    """
    def _op():
        with atomic():
            order = db.session.get(Order, order_id)
            if not order:
                raise NotFoundError("Order not found")
            return _apply_capture(order, payment_id=payment_id, signature=signature)

    outcome = run_with_retry(_op)
    current_app.logger.info("Payment captured: order=%s payment=%s", order_id, payment_id)

    _announce_capture(outcome)
    return outcome


def _announce_capture(outcome: CaptureOutcome) -> None:
    notification_service.push_notifications(outcome.notifications)

    for entry in outcome.low_stock:
        current_app.logger.warning(
            "Low stock: product=%s quantity=%s", entry["productId"], entry["quantity"]
        )
        sockets.push_to_admins("inventory:lowStock", entry)

    order = outcome.order
    buyer = order.user
    if buyer is not None:
        email_service.send_invoice_email(buyer.email, buyer.name, order)


def verify_payment(user: User, order_id: int, payment_id: str, signature: str) -> Order:
    """
    Check the checkout signature for the caller's order and capture it.

    A bad signature marks the order failed (committed) before the error is
    raised; stock is untouched.
    """
    order = db.session.query(Order).filter_by(id=order_id, user_id=user.id).first()
    if not order:
        raise NotFoundError("Order not found")
    if order.status != CREATED:
        raise ConflictError("Order already processed")

    if not get_gateway().verify_payment_signature(order.charge_intent_id, payment_id, signature):
        _transition(order, FAILED, conflict_message="Order already processed")
        db.session.commit()
        current_app.logger.warning("Payment verification failed: order=%s", order.id)
        raise ValidationError("Payment verification failed")

    try:
        outcome = capture_payment(order.id, payment_id=payment_id, signature=signature)
    except InsufficientStockError:
        current_app.logger.warning("Capture rejected for insufficient stock: order=%s", order.id)
        raise

    current_app.logger.info("Payment verified: order=%s", order.id)
    return outcome.order


# =============================================================================
# STATUS CHANGES
# =============================================================================

def _announce_status(order: Order, status: str) -> None:
    message = status_message(status)
    sockets.push_to_account(order.user_id, "order-status-update", {
        "orderId": order.id,
        "status": status,
        "message": message,
    })
    buyer = order.user
    if buyer is not None:
        email_service.send_order_status_email(buyer.email, buyer.name, order.id, status, message)


def update_status(order_id: int, status: str) -> Order:
    """Admin status change. created -> paid runs the full capture."""
    if status not in ADMIN_SETTABLE_STATUSES:
        raise ValidationError("Invalid status")

    order = db.session.get(Order, order_id)
    if not order:
        raise NotFoundError("Order not found")

    if not can_transition(order.status, status):
        raise ConflictError(f"Cannot change order status from {order.status} to {status}")

    if order.status == CREATED and status == PAID:
        outcome = capture_payment(order.id, payment_id=order.payment_id)
        order = outcome.order
    else:
        _transition(order, status)
        notification = notification_service.create_notification(
            order.user_id,
            NOTIFICATION_ORDER,
            "Order Status Updated",
            f"Your order #{order.id} status changed to: {status}",
            commit=False,
        )
        db.session.commit()
        notification_service.push_notifications([notification])

    current_app.logger.info("Order status updated: order=%s status=%s", order.id, status)
    _announce_status(order, status)
    return order


def cancel_order(user: User, order_id: int) -> Order:
    order = get_order(user, order_id)
    if order.status != CREATED:
        raise ConflictError("Only pending orders can be cancelled")

    _transition(order, CANCELLED, conflict_message="Only pending orders can be cancelled")
    db.session.commit()
    current_app.logger.info("Order cancelled: order=%s by user=%s", order.id, user.id)
    return order


def mark_failed_by_gateway(order: Order) -> bool:
    """payment.failed callback. Returns False when the order already moved on."""
    if order.status != CREATED:
        return False

    _transition(order, FAILED, conflict_message="Order already processed")
    notification = notification_service.create_notification(
        order.user_id,
        NOTIFICATION_ORDER,
        "Payment Failed",
        f"Payment for your order #{order.id} could not be completed.",
        commit=False,
    )
    db.session.commit()
    notification_service.push_notifications([notification])
    _announce_status(order, FAILED)
    return True


def mark_refunded_by_gateway(order: Order) -> bool:
    """refund.created callback. Returns False unless the order was paid or later."""
    if order.status not in COMPLETED_STATUSES:
        return False

    _transition(order, REFUNDED)
    notification = notification_service.create_notification(
        order.user_id,
        NOTIFICATION_ORDER,
        "Order Refunded",
        f"Your payment for order #{order.id} has been refunded.",
        commit=False,
    )
    db.session.commit()
    notification_service.push_notifications([notification])
    _announce_status(order, REFUNDED)
    return True


# =============================================================================
# QUERIES
# =============================================================================

def _newest_first(query):
    return query.order_by(Order.created_at.desc(), Order.id.desc())


def get_order(user: User, order_id: int) -> Order:
    """Owner or admin. Anyone else gets the same 404 as a missing order."""
    query = db.session.query(Order).filter(Order.id == order_id)
    if not user.is_admin:
        query = query.filter(Order.user_id == user.id)
    order = query.first()
    if not order:
        raise NotFoundError("Order not found")
    return order


def list_my_orders(user: User, *, page: int, limit: int, status: str | None = None):
    query = db.session.query(Order).filter(Order.user_id == user.id)
    if status:
        if status not in ALL_STATUSES:
            raise ValidationError("Invalid status")
        query = query.filter(Order.status == status)
    return paginate(_newest_first(query), page=page, limit=limit)


def list_recent_orders(user: User, limit: int = RECENT_ORDERS_LIMIT) -> list[Order]:
    query = db.session.query(Order)
    if not user.is_admin:
        query = query.filter(Order.user_id == user.id)
    return _newest_first(query).limit(limit).all()


def list_all_orders(limit: int = ADMIN_ORDERS_LIMIT) -> list[Order]:
    return _newest_first(db.session.query(Order)).limit(limit).all()


def find_by_charge_intent(intent_id: str | None) -> Order | None:
    if not intent_id:
        return None
    return db.session.query(Order).filter_by(charge_intent_id=intent_id).first()


def find_by_payment_id(payment_id: str | None) -> Order | None:
    if not payment_id:
        return None
    return db.session.query(Order).filter_by(payment_id=payment_id).first()
