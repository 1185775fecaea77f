# Overview: Flask API routes for orders operations; parses input and returns JSON responses.

"""
Order routes.

Buyers create orders, verify checkout payments, list and cancel their own
orders. Admins list every order and move orders through fulfilment.
"""

from flask import Blueprint, request, g

from ..services import order_service
from ..decorators import require_auth, require_role
from ..models.auth import ROLE_ADMIN
from ..responses import success
from ..validation import json_object, parse_int, parse_page_args, require_string, ValidationError

orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


@orders_bp.post("/create")
@require_auth
def create_order_route():
    data = json_object(request.get_json(silent=True))
    order = order_service.create_order(g.current_user, data.get("items"))

    return success(
        {
            "orderId": order.id,
            "chargeIntentId": order.charge_intent_id,
            "amount": order.total_amount_cents,
            "currency": order.currency,
            "items": [item.to_dict() for item in order.items],
        },
        message="Order created successfully",
        status=201,
    )


@orders_bp.post("/verify")
@require_auth
def verify_payment_route():
    data = json_object(request.get_json(silent=True))
    if "orderId" not in data:
        raise ValidationError("orderId is required")
    order_id = parse_int(data["orderId"], "orderId")
    payment_id = require_string(data, "paymentId", max_length=64)
    signature = require_string(data, "signature", max_length=128)

    order = order_service.verify_payment(g.current_user, order_id, payment_id, signature)
    return success(
        {"status": order.status, "order": order.to_dict()},
        message="Payment verified successfully",
    )


@orders_bp.get("/my")
@require_auth
def my_orders_route():
    page, limit = parse_page_args(request.args)
    status = request.args.get("status") or None

    orders, pagination = order_service.list_my_orders(g.current_user, page=page, limit=limit, status=status)
    return success({
        "orders": [order.to_dict() for order in orders],
        "pagination": pagination,
    })


@orders_bp.get("")
@require_auth
def list_orders_route():
    """Caller's recent orders; admins see everyone's."""
    orders = order_service.list_recent_orders(g.current_user)
    return success([order.to_dict(include_user=g.current_user.is_admin) for order in orders])


@orders_bp.get("/admin/all")
@require_auth
@require_role(ROLE_ADMIN)
def admin_all_orders_route():
    orders = order_service.list_all_orders()
    return success([order.to_dict(include_user=True) for order in orders])


@orders_bp.put("/admin/<int:order_id>/status")
@require_auth
@require_role(ROLE_ADMIN)
def admin_update_status_route(order_id: int):
    data = json_object(request.get_json(silent=True))
    status = data.get("status")
    if not isinstance(status, str):
        raise ValidationError("Invalid status")

    order = order_service.update_status(order_id, status)
    return success(order.to_dict(include_user=True), message="Order status updated successfully")


@orders_bp.get("/<int:order_id>")
@require_auth
def get_order_route(order_id: int):
    order = order_service.get_order(g.current_user, order_id)
    return success(order.to_dict(include_user=g.current_user.is_admin))


@orders_bp.post("/<int:order_id>/cancel")
@require_auth
def cancel_order_route(order_id: int):
    order = order_service.cancel_order(g.current_user, order_id)
    return success(order.to_dict(), message="Order cancelled successfully")
