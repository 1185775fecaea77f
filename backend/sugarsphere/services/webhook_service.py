# Overview: Authenticates and applies payment gateway webhook events.

"""
Webhook Intake

Events are replayed by the gateway, so every handler is idempotent: it only
acts when the order is in the state the event expects and otherwise reports
applied=False.

SECURITY:
- The raw body must carry a valid X-Razorpay-Signature
  (HMAC-SHA256 with GATEWAY_WEBHOOK_SECRET)
- With no webhook secret configured every call is refused, unless
  WEBHOOK_ALLOW_UNSIGNED is set for local development
"""

from __future__ import annotations

from flask import current_app

from ..errors import AppError, ConflictError, InsufficientStockError, ValidationError
from . import order_service
from .order_state import CREATED
from .payment_gateway import get_gateway

EVENT_PAYMENT_CAPTURED = "payment.captured"
EVENT_PAYMENT_FAILED = "payment.failed"
EVENT_REFUND_CREATED = "refund.created"


def authenticate(body: bytes, signature: str | None) -> None:
    gateway = get_gateway()

    if not gateway.webhook_secret_configured:
        if current_app.config.get("WEBHOOK_ALLOW_UNSIGNED"):
            current_app.logger.warning("Accepting unsigned webhook: GATEWAY_WEBHOOK_SECRET is not set")
            return
        raise AppError("Webhook signature verification is not configured", 500)

    if not gateway.verify_webhook_signature(body, signature):
        current_app.logger.warning("Rejected webhook with invalid signature")
        raise ValidationError("Invalid webhook signature")


def _entity(payload, kind: str) -> dict:
    try:
        entity = payload[kind]["entity"]
    except (KeyError, TypeError):
        raise ValidationError(f"payload.{kind}.entity is required")
    if not isinstance(entity, dict):
        raise ValidationError(f"payload.{kind}.entity is required")
    return entity


def _id_field(entity: dict, kind: str, key: str) -> str | None:
    """Gateway ids are strings; an absent id just means nothing matches."""
    value = entity.get(key)
    if value is not None and not isinstance(value, str):
        raise ValidationError(f"payload.{kind}.entity.{key} must be a string")
    return value


def _handle_payment_captured(payload) -> bool:
    payment = _entity(payload, "payment")
    payment_id = _id_field(payment, "payment", "id")
    order = order_service.find_by_charge_intent(_id_field(payment, "payment", "order_id"))
    if not order or order.status != CREATED:
        return False

    try:
        order_service.capture_payment(order.id, payment_id=payment_id)
    except InsufficientStockError as exc:
        current_app.logger.error(
            "Captured payment %s for order %s cannot be fulfilled: %s",
            payment_id, order.id, exc.message,
        )
        return False
    except ConflictError:
        # a concurrent verify got there first
        return False
    return True


def _handle_payment_failed(payload) -> bool:
    payment = _entity(payload, "payment")
    order = order_service.find_by_charge_intent(_id_field(payment, "payment", "order_id"))
    if not order:
        return False
    try:
        return order_service.mark_failed_by_gateway(order)
    except ConflictError:
        return False


def _handle_refund_created(payload) -> bool:
    refund = _entity(payload, "refund")
    order = order_service.find_by_payment_id(_id_field(refund, "refund", "payment_id"))
    if not order:
        return False
    try:
        return order_service.mark_refunded_by_gateway(order)
    except ConflictError:
        return False


HANDLERS = {
    EVENT_PAYMENT_CAPTURED: _handle_payment_captured,
    EVENT_PAYMENT_FAILED: _handle_payment_failed,
    EVENT_REFUND_CREATED: _handle_refund_created,
}


def handle_event(event: dict) -> bool:
    """Apply one event. Returns whether any state changed."""
    if not isinstance(event, dict):
        raise ValidationError("Invalid JSON payload")

    name = event.get("event")
    handler = HANDLERS.get(name)
    if handler is None:
        current_app.logger.info("Ignoring webhook event %r", name)
        return False

    applied = handler(event.get("payload"))
    current_app.logger.info("Webhook %s %s", name, "applied" if applied else "ignored")
    return applied
