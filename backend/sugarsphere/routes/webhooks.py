# Overview: Payment gateway webhook endpoint.

from flask import Blueprint, request

from ..services import webhook_service
from ..responses import success

webhooks_bp = Blueprint("webhooks", __name__, url_prefix="/api/webhooks")

SIGNATURE_HEADER = "X-Razorpay-Signature"


@webhooks_bp.post("/gateway")
def gateway_webhook_route():
    """
    Signature is checked against the raw body before anything is parsed.
    Known events are applied idempotently; unknown events are acknowledged.
    """
    body = request.get_data(cache=True)
    webhook_service.authenticate(body, request.headers.get(SIGNATURE_HEADER))

    applied = webhook_service.handle_event(request.get_json(silent=True))
    return success({"received": True, "applied": applied})
