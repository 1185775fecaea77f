"""
Payment gateway client tests.

Uses httpx.MockTransport, so nothing leaves the process.
"""

import json

import httpx
import pytest

from sugarsphere.services.payment_gateway import (
    PaymentGateway,
    PaymentGatewayError,
    compute_signature,
)


def _gateway(handler, **kwargs):
    options = {"key_id": "rzp_test_key", "key_secret": "shh", "webhook_secret": "hook"}
    options.update(kwargs)
    return PaymentGateway(transport=httpx.MockTransport(handler), **options)


class TestChargeIntent:

    def test_posts_order_with_basic_auth(self, app):
        seen = {}

        def handler(request):
            seen["method"] = request.method
            seen["path"] = request.url.path
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"id": "order_ABC", "amount": 200, "currency": "INR"})

        intent = _gateway(handler).create_charge_intent(
            amount_cents=200, currency="INR", receipt="order_1", notes={"userId": "7"},
        )

        assert intent["id"] == "order_ABC"
        assert seen["method"] == "POST"
        assert seen["path"] == "/v1/orders"
        assert seen["auth"].startswith("Basic ")
        assert seen["body"] == {"amount": 200, "currency": "INR", "receipt": "order_1", "notes": {"userId": "7"}}

    def test_rejection_is_a_400(self, app):
        def handler(request):
            return httpx.Response(400, json={"error": {"description": "Amount exceeds maximum"}})

        with pytest.raises(PaymentGatewayError) as exc:
            _gateway(handler).create_charge_intent(amount_cents=1, currency="INR", receipt="r")
        assert exc.value.status_code == 400
        assert exc.value.message == "Payment gateway error: Amount exceeds maximum"

    def test_upstream_outage_is_a_500(self, app):
        def handler(request):
            return httpx.Response(502, text="Bad Gateway")

        with pytest.raises(PaymentGatewayError) as exc:
            _gateway(handler).create_charge_intent(amount_cents=1, currency="INR", receipt="r")
        assert exc.value.status_code == 500

    def test_network_failure(self, app):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(PaymentGatewayError) as exc:
            _gateway(handler).create_charge_intent(amount_cents=1, currency="INR", receipt="r")
        assert exc.value.status_code == 500
        assert exc.value.message == "Payment gateway unavailable"

    def test_unconfigured(self, app):
        gateway = _gateway(lambda request: httpx.Response(200, json={}), key_id="", key_secret="")
        with pytest.raises(PaymentGatewayError) as exc:
            gateway.create_charge_intent(amount_cents=1, currency="INR", receipt="r")
        assert exc.value.message == "Payment gateway is not configured"


class TestSignatures:

    def test_checkout_signature(self):
        gateway = PaymentGateway(key_id="k", key_secret="shh")
        good = compute_signature("shh", b"order_1|pay_1")

        assert gateway.verify_payment_signature("order_1", "pay_1", good)
        assert not gateway.verify_payment_signature("order_1", "pay_2", good)
        assert not gateway.verify_payment_signature("order_1", "pay_1", good.upper())
        assert not gateway.verify_payment_signature("order_1", "pay_1", None)

    def test_checkout_signature_needs_a_secret(self):
        gateway = PaymentGateway(key_id="k", key_secret="")
        assert not gateway.verify_payment_signature("order_1", "pay_1", compute_signature("", b"order_1|pay_1"))

    def test_webhook_signature(self):
        gateway = PaymentGateway(key_id="k", key_secret="shh", webhook_secret="hook")
        body = b'{"event":"payment.captured"}'

        assert gateway.verify_webhook_signature(body, compute_signature("hook", body))
        assert not gateway.verify_webhook_signature(body + b" ", compute_signature("hook", body))
        assert not gateway.verify_webhook_signature(body, compute_signature("shh", body))
