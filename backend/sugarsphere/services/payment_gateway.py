# Overview: Client for the external payment gateway (Razorpay-compatible REST API).

"""
Payment Gateway Client

The gateway is an opaque collaborator. This module exposes the only
operations the order flow needs:

- create_charge_intent: ask the gateway for an order/intent id for an amount
- verify_payment_signature: recompute the checkout signature locally
- verify_webhook_signature: authenticate an inbound webhook body

Refunds are issued from the gateway dashboard and arrive as webhooks.

Signatures are HMAC-SHA256 hex digests compared in constant time:
- checkout:  HMAC(key_secret,     "<intent_id>|<payment_id>")
- webhook:   HMAC(webhook_secret, raw request body)
"""

from __future__ import annotations

import hashlib
import hmac
from typing import Any

import httpx
from flask import Flask, current_app

from ..errors import UpstreamError


class PaymentGatewayError(UpstreamError):
    """Gateway unreachable (500) or rejected the request (400)."""


def compute_signature(secret: str, payload: bytes) -> str:
    return hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()


def signatures_match(expected: str, supplied: str | None) -> bool:
    if not supplied:
        return False
    return hmac.compare_digest(expected.encode("utf-8"), supplied.encode("utf-8"))


class PaymentGateway:
    def __init__(
        self,
        *,
        key_id: str,
        key_secret: str,
        webhook_secret: str = "",
        base_url: str = "https://api.razorpay.com/v1",
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self.key_id = key_id
        self.key_secret = key_secret
        self.webhook_secret = webhook_secret
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_config(cls, config) -> "PaymentGateway":
        return cls(
            key_id=config.get("GATEWAY_KEY_ID", ""),
            key_secret=config.get("GATEWAY_KEY_SECRET", ""),
            webhook_secret=config.get("GATEWAY_WEBHOOK_SECRET", ""),
            base_url=config.get("GATEWAY_BASE_URL", "https://api.razorpay.com/v1"),
            timeout=config.get("GATEWAY_TIMEOUT_SECONDS", 10.0),
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.key_id and self.key_secret)

    @property
    def webhook_secret_configured(self) -> bool:
        return bool(self.webhook_secret)

    def _client(self) -> httpx.Client:
        return httpx.Client(
            base_url=self.base_url,
            auth=(self.key_id, self.key_secret),
            timeout=self.timeout,
            transport=self._transport,
        )

    def _request(self, method: str, path: str, *, json: dict | None = None) -> dict[str, Any]:
        if not self.is_configured:
            raise PaymentGatewayError("Payment gateway is not configured", 500)

        try:
            with self._client() as client:
                response = client.request(method, path, json=json)
        except httpx.HTTPError as exc:
            current_app.logger.error("Payment gateway unreachable: %s %s (%s)", method, path, exc)
            raise PaymentGatewayError("Payment gateway unavailable", 500) from exc

        if response.status_code >= 400:
            description = _error_description(response)
            current_app.logger.warning(
                "Payment gateway rejected %s %s: status=%s description=%s",
                method, path, response.status_code, description,
            )
            status = 400 if response.status_code < 500 else 500
            raise PaymentGatewayError(f"Payment gateway error: {description}", status)

        return response.json()

    def create_charge_intent(
        self,
        *,
        amount_cents: int,
        currency: str,
        receipt: str,
        notes: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        """Returns the gateway order object; its "id" is the charge intent id."""
        intent = self._request("POST", "/orders", json={
            "amount": amount_cents,
            "currency": currency,
            "receipt": receipt,
            "notes": notes or {},
        })
        current_app.logger.info("Charge intent created: id=%s amount=%s", intent.get("id"), amount_cents)
        return intent

    def verify_payment_signature(self, intent_id: str, payment_id: str, signature: str | None) -> bool:
        if not self.key_secret:
            return False
        expected = compute_signature(self.key_secret, f"{intent_id}|{payment_id}".encode("utf-8"))
        return signatures_match(expected, signature)

    def verify_webhook_signature(self, body: bytes, signature: str | None) -> bool:
        if not self.webhook_secret:
            return False
        return signatures_match(compute_signature(self.webhook_secret, body), signature)


def _error_description(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text[:200] or response.reason_phrase
    error = payload.get("error") if isinstance(payload, dict) else None
    if isinstance(error, dict) and error.get("description"):
        return str(error["description"])
    return response.reason_phrase


def init_gateway(app: Flask) -> None:
    app.extensions["payment_gateway"] = PaymentGateway.from_config(app.config)


def get_gateway() -> PaymentGateway:
    return current_app.extensions["payment_gateway"]
