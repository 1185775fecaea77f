"""
Transactional email tests. SMTP is replaced by the outbox fixture.
"""

import pytest

from sugarsphere.models import Order, OrderItem
from sugarsphere.services import email_service


def _order(order_id=42, payment_id="pay_XYZ"):
    return Order(
        id=order_id,
        status="paid",
        total_amount_cents=59800,
        currency="INR",
        payment_id=payment_id,
        items=[
            OrderItem(product_id=1, name="Kaju Katli", unit_price_cents=29900, quantity=2, subtotal_cents=59800),
        ],
    )


@pytest.mark.parametrize("cents,expected", [
    (0, "INR 0.00"),
    (4900, "INR 49.00"),
    (123456789, "INR 1,234,567.89"),
])
def test_format_amount(cents, expected):
    assert email_service.format_amount(cents, "INR") == expected


def test_invoice_lists_lines_and_total(app, outbox):
    email_service.send_invoice_email("buyer@example.com", "Bella", _order())

    assert len(outbox) == 1
    message = outbox[0]
    assert message["To"] == "buyer@example.com"
    assert message["Subject"] == "Your SugarSphere invoice for order #42"

    body = message.get_content()
    assert "Kaju Katli x 2 @ INR 299.00 = INR 598.00" in body
    assert "Total: INR 598.00" in body
    assert "Payment reference: pay_XYZ" in body


def test_status_email(app, outbox):
    email_service.send_order_status_email("buyer@example.com", "Bella", 7, "delivered", "Enjoy!")
    assert outbox[0]["Subject"] == "Order #7 is now delivered"
    assert "Enjoy!" in outbox[0].get_content()


def test_suppressed_sends_nothing(app, outbox, monkeypatch):
    monkeypatch.setitem(app.config, "MAIL_SUPPRESS_SEND", True)
    email_service.send_email("buyer@example.com", "Hello", "Body")
    assert outbox == []


def test_no_server_sends_nothing(app, outbox, monkeypatch):
    monkeypatch.setitem(app.config, "MAIL_SERVER", "")
    email_service.send_email("buyer@example.com", "Hello", "Body")
    assert outbox == []


def test_delivery_failure_never_raises(app, monkeypatch):
    def broken(app, message):
        raise OSError("SMTP down")

    monkeypatch.setattr(email_service, "_deliver", broken)
    email_service.send_email("buyer@example.com", "Hello", "Body")
