# Overview: Outbound transactional email. Every send is best-effort.

"""
Email Service

Builds the transactional emails (verification, password reset, invoice,
order status) and delivers them over SMTP.

Delivery never raises into the caller: failures are logged and swallowed,
and nothing is retried. With MAIL_ASYNC enabled the SMTP conversation runs on
a daemon thread so the HTTP response does not wait for it. With
MAIL_SUPPRESS_SEND (or no MAIL_SERVER) messages are only logged.
"""

from __future__ import annotations

import smtplib
import threading
from email.message import EmailMessage

from flask import Flask, current_app

from ..time_utils import to_utc_z


def format_amount(amount_cents: int, currency: str) -> str:
    return f"{currency} {amount_cents / 100:,.2f}"


def _build_message(app: Flask, *, to: str, subject: str, body: str) -> EmailMessage:
    message = EmailMessage()
    message["From"] = app.config["MAIL_SENDER"]
    message["To"] = to
    message["Subject"] = subject
    message.set_content(body)
    return message


def _deliver(app: Flask, message: EmailMessage) -> None:
    """Open an SMTP connection and send. Raises on failure."""
    config = app.config
    with smtplib.SMTP(config["MAIL_SERVER"], config["MAIL_PORT"], timeout=15) as smtp:
        if config["MAIL_USE_TLS"]:
            smtp.starttls()
        if config["MAIL_USERNAME"]:
            smtp.login(config["MAIL_USERNAME"], config["MAIL_PASSWORD"])
        smtp.send_message(message)


def _send_and_log(app: Flask, message: EmailMessage) -> None:
    try:
        _deliver(app, message)
        app.logger.info("Email sent: subject=%r to=%s", message["Subject"], message["To"])
    except Exception:
        app.logger.exception("Failed to send email: subject=%r to=%s", message["Subject"], message["To"])


def send_email(to: str, subject: str, body: str) -> None:
    """Fire-and-forget send. Safe to call after the request's commit."""
    app = current_app._get_current_object()

    if app.config.get("MAIL_SUPPRESS_SEND") or not app.config.get("MAIL_SERVER"):
        app.logger.info("Email suppressed: subject=%r to=%s", subject, to)
        return

    try:
        message = _build_message(app, to=to, subject=subject, body=body)
        if app.config.get("MAIL_ASYNC", True):
            threading.Thread(target=_send_and_log, args=(app, message), daemon=True).start()
        else:
            _send_and_log(app, message)
    except Exception:
        app.logger.exception("Failed to dispatch email: subject=%r to=%s", subject, to)


def send_verification_email(to: str, name: str, token: str) -> None:
    link = f"{current_app.config['CLIENT_URL']}/verify-email?token={token}"
    send_email(
        to,
        "Verify your SugarSphere account",
        f"Hi {name},\n\nWelcome to SugarSphere! Confirm your email address by opening:\n{link}\n\n"
        "The link expires in 24 hours.",
    )


def send_password_reset_email(to: str, name: str, token: str) -> None:
    link = f"{current_app.config['CLIENT_URL']}/reset-password?token={token}"
    send_email(
        to,
        "Reset your SugarSphere password",
        f"Hi {name},\n\nWe received a request to reset your password. Open this link to choose a new one:\n"
        f"{link}\n\nThe link expires in 24 hours. If you did not ask for this, ignore this email.",
    )


def send_invoice_email(to: str, name: str, order) -> None:
    lines = [
        f"  {item.name} x {item.quantity} @ {format_amount(item.unit_price_cents, order.currency)}"
        f" = {format_amount(item.subtotal_cents, order.currency)}"
        for item in order.items
    ]
    body = "\n".join([
        f"Hi {name},",
        "",
        f"Thank you for your order #{order.id} placed on {to_utc_z(order.created_at)}.",
        f"Payment reference: {order.payment_id or '-'}",
        "",
        *lines,
        "",
        f"Total: {format_amount(order.total_amount_cents, order.currency)}",
    ])
    send_email(to, f"Your SugarSphere invoice for order #{order.id}", body)


def send_order_status_email(to: str, name: str, order_id: int, status: str, message: str) -> None:
    send_email(
        to,
        f"Order #{order_id} is now {status}",
        f"Hi {name},\n\n{message}\n\nOrder #{order_id} status: {status}",
    )
