# Overview: Typed operational errors and the single boundary that renders them.

"""
Error taxonomy for the API.

Services raise AppError subclasses; routes never build error responses by
hand. register_error_handlers() installs the one boundary that maps every
error to the {"success": false, "message": ...} envelope.
"""

from __future__ import annotations

import traceback

from flask import Flask, current_app, jsonify
from werkzeug.exceptions import HTTPException

from .extensions import db


class AppError(Exception):
    """Base class for operational (expected) errors."""

    status_code = 500

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(AppError):
    """400-level input problem."""
    status_code = 400


class ConflictError(AppError):
    """Business rule violation (insufficient stock, illegal transition, duplicate email)."""
    status_code = 400


class AuthenticationError(AppError):
    """Missing, invalid, or expired credentials."""
    status_code = 401


class PermissionDeniedError(AppError):
    """Authenticated but not allowed."""
    status_code = 403


class NotFoundError(AppError):
    """Referenced entity absent or not owned by the caller."""
    status_code = 404


class UpstreamError(AppError):
    """Payment gateway unreachable (500) or rejecting the request (400)."""
    status_code = 500


class InsufficientStockError(ConflictError):
    def __init__(self, product_name: str):
        super().__init__(f"Insufficient stock for {product_name}")
        self.product_name = product_name


ENVELOPE_STATUSES = frozenset({400, 401, 403, 404, 500})
RATE_LIMIT_MESSAGE = "Too many requests, please try again later"


def _error_body(message: str) -> dict:
    return {"success": False, "message": message}


def _envelope_status(code: int | None) -> int:
    """Clients only handle the envelope statuses; collapse the rest."""
    if code in ENVELOPE_STATUSES:
        return code
    return 500 if code is None or code >= 500 else 400


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(AppError)
    def handle_app_error(err: AppError):
        # Work a service committed before raising stays committed
        db.session.rollback()
        if err.status_code >= 500:
            current_app.logger.error("Operational error: %s", err.message)
        return jsonify(_error_body(err.message)), err.status_code

    @app.errorhandler(HTTPException)
    def handle_http_exception(err: HTTPException):
        if err.code == 404:
            message = "Route not found"
        else:
            message = err.description or err.name
        return jsonify(_error_body(message)), _envelope_status(err.code)

    @app.errorhandler(429)
    def handle_rate_limited(err: HTTPException):
        # Flask-Limiter attaches the breached limit; auth limits carry their own message
        limit = getattr(err, "limit", None)
        message = getattr(limit, "error_message", None) or RATE_LIMIT_MESSAGE
        current_app.logger.warning("Rate limit exceeded: %s", err.description)
        return jsonify(_error_body(message)), 429

    @app.errorhandler(Exception)
    def handle_unexpected(err: Exception):
        current_app.logger.exception("Unhandled error")
        db.session.rollback()
        body = _error_body("Internal server error")
        if current_app.config.get("APP_ENV") != "production":
            body["stack"] = traceback.format_exc()
        return jsonify(body), 500
