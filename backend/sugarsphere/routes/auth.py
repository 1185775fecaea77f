# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

"""
Authentication API routes

SECURITY FEATURES:
- bcrypt password hashing
- Login throttling with temporary lockout
- Per-IP request limit on every auth route (Flask-Limiter)
- Short-lived access tokens, rotating single-use refresh tokens
- Password reset and email verification never reveal whether an email
  is registered
"""

from flask import Blueprint, current_app, request, g

from ..extensions import limiter
from ..services import auth_service, email_service
from ..decorators import require_auth
from ..responses import success
from ..validation import (
    json_object,
    require_email,
    require_password,
    require_string,
    ValidationError,
)

auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")

# Stricter than the /api-wide limit, applied to every auth route
limiter.shared_limit(
    lambda: current_app.config["AUTH_RATE_LIMIT"],
    scope="auth",
    error_message="Too many auth attempts, please try again later",
)(auth_bp)

FORGOT_PASSWORD_MESSAGE = "If an account exists with this email, you will receive a password reset link."


def _client_info() -> dict:
    return {
        "user_agent": request.headers.get("User-Agent"),
        "ip_address": request.remote_addr,
    }


def _auth_payload(result: auth_service.AuthResult) -> dict:
    return {"user": result.user.to_dict(), "tokens": result.tokens.to_dict()}


@auth_bp.post("/register")
def register_route():
    data = json_object(request.get_json(silent=True))
    name = require_string(data, "name", min_length=2, max_length=50)
    email = require_email(data)
    password = require_password(data)

    result, verification_token = auth_service.register(name, email, password, **_client_info())
    email_service.send_verification_email(result.user.email, result.user.name, verification_token)

    return success(
        _auth_payload(result),
        message="Registration successful. Please check your email to verify your account.",
        status=201,
    )


@auth_bp.post("/login")
def login_route():
    """
    Authenticate by email and password.

    SECURITY:
    - Lockout is checked before the password
    - Failures are recorded for throttling; success clears them
    """
    data = json_object(request.get_json(silent=True))
    email = require_email(data)
    password = data.get("password")
    if not isinstance(password, str) or not password:
        raise ValidationError("password is required")

    result = auth_service.login(email, password, **_client_info())
    return success(_auth_payload(result), message="Login successful")


@auth_bp.post("/refresh")
def refresh_route():
    data = json_object(request.get_json(silent=True))
    refresh_token = require_string(data, "refreshToken")

    tokens = auth_service.refresh(refresh_token, **_client_info())
    return success({"tokens": tokens.to_dict()}, message="Tokens refreshed")


@auth_bp.post("/logout")
@require_auth
def logout_route():
    auth_service.logout(g.current_user)
    return success(message="Logged out successfully")


@auth_bp.get("/me")
@require_auth
def me_route():
    return success({"user": g.current_user.to_dict()})


@auth_bp.put("/profile")
@require_auth
def update_profile_route():
    data = json_object(request.get_json(silent=True))
    name = require_string(data, "name", min_length=2, max_length=50) if "name" in data else None
    avatar_url = require_string(data, "avatarUrl", max_length=512) if "avatarUrl" in data else None

    user = auth_service.update_profile(g.current_user, name=name, avatar_url=avatar_url)
    return success({"user": user.to_dict()}, message="Profile updated successfully")


@auth_bp.put("/password")
@require_auth
def change_password_route():
    data = json_object(request.get_json(silent=True))
    current_password = data.get("currentPassword")
    if not isinstance(current_password, str) or not current_password:
        raise ValidationError("Current password and new password are required")
    new_password = require_password(data, "newPassword")

    auth_service.change_password(g.current_user, current_password, new_password)
    return success(message="Password changed successfully")


@auth_bp.post("/verify-email")
def verify_email_route():
    data = json_object(request.get_json(silent=True))
    token = require_string(data, "token")

    auth_service.verify_email(token)
    return success(message="Email verified successfully")


@auth_bp.post("/resend-verification")
@require_auth
def resend_verification_route():
    user = g.current_user
    token = auth_service.create_verification_token(user)
    email_service.send_verification_email(user.email, user.name, token)
    return success(message="Verification email sent")


@auth_bp.post("/forgot-password")
def forgot_password_route():
    data = json_object(request.get_json(silent=True))
    email = require_email(data)

    issued = auth_service.create_password_reset_token(email)
    if issued:
        user, token = issued
        email_service.send_password_reset_email(user.email, user.name, token)

    return success(message=FORGOT_PASSWORD_MESSAGE)


@auth_bp.post("/reset-password")
def reset_password_route():
    data = json_object(request.get_json(silent=True))
    token = require_string(data, "token")
    password = require_password(data)

    auth_service.reset_password(token, password)
    return success(message="Password reset successfully. You can now login with your new password.")
