# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication Service

Registration, login, token refresh/rotation, logout, password changes,
email verification and password reset.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost from BCRYPT_ROUNDS, 12 by default)
- Access/refresh tokens managed in session_service.py
- Verification and reset tokens are random, single-use, stored hashed and
  expire after ACCOUNT_TOKEN_TTL_HOURS
- Blocked accounts cannot log in or refresh
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

import bcrypt
from flask import current_app

from ..errors import AuthenticationError, ConflictError, NotFoundError, PermissionDeniedError, ValidationError
from ..extensions import db
from ..models import User, AccountToken
from ..models.auth import (
    ACCOUNT_TOKEN_EMAIL_VERIFICATION,
    ACCOUNT_TOKEN_PASSWORD_RESET,
    ROLE_USER,
)
from ..time_utils import utcnow
from . import login_throttle_service, session_service
from .session_service import TokenPair


BLOCKED_MESSAGE = "Your account has been blocked. Please contact admin for assistance."


@dataclass
class AuthResult:
    user: User
    tokens: TokenPair


def hash_password(password: str) -> str:
    salt = bcrypt.gensalt(rounds=current_app.config.get("BCRYPT_ROUNDS", 12))
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """bcrypt.checkpw is constant-time; malformed hashes never match."""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def get_user_by_email(email: str) -> User | None:
    return db.session.query(User).filter_by(email=email.strip().lower()).first()


def create_user(
    *,
    name: str,
    email: str,
    password: str,
    role: str = ROLE_USER,
    is_verified: bool = False,
) -> User:
    """Insert an account (flushed, not committed)."""
    email = email.strip().lower()
    if get_user_by_email(email):
        raise ConflictError("Email already registered")

    user = User(
        name=name,
        email=email,
        password_hash=hash_password(password),
        role=role,
        is_active=True,
        is_verified=is_verified,
    )
    db.session.add(user)
    db.session.flush()
    return user


def register(
    name: str,
    email: str,
    password: str,
    *,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> tuple[AuthResult, str]:
    """
    Create a customer account and sign it in.

    Returns the auth result and the plaintext email verification token; the
    caller sends the verification email after the commit.
    """
    user = create_user(name=name, email=email, password=password)
    tokens = session_service.issue_token_pair(user, user_agent=user_agent, ip_address=ip_address)
    verification_token = _issue_account_token(user, ACCOUNT_TOKEN_EMAIL_VERIFICATION)
    db.session.commit()

    current_app.logger.info("Registered account id=%s", user.id)
    return AuthResult(user=user, tokens=tokens), verification_token


def login(
    email: str,
    password: str,
    *,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> AuthResult:
    """
    Authenticate by email/password and issue a fresh token pair.

    Raises AuthenticationError for unknown email, wrong password or lockout,
    PermissionDeniedError for a blocked account.
    """
    identifier = email.strip().lower()

    locked, seconds_remaining = login_throttle_service.is_account_locked(identifier)
    if locked:
        minutes = (seconds_remaining // 60) + 1 if seconds_remaining else 15
        raise AuthenticationError(
            f"Too many failed login attempts. Try again in {minutes} minutes."
        )

    user = get_user_by_email(identifier)
    if not user or not verify_password(password, user.password_hash):
        login_throttle_service.record_failed_attempt(
            identifier,
            user_id=user.id if user else None,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        raise AuthenticationError("Invalid credentials")

    if not user.is_active:
        raise PermissionDeniedError(BLOCKED_MESSAGE)

    login_throttle_service.record_successful_login(
        identifier, user_id=user.id, ip_address=ip_address, user_agent=user_agent
    )
    tokens = session_service.issue_token_pair(user, user_agent=user_agent, ip_address=ip_address)
    user.last_login_at = utcnow()
    db.session.commit()
    return AuthResult(user=user, tokens=tokens)


def refresh(refresh_token: str, *, user_agent: str | None = None, ip_address: str | None = None) -> TokenPair:
    """
    Exchange a refresh token for a new pair.

    The stored hash is swapped with a compare-and-set, so the presented
    token is dead afterwards even when two requests race with it.
    """
    user = session_service.find_user_by_refresh_token(refresh_token)
    if not user:
        raise AuthenticationError("Invalid refresh token")
    if not user.is_active:
        session_service.clear_refresh_token(user)
        db.session.commit()
        raise AuthenticationError("Invalid refresh token")

    tokens = session_service.rotate_token_pair(
        user, refresh_token, user_agent=user_agent, ip_address=ip_address
    )
    if tokens is None:
        # Another request spent this token first
        db.session.rollback()
        raise AuthenticationError("Invalid refresh token")
    db.session.commit()
    return tokens


def logout(user: User) -> None:
    session_service.clear_refresh_token(user)
    session_service.revoke_all_user_sessions(user.id, reason="User logout")
    db.session.commit()


def update_profile(user: User, *, name: str | None = None, avatar_url: str | None = None) -> User:
    if name is not None:
        user.name = name
    if avatar_url is not None:
        user.avatar_url = avatar_url
    db.session.commit()
    return user


def change_password(user: User, current_password: str, new_password: str) -> None:
    if not verify_password(current_password, user.password_hash):
        raise ValidationError("Current password is incorrect")
    _set_password(user, new_password, reason="Password changed")
    db.session.commit()


def _set_password(user: User, new_password: str, *, reason: str) -> None:
    """Re-hash and force every other device to sign in again."""
    user.password_hash = hash_password(new_password)
    session_service.clear_refresh_token(user)
    session_service.revoke_all_user_sessions(user.id, reason=reason)


# =============================================================================
# SINGLE-USE ACCOUNT TOKENS
# =============================================================================

def _issue_account_token(user: User, purpose: str) -> str:
    token = session_service.generate_token()
    db.session.add(AccountToken(
        user_id=user.id,
        purpose=purpose,
        email=user.email,
        token_hash=session_service.hash_token(token),
        expires_at=utcnow() + timedelta(hours=current_app.config["ACCOUNT_TOKEN_TTL_HOURS"]),
        is_used=False,
    ))
    return token


def _find_account_token(token: str, purpose: str) -> AccountToken | None:
    return db.session.query(AccountToken).filter_by(
        token_hash=session_service.hash_token(token),
        purpose=purpose,
    ).first()


def create_verification_token(user: User) -> str:
    """Issue a fresh verification token, superseding any outstanding one."""
    if user.is_verified:
        raise ValidationError("Email is already verified")

    db.session.query(AccountToken).filter_by(
        user_id=user.id,
        purpose=ACCOUNT_TOKEN_EMAIL_VERIFICATION,
    ).delete(synchronize_session=False)

    token = _issue_account_token(user, ACCOUNT_TOKEN_EMAIL_VERIFICATION)
    db.session.commit()
    return token


def verify_email(token: str) -> User:
    """Mark the owning account verified. Verification tokens are deleted once spent."""
    record = _find_account_token(token, ACCOUNT_TOKEN_EMAIL_VERIFICATION)
    if not record:
        raise ValidationError("Invalid or expired verification token")

    if record.expires_at < utcnow():
        db.session.delete(record)
        db.session.commit()
        raise ValidationError("Verification token has expired")

    user = db.session.get(User, record.user_id)
    if not user:
        raise NotFoundError("User not found")

    user.is_verified = True
    db.session.delete(record)
    db.session.commit()
    return user


def create_password_reset_token(email: str) -> tuple[User, str] | None:
    """
    Issue a reset token, superseding every unused one for the account.

    Returns None when the email is unknown; callers must not reveal that.
    """
    user = get_user_by_email(email)
    if not user:
        return None

    db.session.query(AccountToken).filter_by(
        user_id=user.id,
        purpose=ACCOUNT_TOKEN_PASSWORD_RESET,
        is_used=False,
    ).update({AccountToken.is_used: True}, synchronize_session=False)

    token = _issue_account_token(user, ACCOUNT_TOKEN_PASSWORD_RESET)
    db.session.commit()
    return user, token


def reset_password(token: str, new_password: str) -> User:
    record = _find_account_token(token, ACCOUNT_TOKEN_PASSWORD_RESET)
    if not record or record.is_used:
        raise ValidationError("Invalid or expired reset token")

    if record.expires_at < utcnow():
        record.is_used = True
        db.session.commit()
        raise ValidationError("Reset token has expired")

    user = db.session.get(User, record.user_id)
    if not user:
        raise NotFoundError("User not found")

    # Claim the token before touching the password; a second use matches nothing
    claimed = db.session.query(AccountToken).filter(
        AccountToken.id == record.id,
        AccountToken.is_used.is_(False),
    ).update({AccountToken.is_used: True}, synchronize_session=False)
    if claimed != 1:
        db.session.rollback()
        raise ValidationError("Invalid or expired reset token")

    _set_password(user, new_password, reason="Password reset")
    db.session.commit()
    return user


def cleanup_account_tokens(retention_days: int = 30) -> int:
    """Delete used or expired account tokens older than the retention window."""
    cutoff = utcnow() - timedelta(days=retention_days)
    deleted = db.session.query(AccountToken).filter(
        db.or_(AccountToken.is_used.is_(True), AccountToken.expires_at < utcnow()),
        AccountToken.created_at < cutoff,
    ).delete(synchronize_session=False)
    db.session.commit()
    return deleted
