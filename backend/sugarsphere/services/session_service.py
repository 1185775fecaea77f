# Overview: Access/refresh token issuance, validation, rotation, and revocation.

"""
Token Management Service

Access tokens are short-lived opaque tokens stored as SessionToken rows.
Refresh tokens are longer-lived opaque tokens; the account keeps the hash of
exactly one valid refresh token and replaces it on every refresh, so a
refresh token can be used once.

SECURITY FEATURES:
- Cryptographically secure random tokens (32 bytes)
- Tokens hashed with SHA-256 before storage (fast, one-way)
- Access tokens expire after ACCESS_TOKEN_TTL_MINUTES
- Refresh tokens expire after REFRESH_TOKEN_TTL_DAYS and rotate on use
- Blocked accounts cannot validate or refresh
"""

from __future__ import annotations

import hashlib
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta

from flask import current_app

from ..extensions import db
from ..models import SessionToken, User
from ..time_utils import utcnow, to_utc_z


@dataclass
class TokenPair:
    access_token: str
    refresh_token: str
    access_expires_at: datetime
    refresh_expires_at: datetime

    def to_dict(self) -> dict:
        return {
            "accessToken": self.access_token,
            "refreshToken": self.refresh_token,
            "accessTokenExpiresAt": to_utc_z(self.access_expires_at),
            "refreshTokenExpiresAt": to_utc_z(self.refresh_expires_at),
        }


def generate_token() -> str:
    """64-character hex string (32 bytes of entropy). Never stored."""
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    """
    SHA-256 for storage. Tokens are high-entropy, so a slow hash buys
    nothing here.
    """
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _open_access_session(
    user: User,
    now: datetime,
    *,
    user_agent: str | None,
    ip_address: str | None,
) -> tuple[str, datetime]:
    access_token = generate_token()
    access_expires_at = now + timedelta(minutes=current_app.config["ACCESS_TOKEN_TTL_MINUTES"])
    db.session.add(SessionToken(
        user_id=user.id,
        token_hash=hash_token(access_token),
        created_at=now,
        last_used_at=now,
        expires_at=access_expires_at,
        user_agent=(user_agent or "")[:255] or None,
        ip_address=ip_address,
        is_revoked=False,
    ))
    return access_token, access_expires_at


def issue_token_pair(
    user: User,
    *,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> TokenPair:
    """
    Create an access session and rotate the account's refresh token.

    Caller owns the commit so issuance joins the surrounding unit of work.
    """
    now = utcnow()
    refresh_token = generate_token()
    refresh_expires_at = now + timedelta(days=current_app.config["REFRESH_TOKEN_TTL_DAYS"])

    access_token, access_expires_at = _open_access_session(
        user, now, user_agent=user_agent, ip_address=ip_address
    )
    user.refresh_token_hash = hash_token(refresh_token)
    user.refresh_token_expires_at = refresh_expires_at

    return TokenPair(access_token, refresh_token, access_expires_at, refresh_expires_at)


def rotate_token_pair(
    user: User,
    presented_token: str,
    *,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> TokenPair | None:
    """
    Swap the presented refresh token for a new pair.

    The stored hash is replaced with a compare-and-set, so of two requests
    presenting the same token only one gets a pair. Returns None for the
    loser. Caller commits.
    """
    now = utcnow()
    refresh_token = generate_token()
    refresh_expires_at = now + timedelta(days=current_app.config["REFRESH_TOKEN_TTL_DAYS"])

    matched = db.session.query(User).filter(
        User.id == user.id,
        User.refresh_token_hash == hash_token(presented_token),
    ).update(
        {
            User.refresh_token_hash: hash_token(refresh_token),
            User.refresh_token_expires_at: refresh_expires_at,
        },
        synchronize_session="evaluate",
    )
    if matched != 1:
        # evaluate sync updated the stale in-memory row anyway
        db.session.expire(user)
        return None

    access_token, access_expires_at = _open_access_session(
        user, now, user_agent=user_agent, ip_address=ip_address
    )
    return TokenPair(access_token, refresh_token, access_expires_at, refresh_expires_at)


def validate_access_token(token: str) -> User | None:
    """
    Return the account behind a live access token, or None.

    Returns None if the token is unknown, revoked, expired, or belongs to a
    blocked account.
    """
    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()
    if not session:
        return None

    now = utcnow()
    if session.expires_at < now:
        return None

    user = session.user
    if not user or not user.is_active:
        return None

    session.last_used_at = now
    db.session.commit()
    return user


def find_user_by_refresh_token(token: str) -> User | None:
    user = db.session.query(User).filter_by(refresh_token_hash=hash_token(token)).first()
    if not user:
        return None
    if user.refresh_token_expires_at is None or user.refresh_token_expires_at < utcnow():
        return None
    return user


def revoke_all_user_sessions(user_id: int, reason: str = "Revoke all sessions") -> int:
    """
    Revoke all active access sessions for an account.

    Returns count of sessions revoked. Caller commits.
    """
    now = utcnow()
    return db.session.query(SessionToken).filter_by(
        user_id=user_id,
        is_revoked=False,
    ).update(
        {
            SessionToken.is_revoked: True,
            SessionToken.revoked_at: now,
            SessionToken.revoked_reason: reason,
        },
        synchronize_session=False,
    )


def clear_refresh_token(user: User) -> None:
    user.refresh_token_hash = None
    user.refresh_token_expires_at = None


def cleanup_expired_sessions(retention_days: int = 30) -> int:
    """Delete expired or revoked sessions older than the retention window."""
    cutoff = utcnow() - timedelta(days=retention_days)
    deleted = db.session.query(SessionToken).filter(
        db.or_(
            SessionToken.expires_at < utcnow(),
            SessionToken.is_revoked.is_(True),
        ),
        SessionToken.created_at < cutoff,
    ).delete(synchronize_session=False)
    db.session.commit()
    return deleted
