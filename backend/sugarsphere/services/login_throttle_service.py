"""
Login Throttling Service

Limits password guessing: after MAX_FAILED_ATTEMPTS failures for one email
within LOCKOUT_WINDOW, further attempts are refused until LOCKOUT_DURATION
has passed since the most recent failure. Attempts are recorded as
SecurityEvent rows.
"""

from datetime import timedelta

from ..extensions import db
from ..models import SecurityEvent
from ..time_utils import utcnow


MAX_FAILED_ATTEMPTS = 10
LOCKOUT_WINDOW = timedelta(minutes=15)
LOCKOUT_DURATION = timedelta(minutes=15)

EVENT_LOGIN_FAILED = "LOGIN_FAILED"
EVENT_LOGIN_SUCCESS = "LOGIN_SUCCESS"


def get_recent_failed_attempts(identifier: str) -> int:
    cutoff = utcnow() - LOCKOUT_WINDOW
    return db.session.query(SecurityEvent).filter(
        SecurityEvent.event_type == EVENT_LOGIN_FAILED,
        SecurityEvent.identifier == identifier,
        SecurityEvent.occurred_at >= cutoff,
    ).count()


def is_account_locked(identifier: str) -> tuple[bool, int | None]:
    """
    Returns:
    - (True, seconds_remaining) if locked
    - (False, None) if not locked
    """
    if get_recent_failed_attempts(identifier) < MAX_FAILED_ATTEMPTS:
        return False, None

    most_recent = db.session.query(SecurityEvent).filter(
        SecurityEvent.event_type == EVENT_LOGIN_FAILED,
        SecurityEvent.identifier == identifier,
    ).order_by(SecurityEvent.occurred_at.desc()).first()

    if most_recent:
        lockout_end = most_recent.occurred_at + LOCKOUT_DURATION
        now = utcnow()
        if now < lockout_end:
            return True, int((lockout_end - now).total_seconds())

    return False, None


def record_failed_attempt(
    identifier: str,
    *,
    user_id: int | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
    reason: str = "Invalid credentials",
) -> int:
    """Record a failure and return the failure count inside the window."""
    db.session.add(SecurityEvent(
        user_id=user_id,
        event_type=EVENT_LOGIN_FAILED,
        identifier=identifier,
        success=False,
        reason=reason,
        ip_address=ip_address,
        user_agent=(user_agent or "")[:255] or None,
        occurred_at=utcnow(),
    ))
    db.session.commit()
    return get_recent_failed_attempts(identifier)


def record_successful_login(
    identifier: str,
    *,
    user_id: int,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> None:
    """
    Record a success and clear the identifier's failure history so the
    lockout counter restarts. Caller commits.
    """
    db.session.query(SecurityEvent).filter(
        SecurityEvent.event_type == EVENT_LOGIN_FAILED,
        SecurityEvent.identifier == identifier,
    ).delete(synchronize_session=False)

    db.session.add(SecurityEvent(
        user_id=user_id,
        event_type=EVENT_LOGIN_SUCCESS,
        identifier=identifier,
        success=True,
        ip_address=ip_address,
        user_agent=(user_agent or "")[:255] or None,
        occurred_at=utcnow(),
    ))
