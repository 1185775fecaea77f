# Overview: Request authentication and role decorators for API routes.

from functools import wraps
from flask import request, g

from .errors import AuthenticationError, PermissionDeniedError
from .services import session_service


def _bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    token = auth_header.split(" ", 1)[1].strip()
    return token or None


def require_auth(f):
    """
    Require a valid access token.

    Sets g.current_user to the authenticated User.

    SECURITY: Raises 401 if:
    - No Authorization header
    - Invalid, revoked or expired token
    - Account blocked
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = _bearer_token()
        if not token:
            raise AuthenticationError("Access token is required")

        user = session_service.validate_access_token(token)
        if not user:
            raise AuthenticationError("Invalid or expired access token")

        g.current_user = user
        g.access_token = token
        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles: str):
    """Require the authenticated account to hold one of `roles`. Use after @require_auth."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            user = getattr(g, "current_user", None)
            if user is None:
                raise AuthenticationError("Access token is required")
            if user.role not in roles:
                raise PermissionDeniedError("Insufficient permissions")
            return f(*args, **kwargs)

        return decorated_function
    return decorator
