# backend/sugarsphere/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_list(name: str, default: str) -> list[str]:
    raw = os.environ.get(name, default)
    return [item.strip() for item in raw.split(",") if item.strip()]


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # development | production | testing
    APP_ENV = os.environ.get("APP_ENV", "development")
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # SQLite DB stored in backend/instance/sugarsphere.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///sugarsphere.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Auth
    ACCESS_TOKEN_TTL_MINUTES = int(os.environ.get("ACCESS_TOKEN_TTL_MINUTES", "15"))
    REFRESH_TOKEN_TTL_DAYS = int(os.environ.get("REFRESH_TOKEN_TTL_DAYS", "7"))
    ACCOUNT_TOKEN_TTL_HOURS = int(os.environ.get("ACCOUNT_TOKEN_TTL_HOURS", "24"))
    BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "12"))

    # Catalog / orders
    LOW_STOCK_THRESHOLD = int(os.environ.get("LOW_STOCK_THRESHOLD", "10"))
    ORDER_CURRENCY = os.environ.get("ORDER_CURRENCY", "INR")

    # Payment gateway (Razorpay-compatible REST API)
    GATEWAY_BASE_URL = os.environ.get("GATEWAY_BASE_URL", "https://api.razorpay.com/v1")
    GATEWAY_KEY_ID = os.environ.get("GATEWAY_KEY_ID", "")
    GATEWAY_KEY_SECRET = os.environ.get("GATEWAY_KEY_SECRET", "")
    GATEWAY_WEBHOOK_SECRET = os.environ.get("GATEWAY_WEBHOOK_SECRET", "")
    GATEWAY_TIMEOUT_SECONDS = float(os.environ.get("GATEWAY_TIMEOUT_SECONDS", "10"))
    # Accepting unsigned webhooks is a development escape hatch only
    WEBHOOK_ALLOW_UNSIGNED = _env_bool("WEBHOOK_ALLOW_UNSIGNED", False)

    # Outbound email
    MAIL_SERVER = os.environ.get("MAIL_SERVER", "")
    MAIL_PORT = int(os.environ.get("MAIL_PORT", "587"))
    MAIL_USERNAME = os.environ.get("MAIL_USERNAME", "")
    MAIL_PASSWORD = os.environ.get("MAIL_PASSWORD", "")
    MAIL_USE_TLS = _env_bool("MAIL_USE_TLS", True)
    MAIL_SENDER = os.environ.get("MAIL_SENDER", "SugarSphere <no-reply@sugarsphere.local>")
    MAIL_SUPPRESS_SEND = _env_bool("MAIL_SUPPRESS_SEND", False)
    MAIL_ASYNC = _env_bool("MAIL_ASYNC", True)

    CLIENT_URL = os.environ.get("CLIENT_URL", "http://localhost:5173")
    CORS_ORIGINS = _env_list(
        "CORS_ORIGINS",
        "http://localhost:5173,http://127.0.0.1:5173,http://localhost:4173,http://127.0.0.1:4173",
    )

    # Rate limiting (Flask-Limiter), per client IP. Every /api route shares
    # RATELIMIT_APPLICATION; /api/auth routes also count against AUTH_RATE_LIMIT.
    RATELIMIT_ENABLED = _env_bool("RATELIMIT_ENABLED", True)
    RATELIMIT_STORAGE_URI = os.environ.get("RATELIMIT_STORAGE_URI", "memory://")
    RATELIMIT_APPLICATION = os.environ.get("API_RATE_LIMIT", "100 per 15 minutes")
    AUTH_RATE_LIMIT = os.environ.get("AUTH_RATE_LIMIT", "20 per 15 minutes")

    SOCKETIO_ASYNC_MODE = os.environ.get("SOCKETIO_ASYNC_MODE", "threading")
