# backend/storefront/config.py
from __future__ import annotations
import os


def _env_flag(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored next to the backend unless DATABASE_URL is set
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///storefront.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    APP_ENV = os.environ.get("APP_ENV", "development")

    # Default-store fallback in the resolver chain is a dev convenience only
    STORE_FALLBACK_ENABLED = _env_flag("STORE_FALLBACK_ENABLED", APP_ENV != "production")

    # Subdomain the API itself is served from; never treated as a store slug
    API_SUBDOMAIN = os.environ.get("API_SUBDOMAIN", "api")

    PAYMENT_WEBHOOK_SECRET = os.environ.get("RAZORPAY_WEBHOOK_SECRET")
    PAYMENT_KEY_ID = os.environ.get("RAZORPAY_KEY_ID")
    PAYMENT_KEY_SECRET = os.environ.get("RAZORPAY_KEY_SECRET")

    BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "12"))

    CORS_ALLOWED_ORIGINS = [
        o.strip()
        for o in os.environ.get(
            "CORS_ALLOWED_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173,http://localhost:3000",
        ).split(",")
        if o.strip()
    ]

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
