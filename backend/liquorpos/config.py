# backend/liquorpos/config.py
from __future__ import annotations
import os


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/liquorpos.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",  # hosted Postgres in production
        "sqlite:///liquorpos.sqlite3",  # default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    STORE_NAME = os.environ.get("STORE_NAME", "Last Kings")

    # Comma separated list of front-end origins allowed to call the API
    CORS_ALLOWED_ORIGINS = [
        origin.strip()
        for origin in os.environ.get(
            "CORS_ALLOWED_ORIGINS",
            "http://localhost:3000,http://127.0.0.1:3000",
        ).split(",")
        if origin.strip()
    ]

    # Query cache (seconds)
    QUERY_CACHE_DEFAULT_TTL_SECONDS = _int_env("QUERY_CACHE_DEFAULT_TTL_SECONDS", 5 * 60)
    QUERY_CACHE_LOCATION_TTL_SECONDS = _int_env("QUERY_CACHE_LOCATION_TTL_SECONDS", 10 * 60)
    QUERY_CACHE_VARIANT_TTL_SECONDS = _int_env("QUERY_CACHE_VARIANT_TTL_SECONDS", 2 * 60)
    QUERY_CACHE_SWEEP_SECONDS = _int_env("QUERY_CACHE_SWEEP_SECONDS", 60)

    # Reporting thresholds
    LOW_STOCK_THRESHOLD = _int_env("LOW_STOCK_THRESHOLD", 10)
    DEAD_STOCK_DAYS = _int_env("DEAD_STOCK_DAYS", 90)
    DEAD_STOCK_MIN_AGE_DAYS = _int_env("DEAD_STOCK_MIN_AGE_DAYS", 30)

    # bcrypt work factor (tests lower this)
    BCRYPT_ROUNDS = _int_env("BCRYPT_ROUNDS", 12)
