# backend/salesledger/config.py
from __future__ import annotations
import os


def _origins(raw: str | None) -> set[str]:
    if not raw:
        return {
            "http://localhost:5173",
            "http://127.0.0.1:5173",
            "http://localhost:4173",
            "http://127.0.0.1:4173",
        }
    return {o.strip() for o in raw.split(",") if o.strip()}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",  # optional alternative location
        "sqlite:///salesledger.sqlite3",  # default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Query cache: "memory" (per process), "redis" (shared) or "null" (disabled)
    CACHE_REDIS_URL = os.environ.get("CACHE_REDIS_URL")
    CACHE_BACKEND = os.environ.get("CACHE_BACKEND", "redis" if CACHE_REDIS_URL else "memory")
    CACHE_DEFAULT_TTL = int(os.environ.get("CACHE_DEFAULT_TTL", "60"))

    BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "12"))

    SALES_DEFAULT_PER_PAGE = 15
    SALES_MAX_PER_PAGE = 100

    # Bounded retries when a generated transaction id collides at insert time
    TRANSACTION_ID_MAX_ATTEMPTS = 5

    CORS_ALLOWED_ORIGINS = _origins(os.environ.get("CORS_ALLOWED_ORIGINS"))
