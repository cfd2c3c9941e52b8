# backend/salesledger/routes/system.py
"""
System health endpoint.

Reports database and cache reachability for deployment checks. Never
requires authentication and never reveals row data.
"""

import time

from flask import Blueprint, current_app
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db, query_cache

system_bp = Blueprint("system", __name__, url_prefix="/api")


def check_database_health() -> dict:
    start_time = time.time()
    try:
        db.session.execute(text("SELECT 1"))
    except SQLAlchemyError:
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round((time.time() - start_time) * 1000, 2),
            "error": "Database error",
        }
    return {
        "status": "healthy",
        "latency_ms": round((time.time() - start_time) * 1000, 2),
    }


def check_cache_health() -> dict:
    return {
        "status": "healthy",
        "backend": type(query_cache.backend).__name__,
        "ttl_seconds": query_cache.default_ttl,
    }


@system_bp.get("/health")
def health():
    database = check_database_health()
    overall = "healthy" if database["status"] == "healthy" else "unhealthy"
    body = {
        "status": overall,
        "checks": {
            "database": database,
            "cache": check_cache_health(),
        },
    }
    return body, 200 if overall == "healthy" else 503
