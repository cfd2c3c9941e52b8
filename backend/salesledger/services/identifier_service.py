# Overview: Service-layer operations for transaction identifiers.

"""
Transaction Identifier Service

WHY: Line items of one checkout are grouped by a shared transaction id that
must exist before the first row is inserted, so it cannot be an
auto-increment. It is a composite of time, actor and randomness:

    TXN-<epoch ms>-<user id>-<6 random digits>

UNIQUENESS (two layers):
1. Optimistic: each candidate is checked against the sales table and
   regenerated if already taken.
2. Authoritative: the (transaction_id, line_number) unique constraint.
   Two concurrent checkouts can pass step 1 with the same candidate; the
   loser fails at insert time and the sales service starts over with a new id.
"""

from __future__ import annotations

import secrets
import threading
import time

from flask import current_app

from ..extensions import db
from ..errors import ConflictError
from ..models import Sale

TRANSACTION_ID_PREFIX = "TXN"
RANDOM_DIGITS = 6

_clock_lock = threading.Lock()
_last_ms = 0


def _monotonic_ms() -> int:
    """Wall-clock milliseconds, forced strictly increasing within this process."""
    global _last_ms
    with _clock_lock:
        now_ms = time.time_ns() // 1_000_000
        if now_ms <= _last_ms:
            now_ms = _last_ms + 1
        _last_ms = now_ms
        return now_ms


def generate_transaction_id(user_id: int) -> str:
    """Build one candidate id; not yet checked for uniqueness."""
    disambiguator = secrets.randbelow(10 ** RANDOM_DIGITS)
    return f"{TRANSACTION_ID_PREFIX}-{_monotonic_ms()}-{user_id}-{disambiguator:0{RANDOM_DIGITS}d}"


def transaction_id_exists(transaction_id: str) -> bool:
    """Unscoped existence check: ids are unique across all tenants."""
    return db.session.query(
        db.session.query(Sale.id).filter(Sale.transaction_id == transaction_id).exists()
    ).scalar()


def reserve_transaction_id(user_id: int, max_attempts: int | None = None) -> str:
    """
    Return a candidate id not present in the sales table.

    Raises ConflictError if max_attempts candidates in a row were taken.
    """
    if max_attempts is None:
        max_attempts = current_app.config.get("TRANSACTION_ID_MAX_ATTEMPTS", 5)

    for attempt in range(1, max_attempts + 1):
        candidate = generate_transaction_id(user_id)
        if not transaction_id_exists(candidate):
            return candidate
        current_app.logger.warning(
            "Transaction id %s already taken (attempt %d/%d)", candidate, attempt, max_attempts
        )

    raise ConflictError("Could not allocate a unique transaction id, please retry")
