# Overview: Transaction engine; records, updates and deletes multi-line sales atomically.

"""
Sales Transaction Engine

WHY: A checkout sells several products at once. Each product becomes one
Sale line; all lines of one checkout share a transaction_id and are written
in a single atomic unit, so a partial checkout is never observable.

FLOW (create_transaction):
1. Capability check (CREATE_SALE)
2. Bulk ownership gate: one query for all requested products; if any is
   missing or owned by someone else, nothing is written (403)
3. Reserve a transaction id (see identifier_service)
4. Insert lines in input order inside atomic(); totals snapshot the
   product's price and unit_cost at this moment
5. A uniqueness violation on (transaction_id, line_number) means another
   checkout took the same id concurrently: start over from step 3,
   bounded by TRANSACTION_ID_MAX_ATTEMPTS

SNAPSHOTS: unit_price never changes after creation. update_line recomputes
total and utility from the stored unit_price and the product's current
unit_cost.
"""

from __future__ import annotations

from decimal import Decimal

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..errors import AuthorizationError, ConflictError, NotFoundError, PersistenceError, ValidationError
from ..models import Product, Sale
from ..permissions import Actor
from .concurrency import atomic, lock_for_update, run_with_retry
from .identifier_service import reserve_transaction_id
from .ledger_query_service import build_views, load_transaction_view
from .permission_service import authorize, log_security_event
from .tenant_service import fetch_owned_products, owned_sales, require_owned_transaction
from salesledger.money import ZERO, as_money, line_amounts, money_str
from salesledger.time_utils import to_utc_z, utcnow
from salesledger.validation import line_amount_error


TRANSACTION_UNIQUE_CONSTRAINT = "uq_sales_transaction_line"


def _is_transaction_id_collision(exc: IntegrityError) -> bool:
    text = str(getattr(exc, "orig", exc)).lower()
    if TRANSACTION_UNIQUE_CONSTRAINT in text:
        return True
    # SQLite names the columns instead of the constraint
    return "sales.transaction_id" in text and "sales.line_number" in text


def _persist_line(session, sale: Sale) -> None:
    """Insert one line; flushed immediately so failures surface in input order."""
    session.add(sale)
    session.flush()


def _check_ownership(actor: Actor, product_ids: set[int]) -> dict[int, Product]:
    owned = fetch_owned_products(actor, product_ids)
    if len(owned) != len(product_ids):
        missing = sorted(product_ids - owned.keys())
        log_security_event(
            user_id=actor.id,
            event_type="OWNERSHIP_CHECK_FAILED",
            success=False,
            action="CREATE_SALE",
            reason=f"Products not owned by actor: {missing}",
        )
        raise AuthorizationError("One or more products do not belong to you")
    return owned


def _check_line_amounts(lines, owned: dict[int, Product]) -> None:
    errors: dict[str, list[str]] = {}
    for index, (product_id, quantity) in enumerate(lines):
        product = owned[product_id]
        total, _cost, utility = line_amounts(product.price, product.unit_cost, quantity)
        message = line_amount_error(total, utility)
        if message:
            errors[f"products.{index}.quantity"] = [message]
    if errors:
        raise ValidationError("Validation failed", errors=errors)


def _updated_amounts(actor: Actor, line: Sale, quantity: int):
    product = db.session.get(Product, line.product_id) if line.product_id else None
    # Deleted or foreign product: cost counts as zero
    unit_cost = product.unit_cost if product and product.owner_user_id == actor.id else None

    total, _cost, utility = line_amounts(line.unit_price, unit_cost, quantity)
    message = line_amount_error(total, utility)
    if message:
        raise ValidationError.for_field("quantity", message)
    return total, utility


def _insert_lines(actor: Actor, transaction_id: str, lines, owned: dict[int, Product]) -> tuple[list[Sale], Decimal]:
    created_at = utcnow()
    created: list[Sale] = []
    total_cost = ZERO

    with atomic("Failed to record sale") as session:
        for line_number, (product_id, quantity) in enumerate(lines, start=1):
            product = owned[product_id]
            total, cost, utility = line_amounts(product.price, product.unit_cost, quantity)

            sale = Sale(
                user_id=actor.id,
                transaction_id=transaction_id,
                line_number=line_number,
                product_id=product.id,
                quantity=quantity,
                unit_price=as_money(product.price),
                total=total,
                utility=utility,
                created_at=created_at,
                updated_at=created_at,
            )
            _persist_line(session, sale)
            created.append(sale)
            total_cost = as_money(total_cost + cost)

    return created, total_cost


def create_transaction(actor: Actor, lines: list[tuple[int, int]]) -> dict:
    """
    Record one checkout of [(product_id, quantity), ...] as a transaction.

    Returns {transaction_id, sales, summary}. Raises ValidationError,
    AuthorizationError, ConflictError (ids exhausted) or PersistenceError;
    in every failure case no line of this call is stored.
    """
    authorize(actor, "CREATE_SALE")

    if not lines:
        raise ValidationError.for_field("products", "The products field must be a non-empty list.")
    product_ids = {product_id for product_id, _ in lines}
    if len(product_ids) != len(lines):
        raise ValidationError.for_field("products", "The products field has a duplicate product_id.")

    owned = _check_ownership(actor, product_ids)
    _check_line_amounts(lines, owned)

    max_attempts = current_app.config.get("TRANSACTION_ID_MAX_ATTEMPTS", 5)
    for attempt in range(1, max_attempts + 1):
        transaction_id = reserve_transaction_id(actor.id)
        try:
            created, total_cost = run_with_retry(
                lambda: _insert_lines(actor, transaction_id, lines, owned)
            )
        except IntegrityError as exc:
            if not _is_transaction_id_collision(exc):
                current_app.logger.exception("Sale insert violated an unexpected constraint")
                raise PersistenceError("Failed to record sale") from exc
            current_app.logger.warning(
                "Transaction id %s collided at insert (attempt %d/%d)",
                transaction_id, attempt, max_attempts,
            )
            continue
        break
    else:
        raise ConflictError("Could not allocate a unique transaction id, please retry")

    total_income = as_money(sum((as_money(s.total) for s in created), ZERO))
    total_utility = as_money(sum((as_money(s.utility) for s in created), ZERO))

    current_app.logger.info(
        "Transaction %s recorded for user %s: %d lines, income %s",
        transaction_id, actor.id, len(created), money_str(total_income),
    )

    return {
        "transaction_id": transaction_id,
        "sales": [s.to_dict() for s in created],
        "summary": {
            "total_income": money_str(total_income),
            "total_cost": money_str(total_cost),
            "total_utility": money_str(total_utility),
            "items_count": len(created),
        },
    }


def update_line(actor: Actor, transaction_id: str, product_id: int, quantity: int) -> dict:
    """
    Change the quantity of the line (transaction_id, product_id).

    Returns the refreshed transaction view. 404 when the actor has no such
    line, whether it is absent or belongs to another user.
    """
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
        raise ValidationError.for_field("quantity", "The quantity must be at least 1.")

    lines = require_owned_transaction(actor, transaction_id)
    current = next((line for line in lines if line.product_id == product_id), None)
    if current is None:
        raise NotFoundError("Sale not found or you do not have permission to access it")
    _updated_amounts(actor, current, quantity)

    def _op():
        with atomic("Failed to update sale"):
            line = lock_for_update(
                owned_sales(actor).filter(
                    Sale.transaction_id == transaction_id,
                    Sale.product_id == product_id,
                )
            ).first()
            if line is None:
                raise NotFoundError("Sale not found or you do not have permission to access it")
            authorize(actor, "UPDATE_SALE", line)

            total, utility = _updated_amounts(actor, line, quantity)
            line.quantity = quantity
            line.total = total
            line.utility = utility
            line.updated_at = utcnow()

    run_with_retry(_op)

    current_app.logger.info(
        "Transaction %s line for product %s set to quantity %d by user %s",
        transaction_id, product_id, quantity, actor.id,
    )
    return load_transaction_view(actor, transaction_id).to_dict()


def delete_transaction(actor: Actor, transaction_id: str) -> dict:
    """
    Delete every line of the actor's transaction in one atomic unit.

    Returns the pre-deletion summary. Lines of other users are never
    touched, even if they carried the same id.
    """
    lines = require_owned_transaction(actor, transaction_id)
    authorize(actor, "DELETE_SALE", lines[0])

    def _op():
        with atomic("Failed to delete sale"):
            locked = lock_for_update(
                owned_sales(actor).filter(Sale.transaction_id == transaction_id)
            ).all()
            if not locked:
                raise NotFoundError("Sale not found or you do not have permission to access it")
            view = build_views(actor, locked)[0]
            owned_sales(actor).filter(
                Sale.transaction_id == transaction_id
            ).delete(synchronize_session=False)
        return view

    view = run_with_retry(_op)

    current_app.logger.info(
        "Transaction %s deleted by user %s (%d lines)",
        transaction_id, actor.id, view.products_count,
    )

    return {
        "transaction_id": transaction_id,
        "total_amount": money_str(view.total_amount),
        "total_items": view.total_items,
        "products_count": view.products_count,
        "deleted_at": to_utc_z(utcnow()),
    }
