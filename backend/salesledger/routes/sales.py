# Overview: Flask API routes for the sales ledger; parses input and returns JSON responses.

# backend/salesledger/routes/sales.py
"""
Sales ledger routes.

A POST records one checkout (several products) as a transaction. Reads,
updates and deletes address the transaction by its transaction_id.

TENANT SCOPING: all lookups are restricted to the caller's own lines; a
transaction id belonging to someone else answers 404.
"""
from flask import Blueprint, g, request

from ..decorators import require_auth, require_capability
from ..services import ledger_query_service, sales_service
from ..services.pagination import page_request_from_args
from ..validation import parse_date_range, parse_positive_int, validate_line_update, validate_sale_lines

sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("")
@require_auth
@require_capability("CREATE_SALE")
def create_sales_route():
    """
    Record a checkout.

    Body: {"products": [{"product_id": 1, "quantity": 2}, ...]}
    Every product must belong to the caller, or nothing is recorded (403).
    """
    lines = validate_sale_lines(request.get_json(silent=True))
    result = sales_service.create_transaction(g.actor, lines)
    return {"message": "Sales recorded successfully", **result}, 201


@sales_bp.get("")
@require_auth
@require_capability("VIEW_ANY_SALE")
def list_sales_route():
    """
    List the caller's transactions, newest first.

    Query params:
    - start_date, end_date: ISO date or datetime (optional); a plain
      end_date includes the whole day
    - product_id: int (optional) - only transactions containing it
    - page: int (optional) - page number; selects page mode
    - cursor: str (optional) - opaque cursor; cursor mode (default)
    - per_page: int (optional) - transactions per page (default 15, max 100)
    """
    start_date, end_date = parse_date_range(request.args)
    product_id = parse_positive_int(request.args, "product_id")
    page_request = page_request_from_args(request.args)

    return ledger_query_service.list_transactions(
        g.actor,
        page_request,
        start_date=start_date,
        end_date=end_date,
        product_id=product_id,
    )


@sales_bp.get("/<transaction_id>")
@require_auth
def get_sale_route(transaction_id: str):
    return {"transaction": ledger_query_service.get_transaction(g.actor, transaction_id)}


@sales_bp.put("/<transaction_id>")
@require_auth
def update_sale_route(transaction_id: str):
    """Body: {"product_id": 1, "quantity": 3}. unit_price is never changed."""
    product_id, quantity = validate_line_update(request.get_json(silent=True))
    transaction = sales_service.update_line(g.actor, transaction_id, product_id, quantity)
    return {"message": "Sale updated successfully", "transaction": transaction}


@sales_bp.delete("/<transaction_id>")
@require_auth
def delete_sale_route(transaction_id: str):
    deleted = sales_service.delete_transaction(g.actor, transaction_id)
    return {"message": "Transaction deleted successfully", "deleted_transaction": deleted}
