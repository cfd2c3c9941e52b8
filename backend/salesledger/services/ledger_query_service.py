# Overview: Read-only ledger queries; rebuilds transactions from sale lines, filters, paginates and caches.

"""
Ledger Query Service

WHY: The ledger stores only line items. Clients think in transactions
(one checkout), so every read groups lines by transaction_id and derives
the transaction-level totals on the fly.

GROUPING: strictly by transaction_id. Two checkouts in the same second stay
two transactions, and one checkout whose inserts straddle a second
boundary stays one.

TENANT SCOPING: every query starts from tenant_service.owned_sales(actor).
Filters only narrow that set; no parameter can widen it.

CACHING: list_transactions results are cached for CACHE_DEFAULT_TTL seconds
under a key built from actor id + filters + pagination. Writes do not
invalidate; a listing may be stale for up to one TTL. get_transaction is
never cached.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from ..extensions import db, query_cache
from ..models import Sale
from ..permissions import Actor
from .cache_service import make_cache_key
from .pagination import PageRequest, paginate_sequence
from .permission_service import authorize
from .tenant_service import fetch_owned_products, owned_sales, require_owned_transaction
from salesledger.money import ZERO, as_money, money_str
from salesledger.time_utils import to_utc_z


LIST_CACHE_NAMESPACE = "sales:list"


@dataclass
class TransactionView:
    """
    Read-only projection of all lines sharing one transaction_id.

    Never persisted and never mutated after construction.
    """
    transaction_id: str
    transaction_date: datetime
    user_name: str | None
    products: list[dict] = field(default_factory=list)
    total_amount: Decimal = ZERO
    total_utility: Decimal = ZERO
    total_items: int = 0
    last_line_id: int = 0

    @property
    def total_cost(self) -> Decimal:
        return self.total_amount - self.total_utility

    @property
    def products_count(self) -> int:
        return len(self.products)

    def to_dict(self) -> dict:
        return {
            "transaction_id": self.transaction_id,
            "transaction_date": to_utc_z(self.transaction_date),
            "total_amount": money_str(self.total_amount),
            "total_cost": money_str(self.total_cost),
            "total_utility": money_str(self.total_utility),
            "total_items": self.total_items,
            "products_count": self.products_count,
            "products": self.products,
            "user_name": self.user_name,
        }


def _line_entry(line: Sale, product) -> dict:
    # Product may have been deleted since the sale; the line still renders
    return {
        "sale_id": line.id,
        "product_id": line.product_id,
        "product_name": product.name if product else None,
        "brand": product.brand if product else None,
        "quantity": line.quantity,
        "unit_price": money_str(line.unit_price),
        "total": money_str(line.total),
        "utility": money_str(line.utility),
    }


def group_lines(lines: list[Sale], products_by_id: dict, user_name: str | None) -> list[TransactionView]:
    """
    Group line items by transaction_id into TransactionViews.

    transaction_date is the earliest created_at in the group. Result is
    sorted by transaction_date descending, newest line id breaking ties.
    """
    views: dict[str, TransactionView] = {}

    for line in sorted(lines, key=lambda s: (s.transaction_id, s.line_number, s.id)):
        view = views.get(line.transaction_id)
        if view is None:
            view = TransactionView(
                transaction_id=line.transaction_id,
                transaction_date=line.created_at,
                user_name=user_name,
            )
            views[line.transaction_id] = view

        if line.created_at < view.transaction_date:
            view.transaction_date = line.created_at
        view.last_line_id = max(view.last_line_id, line.id)

        view.products.append(_line_entry(line, products_by_id.get(line.product_id)))
        view.total_amount = as_money(view.total_amount + as_money(line.total))
        view.total_utility = as_money(view.total_utility + as_money(line.utility))
        view.total_items += line.quantity

    return sorted(
        views.values(),
        key=lambda v: (v.transaction_date, v.last_line_id),
        reverse=True,
    )


def build_views(actor: Actor, lines: list[Sale]) -> list[TransactionView]:
    """Resolve product names in one query, then group."""
    product_ids = {line.product_id for line in lines if line.product_id is not None}
    products_by_id = fetch_owned_products(actor, product_ids)
    return group_lines(lines, products_by_id, actor.display_name)


def _filtered_lines(actor: Actor, start_date, end_date, product_id) -> list[Sale]:
    query = owned_sales(actor)

    if start_date is not None:
        query = query.filter(Sale.created_at >= start_date)
    if end_date is not None:
        query = query.filter(Sale.created_at <= end_date)
    if product_id is not None:
        # Whole transactions that include the product, not just the matching lines
        containing = db.select(Sale.transaction_id).where(
            Sale.user_id == actor.id,
            Sale.product_id == product_id,
        )
        query = query.filter(Sale.transaction_id.in_(containing))

    return query.all()


def list_transactions(
    actor: Actor,
    page_request: PageRequest,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    product_id: int | None = None,
) -> dict:
    """
    List the actor's transactions, newest first, paginated over transactions.

    Returns {transactions, count, ...} with either cursor fields
    (next_cursor, prev_cursor, has_more) or a pagination block.
    """
    authorize(actor, "VIEW_ANY_SALE")

    signature = {
        "user_id": actor.id,
        "start_date": start_date.isoformat() if start_date else None,
        "end_date": end_date.isoformat() if end_date else None,
        "product_id": product_id,
        **page_request.signature(),
    }

    def compute() -> dict:
        lines = _filtered_lines(actor, start_date, end_date, product_id)
        views = build_views(actor, lines)
        page_items, meta = paginate_sequence(views, page_request)
        return {
            "transactions": [v.to_dict() for v in page_items],
            "count": len(page_items),
            **meta,
        }

    return query_cache.remember(make_cache_key(LIST_CACHE_NAMESPACE, signature), compute)


def load_transaction_view(actor: Actor, transaction_id: str) -> TransactionView:
    """Fresh (uncached) view of one of the actor's transactions; 404 if none."""
    lines = require_owned_transaction(actor, transaction_id)
    authorize(actor, "VIEW_SALE", lines[0])
    return build_views(actor, lines)[0]


def get_transaction(actor: Actor, transaction_id: str) -> dict:
    return load_transaction_view(actor, transaction_id).to_dict()

