"""
Tenant Scoping Helpers

WHY: Centralize the per-user data isolation rules for reuse across services.
A tenant is one user and the products and sale lines they own.

SECURITY INVARIANTS:
1. Every query touching products or sales starts from owned_products() or
   owned_sales(), which filter on the actor's id. Client-supplied filters are
   applied on top and can only narrow the result.
2. A row owned by another tenant is reported as "not found", exactly like a
   row that does not exist. The difference is only recorded in the audit log.

USAGE:
    from salesledger.services.tenant_service import owned_sales, require_owned_product

    lines = owned_sales(g.actor).filter(Sale.transaction_id == txn_id).all()
    product = require_owned_product(g.actor, product_id)
"""

from ..extensions import db
from ..errors import NotFoundError
from ..models import Product, Sale
from ..permissions import Actor
from ..validation import MAX_DB_INTEGER
from .permission_service import log_security_event


def owned_products(actor: Actor):
    """Base query over the actor's catalog."""
    return db.session.query(Product).filter(Product.owner_user_id == actor.id)


def owned_sales(actor: Actor):
    """Base query over the actor's sale lines."""
    return db.session.query(Sale).filter(Sale.user_id == actor.id)


def fetch_owned_products(actor: Actor, product_ids) -> dict[int, Product]:
    """
    Bulk ownership lookup: {product_id: Product} for the ids the actor owns.

    One query regardless of how many ids are asked for. Ids that do not
    exist or belong to someone else are simply absent from the result.
    """
    ids = {int(pid) for pid in product_ids}
    if not ids:
        return {}
    products = owned_products(actor).filter(Product.id.in_(ids)).all()
    return {p.id: p for p in products}


def require_owned_product(actor: Actor, product_id: int) -> Product:
    """
    Return the product if the actor owns it.

    Raises NotFoundError if it does not exist or belongs to another tenant.
    """
    if not 0 < product_id <= MAX_DB_INTEGER:
        raise NotFoundError("Product not found")

    product = owned_products(actor).filter(Product.id == product_id).first()
    if product is not None:
        return product

    if db.session.query(Product.id).filter(Product.id == product_id).first() is not None:
        _log_cross_tenant_attempt(actor, f"Product {product_id} belongs to another user")
    raise NotFoundError("Product not found")


def require_owned_transaction(actor: Actor, transaction_id: str) -> list[Sale]:
    """
    Return the actor's lines of a transaction, in line order.

    Raises NotFoundError if the actor has no line with that id.
    """
    lines = (
        owned_sales(actor)
        .filter(Sale.transaction_id == transaction_id)
        .order_by(Sale.line_number.asc(), Sale.id.asc())
        .all()
    )
    if lines:
        return lines

    if db.session.query(Sale.id).filter(Sale.transaction_id == transaction_id).first() is not None:
        _log_cross_tenant_attempt(actor, f"Transaction {transaction_id} belongs to another user")
    raise NotFoundError("Sale not found or you do not have permission to access it")


def _log_cross_tenant_attempt(actor: Actor, reason: str) -> None:
    """
    Log a cross-tenant access attempt as a security event.

    SECURITY: Audit trail for probing; the caller still receives a plain 404.
    """
    log_security_event(
        user_id=actor.id,
        event_type="CROSS_TENANT_ACCESS_DENIED",
        success=False,
        reason=reason,
    )
