# backend/salesledger/services/products_service.py
"""
Products Service (tenant-scoped catalog)

TENANT SCOPING: every operation runs against tenant_service.owned_products().
- create_product assigns owner_user_id from the actor, never from the payload
- get/update/delete report another user's product as "not found"
- list_products is cached like the ledger listings (CACHE_DEFAULT_TTL)
"""
from __future__ import annotations

from flask import current_app

from ..extensions import db, query_cache
from ..models import Product
from ..permissions import Actor
from .cache_service import make_cache_key
from .concurrency import atomic
from .pagination import PageRequest, paginate_query
from .permission_service import authorize
from .tenant_service import owned_products, require_owned_product
from salesledger.time_utils import utcnow

PRODUCT_MUTABLE_FIELDS = {"name", "brand", "price", "unit_cost", "bulk_cost"}

LIST_CACHE_NAMESPACE = "products:list"


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def list_products(
    actor: Actor,
    page_request: PageRequest,
    search: str | None = None,
    brand: str | None = None,
) -> dict:
    """
    The actor's products, newest first.

    search: case-insensitive substring over name and brand
    brand:  exact brand, case-insensitive
    """
    authorize(actor, "VIEW_ANY_PRODUCT")

    search = (search or "").strip() or None
    brand = (brand or "").strip() or None

    signature = {
        "user_id": actor.id,
        "search": search,
        "brand": brand,
        **page_request.signature(),
    }

    def compute() -> dict:
        query = owned_products(actor)
        if search:
            pattern = f"%{_escape_like(search.lower())}%"
            query = query.filter(
                db.or_(
                    db.func.lower(Product.name).like(pattern, escape="\\"),
                    db.func.lower(db.func.coalesce(Product.brand, "")).like(pattern, escape="\\"),
                )
            )
        if brand:
            query = query.filter(db.func.lower(Product.brand) == brand.lower())

        query = query.order_by(Product.created_at.desc(), Product.id.desc())
        rows, meta = paginate_query(query, page_request)
        return {
            "products": [p.to_dict() for p in rows],
            "count": len(rows),
            **meta,
        }

    return query_cache.remember(make_cache_key(LIST_CACHE_NAMESPACE, signature), compute)


def get_product(actor: Actor, product_id: int) -> dict:
    product = require_owned_product(actor, product_id)
    authorize(actor, "VIEW_PRODUCT", product)
    return product.to_dict()


def create_product(actor: Actor, patch: dict) -> dict:
    """Create a product owned by the actor from a validated patch."""
    authorize(actor, "CREATE_PRODUCT")

    now = utcnow()
    product = Product(owner_user_id=actor.id, created_at=now, updated_at=now)
    apply_product_patch(product, patch)

    with atomic("Failed to create product") as session:
        session.add(product)

    current_app.logger.info("Product %s created by user %s", product.id, actor.id)
    return product.to_dict()


def update_product(actor: Actor, product_id: int, patch: dict) -> dict:
    product = require_owned_product(actor, product_id)
    authorize(actor, "UPDATE_PRODUCT", product)

    with atomic("Failed to update product"):
        apply_product_patch(product, patch)
        product.updated_at = utcnow()

    return product.to_dict()


def delete_product(actor: Actor, product_id: int) -> None:
    """
    Hard delete. Existing sale lines keep their product_id and render the
    product as missing from now on.
    """
    product = require_owned_product(actor, product_id)
    authorize(actor, "DELETE_PRODUCT", product)

    with atomic("Failed to delete product") as session:
        session.delete(product)

    current_app.logger.info("Product %s deleted by user %s", product_id, actor.id)
