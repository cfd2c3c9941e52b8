# Overview: Flask API routes for the tenant-scoped product catalog.

# backend/salesledger/routes/products.py
"""
Product catalog routes.

TENANT SCOPING: Every product operation is scoped to the caller (g.actor,
set by @require_auth). Another user's product id answers 404, never 403.

Errors raised by the services (ValidationError, NotFoundError, ...) are
rendered by the app-level handlers in errors.py.
"""
from flask import Blueprint, g, request

from ..decorators import require_auth, require_capability
from ..models import Product
from ..services import products_service
from ..services.pagination import page_request_from_args
from ..validation import ModelValidationPolicy, enforce_rules_product, validate_payload

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={"name", "brand", "price", "unit_cost", "bulk_cost"},
    required_on_create={"name", "price"},
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
@require_capability("VIEW_ANY_PRODUCT")
def list_products():
    """
    List the caller's products, newest first.

    Query params:
    - search: str (optional) - substring of name or brand, case-insensitive
    - brand: str (optional) - exact brand, case-insensitive
    - page: int (optional) - page number; selects page mode
    - cursor: str (optional) - opaque cursor; cursor mode (default)
    - per_page: int (optional) - items per page (default 15, max 100)
    """
    page_request = page_request_from_args(request.args)
    return products_service.list_products(
        g.actor,
        page_request,
        search=request.args.get("search"),
        brand=request.args.get("brand"),
    )


@products_bp.post("")
@require_auth
@require_capability("CREATE_PRODUCT")
def create_product_route():
    payload = request.get_json(silent=True) or {}

    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
    enforce_rules_product(patch)

    created = products_service.create_product(g.actor, patch)
    return {"message": "Product created successfully", "product": created}, 201


@products_bp.get("/<int:product_id>")
@require_auth
def get_product_route(product_id: int):
    return {"product": products_service.get_product(g.actor, product_id)}


@products_bp.put("/<int:product_id>")
@require_auth
def update_product_route(product_id: int):
    """Partial update: only the fields present in the body change."""
    payload = request.get_json(silent=True) or {}

    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
    enforce_rules_product(patch)

    updated = products_service.update_product(g.actor, product_id, patch)
    return {"message": "Product updated successfully", "product": updated}


@products_bp.delete("/<int:product_id>")
@require_auth
def delete_product_route(product_id: int):
    products_service.delete_product(g.actor, product_id)
    return {"message": "Product deleted successfully"}
