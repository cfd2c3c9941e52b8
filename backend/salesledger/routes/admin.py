# Overview: Flask API routes for admin operations; parses input and returns JSON responses.

# backend/salesledger/routes/admin.py
"""
Admin routes for user and role management.

Provides endpoints for:
- User management (list, create, update, deactivate)
- Role listing with the capabilities each role grants

All endpoints require authentication and an administrative capability.
Admins have no access to other users' products or sales through here.
"""

from flask import Blueprint, g, jsonify, request

from ..decorators import require_auth, require_capability
from ..services import user_service

admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


@admin_bp.get("/roles")
@require_auth
@require_capability("MANAGE_ROLES")
def list_roles():
    return jsonify({"roles": user_service.list_roles(g.actor)})


@admin_bp.get("/users")
@require_auth
@require_capability("VIEW_USERS")
def list_users():
    """
    List users.

    Query params:
    - include_inactive: bool (default false) - include deactivated users
    """
    include_inactive = request.args.get("include_inactive", "false").lower() == "true"
    users = user_service.list_users(g.actor, include_inactive=include_inactive)
    return jsonify({"users": users, "count": len(users)})


@admin_bp.post("/users")
@require_auth
@require_capability("MANAGE_USERS")
def create_user():
    """
    Create a new user.

    Request body:
    - username, name, email, password: str (required)
    - role: "user" | "moderator" | "admin" (optional, default "user")
    """
    data = request.get_json(silent=True) or {}
    user = user_service.create_user(g.actor, data)
    return jsonify({"message": "User created successfully", "user": user}), 201


@admin_bp.patch("/users/<int:user_id>")
@require_auth
@require_capability("MANAGE_USERS")
def update_user(user_id: int):
    data = request.get_json(silent=True) or {}
    user = user_service.update_user(g.actor, user_id, data)
    return jsonify({"message": "User updated successfully", "user": user})


@admin_bp.delete("/users/<int:user_id>")
@require_auth
@require_capability("MANAGE_USERS")
def deactivate_user(user_id: int):
    user = user_service.deactivate_user(g.actor, user_id)
    return jsonify({"message": "User deactivated successfully", "user": user})
