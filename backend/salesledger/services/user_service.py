# Overview: Administrative user and role management.

"""
User Administration Service

Role model: exactly three named roles (user, moderator, admin). Role
changes take effect on the next request because sessions resolve the
role from the user row each time.

RULES:
- At most one active admin exists. Creating or promoting a second one is
  refused (403).
- An admin cannot deactivate their own account (422).
- Deactivating an account revokes all of its sessions.
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..errors import AuthorizationError, NotFoundError, ValidationError
from ..models import User
from ..permissions import Actor, Role, get_capability_definition, get_role_capabilities
from . import auth_service, session_service
from .permission_service import authorize, log_security_event


ONLY_ONE_ADMIN = "Only one admin is allowed"


def _parse_role(value) -> Role:
    try:
        return Role.parse(value)
    except ValueError:
        raise ValidationError.for_field("role", "The selected role is invalid.") from None


def _ensure_admin_slot(exclude_user_id: int | None = None) -> None:
    query = db.session.query(User.id).filter(User.role == Role.ADMIN, User.is_active.is_(True))
    if exclude_user_id is not None:
        query = query.filter(User.id != exclude_user_id)
    if query.first() is not None:
        raise AuthorizationError(ONLY_ONE_ADMIN)


def _get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


def list_roles(actor: Actor) -> list[dict]:
    authorize(actor, "MANAGE_ROLES")
    return [
        {
            "name": role.value,
            "capabilities": [
                get_capability_definition(code)
                for code in sorted(get_role_capabilities(role))
            ],
        }
        for role in Role
    ]


def list_users(actor: Actor, include_inactive: bool = False) -> list[dict]:
    authorize(actor, "VIEW_USERS")
    query = db.session.query(User)
    if not include_inactive:
        query = query.filter(User.is_active.is_(True))
    return [u.to_dict() for u in query.order_by(User.username).all()]


def create_user(actor: Actor, data: dict) -> dict:
    """Create an account with any role, subject to the one-admin rule."""
    authorize(actor, "MANAGE_USERS")

    role = _parse_role(data.get("role") or Role.USER.value)
    if role == Role.ADMIN:
        _ensure_admin_slot()

    user = auth_service.create_user(
        username=data.get("username"),
        name=data.get("name"),
        email=data.get("email"),
        password=data.get("password"),
        role=role,
    )

    log_security_event(
        user_id=actor.id,
        event_type="USER_CREATED",
        success=True,
        action="MANAGE_USERS",
        reason=f"Created user {user.id} with role {role.value}",
    )
    current_app.logger.info("User %s created by admin %s", user.id, actor.id)
    return user.to_dict()


def update_user(actor: Actor, user_id: int, data: dict) -> dict:
    """
    Change name, email, password, role or is_active of an account.

    Only the keys present in data are touched.
    """
    authorize(actor, "MANAGE_USERS")
    user = _get_user(user_id)

    name = data.get("name", user.name)
    email = data.get("email", user.email)
    _username, name, email = auth_service.validate_account_fields(user.username, name, email)
    auth_service.ensure_unique_identity("", email, exclude_user_id=user.id)

    role = _parse_role(data["role"]) if "role" in data else user.role
    is_active = data.get("is_active", user.is_active)
    if not isinstance(is_active, bool):
        raise ValidationError.for_field("is_active", "The is_active field must be true or false.")

    if user.id == actor.id and not is_active:
        raise ValidationError.for_field("is_active", "You cannot deactivate your own account.")
    if role == Role.ADMIN and is_active and not (user.role == Role.ADMIN and user.is_active):
        _ensure_admin_slot(exclude_user_id=user.id)

    password_hash = None
    if data.get("password"):
        password_hash = auth_service.hash_password(data["password"])

    user.name = name
    user.email = email
    user.role = role
    user.is_active = is_active
    if password_hash:
        user.password_hash = password_hash
    db.session.commit()

    if not is_active or password_hash:
        session_service.revoke_all_user_sessions(user.id, reason="Account updated by admin")

    log_security_event(
        user_id=actor.id,
        event_type="USER_UPDATED",
        success=True,
        action="MANAGE_USERS",
        reason=f"Updated user {user.id}: {sorted(data.keys())}",
    )
    return user.to_dict()


def deactivate_user(actor: Actor, user_id: int) -> dict:
    authorize(actor, "MANAGE_USERS")
    user = _get_user(user_id)

    if user.id == actor.id:
        raise ValidationError.for_field("user_id", "You cannot deactivate your own account.")

    user.is_active = False
    db.session.commit()
    revoked = session_service.revoke_all_user_sessions(user.id, reason="User deactivated")

    log_security_event(
        user_id=actor.id,
        event_type="USER_DEACTIVATED",
        success=True,
        action="MANAGE_USERS",
        reason=f"Deactivated user {user.id}, revoked {revoked} sessions",
    )
    current_app.logger.info("User %s deactivated by admin %s", user.id, actor.id)
    return user.to_dict()
