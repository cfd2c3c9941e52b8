# Overview: Request and capability decorators for API routes.

from functools import wraps

from flask import g, jsonify, request

from .permissions import is_allowed, validate_capability_code
from .services import permission_service, session_service


def _is_authenticated() -> bool:
    return hasattr(g, "actor") and hasattr(g, "current_user")


def _bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    token = auth_header.split(" ", 1)[1].strip()
    return token or None


def require_auth(f):
    """
    Require authentication and establish the identity context.

    Sets the following Flask g attributes:
    - g.current_user: The authenticated User object
    - g.actor: The Actor (id, role, display name) every service takes
    - g.session_context: The full SessionContext object

    SECURITY: Returns 401 if:
    - No Authorization header
    - Invalid, expired or revoked token
    - User account deactivated
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = _bearer_token()
        if not token:
            return jsonify({"message": "Unauthenticated."}), 401

        context = session_service.validate_session(token)
        if not context:
            return jsonify({"message": "Invalid or expired token"}), 401

        g.current_user = context.user
        g.actor = context.actor
        g.session_context = context
        g.token = token

        return f(*args, **kwargs)

    return decorated_function


def require_capability(capability: str):
    """
    Require a role-granted capability before the view runs.

    Only for class-level capabilities (CREATE_SALE, MANAGE_USERS, ...);
    ownership capabilities are checked in the services against the row.
    """
    if not validate_capability_code(capability):
        raise ValueError(f"Unknown capability: {capability}")

    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return jsonify({"message": "Unauthenticated."}), 401

            if not is_allowed(g.actor, capability):
                permission_service.log_security_event(
                    user_id=g.actor.id,
                    event_type="CAPABILITY_DENIED",
                    success=False,
                    action=capability,
                    reason=f"Missing capability: {capability}",
                )
                return jsonify({
                    "message": "This action is unauthorized.",
                    "required_capability": capability,
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator
