# Overview: Service-layer operations for capability checks and security event logging.

"""
Capability Checking and Security Event Logging

WHY: Enforce the authorization policies at every read/write path and keep
an audit trail of denials.

DESIGN PRINCIPLES:
- Fail closed: deny unless the policy explicitly allows
- Log denials only: grants are not logged
- Decisions are delegated to the pure functions in permissions.policies;
  this module adds the audit trail and the exception
"""

from flask import has_request_context, request

from ..extensions import db
from ..errors import AuthorizationError
from ..models import SecurityEvent
from ..permissions import Actor, get_role_capabilities, is_allowed, validate_capability_code
from salesledger.time_utils import utcnow


def log_security_event(
    user_id: int | None,
    event_type: str,
    success: bool,
    resource: str | None = None,
    action: str | None = None,
    reason: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> SecurityEvent:
    """
    Append a security event to the audit trail.

    Request metadata (path, client address, user agent) is filled in from the
    active request when the caller does not pass it.

    event_type examples:
    - CAPABILITY_DENIED
    - CROSS_TENANT_ACCESS_DENIED
    - LOGIN_FAILED
    - LOGOUT
    - USER_CREATED / USER_UPDATED / USER_DEACTIVATED
    """
    if has_request_context():
        resource = resource or request.path
        ip_address = ip_address or request.remote_addr
        user_agent = user_agent or request.headers.get("User-Agent")

    event = SecurityEvent(
        user_id=user_id,
        event_type=event_type,
        resource=resource,
        action=action,
        success=success,
        reason=reason,
        ip_address=ip_address,
        user_agent=user_agent,
        occurred_at=utcnow(),
    )

    db.session.add(event)
    db.session.commit()

    return event


def get_actor_capabilities(actor: Actor) -> set[str]:
    """Capabilities granted to the actor's role (ownership still applies per resource)."""
    return get_role_capabilities(actor.role)


def authorize(actor: Actor, capability: str, resource=None, message: str | None = None) -> None:
    """
    Require actor to hold capability (on resource, for ownership capabilities).

    Raises AuthorizationError and records a CAPABILITY_DENIED event if not.
    An unknown capability code is a programming error (ValueError).

    Usage:
        authorize(g.actor, "CREATE_SALE")
        authorize(g.actor, "DELETE_SALE", first_line)
    """
    if not validate_capability_code(capability):
        raise ValueError(f"Unknown capability: {capability}")

    if is_allowed(actor, capability, resource):
        return

    log_security_event(
        user_id=actor.id if actor else None,
        event_type="CAPABILITY_DENIED",
        success=False,
        action=capability,
        reason=f"Missing capability: {capability}",
    )
    raise AuthorizationError(message or f"Permission denied: {capability}")
