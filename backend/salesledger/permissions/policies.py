# Overview: Pure authorization decisions over (actor, capability, resource).

"""
Authorization policies.

These functions never touch the database or the request: they decide from
the actor's role and, for ownership capabilities, the resource's owner id.

- Class-level capabilities (CREATE_SALE, VIEW_ANY_SALE, MANAGE_USERS, ...)
  are granted by role membership.
- Ownership capabilities (VIEW_SALE, UPDATE_PRODUCT, ...) additionally
  require actor.id to equal the resource owner, whatever the role.
"""

from dataclasses import dataclass

from .definitions import OWNERSHIP_CAPABILITIES
from .helpers import get_role_capabilities
from .roles import Role


@dataclass(frozen=True)
class Actor:
    """Resolved identity for one request."""
    id: int
    role: Role
    display_name: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


def role_allows(actor: Actor, capability: str) -> bool:
    return capability in get_role_capabilities(actor.role)


def owns(actor: Actor, resource, owner_attr: str) -> bool:
    owner_id = getattr(resource, owner_attr, None)
    return owner_id is not None and owner_id == actor.id


def is_allowed(actor: Actor | None, capability: str, resource=None) -> bool:
    """Return True when actor may exercise capability (on resource, if any)."""
    if actor is None:
        return False
    if not role_allows(actor, capability):
        return False

    owner_attr = OWNERSHIP_CAPABILITIES.get(capability)
    if owner_attr is None:
        return True
    if resource is None:
        # Ownership capability asked without a resource: fail closed
        return False
    return owns(actor, resource, owner_attr)
