# Overview: Capability system package.
# Re-exports all public APIs.

from .categories import CapabilityCategory
from .definitions import (
    CAPABILITY_DEFINITIONS,
    CATALOG_CAPABILITIES,
    SALES_CAPABILITIES,
    USER_CAPABILITIES,
    CONTENT_CAPABILITIES,
    OWNERSHIP_CAPABILITIES,
)
from .roles import Role, DEFAULT_ROLE_CAPABILITIES, TENANT_CAPABILITIES
from .helpers import (
    get_all_capability_codes,
    get_capability_definition,
    validate_capability_code,
    get_role_capabilities,
)
from .policies import Actor, is_allowed

__all__ = [
    "CapabilityCategory",
    "CAPABILITY_DEFINITIONS",
    "CATALOG_CAPABILITIES",
    "SALES_CAPABILITIES",
    "USER_CAPABILITIES",
    "CONTENT_CAPABILITIES",
    "OWNERSHIP_CAPABILITIES",
    "Role",
    "DEFAULT_ROLE_CAPABILITIES",
    "TENANT_CAPABILITIES",
    "get_all_capability_codes",
    "get_capability_definition",
    "validate_capability_code",
    "get_role_capabilities",
    "Actor",
    "is_allowed",
]
