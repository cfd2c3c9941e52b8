# Overview: Role enum and the capabilities each role grants.

import enum


class Role(str, enum.Enum):
    """
    Three-tier role scheme, stored by name.

    USER owns a catalog and a ledger. MODERATOR adds content moderation.
    ADMIN adds user and role management. Tenant capabilities never depend on
    role: an admin sees only their own products and sales.
    """
    USER = "user"
    MODERATOR = "moderator"
    ADMIN = "admin"

    @classmethod
    def parse(cls, value) -> "Role":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(f"Unknown role: {value}") from None


TENANT_CAPABILITIES = [
    "CREATE_PRODUCT",
    "VIEW_ANY_PRODUCT",
    "VIEW_PRODUCT",
    "UPDATE_PRODUCT",
    "DELETE_PRODUCT",
    "CREATE_SALE",
    "VIEW_ANY_SALE",
    "VIEW_SALE",
    "UPDATE_SALE",
    "DELETE_SALE",
]

DEFAULT_ROLE_CAPABILITIES = {
    Role.USER: TENANT_CAPABILITIES,
    Role.MODERATOR: TENANT_CAPABILITIES + [
        "MODERATE_CONTENT",
    ],
    Role.ADMIN: TENANT_CAPABILITIES + [
        "VIEW_USERS",
        "MANAGE_USERS",
        "MANAGE_ROLES",
        "MODERATE_CONTENT",
    ],
}
