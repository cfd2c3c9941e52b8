# Overview: All capability definitions organized by category.
# Each capability is defined as: (code, name, description, category)

from .categories import CapabilityCategory


# -- CATALOG --

CATALOG_CAPABILITIES = [
    (
        "CREATE_PRODUCT",
        "Create Product",
        "Add products to the actor's own catalog",
        CapabilityCategory.CATALOG,
    ),
    (
        "VIEW_ANY_PRODUCT",
        "List Products",
        "List products (the query is always scoped to the actor's own rows)",
        CapabilityCategory.CATALOG,
    ),
    (
        "VIEW_PRODUCT",
        "View Product",
        "View a single product the actor owns",
        CapabilityCategory.CATALOG,
    ),
    (
        "UPDATE_PRODUCT",
        "Update Product",
        "Edit a product the actor owns",
        CapabilityCategory.CATALOG,
    ),
    (
        "DELETE_PRODUCT",
        "Delete Product",
        "Delete a product the actor owns",
        CapabilityCategory.CATALOG,
    ),
]


# -- SALES --

SALES_CAPABILITIES = [
    (
        "CREATE_SALE",
        "Create Sale",
        "Record a multi-line sales transaction over owned products",
        CapabilityCategory.SALES,
    ),
    (
        "VIEW_ANY_SALE",
        "List Sales",
        "List transactions (the query is always scoped to the actor's own rows)",
        CapabilityCategory.SALES,
    ),
    (
        "VIEW_SALE",
        "View Sale",
        "View a sale line the actor owns",
        CapabilityCategory.SALES,
    ),
    (
        "UPDATE_SALE",
        "Update Sale",
        "Change the quantity of a sale line the actor owns",
        CapabilityCategory.SALES,
    ),
    (
        "DELETE_SALE",
        "Delete Sale",
        "Delete a transaction the actor owns",
        CapabilityCategory.SALES,
    ),
]


# -- USERS --

USER_CAPABILITIES = [
    (
        "VIEW_USERS",
        "View Users",
        "List user accounts",
        CapabilityCategory.USERS,
    ),
    (
        "MANAGE_USERS",
        "Manage Users",
        "Create, edit and deactivate user accounts",
        CapabilityCategory.USERS,
    ),
    (
        "MANAGE_ROLES",
        "Manage Roles",
        "View roles and assign them to users",
        CapabilityCategory.USERS,
    ),
]


# -- CONTENT --

CONTENT_CAPABILITIES = [
    (
        "MODERATE_CONTENT",
        "Moderate Content",
        "Moderate shared content",
        CapabilityCategory.CONTENT,
    ),
]


CAPABILITY_DEFINITIONS = (
    CATALOG_CAPABILITIES
    + SALES_CAPABILITIES
    + USER_CAPABILITIES
    + CONTENT_CAPABILITIES
)

# Capabilities decided by comparing the actor with the resource owner.
# Maps capability code -> owner attribute on the resource.
OWNERSHIP_CAPABILITIES = {
    "VIEW_PRODUCT": "owner_user_id",
    "UPDATE_PRODUCT": "owner_user_id",
    "DELETE_PRODUCT": "owner_user_id",
    "VIEW_SALE": "user_id",
    "UPDATE_SALE": "user_id",
    "DELETE_SALE": "user_id",
}
