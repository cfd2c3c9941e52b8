from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy import Boolean, Integer, Numeric, String, Text
from sqlalchemy.orm import DeclarativeMeta

from salesledger.errors import ValidationError
from salesledger.money import CENT, MAX_MONEY, as_money
from salesledger.time_utils import parse_date_bound


# Largest accepted product price: 99,999,999.99
MAX_PRICE = Decimal("99999999.99")

# Upper bound on a single line quantity; line totals are checked separately
# against MAX_MONEY once the price is known
MAX_QUANTITY = 1_000_000

# Largest value a signed 64-bit INTEGER column accepts; ids and offsets above
# it cannot be bound as query parameters
MAX_DB_INTEGER = 2**63 - 1


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


class _FieldError(ValueError):
    pass


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_int(value: Any, field: str) -> int:
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        # Plain ASCII digits only: no "1e3", no "12.5", no "²"
        if stripped.isascii() and stripped.lstrip("-").isdigit():
            return int(stripped)
    raise _FieldError(f"The {field} must be an integer.")


def _coerce_money(value: Any, field: str) -> Decimal:
    if isinstance(value, bool):
        raise _FieldError(f"The {field} must be a number.")
    if isinstance(value, (int, float, Decimal)) or isinstance(value, str):
        try:
            dec = Decimal(str(value).strip())
        except InvalidOperation:
            raise _FieldError(f"The {field} must be a number.") from None
        if not dec.is_finite():
            raise _FieldError(f"The {field} must be a number.")
        if dec != dec.quantize(CENT):
            raise _FieldError(f"The {field} may not have more than 2 decimal places.")
        return as_money(dec)
    raise _FieldError(f"The {field} must be a number.")


def _coerce_value(col, value: Any):
    coltype = col.type

    if isinstance(coltype, Integer):
        return _coerce_int(value, col.key)

    if isinstance(coltype, Numeric):
        return _coerce_money(value, col.key)

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        raise _FieldError(f"The {col.key} field must be true or false.")

    if isinstance(coltype, (String, Text)):
        if not isinstance(value, str):
            raise _FieldError(f"The {col.key} must be a string.")
        return value.strip()

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.

    Every problem found is collected and raised together as one
    ValidationError keyed by field name.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    errors: dict[str, list[str]] = {}

    def fail(field: str, message: str) -> None:
        errors.setdefault(field, []).append(message)

    required = policy.required_on_create or set()
    if not partial:
        for field in sorted(required):
            if field not in payload:
                fail(field, f"The {field} field is required.")

    cols = _columns_by_key(model)
    patch: dict = {}

    for k, raw in payload.items():
        if k not in policy.writable_fields or k not in cols:
            fail(k, f"The {k} field is not allowed.")
            continue
        col = cols[k]

        if raw is None:
            if not col.nullable:
                fail(k, f"The {k} field is required.")
            else:
                patch[k] = None
            continue

        try:
            val = _coerce_value(col, raw)
        except _FieldError as exc:
            fail(k, str(exc))
            continue

        if isinstance(col.type, (String, Text)) and isinstance(val, str):
            if val == "":
                if not col.nullable:
                    fail(k, f"The {k} field is required.")
                    continue
                val = None
            elif col.type.length and len(val) > col.type.length:
                fail(k, f"The {k} may not be greater than {col.type.length} characters.")
                continue

        patch[k] = val

    if errors:
        raise ValidationError("Validation failed", errors=errors)
    return patch


def enforce_rules_product(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    errors: dict[str, list[str]] = {}
    for field in ("price", "unit_cost", "bulk_cost"):
        value = patch.get(field)
        if value is None:
            continue
        if value < 0:
            errors[field] = [f"The {field} must be at least 0."]
        elif value > MAX_PRICE:
            errors[field] = [f"The {field} may not be greater than {MAX_PRICE:,}."]
    if errors:
        raise ValidationError("Validation failed", errors=errors)


def _quantity_error(value) -> str | None:
    if isinstance(value, bool) or not isinstance(value, int):
        return "The quantity must be an integer."
    if value < 1:
        return "The quantity must be at least 1."
    if value > MAX_QUANTITY:
        return f"The quantity may not be greater than {MAX_QUANTITY}."
    return None


def _product_id_error(value) -> str | None:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1 or value > MAX_DB_INTEGER:
        return "The selected product_id is invalid."
    return None


def line_amount_error(total, utility) -> str | None:
    """Message when a computed line would not fit a Numeric(12, 2) column, else None."""
    if total > MAX_MONEY or abs(utility) > MAX_MONEY:
        return f"The quantity is too large: the line amount may not exceed {MAX_MONEY:,}."
    return None


def validate_sale_lines(payload) -> list[tuple[int, int]]:
    """
    Validate a checkout body {products: [{product_id, quantity}, ...]}.

    Returns [(product_id, quantity), ...] in input order. Errors are keyed
    the way clients address them: "products", "products.1.quantity", ...
    A product may appear only once per checkout.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    items = payload.get("products")
    if not isinstance(items, list) or not items:
        raise ValidationError.for_field("products", "The products field must be a non-empty list.")

    errors: dict[str, list[str]] = {}
    lines: list[tuple[int, int]] = []
    seen: set[int] = set()

    for index, item in enumerate(items):
        if not isinstance(item, dict):
            errors[f"products.{index}"] = ["Each product entry must be an object."]
            continue

        product_id = item.get("product_id")
        quantity = item.get("quantity")

        pid_error = _product_id_error(product_id)
        if pid_error:
            errors[f"products.{index}.product_id"] = [pid_error]
        elif product_id in seen:
            errors[f"products.{index}.product_id"] = ["The product_id field has a duplicate value."]
        else:
            seen.add(product_id)

        qty_error = _quantity_error(quantity)
        if qty_error:
            errors[f"products.{index}.quantity"] = [qty_error]

        if not pid_error and not qty_error:
            lines.append((product_id, quantity))

    if errors:
        raise ValidationError("Validation failed", errors=errors)
    return lines


def validate_line_update(payload) -> tuple[int, int]:
    """Validate {product_id, quantity} for a single-line update."""
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    errors: dict[str, list[str]] = {}
    product_id = payload.get("product_id")
    quantity = payload.get("quantity")

    if product_id is None:
        errors["product_id"] = ["The product_id field is required."]
    elif _product_id_error(product_id):
        errors["product_id"] = [_product_id_error(product_id)]

    if quantity is None:
        errors["quantity"] = ["The quantity field is required."]
    elif _quantity_error(quantity):
        errors["quantity"] = [_quantity_error(quantity)]

    if errors:
        raise ValidationError("Validation failed", errors=errors)
    return product_id, quantity


def parse_positive_int(
    args,
    field: str,
    default: int | None = None,
    maximum: int | None = None,
    limit: int = MAX_DB_INTEGER,
) -> int | None:
    """
    Read an optional positive integer query parameter.

    Values above maximum are clamped to it; values above limit are rejected.
    """
    raw = args.get(field)
    if raw is None or raw == "":
        return default
    try:
        value = _coerce_int(raw, field)
    except _FieldError as exc:
        raise ValidationError.for_field(field, str(exc)) from None
    if value < 1:
        raise ValidationError.for_field(field, f"The {field} must be at least 1.")
    if maximum is not None:
        return min(value, maximum)
    if value > limit:
        raise ValidationError.for_field(field, f"The {field} may not be greater than {limit}.")
    return value


def parse_date_range(args) -> tuple:
    """
    Parse start_date / end_date query parameters.

    Accepts ISO dates or datetimes. A date-only end_date covers the whole
    day. start_date after end_date is rejected.
    """
    errors: dict[str, list[str]] = {}
    bounds = {}
    for field, end_of_day in (("start_date", False), ("end_date", True)):
        try:
            bounds[field] = parse_date_bound(args.get(field), end_of_day=end_of_day)
        except ValueError:
            errors[field] = [f"The {field} is not a valid date."]
    if errors:
        raise ValidationError("Validation failed", errors=errors)

    start, end = bounds["start_date"], bounds["end_date"]
    if start and end and start > end:
        raise ValidationError.for_field("end_date", "The end_date must be a date after or equal to start_date.")
    return start, end


