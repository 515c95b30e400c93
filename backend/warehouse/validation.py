from __future__ import annotations
import math
from datetime import datetime
from warehouse.time_utils import parse_iso_datetime

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Boolean, DateTime, Float, Integer, String, Text
from sqlalchemy.orm import DeclarativeMeta


# Upper bound for any quantity or weight; keeps nonsense input out of stored totals
MAX_AMOUNT = 1_000_000_000


class ValidationError(ValueError):
    """400-level input problem. Always raised before any write."""


class AuthorizationError(ValidationError):
    """403-level: the actor lacks the permission for the action."""


class NotFoundError(ValidationError):
    """404-level: referenced record does not exist."""


class ConflictError(ValidationError):
    """409-level business rule conflict (e.g., deleting a product with ledger history)."""


class InsufficientStockError(ConflictError):
    """Outbound movement larger than available stock."""

    def __init__(self, requested: float, available: float, unit: str):
        self.requested = requested
        self.available = available
        self.unit = unit
        super().__init__(
            f"Insufficient stock: requested {requested:g} {unit}, available {available:g} {unit}"
        )


class StorageError(Exception):
    """The persistence layer failed or timed out. May follow a partial write attempt."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_number(key: str, value: Any) -> float:
    # bool is a subclass of int; "true" is never a quantity
    if isinstance(value, bool):
        raise ValidationError(f"{key} must be a number")
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{key} must be a number")
        try:
            number = float(stripped)
        except ValueError:
            raise ValidationError(f"{key} must be a number")
    else:
        raise ValidationError(f"{key} must be a number")

    if math.isnan(number) or math.isinf(number):
        raise ValidationError(f"{key} must be a finite number")
    if number < 0:
        raise ValidationError(f"{key} cannot be negative")
    if number > MAX_AMOUNT:
        raise ValidationError(f"{key} cannot exceed {MAX_AMOUNT}")
    return number


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    # Integers - reject decimals, booleans and scientific notation
    if isinstance(coltype, Integer):
        number = _coerce_number(col.key, value)
        if isinstance(value, str) and "e" in value.lower():
            raise ValidationError(f"{col.key} must be a plain integer (scientific notation not allowed)")
        if not number.is_integer():
            raise ValidationError(f"{col.key} must be an integer (no decimals)")
        return int(number)

    # Quantities and weights arrive from forms as strings; normalize to float
    if isinstance(coltype, Float):
        return _coerce_number(col.key, value)

    # Booleans
    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        raise ValidationError(f"{col.key} must be true or false")

    # Datetimes (accept ISO-8601 strings; normalize to UTC)
    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            if dt is None:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            return dt
        raise ValidationError(f"{col.key} must be a datetime")

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    # Default: leave as-is
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

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if f not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    # Reject unknown / non-writable fields
    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        # NULL handling
        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        # Forms send "" for untouched optional inputs
        if raw == "" and col.nullable and not isinstance(col.type, (String, Text)):
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        # Blank string check for non-nullable text fields
        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        # Max length check for String(n)
        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def enforce_rules_product(patch: dict, *, unit: str) -> None:
    """
    Unit-specific rules that SQLAlchemy metadata cannot express.

    box needs box_weight; pallet needs pallet_weight and boxes_per_pallet.
    Counted units (box, pallet) take whole-number quantities.
    """
    from warehouse.services.weight_service import UNITS, UNIT_BOX, UNIT_PALLET, is_integral_unit

    if unit not in UNITS:
        raise ValidationError(f"unit must be one of: {', '.join(UNITS)}")

    if unit == UNIT_BOX and patch.get("box_weight") is None:
        raise ValidationError("box_weight is required for box products")

    if unit == UNIT_PALLET:
        if patch.get("pallet_weight") is None:
            raise ValidationError("pallet_weight is required for pallet products")
        if patch.get("boxes_per_pallet") is None:
            raise ValidationError("boxes_per_pallet is required for pallet products")

    quantity = patch.get("quantity")
    if quantity is not None and is_integral_unit(unit) and not float(quantity).is_integer():
        raise ValidationError(f"quantity must be a whole number for {unit} products")


def enforce_rules_movement(patch: dict, *, unit: str | None = None) -> None:
    # Movements always move a positive amount; direction comes from type
    quantity = patch.get("quantity")
    if quantity is None or quantity <= 0:
        raise ValidationError("quantity must be > 0")

    if "type" in patch and patch["type"] not in ("in", "out"):
        raise ValidationError("type must be 'in' or 'out'")

    if unit is not None:
        from warehouse.services.weight_service import is_integral_unit

        if is_integral_unit(unit) and not float(quantity).is_integer():
            raise ValidationError(f"quantity must be a whole number for {unit} products")


def http_status_for(exc: Exception) -> int:
    """Status code for a domain error raised by a service."""
    if isinstance(exc, AuthorizationError):
        return 403
    if isinstance(exc, NotFoundError):
        return 404
    if isinstance(exc, ConflictError):
        return 409
    if isinstance(exc, ValidationError):
        return 400
    if isinstance(exc, StorageError):
        return 503
    return 500
