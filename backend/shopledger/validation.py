from __future__ import annotations
from datetime import datetime
from shopledger.time_utils import parse_iso_datetime

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Boolean, Integer, String, Text, DateTime
from sqlalchemy.orm import DeclarativeMeta


# Maximum price: 9,999,999.99 ETB (999,999,999 cents)
# This prevents database overflow issues and nonsensical prices
MAX_PRICE_CENTS = 999_999_999

# Unit counts (stock, amount sold) and the stored total of one sale.
# Aggregates sum many totals, so one sale stays far below the 64-bit column limit.
MAX_QUANTITY = 1_000_000_000
MAX_TOTAL_CENTS = 10 ** 15


class LedgerError(Exception):
    """Base for errors the API layer maps to a 4xx response."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class ValidationError(LedgerError, ValueError):
    """400-level input problem."""


class InsufficientStockError(ValidationError):
    """400-level: a sale asks for more units than the product has in stock."""


class NotFoundError(LedgerError, LookupError):
    """404-level: a referenced row does not exist."""


class ConflictError(LedgerError, ValueError):
    """409-level business rule conflict (e.g., sale already on a debit)."""


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


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    # Integers - strict validation to reject floats and scientific notation
    if isinstance(coltype, Integer):
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped:
                raise ValidationError(f"{col.key} must be an integer")
            if 'e' in stripped.lower():
                raise ValidationError(f"{col.key} must be a plain integer (scientific notation not allowed)")
            if '.' in stripped:
                raise ValidationError(f"{col.key} must be an integer (no decimals)")
            try:
                return int(stripped)
            except ValueError:
                raise ValidationError(f"{col.key} must be an integer")
        if isinstance(value, float):
            # 12.0 arrives from some JSON encoders for whole numbers
            if value.is_integer():
                return int(value)
            raise ValidationError(f"{col.key} must be an integer, not a decimal")
        raise ValidationError(f"{col.key} must be an integer")

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        return bool(value)

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

    if isinstance(coltype, (String, Text)):
        return str(value).strip()

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

    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def _check_price(patch: dict, field: str, *, allow_zero: bool = False) -> None:
    if field not in patch or patch[field] is None:
        return
    price = patch[field]
    if price < 0 or (price == 0 and not allow_zero):
        raise ValidationError(f"{field} must be {'>= 0' if allow_zero else '> 0'}")
    if price > MAX_PRICE_CENTS:
        raise ValidationError(f"{field} cannot exceed {MAX_PRICE_CENTS} ({MAX_PRICE_CENTS / 100:,.2f} ETB)")


def _check_positive_int(patch: dict, field: str) -> None:
    if field in patch and patch[field] is not None and patch[field] <= 0:
        raise ValidationError(f"{field} must be a positive integer")


def _check_quantity(patch: dict, field: str) -> None:
    if field in patch and patch[field] is not None and patch[field] > MAX_QUANTITY:
        raise ValidationError(f"{field} cannot exceed {MAX_QUANTITY:,}")


def check_sale_total(amount: int, sold_price_cents: int) -> int:
    """Total of one sale line; rejects totals the ledger columns cannot hold."""
    total = amount * sold_price_cents
    if total > MAX_TOTAL_CENTS:
        raise ValidationError(
            f"Sale total cannot exceed {MAX_TOTAL_CENTS} cents ({MAX_TOTAL_CENTS / 100:,.2f} ETB)",
            details={"amount": amount, "sold_price_cents": sold_price_cents},
        )
    return total


def enforce_rules_product(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    _check_price(patch, "initial_price_cents")
    _check_price(patch, "selling_price_cents")
    if "quantity" in patch and patch["quantity"] is not None and patch["quantity"] < 0:
        raise ValidationError("quantity must be >= 0")
    _check_quantity(patch, "quantity")


def enforce_rules_service(patch: dict) -> None:
    _check_price(patch, "default_price_cents")


def enforce_rules_sale_item(patch: dict) -> None:
    # Exactly one sale target; amount and price strictly positive
    has_product = patch.get("product_id") is not None
    has_service = patch.get("service_id") is not None
    if has_product == has_service:
        raise ValidationError("Exactly one of product_id or service_id is required")
    if "amount" not in patch or patch["amount"] is None:
        raise ValidationError("amount is required")
    if "sold_price_cents" not in patch or patch["sold_price_cents"] is None:
        raise ValidationError("sold_price_cents is required")
    enforce_rules_sale_amendment(patch)


def enforce_rules_sale_amendment(patch: dict) -> None:
    _check_positive_int(patch, "amount")
    _check_quantity(patch, "amount")
    _check_price(patch, "sold_price_cents")
    if patch.get("amount") is not None and patch.get("sold_price_cents") is not None:
        check_sale_total(patch["amount"], patch["sold_price_cents"])


def enforce_rules_debit_item(patch: dict) -> None:
    if patch.get("sell_history_id") is None:
        raise ValidationError("sell_history_id is required")
    if patch.get("amount_cents") is None:
        raise ValidationError("amount_cents is required")
    _check_positive_int(patch, "sell_history_id")
    _check_price(patch, "amount_cents")


def enforce_rules_debit_update(patch: dict) -> None:
    if "paid_amount_cents" in patch and patch["paid_amount_cents"] is not None:
        if patch["paid_amount_cents"] < 0:
            raise ValidationError("paid_amount_cents must be >= 0")


def enforce_rules_expense(patch: dict) -> None:
    _check_price(patch, "amount_cents")
    _check_price(patch, "unit_price_cents")
    _check_positive_int(patch, "quantity")
    _check_quantity(patch, "quantity")
