from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import Integer, String, Text
from sqlalchemy.orm import DeclarativeMeta


# Highest price a product may carry: ￥99,999,999
MAX_PRICE = 99_999_999

# Highest stock level a single product may carry
MAX_STOCK = 1_000_000


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate username)."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Which payload keys a route accepts for a model.

    writable_fields is the allow-list; anything else is rejected outright.
    required_on_create must be present when partial=False.
    """
    writable_fields: frozenset[str]
    required_on_create: frozenset[str] = field(default_factory=frozenset)


def coerce_int(value: Any, field_name: str) -> int:
    """
    Whole-number coercion for Yen amounts, quantities and ids.

    Accepts ints and plain digit strings ("12", "-3"). Rejects bools, floats,
    decimals ("12.5") and exponents ("1e3"): Yen has no minor unit, and a
    silently truncated quantity is worse than a 400.
    """
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        raise ValidationError(f"{field_name} must be an integer, not a decimal")
    if isinstance(value, str):
        text = value.strip()
        sign, digits = ("-", text[1:]) if text.startswith("-") else ("", text)
        if digits.isdigit() and digits.isascii():
            return int(sign + digits)
        if "." in text:
            raise ValidationError(f"{field_name} must be an integer (no decimals)")
    raise ValidationError(f"{field_name} must be an integer")


def _clean_value(column, value: Any):
    if isinstance(column.type, Integer):
        return coerce_int(value, column.key)

    if isinstance(column.type, (String, Text)):
        text = str(value).strip()
        if text == "" and not column.nullable:
            raise ValidationError(f"{column.key} cannot be blank")
        length = getattr(column.type, "length", None)
        if length and len(text) > length:
            raise ValidationError(f"{column.key} exceeds max length {length}")
        return text

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Turn request JSON into a patch of column values for model.

    Column metadata drives the checks: integer columns go through coerce_int,
    string columns are stripped and length-checked, and NULL is only allowed
    on nullable columns.

    partial=False: create semantics (every required_on_create key present)
    partial=True: update semantics (only the keys given are checked)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if not partial:
        missing = sorted(policy.required_on_create - payload.keys())
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    columns = {c.key: c for c in model.__mapper__.columns}

    patch: dict = {}
    for key, raw in payload.items():
        if key not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {key}")
        column = columns.get(key)
        if column is None:
            raise ValidationError(f"Unknown field: {key}")

        if raw is None:
            if not column.nullable:
                raise ValidationError(f"{key} cannot be null")
            patch[key] = None
            continue

        patch[key] = _clean_value(column, raw)

    return patch


def enforce_rules_product(patch: dict) -> None:
    """Range rules for product price and stock."""
    price = patch.get("price")
    if price is not None:
        if price < 0:
            raise ValidationError("price must be >= 0")
        if price > MAX_PRICE:
            raise ValidationError(f"price cannot exceed ￥{MAX_PRICE:,}")

    stock = patch.get("stock")
    if stock is not None:
        if stock < 0:
            raise ValidationError("stock must be >= 0")
        if stock > MAX_STOCK:
            raise ValidationError(f"stock cannot exceed {MAX_STOCK:,}")
