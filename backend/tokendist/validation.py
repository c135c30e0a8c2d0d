from __future__ import annotations

from typing import Any

from .errors import ValidationError


MAX_ADDRESS_LENGTH = 64


def normalize_address(value: Any, field: str = "address") -> str:
    """
    Canonical account identity: trimmed, lower-cased string.

    Addresses are compared as opaque strings; no checksum validation here.
    """
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    address = value.strip().lower()
    if not address:
        raise ValidationError(f"{field} cannot be blank")
    if len(address) > MAX_ADDRESS_LENGTH:
        raise ValidationError(f"{field} exceeds max length {MAX_ADDRESS_LENGTH}")
    return address


def coerce_amount(value: Any, field: str = "amount", *, allow_zero: bool = False) -> int:
    """
    Strict integer coercion for token/payment amounts.

    - int (not bool) passes through
    - str must be plain digits (no sign, decimals or scientific notation)
    - floats are rejected outright; amounts never go through floating point
    """
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")

    if isinstance(value, int):
        amount = value
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        # Reject scientific notation (e.g., "1e18", "1E10")
        if 'e' in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        # Reject decimal points (e.g., "12.5")
        if '.' in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        # ASCII digits only ("²" and "٣" are isdigit() too)
        if not (stripped.isascii() and stripped.isdigit()):
            raise ValidationError(f"{field} must be a non-negative integer")
        amount = int(stripped)
    elif isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal")
    else:
        raise ValidationError(f"{field} must be an integer")

    if amount < 0:
        raise ValidationError(f"{field} must be >= 0")
    if amount == 0 and not allow_zero:
        raise ValidationError(f"{field} must be > 0")
    return amount


def coerce_address_list(value: Any, field: str = "addresses") -> list[str]:
    if not isinstance(value, list) or not value:
        raise ValidationError(f"{field} must be a non-empty list")
    return [normalize_address(item, field) for item in value]


def coerce_amount_list(value: Any, field: str = "balances") -> list[int]:
    if not isinstance(value, list) or not value:
        raise ValidationError(f"{field} must be a non-empty list")
    return [coerce_amount(item, field) for item in value]
