"""
address.py - Address shape classification.

An address comes in one of two shapes on a payment slip:

    STRUCTURED         street, house number, postal code and town as
                       separate fields
    COMBINED_ELEMENTS  two free-form lines (line 1 optional, line 2 holds
                       postal code and town)

A record that mixes fields of both shapes is CONFLICTING. A record with no
shape-defining field is UNDETERMINED. Name and country code do not decide
the shape; they belong to both.

The classification is always computed from the current field values and
never stored, so it stays correct after cleaning empties a field.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

STRUCTURED_FIELDS: tuple[str, ...] = ("street", "house_no", "postal_code", "town")
COMBINED_FIELDS: tuple[str, ...] = ("address_line1", "address_line2")


class AddressType(str, Enum):
    """Shape of an address record."""

    STRUCTURED = "structured"
    COMBINED_ELEMENTS = "combined_elements"
    CONFLICTING = "conflicting"
    UNDETERMINED = "undetermined"


def _is_set(value: Any) -> bool:
    return value is not None and str(value) != ""


def classify_address(address: Any) -> AddressType:
    """Determine the shape of an address from which fields are set.

    Accepts any object with the address attributes (an `Address` model or a
    simple namespace). Missing attributes count as unset.
    """
    if address is None:
        return AddressType.UNDETERMINED

    has_structured = any(_is_set(getattr(address, name, None)) for name in STRUCTURED_FIELDS)
    has_combined = any(_is_set(getattr(address, name, None)) for name in COMBINED_FIELDS)

    if has_structured and has_combined:
        return AddressType.CONFLICTING
    if has_structured:
        return AddressType.STRUCTURED
    if has_combined:
        return AddressType.COMBINED_ELEMENTS
    return AddressType.UNDETERMINED


def conflicting_fields(address: Any) -> list[str]:
    """Names of the set fields that take part in a shape conflict.

    Order follows the slip layout: combined lines first, then the
    structured fields. Empty for any non-conflicting address.
    """
    if classify_address(address) != AddressType.CONFLICTING:
        return []
    return [
        name
        for name in COMBINED_FIELDS + STRUCTURED_FIELDS
        if _is_set(getattr(address, name, None))
    ]
