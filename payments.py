"""
payments.py - Account and reference number checksums.

Core checks:
    validate_iban(iban)                 -> mod-97 IBAN check
    is_qr_iban(account)                 -> institution id in the QR-IID range
    validate_qr_reference(ref)          -> 27-digit recursive mod-10 check
    validate_iso11649_reference(ref)    -> RF creditor reference, mod-97

Reference creation and display formatting:
    create_qr_reference(raw), create_iso11649_reference(raw)
    format_iban(iban), format_qr_reference(ref), format_reference(ref)

Every function is pure and works on plain strings; the lookup tables below
are constants.
"""

from __future__ import annotations

import re

from logging_config import get_logger

logger = get_logger(__name__)

IBAN_ALLOWED_COUNTRIES = ("CH", "LI")
IBAN_LENGTH = 21
IBAN_MIN_LENGTH = 5
IBAN_MAX_LENGTH = 34

# Institution ids reserved for QR-IBANs (IBAN characters 5 to 9).
QR_IID_START = 30000
QR_IID_END = 31999

QR_REFERENCE_LENGTH = 27
ISO11649_PREFIX = "RF"
ISO11649_MIN_LENGTH = 5
ISO11649_MAX_LENGTH = 25

# Recursive mod-10 carry table. Row `carry`, column `digit` of the usual
# 10x10 transition table equals _MOD10_TABLE[(carry + digit) % 10].
_MOD10_TABLE = (0, 9, 4, 6, 8, 2, 7, 1, 3, 5)

_ALPHANUMERIC = re.compile(r"[0-9A-Za-z]+")
_NUMERIC = re.compile(r"[0-9]+")
_WHITESPACE = re.compile(r"\s+")


def is_numeric(value: str | None) -> bool:
    return bool(value) and _NUMERIC.fullmatch(value) is not None


def is_alphanumeric(value: str | None) -> bool:
    return bool(value) and _ALPHANUMERIC.fullmatch(value) is not None


def _mod97(text: str) -> int:
    """Mod 97 of text read as a number, letters counting A=10 ... Z=35."""
    remainder = 0
    for char in text:
        if char.isdigit():
            remainder = (remainder * 10 + int(char)) % 97
        else:
            remainder = (remainder * 100 + ord(char.upper()) - ord("A") + 10) % 97
    return remainder


def _mod10_recursive(digits: str) -> int:
    carry = 0
    for char in digits:
        carry = _MOD10_TABLE[(carry + int(char)) % 10]
    return (10 - carry) % 10


def validate_iban(iban: str | None) -> bool:
    """Check IBAN syntax and its mod-97 check digits.

    The IBAN must already be free of whitespace and upper case. Country
    restrictions are not checked here.
    """
    if iban is None or not IBAN_MIN_LENGTH <= len(iban) <= IBAN_MAX_LENGTH:
        return False
    if not is_alphanumeric(iban) or iban != iban.upper():
        return False
    if not iban[:2].isalpha() or not iban[2:4].isdigit():
        return False
    return _mod97(iban[4:] + iban[:4]) == 1


def is_qr_iban(account: str | None) -> bool:
    """Whether the IBAN's institution id lies in the QR-IID range.

    Equivalent to digit '3' at position 5 followed by '0' or '1'.
    """
    if account is None or len(account) < 9:
        return False
    iid = account[4:9]
    if not iid.isdigit():
        return False
    return QR_IID_START <= int(iid) <= QR_IID_END


def validate_qr_reference(reference: str | None) -> bool:
    """Check a QR reference: numeric, 27 digits after left-padding, mod 10."""
    if reference is None or not is_numeric(reference):
        return False
    if len(reference) > QR_REFERENCE_LENGTH:
        return False
    reference = reference.zfill(QR_REFERENCE_LENGTH)
    return _mod10_recursive(reference[:-1]) == int(reference[-1])


def validate_iso11649_reference(reference: str | None) -> bool:
    """Check an ISO 11649 creditor reference (RF + 2 check digits + payload)."""
    if reference is None:
        return False
    if not ISO11649_MIN_LENGTH <= len(reference) <= ISO11649_MAX_LENGTH:
        return False
    if not is_alphanumeric(reference):
        return False
    if not reference.startswith(ISO11649_PREFIX) or not reference[2:4].isdigit():
        return False
    return _mod97(reference[4:] + reference[:4]) == 1


def create_qr_reference(raw_reference: str) -> str:
    """Build a QR reference from up to 26 digits by appending the check digit.

    Raises:
        ValueError: If the input is empty, not numeric or too long.
    """
    cleaned = _WHITESPACE.sub("", raw_reference or "")
    if not is_numeric(cleaned):
        raise ValueError("QR reference must consist of digits only")
    if len(cleaned) > QR_REFERENCE_LENGTH - 1:
        raise ValueError(f"QR reference must not exceed {QR_REFERENCE_LENGTH - 1} digits")
    cleaned = cleaned.zfill(QR_REFERENCE_LENGTH - 1)
    return cleaned + str(_mod10_recursive(cleaned))


def create_iso11649_reference(raw_reference: str) -> str:
    """Build an ISO 11649 creditor reference by prepending RF and check digits.

    Raises:
        ValueError: If the input is empty, not alphanumeric or too long.
    """
    cleaned = _WHITESPACE.sub("", raw_reference or "")
    if not is_alphanumeric(cleaned):
        raise ValueError("creditor reference must consist of letters and digits only")
    if len(cleaned) > ISO11649_MAX_LENGTH - 4:
        raise ValueError(f"creditor reference must not exceed {ISO11649_MAX_LENGTH - 4} characters")
    check = 98 - _mod97(cleaned + ISO11649_PREFIX + "00")
    reference = f"{ISO11649_PREFIX}{check:02d}{cleaned}"
    logger.debug("create_iso11649_reference | raw=%r | reference=%r", raw_reference, reference)
    return reference


def _grouped(text: str, size: int) -> str:
    return " ".join(text[i : i + size] for i in range(0, len(text), size))


def format_iban(iban: str) -> str:
    """Format an IBAN in groups of four characters."""
    return _grouped(_WHITESPACE.sub("", iban), 4)


def format_qr_reference(reference: str) -> str:
    """Format a 27-digit QR reference as 2 digits followed by groups of five."""
    reference = _WHITESPACE.sub("", reference)
    if len(reference) <= 2:
        return reference
    return reference[:2] + " " + _grouped(reference[2:], 5)


def format_reference(reference: str) -> str:
    """Format any reference for display: QR layout if numeric, else fours."""
    reference = _WHITESPACE.sub("", reference)
    if len(reference) == QR_REFERENCE_LENGTH and is_numeric(reference):
        return format_qr_reference(reference)
    return _grouped(reference, 4)
