"""
report.py - Human-readable and JSON-ready outcome formatting.

This module converts a `ValidationOutcome` into:
- terminal-friendly text output for CLI usage
- machine-friendly dictionary output for APIs/logging/storage

Diagnostics are shown by field and message key. Translating keys into
localized sentences is left to the caller.
"""

from __future__ import annotations

from typing import Any

from logging_config import get_logger
from models import Address, Diagnostic, PaymentRecord, Severity, ValidationOutcome
from payments import format_iban, format_reference

logger = get_logger(__name__)

OUTPUT_WIDTH = 56
SEPARATOR = "=" * OUTPUT_WIDTH
MAX_DIAGNOSTICS_DISPLAY = 12


def _diagnostic_line(diagnostic: Diagnostic) -> str:
    marker = "ERROR  " if diagnostic.severity == Severity.ERROR else "WARNING"
    args = f" ({', '.join(diagnostic.message_args)})" if diagnostic.message_args else ""
    return f"    {marker} {diagnostic.field}: {diagnostic.message_key.value}{args}"


def _address_summary(address: Address | None) -> str:
    if address is None:
        return "(none)"
    parts = [
        address.name,
        address.address_line1,
        address.address_line2,
        " ".join(part for part in (address.street, address.house_no) if part) or None,
        " ".join(part for part in (address.postal_code, address.town) if part) or None,
        address.country_code,
    ]
    return ", ".join(part for part in parts if part)


def _record_lines(record: PaymentRecord) -> list[str]:
    lines = [
        f"  Account:      {format_iban(record.account) if record.account else '(invalid or missing)'}",
        f"  Creditor:     {_address_summary(record.creditor)}",
    ]
    amount = f"{record.amount:.2f}" if record.amount is not None else "(open)"
    lines.append(f"  Amount:       {record.currency or '---'} {amount}")
    lines.append(f"  Debtor:       {_address_summary(record.debtor)}")
    if record.reference:
        lines.append(f"  Reference:    {format_reference(record.reference)}")
    if record.unstructured_message:
        lines.append(f"  Message:      {record.unstructured_message}")
    if record.bill_information:
        lines.append(f"  Bill info:    {record.bill_information}")
    for scheme in record.alternative_schemes:
        lines.append(f"  Alt. scheme:  {scheme.name or '-'}: {scheme.instruction or ''}")
    return lines


def format_outcome(outcome: ValidationOutcome | None, qr_text: str | None = None) -> str:
    """Format a ValidationOutcome into a text block for the terminal."""
    if outcome is None:
        logger.error("report_input_error | outcome_none=True | fallback=error_block")
        return "\n" + SEPARATOR + "\n  ERROR: No validation data available\n" + SEPARATOR + "\n"

    if outcome.canonical_record is None:
        header = "UNREADABLE QR TEXT"
    elif outcome.is_valid:
        header = "VALID QR BILL"
    else:
        header = f"INVALID QR BILL - {len(outcome.errors)} error(s)"

    lines: list[str] = ["", SEPARATOR, f"  {header}", SEPARATOR, ""]

    if outcome.canonical_record is not None:
        lines.extend(_record_lines(outcome.canonical_record))
        lines.append("")

    lines.append("  Diagnostics:")
    diagnostics = list(outcome.diagnostics)
    if not diagnostics:
        lines.append("    (none)")
    elif len(diagnostics) <= MAX_DIAGNOSTICS_DISPLAY:
        lines.extend(_diagnostic_line(diagnostic) for diagnostic in diagnostics)
    else:
        lines.extend(
            _diagnostic_line(diagnostic) for diagnostic in diagnostics[: MAX_DIAGNOSTICS_DISPLAY - 1]
        )
        remaining = len(diagnostics) - (MAX_DIAGNOSTICS_DISPLAY - 1)
        lines.append(f"    ... and {remaining} more diagnostic(s)")

    if qr_text and outcome.is_valid:
        lines.append("")
        lines.append("  QR text:")
        lines.extend(f"    | {line}" for line in qr_text.split("\r\n"))

    lines.append("")
    lines.append(SEPARATOR)
    lines.append("")
    return "\n".join(lines)


def format_outcome_json(outcome: ValidationOutcome | None, qr_text: str | None = None) -> dict[str, Any]:
    """Format a ValidationOutcome as a JSON-compatible dictionary."""
    if outcome is None:
        logger.error("report_json_input_error | outcome_none=True | fallback=error_payload")
        return {
            "status": "error",
            "valid": False,
            "diagnostics": [],
            "validatedBill": None,
            "qrText": None,
        }

    if outcome.canonical_record is None:
        status = "unreadable"
    elif outcome.is_valid:
        status = "valid"
    else:
        status = "invalid"

    validated = None
    if outcome.canonical_record is not None:
        validated = outcome.canonical_record.model_dump(mode="json", by_alias=True)

    return {
        "status": status,
        "valid": outcome.is_valid,
        "diagnostics": [
            diagnostic.model_dump(mode="json", by_alias=True) for diagnostic in outcome.diagnostics
        ],
        "validatedBill": validated,
        "qrText": qr_text if outcome.is_valid else None,
    }
