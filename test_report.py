"""
test_report.py - Outcome Formatting Tests

Usage: python test_report.py
"""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path

# Ensure we can import from project root
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from models import Diagnostic, MessageKey, PaymentRecord, Severity, ValidationOutcome
from qr_text import decode_and_validate, encode_qr_text
from report import format_outcome, format_outcome_json
from validator import validate

SAMPLES_PATH = Path(__file__).resolve().parent / "test_data" / "sample_bills.json"


def _configure_output_symbols() -> tuple[str, str, str]:
    try:
        if hasattr(sys.stdout, "reconfigure"):
            sys.stdout.reconfigure(encoding="utf-8", errors="replace")
    except Exception:
        pass

    try:
        "✓✗═".encode(sys.stdout.encoding or "utf-8")
        return "✓", "✗", "═"
    except Exception:
        return "[OK]", "[FAIL]", "="


PASS, FAIL, LINE = _configure_output_symbols()


def load_sample(name: str) -> PaymentRecord:
    with open(SAMPLES_PATH, encoding="utf-8") as handle:
        return PaymentRecord.model_validate(json.load(handle)[name])


def main() -> int:
    passed = 0
    failed = 0

    def check(name: str, condition: bool) -> None:
        nonlocal passed, failed
        if condition:
            print(f"    {PASS} {name}")
            passed += 1
        else:
            print(f"    {FAIL} {name}")
            failed += 1

    print(LINE * 42)
    print("  Outcome Formatting Tests")
    print(LINE * 42)

    valid = validate(load_sample("example1"))
    qr_text = encode_qr_text(valid.canonical_record)
    invalid = validate(load_sample("example3").model_copy(update={"account": None, "currency": "USD"}))

    # Category 1: Text output
    print("\n  Text Output:")
    text = format_outcome(valid, qr_text)
    check("Valid header", "VALID QR BILL" in text and "INVALID" not in text)
    check("IBAN grouped", "CH44 3199 9123 0008 8901 2" in text)
    check("QR reference grouped", "21 00000 00003 13947 14300 09017" in text)
    check("Amount with currency", "CHF 123949.75" in text)
    check("Creditor summarized", "Robert Schneider AG, Rue du Lac 1268/2/22, 2501 Biel, CH" in text)
    check("Alternative scheme listed", "Ultraviolet: UV;UltraPay005;12345" in text)
    check("No diagnostics shown as none", "(none)" in text)
    check("QR text echoed", "| SPC" in text and "| EPD" in text)

    text = format_outcome(invalid, "ignored")
    check("Invalid header counts errors", "INVALID QR BILL - 2 error(s)" in text)
    check("Diagnostic line for account", "account: field_is_mandatory" in text)
    check("Diagnostic line for currency", "currency: currency_is_chf_or_eur" in text)
    check("Missing account shown", "(invalid or missing)" in text)
    check("QR text not shown for invalid bill", "| SPC" not in text)

    clipped = validate(
        load_sample("example3").model_copy(update={"unstructured_message": "M" * 150})
    )
    check(
        "Warning shows its arguments",
        "WARNING unstructuredMessage: field_value_clipped (140)" in format_outcome(clipped),
    )
    check(
        "Open amount shown",
        "(open)" in format_outcome(validate(load_sample("example2"))),
    )

    unreadable = decode_and_validate("garbage")
    check("Unreadable header", "UNREADABLE QR TEXT" in format_outcome(unreadable))
    check("None outcome handled", "No validation data available" in format_outcome(None))

    many = ValidationOutcome(
        diagnostics=[
            Diagnostic(severity=Severity.ERROR, field=f"f{i}", message_key=MessageKey.FIELD_IS_MANDATORY)
            for i in range(15)
        ]
    )
    text = format_outcome(many)
    check("Long diagnostic lists are cut", "... and 4 more diagnostic(s)" in text and "f10" in text and "f11" not in text)

    # Category 2: JSON output
    print("\n  JSON Output:")
    payload = format_outcome_json(valid, qr_text)
    check("Status valid", payload["status"] == "valid" and payload["valid"] is True)
    check("Canonical record in camelCase", payload["validatedBill"]["creditor"]["houseNo"] == "1268/2/22")
    check("Amount serialized as text", payload["validatedBill"]["amount"] == "123949.75")
    check("Format carried", payload["validatedBill"]["format"]["language"] == "en")
    check("QR text included", payload["qrText"] == qr_text)
    check("Payload is JSON serializable", isinstance(json.dumps(payload), str))

    payload = format_outcome_json(invalid, "ignored")
    check("Status invalid", payload["status"] == "invalid" and payload["valid"] is False)
    check("QR text withheld for invalid bill", payload["qrText"] is None)
    check(
        "Diagnostics use camelCase keys",
        payload["diagnostics"][0]
        == {
            "severity": "error",
            "field": "account",
            "messageKey": "field_is_mandatory",
            "messageArgs": [],
        },
    )
    check("Partial record still returned", payload["validatedBill"]["account"] is None)

    payload = format_outcome_json(unreadable)
    check("Unreadable status", payload["status"] == "unreadable" and payload["validatedBill"] is None)
    payload = format_outcome_json(None)
    check("None outcome payload", payload["status"] == "error" and payload["diagnostics"] == [])

    print(f"\n{LINE * 42}")
    print(f"  Results: {passed}/{passed + failed} passed")
    if failed == 0:
        print(f"  Outcome formatting: COMPLETE {PASS}")
    else:
        print(f"  Outcome formatting: {failed} FAILED")
    print(f"{LINE * 42}")
    return failed


def test_report() -> None:
    assert main() == 0


if __name__ == "__main__":
    raise SystemExit(1 if main() else 0)
