"""
test_integration.py - Full Pipeline Integration Tests

Acceptance test for the complete checker:
load -> validate -> encode -> decode -> report, through the CLI entry points.

Usage: python test_integration.py
"""

from __future__ import annotations

import contextlib
import io
import json
import os
import sys
import tempfile
from pathlib import Path

# Ensure local imports resolve from project root.
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from main import check_bill, load_bill, load_bills, load_qr_text, main as cli_main, record_from_row, run_batch
from models import PaymentRecord
from qr_text import decode_and_validate

SAMPLES_PATH = Path(__file__).resolve().parent / "test_data" / "sample_bills.json"

CSV_HEADER = (
    "account,currency,amount,reference,unstructured_message,"
    "creditor_name,creditor_street,creditor_house_no,creditor_postal_code,creditor_town,creditor_country_code,"
    "debtor_name,debtor_address_line1,debtor_address_line2,debtor_country_code"
)
CSV_ROWS = [
    "CH4431999123000889012,CHF,123949.75,210000000003139471430009017,Instruction of 15.09.2019,"
    "Robert Schneider AG,Rue du Lac,1268/2/22,2501,Biel,CH,"
    "Pia-Maria Rutschmann-Schnyder,Grosse Marktgasse 28,9400 Rorschach,CH",
    "CH3709000000304442225,CHF,,,Donation,"
    "Salvation Army,,,3000,Berne,CH,,,,",
    "CH3709000000304442225,USD,10.00,,,"
    "ABC AG,,,3000,Bern,CH,,,,",
    "CH3709000000304442225,CHF,ten,,,"
    "ABC AG,,,3000,Bern,CH,,,,",
    ",,,,,,,,,,,,,,",
]


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


def _write(directory: str, name: str, content: str) -> str:
    path = os.path.join(directory, name)
    with open(path, "w", encoding="utf-8", newline="") as handle:
        handle.write(content)
    return path


def _run_cli(argv: list[str]) -> tuple[int, str]:
    buffer = io.StringIO()
    code = 0
    with contextlib.redirect_stdout(buffer):
        try:
            cli_main(argv)
        except SystemExit as exc:
            code = exc.code if isinstance(exc.code, int) else 1
    return code, buffer.getvalue()


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
    print("  Integration Tests")
    print(LINE * 42)

    with open(SAMPLES_PATH, encoding="utf-8") as handle:
        samples = json.load(handle)

    with tempfile.TemporaryDirectory() as tmp:
        bill_path = _write(tmp, "bill.json", json.dumps(samples["example1"]))
        bad_bill_path = _write(tmp, "bad.json", json.dumps({**samples["example3"], "currency": "USD"}))
        list_path = _write(tmp, "list.json", "[1, 2]")
        csv_path = _write(tmp, "bills.csv", "\n".join([CSV_HEADER] + CSV_ROWS) + "\n")
        no_columns_path = _write(tmp, "nocols.csv", "name,town\nA,B\n")
        empty_csv_path = _write(tmp, "empty.csv", CSV_HEADER + "\n")

        # Category 1: Loaders
        print("\n  Loaders:")
        record = load_bill(bill_path)
        check("JSON bill loads camelCase keys", record.creditor.house_no == "1268/2/22")
        try:
            load_bill(os.path.join(tmp, "missing.json"))
            check("Missing bill raises FileNotFoundError", False)
        except FileNotFoundError:
            check("Missing bill raises FileNotFoundError", True)
        try:
            load_bill(list_path)
            check("Non-object JSON raises ValueError", False)
        except ValueError:
            check("Non-object JSON raises ValueError", True)

        bills_df = load_bills(csv_path)
        check("Blank CSV row dropped", len(bills_df) == 4)
        check("Missing optional columns added", "bill_information" in bills_df.columns)
        check("Reference kept as text", bills_df.iloc[0]["reference"] == "210000000003139471430009017")
        check("Postal code kept as text", bills_df.iloc[1]["creditor_postal_code"] == "3000")
        try:
            load_bills(no_columns_path)
            check("Missing columns raise ValueError", False)
        except ValueError as exc:
            check("Missing columns raise ValueError", "account" in str(exc))
        try:
            load_bills(empty_csv_path)
            check("Header-only CSV raises ValueError", False)
        except ValueError:
            check("Header-only CSV raises ValueError", True)

        # Category 2: Rows to records
        print("\n  Rows to Records:")
        first = record_from_row(bills_df.iloc[0])
        check("Row builds structured creditor", first.creditor.street == "Rue du Lac")
        check("Row builds combined debtor", first.debtor.address_line2 == "9400 Rorschach")
        second = record_from_row(bills_df.iloc[1])
        check("Empty amount is open", second.amount is None)
        check("Empty debtor columns give no debtor", second.debtor is None)
        check(
            "Dict rows work too",
            record_from_row({"account": "CH3709000000304442225", "amount": "1'250.50"}).amount is not None,
        )
        try:
            record_from_row(bills_df.iloc[3])
            check("Non-numeric amount raises ValueError", False)
        except ValueError:
            check("Non-numeric amount raises ValueError", True)

        # Category 3: Full pipeline
        print("\n  Full Pipeline:")
        outcome, qr_text = check_bill(first)
        check("First row is valid", outcome.is_valid and qr_text is not None)
        round_trip = decode_and_validate(qr_text)
        check(
            "Encoded text decodes to the same record",
            round_trip.is_valid and round_trip.canonical_record == outcome.canonical_record,
        )
        outcome, qr_text = check_bill(PaymentRecord())
        check("Empty record is not encoded", not outcome.is_valid and qr_text is None)

        with contextlib.redirect_stdout(io.StringIO()) as buffer:
            results = run_batch(csv_path)
        statuses = [status for _, status, _, _ in results]
        check("Batch statuses", statuses == ["VALID", "VALID", "INVALID", "ERROR"])
        check("Batch labels use creditor name", results[0][0] == "1: Robert Schneider AG")
        check("Summary table printed", "SUMMARY - 4 bill(s) checked" in buffer.getvalue())

        with contextlib.redirect_stdout(io.StringIO()) as buffer:
            run_batch(csv_path, as_json=True)
        payload = json.loads(buffer.getvalue())
        check("Batch JSON has one entry per row", [item["row"] for item in payload] == [1, 2, 3, 4])
        check("Batch JSON row error captured", payload[3]["status"] == "error")

        # Category 4: CLI
        print("\n  CLI:")
        code, output = _run_cli(["--bill", bill_path])
        check("--bill exits cleanly", code == 0)
        check("--bill prints report", "VALID QR BILL" in output and "| SPC" in output)

        code, output = _run_cli(["--bill", bad_bill_path, "--json"])
        payload = json.loads(output)
        check("--bill --json reports invalid", code == 0 and payload["status"] == "invalid")

        qr_path = _write(tmp, "qr.txt", check_bill(load_bill(bill_path))[1])
        check("QR text file read verbatim", "\r\n" in load_qr_text(qr_path))
        code, output = _run_cli(["--qr-text", qr_path, "--json"])
        payload = json.loads(output)
        check("--qr-text --json reports valid", code == 0 and payload["status"] == "valid")
        check("--qr-text echoes canonical text", payload["qrText"] == check_bill(load_bill(bill_path))[1])

        garbage_path = _write(tmp, "garbage.txt", "garbage")
        code, output = _run_cli(["--qr-text", garbage_path])
        check("Garbage QR text reported as unreadable", code == 0 and "UNREADABLE QR TEXT" in output)

        code, output = _run_cli(["--csv", csv_path])
        check("--csv runs batch", code == 0 and "SUMMARY" in output)

        code, output = _run_cli(["--bill", os.path.join(tmp, "nope.json")])
        check("Missing file exits 1", code == 1 and "Error:" in output)
        code, output = _run_cli(["--bill", list_path])
        check("Bad JSON shape exits 1", code == 1)
        code, _ = _run_cli([])
        check("No mode is a usage error", code == 2)

    print(f"\n{LINE * 42}")
    print(f"  Results: {passed}/{passed + failed} passed")
    if failed == 0:
        print(f"  Integration: COMPLETE {PASS}")
    else:
        print(f"  Integration: {failed} FAILED")
    print(f"{LINE * 42}")
    return failed


def test_integration() -> None:
    assert main() == 0


if __name__ == "__main__":
    raise SystemExit(1 if main() else 0)
