"""
main.py - CLI orchestration for the QR bill checker.

This module is orchestration-only:
1. load (JSON bill, QR text file or CSV batch)
2. validate / decode
3. encode (valid bills only)
4. report
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
import time
from decimal import Decimal, InvalidOperation
from typing import Any

import pandas as pd

from config import LOG_JSON
from logging_config import get_logger, setup_logging
from models import ADDRESS_SUBFIELDS, Address, PaymentRecord, ValidationOutcome
from qr_text import decode_and_validate, encode_qr_text
from report import format_outcome, format_outcome_json
from validator import validate

logger = get_logger("qrbill-check")

REQUIRED_COLUMNS = ["account", "currency"]
OPTIONAL_COLUMNS = [
    "amount",
    "reference",
    "unstructured_message",
    "bill_information",
] + [f"{root}_{name}" for root in ("creditor", "debtor") for name in ADDRESS_SUBFIELDS]


def _configure_output_symbols() -> tuple[str, str]:
    """Configure stdout encoding and return safe line/fail symbols."""
    if hasattr(sys.stdout, "reconfigure"):
        try:
            sys.stdout.reconfigure(encoding="utf-8", errors="replace")
        except (ValueError, OSError):
            logger.debug("stdout_reconfigure_skipped")

    try:
        "═✗".encode(sys.stdout.encoding or "utf-8")
        return "═", "✗"
    except (UnicodeEncodeError, LookupError):
        return "=", "X"


BOX_CHAR, FAIL_CHAR = _configure_output_symbols()


def _require_file(path: str | None, option: str, kind: str) -> str:
    if path is None:
        raise ValueError(f"{kind} path cannot be None")
    path = str(path).strip()
    if not path:
        raise ValueError(f"{kind} path cannot be empty")
    if not os.path.exists(path):
        raise FileNotFoundError(f"{kind} not found: {path}\nProvide a valid path with {option}")
    return path


def load_bill(json_path: str) -> PaymentRecord:
    """Load one payment record from a JSON file (camelCase or snake_case keys)."""
    json_path = _require_file(json_path, "--bill", "Bill JSON")
    with open(json_path, encoding="utf-8") as handle:
        data = json.load(handle)
    if not isinstance(data, dict):
        raise ValueError(f"Bill JSON must contain an object: {json_path}")
    record = PaymentRecord.model_validate(data)
    logger.info("bill_loaded | path=%s", json_path)
    return record


def load_qr_text(text_path: str) -> str:
    """Read QR code text from a file, keeping its line terminators."""
    text_path = _require_file(text_path, "--qr-text", "QR text file")
    with open(text_path, encoding="utf-8", newline="") as handle:
        text = handle.read()
    logger.info("qr_text_loaded | path=%s | chars=%s", text_path, len(text))
    return text


def load_bills(csv_path: str) -> pd.DataFrame:
    """Load and validate a CSV file with one payment record per row."""
    csv_path = _require_file(csv_path, "--csv", "Bills CSV")

    # Every column stays text: references and postal codes keep leading zeros.
    read_options = {"dtype": str, "keep_default_na": False}
    try:
        df = pd.read_csv(csv_path, encoding="utf-8-sig", **read_options)
    except UnicodeDecodeError:
        logger.warning(
            "csv_encoding_warning | path=%s | reason='utf-8 decode failed' | fallback=latin-1",
            csv_path,
        )
        df = pd.read_csv(csv_path, encoding="latin-1", **read_options)
    except Exception as exc:
        raise ValueError(f"Failed to read CSV '{csv_path}': {exc}") from exc

    # Normalize column names and remove fully empty rows. Short rows leave NaN.
    df.columns = [str(col).strip().lower() for col in df.columns]
    df = df.fillna("")
    if not df.empty:
        df = df[(df.apply(lambda column: column.str.strip()) != "").any(axis=1)].copy()

    if df.empty:
        raise ValueError(f"Bills CSV is empty: {csv_path}")

    missing = [column for column in REQUIRED_COLUMNS if column not in df.columns]
    if missing:
        raise ValueError(
            f"Bills CSV missing required columns: {missing}\n"
            f"Required: {REQUIRED_COLUMNS}\n"
            f"Found: {list(df.columns)}"
        )

    # Ensure optional columns exist for downstream access.
    for optional in OPTIONAL_COLUMNS:
        if optional not in df.columns:
            df[optional] = ""

    logger.info("csv_loaded | path=%s | rows=%s | columns=%s", csv_path, len(df), list(df.columns))
    return df


def _cell(row: Any, column: str) -> str | None:
    value = row.get(column)
    if value is None:
        return None
    value = str(value)
    return value if value.strip() else None


def _row_address(row: Any, root: str) -> Address | None:
    values = {name: _cell(row, f"{root}_{name}") for name in ADDRESS_SUBFIELDS}
    if all(value is None for value in values.values()):
        return None
    return Address(**values)


def record_from_row(row: Any) -> PaymentRecord:
    """Build a raw PaymentRecord from one CSV row (pandas Series or dict).

    Raises:
        ValueError: If the amount column is not a number.
    """
    amount_text = _cell(row, "amount")
    amount = None
    if amount_text is not None:
        try:
            amount = Decimal(amount_text.strip().replace("'", ""))
        except InvalidOperation as exc:
            raise ValueError(f"amount is not a number: {amount_text!r}") from exc

    return PaymentRecord(
        account=_cell(row, "account"),
        creditor=_row_address(row, "creditor"),
        amount=amount,
        currency=_cell(row, "currency"),
        debtor=_row_address(row, "debtor"),
        reference=_cell(row, "reference"),
        unstructured_message=_cell(row, "unstructured_message"),
        bill_information=_cell(row, "bill_information"),
    )


def check_bill(record: PaymentRecord) -> tuple[ValidationOutcome, str | None]:
    """Validate a record and encode it when it has no errors."""
    outcome = validate(record)
    qr_text = encode_qr_text(outcome.canonical_record) if outcome.is_valid else None
    return outcome, qr_text


def _print_summary_table(results: list[tuple[str, str, int, int]]) -> None:
    """Print a formatted summary table for batch mode results."""
    print(f"\n{BOX_CHAR * 60}")
    print(f"  SUMMARY - {len(results)} bill(s) checked")
    print(f"{BOX_CHAR * 60}")
    print()
    print(f"  {'Bill':<30} {'Status':<14} {'Errors':>6} {'Warn':>6}")
    print(f"  {'─' * 30} {'─' * 14} {'─' * 6} {'─' * 6}")

    for label, status, errors, warnings in results:
        short_label = label[:28] + ".." if len(label) > 30 else label
        print(f"  {short_label:<30} {status:<14} {errors:>6} {warnings:>6}")

    print()
    print(f"{BOX_CHAR * 60}")


def run_batch(csv_path: str, as_json: bool = False) -> list[tuple[str, str, int, int]]:
    """Check every row of a bills CSV and print a report per row plus a summary."""
    bills_df = load_bills(csv_path)
    logger.info("batch_start | bill_count=%s | csv=%s", len(bills_df), csv_path)

    results: list[tuple[str, str, int, int]] = []
    json_results: list[dict[str, Any]] = []

    for index, (_, row) in enumerate(bills_df.iterrows(), start=1):
        label = f"{index}: {_cell(row, 'creditor_name') or '(no creditor)'}"
        try:
            start = time.time()
            outcome, qr_text = check_bill(record_from_row(row))
            elapsed = time.time() - start
        except ValueError as exc:
            logger.error("batch_row_error | row=%s | error_type=%s | error=%s", index, type(exc).__name__, exc)
            if as_json:
                json_results.append({"row": index, "status": "error", "error": str(exc)})
            else:
                print(f"\n  {FAIL_CHAR} Error in row {index}: {exc}\n")
            results.append((label, "ERROR", 0, 0))
            continue

        logger.info(
            "batch_row_complete | row=%s | valid=%s | errors=%s | warnings=%s | duration_s=%.3f",
            index,
            outcome.is_valid,
            len(outcome.errors),
            len(outcome.warnings),
            elapsed,
        )
        if as_json:
            json_results.append({"row": index, **format_outcome_json(outcome, qr_text)})
        else:
            print(f"\n  Bill {index}/{len(bills_df)}")
            print(format_outcome(outcome, qr_text))
        results.append(
            (label, "VALID" if outcome.is_valid else "INVALID", len(outcome.errors), len(outcome.warnings))
        )

    if as_json:
        print(json.dumps(json_results, indent=2))
    else:
        _print_summary_table(results)

    valid_count = sum(1 for _, status, _, _ in results if status == "VALID")
    logger.info("batch_complete | valid=%s | not_valid=%s", valid_count, len(results) - valid_count)
    return results


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for the QR bill checker."""
    parser = argparse.ArgumentParser(
        prog="qrbill-check",
        description=(
            "Swiss QR bill checker\n"
            "Validates payment data, builds the QR code text and checks "
            "scanned QR code text."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  %(prog)s --bill bill.json\n"
            "  %(prog)s --qr-text scanned.txt --json\n"
            "  %(prog)s --csv bills.csv --verbose\n"
        ),
    )
    mode = parser.add_mutually_exclusive_group(required=True)
    mode.add_argument("--bill", "-b", type=str, help="Path to a payment record JSON file")
    mode.add_argument("--qr-text", "-q", type=str, help="Path to a file with QR code text")
    mode.add_argument("--csv", "-c", type=str, help="Path to a CSV file with one bill per row")
    parser.add_argument(
        "--json",
        action="store_true",
        help="Output results as JSON instead of formatted text",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose (DEBUG-level) logging",
    )
    parser.add_argument(
        "--log-json",
        action="store_true",
        default=LOG_JSON,
        help="Output logs as JSON lines (default from QRBILL_LOG_JSON)",
    )

    args = parser.parse_args(argv)
    setup_logging(
        level=logging.DEBUG if args.verbose else logging.INFO,
        json_format=args.log_json,
    )

    try:
        if args.csv:
            logger.info("cli_mode | mode=batch | csv=%s", args.csv)
            run_batch(args.csv, as_json=args.json)
            return

        if args.bill:
            logger.info("cli_mode | mode=bill | bill=%s", args.bill)
            outcome, qr_text = check_bill(load_bill(args.bill))
        else:
            logger.info("cli_mode | mode=qr_text | file=%s", args.qr_text)
            outcome = decode_and_validate(load_qr_text(args.qr_text))
            qr_text = encode_qr_text(outcome.canonical_record) if outcome.is_valid else None

        if args.json:
            print(json.dumps(format_outcome_json(outcome, qr_text), indent=2))
        else:
            print(format_outcome(outcome, qr_text))
    except FileNotFoundError as exc:
        logger.error("cli_error | type=FileNotFoundError | error=%s", exc)
        print(f"\nError: {exc}")
        raise SystemExit(1) from exc
    except ValueError as exc:
        logger.error("cli_error | type=%s | error=%s", type(exc).__name__, exc)
        print(f"\nError: {exc}")
        raise SystemExit(1) from exc
    except KeyboardInterrupt:
        print("\nInterrupted.")
        raise SystemExit(130)
    except Exception as exc:
        logger.error(
            "cli_error | type=%s | error=%s",
            type(exc).__name__,
            exc,
            exc_info=True,
        )
        print(f"\nUnexpected error: {exc}")
        print("Run with --verbose for full traceback.")
        raise SystemExit(1) from exc


if __name__ == "__main__":
    main()
