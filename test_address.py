"""
test_address.py - Address Classifier Tests

Usage: python test_address.py
"""

from __future__ import annotations

import os
import sys
from types import SimpleNamespace

# Ensure we can import from project root
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from address import AddressType, classify_address, conflicting_fields
from models import Address


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
    print("  Address Classifier Tests")
    print(LINE * 42)

    structured = Address(
        name="Robert Schneider AG",
        street="Rue du Lac",
        house_no="1268/2/22",
        postal_code="2501",
        town="Biel",
        country_code="CH",
    )
    combined = Address(
        name="Pia-Maria Rutschmann-Schnyder",
        address_line1="Grosse Marktgasse 28",
        address_line2="9400 Rorschach",
        country_code="CH",
    )
    mixed = Address(
        name="Mixed",
        address_line1="Grosse Marktgasse 28",
        street="Rue du Lac",
        town="Biel",
        country_code="CH",
    )

    print("\n  Classification:")
    check("Structured address", classify_address(structured) == AddressType.STRUCTURED)
    check("Combined address", classify_address(combined) == AddressType.COMBINED_ELEMENTS)
    check("Mixed address is conflicting", classify_address(mixed) == AddressType.CONFLICTING)
    check("Name only is undetermined", classify_address(Address(name="X")) == AddressType.UNDETERMINED)
    check("Empty address is undetermined", classify_address(Address()) == AddressType.UNDETERMINED)
    check("None is undetermined", classify_address(None) == AddressType.UNDETERMINED)
    check(
        "Town alone makes it structured",
        classify_address(Address(town="Bern")) == AddressType.STRUCTURED,
    )
    check(
        "Line 1 alone makes it combined",
        classify_address(Address(address_line1="Postfach")) == AddressType.COMBINED_ELEMENTS,
    )
    check(
        "Empty strings count as unset",
        classify_address(Address(street="", address_line2="9400 Rorschach"))
        == AddressType.COMBINED_ELEMENTS,
    )
    check(
        "Works on plain objects",
        classify_address(SimpleNamespace(street="A", address_line2="B")) == AddressType.CONFLICTING,
    )
    check("Model property matches function", mixed.address_type == AddressType.CONFLICTING)

    print("\n  Shape Re-derivation:")
    emptied = combined.model_copy(update={"address_line1": None, "address_line2": None})
    check("Shape follows current values", emptied.address_type == AddressType.UNDETERMINED)

    print("\n  Conflicting Fields:")
    check(
        "Combined fields come first",
        conflicting_fields(mixed) == ["address_line1", "street", "town"],
    )
    check("No conflict -> empty list", conflicting_fields(structured) == [])
    check("None -> empty list", conflicting_fields(None) == [])

    print(f"\n{LINE * 42}")
    print(f"  Results: {passed}/{passed + failed} passed")
    if failed == 0:
        print(f"  Address classifier: COMPLETE {PASS}")
    else:
        print(f"  Address classifier: {failed} FAILED")
    print(f"{LINE * 42}")
    return failed


def test_address() -> None:
    assert main() == 0


if __name__ == "__main__":
    raise SystemExit(1 if main() else 0)
