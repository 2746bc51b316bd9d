"""
qr_text.py - Encoding and decoding of the text embedded in the QR code.

The text is a fixed sequence of CR/LF separated lines:

    0      SPC                 header
    1      0200                version
    2      1                   coding type (UTF-8, Latin subset)
    3      account
    4-10   creditor            type (S/K), name, street|line 1,
                               house no|line 2, postal code, town, country
    11-17  ultimate creditor   reserved, always empty
    18     amount              "1234.50" or empty
    19     currency
    20-26  debtor              same layout as the creditor, may be empty
    27     reference type      QRR, SCOR or NON
    28     reference
    29     unstructured message
    30     EPD                 trailer
    31     bill information    always present, may be empty
    32-33  alternative schemes optional, "name;instruction"

Encoding expects a canonical record (see validator.validate) and never
fails. Decoding only checks the envelope and converts types; field rules
are left to the validator. Header, version and coding type problems stop
decoding at once and produce a single error and no record.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation

from address import AddressType
from config import SUPPORTED_VERSION
from logging_config import get_logger
from models import (
    FIELD_AMOUNT,
    FIELD_CODING_TYPE,
    FIELD_QR_TYPE,
    FIELD_TRAILER,
    FIELD_VERSION,
    FIELDROOT_CREDITOR,
    FIELDROOT_DEBTOR,
    Address,
    AlternativeScheme,
    DecodeResult,
    Diagnostic,
    MessageKey,
    PaymentRecord,
    Severity,
    ValidationOutcome,
)
from payments import is_qr_iban
from validator import ALT_SCHEME_SEPARATOR, validate

logger = get_logger(__name__)

QR_TYPE = "SPC"
CODING_TYPE = "1"
TRAILER = "EPD"
LINE_SEPARATOR = "\r\n"

REFERENCE_TYPE_QR = "QRR"
REFERENCE_TYPE_ISO11649 = "SCOR"
REFERENCE_TYPE_NONE = "NON"

ADDRESS_TYPE_STRUCTURED = "S"
ADDRESS_TYPE_COMBINED = "K"

ADDRESS_BLOCK_LINES = 7
MIN_LINES = 31
MAX_LINES = 34

# Line positions.
LINE_QR_TYPE = 0
LINE_VERSION = 1
LINE_CODING_TYPE = 2
LINE_ACCOUNT = 3
LINE_CREDITOR = 4
LINE_AMOUNT = 18
LINE_CURRENCY = 19
LINE_DEBTOR = 20
LINE_REFERENCE_TYPE = 27
LINE_REFERENCE = 28
LINE_UNSTRUCTURED_MESSAGE = 29
LINE_TRAILER = 30
LINE_BILL_INFORMATION = 31
LINE_ALTERNATIVE_SCHEMES = 32


# -- Encoding --


def reference_type(record: PaymentRecord) -> str:
    """Reference type tag derived from the account and the reference."""
    if is_qr_iban(record.account):
        return REFERENCE_TYPE_QR
    if record.reference:
        return REFERENCE_TYPE_ISO11649
    return REFERENCE_TYPE_NONE


def _address_lines(address: Address | None) -> list[str]:
    if address is None:
        return [""] * ADDRESS_BLOCK_LINES

    if address.address_type == AddressType.COMBINED_ELEMENTS:
        return [
            ADDRESS_TYPE_COMBINED,
            address.name or "",
            address.address_line1 or "",
            address.address_line2 or "",
            "",
            "",
            address.country_code or "",
        ]
    return [
        ADDRESS_TYPE_STRUCTURED,
        address.name or "",
        address.street or "",
        address.house_no or "",
        address.postal_code or "",
        address.town or "",
        address.country_code or "",
    ]


def _format_amount(amount: Decimal | None) -> str:
    if amount is None:
        return ""
    return f"{amount:.2f}"


def _scheme_line(scheme: AlternativeScheme) -> str:
    return f"{scheme.name or ''}{ALT_SCHEME_SEPARATOR}{scheme.instruction or ''}"


def encode_qr_text(record: PaymentRecord, version: str = SUPPORTED_VERSION) -> str:
    """Build the QR code text for a canonical payment record."""
    lines: list[str] = [QR_TYPE, version, CODING_TYPE, record.account or ""]
    lines.extend(_address_lines(record.creditor))
    lines.extend(_address_lines(None))  # ultimate creditor, reserved
    lines.append(_format_amount(record.amount))
    lines.append(record.currency or "")
    lines.extend(_address_lines(record.debtor))
    lines.append(reference_type(record))
    lines.append(record.reference or "")
    lines.append(record.unstructured_message or "")
    lines.append(TRAILER)
    lines.append(record.bill_information or "")

    schemes = [scheme for scheme in record.alternative_schemes if scheme is not None]
    lines.extend(_scheme_line(scheme) for scheme in schemes)

    logger.debug("encode_qr_text | lines=%s | schemes=%s", len(lines), len(schemes))
    return LINE_SEPARATOR.join(lines)


# -- Decoding --


def _split_lines(text: str) -> list[str]:
    lines = [line[:-1] if line.endswith("\r") else line for line in text.split("\n")]
    # A single trailing line terminator is tolerated.
    if len(lines) > MIN_LINES and lines[-1] == "":
        lines.pop()
    return lines


def _fatal(field: str, key: MessageKey) -> DecodeResult:
    logger.warning("decode_rejected | field=%s | reason=%s", field, key.value)
    return DecodeResult(
        record=None,
        diagnostics=(Diagnostic(severity=Severity.ERROR, field=field, message_key=key),),
    )


def _optional(value: str) -> str | None:
    return value if value != "" else None


def _decode_address(
    lines: list[str],
    start: int,
    field_root: str,
    diagnostics: list[Diagnostic],
) -> Address | None:
    """Map a 7-line address block by its type tag.

    An all-empty block is no address. S maps to the structured fields.
    Anything else maps to the combined-element lines; an unknown tag is
    reported. Postal code and town are kept for K so that a block mixing
    both shapes reaches the validator as a conflicting address.
    """
    block = lines[start : start + ADDRESS_BLOCK_LINES]
    if all(line == "" for line in block):
        return None

    address_type, name, line_a, line_b, postal_code, town, country_code = block
    if address_type == ADDRESS_TYPE_STRUCTURED:
        return Address(
            name=_optional(name),
            street=_optional(line_a),
            house_no=_optional(line_b),
            postal_code=_optional(postal_code),
            town=_optional(town),
            country_code=_optional(country_code),
        )

    if address_type != ADDRESS_TYPE_COMBINED:
        diagnostics.append(
            Diagnostic(
                severity=Severity.ERROR,
                field=field_root,
                message_key=MessageKey.VALID_DATA_STRUCTURE,
                message_args=(address_type,),
            )
        )
        logger.info("decode_field_error | field=%s | address_type=%r", field_root, address_type)

    return Address(
        name=_optional(name),
        address_line1=_optional(line_a),
        address_line2=_optional(line_b),
        postal_code=_optional(postal_code),
        town=_optional(town),
        country_code=_optional(country_code),
    )


def _decode_scheme(line: str) -> AlternativeScheme:
    if ALT_SCHEME_SEPARATOR not in line:
        return AlternativeScheme(instruction=_optional(line))
    name, instruction = line.split(ALT_SCHEME_SEPARATOR, 1)
    return AlternativeScheme(name=_optional(name), instruction=_optional(instruction))


def decode_qr_text(text: str | None, version: str = SUPPORTED_VERSION) -> DecodeResult:
    """Decode QR code text into a raw payment record.

    Returns a DecodeResult. record is None if the envelope is broken; then
    diagnostics holds exactly one error. Otherwise record holds the raw
    values and diagnostics lists conversion problems (bad amount, unknown
    address type).
    """
    lines = _split_lines(text or "")
    if not MIN_LINES <= len(lines) <= MAX_LINES or lines[LINE_QR_TYPE] != QR_TYPE:
        return _fatal(FIELD_QR_TYPE, MessageKey.VALID_DATA_STRUCTURE)
    if lines[LINE_VERSION] != version:
        return _fatal(FIELD_VERSION, MessageKey.SUPPORTED_VERSION)
    if lines[LINE_CODING_TYPE] != CODING_TYPE:
        return _fatal(FIELD_CODING_TYPE, MessageKey.SUPPORTED_CODING_TYPE)
    if lines[LINE_TRAILER] != TRAILER:
        return _fatal(FIELD_TRAILER, MessageKey.VALID_DATA_STRUCTURE)

    diagnostics: list[Diagnostic] = []

    amount = None
    amount_text = lines[LINE_AMOUNT]
    if amount_text:
        try:
            amount = Decimal(amount_text)
            if not amount.is_finite():
                raise InvalidOperation(amount_text)
        except InvalidOperation:
            amount = None
            diagnostics.append(
                Diagnostic(
                    severity=Severity.ERROR,
                    field=FIELD_AMOUNT,
                    message_key=MessageKey.VALID_NUMBER,
                )
            )
            logger.info("decode_field_error | field=%s | value=%r", FIELD_AMOUNT, amount_text)

    # The reference type line is not trusted; the validator derives it.
    schemes = [_decode_scheme(line) for line in lines[LINE_ALTERNATIVE_SCHEMES:] if line != ""]

    record = PaymentRecord(
        account=_optional(lines[LINE_ACCOUNT]),
        creditor=_decode_address(lines, LINE_CREDITOR, FIELDROOT_CREDITOR, diagnostics),
        amount=amount,
        currency=_optional(lines[LINE_CURRENCY]),
        debtor=_decode_address(lines, LINE_DEBTOR, FIELDROOT_DEBTOR, diagnostics),
        reference=_optional(lines[LINE_REFERENCE]),
        unstructured_message=_optional(lines[LINE_UNSTRUCTURED_MESSAGE]),
        bill_information=(
            _optional(lines[LINE_BILL_INFORMATION]) if len(lines) > LINE_BILL_INFORMATION else None
        ),
        alternative_schemes=schemes,
    )
    logger.debug(
        "decode_qr_text | lines=%s | reference_type=%s | field_errors=%s",
        len(lines),
        lines[LINE_REFERENCE_TYPE],
        len(diagnostics),
    )
    return DecodeResult(record=record, diagnostics=tuple(diagnostics))


def decode_and_validate(text: str | None, version: str = SUPPORTED_VERSION) -> ValidationOutcome:
    """Decode QR text and validate the result in one step.

    Decoding diagnostics come first, followed by the validator's. If the
    envelope is broken the outcome has no canonical record.
    """
    decoded = decode_qr_text(text, version=version)
    if decoded.record is None:
        return ValidationOutcome(diagnostics=decoded.diagnostics, canonical_record=None)

    outcome = validate(decoded.record)
    return ValidationOutcome(
        diagnostics=decoded.diagnostics + outcome.diagnostics,
        canonical_record=outcome.canonical_record,
    )
