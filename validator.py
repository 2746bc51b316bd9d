"""
validator.py - Whole-record validation and cleaning.

    validate(record)            -> ValidationOutcome
    validate_and_encode(record) -> QR text, raises QrBillValidationError

validate() never raises for bad field values. It makes one full pass over
the record in a fixed order (account, creditor, currency, amount, debtor,
reference, unstructured message, bill information, alternative schemes)
and collects every problem as a Diagnostic. The cleaned record it returns
contains only values that passed their checks.

Conditional rules hang off two derived classifications:
    - the address shape (address.AddressType) decides which address fields
      are mandatory and which get clipped
    - QR-IBAN-ness of the cleaned account decides which reference scheme
      applies
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from address import AddressType, conflicting_fields
from charset import REPLACEMENT_CHARACTER, sanitize_text
from logging_config import get_logger
from models import (
    ADDRESS_SUBFIELDS,
    FIELD_ACCOUNT,
    FIELD_ALTERNATIVE_SCHEMES,
    FIELD_AMOUNT,
    FIELD_BILL_INFORMATION,
    FIELD_CURRENCY,
    FIELD_REFERENCE,
    FIELD_UNSTRUCTURED_MESSAGE,
    FIELDROOT_CREDITOR,
    FIELDROOT_DEBTOR,
    SUBFIELD_ADDRESS_LINE_2,
    SUBFIELD_COUNTRY_CODE,
    SUBFIELD_NAME,
    SUBFIELD_POSTAL_CODE,
    SUBFIELD_TOWN,
    Address,
    AlternativeScheme,
    Diagnostic,
    MessageKey,
    PaymentRecord,
    Severity,
    ValidationOutcome,
)
from payments import (
    IBAN_ALLOWED_COUNTRIES,
    IBAN_LENGTH,
    QR_REFERENCE_LENGTH,
    is_alphanumeric,
    is_qr_iban,
    validate_iban,
    validate_iso11649_reference,
    validate_qr_reference,
)
from text_utils import check_length, clipped, is_null_or_empty, trimmed, whitespace_removed

logger = get_logger(__name__)

SUPPORTED_CURRENCIES = ("CHF", "EUR")

AMOUNT_MIN = Decimal("0.01")
AMOUNT_MAX = Decimal("999999999.99")
AMOUNT_QUANTUM = Decimal("0.01")

MAX_LENGTH_UNSTRUCTURED_MESSAGE = 140
MAX_LENGTH_BILL_INFORMATION = 140
MAX_LENGTH_ALT_SCHEME_INSTRUCTION = 100
MAX_ALT_SCHEMES = 2
# Separates name and instruction in the QR text, so it cannot appear in a name.
ALT_SCHEME_SEPARATOR = ";"
BILL_INFORMATION_PREFIX = "//"
BILL_INFORMATION_MIN_LENGTH = 4

# Clip limits for address fields, by attribute name.
ADDRESS_MAX_LENGTHS: dict[str, int] = {
    "name": 70,
    "street": 70,
    "house_no": 16,
    "postal_code": 16,
    "town": 35,
    "address_line1": 70,
    "address_line2": 70,
}

_STRUCTURED_CLIPPED = ("street", "house_no", "postal_code", "town")
_COMBINED_CLIPPED = ("address_line1", "address_line2")

# Reported for a missing mandatory address, in this order.
_MANDATORY_EMPTY_ADDRESS = (
    SUBFIELD_NAME,
    SUBFIELD_POSTAL_CODE,
    SUBFIELD_ADDRESS_LINE_2,
    SUBFIELD_TOWN,
    SUBFIELD_COUNTRY_CODE,
)


class QrBillValidationError(ValueError):
    """Raised by validate_and_encode() when the record has errors."""

    def __init__(self, outcome: ValidationOutcome) -> None:
        self.outcome = outcome
        keys = ", ".join(
            f"{diagnostic.field}: {diagnostic.message_key.value}" for diagnostic in outcome.errors
        )
        super().__init__(f"QR bill data is invalid ({keys})")


class _RecordValidator:
    """Single-use validator. Holds the diagnostics of one validate() call."""

    def __init__(self, record: PaymentRecord) -> None:
        self.record_in = record
        self.diagnostics: list[Diagnostic] = []
        self.out: dict[str, Any] = {}

    # -- Diagnostics --

    def _error(self, field: str, key: MessageKey, *args: str) -> None:
        self.diagnostics.append(
            Diagnostic(severity=Severity.ERROR, field=field, message_key=key, message_args=tuple(args))
        )

    def _warning(self, field: str, key: MessageKey, *args: str) -> None:
        self.diagnostics.append(
            Diagnostic(severity=Severity.WARNING, field=field, message_key=key, message_args=tuple(args))
        )

    def _mandatory(self, value: str | None, field: str) -> bool:
        if is_null_or_empty(value):
            self._error(field, MessageKey.FIELD_IS_MANDATORY)
            return False
        return True

    def _cleaned(self, value: str | None, field: str) -> str | None:
        """Trim and sanitize a free-text value; warn if characters changed."""
        value, was_modified = sanitize_text(trimmed(value))
        if was_modified:
            self._warning(field, MessageKey.REPLACED_UNSUPPORTED_CHARACTERS)
        return value or None

    # -- Record --

    def run(self) -> ValidationOutcome:
        self.out["format"] = self.record_in.format

        self._validate_account()
        self._validate_creditor()
        self._validate_currency()
        self._validate_amount()
        self._validate_debtor()
        self._validate_reference()
        self._validate_unstructured_message()
        self._validate_bill_information()
        self._validate_alternative_schemes()

        return ValidationOutcome(
            diagnostics=tuple(self.diagnostics),
            canonical_record=PaymentRecord(**self.out),
        )

    def _validate_account(self) -> None:
        account = trimmed(self.record_in.account)
        if not self._mandatory(account, FIELD_ACCOUNT):
            return

        account = whitespace_removed(account).upper()
        if not validate_iban(account):
            self._error(FIELD_ACCOUNT, MessageKey.ACCOUNT_IS_VALID_IBAN)
        elif not account.startswith(IBAN_ALLOWED_COUNTRIES):
            self._error(FIELD_ACCOUNT, MessageKey.ACCOUNT_IS_CH_LI_IBAN)
        elif len(account) != IBAN_LENGTH:
            self._error(FIELD_ACCOUNT, MessageKey.ACCOUNT_IS_VALID_IBAN)
        else:
            self.out["account"] = account

    def _validate_creditor(self) -> None:
        self.out["creditor"] = self._validate_address(
            self.record_in.creditor, FIELDROOT_CREDITOR, mandatory=True
        )

    def _validate_currency(self) -> None:
        currency = trimmed(self.record_in.currency)
        if not self._mandatory(currency, FIELD_CURRENCY):
            return

        currency = currency.upper()
        if currency not in SUPPORTED_CURRENCIES:
            self._error(FIELD_CURRENCY, MessageKey.CURRENCY_IS_CHF_OR_EUR)
        else:
            self.out["currency"] = currency

    def _validate_amount(self) -> None:
        amount = self.record_in.amount
        if amount is None:
            return

        try:
            amount = Decimal(amount).quantize(AMOUNT_QUANTUM, rounding=ROUND_HALF_UP)
        except InvalidOperation:
            self._error(FIELD_AMOUNT, MessageKey.AMOUNT_IS_IN_VALID_RANGE)
            return

        if not amount.is_finite() or amount < AMOUNT_MIN or amount > AMOUNT_MAX:
            self._error(FIELD_AMOUNT, MessageKey.AMOUNT_IS_IN_VALID_RANGE)
        else:
            self.out["amount"] = amount

    def _validate_debtor(self) -> None:
        self.out["debtor"] = self._validate_address(
            self.record_in.debtor, FIELDROOT_DEBTOR, mandatory=False
        )

    def _validate_reference(self) -> None:
        account = self.out.get("account")
        reference = whitespace_removed(trimmed(self.record_in.reference))

        if is_qr_iban(account):
            self._validate_qr_reference(reference)
        elif account is not None and reference is not None:
            self._validate_iso_reference(reference)
        # Otherwise the reference stays absent.

    def _validate_qr_reference(self, reference: str | None) -> None:
        if reference is None:
            self._error(FIELD_REFERENCE, MessageKey.MANDATORY_FOR_QR_IBAN)
            return

        if len(reference) < QR_REFERENCE_LENGTH:
            reference = reference.zfill(QR_REFERENCE_LENGTH)
        if not validate_qr_reference(reference):
            self._error(FIELD_REFERENCE, MessageKey.VALID_QR_REF_NO)
        else:
            self.out["reference"] = reference

    def _validate_iso_reference(self, reference: str) -> None:
        if not validate_iso11649_reference(reference):
            self._error(FIELD_REFERENCE, MessageKey.VALID_ISO11649_CREDITOR_REF)
        else:
            self.out["reference"] = reference

    def _validate_unstructured_message(self) -> None:
        message = self._cleaned(self.record_in.unstructured_message, FIELD_UNSTRUCTURED_MESSAGE)
        self.out["unstructured_message"] = clipped(
            message, MAX_LENGTH_UNSTRUCTURED_MESSAGE, FIELD_UNSTRUCTURED_MESSAGE, self.diagnostics
        )

    def _validate_bill_information(self) -> None:
        bill_information = self._cleaned(self.record_in.bill_information, FIELD_BILL_INFORMATION)
        if bill_information is None:
            return
        if not check_length(
            bill_information, MAX_LENGTH_BILL_INFORMATION, FIELD_BILL_INFORMATION, self.diagnostics
        ):
            return
        if (
            not bill_information.startswith(BILL_INFORMATION_PREFIX)
            or len(bill_information) < BILL_INFORMATION_MIN_LENGTH
        ):
            self._error(FIELD_BILL_INFORMATION, MessageKey.BILL_INFO_INVALID)
            return
        self.out["bill_information"] = bill_information

    def _validate_alternative_schemes(self) -> None:
        schemes: list[AlternativeScheme] = []
        for scheme in self.record_in.alternative_schemes or []:
            if scheme is None:
                continue
            name = self._scheme_name(scheme.name)
            instruction = self._cleaned(scheme.instruction, FIELD_ALTERNATIVE_SCHEMES)
            if name is None and instruction is None:
                continue
            instruction = clipped(
                instruction,
                MAX_LENGTH_ALT_SCHEME_INSTRUCTION,
                FIELD_ALTERNATIVE_SCHEMES,
                self.diagnostics,
            )
            schemes.append(AlternativeScheme(name=name, instruction=instruction))

        if len(schemes) > MAX_ALT_SCHEMES:
            self._error(FIELD_ALTERNATIVE_SCHEMES, MessageKey.ALT_SCHEME_MAX_EXCEEDED)
            schemes = schemes[:MAX_ALT_SCHEMES]
        self.out["alternative_schemes"] = schemes

    def _scheme_name(self, value: str | None) -> str | None:
        value, was_modified = sanitize_text(trimmed(value))
        if value and ALT_SCHEME_SEPARATOR in value:
            value = value.replace(ALT_SCHEME_SEPARATOR, REPLACEMENT_CHARACTER)
            was_modified = True
        if was_modified:
            self._warning(FIELD_ALTERNATIVE_SCHEMES, MessageKey.REPLACED_UNSUPPORTED_CHARACTERS)
        return value or None

    # -- Addresses --

    def _validate_address(
        self,
        address_in: Address | None,
        field_root: str,
        mandatory: bool,
    ) -> Address | None:
        address = self._cleaned_address(address_in, field_root)
        if address is None:
            if mandatory:
                for subfield in _MANDATORY_EMPTY_ADDRESS:
                    self._error(field_root + subfield, MessageKey.FIELD_IS_MANDATORY)
            return None

        address_type = address.address_type
        if address_type == AddressType.CONFLICTING:
            for name in conflicting_fields(address):
                self._error(field_root + ADDRESS_SUBFIELDS[name], MessageKey.ADDRESS_TYPE_CONFLICT)

        self._mandatory(address.name, field_root + SUBFIELD_NAME)
        if address_type in (AddressType.STRUCTURED, AddressType.UNDETERMINED):
            self._mandatory(address.postal_code, field_root + SUBFIELD_POSTAL_CODE)
            self._mandatory(address.town, field_root + SUBFIELD_TOWN)
        if address_type in (AddressType.COMBINED_ELEMENTS, AddressType.UNDETERMINED):
            self._mandatory(address.address_line2, field_root + SUBFIELD_ADDRESS_LINE_2)
        self._mandatory(address.country_code, field_root + SUBFIELD_COUNTRY_CODE)

        country_code = address.country_code
        if country_code is not None and (len(country_code) != 2 or not is_alphanumeric(country_code)):
            self._error(field_root + SUBFIELD_COUNTRY_CODE, MessageKey.VALID_COUNTRY_CODE)

        return self._clipped_address(address, field_root)

    def _cleaned_address(self, address_in: Address | None, field_root: str) -> Address | None:
        """Trim and sanitize every field; None if nothing meaningful is left."""
        if address_in is None:
            return None

        values: dict[str, str | None] = {}
        for name, subfield in ADDRESS_SUBFIELDS.items():
            if name == "country_code":
                values[name] = trimmed(address_in.country_code)
            else:
                values[name] = self._cleaned(getattr(address_in, name), field_root + subfield)

        address = Address(**values)
        # The shape is re-derived here, after cleaning may have emptied fields.
        if (
            address.name is None
            and address.country_code is None
            and address.address_type == AddressType.UNDETERMINED
        ):
            return None
        return address

    def _clipped_address(self, address: Address, field_root: str) -> Address:
        address_type = address.address_type
        names = ["name"]
        if address_type == AddressType.STRUCTURED:
            names.extend(_STRUCTURED_CLIPPED)
        elif address_type == AddressType.COMBINED_ELEMENTS:
            names.extend(_COMBINED_CLIPPED)

        updates: dict[str, str | None] = {}
        for name in names:
            updates[name] = clipped(
                getattr(address, name),
                ADDRESS_MAX_LENGTHS[name],
                field_root + ADDRESS_SUBFIELDS[name],
                self.diagnostics,
            )
        if address.country_code is not None:
            updates["country_code"] = address.country_code.upper()
        return address.model_copy(update=updates)


def validate(record: PaymentRecord) -> ValidationOutcome:
    """Validate and clean one payment record.

    The input is not modified. The outcome's canonical record holds every
    value that passed its checks, so a partially corrected record can be
    shown back to the user.
    """
    if record is None:
        record = PaymentRecord()

    outcome = _RecordValidator(record).run()
    logger.debug(
        "validation_complete | valid=%s | errors=%s | warnings=%s",
        outcome.is_valid,
        len(outcome.errors),
        len(outcome.warnings),
    )
    return outcome


def validate_and_encode(record: PaymentRecord) -> str:
    """Validate a record and return its QR text.

    Raises:
        QrBillValidationError: If validation reports any error. The
            exception carries the full outcome.
    """
    from qr_text import encode_qr_text

    outcome = validate(record)
    if outcome.has_errors:
        logger.info("encode_rejected | errors=%s", len(outcome.errors))
        raise QrBillValidationError(outcome)
    return encode_qr_text(outcome.canonical_record)
