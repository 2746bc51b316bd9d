"""
models.py - Data Models for the QR bill validation engine

This file defines ALL data structures used across the engine. Every module
communicates exclusively through these models:

    validator.py ->  ValidationOutcome (wraps a canonical PaymentRecord)
    qr_text.py   ->  str (encode) / DecodeResult (decode)
    report.py    ->  str / dict (uses ValidationOutcome as input)

Design principles:
1. Raw and canonical records share one type, PaymentRecord. A raw record
   holds whatever the caller supplied; a canonical record only holds values
   that passed validation.
2. All models are frozen. Cleaning never mutates its input, it builds new
   objects.
3. JSON uses camelCase field names (`unstructuredMessage`, `houseNo`);
   Python code uses snake_case. Both are accepted on input.
4. Diagnostics carry symbolic keys and positional arguments only. Turning
   them into user-facing text is the caller's job.

Schema relationships:
    Address           --used by--> PaymentRecord.creditor / .debtor
    AlternativeScheme --used by--> PaymentRecord.alternative_schemes
    BillFormat        --used by--> PaymentRecord.format
    Diagnostic        --used by--> ValidationOutcome.diagnostics
    PaymentRecord     --used by--> ValidationOutcome.canonical_record
"""

from __future__ import annotations

from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from address import AddressType, classify_address

# -- Qualified field paths used in diagnostics --

FIELD_QR_TYPE = "qrType"
FIELD_VERSION = "version"
FIELD_CODING_TYPE = "codingType"
FIELD_TRAILER = "trailer"
FIELD_ACCOUNT = "account"
FIELD_CURRENCY = "currency"
FIELD_AMOUNT = "amount"
FIELD_REFERENCE = "reference"
FIELD_UNSTRUCTURED_MESSAGE = "unstructuredMessage"
FIELD_BILL_INFORMATION = "billInformation"
FIELD_ALTERNATIVE_SCHEMES = "alternativeSchemes"

FIELDROOT_CREDITOR = "creditor"
FIELDROOT_DEBTOR = "debtor"

SUBFIELD_NAME = ".name"
SUBFIELD_ADDRESS_LINE_1 = ".addressLine1"
SUBFIELD_ADDRESS_LINE_2 = ".addressLine2"
SUBFIELD_STREET = ".street"
SUBFIELD_HOUSE_NO = ".houseNo"
SUBFIELD_POSTAL_CODE = ".postalCode"
SUBFIELD_TOWN = ".town"
SUBFIELD_COUNTRY_CODE = ".countryCode"

# Python attribute name -> diagnostic subfield suffix.
ADDRESS_SUBFIELDS: dict[str, str] = {
    "name": SUBFIELD_NAME,
    "address_line1": SUBFIELD_ADDRESS_LINE_1,
    "address_line2": SUBFIELD_ADDRESS_LINE_2,
    "street": SUBFIELD_STREET,
    "house_no": SUBFIELD_HOUSE_NO,
    "postal_code": SUBFIELD_POSTAL_CODE,
    "town": SUBFIELD_TOWN,
    "country_code": SUBFIELD_COUNTRY_CODE,
}


class Severity(str, Enum):
    """Diagnostic severity. Only ERROR makes a record invalid."""

    ERROR = "error"
    WARNING = "warning"


class MessageKey(str, Enum):
    """Symbolic reasons attached to diagnostics."""

    # Field-level errors
    FIELD_IS_MANDATORY = "field_is_mandatory"
    ACCOUNT_IS_CH_LI_IBAN = "account_is_ch_li_iban"
    ACCOUNT_IS_VALID_IBAN = "account_is_valid_iban"
    CURRENCY_IS_CHF_OR_EUR = "currency_is_chf_or_eur"
    AMOUNT_IS_IN_VALID_RANGE = "amount_in_valid_range"
    MANDATORY_FOR_QR_IBAN = "mandatory_for_qr_iban"
    VALID_QR_REF_NO = "valid_qr_ref_no"
    VALID_ISO11649_CREDITOR_REF = "valid_iso11649_creditor_ref"
    VALID_COUNTRY_CODE = "valid_country_code"
    ADDRESS_TYPE_CONFLICT = "address_type_conflict"
    FIELD_TOO_LONG = "field_value_too_long"
    BILL_INFO_INVALID = "bill_info_invalid"
    ALT_SCHEME_MAX_EXCEEDED = "alt_scheme_max_exceed"

    # Field-level warnings (data was corrected)
    FIELD_CLIPPED = "field_value_clipped"
    REPLACED_UNSUPPORTED_CHARACTERS = "replaced_unsupported_characters"

    # QR text decoding
    VALID_DATA_STRUCTURE = "valid_data_structure"
    SUPPORTED_VERSION = "supported_version"
    SUPPORTED_CODING_TYPE = "supported_coding_type"
    VALID_NUMBER = "valid_number"


class Language(str, Enum):
    DE = "de"
    FR = "fr"
    IT = "it"
    RM = "rm"
    EN = "en"


class OutputSize(str, Enum):
    A4_PORTRAIT_SHEET = "a4-portrait-sheet"
    QR_BILL_ONLY = "qr-bill-only"
    QR_BILL_EXTRA_SPACE = "qr-bill-extra-space"
    QR_CODE_ONLY = "qr-code-only"
    QR_CODE_WITH_QUIET_ZONE = "qr-code-with-quiet-zone"


class SeparatorType(str, Enum):
    NONE = "none"
    SOLID_LINE = "solid-line"
    SOLID_LINE_WITH_SCISSORS = "solid-line-with-scissors"
    DASHED_LINE = "dashed-line"
    DASHED_LINE_WITH_SCISSORS = "dashed-line-with-scissors"
    DOTTED_LINE = "dotted-line"
    DOTTED_LINE_WITH_SCISSORS = "dotted-line-with-scissors"


class GraphicsFormat(str, Enum):
    PDF = "pdf"
    SVG = "svg"
    PNG = "png"


class _Model(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )


class BillFormat(_Model):
    """Presentation metadata.

    Carried through validation untouched. The renderer owns these values;
    the wire text cannot hold them.
    """

    language: Language = Language.EN
    output_size: OutputSize = OutputSize.QR_BILL_ONLY
    separator_type: SeparatorType = SeparatorType.DASHED_LINE_WITH_SCISSORS
    font_family: str = "Helvetica,Arial,\"Liberation Sans\""
    graphics_format: GraphicsFormat = GraphicsFormat.SVG


class Address(_Model):
    """Creditor or debtor address in either of the two address shapes."""

    name: Optional[str] = Field(default=None, description="Person or company name.")
    address_line1: Optional[str] = Field(
        default=None,
        description="Combined-elements line 1: street and house number or P.O. box.",
    )
    address_line2: Optional[str] = Field(
        default=None,
        description="Combined-elements line 2: postal code and town.",
    )
    street: Optional[str] = None
    house_no: Optional[str] = None
    postal_code: Optional[str] = None
    town: Optional[str] = None
    country_code: Optional[str] = Field(
        default=None,
        description="Two-letter ISO country code, e.g. 'CH'.",
    )

    @property
    def address_type(self) -> AddressType:
        """Current shape, recomputed from the field values on every access."""
        return classify_address(self)

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "name": "Robert Schneider AG",
                    "street": "Rue du Lac",
                    "houseNo": "1268/2/22",
                    "postalCode": "2501",
                    "town": "Biel",
                    "countryCode": "CH",
                }
            ]
        }
    )


class AlternativeScheme(_Model):
    """Parameters for an alternative payment procedure."""

    name: Optional[str] = None
    instruction: Optional[str] = None


class PaymentRecord(_Model):
    """The payment data of one QR bill, raw or canonical."""

    account: Optional[str] = Field(
        default=None,
        description="Creditor IBAN. Spaces are allowed in raw records.",
    )
    creditor: Optional[Address] = None
    amount: Optional[Decimal] = Field(
        default=None,
        description="Payment amount. None leaves the amount open for the payer.",
    )
    currency: Optional[str] = Field(default=None, description="'CHF' or 'EUR'.")
    debtor: Optional[Address] = None
    reference: Optional[str] = Field(
        default=None,
        description=(
            "Payment reference. QR reference for QR-IBAN accounts, ISO 11649 "
            "creditor reference (RF...) or none for other accounts."
        ),
    )
    unstructured_message: Optional[str] = None
    bill_information: Optional[str] = Field(
        default=None,
        description="Structured bill information, starting with '//'.",
    )
    alternative_schemes: list[AlternativeScheme] = Field(default_factory=list)
    format: BillFormat = Field(default_factory=BillFormat)

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "account": "CH44 3199 9123 0008 8901 2",
                    "creditor": {
                        "name": "Robert Schneider AG",
                        "street": "Rue du Lac",
                        "houseNo": "1268/2/22",
                        "postalCode": "2501",
                        "town": "Biel",
                        "countryCode": "CH",
                    },
                    "amount": "199.95",
                    "currency": "CHF",
                    "reference": "21 00000 00003 13947 14300 09017",
                    "unstructuredMessage": "Instruction of 15.09.2019",
                }
            ]
        }
    )


class Diagnostic(_Model):
    """One validation or decoding message."""

    severity: Severity
    field: str = Field(..., description="Qualified field path, e.g. 'creditor.town'.")
    message_key: MessageKey
    message_args: tuple[str, ...] = ()

    @property
    def is_error(self) -> bool:
        return self.severity == Severity.ERROR


class ValidationOutcome(_Model):
    """Result of validating one payment record.

    canonical_record holds the cleaned record even when the record is
    invalid, so a caller can redisplay partially corrected data. It is None
    only when QR text decoding stopped at the envelope, before any record
    existed.
    """

    diagnostics: tuple[Diagnostic, ...] = ()
    canonical_record: Optional[PaymentRecord] = None

    @property
    def is_valid(self) -> bool:
        return not self.has_errors

    @property
    def has_errors(self) -> bool:
        return any(diagnostic.is_error for diagnostic in self.diagnostics)

    @property
    def has_warnings(self) -> bool:
        return any(not diagnostic.is_error for diagnostic in self.diagnostics)

    @property
    def errors(self) -> list[Diagnostic]:
        return [diagnostic for diagnostic in self.diagnostics if diagnostic.is_error]

    @property
    def warnings(self) -> list[Diagnostic]:
        return [diagnostic for diagnostic in self.diagnostics if not diagnostic.is_error]


class DecodeResult(_Model):
    """Output of QR text decoding.

    record is None when the envelope gates (structure, version, coding
    type) failed; diagnostics then holds exactly one error.
    """

    record: Optional[PaymentRecord] = None
    diagnostics: tuple[Diagnostic, ...] = ()

    @property
    def is_structurally_valid(self) -> bool:
        return self.record is not None
