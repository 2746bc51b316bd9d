"""
charset.py - Character set cleaning for QR bill text fields.

Payment slips may only carry a restricted Latin character repertoire.
sanitize_text() maps anything outside it to the closest supported text:

    "Ærø Ltd."      -> "AEro Ltd."
    "Łódź"          -> "Lódz"
    "line\\nbreak"   -> "line break"
    "smiley ☺"      -> "smiley ."

The cleaning is idempotent: cleaning an already cleaned value changes
nothing and reports no modification.
"""

from __future__ import annotations

import unicodedata

from logging_config import get_logger

logger = get_logger(__name__)

_SUPPORTED_LATIN = (
    "£´"
    "ÀÁÂÄÇÈÉÊËÌÍÎÏÑÒÓÔÖÙÚÛÜß"
    "àáâäçèéêëìíîïñòóôöùúûüý"
)

SUPPORTED_CHARACTERS: frozenset[str] = frozenset(
    [chr(code) for code in range(0x20, 0x7F)] + list(_SUPPORTED_LATIN)
)

REPLACEMENT_CHARACTER = "."

SUBSTITUTIONS: dict[str, str] = {
    "Æ": "AE",
    "æ": "ae",
    "Œ": "OE",
    "œ": "oe",
    "Ø": "O",
    "ø": "o",
    "Ð": "D",
    "ð": "d",
    "Þ": "TH",
    "þ": "th",
    "Ł": "L",
    "ł": "l",
    "Đ": "D",
    "đ": "d",
    "ı": "i",
    "‘": "'",
    "’": "'",
    "‚": "'",
    "“": '"',
    "”": '"',
    "„": '"',
    "«": '"',
    "»": '"',
    "‹": "'",
    "›": "'",
    "–": "-",
    "—": "-",
    "‐": "-",
    "‑": "-",
    "…": "...",
    "€": "EUR",
}


def is_supported(char: str) -> bool:
    return char in SUPPORTED_CHARACTERS


def _replacement(char: str) -> str:
    """Best supported stand-in for a single unsupported character."""
    if char.isspace():
        return " "
    if char in SUBSTITUTIONS:
        return SUBSTITUTIONS[char]

    category = unicodedata.category(char)
    if category in {"Cc", "Cf", "Mn", "Me"}:
        return ""

    base = unicodedata.normalize("NFD", char)
    kept = "".join(part for part in base if unicodedata.category(part) != "Mn")
    if kept and all(is_supported(part) for part in kept):
        return kept
    return REPLACEMENT_CHARACTER


def sanitize_text(text: str | None) -> tuple[str | None, bool]:
    """Replace unsupported characters and report whether anything changed.

    Returns:
        (cleaned, was_modified). cleaned is None for None input. Leading and
        trailing whitespace is removed and Unicode composition (NFC) applied;
        neither counts as a modification.
    """
    if text is None:
        return None, False

    original = str(text).strip()
    composed = unicodedata.normalize("NFC", original)

    if all(is_supported(char) for char in composed):
        cleaned = composed
    else:
        cleaned = "".join(
            char if is_supported(char) else _replacement(char) for char in composed
        ).strip()

    was_modified = cleaned != composed
    if was_modified:
        logger.debug("sanitize_text | raw=%r | cleaned=%r", original, cleaned)
    return cleaned, was_modified
