"""
text_utils.py - String helpers shared by the validator and the codec.

    trimmed(value)             -> stripped text or None
    whitespace_removed(value)  -> text without any whitespace
    clipped(value, n, ...)     -> text cut to n chars, warning on cut
    check_length(value, n, ...)-> False plus error when too long
"""

from __future__ import annotations

import re

from models import Diagnostic, MessageKey, Severity

_WHITESPACE = re.compile(r"\s+")


def trimmed(value: str | None) -> str | None:
    """Strip leading and trailing whitespace; empty text becomes None."""
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def whitespace_removed(value: str | None) -> str | None:
    """Remove every whitespace character, including inner ones."""
    if value is None:
        return None
    return _WHITESPACE.sub("", str(value))


def is_null_or_empty(value: str | None) -> bool:
    return value is None or value == ""


def clipped(
    value: str | None,
    max_length: int,
    field: str,
    diagnostics: list[Diagnostic],
) -> str | None:
    """Cut value to max_length characters, recording a warning when cut."""
    if value is not None and len(value) > max_length:
        diagnostics.append(
            Diagnostic(
                severity=Severity.WARNING,
                field=field,
                message_key=MessageKey.FIELD_CLIPPED,
                message_args=(str(max_length),),
            )
        )
        return value[:max_length]
    return value


def check_length(
    value: str | None,
    max_length: int,
    field: str,
    diagnostics: list[Diagnostic],
) -> bool:
    """Return False and record an error if value exceeds max_length."""
    if value is not None and len(value) > max_length:
        diagnostics.append(
            Diagnostic(
                severity=Severity.ERROR,
                field=field,
                message_key=MessageKey.FIELD_TOO_LONG,
                message_args=(str(max_length),),
            )
        )
        return False
    return True
