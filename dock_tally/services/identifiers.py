"""
HB identifier normalization.

Spreadsheet exports turn long numeric house-bill numbers into exponential
notation ("6.17E+08"). normalize_identifier() reverses that while leaving
alphanumeric identifiers such as "62R0537240" alone.
"""
import re
from decimal import Decimal, InvalidOperation
from typing import Optional

_SCIENTIFIC_RE = re.compile(r"^[+-]?\d+\.?\d*[eE][+-]?\d+$")

# Longest integer part an exponent value may expand to
MAX_EXPANDED_DIGITS = 50


def is_scientific(value: str) -> bool:
    """True if value looks like a spreadsheet exponent artifact"""
    return bool(_SCIENTIFIC_RE.match(value))


def normalize_identifier(raw: Optional[str]) -> str:
    """
    Canonical form of an identifier.

    Exponent notation is expanded and truncated toward zero; every other value
    is only trimmed. Values whose integer part would exceed MAX_EXPANDED_DIGITS
    digits are returned trimmed but unexpanded. Idempotent either way.
    """
    if raw is None:
        return ""
    value = str(raw).strip()
    if not value:
        return ""

    if is_scientific(value):
        try:
            number = Decimal(value)
            # too long to be an identifier, keep verbatim
            if number.adjusted() >= MAX_EXPANDED_DIGITS:
                return value
            return str(int(number))
        except (InvalidOperation, ValueError, OverflowError):
            return value

    return value


def record_key(record) -> str:
    """
    Usable HB key of a record, or "" when it has none.

    Placeholder values left by spreadsheet tools ("nan") are not keys.
    """
    key = normalize_identifier(record.get('hb'))
    if key.lower() == 'nan':
        return ""
    return key
