"""
HTS code normalization.

HTS codes arrive as "3926.90.99.10", "3926 90 99 10" or "3926909910".
Separators are stripped; anything else that is not a digit is rejected so a
malformed code can never turn into an empty prefix that matches everything.
"""

import re

from dutystack.errors import InvalidHtsCodeError

# Also stripped in SQL by ShipmentRecord.normalized_hts_code
HTS_SEPARATORS = (".", "-", " ", "\t", "\r", "\n", "\f", "\v")

_SEPARATORS = re.compile("[" + re.escape("".join(HTS_SEPARATORS)) + "]")
_ASCII_DIGITS = re.compile(r"[0-9]+")

CHAPTER_LENGTH = 2
HEADING_LENGTH = 4
SUBHEADING_LENGTH = 6


def clean_hts_code(hts_code: str, min_length: int = CHAPTER_LENGTH) -> str:
    """
    Strip separators and validate an HTS code.

    Args:
        hts_code: Raw HTS code
        min_length: Minimum number of digits required

    Returns:
        Digits-only HTS code

    Raises:
        InvalidHtsCodeError: Empty, non-numeric, or shorter than min_length
    """
    if hts_code is None:
        raise InvalidHtsCodeError(hts_code, "code is required")

    cleaned = _SEPARATORS.sub("", str(hts_code))

    if not cleaned:
        raise InvalidHtsCodeError(hts_code, "code is empty")
    if not _ASCII_DIGITS.fullmatch(cleaned):
        raise InvalidHtsCodeError(hts_code, "code must contain only digits and separators")
    if len(cleaned) < min_length:
        raise InvalidHtsCodeError(hts_code, f"at least {min_length} digits required")

    return cleaned


def to_hts6(hts_code: str) -> str:
    """Normalize to the 6-digit subheading (chapter + heading + subheading)."""
    return clean_hts_code(hts_code, min_length=SUBHEADING_LENGTH)[:SUBHEADING_LENGTH]


def chapter_of(clean_hts: str) -> str:
    return clean_hts[:CHAPTER_LENGTH]


def heading_of(clean_hts: str) -> str:
    return clean_hts[:HEADING_LENGTH]
