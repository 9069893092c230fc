"""Collector number parsing for noisy OCR output.

Cards print "NN/TTT" (collector number over set total), optionally followed by
a language code and the set number, e.g. "130/204 · EN · 7". Only the slash
form is accepted; a bare number is too easily confused with other numerals
printed on the card, and a missed read is cheaper than logging the wrong card.
"""

import re
from typing import Optional

from ..core.constants import (
    MIN_SET_TOTAL,
    SET_NUMBER_LOOKAHEAD,
    SET_NUMBER_MAX,
    SET_NUMBER_MIN,
)
from ..core.types import ParsedCollectorNumber

# Common optical confusions in numeric context
OCR_CONFUSIONS = str.maketrans({
    "l": "1", "I": "1", "|": "1",
    "o": "0", "O": "0",
    "s": "5", "S": "5",
    "b": "8", "B": "8",
})

# "123/204", "123 / 204" or "123\204"
COLLECTOR_NUMBER_PATTERN = re.compile(r"(\d{1,3})\s*[/\\]\s*(\d{2,3})")

# 1-2 digit token not touching letters or other digits
SET_NUMBER_PATTERN = re.compile(r"(?<![A-Za-z0-9])(\d{1,2})(?![A-Za-z0-9])")


def normalize_ocr_text(text: str) -> str:
    """Replace characters OCR commonly confuses with digits."""
    return text.translate(OCR_CONFUSIONS)


def _strip_leading_zeros(raw: str) -> Optional[str]:
    """Strip leading zeros and reject 0."""
    try:
        value = int(raw, 10)
    except ValueError:
        return None
    if value <= 0:
        return None
    return str(value)


def _extract_set_number(cleaned: str, start: int) -> Optional[str]:
    # Search in place so the lookbehind sees the character before the window
    for match in SET_NUMBER_PATTERN.finditer(cleaned, start, start + SET_NUMBER_LOOKAHEAD):
        value = int(match.group(1))
        if SET_NUMBER_MIN <= value <= SET_NUMBER_MAX:
            return str(value)
    return None


def parse_collector_number(text: str) -> Optional[ParsedCollectorNumber]:
    """
    Extract the collector number triple from OCR text.

    Returns:
        ParsedCollectorNumber, or None when no plausible "NN/TTT" is present

    Examples:
        >>> parse_collector_number("023/204").cn
        '23'
        >>> parse_collector_number("130/204 EN 7").set_number
        '7'
        >>> parse_collector_number("4/14") is None
        True
    """
    if not text:
        return None

    cleaned = normalize_ocr_text(text)

    for match in COLLECTOR_NUMBER_PATTERN.finditer(cleaned):
        cn = _strip_leading_zeros(match.group(1))
        total = _strip_leading_zeros(match.group(2))
        if cn is None or total is None:
            continue

        # Every catalog set is larger than this; smaller totals are OCR noise
        if int(total) < MIN_SET_TOTAL or int(cn) > int(total):
            continue

        return ParsedCollectorNumber(
            cn=cn,
            total=total,
            set_number=_extract_set_number(cleaned, match.end()),
            raw=match.group(0),
        )

    return None


def is_valid_collector_number(text: str) -> bool:
    """Check if text contains a valid collector number."""
    return parse_collector_number(text) is not None
