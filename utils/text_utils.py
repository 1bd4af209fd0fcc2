"""
Text utilities for menu names and descriptions.

Used by extraction output cleanup and category reconciliation.
"""

import re
from typing import Optional


_WHITESPACE = re.compile(r"\s+")
_LEADING_NUMBERING = re.compile(r"^\d+[.)]?\s+")
_TRAILING_PUNCTUATION = re.compile(r"[.\-_:]+$")
_PRICE_NOISE = re.compile(r"[^0-9.]")


def normalize_name(name: Optional[str]) -> str:
    """
    Normalize a name for comparison.

    Case-insensitive and whitespace-insensitive:
    - "  Main   Course " -> "main course"
    - "STARTERS" -> "starters"

    Args:
        name: Original name (may be None)

    Returns:
        Lowercase name with trimmed, collapsed whitespace ("" for None)
    """
    if not name:
        return ""
    return _WHITESPACE.sub(" ", name).strip().casefold()


def clean_text(text: Optional[str], max_length: int = 255) -> Optional[str]:
    """
    Clean a provider-supplied name or description for storage.

    - Collapses whitespace
    - Removes leading list numbering ("1. Soup" -> "Soup")
    - Removes trailing dots/dashes left by dotted price leaders
    - Truncates to max length
    - Returns None for empty/whitespace-only strings

    Args:
        text: Raw text from extraction
        max_length: Maximum characters to keep

    Returns:
        Cleaned text or None
    """
    if not text:
        return None

    text = _WHITESPACE.sub(" ", text).strip()
    text = _LEADING_NUMBERING.sub("", text)
    text = _TRAILING_PUNCTUATION.sub("", text).strip()

    if not text:
        return None

    if len(text) > max_length:
        text = text[:max_length].rstrip()

    return text


def title_case(name: str) -> str:
    """Capitalize each word: "MAIN DISHES" -> "Main Dishes"."""
    return " ".join(word[:1].upper() + word[1:].lower() for word in name.split(" ") if word)


def parse_price(value) -> float:
    """
    Coerce a provider price into a float.

    Numbers pass through unchanged (negative prices are kept so the
    validator can report them). Strings lose currency symbols, units and
    thousands separators: "5,000 RWF" -> 5000.0. Unparseable values and
    ranges fall back to the first number found, or 0.0.
    """
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)

    text = str(value).strip()
    negative = text.startswith("-")
    # Take the lower bound of ranges like "5,000 - 7,000"
    first = re.search(r"\d[\d,\s]*(?:\.\d+)?", text)
    if not first:
        return 0.0
    digits = _PRICE_NOISE.sub("", first.group(0))
    try:
        price = float(digits)
    except ValueError:
        return 0.0
    return -price if negative else price
