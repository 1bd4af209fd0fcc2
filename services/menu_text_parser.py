"""
Menu text grammar.

Turns OCR/PDF text into categories and priced items. Works line by line:

    STARTERS                      <- header: no price, caps/keyword/colon
    Samosa ........ 2,500         <- item: name, then price
      beef, three pieces          <- continuation: appended to description
    Spring roll
    2000                          <- bare price: closes the pending name

Category headers that equal (case/whitespace-insensitive) one of the
operator's existing category names take that spelling; everything else is
title-cased.
"""

import re
from dataclasses import dataclass, field
from typing import Optional
import structlog

from models.menu import ExtractedCategory, ExtractedItem, ExtractedMenuData
from utils.text_utils import clean_text, normalize_name, title_case

logger = structlog.get_logger(__name__)


DEFAULT_CATEGORY = "Main Menu"
DEFAULT_CURRENCY = "RWF"

# Currencies without minor units on printed menus
WHOLE_UNIT_CURRENCIES = {"RWF", "UGX", "TZS", "KES"}

CURRENCY_PATTERNS: list[tuple[re.Pattern, str]] = [
    (re.compile(r"\b(?:RWF|Frw)\b|francs?\s*rwandais", re.IGNORECASE), "RWF"),
    (re.compile(r"\bUSD\b|\$|\bdollars?\b", re.IGNORECASE), "USD"),
    (re.compile(r"\bEUR\b|€|\beuros?\b", re.IGNORECASE), "EUR"),
    (re.compile(r"\bGBP\b|£|\bpounds?\b", re.IGNORECASE), "GBP"),
    (re.compile(r"\b(?:KES|KSh)\b|shillings?", re.IGNORECASE), "KES"),
    (re.compile(r"\b(?:TZS|TSh)\b"), "TZS"),
    (re.compile(r"\bUGX\b"), "UGX"),
]

CATEGORY_KEYWORDS = (
    "appetizer", "starter", "entree", "main", "dish", "side", "dessert",
    "beverage", "drink", "coffee", "tea", "juice", "smoothie", "cocktail",
    "salad", "soup", "pizza", "pasta", "burger", "sandwich", "grill",
    "seafood", "vegetarian", "vegan", "breakfast", "lunch", "dinner",
    "special", "combo", "meal", "snack", "wine", "beer", "spirit",
)
CATEGORY_KEYWORD_PATTERN = re.compile(
    r"\b(?:" + "|".join(CATEGORY_KEYWORDS) + r")(?:e?s)?\b",
    re.IGNORECASE,
)

NOISE_PATTERNS = [
    re.compile(r"^page \d+$", re.IGNORECASE),
    re.compile(r"^[^a-zA-Z0-9]+$"),
    re.compile(r"www\.|https?:", re.IGNORECASE),
    re.compile(r"\b(?:e-?mail|phone|tel|address)\b", re.IGNORECASE),
    re.compile(r"copyright|all rights reserved|[©®™]", re.IGNORECASE),
    re.compile(r"\b(?:tax|vat|service charge)\b", re.IGNORECASE),
    re.compile(r"terms and conditions", re.IGNORECASE),
    re.compile(r"^menu$", re.IGNORECASE),
    re.compile(r"^(?:sub)?total\b|^grand total\b", re.IGNORECASE),
]

_CURRENCY_TOKEN = r"rwf|frw|usd|eur|gbp|kes|ksh|ugx|tzs"
PRICE_PATTERN = re.compile(
    rf"(?:(?:[$€£]|\b(?:{_CURRENCY_TOKEN}))\s*)?"
    r"(?P<amount>\d{1,3}(?:,\d{3})+(?:\.\d{1,2})?|\d+(?:\.\d{1,2})?)"
    rf"(?:\s*(?:\b(?:{_CURRENCY_TOKEN}|francs?)\b|/-))?",
    re.IGNORECASE,
)
BARE_PRICE_PATTERN = re.compile(
    rf"^(?:[$€£]|(?:{_CURRENCY_TOKEN})\b)?\s*"
    r"(?:\d{1,3}(?:,\d{3})+|\d+)(?:\.\d{1,2})?\s*"
    rf"(?:(?:{_CURRENCY_TOKEN}|francs?)\b|/-)?$",
    re.IGNORECASE,
)

GENERIC_NAMES = {"item", "food", "dish", "option", "choice", "n/a", "tbd"}
MAX_PRICE = 1_000_000


@dataclass
class _CategoryDraft:
    name: str
    items: list[dict] = field(default_factory=list)


def detect_currency(text: str) -> str:
    """Return the first currency mentioned in the text, default RWF."""
    for pattern, currency in CURRENCY_PATTERNS:
        if pattern.search(text):
            return currency
    return DEFAULT_CURRENCY


def normalize_price(price: float, currency: str) -> float:
    """Round whole-unit currencies to integers, others to cents."""
    if currency in WHOLE_UNIT_CURRENCIES:
        return float(round(price))
    return round(price, 2)


def _is_noise(line: str) -> bool:
    return any(p.search(line) for p in NOISE_PATTERNS)


def _last_price(line: str) -> Optional[re.Match]:
    matches = list(PRICE_PATTERN.finditer(line))
    return matches[-1] if matches else None


def _has_price(line: str) -> bool:
    return _last_price(line) is not None


def _amount(match: re.Match) -> float:
    return float(match.group("amount").replace(",", ""))


def _is_header(line: str, next_line: str, is_first: bool) -> bool:
    is_all_caps = line == line.upper() and any(c.isalpha() for c in line) and 2 < len(line) < 50
    has_keyword = bool(CATEGORY_KEYWORD_PATTERN.search(line))
    ends_with_colon = line.endswith(":")
    looks_like_header = is_all_caps or has_keyword or ends_with_colon
    followed_by_item = _has_price(next_line) or not next_line or is_first
    return looks_like_header and followed_by_item and not BARE_PRICE_PATTERN.match(next_line or "x")


def _valid_item_name(name: Optional[str]) -> bool:
    if not name or not 2 < len(name) < 100:
        return False
    if re.fullmatch(r"[\d\s.,]+", name):
        return False
    return name.lower() not in GENERIC_NAMES


def _canonical_header(raw: str, hints: dict[str, str]) -> str:
    name = re.sub(r"[:\-_]+", " ", raw)
    name = re.sub(r"\s+", " ", name).strip()
    return hints.get(normalize_name(name)) or title_case(name)


def parse_menu_text(
    text: str,
    existing_category_names: Optional[list[str]] = None,
) -> ExtractedMenuData:
    """
    Structure raw menu text into categories and items.

    Args:
        text: OCR or PDF text, one menu line per line
        existing_category_names: Operator's category names used to spell
            matching headers consistently

    Returns:
        ExtractedMenuData (may contain zero items; the validator reports that)
    """
    hints = {normalize_name(n): n for n in (existing_category_names or []) if n}
    currency = detect_currency(text)
    lines = [line.strip() for line in text.splitlines() if line.strip()]

    drafts: list[_CategoryDraft] = []
    current: Optional[_CategoryDraft] = None
    pending_name: Optional[str] = None

    def ensure_category() -> _CategoryDraft:
        nonlocal current
        if current is None:
            current = _CategoryDraft(name=DEFAULT_CATEGORY)
            drafts.append(current)
        return current

    def add_item(name: str, price: float, description: Optional[str]) -> None:
        name = clean_text(name)
        if not _valid_item_name(name) or not 0 < price < MAX_PRICE:
            logger.debug("menu_line_rejected", name=name, price=price)
            return
        ensure_category().items.append({
            "name": name,
            "price": normalize_price(price, currency),
            "description": description,
        })

    for index, line in enumerate(lines):
        next_line = lines[index + 1] if index + 1 < len(lines) else ""

        if len(line) < 2 or _is_noise(line):
            continue

        if BARE_PRICE_PATTERN.match(line):
            if pending_name:
                add_item(pending_name, _amount(_last_price(line)), None)
                pending_name = None
            continue

        price_match = _last_price(line)

        if price_match is None and _is_header(line, next_line, index == 0):
            current = _CategoryDraft(name=_canonical_header(line, hints))
            drafts.append(current)
            pending_name = None
            continue

        if price_match is not None:
            name = line[:price_match.start()].strip()
            description = line[price_match.end():].strip(" -–:|")
            if len(description) < 5 or re.fullmatch(r"[A-Za-z]{3}", description):
                description = None
            add_item(name, _amount(price_match), clean_text(description, max_length=1000))
            pending_name = None
            continue

        if BARE_PRICE_PATTERN.match(next_line):
            pending_name = line
            continue

        # Continuation line: extra description for the previous item
        if current is not None and current.items:
            is_all_caps = line == line.upper() and any(c.isalpha() for c in line)
            if not is_all_caps and len(line) > 10 and not line.endswith(":"):
                last = current.items[-1]
                last["description"] = clean_text(
                    f"{last['description'] or ''} {line}",
                    max_length=1000
                )

    categories = _post_process(drafts)

    logger.info(
        "menu_text_structured",
        lines=len(lines),
        categories=len(categories),
        items=sum(len(c.items) for c in categories),
        currency=currency
    )

    return ExtractedMenuData(categories=categories, currency=currency, raw_text=text)


def _post_process(drafts: list[_CategoryDraft]) -> list[ExtractedCategory]:
    """
    De-duplicate items per category and drop empty categories.

    A duplicate with a description replaces one without. Document order of
    categories is kept.
    """
    categories = []
    for draft in drafts:
        unique: dict[str, dict] = {}
        for item in draft.items:
            key = item["name"].lower().strip()
            if key not in unique or (item["description"] and not unique[key]["description"]):
                unique[key] = item
        if not unique:
            continue
        categories.append(ExtractedCategory(
            name=draft.name,
            items=[ExtractedItem(**item) for item in unique.values()],
        ))
    return categories
