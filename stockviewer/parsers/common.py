"""Text and number helpers shared by every format detector.

Tally exports mix product rows with brand (stock group) headings, totals and
opening/closing lines. The shape tests here decide which is which.
"""

import math
import re
from dataclasses import dataclass


@dataclass
class RawItem:
    """One product row as found in a source, before canonicalization."""

    name: str
    brand: str | None = None
    qty: float | None = None
    unit: str | None = None


class IngestionError(ValueError):
    """The payload did not contain a recognizable stock table."""


# Words that mark a row as a concrete product rather than a brand heading
PRODUCT_MARKERS = [
    "size",
    "gen",
    "model",
    "jr",
    "junior",
    "kids",
    "women",
    "men",
    "unisex",
    "pack",
    "set",
    "pair",
    "gauge",
    "mm",
    "cm",
    "kg",
    "lbs",
    "inch",
    "pro",
    "team",
    "tour",
]

_PRODUCT_MARKER_RE = re.compile(r"\b(?:" + "|".join(PRODUCT_MARKERS) + r")\b", re.IGNORECASE)
_TOTAL_RE = re.compile(r"total|subtotal|grand total", re.IGNORECASE)
_IGNORE_ROW_RE = re.compile(r"^(grand\s+total|total|sub\s*total|subtotal)\b", re.IGNORECASE)
_GRAND_TOTAL_RE = re.compile(r"^grand\s+total\b", re.IGNORECASE)
_QTY_RE = re.compile(r"^\s*([+-]?[\d,]*\d(?:\.\d+)?)\s*(.*?)\s*$")
_NUMFMT_UNIT_RE = re.compile(r'"\s*([A-Za-z][A-Za-z0-9._-]*)\s*"')

BRAND_HEADER_MAX_LEN = 25


def normalize_whitespace(text: str) -> str:
    return re.sub(r"\s+", " ", text).strip()


def name_key_from_name(name: str) -> str:
    """Identity key: trimmed, whitespace-collapsed, lowercased.

    Example:
        >>> name_key_from_name("  Ball   A ")
        'ball a'
    """
    return normalize_whitespace(name).lower()


def cell_text(value: object) -> str:
    """Whitespace-normalized text of an arbitrary cell value ('' for empty)."""
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return normalize_whitespace(str(value))


def parse_qty(text: str | None) -> tuple[float | None, str | None]:
    """Split a combined quantity string into (qty, unit).

    " 3 nos" -> (3.0, "nos"), "1,234.5 pcs" -> (1234.5, "pcs"), "-2" -> (-2.0, None).
    Anything that does not start with a number yields (None, None).
    """
    if not text:
        return None, None
    trimmed = normalize_whitespace(text)
    if not trimmed:
        return None, None

    match = _QTY_RE.match(trimmed)
    if not match:
        return None, None

    try:
        qty = float(match.group(1).replace(",", ""))
    except ValueError:
        return None, None
    if not math.isfinite(qty):
        return None, None

    unit = match.group(2).strip()
    return qty, unit or None


def parse_maybe_number(value: object) -> float | None:
    """Return a finite float for numeric cells or numeric strings, else None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
        return number if math.isfinite(number) else None
    if not isinstance(value, str):
        return None
    trimmed = value.strip().replace(",", "")
    if not trimmed:
        return None
    try:
        number = float(trimmed)
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def unit_from_number_format(number_format: str | None) -> str | None:
    """Pull a unit out of a number format such as '#,##0 "nos"'."""
    if not number_format:
        return None
    match = _NUMFMT_UNIT_RE.search(number_format)
    return match.group(1) if match else None


def looks_like_brand_header(name: str) -> bool:
    """Shape test for stock-group headings: short, no digits, no product markers."""
    trimmed = normalize_whitespace(name)
    if not trimmed:
        return False
    if len(trimmed) > BRAND_HEADER_MAX_LEN:
        return False
    if re.search(r"\d", trimmed):
        return False
    if re.search(r"[/:]", trimmed):
        return False
    if _PRODUCT_MARKER_RE.search(trimmed):
        return False
    if _TOTAL_RE.search(trimmed):
        return False
    return True


def should_ignore_row_name(name: str) -> bool:
    """Empty names and total/subtotal lines never become items."""
    trimmed = normalize_whitespace(name)
    if not trimmed:
        return True
    return bool(_IGNORE_ROW_RE.match(trimmed))


def is_grand_total(name: str) -> bool:
    return bool(_GRAND_TOTAL_RE.match(normalize_whitespace(name)))


def is_opening_or_closing_row(name: str) -> bool:
    return bool(re.match(r"^(opening|closing)\b", name, re.IGNORECASE))
