"""Tally rows → RawItem, the same shape the file detectors produce."""

from dataclasses import dataclass, field
import math
import re

from stockviewer.parsers.common import RawItem, normalize_whitespace, should_ignore_row_name
from stockviewer.services.tally_parser import TallyStockRow

_UNIT_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9._-]*$")

# Tally's root stock group; items directly under it have no real brand
PRIMARY_GROUP = "primary"


@dataclass
class NormalizedRows:
    items: list[RawItem] = field(default_factory=list)
    invalid_count: int = 0
    errors: list[str] = field(default_factory=list)


def clean_unit(unit: str | None) -> str | None:
    if not unit:
        return None
    unit = normalize_whitespace(unit)
    return unit if _UNIT_RE.match(unit) else None


def clean_brand(parent: str | None) -> str | None:
    if not parent:
        return None
    brand = normalize_whitespace(parent)
    if not brand or brand.lower() == PRIMARY_GROUP:
        return None
    return brand


def row_to_item(row: TallyStockRow) -> RawItem:
    qty = row.closing_qty
    if qty is not None and not math.isfinite(qty):
        qty = None
    return RawItem(
        name=normalize_whitespace(row.name),
        brand=clean_brand(row.parent),
        qty=qty,
        unit=clean_unit(row.unit),
    )


def normalize_rows(rows: list[TallyStockRow]) -> NormalizedRows:
    """Convert rows, dropping ones that cannot become catalog items.

    Dropped (and counted invalid): empty names, total lines, missing quantity.
    Rows without a brand are kept and land in the unbranded bucket.
    """
    result = NormalizedRows()
    for i, row in enumerate(rows, start=1):
        item = row_to_item(row)
        if not item.name:
            reason = "missing name"
        elif should_ignore_row_name(item.name):
            reason = "total row"
        elif item.qty is None:
            reason = "missing quantity"
        else:
            result.items.append(item)
            continue

        result.invalid_count += 1
        result.errors.append(f"Item {i} ({item.name or 'unknown'}): {reason}")
    return result


def count_by_brand(items: list[RawItem]) -> dict[str, int]:
    """Item count per brand ("Unknown" for unbranded), largest first."""
    counts: dict[str, int] = {}
    for item in items:
        key = item.brand or "Unknown"
        counts[key] = counts.get(key, 0) + 1
    return dict(sorted(counts.items(), key=lambda kv: (-kv[1], kv[0])))
