"""Canonicalization of raw detector output.

Every source (spreadsheet, markup export, live Tally query, cache replay) ends up
here before touching storage, so the identity rules live in one place:

- name_key = lowercased, whitespace-collapsed name
- one item per name_key per batch; the last occurrence wins
- availability is derived from the quantity, never taken from input
"""

from dataclasses import dataclass
from datetime import datetime, timezone
import math

from stockviewer.domain import Availability
from stockviewer.parsers.common import RawItem, name_key_from_name, normalize_whitespace


@dataclass
class CanonicalItem:
    """A deduplicated, normalized item ready for upsert."""

    name: str
    name_key: str
    brand: str | None
    qty: float | None
    unit: str | None
    availability: Availability
    last_seen_at: datetime
    # Only set when replaying the cache, so products keep their cached ids
    product_id: str | None = None


def availability_from_qty(qty: float | None) -> Availability:
    """Single source of truth for availability.

    Example:
        >>> availability_from_qty(-2)
        <Availability.NEGATIVE: 'NEGATIVE'>
    """
    if qty is None or not math.isfinite(qty):
        return Availability.UNKNOWN
    if qty > 0:
        return Availability.IN_STOCK
    if qty == 0:
        return Availability.OUT_OF_STOCK
    return Availability.NEGATIVE


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    cleaned = normalize_whitespace(value)
    return cleaned or None


def _finite(qty: float | None) -> float | None:
    if qty is None:
        return None
    try:
        number = float(qty)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def canonicalize(
    items: list[RawItem],
    now: datetime | None = None,
    product_ids: dict[str, str] | None = None,
) -> list[CanonicalItem]:
    """Normalize and dedupe raw items.

    Args:
        items: Detector output, in source order.
        now: Timestamp stamped as last_seen_at on every item.
        product_ids: Optional name_key -> id map of preferred product ids.

    Returns:
        One CanonicalItem per name_key, in first-seen order, carrying the
        values of the last occurrence.
    """
    now = now or datetime.now(timezone.utc)
    by_key: dict[str, CanonicalItem] = {}

    for raw in items:
        name = _clean(raw.name)
        if not name:
            continue
        key = name_key_from_name(name)
        qty = _finite(raw.qty)

        # dict keeps the first insertion position on overwrite
        by_key[key] = CanonicalItem(
            name=name,
            name_key=key,
            brand=_clean(raw.brand),
            qty=qty,
            unit=_clean(raw.unit),
            availability=availability_from_qty(qty),
            last_seen_at=now,
            product_id=(product_ids or {}).get(key),
        )

    return list(by_key.values())
