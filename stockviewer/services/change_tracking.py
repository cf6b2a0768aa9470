"""Change detection between stored product state and an incoming item."""

from dataclasses import dataclass
from datetime import datetime

from stockviewer.domain import Availability, ChangeType
from stockviewer.services.normalizer import CanonicalItem


@dataclass
class ExistingProduct:
    """Stored state needed to diff an incoming item."""

    id: str
    name_key: str
    brand: str | None
    stock_qty: float | None
    availability: Availability


@dataclass
class ChangeEvent:
    """A change-log row waiting to be written."""

    product_id: str
    product_name: str
    product_brand: str | None
    change_type: ChangeType
    created_at: datetime
    from_qty: float | None = None
    to_qty: float | None = None
    from_availability: Availability | None = None
    to_availability: Availability | None = None
    from_price: float | None = None
    to_price: float | None = None


def detect_stock_changes(
    item: CanonicalItem,
    existing: ExistingProduct | None,
    product_id: str,
    at: datetime,
) -> list[ChangeEvent]:
    """Events produced by upserting `item` over `existing`.

    - No existing row: NEW_PRODUCT.
    - STOCK_DROP when both quantities are known and the new one is lower.
    - OUT_OF_STOCK when the item becomes out of stock from any other state.

    A drop to zero yields both STOCK_DROP and OUT_OF_STOCK.
    """
    if existing is None:
        return [
            ChangeEvent(
                product_id=product_id,
                product_name=item.name,
                product_brand=item.brand,
                change_type=ChangeType.NEW_PRODUCT,
                created_at=at,
                from_qty=None,
                to_qty=item.qty,
                from_availability=None,
                to_availability=item.availability,
            )
        ]

    brand = item.brand if item.brand is not None else existing.brand
    events: list[ChangeEvent] = []

    if existing.stock_qty is not None and item.qty is not None and item.qty < existing.stock_qty:
        events.append(
            ChangeEvent(
                product_id=product_id,
                product_name=item.name,
                product_brand=brand,
                change_type=ChangeType.STOCK_DROP,
                created_at=at,
                from_qty=existing.stock_qty,
                to_qty=item.qty,
                from_availability=existing.availability,
                to_availability=item.availability,
            )
        )

    if (
        existing.availability != Availability.OUT_OF_STOCK
        and item.availability == Availability.OUT_OF_STOCK
    ):
        events.append(
            ChangeEvent(
                product_id=product_id,
                product_name=item.name,
                product_brand=brand,
                change_type=ChangeType.OUT_OF_STOCK,
                created_at=at,
                from_qty=existing.stock_qty,
                to_qty=item.qty,
                from_availability=existing.availability,
                to_availability=item.availability,
            )
        )

    return events
