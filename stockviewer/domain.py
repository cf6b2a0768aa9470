"""Shared domain vocabulary: availability states and change-event types."""

from enum import Enum


class Availability(Enum):
    """Stock availability, always derived from the stock quantity."""

    IN_STOCK = "IN_STOCK"
    OUT_OF_STOCK = "OUT_OF_STOCK"
    NEGATIVE = "NEGATIVE"
    UNKNOWN = "UNKNOWN"


class ChangeType(Enum):
    """Kinds of entries in the product change log."""

    NEW_PRODUCT = "NEW_PRODUCT"
    STOCK_DROP = "STOCK_DROP"
    OUT_OF_STOCK = "OUT_OF_STOCK"
    PRICE_CHANGE = "PRICE_CHANGE"


# Brand filter value selecting products without a brand
UNBRANDED = "__unknown__"


def parse_availability(value: object) -> Availability:
    """Coerce a stored/serialized availability back into the enum (UNKNOWN on junk)."""
    if isinstance(value, Availability):
        return value
    try:
        return Availability(str(value))
    except ValueError:
        return Availability.UNKNOWN
