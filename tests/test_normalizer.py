"""Tests for canonicalization, dedup and change detection."""

from datetime import datetime, timezone

import pytest

from stockviewer.domain import Availability, ChangeType
from stockviewer.parsers.common import RawItem
from stockviewer.services.change_tracking import ExistingProduct, detect_stock_changes
from stockviewer.services.normalizer import availability_from_qty, canonicalize

NOW = datetime(2024, 3, 31, 12, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "qty,expected",
    [
        (3, Availability.IN_STOCK),
        (0.5, Availability.IN_STOCK),
        (0, Availability.OUT_OF_STOCK),
        (-2, Availability.NEGATIVE),
        (None, Availability.UNKNOWN),
        (float("nan"), Availability.UNKNOWN),
        (float("inf"), Availability.UNKNOWN),
    ],
)
def test_availability_from_qty(qty, expected):
    assert availability_from_qty(qty) is expected


def test_canonicalize_dedups_last_write_wins_in_first_seen_order():
    items = canonicalize(
        [
            RawItem(name="Ball  A", brand="X", qty=1),
            RawItem(name="Ball B", qty=2),
            RawItem(name="ball a", brand="Y", qty=5),
        ],
        NOW,
    )

    assert [i.name_key for i in items] == ["ball a", "ball b"]
    assert items[0].name == "ball a"
    assert items[0].brand == "Y"
    assert items[0].qty == 5
    assert all(i.last_seen_at == NOW for i in items)


def test_canonicalize_cleans_fields_and_drops_empty_names():
    items = canonicalize(
        [
            RawItem(name="   ", qty=1),
            RawItem(name=" Grip  2 Pack ", brand="  ", qty=float("nan"), unit=" nos "),
        ],
        NOW,
    )

    assert len(items) == 1
    item = items[0]
    assert item.name == "Grip 2 Pack"
    assert item.brand is None
    assert item.qty is None
    assert item.unit == "nos"
    assert item.availability is Availability.UNKNOWN


def test_canonicalize_applies_preferred_ids():
    items = canonicalize([RawItem(name="Ball A", qty=1)], NOW, product_ids={"ball a": "p-1"})
    assert items[0].product_id == "p-1"


def _item(qty, name="Ball A", brand=None):
    return canonicalize([RawItem(name=name, brand=brand, qty=qty)], NOW)[0]


def _existing(qty, brand="Babolat"):
    return ExistingProduct(
        id="p-1",
        name_key="ball a",
        brand=brand,
        stock_qty=qty,
        availability=availability_from_qty(qty),
    )


def test_new_product_event():
    events = detect_stock_changes(_item(4), None, "p-new", NOW)

    assert len(events) == 1
    assert events[0].change_type is ChangeType.NEW_PRODUCT
    assert events[0].from_qty is None
    assert events[0].to_qty == 4
    assert events[0].product_id == "p-new"


def test_drop_to_zero_emits_drop_and_out_of_stock():
    events = detect_stock_changes(_item(0), _existing(5), "p-1", NOW)
    assert [e.change_type for e in events] == [ChangeType.STOCK_DROP, ChangeType.OUT_OF_STOCK]
    assert all(e.from_qty == 5 and e.to_qty == 0 for e in events)


def test_drop_to_negative_is_a_stock_drop_only():
    events = detect_stock_changes(_item(-2), _existing(5), "p-1", NOW)
    assert [e.change_type for e in events] == [ChangeType.STOCK_DROP]
    assert events[0].to_availability is Availability.NEGATIVE


def test_unknown_quantities_never_count_as_drops():
    assert detect_stock_changes(_item(None), _existing(5), "p-1", NOW) == []
    assert detect_stock_changes(_item(3), _existing(None), "p-1", NOW) == []


def test_unchanged_or_rising_stock_emits_nothing():
    assert detect_stock_changes(_item(5), _existing(5), "p-1", NOW) == []
    assert detect_stock_changes(_item(9), _existing(5), "p-1", NOW) == []
    assert detect_stock_changes(_item(0), _existing(0), "p-1", NOW) == []


def test_recovery_from_negative_to_zero_is_out_of_stock():
    events = detect_stock_changes(_item(0), _existing(-2), "p-1", NOW)
    assert [e.change_type for e in events] == [ChangeType.OUT_OF_STOCK]


def test_snapshot_keeps_stored_brand_when_incoming_has_none():
    events = detect_stock_changes(_item(1), _existing(5, brand="Babolat"), "p-1", NOW)
    assert events[0].product_brand == "Babolat"
