"""Fixed-layout detector for headerless spreadsheet exports.

Some Tally installations export the Godown Summary as bare rows of
(name, quantity, rate, value) with stock groups printed in bold. Group rows
carry the subtotal of the items beneath them.

Heading candidates are bold + numerically complete rows when fonts survived
the export, and brand-shaped complete rows otherwise. Either way a candidate
is accepted only if the quantities below it add up to its own quantity. A
brand-shaped product row that splits a span is folded back into the heading
above it when that makes the subtotal match; rows under a candidate that never
matches are dropped instead of being filed under the wrong brand.
"""

from dataclasses import dataclass
import logging
import math
from typing import Callable

from stockviewer.parsers.common import (
    RawItem,
    cell_text,
    is_grand_total,
    is_opening_or_closing_row,
    looks_like_brand_header,
    parse_maybe_number,
    parse_qty,
    should_ignore_row_name,
    unit_from_number_format,
)
from stockviewer.parsers.workbook import Sheet

logger = logging.getLogger("uvicorn.error")

EMPTY_ROW_GUARD = 12
SUBTOTAL_ABS_TOL = 1e-6


@dataclass(frozen=True)
class FixedLayout:
    """Column positions of the canonical 4-column row."""

    name_col: int = 0
    qty_col: int = 1
    rate_col: int = 2
    value_col: int = 3


DEFAULT_LAYOUT = FixedLayout()


@dataclass
class FixedRow:
    index: int
    name: str
    qty: float | None
    unit: str | None
    bold: bool
    complete: bool


def read_row(sheet: Sheet, r: int, layout: FixedLayout = DEFAULT_LAYOUT) -> FixedRow:
    name_cell = sheet.cell(r, layout.name_col)
    qty_cell = sheet.cell(r, layout.qty_col)

    if isinstance(qty_cell.value, str):
        qty, unit = parse_qty(qty_cell.value)
    else:
        qty = parse_maybe_number(qty_cell.value)
        unit = unit_from_number_format(qty_cell.number_format) if qty is not None else None

    rate = parse_maybe_number(sheet.value(r, layout.rate_col))
    value = parse_maybe_number(sheet.value(r, layout.value_col))

    return FixedRow(
        index=r,
        name=cell_text(name_cell.value),
        qty=qty,
        unit=unit,
        bold=name_cell.bold,
        complete=qty is not None and rate is not None and value is not None,
    )


def find_data_start(sheet: Sheet, layout: FixedLayout = DEFAULT_LAYOUT) -> tuple[int, bool] | None:
    """Locate the first data row.

    Returns:
        (row index, emphasis available) or None. The first bold + complete row
        wins; without any, the first complete named row is used and emphasis is
        reported as unavailable.
    """
    rows = [read_row(sheet, r, layout) for r in range(len(sheet.rows))]
    for row in rows:
        if row.name and row.complete and row.bold:
            return row.index, True
    for row in rows:
        if row.name and row.complete:
            return row.index, False
    return None


def _region(sheet: Sheet, start: int, layout: FixedLayout) -> list[FixedRow]:
    """Named rows from the data start to the end guard, totals removed."""
    region: list[FixedRow] = []
    empty_streak = 0
    for r in range(start, len(sheet.rows)):
        row = read_row(sheet, r, layout)
        if not row.name:
            empty_streak += 1
            if empty_streak >= EMPTY_ROW_GUARD:
                break
            continue
        empty_streak = 0
        if is_grand_total(row.name):
            break
        if should_ignore_row_name(row.name) or is_opening_or_closing_row(row.name):
            continue
        region.append(row)
    return region


def subtotal_matches(candidate_qty: float | None, member_qtys: list[float | None]) -> bool:
    """The export's own subtotal acts as a checksum for a brand heading."""
    if candidate_qty is None:
        return False
    total = math.fsum(q for q in member_qtys if q is not None)
    return math.isclose(total, candidate_qty, abs_tol=SUBTOTAL_ABS_TOL)


def _is_bold_heading(row: FixedRow) -> bool:
    return row.bold and row.complete


def _is_shaped_heading(row: FixedRow) -> bool:
    return row.complete and looks_like_brand_header(row.name)


def _span_rows(region: list[FixedRow], start: int, end: int) -> list[FixedRow]:
    return [row for row in region[start:end] if not row.bold]


def group_by_headings(
    region: list[FixedRow],
    is_heading: Callable[[FixedRow], bool],
    sheet_name: str = "sheet",
) -> list[RawItem]:
    """File the rows under each validated heading.

    Rows before the first heading are unbranded. A heading whose quantity does
    not equal the sum of the rows up to the next candidate may absorb following
    non-bold candidates (with their rows) as ordinary members until the sum
    matches. A heading no extension can confirm is rejected and its own rows
    are dropped. Bold rows that are not headings are never items.
    """
    headings = [i for i, row in enumerate(region) if is_heading(row)]
    bounds = headings + [len(region)]

    items: list[RawItem] = []
    for row in _span_rows(region, 0, bounds[0]):
        items.append(RawItem(name=row.name, qty=row.qty, unit=row.unit))

    n = 0
    while n < len(headings):
        heading = region[headings[n]]
        own_rows = _span_rows(region, headings[n] + 1, bounds[n + 1])
        members = list(own_rows)
        matched_at: int | None = None

        for k in range(n, len(headings)):
            if k > n:
                candidate = region[headings[k]]
                if candidate.bold:
                    break
                members.append(candidate)
                members.extend(_span_rows(region, headings[k] + 1, bounds[k + 1]))
            if subtotal_matches(heading.qty, [m.qty for m in members]):
                matched_at = k
                break

        if matched_at is None:
            logger.warning(
                f"[xlsx:fixed] Sheet {sheet_name!r} row {heading.index + 1}: "
                f"{heading.name!r} qty {heading.qty} does not match the sum of the "
                f"{len(own_rows)} row(s) below it; skipping them"
            )
            n += 1
            continue

        if matched_at > n:
            logger.info(
                f"[xlsx:fixed] Sheet {sheet_name!r}: {heading.name!r} absorbed "
                f"{matched_at - n} brand-shaped row(s) to match its subtotal"
            )
        for row in members:
            items.append(RawItem(name=row.name, brand=heading.name, qty=row.qty, unit=row.unit))
        n = matched_at + 1

    return items


def detect_fixed_layout_sheet(sheet: Sheet, layout: FixedLayout = DEFAULT_LAYOUT) -> list[RawItem]:
    start = find_data_start(sheet, layout)
    if start is None:
        return []
    start_row, has_emphasis = start
    region = _region(sheet, start_row, layout)

    is_heading = _is_bold_heading if has_emphasis else _is_shaped_heading
    items = group_by_headings(region, is_heading, sheet.name)

    logger.info(
        f"[xlsx:fixed] Sheet {sheet.name!r}: data starts at row {start_row + 1}, "
        f"emphasis={'yes' if has_emphasis else 'no'}, {len(items)} items"
    )
    return items


def detect_fixed_layout(sheets: list[Sheet], layout: FixedLayout = DEFAULT_LAYOUT) -> list[RawItem]:
    all_items: list[RawItem] = []
    for sheet in sheets:
        all_items.extend(detect_fixed_layout_sheet(sheet, layout))
    return all_items
