"""Heuristic header search for spreadsheet stock exports.

Tally's Godown/Stock Summary exports move their columns around between versions
and installations, and headers often span two or three rows ("Closing" on one
row, "Balance" / "Quantity" below). Instead of assuming a layout we:

1. Look for an item-name label in the first rows of the sheet.
2. For every header row group below it, collect columns whose label looks like a
   closing quantity and score each placement.
3. Walk the rows under the winning header, tracking brand headings.
"""

from dataclasses import dataclass
import logging

from stockviewer.parsers.common import (
    RawItem,
    cell_text,
    is_grand_total,
    is_opening_or_closing_row,
    looks_like_brand_header,
    normalize_whitespace,
    parse_maybe_number,
    parse_qty,
    should_ignore_row_name,
    unit_from_number_format,
)
from stockviewer.parsers.workbook import Sheet

logger = logging.getLogger("uvicorn.error")

NAME_HEADERS = ["particulars", "stock item", "item", "name", "product"]
QTY_HEADERS = [
    "closing qty",
    "closing quantity",
    "closing balance",
    "closing",
    "quantity",
    "qty",
    "cl. qty",
    "cl qty",
]
UNIT_HEADERS = ["unit", "uom"]

HEADER_SCAN_ROWS = 120
MAX_HEADER_SPAN = 10
QTY_SAMPLE_ROWS = 60
QTY_SAMPLE_CAP = 50
EMPTY_ROW_GUARD = 12
BRAND_LOOKAHEAD = 4


@dataclass(frozen=True)
class HeaderMatch:
    score: int
    header_start_row: int
    header_end_row: int
    name_col: int
    qty_col: int
    unit_col: int | None

    @property
    def data_start_row(self) -> int:
        return self.header_end_row + 1


def _label(value: object) -> str:
    return cell_text(value).lower()


def _header_match(cell: str, headers: list[str]) -> bool:
    return any(cell == h or h in cell for h in headers)


def _combined_header(sheet: Sheet, row_start: int, row_end: int, col: int) -> str:
    parts = [_label(sheet.value(r, col)) for r in range(row_start, row_end + 1)]
    return " ".join(p for p in parts if p).strip()


def _qty_sample_score(sheet: Sheet, data_start_row: int, qty_col: int) -> int:
    """Count how many of the rows below a header hold a parseable quantity."""
    limit = min(len(sheet.rows), data_start_row + QTY_SAMPLE_ROWS)
    score = 0
    for r in range(data_start_row, limit):
        value = sheet.value(r, qty_col)
        if isinstance(value, str):
            qty, _unit = parse_qty(value)
            if qty is not None or parse_maybe_number(value) is not None:
                score += 1
        elif parse_maybe_number(value) is not None:
            score += 1
    return score


def score_header(header_text: str, has_unit_col: bool, sample: int) -> int:
    """Score one (header rows, qty column) placement.

    Closing/balance labels are preferred over opening/inward/outward columns,
    and columns that actually contain numbers beat empty lookalikes.
    """
    score = 5 + 3  # name column found, qty label found
    if "closing" in header_text:
        score += 5
    if "balance" in header_text:
        score += 2
    if "opening" in header_text:
        score -= 4
    if "inward" in header_text or "outward" in header_text:
        score -= 2
    if has_unit_col:
        score += 1
    score += min(sample, QTY_SAMPLE_CAP)
    return score


def find_header(sheet: Sheet) -> HeaderMatch | None:
    """Pick the best-scoring header placement in a sheet.

    Candidates are visited top-down, left-to-right; only a strictly higher
    score replaces the current best, so ties keep the earliest candidate.
    """
    best: HeaderMatch | None = None
    limit = min(len(sheet.rows), HEADER_SCAN_ROWS)

    for header_start_row in range(limit):
        start_cells = [_label(c.value) for c in sheet.rows[header_start_row]]
        name_col = next(
            (i for i, c in enumerate(start_cells) if c and _header_match(c, NAME_HEADERS)),
            -1,
        )
        if name_col < 0:
            continue

        max_header_end = min(len(sheet.rows) - 1, header_start_row + MAX_HEADER_SPAN)
        for header_end_row in range(header_start_row, max_header_end + 1):
            cells = [_label(c.value) for c in sheet.rows[header_end_row]]

            qty_candidates = [
                c for c, cell in enumerate(cells)
                if c != name_col and cell and _header_match(cell, QTY_HEADERS)
            ]
            if not qty_candidates:
                continue

            unit_col = next(
                (i for i, c in enumerate(cells) if c and _header_match(c, UNIT_HEADERS)),
                None,
            )

            for qty_col in qty_candidates:
                header_text = _combined_header(sheet, header_start_row, header_end_row, qty_col)
                sample = _qty_sample_score(sheet, header_end_row + 1, qty_col)
                score = score_header(header_text, unit_col is not None, sample)

                if best is None or score > best.score:
                    best = HeaderMatch(
                        score=score,
                        header_start_row=header_start_row,
                        header_end_row=header_end_row,
                        name_col=name_col,
                        qty_col=qty_col,
                        unit_col=unit_col,
                    )

    return best


def _read_qty(sheet: Sheet, row: int, header: HeaderMatch) -> tuple[float | None, str | None]:
    qty_cell = sheet.cell(row, header.qty_col)
    unit_value = sheet.value(row, header.unit_col) if header.unit_col is not None else None
    unit_text = normalize_whitespace(unit_value) if isinstance(unit_value, str) else ""

    if isinstance(qty_cell.value, str):
        return parse_qty(qty_cell.value)

    qty = parse_maybe_number(qty_cell.value)
    if qty is None:
        return None, None
    unit = unit_text or unit_from_number_format(qty_cell.number_format)
    return qty, unit or None


def _next_name(sheet: Sheet, row: int, name_col: int) -> str | None:
    for look in range(row + 1, min(len(sheet.rows), row + 1 + BRAND_LOOKAHEAD)):
        candidate = cell_text(sheet.value(look, name_col))
        if candidate:
            return candidate
    return None


def walk_items(sheet: Sheet, header: HeaderMatch) -> list[RawItem]:
    """Emit items below a detected header, assigning brand buckets."""
    items: list[RawItem] = []
    current_brand: str | None = None
    empty_streak = 0

    for r in range(header.data_start_row, len(sheet.rows)):
        name = cell_text(sheet.value(r, header.name_col))
        if not name:
            empty_streak += 1
            if empty_streak >= EMPTY_ROW_GUARD:
                break
            continue
        empty_streak = 0

        if is_grand_total(name):
            break
        if should_ignore_row_name(name) or is_opening_or_closing_row(name):
            continue

        if looks_like_brand_header(name):
            next_name = _next_name(sheet, r, header.name_col)
            # A trailing brand with nothing but other brands below it is kept as an item
            if next_name and not looks_like_brand_header(next_name):
                current_brand = name
                continue

        qty, unit = _read_qty(sheet, r, header)
        items.append(RawItem(name=name, brand=current_brand, qty=qty, unit=unit))

    return items


def detect_header_table(sheets: list[Sheet]) -> list[RawItem]:
    """Run the header search over every sheet and concatenate the items."""
    all_items: list[RawItem] = []
    for sheet in sheets:
        header = find_header(sheet)
        if header is None:
            logger.info(f"[xlsx:header] No header found in sheet {sheet.name!r}")
            continue
        items = walk_items(sheet, header)
        logger.info(
            f"[xlsx:header] Sheet {sheet.name!r}: header rows {header.header_start_row}-"
            f"{header.header_end_row}, name col {header.name_col}, qty col {header.qty_col}, "
            f"score {header.score}, {len(items)} items"
        )
        all_items.extend(items)
    return all_items
