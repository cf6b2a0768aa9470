"""Format detectors for Tally stock exports.

Spreadsheets go through an ordered chain of named strategies; the first one
that yields at least one item wins. Markup exports have a single walker.
"""

from dataclasses import dataclass
import logging
from typing import Callable

from stockviewer.parsers.common import IngestionError, RawItem
from stockviewer.parsers.workbook import Sheet, load_sheets
from stockviewer.parsers.xlsx_fixed import detect_fixed_layout
from stockviewer.parsers.xlsx_header import detect_header_table
from stockviewer.parsers.xml_walk import parse_tally_xml

logger = logging.getLogger("uvicorn.error")


@dataclass(frozen=True)
class DetectorStrategy:
    name: str
    detect: Callable[[list[Sheet]], list[RawItem]]


SPREADSHEET_DETECTORS: list[DetectorStrategy] = [
    DetectorStrategy(name="header-search", detect=detect_header_table),
    DetectorStrategy(name="fixed-layout", detect=detect_fixed_layout),
]

SUPPORTED_EXTENSIONS = (".xlsx", ".xml")


def detect_sheets(
    sheets: list[Sheet],
    source: str = "workbook",
    strategies: list[DetectorStrategy] | None = None,
) -> list[RawItem]:
    """Run the detector chain over already-loaded sheets."""
    for strategy in strategies or SPREADSHEET_DETECTORS:
        items = strategy.detect(sheets)
        if items:
            logger.info(f"[import] {source}: '{strategy.name}' found {len(items)} items")
            return items
        logger.info(f"[import] {source}: '{strategy.name}' found nothing, trying next")

    raise IngestionError(
        f"No stock table found in {source}: expected a header row with an item-name column "
        "and a closing-quantity column, or 4-column (name, qty, rate, value) rows"
    )


def parse_xlsx(content: bytes, source: str = "workbook") -> list[RawItem]:
    return detect_sheets(load_sheets(content, source), source)


def parse_xml(content: bytes | str, source: str = "xml") -> list[RawItem]:
    items = parse_tally_xml(content, source)
    if not items:
        raise IngestionError(
            f"No stock rows found in {source}: expected DSPACCNAME/DSPSTKINFO pairs under ENVELOPE"
        )
    return items


def parse_by_extension(extension: str, content: bytes, source: str) -> list[RawItem]:
    """Dispatch on the file extension (case-insensitive, with or without dot)."""
    ext = extension.lower()
    if not ext.startswith("."):
        ext = "." + ext
    if ext == ".xlsx":
        return parse_xlsx(content, source)
    if ext == ".xml":
        return parse_xml(content, source)
    raise IngestionError(
        f"Unsupported file type {extension!r} for {source}; expected one of {', '.join(SUPPORTED_EXTENSIONS)}"
    )


__all__ = [
    "DetectorStrategy",
    "IngestionError",
    "RawItem",
    "SPREADSHEET_DETECTORS",
    "SUPPORTED_EXTENSIONS",
    "detect_sheets",
    "parse_by_extension",
    "parse_xlsx",
    "parse_xml",
]
