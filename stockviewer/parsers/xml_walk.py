"""Markup walk for Tally's hierarchical .xml Godown Summary export.

The export is a flat run of ENVELOPE children where each display row is a
`DSPACCNAME` (holding `DSPDISPNAME`) immediately followed by a `DSPSTKINFO`
(holding `DSPSTKCL/DSPCLQTY`). Stock-group headings appear in the same stream as
products, so the brand-shape test with lookahead decides which is which.
"""

from dataclasses import dataclass
import logging

from lxml import etree

from stockviewer.parsers.common import (
    IngestionError,
    RawItem,
    is_grand_total,
    looks_like_brand_header,
    normalize_whitespace,
    parse_qty,
    should_ignore_row_name,
)

logger = logging.getLogger("uvicorn.error")

BRAND_LOOKAHEAD = 4


@dataclass
class DisplayRow:
    name: str
    qty: float | None
    unit: str | None


def _parse_document(content: bytes | str, source: str) -> etree._Element:
    if isinstance(content, str):
        data = content.encode("utf-8")
        parser = etree.XMLParser(recover=True, encoding="utf-8", resolve_entities=False)
    else:
        data = content
        parser = etree.XMLParser(recover=True, resolve_entities=False)

    if not data.strip():
        raise IngestionError(f"{source} is empty; expected a Tally XML export")

    try:
        root = etree.fromstring(data, parser)
    except etree.XMLSyntaxError as e:
        raise IngestionError(f"Could not parse {source} as XML: {e}") from e
    if root is None:
        raise IngestionError(f"Could not parse {source} as XML")
    return root


def _find_envelope(root: etree._Element) -> etree._Element | None:
    if root.tag == "ENVELOPE":
        return root
    return root.find(".//ENVELOPE")


def _text(element: etree._Element | None) -> str:
    if element is None or element.text is None:
        return ""
    return normalize_whitespace(element.text)


def display_rows(envelope: etree._Element) -> list[DisplayRow]:
    """Pair every DSPACCNAME with the DSPSTKINFO that follows it."""
    rows: list[DisplayRow] = []
    pending_name: str | None = None

    for child in envelope:
        if not isinstance(child.tag, str):
            continue  # comments, processing instructions

        if child.tag == "DSPACCNAME":
            pending_name = _text(child.find("DSPDISPNAME")) or None
            continue

        if child.tag == "DSPSTKINFO" and pending_name:
            qty_text = child.findtext("DSPSTKCL/DSPCLQTY")
            qty, unit = parse_qty(qty_text)
            rows.append(DisplayRow(name=pending_name, qty=qty, unit=unit))
            pending_name = None

    return rows


def classify_rows(rows: list[DisplayRow]) -> list[RawItem]:
    """Turn display rows into items, tracking the current brand bucket."""
    items: list[RawItem] = []
    current_brand: str | None = None

    for i, row in enumerate(rows):
        if is_grand_total(row.name):
            break
        if should_ignore_row_name(row.name):
            continue

        if looks_like_brand_header(row.name):
            following = [r.name for r in rows[i + 1:i + 1 + BRAND_LOOKAHEAD] if r.name]
            next_name = following[0] if following else None
            if next_name and not looks_like_brand_header(next_name):
                current_brand = row.name
                continue

        items.append(RawItem(name=row.name, brand=current_brand, qty=row.qty, unit=row.unit))

    return items


def parse_tally_xml(content: bytes | str, source: str = "xml") -> list[RawItem]:
    """Extract items from a Godown Summary markup export.

    Raises:
        IngestionError: If the payload is not XML or has no ENVELOPE.
    """
    root = _parse_document(content, source)
    envelope = _find_envelope(root)
    if envelope is None:
        raise IngestionError(f"No ENVELOPE element in {source}; expected a Tally XML export")

    rows = display_rows(envelope)
    items = classify_rows(rows)
    logger.info(f"[xml] {source}: {len(rows)} display rows, {len(items)} items")
    return items
