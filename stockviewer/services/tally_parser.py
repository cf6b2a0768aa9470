"""Tally XML response parsing.

Collection export format:

    <ENVELOPE><BODY><DATA><COLLECTION>
      <STOCKITEM NAME="1 Week Tournament" RESERVEDNAME="">
        <PARENT TYPE="String">Babolat</PARENT>
        <BASEUNITS TYPE="String">nos</BASEUNITS>
        <CLOSINGBALANCE TYPE="Quantity"> 3 nos</CLOSINGBALANCE>
      </STOCKITEM>
    </COLLECTION></DATA></BODY></ENVELOPE>

An empty CLOSINGBALANCE means zero stock.
"""

import logging

from lxml import etree
from pydantic import BaseModel, ValidationError, field_validator

from stockviewer.parsers.common import IngestionError, normalize_whitespace, parse_qty
from stockviewer.parsers.xml_walk import parse_tally_xml

logger = logging.getLogger("uvicorn.error")


class TallyStockRow(BaseModel):
    """One stock item as returned by Tally, before normalization."""

    name: str
    parent: str | None = None
    closing_qty: float | None = None
    unit: str | None = None

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, v: str) -> str:
        v = normalize_whitespace(v)
        if not v:
            raise ValueError("name must not be empty")
        return v


def _parse(xml_text: str) -> etree._Element | None:
    if not xml_text or not xml_text.strip():
        return None
    parser = etree.XMLParser(recover=True, encoding="utf-8", resolve_entities=False)
    try:
        return etree.fromstring(xml_text.encode("utf-8"), parser)
    except etree.XMLSyntaxError:
        return None


def _text(element: etree._Element | None) -> str | None:
    if element is None or element.text is None:
        return None
    return normalize_whitespace(element.text) or None


def parse_closing_balance(value: str | None) -> tuple[float | None, str | None]:
    """" 3 nos" -> (3.0, "nos"); empty -> (0.0, None); garbage -> (None, None)."""
    if value is None or not value.strip():
        return 0.0, None
    qty, unit = parse_qty(value)
    if qty is None:
        logger.warning(f"[tally] Could not parse CLOSINGBALANCE: {value!r}")
    return qty, unit


def _stock_row(element: etree._Element) -> TallyStockRow | None:
    name = normalize_whitespace(element.get("NAME") or "") or _text(element.find("NAME"))
    if not name:
        return None

    closing = element.find("CLOSINGBALANCE")
    qty, parsed_unit = parse_closing_balance(closing.text if closing is not None else None)

    try:
        return TallyStockRow(
            name=name,
            parent=_text(element.find("PARENT")),
            closing_qty=qty,
            unit=_text(element.find("BASEUNITS")) or parsed_unit,
        )
    except ValidationError as e:
        logger.warning(f"[tally] Invalid STOCKITEM skipped: {e}")
        return None


def parse_stock_collection(xml_text: str) -> list[TallyStockRow]:
    """Rows from a Collection export; [] when nothing usable is found."""
    root = _parse(xml_text)
    if root is None:
        logger.warning("[tally] Empty or unparseable collection response")
        return []

    elements = root.iter("STOCKITEM")
    rows = [row for row in (_stock_row(e) for e in elements) if row is not None]
    logger.info(f"[tally] Parsed {len(rows)} STOCKITEM rows")
    return rows


def parse_godown_summary(xml_text: str) -> list[TallyStockRow]:
    """Rows from a Godown Summary report (display-row stream)."""
    try:
        items = parse_tally_xml(xml_text, source="Tally Godown Summary")
    except IngestionError as e:
        logger.warning(f"[tally] {e}")
        return []
    return [
        TallyStockRow(name=item.name, parent=item.brand, closing_qty=item.qty, unit=item.unit)
        for item in items
    ]


def detect_error_response(xml_text: str) -> str | None:
    """Error message embedded in a Tally response, or None if it looks healthy."""
    if not xml_text or not xml_text.strip():
        return "Empty response from Tally"

    root = _parse(xml_text)
    if root is None:
        return "Failed to parse response from Tally"

    for tag in ("LINEERROR", "ERROR"):
        for element in root.iter(tag):
            message = _text(element)
            if message:
                return message

    for status in root.iter("STATUS"):
        message = _text(status)
        if message and "error" in message.lower():
            return message

    return None
