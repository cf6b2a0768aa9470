"""Tally XML request envelopes.

Tally's HTTP server (port 9000 by default) accepts an ENVELOPE per POST. Two
requests return closing stock:

- a TDL collection of "Stock Item" objects (NAME, PARENT, BASEUNITS,
  CLOSINGBALANCE), which is the reliable one;
- the "Godown Summary" report for a single godown, returned as the same
  DSPACCNAME/DSPSTKINFO display stream as the file export.
"""

from dataclasses import dataclass
from datetime import date
from typing import Callable
from xml.sax.saxutils import escape

from stockviewer.services.tally_parser import TallyStockRow, parse_godown_summary, parse_stock_collection

_XML_ENTITIES = {'"': "&quot;", "'": "&apos;"}


def escape_xml(value: str) -> str:
    """Escape &, <, >, and both quote characters."""
    return escape(value, _XML_ENTITIES)


def tally_date(value: date) -> str:
    """Tally's YYYYMMDD date literal."""
    return value.strftime("%Y%m%d")


@dataclass(frozen=True)
class StockRequestOptions:
    company: str
    godown: str | None = None
    as_of: date | None = None


def _static_variables(options: StockRequestOptions, extra: str = "") -> str:
    lines = [
        "<STATICVARIABLES>",
        f"<SVCURRENTCOMPANY>{escape_xml(options.company)}</SVCURRENTCOMPANY>",
        "<SVEXPORTFORMAT>$$SysName:XML</SVEXPORTFORMAT>",
    ]
    if options.as_of is not None:
        lines.append(f"<SVTODATE>{tally_date(options.as_of)}</SVTODATE>")
    if extra:
        lines.append(extra)
    lines.append("</STATICVARIABLES>")
    return "\n".join(lines)


def build_stock_collection_request(options: StockRequestOptions) -> str:
    """All stock items with parent group, base unit and closing balance."""
    return f"""<ENVELOPE>
<HEADER>
<VERSION>1</VERSION>
<TALLYREQUEST>Export</TALLYREQUEST>
<TYPE>Collection</TYPE>
<ID>StockItems</ID>
</HEADER>
<BODY>
<DESC>
{_static_variables(options)}
<TDL>
<TDLMESSAGE>
<COLLECTION NAME="StockItems" ISMODIFY="No" ISINITIALIZE="Yes">
<TYPE>Stock Item</TYPE>
<NATIVEMETHOD>Name</NATIVEMETHOD>
<NATIVEMETHOD>Parent</NATIVEMETHOD>
<NATIVEMETHOD>BaseUnits</NATIVEMETHOD>
<NATIVEMETHOD>ClosingBalance</NATIVEMETHOD>
</COLLECTION>
</TDLMESSAGE>
</TDL>
</DESC>
</BODY>
</ENVELOPE>"""


def build_godown_summary_request(options: StockRequestOptions) -> str:
    """Godown Summary report for one godown (all godowns when none is given)."""
    godown = ""
    if options.godown:
        godown = f"<GODOWNNAME>{escape_xml(options.godown)}</GODOWNNAME>"
    return f"""<ENVELOPE>
<HEADER>
<TALLYREQUEST>Export Data</TALLYREQUEST>
</HEADER>
<BODY>
<EXPORTDATA>
<REQUESTDESC>
<REPORTNAME>Godown Summary</REPORTNAME>
{_static_variables(options, godown)}
</REQUESTDESC>
</EXPORTDATA>
</BODY>
</ENVELOPE>"""


def build_connection_test_request(company: str) -> str:
    """Smallest useful request: the company list."""
    return f"""<ENVELOPE>
<HEADER>
<VERSION>1</VERSION>
<TALLYREQUEST>Export</TALLYREQUEST>
<TYPE>Collection</TYPE>
<ID>ConnectionTest</ID>
</HEADER>
<BODY>
<DESC>
<STATICVARIABLES>
<SVCURRENTCOMPANY>{escape_xml(company)}</SVCURRENTCOMPANY>
<SVEXPORTFORMAT>$$SysName:XML</SVEXPORTFORMAT>
</STATICVARIABLES>
<TDL>
<TDLMESSAGE>
<COLLECTION NAME="ConnectionTest" ISMODIFY="No" ISINITIALIZE="Yes">
<TYPE>Company</TYPE>
<NATIVEMETHOD>Name</NATIVEMETHOD>
</COLLECTION>
</TDLMESSAGE>
</TDL>
</DESC>
</BODY>
</ENVELOPE>"""


@dataclass(frozen=True)
class RequestVariant:
    """One way of asking Tally for stock, paired with its response parser."""

    name: str
    build: Callable[[StockRequestOptions], str]
    parse: Callable[[str], list[TallyStockRow]]


DEFAULT_VARIANTS: list[RequestVariant] = [
    RequestVariant(
        name="Stock Collection",
        build=build_stock_collection_request,
        parse=parse_stock_collection,
    ),
    RequestVariant(
        name="Godown Summary",
        build=build_godown_summary_request,
        parse=parse_godown_summary,
    ),
]
