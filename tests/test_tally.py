"""Tests for the Tally XML API: requests, parsing, normalization, client, refresh."""

from datetime import date

import httpx
import pytest

from stockviewer.domain import Availability
from stockviewer.services.refresh import preview_tally_data, refresh_from_tally
from stockviewer.services.tally_client import TallyClient
from stockviewer.services.tally_normalizer import clean_brand, clean_unit, count_by_brand, normalize_rows
from stockviewer.services.tally_parser import (
    TallyStockRow,
    detect_error_response,
    parse_closing_balance,
    parse_godown_summary,
    parse_stock_collection,
)
from stockviewer.services.tally_requests import (
    StockRequestOptions,
    build_godown_summary_request,
    build_stock_collection_request,
    escape_xml,
)
from stockviewer.stores.sqlite import SqliteStockProvider

COLLECTION_XML = """<?xml version="1.0" encoding="utf-8"?>
<ENVELOPE><BODY><DATA><COLLECTION>
  <STOCKITEM NAME="Pure Drive 2023" RESERVEDNAME="">
    <PARENT TYPE="String">Babolat</PARENT>
    <BASEUNITS TYPE="String">nos</BASEUNITS>
    <CLOSINGBALANCE TYPE="Quantity"> 3 nos</CLOSINGBALANCE>
  </STOCKITEM>
  <STOCKITEM NAME="Court Tape Roll">
    <PARENT TYPE="String">Primary</PARENT>
    <CLOSINGBALANCE TYPE="Quantity"></CLOSINGBALANCE>
  </STOCKITEM>
  <STOCKITEM NAME="Astrox 88D">
    <PARENT TYPE="String">Yonex</PARENT>
    <CLOSINGBALANCE TYPE="Quantity">-2 pcs</CLOSINGBALANCE>
  </STOCKITEM>
  <STOCKITEM NAME="Broken Row 7">
    <PARENT TYPE="String">Yonex</PARENT>
    <CLOSINGBALANCE TYPE="Quantity">n/a</CLOSINGBALANCE>
  </STOCKITEM>
</COLLECTION></DATA></BODY></ENVELOPE>"""

GODOWN_XML = (
    "<ENVELOPE>"
    "<DSPACCNAME><DSPDISPNAME>Babolat</DSPDISPNAME></DSPACCNAME>"
    "<DSPSTKINFO><DSPSTKCL><DSPCLQTY>4 nos</DSPCLQTY></DSPSTKCL></DSPSTKINFO>"
    "<DSPACCNAME><DSPDISPNAME>Pure Strike 2024</DSPDISPNAME></DSPACCNAME>"
    "<DSPSTKINFO><DSPSTKCL><DSPCLQTY>4 nos</DSPCLQTY></DSPSTKCL></DSPSTKINFO>"
    "</ENVELOPE>"
)

ERROR_XML = "<ENVELOPE><BODY><DATA><LINEERROR>Could not find Company 'Nope'</LINEERROR></DATA></BODY></ENVELOPE>"


# ============================================================
# Requests
# ============================================================


def test_escape_xml():
    assert escape_xml("A & B <\"x\"> 'y'") == "A &amp; B &lt;&quot;x&quot;&gt; &apos;y&apos;"


def test_collection_request_carries_company_and_date():
    xml = build_stock_collection_request(StockRequestOptions(company="Ralhum & Co", as_of=date(2024, 3, 31)))

    assert "<SVCURRENTCOMPANY>Ralhum &amp; Co</SVCURRENTCOMPANY>" in xml
    assert "<SVTODATE>20240331</SVTODATE>" in xml
    assert "<TYPE>Stock Item</TYPE>" in xml


def test_godown_request_names_the_godown():
    xml = build_godown_summary_request(StockRequestOptions(company="C", godown="Feeder <Stores>"))

    assert "<REPORTNAME>Godown Summary</REPORTNAME>" in xml
    assert "<GODOWNNAME>Feeder &lt;Stores&gt;</GODOWNNAME>" in xml
    assert "SVTODATE" not in xml


# ============================================================
# Parsing
# ============================================================


@pytest.mark.parametrize(
    "text,expected",
    [
        (" 3 nos", (3.0, "nos")),
        ("-2 pcs", (-2.0, "pcs")),
        ("1,250 nos", (1250.0, "nos")),
        ("", (0.0, None)),
        (None, (0.0, None)),
        ("n/a", (None, None)),
    ],
)
def test_parse_closing_balance(text, expected):
    assert parse_closing_balance(text) == expected


def test_parse_stock_collection():
    rows = parse_stock_collection(COLLECTION_XML)

    assert [(r.name, r.parent, r.closing_qty, r.unit) for r in rows] == [
        ("Pure Drive 2023", "Babolat", 3.0, "nos"),
        ("Court Tape Roll", "Primary", 0.0, None),
        ("Astrox 88D", "Yonex", -2.0, "pcs"),
        ("Broken Row 7", "Yonex", None, None),
    ]


def test_parse_stock_collection_tolerates_garbage():
    assert parse_stock_collection("") == []
    assert parse_stock_collection("<ENVELOPE></ENVELOPE>") == []


def test_parse_godown_summary_reuses_markup_walk():
    rows = parse_godown_summary(GODOWN_XML)
    assert [(r.name, r.parent, r.closing_qty) for r in rows] == [("Pure Strike 2024", "Babolat", 4.0)]
    assert parse_godown_summary("<RESPONSE/>") == []


def test_detect_error_response():
    assert detect_error_response("") == "Empty response from Tally"
    assert detect_error_response(ERROR_XML) == "Could not find Company 'Nope'"
    assert detect_error_response("<ENVELOPE><STATUS>Error: busy</STATUS></ENVELOPE>") == "Error: busy"
    assert detect_error_response("<ENVELOPE><STATUS>1</STATUS></ENVELOPE>") is None
    assert detect_error_response(COLLECTION_XML) is None


# ============================================================
# Normalization
# ============================================================


def test_clean_helpers():
    assert clean_brand(" Primary ") is None
    assert clean_brand("Babolat") == "Babolat"
    assert clean_unit("nos") == "nos"
    assert clean_unit("2 x") is None
    assert clean_unit(None) is None


def test_normalize_rows_counts_invalid_rows():
    rows = parse_stock_collection(COLLECTION_XML) + [TallyStockRow(name="Grand Total", closing_qty=5)]
    result = normalize_rows(rows)

    assert [(i.name, i.brand, i.qty) for i in result.items] == [
        ("Pure Drive 2023", "Babolat", 3.0),
        ("Court Tape Roll", None, 0.0),
        ("Astrox 88D", "Yonex", -2.0),
    ]
    assert result.invalid_count == 2
    assert any("missing quantity" in e for e in result.errors)
    assert any("total row" in e for e in result.errors)
    assert count_by_brand(result.items) == {"Babolat": 1, "Unknown": 1, "Yonex": 1}


def test_blank_row_name_is_rejected():
    with pytest.raises(ValueError):
        TallyStockRow(name="   ")


# ============================================================
# Client
# ============================================================


def _client(handler) -> TallyClient:
    return TallyClient(
        base_url="http://tally.test:9000",
        timeout=5,
        transport=httpx.MockTransport(handler),
    )


async def test_fetch_uses_collection_first():
    requests: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request.content.decode())
        return httpx.Response(200, text=COLLECTION_XML)

    client = _client(handler)
    result = await client.fetch_stock("Ralhum")
    await client.close()

    assert result.success
    assert result.variant == "Stock Collection"
    assert result.count == 4
    assert len(requests) == 1


async def test_fetch_falls_back_to_godown_summary():
    def handler(request: httpx.Request) -> httpx.Response:
        if b"Godown Summary" in request.content:
            return httpx.Response(200, text=GODOWN_XML)
        return httpx.Response(200, text=ERROR_XML)

    client = _client(handler)
    result = await client.fetch_stock("Ralhum", godown="Feeder Stores")
    await client.close()

    assert result.success
    assert result.variant == "Godown Summary"
    assert [r.name for r in result.items] == ["Pure Strike 2024"]


async def test_fetch_fails_after_every_variant():
    client = _client(lambda request: httpx.Response(500, text="boom"))
    result = await client.fetch_stock("Ralhum")
    await client.close()

    assert not result.success
    assert "500" in result.error
    assert "Stock Collection" in result.error and "Godown Summary" in result.error


async def test_fetch_reports_timeouts():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    client = _client(handler)
    result = await client.fetch_stock("Ralhum")
    await client.close()

    assert not result.success
    assert "timed out" in result.error


async def test_connection_check():
    ok = _client(lambda request: httpx.Response(200, text="<ENVELOPE><COMPANY NAME='Ralhum'/></ENVELOPE>"))
    down = _client(lambda request: httpx.Response(503))
    refused = _client(lambda request: httpx.Response(200, text=ERROR_XML))

    assert await ok.test_connection("Ralhum")
    assert not await down.test_connection("Ralhum")
    assert not await refused.test_connection("Ralhum")

    for client in (ok, down, refused):
        await client.close()


# ============================================================
# Refresh
# ============================================================


async def test_refresh_persists_valid_rows(provider: SqliteStockProvider):
    client = _client(lambda request: httpx.Response(200, text=COLLECTION_XML))

    result = await refresh_from_tally(provider, client=client, company="Ralhum", location="Feeder Stores")
    await client.close()

    assert result.success, result.error
    assert result.fetched_count == 4
    assert result.parsed_count == 3
    assert result.upserted_count == 3
    assert result.invalid_count == 1
    assert result.duration_ms >= 0

    products = {p.name: p for p in await provider.list_products()}
    assert products["Court Tape Roll"].brand is None
    assert products["Court Tape Roll"].availability is Availability.OUT_OF_STOCK
    assert products["Astrox 88D"].availability is Availability.NEGATIVE
    assert products["Astrox 88D"].unit == "pcs"


async def test_refresh_failure_is_reported_not_raised(provider: SqliteStockProvider):
    client = _client(lambda request: httpx.Response(200, text=ERROR_XML))

    result = await refresh_from_tally(provider, client=client, company="Nope")
    await client.close()

    assert not result.success
    assert "Could not find Company" in result.error
    assert (await provider.get_summary()).total == 0


async def test_refresh_with_only_invalid_rows_fails(provider: SqliteStockProvider):
    xml = "<ENVELOPE><STOCKITEM NAME='Ball 1'><CLOSINGBALANCE>lots</CLOSINGBALANCE></STOCKITEM></ENVELOPE>"
    client = _client(lambda request: httpx.Response(200, text=xml))

    result = await refresh_from_tally(provider, client=client, company="Ralhum")
    await client.close()

    assert not result.success
    assert result.fetched_count == 1
    assert "No valid items" in result.error


async def test_preview_does_not_persist(provider: SqliteStockProvider):
    client = _client(lambda request: httpx.Response(200, text=COLLECTION_XML))

    preview = await preview_tally_data(client=client, company="Ralhum")
    await client.close()

    assert preview.success
    assert preview.total_raw == 4
    assert preview.total_normalized == 3
    assert preview.invalid_count == 1
    assert preview.by_brand == {"Babolat": 1, "Unknown": 1, "Yonex": 1}
    assert (await provider.get_summary()).total == 0
