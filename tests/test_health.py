"""Tests for the HTTP API."""

from datetime import datetime, timezone

import pytest
from httpx import ASGITransport, AsyncClient

from stockviewer.main import create_app
from stockviewer.services.refresh import RefreshResult
from stockviewer.services.scheduler import RefreshScheduler


async def _fake_refresh() -> RefreshResult:
    now = datetime.now(timezone.utc)
    return RefreshResult(
        success=True,
        company="Ralhum",
        location="Feeder Stores",
        started_at=now,
        completed_at=now,
        fetched_count=2,
        parsed_count=2,
        upserted_count=2,
    )


@pytest.fixture
async def client(provider, cache):
    """Create test client with lifespan-owned state filled in by hand."""
    app = create_app()
    app.state.provider = provider
    app.state.cache = cache
    app.state.scheduler = RefreshScheduler(_fake_refresh)
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


async def _upload(client: AsyncClient, content: bytes, filename: str = "GdwnSum.xlsx"):
    return await client.post(
        "/v1/import/upload",
        files={"file": (filename, content, "application/octet-stream")},
    )


@pytest.mark.asyncio
async def test_health_check(client: AsyncClient):
    """Test health endpoint returns ok."""
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"ok": True}


@pytest.mark.asyncio
async def test_upload_then_browse(client: AsyncClient, header_export_xlsx: bytes):
    response = await _upload(client, header_export_xlsx)
    assert response.status_code == 200
    data = response.json()
    assert data["parsedCount"] == 3
    assert data["upsertedCount"] == 3
    assert data["source"] == "upload"

    summary = (await client.get("/v1/summary")).json()
    assert summary["total"] == 3
    assert summary["inStock"] == 1
    assert summary["outOfStock"] == 1
    assert summary["negative"] == 1
    assert summary["lastImportAt"] is not None

    assert (await client.get("/v1/brands")).json() == {"brands": ["Babolat", "Yonex"]}

    products = (await client.get("/v1/products", params={"brand": "Babolat", "sort": "qty", "dir": "desc"})).json()
    assert products["count"] == 2
    assert [p["stockQty"] for p in products["products"]] == [5, 0]
    assert products["products"][0]["availability"] == "IN_STOCK"


@pytest.mark.asyncio
async def test_unrecognized_upload_is_a_structured_400(client: AsyncClient, xlsx_builder):
    response = await _upload(client, xlsx_builder([["hello", "world"]]))

    assert response.status_code == 400
    error = response.json()["error"]
    assert error["code"] == "INGESTION_ERROR"
    assert "No stock table found" in error["message"]

    response = await _upload(client, b"a,b", filename="stock.csv")
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_price_edit_and_change_feed(client: AsyncClient, header_export_xlsx: bytes):
    await _upload(client, header_export_xlsx)
    [product] = (await client.get("/v1/products", params={"search": "astrox"})).json()["products"]

    response = await client.post(f"/v1/products/{product['id']}/price", json={"dealerPrice": 18500})
    assert response.status_code == 200
    assert response.json()["ok"] is True

    reloaded = (await client.get("/v1/products", params={"search": "astrox"})).json()["products"][0]
    assert reloaded["dealerPrice"] == 18500

    history = (await client.get(f"/v1/products/{product['id']}/changes")).json()["changes"]
    assert {c["changeType"] for c in history} == {"NEW_PRODUCT", "PRICE_CHANGE"}

    prices = (await client.get("/v1/changes", params={"types": "price_change"})).json()["changes"]
    assert len(prices) == 1
    assert prices[0]["toPrice"] == 18500
    assert prices[0]["productName"] == "Astrox 88D Racket"


@pytest.mark.asyncio
async def test_price_edit_errors_use_the_error_envelope(client: AsyncClient, header_export_xlsx: bytes):
    response = await client.post("/v1/products/missing/price", json={"dealerPrice": 1})
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "NOT_FOUND"
    assert "missing" in response.json()["error"]["message"]

    await _upload(client, header_export_xlsx)
    [product] = (await client.get("/v1/products", params={"search": "astrox"})).json()["products"]
    response = await client.post(
        f"/v1/products/{product['id']}/price",
        content=b'{"dealerPrice": Infinity}',
        headers={"content-type": "application/json"},
    )
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "PRICE_UPDATE_FAILED"
    assert "finite" in response.json()["error"]["message"]

    response = await client.get("/v1/changes", params={"types": "BOGUS"})
    assert response.status_code == 400
    assert response.json()["error"] == {
        "code": "BAD_REQUEST",
        "message": "Unknown change type: BOGUS",
        "detail": None,
    }

    response = await client.get("/v1/changes", params={"limit": 0})
    assert response.status_code == 422
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"


@pytest.mark.asyncio
async def test_tally_refresh_and_status(client: AsyncClient):
    status = (await client.get("/v1/tally/status")).json()
    assert status["schedulerRunning"] is False
    assert status["lastResult"] is None

    result = (await client.post("/v1/tally/refresh")).json()
    assert result["success"] is True
    assert result["upsertedCount"] == 2

    status = (await client.get("/v1/tally/status")).json()
    assert status["lastResult"]["company"] == "Ralhum"
    assert status["lastError"] is None


@pytest.mark.asyncio
async def test_default_export_info(client: AsyncClient, monkeypatch: pytest.MonkeyPatch, tmp_path):
    from stockviewer.settings import get_settings

    monkeypatch.setattr(get_settings(), "default_export_path", str(tmp_path / "GdwnSum.xlsx"))

    info = (await client.get("/v1/import/default-info")).json()
    assert info["exists"] is False

    response = await client.post("/v1/import/auto")
    assert response.status_code == 404
