"""Catalog endpoints.

GET  /v1/summary                  - counts per availability
GET  /v1/brands                   - distinct brands
GET  /v1/products                 - filtered, sorted product list
POST /v1/products/{id}/price      - set or clear the dealer price
GET  /v1/products/{id}/changes    - change history of one product
GET  /v1/changes                  - recent changes across the catalog

Routers are thin: filtering and change logging live in the provider.
"""

from datetime import datetime
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse

from stockviewer.domain import Availability, ChangeType
from stockviewer.schemas import (
    BrandsResponse,
    ChangeOut,
    ChangesResponse,
    PriceUpdateRequest,
    PriceUpdateResponse,
    ProductOut,
    ProductsResponse,
    SummaryResponse,
)
from stockviewer.schemas.common import PRICE_UPDATE_FAILED, ErrorResponse
from stockviewer.routes.deps import get_cache, get_provider
from stockviewer.services.prices import set_price
from stockviewer.stores.base import ListChangesParams, ListProductsParams, StockProvider
from stockviewer.stores.redis import RedisCatalogCache

router = APIRouter()


def _parse_change_types(types: str | None) -> list[ChangeType] | None:
    if not types:
        return None
    parsed: list[ChangeType] = []
    for part in types.split(","):
        part = part.strip().upper()
        if not part:
            continue
        try:
            parsed.append(ChangeType(part))
        except ValueError:
            raise HTTPException(status_code=400, detail=f"Unknown change type: {part}") from None
    return parsed or None


@router.get("/summary", response_model=SummaryResponse)
async def get_summary(provider: StockProvider = Depends(get_provider)) -> SummaryResponse:
    return SummaryResponse.from_summary(await provider.get_summary())


@router.get("/brands", response_model=BrandsResponse)
async def get_brands(provider: StockProvider = Depends(get_provider)) -> BrandsResponse:
    return BrandsResponse(brands=await provider.list_brands())


@router.get("/products", response_model=ProductsResponse)
async def list_products(
    search: str | None = Query(default=None, description="Case-insensitive name substring"),
    brand: str | None = Query(default=None, description='Brand name, or "__unknown__" for unbranded'),
    availability: Availability | None = Query(default=None),
    sort: Literal["name", "qty", "availability"] = Query(default="name"),
    direction: Literal["asc", "desc"] = Query(default="asc", alias="dir"),
    limit: int | None = Query(default=None, ge=1, description="Capped at 20000"),
    provider: StockProvider = Depends(get_provider),
) -> ProductsResponse:
    rows = await provider.list_products(
        ListProductsParams(
            search=search,
            brand=brand,
            availability=availability,
            sort=sort,
            direction=direction,
            limit=limit,
        )
    )
    products = [ProductOut.from_row(r) for r in rows]
    return ProductsResponse(products=products, count=len(products))


@router.post("/products/{product_id}/price", response_model=PriceUpdateResponse)
async def update_price(
    product_id: str,
    body: PriceUpdateRequest,
    provider: StockProvider = Depends(get_provider),
    cache: RedisCatalogCache | None = Depends(get_cache),
):
    if await provider.get_product(product_id) is None:
        raise HTTPException(status_code=404, detail=f"Product not found: {product_id}")

    result = await set_price(provider, product_id, body.dealer_price, cache)
    if not result.ok:
        error = ErrorResponse.build(PRICE_UPDATE_FAILED, result.error or "Price update failed")
        return JSONResponse(status_code=400, content=error.model_dump())
    return PriceUpdateResponse(ok=True)


@router.get("/products/{product_id}/changes", response_model=ChangesResponse)
async def get_product_changes(
    product_id: str,
    limit: int | None = Query(default=None, ge=1, description="Capped at 300"),
    provider: StockProvider = Depends(get_provider),
) -> ChangesResponse:
    rows = await provider.list_changes(ListChangesParams(product_id=product_id, limit=limit))
    return ChangesResponse(changes=[ChangeOut.from_row(r) for r in rows])


@router.get("/changes", response_model=ChangesResponse)
async def list_changes(
    since: datetime | None = Query(default=None),
    types: str | None = Query(default=None, description="Comma-separated change types"),
    limit: int | None = Query(default=None, ge=1, description="Capped at 300"),
    provider: StockProvider = Depends(get_provider),
) -> ChangesResponse:
    rows = await provider.list_changes(
        ListChangesParams(since=since, change_types=_parse_change_types(types), limit=limit)
    )
    return ChangesResponse(changes=[ChangeOut.from_row(r) for r in rows])
