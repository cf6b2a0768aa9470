"""Schemas for catalog browsing endpoints (/v1/summary, /v1/products, /v1/changes)."""

from datetime import datetime

from pydantic import BaseModel, Field

from stockviewer.stores.base import ChangeRow, ProductRow, Summary


class SummaryResponse(BaseModel):
    """Counts per availability plus the latest import time."""

    total: int
    in_stock: int = Field(alias="inStock")
    out_of_stock: int = Field(alias="outOfStock")
    negative: int
    unknown: int
    last_import_at: datetime | None = Field(alias="lastImportAt", default=None)

    model_config = {"populate_by_name": True}

    @classmethod
    def from_summary(cls, summary: Summary) -> "SummaryResponse":
        return cls(
            total=summary.total,
            in_stock=summary.in_stock,
            out_of_stock=summary.out_of_stock,
            negative=summary.negative,
            unknown=summary.unknown,
            last_import_at=summary.last_import_at,
        )


class BrandsResponse(BaseModel):
    brands: list[str]


class ProductOut(BaseModel):
    """A catalog row with its dealer price."""

    id: str
    name: str
    name_key: str = Field(alias="nameKey")
    brand: str | None = None
    stock_qty: float | None = Field(alias="stockQty", default=None)
    unit: str | None = None
    availability: str
    last_seen_at: datetime | None = Field(alias="lastSeenAt", default=None)
    updated_at: datetime | None = Field(alias="updatedAt", default=None)
    dealer_price: float | None = Field(alias="dealerPrice", default=None)

    model_config = {"populate_by_name": True}

    @classmethod
    def from_row(cls, row: ProductRow) -> "ProductOut":
        return cls(
            id=row.id,
            name=row.name,
            name_key=row.name_key,
            brand=row.brand,
            stock_qty=row.stock_qty,
            unit=row.unit,
            availability=row.availability.value,
            last_seen_at=row.last_seen_at,
            updated_at=row.updated_at,
            dealer_price=row.dealer_price,
        )


class ProductsResponse(BaseModel):
    products: list[ProductOut]
    count: int


class PriceUpdateRequest(BaseModel):
    """Body of POST /v1/products/{id}/price. Null clears the price."""

    dealer_price: float | None = Field(alias="dealerPrice", default=None)

    model_config = {"populate_by_name": True}


class PriceUpdateResponse(BaseModel):
    ok: bool
    error: str | None = None


class ChangeOut(BaseModel):
    """One change-log entry."""

    id: str
    product_id: str = Field(alias="productId")
    product_name: str = Field(alias="productName")
    product_brand: str | None = Field(alias="productBrand", default=None)
    change_type: str = Field(alias="changeType")
    from_qty: float | None = Field(alias="fromQty", default=None)
    to_qty: float | None = Field(alias="toQty", default=None)
    from_availability: str | None = Field(alias="fromAvailability", default=None)
    to_availability: str | None = Field(alias="toAvailability", default=None)
    from_price: float | None = Field(alias="fromPrice", default=None)
    to_price: float | None = Field(alias="toPrice", default=None)
    created_at: datetime = Field(alias="createdAt")

    model_config = {"populate_by_name": True}

    @classmethod
    def from_row(cls, row: ChangeRow) -> "ChangeOut":
        return cls(
            id=row.id,
            product_id=row.product_id,
            product_name=row.product_name,
            product_brand=row.product_brand,
            change_type=row.change_type.value,
            from_qty=row.from_qty,
            to_qty=row.to_qty,
            from_availability=row.from_availability.value if row.from_availability else None,
            to_availability=row.to_availability.value if row.to_availability else None,
            from_price=row.from_price,
            to_price=row.to_price,
            created_at=row.created_at,
        )


class ChangesResponse(BaseModel):
    changes: list[ChangeOut]
