"""Storage contract shared by every catalog backend.

Call sites depend only on `StockProvider`; the concrete backend (SQLite file or
PostgreSQL server) is chosen once at startup from DATABASE_URL.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Literal

from sqlalchemy.orm import DeclarativeBase

from stockviewer.domain import Availability, ChangeType

if TYPE_CHECKING:
    from stockviewer.services.normalizer import CanonicalItem


class Base(DeclarativeBase):
    """Base class for SQLAlchemy models."""

    pass


PRODUCT_LIMIT_DEFAULT = 5000
PRODUCT_LIMIT_MAX = 20000
CHANGE_LIMIT_DEFAULT = 100
CHANGE_LIMIT_MAX = 300

ProductSort = Literal["name", "qty", "availability"]
SortDirection = Literal["asc", "desc"]


@dataclass
class ProductRow:
    """A catalog row joined with its dealer price."""

    id: str
    name: str
    name_key: str
    brand: str | None
    stock_qty: float | None
    unit: str | None
    availability: Availability
    last_seen_at: datetime | None
    updated_at: datetime
    dealer_price: float | None = None


@dataclass
class Summary:
    """Counts by availability plus the most recent import timestamp."""

    total: int = 0
    in_stock: int = 0
    out_of_stock: int = 0
    negative: int = 0
    unknown: int = 0
    last_import_at: datetime | None = None


@dataclass
class ListProductsParams:
    search: str | None = None
    brand: str | None = None  # UNBRANDED selects rows without a brand
    availability: Availability | None = None
    sort: ProductSort = "name"
    direction: SortDirection = "asc"
    limit: int | None = None

    def capped_limit(self) -> int:
        limit = self.limit if self.limit is not None else PRODUCT_LIMIT_DEFAULT
        return max(1, min(limit, PRODUCT_LIMIT_MAX))


@dataclass
class ListChangesParams:
    product_id: str | None = None
    since: datetime | None = None
    change_types: list[ChangeType] | None = None
    limit: int | None = None

    def capped_limit(self) -> int:
        limit = self.limit if self.limit is not None else CHANGE_LIMIT_DEFAULT
        return max(1, min(limit, CHANGE_LIMIT_MAX))


@dataclass
class ChangeRow:
    """One entry of the append-only change log."""

    id: str
    product_id: str
    product_name: str
    product_brand: str | None
    change_type: ChangeType
    from_qty: float | None
    to_qty: float | None
    from_availability: Availability | None
    to_availability: Availability | None
    from_price: float | None
    to_price: float | None
    created_at: datetime


@dataclass
class UpsertResult:
    upserted: int = 0
    changes: int = 0
    # name_key -> product id, for every row written in this call
    product_ids: dict[str, str] = field(default_factory=dict)


@dataclass
class PriceResult:
    """Outcome of a price edit. Failures are reported here, never raised."""

    ok: bool
    error: str | None = None

    def to_dict(self) -> dict[str, object]:
        if self.ok:
            return {"ok": True}
        return {"ok": False, "error": self.error}


class StockProvider(ABC):
    """Provider contract implemented by each storage backend."""

    kind: str = "abstract"

    @abstractmethod
    async def ensure_schema(self) -> None:
        """Create tables and indexes if missing. Safe to call repeatedly."""

    @abstractmethod
    async def get_summary(self) -> Summary: ...

    @abstractmethod
    async def list_brands(self) -> list[str]: ...

    @abstractmethod
    async def list_products(self, params: ListProductsParams | None = None) -> list[ProductRow]: ...

    @abstractmethod
    async def get_product(self, product_id: str) -> ProductRow | None: ...

    @abstractmethod
    async def upsert_stock(self, items: list[CanonicalItem]) -> UpsertResult:
        """Insert-or-update by name key, appending change events per chunk."""

    @abstractmethod
    async def set_dealer_price(self, product_id: str, dealer_price: float | None) -> PriceResult: ...

    @abstractmethod
    async def list_changes(self, params: ListChangesParams | None = None) -> list[ChangeRow]: ...

    @abstractmethod
    async def close(self) -> None: ...
