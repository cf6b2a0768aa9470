"""Redis catalog cache.

A non-authoritative mirror of the catalog, used to seed an empty primary store
(for example after moving from the SQLite file to PostgreSQL).

Layout:
- catalog:products  hash  product id -> JSON product snapshot
- catalog:prices    hash  product id -> JSON {"dealer_price": float | null}
"""

from dataclasses import asdict, dataclass
from datetime import datetime
import json
import logging

import redis.asyncio as redis

from stockviewer.domain import Availability, parse_availability

# Key names
KEY_PRODUCTS = "catalog:products"
KEY_PRICES = "catalog:prices"

logger = logging.getLogger("uvicorn.error")


@dataclass
class CachedProduct:
    """Product snapshot as stored in the cache."""

    id: str
    name: str
    name_key: str
    brand: str | None = None
    stock_qty: float | None = None
    unit: str | None = None
    availability: str = Availability.UNKNOWN.value
    last_seen_at: str | None = None

    def to_json(self) -> str:
        return json.dumps(asdict(self))

    @classmethod
    def from_json(cls, raw: str | bytes) -> "CachedProduct":
        data = json.loads(raw)
        return cls(
            id=data["id"],
            name=data["name"],
            name_key=data["name_key"],
            brand=data.get("brand"),
            stock_qty=data.get("stock_qty"),
            unit=data.get("unit"),
            availability=parse_availability(data.get("availability")).value,
            last_seen_at=data.get("last_seen_at"),
        )

    @property
    def last_seen_datetime(self) -> datetime | None:
        if not self.last_seen_at:
            return None
        try:
            return datetime.fromisoformat(self.last_seen_at)
        except ValueError:
            return None


class RedisCatalogCache:
    """Product and price mirror on top of a redis.asyncio client."""

    def __init__(self, client: redis.Redis):
        self._redis = client

    @classmethod
    def from_url(cls, url: str) -> "RedisCatalogCache":
        client = redis.from_url(
            url,
            encoding="utf-8",
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
        )
        return cls(client)

    async def ping(self) -> bool:
        return bool(await self._redis.ping())

    async def close(self) -> None:
        await self._redis.aclose()

    # ============================================================
    # Products
    # ============================================================

    async def count_products(self) -> int:
        return int(await self._redis.hlen(KEY_PRODUCTS))

    async def upsert_products(self, products: list[CachedProduct]) -> int:
        """Write snapshots; a missing brand/unit keeps the cached one."""
        if not products:
            return 0

        ids = [p.id for p in products]
        previous = await self._redis.hmget(KEY_PRODUCTS, ids)
        mapping: dict[str, str] = {}
        for product, raw in zip(products, previous):
            if raw:
                old = CachedProduct.from_json(raw)
                if product.brand is None:
                    product.brand = old.brand
                if product.unit is None:
                    product.unit = old.unit
            mapping[product.id] = product.to_json()

        await self._redis.hset(KEY_PRODUCTS, mapping=mapping)
        return len(mapping)

    async def list_products(self, limit: int = 20000) -> list[CachedProduct]:
        raw = await self._redis.hgetall(KEY_PRODUCTS)
        products: list[CachedProduct] = []
        for product_id, value in raw.items():
            try:
                products.append(CachedProduct.from_json(value))
            except (ValueError, KeyError, TypeError) as e:
                logger.warning(f"[cache] Skipping unreadable product {product_id!r}: {e}")
        products.sort(key=lambda p: p.name_key)
        return products[:limit]

    # ============================================================
    # Prices
    # ============================================================

    async def set_price(self, product_id: str, dealer_price: float | None) -> None:
        await self._redis.hset(KEY_PRICES, mapping={product_id: json.dumps({"dealer_price": dealer_price})})

    async def list_prices(self) -> dict[str, float | None]:
        raw = await self._redis.hgetall(KEY_PRICES)
        prices: dict[str, float | None] = {}
        for product_id, value in raw.items():
            try:
                prices[product_id] = json.loads(value).get("dealer_price")
            except (ValueError, AttributeError) as e:
                logger.warning(f"[cache] Skipping unreadable price {product_id!r}: {e}")
        return prices
