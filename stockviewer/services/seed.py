"""Seed an empty primary store from the cache store."""

from dataclasses import dataclass
from datetime import datetime, timezone
import logging
import math

from stockviewer.parsers.common import RawItem, name_key_from_name
from stockviewer.services.normalizer import canonicalize
from stockviewer.stores.base import PRODUCT_LIMIT_MAX, StockProvider
from stockviewer.stores.redis import RedisCatalogCache

logger = logging.getLogger("uvicorn.error")


@dataclass
class SeedResult:
    seeded: bool
    products_copied: int = 0
    prices_copied: int = 0


async def seed_from_cache_if_empty(
    provider: StockProvider,
    cache: RedisCatalogCache | None,
) -> SeedResult:
    """Replay cached products and prices into an empty provider.

    Products go through the normal upsert path (so each one is logged as
    NEW_PRODUCT) and keep their cached ids, which lets cached prices be
    re-applied by id. Does nothing when the provider already has rows or the
    cache is missing or empty.
    """
    if cache is None:
        return SeedResult(seeded=False)

    summary = await provider.get_summary()
    if summary.total > 0:
        return SeedResult(seeded=False)

    cached = await cache.list_products(limit=PRODUCT_LIMIT_MAX)
    if not cached:
        return SeedResult(seeded=False)

    logger.info(f"[seed] Primary store is empty; replaying {len(cached)} cached products")

    now = datetime.now(timezone.utc)
    raw_items = [RawItem(name=p.name, brand=p.brand, qty=p.stock_qty, unit=p.unit) for p in cached]
    preferred_ids = {name_key_from_name(p.name): p.id for p in cached}
    last_seen = {name_key_from_name(p.name): p.last_seen_datetime for p in cached}

    items = canonicalize(raw_items, now, product_ids=preferred_ids)
    for item in items:
        item.last_seen_at = last_seen.get(item.name_key) or now

    upserted = await provider.upsert_stock(items)
    seeded_ids = set(upserted.product_ids.values())

    prices_copied = 0
    for product_id, dealer_price in (await cache.list_prices()).items():
        if product_id not in seeded_ids:
            continue
        if dealer_price is None or not math.isfinite(dealer_price):
            continue
        result = await provider.set_dealer_price(product_id, dealer_price)
        if result.ok:
            prices_copied += 1
        else:
            logger.warning(f"[seed] Could not copy price for {product_id}: {result.error}")

    logger.info(f"[seed] Copied {upserted.upserted} products and {prices_copied} prices")
    return SeedResult(seeded=True, products_copied=upserted.upserted, prices_copied=prices_copied)
