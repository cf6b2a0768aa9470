"""Dealer price edits.

The provider does the read-modify-write and change logging; successful writes
are then copied to the cache store so a later seed keeps the price.
"""

import logging

from stockviewer.stores.base import PriceResult, StockProvider
from stockviewer.stores.redis import RedisCatalogCache

logger = logging.getLogger("uvicorn.error")


async def set_price(
    provider: StockProvider,
    product_id: str,
    dealer_price: float | None,
    cache: RedisCatalogCache | None = None,
) -> PriceResult:
    result = await provider.set_dealer_price(product_id, dealer_price)
    if not result.ok or cache is None:
        return result

    try:
        await cache.set_price(product_id, dealer_price)
    except Exception as e:
        # Primary write already succeeded; the cache catches up on the next edit.
        logger.warning(f"[prices] Cache write failed for {product_id}: {e}")
    return result
