"""Backend selection from configuration."""

import logging

from stockviewer.settings import Settings, get_settings, is_postgres_url, normalize_database_url
from stockviewer.stores.base import StockProvider
from stockviewer.stores.redis import RedisCatalogCache

logger = logging.getLogger("uvicorn.error")


def create_provider(database_url: str | None = None, echo: bool = False) -> StockProvider:
    """Pick the provider by URL scheme (PostgreSQL or SQLite)."""
    url = database_url or get_settings().database_url
    if is_postgres_url(url):
        from stockviewer.stores.postgres import PostgresStockProvider

        logger.info("[db] Using PostgreSQL provider")
        return PostgresStockProvider(url, echo=echo)

    if normalize_database_url(url).startswith("sqlite"):
        from stockviewer.stores.sqlite import SqliteStockProvider

        logger.info(f"[db] Using SQLite provider ({url})")
        return SqliteStockProvider(url, echo=echo)

    raise ValueError(f"Unsupported DATABASE_URL scheme: {url.split(':', 1)[0]!r}")


def create_cache(settings: Settings | None = None) -> RedisCatalogCache | None:
    """Cache store from CACHE_URL / REDIS_URL, or None when unset."""
    settings = settings or get_settings()
    if not settings.cache_url:
        return None
    return RedisCatalogCache.from_url(settings.cache_url)
