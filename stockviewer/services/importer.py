"""File import service: detect → canonicalize → upsert → mirror to cache.

Flow:
1. Pick a detector by file extension (.xlsx chain or .xml walk)
2. Canonicalize and dedupe by name key
3. Upsert through the configured StockProvider (change events included)
4. Mirror the written products into the cache store, when one is configured

Live Tally refreshes enter at step 2 through `sync_parsed_items`.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
import logging
import os
from pathlib import Path

from stockviewer.parsers import parse_by_extension
from stockviewer.parsers.common import IngestionError, RawItem
from stockviewer.services.normalizer import CanonicalItem, canonicalize
from stockviewer.stores.base import StockProvider
from stockviewer.stores.redis import CachedProduct, RedisCatalogCache

logger = logging.getLogger("uvicorn.error")


@dataclass
class SyncResult:
    """Outcome of pushing canonical items into storage."""

    canonical_count: int
    upserted: int
    changes: int


@dataclass
class ImportResult:
    """Outcome of a file import."""

    source: str
    filename: str
    ext: str
    parsed_count: int
    upserted_count: int
    change_count: int
    path: str | None = None
    file_size: int | None = None
    file_mtime: datetime | None = None


def _cached_snapshot(item: CanonicalItem, product_id: str) -> CachedProduct:
    return CachedProduct(
        id=product_id,
        name=item.name,
        name_key=item.name_key,
        brand=item.brand,
        stock_qty=item.qty,
        unit=item.unit,
        availability=item.availability.value,
        last_seen_at=item.last_seen_at.isoformat(),
    )


async def mirror_to_cache(
    cache: RedisCatalogCache,
    items: list[CanonicalItem],
    product_ids: dict[str, str],
) -> int:
    """Copy upserted products into the cache. Returns the number mirrored."""
    snapshots = [
        _cached_snapshot(item, product_ids[item.name_key])
        for item in items
        if item.name_key in product_ids
    ]
    return await cache.upsert_products(snapshots)


async def sync_parsed_items(
    provider: StockProvider,
    items: list[RawItem],
    cache: RedisCatalogCache | None = None,
    now: datetime | None = None,
) -> SyncResult:
    """Shared downstream path for every source."""
    canonical = canonicalize(items, now or datetime.now(timezone.utc))
    result = await provider.upsert_stock(canonical)

    if cache is not None:
        # The cache is a convenience mirror; storage has already committed.
        try:
            mirrored = await mirror_to_cache(cache, canonical, result.product_ids)
            logger.info(f"[import] Mirrored {mirrored} products to cache")
        except Exception as e:
            logger.warning(f"[import] Cache mirror failed: {e}")

    return SyncResult(
        canonical_count=len(canonical),
        upserted=result.upserted,
        changes=result.changes,
    )


def _no_items_error(source: str) -> IngestionError:
    return IngestionError(
        f"No items detected in {source}. Ensure the export is a Tally Godown Summary "
        "and includes a Closing Qty column/field."
    )


async def import_from_bytes(
    provider: StockProvider,
    filename: str,
    content: bytes,
    cache: RedisCatalogCache | None = None,
    source: str = "upload",
) -> ImportResult:
    """Import an uploaded export.

    Raises:
        IngestionError: Unsupported extension, unreadable file or no items.
    """
    ext = Path(filename).suffix.lower()
    parsed = parse_by_extension(ext, content, filename)
    if not parsed:
        raise _no_items_error(filename)

    synced = await sync_parsed_items(provider, parsed, cache)
    logger.info(
        f"[import] {filename}: parsed {len(parsed)}, upserted {synced.upserted}, "
        f"{synced.changes} change events"
    )
    return ImportResult(
        source=source,
        filename=filename,
        ext=ext,
        parsed_count=len(parsed),
        upserted_count=synced.upserted,
        change_count=synced.changes,
    )


async def import_from_path(
    provider: StockProvider,
    path: str | os.PathLike[str],
    cache: RedisCatalogCache | None = None,
    source: str = "auto",
) -> ImportResult:
    """Import an export file from disk (the default Tally export path for "auto")."""
    file_path = Path(path)
    if not file_path.is_file():
        raise FileNotFoundError(f"Export file not found: {file_path}")

    stat = file_path.stat()
    content = file_path.read_bytes()

    result = await import_from_bytes(provider, file_path.name, content, cache, source=source)
    result.path = str(file_path)
    result.file_size = stat.st_size
    result.file_mtime = datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc)
    return result
