"""Live refresh from Tally.

Flow:
1. Fetch stock rows over the XML API (request variants tried in order)
2. Normalize rows into RawItem, counting the ones dropped as invalid
3. Persist through `sync_parsed_items`, the same path as file imports

Every failure ends up in a failed RefreshResult; nothing is raised to the
caller, so the scheduler can keep running.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
import logging

from stockviewer.parsers.common import RawItem
from stockviewer.services.importer import sync_parsed_items
from stockviewer.services.tally_client import TallyClient
from stockviewer.services.tally_normalizer import count_by_brand, normalize_rows
from stockviewer.services.tally_parser import TallyStockRow
from stockviewer.settings import get_settings
from stockviewer.stores.base import StockProvider
from stockviewer.stores.redis import RedisCatalogCache

logger = logging.getLogger("uvicorn.error")


@dataclass
class RefreshResult:
    """Outcome of one refresh run."""

    success: bool
    company: str
    location: str | None
    started_at: datetime
    completed_at: datetime
    error: str | None = None
    source: str = "tally"
    fetched_count: int = 0
    parsed_count: int = 0
    upserted_count: int = 0
    invalid_count: int = 0

    @property
    def duration_ms(self) -> int:
        return int((self.completed_at - self.started_at).total_seconds() * 1000)

    @classmethod
    def failed(
        cls,
        error: str,
        company: str,
        location: str | None,
        started_at: datetime | None = None,
        fetched_count: int = 0,
    ) -> "RefreshResult":
        now = datetime.now(timezone.utc)
        return cls(
            success=False,
            error=error,
            company=company,
            location=location,
            started_at=started_at or now,
            completed_at=now,
            fetched_count=fetched_count,
        )


@dataclass
class TallyPreview:
    """Fetched and normalized data, not persisted."""

    success: bool
    error: str | None = None
    raw_items: list[TallyStockRow] = field(default_factory=list)
    items: list[RawItem] = field(default_factory=list)
    invalid_count: int = 0
    by_brand: dict[str, int] = field(default_factory=dict)

    @property
    def total_raw(self) -> int:
        return len(self.raw_items)

    @property
    def total_normalized(self) -> int:
        return len(self.items)


async def refresh_from_tally(
    provider: StockProvider,
    client: TallyClient | None = None,
    cache: RedisCatalogCache | None = None,
    company: str | None = None,
    location: str | None = None,
    as_of: date | None = None,
) -> RefreshResult:
    settings = get_settings()
    company = company or settings.tally_company
    location = location or settings.tally_godown or None
    started_at = datetime.now(timezone.utc)

    owns_client = client is None
    client = client or TallyClient()

    logger.info(f"[tally] Starting refresh (company={company!r}, godown={location!r})")
    try:
        fetched = await client.fetch_stock(company, location, as_of)
        if not fetched.success:
            return RefreshResult.failed(
                f"Tally fetch failed: {fetched.error}", company, location, started_at
            )

        normalized = normalize_rows(fetched.items)
        for message in normalized.errors[:5]:
            logger.warning(f"[tally]   - {message}")

        if not normalized.items:
            return RefreshResult.failed(
                "No valid items after normalization. Check Tally data and godown name.",
                company,
                location,
                started_at,
                fetched_count=fetched.count,
            )

        synced = await sync_parsed_items(provider, normalized.items, cache)

        result = RefreshResult(
            success=True,
            company=company,
            location=location,
            started_at=started_at,
            completed_at=datetime.now(timezone.utc),
            fetched_count=fetched.count,
            parsed_count=len(normalized.items),
            upserted_count=synced.upserted,
            invalid_count=normalized.invalid_count,
        )
        logger.info(
            f"[tally] Refresh done: fetched {result.fetched_count}, parsed {result.parsed_count}, "
            f"upserted {result.upserted_count}, invalid {result.invalid_count} in {result.duration_ms}ms"
        )
        return result
    except Exception as e:
        logger.exception(f"[tally] Refresh error: {e}")
        return RefreshResult.failed(str(e), company, location, started_at)
    finally:
        if owns_client:
            await client.close()


async def preview_tally_data(
    client: TallyClient | None = None,
    company: str | None = None,
    location: str | None = None,
) -> TallyPreview:
    settings = get_settings()
    company = company or settings.tally_company
    location = location or settings.tally_godown or None

    owns_client = client is None
    client = client or TallyClient()
    try:
        fetched = await client.fetch_stock(company, location)
        if not fetched.success:
            return TallyPreview(success=False, error=fetched.error)

        normalized = normalize_rows(fetched.items)
        return TallyPreview(
            success=True,
            raw_items=fetched.items,
            items=normalized.items,
            invalid_count=normalized.invalid_count,
            by_brand=count_by_brand(normalized.items),
        )
    except Exception as e:
        logger.exception(f"[tally] Preview error: {e}")
        return TallyPreview(success=False, error=str(e))
    finally:
        if owns_client:
            await client.close()
