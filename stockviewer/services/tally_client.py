"""HTTP client for Tally's XML API.

Tally answers POSTed XML envelopes on a single URL. Stock is requested with an
ordered list of request variants; the first one that returns rows without an
embedded error wins. Failing variants are logged and skipped, so a fetch only
fails once every variant has been tried.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
import logging

import httpx

from stockviewer.services.tally_parser import TallyStockRow, detect_error_response
from stockviewer.services.tally_requests import (
    DEFAULT_VARIANTS,
    RequestVariant,
    StockRequestOptions,
    build_connection_test_request,
)
from stockviewer.settings import get_settings

logger = logging.getLogger("uvicorn.error")


class TallyError(Exception):
    """Transport-level failure talking to Tally."""


class TallyTimeoutError(TallyError):
    """Tally did not answer within the configured timeout."""


@dataclass
class TallyFetchResult:
    success: bool
    fetched_at: datetime
    items: list[TallyStockRow] = field(default_factory=list)
    error: str | None = None
    variant: str | None = None

    @property
    def count(self) -> int:
        return len(self.items)


class TallyClient:
    """Client for the Tally XML HTTP server."""

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        variants: list[RequestVariant] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        settings = get_settings()
        self.base_url = base_url or settings.tally_base_url
        self.timeout = timeout if timeout is not None else settings.tally_timeout_seconds
        self.variants = variants or DEFAULT_VARIANTS
        self._transport = transport
        self._http_client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self.timeout, transport=self._transport)
        return self._http_client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    async def send(self, xml_body: str) -> str:
        """POST one envelope and return the response body.

        Raises:
            TallyTimeoutError: On timeout.
            TallyError: On connection failure or non-2xx status.
        """
        client = await self._get_client()
        try:
            response = await client.post(
                self.base_url,
                content=xml_body.encode("utf-8"),
                headers={"Content-Type": "application/xml", "Accept": "application/xml"},
            )
        except httpx.TimeoutException as e:
            raise TallyTimeoutError(f"Tally request timed out after {self.timeout}s") from e
        except httpx.HTTPError as e:
            raise TallyError(f"Tally request failed: {e}") from e

        if not response.is_success:
            raise TallyError(f"Tally HTTP error: {response.status_code} {response.reason_phrase}")
        return response.text

    async def fetch_stock(
        self,
        company: str,
        godown: str | None = None,
        as_of: date | None = None,
    ) -> TallyFetchResult:
        """Fetch closing stock, trying each request variant in order."""
        fetched_at = datetime.now(timezone.utc)
        options = StockRequestOptions(company=company, godown=godown, as_of=as_of)
        errors: list[str] = []

        for variant in self.variants:
            logger.info(f"[tally] Trying {variant.name} request...")
            try:
                body = await self.send(variant.build(options))
            except TallyError as e:
                logger.warning(f"[tally] {variant.name} failed: {e}")
                errors.append(f"{variant.name}: {e}")
                continue

            embedded = detect_error_response(body)
            if embedded:
                logger.warning(f"[tally] {variant.name} returned error: {embedded}")
                errors.append(f"{variant.name}: {embedded}")
                continue

            rows = variant.parse(body)
            if rows:
                logger.info(f"[tally] {variant.name} returned {len(rows)} items")
                return TallyFetchResult(success=True, fetched_at=fetched_at, items=rows, variant=variant.name)

            logger.info(f"[tally] {variant.name} returned no items, trying next variant...")
            errors.append(f"{variant.name}: no items")

        message = (
            "No stock items returned from Tally. Check that the company and godown names are correct."
        )
        if errors:
            message = f"{message} ({'; '.join(errors)})"
        return TallyFetchResult(success=False, fetched_at=fetched_at, error=message)

    async def test_connection(self, company: str | None = None) -> bool:
        """True when Tally answers the company-list request without an error."""
        try:
            body = await self.send(build_connection_test_request(company or get_settings().tally_company))
        except TallyError as e:
            logger.error(f"[tally] Connection test failed: {e}")
            return False
        return detect_error_response(body) is None
