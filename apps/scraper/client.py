"""
Wage API Client - Rate-Limited Paginated Fetching

Pages through the UC annual wage search endpoint for one location/year.

Features:
- Sequential pagination starting at page 1 (the endpoint has no
  out-of-order paging)
- Fixed delay between page requests
- Per-request timeout
- Transport and protocol failures raised as typed ScrapeErrors; a failed
  page aborts the whole task, nothing partial is returned

Usage:
    async with WageClient(delay=1.0) as client:
        records = await client.fetch_all("Berkeley", 2023)
"""

import asyncio
import logging
from typing import Any, Optional

import httpx
import orjson
from pydantic import ValidationError

from apps.scraper.errors import ProtocolError, TransportError
from utils.config import settings
from utils.schemas import SearchRequest, SearchResponse

logger = logging.getLogger(__name__)


class WageClient:
    """Async client for the wage search endpoint.

    One instance is shared by all workers; it holds nothing but the HTTP
    connection pool.
    """

    def __init__(
        self,
        api_url: Optional[str] = None,
        *,
        delay: float = 0.0,
        timeout: Optional[float] = None,
        rows: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Initialize client.

        Args:
            api_url: Search endpoint, defaults to settings.WAGE_API_URL
            delay: Seconds to wait between page requests
            timeout: Per-request timeout, defaults to settings.API_TIMEOUT
            rows: Page size, defaults to settings.SCRAPE_ROWS
            transport: Optional httpx transport (used by tests)
        """
        self.api_url = api_url or settings.WAGE_API_URL
        self.delay = delay
        self.rows = rows or settings.SCRAPE_ROWS
        self._client = httpx.AsyncClient(
            timeout=timeout if timeout is not None else settings.API_TIMEOUT,
            transport=transport,
            headers={"Content-Type": "application/json"},
        )

    async def __aenter__(self) -> "WageClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the underlying connection pool."""
        await self._client.aclose()

    async def fetch_page(self, location: str, year: int, page: int) -> SearchResponse:
        """
        Fetch a single page of results.

        Args:
            location: Campus/location name as the API spells it
            year: Calendar year
            page: 1-based page number

        Returns:
            Decoded page envelope

        Raises:
            TransportError: On connection failure or timeout
            ProtocolError: On non-2xx status or undecodable body
        """
        body = SearchRequest(page=page, rows=self.rows, year=str(year), location=location)

        try:
            response = await self._client.post(
                self.api_url,
                content=orjson.dumps(body.model_dump()),
            )
        except httpx.DecodingError as e:
            raise ProtocolError(f"{location} {year} page {page}: undecodable body: {e}") from e
        except httpx.RequestError as e:
            raise TransportError(f"{location} {year} page {page}: {e!r}") from e

        if not response.is_success:
            raise ProtocolError(
                f"{location} {year} page {page}: status {response.status_code}",
                status_code=response.status_code,
            )

        try:
            return SearchResponse.model_validate(orjson.loads(response.content))
        except (orjson.JSONDecodeError, ValidationError) as e:
            raise ProtocolError(
                f"{location} {year} page {page}: undecodable body: {e}",
                status_code=response.status_code,
            ) from e

    async def fetch_all(self, location: str, year: int) -> list[dict[str, Any]]:
        """
        Fetch every record for a location/year.

        Stops on the first empty page or once the cumulative record count
        reaches the total reported by the API.

        Returns:
            All records, in page order (possibly empty)

        Raises:
            TransportError, ProtocolError: Any page failing aborts the task
        """
        records: list[dict[str, Any]] = []
        page = 1

        while True:
            result = await self.fetch_page(location, year, page)

            if not result.rows:
                break

            records.extend(result.rows)
            logger.debug(
                "Fetched page",
                extra={
                    "location": location,
                    "year": year,
                    "page": page,
                    "fetched": len(records),
                    "available": result.records,
                },
            )

            if len(records) >= result.records:
                break

            page += 1
            await asyncio.sleep(self.delay)

        return records
