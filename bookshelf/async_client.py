"""Async HTTP client for concurrent page fetches."""
import asyncio
import httpx
from typing import Optional
import logging

from bookshelf.errors import TransportError
from bookshelf.models import FetchResult, Query
from bookshelf.parse import build_request_url, parse_books_response, validate_page_request

logger = logging.getLogger(__name__)


class AsyncGoogleBooksClient:
    """Async client for Google Books volume search."""

    BASE_URL = "https://www.googleapis.com/books/v1/volumes"
    MAX_RESULTS_CAP = 40

    def __init__(
        self,
        api_key: Optional[str] = None,
        timeout: float = 10,
        max_concurrent: int = 5,
        client: Optional[httpx.AsyncClient] = None
    ):
        """
        Initialize async client.

        Args:
            api_key: Optional API key
            timeout: Request timeout
            max_concurrent: Maximum concurrent requests
            client: Optional preconfigured httpx.AsyncClient
        """
        self.api_key = api_key
        self.timeout = timeout
        self.semaphore = asyncio.Semaphore(max_concurrent)

        # Create async HTTP client
        self.client = client if client is not None else httpx.AsyncClient(timeout=timeout)

    async def fetch_page(
        self,
        query: Query,
        start_index: int = 0,
        max_results: int = 10
    ) -> FetchResult:
        """
        Fetch one page of search results asynchronously.

        Same contract as GoogleBooksClient.fetch_page.
        """
        query.validate()
        validate_page_request(start_index, max_results, self.MAX_RESULTS_CAP)
        url = build_request_url(self.BASE_URL, query, start_index, max_results, self.api_key)

        # Use semaphore to limit concurrency
        async with self.semaphore:
            try:
                logger.info(f"Async request: {query} (index={start_index})")
                response = await self.client.get(url)
            except httpx.TimeoutException as e:
                raise TransportError(f"Catalog request timed out after {self.timeout}s") from e
            except httpx.HTTPError as e:
                raise TransportError(f"Catalog request failed: {e}") from e

        if not response.is_success:
            logger.warning(f"Status {response.status_code} for query: {query}")
            raise TransportError(f"Catalog returned HTTP {response.status_code}")

        try:
            body = response.json()
        except ValueError as e:
            raise TransportError("Catalog response is not valid JSON") from e

        return parse_books_response(body)

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()
