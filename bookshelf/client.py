"""HTTP client for the Google Books API."""
import requests
from typing import Optional, Any
import logging

from bookshelf.errors import TransportError
from bookshelf.models import FetchResult, Query
from bookshelf.parse import build_request_url, parse_books_response, validate_page_request

logger = logging.getLogger(__name__)


class GoogleBooksClient:
    """
    Client for Google Books volume search.

    Stateless across calls and never retries: a failed request raises and
    the caller decides what to do next.
    """

    BASE_URL = "https://www.googleapis.com/books/v1/volumes"
    MAX_RESULTS_CAP = 40

    def __init__(
        self,
        api_key: Optional[str] = None,
        timeout: float = 10,
        session: Optional[Any] = None
    ):
        """
        Initialize Google Books API client.

        Args:
            api_key: Optional API key (increases rate limits)
            timeout: Request timeout in seconds
            session: Optional HTTP session; a requests.Session is created if None
        """
        self.api_key = api_key
        self.timeout = timeout

        # Create session for connection pooling
        self.session = session if session is not None else requests.Session()

    def fetch_page(
        self,
        query: Query,
        start_index: int = 0,
        max_results: int = 10
    ) -> FetchResult:
        """
        Fetch one page of search results.

        Args:
            query: Author and/or title terms
            start_index: Zero-based offset of the first result
            max_results: Page size (1-40)

        Returns:
            FetchResult with normalized items and the reported total

        Raises:
            ValidationError: query has no term
            TransportError: non-2xx status, network failure or malformed body
            UpstreamError: body carries an error object
        """
        query.validate()
        validate_page_request(start_index, max_results, self.MAX_RESULTS_CAP)

        url = build_request_url(self.BASE_URL, query, start_index, max_results, self.api_key)
        logger.info(f"Catalog request: {query} (startIndex={start_index}, maxResults={max_results})")

        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.exceptions.Timeout as e:
            raise TransportError(f"Catalog request timed out after {self.timeout}s") from e
        except requests.exceptions.RequestException as e:
            raise TransportError(f"Catalog request failed: {e}") from e

        try:
            body = response.json()
        except ValueError:
            body = None

        if not 200 <= response.status_code < 300:
            # Google wraps 4xx/5xx details in an error object; the status still wins
            detail = ""
            if isinstance(body, dict) and isinstance(body.get("error"), dict):
                detail = f": {body['error'].get('message', '')}"
            logger.warning(f"Catalog status {response.status_code} for query: {query}")
            raise TransportError(f"Catalog returned HTTP {response.status_code}{detail}")

        if body is None:
            raise TransportError("Catalog response is not valid JSON")

        result = parse_books_response(body)
        logger.info(f"Catalog returned {len(result.items)} items (total={result.total_results})")
        return result

    def close(self):
        """Close the session."""
        self.session.close()

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()
