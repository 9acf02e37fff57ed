"""Search orchestration: query, fetch, rank, paginate."""
import asyncio
import inspect
import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import List, Optional

from bookshelf.errors import SessionStateError, TransportError, UpstreamError
from bookshelf.models import FetchResult, Query, SearchPage
from bookshelf.pagination import PaginationController
from bookshelf.parse import deduplicate_books
from bookshelf.ranking import rank

logger = logging.getLogger(__name__)

CATALOG_PAGE_CAP = 40


class Status(str, Enum):
    IDLE = "idle"
    SEARCHING = "searching"
    READY = "ready"
    FAILED = "failed"


class Direction(str, Enum):
    NEXT = "next"
    PREVIOUS = "previous"


@dataclass(frozen=True)
class SessionState:
    """
    Snapshot of a search session.

    ``page`` is the last successfully displayed page; it survives a failed
    request so callers can keep showing it. ``token`` identifies the most
    recent request issued.
    """
    status: Status = Status.IDLE
    query: Optional[Query] = None
    page: Optional[SearchPage] = None
    error: Optional[Exception] = None
    token: int = 0
    aggregated: bool = False


class SearchSession:
    """
    Drives one user's search.

    Requests are awaited one at a time from the caller's point of view. A
    newer request supersedes any still in flight: responses carrying a stale
    token are dropped. Ranking is page-local; a later page is never
    re-ranked against pages already shown.
    """

    def __init__(
        self,
        client,
        page_size: int = 10,
        timeout: float = 10,
        fetch_all_limit: int = 200
    ):
        """
        Args:
            client: Catalog client exposing fetch_page(query, start_index, max_results),
                either async or blocking
            page_size: Results per page (1-40)
            timeout: Seconds allowed per catalog call
            fetch_all_limit: Maximum items gathered by search_all
        """
        if not 1 <= page_size <= CATALOG_PAGE_CAP:
            raise ValueError(f"page_size must be between 1 and {CATALOG_PAGE_CAP}, got {page_size}")
        self.client = client
        self.page_size = page_size
        self.timeout = timeout
        self.fetch_all_limit = fetch_all_limit
        self.pagination = PaginationController(page_size=page_size)
        self._displayed = replace(self.pagination)
        self._state = SessionState()

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def current_page(self) -> Optional[SearchPage]:
        return self._state.page

    def clear(self) -> SessionState:
        """Drop displayed results and return to Idle."""
        self._state = SessionState(token=self._state.token)
        self.pagination.reset(self.page_size)
        self._displayed = replace(self.pagination)
        return self._state

    async def search(self, query: Query) -> SessionState:
        """
        Start a new search and load its first page.

        Raises:
            ValidationError: no term given; state is unchanged and no request is made
        """
        query.validate()
        token = self._begin(query)
        self.pagination.reset(self.page_size)

        try:
            result = await self._fetch(query, 0, self.page_size)
        except (TransportError, UpstreamError) as e:
            return self._fail(token, e)

        if self._superseded(token):
            return self._state

        self.pagination.set_totals(result.total_results)
        return self._ready(query, result.items, result.total_results, aggregated=False)

    async def change_page(self, direction: Direction) -> SessionState:
        """
        Load the next or previous page of the current search.

        Raises:
            SessionStateError: session is not Ready
            BoundaryError: no page in that direction
        """
        if self._state.status != Status.READY:
            raise SessionStateError(f"Cannot change page while {self._state.status.value}")

        direction = Direction(direction)
        if direction == Direction.NEXT:
            self.pagination.next()
        else:
            self.pagination.previous()

        query = self._state.query
        token = self._begin(query)

        try:
            result = await self._fetch(query, self.pagination.start_index, self.page_size)
        except (TransportError, UpstreamError) as e:
            return self._fail(token, e)

        if self._superseded(token):
            return self._state

        self.pagination.set_totals(result.total_results)
        return self._ready(query, result.items, result.total_results, aggregated=False)

    async def search_all(self, query: Query, limit: Optional[int] = None) -> SessionState:
        """
        Gather up to ``limit`` results across catalog pages into one ranked page.

        The first page reveals the total; the remaining pages are fetched
        concurrently and appended in increasing startIndex order. The page's
        total_results is the number of items gathered, not the catalog total.
        If any page fails the others are cancelled.
        """
        query.validate()
        limit = limit if limit is not None else self.fetch_all_limit
        if limit < 1:
            raise ValueError(f"limit must be >= 1, got {limit}")

        token = self._begin(query)
        first_size = min(limit, CATALOG_PAGE_CAP)

        try:
            first = await self._fetch(query, 0, first_size)
            if self._superseded(token):
                return self._state
            wanted = min(first.total_results, limit)
            starts = range(first_size, wanted, CATALOG_PAGE_CAP)
            tasks = [
                asyncio.ensure_future(self._fetch(query, start, min(CATALOG_PAGE_CAP, wanted - start)))
                for start in starts
            ]
            try:
                rest = await asyncio.gather(*tasks)
            finally:
                # One failed page fails the aggregation; stop the others
                for task in tasks:
                    if not task.done():
                        task.cancel()
        except (TransportError, UpstreamError) as e:
            return self._fail(token, e)

        if self._superseded(token):
            return self._state

        items: List = []
        for result in [first, *rest]:
            items.extend(result.items)
        items = deduplicate_books(items)[:limit]

        # The whole accumulation is shown as a single page
        self.pagination.reset(max(len(items), 1))
        self.pagination.set_totals(len(items))
        logger.info(
            f"Aggregated {len(items)} of {first.total_results} catalog items from {1 + len(rest)} page(s)"
        )
        return self._ready(query, items, len(items), aggregated=True)

    def _begin(self, query: Query) -> int:
        token = self._state.token + 1
        self._state = replace(self._state, status=Status.SEARCHING, query=query, error=None, token=token)
        return token

    def _superseded(self, token: int) -> bool:
        if token != self._state.token:
            logger.warning(f"Discarding response for superseded request {token} (current {self._state.token})")
            return True
        return False

    def _fail(self, token: int, error: Exception) -> SessionState:
        if self._superseded(token):
            return self._state
        logger.error(f"Search failed: {error}")
        self.pagination = replace(self._displayed)
        self._state = replace(self._state, status=Status.FAILED, error=error)
        return self._state

    def _ready(self, query: Query, items, total_results: int, aggregated: bool) -> SessionState:
        ranked = rank(items, query.author_term, query.title_term)
        page = SearchPage(
            items=tuple(ranked),
            page_index=self.pagination.page_index,
            page_size=self.pagination.page_size,
            total_results=total_results,
        )
        self._displayed = replace(self.pagination)
        self._state = replace(self._state, status=Status.READY, page=page, error=None, aggregated=aggregated)
        return self._state

    async def _fetch(self, query: Query, start_index: int, max_results: int) -> FetchResult:
        """Call the client under the session timeout; timeouts become TransportError."""
        fetch = self.client.fetch_page
        if inspect.iscoroutinefunction(fetch):
            call = fetch(query, start_index, max_results)
        else:
            call = asyncio.to_thread(fetch, query, start_index, max_results)

        try:
            return await asyncio.wait_for(call, timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise TransportError(f"Catalog call timed out after {self.timeout}s") from e
