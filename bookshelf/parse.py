"""Parse and normalize Google Books API responses."""
import logging
import re
from typing import Dict, Any, List, Optional
from urllib.parse import quote, urlencode

from bookshelf.errors import TransportError, UpstreamError
from bookshelf.models import Book, FetchResult, Query

logger = logging.getLogger(__name__)

YEAR_PATTERN = re.compile(r"^\s*(\d{4})")


def parse_year(published_date: Optional[str]) -> Optional[int]:
    """
    Extract the year from a publishedDate value.

    Google returns "2019", "2019-05" or "2019-05-03"; anything else yields None.
    """
    if not published_date or not isinstance(published_date, str):
        return None
    match = YEAR_PATTERN.match(published_date)
    return int(match.group(1)) if match else None


def parse_book(item: Dict[str, Any]) -> Optional[Book]:
    """
    Parse a single book item from Google Books API.

    Args:
        item: Single item from Google Books API response

    Returns:
        Book object or None if the item has no id or is not an object
    """
    if not isinstance(item, dict):
        logger.warning(f"Skipping non-object item: {item!r}")
        return None

    book_id = item.get("id", "")
    if not book_id:
        return None

    volume_info = item.get("volumeInfo") or {}

    # Extract thumbnail (prefer higher quality)
    image_links = volume_info.get("imageLinks") or {}
    thumbnail = image_links.get("thumbnail") or image_links.get("smallThumbnail")

    page_count = volume_info.get("pageCount")
    if not isinstance(page_count, int):
        page_count = None

    return Book(
        id=book_id,
        title=volume_info.get("title") or "Unknown Title",
        authors=tuple(volume_info.get("authors") or ()),
        published_year=parse_year(volume_info.get("publishedDate")),
        description=volume_info.get("description"),
        page_count=page_count,
        publisher=volume_info.get("publisher"),
        thumbnail=thumbnail,
    )


def parse_books_response(response_json: Any) -> FetchResult:
    """
    Parse full Google Books API response.

    Args:
        response_json: Decoded response body

    Returns:
        FetchResult; items is empty when nothing matched

    Raises:
        UpstreamError: body carries an "error" object
        TransportError: body is not a recognizable search response
    """
    if not isinstance(response_json, dict):
        raise TransportError(f"Malformed catalog response: expected object, got {type(response_json).__name__}")

    error = response_json.get("error")
    if error:
        message = error.get("message") if isinstance(error, dict) else str(error)
        raise UpstreamError(message or "Catalog returned an error")

    total = response_json.get("totalItems", 0)
    if isinstance(total, bool) or not isinstance(total, int) or total < 0:
        raise TransportError(f"Malformed catalog response: totalItems={total!r}")

    items = response_json.get("items") or []
    if not isinstance(items, list):
        raise TransportError("Malformed catalog response: items is not a list")

    books = []
    for item in items:
        book = parse_book(item)
        if book:
            books.append(book)

    return FetchResult(items=tuple(books), total_results=total)


def deduplicate_books(books: List[Book]) -> List[Book]:
    """
    Remove duplicate books by ID.

    Args:
        books: List of Book objects

    Returns:
        Deduplicated list of books; the first occurrence wins
    """
    seen_ids = set()
    unique_books = []

    for book in books:
        if book.id not in seen_ids:
            seen_ids.add(book.id)
            unique_books.append(book)

    return unique_books


def build_search_expression(query: Query) -> str:
    """Field-tag each present term and join them with a literal '+'."""
    parts = []
    if query.author_term:
        parts.append("inauthor:" + quote(query.author_term, safe=""))
    if query.title_term:
        parts.append("intitle:" + quote(query.title_term, safe=""))
    return "+".join(parts)


def build_request_url(
    base_url: str,
    query: Query,
    start_index: int,
    max_results: int,
    api_key: Optional[str] = None
) -> str:
    """
    Assemble the catalog request URL.

    The expression is already percent-encoded, so it is appended as-is;
    passing it through a params dict would encode the '+' joiner.
    """
    params = {"startIndex": start_index, "maxResults": max_results}
    if api_key:
        params["key"] = api_key
    return f"{base_url}?q={build_search_expression(query)}&{urlencode(params)}"


def validate_page_request(start_index: int, max_results: int, cap: int) -> None:
    """Check fetch arguments against the catalog's limits."""
    if start_index < 0:
        raise ValueError(f"start_index must be >= 0, got {start_index}")
    if not 1 <= max_results <= cap:
        raise ValueError(f"max_results must be between 1 and {cap}, got {max_results}")
