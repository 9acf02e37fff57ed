"""Page-local relevance ordering of search results."""
from typing import Iterable, List, Optional

from bookshelf.models import Book

AUTHOR_MATCH_SCORE = 3
TITLE_MATCH_SCORE = 2


def _contains(haystack: str, needle: Optional[str]) -> bool:
    if not needle or not needle.strip():
        return False
    return needle.strip().casefold() in haystack.casefold()


def score(book: Book, author_term: Optional[str], title_term: Optional[str]) -> int:
    """Substring match score: +3 for an author hit, +2 for a title hit."""
    points = 0
    if _contains(", ".join(book.authors), author_term):
        points += AUTHOR_MATCH_SCORE
    if _contains(book.title, title_term):
        points += TITLE_MATCH_SCORE
    return points


def rank(
    books: Iterable[Book],
    author_term: Optional[str] = None,
    title_term: Optional[str] = None
) -> List[Book]:
    """
    Order books by score, then by published year, newest first.

    Books without a year count as year 0. sorted() is stable, so remaining
    ties keep their fetch order.
    """
    return sorted(
        books,
        key=lambda book: (
            -score(book, author_term, title_term),
            -(book.published_year or 0),
        ),
    )
