"""Data models for catalog search and shelves."""
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

from bookshelf.errors import ValidationError


@dataclass(frozen=True)
class Book:
    """Normalized catalog item. Identity is the external volume id."""
    id: str
    title: str
    authors: Tuple[str, ...] = ()
    published_year: Optional[int] = None
    description: Optional[str] = None
    page_count: Optional[int] = None
    publisher: Optional[str] = None
    thumbnail: Optional[str] = None

    @property
    def authors_str(self) -> str:
        """Format authors as comma-separated string."""
        return ", ".join(self.authors) if self.authors else "Unknown"


def _clean(term: Optional[str]) -> Optional[str]:
    if term is None:
        return None
    term = term.strip()
    return term or None


@dataclass(frozen=True)
class Query:
    """Author and/or title search terms."""
    author: Optional[str] = None
    title: Optional[str] = None

    @property
    def author_term(self) -> Optional[str]:
        return _clean(self.author)

    @property
    def title_term(self) -> Optional[str]:
        return _clean(self.title)

    def is_empty(self) -> bool:
        """True when neither term has any non-whitespace text."""
        return self.author_term is None and self.title_term is None

    def validate(self) -> None:
        """Raise ValidationError unless at least one term is present."""
        if self.is_empty():
            raise ValidationError("Enter an author or a title to search")


@dataclass(frozen=True)
class FetchResult:
    """One catalog response: the parsed items and the reported total."""
    items: Tuple[Book, ...]
    total_results: int


@dataclass(frozen=True)
class SearchPage:
    """A displayable page of ranked results."""
    items: Tuple[Book, ...]
    page_index: int
    page_size: int
    total_results: int

    def __post_init__(self) -> None:
        if self.page_index < 1:
            raise ValueError(f"page_index must be >= 1, got {self.page_index}")
        if self.page_size < 1:
            raise ValueError(f"page_size must be > 0, got {self.page_size}")
        if self.total_results < 0:
            raise ValueError(f"total_results must be >= 0, got {self.total_results}")


class Shelf(str, Enum):
    """The two user-owned collections, valued by their table name."""
    WANT_TO_READ = "want_to_read"
    READ = "read_books"
