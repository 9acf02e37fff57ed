"""Page position bookkeeping for a search result set."""
import logging
import math
from dataclasses import dataclass

from bookshelf.errors import BoundaryError

logger = logging.getLogger(__name__)


@dataclass
class PaginationController:
    """Tracks the current page, page size and reported total."""
    page_size: int = 10
    page_index: int = 1
    total_results: int = 0

    def __post_init__(self) -> None:
        if self.page_size < 1:
            raise ValueError(f"page_size must be > 0, got {self.page_size}")

    def reset(self, page_size: int) -> None:
        """Start over at page 1 with no known total."""
        if page_size < 1:
            raise ValueError(f"page_size must be > 0, got {page_size}")
        self.page_size = page_size
        self.page_index = 1
        self.total_results = 0

    def set_totals(self, total_results: int) -> None:
        """Record the total reported by the latest fetch."""
        if total_results < 0:
            raise ValueError(f"total_results must be >= 0, got {total_results}")
        self.total_results = total_results
        pages = self.page_count()
        if pages and self.page_index > pages:
            # Catalog totals drift between requests
            logger.warning(f"Total shrank to {total_results}; clamping page {self.page_index} to {pages}")
            self.page_index = pages

    def page_count(self) -> int:
        return math.ceil(self.total_results / self.page_size) if self.total_results else 0

    def has_next(self) -> bool:
        return self.page_index * self.page_size < self.total_results

    def has_previous(self) -> bool:
        return self.page_index > 1

    def next(self) -> int:
        """Advance one page and return the new index."""
        if not self.has_next():
            raise BoundaryError(
                f"No page after {self.page_index} ({self.total_results} results, {self.page_size} per page)"
            )
        self.page_index += 1
        return self.page_index

    def previous(self) -> int:
        """Step back one page and return the new index."""
        if not self.has_previous():
            raise BoundaryError("Already on the first page")
        self.page_index -= 1
        return self.page_index

    @property
    def start_index(self) -> int:
        """Zero-based catalog offset of the current page."""
        return (self.page_index - 1) * self.page_size
