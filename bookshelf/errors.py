"""Exception hierarchy for catalog search and shelf management."""


class BookshelfError(Exception):
    """Base class for all bookshelf errors."""


class ValidationError(BookshelfError):
    """Search query has no usable term."""


class TransportError(BookshelfError):
    """Catalog request failed: bad status, timeout, network or malformed payload."""


class UpstreamError(BookshelfError):
    """Catalog answered with an embedded error object."""


class BoundaryError(BookshelfError):
    """Page transition outside the available result range."""


class SessionStateError(BookshelfError):
    """Operation not allowed in the current session state."""


class DuplicateError(BookshelfError):
    """Book is already on a shelf."""

    def __init__(self, book_id: str, shelf: str):
        super().__init__(f"Book {book_id} is already on the {shelf} shelf")
        self.book_id = book_id
        self.shelf = shelf


class PersistenceError(BookshelfError):
    """Storage collaborator rejected a read or write."""


class PartialMoveError(PersistenceError):
    """Book was inserted into Read but could not be removed from WantToRead."""

    def __init__(self, book, cause: Exception):
        super().__init__(
            f"Book {book.id} is on both shelves: removal from want-to-read failed ({cause})"
        )
        self.book = book
        self.cause = cause
