"""Want-to-read and read shelves backed by a storage collaborator."""
import logging
import random
import time
from typing import Callable, List, Optional, Set, Tuple

from bookshelf.errors import DuplicateError, PartialMoveError
from bookshelf.models import Book, Shelf
from bookshelf.parse import deduplicate_books

logger = logging.getLogger(__name__)


class CollectionStore:
    """
    Single source of truth for the two shelves.

    In-memory lists change only after storage confirms a write. A book id
    lives on at most one shelf, except after a partial move that could not
    be repaired; such ids are kept in ``pending_deletes`` until
    ``reconcile()`` clears them.

    The storage collaborator needs ``list_books(shelf)``,
    ``insert_book(shelf, book)`` and ``delete_book(shelf, book_id)``, each
    raising PersistenceError on failure. Once the Read row is written any
    error from the want-to-read delete is treated as a partial move.
    """

    def __init__(
        self,
        storage,
        max_retries: int = 3,
        base_backoff: float = 0.5,
        sleep: Callable[[float], None] = time.sleep
    ):
        """
        Args:
            storage: Persistence collaborator (e.g. Database)
            max_retries: Corrective delete attempts after a partial move
            base_backoff: Base delay for exponential backoff
            sleep: Delay function, replaceable in tests
        """
        self.storage = storage
        self.max_retries = max_retries
        self.base_backoff = base_backoff
        self._sleep = sleep
        self._want: Tuple[Book, ...] = ()
        self._read: Tuple[Book, ...] = ()
        self._pending_deletes: Set[str] = set()

    def load(self) -> None:
        """Re-derive both shelves from storage."""
        want = deduplicate_books(self.storage.list_books(Shelf.WANT_TO_READ))
        read = deduplicate_books(self.storage.list_books(Shelf.READ))

        read_ids = {book.id for book in read}
        dangling = {book.id for book in want if book.id in read_ids}
        if dangling:
            logger.warning(f"Found {len(dangling)} book(s) on both shelves; queued for reconcile")

        self._want, self._read = tuple(want), tuple(read)
        self._pending_deletes = dangling
        logger.info(f"Loaded {len(self._want)} want-to-read and {len(self._read)} read books")

    def list_want_to_read(self) -> List[Book]:
        return list(self._want)

    def list_read(self) -> List[Book]:
        return list(self._read)

    @property
    def pending_deletes(self) -> Set[str]:
        """Ids persisted on both shelves whose want-to-read row still needs deleting."""
        return set(self._pending_deletes)

    def shelf_of(self, book_id: str) -> Optional[Shelf]:
        """Return the shelf holding book_id; Read wins for a dangling id."""
        if _find(self._read, book_id) is not None:
            return Shelf.READ
        if _find(self._want, book_id) is not None:
            return Shelf.WANT_TO_READ
        return None

    def add_to_want_to_read(self, book: Book) -> Book:
        """
        Add a book to the want-to-read shelf.

        Raises:
            DuplicateError: the id is already on either shelf
            PersistenceError: storage rejected the insert; nothing changes
        """
        shelf = self.shelf_of(book.id)
        if shelf is not None:
            raise DuplicateError(book.id, shelf.value)

        self.storage.insert_book(Shelf.WANT_TO_READ, book)
        self._want = self._want + (book,)
        logger.info(f"Added {book.id} to want-to-read")
        return book

    def move_to_read(self, book: Book) -> Book:
        """
        Move a book to the read shelf, adding it if it was never wanted.

        Storage is written Read-first, then the want-to-read row is deleted.
        If a want-to-read entry exists its stored payload is the one moved.

        Raises:
            DuplicateError: the id is already on the read shelf
            PersistenceError: the Read insert failed; nothing changes
            PartialMoveError: the delete kept failing after corrective
                retries; the book is now on both shelves
        """
        if _find(self._read, book.id) is not None:
            raise DuplicateError(book.id, Shelf.READ.value)

        wanted = _find(self._want, book.id)
        stored = wanted if wanted is not None else book

        self.storage.insert_book(Shelf.READ, stored)

        if wanted is None:
            self._read = self._read + (stored,)
            logger.info(f"Added {book.id} to read")
            return stored

        try:
            self._delete_with_retry(book.id)
        except Exception as e:
            self._read = self._read + (stored,)
            self._pending_deletes.add(book.id)
            logger.error(f"Partial move of {book.id}: still on want-to-read")
            raise PartialMoveError(stored, e) from e

        # Swap both shelves in one assignment
        self._want, self._read = _without(self._want, book.id), self._read + (stored,)
        logger.info(f"Moved {book.id} to read")
        return stored

    def reconcile(self) -> List[str]:
        """
        Retry the dangling deletes left by partial moves.

        Returns:
            Ids that are still on both shelves
        """
        still_dangling = []
        for book_id in sorted(self._pending_deletes):
            try:
                self._delete_with_retry(book_id)
            except Exception as e:
                logger.error(f"Reconcile failed for {book_id}: {e}")
                still_dangling.append(book_id)
                continue
            self._want = _without(self._want, book_id)
            self._pending_deletes.discard(book_id)
            logger.info(f"Reconciled {book_id}")
        return still_dangling

    def _delete_with_retry(self, book_id: str) -> None:
        """Delete from want-to-read; on failure retry with backoff, then re-raise."""
        try:
            self.storage.delete_book(Shelf.WANT_TO_READ, book_id)
            return
        except Exception as e:
            last_error = e
            logger.warning(f"Delete of {book_id} from want-to-read failed: {e}")

        for attempt in range(self.max_retries):
            self._backoff(attempt)
            try:
                self.storage.delete_book(Shelf.WANT_TO_READ, book_id)
                logger.info(f"Corrective delete of {book_id} succeeded on retry {attempt + 1}")
                return
            except Exception as e:
                last_error = e
                logger.warning(f"Corrective delete {attempt + 1}/{self.max_retries} failed: {e}")

        raise last_error

    def _backoff(self, attempt: int):
        """
        Sleep with exponential backoff and jitter.

        Args:
            attempt: Current attempt number (0-indexed)
        """
        # Exponential backoff: base * 2^attempt
        delay = self.base_backoff * (2 ** attempt)

        # Add jitter: random value between 0 and delay
        jitter = random.uniform(0, delay)
        total_delay = delay + jitter

        logger.info(f"Backing off for {total_delay:.2f} seconds")
        self._sleep(total_delay)


def _find(books: Tuple[Book, ...], book_id: str) -> Optional[Book]:
    for book in books:
        if book.id == book_id:
            return book
    return None


def _without(books: Tuple[Book, ...], book_id: str) -> Tuple[Book, ...]:
    return tuple(book for book in books if book.id != book_id)

