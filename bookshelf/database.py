"""PostgreSQL storage for the want-to-read and read shelves."""
import psycopg2
from psycopg2 import pool
from typing import Optional, List, Dict, Any
import logging

from bookshelf.errors import PersistenceError
from bookshelf.models import Book, Shelf

logger = logging.getLogger(__name__)

BOOK_COLUMNS = """
    id, title, authors, published_year, description,
    page_count, publisher, thumbnail
"""


class Database:
    """PostgreSQL database with connection pooling."""

    def __init__(
        self,
        connection_string: Optional[str] = None,
        min_conn: int = 1,
        max_conn: int = 10,
        timeout: Optional[float] = None,
        connection_pool=None
    ):
        """
        Initialize database connection pool.

        Args:
            connection_string: PostgreSQL connection string
            min_conn: Minimum connections in pool
            max_conn: Maximum connections in pool
            timeout: Seconds allowed to connect and per statement
            connection_pool: Existing pool to use instead of creating one
        """
        if connection_pool is not None:
            self.connection_pool = connection_pool
            return

        connect_kwargs = {}
        if timeout:
            # connect_timeout only takes whole seconds
            connect_kwargs["connect_timeout"] = max(1, int(timeout))
            connect_kwargs["options"] = f"-c statement_timeout={int(timeout * 1000)}"

        try:
            self.connection_pool = psycopg2.pool.SimpleConnectionPool(
                min_conn,
                max_conn,
                connection_string,
                **connect_kwargs
            )
        except psycopg2.Error as e:
            raise PersistenceError(f"Failed to create connection pool: {e}") from e
        logger.info("Database connection pool created successfully")

    def init_schema(self):
        """Create shelf tables if they don't exist."""
        conn = None
        try:
            conn = self.connection_pool.getconn()
            with conn.cursor() as cur:
                for shelf in Shelf:
                    # The external volume id is the key; position keeps insertion order
                    cur.execute(f"""
                        CREATE TABLE IF NOT EXISTS {shelf.value} (
                            position BIGSERIAL,
                            id VARCHAR(255) PRIMARY KEY,
                            title TEXT NOT NULL,
                            authors TEXT[],
                            published_year INTEGER,
                            description TEXT,
                            page_count INTEGER,
                            publisher TEXT,
                            thumbnail TEXT,
                            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                        )
                    """)
                    cur.execute(f"""
                        CREATE INDEX IF NOT EXISTS idx_{shelf.value}_position
                        ON {shelf.value} (position)
                    """)

                conn.commit()
                logger.info("Database schema initialized successfully")
        except psycopg2.Error as e:
            self._rollback(conn)
            raise PersistenceError(f"Failed to initialize schema: {e}") from e
        finally:
            self._release(conn)

    def list_books(self, shelf: Shelf) -> List[Book]:
        """Return every book on a shelf in insertion order."""
        conn = None
        try:
            conn = self.connection_pool.getconn()
            with conn.cursor() as cur:
                cur.execute(f"""
                    SELECT {BOOK_COLUMNS}
                    FROM {shelf.value}
                    ORDER BY position
                """)
                rows = cur.fetchall()
                return [_row_to_book(row) for row in rows]
        except psycopg2.Error as e:
            self._rollback(conn)
            raise PersistenceError(f"Failed to list {shelf.value}: {e}") from e
        finally:
            self._release(conn)

    def insert_book(self, shelf: Shelf, book: Book) -> None:
        """
        Insert a book into a shelf table.

        Raises:
            PersistenceError: the row could not be written, including when
                the id is already stored on that shelf
        """
        conn = None
        try:
            conn = self.connection_pool.getconn()
            with conn.cursor() as cur:
                cur.execute(f"""
                    INSERT INTO {shelf.value} (
                        id, title, authors, published_year, description,
                        page_count, publisher, thumbnail
                    ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
                """, (
                    book.id, book.title, list(book.authors), book.published_year,
                    book.description, book.page_count, book.publisher, book.thumbnail
                ))
                conn.commit()
                logger.info(f"Stored {book.id} on {shelf.value}")
        except psycopg2.Error as e:
            self._rollback(conn)
            logger.error(f"Failed to insert book: {e}")
            raise PersistenceError(f"Failed to add {book.id} to {shelf.value}: {e}") from e
        finally:
            self._release(conn)

    def delete_book(self, shelf: Shelf, book_id: str) -> int:
        """Delete a book from a shelf by id. Returns the number of rows removed."""
        conn = None
        try:
            conn = self.connection_pool.getconn()
            with conn.cursor() as cur:
                cur.execute(f"DELETE FROM {shelf.value} WHERE id = %s", (book_id,))
                deleted = cur.rowcount
                conn.commit()
                logger.info(f"Deleted {deleted} row(s) for {book_id} from {shelf.value}")
                return deleted
        except psycopg2.Error as e:
            self._rollback(conn)
            logger.error(f"Failed to delete book: {e}")
            raise PersistenceError(f"Failed to remove {book_id} from {shelf.value}: {e}") from e
        finally:
            self._release(conn)

    def get_stats(self) -> Dict[str, Any]:
        """Get shelf sizes."""
        conn = None
        try:
            conn = self.connection_pool.getconn()
            with conn.cursor() as cur:
                stats = {}
                for shelf in Shelf:
                    cur.execute(f"SELECT COUNT(*) FROM {shelf.value}")
                    stats[shelf.value] = cur.fetchone()[0]

                cur.execute(f"""
                    SELECT COUNT(*) FROM {Shelf.WANT_TO_READ.value} w
                    JOIN {Shelf.READ.value} r ON r.id = w.id
                """)
                stats["on_both_shelves"] = cur.fetchone()[0]
                return stats
        except psycopg2.Error as e:
            self._rollback(conn)
            raise PersistenceError(f"Failed to read stats: {e}") from e
        finally:
            self._release(conn)

    def _rollback(self, conn):
        """Roll back if the connection is still usable."""
        if conn is None or conn.closed:
            return
        try:
            conn.rollback()
        except psycopg2.Error as e:
            logger.warning(f"Rollback failed: {e}")

    def _release(self, conn):
        """Return a connection to the pool, discarding it if closed."""
        if conn is None:
            return
        try:
            self.connection_pool.putconn(conn, close=bool(conn.closed))
        except psycopg2.Error as e:
            logger.warning(f"Failed to return connection to pool: {e}")

    def close(self):
        """Close all connections in the pool."""
        if self.connection_pool:
            self.connection_pool.closeall()
            logger.info("Database connection pool closed")

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()


def _row_to_book(row) -> Book:
    book_id, title, authors, year, description, page_count, publisher, thumbnail = row
    return Book(
        id=book_id,
        title=title,
        authors=tuple(authors or ()),
        published_year=year,
        description=description,
        page_count=page_count,
        publisher=publisher,
        thumbnail=thumbnail,
    )
