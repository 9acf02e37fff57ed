"""Tests for the PostgreSQL shelf storage, using a fake connection pool."""
import psycopg2
import psycopg2.extensions
import psycopg2.pool
import pytest

from bookshelf.database import Database
from bookshelf.errors import PersistenceError
from bookshelf.models import Book, Shelf


class FakeCursor:
    def __init__(self, conn):
        self.conn = conn
        self.rowcount = 0
        self._result = []

    def execute(self, sql, params=None):
        self.conn.executed.append((" ".join(sql.split()), params))
        if self.conn.error is not None:
            if self.conn.drops:
                self.conn.closed = self.conn.close_flag
            raise self.conn.error
        self._result = self.conn.results.pop(0) if self.conn.results else []
        self.rowcount = self.conn.rowcount

    def fetchall(self):
        return self._result

    def fetchone(self):
        return self._result[0] if self._result else None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        return False


class FakeConnection:
    def __init__(self, results=None, error=None, rowcount=0, drops=False, close_flag=2):
        self.results = list(results or [])
        self.error = error
        self.rowcount = rowcount
        self.executed = []
        self.commits = 0
        self.rollbacks = 0
        self.closed = 0
        self.drops = drops
        self.close_flag = close_flag

    def cursor(self):
        return FakeCursor(self)

    def commit(self):
        self.commits += 1

    def rollback(self):
        if self.drops:
            raise psycopg2.InterfaceError("connection already closed")
        self.rollbacks += 1


class FakePool:
    def __init__(self, conn, exhausted=False):
        self.conn = conn
        self.exhausted = exhausted
        self.returned = 0
        self.discarded = 0
        self.closed = False

    def getconn(self):
        if self.exhausted:
            raise psycopg2.pool.PoolError("connection pool exhausted")
        return self.conn

    def putconn(self, conn, close=False):
        self.returned += 1
        if close:
            self.discarded += 1

    def closeall(self):
        self.closed = True


def _db(**conn_kwargs):
    conn = FakeConnection(**conn_kwargs)
    pool = FakePool(conn)
    return Database(connection_pool=pool), conn, pool


DUNE = Book("dune", "Dune", ("Frank Herbert",), 1965, "Spice", 412, "Chilton", "http://t")


def test_init_schema_creates_both_tables():
    """Test that both shelf tables are created keyed by id."""
    db, conn, pool = _db()

    db.init_schema()

    statements = [sql for sql, _ in conn.executed]
    assert any("CREATE TABLE IF NOT EXISTS want_to_read" in sql for sql in statements)
    assert any("CREATE TABLE IF NOT EXISTS read_books" in sql for sql in statements)
    assert all("id VARCHAR(255) PRIMARY KEY" in sql for sql in statements if "CREATE TABLE" in sql)
    assert conn.commits == 1
    assert pool.returned == 1


def test_insert_book():
    """Test the insert statement and its parameters."""
    db, conn, pool = _db()

    db.insert_book(Shelf.READ, DUNE)

    sql, params = conn.executed[0]
    assert sql.startswith("INSERT INTO read_books")
    assert params == ("dune", "Dune", ["Frank Herbert"], 1965, "Spice", 412, "Chilton", "http://t")
    assert conn.commits == 1
    assert pool.returned == 1


def test_insert_book_failure_rolls_back():
    """Test that a database error becomes PersistenceError after rollback."""
    db, conn, pool = _db(error=psycopg2.IntegrityError("duplicate key"))

    with pytest.raises(PersistenceError, match="duplicate key"):
        db.insert_book(Shelf.WANT_TO_READ, DUNE)

    assert conn.rollbacks == 1
    assert conn.commits == 0
    assert pool.returned == 1


def test_delete_book_by_id():
    """Test that deletes match on the volume id only."""
    db, conn, _ = _db(rowcount=1)

    deleted = db.delete_book(Shelf.WANT_TO_READ, "dune")

    assert deleted == 1
    assert conn.executed[0] == ("DELETE FROM want_to_read WHERE id = %s", ("dune",))
    assert conn.commits == 1


def test_delete_book_failure():
    """Test that a failed delete raises PersistenceError."""
    db, conn, _ = _db(error=psycopg2.OperationalError("server closed the connection"))

    with pytest.raises(PersistenceError):
        db.delete_book(Shelf.WANT_TO_READ, "dune")

    assert conn.rollbacks == 1


def test_list_books_in_position_order():
    """Test row mapping and ordering."""
    rows = [
        ("dune", "Dune", ["Frank Herbert"], 1965, "Spice", 412, "Chilton", "http://t"),
        ("emma", "Emma", None, None, None, None, None, None),
    ]
    db, conn, _ = _db(results=[rows])

    books = db.list_books(Shelf.WANT_TO_READ)

    assert books == [DUNE, Book("emma", "Emma")]
    assert "ORDER BY position" in conn.executed[0][0]


def test_get_stats():
    """Test shelf counts and the both-shelves count."""
    db, _, _ = _db(results=[[(3,)], [(5,)], [(1,)]])

    stats = db.get_stats()

    assert stats == {"want_to_read": 3, "read_books": 5, "on_both_shelves": 1}


def test_close():
    """Test that closing releases the pool."""
    db, _, pool = _db()

    with db:
        pass

    assert pool.closed


@pytest.mark.parametrize("close_flag", [2, 0])
def test_dropped_connection_raises_persistence_error(close_flag):
    """Test that a connection lost mid-statement surfaces as PersistenceError, not a driver error."""
    db, conn, pool = _db(
        error=psycopg2.OperationalError("server closed the connection unexpectedly"),
        drops=True,
        close_flag=close_flag,
    )

    with pytest.raises(PersistenceError, match="server closed"):
        db.delete_book(Shelf.WANT_TO_READ, "dune")

    assert conn.commits == 0
    assert pool.returned == 1


def test_dropped_connection_is_discarded_from_pool():
    """Test that a closed connection is not handed back for reuse."""
    db, _, pool = _db(error=psycopg2.OperationalError("terminating connection"), drops=True)

    with pytest.raises(PersistenceError):
        db.insert_book(Shelf.READ, DUNE)

    assert pool.discarded == 1


def test_exhausted_pool_raises_persistence_error():
    """Test that pool errors from getconn are wrapped."""
    conn = FakeConnection()
    pool = FakePool(conn, exhausted=True)
    db = Database(connection_pool=pool)

    with pytest.raises(PersistenceError, match="exhausted"):
        db.list_books(Shelf.READ)

    assert pool.returned == 0
    assert conn.executed == []


def test_statement_timeout_raises_persistence_error():
    """Test that a cancelled statement maps to PersistenceError."""
    db, conn, _ = _db(error=psycopg2.extensions.QueryCanceledError("canceling statement due to statement timeout"))

    with pytest.raises(PersistenceError, match="statement timeout"):
        db.insert_book(Shelf.WANT_TO_READ, DUNE)

    assert conn.rollbacks == 1


def test_pool_built_with_timeouts(monkeypatch):
    """Test that connect and statement timeouts are passed to the pool."""
    created = []

    class RecordingPool:
        def __init__(self, *args, **kwargs):
            created.append((args, kwargs))

    monkeypatch.setattr(psycopg2.pool, "SimpleConnectionPool", RecordingPool)

    Database("postgresql://localhost/bookshelf", timeout=2.5)

    args, kwargs = created[0]
    assert args == (1, 10, "postgresql://localhost/bookshelf")
    assert kwargs == {"connect_timeout": 2, "options": "-c statement_timeout=2500"}


def test_pool_without_timeout(monkeypatch):
    """Test that no timeout options are sent when none is configured."""
    created = []
    monkeypatch.setattr(
        psycopg2.pool, "SimpleConnectionPool",
        lambda *args, **kwargs: created.append(kwargs)
    )

    Database("postgresql://localhost/bookshelf")

    assert created == [{}]
