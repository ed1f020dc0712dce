from __future__ import annotations

import logging
import queue
import re
import sqlite3
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

from bookstore.book import BOOK_FIELDS
from bookstore.config import settings

logger = logging.getLogger(__name__)

BOOKS_TABLE = "books"

# Constraint names for column sets. SQLite reports failures by column, not by name.
CONSTRAINT_NAMES: Dict[tuple, str] = {
    (BOOKS_TABLE, ("isbn",)): "books_pkey",
}

_CONSTRAINT_FAILED = re.compile(r"^(UNIQUE|NOT NULL|CHECK|FOREIGN KEY) constraint failed: (.+)$")


class ConnectionPool:
    """Small pool of SQLite connections shared by request handler threads."""

    def __init__(self, db_file: Optional[str] = None, size: Optional[int] = None,
                 timeout: Optional[float] = None) -> None:
        self.db_file = db_file or settings.database_file
        self.size = size if size is not None else settings.database_pool_size
        self.timeout = timeout if timeout is not None else settings.database_timeout
        self._pool: "queue.Queue[sqlite3.Connection]" = queue.Queue(maxsize=self.size)

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_file, timeout=self.timeout, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        # WAL lets readers proceed while a writer holds the lock
        conn.execute("PRAGMA journal_mode=WAL;")
        conn.execute("PRAGMA synchronous=NORMAL;")
        return conn

    def acquire(self) -> sqlite3.Connection:
        try:
            return self._pool.get_nowait()
        except queue.Empty:
            return self._connect()

    def release(self, conn: sqlite3.Connection) -> None:
        if self.size <= 0:
            # size 0 disables pooling
            conn.close()
            return
        try:
            self._pool.put_nowait(conn)
        except queue.Full:
            conn.close()

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        """Borrow a connection for one unit of work; commit on success, roll back on error."""
        conn = self.acquire()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            self.release(conn)

    def close(self) -> None:
        while True:
            try:
                conn = self._pool.get_nowait()
            except queue.Empty:
                break
            conn.close()


def create_tables(conn: sqlite3.Connection) -> None:
    """Creates the books table if it doesn't exist."""
    conn.execute(f"""
        CREATE TABLE IF NOT EXISTS {BOOKS_TABLE} (
            isbn TEXT NOT NULL,
            amazon_url TEXT NOT NULL,
            author TEXT NOT NULL,
            language TEXT NOT NULL,
            pages INTEGER NOT NULL,
            publisher TEXT NOT NULL,
            title TEXT NOT NULL,
            year INTEGER NOT NULL,
            CONSTRAINT books_pkey PRIMARY KEY (isbn)
        )
    """)


def initialize_database(pool: ConnectionPool) -> None:
    """Initializes the database, creating tables if needed."""
    with pool.connection() as conn:
        create_tables(conn)
    logger.debug(f"Database ready at {pool.db_file}")


def describe_error(exc: Exception, values: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Return the driver error as a plain dict suitable for a JSON response.

    The driver message is kept verbatim. Constraint failures are enriched with the
    table, the constraint name and, when the offending row is known, a
    ``Key (col)=(value) already exists.`` style detail.
    """
    message = str(exc)
    details: Dict[str, Any] = {
        "name": type(exc).__name__,
        "severity": "ERROR",
        "code": getattr(exc, "sqlite_errorname", None) or "SQLITE_ERROR",
        "message": message,
    }

    match = _CONSTRAINT_FAILED.match(message)
    if not match:
        return details

    kind, target = match.groups()
    qualified = [part.strip() for part in target.split(",")]
    table = qualified[0].partition(".")[0]
    columns = tuple(part.partition(".")[2] or part for part in qualified)
    details["table"] = table
    details["column"] = ", ".join(columns)

    if kind == "UNIQUE":
        details["constraint"] = CONSTRAINT_NAMES.get((table, columns), f"{table}_{'_'.join(columns)}_key")
        if values is not None:
            key_values = ", ".join(str(values.get(column)) for column in columns)
            details["detail"] = f"Key ({', '.join(columns)})=({key_values}) already exists."
    elif kind == "NOT NULL":
        details["detail"] = f"Failing row violates not-null constraint on {details['column']}."
    return details


def select_columns() -> str:
    return ", ".join(BOOK_FIELDS)
