from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

from bookstore.book import BOOK_FIELDS, Book
from bookstore.database import BOOKS_TABLE, ConnectionPool, describe_error, initialize_database, select_columns
from bookstore.errors import BookNotFoundError, BookValidationError, StorageError
from bookstore.validators import validate_book

logger = logging.getLogger(__name__)


class BookStore:
    """Manages the collection of books and their persistence."""

    def __init__(self, db_file: Optional[str] = None, pool_size: Optional[int] = None) -> None:
        self.pool = ConnectionPool(db_file=db_file, size=pool_size)
        self.db_file = self.pool.db_file
        initialize_database(self.pool)  # Ensure the table exists

    # ------------------------- Core operations ------------------------- #
    def list_books(self) -> List[Book]:
        with self._connection() as conn:
            rows = conn.execute(f"SELECT {select_columns()} FROM {BOOKS_TABLE}").fetchall()
        return [Book.from_dict(dict(row)) for row in rows]

    def get_book(self, isbn: str) -> Book:
        with self._connection() as conn:
            row = conn.execute(
                f"SELECT {select_columns()} FROM {BOOKS_TABLE} WHERE isbn = ?", (isbn,)
            ).fetchone()
        if row is None:
            logger.debug(f"No book with isbn {isbn!r}")
            raise BookNotFoundError(isbn)
        return Book.from_dict(dict(row))

    def create_book(self, book: Book) -> Book:
        """Insert a new book. A duplicate isbn surfaces the driver's constraint error."""
        placeholders = ", ".join("?" for _ in BOOK_FIELDS)
        with self._connection(book.to_dict()) as conn:
            conn.execute(
                f"INSERT INTO {BOOKS_TABLE} ({select_columns()}) VALUES ({placeholders})",
                book.to_row(),
            )
        logger.info(f"Created book {book.isbn}")
        return Book.from_dict(book.to_dict())

    def update_book(self, isbn: str, book: Book) -> Book:
        """Overwrite every field of the book keyed by ``isbn``, including the isbn itself."""
        assignments = ", ".join(f"{name} = ?" for name in BOOK_FIELDS)
        with self._connection(book.to_dict()) as conn:
            cursor = conn.execute(
                f"UPDATE {BOOKS_TABLE} SET {assignments} WHERE isbn = ?",
                (*book.to_row(), isbn),
            )
            updated = cursor.rowcount
        if updated == 0:
            raise BookNotFoundError(isbn)
        logger.info(f"Updated book {isbn}" + (f" (now {book.isbn})" if book.isbn != isbn else ""))
        return Book.from_dict(book.to_dict())

    def remove_book(self, isbn: str) -> None:
        with self._connection() as conn:
            removed = conn.execute(f"DELETE FROM {BOOKS_TABLE} WHERE isbn = ?", (isbn,)).rowcount
        if removed == 0:
            raise BookNotFoundError(isbn)
        logger.info(f"Removed book {isbn}")

    def import_books(self, records: Iterable[Any]) -> Tuple[int, List[str]]:
        """Validate and insert each record, skipping invalid or conflicting ones.

        Returns the number of books created and one message per skipped record.
        """
        created = 0
        problems: List[str] = []
        for index, record in enumerate(records):
            try:
                self.create_book(validate_book(record))
                created += 1
            except BookValidationError as e:
                problems.append(f"record {index}: " + "; ".join(e.messages))
            except StorageError as e:
                problems.append(f"record {index}: {e.details.get('detail', e.message)}")
        return created, problems

    def count_books(self) -> int:
        with self._connection() as conn:
            return conn.execute(f"SELECT COUNT(*) FROM {BOOKS_TABLE}").fetchone()[0]

    def clear(self) -> int:
        """Delete every book. Returns the number of rows removed."""
        with self._connection() as conn:
            removed = conn.execute(f"DELETE FROM {BOOKS_TABLE}").rowcount
        logger.info(f"Cleared {removed} books")
        return removed

    def close(self) -> None:
        self.pool.close()

    # ------------------------- Helpers ------------------------- #
    @contextmanager
    def _connection(self, values: Optional[Dict[str, Any]] = None) -> Iterator[sqlite3.Connection]:
        """Pooled connection whose driver failures are raised as StorageError.

        ``values`` is the row being written, used to name the offending key.
        OverflowError is the driver's rejection of integers outside 64 bits.
        """
        try:
            with self.pool.connection() as conn:
                yield conn
        except (sqlite3.Error, OverflowError) as e:
            details = describe_error(e, values)
            logger.warning(f"Storage error: {details['message']}")
            raise StorageError(details) from e
