from __future__ import annotations

from typing import Any, Dict, Tuple

# Field order matters: it drives validation messages, column order and serialization.
BOOK_FIELDS: Tuple[str, ...] = (
    "isbn",
    "amazon_url",
    "author",
    "language",
    "pages",
    "publisher",
    "title",
    "year",
)


class Book:
    """Represents a single book record in the store."""

    def __init__(self, isbn: str, amazon_url: str, author: str, language: str,
                 pages: int, publisher: str, title: str, year: int) -> None:
        self.isbn = isbn
        self.amazon_url = amazon_url
        self.author = author
        self.language = language
        self.pages = pages
        self.publisher = publisher
        self.title = title
        self.year = year

    def __str__(self) -> str:  # pragma: no cover - string formatting trivial
        return f"{self.title} by {self.author} (ISBN: {self.isbn})"

    def __repr__(self) -> str:  # pragma: no cover
        return f"Book(isbn={self.isbn!r}, title={self.title!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Book):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def to_dict(self) -> Dict[str, Any]:
        return {name: getattr(self, name) for name in BOOK_FIELDS}

    def to_row(self) -> Tuple[Any, ...]:
        return tuple(getattr(self, name) for name in BOOK_FIELDS)

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "Book":
        # Unknown keys are dropped; only declared fields are kept.
        return Book(**{name: data[name] for name in BOOK_FIELDS})
