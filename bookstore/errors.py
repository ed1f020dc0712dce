from __future__ import annotations

from typing import Any, Dict, List, Union

from bookstore.config import settings

Message = Union[str, List[str]]


class BookstoreError(Exception):
    """Base error carrying an HTTP status and a client-facing message."""

    status: int = 500

    def __init__(self, message: Message, status: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status is not None:
            self.status = status

    def to_dict(self) -> Dict[str, Any]:
        return {"message": self.message, "error": {"message": self.message, "status": self.status}}


class BookValidationError(BookstoreError):
    """Raised when a payload does not match the book schema."""

    status = 400

    def __init__(self, messages: List[str]) -> None:
        super().__init__(list(messages))
        self.messages = list(messages)


class BookNotFoundError(BookstoreError, LookupError):
    status = 404

    def __init__(self, isbn: str) -> None:
        super().__init__(f"There is no book with an isbn '{isbn}'")
        self.isbn = isbn


class StorageError(BookstoreError):
    """Wraps a native driver error; its details are returned to the client unchanged."""

    def __init__(self, details: Dict[str, Any], status: int | None = None) -> None:
        super().__init__(details.get("message", "Storage error"),
                         status if status is not None else settings.storage_error_status)
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        error = {k: v for k, v in self.details.items() if k != "message"}
        return {"message": self.message, "error": error}
