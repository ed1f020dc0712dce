from __future__ import annotations

from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from bookstore.book import BOOK_FIELDS, Book
from bookstore.errors import BookValidationError

# JSON schema type names reported in type mismatch messages
_JSON_TYPES: Dict[type, str] = {str: "string", int: "integer"}

# Range of the storage INTEGER column
INT64_MIN = -(2 ** 63)
INT64_MAX = 2 ** 63 - 1


class BookSchema(BaseModel):
    """Required fields of a book payload.

    Strict mode keeps basic JSON types as they are (no "264" -> 264 coercion);
    unknown keys are ignored and never reach the store.
    """

    model_config = ConfigDict(strict=True, extra="ignore")

    isbn: str
    amazon_url: str
    author: str
    language: str
    pages: int = Field(ge=INT64_MIN, le=INT64_MAX)
    publisher: str
    title: str
    year: int = Field(ge=INT64_MIN, le=INT64_MAX)


def _format_error(error: Dict[str, Any]) -> str:
    loc = error.get("loc") or ()
    if not loc:
        return "instance is not of a type(s) object"
    name = str(loc[0])
    if error["type"] == "missing":
        return f'instance requires property "{name}"'
    if error["type"] == "less_than_equal":
        return f"instance.{name} must be less than or equal to {error['ctx']['le']}"
    if error["type"] == "greater_than_equal":
        return f"instance.{name} must be greater than or equal to {error['ctx']['ge']}"
    annotation = BookSchema.model_fields[name].annotation
    expected = _JSON_TYPES.get(annotation, getattr(annotation, "__name__", str(annotation)))
    return f"instance.{name} is not of a type(s) {expected}"


def book_errors(payload: Any) -> List[str]:
    """Return the ordered list of violations for ``payload`` (empty when valid)."""
    try:
        BookSchema.model_validate(payload)
    except ValidationError as e:
        errors = e.errors()
        order = {name: i for i, name in enumerate(BOOK_FIELDS)}
        errors.sort(key=lambda err: order.get(str(err["loc"][0]), -1) if err.get("loc") else -1)
        return [_format_error(err) for err in errors]
    return []


def validate_book(payload: Any) -> Book:
    """Validate a create/update payload and return the Book it describes.

    An absent body is treated as an empty object.
    """
    if payload is None:
        payload = {}
    messages = book_errors(payload)
    if messages:
        raise BookValidationError(messages)
    schema = BookSchema.model_validate(payload)
    return Book(**schema.model_dump())
