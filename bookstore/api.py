from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, List, Optional

from fastapi import Body, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.exceptions import HTTPException as StarletteHTTPException

from bookstore.config import settings
from bookstore.errors import BookstoreError, StorageError
from bookstore.store import BookStore
from bookstore.validators import validate_book

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

# Global store instance, created on first use or at startup
store: Optional[BookStore] = None


def get_store() -> BookStore:
    """Dependency returning the shared BookStore."""
    global store
    if store is None:
        store = BookStore(db_file=settings.database_file)
    return store


@asynccontextmanager
async def lifespan(app: FastAPI):
    global store
    get_store()
    logger.info(f"{settings.app_name} using database {store.db_file}")
    try:
        yield
    finally:
        if store:
            store.close()
            store = None


app = FastAPI(title=settings.app_name, version=settings.app_version, debug=settings.debug, lifespan=lifespan)

# --- CORS ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def add_security_headers(request: Request, call_next):
    response = await call_next(request)
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    return response


# --- Error handlers ---
@app.exception_handler(BookstoreError)
async def bookstore_error_handler(request: Request, exc: BookstoreError):
    if exc.status >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status, content=exc.to_dict())


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    error = BookstoreError(exc.detail, exc.status_code)
    return JSONResponse(status_code=exc.status_code, content=error.to_dict(), headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    # Reached for bodies that are not valid JSON; schema checks happen in validate_book
    error = BookstoreError([err.get("msg", "Invalid request") for err in exc.errors()], 400)
    return JSONResponse(status_code=400, content=error.to_dict())


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    error = BookstoreError(str(exc) or type(exc).__name__, 500)
    return JSONResponse(status_code=500, content=error.to_dict())


# --- Models ---
class BookModel(BaseModel):
    isbn: str
    amazon_url: str
    author: str
    language: str
    pages: int
    publisher: str
    title: str
    year: int


class BookResponse(BaseModel):
    book: BookModel


class BooksResponse(BaseModel):
    books: List[BookModel]


class MessageResponse(BaseModel):
    message: str


class HealthModel(BaseModel):
    status: str
    timestamp: str
    total_books: int
    db: bool


# --- Health Check ---
@app.get("/health", response_model=HealthModel)
def health(books: BookStore = Depends(get_store)):
    """Lightweight health endpoint; reports whether the database answers."""
    try:
        total = books.count_books()
        db_ok = True
    except StorageError as e:
        logger.warning(f"Health check could not reach the database: {e}")
        total, db_ok = 0, False
    return HealthModel(
        status="healthy" if db_ok else "degraded",
        timestamp=datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        total_books=total,
        db=db_ok,
    )


# --- Book endpoints ---
@app.get("/books", response_model=BooksResponse)
def list_books(books: BookStore = Depends(get_store)):
    return {"books": [b.to_dict() for b in books.list_books()]}


@app.get("/books/{isbn}", response_model=BookResponse)
def get_book(isbn: str, books: BookStore = Depends(get_store)):
    return {"book": books.get_book(isbn).to_dict()}


@app.post("/books", response_model=BookResponse, status_code=201)
def create_book(payload: Any = Body(default=None), books: BookStore = Depends(get_store)):
    book = validate_book(payload)
    return {"book": books.create_book(book).to_dict()}


@app.put("/books/{isbn}", response_model=BookResponse)
def update_book(isbn: str, payload: Any = Body(default=None), books: BookStore = Depends(get_store)):
    book = validate_book(payload)
    return {"book": books.update_book(isbn, book).to_dict()}


@app.delete("/books/{isbn}", response_model=MessageResponse)
def delete_book(isbn: str, books: BookStore = Depends(get_store)):
    books.remove_book(isbn)
    return {"message": "Book deleted"}
