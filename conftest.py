import pytest
from fastapi.testclient import TestClient

from bookstore.api import app, get_store
from bookstore.book import Book
from bookstore.store import BookStore

BOOK = {
    "isbn": "0691161518",
    "amazon_url": "http://a.co/eobPtX2",
    "author": "Matthew Lane",
    "language": "english",
    "pages": 264,
    "publisher": "Princeton University Press",
    "title": "Power-Up: Unlocking the Hidden Mathematics in Video Games",
    "year": 2017,
}


@pytest.fixture
def book_data():
    # Fresh copy per test so tests can mutate it freely
    return dict(BOOK)


@pytest.fixture
def empty_store(tmp_path, request):
    # Unique database file per test
    db_file = str(tmp_path / f"test_{request.node.name}.db")
    store = BookStore(db_file=db_file)
    yield store
    store.close()


@pytest.fixture
def store(empty_store):
    empty_store.create_book(Book.from_dict(BOOK))
    return empty_store


@pytest.fixture
def client(store):
    app.dependency_overrides[get_store] = lambda: store
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
