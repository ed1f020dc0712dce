from fastapi.testclient import TestClient

from conftest import BOOK
from bookstore.api import app, get_store
from bookstore.config import settings

ALL_MISSING = [
    'instance requires property "isbn"',
    'instance requires property "amazon_url"',
    'instance requires property "author"',
    'instance requires property "language"',
    'instance requires property "pages"',
    'instance requires property "publisher"',
    'instance requires property "title"',
    'instance requires property "year"',
]


def _error_body(message, status):
    return {"message": message, "error": {"message": message, "status": status}}


# --- GET /books ---
def test_get_all_books(client):
    response = client.get("/books")
    assert response.status_code == 200
    assert response.json() == {"books": [BOOK]}


def test_get_all_books_empty(client, store):
    store.clear()
    response = client.get("/books")
    assert response.status_code == 200
    assert response.json() == {"books": []}


# --- GET /books/{isbn} ---
def test_get_book_by_isbn(client):
    response = client.get(f"/books/{BOOK['isbn']}")
    assert response.status_code == 200
    assert response.json() == {"book": BOOK}


def test_get_book_not_found(client):
    response = client.get("/books/DNE")
    assert response.status_code == 404
    assert response.json() == _error_body("There is no book with an isbn 'DNE'", 404)


# --- POST /books ---
def test_create_book(client, store):
    store.clear()
    response = client.post("/books", json=BOOK)
    assert response.status_code == 201
    assert response.json() == {"book": BOOK}

    response = client.get(f"/books/{BOOK['isbn']}")
    assert response.json() == {"book": BOOK}


def test_create_duplicate_book(client):
    response = client.post("/books", json=BOOK)
    assert response.status_code == 500
    body = response.json()
    assert body["message"].startswith("UNIQUE constraint failed")
    assert body["error"]["constraint"] == "books_pkey"
    assert body["error"]["detail"] == "Key (isbn)=(0691161518) already exists."
    assert body["error"]["table"] == "books"
    assert body["error"]["name"] == "IntegrityError"
    assert body["error"]["code"].startswith("SQLITE_")


def test_create_duplicate_book_with_conflict_status(client, monkeypatch):
    monkeypatch.setattr(settings, "storage_error_status", 409)
    response = client.post("/books", json=BOOK)
    assert response.status_code == 409
    assert response.json()["error"]["constraint"] == "books_pkey"


def test_create_with_empty_body(client):
    response = client.post("/books")
    assert response.status_code == 400
    assert response.json() == _error_body(ALL_MISSING, 400)


def test_create_with_empty_object(client):
    response = client.post("/books", json={})
    assert response.status_code == 400
    assert response.json() == _error_body(ALL_MISSING, 400)


def test_create_with_incomplete_body(client, book_data):
    del book_data["amazon_url"]
    book_data["isbn"] = "1234567890"
    response = client.post("/books", json=book_data)
    assert response.status_code == 400
    assert response.json() == _error_body(['instance requires property "amazon_url"'], 400)
    assert client.get("/books/1234567890").status_code == 404


def test_create_with_extra_fields(client, book_data):
    book_data["isbn"] = "1234567890"
    response = client.post("/books", json={**book_data, "extra": "EXTRA"})
    assert response.status_code == 201
    assert response.json() == {"book": book_data}
    assert "extra" not in client.get("/books/1234567890").json()["book"]


def test_create_with_wrong_type(client, book_data):
    book_data["isbn"] = "1234567890"
    book_data["pages"] = "264"
    response = client.post("/books", json=book_data)
    assert response.status_code == 400
    assert response.json()["message"] == ["instance.pages is not of a type(s) integer"]


def test_create_with_non_object_body(client):
    response = client.post("/books", json=["not", "a", "book"])
    assert response.status_code == 400
    assert response.json()["message"] == ["instance is not of a type(s) object"]


def test_create_with_malformed_json(client):
    response = client.post("/books", content=b"{not json", headers={"Content-Type": "application/json"})
    assert response.status_code == 400
    body = response.json()
    assert body["error"]["status"] == 400
    assert isinstance(body["message"], list) and body["message"]


# --- PUT /books/{isbn} ---
def test_update_book(client, book_data):
    book_data["title"] = "NEW_TITLE"
    response = client.put(f"/books/{BOOK['isbn']}", json=book_data)
    assert response.status_code == 200
    assert response.json() == {"book": book_data}
    assert client.get(f"/books/{BOOK['isbn']}").json() == {"book": book_data}


def test_update_book_changes_isbn(client, book_data):
    book_data["isbn"] = "1111111111"
    response = client.put(f"/books/{BOOK['isbn']}", json=book_data)
    assert response.status_code == 200
    assert client.get(f"/books/{BOOK['isbn']}").status_code == 404
    assert client.get("/books/1111111111").json() == {"book": book_data}


def test_update_book_to_existing_isbn(client, book_data):
    other = {**book_data, "isbn": "2222222222"}
    assert client.post("/books", json=other).status_code == 201

    response = client.put("/books/2222222222", json=book_data)
    assert response.status_code == 500
    assert response.json()["error"]["constraint"] == "books_pkey"


def test_update_book_not_found(client, book_data):
    response = client.put("/books/DNE", json=book_data)
    assert response.status_code == 404
    assert response.json() == _error_body("There is no book with an isbn 'DNE'", 404)


def test_update_with_incomplete_body(client, book_data):
    del book_data["amazon_url"]
    book_data["title"] = "NEW_TITLE"
    response = client.put(f"/books/{BOOK['isbn']}", json=book_data)
    assert response.status_code == 400
    assert response.json() == _error_body(['instance requires property "amazon_url"'], 400)
    assert client.get(f"/books/{BOOK['isbn']}").json() == {"book": BOOK}


def test_update_with_empty_body(client):
    response = client.put(f"/books/{BOOK['isbn']}")
    assert response.status_code == 400
    assert response.json() == _error_body(ALL_MISSING, 400)


# --- DELETE /books/{isbn} ---
def test_delete_book(client):
    response = client.delete(f"/books/{BOOK['isbn']}")
    assert response.status_code == 200
    assert response.json() == {"message": "Book deleted"}
    assert client.get(f"/books/{BOOK['isbn']}").status_code == 404


def test_delete_book_not_found(client):
    response = client.delete("/books/DNE")
    assert response.status_code == 404
    assert response.json() == _error_body("There is no book with an isbn 'DNE'", 404)


# --- Misc ---
def test_unknown_route(client):
    response = client.get("/nope")
    assert response.status_code == 404
    assert response.json() == _error_body("Not Found", 404)


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["db"] is True
    assert body["total_books"] == 1


def test_security_headers(client):
    response = client.get("/books")
    assert response.headers["X-Content-Type-Options"] == "nosniff"


def test_create_with_integer_out_of_storage_range(client, book_data):
    book_data["isbn"] = "1234567890"
    book_data["pages"] = 10 ** 20
    response = client.post("/books", json=book_data)
    assert response.status_code == 400
    assert response.json() == _error_body(
        ["instance.pages must be less than or equal to 9223372036854775807"], 400
    )


def _drop_books_table(store):
    with store.pool.connection() as conn:
        conn.execute("DROP TABLE books")


def test_read_storage_failure_returns_driver_error(client, store):
    _drop_books_table(store)
    for response in (client.get("/books"), client.get(f"/books/{BOOK['isbn']}"), client.delete("/books/x")):
        assert response.status_code == 500
        assert response.headers["content-type"].startswith("application/json")
        body = response.json()
        assert "no such table" in body["message"]
        assert body["error"]["name"] == "OperationalError"
        assert body["error"]["severity"] == "ERROR"


def test_health_reports_storage_failure(client, store):
    _drop_books_table(store)
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["db"] is False
    assert response.json()["status"] == "degraded"


def test_unexpected_error_uses_error_shape(store, monkeypatch):
    def boom():
        raise RuntimeError("boom")

    monkeypatch.setattr(store, "list_books", boom)
    app.dependency_overrides[get_store] = lambda: store
    try:
        response = TestClient(app, raise_server_exceptions=False).get("/books")
    finally:
        app.dependency_overrides.clear()
    assert response.status_code == 500
    assert response.json() == _error_body("boom", 500)
