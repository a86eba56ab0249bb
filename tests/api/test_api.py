"""
Tests for the FastAPI application with mocked services.
"""

import pytest
from bson import ObjectId
from fastapi.testclient import TestClient
from unittest.mock import AsyncMock

from api.auth import TokenService
from api.main import create_app
from bookstore.books import BookCatalogue
from bookstore.errors import (
    BookNotFoundError, DuplicateIsbnError, NotFoundError, ReviewNotFoundError,
    StoreError, ValidationError
)
from bookstore.models import Book, Identity, Review, User
from bookstore.reviews import ReviewLedger
from bookstore.users import CredentialStore


@pytest.fixture
def app(test_config):
    app = create_app(test_config)
    app.state.users = AsyncMock(spec=CredentialStore)
    app.state.catalogue = AsyncMock(spec=BookCatalogue)
    app.state.reviews = AsyncMock(spec=ReviewLedger)
    app.state.tokens = TokenService(test_config)
    return app


@pytest.fixture
def client(app):
    """Create test client."""
    return TestClient(app)


@pytest.fixture
def auth_headers(app):
    user = User(id=str(ObjectId()), username="alice", password_hash="x")
    return {"Authorization": f"Bearer {app.state.tokens.issue(user)}"}


@pytest.fixture
def book():
    return Book(
        id=str(ObjectId()),
        isbn="111",
        title="Title A",
        author="Author A",
        reviews=[Review(username="alice", review="Great")]
    )


def test_health_check_without_database(client):
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "degraded"
    assert data["database_status"] == "unavailable"
    assert "timestamp" in data
    assert "version" in data


def test_request_id_header(client, app):
    app.state.catalogue.list_all.return_value = []

    response = client.get("/books", headers={"X-Request-ID": "req-123"})

    assert response.headers["X-Request-ID"] == "req-123"


def test_register_success(client, app):
    app.state.users.register.return_value = User(id="abc123", username="alice", password_hash="x")

    response = client.post("/register", json={"username": "alice", "password": "pw1"})

    assert response.status_code == 200
    assert response.json()["user_id"] == "abc123"
    app.state.users.register.assert_awaited_once_with("alice", "pw1")


def test_register_missing_fields(client, app):
    app.state.users.register.side_effect = ValidationError("Username and password required")

    response = client.post("/register", json={"username": "alice"})

    assert response.status_code == 400
    assert response.json()["error"] == "Username and password required"


def test_register_store_error_surfaces_message(client, app):
    app.state.users.register.side_effect = StoreError("Error registering user: timeout")

    response = client.post("/register", json={"username": "alice", "password": "pw1"})

    assert response.status_code == 500
    assert "timeout" in response.json()["error"]


def test_invalid_json_body_is_bad_request(client):
    response = client.post(
        "/register", content="not json", headers={"Content-Type": "application/json"}
    )
    assert response.status_code == 400


def test_login_returns_token(client, app):
    app.state.users.verify.return_value = User(id="abc123", username="alice", password_hash="x")

    response = client.post("/login", json={"username": "alice", "password": "pw1"})

    assert response.status_code == 200
    identity = app.state.tokens.verify(response.json()["token"])
    assert identity == Identity(username="alice", id="abc123")


def test_login_invalid_credentials(client, app):
    app.state.users.verify.return_value = False

    response = client.post("/login", json={"username": "alice", "password": "nope"})

    assert response.status_code == 401
    assert response.json()["error"] == "Invalid username or password"


def test_add_book(client, app, book):
    app.state.catalogue.create.return_value = book.model_copy(update={"reviews": []})

    response = client.post("/books", json={"isbn": "111", "title": "Title A", "author": "Author A"})

    assert response.status_code == 201
    assert response.json()["data"]["reviews"] == []


def test_add_book_duplicate(client, app):
    app.state.catalogue.create.side_effect = DuplicateIsbnError("Book with this ISBN already exists")

    response = client.post("/books", json={"isbn": "111", "title": "Title A", "author": "Author A"})

    assert response.status_code == 400


def test_list_books(client, app, book):
    app.state.catalogue.list_all.return_value = [book]

    response = client.get("/books")

    assert response.status_code == 200
    assert [b["isbn"] for b in response.json()["data"]] == ["111"]


def test_book_by_isbn(client, app, book):
    app.state.catalogue.get_by_isbn.return_value = book

    response = client.get("/books/111")

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["title"] == "Title A"
    assert data["reviews"][0]["username"] == "alice"


def test_book_not_found(client, app):
    app.state.catalogue.get_by_isbn.side_effect = BookNotFoundError("Book not found")

    response = client.get("/books/nonexistent")

    assert response.status_code == 404


def test_books_by_author_empty(client, app):
    app.state.catalogue.find_by_author.side_effect = NotFoundError("No books found")

    response = client.get("/books/author/Nobody")

    assert response.status_code == 404
    app.state.catalogue.find_by_author.assert_awaited_once_with("Nobody")


def test_books_by_title(client, app, book):
    app.state.catalogue.find_by_title.return_value = [book]

    response = client.get("/books/title/Title%20A")

    assert response.status_code == 200
    app.state.catalogue.find_by_title.assert_awaited_once_with("Title A")


def test_reviews_endpoint(client, app, book):
    app.state.reviews.list_reviews.return_value = book.reviews

    response = client.get("/books/reviews/111")

    assert response.status_code == 200
    assert response.json()["reviews"][0]["review"] == "Great"


@pytest.mark.parametrize("method", ["post", "put", "delete"])
def test_review_endpoints_require_token(client, method):
    """Missing Authorization header is rejected with 403."""
    response = client.request(method.upper(), "/books/auth/review/111", json={"review": "x"})
    assert response.status_code == 403
    assert response.json()["error"] == "Token missing"


def test_review_endpoint_rejects_bad_token(client):
    response = client.post(
        "/books/auth/review/111",
        json={"review": "x"},
        headers={"Authorization": "Bearer not-a-token"}
    )
    assert response.status_code == 403
    assert response.json()["error"] == "Invalid token"


def test_add_review_passes_identity(client, app, auth_headers, book):
    app.state.reviews.upsert.return_value = book

    response = client.post("/books/auth/review/111", json={"review": "Great"}, headers=auth_headers)

    assert response.status_code == 200
    isbn, identity, text = app.state.reviews.upsert.call_args.args
    assert (isbn, identity.username, text) == ("111", "alice", "Great")


def test_add_review_without_text(client, app, auth_headers):
    app.state.reviews.upsert.side_effect = ValidationError("Review text required")

    response = client.post("/books/auth/review/111", json={}, headers=auth_headers)

    assert response.status_code == 400


def test_update_review_not_found(client, app, auth_headers):
    app.state.reviews.update.side_effect = ReviewNotFoundError("No review found for this user to update")

    response = client.put("/books/auth/review/111", json={"review": "x"}, headers=auth_headers)

    assert response.status_code == 404


def test_delete_review(client, app, auth_headers, book):
    app.state.reviews.delete.return_value = book.model_copy(update={"reviews": []})

    response = client.delete("/books/auth/review/111", headers=auth_headers)

    assert response.status_code == 200
    assert response.json()["data"]["reviews"] == []
