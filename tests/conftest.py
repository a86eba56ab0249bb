"""
Pytest configuration and shared fixtures.
"""

import copy
import re
from datetime import datetime

import pytest
from bson import ObjectId
from fastapi.testclient import TestClient
from unittest.mock import AsyncMock, MagicMock

from utilities.config import BookstoreConfig


def _matches(document, query):
    """Evaluate the subset of MongoDB filters the services use: equality and $regex."""
    for field, condition in query.items():
        value = document.get(field)
        if isinstance(condition, dict) and "$regex" in condition:
            flags = re.IGNORECASE if "i" in condition.get("$options", "") else 0
            if value is None or not re.search(condition["$regex"], value, flags):
                return False
        elif value != condition:
            return False
    return True


def make_collection(documents):
    """
    Create a mock motor collection whose calls read and write ``documents``.
    Returned documents are copies, as they would be from a real store.
    """
    async def find_one(query):
        for document in documents:
            if _matches(document, query):
                return copy.deepcopy(document)
        return None

    def find(query):
        cursor = MagicMock()
        cursor.to_list = AsyncMock(
            return_value=[copy.deepcopy(d) for d in documents if _matches(d, query)]
        )
        return cursor

    async def insert_one(document):
        document["_id"] = ObjectId()
        documents.append(copy.deepcopy(document))
        return MagicMock(inserted_id=document["_id"])

    async def update_one(query, update):
        for document in documents:
            if _matches(document, query):
                document.update(copy.deepcopy(update["$set"]))
                return MagicMock(matched_count=1, modified_count=1)
        return MagicMock(matched_count=0, modified_count=0)

    collection = MagicMock()
    collection.documents = documents
    collection.find_one = AsyncMock(side_effect=find_one)
    collection.find = MagicMock(side_effect=find)
    collection.insert_one = AsyncMock(side_effect=insert_one)
    collection.update_one = AsyncMock(side_effect=update_one)
    return collection


@pytest.fixture
def test_config():
    """Configuration with a fixed secret and a cheap bcrypt cost."""
    return BookstoreConfig(
        _env_file=None,
        secret_key="test-secret-key-for-unit-tests",
        bcrypt_rounds=4,
        mongodb_database="bookstore_test",
        log_format="console",
    )


@pytest.fixture
def sample_book_document():
    """A stored book with one review by alice."""
    return {
        "_id": ObjectId(),
        "isbn": "111",
        "title": "Title A",
        "author": "Author A",
        "reviews": [
            {"username": "alice", "review": "Great", "date": datetime(2024, 1, 15, 10, 30)}
        ]
    }


@pytest.fixture
def mock_db(sample_book_document):
    """Mock MongoDB manager with users and books collections backed by lists."""
    db = MagicMock()
    db.users = make_collection([])
    db.books = make_collection([sample_book_document])
    db.health_check = AsyncMock(return_value={"status": "healthy"})
    return db


@pytest.fixture
def live_client(test_config, mock_db):
    """TestClient running the real services over the mock database."""
    from api.main import build_services, create_app

    app = create_app(test_config)
    build_services(app, mock_db, test_config)
    return TestClient(app)
