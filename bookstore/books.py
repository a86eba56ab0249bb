"""
Book catalogue: creation and lookup of books by ISBN, author and title.
"""

import re
from typing import Any, Dict, List, Optional

import structlog
from pymongo.errors import DuplicateKeyError, PyMongoError

from bookstore.database import MongoDBManager
from bookstore.errors import (
    BookNotFoundError, DuplicateIsbnError, NotFoundError, StoreError, ValidationError
)
from bookstore.models import Book

logger = structlog.get_logger(__name__)


def exact_match(value: str) -> Dict[str, str]:
    """Case-insensitive, whole-string regex filter for a literal value."""
    return {"$regex": f"^{re.escape(value)}$", "$options": "i"}


class BookCatalogue:
    """Owns book records in the ``books`` collection."""

    def __init__(self, db: MongoDBManager):
        self.db = db

    async def create(self, isbn: Optional[str], title: Optional[str], author: Optional[str]) -> Book:
        """
        Add a new book with an empty review list.

        Raises:
            ValidationError: If isbn, title or author is missing
            DuplicateIsbnError: If a book with this ISBN exists
            StoreError: On any other database failure
        """
        if not isbn or not title or not author:
            raise ValidationError("ISBN, title, and author are required")

        book = Book(isbn=isbn, title=title, author=author, reviews=[])

        try:
            if await self.db.books.find_one({"isbn": isbn}):
                raise DuplicateIsbnError("Book with this ISBN already exists")
            result = await self.db.books.insert_one(book.to_document())
        except DuplicateKeyError:
            raise DuplicateIsbnError("Book with this ISBN already exists")
        except PyMongoError as e:
            logger.error("Failed to create book", isbn=isbn, error=str(e))
            raise StoreError(f"Database error during book creation: {e}") from e

        book.id = str(result.inserted_id)
        logger.info("Book added", isbn=isbn, title=title)
        return book

    async def get_by_isbn(self, isbn: str) -> Book:
        """Fetch a book, raising BookNotFoundError if absent."""
        try:
            document = await self.db.books.find_one({"isbn": isbn})
        except PyMongoError as e:
            logger.error("Failed to get book", isbn=isbn, error=str(e))
            raise StoreError(f"Database error during book lookup: {e}") from e

        if not document:
            raise BookNotFoundError("Book not found")
        return Book.from_document(document)

    async def list_all(self) -> List[Book]:
        return await self._find({})

    async def find_by_author(self, author: str) -> List[Book]:
        """
        Books whose author equals ``author``, ignoring case.
        Substrings do not match.
        """
        books = await self._find({"author": exact_match(author)})
        if not books:
            raise NotFoundError("No books found")
        return books

    async def find_by_title(self, title: str) -> List[Book]:
        """Books whose title equals ``title``, ignoring case."""
        books = await self._find({"title": exact_match(title)})
        if not books:
            raise NotFoundError("No books found")
        return books

    async def _find(self, filter_query: Dict[str, Any]) -> List[Book]:
        try:
            cursor = self.db.books.find(filter_query)
            documents = await cursor.to_list(length=None)
        except PyMongoError as e:
            logger.error("Failed to query books", filter=filter_query, error=str(e))
            raise StoreError(f"Database error during book query: {e}") from e

        return [Book.from_document(document) for document in documents]
