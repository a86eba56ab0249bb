"""
Review ledger: the reviews embedded in each book.

Each book holds an ordered list of reviews with at most one entry per
username. For a given (book, user) pair the review is either absent or
present:

- upsert: absent -> present, or present -> present (old entry removed,
  new entry appended at the end)
- update: present -> present, text replaced in place
- delete: present -> absent

Every mutation reads the book, edits the list in memory and writes the
whole ``reviews`` array back with a single-document update, so a mutation
is persisted entirely or not at all. Concurrent mutations of the same book
by different users are last-write-wins.
"""

from typing import List, Optional

import structlog
from pymongo.errors import PyMongoError

from bookstore.books import BookCatalogue
from bookstore.errors import ReviewNotFoundError, StoreError, ValidationError
from bookstore.models import Book, Identity, Review

logger = structlog.get_logger(__name__)


def find_review_index(reviews: List[Review], username: str) -> int:
    """Position of ``username``'s review, or -1."""
    for index, review in enumerate(reviews):
        if review.username == username:
            return index
    return -1


def without_user(reviews: List[Review], username: str) -> List[Review]:
    return [review for review in reviews if review.username != username]


class ReviewLedger:
    """Add, replace, update, delete and list reviews on catalogue books."""

    def __init__(self, catalogue: BookCatalogue):
        self.catalogue = catalogue

    async def list_reviews(self, isbn: str) -> List[Review]:
        book = await self.catalogue.get_by_isbn(isbn)
        return book.reviews

    async def upsert(self, isbn: str, identity: Identity, text: Optional[str]) -> Book:
        """
        Create or replace the caller's review.

        Any earlier review by the same user is dropped and the new one is
        appended, so an edited review moves to the end of the list.

        Raises:
            ValidationError: If the review text is empty
            BookNotFoundError: If no book has this ISBN
        """
        if not text:
            raise ValidationError("Review text required")

        book = await self.catalogue.get_by_isbn(isbn)
        book.reviews = without_user(book.reviews, identity.username)
        book.reviews.append(Review(username=identity.username, review=text))

        await self._save_reviews(book)
        logger.info("Review added", isbn=isbn, username=identity.username)
        return book

    async def update(self, isbn: str, identity: Identity, text: Optional[str]) -> Book:
        """
        Replace the text of the caller's existing review, keeping its position.

        Raises:
            ValidationError: If the review text is empty
            BookNotFoundError: If no book has this ISBN
            ReviewNotFoundError: If the caller has not reviewed this book
        """
        if not text:
            raise ValidationError("Review text required")

        book = await self.catalogue.get_by_isbn(isbn)
        index = find_review_index(book.reviews, identity.username)
        if index == -1:
            raise ReviewNotFoundError("No review found for this user to update")

        book.reviews[index].review = text

        await self._save_reviews(book)
        logger.info("Review updated", isbn=isbn, username=identity.username)
        return book

    async def delete(self, isbn: str, identity: Identity) -> Book:
        """
        Remove the caller's review.

        Raises:
            BookNotFoundError: If no book has this ISBN
            ReviewNotFoundError: If the caller has not reviewed this book
        """
        book = await self.catalogue.get_by_isbn(isbn)
        initial_length = len(book.reviews)

        book.reviews = without_user(book.reviews, identity.username)
        if len(book.reviews) == initial_length:
            raise ReviewNotFoundError("Review not found for this user")

        await self._save_reviews(book)
        logger.info("Review deleted", isbn=isbn, username=identity.username)
        return book

    async def _save_reviews(self, book: Book) -> None:
        try:
            await self.catalogue.db.books.update_one(
                {"isbn": book.isbn},
                {"$set": {"reviews": book.review_documents()}}
            )
        except PyMongoError as e:
            logger.error("Failed to save reviews", isbn=book.isbn, error=str(e))
            raise StoreError(f"Database error while saving reviews: {e}") from e
