"""
Domain exceptions raised by the bookstore services.

The API layer maps each exception family to an HTTP status code; services
never deal in status codes themselves.
"""


class BookstoreError(Exception):
    """Base class for all bookstore errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(BookstoreError):
    """A required field is missing or empty."""


class DuplicateIdentityError(BookstoreError):
    """A user with this username already exists."""


class DuplicateIsbnError(BookstoreError):
    """A book with this ISBN already exists."""


class NotFoundError(BookstoreError):
    """The requested record does not exist or a query matched nothing."""


class BookNotFoundError(NotFoundError):
    """No book with the given ISBN."""


class ReviewNotFoundError(NotFoundError):
    """The user has no review on the given book."""


class InvalidCredentialsError(BookstoreError):
    """Login failed: unknown username or wrong password."""


class UnauthenticatedError(BookstoreError):
    """No bearer token was supplied on a protected call."""


class InvalidTokenError(UnauthenticatedError):
    """The bearer token is malformed, badly signed or expired."""


class StoreError(BookstoreError):
    """Unexpected failure of the document store."""
