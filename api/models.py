"""
API request and response schemas for the FastAPI application.

Request fields are optional at the schema level; the services report
missing values as validation errors so they surface as 400 rather than 422.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from bookstore.models import Book, Review


class CredentialsRequest(BaseModel):
    """Body for /register and /login."""
    username: Optional[str] = Field(None, description="Username")
    password: Optional[str] = Field(None, description="Plain text password")


class BookCreateRequest(BaseModel):
    """Body for adding a book."""
    isbn: Optional[str] = Field(None, description="Unique ISBN")
    title: Optional[str] = Field(None, description="Book title")
    author: Optional[str] = Field(None, description="Book author")


class ReviewRequest(BaseModel):
    """Body for adding or updating a review."""
    review: Optional[str] = Field(None, description="Review text")


class RegisterResponse(BaseModel):
    message: str = Field(..., description="Outcome message")
    user_id: str = Field(..., description="Identifier of the new user")


class LoginResponse(BaseModel):
    message: str = Field(..., description="Outcome message")
    token: str = Field(..., description="Bearer token, valid for one hour")


class BookResponse(BaseModel):
    """Envelope holding a single book."""
    message: str = Field(..., description="Outcome message")
    data: Book = Field(..., description="The book")


class BookListResponse(BaseModel):
    """Envelope holding a list of books."""
    message: str = Field(..., description="Outcome message")
    data: List[Book] = Field(..., description="Matching books")


class ReviewListResponse(BaseModel):
    message: str = Field(..., description="Outcome message")
    reviews: List[Review] = Field(..., description="Reviews in submission order")


class ErrorResponse(BaseModel):
    """Error response model."""
    error: str = Field(..., description="Error message")
    detail: Optional[str] = Field(None, description="Additional error details")
    status_code: int = Field(..., description="HTTP status code")


class HealthResponse(BaseModel):
    """Health check response model."""
    status: str = Field(..., description="Service status")
    timestamp: datetime = Field(..., description="Current timestamp")
    version: str = Field(..., description="API version")
    database_status: str = Field(..., description="Database connection status")
