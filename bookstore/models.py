"""
Pydantic models for users, books and their embedded reviews.
Documents are stored in MongoDB with the same field names, minus ``id``.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


class Review(BaseModel):
    """A single user's review, embedded in its book."""
    username: str = Field(..., description="Author of the review")
    review: str = Field(..., description="Review text")
    date: datetime = Field(default_factory=utc_now, description="When the review was written")


class Book(BaseModel):
    """
    Catalogue entry with its ordered list of reviews.
    At most one review per username is kept in ``reviews``.
    """
    id: Optional[str] = Field(None, description="MongoDB document identifier")
    isbn: str = Field(..., description="Unique ISBN")
    title: str = Field(..., description="Book title")
    author: str = Field(..., description="Book author")
    reviews: List[Review] = Field(default_factory=list, description="Reviews in submission order")

    model_config = {
        "json_schema_extra": {
            "example": {
                "isbn": "9780261103573",
                "title": "The Fellowship of the Ring",
                "author": "J. R. R. Tolkien",
                "reviews": [
                    {"username": "alice", "review": "Great", "date": "2024-01-15T10:30:00Z"}
                ]
            }
        }
    }

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "Book":
        """Build a Book from a raw MongoDB document."""
        data = dict(document)
        object_id = data.pop("_id", None)
        if object_id is not None:
            data["id"] = str(object_id)
        return cls(**data)

    def to_document(self) -> Dict[str, Any]:
        """Serialize for insertion, leaving ``_id`` to MongoDB."""
        return self.model_dump(exclude={"id"})

    def review_documents(self) -> List[Dict[str, Any]]:
        return [review.model_dump() for review in self.reviews]


class User(BaseModel):
    """Registered user. Only the bcrypt digest of the password is kept."""
    id: Optional[str] = Field(None, description="MongoDB document identifier")
    username: str = Field(..., description="Unique username")
    password_hash: str = Field(..., description="bcrypt digest of the password")

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "User":
        data = dict(document)
        object_id = data.pop("_id", None)
        if object_id is not None:
            data["id"] = str(object_id)
        return cls(**data)


class Identity(BaseModel):
    """Trusted caller identity obtained from a verified token."""
    username: str
    id: str
