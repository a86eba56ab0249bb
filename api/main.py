"""
FastAPI main application for the Bookstore Catalogue API.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

import structlog
from fastapi import Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.auth import TokenService, get_current_identity, get_token_service
from api.models import (
    BookCreateRequest, BookListResponse, BookResponse, CredentialsRequest,
    ErrorResponse, HealthResponse, LoginResponse, RegisterResponse,
    ReviewListResponse, ReviewRequest
)
from bookstore import errors
from bookstore.books import BookCatalogue
from bookstore.database import MongoDBManager
from bookstore.models import Identity
from bookstore.reviews import ReviewLedger
from bookstore.users import CredentialStore
from utilities.config import BookstoreConfig
from utilities.logger import log_requests, setup_logging

logger = structlog.get_logger(__name__)

# Resolved along the exception's MRO, so subclasses inherit their family's status
ERROR_STATUS = {
    errors.ValidationError: status.HTTP_400_BAD_REQUEST,
    errors.DuplicateIdentityError: status.HTTP_400_BAD_REQUEST,
    errors.DuplicateIsbnError: status.HTTP_400_BAD_REQUEST,
    errors.InvalidCredentialsError: status.HTTP_401_UNAUTHORIZED,
    errors.UnauthenticatedError: status.HTTP_403_FORBIDDEN,
    errors.NotFoundError: status.HTTP_404_NOT_FOUND,
    errors.StoreError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def status_for(exc: errors.BookstoreError) -> int:
    for cls in type(exc).__mro__:
        if cls in ERROR_STATUS:
            return ERROR_STATUS[cls]
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def error_response(status_code: int, error: str, detail: Optional[str] = None, headers=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=error, detail=detail, status_code=status_code).model_dump(),
        headers=headers
    )


def build_services(app: FastAPI, db: MongoDBManager, config: BookstoreConfig) -> None:
    """Wire every component onto ``app.state``, each with its own config reference."""
    catalogue = BookCatalogue(db)
    app.state.db = db
    app.state.users = CredentialStore(db, config)
    app.state.tokens = TokenService(config)
    app.state.catalogue = catalogue
    app.state.reviews = ReviewLedger(catalogue)


# Dependency accessors
def get_credential_store(request: Request) -> CredentialStore:
    return request.app.state.users


def get_catalogue(request: Request) -> BookCatalogue:
    return request.app.state.catalogue


def get_review_ledger(request: Request) -> ReviewLedger:
    return request.app.state.reviews


def create_app(config: BookstoreConfig) -> FastAPI:
    """
    Build the FastAPI application.

    Services are created in the lifespan handler once MongoDB is reachable.
    Tests may assign replacements to ``app.state`` and skip the lifespan.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging(config)
        logger.info("Starting Bookstore Catalogue API")

        db = MongoDBManager(config)
        try:
            await db.connect()
        except Exception as e:
            logger.error("Failed to connect to database", error=str(e))
            raise

        build_services(app, db, config)

        yield

        logger.info("Shutting down Bookstore Catalogue API")
        await db.disconnect()

    app = FastAPI(
        title=config.api_title,
        description="""
    A small bookstore catalogue.

    ## Features

    * **Accounts**: register and log in to receive a bearer token
    * **Catalogue**: add books and look them up by ISBN, author or title
    * **Reviews**: one review per user per book, editable and removable by its author

    ## Authentication

    Review changes require the token returned by `/login`:

    ```
    Authorization: Bearer your_token_here
    ```

    Tokens expire after one hour.
    """,
        version=config.api_version,
        lifespan=lifespan
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.middleware("http")(log_requests)

    # Exception handlers
    @app.exception_handler(errors.BookstoreError)
    async def bookstore_exception_handler(request: Request, exc: errors.BookstoreError):
        status_code = status_for(exc)
        if status_code >= 500:
            logger.error("Request failed", error=exc.message, path=request.url.path)
            return error_response(status_code, exc.message, detail=str(exc.__cause__ or exc))
        return error_response(status_code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return error_response(status.HTTP_400_BAD_REQUEST, "Invalid request body", detail=str(exc.errors()))

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return error_response(exc.status_code, str(exc.detail), headers=exc.headers)

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.error("Unhandled exception", error=str(exc), path=request.url.path)
        return error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Internal server error",
            detail=str(exc) if config.debug else None
        )

    # Health check endpoint
    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health_check(request: Request):
        db: Optional[MongoDBManager] = getattr(request.app.state, "db", None)
        db_status = "unavailable"
        if db is not None:
            health_info = await db.health_check()
            db_status = health_info.get("status", "unknown")

        return HealthResponse(
            status="healthy" if db_status == "healthy" else "degraded",
            timestamp=datetime.now(timezone.utc),
            version=config.api_version,
            database_status=db_status
        )

    # Account endpoints
    @app.post("/register", response_model=RegisterResponse, tags=["Accounts"])
    async def register(body: CredentialsRequest, users: CredentialStore = Depends(get_credential_store)):
        """Create an account. Usernames are unique."""
        user = await users.register(body.username, body.password)
        return RegisterResponse(message="User registered successfully", user_id=user.id)

    @app.post("/login", response_model=LoginResponse, tags=["Accounts"])
    async def login(
        body: CredentialsRequest,
        users: CredentialStore = Depends(get_credential_store),
        tokens: TokenService = Depends(get_token_service),
    ):
        """Exchange a username and password for a one-hour bearer token."""
        user = await users.verify(body.username, body.password)
        if not user:
            raise errors.InvalidCredentialsError("Invalid username or password")

        token = tokens.issue(user)
        return LoginResponse(message="Login successful", token=token)

    # Books endpoints
    @app.post("/books", response_model=BookResponse, status_code=status.HTTP_201_CREATED, tags=["Books"])
    async def add_book(body: BookCreateRequest, catalogue: BookCatalogue = Depends(get_catalogue)):
        book = await catalogue.create(body.isbn, body.title, body.author)
        return BookResponse(message="Book added successfully", data=book)

    @app.get("/books", response_model=BookListResponse, tags=["Books"])
    async def list_books(catalogue: BookCatalogue = Depends(get_catalogue)):
        books = await catalogue.list_all()
        return BookListResponse(message="All books fetched", data=books)

    @app.get("/books/{isbn}", response_model=BookResponse, tags=["Books"])
    async def get_book(isbn: str, catalogue: BookCatalogue = Depends(get_catalogue)):
        book = await catalogue.get_by_isbn(isbn)
        return BookResponse(message="Book fetched successfully", data=book)

    @app.get("/books/author/{author}", response_model=BookListResponse, tags=["Books"])
    async def get_books_by_author(author: str, catalogue: BookCatalogue = Depends(get_catalogue)):
        """
        Books by an author. The match is case-insensitive but must cover the
        whole author name.
        """
        books = await catalogue.find_by_author(author)
        return BookListResponse(message="Books by author fetched", data=books)

    @app.get("/books/title/{title}", response_model=BookListResponse, tags=["Books"])
    async def get_books_by_title(title: str, catalogue: BookCatalogue = Depends(get_catalogue)):
        books = await catalogue.find_by_title(title)
        return BookListResponse(message="Books by title fetched", data=books)

    # Reviews endpoints
    @app.get("/books/reviews/{isbn}", response_model=ReviewListResponse, tags=["Reviews"])
    async def get_reviews(isbn: str, ledger: ReviewLedger = Depends(get_review_ledger)):
        reviews = await ledger.list_reviews(isbn)
        return ReviewListResponse(message="Reviews fetched", reviews=reviews)

    @app.post("/books/auth/review/{isbn}", response_model=BookResponse, tags=["Reviews"])
    async def add_review(
        isbn: str,
        body: ReviewRequest,
        identity: Identity = Depends(get_current_identity),
        ledger: ReviewLedger = Depends(get_review_ledger),
    ):
        """Write the caller's review, replacing any earlier one."""
        book = await ledger.upsert(isbn, identity, body.review)
        return BookResponse(message="Review added successfully", data=book)

    @app.put("/books/auth/review/{isbn}", response_model=BookResponse, tags=["Reviews"])
    async def update_review(
        isbn: str,
        body: ReviewRequest,
        identity: Identity = Depends(get_current_identity),
        ledger: ReviewLedger = Depends(get_review_ledger),
    ):
        book = await ledger.update(isbn, identity, body.review)
        return BookResponse(message="Review updated successfully", data=book)

    @app.delete("/books/auth/review/{isbn}", response_model=BookResponse, tags=["Reviews"])
    async def delete_review(
        isbn: str,
        identity: Identity = Depends(get_current_identity),
        ledger: ReviewLedger = Depends(get_review_ledger),
    ):
        book = await ledger.delete(isbn, identity)
        return BookResponse(message="Review deleted successfully", data=book)

    return app


config = BookstoreConfig()
app = create_app(config)

