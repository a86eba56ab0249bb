"""
Credential store: user registration and password verification.

Passwords are hashed with bcrypt through passlib's CryptContext. Hashing is
CPU bound, so it runs in the threadpool to keep the event loop free.
"""

from typing import Optional, Union

import structlog
from fastapi.concurrency import run_in_threadpool
from passlib.context import CryptContext
from pymongo.errors import DuplicateKeyError, PyMongoError

from bookstore.database import MongoDBManager
from bookstore.errors import DuplicateIdentityError, StoreError, ValidationError
from bookstore.models import User
from utilities.config import BookstoreConfig

logger = structlog.get_logger(__name__)


class CredentialStore:
    """Owns user records and their password digests."""

    def __init__(self, db: MongoDBManager, config: BookstoreConfig):
        self.db = db
        self.pwd_context = CryptContext(
            schemes=["bcrypt"],
            deprecated="auto",
            bcrypt__rounds=config.bcrypt_rounds,
        )

    def hash_password(self, password: str) -> str:
        return self.pwd_context.hash(password)

    def check_password(self, password: str, password_hash: str) -> bool:
        return self.pwd_context.verify(password, password_hash)

    async def find_user(self, username: str) -> Optional[User]:
        try:
            document = await self.db.users.find_one({"username": username})
        except PyMongoError as e:
            logger.error("Failed to look up user", username=username, error=str(e))
            raise StoreError(f"Database error during user lookup: {e}") from e
        return User.from_document(document) if document else None

    async def register(self, username: Optional[str], password: Optional[str]) -> User:
        """
        Register a new user.

        Args:
            username: Desired username; surrounding whitespace is dropped
            password: Plain text password, hashed before storage

        Returns:
            The stored User, including its id

        Raises:
            ValidationError: If username or password is missing
            DuplicateIdentityError: If the username is taken
            StoreError: On any other database failure
        """
        username = (username or "").strip()
        if not username or not password:
            raise ValidationError("Username and password required")

        if await self.find_user(username):
            raise DuplicateIdentityError("User already exists")

        password_hash = await run_in_threadpool(self.hash_password, password)
        document = {"username": username, "password_hash": password_hash}

        try:
            result = await self.db.users.insert_one(document)
        except DuplicateKeyError:
            # Lost a race with a concurrent registration of the same name
            raise DuplicateIdentityError("User already exists")
        except PyMongoError as e:
            logger.error("Failed to register user", username=username, error=str(e))
            raise StoreError(f"Error registering user: {e}") from e

        logger.info("User registered", username=username)
        return User(id=str(result.inserted_id), username=username, password_hash=password_hash)

    async def verify(self, username: Optional[str], password: Optional[str]) -> Union[User, bool]:
        """
        Check a username/password pair.

        Returns:
            The matching User, or False for an unknown user or wrong password
        """
        username = (username or "").strip()
        if not username or not password:
            return False

        user = await self.find_user(username)
        if user is None:
            # Burn a hash comparison so unknown users cost the same as bad passwords
            await run_in_threadpool(self.pwd_context.dummy_verify)
            logger.info("Login attempt for unknown user", username=username)
            return False

        if not await run_in_threadpool(self.check_password, password, user.password_hash):
            logger.info("Login attempt with wrong password", username=username)
            return False

        return user
