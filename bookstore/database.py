"""
MongoDB connection management for the bookstore.
Handles connection, indexing and health checks for the users and books
collections.
"""

from typing import Any, Dict, Optional

import structlog
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection, AsyncIOMotorDatabase
from pymongo.errors import ConnectionFailure, PyMongoError

from utilities.config import BookstoreConfig

logger = structlog.get_logger(__name__)


class MongoDBManager:
    """
    Async MongoDB manager.
    Owns the motor client and exposes the ``users`` and ``books`` collections.
    """

    def __init__(self, config: BookstoreConfig):
        """
        Initialize MongoDB manager.

        Args:
            config: Service configuration (connection URL and database name)
        """
        self.connection_url = config.mongodb_url
        self.database_name = config.mongodb_database
        self.client: Optional[AsyncIOMotorClient] = None
        self.database: Optional[AsyncIOMotorDatabase] = None

    @property
    def users(self) -> AsyncIOMotorCollection:
        return self.database.users

    @property
    def books(self) -> AsyncIOMotorCollection:
        return self.database.books

    async def connect(self) -> None:
        """Establish connection to MongoDB and ensure indexes."""
        try:
            self.client = AsyncIOMotorClient(self.connection_url, tz_aware=True)
            self.database = self.client[self.database_name]

            # Test connection
            await self.client.admin.command("ping")
            logger.info("Successfully connected to MongoDB", database=self.database_name)

            await self._create_indexes()

        except ConnectionFailure as e:
            logger.error("Failed to connect to MongoDB", error=str(e))
            raise

    async def disconnect(self) -> None:
        """Close MongoDB connection."""
        if self.client:
            self.client.close()
            logger.info("Disconnected from MongoDB")

    async def _create_indexes(self) -> None:
        """
        Create the unique indexes backing username and ISBN uniqueness.
        Pre-checks in the services give friendly errors; the indexes close
        the race between two concurrent inserts.
        """
        try:
            await self.users.create_index("username", unique=True)
            await self.books.create_index("isbn", unique=True)
            await self.books.create_index("author")
            await self.books.create_index("title")
            logger.info("Successfully created MongoDB indexes")

        except PyMongoError as e:
            logger.error("Failed to create indexes", error=str(e))
            raise

    async def health_check(self) -> Dict[str, Any]:
        """
        Perform database health check.

        Returns:
            Dictionary with health status
        """
        if self.database is None:
            return {"status": "unhealthy", "error": "not connected"}

        try:
            await self.database.command("ping")
            return {
                "status": "healthy",
                "users_count": await self.users.estimated_document_count(),
                "books_count": await self.books.estimated_document_count(),
            }
        except PyMongoError as e:
            logger.error("Database health check failed", error=str(e))
            return {
                "status": "unhealthy",
                "error": str(e)
            }
