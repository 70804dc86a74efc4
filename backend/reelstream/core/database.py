"""
ReelStream MongoDB Database Client Module

This module provides async MongoDB connection management for ReelStream using
Motor (async MongoDB driver). It implements:
- A process-wide cached connection, created lazily on first use and shared by
  every request, so the service never reconnects per request
- Collection accessors for users and videos
- Index creation (unique email) run once per connection
- Health checks using the MongoDB ping command

The cache holds either the connected client or the in-flight connection attempt.
Concurrent callers that arrive while a connection is being established await the
same attempt. A failed attempt is discarded so the next caller starts a fresh one.
"""

import asyncio
import logging

from fastapi import HTTPException, status
from motor.motor_asyncio import (
    AsyncIOMotorClient,
    AsyncIOMotorCollection,
    AsyncIOMotorDatabase,
)
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import PyMongoError

from reelstream.config import Settings, get_settings


# Configure module logger for structured logging
logger = logging.getLogger(__name__)

# Collection name constants for consistency
USERS_COLLECTION = "users"
VIDEOS_COLLECTION = "videos"


class DatabaseConfigurationError(RuntimeError):
    """Raised when the database cannot be used because it is not configured."""


class DatabaseClient:
    """
    Async MongoDB client wrapper with connection pooling and lifecycle management.

    Attributes:
        _settings: Settings instance containing MongoDB configuration
        _mongodb_uri: MongoDB connection URI
        _db_name: Database name to connect to
        _client: Motor async MongoDB client instance
        _database: Motor async database instance

    Example usage:
        ```python
        db_client = DatabaseClient(get_settings())
        await db_client.connect()

        users = db_client.get_users_collection()
        await users.find_one({"email": "creator@example.com"})

        await db_client.close()
        ```
    """

    def __init__(self, settings: Settings) -> None:
        """
        Initialize DatabaseClient with configuration settings.

        Args:
            settings: Settings instance containing MongoDB configuration.

        Raises:
            DatabaseConfigurationError: If no MongoDB URI is configured.
        """
        if not settings.mongodb_uri:
            raise DatabaseConfigurationError("Please define the MONGODB_URI environment variable")

        self._settings = settings
        self._mongodb_uri = settings.mongodb_uri
        self._db_name = settings.mongodb_db_name
        self._client: AsyncIOMotorClient | None = None
        self._database: AsyncIOMotorDatabase | None = None

    @property
    def is_connected(self) -> bool:
        """True once connect() has succeeded and close() has not been called."""
        return self._database is not None

    async def connect(self) -> None:
        """
        Create the Motor client and verify the server answers a ping.

        The attempt is made once. Retrying is left to the connection cache,
        which starts a new attempt on the next request after a failure.

        Raises:
            PyMongoError: If the server cannot be reached.
        """
        logger.info("Connecting to MongoDB database: %s", self._db_name)

        client = AsyncIOMotorClient(
            self._mongodb_uri,
            minPoolSize=self._settings.mongodb_min_pool_size,
            maxPoolSize=self._settings.mongodb_max_pool_size,
            serverSelectionTimeoutMS=self._settings.mongodb_server_selection_timeout_ms,
        )

        try:
            await client.admin.command("ping")
        except PyMongoError:
            client.close()
            logger.exception("MongoDB ping failed for database: %s", self._db_name)
            raise

        self._client = client
        self._database = client[self._db_name]
        logger.info("Connected to MongoDB database: %s", self._db_name)

    async def close(self) -> None:
        """
        Gracefully close MongoDB connection and release resources.

        Safe to call even if not connected.
        """
        if self._client is None:
            return

        try:
            self._client.close()
            logger.info("MongoDB connection closed for database: %s", self._db_name)
        finally:
            self._client = None
            self._database = None

    async def ping(self) -> bool:
        """
        Health check using MongoDB admin ping command.

        Returns:
            bool: True if ping successful, False on failure.
        """
        if self._client is None:
            return False

        try:
            await self._client.admin.command("ping")
            return True
        except PyMongoError:
            logger.exception("MongoDB ping failed")
            return False

    def get_database(self) -> AsyncIOMotorDatabase:
        """
        Get the database instance for direct operations.

        Raises:
            RuntimeError: If not connected to MongoDB.
        """
        if self._database is None:
            raise RuntimeError("MongoDB database not available. Call connect() first.")
        return self._database

    def get_users_collection(self) -> AsyncIOMotorCollection:
        """
        Get the users collection.

        Documents hold the normalised email, the bcrypt password hash,
        the active flag and timestamps.
        """
        return self.get_database()[USERS_COLLECTION]

    def get_videos_collection(self) -> AsyncIOMotorCollection:
        """Get the videos collection for uploaded media records."""
        return self.get_database()[VIDEOS_COLLECTION]

    async def create_indexes(self) -> None:
        """
        Create database indexes.

        The unique index on users.email backs the duplicate check done before
        inserting a new user, so two concurrent registrations of one email
        cannot both succeed.
        """
        database = self.get_database()

        users = database[USERS_COLLECTION]
        await users.create_index("email", unique=True, name="email_unique_idx")
        await users.create_index([("created_at", DESCENDING)], name="created_at_idx")

        videos = database[VIDEOS_COLLECTION]
        await videos.create_index([("created_at", DESCENDING)], name="created_at_idx")
        await videos.create_index(
            [("user_id", ASCENDING), ("created_at", DESCENDING)], name="user_created_idx"
        )

        logger.info("MongoDB indexes ensured for %s", self._db_name)


# Container class for the cached connection to avoid global statements
class _DatabaseClientContainer:
    """Holds the connected client and the in-flight connection attempt."""

    client: DatabaseClient | None = None
    pending: "asyncio.Future[DatabaseClient] | None" = None


_container = _DatabaseClientContainer()


async def _open_client(settings: Settings) -> DatabaseClient:
    client = DatabaseClient(settings)
    await client.connect()
    try:
        await client.create_indexes()
    except PyMongoError:
        await client.close()
        raise
    return client


async def connect_db(settings: Settings | None = None) -> DatabaseClient:
    """
    Return the process-wide database client, connecting on first use.

    Args:
        settings: Optional Settings instance. Defaults to get_settings().

    Returns:
        DatabaseClient: The connected, cached client.

    Raises:
        DatabaseConfigurationError: If MONGODB_URI is not configured.
        PyMongoError: If the connection attempt fails. The failed attempt
            is dropped from the cache so the next call tries again.
    """
    if _container.client is not None:
        return _container.client

    if _container.pending is None:
        _container.pending = asyncio.ensure_future(_open_client(settings or get_settings()))

    pending = _container.pending
    try:
        # shield: a cancelled caller must not cancel the attempt other callers share
        client = await asyncio.shield(pending)
    except Exception:
        if _container.pending is pending:
            _container.pending = None
        raise

    _container.client = client
    return client


async def close_db() -> None:
    """
    Close the cached database client and clear the cache.

    Called during application shutdown.
    """
    client = _container.client
    _container.client = None
    _container.pending = None

    if client is not None:
        await client.close()


async def get_db() -> DatabaseClient:
    """
    FastAPI dependency yielding the cached database client.

    Connection problems surface as 503 so clients can retry later.
    """
    try:
        return await connect_db()
    except DatabaseConfigurationError as e:
        logger.error("Database is not configured: %s", e)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database unavailable",
        ) from e
    except PyMongoError as e:
        logger.error("Database connection failed: %s", e)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database unavailable",
        ) from e
