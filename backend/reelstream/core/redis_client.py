"""
ReelStream Async Redis Client Module

Redis holds two kinds of short-lived records for ReelStream:

- login sessions (``session:{user_id}``), living as long as the access token
- user profile cache entries (``user:{user_id}``), living a few minutes

Redis is optional. When it is unavailable the API keeps working without
sessions or caching, so every operation here logs and returns a neutral value
instead of raising.

Usage:
    ```python
    from reelstream.core.redis_client import init_redis, get_redis_client

    await init_redis()

    client = get_redis_client()
    if client:
        await client.set_json("user:123", {"email": "creator@example.com"}, ttl=300)
    ```
"""

import asyncio
import json
import logging

from typing import Any

import redis.asyncio as redis

from redis.exceptions import RedisError

from reelstream.config import Settings, get_settings


logger = logging.getLogger(__name__)

# Timeouts for the TCP connect and for each command, in seconds
SOCKET_TIMEOUT_SECONDS = 5.0


class _RedisClientContainer:
    """Container for Redis client singleton to avoid global statements."""

    client: "RedisClient | None" = None


_container = _RedisClientContainer()


class CacheKeys:
    """Key prefixes for data ReelStream keeps in Redis."""

    SESSION = "session"
    USER = "user"


class RedisClient:
    """
    Thin async wrapper over redis.asyncio for sessions and the user cache.

    Values are stored as JSON strings. Datetimes and ObjectIds in user
    documents are written as their string form.
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or get_settings()
        self._client: redis.Redis | None = None

    @staticmethod
    def _mask_url(url: str) -> str:
        """Hide credentials in a Redis URL for safe logging."""
        if "@" in url:
            scheme = url.split("://", 1)[0]
            return f"{scheme}://***@{url.rsplit('@', 1)[-1]}"
        return url

    async def connect(self, max_retries: int = 3, base_delay: float = 1.0) -> bool:
        """
        Connect and ping, retrying with exponential backoff.

        Args:
            max_retries: Number of connection attempts.
            base_delay: Delay before the second attempt, doubled each time after.

        Returns:
            bool: True once Redis answers a ping, False after the last failed attempt.
        """
        masked_url = self._mask_url(self.settings.redis_url)

        for attempt in range(1, max_retries + 1):
            client = redis.from_url(
                self.settings.redis_url,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=SOCKET_TIMEOUT_SECONDS,
                socket_timeout=SOCKET_TIMEOUT_SECONDS,
            )
            try:
                await client.ping()
            except (RedisError, OSError) as e:
                logger.warning(
                    "Redis at %s unreachable (attempt %d/%d): %s",
                    masked_url,
                    attempt,
                    max_retries,
                    e,
                )
                await client.aclose()
                if attempt < max_retries:
                    await asyncio.sleep(base_delay * (2 ** (attempt - 1)))
                continue

            self._client = client
            logger.info("Connected to Redis at %s", masked_url)
            return True

        logger.error("Giving up on Redis at %s after %d attempts", masked_url, max_retries)
        return False

    async def close(self) -> None:
        """Close the connection pool. Safe to call multiple times."""
        client, self._client = self._client, None
        if client is None:
            return

        try:
            await client.aclose()
            logger.info("Redis connection closed")
        except RedisError:
            logger.exception("Error closing Redis connection")

    async def ping(self) -> bool:
        if self._client is None:
            return False

        try:
            return bool(await self._client.ping())
        except RedisError as e:
            logger.warning("Redis ping failed: %s", e)
            return False

    # =========================================================================
    # Key Operations
    # =========================================================================

    async def delete(self, key: str) -> bool:
        """Remove a key. True only if it existed."""
        if self._client is None:
            return False

        try:
            return await self._client.delete(key) > 0
        except RedisError:
            logger.exception("Redis DEL failed for '%s'", key)
            return False

    async def exists(self, key: str) -> bool | None:
        """Whether the key is present, or None when Redis could not answer."""
        if self._client is None:
            return None

        try:
            return await self._client.exists(key) > 0
        except RedisError:
            logger.exception("Redis EXISTS failed for '%s'", key)
            return None

    async def get_json(self, key: str) -> Any | None:
        """Load a JSON value, or None when missing, unreadable or Redis fails."""
        if self._client is None:
            return None

        try:
            raw = await self._client.get(key)
        except RedisError:
            logger.exception("Redis GET failed for '%s'", key)
            return None

        if raw is None:
            return None

        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Discarding non-JSON value stored at '%s'", key)
            return None

    async def set_json(self, key: str, value: Any, ttl: int | None = None) -> bool:
        """
        Store value as JSON, with an expiry when ttl is a positive number of seconds.

        Returns:
            bool: True if written.
        """
        if self._client is None:
            return False

        try:
            payload = json.dumps(value, default=str)
        except (TypeError, ValueError):
            logger.exception("Value for '%s' is not JSON serializable", key)
            return False

        try:
            await self._client.set(key, payload, ex=ttl if ttl and ttl > 0 else None)
        except RedisError:
            logger.exception("Redis SET failed for '%s'", key)
            return False

        logger.debug("Stored '%s' (ttl=%s)", key, ttl)
        return True


# =============================================================================
# Module-Level Initialization Functions
# =============================================================================


async def init_redis(settings: Settings | None = None) -> RedisClient:
    """
    Connect the process-wide Redis client.

    Called once during application startup from the FastAPI lifespan.

    Raises:
        RuntimeError: If Redis cannot be reached after the retry attempts.
    """
    if _container.client is not None:
        return _container.client

    client = RedisClient(settings)
    if not await client.connect():
        raise RuntimeError("Failed to connect to Redis after multiple attempts")

    _container.client = client
    return client


async def close_redis() -> None:
    """Close the process-wide Redis client, if any."""
    client, _container.client = _container.client, None
    if client is not None:
        await client.close()


def get_redis_client() -> RedisClient | None:
    """Return the connected Redis client, or None when Redis is unavailable."""
    return _container.client
