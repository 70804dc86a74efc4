"""
ReelStream Authentication Module

This module provides the request-side half of credential sign-in:

- Bearer token extraction and validation (local HS256 tokens)
- FastAPI dependency resolving the signed-in user from MongoDB
- Redis-backed user caching (5-minute TTL) and session management

Sessions are keyed by user id and live as long as the token. Logging out
deletes the session, which makes the token unusable even though its
signature stays valid until it expires. When Redis is unavailable, tokens
are accepted on signature alone.

Usage:
    ```python
    from fastapi import Depends
    from reelstream.core.auth import get_current_user

    @router.get("/protected")
    async def protected_route(user: dict = Depends(get_current_user)):
        return {"user_id": user["_id"]}
    ```
"""

import logging

from datetime import UTC, datetime
from typing import Any

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError

from reelstream.config import Settings, get_settings
from reelstream.core.database import DatabaseClient, get_db
from reelstream.core.redis_client import CacheKeys, get_redis_client
from reelstream.services.user_service import UserService
from reelstream.utils.security import decode_access_token


# Configure module logger
logger = logging.getLogger(__name__)


# =============================================================================
# Security Scheme
# =============================================================================

# auto_error is off so a missing header gets the same 401 body as a bad token
security = HTTPBearer(
    scheme_name="Bearer",
    description="Access token returned by POST /api/v1/auth/login.",
    auto_error=False,
)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


# =============================================================================
# Authentication Dependencies
# =============================================================================


async def authenticate_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    settings: Settings = Depends(get_settings),
) -> dict[str, Any]:
    """
    Validate the Bearer token and return its claims.

    Raises:
        HTTPException: 401 if the header is missing or the token is invalid.
    """
    if credentials is None or not credentials.credentials:
        raise _unauthorized("Not authenticated")

    try:
        return decode_access_token(credentials.credentials, settings)
    except JWTError as e:
        logger.warning("Access token rejected: %s", str(e))
        raise _unauthorized("Invalid token") from e


async def get_current_user(
    token_data: dict[str, Any] = Depends(authenticate_token),
    db: DatabaseClient = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> dict[str, Any]:
    """
    Get the current authenticated user.

    The user lookup strategy:
    1. Require an active session when Redis is available
    2. Check the Redis user cache (key: user:{user_id})
    3. If not cached, query the MongoDB users collection and cache the result

    Returns:
        dict: The user document with a string _id and without the password hash.

    Raises:
        HTTPException: 401 if the token has no subject, the session was
            revoked, or the user no longer exists or is inactive.
    """
    user_id = token_data.get("sub")
    if not user_id:
        logger.warning("Token missing 'sub' claim")
        raise _unauthorized("Invalid token: missing user identifier")

    if not await verify_session(user_id):
        raise _unauthorized("Session expired or revoked")

    redis_client = get_redis_client()
    cache_key = f"{CacheKeys.USER}:{user_id}"

    if redis_client:
        cached_user = await redis_client.get_json(cache_key)
        if cached_user:
            logger.debug("User found in cache: %s", user_id)
            return cached_user

    user = await UserService(db).get_user_by_id(user_id)
    if user is None or not user.get("is_active", True):
        logger.warning("Token subject is not an active user: %s", user_id)
        raise _unauthorized("User not found or inactive")

    user["_id"] = str(user["_id"])
    user.pop("hashed_password", None)

    if redis_client:
        await redis_client.set_json(cache_key, user, ttl=settings.redis_cache_ttl_seconds)

    return user


# =============================================================================
# Session Management Functions
# =============================================================================


async def create_user_session(user_id: str, settings: Settings | None = None) -> bool:
    """
    Create a user session in Redis with a TTL matching the token lifetime.

    Returns:
        bool: True if session created successfully, False otherwise.
    """
    redis_client = get_redis_client()
    if redis_client is None:
        logger.debug("Redis not available for session creation")
        return False

    settings = settings or get_settings()
    session_data = {
        "user_id": user_id,
        "created_at": datetime.now(UTC).isoformat(),
    }

    created = await redis_client.set_json(
        f"{CacheKeys.SESSION}:{user_id}", session_data, ttl=settings.jwt_expiration_seconds
    )
    if created:
        logger.info(
            "Session created for user: %s (TTL: %d seconds)",
            user_id,
            settings.jwt_expiration_seconds,
        )
    return created


async def revoke_user_session(user_id: str) -> bool:
    """
    Delete the user's session and cached profile from Redis.

    Returns:
        bool: True if a session existed and was removed.
    """
    redis_client = get_redis_client()
    if redis_client is None:
        logger.debug("Redis not available for session revocation")
        return False

    deleted = await redis_client.delete(f"{CacheKeys.SESSION}:{user_id}")
    await redis_client.delete(f"{CacheKeys.USER}:{user_id}")

    if deleted:
        logger.info("Session revoked for user: %s", user_id)
    else:
        logger.debug("No session found to revoke for user: %s", user_id)
    return deleted


async def verify_session(user_id: str) -> bool:
    """
    Check that the user has an active session.

    Without a reachable Redis there is nothing to check against, so the
    request is allowed on token validation alone.
    """
    redis_client = get_redis_client()
    if redis_client is None:
        return True

    active = await redis_client.exists(f"{CacheKeys.SESSION}:{user_id}")
    if active is None:
        logger.warning("Session store unavailable, accepting token for user: %s", user_id)
        return True
    return active
