"""
Pytest Configuration and Test Fixtures for the ReelStream Backend

This module provides:
- Test settings with CDN keys and a fixed JWT secret
- Mocked DatabaseClient with users and videos collections
- Mocked RedisClient for session and cache testing
- FastAPI TestClient with dependency overrides for database and settings
- Sample users, tokens and video documents
"""

from datetime import UTC, datetime, timedelta
from typing import Any, Dict, Generator, List
from unittest.mock import AsyncMock, MagicMock, Mock, patch

import pytest
from bson import ObjectId
from fastapi.testclient import TestClient
from jose import jwt

from reelstream.config import Settings, get_settings
from reelstream.core.database import DatabaseClient, get_db
from reelstream.core.redis_client import RedisClient
from reelstream.main import app
from reelstream.utils.security import hash_password


# ==============================================================================
# Pytest Configuration
# ==============================================================================

def pytest_configure(config: pytest.Config) -> None:
    """
    Configure pytest with custom markers for test categorization.

    Markers defined:
    - unit: For unit tests (isolated, no external dependencies)
    - integration: For tests requiring running MongoDB or Redis
    """
    config.addinivalue_line("markers", "unit: mark test as unit test")
    config.addinivalue_line("markers", "integration: mark test as integration test")


# Shared plaintext password satisfying every registration rule
TEST_PASSWORD = "Sunset#Reel1"


# ==============================================================================
# Settings Fixtures
# ==============================================================================

@pytest.fixture
def mock_settings() -> Settings:
    """
    Create a Settings instance with test-specific configuration values.

    Returns:
        Settings: Configured Settings instance for testing
    """
    return Settings(
        app_env="testing",
        app_name="ReelStream-Test",
        debug=True,
        secret_key="test-secret-key-for-jwt-signing-minimum-32-chars",
        jwt_algorithm="HS256",
        jwt_expiration_hours=24,
        mongodb_uri="mongodb://localhost:27017/test_reelstream",
        mongodb_db_name="test_reelstream",
        redis_url="redis://localhost:6379/1",
        redis_cache_ttl_seconds=300,
        imagekit_private_key="private_test_key",
        imagekit_public_key="public_test_key",
        imagekit_url_endpoint="https://ik.imagekit.io/reelstream-test",
        upload_token_ttl_seconds=1800,
    )


# ==============================================================================
# MongoDB Fixtures
# ==============================================================================

@pytest.fixture
def mock_cursor() -> Mock:
    """
    Create a chainable Motor cursor mock.

    sort/skip/limit return the cursor itself; to_list is awaitable.
    """
    cursor = Mock()
    cursor.sort = Mock(return_value=cursor)
    cursor.skip = Mock(return_value=cursor)
    cursor.limit = Mock(return_value=cursor)
    cursor.to_list = AsyncMock(return_value=[])
    return cursor


@pytest.fixture
def mock_db(mock_cursor: Mock) -> Mock:
    """
    Create a mocked DatabaseClient for unit testing without MongoDB.

    Collection accessors are plain Mocks (they are synchronous on the real
    client) returning collections whose operations are AsyncMocks.

    Returns:
        Mock: Mocked DatabaseClient with collection accessors
    """
    mock = Mock(spec=DatabaseClient)

    mock_users_collection = Mock()
    mock_users_collection.find_one = AsyncMock(return_value=None)
    mock_users_collection.insert_one = AsyncMock(
        return_value=MagicMock(inserted_id=ObjectId("65a1b2c3d4e5f6a7b8c9d0e1"))
    )
    mock_users_collection.update_one = AsyncMock(return_value=MagicMock(modified_count=1))

    mock_videos_collection = Mock()
    mock_videos_collection.find = Mock(return_value=mock_cursor)
    mock_videos_collection.insert_one = AsyncMock(
        return_value=MagicMock(inserted_id=ObjectId("65a1b2c3d4e5f6a7b8c9d0f2"))
    )

    mock.get_users_collection = Mock(return_value=mock_users_collection)
    mock.get_videos_collection = Mock(return_value=mock_videos_collection)

    mock.connect = AsyncMock()
    mock.close = AsyncMock()
    mock.ping = AsyncMock(return_value=True)
    mock.create_indexes = AsyncMock()

    return mock


# ==============================================================================
# Redis Fixtures
# ==============================================================================

@pytest.fixture
def mock_redis() -> Mock:
    """
    Create a mocked RedisClient for unit testing without Redis.

    Sessions exist by default so authenticated requests pass the session check.
    """
    mock = Mock(spec=RedisClient)
    mock.delete = AsyncMock(return_value=True)
    mock.exists = AsyncMock(return_value=True)
    mock.get_json = AsyncMock(return_value=None)
    mock.set_json = AsyncMock(return_value=True)
    mock.ping = AsyncMock(return_value=True)
    mock.close = AsyncMock()
    return mock


# ==============================================================================
# User and Token Fixtures
# ==============================================================================

@pytest.fixture(scope="session")
def test_password_hash() -> str:
    """Bcrypt hash of TEST_PASSWORD, computed once per session."""
    return hash_password(TEST_PASSWORD)


@pytest.fixture
def test_user(test_password_hash: str) -> Dict[str, Any]:
    """
    Create a stored user document as it comes back from MongoDB.

    Returns:
        Dict[str, Any]: User document with ObjectId and bcrypt hash
    """
    now = datetime.now(UTC)
    return {
        "_id": ObjectId("507f1f77bcf86cd799439011"),
        "email": "creator@example.com",
        "hashed_password": test_password_hash,
        "is_active": True,
        "created_at": now - timedelta(days=7),
        "updated_at": now - timedelta(days=7),
        "last_login": None,
    }


@pytest.fixture
def test_jwt_token(mock_settings: Settings, test_user: Dict[str, Any]) -> str:
    """
    Create a valid access token for test_user.

    Returns:
        str: Encoded JWT token string
    """
    now = datetime.now(UTC)
    payload = {
        "sub": str(test_user["_id"]),
        "email": test_user["email"],
        "exp": now + timedelta(hours=mock_settings.jwt_expiration_hours),
        "iat": now,
        "type": "access",
    }
    return jwt.encode(payload, mock_settings.secret_key, algorithm=mock_settings.jwt_algorithm)


@pytest.fixture
def test_expired_jwt_token(mock_settings: Settings, test_user: Dict[str, Any]) -> str:
    """Create an access token that expired an hour ago."""
    now = datetime.now(UTC)
    payload = {
        "sub": str(test_user["_id"]),
        "email": test_user["email"],
        "exp": now - timedelta(hours=1),
        "iat": now - timedelta(hours=25),
        "type": "access",
    }
    return jwt.encode(payload, mock_settings.secret_key, algorithm=mock_settings.jwt_algorithm)


@pytest.fixture
def auth_headers(test_jwt_token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {test_jwt_token}"}


# ==============================================================================
# Video Fixtures
# ==============================================================================

@pytest.fixture
def test_videos(test_user: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Two stored video documents, newest first."""
    now = datetime.now(UTC)
    return [
        {
            "_id": ObjectId("65a1b2c3d4e5f6a7b8c9d0a2"),
            "title": "Harbour at dawn",
            "description": "Fishing boats heading out",
            "video_url": "https://ik.imagekit.io/reelstream-test/harbour.mp4",
            "thumbnail_url": "https://ik.imagekit.io/reelstream-test/harbour.jpg",
            "controls": True,
            "transformation": {"height": 1920, "width": 1080, "quality": 80},
            "user_id": str(test_user["_id"]),
            "created_at": now,
            "updated_at": now,
        },
        {
            "_id": ObjectId("65a1b2c3d4e5f6a7b8c9d0a1"),
            "title": "Sunset timelapse",
            "description": "Thirty minutes of sunset in thirty seconds",
            "video_url": "https://ik.imagekit.io/reelstream-test/sunset.mp4",
            "thumbnail_url": "https://ik.imagekit.io/reelstream-test/sunset.jpg",
            "controls": False,
            "transformation": {"height": 1920, "width": 1080},
            "user_id": str(test_user["_id"]),
            "created_at": now - timedelta(hours=2),
            "updated_at": now - timedelta(hours=2),
        },
    ]


# ==============================================================================
# FastAPI Test Client Fixtures
# ==============================================================================

@pytest.fixture
def redis_client_patch() -> Generator[Mock, None, None]:
    """
    Control what get_redis_client returns inside the auth module.

    Defaults to None (Redis unavailable); tests set return_value to a
    mock_redis to exercise sessions and caching.
    """
    with patch("reelstream.core.auth.get_redis_client", return_value=None) as patched:
        yield patched


@pytest.fixture
def test_client(
    mock_db: Mock,
    mock_settings: Settings,
    redis_client_patch: Mock,
) -> Generator[TestClient, None, None]:
    """
    Create a FastAPI TestClient with database and settings overridden.

    The client is not entered as a context manager, so the lifespan (and
    with it real MongoDB and Redis connections) never runs.
    """
    async def _override_get_db():
        return mock_db

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_settings] = lambda: mock_settings

    yield TestClient(app)

    app.dependency_overrides.clear()
