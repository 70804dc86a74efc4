"""
ReelStream Authentication Test Suite

This module covers registration and credential sign-in end to end:

- Password hashing and access token helpers (reelstream.utils.security)
- Bearer token authentication and current-user resolution (reelstream.core.auth)
- Redis session creation, verification and revocation
- UserService registration and authentication against a mocked collection
- POST /register, /login, /logout, /validate and GET /me endpoints

Test Organization:
- TestPasswordHashing: bcrypt hashing and verification
- TestAccessTokens: token creation and decoding
- TestAuthenticateToken: Bearer header handling
- TestGetCurrentUser: user lookup, cache and session checks
- TestSessionManagement: create/revoke/verify sessions
- TestUserService: registration and authentication logic
- TestRegisterEndpoint / TestLoginEndpoint / TestLogoutEndpoint
- TestMeEndpoint / TestValidateEndpoint
"""

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock

import pytest

from bson import ObjectId
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials
from jose import JWTError, jwt
from pymongo.errors import DuplicateKeyError, ServerSelectionTimeoutError
from redis.exceptions import ConnectionError as RedisConnectionError

from reelstream.core.auth import (
    authenticate_token,
    create_user_session,
    get_current_user,
    revoke_user_session,
    verify_session,
)
from reelstream.core.database import get_db
from reelstream.core.redis_client import RedisClient
from reelstream.main import app
from reelstream.services.user_service import UserAlreadyExistsError, UserService
from reelstream.utils.security import (
    create_access_token,
    decode_access_token,
    hash_password,
    verify_password,
)


# Same plaintext the test_password_hash fixture hashes
TEST_PASSWORD = "Sunset#Reel1"

REGISTER_URL = "/api/v1/auth/register"
LOGIN_URL = "/api/v1/auth/login"
LOGOUT_URL = "/api/v1/auth/logout"
ME_URL = "/api/v1/auth/me"
VALIDATE_URL = "/api/v1/auth/validate"


def _bearer(token: str) -> HTTPAuthorizationCredentials:
    return HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)


# =============================================================================
# Security Helpers
# =============================================================================


class TestPasswordHashing:
    """Tests for hash_password and verify_password."""

    def test_hash_and_verify(self, test_password_hash: str):
        assert test_password_hash != TEST_PASSWORD
        assert test_password_hash.startswith("$2b$12$")
        assert verify_password(TEST_PASSWORD, test_password_hash)

    def test_wrong_password_does_not_verify(self, test_password_hash: str):
        assert not verify_password("Sunset#Reel2", test_password_hash)

    def test_malformed_hash_is_a_mismatch(self):
        assert verify_password(TEST_PASSWORD, "not-a-bcrypt-hash") is False

    def test_empty_values_do_not_verify(self, test_password_hash: str):
        assert verify_password("", test_password_hash) is False
        assert verify_password(TEST_PASSWORD, "") is False

    def test_empty_password_cannot_be_hashed(self):
        with pytest.raises(ValueError):
            hash_password("")


class TestAccessTokens:
    """Tests for create_access_token and decode_access_token."""

    def test_token_claims(self, mock_settings):
        token = create_access_token("507f1f77bcf86cd799439011", "creator@example.com", mock_settings)

        payload = decode_access_token(token, mock_settings)

        assert payload["sub"] == "507f1f77bcf86cd799439011"
        assert payload["email"] == "creator@example.com"
        assert payload["type"] == "access"
        assert payload["exp"] - payload["iat"] == mock_settings.jwt_expiration_seconds

    def test_wrong_secret_rejected(self, mock_settings):
        token = jwt.encode(
            {"sub": "1", "type": "access", "exp": datetime.now(UTC) + timedelta(hours=1)},
            "another-secret-key-that-is-also-32-chars-long",
            algorithm="HS256",
        )

        with pytest.raises(JWTError):
            decode_access_token(token, mock_settings)

    def test_expired_token_rejected(self, mock_settings, test_expired_jwt_token):
        with pytest.raises(JWTError):
            decode_access_token(test_expired_jwt_token, mock_settings)

    def test_non_access_token_rejected(self, mock_settings):
        token = jwt.encode(
            {"sub": "1", "type": "refresh", "exp": datetime.now(UTC) + timedelta(hours=1)},
            mock_settings.secret_key,
            algorithm=mock_settings.jwt_algorithm,
        )

        with pytest.raises(JWTError):
            decode_access_token(token, mock_settings)


# =============================================================================
# Authentication Dependencies
# =============================================================================


class TestAuthenticateToken:
    """Tests for the authenticate_token dependency."""

    @pytest.mark.asyncio
    async def test_valid_token_returns_claims(self, mock_settings, test_jwt_token, test_user):
        claims = await authenticate_token(_bearer(test_jwt_token), mock_settings)
        assert claims["sub"] == str(test_user["_id"])

    @pytest.mark.asyncio
    async def test_missing_credentials(self, mock_settings):
        with pytest.raises(HTTPException) as exc_info:
            await authenticate_token(None, mock_settings)

        assert exc_info.value.status_code == 401
        assert exc_info.value.detail == "Not authenticated"
        assert exc_info.value.headers == {"WWW-Authenticate": "Bearer"}

    @pytest.mark.asyncio
    async def test_garbage_token(self, mock_settings):
        with pytest.raises(HTTPException) as exc_info:
            await authenticate_token(_bearer("not.a.jwt"), mock_settings)

        assert exc_info.value.status_code == 401
        assert exc_info.value.detail == "Invalid token"

    @pytest.mark.asyncio
    async def test_expired_token(self, mock_settings, test_expired_jwt_token):
        with pytest.raises(HTTPException) as exc_info:
            await authenticate_token(_bearer(test_expired_jwt_token), mock_settings)

        assert exc_info.value.status_code == 401


class TestGetCurrentUser:
    """Tests for get_current_user."""

    @pytest.mark.asyncio
    async def test_user_loaded_from_database(
        self, mock_db, mock_settings, test_user, redis_client_patch
    ):
        object_id = test_user["_id"]
        mock_db.get_users_collection().find_one.return_value = test_user

        user = await get_current_user({"sub": str(object_id)}, mock_db, mock_settings)

        assert user["_id"] == str(object_id)
        assert user["email"] == "creator@example.com"
        assert "hashed_password" not in user
        mock_db.get_users_collection().find_one.assert_awaited_once_with({"_id": object_id})

    @pytest.mark.asyncio
    async def test_user_cached_after_lookup(
        self, mock_db, mock_settings, mock_redis, test_user, redis_client_patch
    ):
        redis_client_patch.return_value = mock_redis
        mock_db.get_users_collection().find_one.return_value = test_user
        user_id = str(test_user["_id"])

        await get_current_user({"sub": user_id}, mock_db, mock_settings)

        mock_redis.exists.assert_awaited_once_with(f"session:{user_id}")
        mock_redis.set_json.assert_awaited_once()
        args, kwargs = mock_redis.set_json.call_args
        assert args[0] == f"user:{user_id}"
        assert "hashed_password" not in args[1]
        assert kwargs["ttl"] == mock_settings.redis_cache_ttl_seconds

    @pytest.mark.asyncio
    async def test_cached_user_skips_database(
        self, mock_db, mock_settings, mock_redis, redis_client_patch
    ):
        cached = {"_id": "507f1f77bcf86cd799439011", "email": "creator@example.com"}
        mock_redis.get_json.return_value = cached
        redis_client_patch.return_value = mock_redis

        user = await get_current_user({"sub": cached["_id"]}, mock_db, mock_settings)

        assert user == cached
        mock_db.get_users_collection().find_one.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_revoked_session_rejected(
        self, mock_db, mock_settings, mock_redis, redis_client_patch
    ):
        mock_redis.exists.return_value = False
        redis_client_patch.return_value = mock_redis

        with pytest.raises(HTTPException) as exc_info:
            await get_current_user({"sub": "507f1f77bcf86cd799439011"}, mock_db, mock_settings)

        assert exc_info.value.status_code == 401
        assert exc_info.value.detail == "Session expired or revoked"

    @pytest.mark.asyncio
    async def test_missing_subject_rejected(self, mock_db, mock_settings, redis_client_patch):
        with pytest.raises(HTTPException) as exc_info:
            await get_current_user({"email": "creator@example.com"}, mock_db, mock_settings)

        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    @pytest.mark.parametrize("stored", [None, {"is_active": False}])
    async def test_unknown_or_inactive_user_rejected(
        self, mock_db, mock_settings, test_user, redis_client_patch, stored
    ):
        if stored is not None:
            stored = {**test_user, **stored}
        mock_db.get_users_collection().find_one.return_value = stored

        with pytest.raises(HTTPException) as exc_info:
            await get_current_user({"sub": str(test_user["_id"])}, mock_db, mock_settings)

        assert exc_info.value.detail == "User not found or inactive"


class TestSessionManagement:
    """Tests for create_user_session, revoke_user_session and verify_session."""

    @pytest.mark.asyncio
    async def test_create_session_uses_token_lifetime(
        self, mock_settings, mock_redis, redis_client_patch
    ):
        redis_client_patch.return_value = mock_redis

        assert await create_user_session("abc123", mock_settings) is True

        args, kwargs = mock_redis.set_json.call_args
        assert args[0] == "session:abc123"
        assert args[1]["user_id"] == "abc123"
        assert kwargs["ttl"] == mock_settings.jwt_expiration_seconds

    @pytest.mark.asyncio
    async def test_create_session_without_redis(self, mock_settings, redis_client_patch):
        assert await create_user_session("abc123", mock_settings) is False

    @pytest.mark.asyncio
    async def test_revoke_session_deletes_session_and_cache(self, mock_redis, redis_client_patch):
        redis_client_patch.return_value = mock_redis

        assert await revoke_user_session("abc123") is True

        deleted_keys = [call.args[0] for call in mock_redis.delete.await_args_list]
        assert deleted_keys == ["session:abc123", "user:abc123"]

    @pytest.mark.asyncio
    async def test_verify_session_without_redis_allows(self, redis_client_patch):
        assert await verify_session("abc123") is True

    @pytest.mark.asyncio
    async def test_verify_session_checks_key(self, mock_redis, redis_client_patch):
        mock_redis.exists.return_value = False
        redis_client_patch.return_value = mock_redis

        assert await verify_session("abc123") is False
        mock_redis.exists.assert_awaited_once_with("session:abc123")

    @pytest.mark.asyncio
    async def test_verify_session_allows_when_redis_errors(self, mock_redis, redis_client_patch):
        mock_redis.exists.return_value = None
        redis_client_patch.return_value = mock_redis

        assert await verify_session("abc123") is True


# =============================================================================
# User Service
# =============================================================================


class TestUserService:
    """Tests for UserService against a mocked users collection."""

    @pytest.mark.asyncio
    async def test_register_user_normalises_and_hashes(self, mock_db):
        users = mock_db.get_users_collection()

        document = await UserService(mock_db).register_user("  Creator@Example.com ", TEST_PASSWORD)

        users.find_one.assert_awaited_once_with({"email": "creator@example.com"})
        inserted = users.insert_one.call_args.args[0]
        assert inserted["email"] == "creator@example.com"
        assert inserted["hashed_password"] != TEST_PASSWORD
        assert verify_password(TEST_PASSWORD, inserted["hashed_password"])
        assert inserted["is_active"] is True
        assert document["_id"] == users.insert_one.return_value.inserted_id

    @pytest.mark.asyncio
    async def test_register_existing_email(self, mock_db, test_user):
        mock_db.get_users_collection().find_one.return_value = test_user

        with pytest.raises(UserAlreadyExistsError):
            await UserService(mock_db).register_user("creator@example.com", TEST_PASSWORD)

        mock_db.get_users_collection().insert_one.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_register_race_lost_to_unique_index(self, mock_db):
        mock_db.get_users_collection().insert_one.side_effect = DuplicateKeyError("E11000")

        with pytest.raises(UserAlreadyExistsError):
            await UserService(mock_db).register_user("creator@example.com", TEST_PASSWORD)

    @pytest.mark.asyncio
    async def test_authenticate_success_updates_last_login(self, mock_db, test_user):
        users = mock_db.get_users_collection()
        users.find_one.return_value = test_user

        user = await UserService(mock_db).authenticate_user("CREATOR@example.com", TEST_PASSWORD)

        assert user is not None
        assert user["_id"] == "507f1f77bcf86cd799439011"
        assert isinstance(user["last_login"], datetime)
        users.update_one.assert_awaited_once()
        assert users.update_one.call_args.args[0] == {"_id": ObjectId("507f1f77bcf86cd799439011")}

    @pytest.mark.asyncio
    async def test_authenticate_rejections(self, mock_db, test_user):
        service = UserService(mock_db)
        users = mock_db.get_users_collection()

        users.find_one.return_value = None
        assert await service.authenticate_user("nobody@example.com", TEST_PASSWORD) is None

        users.find_one.return_value = test_user
        assert await service.authenticate_user("creator@example.com", "Wrong#Pass1") is None

        users.find_one.return_value = {**test_user, "is_active": False}
        assert await service.authenticate_user("creator@example.com", TEST_PASSWORD) is None

        assert await service.authenticate_user("", TEST_PASSWORD) is None
        users.update_one.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_get_user_by_malformed_id(self, mock_db):
        assert await UserService(mock_db).get_user_by_id("not-an-object-id") is None
        mock_db.get_users_collection().find_one.assert_not_awaited()


# =============================================================================
# Endpoints
# =============================================================================


class TestRegisterEndpoint:
    """Tests for POST /api/v1/auth/register."""

    def test_register_success(self, test_client, mock_db):
        response = test_client.post(
            REGISTER_URL,
            json={"email": "new@example.com", "password": TEST_PASSWORD, "confirmPassword": TEST_PASSWORD},
        )

        assert response.status_code == 201
        assert response.json() == {"message": "User registered successfully"}
        mock_db.get_users_collection().insert_one.assert_awaited_once()

    def test_register_without_confirmation(self, test_client):
        response = test_client.post(REGISTER_URL, json={"email": "new@example.com", "password": TEST_PASSWORD})
        assert response.status_code == 201

    @pytest.mark.parametrize(
        "body",
        [
            {"password": TEST_PASSWORD},
            {"email": "new@example.com"},
            {"email": "", "password": TEST_PASSWORD},
            {},
        ],
    )
    def test_missing_fields(self, test_client, mock_db, body):
        response = test_client.post(REGISTER_URL, json=body)

        assert response.status_code == 400
        data = response.json()
        assert data["detail"] == "Email and password are required"
        assert data["error"] == "bad_request"
        mock_db.get_users_collection().insert_one.assert_not_awaited()

    def test_rule_violations_reported_per_field(self, test_client, mock_db):
        response = test_client.post(
            REGISTER_URL,
            json={"email": "not-an-email", "password": "weakpass1", "confirm_password": "other"},
        )

        assert response.status_code == 400
        data = response.json()
        assert data["detail"] == "Validation failed"
        assert data["errors"] == {
            "email": "Please enter a valid email address",
            "password": "Password must contain at least one uppercase letter",
            "confirm_password": "Passwords do not match",
        }
        mock_db.get_users_collection().insert_one.assert_not_awaited()

    def test_duplicate_email(self, test_client, mock_db, test_user):
        mock_db.get_users_collection().find_one.return_value = test_user

        response = test_client.post(REGISTER_URL, json={"email": "creator@example.com", "password": TEST_PASSWORD})

        assert response.status_code == 409
        assert response.json()["detail"] == "User already registered"
        assert response.json()["error"] == "conflict"

    def test_storage_failure(self, test_client, mock_db):
        mock_db.get_users_collection().insert_one.side_effect = ServerSelectionTimeoutError("down")

        response = test_client.post(REGISTER_URL, json={"email": "new@example.com", "password": TEST_PASSWORD})

        assert response.status_code == 500
        assert response.json()["detail"] == "Failed to register user"

    def test_database_unavailable(self, test_client):
        async def _unavailable():
            raise HTTPException(status_code=503, detail="Database unavailable")

        app.dependency_overrides[get_db] = _unavailable

        response = test_client.post(REGISTER_URL, json={"email": "new@example.com", "password": TEST_PASSWORD})

        assert response.status_code == 503
        assert response.json() == {
            "error": "service_unavailable",
            "detail": "Database unavailable",
            "status_code": 503,
        }


class TestLoginEndpoint:
    """Tests for POST /api/v1/auth/login."""

    def test_login_success(self, test_client, mock_db, mock_settings, test_user):
        mock_db.get_users_collection().find_one.return_value = test_user

        response = test_client.post(LOGIN_URL, json={"email": "creator@example.com", "password": TEST_PASSWORD})

        assert response.status_code == 200
        data = response.json()
        assert data["token_type"] == "bearer"
        assert data["expires_in"] == mock_settings.jwt_expiration_seconds
        assert data["user"]["id"] == str(test_user["_id"])
        assert data["user"]["email"] == "creator@example.com"
        assert "hashed_password" not in data["user"]

        claims = decode_access_token(data["access_token"], mock_settings)
        assert claims["sub"] == str(test_user["_id"])

    def test_login_opens_session(
        self, test_client, mock_db, mock_redis, mock_settings, test_user, redis_client_patch
    ):
        redis_client_patch.return_value = mock_redis
        mock_db.get_users_collection().find_one.return_value = test_user

        response = test_client.post(LOGIN_URL, json={"email": "creator@example.com", "password": TEST_PASSWORD})

        assert response.status_code == 200
        args, kwargs = mock_redis.set_json.call_args
        assert args[0] == f"session:{test_user['_id']}"
        assert kwargs["ttl"] == mock_settings.jwt_expiration_seconds

    def test_wrong_password(self, test_client, mock_db, test_user):
        mock_db.get_users_collection().find_one.return_value = test_user

        response = test_client.post(LOGIN_URL, json={"email": "creator@example.com", "password": "Wrong#Pass1"})

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid email or password"
        assert response.headers["WWW-Authenticate"] == "Bearer"

    def test_unknown_email(self, test_client):
        response = test_client.post(LOGIN_URL, json={"email": "nobody@example.com", "password": TEST_PASSWORD})

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid email or password"

    def test_missing_password(self, test_client):
        response = test_client.post(LOGIN_URL, json={"email": "creator@example.com"})

        assert response.status_code == 400
        data = response.json()
        assert data["detail"] == "Invalid request"
        assert "password" in data["errors"]

    def test_database_error(self, test_client, mock_db):
        mock_db.get_users_collection().find_one.side_effect = ServerSelectionTimeoutError("down")

        response = test_client.post(LOGIN_URL, json={"email": "creator@example.com", "password": TEST_PASSWORD})

        assert response.status_code == 500
        assert response.json()["detail"] == "Authentication system error. Please try again later."


class TestMeEndpoint:
    """Tests for GET /api/v1/auth/me."""

    def test_me_returns_profile(self, test_client, mock_db, test_user, auth_headers):
        mock_db.get_users_collection().find_one.return_value = test_user

        response = test_client.get(ME_URL, headers=auth_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["id"] == str(test_user["_id"])
        assert data["email"] == "creator@example.com"
        assert data["is_active"] is True

    def test_me_without_token(self, test_client):
        response = test_client.get(ME_URL)

        assert response.status_code == 401
        assert response.json()["detail"] == "Not authenticated"

    def test_me_with_expired_token(self, test_client, test_expired_jwt_token):
        response = test_client.get(ME_URL, headers={"Authorization": f"Bearer {test_expired_jwt_token}"})

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid token"

    def test_me_while_redis_unreachable(
        self, test_client, mock_db, mock_settings, test_user, auth_headers, redis_client_patch
    ):
        unreachable = RedisClient(mock_settings)
        unreachable._client = AsyncMock()
        for command in ("exists", "get", "set"):
            getattr(unreachable._client, command).side_effect = RedisConnectionError("down")
        redis_client_patch.return_value = unreachable
        mock_db.get_users_collection().find_one.return_value = test_user

        response = test_client.get(ME_URL, headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["email"] == "creator@example.com"

    def test_me_after_logout(self, test_client, mock_redis, auth_headers, redis_client_patch):
        mock_redis.exists.return_value = False
        redis_client_patch.return_value = mock_redis

        response = test_client.get(ME_URL, headers=auth_headers)

        assert response.status_code == 401
        assert response.json()["detail"] == "Session expired or revoked"


class TestLogoutEndpoint:
    """Tests for POST /api/v1/auth/logout."""

    def test_logout_revokes_session(
        self, test_client, mock_db, mock_redis, test_user, auth_headers, redis_client_patch
    ):
        redis_client_patch.return_value = mock_redis
        mock_db.get_users_collection().find_one.return_value = test_user

        response = test_client.post(LOGOUT_URL, headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["message"] == "Successfully logged out"
        mock_redis.delete.assert_any_await(f"session:{test_user['_id']}")

    def test_logout_requires_token(self, test_client):
        assert test_client.post(LOGOUT_URL).status_code == 401


class TestValidateEndpoint:
    """Tests for POST /api/v1/auth/validate."""

    def test_only_supplied_fields_checked(self, test_client):
        response = test_client.post(VALIDATE_URL, json={"email": "creator@example.com"})

        assert response.status_code == 200
        assert response.json() == {"valid": True, "errors": {}, "password_strength": None}

    def test_password_scored_and_checked(self, test_client):
        response = test_client.post(VALIDATE_URL, json={"password": "abcdefgh"})

        data = response.json()
        assert data["valid"] is False
        assert data["errors"] == {"password": "Password must contain at least one uppercase letter"}
        assert data["password_strength"] == {"score": 2, "label": "Fair"}

    def test_confirmation_mismatch(self, test_client):
        response = test_client.post(
            VALIDATE_URL, json={"password": TEST_PASSWORD, "confirmPassword": "Sunset#Reel2"}
        )

        data = response.json()
        assert data["errors"] == {"confirm_password": "Passwords do not match"}
        assert data["password_strength"] == {"score": 6, "label": "Very Strong"}
