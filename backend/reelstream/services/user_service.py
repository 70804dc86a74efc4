"""
ReelStream User Service Module

This module implements account registration and credential sign-in against the
MongoDB users collection.

Registration inserts a user only after checking that no account already uses
the email. The unique index on users.email covers the window between that
check and the insert, so a concurrent duplicate is reported the same way as
one found by the check.
"""

import logging

from datetime import UTC, datetime
from typing import Any

from bson import ObjectId
from bson.errors import InvalidId
from pymongo.errors import DuplicateKeyError

from reelstream.core.database import DatabaseClient
from reelstream.models.user import User
from reelstream.utils.security import hash_password, verify_password
from reelstream.utils.validators import normalize_email


# Configure module logger
logger = logging.getLogger(__name__)


class UserServiceError(Exception):
    """Base exception for user service errors."""


class UserAlreadyExistsError(UserServiceError):
    """Raised when registering an email that already has an account."""

    def __init__(self, email: str) -> None:
        super().__init__(f"User already registered: {email}")
        self.email = email


class UserService:
    """
    Registration and credential sign-in over the users collection.

    Attributes:
        db_client: Connected DatabaseClient providing the users collection

    Example:
        ```python
        service = UserService(await connect_db())
        user = await service.register_user("creator@example.com", "Sunset#Reel1")
        signed_in = await service.authenticate_user("creator@example.com", "Sunset#Reel1")
        ```
    """

    def __init__(self, db_client: DatabaseClient) -> None:
        self.db_client = db_client

    @property
    def _users(self):
        return self.db_client.get_users_collection()

    async def get_user_by_email(self, email: str) -> dict[str, Any] | None:
        return await self._users.find_one({"email": normalize_email(email)})

    async def get_user_by_id(self, user_id: str) -> dict[str, Any] | None:
        """Look up a user by ObjectId string. Malformed ids find nothing."""
        try:
            object_id = ObjectId(user_id)
        except (InvalidId, TypeError):
            return None
        return await self._users.find_one({"_id": object_id})

    async def register_user(self, email: str, password: str) -> dict[str, Any]:
        """
        Create a new user account.

        Args:
            email: Email address; stored trimmed and lower-cased.
            password: Plaintext password, already checked against the form rules.

        Returns:
            dict: The inserted user document including its _id.

        Raises:
            UserAlreadyExistsError: If the email is already registered.
        """
        normalized_email = normalize_email(email)

        existing = await self.get_user_by_email(normalized_email)
        if existing is not None:
            logger.info("Registration rejected, email already registered: %s", normalized_email)
            raise UserAlreadyExistsError(normalized_email)

        user = User(email=normalized_email, hashed_password=hash_password(password))
        document = user.to_document()

        try:
            result = await self._users.insert_one(document)
        except DuplicateKeyError as e:
            logger.info("Registration lost race for email: %s", normalized_email)
            raise UserAlreadyExistsError(normalized_email) from e

        document["_id"] = result.inserted_id
        logger.info("User registered: %s (%s)", normalized_email, result.inserted_id)
        return document

    async def authenticate_user(self, email: str, password: str) -> dict[str, Any] | None:
        """
        Check an email and password pair against the stored account.

        Unknown emails, wrong passwords and inactive accounts all return None
        so callers cannot tell them apart.

        Returns:
            Optional[dict]: The user document with a string _id and an updated
            last_login, or None if sign-in is refused.
        """
        if not email or not password:
            return None

        normalized_email = normalize_email(email)
        user = await self.get_user_by_email(normalized_email)
        if user is None:
            logger.warning("Authentication failed: user not found for email %s", normalized_email)
            return None

        if not verify_password(password, user.get("hashed_password", "")):
            logger.warning("Authentication failed: invalid password for user %s", normalized_email)
            return None

        if not user.get("is_active", True):
            logger.warning("Authentication failed: inactive account %s", normalized_email)
            return None

        now = datetime.now(UTC)
        await self._users.update_one(
            {"_id": user["_id"]},
            {"$set": {"last_login": now}},
        )
        user["last_login"] = now
        user["_id"] = str(user["_id"])

        logger.info("User authenticated successfully: %s", normalized_email)
        return user
