"""
User Pydantic models for ReelStream.

This module defines the stored user document and the safe response schema
returned by the authentication endpoints. Emails are stored normalised
(trimmed and lower-cased) and passwords only ever as bcrypt hashes.
"""

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# MODELS
# =============================================================================


class User(BaseModel):
    """
    Pydantic model for a registered user as stored in MongoDB.

    Attributes:
        id: MongoDB ObjectId as string (aliased from _id)
        email: Normalised email address, unique across users
        hashed_password: Bcrypt hashed password
        is_active: Account status flag (inactive accounts cannot sign in)
        created_at: Account registration timestamp (UTC)
        updated_at: Last modification timestamp (UTC)
        last_login: Last successful sign-in timestamp

    Example:
        ```python
        user = User(email="creator@example.com", hashed_password=hash_password("Sunset#Reel1"))
        await users.insert_one(user.to_document())
        ```
    """

    id: str | None = Field(default=None, alias="_id", description="MongoDB ObjectId as string")

    email: str = Field(..., max_length=254, description="Normalised email address")

    hashed_password: str = Field(..., description="Bcrypt hashed password")

    is_active: bool = Field(
        default=True, description="Account status flag (inactive accounts cannot login)"
    )

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="Account registration timestamp (UTC)",
    )

    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="Last modification timestamp (UTC)",
    )

    last_login: datetime | None = Field(default=None, description="Last successful login timestamp")

    model_config = ConfigDict(populate_by_name=True)

    def to_document(self) -> dict[str, Any]:
        """Serialize for insertion, letting MongoDB assign _id when unset."""
        return self.model_dump(by_alias=True, exclude_none=True, exclude={"id"})


class UserResponse(BaseModel):
    """
    Schema for user API responses (excludes sensitive data).

    Safe for returning to clients: the password hash is never included.
    """

    id: str | None = Field(None, description="User ID")
    email: str = Field(..., description="User email")
    is_active: bool = Field(default=True, description="Account active")
    created_at: datetime = Field(..., description="Registration timestamp")
    last_login: datetime | None = Field(None, description="Last login")

    @classmethod
    def from_document(cls, user_data: dict[str, Any]) -> "UserResponse":
        """
        Create a response from a user document or its cached JSON form.

        Cached users come back from Redis with string ids and ISO timestamps,
        documents from MongoDB with ObjectIds and datetimes; both are accepted.
        """
        user_id = user_data.get("_id") or user_data.get("id")

        created_at = user_data.get("created_at")
        if isinstance(created_at, str):
            created_at = datetime.fromisoformat(created_at.replace("Z", "+00:00"))
        elif created_at is None:
            created_at = datetime.now(UTC)

        last_login = user_data.get("last_login")
        if isinstance(last_login, str):
            last_login = datetime.fromisoformat(last_login.replace("Z", "+00:00"))

        return cls(
            id=str(user_id) if user_id is not None else None,
            email=user_data.get("email", ""),
            is_active=user_data.get("is_active", True),
            created_at=created_at,
            last_login=last_login,
        )


class TokenResponse(BaseModel):
    """
    Schema for the access token returned after a successful sign-in.
    """

    access_token: str = Field(..., description="JWT access token")

    token_type: str = Field(default="bearer", description="Token type (always 'bearer')")

    expires_in: int = Field(..., description="Token expiration time in seconds")

    user: UserResponse = Field(..., description="Authenticated user information")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "access_token": "eyJhbGciOiJIUzI1NiIsInR5cCI6IkpXVCJ9...",
                "token_type": "bearer",
                "expires_in": 86400,
                "user": {
                    "id": "507f1f77bcf86cd799439011",
                    "email": "creator@example.com",
                    "is_active": True,
                    "created_at": "2025-01-15T10:30:00Z",
                    "last_login": "2025-06-15T14:30:00Z",
                },
            }
        }
    )
