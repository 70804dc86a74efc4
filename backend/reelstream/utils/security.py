"""
Security utilities module for ReelStream.

This module provides:
- Password hashing with bcrypt (12 rounds)
- Local HS256 access token creation and validation

Per-field password rules live in reelstream.utils.validators; this module
only deals with hashing and tokens.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict
import logging

from jose import jwt, JWTError
from passlib.context import CryptContext

from reelstream.config import Settings

# Configure logger for security operations
logger = logging.getLogger(__name__)

# ==============================================================================
# PASSWORD HASHING CONFIGURATION
# ==============================================================================

pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=12
)

# Claim value marking tokens issued by the login endpoint
ACCESS_TOKEN_TYPE = "access"


# ==============================================================================
# PASSWORD HASHING FUNCTIONS
# ==============================================================================

def hash_password(password: str) -> str:
    """
    Hash a plaintext password using bcrypt with 12 rounds.

    Args:
        password: The plaintext password to hash.

    Returns:
        The hashed password string suitable for storage.

    Raises:
        ValueError: If the password is empty.
    """
    if not password:
        raise ValueError("Password cannot be empty")

    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a plaintext password against a stored bcrypt hash.

    Malformed hashes are treated as a mismatch rather than an error.

    Example:
        >>> hashed = hash_password("Sunset#Reel1")
        >>> verify_password("Sunset#Reel1", hashed)  # Returns True
        >>> verify_password("wrong", hashed)  # Returns False
    """
    if not plain_password or not hashed_password:
        return False

    try:
        return pwd_context.verify(plain_password, hashed_password)
    except (ValueError, TypeError) as e:
        logger.warning(f"Password verification error: {e}")
        return False


# ==============================================================================
# ACCESS TOKENS
# ==============================================================================

def create_access_token(user_id: str, email: str, settings: Settings) -> str:
    """
    Create a signed access token for a signed-in user.

    Token claims:
    - sub: User ID (subject)
    - email: User's email address
    - exp: Expiration timestamp (jwt_expiration_hours from now)
    - iat: Issued at timestamp
    - type: "access"

    Args:
        user_id: The user's unique identifier.
        email: The user's email address.
        settings: Settings instance containing secret_key and token lifetime.

    Returns:
        str: The encoded JWT token string.
    """
    now = datetime.now(timezone.utc)
    expire = now + timedelta(hours=settings.jwt_expiration_hours)

    payload = {
        "sub": user_id,
        "email": email,
        "exp": expire,
        "iat": now,
        "type": ACCESS_TOKEN_TYPE,
    }

    token = jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)
    logger.debug("Created access token for user %s (expires: %s)", user_id, expire.isoformat())
    return token


def decode_access_token(token: str, settings: Settings) -> Dict[str, Any]:
    """
    Validate an access token and return its claims.

    Args:
        token: The JWT token string to validate.
        settings: Settings instance containing secret_key for verification.

    Returns:
        dict: The decoded token payload.

    Raises:
        JWTError: If the token is invalid, expired, has a bad signature,
            or was not issued as an access token.
    """
    payload = jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])

    if payload.get("type") != ACCESS_TOKEN_TYPE:
        raise JWTError("Token is not an access token")

    return payload
