"""
ReelStream Authentication API Router

This module implements account registration and credential sign-in.

Endpoints:
- POST /register: Create an account from email and password
- POST /login: Check email and password, return an access token
- POST /logout: Revoke the current session
- GET /me: Retrieve the current user profile
- POST /validate: Check registration fields and score the password as the user types

Registration applies the same field rules the sign-up form applies in the
browser, so a request that bypasses the form is held to the same standard.
"""

import logging

from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import AliasChoices, BaseModel, Field
from pymongo.errors import PyMongoError

from reelstream.config import Settings, get_settings
from reelstream.core.auth import create_user_session, get_current_user, revoke_user_session
from reelstream.core.database import DatabaseClient, get_db
from reelstream.models.user import TokenResponse, UserResponse
from reelstream.services.user_service import UserAlreadyExistsError, UserService
from reelstream.utils.security import create_access_token
from reelstream.utils.validators import (
    FormValidationError,
    calculate_password_strength,
    validate_confirm_password,
    validate_email,
    validate_password,
    validate_registration_form,
)


# Configure module logger for structured logging
logger = logging.getLogger(__name__)


# =============================================================================
# Router Configuration
# =============================================================================

router = APIRouter(tags=["authentication"])

# Accept both the form's camelCase field and the snake_case API name
_CONFIRM_PASSWORD_ALIASES = AliasChoices("confirm_password", "confirmPassword")


# =============================================================================
# Request/Response Models
# =============================================================================


class RegisterRequest(BaseModel):
    """
    Request model for account registration.

    Fields are optional at the schema level so that a missing email or
    password produces the registration error message rather than a generic
    schema error.
    """

    email: str | None = Field(default=None, description="Email address for the new account")
    password: str | None = Field(default=None, description="Plaintext password")
    confirm_password: str | None = Field(
        default=None,
        validation_alias=_CONFIRM_PASSWORD_ALIASES,
        description="Password confirmation; checked only when supplied",
    )

    model_config = {
        "json_schema_extra": {
            "example": {
                "email": "creator@example.com",
                "password": "Sunset#Reel1",
                "confirm_password": "Sunset#Reel1",
            }
        }
    }


class RegisterResponse(BaseModel):
    message: str = Field(..., description="Registration confirmation message")


class LoginRequest(BaseModel):
    """Request model for credential sign-in via JSON body."""

    email: str = Field(..., min_length=1, description="Registered email address")
    password: str = Field(..., min_length=1, description="Account password")

    model_config = {
        "json_schema_extra": {
            "example": {"email": "creator@example.com", "password": "Sunset#Reel1"}
        }
    }


class LogoutResponse(BaseModel):
    """
    Response model for successful logout.

    Attributes:
        message: Success message confirming logout
        logged_out_at: Timestamp of logout (ISO 8601 UTC)
    """

    message: str = Field(..., description="Logout confirmation message")
    logged_out_at: str = Field(..., description="Timestamp of logout in ISO 8601 format")


class ValidateRequest(BaseModel):
    """Partial form state; only supplied fields are checked."""

    email: str | None = None
    password: str | None = None
    confirm_password: str | None = Field(default=None, validation_alias=_CONFIRM_PASSWORD_ALIASES)


class PasswordStrengthResponse(BaseModel):
    score: int = Field(..., ge=0, le=6, description="Strength score from 0 to 6")
    label: str = Field(..., description="Strength label for display")


class ValidateResponse(BaseModel):
    valid: bool = Field(..., description="True when no supplied field has an error")
    errors: dict[str, str] = Field(default_factory=dict, description="Field name to error message")
    password_strength: PasswordStrengthResponse | None = Field(
        default=None, description="Present when a password was supplied"
    )


class ErrorResponse(BaseModel):
    """
    Standard error response model for consistent error structure.

    Attributes:
        error: Error type/code identifier
        detail: Human-readable error description
        status_code: HTTP status code
        errors: Per-field messages for form validation failures
    """

    error: str = Field(..., description="Error type or code")
    detail: str = Field(..., description="Human-readable error message")
    status_code: int = Field(..., description="HTTP status code")
    errors: dict[str, str] | None = Field(default=None, description="Field validation errors")

    model_config = {
        "json_schema_extra": {
            "example": {
                "error": "conflict",
                "detail": "User already registered",
                "status_code": 409,
            }
        }
    }


# =============================================================================
# Endpoints
# =============================================================================


@router.post(
    "/register",
    response_model=RegisterResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a new account",
    responses={
        400: {"description": "Missing fields or rule violations", "model": ErrorResponse},
        409: {"description": "Email already registered", "model": ErrorResponse},
        500: {"description": "Registration failed", "model": ErrorResponse},
        503: {"description": "Database unavailable", "model": ErrorResponse},
    },
)
async def register(
    payload: RegisterRequest,
    db: DatabaseClient = Depends(get_db),
) -> RegisterResponse:
    """
    Create an account from an email and password.

    Raises:
        HTTPException: 400 when email or password is missing, 409 when the
            email is taken, 500 on storage failure.
        FormValidationError: When a field breaks the registration rules.
    """
    if not payload.email or not payload.password:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email and password are required",
        )

    errors = validate_registration_form(
        payload.email,
        payload.password,
        payload.confirm_password,
        check_confirmation=payload.confirm_password is not None,
    )
    if errors:
        logger.info("Registration rejected by field rules: %s", ", ".join(sorted(errors)))
        raise FormValidationError(errors)

    try:
        await UserService(db).register_user(payload.email, payload.password)
    except UserAlreadyExistsError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="User already registered",
        ) from e
    except PyMongoError as e:
        logger.exception("Failed to register user: %s", payload.email)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to register user",
        ) from e

    return RegisterResponse(message="User registered successfully")


@router.post(
    "/login",
    response_model=TokenResponse,
    status_code=status.HTTP_200_OK,
    summary="Authenticate user",
    description=(
        "Check an email and password against the stored account. "
        "Returns an access token and the user profile on success."
    ),
    responses={
        401: {"description": "Invalid credentials", "model": ErrorResponse},
        500: {"description": "Authentication system error", "model": ErrorResponse},
        503: {"description": "Database unavailable", "model": ErrorResponse},
    },
)
async def login(
    payload: LoginRequest,
    db: DatabaseClient = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> TokenResponse:
    """
    Authenticate user and return an access token.

    A Redis session is opened alongside the token; sign-in still succeeds
    when Redis is unavailable.
    """
    logger.info("Login attempt for email: %s", payload.email)

    try:
        user = await UserService(db).authenticate_user(payload.email, payload.password)
    except PyMongoError as e:
        logger.exception("Unexpected error during login for email: %s", payload.email)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Authentication system error. Please try again later.",
        ) from e

    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user_id = str(user["_id"])
    access_token = create_access_token(user_id=user_id, email=user["email"], settings=settings)

    if not await create_user_session(user_id, settings):
        logger.warning("No session stored for user %s, continuing without one", user_id)

    return TokenResponse(
        access_token=access_token,
        token_type="bearer",
        expires_in=settings.jwt_expiration_seconds,
        user=UserResponse.from_document(user),
    )


@router.post(
    "/logout",
    response_model=LogoutResponse,
    status_code=status.HTTP_200_OK,
    summary="Logout user",
    responses={401: {"description": "Not authenticated", "model": ErrorResponse}},
)
async def logout(
    current_user: dict[str, Any] = Depends(get_current_user),
) -> LogoutResponse:
    """
    Revoke the current session.

    The token itself remains valid until expiration, but the session check
    in get_current_user rejects it from now on.
    """
    user_id = str(current_user["_id"])
    logger.info("Logout request for user: %s (%s)", user_id, current_user.get("email"))

    await revoke_user_session(user_id)

    return LogoutResponse(
        message="Successfully logged out",
        logged_out_at=datetime.now(UTC).isoformat(),
    )


@router.get(
    "/me",
    response_model=UserResponse,
    status_code=status.HTTP_200_OK,
    summary="Get current user profile",
    responses={401: {"description": "Not authenticated or token expired", "model": ErrorResponse}},
)
async def get_me(
    current_user: dict[str, Any] = Depends(get_current_user),
) -> UserResponse:
    return UserResponse.from_document(current_user)


@router.post(
    "/validate",
    response_model=ValidateResponse,
    status_code=status.HTTP_200_OK,
    summary="Validate registration fields",
    description=(
        "Check whichever registration fields are supplied and score the password. "
        "Intended for live feedback while the user fills in the form."
    ),
)
async def validate_fields(payload: ValidateRequest) -> ValidateResponse:
    errors: dict[str, str] = {}

    if payload.email is not None:
        email_error = validate_email(payload.email)
        if email_error:
            errors["email"] = email_error

    if payload.password is not None:
        password_error = validate_password(payload.password)
        if password_error:
            errors["password"] = password_error

    if payload.confirm_password is not None:
        confirm_error = validate_confirm_password(payload.confirm_password, payload.password)
        if confirm_error:
            errors["confirm_password"] = confirm_error

    strength = None
    if payload.password is not None:
        score = calculate_password_strength(payload.password)
        strength = PasswordStrengthResponse(score=score.score, label=score.label)

    return ValidateResponse(valid=not errors, errors=errors, password_strength=strength)


# =============================================================================
# Module Exports
# =============================================================================

__all__ = ["ErrorResponse", "router"]
