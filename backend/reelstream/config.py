"""
ReelStream settings.

Everything the backend reads from the environment (or a local ``.env`` file)
is declared on ``Settings``: server and logging options, the MongoDB
connection, optional Redis, JWT signing and the ImageKit keys used to sign
direct uploads. Field names map to upper-case environment variables, so
``mongodb_uri`` is read from ``MONGODB_URI``.
"""

from functools import lru_cache
from typing import Annotated

from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


LOG_LEVELS = ("debug", "info", "warning", "error", "critical")
APP_ENVIRONMENTS = ("development", "staging", "production", "testing")
JWT_ALGORITHMS = ("HS256", "HS384", "HS512")


class Settings(BaseSettings):
    """
    Typed view of the ReelStream environment.

    ``mongodb_uri`` and the ImageKit keys may be absent at import time; the
    code that needs them reports the missing value when it is first used.

        ```python
        from reelstream.config import get_settings

        settings = get_settings()
        print(settings.mongodb_db_name)
        ```
    """

    # =========================================================================
    # Server and Logging
    # =========================================================================

    app_name: str = Field(default="ReelStream", description="Title shown in the OpenAPI docs")

    app_env: str = Field(default="development", description=f"One of {', '.join(APP_ENVIRONMENTS)}")

    debug: bool = Field(default=True, description="Debug mode and auto-reload")

    log_level: str = Field(default="info", description=f"One of {', '.join(LOG_LEVELS)}")

    log_json: bool = Field(default=False, description="Emit structured JSON log lines")

    host: str = Field(default="0.0.0.0", description="Bind address for uvicorn")

    port: int = Field(default=8000, description="Bind port for uvicorn", ge=1, le=65535)

    cors_origins: Annotated[list[str], NoDecode] = Field(
        default=["http://localhost:3000"],
        description="Origins allowed to call the API; comma-separated in the environment",
    )

    # =========================================================================
    # JWT Configuration
    # =========================================================================

    secret_key: str = Field(
        default="development-secret-key-change-in-production-32chars",
        description="HMAC key for access tokens",
        min_length=32,
    )

    jwt_algorithm: str = Field(default="HS256", description=f"One of {', '.join(JWT_ALGORITHMS)}")

    jwt_expiration_hours: int = Field(
        default=24, description="Access token and session lifetime in hours", ge=1, le=168
    )

    # =========================================================================
    # MongoDB Configuration
    # =========================================================================

    mongodb_uri: str | None = Field(
        default=None,
        description="MongoDB connection URI. Required before the first database access.",
    )

    mongodb_db_name: str = Field(default="reelstream", description="MongoDB database name")

    mongodb_min_pool_size: int = Field(
        default=0, description="Minimum number of connections in MongoDB connection pool", ge=0
    )

    mongodb_max_pool_size: int = Field(
        default=100, description="Maximum number of connections in MongoDB connection pool", ge=1
    )

    mongodb_server_selection_timeout_ms: int = Field(
        default=5000, description="Server selection timeout in milliseconds", ge=100
    )

    # =========================================================================
    # Redis Configuration
    # =========================================================================

    redis_url: str = Field(
        default="redis://localhost:6379",
        description="Redis connection URL (e.g., redis://localhost:6379)",
    )

    redis_cache_ttl_seconds: int = Field(
        default=300, description="TTL for cached user profiles in seconds (5 minutes)", ge=1
    )

    # =========================================================================
    # ImageKit Upload Configuration
    # =========================================================================

    imagekit_private_key: str | None = Field(
        default=None, description="ImageKit private key. Never sent to clients."
    )

    imagekit_public_key: str | None = Field(
        default=None, description="ImageKit public key returned alongside upload parameters"
    )

    imagekit_url_endpoint: str | None = Field(
        default=None, description="ImageKit URL endpoint (e.g., https://ik.imagekit.io/your_id)"
    )

    upload_token_ttl_seconds: int = Field(
        default=1800,
        description="Lifetime of upload auth parameters in seconds (30 minutes)",
        ge=60,
        le=3600,
    )

    # =========================================================================
    # Model Configuration
    # =========================================================================

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )

    # =========================================================================
    # Validators
    # =========================================================================

    @field_validator("log_level", "app_env")
    @classmethod
    def lowercase_choice(cls, v: str, info: ValidationInfo) -> str:
        choices = LOG_LEVELS if info.field_name == "log_level" else APP_ENVIRONMENTS
        if v.lower() not in choices:
            raise ValueError(f"{info.field_name} must be one of {', '.join(choices)}, got '{v}'")
        return v.lower()

    @field_validator("jwt_algorithm")
    @classmethod
    def symmetric_algorithm(cls, v: str) -> str:
        """Tokens are issued and checked by this service, so only HMAC algorithms apply."""
        if v.upper() not in JWT_ALGORITHMS:
            raise ValueError(f"jwt_algorithm must be one of {', '.join(JWT_ALGORITHMS)}, got '{v}'")
        return v.upper()

    @field_validator("cors_origins", mode="before")
    @classmethod
    def split_origins(cls, v: str | list[str]) -> list[str]:
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    @field_validator("mongodb_uri", "imagekit_private_key", "imagekit_public_key")
    @classmethod
    def blank_to_none(cls, v: str | None) -> str | None:
        """Treat empty strings from the environment as unset."""
        if v is not None and not v.strip():
            return None
        return v

    # =========================================================================
    # Computed Properties
    # =========================================================================

    @property
    def is_imagekit_configured(self) -> bool:
        """Both keys are needed to hand out upload auth parameters."""
        return bool(self.imagekit_private_key and self.imagekit_public_key)

    @property
    def jwt_expiration_seconds(self) -> int:
        """Token lifetime in seconds, also used as the Redis session TTL."""
        return self.jwt_expiration_hours * 3600


@lru_cache
def get_settings() -> Settings:
    """Process-wide settings, read from the environment on first use."""
    return Settings()
