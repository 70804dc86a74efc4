"""
ReelStream Upload Authentication Service

Clients upload media straight to the ImageKit CDN instead of streaming it
through this API. Each upload must carry a short-lived token signed with the
account's private key; this module produces those parameters so the private
key never leaves the server.

Signature scheme (as documented by ImageKit for client-side uploads):
    signature = HMAC-SHA1(private_key, token + str(expire)) as lowercase hex

- token: random UUID4 string, single use on the CDN side
- expire: unix timestamp in seconds, at most one hour in the future
"""

import hashlib
import hmac
import logging
import time
import uuid

from typing import Any

from reelstream.config import Settings


# Configure module logger
logger = logging.getLogger(__name__)

# The CDN rejects upload tokens that expire more than an hour ahead
MAX_EXPIRE_SECONDS = 3600

# Default lifetime of issued parameters (30 minutes)
DEFAULT_EXPIRE_SECONDS = 1800


class UploadAuthError(Exception):
    """Raised when upload authentication parameters cannot be produced."""


def generate_upload_auth_params(
    private_key: str,
    ttl_seconds: int = DEFAULT_EXPIRE_SECONDS,
    token: str | None = None,
    expire: int | None = None,
) -> dict[str, Any]:
    """
    Produce signed parameters for one direct upload.

    Args:
        private_key: CDN private key used as the HMAC secret.
        ttl_seconds: Lifetime used when no explicit expire is given.
        token: Optional caller-chosen token. A fresh UUID4 is used otherwise.
        expire: Optional absolute unix expiry in seconds.

    Returns:
        dict: {"token": str, "expire": int, "signature": str}

    Raises:
        UploadAuthError: If the private key is missing or the expiry is not
            within the next hour.
    """
    if not private_key:
        raise UploadAuthError("Private key is required to sign upload parameters")

    now = int(time.time())

    if expire is None:
        if not 0 < ttl_seconds <= MAX_EXPIRE_SECONDS:
            raise UploadAuthError(
                f"Upload token lifetime must be between 1 and {MAX_EXPIRE_SECONDS} seconds"
            )
        expire = now + ttl_seconds
    elif expire <= now or expire > now + MAX_EXPIRE_SECONDS:
        raise UploadAuthError("Expire must be a future unix timestamp at most one hour ahead")

    token = token or str(uuid.uuid4())

    signature = hmac.new(
        private_key.encode("utf-8"),
        f"{token}{expire}".encode("utf-8"),
        hashlib.sha1,
    ).hexdigest()

    return {"token": token, "expire": expire, "signature": signature}


class UploadAuthService:
    """
    Issues upload authentication parameters from configured CDN keys.

    Example:
        ```python
        service = UploadAuthService(get_settings())
        payload = service.get_upload_auth()
        # {"authenticationParameters": {...}, "publicKey": "public_..."}
        ```
    """

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    def get_upload_auth(self) -> dict[str, Any]:
        """
        Build the response body for the upload auth endpoint.

        Raises:
            UploadAuthError: If the CDN keys are not configured or signing fails.
        """
        if not self.settings.is_imagekit_configured:
            raise UploadAuthError("ImageKit keys are not configured")

        params = generate_upload_auth_params(
            self.settings.imagekit_private_key,
            ttl_seconds=self.settings.upload_token_ttl_seconds,
        )
        logger.debug("Issued upload auth token expiring at %d", params["expire"])

        return {
            "authenticationParameters": params,
            "publicKey": self.settings.imagekit_public_key,
        }
