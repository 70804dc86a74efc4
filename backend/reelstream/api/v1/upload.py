"""
ReelStream Upload Authentication API Router

Endpoints:
- GET /auth: Issue signed parameters for one direct upload to the ImageKit CDN

The browser uploads the file straight to the CDN with these parameters and
then records the result through POST /api/v1/videos. The private key used
for signing is never part of any response.
"""

import logging

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from reelstream.config import Settings, get_settings
from reelstream.services.upload_auth_service import UploadAuthError, UploadAuthService


logger = logging.getLogger(__name__)

router = APIRouter(tags=["upload"])

# Response body on failure, kept identical to what the upload widget expects
UPLOAD_AUTH_FAILED = {"error": "Authentication for Image kit failed"}


class AuthenticationParameters(BaseModel):
    token: str = Field(..., description="Single-use upload token")
    expire: int = Field(..., description="Unix timestamp after which the token is rejected")
    signature: str = Field(..., description="HMAC-SHA1 hex of token + expire")


class UploadAuthResponse(BaseModel):
    authenticationParameters: AuthenticationParameters
    publicKey: str


class UploadAuthErrorResponse(BaseModel):
    error: str


@router.get(
    "/auth",
    response_model=UploadAuthResponse,
    status_code=status.HTTP_200_OK,
    summary="Get upload authentication parameters",
    responses={
        500: {"description": "Signing failed or CDN keys missing", "model": UploadAuthErrorResponse},
    },
)
async def get_upload_auth(settings: Settings = Depends(get_settings)):
    """
    Return {authenticationParameters: {token, expire, signature}, publicKey}.

    Every failure is reported with the same 500 body; the reason is only logged.
    """
    try:
        return UploadAuthService(settings).get_upload_auth()
    except UploadAuthError as e:
        logger.error("Upload auth failed: %s", e)
    except Exception:
        logger.exception("Unexpected error issuing upload auth parameters")

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=UPLOAD_AUTH_FAILED,
    )


__all__ = ["router"]
