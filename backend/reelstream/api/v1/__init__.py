"""
ReelStream API v1 Router Aggregator.

Combines the v1 endpoint routers into a single APIRouter mounted by the
application under the /api/v1 prefix.

Router Structure:
    - /auth: Registration and credential sign-in
    - /upload: Upload authentication parameters
    - /videos: Video catalogue
"""

from fastapi import APIRouter

from reelstream.api.v1.auth import router as auth_router
from reelstream.api.v1.upload import router as upload_router
from reelstream.api.v1.videos import router as videos_router


api_router = APIRouter()

api_router.include_router(auth_router, prefix="/auth", tags=["authentication"])
api_router.include_router(upload_router, prefix="/upload", tags=["upload"])
api_router.include_router(videos_router, prefix="/videos", tags=["videos"])


__all__ = ["api_router"]
