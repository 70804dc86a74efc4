"""
Pydantic models for ReelStream documents and API responses.
"""

from reelstream.models.user import TokenResponse, User, UserResponse
from reelstream.models.video import Transformation, Video, VideoCreate, VideoResponse


__all__ = [
    "TokenResponse",
    "Transformation",
    "User",
    "UserResponse",
    "Video",
    "VideoCreate",
    "VideoResponse",
]
