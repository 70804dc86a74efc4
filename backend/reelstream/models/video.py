"""
Video Pydantic models for ReelStream.

A video record points at media already uploaded to the CDN; the API never
receives the file itself. Default transformation dimensions are portrait
1080x1920, the format short videos are recorded in.
"""

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


# =============================================================================
# CONSTANTS
# =============================================================================

VIDEO_DIMENSIONS = {"width": 1080, "height": 1920}

TITLE_MAX_LENGTH = 200
DESCRIPTION_MAX_LENGTH = 5000
URL_MAX_LENGTH = 2048


# =============================================================================
# MODELS
# =============================================================================


class Transformation(BaseModel):
    """Delivery transformation applied by the CDN when the video is played."""

    height: int = Field(default=VIDEO_DIMENSIONS["height"], ge=1, description="Output height in pixels")
    width: int = Field(default=VIDEO_DIMENSIONS["width"], ge=1, description="Output width in pixels")
    quality: int | None = Field(default=None, ge=1, le=100, description="Output quality (1-100)")


class VideoCreate(BaseModel):
    """
    Schema for creating a video record after the client finished its CDN upload.
    """

    title: str = Field(..., min_length=1, max_length=TITLE_MAX_LENGTH)
    description: str = Field(..., min_length=1, max_length=DESCRIPTION_MAX_LENGTH)
    video_url: str = Field(..., min_length=1, max_length=URL_MAX_LENGTH, alias="videoUrl")
    thumbnail_url: str = Field(..., min_length=1, max_length=URL_MAX_LENGTH, alias="thumbnailUrl")
    controls: bool = Field(default=True, description="Show player controls")
    transformation: Transformation = Field(default_factory=Transformation)

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "title": "Sunset timelapse",
                "description": "Thirty minutes of sunset in thirty seconds",
                "videoUrl": "https://ik.imagekit.io/reelstream/sunset.mp4",
                "thumbnailUrl": "https://ik.imagekit.io/reelstream/sunset.mp4/ik-thumbnail.jpg",
                "controls": True,
                "transformation": {"height": 1920, "width": 1080, "quality": 80},
            }
        },
    )

    @field_validator("title", "description", "video_url", "thumbnail_url")
    @classmethod
    def strip_text(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Field cannot be blank")
        return v


class Video(VideoCreate):
    """
    Pydantic model for a video as stored in MongoDB.

    Attributes:
        id: MongoDB ObjectId as string (aliased from _id)
        user_id: ID of the user who created the record
        created_at: Creation timestamp (UTC)
        updated_at: Last modification timestamp (UTC)
    """

    id: str | None = Field(default=None, alias="_id", description="MongoDB ObjectId as string")
    user_id: str = Field(..., description="Owner user ID")
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    def to_document(self) -> dict[str, Any]:
        """Serialize for insertion with snake_case field names."""
        return self.model_dump(exclude_none=True, exclude={"id"})


class VideoResponse(BaseModel):
    """Schema for video API responses."""

    id: str = Field(..., description="Video ID")
    title: str
    description: str
    video_url: str = Field(..., serialization_alias="videoUrl")
    thumbnail_url: str = Field(..., serialization_alias="thumbnailUrl")
    controls: bool = True
    transformation: Transformation
    user_id: str | None = Field(None, serialization_alias="userId")
    created_at: datetime = Field(..., serialization_alias="createdAt")
    updated_at: datetime = Field(..., serialization_alias="updatedAt")

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> "VideoResponse":
        return cls(
            id=str(document["_id"]),
            title=document["title"],
            description=document["description"],
            video_url=document["video_url"],
            thumbnail_url=document["thumbnail_url"],
            controls=document.get("controls", True),
            transformation=Transformation(**(document.get("transformation") or {})),
            user_id=document.get("user_id"),
            created_at=document["created_at"],
            updated_at=document.get("updated_at") or document["created_at"],
        )
