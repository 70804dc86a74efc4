"""
ReelStream Video Service Module

Stores and lists video records. The media itself lives on the CDN; a record
only keeps its URLs, playback settings and owner.
"""

import logging

from typing import Any

from pymongo import DESCENDING

from reelstream.core.database import DatabaseClient
from reelstream.models.video import Video, VideoCreate


logger = logging.getLogger(__name__)

# Upper bound on videos returned by a single listing
MAX_LIST_LIMIT = 100


class VideoService:
    """
    Video catalogue over the videos collection.

    Attributes:
        db_client: Connected DatabaseClient providing the videos collection
    """

    def __init__(self, db_client: DatabaseClient) -> None:
        self.db_client = db_client

    async def list_videos(self, limit: int = MAX_LIST_LIMIT, skip: int = 0) -> list[dict[str, Any]]:
        """Return videos newest first."""
        limit = max(1, min(limit, MAX_LIST_LIMIT))
        cursor = (
            self.db_client.get_videos_collection()
            .find({})
            .sort("created_at", DESCENDING)
            .skip(max(skip, 0))
            .limit(limit)
        )
        return await cursor.to_list(length=limit)

    async def create_video(self, payload: VideoCreate, user_id: str) -> dict[str, Any]:
        """
        Insert a video record owned by user_id.

        Returns:
            dict: The stored document including its _id.
        """
        video = Video(**payload.model_dump(), user_id=user_id)
        document = video.to_document()

        result = await self.db_client.get_videos_collection().insert_one(document)
        document["_id"] = result.inserted_id

        logger.info("Video created: %s by user %s", result.inserted_id, user_id)
        return document
