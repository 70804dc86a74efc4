"""
ReelStream Videos API Router

Endpoints:
- GET /: List videos, newest first (public)
- POST /: Record a video uploaded to the CDN (requires sign-in)
"""

import logging

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pymongo.errors import PyMongoError

from reelstream.api.v1.auth import ErrorResponse
from reelstream.core.auth import get_current_user
from reelstream.core.database import DatabaseClient, get_db
from reelstream.models.video import VideoCreate, VideoResponse
from reelstream.services.video_service import MAX_LIST_LIMIT, VideoService


logger = logging.getLogger(__name__)

router = APIRouter(tags=["videos"])


@router.get(
    "",
    response_model=list[VideoResponse],
    status_code=status.HTTP_200_OK,
    summary="List videos",
    responses={
        500: {"description": "Failed to fetch videos", "model": ErrorResponse},
        503: {"description": "Database unavailable", "model": ErrorResponse},
    },
)
async def list_videos(
    limit: int = Query(default=50, ge=1, le=MAX_LIST_LIMIT),
    skip: int = Query(default=0, ge=0),
    db: DatabaseClient = Depends(get_db),
) -> list[VideoResponse]:
    try:
        documents = await VideoService(db).list_videos(limit=limit, skip=skip)
    except PyMongoError as e:
        logger.exception("Failed to fetch videos")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch videos",
        ) from e

    return [VideoResponse.from_document(document) for document in documents]


@router.post(
    "",
    response_model=VideoResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a video record",
    responses={
        400: {"description": "Missing or invalid fields", "model": ErrorResponse},
        401: {"description": "Not authenticated", "model": ErrorResponse},
        500: {"description": "Failed to create video", "model": ErrorResponse},
    },
)
async def create_video(
    payload: VideoCreate,
    current_user: dict[str, Any] = Depends(get_current_user),
    db: DatabaseClient = Depends(get_db),
) -> VideoResponse:
    """
    Record a video the signed-in user has uploaded.

    Missing required fields are rejected with 400 by the request validation
    handler before this function runs.
    """
    try:
        document = await VideoService(db).create_video(payload, user_id=str(current_user["_id"]))
    except PyMongoError as e:
        logger.exception("Failed to create video for user %s", current_user.get("_id"))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create video",
        ) from e

    return VideoResponse.from_document(document)


__all__ = ["router"]
