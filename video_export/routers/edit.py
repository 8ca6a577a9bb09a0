"""
Edit Router
Loads and saves the live edit state of a source video.
"""

from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field

from ..models.edit_state import validate_edit_state
from ..services.job_store import JobStore, get_job_store
from ..utils.exceptions import InvalidExportRequestError, VideoNotFoundError
from ..utils.logger import get_logger

router = APIRouter(prefix="/api/video", tags=["edit"])
logger = get_logger()


class EditStateUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    edit_state: Any = Field(None, alias="editState")


@router.get("/{video_id}/edit")
async def get_edit_state(video_id: str, store: JobStore = Depends(get_job_store)):
    """Return the saved edit state (or null) with the source video details."""
    video = await store.get_video(video_id)
    if video is None:
        raise VideoNotFoundError(video_id)

    return {
        "videoId": video.id,
        "videoUrl": video.video_url,
        "durationSeconds": video.duration_seconds,
        "status": video.status,
        "editState": video.edit_state,
    }


@router.put("/{video_id}/edit")
async def save_edit_state(
    video_id: str,
    payload: EditStateUpdate,
    store: JobStore = Depends(get_job_store),
):
    """Replace the edit state; export jobs already queued keep their snapshot."""
    video = await store.get_video(video_id)
    if video is None:
        raise VideoNotFoundError(video_id)

    if not payload.edit_state:
        raise HTTPException(400, "editState is required")

    errors = validate_edit_state(payload.edit_state, video.duration_seconds)
    if errors:
        raise InvalidExportRequestError("Invalid edit state", errors)

    await store.save_edit_state(video_id, payload.edit_state)
    logger.info(f"Edit state saved for video {video_id}")
    return {
        "success": True,
        "message": "Edit state saved",
        "videoId": video_id,
    }
