"""
Exports Router
Creates export jobs for a source video and reports their status.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, ConfigDict, Field

from ..config import Settings, get_settings
from ..models.edit_state import OutputSettings, validate_edit_state, validate_output_settings
from ..models.export_job import ExportJob, ExportRequest, create_export_job, validate_naming_inputs
from ..services.job_store import JobStore, get_job_store
from ..utils.exceptions import (
    InvalidExportRequestError,
    JobNotFoundError,
    VideoNotFoundError,
    VideoNotReadyError,
)
from ..utils.logger import get_logger

router = APIRouter(prefix="/api/video", tags=["exports"])
logger = get_logger()


class ExportCreate(BaseModel):
    """Body of an export request; checked field by field in the handler"""
    model_config = ConfigDict(populate_by_name=True)

    edit_state: Any = Field(None, alias="editState")
    outputs: Any = None
    client_id: Optional[str] = Field(None, alias="clientId")
    naming_pattern: Optional[str] = Field(None, alias="namingPattern")


def _job_to_dict(job: ExportJob) -> Dict[str, Any]:
    data = job.model_dump(by_alias=True, mode="json")
    return {
        "id": data["id"],
        "status": data["status"],
        "progress": data["progress"],
        "error": data["errorMessage"],
        "outputs": data["outputs"],
        "results": data["results"],
        "createdAt": data["createdAt"],
        "startedAt": data["startedAt"],
        "completedAt": data["completedAt"],
    }


@router.post("/{video_id}/export", status_code=status.HTTP_201_CREATED)
async def create_export(
    video_id: str,
    payload: ExportCreate,
    store: JobStore = Depends(get_job_store),
):
    """Validate an export request and queue it as a pending job."""
    if not payload.client_id:
        raise HTTPException(400, "Missing clientId")
    if not payload.edit_state:
        raise HTTPException(400, "Missing editState")
    if not isinstance(payload.outputs, list) or not payload.outputs:
        raise HTTPException(400, "Missing or empty outputs array")

    edit_state_errors = validate_edit_state(payload.edit_state)
    output_errors: List[str] = []
    for index, output in enumerate(payload.outputs, start=1):
        output_errors.extend(validate_output_settings(output, index))

    naming_errors = validate_naming_inputs(payload.client_id, video_id, payload.naming_pattern)

    if edit_state_errors or output_errors or naming_errors:
        if edit_state_errors:
            message = "Invalid edit state"
        elif output_errors:
            message = "Invalid output settings"
        else:
            message = "Invalid output naming"
        raise InvalidExportRequestError(message, edit_state_errors + output_errors + naming_errors)

    video = await store.get_video(video_id, payload.client_id)
    if video is None:
        raise VideoNotFoundError(video_id, payload.client_id)
    if not video.is_ready:
        raise VideoNotReadyError(video_id, video.status)
    if not video.video_url:
        raise VideoNotReadyError(video_id, video.status, reason="Video has no URL")

    if video.duration_seconds is not None:
        duration_errors = validate_edit_state(payload.edit_state, video.duration_seconds)
        if duration_errors:
            raise InvalidExportRequestError("Invalid edit state", duration_errors)

    job = create_export_job(
        ExportRequest(
            video_id=video_id,
            edit_state=payload.edit_state,
            outputs=[OutputSettings.model_validate(output) for output in payload.outputs],
            client_id=payload.client_id,
            naming_pattern=payload.naming_pattern,
            source_url=video.video_url,
        )
    )
    await store.insert_job(job)

    logger.info(f"Export job {job.id} created for video {video_id} with {len(job.outputs)} outputs")
    return {
        "exportId": job.id,
        "videoId": video_id,
        "outputs": [output.model_dump(by_alias=True) for output in job.outputs],
        "status": job.status,
        "createdAt": job.created_at.isoformat(),
    }


@router.get("/{video_id}/export")
async def list_exports(
    video_id: str,
    client_id: Optional[str] = Query(None, alias="clientId"),
    store: JobStore = Depends(get_job_store),
    settings: Settings = Depends(get_settings),
):
    """List the most recent export jobs of a video."""
    if not client_id:
        raise HTTPException(400, "Missing clientId query parameter")

    jobs = await store.list_jobs_for_video(video_id, client_id, settings.export_list_page_size)
    return {
        "videoId": video_id,
        "jobs": [_job_to_dict(job) for job in jobs],
    }


@router.get("/{video_id}/export/{export_id}")
async def get_export(
    video_id: str,
    export_id: str,
    client_id: Optional[str] = Query(None, alias="clientId"),
    store: JobStore = Depends(get_job_store),
):
    """Poll a single export job."""
    if not client_id:
        raise HTTPException(400, "Missing clientId query parameter")

    job = await store.get_job(export_id)
    if job is None or job.video_id != video_id or job.client_id != client_id:
        raise JobNotFoundError(export_id)
    return {"videoId": video_id, "job": _job_to_dict(job)}
