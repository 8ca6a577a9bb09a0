"""Shared fixtures for the export service tests"""

import asyncio
import copy

import pytest

from video_export.models.edit_state import OutputSettings
from video_export.models.export_job import ExportRequest, create_export_job
from video_export.models.video import VideoAsset
from video_export.services.job_store import JobStore
from video_export.services.video_renderer import RenderResult


BASE_EDIT_STATE = {
    "version": 1,
    "trim": {"start": 0, "end": 10},
    "layers": [],
}


class FakeRenderer:
    """Stands in for FFmpeg; fails or raises for chosen filenames"""

    def __init__(self, fail_on=(), raise_on=(), error="encoder exploded"):
        self.fail_on = set(fail_on)
        self.raise_on = set(raise_on)
        self.error = error
        self.calls = []

    async def render_output(self, source_url, edit_state, output, job_id):
        self.calls.append((job_id, output.filename))
        if output.filename in self.raise_on:
            raise RuntimeError("renderer crashed")
        if output.filename in self.fail_on:
            return RenderResult(success=False, error=self.error)
        return RenderResult(success=True, artifact_path=f"memory://{job_id}/{output.filename}")


def make_job(outputs=None, video_id="v1", client_id="c1", edit_state=None, source_url="https://cdn.test/v1.mp4"):
    outputs = outputs or [{"aspectRatio": "16:9", "resolution": "1080p", "format": "mp4"}]
    return create_export_job(
        ExportRequest(
            video_id=video_id,
            client_id=client_id,
            edit_state=copy.deepcopy(edit_state or BASE_EDIT_STATE),
            outputs=[OutputSettings.model_validate(output) for output in outputs],
            source_url=source_url,
        )
    )


@pytest.fixture
def edit_state():
    return copy.deepcopy(BASE_EDIT_STATE)


@pytest.fixture
def store(tmp_path):
    return JobStore(str(tmp_path / "exports.db"))


@pytest.fixture
def renderer():
    return FakeRenderer()


@pytest.fixture
def ready_video(store):
    video = VideoAsset(
        id="v1",
        client_id="c1",
        status="completed",
        video_url="https://cdn.test/v1.mp4",
        duration_seconds=30,
    )
    asyncio.run(store.upsert_video(video))
    return video
