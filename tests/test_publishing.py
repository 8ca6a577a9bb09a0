"""Tests for artifact publishing: S3 upload, local URLs and retries"""

import pytest

from video_export.config import Settings
from video_export.services.export_worker import ExportWorker
from video_export.services.s3_uploader import S3Uploader, content_type_for, is_transient_upload_error
from video_export.services.video_renderer import RenderResult
from video_export.utils.exceptions import S3UploadError
from video_export.utils.retry import retry_async

from conftest import FakeRenderer, make_job


class FakeUploader:
    """Records uploads instead of talking to S3"""

    enabled = True

    def __init__(self, fail=False):
        self.fail = fail
        self.keys = []

    async def upload_file(self, local_path, s3_key):
        self.keys.append(s3_key)
        if self.fail:
            raise S3UploadError("S3 upload failed: SlowDown", bucket="exports", key=s3_key)
        return f"https://exports.s3.amazonaws.com/{s3_key}"


class DiskRenderer(FakeRenderer):
    """Reports artifacts under a real output directory"""

    def __init__(self, output_dir):
        super().__init__()
        self.output_dir = output_dir

    async def render_output(self, source_url, edit_state, output, job_id):
        self.calls.append((job_id, output.filename))
        return RenderResult(success=True, artifact_path=str(self.output_dir / job_id / output.filename))


class ClientError(Exception):
    """Shaped like botocore's ClientError"""

    def __init__(self, code):
        super().__init__(code)
        self.response = {"Error": {"Code": code}}


class TestPublishing:
    """Test where rendered artifacts end up"""

    @pytest.mark.asyncio
    async def test_uploads_to_s3_when_enabled(self, store, renderer):
        job = make_job()
        await store.insert_job(job)
        uploader = FakeUploader()

        result = await ExportWorker(store, renderer, uploader=uploader).process_export_job(job)

        key = f"exports/{job.id}/c1_v1_16:9_1080p.mp4"
        assert uploader.keys == [key]
        assert result.outputs[0].artifact_url == f"https://exports.s3.amazonaws.com/{key}"

    @pytest.mark.asyncio
    async def test_upload_failure_fails_job(self, store, renderer):
        job = make_job()
        await store.insert_job(job)

        result = await ExportWorker(store, renderer, uploader=FakeUploader(fail=True)).process_export_job(job)

        assert result.success is False
        assert result.error == "S3 upload failed: SlowDown"
        assert (await store.get_job(job.id)).status == "failed"

    @pytest.mark.asyncio
    async def test_local_artifacts_served_from_output(self, store, tmp_path):
        job = make_job()
        await store.insert_job(job)
        renderer = DiskRenderer(tmp_path / "output")

        result = await ExportWorker(store, renderer).process_export_job(job)

        assert result.outputs[0].artifact_url == f"/output/{job.id}/c1_v1_16:9_1080p.mp4"


class TestS3Uploader:
    """Test S3Uploader without network access"""

    def test_disabled_without_credentials(self):
        uploader = S3Uploader(Settings(aws_access_key_id="", s3_bucket_name=""))
        assert uploader.enabled is False

    @pytest.mark.asyncio
    async def test_upload_refused_when_disabled(self, tmp_path):
        uploader = S3Uploader(Settings(aws_access_key_id="", s3_bucket_name=""))

        with pytest.raises(S3UploadError):
            await uploader.upload_file(str(tmp_path / "a.mp4"), "exports/a.mp4")

    def test_object_url(self):
        uploader = S3Uploader(Settings(s3_bucket_name="renders", aws_region="eu-west-1"))
        assert uploader.object_url("exports/j/a.mp4") == "https://renders.s3.eu-west-1.amazonaws.com/exports/j/a.mp4"

    def test_content_types(self):
        assert content_type_for("a.mp4") == "video/mp4"
        assert content_type_for("a.mov") == "video/quicktime"
        assert content_type_for("a.webm") == "video/webm"

    def test_permanent_errors_not_retried(self):
        assert is_transient_upload_error(ClientError("AccessDenied")) is False
        assert is_transient_upload_error(FileNotFoundError("a.mp4")) is False
        assert is_transient_upload_error(ClientError("SlowDown")) is True
        assert is_transient_upload_error(ConnectionError("reset")) is True


class TestRetryAsync:
    """Test retry_async"""

    @pytest.mark.asyncio
    async def test_retries_until_success(self):
        calls = []

        @retry_async(max_retries=3, base_delay=0, jitter=False)
        async def flaky():
            calls.append(1)
            if len(calls) < 3:
                raise ConnectionError("reset")
            return "ok"

        assert await flaky() == "ok"
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self):
        calls = []

        @retry_async(max_retries=2, base_delay=0, jitter=False)
        async def broken():
            calls.append(1)
            raise ConnectionError("reset")

        with pytest.raises(ConnectionError):
            await broken()
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_permanent_error_raised_immediately(self):
        calls = []

        @retry_async(max_retries=5, base_delay=0, should_retry=lambda exc: False)
        async def denied():
            calls.append(1)
            raise PermissionError("denied")

        with pytest.raises(PermissionError):
            await denied()
        assert len(calls) == 1
