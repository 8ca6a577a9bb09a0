"""
Export Worker Service
Claims pending export jobs, renders each requested output and finalizes status.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from ..config import get_settings
from ..models.export_job import ExportJob, ExportOutput, JobStatus, OutputResult
from ..utils.exceptions import JobNotFoundError, S3UploadError
from ..utils.logger import get_job_logger, get_logger
from .job_store import JobStore, get_job_store
from .s3_uploader import S3Uploader
from .video_renderer import VideoRenderer

logger = get_logger()


@dataclass
class JobResult:
    """Outcome of one processing pass over a job"""
    job_id: str
    success: bool
    outputs: List[OutputResult] = field(default_factory=list)
    error: Optional[str] = None
    skipped: bool = False


@dataclass
class BatchResult:
    """Aggregate of one batch run; processed == succeeded + failed"""
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    results: List[JobResult] = field(default_factory=list)

    def add(self, result: JobResult):
        self.results.append(result)
        self.processed += 1
        if result.success:
            self.succeeded += 1
        else:
            self.failed += 1


def _error_text(exc: Exception) -> str:
    return str(exc) or exc.__class__.__name__


class ExportWorker:
    """Drives export jobs through pending -> processing -> completed | failed."""

    def __init__(
        self,
        store: JobStore,
        renderer: VideoRenderer,
        uploader: Optional[S3Uploader] = None,
        concurrency: int = 1,
        max_batch_size: int = 50,
        s3_key_prefix: str = "exports",
        output_url_prefix: str = "/output"
    ):
        self.store = store
        self.renderer = renderer
        self.uploader = uploader
        self.concurrency = max(1, concurrency)
        self.max_batch_size = max(1, max_batch_size)
        self.s3_key_prefix = s3_key_prefix.strip("/")
        self.output_url_prefix = output_url_prefix.rstrip("/")

    # =========================================================================
    # Queue access
    # =========================================================================

    async def fetch_pending_export_jobs(self, limit: int) -> List[ExportJob]:
        """Oldest pending jobs first, at most `limit`. Read-only."""
        return await self.store.fetch_pending(limit)

    def clamp_limit(self, limit: int) -> int:
        return max(1, min(limit, self.max_batch_size))

    # =========================================================================
    # Single job
    # =========================================================================

    async def process_export_job(self, job: ExportJob) -> JobResult:
        """
        Run one processing pass over a job.

        Terminal jobs are reported as-is without rendering. Render and upload
        failures end the job as failed; only persistence errors propagate.
        """
        current = await self.store.get_job(job.id)
        if current is None:
            raise JobNotFoundError(job.id)
        if current.is_terminal:
            get_job_logger(job.id).info(f"Already {current.status}, nothing to do")
            return self._existing_result(current)

        if not await self.store.claim_job(job.id, datetime.utcnow()):
            latest = await self.store.get_job(job.id)
            if latest is not None and latest.is_terminal:
                return self._existing_result(latest)
            get_job_logger(job.id).info("Claimed by another worker, skipping")
            return JobResult(job_id=job.id, success=False, skipped=True)

        get_job_logger(job.id).info(f"Claimed ({len(current.outputs)} outputs)")
        return await self._render_outputs(current)

    @staticmethod
    def _existing_result(job: ExportJob) -> JobResult:
        return JobResult(
            job_id=job.id,
            success=job.status == JobStatus.COMPLETED.value,
            outputs=list(job.results),
            error=job.error_message,
        )

    async def _fail(self, job: ExportJob, reason: str, results: List[OutputResult]) -> JobResult:
        await self.store.update_job(
            job.id,
            status=JobStatus.FAILED,
            error_message=reason,
            results=results,
            completed_at=datetime.utcnow(),
        )
        get_job_logger(job.id).warning(f"Failed: {reason}")
        return JobResult(job_id=job.id, success=False, outputs=results, error=reason)

    async def _render_outputs(self, job: ExportJob) -> JobResult:
        results: List[OutputResult] = []

        if not job.source_url:
            return await self._fail(job, "Export job has no source video URL", results)

        total = len(job.outputs)
        for index, output in enumerate(job.outputs):
            result = await self._render_one(job, output)
            results.append(result)

            if not result.success:
                # Partial renditions are not useful on their own
                return await self._fail(job, result.error or "Render failed", results)

            progress = min(99, (index + 1) * 100 // total)
            await self.store.update_job(job.id, progress=progress, results=results)

        await self.store.update_job(
            job.id,
            status=JobStatus.COMPLETED,
            progress=100,
            results=results,
            completed_at=datetime.utcnow(),
        )
        get_job_logger(job.id).info(f"Completed with {total} outputs")
        return JobResult(job_id=job.id, success=True, outputs=results)

    async def _render_one(self, job: ExportJob, output: ExportOutput) -> OutputResult:
        try:
            rendered = await self.renderer.render_output(
                job.source_url, job.edit_state, output, job.id
            )
        except Exception as exc:
            get_job_logger(job.id).exception(f"Renderer raised for {output.filename}: {exc}")
            return OutputResult(filename=output.filename, success=False, error=_error_text(exc))

        if not rendered.success or not rendered.artifact_path:
            return OutputResult(
                filename=output.filename,
                success=False,
                error=rendered.error or "Render produced no artifact",
            )

        try:
            artifact_url = await self._publish(job, output, rendered.artifact_path)
        except S3UploadError as exc:
            return OutputResult(filename=output.filename, success=False, error=exc.message)

        get_job_logger(job.id).info(f"Output ready: {output.filename} -> {artifact_url}")
        return OutputResult(filename=output.filename, success=True, artifact_url=artifact_url)

    async def _publish(self, job: ExportJob, output: ExportOutput, artifact_path: str) -> str:
        if self.uploader is not None and self.uploader.enabled:
            s3_key = f"{self.s3_key_prefix}/{job.id}/{output.filename}"
            return await self.uploader.upload_file(artifact_path, s3_key)
        return self._local_url(artifact_path)

    def _local_url(self, artifact_path: str) -> str:
        output_dir = getattr(self.renderer, "output_dir", None)
        if output_dir is None:
            return artifact_path
        try:
            relative = Path(artifact_path).resolve().relative_to(Path(output_dir).resolve())
        except ValueError:
            return artifact_path
        return f"{self.output_url_prefix}/{relative.as_posix()}"

    # =========================================================================
    # Batch
    # =========================================================================

    async def process_all_pending_jobs(self, limit: int) -> BatchResult:
        """
        Process up to `limit` pending jobs (capped at max_batch_size).

        Jobs run concurrently up to `concurrency`. A job that raises is
        recorded as failed and the rest of the batch carries on. Failing to
        fetch the batch propagates.
        """
        limit = self.clamp_limit(limit)
        jobs = await self.fetch_pending_export_jobs(limit)
        batch = BatchResult()
        if not jobs:
            return batch

        logger.info(f"Processing {len(jobs)} pending export jobs (concurrency={self.concurrency})")
        semaphore = asyncio.Semaphore(self.concurrency)

        async def run(job: ExportJob) -> JobResult:
            async with semaphore:
                try:
                    return await self.process_export_job(job)
                except Exception as exc:
                    get_job_logger(job.id).exception(f"Crashed: {exc}")
                    return JobResult(job_id=job.id, success=False, error=_error_text(exc))

        for result in await asyncio.gather(*(run(job) for job in jobs)):
            if result.skipped:
                continue
            batch.add(result)

        logger.info(
            f"Export batch done: {batch.processed} processed, "
            f"{batch.succeeded} succeeded, {batch.failed} failed"
        )
        return batch


_export_worker: Optional[ExportWorker] = None


def get_export_worker() -> ExportWorker:
    """Return singleton export worker."""
    global _export_worker
    if _export_worker is None:
        settings = get_settings()
        _export_worker = ExportWorker(
            store=get_job_store(),
            renderer=VideoRenderer(
                output_dir=settings.output_dir,
                ffmpeg_binary=settings.ffmpeg_binary,
                timeout_seconds=settings.render_timeout_seconds,
            ),
            uploader=S3Uploader(settings),
            concurrency=settings.export_worker_concurrency,
            max_batch_size=settings.export_max_batch_size,
            s3_key_prefix=settings.s3_key_prefix,
        )
    return _export_worker
