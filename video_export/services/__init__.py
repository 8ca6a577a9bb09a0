"""Services package initialization"""
from .job_store import JobStore, get_job_store
from .video_renderer import VideoRenderer, RenderResult, build_filter_complex
from .s3_uploader import S3Uploader
from .export_worker import ExportWorker, JobResult, BatchResult, get_export_worker
from .export_poller import ExportPoller

__all__ = [
    "JobStore",
    "get_job_store",
    "VideoRenderer",
    "RenderResult",
    "build_filter_complex",
    "S3Uploader",
    "ExportWorker",
    "JobResult",
    "BatchResult",
    "get_export_worker",
    "ExportPoller"
]
