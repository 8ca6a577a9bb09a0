"""Utils package initialization"""
from .logger import setup_logger, get_logger, get_job_logger
from .exceptions import (
    VideoExportError,
    InvalidExportRequestError,
    VideoNotFoundError,
    VideoNotReadyError,
    JobNotFoundError,
    FFmpegError,
    S3UploadError
)
from .retry import retry_async

__all__ = [
    "setup_logger",
    "get_logger",
    "get_job_logger",
    "VideoExportError",
    "InvalidExportRequestError",
    "VideoNotFoundError",
    "VideoNotReadyError",
    "JobNotFoundError",
    "FFmpegError",
    "S3UploadError",
    "retry_async"
]
