"""
Custom Exceptions for the export service
Structured error handling with recovery hints and HTTP status mapping
"""

from typing import Optional, Dict, Any, List


class VideoExportError(Exception):
    """Base exception for all export service errors"""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        code: str = "UNKNOWN_ERROR",
        recoverable: bool = False,
        recovery_hint: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        status_code: Optional[int] = None
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.recoverable = recoverable
        self.recovery_hint = recovery_hint
        self.details = details or {}
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to JSON-serializable dict"""
        return {
            "error": self.code,
            "message": self.message,
            "recoverable": self.recoverable,
            "recovery_hint": self.recovery_hint,
            "details": self.details
        }


# ============================================================================
# Request Errors
# ============================================================================

class InvalidExportRequestError(VideoExportError):
    """Export request failed validation; every reason is listed in details"""

    status_code = 400

    def __init__(self, message: str, errors: List[str], **kwargs):
        super().__init__(
            message=message,
            code="INVALID_EXPORT_REQUEST",
            recoverable=True,
            recovery_hint="Fix the listed problems and submit the export again.",
            details={"errors": list(errors), **kwargs}
        )


class VideoNotFoundError(VideoExportError):
    """Source video missing or not owned by the client"""

    status_code = 404

    def __init__(self, video_id: str, client_id: Optional[str] = None):
        super().__init__(
            message="Video not found",
            code="VIDEO_NOT_FOUND",
            recoverable=False,
            recovery_hint="Check the video id and the client that owns it.",
            details={"video_id": video_id, "client_id": client_id}
        )


class VideoNotReadyError(VideoExportError):
    """Source video exists but cannot be exported yet"""

    status_code = 400

    def __init__(self, video_id: str, current_status: Optional[str], reason: str = "Video not ready for export"):
        super().__init__(
            message=reason,
            code="VIDEO_NOT_READY",
            recoverable=True,
            recovery_hint="Wait for video generation to complete before exporting.",
            details={"video_id": video_id, "current_status": current_status}
        )


# ============================================================================
# Job Processing Errors
# ============================================================================

class JobNotFoundError(VideoExportError):
    """Export job not found"""

    status_code = 404

    def __init__(self, job_id: str):
        super().__init__(
            message=f"Export job not found: {job_id}",
            code="JOB_NOT_FOUND",
            recoverable=False,
            details={"job_id": job_id}
        )


# ============================================================================
# Rendering & Upload Errors
# ============================================================================

class FFmpegError(VideoExportError):
    """FFmpeg execution error"""

    def __init__(self, message: str, command: Optional[str] = None, stderr: Optional[str] = None):
        super().__init__(
            message=message,
            code="FFMPEG_ERROR",
            recoverable=True,
            recovery_hint="Ensure FFmpeg is installed and in PATH. Check the video file isn't corrupted.",
            details={"command": command, "stderr": stderr[-500:] if stderr else None}
        )


class S3UploadError(VideoExportError):
    """Error uploading to S3"""

    def __init__(self, message: str, bucket: Optional[str] = None, key: Optional[str] = None):
        super().__init__(
            message=message,
            code="S3_UPLOAD_ERROR",
            recoverable=True,
            recovery_hint="Check AWS credentials and bucket permissions. Retry the upload.",
            details={"bucket": bucket, "key": key}
        )
