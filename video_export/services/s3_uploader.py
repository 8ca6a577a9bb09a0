"""
S3 Uploader Service
Publishes rendered export renditions to AWS S3
"""

import asyncio
import mimetypes
import os
from typing import Optional

from ..config import Settings, get_settings
from ..utils.exceptions import S3UploadError
from ..utils.logger import get_logger
from ..utils.retry import retry_async

logger = get_logger()

# S3 error codes that another attempt cannot fix
PERMANENT_S3_ERRORS = {
    "AccessDenied",
    "InvalidAccessKeyId",
    "NoSuchBucket",
    "SignatureDoesNotMatch",
}

CONTENT_TYPES = {
    ".mp4": "video/mp4",
    ".mov": "video/quicktime",
    ".webm": "video/webm",
}


def is_transient_upload_error(exc: Exception) -> bool:
    """False for failures that will repeat on every attempt"""
    if isinstance(exc, (FileNotFoundError, PermissionError)):
        return False
    response = getattr(exc, "response", None)
    if isinstance(response, dict):
        code = response.get("Error", {}).get("Code")
        return code not in PERMANENT_S3_ERRORS
    return True


def content_type_for(path: str) -> str:
    extension = os.path.splitext(path)[1].lower()
    if extension in CONTENT_TYPES:
        return CONTENT_TYPES[extension]
    guessed, _ = mimetypes.guess_type(path)
    return guessed or "application/octet-stream"


class S3Uploader:
    """Uploads export artifacts when AWS credentials and a bucket are configured"""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self._client = None

    @property
    def enabled(self) -> bool:
        return bool(
            self.settings.aws_access_key_id
            and self.settings.aws_secret_access_key
            and self.settings.s3_bucket_name
        )

    @property
    def bucket(self) -> str:
        return self.settings.s3_bucket_name

    def _get_client(self):
        """Lazily build the boto3 client"""
        if self._client is None:
            import boto3
            from botocore.config import Config

            self._client = boto3.client(
                "s3",
                aws_access_key_id=self.settings.aws_access_key_id,
                aws_secret_access_key=self.settings.aws_secret_access_key,
                region_name=self.settings.aws_region,
                config=Config(retries={"max_attempts": 3, "mode": "adaptive"}),
            )
            logger.info(f"S3 client initialized for bucket: {self.bucket}")
        return self._client

    def object_url(self, s3_key: str) -> str:
        return f"https://{self.bucket}.s3.{self.settings.aws_region}.amazonaws.com/{s3_key}"

    async def upload_file(self, local_path: str, s3_key: str) -> str:
        """
        Upload one rendered artifact.

        Returns:
            Public object URL

        Raises:
            S3UploadError: upload disabled, file missing, or retries exhausted
        """
        if not self.enabled:
            raise S3UploadError("S3 upload is not configured", key=s3_key)
        if not os.path.exists(local_path):
            raise S3UploadError(f"Rendered file not found: {local_path}", bucket=self.bucket, key=s3_key)

        size_mb = os.path.getsize(local_path) / 1024 / 1024
        logger.info(f"Uploading {s3_key} to s3://{self.bucket} ({size_mb:.1f} MB)")

        try:
            await self._upload_with_retry(local_path, s3_key, content_type_for(local_path))
        except Exception as e:
            logger.error(f"S3 upload of {s3_key} failed: {e}")
            raise S3UploadError(f"S3 upload failed: {e}", bucket=self.bucket, key=s3_key) from e

        return self.object_url(s3_key)

    @retry_async(max_retries=2, base_delay=2.0, should_retry=is_transient_upload_error)
    async def _upload_with_retry(self, local_path: str, s3_key: str, content_type: str):
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._do_upload, local_path, s3_key, content_type)

    def _do_upload(self, local_path: str, s3_key: str, content_type: str):
        """Blocking multipart upload"""
        from boto3.s3.transfer import TransferConfig

        self._get_client().upload_file(
            local_path,
            self.bucket,
            s3_key,
            ExtraArgs={"ContentType": content_type},
            Config=TransferConfig(
                multipart_threshold=8 * 1024 * 1024,
                multipart_chunksize=8 * 1024 * 1024,
                max_concurrency=4,
            ),
        )
