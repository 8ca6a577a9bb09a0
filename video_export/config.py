"""
Video Export Configuration
Centralized settings management using Pydantic Settings
"""

from pydantic_settings import BaseSettings
from pydantic import Field, field_validator
from typing import List
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # ==========================================================================
    # Application
    # ==========================================================================
    app_name: str = "VideoExport"
    debug: bool = False
    app_version: str = "1.0.0"

    # ==========================================================================
    # AWS S3
    # ==========================================================================
    aws_access_key_id: str = Field(default="", description="AWS Access Key ID")
    aws_secret_access_key: str = Field(default="", description="AWS Secret Key")
    aws_region: str = Field(default="us-east-1", description="AWS Region")
    s3_bucket_name: str = Field(default="", description="S3 Bucket Name")
    s3_key_prefix: str = Field(default="exports", description="Key prefix for exported renditions")

    # ==========================================================================
    # Export Worker
    # ==========================================================================
    export_default_batch_size: int = Field(default=10, ge=1, le=50, description="Jobs per worker trigger when no limit is sent")
    export_max_batch_size: int = Field(default=50, ge=1, le=500, description="Hard cap on jobs per worker trigger")
    export_worker_concurrency: int = Field(default=3, ge=1, le=8, description="Jobs rendered concurrently within one batch")
    export_list_page_size: int = Field(default=20, ge=1, le=100, description="Jobs returned when listing a video's exports")
    export_poll_interval: int = Field(default=0, ge=0, description="In-process batch interval in seconds (0 disables)")
    render_timeout_seconds: int = Field(default=900, ge=10, description="Per-output FFmpeg timeout")
    ffmpeg_binary: str = Field(default="ffmpeg", description="FFmpeg executable")

    # ==========================================================================
    # Security
    # ==========================================================================
    api_key: str = Field(default="", description="Optional API key for /api routes")
    cron_secret: str = Field(default="", description="Shared secret for the export worker trigger")
    cors_allowed_origins: List[str] = Field(
        default_factory=lambda: [
            "http://localhost:8000",
            "http://127.0.0.1:8000"
        ],
        description="Allowed CORS origins"
    )

    # ==========================================================================
    # Paths
    # ==========================================================================
    output_dir: str = Field(default="output", description="Output directory for rendered exports")
    data_dir: str = Field(default="data", description="Persistent application data directory")

    @field_validator("cors_allowed_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, value):
        if isinstance(value, str):
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
    }


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
