"""Models package initialization"""
from .edit_state import (
    EDIT_STATE_VERSION,
    AspectRatio,
    Resolution,
    OutputFormat,
    LayerType,
    TrimRange,
    Layer,
    OutputSettings,
    EditState,
    validate_edit_state,
    validate_output_settings,
)
from .export_job import (
    DEFAULT_NAMING_PATTERN,
    JobStatus,
    TERMINAL_STATUSES,
    ExportOutput,
    OutputResult,
    ExportRequest,
    ExportJob,
    create_export_job,
    output_dimensions,
)
from .video import VideoAsset, READY_STATUSES

__all__ = [
    "EDIT_STATE_VERSION",
    "AspectRatio",
    "Resolution",
    "OutputFormat",
    "LayerType",
    "TrimRange",
    "Layer",
    "OutputSettings",
    "EditState",
    "validate_edit_state",
    "validate_output_settings",
    "DEFAULT_NAMING_PATTERN",
    "JobStatus",
    "TERMINAL_STATUSES",
    "ExportOutput",
    "OutputResult",
    "ExportRequest",
    "ExportJob",
    "create_export_job",
    "output_dimensions",
    "VideoAsset",
    "READY_STATUSES",
]
