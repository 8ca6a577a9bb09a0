"""
Export Job Data Models
A persisted request to render one edit state into one or more renditions
"""

import copy
import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import Field

from .edit_state import CamelModel, EditState, OutputSettings

DEFAULT_NAMING_PATTERN = "{clientId}_{videoId}_{aspectRatio}_{resolution}"

# (aspectRatio, resolution) -> (width, height); short edge is the line count,
# long edge rounded to an even pixel count
OUTPUT_DIMENSIONS: Dict[Tuple[str, str], Tuple[int, int]] = {
    ("16:9", "1080p"): (1920, 1080),
    ("16:9", "720p"): (1280, 720),
    ("16:9", "480p"): (854, 480),
    ("9:16", "1080p"): (1080, 1920),
    ("9:16", "720p"): (720, 1280),
    ("9:16", "480p"): (480, 854),
    ("1:1", "1080p"): (1080, 1080),
    ("1:1", "720p"): (720, 720),
    ("1:1", "480p"): (480, 480),
    ("4:5", "1080p"): (1080, 1350),
    ("4:5", "720p"): (720, 900),
    ("4:5", "480p"): (480, 600),
}

# Substrings that would let a filename leave its job directory
UNSAFE_NAME_PARTS = ("/", "\\", "..", "\x00")


class JobStatus(str, Enum):
    """Export job lifecycle: pending -> processing -> completed | failed"""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATUSES = {JobStatus.COMPLETED.value, JobStatus.FAILED.value}


class ExportOutput(CamelModel):
    """A rendition with its derived filename and frame size"""
    aspect_ratio: str
    resolution: str
    format: str
    filename: str
    width: int
    height: int


class OutputResult(CamelModel):
    """Outcome of rendering one output"""
    filename: str
    success: bool
    artifact_url: Optional[str] = None
    error: Optional[str] = None


class ExportRequest(CamelModel):
    """Validated input for creating an export job"""
    video_id: str
    edit_state: Dict[str, Any]
    outputs: List[OutputSettings]
    client_id: str
    naming_pattern: Optional[str] = None
    source_url: Optional[str] = None


class ExportJob(CamelModel):
    """Complete export job record"""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    video_id: str
    client_id: str
    source_url: Optional[str] = None
    edit_state: EditState
    outputs: List[ExportOutput] = Field(default_factory=list)
    naming_pattern: str = DEFAULT_NAMING_PATTERN
    status: JobStatus = JobStatus.PENDING.value
    progress: int = Field(default=0, ge=0, le=100)
    results: List[OutputResult] = Field(default_factory=list)
    error_message: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


def output_dimensions(aspect_ratio: str, resolution: str) -> Tuple[int, int]:
    """Frame size for an aspect ratio and resolution pair."""
    try:
        return OUTPUT_DIMENSIONS[(aspect_ratio, resolution)]
    except KeyError:
        raise ValueError(f"Unsupported output {aspect_ratio} @ {resolution}") from None


def validate_naming_inputs(
    client_id: str,
    video_id: str,
    naming_pattern: Optional[str] = None,
) -> List[str]:
    """Reject ids and patterns that could turn a filename into a path."""
    errors: List[str] = []
    for label, value in (
        ("clientId", client_id),
        ("videoId", video_id),
        ("namingPattern", naming_pattern),
    ):
        if value is None:
            continue
        if not isinstance(value, str) or any(part in value for part in UNSAFE_NAME_PARTS):
            errors.append(f"{label} must not contain '/', '\\', '..' or NUL characters")
    return errors


def build_output_filename(
    pattern: str,
    client_id: str,
    video_id: str,
    output: OutputSettings,
) -> str:
    """Substitute the naming placeholders and append the format extension."""
    name = (
        pattern
        .replace("{clientId}", client_id)
        .replace("{videoId}", video_id)
        .replace("{aspectRatio}", output.aspect_ratio)
        .replace("{resolution}", output.resolution)
    )
    return f"{name}.{output.format}"


def _dedupe_outputs(outputs: List[OutputSettings]) -> List[OutputSettings]:
    seen = set()
    unique: List[OutputSettings] = []
    for output in outputs:
        key = (output.aspect_ratio, output.resolution)
        if key in seen:
            continue
        seen.add(key)
        unique.append(output)
    return unique


def create_export_job(request: ExportRequest) -> ExportJob:
    """
    Build a pending export job from a validated request.

    Outputs are de-duplicated by (aspectRatio, resolution), first one wins.
    Only the id and timestamps differ between two calls with the same request.
    The caller persists the returned job.

    Raises:
        ValueError: ids or naming pattern contain path components
    """
    unsafe = validate_naming_inputs(request.client_id, request.video_id, request.naming_pattern)
    if unsafe:
        raise ValueError("; ".join(unsafe))

    pattern = request.naming_pattern or DEFAULT_NAMING_PATTERN
    outputs: List[ExportOutput] = []
    used_names = set()

    for output in _dedupe_outputs(request.outputs):
        width, height = output_dimensions(output.aspect_ratio, output.resolution)
        filename = build_output_filename(pattern, request.client_id, request.video_id, output)

        # Patterns without {aspectRatio}/{resolution} collapse names together
        if filename in used_names:
            stem, _, extension = filename.rpartition(".")
            suffix = 2
            while f"{stem}_{suffix}.{extension}" in used_names:
                suffix += 1
            filename = f"{stem}_{suffix}.{extension}"
        used_names.add(filename)

        outputs.append(
            ExportOutput(
                aspect_ratio=output.aspect_ratio,
                resolution=output.resolution,
                format=output.format,
                filename=filename,
                width=width,
                height=height,
            )
        )

    return ExportJob(
        video_id=request.video_id,
        client_id=request.client_id,
        source_url=request.source_url,
        edit_state=EditState.model_validate(copy.deepcopy(request.edit_state)),
        outputs=outputs,
        naming_pattern=pattern,
    )
