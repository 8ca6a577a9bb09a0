"""
Video Renderer Service
FFmpeg-based rendering of an edit state into one export rendition
"""

import asyncio
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple

from ..models.edit_state import (
    LAYER_STYLE_PARAMS,
    EditState,
    Layer,
    LayerType,
    is_remote_url,
    is_safe_param,
)
from ..models.export_job import ExportOutput
from ..utils.exceptions import FFmpegError
from ..utils.logger import get_logger

logger = get_logger()


@dataclass
class RenderConfig:
    """Encoder settings shared by every rendition"""
    fps: int = 30
    audio_bitrate: str = "128k"
    preset: str = "fast"
    crf: int = 22
    webm_crf: int = 32
    font_size: int = 48
    font_color: str = "white"


@dataclass
class RenderResult:
    """Outcome of one render: an artifact path or an error"""
    success: bool
    artifact_path: Optional[str] = None
    error: Optional[str] = None


# format -> (video codec, audio codec)
_CODECS = {
    "mp4": ("libx264", "aac"),
    "mov": ("libx264", "aac"),
    "webm": ("libvpx-vp9", "libopus"),
}


def _escape_text(value: str) -> str:
    """Escape a string for use inside a drawtext option"""
    return (
        str(value)
        .replace("\\", "\\\\")
        .replace(":", "\\:")
        .replace("'", "\\'")
        .replace("%", "\\%")
    )


def _enable_expr(layer: Layer) -> str:
    if layer.start_time is None and layer.end_time is None:
        return ""
    start = layer.start_time or 0
    if layer.end_time is None:
        return f":enable='gte(t,{start})'"
    return f":enable='between(t,{start},{layer.end_time})'"


def _unsafe_params(layer: Layer) -> List[str]:
    """Style params that would break out of their filter option"""
    unsafe = [
        name for name in LAYER_STYLE_PARAMS
        if name in layer.params and not is_safe_param(layer.params[name])
    ]
    if layer.type == LayerType.IMAGE.value and not is_remote_url(layer.params.get("url")):
        unsafe.append("url")
    return unsafe


def build_filter_complex(
    edit_state: EditState,
    output: ExportOutput,
    image_inputs: Optional[List[str]] = None,
) -> Tuple[str, List[str]]:
    """
    Build the FFmpeg filter graph for one rendition.

    The source is scaled to cover the target frame and center-cropped, then
    layers are composited in list order (last on top). Image layers add extra
    inputs; their URLs are appended to `image_inputs` in input order.

    Returns:
        (filter graph ending in [out], image input URLs)
    """
    config = RenderConfig()
    image_inputs = [] if image_inputs is None else image_inputs
    width, height = output.width, output.height

    chains = [
        f"[0:v]scale={width}:{height}:force_original_aspect_ratio=increase,"
        f"crop={width}:{height},setsar=1,fps={config.fps}[base]"
    ]
    current = "base"

    for index, layer in enumerate(edit_state.layers):
        missing = layer.missing_params()
        if missing:
            # Required layers are rejected during validation
            logger.warning(
                f"Skipping layer {layer.layer_key}: missing {', '.join(missing)}"
            )
            continue

        unsafe = _unsafe_params(layer)
        if unsafe:
            logger.warning(
                f"Skipping layer {layer.layer_key}: unsafe {', '.join(unsafe)}"
            )
            continue

        params = layer.params
        label = f"l{index}"
        enable = _enable_expr(layer)
        x = params.get("x", "(w-text_w)/2" if layer.type == LayerType.TEXT.value else 0)
        y = params.get("y", "(h-text_h)/2" if layer.type == LayerType.TEXT.value else 0)

        if layer.type == LayerType.TEXT.value:
            drawtext = (
                f"drawtext=text='{_escape_text(params['text'])}'"
                f":x={x}:y={y}"
                f":fontsize={params.get('fontSize', config.font_size)}"
                f":fontcolor={params.get('color', config.font_color)}"
            )
            if params.get("fontFile"):
                drawtext += f":fontfile='{_escape_text(params['fontFile'])}'"
            chains.append(f"[{current}]{drawtext}{enable}[{label}]")

        elif layer.type == LayerType.SHAPE.value:
            box_w = params.get("width", "iw")
            box_h = params.get("height", "ih")
            color = params.get("color", "black")
            opacity = params.get("opacity", 1)
            chains.append(
                f"[{current}]drawbox=x={x}:y={y}:w={box_w}:h={box_h}"
                f":color={color}@{opacity}:t=fill{enable}[{label}]"
            )

        elif layer.type == LayerType.IMAGE.value:
            image_inputs.append(params["url"])
            input_index = len(image_inputs)
            scaled = f"img{index}"
            image_w = params.get("width", -1)
            image_h = params.get("height", -1)
            chains.append(f"[{input_index}:v]scale={image_w}:{image_h}[{scaled}]")
            chains.append(f"[{current}][{scaled}]overlay={x}:{y}{enable}[{label}]")

        current = label

    chains.append(f"[{current}]null[out]")
    return ";".join(chains), image_inputs


class VideoRenderer:
    """FFmpeg renderer for export renditions"""

    def __init__(
        self,
        output_dir: str = "output",
        ffmpeg_binary: str = "ffmpeg",
        timeout_seconds: Optional[int] = None
    ):
        self.output_dir = Path(output_dir)
        self.ffmpeg_binary = ffmpeg_binary
        self.timeout_seconds = timeout_seconds
        self.config = RenderConfig()

    def output_path(self, job_id: str, output: ExportOutput) -> Path:
        """Artifact path under output_dir; raises ValueError if it would land outside"""
        root = self.output_dir.resolve()
        path = (root / job_id / output.filename).resolve()
        if root not in path.parents:
            raise ValueError(f"Output path escapes output directory: {output.filename}")
        return path

    def build_command(
        self,
        source_url: str,
        edit_state: EditState,
        output: ExportOutput,
        output_path: str
    ) -> List[str]:
        """Build the full FFmpeg command line for one rendition"""
        filter_complex, image_inputs = build_filter_complex(edit_state, output)
        video_codec, audio_codec = _CODECS.get(output.format, _CODECS["mp4"])

        cmd = [self.ffmpeg_binary, "-y"]
        if edit_state.trim:
            cmd += ["-ss", str(edit_state.trim.start)]
        cmd += ["-i", source_url]
        for image_url in image_inputs:
            cmd += ["-i", image_url]
        if edit_state.trim:
            cmd += ["-t", str(edit_state.trim.duration)]

        cmd += [
            "-filter_complex", filter_complex,
            "-map", "[out]",
            "-map", "0:a?",
            "-c:v", video_codec,
        ]
        if output.format == "webm":
            cmd += ["-crf", str(self.config.webm_crf), "-b:v", "0"]
        else:
            cmd += ["-preset", self.config.preset, "-crf", str(self.config.crf)]
        cmd += ["-c:a", audio_codec, "-b:a", self.config.audio_bitrate]
        if output.format in ("mp4", "mov"):
            cmd += ["-movflags", "+faststart"]
        cmd.append(output_path)
        return cmd

    async def render_output(
        self,
        source_url: str,
        edit_state: EditState,
        output: ExportOutput,
        job_id: str
    ) -> RenderResult:
        """
        Render a single output of an export job.

        Never raises for render problems: missing FFmpeg, timeouts and
        encoder failures come back as a failed RenderResult.
        """
        try:
            path = self.output_path(job_id, output)
        except ValueError as exc:
            logger.error(str(exc))
            return RenderResult(success=False, error=str(exc))
        path.parent.mkdir(parents=True, exist_ok=True)
        cmd = self.build_command(source_url, edit_state, output, str(path))

        logger.info(f"Rendering {output.filename} ({output.width}x{output.height})")

        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, self._run_ffmpeg, cmd)
        except FFmpegError as exc:
            return RenderResult(success=False, error=exc.message)

        logger.info(f"Rendered: {path}")
        return RenderResult(success=True, artifact_path=str(path))

    def _run_ffmpeg(self, cmd: List[str]):
        """Execute FFmpeg, raising FFmpegError on any failure"""
        logger.debug(f"FFmpeg command: {' '.join(cmd)}")
        try:
            process = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.timeout_seconds
            )
        except FileNotFoundError:
            raise FFmpegError("FFmpeg is required but not installed", command=cmd[0])
        except subprocess.TimeoutExpired:
            raise FFmpegError(
                f"Render timed out after {self.timeout_seconds}s",
                command=" ".join(cmd)
            )

        if process.returncode != 0:
            stderr_tail = "".join(process.stderr.splitlines(keepends=True)[-10:])
            logger.error(f"FFmpeg failed: {stderr_tail}")
            raise FFmpegError(
                f"FFmpeg encoding failed (exit code {process.returncode})",
                command=" ".join(cmd),
                stderr=process.stderr
            )
