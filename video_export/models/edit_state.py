"""
Edit State Models
Versioned description of a video edit: trim range, overlay layers and renditions
"""

import math
import re
from enum import Enum
from numbers import Real
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

EDIT_STATE_VERSION = 1


class AspectRatio(str, Enum):
    """Output frame shape"""
    LANDSCAPE = "16:9"
    PORTRAIT = "9:16"
    SQUARE = "1:1"
    FEED = "4:5"


class Resolution(str, Enum):
    """Output line count"""
    FULL_HD = "1080p"
    HD = "720p"
    SD = "480p"


class OutputFormat(str, Enum):
    """Output container"""
    MP4 = "mp4"
    MOV = "mov"
    WEBM = "webm"


class LayerType(str, Enum):
    """Overlay kinds the renderer can composite"""
    TEXT = "text"
    IMAGE = "image"
    SHAPE = "shape"


# Parameters a required layer must carry for its type
LAYER_REQUIRED_PARAMS: Dict[str, tuple] = {
    LayerType.TEXT.value: ("text",),
    LayerType.IMAGE.value: ("url",),
    LayerType.SHAPE.value: ("shape",),
}

VALID_ASPECT_RATIOS = [item.value for item in AspectRatio]
VALID_RESOLUTIONS = [item.value for item in Resolution]
VALID_FORMATS = [item.value for item in OutputFormat]

# Layer params copied into the FFmpeg filter graph as option values
LAYER_STYLE_PARAMS = ("x", "y", "fontSize", "color", "width", "height", "opacity")

# Colors, numbers and arithmetic on filter variables such as (w-text_w)/2;
# no quotes, colons, commas, semicolons or brackets
SAFE_PARAM_PATTERN = re.compile(r"^[A-Za-z0-9_.#+\-*/()]+$")

IMAGE_URL_SCHEMES = ("http://", "https://")


class CamelModel(BaseModel):
    """Base model speaking camelCase on the wire"""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
    )


class TrimRange(CamelModel):
    """Portion of the source kept in the export, in seconds"""
    start: float = Field(ge=0)
    end: float = Field(ge=0)

    @property
    def duration(self) -> float:
        return self.end - self.start


class Layer(CamelModel):
    """A single overlay; list position is z-order"""
    model_config = ConfigDict(extra="allow")

    layer_key: str
    type: LayerType
    required: bool = False
    params: Dict[str, Any] = Field(default_factory=dict)
    start_time: Optional[float] = None
    end_time: Optional[float] = None

    def missing_params(self) -> List[str]:
        """Names of type-mandated parameters that are absent or empty"""
        needed = LAYER_REQUIRED_PARAMS.get(self.type, ())
        return [name for name in needed if self.params.get(name) in (None, "")]


class OutputSettings(CamelModel):
    """One requested rendition"""
    aspect_ratio: AspectRatio
    resolution: Resolution
    format: OutputFormat


class EditState(CamelModel):
    """Complete edit document as saved by the editor"""
    model_config = ConfigDict(extra="allow")

    version: int
    trim: Optional[TrimRange] = None
    layers: List[Layer] = Field(default_factory=list)
    output_settings: Optional[List[OutputSettings]] = None


def _is_number(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool) and math.isfinite(value)


def is_safe_param(value: Any) -> bool:
    """True for a finite number or a token that cannot break out of a filter option"""
    if _is_number(value):
        return True
    return isinstance(value, str) and bool(SAFE_PARAM_PATTERN.match(value))


def is_remote_url(value: Any) -> bool:
    return isinstance(value, str) and value.lower().startswith(IMAGE_URL_SCHEMES)


def validate_output_settings(output: Any, position: Optional[int] = None) -> List[str]:
    """Check one requested output against the supported enumerations."""
    label = f"output {position}" if position is not None else "output"
    if isinstance(output, OutputSettings):
        output = output.model_dump(by_alias=True)
    if not isinstance(output, Mapping):
        return [f"{label} must be an object with aspectRatio, resolution and format"]

    errors: List[str] = []
    if output.get("aspectRatio") not in VALID_ASPECT_RATIOS:
        errors.append(
            f"Invalid aspectRatio in {label}: {output.get('aspectRatio')!r} "
            f"(valid: {', '.join(VALID_ASPECT_RATIOS)})"
        )
    if output.get("resolution") not in VALID_RESOLUTIONS:
        errors.append(
            f"Invalid resolution in {label}: {output.get('resolution')!r} "
            f"(valid: {', '.join(VALID_RESOLUTIONS)})"
        )
    if output.get("format") not in VALID_FORMATS:
        errors.append(
            f"Invalid format in {label}: {output.get('format')!r} "
            f"(valid: {', '.join(VALID_FORMATS)})"
        )
    return errors


def _validate_trim(trim: Any, source_duration: Optional[float]) -> List[str]:
    if not isinstance(trim, Mapping):
        return ["trim must be an object with start and end"]

    start, end = trim.get("start"), trim.get("end")
    errors: List[str] = []
    if not _is_number(start):
        errors.append("trim.start must be a number")
    if not _is_number(end):
        errors.append("trim.end must be a number")
    if errors:
        return errors

    if start < 0:
        errors.append(f"trim.start must be >= 0 (got {start})")
    if end < 0:
        errors.append(f"trim.end must be >= 0 (got {end})")
    if start >= end:
        errors.append(f"trim.start ({start}) must be before trim.end ({end})")
    if source_duration is not None and end > source_duration:
        errors.append(f"trim.end ({end}) exceeds source duration ({source_duration})")
    return errors


def _validate_layer(layer: Any, position: int) -> List[str]:
    label = f"layer {position}"
    if not isinstance(layer, Mapping):
        return [f"{label} must be an object"]

    errors: List[str] = []
    layer_key = layer.get("layerKey")
    if not isinstance(layer_key, str) or not layer_key.strip():
        errors.append(f"{label} is missing layerKey")
    else:
        label = f"layer {position} ({layer_key})"

    layer_type = layer.get("type")
    if layer_type not in LAYER_REQUIRED_PARAMS:
        errors.append(
            f"{label} has unknown type {layer_type!r} "
            f"(valid: {', '.join(LAYER_REQUIRED_PARAMS)})"
        )

    required = layer.get("required", False)
    if not isinstance(required, bool):
        errors.append(f"{label} required must be true or false")

    params = layer.get("params", {})
    if not isinstance(params, Mapping):
        errors.append(f"{label} params must be an object")
        params = {}

    if required is True and layer_type in LAYER_REQUIRED_PARAMS:
        for name in LAYER_REQUIRED_PARAMS[layer_type]:
            if params.get(name) in (None, ""):
                errors.append(f"{label} is required but has no '{name}' parameter")

    for name in LAYER_STYLE_PARAMS:
        if name in params and not is_safe_param(params[name]):
            errors.append(f"{label} param '{name}' must be a number or a plain expression")

    if layer_type == LayerType.IMAGE.value and params.get("url") not in (None, ""):
        if not is_remote_url(params["url"]):
            errors.append(f"{label} image url must start with http:// or https://")

    start_time, end_time = layer.get("startTime"), layer.get("endTime")
    for field_name, value in (("startTime", start_time), ("endTime", end_time)):
        if value is None:
            continue
        if not _is_number(value) or value < 0:
            errors.append(f"{label} {field_name} must be a number >= 0")
    if _is_number(start_time) and _is_number(end_time) and start_time >= end_time:
        errors.append(f"{label} startTime ({start_time}) must be before endTime ({end_time})")

    return errors


def validate_edit_state(
    state: Union[EditState, Mapping[str, Any], Any],
    source_duration: Optional[float] = None,
) -> List[str]:
    """
    Validate an edit state document.

    Every check runs regardless of earlier failures so the caller can report
    all problems at once. Never raises.

    Args:
        state: Raw edit state (as posted by the client) or an EditState
        source_duration: Source video length in seconds, when known

    Returns:
        Human-readable error strings; empty when the state is valid
    """
    if isinstance(state, EditState):
        state = state.model_dump(by_alias=True, exclude_none=True)
    if not isinstance(state, Mapping):
        return ["editState must be an object"]

    errors: List[str] = []

    version = state.get("version")
    if version != EDIT_STATE_VERSION or isinstance(version, bool):
        errors.append(
            f"Unsupported edit state version: {version!r} (expected {EDIT_STATE_VERSION})"
        )

    trim = state.get("trim")
    if trim is not None:
        errors.extend(_validate_trim(trim, source_duration))

    layers = state.get("layers", [])
    if layers is None:
        layers = []
    if not isinstance(layers, list):
        errors.append("layers must be a list")
        layers = []

    seen_keys: Dict[str, int] = {}
    for index, layer in enumerate(layers, start=1):
        errors.extend(_validate_layer(layer, index))
        layer_key = layer.get("layerKey") if isinstance(layer, Mapping) else None
        if isinstance(layer_key, str) and layer_key.strip():
            if layer_key in seen_keys:
                errors.append(
                    f"Duplicate layerKey '{layer_key}' (layers {seen_keys[layer_key]} and {index})"
                )
            else:
                seen_keys[layer_key] = index

    output_settings = state.get("outputSettings")
    if output_settings is not None:
        if not isinstance(output_settings, list):
            errors.append("outputSettings must be a list")
        else:
            for index, output in enumerate(output_settings, start=1):
                errors.extend(validate_output_settings(output, index))

    return errors
