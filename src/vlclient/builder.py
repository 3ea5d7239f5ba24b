"""Request building: defaults, validation and wire payloads per operation.

This layer knows nothing about endpoints. It turns a request dataclass into a
:class:`BuiltRequest` that the transport sends verbatim (including on retry).
"""

import math
from dataclasses import dataclass
from typing import Any, get_args

from vlclient.errors import ValidationError
from vlclient.images import encode_image
from vlclient.types import (
    BaseRequest,
    CaptionRequest,
    DetectRequest,
    Length,
    PointRequest,
    QueryRequest,
    SamplingSettings,
    SegmentRequest,
    SpatialRef,
)

LENGTHS: tuple[str, ...] = get_args(Length)


@dataclass(frozen=True)
class BuiltRequest:
    """A validated request ready for dispatch."""

    operation: str
    payload: dict[str, Any]
    stream: bool = False

    @property
    def path(self) -> str:
        return f"/{self.operation}"


def _require_text(field: str, value: object) -> str:
    if not isinstance(value, str):
        raise ValidationError(field, "must be a string")
    if not value.strip():
        raise ValidationError(field, "must not be empty")
    return value


def _require_bool(field: str, value: object) -> bool:
    if not isinstance(value, bool):
        raise ValidationError(field, "must be a boolean")
    return value


def _is_unit_number(value: object) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
        and 0.0 <= value <= 1.0
    )


def _settings_payload(settings: SamplingSettings) -> dict[str, Any]:
    result: dict[str, Any] = {}
    if settings.max_tokens is not None:
        if (
            not isinstance(settings.max_tokens, int)
            or isinstance(settings.max_tokens, bool)
            or settings.max_tokens <= 0
        ):
            raise ValidationError("settings.max_tokens", "must be a positive integer")
        result["max_tokens"] = settings.max_tokens
    if settings.temperature is not None:
        if settings.temperature < 0:
            raise ValidationError("settings.temperature", "must be >= 0")
        result["temperature"] = settings.temperature
    if settings.top_p is not None:
        if not 0 < settings.top_p <= 1:
            raise ValidationError("settings.top_p", "must be in (0, 1]")
        result["top_p"] = settings.top_p
    return result


def _base_payload(request: BaseRequest) -> dict[str, Any]:
    payload: dict[str, Any] = {}
    if request.variant is not None:
        payload["variant"] = _require_text("variant", request.variant)
    if request.settings is not None:
        settings = _settings_payload(request.settings)
        if settings:
            payload["settings"] = settings
    return payload


def _image_url(request: object) -> str:
    image = getattr(request, "image", None)
    if image is None:
        raise ValidationError("image", "is required")
    return encode_image(image)


def validate_spatial_ref(index: int, ref: SpatialRef) -> list[float]:
    """Check a point (2 values) or box (4 values) seed for segmentation."""
    field = f"spatial_refs[{index}]"
    if not isinstance(ref, (tuple, list)):
        raise ValidationError(field, "must be a tuple of 2 or 4 numbers")
    if len(ref) not in (2, 4):
        raise ValidationError(
            field, f"must have 2 (point) or 4 (bbox) values, got {len(ref)}"
        )
    if not all(_is_unit_number(v) for v in ref):
        raise ValidationError(field, "values must be numbers in [0, 1]")
    if len(ref) == 4 and (ref[0] > ref[2] or ref[1] > ref[3]):
        raise ValidationError(field, "bbox must satisfy x1 <= x2 and y1 <= y2")
    return [float(v) for v in ref]


def build_caption(request: CaptionRequest) -> BuiltRequest:
    if request.length not in LENGTHS:
        raise ValidationError("length", f"must be one of {', '.join(LENGTHS)}")
    stream = _require_bool("stream", request.stream)
    payload = {
        "image_url": _image_url(request),
        "length": request.length,
        "stream": stream,
        **_base_payload(request),
    }
    return BuiltRequest("caption", payload, stream)


def build_query(request: QueryRequest) -> BuiltRequest:
    question = _require_text("question", request.question)
    stream = _require_bool("stream", request.stream)
    payload: dict[str, Any] = {}
    if request.image is not None:
        payload["image_url"] = encode_image(request.image)
    payload["question"] = question
    if request.reasoning is not None:
        payload["reasoning"] = _require_bool("reasoning", request.reasoning)
    payload["stream"] = stream
    payload.update(_base_payload(request))
    return BuiltRequest("query", payload, stream)


def _build_object_request(
    operation: str, request: DetectRequest | PointRequest
) -> BuiltRequest:
    obj = _require_text("object", request.object)
    payload = {
        "image_url": _image_url(request),
        "object": obj,
        **_base_payload(request),
    }
    return BuiltRequest(operation, payload, stream=False)


def build_detect(request: DetectRequest) -> BuiltRequest:
    return _build_object_request("detect", request)


def build_point(request: PointRequest) -> BuiltRequest:
    return _build_object_request("point", request)


def build_segment(request: SegmentRequest) -> BuiltRequest:
    obj = _require_text("object", request.object)
    stream = _require_bool("stream", request.stream)
    payload: dict[str, Any] = {"image_url": _image_url(request), "object": obj}
    if request.spatial_refs:
        payload["spatial_refs"] = [
            validate_spatial_ref(i, ref) for i, ref in enumerate(request.spatial_refs)
        ]
    payload["stream"] = stream
    payload.update(_base_payload(request))
    return BuiltRequest("segment", payload, stream)
