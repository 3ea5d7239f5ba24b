"""Buffered response decoding: one JSON payload into one typed output."""

import json
import math
from typing import Any

from vlclient.errors import ApiError, ApiRequestError, DecodeError
from vlclient.stream import Complete
from vlclient.types import (
    BoundingBox,
    CaptionOutput,
    DetectOutput,
    Point,
    PointOutput,
    QueryOutput,
    Reasoning,
    ReasoningGrounding,
    SegmentOutput,
)

_BBOX_KEYS = ("x_min", "y_min", "x_max", "y_max")


def parse_json_body(body: bytes | str) -> Any:
    """Parse a raw response body as JSON."""
    try:
        return json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise DecodeError("Response body is not valid JSON", raw=body) from e


def unwrap_envelope(payload: Any, status_code: int = 200) -> dict[str, Any]:
    """Return the operation fields of a decoded body.

    Some deployments wrap results as ``{success, data, error, requestId}``;
    those are unwrapped, and ``success: false`` becomes an ApiRequestError.
    """
    if not isinstance(payload, dict):
        raise DecodeError("Response body must be a JSON object", raw=payload)
    if "success" in payload and ("data" in payload or "error" in payload):
        if not payload.get("success"):
            error = ApiError.from_body(payload, fallback="Request failed")
            raise ApiRequestError(status_code, error)
        data = payload.get("data")
        if not isinstance(data, dict):
            raise DecodeError("Envelope 'data' must be a JSON object", raw=data)
        if "requestId" in payload and "request_id" not in data:
            data = {**data, "request_id": payload["requestId"]}
        return data
    return payload


def _unit(value: Any, context: str, raw: Any) -> float:
    if (
        isinstance(value, bool)
        or not isinstance(value, (int, float))
        or not math.isfinite(value)
    ):
        raise DecodeError(f"{context} must be a number", raw=raw)
    if not 0.0 <= value <= 1.0:
        raise DecodeError(f"{context} must be normalized to [0, 1]", raw=raw)
    return float(value)


def _string(payload: dict[str, Any], key: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str):
        raise DecodeError(f"Response field '{key}' must be a string", raw=payload)
    return value


def _request_id(payload: dict[str, Any]) -> str | None:
    value = payload.get("request_id")
    return str(value) if value is not None else None


def parse_bbox(raw: Any) -> BoundingBox:
    """Parse a normalized bounding box object."""
    if not isinstance(raw, dict):
        raise DecodeError("Bounding box must be an object", raw=raw)
    values = [
        _unit(raw.get(key), f"Bounding box '{key}'", raw) for key in _BBOX_KEYS
    ]
    bbox = BoundingBox(*values)
    if bbox.x_min > bbox.x_max or bbox.y_min > bbox.y_max:
        raise DecodeError("Bounding box min exceeds max", raw=raw)
    return bbox


def parse_point(raw: Any) -> Point:
    """Parse a normalized point object."""
    if not isinstance(raw, dict):
        raise DecodeError("Point must be an object", raw=raw)
    return Point(
        x=_unit(raw.get("x"), "Point 'x'", raw),
        y=_unit(raw.get("y"), "Point 'y'", raw),
    )


def parse_reasoning(raw: Any) -> Reasoning:
    """Parse a reasoning block and check its grounding spans.

    Spans must be in source order, non-overlapping and within the text.
    """
    if not isinstance(raw, dict) or not isinstance(raw.get("text"), str):
        raise DecodeError("Reasoning must be an object with 'text'", raw=raw)
    text: str = raw["text"]
    grounding_raw = raw.get("grounding") or []
    if not isinstance(grounding_raw, list):
        raise DecodeError("Reasoning 'grounding' must be a list", raw=raw)

    grounding: list[ReasoningGrounding] = []
    previous_end = 0
    for item in grounding_raw:
        if not isinstance(item, dict):
            raise DecodeError("Grounding entry must be an object", raw=item)
        start, end = item.get("start_idx"), item.get("end_idx")
        if not isinstance(start, int) or not isinstance(end, int):
            raise DecodeError("Grounding span indices must be integers", raw=item)
        if not 0 <= start < end <= len(text):
            raise DecodeError("Grounding span out of range", raw=item)
        if start < previous_end:
            raise DecodeError("Grounding spans overlap or are out of order", raw=item)
        previous_end = end

        points_raw = item.get("points") or []
        if not isinstance(points_raw, list):
            raise DecodeError("Grounding 'points' must be a list", raw=item)
        points: list[tuple[float, float]] = []
        for point in points_raw:
            if isinstance(point, dict):
                parsed = parse_point(point)
                points.append((parsed.x, parsed.y))
            elif isinstance(point, (list, tuple)) and len(point) == 2:
                x = _unit(point[0], "Grounding x", item)
                y = _unit(point[1], "Grounding y", item)
                points.append((x, y))
            else:
                raise DecodeError("Grounding point must be [x, y]", raw=point)
        grounding.append(
            ReasoningGrounding(start_idx=start, end_idx=end, points=points)
        )

    return Reasoning(text=text, grounding=grounding)


def decode_caption(payload: dict[str, Any]) -> CaptionOutput:
    return CaptionOutput(
        caption=Complete(_string(payload, "caption")),
        request_id=_request_id(payload),
    )


def decode_query(payload: dict[str, Any]) -> QueryOutput:
    reasoning_raw = payload.get("reasoning")
    return QueryOutput(
        answer=Complete(_string(payload, "answer")),
        reasoning=parse_reasoning(reasoning_raw) if reasoning_raw is not None else None,
        request_id=_request_id(payload),
    )


def decode_detect(payload: dict[str, Any]) -> DetectOutput:
    objects = payload.get("objects")
    if not isinstance(objects, list):
        raise DecodeError("Response field 'objects' must be a list", raw=payload)
    return DetectOutput(
        objects=[parse_bbox(obj) for obj in objects],
        request_id=_request_id(payload),
    )


def decode_point(payload: dict[str, Any]) -> PointOutput:
    points = payload.get("points")
    if not isinstance(points, list):
        raise DecodeError("Response field 'points' must be a list", raw=payload)
    return PointOutput(
        points=[parse_point(p) for p in points],
        request_id=_request_id(payload),
    )


def decode_segment(payload: dict[str, Any]) -> SegmentOutput:
    bbox_raw = payload.get("bbox")
    return SegmentOutput(
        path=_string(payload, "path"),
        bbox=parse_bbox(bbox_raw) if bbox_raw is not None else None,
        request_id=_request_id(payload),
    )


DECODERS = {
    "caption": decode_caption,
    "query": decode_query,
    "detect": decode_detect,
    "point": decode_point,
    "segment": decode_segment,
}


def decode_response(operation: str, body: bytes | str, status_code: int = 200) -> Any:
    """Decode a complete response body for ``operation``."""
    payload = unwrap_envelope(parse_json_body(body), status_code)
    return DECODERS[operation](payload)
