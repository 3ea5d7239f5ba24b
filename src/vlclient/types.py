"""Request and response types for vision-language operations."""

from dataclasses import dataclass, field
from typing import Literal

from vlclient.stream import Complete, Streaming

Length = Literal["short", "normal", "long"]

# A point (x, y) or a bounding box (x1, y1, x2, y2), normalized to [0, 1]
SpatialRef = tuple[float, float] | tuple[float, float, float, float]


@dataclass(frozen=True)
class EncodedImage:
    """An image already encoded as a data URI."""

    image_url: str


ImageInput = bytes | bytearray | memoryview | EncodedImage | str


@dataclass
class SamplingSettings:
    """Generation controls. Unset fields fall back to server defaults."""

    max_tokens: int | None = None
    temperature: float | None = None
    top_p: float | None = None


# =============================================================================
# Requests
# =============================================================================


@dataclass(kw_only=True)
class BaseRequest:
    """Fields shared by every operation request."""

    variant: str | None = None
    settings: SamplingSettings | None = None


@dataclass(kw_only=True)
class CaptionRequest(BaseRequest):
    image: ImageInput
    length: Length = "normal"
    stream: bool = False


@dataclass(kw_only=True)
class QueryRequest(BaseRequest):
    """Visual question answering.

    ``image`` may be omitted when the server already holds the image from a
    previous turn.
    """

    question: str
    image: ImageInput | None = None
    reasoning: bool | None = None
    stream: bool = False


@dataclass(kw_only=True)
class DetectRequest(BaseRequest):
    image: ImageInput
    object: str


@dataclass(kw_only=True)
class PointRequest(BaseRequest):
    image: ImageInput
    object: str


@dataclass(kw_only=True)
class SegmentRequest(BaseRequest):
    image: ImageInput
    object: str
    spatial_refs: list[SpatialRef] | None = None
    stream: bool = False


# =============================================================================
# Outputs
# =============================================================================


@dataclass
class BoundingBox:
    """Bounding box with normalized coordinates."""

    x_min: float
    y_min: float
    x_max: float
    y_max: float


DetectedObject = BoundingBox
SegmentBbox = BoundingBox


@dataclass
class Point:
    """Normalized (x, y) location."""

    x: float
    y: float


@dataclass
class ReasoningGrounding:
    """A span of the reasoning text and the points that support it."""

    start_idx: int
    end_idx: int
    points: list[tuple[float, float]] = field(default_factory=list)


@dataclass
class Reasoning:
    """Explanation that accompanies a query answer."""

    text: str
    grounding: list[ReasoningGrounding] = field(default_factory=list)


@dataclass
class CaptionOutput:
    caption: Complete[str] | Streaming[str]
    request_id: str | None = None


@dataclass
class QueryOutput:
    """Answer to a query.

    When streamed, ``reasoning`` is filled in once the reasoning record
    arrives, which is after the answer text and before the stream ends.
    """

    answer: Complete[str] | Streaming[str]
    reasoning: Reasoning | None = None
    request_id: str | None = None


@dataclass
class DetectOutput:
    objects: list[DetectedObject]
    request_id: str | None = None


@dataclass
class PointOutput:
    points: list[Point]
    request_id: str | None = None


@dataclass
class SegmentOutput:
    path: str
    bbox: SegmentBbox | None = None
    request_id: str | None = None


@dataclass
class SegmentStreamChunk:
    """One incremental segmentation update."""

    bbox: SegmentBbox | None = None
    chunk: str | None = None
    path: str | None = None
    completed: bool = False


@dataclass
class SegmentStreamOutput:
    stream: Streaming[SegmentStreamChunk]

    async def collect(self) -> SegmentOutput:
        """Consume the stream and fold it into the buffered output."""
        pieces: list[str] = []
        final_path: str | None = None
        bbox: SegmentBbox | None = None
        async with self.stream:
            updates = await self.stream.collect()
        for update in updates:
            if update.bbox is not None:
                bbox = update.bbox
            if update.chunk:
                pieces.append(update.chunk)
            if update.path is not None:
                final_path = update.path
        path = final_path if final_path is not None else "".join(pieces)
        return SegmentOutput(path=path, bbox=bbox)
