"""Client for vision-language inference on a local server or the cloud."""

from vlclient._version import __version__
from vlclient.client import VLClient
from vlclient.config import ClientConfig, load_config
from vlclient.errors import (
    ApiError,
    ApiRequestError,
    ConfigError,
    DecodeError,
    InvalidImageError,
    NetworkError,
    RequestTimeoutError,
    StreamError,
    ValidationError,
    VLError,
)
from vlclient.stream import Complete, StreamOutcome, Streaming, collect_text
from vlclient.types import (
    BoundingBox,
    CaptionOutput,
    CaptionRequest,
    DetectedObject,
    DetectOutput,
    DetectRequest,
    EncodedImage,
    ImageInput,
    Length,
    Point,
    PointOutput,
    PointRequest,
    QueryOutput,
    QueryRequest,
    Reasoning,
    ReasoningGrounding,
    SamplingSettings,
    SegmentBbox,
    SegmentOutput,
    SegmentRequest,
    SegmentStreamChunk,
    SegmentStreamOutput,
    SpatialRef,
)

__all__ = [
    "__version__",
    # Client
    "VLClient",
    "ClientConfig",
    "load_config",
    # Results
    "Complete",
    "Streaming",
    "StreamOutcome",
    "collect_text",
    # Errors
    "VLError",
    "ApiError",
    "ApiRequestError",
    "ConfigError",
    "DecodeError",
    "InvalidImageError",
    "NetworkError",
    "RequestTimeoutError",
    "StreamError",
    "ValidationError",
    # Types
    "BoundingBox",
    "CaptionOutput",
    "CaptionRequest",
    "DetectedObject",
    "DetectOutput",
    "DetectRequest",
    "EncodedImage",
    "ImageInput",
    "Length",
    "Point",
    "PointOutput",
    "PointRequest",
    "QueryOutput",
    "QueryRequest",
    "Reasoning",
    "ReasoningGrounding",
    "SamplingSettings",
    "SegmentBbox",
    "SegmentOutput",
    "SegmentRequest",
    "SegmentStreamChunk",
    "SegmentStreamOutput",
    "SpatialRef",
]
