"""Streaming response decoding.

The body of a streamed response is a sequence of event records, framed as
server-sent events (``data: <json>`` separated by blank lines) or as
newline-delimited JSON. :class:`EventStreamDecoder` turns the raw lines into
classified records and enforces the stream lifecycle:

    OPEN --fragment/update/reasoning--> OPEN
    OPEN --terminal--> COMPLETED
    OPEN --error record / transport failure / early EOF--> FAILED

Records are passed on one at a time in arrival order; nothing is buffered,
reordered or merged.
"""

import json
import logging
from collections.abc import AsyncGenerator, AsyncIterator, Callable
from contextlib import aclosing
from dataclasses import dataclass
from enum import Enum
from typing import Any

from vlclient.decoding import parse_bbox, parse_reasoning
from vlclient.errors import (
    ApiError,
    DecodeError,
    NetworkError,
    RequestTimeoutError,
    StreamError,
)
from vlclient.types import Reasoning, SegmentStreamChunk

logger = logging.getLogger(__name__)

DONE_SENTINEL = "[DONE]"

# SSE fields other than "data" carry nothing we use
_IGNORED_FIELDS = ("event", "id", "retry")


class StreamState(str, Enum):
    """Lifecycle state of a streamed response."""

    OPEN = "open"
    COMPLETED = "completed"
    FAILED = "failed"


class RecordKind(str, Enum):
    """Event record kind."""

    FRAGMENT = "fragment"
    UPDATE = "update"
    REASONING = "reasoning"
    ERROR = "error"
    TERMINAL = "terminal"


@dataclass
class StreamRecord:
    """One decoded event record."""

    kind: RecordKind
    data: dict[str, Any]


def classify_record(data: dict[str, Any]) -> RecordKind | None:
    """Classify a decoded record, or return None for unrecognized ones."""
    if data.get("error"):
        return RecordKind.ERROR
    if data.get("completed") is True:
        return RecordKind.TERMINAL
    if data.get("reasoning") is not None:
        return RecordKind.REASONING
    if "chunk" in data:
        return RecordKind.FRAGMENT
    if "bbox" in data or "path" in data:
        return RecordKind.UPDATE
    return None


class EventStreamParser:
    """Incremental framing of SSE or NDJSON lines into record payloads."""

    def __init__(self) -> None:
        self._data_lines: list[str] = []

    def feed(self, line: str) -> list[str]:
        """Consume one line (without its terminator); return finished payloads."""
        line = line.rstrip("\r")
        if not line:
            return self.flush()
        if line.startswith(":"):
            return []
        if line.startswith("data:"):
            value = line[5:]
            self._data_lines.append(value[1:] if value.startswith(" ") else value)
            return []
        if line.startswith(_IGNORED_FIELDS):
            return []
        # Bare JSON line (NDJSON framing)
        return [*self.flush(), line]

    def flush(self) -> list[str]:
        """Return any pending SSE event payload."""
        if not self._data_lines:
            return []
        payload = "\n".join(self._data_lines)
        self._data_lines = []
        return [payload]


class EventStreamDecoder:
    """State machine over one streamed response."""

    def __init__(self, operation: str):
        self.operation = operation
        self.state = StreamState.OPEN
        self._parser = EventStreamParser()
        self._count = 0

    def _decode(self, payload: str) -> StreamRecord | None:
        """Parse one payload; raise StreamError for an error record."""
        if payload.strip() == DONE_SENTINEL:
            return StreamRecord(RecordKind.TERMINAL, {"completed": True})
        try:
            data = json.loads(payload)
        except json.JSONDecodeError as e:
            raise DecodeError("Stream record is not valid JSON", raw=payload) from e
        if not isinstance(data, dict):
            raise DecodeError("Stream record must be a JSON object", raw=data)
        kind = classify_record(data)
        if kind is None:
            logger.debug(
                "vl_stream_record_skipped",
                extra={"operation": self.operation, "keys": sorted(data)},
            )
            return None
        if kind is RecordKind.ERROR:
            error = ApiError.from_body(data, fallback="Stream error")
            raise StreamError(f"Stream failed: {error.message}")
        return StreamRecord(kind, data)

    def _fail(self, error: Exception) -> Exception:
        self.state = StreamState.FAILED
        logger.warning(
            "vl_stream_failed",
            extra={
                "operation": self.operation,
                "records": self._count,
                "error.message": str(error),
                "error.type": type(error).__name__,
            },
        )
        return error

    async def _payloads(
        self, lines: AsyncIterator[str]
    ) -> AsyncGenerator[str, None]:
        async for line in lines:
            for payload in self._parser.feed(line):
                yield payload
        for payload in self._parser.flush():
            yield payload

    async def records(
        self, lines: AsyncIterator[str]
    ) -> AsyncGenerator[StreamRecord, None]:
        """Yield classified records until the terminal marker.

        Raises:
            StreamError: On an error record, a transport break, or if the body
                ends before a terminal record.
            RequestTimeoutError: If the gap between chunks exceeds the timeout.
            DecodeError: On a malformed record.
        """
        if self.state is not StreamState.OPEN:
            raise RuntimeError(f"Stream already {self.state.value}")
        try:
            async with aclosing(self._payloads(lines)) as payloads:
                async for payload in payloads:
                    record = self._decode(payload)
                    if record is None:
                        continue
                    self._count += 1
                    if record.kind is RecordKind.TERMINAL:
                        self.state = StreamState.COMPLETED
                        yield record
                        return
                    yield record
        except (RequestTimeoutError, StreamError, DecodeError) as e:
            raise self._fail(e) from None
        except NetworkError as e:
            raise self._fail(StreamError(f"Stream interrupted: {e}")) from e

        raise self._fail(StreamError("Stream ended before completion"))


async def text_fragments(
    records: AsyncIterator[StreamRecord],
    on_reasoning: Callable[[Reasoning], None] | None = None,
) -> AsyncGenerator[str, None]:
    """Yield the text fragments of a caption or query stream.

    A reasoning record is handed to ``on_reasoning`` instead of being
    yielded as text.
    """
    async for record in records:
        reasoning = record.data.get("reasoning")
        if reasoning is not None and on_reasoning is not None:
            on_reasoning(parse_reasoning(reasoning))
        chunk = record.data.get("chunk")
        if chunk is None:
            continue
        if not isinstance(chunk, str):
            raise DecodeError("Stream 'chunk' must be a string", raw=record.data)
        if record.kind is RecordKind.TERMINAL and not chunk:
            continue
        yield chunk


async def segment_updates(
    records: AsyncIterator[StreamRecord],
) -> AsyncGenerator[SegmentStreamChunk, None]:
    """Yield structured updates of a segmentation stream."""
    async for record in records:
        data = record.data
        chunk = data.get("chunk")
        path = data.get("path")
        if chunk is not None and not isinstance(chunk, str):
            raise DecodeError("Stream 'chunk' must be a string", raw=data)
        if path is not None and not isinstance(path, str):
            raise DecodeError("Stream 'path' must be a string", raw=data)
        bbox = parse_bbox(data["bbox"]) if data.get("bbox") is not None else None
        completed = record.kind is RecordKind.TERMINAL
        if not completed and bbox is None and chunk is None and path is None:
            continue
        yield SegmentStreamChunk(
            bbox=bbox, chunk=chunk, path=path, completed=completed
        )
