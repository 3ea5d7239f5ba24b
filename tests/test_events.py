"""Tests for event stream framing and the stream state machine."""

import json

import pytest

from vlclient.errors import DecodeError, NetworkError, RequestTimeoutError, StreamError
from vlclient.events import (
    EventStreamDecoder,
    EventStreamParser,
    RecordKind,
    StreamState,
    classify_record,
    segment_updates,
    text_fragments,
)
from vlclient.types import BoundingBox


async def lines_of(*lines: str):
    for line in lines:
        yield line


async def failing_lines(*lines: str, error: Exception):
    for line in lines:
        yield line
    raise error


def data(record: dict) -> str:
    return f"data: {json.dumps(record)}"


async def collect(agen) -> list:
    return [item async for item in agen]


class TestClassifyRecord:
    def test_kinds(self):
        assert classify_record({"chunk": "a"}) is RecordKind.FRAGMENT
        assert classify_record({"chunk": "", "completed": True}) is RecordKind.TERMINAL
        assert classify_record({"reasoning": {"text": "x"}}) is RecordKind.REASONING
        assert classify_record({"bbox": {}}) is RecordKind.UPDATE
        assert classify_record({"path": "M 0 0"}) is RecordKind.UPDATE
        assert classify_record({"error": "boom"}) is RecordKind.ERROR

    def test_error_wins_over_completed(self):
        assert classify_record({"error": "x", "completed": True}) is RecordKind.ERROR

    def test_unknown(self):
        assert classify_record({"usage": {"tokens": 3}}) is None


class TestEventStreamParser:
    """Tests for SSE and NDJSON framing."""

    def test_sse_event_ends_at_blank_line(self):
        parser = EventStreamParser()
        assert parser.feed('data: {"chunk": "a"}') == []
        assert parser.feed("") == ['{"chunk": "a"}']

    def test_multiline_data_joined(self):
        parser = EventStreamParser()
        parser.feed("data: {")
        parser.feed('data: "chunk": "a"}')
        assert parser.feed("") == ['{\n"chunk": "a"}']

    def test_comments_and_fields_ignored(self):
        parser = EventStreamParser()
        assert parser.feed(": keep-alive") == []
        assert parser.feed("event: message") == []
        assert parser.feed("id: 7") == []
        assert parser.feed("") == []

    def test_ndjson_lines(self):
        parser = EventStreamParser()
        assert parser.feed('{"chunk": "a"}') == ['{"chunk": "a"}']

    def test_flush_pending_event(self):
        parser = EventStreamParser()
        parser.feed("data: [DONE]")
        assert parser.flush() == ["[DONE]"]
        assert parser.flush() == []


class TestEventStreamDecoder:
    """Tests for the stream lifecycle."""

    @pytest.mark.asyncio
    async def test_completes_on_terminal_record(self):
        decoder = EventStreamDecoder("caption")
        records = await collect(
            decoder.records(
                lines_of(
                    data({"chunk": "A "}),
                    "",
                    data({"chunk": "cat", "completed": True}),
                    "",
                    data({"chunk": "ignored"}),
                )
            )
        )
        assert [r.kind for r in records] == [RecordKind.FRAGMENT, RecordKind.TERMINAL]
        assert decoder.state is StreamState.COMPLETED

    @pytest.mark.asyncio
    async def test_done_sentinel_terminates(self):
        decoder = EventStreamDecoder("caption")
        records = await collect(
            decoder.records(lines_of(data({"chunk": "a"}), "", "data: [DONE]", ""))
        )
        assert records[-1].kind is RecordKind.TERMINAL
        assert decoder.state is StreamState.COMPLETED

    @pytest.mark.asyncio
    async def test_unknown_records_skipped(self):
        decoder = EventStreamDecoder("caption")
        records = await collect(
            decoder.records(
                lines_of('{"usage": 1}', '{"chunk": "a", "completed": true}')
            )
        )
        assert len(records) == 1

    @pytest.mark.asyncio
    async def test_eof_before_terminal_fails(self):
        decoder = EventStreamDecoder("caption")
        with pytest.raises(StreamError, match="ended before completion"):
            await collect(decoder.records(lines_of(data({"chunk": "a"}), "")))
        assert decoder.state is StreamState.FAILED

    @pytest.mark.asyncio
    async def test_error_record_fails(self):
        decoder = EventStreamDecoder("query")
        with pytest.raises(StreamError, match="model overloaded"):
            await collect(
                decoder.records(
                    lines_of(
                        data({"chunk": "a"}),
                        "",
                        data({"error": {"message": "model overloaded"}}),
                        "",
                    )
                )
            )
        assert decoder.state is StreamState.FAILED

    @pytest.mark.asyncio
    async def test_malformed_record(self):
        decoder = EventStreamDecoder("caption")
        with pytest.raises(DecodeError):
            await collect(decoder.records(lines_of("data: {not json", "")))
        assert decoder.state is StreamState.FAILED

    @pytest.mark.asyncio
    async def test_network_break_becomes_stream_error(self):
        decoder = EventStreamDecoder("caption")
        lines = failing_lines(data({"chunk": "a"}), "", error=NetworkError("reset"))
        with pytest.raises(StreamError, match="interrupted"):
            await collect(decoder.records(lines))

    @pytest.mark.asyncio
    async def test_inactivity_timeout_kept_as_timeout(self):
        decoder = EventStreamDecoder("caption")
        lines = failing_lines(
            data({"chunk": "a"}), "", error=RequestTimeoutError("idle")
        )
        with pytest.raises(RequestTimeoutError):
            await collect(decoder.records(lines))
        assert decoder.state is StreamState.FAILED

    @pytest.mark.asyncio
    async def test_cannot_reuse_decoder(self):
        decoder = EventStreamDecoder("caption")
        await collect(decoder.records(lines_of('{"chunk": "", "completed": true}')))
        with pytest.raises(RuntimeError):
            await collect(decoder.records(lines_of()))


class TestTextFragments:
    @pytest.mark.asyncio
    async def test_fragments_in_order_and_empty_terminal_skipped(self):
        decoder = EventStreamDecoder("caption")
        records = decoder.records(
            lines_of(
                '{"chunk": "A"}',
                '{"chunk": " cat"}',
                '{"chunk": "", "completed": true}',
            )
        )
        assert await collect(text_fragments(records)) == ["A", " cat"]

    @pytest.mark.asyncio
    async def test_terminal_chunk_text_kept(self):
        decoder = EventStreamDecoder("caption")
        records = decoder.records(
            lines_of('{"chunk": "A"}', '{"chunk": "!", "completed": true}')
        )
        assert await collect(text_fragments(records)) == ["A", "!"]

    @pytest.mark.asyncio
    async def test_reasoning_handed_to_callback(self):
        seen = []
        decoder = EventStreamDecoder("query")
        records = decoder.records(
            lines_of(
                '{"chunk": "Two"}',
                '{"reasoning": {"text": "two cats", "grounding": []}}',
                '{"chunk": "", "completed": true}',
            )
        )
        assert await collect(text_fragments(records, seen.append)) == ["Two"]
        assert [r.text for r in seen] == ["two cats"]

    @pytest.mark.asyncio
    async def test_non_string_chunk(self):
        decoder = EventStreamDecoder("caption")
        records = decoder.records(lines_of('{"chunk": 5}'))
        with pytest.raises(DecodeError):
            await collect(text_fragments(records))


class TestSegmentUpdates:
    @pytest.mark.asyncio
    async def test_updates(self):
        decoder = EventStreamDecoder("segment")
        bbox = {"x_min": 0.1, "y_min": 0.1, "x_max": 0.9, "y_max": 0.9}
        records = decoder.records(
            lines_of(
                json.dumps({"bbox": bbox}),
                '{"chunk": "M 0 0"}',
                json.dumps({"path": "M 0 0 L 1 1 Z", "bbox": bbox, "completed": True}),
            )
        )
        updates = await collect(segment_updates(records))
        assert len(updates) == 3
        assert updates[0].bbox == BoundingBox(0.1, 0.1, 0.9, 0.9)
        assert updates[1].chunk == "M 0 0"
        assert updates[2].completed is True
        assert updates[2].path == "M 0 0 L 1 1 Z"
