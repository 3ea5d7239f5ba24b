"""Shared test fixtures and factories."""

import json
from collections.abc import AsyncIterator, Callable, Iterable
from typing import Any

import httpx
import pytest

from vlclient import VLClient

# Smallest byte prefix recognized as JPEG, plus some filler
JPEG_BYTES = b"\xff\xd8\xff\xe0" + b"\x00" * 60
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 60

LOCAL_URL = "http://localhost:2020/v1"

# Structurally valid (not signed) JWT-shaped key
CLOUD_KEY = (
    "eyJhbGciOiJIUzI1NiIsInR5cCI6IkpXVCJ9"
    ".eyJvcmdfaWQiOiJ0ZXN0LW9yZyJ9"
    ".c2lnbmF0dXJlLXNpZ25hdHVyZQ"
)


# =============================================================================
# Event stream bodies
# =============================================================================


def sse_body(*records: dict[str, Any] | str) -> bytes:
    """Frame records as server-sent events."""
    events = []
    for record in records:
        data = record if isinstance(record, str) else json.dumps(record)
        events.append(f"data: {data}\n\n")
    return "".join(events).encode()


def ndjson_body(*records: dict[str, Any]) -> bytes:
    """Frame records as newline-delimited JSON."""
    return "".join(json.dumps(r) + "\n" for r in records).encode()


def sse_response(*records: dict[str, Any] | str) -> httpx.Response:
    return httpx.Response(
        200,
        headers={"content-type": "text/event-stream"},
        content=sse_body(*records),
    )


class TrackingStream(httpx.AsyncByteStream):
    """Response body that yields chunks lazily and records whether it closed."""

    def __init__(self, chunks: Iterable[bytes], fail_after: int | None = None):
        self.chunks = list(chunks)
        self.fail_after = fail_after
        self.sent = 0
        self.closed = False

    async def __aiter__(self) -> AsyncIterator[bytes]:
        for chunk in self.chunks:
            if self.fail_after is not None and self.sent >= self.fail_after:
                raise httpx.ReadError("connection reset")
            self.sent += 1
            yield chunk

    async def aclose(self) -> None:
        self.closed = True


# =============================================================================
# HTTP Fixtures
# =============================================================================


class RecordingHandler:
    """MockTransport handler that records requests and replays responses."""

    def __init__(
        self,
        responses: list[httpx.Response | Exception]
        | Callable[[httpx.Request], httpx.Response],
    ):
        self.responses = responses
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if callable(self.responses):
            return self.responses(request)
        index = min(len(self.requests), len(self.responses)) - 1
        response = self.responses[index]
        if isinstance(response, Exception):
            raise response
        return response

    @property
    def payloads(self) -> list[dict[str, Any]]:
        return [json.loads(r.content) for r in self.requests]


@pytest.fixture
def make_client():
    """Factory for a client backed by a mock transport.

    Returns (client, handler). Defaults to the local endpoint with no
    retries.
    """
    def factory(
        *responses: httpx.Response | Exception,
        handler: Callable[[httpx.Request], httpx.Response] | None = None,
        **options: Any,
    ) -> tuple[VLClient, RecordingHandler]:
        recorder = RecordingHandler(handler or list(responses))
        options.setdefault("retries", 0)
        if "api_key" not in options:
            options.setdefault("api_url", LOCAL_URL)
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(recorder))
        client = VLClient(http_client=http_client, **options)
        return client, recorder

    return factory


@pytest.fixture
def jpeg_bytes() -> bytes:
    return JPEG_BYTES


@pytest.fixture
def image_file(tmp_path):
    path = tmp_path / "image.jpg"
    path.write_bytes(JPEG_BYTES)
    return path


# =============================================================================
# CLI Fixtures
# =============================================================================


@pytest.fixture
def cli_runner():
    """Create a Typer CLI test runner with colors disabled."""
    from typer.testing import CliRunner

    return CliRunner(env={"NO_COLOR": "1"})


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    """Keep user config files and credentials out of tests."""
    for var in ("VL_API_KEY", "VL_API_URL", "VL_TIMEOUT", "VL_RETRIES"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    monkeypatch.chdir(tmp_path)
