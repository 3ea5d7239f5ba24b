"""Vision-language client: caption, query, detect, point and segment."""

import logging
from collections.abc import AsyncGenerator, AsyncIterator, Callable
from contextlib import aclosing
from types import TracebackType
from typing import Any, TypeVar

import httpx
from pydantic import SecretStr

from vlclient.builder import (
    BuiltRequest,
    build_caption,
    build_detect,
    build_point,
    build_query,
    build_segment,
)
from vlclient.config import ClientConfig
from vlclient.decoding import decode_response
from vlclient.errors import ConfigError
from vlclient.events import (
    EventStreamDecoder,
    StreamRecord,
    segment_updates,
    text_fragments,
)
from vlclient.stream import Complete, Streaming
from vlclient.transport import Transport, create_transport, is_event_stream
from vlclient.types import (
    CaptionOutput,
    CaptionRequest,
    DetectOutput,
    DetectRequest,
    PointOutput,
    PointRequest,
    QueryOutput,
    QueryRequest,
    Reasoning,
    SegmentOutput,
    SegmentRequest,
    SegmentStreamOutput,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class VLClient:
    """Client for a local inference server or the cloud endpoint.

    The endpoint family is chosen once, from the configuration, when the
    client is built. Calls are independent: each performs one exchange and
    shares nothing with other calls except the immutable configuration, so
    they may run concurrently.

    Example::

        async with VLClient(api_key="...") as client:
            result = await client.caption(CaptionRequest(image=jpeg_bytes))
            print(await collect_text(result.caption))
    """

    def __init__(
        self,
        config: ClientConfig | None = None,
        *,
        api_key: str | SecretStr | None = None,
        api_url: str | None = None,
        timeout: float | None = None,
        retries: int | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        if config is None:
            options = {
                "api_key": api_key,
                "api_url": api_url,
                "timeout": timeout,
                "retries": retries,
            }
            try:
                config = ClientConfig.model_validate(
                    {k: v for k, v in options.items() if v is not None}
                )
            except ValueError as e:
                raise ConfigError(f"Invalid configuration: {e}") from e
        self._config = config
        self._transport: Transport = create_transport(config, http_client=http_client)

    @property
    def config(self) -> ClientConfig:
        return self._config

    @property
    def endpoint(self) -> str:
        """Selected endpoint family ('local' or 'cloud')."""
        return self._transport.name

    async def aclose(self) -> None:
        await self._transport.aclose()

    async def __aenter__(self) -> "VLClient":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    # -------------------------------------------------------------------------
    # Exchange helpers
    # -------------------------------------------------------------------------

    async def _complete(self, built: BuiltRequest) -> Any:
        response = await self._transport.post(built)
        return decode_response(built.operation, response.content, response.status_code)

    async def _open(self, built: BuiltRequest) -> httpx.Response | Any:
        """Open a streamed exchange.

        Returns the open response, or the decoded output when the server
        answered with a complete JSON body instead of an event stream.
        """
        response = await self._transport.open_stream(built)
        if is_event_stream(response):
            return response
        logger.debug(
            "vl_stream_fallback",
            extra={
                "operation": built.operation,
                "content_type": response.headers.get("content-type"),
            },
        )
        body = await self._transport.read_body(response)
        return decode_response(built.operation, body, response.status_code)

    async def _stream(
        self,
        built: BuiltRequest,
        response: httpx.Response,
        transform: Callable[[AsyncIterator[StreamRecord]], AsyncGenerator[T, None]],
    ) -> AsyncGenerator[T, None]:
        lines = self._transport.iter_lines(response)
        decoder = EventStreamDecoder(built.operation)
        try:
            async with (
                aclosing(decoder.records(lines)) as records,
                aclosing(transform(records)) as items,
            ):
                async for item in items:
                    yield item
        finally:
            await lines.aclose()
            await response.aclose()

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    async def caption(self, request: CaptionRequest) -> CaptionOutput:
        """Describe an image.

        With ``stream=True`` the caption is a :class:`Streaming` of text
        fragments; otherwise it is :class:`Complete`.
        """
        built = build_caption(request)
        if not built.stream:
            return await self._complete(built)

        opened = await self._open(built)
        if not isinstance(opened, httpx.Response):
            return opened
        return CaptionOutput(
            caption=Streaming(
                self._stream(built, opened, text_fragments), on_close=opened.aclose
            )
        )

    async def query(self, request: QueryRequest) -> QueryOutput:
        """Answer a free-form question about an image.

        When streaming, ``reasoning`` (if requested) is attached to the
        returned output once its record arrives, before the stream ends.
        """
        built = build_query(request)
        if not built.stream:
            return await self._complete(built)

        opened = await self._open(built)
        if not isinstance(opened, httpx.Response):
            return opened

        output = QueryOutput(answer=Complete(""))

        def attach(reasoning: Reasoning) -> None:
            output.reasoning = reasoning

        output.answer = Streaming(
            self._stream(
                built, opened, lambda records: text_fragments(records, attach)
            ),
            on_close=opened.aclose,
        )
        return output

    async def detect(self, request: DetectRequest) -> DetectOutput:
        """Find bounding boxes of every instance of ``request.object``."""
        return await self._complete(build_detect(request))

    async def point(self, request: PointRequest) -> PointOutput:
        """Find center points of every instance of ``request.object``."""
        return await self._complete(build_point(request))

    async def segment(
        self, request: SegmentRequest
    ) -> SegmentOutput | SegmentStreamOutput:
        """Segment ``request.object`` into an SVG path, optionally streamed."""
        built = build_segment(request)
        if not built.stream:
            return await self._complete(built)

        opened = await self._open(built)
        if not isinstance(opened, httpx.Response):
            return opened
        return SegmentStreamOutput(
            stream=Streaming(
                self._stream(built, opened, segment_updates), on_close=opened.aclose
            )
        )
