"""HTTP transport for the local and cloud endpoint families."""

import json
import logging
import time
from abc import ABC, abstractmethod
from collections.abc import AsyncGenerator

import httpx

from vlclient._version import __version__
from vlclient.builder import BuiltRequest
from vlclient.config import DEFAULT_CLOUD_URL, ClientConfig
from vlclient.errors import (
    ApiError,
    ApiRequestError,
    ConfigError,
    NetworkError,
    RequestTimeoutError,
)
from vlclient.retry import RetryConfig, with_retry

logger = logging.getLogger(__name__)

USER_AGENT = f"vlclient/{__version__}"
AUTH_HEADER = "X-Moondream-Auth"

EVENT_STREAM_TYPES = ("text/event-stream", "application/x-ndjson")


def _error_from_body(body: bytes, fallback: str) -> ApiError:
    try:
        decoded = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        decoded = body.decode("utf-8", errors="replace")
    return ApiError.from_body(decoded, fallback=fallback)


def is_event_stream(response: httpx.Response) -> bool:
    """Whether the response body is a stream of event records."""
    content_type = response.headers.get("content-type", "").lower()
    return content_type.startswith(EVENT_STREAM_TYPES)


class Transport(ABC):
    """One endpoint family: base URL, credentials and the HTTP exchange.

    Every call performs one logical exchange. Transient failures are retried
    with the same payload; a streamed exchange is retried only until its
    response headers have arrived.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float,
        retry: RetryConfig | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._timeout_seconds = timeout
        self._timeout = httpx.Timeout(timeout)
        self._retry = retry or RetryConfig()
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=self._timeout)

    @property
    @abstractmethod
    def name(self) -> str:
        """Endpoint family identifier ('local' or 'cloud')."""
        ...

    @abstractmethod
    def _auth_headers(self) -> dict[str, str]:
        """Credential headers for this endpoint family."""
        ...

    @property
    def base_url(self) -> str:
        return self._base_url

    def headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "User-Agent": USER_AGENT,
            **self._auth_headers(),
        }

    async def _send_once(
        self, request: BuiltRequest, *, stream: bool
    ) -> httpx.Response:
        http_request = self._client.build_request(
            "POST",
            f"{self._base_url}{request.path}",
            json=request.payload,
            headers=self.headers(),
            timeout=self._timeout,
        )

        start_time = time.monotonic()
        try:
            response = await self._client.send(http_request, stream=stream)
        except httpx.TimeoutException as e:
            raise RequestTimeoutError(
                f"{request.operation} request to {self.name} endpoint timed out "
                f"after {self._timeout_seconds}s"
            ) from e
        except httpx.TransportError as e:
            raise NetworkError(
                f"{request.operation} request to {self.name} endpoint failed: {e}"
            ) from e
        duration_ms = int((time.monotonic() - start_time) * 1000)

        logger.debug(
            "vl_request",
            extra={
                "endpoint": self.name,
                "operation": request.operation,
                "stream": stream,
                "image_chars": len(request.payload.get("image_url", "")),
                "status": response.status_code,
                "duration_ms": duration_ms,
            },
        )

        if response.is_success:
            return response

        try:
            body = await response.aread()
        except httpx.HTTPError:
            body = b""
        finally:
            await response.aclose()
        raise ApiRequestError(
            response.status_code,
            _error_from_body(body, fallback=response.reason_phrase or "Request failed"),
        )

    async def post(self, request: BuiltRequest) -> httpx.Response:
        """Perform a buffered exchange and return the fully read response."""
        return await with_retry(
            lambda: self._send_once(request, stream=False),
            config=self._retry,
            operation_name=request.operation,
        )

    async def open_stream(self, request: BuiltRequest) -> httpx.Response:
        """Perform a streamed exchange up to the response headers.

        The body is left unread; the caller must consume it through
        :meth:`iter_lines` (which closes it) or close it.
        """
        return await with_retry(
            lambda: self._send_once(request, stream=True),
            config=self._retry,
            operation_name=request.operation,
        )

    async def iter_lines(
        self, response: httpx.Response
    ) -> AsyncGenerator[str, None]:
        """Yield body lines as they arrive; always closes the response."""
        try:
            async for line in response.aiter_lines():
                yield line
        except httpx.TimeoutException as e:
            raise RequestTimeoutError(
                f"No data from {self.name} endpoint for {self._timeout_seconds}s"
            ) from e
        except httpx.TransportError as e:
            raise NetworkError(
                f"Connection to {self.name} endpoint broke: {e}"
            ) from e
        finally:
            await response.aclose()

    async def read_body(self, response: httpx.Response) -> bytes:
        """Read the rest of an open response body, then close it."""
        try:
            return await response.aread()
        except httpx.TimeoutException as e:
            raise RequestTimeoutError(
                f"No data from {self.name} endpoint for {self._timeout_seconds}s"
            ) from e
        except httpx.TransportError as e:
            raise NetworkError(
                f"Connection to {self.name} endpoint broke: {e}"
            ) from e
        finally:
            await response.aclose()

    async def aclose(self) -> None:
        """Close the HTTP client if this transport created it."""
        if self._owns_client:
            await self._client.aclose()


class LocalTransport(Transport):
    """A self-hosted inference server. No credentials are sent."""

    @property
    def name(self) -> str:
        return "local"

    def _auth_headers(self) -> dict[str, str]:
        return {}


class CloudTransport(Transport):
    """The hosted cloud endpoint, authenticated with an API key."""

    def __init__(self, api_key: str, base_url: str = DEFAULT_CLOUD_URL, **kwargs):
        super().__init__(base_url, **kwargs)
        self._api_key = api_key

    @property
    def name(self) -> str:
        return "cloud"

    def _auth_headers(self) -> dict[str, str]:
        return {AUTH_HEADER: self._api_key}


def create_transport(
    config: ClientConfig, http_client: httpx.AsyncClient | None = None
) -> Transport:
    """Select the endpoint family for a configuration.

    A configured ``api_url`` selects the local server; otherwise the cloud
    endpoint is used and an API key is required.

    Raises:
        ConfigError: If the cloud endpoint is selected without an API key.
    """
    retry = RetryConfig(
        enabled=True,
        max_retries=config.retries,
        base_delay_ms=config.retry_backoff_ms,
        max_delay_ms=config.retry_max_backoff_ms,
    )
    if config.api_url is not None:
        return LocalTransport(
            config.api_url,
            timeout=config.timeout,
            retry=retry,
            http_client=http_client,
        )

    api_key = config.api_key.get_secret_value() if config.api_key else ""
    if not api_key.strip():
        raise ConfigError(
            "An API key is required for the cloud endpoint. "
            "Set api_key (or VL_API_KEY), or api_url for a local server."
        )
    return CloudTransport(
        api_key,
        timeout=config.timeout,
        retry=retry,
        http_client=http_client,
    )
