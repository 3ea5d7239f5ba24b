"""Error types raised by the client.

Every failure is local to one exchange and surfaces as a distinct subclass of
:class:`VLError`, so callers can tell a bad request apart from a slow server
or a broken stream.
"""

from dataclasses import dataclass
from typing import Any

# Keep DecodeError messages readable when the server sends something huge
_RAW_PREVIEW_CHARS = 200


class VLError(Exception):
    """Base class for all client errors."""


class ConfigError(VLError):
    """Invalid client configuration."""

    pass


class ValidationError(VLError, ValueError):
    """A request field is missing or malformed.

    Raised before any network call is attempted.
    """

    def __init__(self, field: str, message: str):
        super().__init__(f"{field}: {message}")
        self.field = field


class InvalidImageError(VLError, ValueError):
    """The image could not be normalized into a data URI."""


class RequestTimeoutError(VLError, TimeoutError):
    """Time-to-first-byte or inter-chunk inactivity exceeded the timeout."""


class NetworkError(VLError, ConnectionError):
    """Connection failed or was reset before a response arrived."""


@dataclass
class ApiError:
    """Error payload returned by the server."""

    message: str
    code: str | None = None
    details: Any = None

    @classmethod
    def from_body(cls, body: Any, fallback: str) -> "ApiError":
        """Build from a decoded error body.

        Accepts ``{"error": {"message", "code", "details"}}``,
        ``{"error": "message"}`` or anything else (``fallback`` is used).
        """
        if isinstance(body, dict):
            error = body.get("error", body)
            if isinstance(error, str) and error:
                return cls(message=error)
            if isinstance(error, dict):
                message = error.get("message") or error.get("detail") or fallback
                code = error.get("code")
                return cls(
                    message=str(message),
                    code=str(code) if code is not None else None,
                    details=error.get("details"),
                )
        if isinstance(body, str) and body.strip():
            return cls(message=body.strip())
        return cls(message=fallback)


class ApiRequestError(VLError):
    """The server answered with a non-2xx status."""

    def __init__(self, status_code: int, error: ApiError):
        label = f" [{error.code}]" if error.code else ""
        super().__init__(f"HTTP {status_code}{label}: {error.message}")
        self.status_code = status_code
        self.error = error


class DecodeError(VLError):
    """The response body did not have the expected shape."""

    def __init__(self, message: str, raw: Any = None):
        preview = repr(raw)
        if len(preview) > _RAW_PREVIEW_CHARS:
            preview = preview[:_RAW_PREVIEW_CHARS] + "..."
        super().__init__(f"{message} (got {preview})" if raw is not None else message)
        self.raw = preview if raw is not None else None


class StreamError(VLError):
    """A streamed result failed before its terminal record."""
