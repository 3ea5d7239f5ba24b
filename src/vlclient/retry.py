"""Retry utilities for inference requests."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from vlclient.errors import ApiRequestError, NetworkError, RequestTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Status codes the server uses for transient, server-side failures
RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""

    enabled: bool = True
    max_retries: int = 2
    base_delay_ms: int = 0  # no backoff: worst case is timeout * (retries + 1)
    max_delay_ms: int = 2000


def is_retryable_error(error: Exception) -> bool:
    """Check if an error is retryable.

    Retryable errors are timeouts, connection failures, rate limiting and
    5xx responses. Validation, image and decode errors never are.
    """
    if isinstance(error, (RequestTimeoutError, NetworkError)):
        return True
    if isinstance(error, ApiRequestError):
        return (
            error.status_code in RETRYABLE_STATUS_CODES or error.status_code >= 500
        )
    return False


async def with_retry(
    func: Callable[[], Awaitable[T]],
    config: RetryConfig | None = None,
    operation_name: str = "request",
) -> T:
    """Execute an async function, replaying it on transient failures.

    Args:
        func: Async function to execute. It is called again verbatim on retry.
        config: Retry configuration.
        operation_name: Name for logging.

    Returns:
        Result of the function.

    Raises:
        The last exception if all retries fail.
    """
    config = config or RetryConfig()

    if not config.enabled:
        return await func()

    last_error: Exception | None = None

    for attempt in range(config.max_retries + 1):
        try:
            return await func()
        except Exception as e:
            last_error = e

            if not is_retryable_error(e):
                raise

            if attempt >= config.max_retries:
                logger.warning(
                    "retry_exhausted",
                    extra={
                        "operation": operation_name,
                        "attempts": config.max_retries + 1,
                        "error.message": str(e),
                        "error.type": type(e).__name__,
                    },
                )
                raise

            delay_ms = min(
                config.base_delay_ms * (2**attempt),
                config.max_delay_ms,
            )
            delay_s = delay_ms / 1000

            logger.info(
                "retry_attempt",
                extra={
                    "operation": operation_name,
                    "attempt": attempt + 1,
                    "max_attempts": config.max_retries + 1,
                    "retry_delay_s": round(delay_s, 3),
                    "error.message": str(e),
                    "error.type": type(e).__name__,
                },
            )

            if delay_s > 0:
                await asyncio.sleep(delay_s)

    # Should never reach here, but satisfy type checker
    assert last_error is not None
    raise last_error
