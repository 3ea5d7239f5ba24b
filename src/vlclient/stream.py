"""Tagged result values: a completed value or a live stream of pieces."""

import asyncio
import logging
from collections.abc import AsyncGenerator, Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from types import TracebackType
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class StreamOutcome(str, Enum):
    """How a streamed result ended."""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    ABANDONED = "abandoned"


@dataclass(frozen=True)
class Complete(Generic[T]):
    """A result that arrived in one piece."""

    value: T


class Streaming(Generic[T]):
    """A single-pass, finite, lazily produced sequence of pieces.

    Pieces are yielded in arrival order. The stream ends in exactly one of
    three ways, recorded in :attr:`outcome`: it completes, it fails (the
    error is raised from the iteration step that observed it), or the
    consumer abandons it. Abandoning via :meth:`aclose` or by leaving an
    ``async with`` block closes the underlying HTTP response immediately,
    whether or not iteration has started.
    """

    def __init__(
        self,
        source: AsyncGenerator[T, None],
        on_close: Callable[[], Awaitable[None]] | None = None,
    ):
        self._source = source
        self._on_close = on_close
        self._started = False
        self._outcome = StreamOutcome.PENDING

    @property
    def outcome(self) -> StreamOutcome:
        return self._outcome

    def __aiter__(self) -> "Streaming[T]":
        if self._started:
            raise RuntimeError("Stream can only be iterated once")
        self._started = True
        return self

    async def __anext__(self) -> T:
        if self._outcome is not StreamOutcome.PENDING:
            raise StopAsyncIteration
        try:
            return await self._source.__anext__()
        except StopAsyncIteration:
            self._outcome = StreamOutcome.COMPLETED
            raise
        except asyncio.CancelledError:
            self._outcome = StreamOutcome.ABANDONED
            raise
        except Exception:
            self._outcome = StreamOutcome.FAILED
            raise

    async def aclose(self) -> None:
        """Stop consuming and release the transport resource."""
        if self._outcome is StreamOutcome.PENDING:
            self._outcome = StreamOutcome.ABANDONED
            logger.debug("stream_abandoned")
        try:
            await self._source.aclose()
        finally:
            if self._on_close is not None:
                await self._on_close()

    async def collect(self) -> list[T]:
        """Consume the remaining stream into a list.

        Pieces already taken by an earlier iteration are not included.
        """
        self._started = True
        items: list[T] = []
        while True:
            try:
                items.append(await self.__anext__())
            except StopAsyncIteration:
                return items

    async def __aenter__(self) -> "Streaming[T]":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()


async def collect_text(value: "Complete[str] | Streaming[str]") -> str:
    """Resolve a caption or answer into its full text."""
    match value:
        case Complete(value=text):
            return text
        case Streaming():
            async with value:
                return "".join(await value.collect())
    raise TypeError(f"Expected Complete or Streaming, got {type(value).__name__}")
