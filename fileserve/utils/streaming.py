"""
Utilities for streaming bounded byte windows from seekable sources.
"""

from typing import Awaitable, Callable, Optional, Protocol

from starlette.responses import StreamingResponse
from starlette.types import Receive, Scope, Send

from fileserve.config import DEFAULT_CHUNK_SIZE


class SeekableSource(Protocol):
    async def seek(self, offset: int) -> int: ...

    async def read(self, size: int) -> bytes: ...

    async def close(self) -> None: ...


class WritableSink(Protocol):
    async def write(self, data: bytes) -> int: ...

    async def flush(self) -> None: ...


class ByteWindowStream:
    """
    Async iterator over ``length`` bytes of ``source`` starting at ``start_offset``.

    The source is closed exactly once, on exhaustion, on a read error or on
    an explicit ``aclose()`` (e.g. client disconnect), whichever comes first.
    ``on_close`` runs after the source has been closed. A ``length`` of None
    reads until end-of-data.
    """

    def __init__(
        self,
        source: SeekableSource,
        start_offset: int = 0,
        length: Optional[int] = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        on_close: Optional[Callable[[], Awaitable[None]]] = None,
    ):
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        self._source = source
        self._start_offset = start_offset
        self._remaining = length
        self._chunk_size = chunk_size
        self._on_close = on_close
        self._seeked = False
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def __aiter__(self) -> "ByteWindowStream":
        return self

    async def __anext__(self) -> bytes:
        if self._closed:
            raise StopAsyncIteration

        try:
            if not self._seeked:
                await self._source.seek(self._start_offset)
                self._seeked = True

            if self._remaining is None:
                chunk = await self._source.read(self._chunk_size)
            elif self._remaining > 0:
                chunk = await self._source.read(min(self._chunk_size, self._remaining))
            else:
                chunk = b""
        except Exception:
            await self.aclose()
            raise

        # End-of-data before the window is exhausted simply ends the stream.
        if not chunk:
            await self.aclose()
            raise StopAsyncIteration

        if self._remaining is not None:
            self._remaining -= len(chunk)
        return chunk

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            await self._source.close()
        finally:
            if self._on_close is not None:
                await self._on_close()


async def pump(
    source: SeekableSource,
    sink: WritableSink,
    start_offset: int,
    length: Optional[int],
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> int:
    """Copy a byte window from source to sink, flushing after every chunk.

    Returns the number of bytes written.
    """
    window = ByteWindowStream(source, start_offset, length, chunk_size)
    written = 0
    try:
        async for chunk in window:
            await sink.write(chunk)
            await sink.flush()
            written += len(chunk)
    finally:
        await window.aclose()
    return written


class ClosingStreamingResponse(StreamingResponse):
    """StreamingResponse that always closes its body iterator.

    Starlette stops iterating when the client disconnects but leaves the
    iterator open; closing it here releases file handles and runs any
    cleanup attached to the stream.
    """

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        try:
            await super().__call__(scope, receive, send)
        finally:
            aclose = getattr(self.body_iterator, "aclose", None)
            if aclose is not None:
                await aclose()
