"""Lazy byte streams and the producer/consumer bridge for blocking reads.

Object store clients only expose a blocking ``read()`` on their response
bodies. ``bridge_blocking`` runs those reads in a producer task that feeds a
bounded queue, so callers get an async stream with backpressure instead of a
fully materialized object.
"""

import asyncio
import contextlib
from collections.abc import AsyncIterable, AsyncIterator, Awaitable, Callable
from typing import BinaryIO, Union

DEFAULT_CHUNK_SIZE = 64 * 1024
DEFAULT_QUEUE_SIZE = 8

ByteSource = Union[bytes, bytearray, memoryview, BinaryIO, AsyncIterable[bytes]]


class ByteStream:
    """Single-pass, forward-only async byte stream.

    Supports ``await read(n)``, ``async for chunk in stream`` and
    ``async with``. Not restartable. Callers must ``aclose()`` streams they
    stop reading early so the underlying resource is released. Once a read
    fails, every later read raises the same error.
    """

    def __init__(
        self,
        chunks: AsyncIterator[bytes],
        on_close: Callable[[], Awaitable[None]] | None = None,
    ):
        self._chunks = chunks
        self._on_close = on_close
        self._buffer = bytearray()
        self._exhausted = False
        self._error: Exception | None = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def _check_open(self) -> None:
        if self._closed:
            raise ValueError("I/O operation on closed stream")

    async def _next_chunk(self) -> bytes | None:
        if self._error is not None:
            raise self._error
        if self._exhausted:
            return None
        try:
            chunk = await anext(self._chunks, None)
        except Exception as e:
            # Later reads raise the same error instead of reporting EOF.
            self._error = e
            raise
        if chunk is None:
            self._exhausted = True
        return chunk

    async def read(self, size: int = -1) -> bytes:
        """Read up to ``size`` bytes, or everything left when ``size`` < 0."""
        self._check_open()
        while size < 0 or len(self._buffer) < size:
            chunk = await self._next_chunk()
            if chunk is None:
                break
            self._buffer.extend(chunk)

        if size < 0 or size >= len(self._buffer):
            data = bytes(self._buffer)
            self._buffer.clear()
        else:
            data = bytes(self._buffer[:size])
            del self._buffer[:size]
        return data

    def __aiter__(self) -> "ByteStream":
        return self

    async def __anext__(self) -> bytes:
        self._check_open()
        if self._buffer:
            data = bytes(self._buffer)
            self._buffer.clear()
            return data
        chunk = await self._next_chunk()
        if chunk is None:
            raise StopAsyncIteration
        return chunk

    async def aclose(self) -> None:
        """Release the stream. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        self._buffer.clear()
        try:
            aclose = getattr(self._chunks, "aclose", None)
            if aclose is not None:
                await aclose()
        finally:
            if self._on_close is not None:
                await self._on_close()

    async def __aenter__(self) -> "ByteStream":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()


class _ProducerFailure:
    """Error raised by the producer, delivered in-band to the consumer."""

    def __init__(self, error: BaseException):
        self.error = error


_EOF = object()


def bridge_blocking(
    read: Callable[[int], bytes],
    close: Callable[[], None] | None = None,
    *,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    max_chunks: int = DEFAULT_QUEUE_SIZE,
) -> ByteStream:
    """Expose a blocking ``read(n)`` as a lazily consumed ``ByteStream``.

    Must be called from a running event loop. The producer task blocks when
    ``max_chunks`` chunks are waiting to be consumed. A producer error is
    raised on the consumer's next read, after the chunks queued before it.
    Closing the stream cancels the producer and calls ``close``.

    Args:
        read: Blocking read function returning ``b""`` at end of stream
        close: Blocking release function for the underlying body
        chunk_size: Bytes requested per read call
        max_chunks: Queue capacity in chunks

    Returns:
        Stream over the body
    """
    queue: asyncio.Queue[object] = asyncio.Queue(maxsize=max_chunks)

    async def produce() -> None:
        try:
            while True:
                chunk = await asyncio.to_thread(read, chunk_size)
                if not chunk:
                    break
                await queue.put(chunk)
        except Exception as e:
            await queue.put(_ProducerFailure(e))
            return
        await queue.put(_EOF)

    producer = asyncio.create_task(produce())

    async def consume() -> AsyncIterator[bytes]:
        while True:
            item = await queue.get()
            if item is _EOF:
                return
            if isinstance(item, _ProducerFailure):
                raise item.error
            yield item

    async def shutdown() -> None:
        producer.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await producer
        if close is not None:
            await asyncio.to_thread(close)

    return ByteStream(consume(), on_close=shutdown)


async def iter_source(
    source: ByteSource, chunk_size: int = DEFAULT_CHUNK_SIZE
) -> AsyncIterator[bytes]:
    """Normalize an upload source into an async iterator of chunks.

    Accepts bytes-like objects, binary file objects (read in a worker thread)
    and async iterables of bytes such as ``ByteStream``.
    """
    if isinstance(source, (bytes, bytearray, memoryview)):
        data = bytes(source)
        for start in range(0, len(data), chunk_size):
            yield data[start : start + chunk_size]
    elif hasattr(source, "__aiter__"):
        async for chunk in source:
            yield bytes(chunk)
    elif hasattr(source, "read"):
        while True:
            chunk = await asyncio.to_thread(source.read, chunk_size)
            if not chunk:
                break
            yield chunk
    else:
        raise TypeError(f"Unsupported byte source: {type(source).__name__}")


class SyncReader:
    """Blocking file-like view of an async byte source.

    Used from a worker thread (for example inside ``upload_fileobj``) while
    the event loop in ``loop`` keeps producing chunks.
    """

    def __init__(self, source: ByteSource, loop: asyncio.AbstractEventLoop):
        self._chunks = aiter(iter_source(source))
        self._loop = loop
        self._buffer = bytearray()
        self._exhausted = False

    async def _next_chunk(self) -> bytes | None:
        return await anext(self._chunks, None)

    def readable(self) -> bool:
        return True

    def read(self, size: int = -1) -> bytes:
        while not self._exhausted and (size is None or size < 0 or len(self._buffer) < size):
            future = asyncio.run_coroutine_threadsafe(self._next_chunk(), self._loop)
            chunk = future.result()
            if chunk is None:
                self._exhausted = True
            else:
                self._buffer.extend(chunk)

        if size is None or size < 0 or size >= len(self._buffer):
            data = bytes(self._buffer)
            self._buffer.clear()
        else:
            data = bytes(self._buffer[:size])
            del self._buffer[:size]
        return data
