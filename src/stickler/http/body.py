"""Request body sources and response body helpers.

Request bodies are pulled through a ``BodySource``: an object with
``async readinto(view) -> int`` that fills *view* with up to ``len(view)``
bytes and returns the count, ``0`` meaning end of stream. Sources are
single pass.

Response bodies are lazy sequences of ``bytes`` or ``str`` chunks, either a
plain iterable or an async iterable. ``iter_body`` walks both kinds the same
way. Like request bodies they may only be consumed once.
"""

from collections.abc import AsyncIterable, AsyncIterator, Callable, Iterable, Iterator
from typing import Any, Protocol, runtime_checkable

from stickler._internal.asgi import Receive

type Chunk = bytes | str
type Body = Iterable[Chunk] | AsyncIterable[Chunk]


class BodySource(Protocol):
    """A bounded, single-pass byte source."""

    async def readinto(self, view: memoryview) -> int: ...


class BytesSource:
    """A ``BodySource`` over an in-memory byte string.

    ``chunk_size`` caps the bytes handed out per read, mimicking a network
    stream that delivers data in pieces.
    """

    __slots__ = ("_chunk_size", "_data", "_offset")

    def __init__(self, data: bytes, chunk_size: int | None = None) -> None:
        self._data = data
        self._offset = 0
        self._chunk_size = chunk_size

    async def readinto(self, view: memoryview) -> int:
        size = len(view)
        if self._chunk_size is not None:
            size = min(size, self._chunk_size)
        chunk = self._data[self._offset : self._offset + size]
        view[: len(chunk)] = chunk
        self._offset += len(chunk)
        return len(chunk)


class ReceiveSource:
    """A ``BodySource`` reading ``http.request`` messages from an ASGI ``receive``.

    Bytes from a message that don't fit the caller's buffer are held back
    for the next read. A disconnect ends the stream.
    """

    __slots__ = ("_done", "_pending", "_receive")

    def __init__(self, receive: Receive) -> None:
        self._receive = receive
        self._pending = b""
        self._done = False

    async def readinto(self, view: memoryview) -> int:
        while not self._pending and not self._done:
            message = await self._receive()
            if message["type"] != "http.request":
                self._done = True
                break
            self._pending = message.get("body", b"")
            if not message.get("more_body", False):
                self._done = True
        count = min(len(view), len(self._pending))
        view[:count] = self._pending[:count]
        self._pending = self._pending[count:]
        return count


async def read_source(source: BodySource, chunk_size: int = 65536) -> bytes:
    """Read *source* to the end and return its bytes."""
    buffer = bytearray(chunk_size)
    view = memoryview(buffer)
    parts: list[bytes] = []
    while count := await source.readinto(view):
        parts.append(bytes(view[:count]))
    return b"".join(parts)


def encode_chunk(chunk: Chunk, charset: str | None = None) -> bytes:
    """Return *chunk* as bytes, encoding text with *charset* (default UTF-8)."""
    if isinstance(chunk, str):
        return chunk.encode(charset or "utf-8")
    return bytes(chunk)


async def iter_body(body: Body) -> AsyncIterator[Chunk]:
    """Iterate a sync or async response body as an async iterator."""
    if isinstance(body, AsyncIterable):
        async for chunk in body:
            yield chunk
    else:
        for chunk in body:
            yield chunk


@runtime_checkable
class Digestible(Protocol):
    """A response body that already knows its content digest."""

    def digest(self) -> str: ...


class BufferedBody:
    """A body whose bytes are already materialized in memory.

    Iterates as a single chunk. ``digest()`` returns the digest recorded when
    the body was buffered, so digesting middleware need not hash it again.
    """

    __slots__ = ("_digest", "data")

    def __init__(self, data: bytes, digest: str) -> None:
        self.data = data
        self._digest = digest

    def __iter__(self) -> Iterator[bytes]:
        if self.data:
            yield self.data

    def digest(self) -> str:
        return self._digest

    def __repr__(self) -> str:
        return f"BufferedBody({len(self.data)} bytes)"


class ResponseFilter:
    """Lazily pass each body chunk through *filter*.

    Chunks for which *filter* returns ``None`` are dropped. The wrapped body
    is consumed once, as the filter is iterated::

        response.body = ResponseFilter(response.body, str.upper)
    """

    __slots__ = ("_body", "_filter")

    def __init__(self, body: Body, filter: Callable[[Chunk], Any]) -> None:  # noqa: A002
        self._body = body
        self._filter = filter

    async def __aiter__(self) -> AsyncIterator[Chunk]:
        async for chunk in iter_body(self._body):
            filtered = self._filter(chunk)
            if filtered is not None:
                yield filtered
