"""Streaming ``multipart/form-data`` decoder.

Parses a request body part by part through a fixed-size buffer, so memory
use is bounded by the buffer size plus whatever the part sinks keep. Each
part's body is streamed into a ``Sink`` created by a pluggable factory; the
sink's finalized value is merged into a parameter dict.

Decoding walks a small state machine::

    SEEK_BOUNDARY -> PARSE_HEADERS -> STREAM_BODY -> SEEK_BOUNDARY ... -> DONE

The buffer holds unread data in ``[position, limit)``. Refills first move
that window to the start of the buffer, then read into the free space after
it. Once the source reports end of stream it is never read again.
"""

import logging
import tempfile
from collections.abc import Callable, MutableMapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol

import anyio

from stickler.errors import ConfigurationError, MalformedMultipartError
from stickler.http.body import BodySource
from stickler.http.headers import Headers
from stickler.http.mime import get_mime_parameter, merge_parameter

logger = logging.getLogger("stickler.multipart")

CRLF = b"\r\n"
BLANK_LINE = b"\r\n\r\n"
HYPHENS = b"--"


@dataclass(frozen=True, slots=True)
class UploadFile:
    """An uploaded file from a multipart form submission.

    ``value`` holds the file content in memory.
    """

    name: str | None
    filename: str
    content_type: str | None
    value: bytes

    @property
    def size(self) -> int:
        return len(self.value)

    async def read(self) -> bytes:
        """Return the file content as bytes."""
        return self.value

    async def save(self, path: str | Path) -> None:
        """Write the file content to disk.

        Args:
            path: Destination file path. Parent directories must exist.
        """
        await anyio.Path(path).write_bytes(self.value)

    def __repr__(self) -> str:
        return f"UploadFile({self.filename!r}, {self.content_type!r}, {self.size} bytes)"


@dataclass(slots=True)
class MimePart:
    """Metadata of the part currently being decoded."""

    name: str | None
    filename: str | None = None
    content_type: str | None = None
    headers: Headers = field(default_factory=Headers)

    @property
    def is_file(self) -> bool:
        return self.filename is not None


class Sink(Protocol):
    """Write target for one part's body bytes.

    ``close()`` is called instead of ``finalize()`` when decoding stops
    partway through the part, and must release whatever the sink holds.
    """

    def write(self, data: bytes) -> None: ...

    def finalize(self) -> Any: ...

    def close(self) -> None: ...


type SinkFactory = Callable[[MimePart, str], Sink]


class MemorySink:
    """Buffers a part in memory.

    ``finalize()`` returns the decoded text for form fields and an
    ``UploadFile`` for file parts.
    """

    __slots__ = ("_buffer", "encoding", "part")

    def __init__(self, part: MimePart, encoding: str) -> None:
        self.part = part
        self.encoding = encoding
        self._buffer = bytearray()

    def write(self, data: bytes) -> None:
        self._buffer += data

    def finalize(self) -> Any:
        content = bytes(self._buffer)
        if self.part.filename is None:
            return content.decode(self.encoding, errors="replace")
        return UploadFile(
            name=self.part.name,
            filename=self.part.filename,
            content_type=self.part.content_type,
            value=content,
        )

    def close(self) -> None:
        self._buffer.clear()


class SpooledSink:
    """Buffers file parts in a ``SpooledTemporaryFile``.

    Small uploads stay in memory; ones past ``max_size`` roll over to disk
    while the body streams in. Form fields are kept in memory.
    """

    __slots__ = ("_file", "encoding", "part")

    def __init__(self, part: MimePart, encoding: str, max_size: int = 1024 * 1024) -> None:
        self.part = part
        self.encoding = encoding
        self._file = tempfile.SpooledTemporaryFile(max_size=max_size)  # noqa: SIM115

    def write(self, data: bytes) -> None:
        self._file.write(data)

    def finalize(self) -> Any:
        try:
            self._file.seek(0)
            content = self._file.read()
        finally:
            self.close()
        if self.part.filename is None:
            return content.decode(self.encoding, errors="replace")
        return UploadFile(
            name=self.part.name,
            filename=self.part.filename,
            content_type=self.part.content_type,
            value=content,
        )

    @property
    def closed(self) -> bool:
        return self._file.closed

    def close(self) -> None:
        self._file.close()


def memory_sink(part: MimePart, encoding: str) -> Sink:
    """Default sink factory: every part in memory."""
    return MemorySink(part, encoding)


def spooled_sink(part: MimePart, encoding: str) -> Sink:
    """Sink factory that spools file uploads to a temporary file."""
    if part.is_file:
        return SpooledSink(part, encoding)
    return MemorySink(part, encoding)


class _ParseState:
    """Fixed-size read buffer over a body source.

    Invariant: ``0 <= position <= limit <= capacity``. Only bytes in
    ``[position, limit)`` are valid unread data.
    """

    __slots__ = ("buffer", "eof", "limit", "position", "source", "view")

    def __init__(self, source: BodySource, capacity: int) -> None:
        self.source = source
        self.buffer = bytearray(capacity)
        self.view = memoryview(self.buffer)
        self.position = 0
        self.limit = 0
        self.eof = False

    @property
    def capacity(self) -> int:
        return len(self.buffer)

    @property
    def available(self) -> int:
        return self.limit - self.position

    def _compact(self) -> None:
        if self.position == 0:
            return
        if self.position < self.limit:
            self.buffer[: self.available] = self.buffer[self.position : self.limit]
        self.limit -= self.position
        self.position = 0

    async def _read(self) -> int:
        count = await self.source.readinto(self.view[self.limit :])
        if count == 0:
            self.eof = True
        self.limit += count
        return count

    async def read_some(self) -> int:
        """Compact, then read once. Returns the number of bytes read."""
        self._compact()
        if self.eof or self.limit == self.capacity:
            return 0
        return await self._read()

    async def fill(self) -> int:
        """Compact, then read until the buffer is full or the source is exhausted."""
        self._compact()
        total = 0
        while not self.eof and self.limit < self.capacity:
            total += await self._read()
        return total

    async def ensure(self, count: int) -> bool:
        """Read until *count* bytes are buffered. False if the stream ends first."""
        while self.available < count and not self.eof:
            await self.read_some()
        return self.available >= count

    def find(self, needle: bytes) -> int:
        return self.buffer.find(needle, self.position, self.limit)

    def startswith(self, prefix: bytes) -> bool:
        return self.buffer.startswith(prefix, self.position, self.limit)

    def take(self, end: int) -> bytes:
        """Return bytes from ``position`` to *end* and advance past them."""
        data = bytes(self.buffer[self.position : end])
        self.position = end
        return data


class MultipartDecoder:
    """Decodes one ``multipart/form-data`` body into a parameter dict.

    A decoder is single use: create one per request body.
    """

    def __init__(
        self,
        boundary: str,
        source: BodySource,
        *,
        encoding: str = "utf-8",
        sink_factory: SinkFactory | None = None,
        buffer_size: int = 8192,
        refill_threshold: int = 1024,
    ) -> None:
        self.delimiter = HYPHENS + boundary.encode("latin-1")
        # The body of a part ends at CRLF + delimiter.
        self.terminator = CRLF + self.delimiter
        if buffer_size < len(self.terminator) + 4:
            msg = f"Multipart buffer_size {buffer_size} is too small for boundary {boundary!r}"
            raise ConfigurationError(msg)
        self.encoding = encoding
        self.sink_factory = sink_factory or memory_sink
        self.refill_threshold = min(refill_threshold, buffer_size)
        self.state = _ParseState(source, buffer_size)

    async def decode(self, params: MutableMapping[str, Any]) -> MutableMapping[str, Any]:
        while await self._seek_boundary():
            part = await self._parse_headers()
            sink = self.sink_factory(part, self.encoding)
            try:
                await self._stream_body(sink)
            except BaseException:
                sink.close()
                raise
            value = sink.finalize()
            if part.name is None:
                logger.debug("Dropping multipart part without a name")
                continue
            merge_parameter(params, part.name, value)
        return params

    async def _seek_boundary(self) -> bool:
        """Position after the next boundary line. False at the closing boundary."""
        state = self.state
        if not state.eof and state.available < self.refill_threshold:
            await state.fill()
        index = state.find(self.delimiter)
        while index < 0:
            if state.eof:
                msg = "Boundary not found in multipart stream"
                raise MalformedMultipartError(msg)
            # Preamble: keep only a tail that could be the start of a boundary.
            state.position = max(state.position, state.limit - len(self.delimiter) + 1)
            await state.read_some()
            index = state.find(self.delimiter)
        state.position = index + len(self.delimiter)
        if not await state.ensure(2):
            msg = "Multipart stream ends inside a boundary line"
            raise MalformedMultipartError(msg)
        if state.startswith(HYPHENS):
            logger.debug("Reached closing multipart boundary")
            return False
        if state.startswith(CRLF):
            state.position += 2
        elif state.startswith(b"\n"):
            state.position += 1
        return True

    async def _parse_headers(self) -> MimePart:
        state = self.state
        # Headers are expected to fit in one buffer.
        if state.find(BLANK_LINE) < 0 and not state.eof:
            await state.fill()
        if state.startswith(CRLF):
            # Part without headers.
            state.position += 2
            return MimePart(name=None)
        end = state.find(BLANK_LINE)
        if end < 0:
            msg = "Could not find the end of a multipart header block"
            raise MalformedMultipartError(msg)
        block = state.take(end)
        state.position += len(BLANK_LINE)

        headers = Headers()
        for name, value in _header_lines(block):
            headers.add(name, value)
        disposition = headers.get("content-disposition")
        content_type = headers.get("content-type")
        part = MimePart(
            name=get_mime_parameter(disposition, "name", self.encoding),
            filename=get_mime_parameter(disposition, "filename", self.encoding),
            content_type=content_type.strip() if content_type else None,
            headers=headers,
        )
        logger.debug("Multipart part %r (filename=%r)", part.name, part.filename)
        return part

    async def _stream_body(self, sink: Sink) -> None:
        state = self.state
        margin = len(self.terminator)
        await state.ensure(len(self.delimiter))
        if state.startswith(self.delimiter):
            # Empty body: the blank line after the headers doubles as the CRLF
            # in front of the boundary.
            return
        while True:
            index = state.find(self.terminator)
            if index >= 0:
                sink.write(state.take(index))
                # Leave the boundary in place for _seek_boundary.
                state.position += len(CRLF)
                return
            safe_end = state.limit - margin
            if safe_end > state.position:
                sink.write(state.take(safe_end))
            if state.eof:
                msg = "Multipart part is not terminated by a boundary"
                raise MalformedMultipartError(msg)
            await state.read_some()


def _header_lines(block: bytes) -> list[tuple[str, str]]:
    """Split a part header block into ``(name, value)`` pairs.

    Lines are decoded as latin-1, which maps bytes one to one, so parameter
    values can later be re-decoded with the form encoding. Lines starting
    with a space or tab continue the previous header.
    """
    lines: list[str] = []
    for raw in block.split(CRLF):
        line = raw.decode("latin-1")
        if line[:1] in (" ", "\t") and lines:
            lines[-1] += line
        elif line:
            lines.append(line)
    pairs: list[tuple[str, str]] = []
    for line in lines:
        name, sep, value = line.partition(":")
        if sep:
            pairs.append((name.strip(), value.strip()))
    return pairs


async def parse_multipart(
    content_type: str | None,
    source: BodySource,
    params: MutableMapping[str, Any] | None = None,
    *,
    encoding: str = "utf-8",
    sink_factory: SinkFactory | None = None,
    buffer_size: int = 8192,
    refill_threshold: int = 1024,
) -> MutableMapping[str, Any]:
    """Parse a ``multipart/form-data`` body into *params*.

    Form fields become ``str`` values, file fields ``UploadFile`` objects
    (or whatever *sink_factory*'s sinks return). A name sent more than once
    collects its values in a list, in arrival order.

    Args:
        content_type: The request Content-Type header value.
        source: The request body.
        params: Dict to merge into. A new dict is created if omitted.
        encoding: Encoding of form field values and of names/filenames.
        sink_factory: ``(part, encoding) -> Sink``. Defaults to ``memory_sink``.
        buffer_size: Size of the read buffer. A part's header block must fit.
        refill_threshold: Minimum buffered bytes before scanning for a boundary.

    Returns:
        *params*, unchanged if *content_type* has no ``boundary`` parameter.

    Raises:
        MalformedMultipartError: If the body does not follow multipart syntax.
        ConfigurationError: If *buffer_size* can't hold the boundary.
    """
    if params is None:
        params = {}
    boundary = get_mime_parameter(content_type, "boundary")
    if not boundary:
        return params
    decoder = MultipartDecoder(
        boundary,
        source,
        encoding=encoding,
        sink_factory=sink_factory,
        buffer_size=buffer_size,
        refill_threshold=refill_threshold,
    )
    return await decoder.decode(params)
