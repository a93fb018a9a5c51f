"""On-the-fly gzip compression of response bodies.

Compresses ``200`` responses when the client accepts gzip, the response
isn't already encoded, and its ``Content-Type`` matches
``GzipConfig.content_types`` (text, XML, JSON, and JavaScript by default)::

    app = Application(config=AppConfig(gzip=GzipConfig(
        content_types=re.compile(r"^text/|json"),
        level=6,
    )))
    app.configure("gzip")
"""

from __future__ import annotations

import logging
import zlib
from typing import TYPE_CHECKING

from stickler.config import GzipConfig
from stickler.http.body import encode_chunk, iter_body
from stickler.http.request import Request
from stickler.http.response import Response
from stickler.middleware.protocol import Handler

if TYPE_CHECKING:
    from stickler.app import Application

logger = logging.getLogger("stickler.middleware")


class GzipCompressor:
    """Incremental gzip compressor over ``zlib``.

    ``write()`` feeds data, ``finalize()`` returns the complete gzip
    stream (header, deflate data, and trailer).
    """

    __slots__ = ("_compressor", "_output")

    def __init__(self, level: int = 9, mem_level: int = 9) -> None:
        # wbits 16 + 15: gzip framing with the maximum window size
        self._compressor = zlib.compressobj(level, zlib.DEFLATED, 16 + zlib.MAX_WBITS, mem_level)
        self._output: list[bytes] = []

    def write(self, data: bytes) -> None:
        self._output.append(self._compressor.compress(data))

    def finalize(self) -> bytes:
        self._output.append(self._compressor.flush())
        return b"".join(self._output)


def _varies_on_encoding(response: Response) -> bool:
    """Whether the response's ``Vary`` already covers ``Accept-Encoding``."""
    tokens = {
        token.strip().lower()
        for value in response.headers.get_list("vary")
        for token in value.split(",")
    }
    return "accept-encoding" in tokens or "*" in tokens


class GzipMiddleware:
    """Compresses eligible response bodies with gzip."""

    __slots__ = ("config", "next")

    def __init__(self, next: Handler, app: Application | None = None) -> None:  # noqa: A002
        self.next = next
        self.config = app.config.gzip if app is not None else GzipConfig()

    def can_compress(self, request: Request, response: Response) -> bool:
        """Whether *response* should be gzip-encoded for *request*."""
        if response.status != 200:
            return False
        accept_encoding = request.headers.get("accept-encoding")
        content_type = response.content_type
        if not accept_encoding or not content_type:
            return False
        if response.headers.contains("content-encoding"):
            return False
        return "gzip" in accept_encoding and self.config.content_types.search(content_type) is not None

    async def __call__(self, request: Request) -> Response:
        response = await self.next(request)
        if not self.can_compress(request, response):
            return response

        cfg = self.config
        factory = cfg.compressor or GzipCompressor
        compressor = factory(level=cfg.level, mem_level=cfg.mem_level)
        charset = response.charset
        async for chunk in iter_body(response.body):
            compressor.write(encode_chunk(chunk, charset))
        data = compressor.finalize()

        response.headers.set("Content-Encoding", "gzip")
        response.headers.unset("Content-Length")
        if not _varies_on_encoding(response):
            response.headers.add("Vary", "Accept-Encoding")
        response.body = iter((data,))
        logger.debug("gzip %s %s (%d bytes)", request.method, request.path, len(data))
        return response
