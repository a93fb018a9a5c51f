"""Conditional GET middleware based on response body digests.

Tags every ``200`` response with an ``ETag`` built from a digest of its
body and answers ``304 Not Modified`` when the request's
``If-None-Match`` lists that tag.

Bodies that implement ``digest()`` (see ``Digestible``) are not read.
Any other body is read once, hashed, and put back as a ``BufferedBody``.
The digest function comes from ``ETagConfig.digest`` (``hashlib.md5`` by
default)::

    app.configure("etag")
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from stickler.config import ETagConfig
from stickler.http.body import BufferedBody, Digestible, encode_chunk, iter_body
from stickler.http.headers import Headers
from stickler.http.request import Request
from stickler.http.response import Response
from stickler.middleware.protocol import Handler

if TYPE_CHECKING:
    from stickler.app import Application

logger = logging.getLogger("stickler.middleware")


def parse_etags(header: str | None) -> set[str]:
    """Split an ``If-None-Match`` value into its trimmed entity tags."""
    if not header:
        return set()
    return {tag.strip() for tag in header.split(",") if tag.strip()}


class ETagMiddleware:
    """Adds ``ETag`` headers and answers matching conditional requests."""

    __slots__ = ("config", "next")

    def __init__(self, next: Handler, app: Application | None = None) -> None:  # noqa: A002
        self.next = next
        self.config = app.config.etag if app is not None else ETagConfig()

    async def _digest(self, response: Response) -> tuple[str, BufferedBody | None]:
        """Return the body digest and, if the body had to be read, its replacement."""
        body = response.body
        if isinstance(body, Digestible):
            return body.digest(), None
        hasher = self.config.digest()
        charset = response.charset
        parts: list[bytes] = []
        async for chunk in iter_body(body):
            data = encode_chunk(chunk, charset)
            hasher.update(data)
            parts.append(data)
        code = hasher.hexdigest()
        return code, BufferedBody(b"".join(parts), code)

    async def __call__(self, request: Request) -> Response:
        response = await self.next(request)
        if response.status != 200:
            return response

        code, buffered = await self._digest(response)
        etag = f'"{code}"'
        response.headers.set("ETag", etag)

        if etag in parse_etags(request.headers.get("if-none-match")):
            logger.debug("%s %s not modified (%s)", request.method, request.path, etag)
            headers = Headers(response.headers)
            headers.unset("Content-Length")
            return Response(status=304, headers=headers, body=())

        if buffered is not None:
            # The original body iterator is exhausted.
            response.body = buffered
        return response
