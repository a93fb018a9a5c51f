"""Request parameter middleware.

Collects query-string and form parameters into ``request.params``:

- query string pairs first,
- then ``application/x-www-form-urlencoded`` body pairs,
- or ``multipart/form-data`` fields and files (streamed through
  ``parse_multipart`` with the app's ``MultipartConfig``).

A name that occurs more than once maps to a list of its values.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any
from urllib.parse import parse_qsl

from stickler.config import MultipartConfig
from stickler.http.mime import get_charset, is_file_upload, merge_parameter
from stickler.http.multipart import parse_multipart
from stickler.http.request import Request
from stickler.http.response import Response
from stickler.middleware.protocol import Handler

if TYPE_CHECKING:
    from stickler.app import Application

logger = logging.getLogger("stickler.middleware")

URLENCODED = "application/x-www-form-urlencoded"


def _merge_pairs(params: dict[str, Any], pairs: list[tuple[str, str]]) -> None:
    for name, value in pairs:
        merge_parameter(params, name, value)


class ParamsMiddleware:
    """Parses query and form parameters into ``request.params``."""

    __slots__ = ("config", "next")

    def __init__(self, next: Handler, app: Application | None = None) -> None:  # noqa: A002
        self.next = next
        self.config = app.config.multipart if app is not None else MultipartConfig()

    async def parse(self, request: Request) -> None:
        """Merge all parameters of *request* into ``request.params``."""
        if request.query_string:
            query = request.query_string.decode("latin-1")
            _merge_pairs(request.params, parse_qsl(query, keep_blank_values=True))

        if request.body_consumed:
            return
        content_type = request.content_type
        if not content_type:
            return

        if content_type.lower().split(";")[0].strip() == URLENCODED:
            raw = await request.read()
            charset = get_charset(content_type) or "utf-8"
            pairs = parse_qsl(raw.decode(charset, errors="replace"), keep_blank_values=True)
            _merge_pairs(request.params, pairs)
        elif is_file_upload(content_type):
            cfg = self.config
            await parse_multipart(
                content_type,
                request.body,
                request.params,
                encoding=cfg.encoding,
                sink_factory=cfg.sink_factory,
                buffer_size=cfg.buffer_size,
                refill_threshold=cfg.refill_threshold,
            )
            request.body_consumed = True
            logger.debug("Parsed multipart body for %s %s", request.method, request.path)

    async def __call__(self, request: Request) -> Response:
        await self.parse(request)
        return await self.next(request)
