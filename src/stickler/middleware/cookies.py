"""Cookie parsing middleware.

Parses the ``Cookie`` header once and stores the result in
``request.cookies`` for everything further down the chain.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from stickler.http.cookies import parse_cookies
from stickler.http.request import Request
from stickler.http.response import Response
from stickler.middleware.protocol import Handler

if TYPE_CHECKING:
    from stickler.app import Application


class CookiesMiddleware:
    """Fills ``request.cookies`` from the ``Cookie`` header."""

    __slots__ = ("next",)

    def __init__(self, next: Handler, app: Application | None = None) -> None:  # noqa: A002, ARG002
        self.next = next

    async def __call__(self, request: Request) -> Response:
        if request.cookies is None:
            request.cookies = parse_cookies(request.headers.get("cookie"))
        return await self.next(request)
