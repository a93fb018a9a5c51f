"""Middleware protocol, Handler type alias, and chain composition.

A handler turns a request into a response::

    async def handler(request: Request) -> Response: ...

A middleware (interceptor) wraps a handler into another handler::

    def timing(next: Handler, app: Application) -> Handler:
        async def handle(request: Request) -> Response:
            start = time.monotonic()
            response = await next(request)
            response.headers.set("X-Time", f"{time.monotonic() - start:.3f}")
            return response

        return handle

No base class required. Classes whose ``__init__(next, app)`` builds a
callable handler work the same way as closures.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Sequence
from typing import TYPE_CHECKING, Any, Protocol

from stickler._internal.invoke import invoke
from stickler.http.request import Request
from stickler.http.response import Response

if TYPE_CHECKING:
    from stickler.app import Application

# The next handler in the middleware chain
type Handler = Callable[[Request], Awaitable[Response]]


class Middleware(Protocol):
    """Protocol for stickler middleware.

    Accepts both functions and classes::

        # Function middleware
        def powered_by(next: Handler, app: Application) -> Handler:
            async def handle(request: Request) -> Response:
                response = await next(request)
                response.headers.set("X-Powered-By", "stickler")
                return response
            return handle

        # Class middleware
        class PoweredBy:
            def __init__(self, next: Handler, app: Application) -> None:
                self.next = next

            async def __call__(self, request: Request) -> Response:
                ...
    """

    def __call__(self, next: Handler, app: Application | None, /) -> Handler: ...


def as_handler(handler: Callable[[Request], Any]) -> Handler:
    """Adapt a sync or async base handler to the async ``Handler`` shape."""

    async def call(request: Request) -> Response:
        return await invoke(handler, request)

    return call


def build_chain(
    middleware: Sequence[Middleware],
    handler: Callable[[Request], Any],
    app: Application | None = None,
) -> Handler:
    """Wrap *handler* in *middleware*, first item outermost.

    Requests pass through the middleware in list order; responses come
    back in reverse order. A middleware that returns without calling
    ``next`` short-circuits everything inside it.
    """
    chain = as_handler(handler)
    for mw in reversed(middleware):
        chain = mw(chain, app)
    return chain
