"""Application — middleware configuration and ASGI entry point.

Mutable during setup (base handler, middleware). Frozen when the chain is
first built, after which it only serves requests.
"""

import threading
from collections.abc import Callable
from typing import Any

from stickler._internal.asgi import Receive, Scope, Send
from stickler.config import AppConfig
from stickler.errors import ConfigurationError
from stickler.http.request import Request
from stickler.http.response import Response
from stickler.middleware import BUILTIN_MIDDLEWARE
from stickler.middleware.protocol import Handler, Middleware, build_chain
from stickler.server.handler import handle_request

type BaseHandler = Callable[[Request], Any]


class Application:
    """A stickler application: a base handler wrapped in middleware.

    Usage::

        app = Application()
        app.configure("params", "etag", "gzip")

        @app.handler
        async def index(request: Request) -> Response:
            return Response.html("<h1>Hello ", request.params.get("name", "world"), "</h1>")

    Thread safety:
        Setup is single-threaded. The freeze transition uses a Lock +
        double-check so exactly one thread composes the chain, even if
        several ASGI workers receive their first request at once.
    """

    __slots__ = (
        "_base_handler",
        "_chain",
        "_freeze_lock",
        "_frozen",
        "_middleware_list",
        "config",
    )

    def __init__(
        self,
        handler: BaseHandler | None = None,
        config: AppConfig | None = None,
    ) -> None:
        self.config: AppConfig = config or AppConfig()
        self._base_handler: BaseHandler | None = handler
        self._middleware_list: list[Middleware] = []
        self._frozen: bool = False
        self._freeze_lock: threading.Lock = threading.Lock()

        # Compiled state, set during _freeze()
        self._chain: Handler | None = None

    # -- Setup --

    def configure(self, *middleware: str | Middleware) -> None:
        """Append middleware to the chain, outermost first.

        Each item is a built-in middleware name (``"params"``,
        ``"cookies"``, ``"etag"``, ``"gzip"``) or a middleware callable.

        Raises:
            ConfigurationError: For an unknown name, a non-callable item,
                or when the app has already been frozen.
        """
        self._check_not_frozen()
        resolved: list[Middleware] = []
        for item in middleware:
            if isinstance(item, str):
                try:
                    resolved.append(BUILTIN_MIDDLEWARE[item])
                except KeyError:
                    known = ", ".join(sorted(BUILTIN_MIDDLEWARE))
                    msg = f"Unknown middleware {item!r}. Known middleware: {known}"
                    raise ConfigurationError(msg) from None
            elif callable(item):
                resolved.append(item)
            else:
                msg = f"Middleware must be a name or a callable, got {item!r}"
                raise ConfigurationError(msg)
        self._middleware_list.extend(resolved)

    def handler(self, func: BaseHandler) -> BaseHandler:
        """Set the base handler. Usable as a decorator."""
        self._check_not_frozen()
        self._base_handler = func
        return func

    @property
    def middleware(self) -> tuple[Middleware, ...]:
        """The configured middleware, outermost first."""
        return tuple(self._middleware_list)

    # -- Running --

    def build(self) -> Handler:
        """Freeze the app and return the composed handler."""
        self._ensure_frozen()
        assert self._chain is not None
        return self._chain

    async def handle(self, request: Request) -> Response:
        """Run *request* through the middleware chain."""
        return await self.build()(request)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        """ASGI 3.0 entry point. Non-HTTP scopes are ignored."""
        chain = self.build()
        await handle_request(scope, receive, send, handler=chain, debug=self.config.debug)

    # -- Internal --

    def _ensure_frozen(self) -> None:
        if self._frozen:
            return
        with self._freeze_lock:
            if self._frozen:
                return
            self._freeze()

    def _freeze(self) -> None:
        """Compose the chain. MUST only be called while holding _freeze_lock."""
        if self._base_handler is None:
            msg = "No base handler set. Pass one to Application() or use @app.handler."
            raise ConfigurationError(msg)
        self._chain = build_chain(self._middleware_list, self._base_handler, self)
        self._frozen = True

    def _check_not_frozen(self) -> None:
        if self._frozen:
            msg = (
                "Cannot modify the app after it has started serving requests. "
                "Configure middleware and the handler before the first request."
            )
            raise ConfigurationError(msg)
