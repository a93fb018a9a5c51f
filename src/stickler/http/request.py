"""HTTP request passed by reference through the middleware chain.

Unlike the response, the request is mutable on purpose: middleware
attaches parsed data (``cookies``, ``params``) in place so every
middleware and the handler further in see it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from stickler._internal.asgi import Receive, Scope
from stickler.http.body import BodySource, BytesSource, ReceiveSource, read_source
from stickler.http.headers import Headers


@dataclass(slots=True, eq=False)
class Request:
    """An HTTP request.

    ``body`` is a single-pass ``BodySource``. ``params`` is filled by the
    params middleware, ``cookies`` by the cookies middleware (``None``
    until then).
    """

    method: str = "GET"
    path: str = "/"
    headers: Headers = field(default_factory=Headers)
    body: BodySource = field(default_factory=lambda: BytesSource(b""))
    query_string: bytes = b""
    params: dict[str, Any] = field(default_factory=dict)
    cookies: dict[str, str] | None = None
    http_version: str = "1.1"
    server: tuple[str, int] | None = None
    client: tuple[str, int] | None = None

    # Set once the body source has been read to the end
    body_consumed: bool = field(default=False, repr=False)

    def __post_init__(self) -> None:
        self.headers = Headers.coerce(self.headers)

    # -- Computed properties --

    @property
    def content_type(self) -> str | None:
        """The Content-Type header value."""
        return self.headers.get("content-type")

    @property
    def content_length(self) -> int | None:
        """The Content-Length header as int."""
        value = self.headers.get("content-length")
        if value is None:
            return None
        try:
            return int(value)
        except ValueError:
            return None

    @property
    def url(self) -> str:
        """Request path plus query string."""
        if self.query_string:
            return f"{self.path}?{self.query_string.decode('latin-1')}"
        return self.path

    # -- Body access --

    async def read(self) -> bytes:
        """Read the remaining body. The body can only be read once."""
        data = await read_source(self.body)
        self.body_consumed = True
        return data

    # -- Factory --

    @classmethod
    def from_asgi(cls, scope: Scope, receive: Receive) -> Request:
        """Create a Request from an ASGI scope and receive callable."""
        headers = Headers()
        for name, value in scope.get("headers", ()):
            headers.add(name.decode("latin-1"), value.decode("latin-1"))
        server = scope.get("server")
        client = scope.get("client")
        return cls(
            method=scope["method"],
            path=scope["path"],
            headers=headers,
            body=ReceiveSource(receive),
            query_string=scope.get("query_string", b""),
            http_version=scope.get("http_version", "1.1"),
            server=tuple(server) if server else None,
            client=tuple(client) if client else None,
        )
