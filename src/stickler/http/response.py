"""HTTP response returned through the middleware chain.

The body is a lazy, single-pass sequence of ``bytes`` or ``str`` chunks.
Middleware that needs the bytes must consume the body once and put a
replacement back.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from stickler.http.body import Body, encode_chunk, iter_body
from stickler.http.headers import Headers
from stickler.http.mime import get_charset


@dataclass(slots=True, eq=False)
class Response:
    """An HTTP response.

    A ``bytes`` or ``str`` body is treated as a single chunk::

        Response(body="<h1>Hi</h1>", headers=Headers({"Content-Type": "text/html"}))
    """

    status: int = 200
    headers: Headers = field(default_factory=Headers)
    body: Body = ()

    def __post_init__(self) -> None:
        self.headers = Headers.coerce(self.headers)
        if isinstance(self.body, (bytes, str)):
            self.body = (self.body,)

    # -- Convenience constructors --

    @classmethod
    def html(cls, *parts: str, status: int = 200) -> Response:
        """A ``text/html`` response whose body is *parts*."""
        return cls(
            status=status,
            headers=Headers({"Content-Type": "text/html; charset=utf-8"}),
            body=parts,
        )

    @classmethod
    def text(cls, *parts: str, status: int = 200) -> Response:
        """A ``text/plain`` response whose body is *parts*."""
        return cls(
            status=status,
            headers=Headers({"Content-Type": "text/plain; charset=utf-8"}),
            body=parts,
        )

    # -- Header helpers --

    @property
    def content_type(self) -> str | None:
        """The Content-Type header value."""
        return self.headers.get("content-type")

    @property
    def charset(self) -> str | None:
        """The charset declared in Content-Type, if any."""
        return get_charset(self.content_type)

    # -- Body helpers --

    async def read(self) -> bytes:
        """Consume the body and return it as bytes."""
        charset = self.charset
        return b"".join([encode_chunk(chunk, charset) async for chunk in iter_body(self.body)])
