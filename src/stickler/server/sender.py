"""ASGI response sending — translates a stickler Response to ASGI messages.

Headers go out one line per value (``Headers.wire_items``). The body is
streamed chunk by chunk, so lazy bodies are never buffered here.
"""

import logging

from stickler._internal.asgi import Send
from stickler.http.body import encode_chunk, iter_body
from stickler.http.headers import Headers
from stickler.http.response import Response

logger = logging.getLogger("stickler.server")

type RawHeaders = list[tuple[bytes, bytes]]


def _body_allowed(status: int) -> bool:
    """Whether an HTTP status code permits a response body."""
    # RFC: 1xx, 204, and 304 responses do not include a message body.
    return not (100 <= status < 200 or status in {204, 304})


def encode_headers(headers: Headers) -> RawHeaders:
    """Encode headers for ``http.response.start``.

    Raises:
        UnicodeEncodeError: If a name or value is not latin-1 encodable.
    """
    return [
        (name.lower().encode("latin-1"), value.encode("latin-1"))
        for name, value in headers.wire_items()
    ]


async def send_response(
    response: Response,
    send: Send,
    raw_headers: RawHeaders | None = None,
) -> None:
    """Translate a stickler Response into ASGI send() calls.

    *raw_headers* are the already encoded response headers, if the caller
    encoded them first. Once the start message is sent the status can't
    change, so a body that fails mid-stream is logged and the stream closed.
    """
    if raw_headers is None:
        raw_headers = encode_headers(response.headers)
    await send(
        {
            "type": "http.response.start",
            "status": response.status,
            "headers": raw_headers,
        }
    )

    if _body_allowed(response.status):
        charset = response.charset
        try:
            async for chunk in iter_body(response.body):
                data = encode_chunk(chunk, charset)
                if data:
                    await send(
                        {
                            "type": "http.response.body",
                            "body": data,
                            "more_body": True,
                        }
                    )
        except Exception:
            logger.exception("Response body failed after headers were sent")

    await send(
        {
            "type": "http.response.body",
            "body": b"",
            "more_body": False,
        }
    )
