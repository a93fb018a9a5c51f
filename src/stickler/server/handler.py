"""ASGI handler — translates ASGI scope/messages to stickler types.

The only component that touches raw ASGI directly. Converts the scope to
a Request, runs it through the composed middleware chain, and sends the
Response back through ASGI send().
"""

from stickler._internal.asgi import Receive, Scope, Send
from stickler.errors import MalformedMultipartError
from stickler.http.request import Request
from stickler.http.response import Response
from stickler.middleware.protocol import Handler
from stickler.server.errors import handle_bad_request, handle_internal_error
from stickler.server.sender import encode_headers, send_response


async def handle_request(
    scope: Scope,
    receive: Receive,
    send: Send,
    *,
    handler: Handler,
    debug: bool = False,
) -> None:
    """Process a single HTTP request through the full pipeline."""
    if scope["type"] != "http":
        return

    request = Request.from_asgi(scope, receive)
    raw_headers = None
    try:
        response: Response = await handler(request)
        # Encoding failures still get an error status
        raw_headers = encode_headers(response.headers)
    except MalformedMultipartError as exc:
        response = handle_bad_request(exc, request)
    except Exception as exc:
        response = handle_internal_error(exc, request, debug)

    await send_response(response, send, raw_headers)
