"""Error handling for stickler requests.

Maps failures that escape the middleware chain to plain-text responses.
"""

import logging
import traceback

from stickler.http.request import Request
from stickler.http.response import Response

logger = logging.getLogger("stickler.server")


def handle_bad_request(exc: Exception, request: Request) -> Response:
    """A malformed request body becomes a 400 response."""
    logger.debug("400 %s %s: %s", request.method, request.path, exc)
    return Response.text(f"Bad Request: {exc}", status=400)


def handle_internal_error(exc: Exception, request: Request, debug: bool) -> Response:
    """Handle unexpected exceptions as 500 errors."""
    logger.exception("500 %s %s", request.method, request.path)
    if debug:
        detail = "".join(traceback.format_exception(exc))
        return Response.text(detail, status=500)
    return Response.text("Internal Server Error", status=500)
