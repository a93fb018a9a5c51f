"""Stickler — composable HTTP middleware with a streaming multipart decoder.

Wrap a base handler in middleware, serve it over ASGI::

    from stickler import Application, Response

    app = Application()
    app.configure("params", "cookies", "etag", "gzip")

    @app.handler
    async def index(request):
        return Response.html("<p>Hello, ", request.params.get("name", "world"), "</p>")

Decode ``multipart/form-data`` bodies incrementally::

    from stickler.http.multipart import parse_multipart
    params = await parse_multipart(request.content_type, request.body)
"""

__version__ = "0.1.0"
__all__ = [
    "AppConfig",
    "Application",
    "ConfigurationError",
    "ETagConfig",
    "GzipConfig",
    "Handler",
    "Headers",
    "MalformedMultipartError",
    "Middleware",
    "MultipartConfig",
    "Request",
    "Response",
    "SticklerError",
    "build_chain",
]


def __getattr__(name: str) -> object:
    """Lazy imports for public API.

    Keeps ``import stickler`` fast while providing a clean top-level API.
    """
    if name == "Application":
        from stickler.app import Application

        return Application

    if name in ("AppConfig", "ETagConfig", "GzipConfig", "MultipartConfig"):
        from stickler import config as _config

        return getattr(_config, name)

    if name == "Headers":
        from stickler.http.headers import Headers

        return Headers

    if name == "Request":
        from stickler.http.request import Request

        return Request

    if name == "Response":
        from stickler.http.response import Response

        return Response

    if name in ("Handler", "Middleware", "build_chain"):
        from stickler.middleware import protocol as _mw

        return getattr(_mw, name)

    if name in ("ConfigurationError", "MalformedMultipartError", "SticklerError"):
        from stickler import errors as _errors

        return getattr(_errors, name)

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)
