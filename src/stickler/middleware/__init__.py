"""Middleware — Protocol-based, no inheritance required.

A middleware is any callable matching:
    def mw(next: Handler, app: Application) -> Handler

Built-in middleware, registered by name for ``Application.configure()``:
    cookies -- CookiesMiddleware: parse the Cookie header into request.cookies
    etag -- ETagMiddleware: ETag headers and 304 Not Modified responses
    gzip -- GzipMiddleware: gzip compression of text-like responses
    params -- ParamsMiddleware: query, URL-encoded, and multipart parameters
"""

from stickler.middleware.cookies import CookiesMiddleware
from stickler.middleware.etag import ETagMiddleware
from stickler.middleware.gzip import GzipCompressor, GzipMiddleware
from stickler.middleware.params import ParamsMiddleware
from stickler.middleware.protocol import Handler, Middleware, build_chain

BUILTIN_MIDDLEWARE: dict[str, Middleware] = {
    "cookies": CookiesMiddleware,
    "etag": ETagMiddleware,
    "gzip": GzipMiddleware,
    "params": ParamsMiddleware,
}

__all__ = [
    "BUILTIN_MIDDLEWARE",
    "CookiesMiddleware",
    "ETagMiddleware",
    "GzipCompressor",
    "GzipMiddleware",
    "Handler",
    "Middleware",
    "ParamsMiddleware",
    "build_chain",
]
