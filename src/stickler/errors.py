"""Stickler exception hierarchy.

Shared across the application, the middleware, and the multipart decoder so
every module raises and catches the same types.
"""


class SticklerError(Exception):
    """Base for all stickler-specific errors."""


class ConfigurationError(SticklerError):
    """Raised when application or middleware configuration is invalid.

    Typically raised while configuring or freezing the app, before any
    request is processed.
    """


class MalformedMultipartError(SticklerError, ValueError):
    """Raised when a multipart body does not follow the boundary/header grammar.

    The boundary was never found, a part's header block was never
    terminated, or a part body ended without a closing boundary.
    """
