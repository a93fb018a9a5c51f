"""Application configuration.

Frozen dataclasses — immutable after creation, IDE-autocompletable,
no string-key dict lookups. Each built-in middleware reads its own
section from ``AppConfig``.
"""

import hashlib
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from stickler.http.multipart import SinkFactory


@dataclass(frozen=True, slots=True)
class GzipConfig:
    """Gzip middleware configuration.

    ``content_types`` is matched (``re.search``) against the response
    ``Content-Type``. ``compressor`` is called with ``level`` and
    ``mem_level`` and must return an object with ``write()``/``finalize()``.
    """

    content_types: re.Pattern[str] = re.compile(r"^text|xml|json|javascript")
    level: int = 9
    mem_level: int = 9
    compressor: Callable[..., Any] | None = None  # None = GzipCompressor


@dataclass(frozen=True, slots=True)
class ETagConfig:
    """ETag middleware configuration.

    ``digest`` is a zero-argument factory returning a hasher with
    ``update(bytes)`` and ``hexdigest()``, such as ``hashlib.md5``.
    """

    digest: Callable[[], Any] = hashlib.md5


@dataclass(frozen=True, slots=True)
class MultipartConfig:
    """Streaming multipart decoder settings used by the params middleware."""

    buffer_size: int = 8192
    refill_threshold: int = 1024  # minimum buffered bytes before scanning for a boundary
    encoding: str = "utf-8"
    sink_factory: "SinkFactory | None" = None  # None = in-memory sinks


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Application configuration. Immutable after creation.

    All fields have sensible defaults. Override what you need::

        config = AppConfig(gzip=GzipConfig(level=6), debug=True)
    """

    debug: bool = False
    gzip: GzipConfig = field(default_factory=GzipConfig)
    etag: ETagConfig = field(default_factory=ETagConfig)
    multipart: MultipartConfig = field(default_factory=MultipartConfig)
