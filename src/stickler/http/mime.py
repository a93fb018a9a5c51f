"""MIME header helpers shared by the middleware and the multipart decoder.

Parameter parsing (``name="value"`` pairs after the first ``;``) is done by
``python-multipart``'s ``parse_options_header``, which handles quoting,
RFC 2231 encoded values, and the old IE full-path ``filename`` quirk.
"""

from collections.abc import Mapping, MutableMapping
from typing import Any
from urllib.parse import quote, urlencode

from python_multipart.multipart import parse_options_header


def get_mime_parameter(
    header_value: str | None,
    name: str,
    encoding: str = "latin-1",
) -> str | None:
    """Return parameter *name* from a MIME header value, or ``None``.

    ``get_mime_parameter("text/plain; charset=UTF-8", "charset")`` returns
    ``"UTF-8"``. Parameter names are matched case-insensitively. The raw
    parameter bytes are decoded with *encoding*, which lets multipart
    decoding recover UTF-8 field names and filenames from a header block
    read as latin-1.
    """
    if not header_value:
        return None
    _, options = parse_options_header(header_value.encode("latin-1", errors="replace"))
    value = options.get(name.lower().encode("latin-1"))
    if value is None:
        return None
    return value.decode(encoding, errors="replace")


def get_charset(content_type: str | None) -> str | None:
    """Return the ``charset`` parameter of a Content-Type value, if any."""
    return get_mime_parameter(content_type, "charset")


def is_file_upload(content_type: str | None) -> bool:
    """Whether *content_type* denotes a body the multipart decoder can parse."""
    return bool(content_type) and content_type.lower().startswith("multipart/form-data")


def merge_parameter(params: MutableMapping[str, Any], name: str, value: Any) -> None:
    """Merge *value* into *params* under *name*.

    The first value is stored as-is. A second value turns the entry into a
    list of both; later values are appended, keeping arrival order.
    """
    if name not in params:
        params[name] = value
        return
    current = params[name]
    if isinstance(current, list):
        current.append(value)
    else:
        params[name] = [current, value]


def url_encode(params: Mapping[str, Any]) -> str:
    """Encode a parameter mapping as a URL query string.

    List values expand to one ``key=value`` pair per item::

        url_encode({"tag": ["a", "b"], "q": "x y"})  # "tag=a&tag=b&q=x%20y"
    """
    return urlencode(params, doseq=True, safe="", quote_via=quote)
