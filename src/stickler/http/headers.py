"""Mutable, case-insensitive, case-preserving HTTP headers.

Implements ``MutableMapping[str, str]``. A header name may hold several
values; they are stored joined with ``"\\n"`` (never a valid character in a
header value) and split again by ``get_list()`` and ``wire_items()``.
"""

from collections.abc import Iterable, Iterator, Mapping, MutableMapping

# Joins multiple values stored under one name. Distinct from the
# "\r\n" line separator used on the wire.
SEPARATOR = "\n"


def _clean(value: str) -> str:
    """Strip line terminators so a value can't inject extra header lines."""
    return str(value).replace("\r", "").replace("\n", "")


class Headers(MutableMapping[str, str]):
    """Case-insensitive, case-preserving multi-value header collection.

    ``get``/``__getitem__`` return the stored value, which is a
    ``"\\n"``-joined string when the header was ``add()``-ed more than once.
    ``get_list`` returns the individual values.

    Usage::

        headers = Headers({"Content-Type": "text/html"})
        headers["content-type"]            # "text/html"
        headers.add("Set-Cookie", "a=1")
        headers.add("Set-Cookie", "b=2")
        headers.get_list("set-cookie")     # ["a=1", "b=2"]
    """

    __slots__ = ("_store",)

    def __init__(
        self,
        headers: Mapping[str, str] | Iterable[tuple[str, str]] | None = None,
    ) -> None:
        # lower-case name -> (name as last set, value)
        self._store: dict[str, tuple[str, str]] = {}
        if headers is None:
            return
        if isinstance(headers, Headers):
            pairs: Iterable[tuple[str, str]] = headers.wire_items()
        elif isinstance(headers, Mapping):
            pairs = headers.items()
        else:
            pairs = headers
        for name, value in pairs:
            self.add(name, value)

    @classmethod
    def coerce(cls, headers: "Headers | Mapping[str, str] | Iterable[tuple[str, str]] | None") -> "Headers":
        """Return *headers* itself if it is a ``Headers``, else a new ``Headers`` built from it."""
        if isinstance(headers, Headers):
            return headers
        return cls(headers)

    # -- Core operations --

    def get(self, name: str, default: str | None = None) -> str | None:  # type: ignore[override]
        """Return the value for *name* (any casing), or *default* if missing."""
        entry = self._store.get(name.lower())
        if entry is None:
            return default
        return entry[1]

    def set(self, name: str, value: str) -> None:
        """Set *name* to *value*, replacing the value under any casing of *name*."""
        self._store[name.lower()] = (name, _clean(value))

    def add(self, name: str, value: str) -> None:
        """Append *value* to *name*, or set it if the header is not present.

        The stored casing of the name becomes *name*.
        """
        key = name.lower()
        value = _clean(value)
        entry = self._store.get(key)
        if entry is not None:
            value = entry[1] + SEPARATOR + value
        self._store[key] = (name, value)

    def unset(self, name: str) -> None:
        """Remove *name* regardless of the casing it was set with."""
        self._store.pop(name.lower(), None)

    def contains(self, name: str) -> bool:
        """Whether a header called *name* (any casing) is present."""
        return name.lower() in self._store

    def get_list(self, name: str) -> list[str]:
        """Return all values for *name* (e.g. multiple ``Set-Cookie``)."""
        value = self.get(name)
        if value is None:
            return []
        return value.split(SEPARATOR)

    def wire_items(self) -> Iterator[tuple[str, str]]:
        """Yield one ``(name, value)`` pair per logical value, in insertion order."""
        for name, value in self._store.values():
            for part in value.split(SEPARATOR):
                yield name, part

    def serialize(self) -> str:
        """Return the headers in MIME format. For diagnostics, not the wire."""
        return "".join(f"{name}: {value}\r\n" for name, value in self.wire_items())

    # -- MutableMapping protocol --

    def __getitem__(self, name: str) -> str:
        value = self.get(name)
        if value is None:
            raise KeyError(name)
        return value

    def __setitem__(self, name: str, value: str) -> None:
        self.set(name, value)

    def __delitem__(self, name: str) -> None:
        if not self.contains(name):
            raise KeyError(name)
        self.unset(name)

    def __contains__(self, name: object) -> bool:
        if not isinstance(name, str):
            return False
        return self.contains(name)

    def __iter__(self) -> Iterator[str]:
        for name, _ in self._store.values():
            yield name

    def __len__(self) -> int:
        return len(self._store)

    def __repr__(self) -> str:
        items = ", ".join(f"{name!r}: {value!r}" for name, value in self._store.values())
        return f"Headers({{{items}}})"

    def __str__(self) -> str:
        return self.serialize()
