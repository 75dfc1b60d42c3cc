"""
Ordered query-parameter handling for source configuration strings.

Sources store their parameters as a flat query string such as
``category=technology&q=ai``. Precedence when building a request:
source parameters first, computed defaults only for keys that are missing.
"""
from collections import OrderedDict
from typing import Iterator, Mapping, Optional
from urllib.parse import unquote_plus, urlencode


class QueryParams(Mapping[str, str]):
    """Insertion-ordered, string-valued parameter mapping."""

    def __init__(self, items: Optional[Mapping[str, str]] = None):
        self._items: "OrderedDict[str, str]" = OrderedDict(items or {})

    @classmethod
    def parse(cls, query: Optional[str]) -> "QueryParams":
        """
        Parse ``k=v&k2=v2``. Pairs without ``=`` are ignored and a repeated
        key keeps its last value (at its first position).
        """
        params = cls()
        if not query or not query.strip():
            return params

        for part in query.strip().lstrip("?").split("&"):
            key, sep, value = part.partition("=")
            key = unquote_plus(key.strip())
            if not sep or not key:
                continue
            params._items[key] = unquote_plus(value.strip())

        return params

    def set_default(self, key: str, value: object) -> None:
        """Set ``key`` only when the source did not supply it."""
        if key not in self._items and value is not None:
            self._items[key] = str(value)

    def to_query_string(self) -> str:
        return urlencode(list(self._items.items()), safe=",:")

    def __getitem__(self, key: str) -> str:
        return self._items[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __repr__(self) -> str:
        return f"QueryParams({dict(self._items)!r})"


def extract_param(query: Optional[str], key: str) -> Optional[str]:
    """Return a non-blank value for ``key`` from a stored query string."""
    value = QueryParams.parse(query).get(key)
    if value is None or not value.strip():
        return None
    return value
