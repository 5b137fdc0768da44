"""Query-string encoding."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Mapping, Union
from urllib.parse import quote


class _Unset:
    _instance: _Unset | None = None

    def __new__(cls) -> _Unset:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET = _Unset()

QueryValue = Union[str, int, float, bool, datetime, date, None, _Unset]
QueryParams = Mapping[str, QueryValue]

# Characters encodeURIComponent leaves alone on top of quote()'s defaults.
_SAFE = "!~*'()"


def format_query_value(value: Any) -> str:
    """Render a single parameter value the way it appears on the wire, before quoting."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def generate_query_parameters(params: QueryParams | None) -> str:
    """Render ``params`` as ``?key=value&...`` in insertion order.

    ``UNSET`` values and empty strings are dropped. ``None`` is kept and
    renders as ``key=``.
    """
    if not params:
        return ""
    pairs = []
    for key, value in params.items():
        if value is UNSET or value == "":
            continue
        pairs.append(f"{key}={quote(format_query_value(value), safe=_SAFE)}")
    if not pairs:
        return ""
    return "?" + "&".join(pairs)
