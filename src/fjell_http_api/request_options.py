"""Per-request options and overrides for the HTTP API clients."""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Mapping

from .query import QueryParams


class RequestCredentials(str, Enum):
    OMIT = "omit"
    SAME_ORIGIN = "same-origin"
    INCLUDE = "include"


@dataclass(frozen=True)
class RequestOptions:
    """Caller overrides. ``None`` means "keep the default"."""

    is_json: bool | None = None
    is_json_body: bool | None = None
    content_type: str | None = None
    accept: str | None = None
    params: QueryParams | None = None
    is_authenticated: bool | None = None
    skip_content_type: bool | None = None
    request_credentials: RequestCredentials | str | None = None
    headers: Mapping[str, str] | None = None
    timeout: float | None = None


@dataclass(frozen=True)
class HttpOptions:
    """Fully resolved options for a single request."""

    is_json: bool = True
    is_json_body: bool = True
    content_type: str = "application/json"
    accept: str = "application/json"
    params: QueryParams = field(default_factory=dict)
    is_authenticated: bool = True
    skip_content_type: bool = False
    request_credentials: RequestCredentials = RequestCredentials.SAME_ORIGIN
    headers: Mapping[str, str] = field(default_factory=dict)
    timeout: float | None = None

    def apply(self, overrides: RequestOptions | None) -> HttpOptions:
        """Return a copy with every supplied override replacing its default.

        The merge is shallow: a supplied ``params`` or ``headers`` mapping
        replaces the default mapping as a whole.
        """
        if overrides is None:
            return self
        changes = {}
        for option in fields(overrides):
            value = getattr(overrides, option.name)
            if value is not None:
                changes[option.name] = value
        if "request_credentials" in changes:
            changes["request_credentials"] = RequestCredentials(changes["request_credentials"])
        return replace(self, **changes)
