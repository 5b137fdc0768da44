"""Process-wide client configuration."""

from __future__ import annotations

import os
from dataclasses import dataclass

from .request_options import RequestCredentials
from .security import validate_base_url


URL_ENV_VAR = "FJELL_HTTP_API_URL"
CLIENT_NAME_ENV_VAR = "FJELL_HTTP_API_CLIENT_NAME"
REQUEST_CREDENTIALS_ENV_VAR = "FJELL_HTTP_API_REQUEST_CREDENTIALS"

DEFAULT_CLIENT_NAME = "fjell-http-api-python"


@dataclass(frozen=True)
class ClientConfig:
    """Immutable settings shared by every request a client makes.

    ``url`` is normalized without a trailing slash so that paths, which always
    start with ``/``, can be appended directly.
    """

    url: str
    client_name: str = DEFAULT_CLIENT_NAME
    request_credentials: RequestCredentials | str = RequestCredentials.SAME_ORIGIN
    allow_http: bool = False

    def __post_init__(self) -> None:
        url = self.url.rstrip("/")
        validate_base_url(url, allow_http=self.allow_http)
        object.__setattr__(self, "url", url)
        object.__setattr__(self, "request_credentials", RequestCredentials(self.request_credentials))

    @classmethod
    def from_env(
        cls,
        *,
        url: str | None = None,
        client_name: str | None = None,
        request_credentials: RequestCredentials | str | None = None,
        allow_http: bool = False,
    ) -> ClientConfig:
        """Build a config from explicit values, falling back to environment variables."""
        resolved_url = url or os.getenv(URL_ENV_VAR)
        if not resolved_url:
            raise ValueError(f"base url is required (pass url= or set {URL_ENV_VAR})")
        return cls(
            url=resolved_url,
            client_name=client_name or os.getenv(CLIENT_NAME_ENV_VAR) or DEFAULT_CLIENT_NAME,
            request_credentials=(
                request_credentials
                or os.getenv(REQUEST_CREDENTIALS_ENV_VAR)
                or RequestCredentials.SAME_ORIGIN
            ),
            allow_http=allow_http,
        )
