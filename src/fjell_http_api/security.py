"""Base-URL validation and header redaction."""

from __future__ import annotations

from typing import Mapping
from urllib.parse import urlparse


SENSITIVE_HEADERS = {
    "authorization",
    "proxy-authorization",
    "cookie",
    "x-api-key",
}


def sanitize_headers(headers: Mapping[str, str]) -> dict[str, str]:
    """Return headers with credential values redacted for logging and error dumps."""
    redacted: dict[str, str] = {}
    for key, value in headers.items():
        if key.lower() in SENSITIVE_HEADERS:
            redacted[key] = "[REDACTED]"
        else:
            redacted[key] = value
    return redacted


def validate_base_url(url: str, *, allow_http: bool = False) -> None:
    """Reject base URLs without a host, with odd schemes, or plain HTTP to remote hosts."""
    if "\x00" in url:
        raise ValueError("Invalid base_url")
    parsed = urlparse(url)
    if not parsed.scheme or not parsed.netloc:
        raise ValueError("base_url must include scheme and host")
    if parsed.scheme not in {"http", "https"}:
        raise ValueError(f"Unsupported base_url scheme: {parsed.scheme}")
    if parsed.scheme == "http" and not allow_http:
        allowed = {"localhost", "127.0.0.1", "::1"}
        host = (parsed.hostname or "").lower()
        if host not in allowed:
            raise ValueError("Non-HTTPS base_url is not allowed without allow_http=True")
