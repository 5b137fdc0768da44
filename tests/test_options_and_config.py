from __future__ import annotations

import pytest

from fjell_http_api.config import ClientConfig
from fjell_http_api.request_options import HttpOptions, RequestCredentials, RequestOptions
from fjell_http_api.security import sanitize_headers, validate_base_url


def test_defaults() -> None:
    options = HttpOptions()
    assert options.is_json is True
    assert options.is_json_body is True
    assert options.content_type == "application/json"
    assert options.accept == "application/json"
    assert options.params == {}
    assert options.is_authenticated is True
    assert options.skip_content_type is False
    assert options.request_credentials is RequestCredentials.SAME_ORIGIN


def test_apply_without_overrides_returns_defaults() -> None:
    options = HttpOptions(accept="text/plain")
    assert options.apply(None) is options
    assert options.apply(RequestOptions()) == options


def test_apply_replaces_only_supplied_fields() -> None:
    merged = HttpOptions().apply(RequestOptions(is_json=False, accept="text/csv"))
    assert merged.is_json is False
    assert merged.accept == "text/csv"
    assert merged.is_json_body is True
    assert merged.content_type == "application/json"


def test_apply_keeps_false_overrides() -> None:
    merged = HttpOptions().apply(RequestOptions(is_authenticated=False, is_json_body=False))
    assert merged.is_authenticated is False
    assert merged.is_json_body is False


def test_params_are_replaced_wholesale() -> None:
    base = HttpOptions(params={"a": 1, "b": 2})
    merged = base.apply(RequestOptions(params={"c": 3}))
    assert merged.params == {"c": 3}
    assert base.params == {"a": 1, "b": 2}


def test_request_credentials_accept_strings() -> None:
    merged = HttpOptions().apply(RequestOptions(request_credentials="omit"))
    assert merged.request_credentials is RequestCredentials.OMIT


def test_config_normalizes_url_and_credentials() -> None:
    config = ClientConfig(url="https://api.example.com/", client_name="web", request_credentials="include")
    assert config.url == "https://api.example.com"
    assert config.request_credentials is RequestCredentials.INCLUDE


def test_config_rejects_plain_http_to_remote_hosts() -> None:
    with pytest.raises(ValueError, match="Non-HTTPS"):
        ClientConfig(url="http://api.example.com")
    assert ClientConfig(url="http://api.example.com", allow_http=True).url == "http://api.example.com"
    assert ClientConfig(url="http://localhost:8080").url == "http://localhost:8080"


def test_config_rejects_unknown_credentials() -> None:
    with pytest.raises(ValueError):
        ClientConfig(url="https://api.example.com", request_credentials="sometimes")


def test_config_from_env(monkeypatch) -> None:
    monkeypatch.setenv("FJELL_HTTP_API_URL", "https://env.example.com")
    monkeypatch.setenv("FJELL_HTTP_API_CLIENT_NAME", "env-client")
    monkeypatch.setenv("FJELL_HTTP_API_REQUEST_CREDENTIALS", "omit")

    config = ClientConfig.from_env()

    assert config.url == "https://env.example.com"
    assert config.client_name == "env-client"
    assert config.request_credentials is RequestCredentials.OMIT


def test_config_from_env_prefers_explicit_values(monkeypatch) -> None:
    monkeypatch.setenv("FJELL_HTTP_API_URL", "https://env.example.com")
    config = ClientConfig.from_env(url="https://explicit.example.com", client_name="explicit")
    assert config.url == "https://explicit.example.com"
    assert config.client_name == "explicit"


def test_config_from_env_requires_url(monkeypatch) -> None:
    monkeypatch.delenv("FJELL_HTTP_API_URL", raising=False)
    with pytest.raises(ValueError, match="base url is required"):
        ClientConfig.from_env()


@pytest.mark.parametrize("url", ["api.example.com", "ftp://api.example.com", "https://api.example.com/\x00"])
def test_validate_base_url_rejects_bad_urls(url: str) -> None:
    with pytest.raises(ValueError):
        validate_base_url(url)


def test_sanitize_headers_redacts_credentials() -> None:
    headers = {"Authorization": "Bearer secret", "Cookie": "a=b", "Accept": "application/json"}
    assert sanitize_headers(headers) == {
        "Authorization": "[REDACTED]",
        "Cookie": "[REDACTED]",
        "Accept": "application/json",
    }
