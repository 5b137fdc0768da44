from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from fjell_http_api import (
    AsyncHttpApi,
    ClientConfig,
    FjellHttpError,
    HttpApiNetworkError,
    RequestOptions,
    ServiceUnavailableError,
    UploadResult,
)

BASE_URL = "https://api.example.com"


def make_client(handler, populate_auth_header=None, upload_file=None) -> AsyncHttpApi:
    config = ClientConfig(url=BASE_URL, client_name="async-client")
    return AsyncHttpApi(
        config,
        populate_auth_header,
        httpx_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        upload_file=upload_file,
    )


def test_async_auth_populator_is_awaited_before_sending() -> None:
    events: list[str] = []
    captured: dict[str, httpx.Request] = {}

    async def populate(is_authenticated: bool, headers: dict[str, str]) -> None:
        await asyncio.sleep(0)
        events.append("auth")
        headers["Authorization"] = "Bearer async-token"

    def send_request(request: httpx.Request) -> httpx.Response:
        events.append("send")
        captured["request"] = request
        return httpx.Response(200, json={"success": True, "data": {"id": 1}})

    async def run() -> object:
        async with make_client(send_request, populate) as client:
            return await client.post("/users", {"name": "a"})

    result = asyncio.run(run())

    assert result == {"id": 1}
    assert events == ["auth", "send"]
    request = captured["request"]
    assert request.headers["Authorization"] == "Bearer async-token"
    assert request.headers["X-Client-Name"] == "async-client"
    assert json.loads(request.content) == {"name": "a"}


def test_async_accepts_plain_populator() -> None:
    captured: dict[str, httpx.Request] = {}

    def populate(is_authenticated: bool, headers: dict[str, str]) -> None:
        headers["Authorization"] = "Bearer sync-token"

    def send_request(request: httpx.Request) -> httpx.Response:
        captured["request"] = request
        return httpx.Response(200, json=[1, 2])

    async def run() -> object:
        async with make_client(send_request, populate) as client:
            return await client.get("/numbers", RequestOptions(params={"page": 2}))

    assert asyncio.run(run()) == [1, 2]
    assert captured["request"].headers["Authorization"] == "Bearer sync-token"
    assert str(captured["request"].url) == f"{BASE_URL}/numbers?page=2"


@pytest.mark.parametrize(
    ("verb", "method"),
    [
        ("get", "GET"),
        ("options", "OPTIONS"),
        ("connect", "CONNECT"),
        ("trace", "TRACE"),
        ("put", "PUT"),
        ("patch", "PATCH"),
        ("delete", "DELETE"),
    ],
)
def test_async_verb_wrappers(verb: str, method: str) -> None:
    captured: dict[str, httpx.Request] = {}

    def send_request(request: httpx.Request) -> httpx.Response:
        captured["request"] = request
        return httpx.Response(200, text="done")

    async def run() -> object:
        async with make_client(send_request) as client:
            return await getattr(client, verb)("/things", options=RequestOptions(is_json=False))

    assert asyncio.run(run()) == "done"
    assert captured["request"].method == method


def test_async_structured_and_legacy_errors() -> None:
    structured = {
        "success": False,
        "error": {
            "code": "RATE_LIMITED",
            "message": "Slow down",
            "operation": {"type": "all", "name": "all", "params": {}},
            "context": {"itemType": "user"},
            "details": {"retryable": True},
        },
    }

    async def run_structured() -> None:
        async with make_client(lambda request: httpx.Response(429, json=structured)) as client:
            await client.get("/users")

    async def run_legacy() -> None:
        async with make_client(lambda request: httpx.Response(503, text="down")) as client:
            await client.get("/users")

    with pytest.raises(FjellHttpError) as structured_error:
        asyncio.run(run_structured())
    assert structured_error.value.code == "RATE_LIMITED"
    assert structured_error.value.retryable is True

    with pytest.raises(ServiceUnavailableError) as legacy_error:
        asyncio.run(run_legacy())
    assert legacy_error.value.message == "Service Unavailable"


def test_async_network_errors_are_wrapped() -> None:
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async def run() -> None:
        async with make_client(refuse) as client:
            await client.get("/down")

    with pytest.raises(HttpApiNetworkError):
        asyncio.run(run())


def test_async_post_file() -> None:
    captured: dict[str, httpx.Request] = {}

    def send_request(request: httpx.Request) -> httpx.Response:
        captured["request"] = request
        return httpx.Response(201, json={"id": "file_1"})

    async def run() -> object:
        async with make_client(send_request) as client:
            return await client.post_file("/files", b"payload", filename="a.bin", body={"kind": "raw"})

    assert asyncio.run(run()) == {"id": "file_1"}
    request = captured["request"]
    assert request.headers["Content-Type"].startswith("multipart/form-data")
    assert b'filename="a.bin"' in request.content
    assert b"payload" in request.content


def test_async_upload_awaits_the_uploader() -> None:
    calls: list[tuple] = []

    async def populate(is_authenticated: bool, headers: dict[str, str]) -> None:
        headers["Authorization"] = "Bearer async-token"

    async def upload_file(url, uri, method, upload_type, field_name, headers):
        await asyncio.sleep(0)
        calls.append((url, uri, method, upload_type, field_name, dict(headers)))
        return UploadResult(status=200, body=json.dumps({"success": True, "data": {"id": "file_2"}}))

    def unused(request: httpx.Request) -> httpx.Response:
        raise AssertionError("the uploader does the transfer")

    async def run() -> object:
        async with make_client(unused, populate, upload_file=upload_file) as client:
            return await client.upload_async("/files", "file:///tmp/a.png", options=RequestOptions(params={"v": 1}))

    assert asyncio.run(run()) == {"id": "file_2"}
    url, uri, method, upload_type, field_name, headers = calls[0]
    assert url == f"{BASE_URL}/files?v=1"
    assert uri == "file:///tmp/a.png"
    assert (method, upload_type, field_name) == ("POST", "multipart", "file")
    assert headers["Authorization"] == "Bearer async-token"
    assert headers["Accept"] == "application/json"


def test_async_upload_failures_use_the_classifier() -> None:
    def upload_file(url, uri, method, upload_type, field_name, headers):
        return UploadResult(status=503, body="down")

    async def run() -> None:
        async with make_client(lambda request: httpx.Response(200), upload_file=upload_file) as client:
            await client.upload_async("/files", "file:///a")

    with pytest.raises(ServiceUnavailableError):
        asyncio.run(run())


def test_async_omit_sends_no_cookies_across_redirects() -> None:
    seen: list[str | None] = []

    def send_request(request: httpx.Request) -> httpx.Response:
        seen.append(request.headers.get("cookie"))
        if request.url.path == "/a":
            return httpx.Response(302, headers={"Location": "/b", "Set-Cookie": "tracker=1; Path=/"})
        return httpx.Response(200, json={"ok": True})

    async def run() -> tuple[object, httpx.Cookies]:
        httpx_client = httpx.AsyncClient(
            transport=httpx.MockTransport(send_request), cookies={"session": "abc"}, follow_redirects=True
        )
        config = ClientConfig(url=BASE_URL, request_credentials="omit")
        async with AsyncHttpApi(config, httpx_client=httpx_client) as client:
            return await client.get("/a"), httpx_client.cookies

    result, cookies = asyncio.run(run())

    assert result == {"ok": True}
    assert seen == [None, None]
    assert cookies.get("session") == "abc"
    assert cookies.get("tracker") is None
