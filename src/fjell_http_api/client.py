"""Synchronous and asynchronous clients for Fjell-style HTTP APIs."""

from __future__ import annotations

import inspect
import json
import logging
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from http.cookiejar import Cookie, CookieJar
from typing import IO, Any, Awaitable, Callable, Mapping, Optional, Union

import httpx
from pydantic import BaseModel

from .config import ClientConfig
from .exceptions import (
    FjellHttpError,
    HttpApiNetworkError,
    HttpApiTimeoutError,
    RequestInfo,
    legacy_error_for_status,
)
from .models import parse_error_info
from .query import format_query_value, generate_query_parameters
from .request_options import HttpOptions, RequestCredentials, RequestOptions
from .security import sanitize_headers

logger = logging.getLogger(__name__)

AuthHeaderPopulator = Callable[[bool, "dict[str, str]"], None]
AsyncAuthHeaderPopulator = Callable[[bool, "dict[str, str]"], Optional[Awaitable[None]]]
FileContent = Union[bytes, IO[bytes]]

BODYLESS_METHODS = frozenset({"GET", "HEAD"})
CLIENT_NAME_HEADER = "X-Client-Name"
UPLOAD_TYPE = "multipart"


@dataclass(frozen=True)
class UploadResult:
    """What an injected file uploader reports back."""

    status: int
    body: str
    headers: Mapping[str, str] = field(default_factory=dict)
    mime_type: str | None = None


# (url, uri, method, upload_type, field_name, headers) -> UploadResult
FileUploader = Callable[[str, str, str, str, str, "dict[str, str]"], UploadResult]
AsyncFileUploader = Callable[
    [str, str, str, str, str, "dict[str, str]"], Union[UploadResult, Awaitable[UploadResult]]
]


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _normalize_headers(headers: Mapping[str, str] | None) -> dict[str, str]:
    if not headers:
        return {}
    clean: dict[str, str] = {}
    for key, value in headers.items():
        clean[str(key)] = str(value)
    return clean


def _set_header(headers: dict[str, str], name: str, value: str) -> None:
    for key in [key for key in headers if key.lower() == name.lower()]:
        del headers[key]
    headers[name] = value


def _form_fields(body: Mapping[str, Any] | None) -> dict[str, Any]:
    if not body:
        return {}
    fields: dict[str, Any] = {}
    for key, value in body.items():
        fields[str(key)] = value if isinstance(value, (str, bytes)) else format_query_value(value)
    return fields


def _no_auth(is_authenticated: bool, headers: dict[str, str]) -> None:
    return None


def _restore_cookies(jar: CookieJar, saved: list[Cookie], response: httpx.Response) -> None:
    """Undo what ``response``'s Set-Cookie headers wrote into ``jar``."""
    names = {value.split("=", 1)[0].strip() for value in response.headers.get_list("set-cookie")}
    if not names:
        return
    for cookie in [cookie for cookie in jar if cookie.name in names]:
        jar.clear(cookie.domain, cookie.path, cookie.name)
    for cookie in saved:
        if cookie.name in names:
            jar.set_cookie(cookie)


def _upload_response(result: UploadResult, method: str, url: str) -> httpx.Response:
    headers = dict(result.headers)
    if result.mime_type and not any(key.lower() == "content-type" for key in headers):
        headers["Content-Type"] = result.mime_type
    return httpx.Response(result.status, headers=headers, text=result.body, request=httpx.Request(method, url))


class _BaseHttpApi:
    default_timeout = 30.0

    def __init__(self, config: ClientConfig) -> None:
        self.config = config

    def _default_options(self) -> HttpOptions:
        return HttpOptions(request_credentials=self.config.request_credentials)

    def _verb_options(self, options: RequestOptions | None) -> HttpOptions:
        return self._default_options().apply(options)

    def _resolve_options(self, options: RequestOptions | HttpOptions | None) -> HttpOptions:
        if isinstance(options, HttpOptions):
            return options
        return self._default_options().apply(options)

    def _file_options(self, options: RequestOptions | None, headers: Mapping[str, str] | None) -> HttpOptions:
        resolved = self._default_options().apply(options)
        merged_headers = {**resolved.headers, **_normalize_headers(headers)}
        return replace(resolved, skip_content_type=True, headers=merged_headers)

    @staticmethod
    def _path(path: str) -> str:
        if "://" in path:
            raise ValueError("Full URLs are not allowed in path for request method")
        if not path.startswith("/"):
            raise ValueError("Path must be absolute and start with '/'")
        if "\x00" in path:
            raise ValueError("Invalid path characters")
        return path

    def _headers(self, options: HttpOptions) -> dict[str, str]:
        headers = _normalize_headers(options.headers)
        _set_header(headers, "Accept", options.accept)
        if not options.skip_content_type:
            _set_header(headers, "Content-Type", options.content_type)
        _set_header(headers, CLIENT_NAME_HEADER, self.config.client_name)
        return headers

    def _url(self, path: str, options: HttpOptions) -> str:
        return f"{self.config.url}{path}{generate_query_parameters(options.params)}"

    @staticmethod
    def _encode_body(method: str, body: Any, options: HttpOptions) -> Any:
        if method in BODYLESS_METHODS or body is None:
            return None
        if options.is_json_body:
            return json.dumps(body, default=_json_default)
        return body

    @staticmethod
    def _build_request(
        method: str,
        url: str,
        headers: Mapping[str, str],
        options: HttpOptions,
        cookies: httpx.Cookies,
        default_timeout: httpx.Timeout,
        *,
        content: Any = None,
        data: Mapping[str, Any] | None = None,
        files: Mapping[str, Any] | None = None,
    ) -> httpx.Request:
        timeout = httpx.Timeout(options.timeout) if options.timeout is not None else default_timeout
        request = httpx.Request(
            method,
            url,
            headers=headers,
            content=content,
            data=data,
            files=files,
            extensions={"timeout": timeout.as_dict()},
        )
        # Every request targets the configured origin, so same-origin and include both send cookies.
        if options.request_credentials is not RequestCredentials.OMIT:
            cookies.set_cookie_header(request)
        return request

    @staticmethod
    def _next_cookieless_hop(
        response: httpx.Response,
        history: list[httpx.Response],
        follow_redirects: bool,
        max_redirects: int,
    ) -> httpx.Request | None:
        next_request = response.next_request
        if next_request is None or not follow_redirects:
            response.history = list(history)
            return None
        history.append(response)
        if len(history) > max_redirects:
            raise httpx.TooManyRedirects("Exceeded maximum allowed redirects.", request=next_request)
        next_request.headers.pop("Cookie", None)
        return next_request

    @staticmethod
    def _raise_for_status(
        response: httpx.Response,
        method: str,
        path: str,
        url: str,
        headers: Mapping[str, str],
        body: Any,
        options: HttpOptions,
    ) -> None:
        if response.status_code < 400:
            return
        try:
            payload = json.loads(response.text)
        except ValueError:
            payload = None

        error_info = parse_error_info(payload)
        if error_info is not None:
            logger.debug("structured error %s from %s %s", error_info.code, method, path)
            raise FjellHttpError(
                error_info.message,
                error_info,
                response.status_code,
                RequestInfo(method=method, url=url, headers=dict(headers), body=body),
            )

        logger.debug("no structured error in %s response to %s %s", response.status_code, method, path)
        context = {"method": method, "path": path, "body": body, "options": options}
        raise legacy_error_for_status(response.status_code, response.reason_phrase, path, context)

    @staticmethod
    def _parse_response(response: httpx.Response, options: HttpOptions) -> Any:
        text = response.text
        if not options.is_json:
            logger.debug("response %s (text, %d chars)", response.status_code, len(text))
            return text
        try:
            payload = json.loads(text)
        except ValueError:
            logger.error("Error parsing JSON response (status %s): %r", response.status_code, text[:200])
            raise
        if isinstance(payload, Mapping) and payload.get("success") is True and "data" in payload:
            logger.debug("response %s (unwrapped)", response.status_code)
            return payload["data"]
        logger.debug("response %s (json)", response.status_code)
        return payload

    def _handle_response(
        self,
        response: httpx.Response,
        method: str,
        path: str,
        url: str,
        headers: Mapping[str, str],
        body: Any,
        options: HttpOptions,
    ) -> Any:
        self._raise_for_status(response, method, path, url, headers, body, options)
        return self._parse_response(response, options)

    def _require_uploader(self) -> Any:
        if self._upload_file is None:
            raise ValueError("upload_async needs an upload_file callable passed to the client")
        return self._upload_file


class HttpApi(_BaseHttpApi):
    """Synchronous client."""

    def __init__(
        self,
        config: ClientConfig,
        populate_auth_header: AuthHeaderPopulator | None = None,
        *,
        timeout: float = _BaseHttpApi.default_timeout,
        httpx_client: httpx.Client | None = None,
        upload_file: FileUploader | None = None,
    ) -> None:
        super().__init__(config)
        self._populate_auth_header = populate_auth_header or _no_auth
        self._upload_file = upload_file
        self._httpx = httpx_client or httpx.Client(timeout=timeout, follow_redirects=True)

    def __enter__(self) -> "HttpApi":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self._httpx.close()

    def http(
        self,
        method: str,
        path: str,
        body: Any = None,
        options: RequestOptions | HttpOptions | None = None,
    ) -> Any:
        """Send one request and return its parsed body.

        Raises ``FjellHttpError`` for structured error bodies and an
        ``ApiError`` subclass chosen by status code otherwise.
        """
        method = method.upper()
        path = self._path(path)
        request_options = self._resolve_options(options)
        headers = self._headers(request_options)
        self._populate(request_options.is_authenticated, headers)
        url = self._url(path, request_options)
        logger.debug("http request: %s %s %s", method, url, sanitize_headers(headers))

        request = self._build_request(
            method,
            url,
            headers,
            request_options,
            self._httpx.cookies,
            self._httpx.timeout,
            content=self._encode_body(method, body, request_options),
        )
        response = self._send(request, request_options)
        return self._handle_response(response, method, path, url, headers, body, request_options)

    def _send(self, request: httpx.Request, options: HttpOptions) -> httpx.Response:
        try:
            if options.request_credentials is RequestCredentials.OMIT:
                return self._send_without_cookies(request)
            return self._httpx.send(request)
        except httpx.TimeoutException as exc:
            raise HttpApiTimeoutError("Request timed out", timeout=options.timeout, cause=exc) from exc
        except httpx.NetworkError as exc:
            raise HttpApiNetworkError("Network error", cause=exc) from exc

    def _send_without_cookies(self, request: httpx.Request) -> httpx.Response:
        """Send ``request`` and follow its redirects without reading or writing the cookie jar."""
        jar = self._httpx.cookies.jar
        history: list[httpx.Response] = []
        while True:
            saved = list(jar)
            response = self._httpx.send(request, follow_redirects=False)
            _restore_cookies(jar, saved, response)
            next_request = self._next_cookieless_hop(
                response, history, self._httpx.follow_redirects, self._httpx.max_redirects
            )
            if next_request is None:
                return response
            response.close()
            request = next_request

    def _populate(self, is_authenticated: bool, headers: dict[str, str]) -> None:
        result = self._populate_auth_header(is_authenticated, headers)
        if inspect.isawaitable(result):
            if inspect.iscoroutine(result):
                result.close()
            raise TypeError("populate_auth_header returned an awaitable; use AsyncHttpApi for async populators")

    def get(self, path: str, options: RequestOptions | None = None) -> Any:
        return self.http("GET", path, None, self._verb_options(options))

    def post(self, path: str, body: Any = None, options: RequestOptions | None = None) -> Any:
        return self.http("POST", path, body, self._verb_options(options))

    def put(self, path: str, body: Any = None, options: RequestOptions | None = None) -> Any:
        return self.http("PUT", path, body, self._verb_options(options))

    def patch(self, path: str, body: Any = None, options: RequestOptions | None = None) -> Any:
        return self.http("PATCH", path, body, self._verb_options(options))

    def delete(self, path: str, body: Any = None, options: RequestOptions | None = None) -> Any:
        return self.http("DELETE", path, body, self._verb_options(options))

    def options(self, path: str, options: RequestOptions | None = None) -> Any:
        return self.http("OPTIONS", path, None, self._verb_options(options))

    def connect(self, path: str, options: RequestOptions | None = None) -> Any:
        return self.http("CONNECT", path, None, self._verb_options(options))

    def trace(self, path: str, options: RequestOptions | None = None) -> Any:
        return self.http("TRACE", path, None, self._verb_options(options))

    def post_file(
        self,
        path: str,
        file: FileContent,
        *,
        filename: str,
        body: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
        options: RequestOptions | None = None,
    ) -> Any:
        """Upload ``file`` as the ``file`` part of a multipart POST, with ``body`` as form fields."""
        path = self._path(path)
        request_options = self._file_options(options, headers)
        request_headers = self._headers(request_options)
        self._populate(request_options.is_authenticated, request_headers)
        url = self._url(path, request_options)
        logger.debug("http file upload: POST %s %s", url, filename)

        request = self._build_request(
            "POST",
            url,
            request_headers,
            request_options,
            self._httpx.cookies,
            self._httpx.timeout,
            data=_form_fields(body),
            files={"file": (filename, file)},
        )
        response = self._send(request, request_options)
        return self._handle_response(response, "POST", path, url, request_headers, body, request_options)

    def upload_async(
        self,
        path: str,
        uri: str,
        *,
        method: str = "POST",
        field_name: str = "file",
        headers: Mapping[str, str] | None = None,
        options: RequestOptions | None = None,
    ) -> Any:
        """Hand the file at ``uri`` to the injected uploader and parse what it reports.

        The uploader does the transfer itself; it receives the full URL with
        query string, the method, ``"multipart"``, the form field name and the
        populated headers, and returns an ``UploadResult``.
        """
        uploader = self._require_uploader()
        method = method.upper()
        path = self._path(path)
        request_options = self._file_options(options, headers)
        request_headers = self._headers(request_options)
        self._populate(request_options.is_authenticated, request_headers)
        url = self._url(path, request_options)
        logger.debug("http upload: %s %s %s", method, url, uri)

        try:
            result = uploader(url, uri, method, UPLOAD_TYPE, field_name, request_headers)
        except Exception:
            logger.error("Error executing upload %s %s", method, url, exc_info=True)
            raise
        if inspect.isawaitable(result):
            if inspect.iscoroutine(result):
                result.close()
            raise TypeError("upload_file returned an awaitable; use AsyncHttpApi for async uploaders")
        response = _upload_response(result, method, url)
        return self._handle_response(response, method, path, url, request_headers, uri, request_options)


class AsyncHttpApi(_BaseHttpApi):
    """Asynchronous client.

    The auth populator may be a coroutine function or a plain callable; its
    result is awaited when awaitable, always before the request is sent.
    """

    def __init__(
        self,
        config: ClientConfig,
        populate_auth_header: AsyncAuthHeaderPopulator | None = None,
        *,
        timeout: float = _BaseHttpApi.default_timeout,
        httpx_client: httpx.AsyncClient | None = None,
        upload_file: AsyncFileUploader | None = None,
    ) -> None:
        super().__init__(config)
        self._populate_auth_header = populate_auth_header or _no_auth
        self._upload_file = upload_file
        self._httpx = httpx_client or httpx.AsyncClient(timeout=timeout, follow_redirects=True)

    async def __aenter__(self) -> "AsyncHttpApi":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._httpx.aclose()

    async def _populate(self, is_authenticated: bool, headers: dict[str, str]) -> None:
        result = self._populate_auth_header(is_authenticated, headers)
        if inspect.isawaitable(result):
            await result

    async def http(
        self,
        method: str,
        path: str,
        body: Any = None,
        options: RequestOptions | HttpOptions | None = None,
    ) -> Any:
        method = method.upper()
        path = self._path(path)
        request_options = self._resolve_options(options)
        headers = self._headers(request_options)
        await self._populate(request_options.is_authenticated, headers)
        url = self._url(path, request_options)
        logger.debug("http request: %s %s %s", method, url, sanitize_headers(headers))

        request = self._build_request(
            method,
            url,
            headers,
            request_options,
            self._httpx.cookies,
            self._httpx.timeout,
            content=self._encode_body(method, body, request_options),
        )
        response = await self._send(request, request_options)
        return self._handle_response(response, method, path, url, headers, body, request_options)

    async def _send(self, request: httpx.Request, options: HttpOptions) -> httpx.Response:
        try:
            if options.request_credentials is RequestCredentials.OMIT:
                return await self._send_without_cookies(request)
            return await self._httpx.send(request)
        except httpx.TimeoutException as exc:
            raise HttpApiTimeoutError("Request timed out", timeout=options.timeout, cause=exc) from exc
        except httpx.NetworkError as exc:
            raise HttpApiNetworkError("Network error", cause=exc) from exc

    async def _send_without_cookies(self, request: httpx.Request) -> httpx.Response:
        jar = self._httpx.cookies.jar
        history: list[httpx.Response] = []
        while True:
            saved = list(jar)
            response = await self._httpx.send(request, follow_redirects=False)
            _restore_cookies(jar, saved, response)
            next_request = self._next_cookieless_hop(
                response, history, self._httpx.follow_redirects, self._httpx.max_redirects
            )
            if next_request is None:
                return response
            await response.aclose()
            request = next_request

    async def get(self, path: str, options: RequestOptions | None = None) -> Any:
        return await self.http("GET", path, None, self._verb_options(options))

    async def post(self, path: str, body: Any = None, options: RequestOptions | None = None) -> Any:
        return await self.http("POST", path, body, self._verb_options(options))

    async def put(self, path: str, body: Any = None, options: RequestOptions | None = None) -> Any:
        return await self.http("PUT", path, body, self._verb_options(options))

    async def patch(self, path: str, body: Any = None, options: RequestOptions | None = None) -> Any:
        return await self.http("PATCH", path, body, self._verb_options(options))

    async def delete(self, path: str, body: Any = None, options: RequestOptions | None = None) -> Any:
        return await self.http("DELETE", path, body, self._verb_options(options))

    async def options(self, path: str, options: RequestOptions | None = None) -> Any:
        return await self.http("OPTIONS", path, None, self._verb_options(options))

    async def connect(self, path: str, options: RequestOptions | None = None) -> Any:
        return await self.http("CONNECT", path, None, self._verb_options(options))

    async def trace(self, path: str, options: RequestOptions | None = None) -> Any:
        return await self.http("TRACE", path, None, self._verb_options(options))

    async def post_file(
        self,
        path: str,
        file: FileContent,
        *,
        filename: str,
        body: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
        options: RequestOptions | None = None,
    ) -> Any:
        path = self._path(path)
        request_options = self._file_options(options, headers)
        request_headers = self._headers(request_options)
        await self._populate(request_options.is_authenticated, request_headers)
        url = self._url(path, request_options)
        logger.debug("http file upload: POST %s %s", url, filename)

        request = self._build_request(
            "POST",
            url,
            request_headers,
            request_options,
            self._httpx.cookies,
            self._httpx.timeout,
            data=_form_fields(body),
            files={"file": (filename, file)},
        )
        response = await self._send(request, request_options)
        return self._handle_response(response, "POST", path, url, request_headers, body, request_options)

    async def upload_async(
        self,
        path: str,
        uri: str,
        *,
        method: str = "POST",
        field_name: str = "file",
        headers: Mapping[str, str] | None = None,
        options: RequestOptions | None = None,
    ) -> Any:
        uploader = self._require_uploader()
        method = method.upper()
        path = self._path(path)
        request_options = self._file_options(options, headers)
        request_headers = self._headers(request_options)
        await self._populate(request_options.is_authenticated, request_headers)
        url = self._url(path, request_options)
        logger.debug("http upload: %s %s %s", method, url, uri)

        try:
            result = uploader(url, uri, method, UPLOAD_TYPE, field_name, request_headers)
            if inspect.isawaitable(result):
                result = await result
        except Exception:
            logger.error("Error executing upload %s %s", method, url, exc_info=True)
            raise
        response = _upload_response(result, method, url)
        return self._handle_response(response, method, path, url, request_headers, uri, request_options)
