"""Errors raised by the HTTP API clients."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping

from .models import ErrorInfo
from .security import sanitize_headers


class ErrorKind(str, Enum):
    """Tag carried by every error so callers can branch without isinstance chains."""

    APPLICATION = "application"
    BAD_REQUEST = "bad_request"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    METHOD_NOT_ALLOWED = "method_not_allowed"
    REQUEST_TIMEOUT = "request_timeout"
    CONFLICT = "conflict"
    GONE = "gone"
    TOO_MANY_REQUESTS = "too_many_requests"
    CLIENT_ERROR = "client_error"
    INTERNAL_SERVER_ERROR = "internal_server_error"
    NOT_IMPLEMENTED = "not_implemented"
    SERVICE_UNAVAILABLE = "service_unavailable"
    SERVER_ERROR = "server_error"
    NETWORK = "network"
    TIMEOUT = "timeout"


class HttpApiError(Exception):
    """Base exception for all HTTP API client failures."""

    kind: ErrorKind

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        error_code: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.error_code = error_code
        self.cause = cause

    @property
    def message(self) -> str:
        return str(self.args[0])

    def __str__(self) -> str:
        if self.status_code is None:
            return self.message
        parts = [f"{self.status_code}"]
        if self.error_code:
            parts.append(self.error_code)
        return " ".join(parts) + f": {self.message}"


@dataclass(frozen=True)
class RequestInfo:
    method: str
    url: str
    headers: Mapping[str, str] = field(default_factory=dict)
    body: Any = None


class FjellHttpError(HttpApiError):
    """Structured application error decoded from a failed response body."""

    kind = ErrorKind.APPLICATION

    def __init__(
        self,
        message: str,
        error_info: ErrorInfo,
        status_code: int,
        request_info: RequestInfo | None = None,
    ) -> None:
        super().__init__(message, status_code=status_code, error_code=error_info.code)
        self.error_info = error_info
        self.request_info = request_info

    @property
    def code(self) -> str:
        return self.error_info.code

    @property
    def retryable(self) -> bool:
        details = self.error_info.details
        if details is None or details.retryable is None:
            return False
        return details.retryable

    @property
    def user_message(self) -> str:
        """Message enriched with location, suggested action and valid options."""
        message = self.error_info.message
        location = self.error_info.context.parent_location
        if location is not None:
            message += f" (in {location.type} #{location.id})"
        details = self.error_info.details
        if details is not None:
            if details.suggested_action:
                message += f"\n{details.suggested_action}"
            if details.valid_options:
                message += f"\nValid options: {', '.join(details.valid_options)}"
        return message

    def to_dict(self) -> dict[str, Any]:
        request_info = None
        if self.request_info is not None:
            request_info = {
                "method": self.request_info.method,
                "url": self.request_info.url,
                "headers": sanitize_headers(self.request_info.headers),
                "body": self.request_info.body,
            }
        return {
            "name": type(self).__name__,
            "message": self.message,
            "error_info": self.error_info.model_dump(by_alias=True, exclude_none=True),
            "status_code": self.status_code,
            "request_info": request_info,
        }


class ApiError(HttpApiError):
    """Error derived from the HTTP status alone."""

    append_path = False

    def __init__(
        self,
        message: str,
        path: str,
        status_code: int,
        context: Mapping[str, Any] | None = None,
    ) -> None:
        super().__init__(message, status_code=status_code)
        self.path = path
        self.context = dict(context) if context is not None else {}

    @classmethod
    def for_status(
        cls,
        reason: str,
        path: str,
        status_code: int,
        context: Mapping[str, Any] | None = None,
    ) -> ApiError:
        message = f"{reason} {path}" if cls.append_path else reason
        return cls(message, path, status_code, context)


class ClientError(ApiError):
    kind = ErrorKind.CLIENT_ERROR


class BadRequestError(ClientError):
    kind = ErrorKind.BAD_REQUEST
    append_path = True


class UnauthorizedError(ClientError):
    kind = ErrorKind.UNAUTHORIZED
    append_path = True


class ForbiddenError(ClientError):
    kind = ErrorKind.FORBIDDEN
    append_path = True


class NotFoundError(ClientError):
    kind = ErrorKind.NOT_FOUND
    append_path = True


class MethodNotAllowedError(ClientError):
    kind = ErrorKind.METHOD_NOT_ALLOWED
    append_path = True


class RequestTimeoutError(ClientError):
    kind = ErrorKind.REQUEST_TIMEOUT
    append_path = True


class ConflictError(ClientError):
    kind = ErrorKind.CONFLICT
    append_path = True


class GoneError(ClientError):
    kind = ErrorKind.GONE
    append_path = True


class TooManyRequestsError(ClientError):
    kind = ErrorKind.TOO_MANY_REQUESTS
    append_path = True


class ServerError(ApiError):
    kind = ErrorKind.SERVER_ERROR


class InternalServerError(ServerError):
    kind = ErrorKind.INTERNAL_SERVER_ERROR


class NotImplementedServerError(ServerError):
    kind = ErrorKind.NOT_IMPLEMENTED


class ServiceUnavailableError(ServerError):
    kind = ErrorKind.SERVICE_UNAVAILABLE


LEGACY_ERRORS: Mapping[int, type[ApiError]] = {
    400: BadRequestError,
    401: UnauthorizedError,
    403: ForbiddenError,
    404: NotFoundError,
    405: MethodNotAllowedError,
    408: RequestTimeoutError,
    409: ConflictError,
    410: GoneError,
    429: TooManyRequestsError,
    500: InternalServerError,
    501: NotImplementedServerError,
    503: ServiceUnavailableError,
}


def legacy_error_for_status(
    status_code: int,
    reason: str,
    path: str,
    context: Mapping[str, Any] | None = None,
) -> ApiError:
    """Map an error status to its legacy error, falling back to the generic 4xx/5xx kinds."""
    error_cls = LEGACY_ERRORS.get(status_code)
    if error_cls is None:
        error_cls = ServerError if status_code >= 500 else ClientError
    return error_cls.for_status(reason, path, status_code, context)


class HttpApiNetworkError(HttpApiError):
    """Raised for transport-level failures like DNS and TCP errors."""

    kind = ErrorKind.NETWORK


class HttpApiTimeoutError(HttpApiError):
    """Raised when a request exceeds its timeout."""

    kind = ErrorKind.TIMEOUT

    def __init__(self, message: str, *, timeout: float | None = None, cause: Exception | None = None) -> None:
        super().__init__(message, cause=cause)
        self.timeout = timeout


def extract_error_info(error: Any) -> ErrorInfo | None:
    """Return the structured ErrorInfo attached to ``error``, if any."""
    if isinstance(error, FjellHttpError):
        return error.error_info
    info = getattr(error, "error_info", None)
    if isinstance(info, ErrorInfo):
        return info
    return None
