"""Thin HTTP client with structured error translation for Fjell-style APIs."""

from .client import AsyncHttpApi, HttpApi, UploadResult
from .config import ClientConfig
from .exceptions import (
    ApiError,
    BadRequestError,
    ClientError,
    ConflictError,
    ErrorKind,
    FjellHttpError,
    ForbiddenError,
    GoneError,
    HttpApiError,
    HttpApiNetworkError,
    HttpApiTimeoutError,
    InternalServerError,
    MethodNotAllowedError,
    NotFoundError,
    NotImplementedServerError,
    RequestInfo,
    RequestTimeoutError,
    ServerError,
    ServiceUnavailableError,
    TooManyRequestsError,
    UnauthorizedError,
    extract_error_info,
)
from .models import ErrorInfo, parse_error_info
from .query import UNSET, generate_query_parameters
from .request_options import HttpOptions, RequestCredentials, RequestOptions

__all__ = [
    "UNSET",
    "ApiError",
    "AsyncHttpApi",
    "BadRequestError",
    "ClientConfig",
    "ClientError",
    "ConflictError",
    "ErrorInfo",
    "ErrorKind",
    "FjellHttpError",
    "ForbiddenError",
    "GoneError",
    "HttpApi",
    "HttpApiError",
    "HttpApiNetworkError",
    "HttpApiTimeoutError",
    "HttpOptions",
    "InternalServerError",
    "MethodNotAllowedError",
    "NotFoundError",
    "NotImplementedServerError",
    "RequestCredentials",
    "RequestInfo",
    "RequestOptions",
    "RequestTimeoutError",
    "ServerError",
    "ServiceUnavailableError",
    "TooManyRequestsError",
    "UnauthorizedError",
    "UploadResult",
    "extract_error_info",
    "generate_query_parameters",
    "parse_error_info",
]
