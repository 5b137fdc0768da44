"""Typed models for structured error payloads returned by Fjell servers."""

from __future__ import annotations

from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field, StrictStr, ValidationError, field_validator
from pydantic.alias_generators import to_camel


class FjellModel(BaseModel):
    model_config = ConfigDict(extra="allow", alias_generator=to_camel, populate_by_name=True)


class LenientModel(FjellModel):
    """Model whose fields fall back to ``None`` instead of failing validation."""

    @field_validator("*", mode="wrap")
    @classmethod
    def _drop_invalid(cls, value: Any, handler: Any) -> Any:
        try:
            return handler(value)
        except ValidationError:
            return None


class ErrorOperation(LenientModel):
    type: str | None = None
    name: str | None = None
    params: dict[str, Any] | None = Field(default_factory=dict)


class ParentLocation(LenientModel):
    id: str | int
    type: str


class AffectedItem(LenientModel):
    id: str | int
    type: str
    display_name: str | None = None


class ErrorContext(LenientModel):
    item_type: str | None = None
    key: dict[str, Any] | None = None
    affected_items: list[AffectedItem] | None = None
    parent_location: ParentLocation | None = None
    required_permission: str | None = None
    available_permissions: list[str] | None = None


class ErrorDetails(LenientModel):
    valid_options: list[str] | None = None
    suggested_action: str | None = None
    retryable: bool | None = None
    conflicting_value: Any = None
    expected_value: Any = None


class ErrorTechnical(LenientModel):
    timestamp: str | None = None
    request_id: str | None = None
    stack_trace: str | None = None
    cause: Any = None


class ErrorInfo(FjellModel):
    """A structured error.

    Only ``code``, ``message``, ``operation`` and ``context`` decide whether a
    body is structured. Anything below them that does not fit its type is
    dropped to ``None``.
    """

    code: StrictStr
    message: StrictStr
    operation: ErrorOperation
    context: ErrorContext
    details: ErrorDetails | None = None
    technical: ErrorTechnical | None = None

    @field_validator("operation", "context", mode="before")
    @classmethod
    def _require_object(cls, value: Any) -> Any:
        if not isinstance(value, (Mapping, BaseModel)):
            raise ValueError("must be an object")
        return value

    @field_validator("details", "technical", mode="wrap")
    @classmethod
    def _drop_invalid(cls, value: Any, handler: Any) -> Any:
        try:
            return handler(value)
        except ValidationError:
            return None


def parse_error_info(payload: Any) -> ErrorInfo | None:
    """Decode a failed-response body into an ErrorInfo, or return None.

    Accepts the wrapped ``{"success": false, "error": {...}}`` form and the
    bare ErrorInfo form. A body that matches neither is not structured.
    """
    if not isinstance(payload, Mapping):
        return None
    candidates = []
    if payload.get("success") is False and "error" in payload:
        candidates.append(payload["error"])
    candidates.append(payload)
    for candidate in candidates:
        try:
            return ErrorInfo.model_validate(candidate)
        except ValidationError:
            continue
    return None
