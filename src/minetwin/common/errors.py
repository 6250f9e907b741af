"""Domain errors, error codes and the error payload helper."""

from __future__ import annotations

from typing import Any


class ErrorCode:
    ENTITY_NOT_FOUND = "ENTITY_NOT_FOUND"
    PROPERTY_NOT_FOUND = "PROPERTY_NOT_FOUND"
    PROPERTY_NOT_EDITABLE = "PROPERTY_NOT_EDITABLE"
    INVALID_VALUE = "INVALID_VALUE"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    PARSE_ERROR = "PARSE_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class DomainError(Exception):
    """
    Recoverable grounding or validation failure.

    Always caused by the request, never by a fault in the engine. Carries a
    stable code and a message that is shown to the caller verbatim.
    """

    def __init__(
        self,
        message: str,
        code: str = ErrorCode.VALIDATION_ERROR,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return error_body(self.code, self.message, self.details)


class EntityNotFoundError(DomainError):
    def __init__(self, reference: str, message: str | None = None):
        super().__init__(
            message or f"Entity '{reference}' not found",
            ErrorCode.ENTITY_NOT_FOUND,
            {"reference": reference},
        )
        self.reference = reference


class PropertyNotFoundError(DomainError):
    def __init__(
        self,
        prop: str,
        entity_id: str,
        suggestions: list[str] | None = None,
        message: str | None = None,
    ):
        self.property = prop
        self.entity_id = entity_id
        self.suggestions = list(suggestions or [])
        if message is None:
            message = f"Property '{prop}' not found on entity '{entity_id}'"
            if self.suggestions:
                message = f"{message}. Did you mean: {', '.join(self.suggestions)}"
        details: dict[str, Any] = {"property": prop, "entity_id": entity_id}
        if self.suggestions:
            details["suggestions"] = self.suggestions
        super().__init__(message, ErrorCode.PROPERTY_NOT_FOUND, details)


class PropertyNotEditableError(DomainError):
    def __init__(self, prop: str, message: str | None = None):
        super().__init__(
            message or f"Property '{prop}' is not editable",
            ErrorCode.PROPERTY_NOT_EDITABLE,
            {"property": prop},
        )
        self.property = prop


class InvalidValueError(DomainError):
    def __init__(self, prop: str, value: Any, reason: str):
        super().__init__(
            f"Invalid value '{value}' for property '{prop}': {reason}",
            ErrorCode.INVALID_VALUE,
            {"property": prop, "reason": reason},
        )
        self.property = prop
        self.value = value
        self.reason = reason


class ValidationError(DomainError):
    def __init__(self, message: str):
        super().__init__(message, ErrorCode.VALIDATION_ERROR)


class IntentParseError(Exception):
    """The intent parser could not turn text into a structured intent."""

    code = ErrorCode.PARSE_ERROR

    def __init__(self, message: str, text: str | None = None):
        super().__init__(message)
        self.message = message
        self.text = text


class ExecutorNotFoundError(RuntimeError):
    """No registered executor handles a generic intent (configuration fault)."""

    code = ErrorCode.INTERNAL_ERROR


def error_body(
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """JSON error envelope shown to callers: ``{"error": {"code", "message", "details"?}}``."""
    payload: dict[str, Any] = {
        "error": {
            "code": code,
            "message": message,
        }
    }
    if details:
        payload["error"]["details"] = details
    return payload
