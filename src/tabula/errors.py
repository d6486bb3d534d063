"""Error handling types (Result + Error) shared by the rename pipeline and config loader."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Generic, TypeVar

T = TypeVar("T")


class ErrorType(Enum):
    # Rename request rejections
    MISSING_PAYLOAD = "missing_payload"
    MALFORMED_REQUEST = "malformed_request"
    INVALID_IDENTIFIER = "invalid_identifier"
    UNKNOWN_ITEM = "unknown_item"
    TEMPLATE_ERROR = "template_error"
    NO_STABLE_IDENTITY = "no_stable_identity"
    # Configuration loading
    FILE_NOT_FOUND = "file_not_found"
    PARSE_ERROR = "parse_error"


class TemplateError(ValueError):
    """Raised when a label template cannot be parsed or rendered."""


@dataclass
class Error:
    error_type: ErrorType
    message: str
    context: dict = field(default_factory=dict)
    original_exception: Exception = None


@dataclass
class Result(Generic[T]):
    success: bool
    value: T = None
    error: Error = None

    @staticmethod
    def ok(value: T) -> "Result[T]":
        return Result(success=True, value=value)

    @staticmethod
    def err(error: Error) -> "Result[T]":
        return Result(success=False, error=error)

    def is_ok(self) -> bool:
        return self.success

    def is_err(self) -> bool:
        return not self.success
