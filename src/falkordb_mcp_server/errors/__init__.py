"""Error taxonomy, sanitization and process-level handling."""

from .handler import ErrorHandler
from .sanitizer import SafeErrorResult, sanitize_message, to_safe_result
from .types import (
    AppError,
    BackendConnectionError,
    ErrorKind,
    InputValidationError,
    OperationError,
    classify,
    is_connection_error,
)

__all__ = [
    "AppError",
    "BackendConnectionError",
    "ErrorHandler",
    "ErrorKind",
    "InputValidationError",
    "OperationError",
    "SafeErrorResult",
    "classify",
    "is_connection_error",
    "sanitize_message",
    "to_safe_result",
]
