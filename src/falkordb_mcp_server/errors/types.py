"""
Error taxonomy for the FalkorDB MCP gateway.

Every failure the gateway knows how to handle is one of a closed set of
kinds. Each ``AppError`` carries a message that is safe to show to an MCP
client; components raising them must never embed credentials or topology.
"""

import asyncio
from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    """Closed set of error kinds."""

    CONNECTION = "connection"
    VALIDATION = "validation"
    OPERATION = "operation"
    UNKNOWN = "unknown"


class AppError(Exception):
    """Base exception for recognized application errors."""

    kind: ErrorKind = ErrorKind.UNKNOWN

    def __init__(
        self,
        message: str,
        kind: Optional[ErrorKind] = None,
        operational: bool = True,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        if kind is not None:
            self.kind = kind
        self.operational = operational
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a loggable dictionary."""
        return {
            "kind": self.kind.value,
            "message": self.message,
            "operational": self.operational,
            "details": self.details,
        }


class BackendConnectionError(AppError):
    """Backend unreachable, ping failure, timeout or lost connection."""

    kind = ErrorKind.CONNECTION


class InputValidationError(AppError):
    """Missing or empty required input."""

    kind = ErrorKind.VALIDATION


class OperationError(AppError):
    """The backend rejected a well-formed request."""

    kind = ErrorKind.OPERATION


_CONNECTION_MARKERS = (
    "connection",
    "timeout",
    "timed out",
    "network",
    "econnrefused",
    "enotfound",
    "closed",
)


def is_connection_error(error: BaseException) -> bool:
    """Check whether an exception indicates a broken backend link."""
    if isinstance(error, BackendConnectionError):
        return True
    if isinstance(error, AppError):
        return False
    if isinstance(error, (ConnectionError, asyncio.TimeoutError, TimeoutError)):
        return True
    message = str(error).lower()
    return any(marker in message for marker in _CONNECTION_MARKERS)


def classify(error: BaseException) -> ErrorKind:
    """Map any exception to an error kind."""
    if isinstance(error, AppError):
        return error.kind
    if is_connection_error(error):
        return ErrorKind.CONNECTION
    return ErrorKind.UNKNOWN
