"""
Client-safe rendering of failures.

Turns any exception (or arbitrary raised value) into a tool result that never
contains stack frames, credentials, connection strings, host:port pairs or
absolute filesystem paths. The redaction passes run in a fixed order: URIs
with credentials must be handled before URIs without them, and URIs before
bare paths.
"""

import re
from dataclasses import dataclass
from typing import Any, Dict, List, Pattern, Tuple

from .types import AppError

GENERIC_ERROR_MESSAGE = "An error occurred"
UNEXPECTED_ERROR_MESSAGE = "An unexpected error occurred"

URI_SCHEMES = ("redis", "rediss", "mongodb", "postgresql", "postgres", "falkordb")

_TRACEBACK_HEADER = "Traceback (most recent call last)"
_TRACE_FRAME_PREFIXES = ("at ", 'File "')
_CARET_LINE = re.compile(r"^\s*[~^]+\s*$")


def _compile_passes() -> List[Tuple[Pattern[str], str]]:
    passes: List[Tuple[Pattern[str], str]] = []

    for scheme in URI_SCHEMES:
        passes.append(
            (
                re.compile(rf"\b{scheme}://[^@\s]+@\S+", re.IGNORECASE),
                f"{scheme}://<credentials>@<host>",
            )
        )

    for scheme in URI_SCHEMES:
        passes.append(
            (
                re.compile(rf"\b{scheme}://(?![^@\s]+@)\S+", re.IGNORECASE),
                f"{scheme}://<host>",
            )
        )

    passes.extend(
        [
            (re.compile(r"(password)[=:]\s*\S+", re.IGNORECASE), r"\1=<redacted>"),
            (re.compile(r"(token)[=:]\s*\S+", re.IGNORECASE), r"\1=<redacted>"),
            (re.compile(r"(api[_-]?key)[=:]\s*\S+", re.IGNORECASE), r"\1=<redacted>"),
            (re.compile(r"\b\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3}:\d+\b"), "<host>:<port>"),
            (re.compile(r"\blocalhost:\d+\b"), "localhost:<port>"),
            (re.compile(r"(?<![\w:/])/[\w.\-]+(?:/[\w.\-]*)*"), "<path>"),
            (re.compile(r"\b[A-Za-z]:[\\/][\w.\-\\/]+"), "<path>"),
        ]
    )
    return passes


_REDACTION_PASSES = _compile_passes()


def _strip_trace_lines(message: str) -> str:
    kept = []
    in_traceback = False
    for line in message.split("\n"):
        stripped = line.strip()
        if stripped.startswith(_TRACEBACK_HEADER):
            in_traceback = True
            continue
        # a traceback block ends at its first unindented line
        if in_traceback and line[:1].isspace():
            continue
        in_traceback = False
        if stripped.startswith(_TRACE_FRAME_PREFIXES) or _CARET_LINE.match(line):
            continue
        kept.append(line)
    return "\n".join(kept).strip()


def sanitize_message(message: str) -> str:
    """
    Remove sensitive information from an error message.

    Args:
        message: Raw error message

    Returns:
        Redacted message, or a generic message if nothing is left
    """
    if not message:
        return GENERIC_ERROR_MESSAGE

    sanitized = _strip_trace_lines(message)
    for pattern, replacement in _REDACTION_PASSES:
        sanitized = pattern.sub(replacement, sanitized)

    sanitized = sanitized.strip()
    return sanitized or GENERIC_ERROR_MESSAGE


@dataclass(frozen=True)
class SafeErrorResult:
    """Tool result returned to an MCP client on failure."""

    text: str
    is_error: bool = True

    def to_dict(self) -> Dict[str, Any]:
        """Convert to MCP tool result format."""
        return {
            "content": [{"type": "text", "text": self.text}],
            "isError": self.is_error,
        }


def safe_message(error: Any) -> str:
    """Get the client-visible message for an error value."""
    if isinstance(error, AppError):
        return error.message or GENERIC_ERROR_MESSAGE
    if isinstance(error, BaseException):
        return sanitize_message(str(error))
    return UNEXPECTED_ERROR_MESSAGE


def to_safe_result(error: Any) -> SafeErrorResult:
    """
    Convert any failure value into a sanitized tool result.

    Recognized application errors keep their own message, other exceptions
    are redacted, and anything that is not an exception at all becomes a
    generic message.
    """
    return SafeErrorResult(text=f"Error: {safe_message(error)}")
