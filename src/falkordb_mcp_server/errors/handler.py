"""
Centralized handling of unexpected failures.

Decides whether a failure is operational (safe to keep serving) or a
programmer error (state may be corrupted, shut down), and wires that
decision into the process: uncaught exceptions and unhandled task failures
on the event loop both end up in ``ErrorHandler.handle_error``.
"""

import asyncio
import sys
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

import structlog

from .types import AppError, classify

logger = structlog.get_logger(__name__)


class ErrorHandler:
    """
    Logs failures and decides whether the process may continue.

    Args:
        on_fatal: Called with the error when an untrusted failure is seen;
            the owner is expected to shut down gracefully and exit non-zero
    """

    def __init__(self, on_fatal: Optional[Callable[[BaseException], None]] = None):
        self._on_fatal = on_fatal

    def is_trusted_error(self, error: BaseException) -> bool:
        """Only recognized operational application errors are trusted."""
        return isinstance(error, AppError) and error.operational

    def handle_error(self, error: BaseException) -> bool:
        """
        Log an error and decide if it is operational.

        Returns:
            True if the error is trusted and the process may continue
        """
        logger.error(
            "Unhandled error occurred",
            error=str(error),
            error_type=type(error).__name__,
            error_kind=classify(error).value,
            timestamp=datetime.now(timezone.utc).isoformat(),
            exc_info=error,
        )

        if self.is_trusted_error(error):
            logger.info(
                "Operational error handled gracefully",
                error_name=type(error).__name__,
                error_message=str(error),
            )
            return True

        logger.critical(
            "Programmer error detected - may require process restart",
            error_type=type(error).__name__,
            recommendation="Review code for bugs",
        )
        return False

    def handle_process_error(self, error: BaseException) -> None:
        """Handle an error that escaped to the process level."""
        if not self.handle_error(error) and self._on_fatal is not None:
            self._on_fatal(error)

    def install(self, loop: asyncio.AbstractEventLoop) -> None:
        """Route loop-level and interpreter-level uncaught errors here."""
        loop.set_exception_handler(self._loop_exception_handler)

        previous_hook = sys.excepthook

        def excepthook(exc_type, exc_value, exc_tb):
            if issubclass(exc_type, KeyboardInterrupt):
                previous_hook(exc_type, exc_value, exc_tb)
                return
            self.handle_process_error(exc_value)

        sys.excepthook = excepthook

    def _loop_exception_handler(
        self, loop: asyncio.AbstractEventLoop, context: Dict[str, Any]
    ) -> None:
        error = context.get("exception")
        if error is None:
            logger.error("Event loop error", message=context.get("message"))
            return
        self.handle_process_error(error)
