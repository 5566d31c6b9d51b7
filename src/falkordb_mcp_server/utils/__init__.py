"""Utility modules."""

from .health import HealthChecker, HealthCheckResult, HealthStatus
from .logging import ClientLogForwarder, get_logger, setup_logging

__all__ = [
    "setup_logging",
    "get_logger",
    "ClientLogForwarder",
    "HealthChecker",
    "HealthStatus",
    "HealthCheckResult",
]
