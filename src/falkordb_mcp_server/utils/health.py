"""
Health monitoring for FalkorDB MCP Server.

Aggregates per-backend checks into one status. Reports are served on an
unauthenticated route, so they carry status strings and latency only,
never error text.
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional

import structlog

logger = structlog.get_logger(__name__)

HEALTHY = "healthy"
DEGRADED = "degraded"
UNHEALTHY = "unhealthy"


@dataclass
class HealthCheckResult:
    """Result of a health check."""

    name: str
    status: str
    latency_ms: Optional[float] = None
    duration_ms: float = 0.0

    @property
    def is_healthy(self) -> bool:
        return self.status == HEALTHY

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"name": self.name, "status": self.status}
        if self.latency_ms is not None:
            data["latency_ms"] = round(self.latency_ms, 2)
        return data


@dataclass
class HealthStatus:
    """Overall health status aggregation."""

    status: str
    checks: List[HealthCheckResult]
    timestamp: float = field(default_factory=time.time)

    @property
    def is_healthy(self) -> bool:
        return self.status == HEALTHY

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary format."""
        return {
            "status": self.status,
            "timestamp": self.timestamp,
            "checks": [check.to_dict() for check in self.checks],
        }


HealthCheck = Callable[[], Awaitable[HealthCheckResult]]


class HealthChecker:
    """
    Runs registered checks concurrently, each under its own timeout.

    A failing critical check makes the whole status unhealthy; a failing
    non-critical one only degrades it.
    """

    def __init__(self):
        self._checks: Dict[str, HealthCheck] = {}
        self._check_configs: Dict[str, Dict[str, Any]] = {}

    def register_check(
        self,
        name: str,
        check_func: HealthCheck,
        timeout_seconds: float = 5.0,
        critical: bool = True,
    ) -> None:
        """
        Register a health check function.

        Args:
            name: Unique name for the health check
            check_func: Async function that returns HealthCheckResult
            timeout_seconds: Timeout for the check
            critical: Whether this check affects overall health
        """
        self._checks[name] = check_func
        self._check_configs[name] = {
            "timeout_seconds": timeout_seconds,
            "critical": critical,
        }
        logger.debug("Registered health check", name=name, critical=critical)

    def get_registered_checks(self) -> List[str]:
        """Get list of registered health check names."""
        return list(self._checks)

    async def run_check(self, name: str) -> HealthCheckResult:
        """Run one check; a timeout or exception counts as unhealthy."""
        check_func = self._checks.get(name)
        if check_func is None:
            return HealthCheckResult(name=name, status=UNHEALTHY)

        timeout = self._check_configs[name]["timeout_seconds"]
        start = time.perf_counter()
        try:
            result = await asyncio.wait_for(check_func(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("Health check timed out", name=name, timeout=timeout)
            result = HealthCheckResult(name=name, status=UNHEALTHY)
        except Exception as e:
            logger.error("Health check failed", name=name, error=str(e))
            result = HealthCheckResult(name=name, status=UNHEALTHY)

        result.duration_ms = (time.perf_counter() - start) * 1000
        return result

    async def run_all_checks(self) -> HealthStatus:
        """Run all registered health checks."""
        results = list(await asyncio.gather(*(self.run_check(name) for name in self._checks)))
        status = self._determine_overall_status(results)

        logger.debug(
            "Health checks completed",
            overall_status=status,
            total_checks=len(results),
        )
        return HealthStatus(status=status, checks=results)

    def _determine_overall_status(self, results: List[HealthCheckResult]) -> str:
        failed = [result for result in results if not result.is_healthy]
        if any(self._check_configs.get(r.name, {}).get("critical", True) for r in failed):
            return UNHEALTHY
        if failed:
            return DEGRADED
        return HEALTHY


def create_backend_health_check(name: str, client: Any) -> HealthCheck:
    """
    Wrap a backend adapter's ``health_check()`` as a registered check.

    Args:
        name: Check name
        client: Adapter returning ``{"connected": bool, "latency_ms": float}``
    """

    async def backend_health() -> HealthCheckResult:
        report = await client.health_check()
        return HealthCheckResult(
            name=name,
            status=HEALTHY if report.get("connected") else UNHEALTHY,
            latency_ms=report.get("latency_ms"),
        )

    return backend_health
