"""
Health check service for the location service.

This module provides the HealthCheckService class behind the /health,
/health/ready and /health/live endpoints. Readiness pings the location
store under a timeout and reports its response time.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Any

from errors.exceptions import StoreError
from lifecycle.manager import LifecycleManager
from store.base import LocationStore

logger = logging.getLogger(__name__)


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass
class DependencyHealth:
    """
    Health status of a single dependency.

    Attributes:
        name: The name of the dependency (e.g., "location_store")
        healthy: Whether the dependency is healthy and responding
        response_time_ms: The time taken to check the dependency in milliseconds
        error: Optional error message if the dependency check failed
    """
    name: str
    healthy: bool
    response_time_ms: float
    error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result = {
            "name": self.name,
            "healthy": self.healthy,
            "response_time_ms": round(self.response_time_ms, 2),
        }
        if self.error is not None:
            result["error"] = self.error
        return result


@dataclass
class HealthStatus:
    """
    Overall readiness of the service.

    Attributes:
        status: "healthy" or "unhealthy"
        timestamp: When the check was performed
        dependencies: Individual dependency results
    """
    status: str
    timestamp: str
    dependencies: list[DependencyHealth] = field(default_factory=list)

    @property
    def healthy(self) -> bool:
        return self.status == "healthy"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "status": self.status,
            "timestamp": self.timestamp,
            "dependencies": [dep.to_dict() for dep in self.dependencies],
        }


class HealthCheckService:
    """
    Service for checking the health of the location service.

    Attributes:
        store: The location store to probe
        lifecycle: Lifecycle manager providing state and uptime
        service_version: Version reported by the basic health check
        check_timeout: Timeout in seconds for the store probe (default: 5.0)
    """

    def __init__(
        self,
        store: LocationStore,
        lifecycle: LifecycleManager,
        service_version: str = "1.0.0",
        check_timeout: float = 5.0
    ):
        self.store = store
        self.lifecycle = lifecycle
        self.service_version = service_version
        self.check_timeout = check_timeout

    async def check_readiness(self) -> HealthStatus:
        """
        Check that the store is reachable and the service is accepting work.

        Returns:
            HealthStatus with the store probe result
        """
        dependencies = [await self._check_store()]
        healthy = self.lifecycle.is_ready and all(dep.healthy for dep in dependencies)

        return HealthStatus(
            status="healthy" if healthy else "unhealthy",
            timestamp=_utc_now_iso(),
            dependencies=dependencies,
        )

    async def check_liveness(self) -> dict[str, Any]:
        """
        Simple liveness check - process is running.

        Does not check external dependencies.
        """
        return {
            "status": "alive",
            "timestamp": _utc_now_iso(),
        }

    async def check_health(self) -> dict[str, Any]:
        """
        Basic health check - service is up and not draining.

        Returns:
            dict with status, uptime in seconds, timestamp and version
        """
        return {
            "status": "ok" if self.lifecycle.is_ready else self.lifecycle.state.value,
            "uptime": round(self.lifecycle.uptime_seconds(), 3),
            "timestamp": _utc_now_iso(),
            "version": self.service_version,
        }

    async def _check_store(self) -> DependencyHealth:
        """
        Ping the location store with a timeout.

        Returns:
            DependencyHealth: The health status of the store
        """
        start_time = time.perf_counter()

        try:
            await asyncio.wait_for(self.store.ping(), timeout=self.check_timeout)
            response_time_ms = (time.perf_counter() - start_time) * 1000
            return DependencyHealth(
                name="location_store",
                healthy=True,
                response_time_ms=response_time_ms,
            )
        except asyncio.TimeoutError:
            response_time_ms = (time.perf_counter() - start_time) * 1000
            error_msg = f"Location store health check timed out after {self.check_timeout} seconds"
            logger.warning(error_msg)
            return DependencyHealth(
                name="location_store",
                healthy=False,
                response_time_ms=response_time_ms,
                error=error_msg,
            )
        except StoreError as e:
            response_time_ms = (time.perf_counter() - start_time) * 1000
            logger.warning(
                "Location store health check failed",
                extra={"extra_data": {"store_error": e.message}}
            )
            return DependencyHealth(
                name="location_store",
                healthy=False,
                response_time_ms=response_time_ms,
                error=e.error_code.value,
            )
