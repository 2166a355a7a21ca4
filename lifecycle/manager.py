"""
Service lifecycle: startup probe, in-flight tracking and draining.

States move strictly forward:

    STARTING -> READY -> DRAINING -> STOPPED

Startup pings the location store once and fails hard if it is not
reachable; there is no retry loop. Shutdown stops admitting requests,
waits for in-flight ones to finish (bounded by a drain timeout) and then
closes the store.
"""

import asyncio
import logging
import time
from enum import Enum
from typing import Optional

from errors.exceptions import StoreError
from store.base import LocationStore

logger = logging.getLogger(__name__)


class LifecycleState(str, Enum):
    STARTING = "starting"
    READY = "ready"
    DRAINING = "draining"
    STOPPED = "stopped"


class StartupError(Exception):
    """Raised when the service cannot reach a usable store at boot."""

    def __init__(self, message: str, cause: Optional[Exception] = None):
        super().__init__(message)
        self.cause = cause


class LifecycleManager:
    """
    Owns the service state and the count of in-flight requests.

    The counter is only touched from the event loop thread between awaits,
    so it needs no lock.

    Args:
        store: The location store probed at startup and closed at shutdown
        drain_timeout_seconds: Upper bound on waiting for in-flight requests
    """

    def __init__(self, store: LocationStore, drain_timeout_seconds: float = 30.0):
        self.store = store
        self.drain_timeout_seconds = drain_timeout_seconds
        self.state = LifecycleState.STARTING
        self.in_flight = 0
        self._idle = asyncio.Event()
        self._idle.set()
        self._started_at = time.monotonic()

    @property
    def is_ready(self) -> bool:
        return self.state == LifecycleState.READY

    def uptime_seconds(self) -> float:
        return time.monotonic() - self._started_at

    async def startup(self) -> None:
        """
        Probe the store and move to READY.

        Raises:
            StartupError: If the store ping fails
        """
        logger.info("Starting location service; probing store")
        try:
            await self.store.ping()
        except StoreError as e:
            logger.critical(
                "Location store is not reachable at startup",
                extra={"extra_data": {
                    "error_code": e.error_code.value,
                    "store_error": e.message,
                }}
            )
            raise StartupError(f"Location store is not reachable: {e.message}", cause=e) from e

        self.state = LifecycleState.READY
        logger.info("Location service ready")

    def request_started(self) -> bool:
        """
        Admit a request unless the service is draining or stopped.

        Returns:
            True if the request was admitted and must later be released
            with ``request_finished``
        """
        if self.state in (LifecycleState.DRAINING, LifecycleState.STOPPED):
            return False
        self.in_flight += 1
        self._idle.clear()
        return True

    def request_finished(self) -> None:
        self.in_flight = max(0, self.in_flight - 1)
        if self.in_flight == 0:
            self._idle.set()

    async def shutdown(self) -> None:
        """
        Drain in-flight requests, close the store and move to STOPPED.

        Calling this twice is harmless.
        """
        if self.state == LifecycleState.STOPPED:
            return

        self.state = LifecycleState.DRAINING
        logger.info(
            "Draining in-flight requests",
            extra={"extra_data": {"in_flight": self.in_flight}}
        )

        try:
            await asyncio.wait_for(self._idle.wait(), timeout=self.drain_timeout_seconds)
        except asyncio.TimeoutError:
            logger.warning(
                "Drain timeout exceeded; closing with requests still in flight",
                extra={"extra_data": {
                    "in_flight": self.in_flight,
                    "drain_timeout_seconds": self.drain_timeout_seconds,
                }}
            )

        await self.store.close()
        self.state = LifecycleState.STOPPED
        logger.info("Location service stopped")
