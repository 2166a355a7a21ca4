"""
In-memory location store for development and tests.

Samples live in a dictionary keyed by ``(device_id, timestamp)``. Expiry is
passive: a sample whose ``expires_at`` has elapsed on the injected clock is
invisible to every read, mirroring store-driven TTL deletion.
"""

import logging
from typing import Optional

from locations.clock import Clock, current_time_millis
from locations.models import LocationSample
from store.base import LocationStore

logger = logging.getLogger(__name__)


class InMemoryLocationStore(LocationStore):
    """
    Dictionary-backed LocationStore.

    Reads and writes never suspend, so no locking is needed between
    concurrent requests on the event loop.

    Args:
        clock: Returns the current time in milliseconds since epoch.
    """

    def __init__(self, clock: Clock = current_time_millis):
        self._clock = clock
        self._samples: dict[tuple[str, int], LocationSample] = {}
        self.closed = False

    def _is_live(self, sample: LocationSample) -> bool:
        return sample.expires_at * 1000 > self._clock()

    def _live_samples(self) -> list[LocationSample]:
        return [s for s in self._samples.values() if self._is_live(s)]

    async def put(self, sample: LocationSample) -> None:
        self._samples[sample.key] = sample

    async def query_by_device(
        self,
        device_id: str,
        lower: Optional[int] = None,
        upper: Optional[int] = None,
        limit: int = 100,
        descending: bool = True,
    ) -> list[LocationSample]:
        matches = [
            s for s in self._live_samples()
            if s.device_id == device_id
            and (lower is None or s.timestamp >= lower)
            and (upper is None or s.timestamp <= upper)
        ]
        matches.sort(key=lambda s: s.timestamp, reverse=descending)
        return matches[:limit]

    async def scan_filtered(self, lower: int) -> list[LocationSample]:
        return [s for s in self._live_samples() if s.timestamp >= lower]

    async def count_filtered(self, lower: int) -> int:
        return sum(1 for s in self._live_samples() if s.timestamp >= lower)

    async def ping(self) -> None:
        logger.debug("In-memory store ping", extra={"extra_data": {"samples": len(self._samples)}})

    async def close(self) -> None:
        self.closed = True

    def __len__(self) -> int:
        return len(self._live_samples())
