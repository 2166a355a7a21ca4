"""
Location store abstraction.

This module defines the interface the location repository uses to persist
and read samples. Implementations wrap one backing store (Elasticsearch in
production, an in-process dictionary in development and tests) and are
constructed once per application, then shared by all in-flight requests.

Every failure of the backing store surfaces as ``errors.StoreError``; no
implementation retries internally.
"""

from abc import ABC, abstractmethod
from typing import Optional

from locations.models import LocationSample


class LocationStore(ABC):
    """
    Abstract base class for location store implementations.

    Samples are keyed by ``(device_id, timestamp)``. Within a device the
    store orders samples by timestamp; across devices there is no order.

    All methods are async to support non-blocking I/O operations with
    external storage systems.
    """

    @abstractmethod
    async def put(self, sample: LocationSample) -> None:
        """
        Insert or overwrite a sample.

        A second put with the same ``(device_id, timestamp)`` replaces the
        first one; the write is visible to subsequent reads.

        Raises:
            StoreError: If the backing store fails or times out.
        """
        pass

    @abstractmethod
    async def query_by_device(
        self,
        device_id: str,
        lower: Optional[int] = None,
        upper: Optional[int] = None,
        limit: int = 100,
        descending: bool = True,
    ) -> list[LocationSample]:
        """
        Range query over one device's samples.

        Args:
            device_id: Device whose samples are read.
            lower: Inclusive lower timestamp bound, unbounded if None.
            upper: Inclusive upper timestamp bound, unbounded if None.
            limit: Maximum number of samples returned.
            descending: Newest first when True.

        Returns:
            At most ``limit`` samples ordered by timestamp.

        Raises:
            StoreError: If the backing store fails or times out.
        """
        pass

    @abstractmethod
    async def scan_filtered(self, lower: int) -> list[LocationSample]:
        """
        Read every sample with ``timestamp >= lower`` across all devices.

        The result is unordered and the cost grows with the size of the
        whole store.

        Raises:
            StoreError: If the backing store fails or times out.
        """
        pass

    @abstractmethod
    async def count_filtered(self, lower: int) -> int:
        """
        Count samples with ``timestamp >= lower`` across all devices.

        Raises:
            StoreError: If the backing store fails or times out.
        """
        pass

    @abstractmethod
    async def ping(self) -> None:
        """
        Check that the store is reachable and provisioned.

        Raises:
            StoreError: If the store cannot be reached or the collection is
                missing or has an unexpected key layout.
        """
        pass

    async def close(self) -> None:
        """Release the underlying client. The default does nothing."""
        return None
