"""
Unit tests for InMemoryLocationStore.
"""

import pytest

from locations.models import LocationSample

NOW = 1_705_314_600_000
DAY_MS = 24 * 3_600_000


def _sample(device_id="dev", timestamp=NOW, received_at=NOW, **kwargs) -> LocationSample:
    return LocationSample(
        device_id=device_id,
        timestamp=timestamp,
        latitude=kwargs.pop("latitude", 1.0),
        longitude=kwargs.pop("longitude", 2.0),
        received_at=received_at,
        expires_at=(received_at + 30 * DAY_MS) // 1000,
        **kwargs,
    )


class TestInMemoryLocationStore:

    @pytest.mark.asyncio
    async def test_put_overwrites_same_key(self, memory_store):
        await memory_store.put(_sample(latitude=1.0))
        await memory_store.put(_sample(latitude=5.0))

        results = await memory_store.query_by_device("dev")

        assert len(results) == 1
        assert results[0].latitude == 5.0

    @pytest.mark.asyncio
    async def test_query_orders_and_limits(self, memory_store):
        for offset in (3, 1, 2):
            await memory_store.put(_sample(timestamp=NOW - offset))

        descending = await memory_store.query_by_device("dev", limit=2)
        ascending = await memory_store.query_by_device("dev", descending=False)

        assert [s.timestamp for s in descending] == [NOW - 1, NOW - 2]
        assert [s.timestamp for s in ascending] == [NOW - 3, NOW - 2, NOW - 1]

    @pytest.mark.asyncio
    async def test_scan_and_count_share_predicate(self, memory_store):
        await memory_store.put(_sample(device_id="a", timestamp=NOW - 10))
        await memory_store.put(_sample(device_id="b", timestamp=NOW - 5))
        await memory_store.put(_sample(device_id="c", timestamp=NOW))

        scanned = await memory_store.scan_filtered(NOW - 5)

        assert {s.device_id for s in scanned} == {"b", "c"}
        assert await memory_store.count_filtered(NOW - 5) == 2

    @pytest.mark.asyncio
    async def test_expired_samples_are_invisible(self, memory_store, clock):
        await memory_store.put(_sample(received_at=NOW))
        assert len(memory_store) == 1

        clock.advance(30 * DAY_MS)

        assert await memory_store.query_by_device("dev") == []
        assert await memory_store.scan_filtered(0) == []
        assert await memory_store.count_filtered(0) == 0

    @pytest.mark.asyncio
    async def test_ping_and_close(self, memory_store):
        await memory_store.ping()
        await memory_store.close()
        assert memory_store.closed
