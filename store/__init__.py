"""
Location store implementations.

Provides the LocationStore interface, its Elasticsearch and in-memory
implementations, and a factory that picks one from settings.
"""

from config.settings import Settings, StoreBackend
from locations.clock import Clock, current_time_millis
from store.base import LocationStore
from store.memory_store import InMemoryLocationStore
from store.elasticsearch_store import ElasticsearchLocationStore, check_locations_mapping


def create_location_store(settings: Settings, clock: Clock = current_time_millis) -> LocationStore:
    """Build the store selected by ``settings.store_backend``; ``clock`` drives in-memory expiry."""
    if settings.store_backend == StoreBackend.MEMORY:
        return InMemoryLocationStore(clock=clock)
    return ElasticsearchLocationStore.from_settings(settings)


__all__ = [
    "LocationStore",
    "InMemoryLocationStore",
    "ElasticsearchLocationStore",
    "check_locations_mapping",
    "create_location_store",
]
