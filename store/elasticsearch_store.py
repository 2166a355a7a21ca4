"""
Elasticsearch-backed location store.

Samples are stored as documents in one index with id
``"{deviceId}:{timestamp}"``, which gives put its overwrite semantics.
The index must be provisioned beforehand with ``deviceId`` as a keyword
and ``timestamp`` as a numeric field; ``ping`` verifies this at startup.
Expiry on ``expiresAt`` is owned by the cluster (ILM or a scheduled
delete-by-query) and is not performed here.
"""

import asyncio
import hashlib
import logging
import time
from typing import Any, Awaitable, Optional, TypeVar

from elasticsearch import (
    ApiError,
    AsyncElasticsearch,
    ConnectionError as ESConnectionError,
    ConnectionTimeout,
    NotFoundError,
    TransportError,
)
from elasticsearch.helpers import async_scan

from errors.exceptions import StoreError
from locations.models import LocationSample
from store.base import LocationStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Field types accepted for the key attributes of the locations index
EXPECTED_KEY_TYPES: dict[str, frozenset[str]] = {
    "deviceId": frozenset({"keyword"}),
    "timestamp": frozenset({"long", "date", "date_nanos"}),
}


def _body(response: Any) -> Any:
    """Unwrap an elasticsearch-py ApiResponse into its plain body."""
    return getattr(response, "body", response)


def check_locations_mapping(index_name: str, mapping_response: dict[str, Any]) -> list[str]:
    """
    Compare an index mapping against the expected key layout.

    Args:
        index_name: Name (or alias) of the locations index
        mapping_response: Body of ``indices.get_mapping``

    Returns:
        A list of mismatch descriptions, empty when the layout is usable
    """
    if not mapping_response:
        return [f"Index '{index_name}' has no mapping"]

    # An alias resolves to the concrete index name in the response
    index_mapping = mapping_response.get(index_name) or next(iter(mapping_response.values()))
    properties = index_mapping.get("mappings", {}).get("properties", {})

    mismatches = []
    for field_name, allowed_types in EXPECTED_KEY_TYPES.items():
        field = properties.get(field_name)
        if field is None:
            mismatches.append(f"Missing field: {field_name}")
            continue
        actual_type = field.get("type")
        if actual_type not in allowed_types:
            mismatches.append(
                f"Type mismatch at '{field_name}': expected one of "
                f"{sorted(allowed_types)}, got {actual_type}"
            )
    return mismatches


class ElasticsearchLocationStore(LocationStore):
    """
    LocationStore on top of ``AsyncElasticsearch``.

    The client is process-wide and safe for concurrent use. Every call is
    bounded by ``timeout_seconds`` and every failure is translated to a
    ``StoreError`` with the backend exception chained.

    Args:
        client: A configured AsyncElasticsearch client
        index: Name of the locations index
        timeout_seconds: Deadline for each store call
    """

    def __init__(self, client: AsyncElasticsearch, index: str, timeout_seconds: float = 5.0):
        self.client = client
        self.index = index
        self.timeout_seconds = timeout_seconds

    @classmethod
    def from_settings(cls, settings: Any) -> "ElasticsearchLocationStore":
        """Build the store and its client from application settings."""
        api_key = settings.elastic_api_key.strip('"') if settings.elastic_api_key else None
        client = AsyncElasticsearch(
            settings.elastic_endpoint,
            api_key=api_key,
            request_timeout=settings.store_timeout_seconds,
        )
        logger.info(
            "Elasticsearch location store configured",
            extra={"extra_data": {
                "endpoint": settings.elastic_endpoint,
                "index": settings.locations_index,
            }}
        )
        return cls(client, settings.locations_index, settings.store_timeout_seconds)

    async def _execute(self, operation: str, awaitable: Awaitable[T]) -> T:
        """
        Await a backend call under the store deadline and translate failures.

        Raises:
            StoreError: TIMEOUT, UNAVAILABLE or UNKNOWN depending on the failure
        """
        start_time = time.perf_counter()
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout_seconds)
        except asyncio.TimeoutError as e:
            raise StoreError.timeout(operation, self.timeout_seconds) from e
        except ConnectionTimeout as e:
            raise StoreError.timeout(operation, self.timeout_seconds) from e
        except NotFoundError as e:
            raise StoreError.unavailable(operation, f"index '{self.index}' not found") from e
        except ESConnectionError as e:
            raise StoreError.unavailable(operation, str(e)) from e
        except ApiError as e:
            raise StoreError.unknown(operation, f"{e.meta.status if e.meta else '?'} {e.message}") from e
        except TransportError as e:
            raise StoreError.unavailable(operation, str(e)) from e
        finally:
            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.debug(
                f"Elasticsearch {operation} finished",
                extra={"extra_data": {
                    "operation": operation,
                    "index": self.index,
                    "duration_ms": round(duration_ms, 2),
                }}
            )

    @staticmethod
    def _range_filter(lower: Optional[int] = None, upper: Optional[int] = None) -> dict[str, Any]:
        bounds = {}
        if lower is not None:
            bounds["gte"] = lower
        if upper is not None:
            bounds["lte"] = upper
        return {"range": {"timestamp": bounds}}

    @staticmethod
    def document_id(sample: LocationSample) -> str:
        """
        Stable id for the ``(deviceId, timestamp)`` key.

        Hashed so that long device ids stay under the 512 byte id limit.
        """
        key = f"{sample.device_id}:{sample.timestamp}"
        return hashlib.sha1(key.encode("utf-8")).hexdigest()

    async def put(self, sample: LocationSample) -> None:
        await self._execute(
            "put",
            self.client.index(
                index=self.index,
                id=self.document_id(sample),
                document=sample.to_document(),
                refresh=True,
            ),
        )

    async def query_by_device(
        self,
        device_id: str,
        lower: Optional[int] = None,
        upper: Optional[int] = None,
        limit: int = 100,
        descending: bool = True,
    ) -> list[LocationSample]:
        filters: list[dict[str, Any]] = [{"term": {"deviceId": device_id}}]
        if lower is not None or upper is not None:
            filters.append(self._range_filter(lower, upper))

        response = await self._execute(
            "query_by_device",
            self.client.search(
                index=self.index,
                query={"bool": {"filter": filters}},
                sort=[{"timestamp": {"order": "desc" if descending else "asc"}}],
                size=limit,
            ),
        )
        hits = _body(response)["hits"]["hits"]
        return [LocationSample.from_document(hit["_source"]) for hit in hits]

    async def _collect_scan(self, lower: int) -> list[LocationSample]:
        samples = []
        async for hit in async_scan(
            self.client,
            index=self.index,
            query={"query": self._range_filter(lower)},
        ):
            samples.append(LocationSample.from_document(hit["_source"]))
        return samples

    async def scan_filtered(self, lower: int) -> list[LocationSample]:
        return await self._execute("scan_filtered", self._collect_scan(lower))

    async def count_filtered(self, lower: int) -> int:
        response = await self._execute(
            "count_filtered",
            self.client.count(index=self.index, query=self._range_filter(lower)),
        )
        return int(_body(response)["count"])

    async def ping(self) -> None:
        reachable = await self._execute("ping", self.client.ping())
        if not reachable:
            raise StoreError.unavailable("ping", "cluster did not answer ping")

        mapping = await self._execute("ping", self.client.indices.get_mapping(index=self.index))
        mismatches = check_locations_mapping(self.index, _body(mapping))
        if mismatches:
            for mismatch in mismatches:
                logger.error(
                    f"Locations index mapping mismatch: {mismatch}",
                    extra={"extra_data": {"index": self.index}}
                )
            raise StoreError.unavailable("ping", "; ".join(mismatches))

        logger.info(
            "Elasticsearch location store reachable",
            extra={"extra_data": {"index": self.index}}
        )

    async def close(self) -> None:
        await self.client.close()
