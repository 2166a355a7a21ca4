"""
Integration tests for the HTTP API.

These tests run the real application (middleware, exception handlers,
lifespan) against the in-memory store with a fixed clock.
"""

import json

import pytest
from fastapi.testclient import TestClient

from errors.exceptions import StoreError
from lifecycle.manager import LifecycleState, StartupError
from main import create_app
from store.memory_store import InMemoryLocationStore

pytestmark = pytest.mark.integration

NOW = 1_705_314_600_000
MINUTE = 60_000
HOUR = 60 * MINUTE


def _payload(device_id="device-001", timestamp=NOW - MINUTE, **overrides):
    payload = {
        "deviceId": device_id,
        "timestamp": timestamp,
        "latitude": 37.7749,
        "longitude": -122.4194,
        "accuracy": 12.5,
        "deviceName": "Pixel 8",
    }
    payload.update(overrides)
    return payload


class BrokenStore(InMemoryLocationStore):
    """Reachable at startup, failing on every write and read."""

    async def put(self, sample):
        raise StoreError.unavailable("put", "connection refused to 10.1.2.3:9200")

    async def query_by_device(self, device_id, lower=None, upper=None, limit=100, descending=True):
        raise RuntimeError("index mapping for secret-index is corrupt")


class TestSubmitLocation:

    def test_submit_returns_201(self, client):
        response = client.post("/api/location", json=_payload())

        assert response.status_code == 201
        assert response.json() == {
            "success": True,
            "message": "Location saved successfully",
            "deviceId": "device-001",
            "timestamp": NOW - MINUTE,
        }

    def test_submitted_sample_is_queryable(self, client):
        payload = _payload()
        client.post("/api/location", json=payload)

        response = client.get(
            "/api/locations",
            params={"deviceId": "device-001", "startTime": NOW - HOUR, "endTime": NOW},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["count"] == 1
        assert data["deviceId"] == "device-001"
        assert data["locations"] == [payload]

    def test_resubmitting_same_timestamp_overwrites(self, client):
        client.post("/api/location", json=_payload(latitude=10.0))
        client.post("/api/location", json=_payload(latitude=20.0))

        locations = client.get("/api/locations", params={"deviceId": "device-001"}).json()["locations"]

        assert len(locations) == 1
        assert locations[0]["latitude"] == 20.0

    def test_device_name_defaults(self, client):
        payload = _payload()
        del payload["deviceName"]
        client.post("/api/location", json=payload)

        location = client.get("/api/locations", params={"deviceId": "device-001"}).json()["locations"][0]

        assert location["deviceName"] == "Unknown Device"

    @pytest.mark.parametrize("field, value", [
        ("latitude", 90), ("latitude", -90), ("longitude", 180), ("longitude", -180),
    ])
    def test_coordinate_boundaries_accepted(self, client, field, value):
        response = client.post("/api/location", json=_payload(**{field: value}))

        assert response.status_code == 201

    @pytest.mark.parametrize("field, value", [
        ("latitude", 90.0001), ("latitude", -91), ("longitude", 180.5), ("longitude", -181),
    ])
    def test_coordinates_out_of_range_rejected(self, client, field, value):
        response = client.post("/api/location", json=_payload(**{field: value}))

        assert response.status_code == 400
        data = response.json()
        assert data["error_code"] == "VALIDATION_ERROR"
        assert data["details"] == {"reason": "OUT_OF_RANGE", "field": field}
        assert data["request_id"] == response.headers["X-Request-ID"]

    @pytest.mark.parametrize("offset, status", [
        (59_000, 201),
        (61_000, 400),
        (-86_399_000, 201),
        (-86_400_001, 400),
    ])
    def test_timestamp_window(self, client, offset, status):
        response = client.post("/api/location", json=_payload(timestamp=NOW + offset))

        assert response.status_code == status
        if status == 400:
            assert response.json()["details"]["reason"] == "BAD_TIMESTAMP"

    def test_missing_field_rejected(self, client):
        payload = _payload()
        del payload["longitude"]

        response = client.post("/api/location", json=payload)

        assert response.status_code == 400
        assert response.json()["details"] == {"reason": "MISSING_FIELD", "field": "longitude"}

    def test_malformed_json_rejected(self, client):
        response = client.post(
            "/api/location",
            content=b'{"deviceId": "device-001",',
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json()["error_code"] == "INVALID_REQUEST"

    def test_non_object_body_rejected(self, client):
        response = client.post("/api/location", json=[_payload()])

        assert response.status_code == 400
        assert response.json()["details"] == {"received_type": "list"}

    def test_oversized_body_rejected(self, app_factory):
        with TestClient(app_factory(max_request_body_bytes=1024)) as client:
            response = client.post("/api/location", json=_payload(deviceName="x" * 2000))

        assert response.status_code == 413
        assert response.json()["error_code"] == "PAYLOAD_TOO_LARGE"

    def test_oversized_chunked_body_rejected(self, app_factory):
        body = json.dumps(_payload(deviceName="x" * 5000)).encode()

        def chunks():
            for start in range(0, len(body), 512):
                yield body[start:start + 512]

        with TestClient(app_factory(max_request_body_bytes=1024)) as client:
            response = client.post("/api/location", content=chunks(), headers={"Content-Type": "application/json"})
            locations = client.get("/api/locations", params={"deviceId": "device-001"}).json()

        assert response.status_code == 413
        assert locations["count"] == 0


class TestQueryLocations:

    @pytest.fixture
    def capped_client(self, app_factory):
        with TestClient(app_factory(default_query_limit=3, max_query_limit=5)) as client:
            for i in range(8):
                client.post("/api/location", json=_payload(timestamp=NOW - (i + 1) * MINUTE))
            yield client

    def test_results_sorted_newest_first(self, capped_client):
        locations = capped_client.get(
            "/api/locations", params={"deviceId": "device-001", "limit": 5}
        ).json()["locations"]

        timestamps = [location["timestamp"] for location in locations]
        assert timestamps == sorted(timestamps, reverse=True)
        assert timestamps[0] == NOW - MINUTE

    @pytest.mark.parametrize("limit, expected", [
        (None, 3), ("2", 2), ("100000", 5), ("0", 3), ("-4", 3), ("ten", 3),
    ])
    def test_limit_defaults_and_cap(self, capped_client, limit, expected):
        params = {"deviceId": "device-001"}
        if limit is not None:
            params["limit"] = limit

        data = capped_client.get("/api/locations", params=params).json()

        assert data["count"] == expected
        assert len(data["locations"]) == expected

    def test_time_bounds_are_inclusive(self, capped_client):
        data = capped_client.get(
            "/api/locations",
            params={"deviceId": "device-001", "startTime": NOW - 4 * MINUTE, "endTime": NOW - 2 * MINUTE},
        ).json()

        assert [loc["timestamp"] for loc in data["locations"]] == [
            NOW - 2 * MINUTE, NOW - 3 * MINUTE, NOW - 4 * MINUTE,
        ]

    def test_missing_device_id_rejected(self, client):
        response = client.get("/api/locations")

        assert response.status_code == 400
        assert response.json()["details"] == {"reason": "MISSING_FIELD", "field": "deviceId"}

    def test_non_integer_time_bound_rejected(self, client):
        response = client.get("/api/locations", params={"deviceId": "device-001", "startTime": "yesterday"})

        assert response.status_code == 400
        data = response.json()
        assert data["error_code"] == "INVALID_REQUEST"
        assert data["details"] == {"parameter": "startTime", "value": "yesterday"}

    def test_unknown_device_returns_empty_list(self, client):
        data = client.get("/api/locations", params={"deviceId": "nobody"}).json()

        assert data == {"success": True, "count": 0, "deviceId": "nobody", "locations": []}


class TestActiveDevices:

    @pytest.fixture
    def seeded_client(self, client):
        for age in (30 * MINUTE, 2 * HOUR, 90 * MINUTE):
            client.post("/api/location", json=_payload(device_id="A", timestamp=NOW - age))
        client.post("/api/location", json=_payload(device_id="B", timestamp=NOW - 5 * HOUR))
        return client

    def test_one_hour_lookback(self, seeded_client):
        data = seeded_client.get("/api/devices", params={"hours": 1}).json()

        assert data["count"] == 1
        assert data["hours"] == 1
        device = data["devices"][0]
        assert device["deviceId"] == "A"
        assert device["deviceName"] == "Pixel 8"
        assert device["lastLocation"]["timestamp"] == NOW - 30 * MINUTE

    def test_zero_hours_returns_nothing(self, seeded_client):
        data = seeded_client.get("/api/devices", params={"hours": 0}).json()

        assert data["count"] == 0
        assert data["devices"] == []

    @pytest.mark.parametrize("hours", [None, "abc", "-3"])
    def test_invalid_or_missing_hours_default_to_24(self, seeded_client, hours):
        params = {} if hours is None else {"hours": hours}

        data = seeded_client.get("/api/devices", params=params).json()

        assert data["hours"] == 24
        assert sorted(device["deviceId"] for device in data["devices"]) == ["A", "B"]

    def test_fractional_hours(self, seeded_client):
        data = seeded_client.get("/api/devices", params={"hours": "1.5"}).json()

        assert data["hours"] == 1.5
        assert data["devices"][0]["lastLocation"]["timestamp"] == NOW - 30 * MINUTE

    def test_default_lookback_reports_whole_hours(self, seeded_client):
        response = seeded_client.get("/api/devices")

        assert response.status_code == 200
        assert response.json()["hours"] == 24
        assert isinstance(response.json()["hours"], int)

    def test_huge_lookback_capped_to_retention(self, seeded_client):
        response = seeded_client.get("/api/devices", params={"hours": "1e20"})

        assert response.status_code == 200
        assert response.json()["hours"] == 720
        assert response.json()["count"] == 2


class TestStats:

    def test_stats_counts(self, client):
        for age in (5 * MINUTE, 20 * MINUTE, 5 * HOUR):
            client.post("/api/location", json=_payload(timestamp=NOW - age))

        data = client.get("/api/stats").json()

        assert data["success"] is True
        assert data["locationsLast24h"] == 3
        assert data["locationsLastHour"] == 2
        assert data["serverTime"] == "2024-01-15T10:30:00.000Z"
        assert data["uptime"] >= 0

    def test_hour_count_never_exceeds_day_count(self, client):
        for i in range(5):
            client.post("/api/location", json=_payload(device_id=f"d{i}", timestamp=NOW - i * 10 * MINUTE))
            data = client.get("/api/stats").json()
            assert data["locationsLastHour"] <= data["locationsLast24h"]


class TestErrors:

    def test_unmatched_route_lists_endpoints(self, client):
        response = client.get("/api/unknown")

        assert response.status_code == 404
        data = response.json()
        assert data["error_code"] == "RESOURCE_NOT_FOUND"
        assert "POST /api/location" in data["details"]["available_endpoints"]
        assert len(data["details"]["available_endpoints"]) == 8

    def test_wrong_method_is_not_found(self, client):
        response = client.delete("/api/location")

        assert response.status_code == 404
        assert response.json()["message"] == "Route DELETE /api/location does not exist"

    def test_store_error_is_generic_500(self, app_factory, clock):
        with TestClient(app_factory(store=BrokenStore(clock=clock))) as client:
            response = client.post("/api/location", json=_payload())

        assert response.status_code == 500
        data = response.json()
        assert data["error_code"] == "STORE_UNAVAILABLE"
        assert "10.1.2.3" not in response.text
        assert "details" not in data

    def test_validation_error_not_sent_to_store(self, app_factory, clock):
        with TestClient(app_factory(store=BrokenStore(clock=clock))) as client:
            response = client.post("/api/location", json=_payload(latitude=100))

        assert response.status_code == 400

    def test_unexpected_error_is_500(self, app_factory, clock):
        app = app_factory(store=BrokenStore(clock=clock))
        with TestClient(app, raise_server_exceptions=False) as client:
            response = client.get("/api/locations", params={"deviceId": "device-001"})

        assert response.status_code == 500
        data = response.json()
        assert data["error_code"] == "INTERNAL_ERROR"
        assert "secret-index" not in response.text


class TestLifecycle:

    def test_failing_startup_ping_aborts_startup(self, app_factory, clock):
        class UnreachableStore(InMemoryLocationStore):
            async def ping(self):
                raise StoreError.unavailable("ping", "no route to host")

        app = app_factory(store=UnreachableStore(clock=clock))

        with pytest.raises(StartupError):
            with TestClient(app):
                pass

    def test_shutdown_closes_store(self, app_factory, clock):
        store = InMemoryLocationStore(clock=clock)
        app = app_factory(store=store)

        with TestClient(app) as client:
            assert client.get("/health").status_code == 200
            assert app.state.lifecycle.state == LifecycleState.READY

        assert store.closed
        assert app.state.lifecycle.state == LifecycleState.STOPPED

    def test_requests_refused_while_draining(self, app, client):
        app.state.lifecycle.state = LifecycleState.DRAINING

        response = client.post("/api/location", json=_payload())

        assert response.status_code == 503
        assert response.json()["error_code"] == "SERVICE_UNAVAILABLE"
        app.state.lifecycle.state = LifecycleState.READY

    def test_configured_memory_store_expires_on_app_clock(self, app, clock):
        expiring_app = create_app(app.state.settings, clock=clock)

        with TestClient(expiring_app) as client:
            client.post("/api/location", json=_payload())
            clock.advance(30 * 24 * HOUR)
            data = client.get("/api/locations", params={"deviceId": "device-001"}).json()

        assert data["count"] == 0


class TestSystemEndpoints:

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["version"] == "1.0.0"
        assert data["uptime"] >= 0

    def test_readiness(self, client):
        response = client.get("/health/ready")

        assert response.status_code == 200
        data = response.json()
        assert data["service"] == "location-tracker"
        assert data["status"] == "healthy"
        assert data["dependencies"][0]["name"] == "location_store"

    def test_readiness_fails_when_store_goes_away(self, app_factory, clock):
        class FlakyStore(InMemoryLocationStore):
            reachable = True

            async def ping(self):
                if not self.reachable:
                    raise StoreError.timeout("ping", 5.0)

        store = FlakyStore(clock=clock)
        with TestClient(app_factory(store=store)) as client:
            store.reachable = False
            response = client.get("/health/ready")

        assert response.status_code == 503
        data = response.json()
        assert data["status"] == "unhealthy"
        assert data["failure_reasons"] == [{"dependency": "location_store", "error": "STORE_TIMEOUT"}]

    def test_liveness(self, client):
        response = client.get("/health/live")

        assert response.status_code == 200
        assert response.json()["status"] == "alive"

    def test_info(self, client):
        data = client.get("/info").json()

        assert data["name"] == "location-tracker"
        assert data["environment"] == "development"
        routes = [f"{endpoint['method']} {endpoint['path']}" for endpoint in data["endpoints"]]
        assert routes == [
            "POST /api/location",
            "GET /api/locations",
            "GET /api/devices",
            "GET /api/stats",
            "GET /health",
            "GET /health/ready",
            "GET /health/live",
            "GET /info",
        ]


class TestTransportHeaders:

    def test_security_and_request_id_headers(self, client):
        response = client.get("/api/stats", headers={"X-Request-ID": "trace-abc"})

        assert response.headers["X-Request-ID"] == "trace-abc"
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "DENY"
        assert "Content-Security-Policy" in response.headers

    def test_error_responses_carry_headers(self, client):
        response = client.get("/nowhere")

        assert response.status_code == 404
        assert response.headers["X-Request-ID"] == response.json()["request_id"]
        assert response.headers["X-Content-Type-Options"] == "nosniff"

    def test_rate_limit_applies_to_api_only(self, app_factory):
        with TestClient(app_factory(rate_limit_requests=2)) as client:
            statuses = [client.get("/api/stats").status_code for _ in range(3)]
            health = [client.get("/health").status_code for _ in range(3)]
            limited = client.get("/api/stats")

        assert statuses == [200, 200, 429]
        assert health == [200, 200, 200]
        assert limited.json()["error_code"] == "RATE_LIMITED"
        assert int(limited.headers["Retry-After"]) >= 1
        assert limited.headers["X-Request-ID"]

    def test_rate_limit_can_be_disabled(self, app_factory):
        with TestClient(app_factory(rate_limit_enabled=False, rate_limit_requests=1)) as client:
            statuses = [client.get("/api/stats").status_code for _ in range(3)]

        assert statuses == [200, 200, 200]
