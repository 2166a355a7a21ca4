"""
Shared pytest fixtures and configuration for all tests.
"""
import os

import pytest
from unittest.mock import MagicMock, AsyncMock

# Hypothesis configuration for property-based testing
from hypothesis import settings, Verbosity, Phase

from config.settings import Environment, Settings, StoreBackend
from locations.repository import LocationRepository
from store.memory_store import InMemoryLocationStore

# Configure Hypothesis profiles for different environments
# Default profile: balanced for local development
settings.register_profile(
    "default",
    max_examples=100,
    verbosity=Verbosity.normal,
    deadline=None,  # Disable deadline for async tests
    print_blob=True,  # Print failing examples for debugging
)

# CI profile: more thorough testing for continuous integration
settings.register_profile(
    "ci",
    max_examples=200,
    verbosity=Verbosity.verbose,
    deadline=None,
    print_blob=True,
    derandomize=True,  # Reproducible results in CI
)

# Debug profile: minimal examples for quick debugging
settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    deadline=None,
    print_blob=True,
    phases=[Phase.explicit, Phase.reuse, Phase.generate],  # Skip shrinking for speed
)

# Fast profile: quick smoke tests
settings.register_profile(
    "fast",
    max_examples=20,
    verbosity=Verbosity.normal,
    deadline=None,
)

# Load profile from environment variable HYPOTHESIS_PROFILE, default to "default"
settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "default"))

# Fixed "now" for deterministic validation windows: 2024-01-15T10:30:00Z
NOW_MS = 1_705_314_600_000


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, now_ms: int = NOW_MS):
        self.now_ms = now_ms

    def __call__(self) -> int:
        return self.now_ms

    def advance(self, ms: int) -> None:
        self.now_ms += ms


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def memory_store(clock) -> InMemoryLocationStore:
    return InMemoryLocationStore(clock=clock)


@pytest.fixture
def repository(memory_store, clock) -> LocationRepository:
    return LocationRepository(memory_store, clock=clock)


@pytest.fixture
def mock_elasticsearch() -> MagicMock:
    """Create a mock AsyncElasticsearch client for unit tests."""
    mock = MagicMock()
    mock.search = AsyncMock(return_value={"hits": {"hits": [], "total": {"value": 0}}})
    mock.index = AsyncMock(return_value={"result": "created"})
    mock.count = AsyncMock(return_value={"count": 0})
    mock.ping = AsyncMock(return_value=True)
    mock.close = AsyncMock()
    mock.indices = MagicMock()
    mock.indices.get_mapping = AsyncMock(return_value={
        "device-locations": {
            "mappings": {
                "properties": {
                    "deviceId": {"type": "keyword"},
                    "timestamp": {"type": "long"},
                    "latitude": {"type": "double"},
                    "longitude": {"type": "double"},
                }
            }
        }
    })
    return mock


@pytest.fixture
def test_settings() -> Settings:
    """Development settings with the in-memory store and no .env lookup."""
    return Settings(
        _env_file=None,
        environment=Environment.DEVELOPMENT,
        store_backend=StoreBackend.MEMORY,
        log_level="WARNING",
    )


@pytest.fixture
def sample_payload(clock) -> dict:
    """A valid location submission timestamped one minute before "now"."""
    return {
        "deviceId": "device-001",
        "timestamp": clock() - 60_000,
        "latitude": 37.7749,
        "longitude": -122.4194,
        "accuracy": 12.5,
        "deviceName": "Pixel 8",
    }


@pytest.fixture
def sample_error_response() -> dict:
    """Sample error response structure for testing."""
    return {
        "error_code": "VALIDATION_ERROR",
        "message": "latitude must be a number between -90 and 90",
        "details": {"reason": "OUT_OF_RANGE", "field": "latitude"},
        "request_id": "req_test123"
    }
