"""
Integration test configuration and fixtures.

Each test builds a complete application with ``create_app`` on top of an
in-memory location store and a fixed clock, and talks to it through
FastAPI's TestClient so the whole middleware stack and the lifespan run.
"""

import pytest
from fastapi.testclient import TestClient

from config.settings import Environment, Settings, StoreBackend
from main import create_app
from store.memory_store import InMemoryLocationStore


def make_settings(**overrides) -> Settings:
    values = {
        "environment": Environment.DEVELOPMENT,
        "store_backend": StoreBackend.MEMORY,
        "log_level": "WARNING",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def app_factory(clock):
    """Build an app; keyword arguments override settings, ``store=`` replaces the store."""

    def factory(store=None, **overrides):
        if store is None:
            store = InMemoryLocationStore(clock=clock)
        return create_app(make_settings(**overrides), store=store, clock=clock)

    return factory


@pytest.fixture
def app(app_factory):
    return app_factory()


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client
