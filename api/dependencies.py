"""FastAPI dependencies resolving the per-app singletons stored on app.state."""

from fastapi import Request

from config.settings import Settings
from health.service import HealthCheckService
from lifecycle.manager import LifecycleManager
from locations.repository import LocationRepository


def get_repository(request: Request) -> LocationRepository:
    return request.app.state.repository


def get_lifecycle(request: Request) -> LifecycleManager:
    return request.app.state.lifecycle


def get_health_service(request: Request) -> HealthCheckService:
    return request.app.state.health_service


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings
