"""
HTTP endpoints of the location service.
"""

from api.routes import router as locations_router
from api.system import router as system_router, AVAILABLE_ENDPOINTS, ENDPOINTS

__all__ = [
    "locations_router",
    "system_router",
    "AVAILABLE_ENDPOINTS",
    "ENDPOINTS",
]
