"""
Telemetry module for structured logging and metrics.

Provides:
- JSONFormatter: one JSON object per log line, correlated by request_id
- TelemetryService: root logger configuration and log-based metrics
"""

from telemetry.service import (
    JSONFormatter,
    TelemetryService,
    get_telemetry_service,
    initialize_telemetry,
)

__all__ = [
    "JSONFormatter",
    "TelemetryService",
    "get_telemetry_service",
    "initialize_telemetry",
]
