"""
Infrastructure API Package
==========================
HTTP access to the farmer/telemetry backend.
"""

from .telemetry_client import TelemetryApiClient

__all__ = ["TelemetryApiClient"]
