"""
Farmwatch Schemas
=================

Pydantic models for telemetry payloads and aggregated slots.
"""

from farmwatch.schemas.telemetry import (
    DashboardPayload,
    FarmerProfile,
    FarmerWithSensors,
    MetricStats,
    RawReading,
    Slot,
)

__all__ = [
    "DashboardPayload",
    "FarmerProfile",
    "FarmerWithSensors",
    "MetricStats",
    "RawReading",
    "Slot",
]
