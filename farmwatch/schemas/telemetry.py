"""
Telemetry Schemas
=================

Pydantic models for the payloads exchanged with the backend telemetry API and
for the slots produced by the aggregator.

Every metric field goes through ``parse_metric_value`` so that numeric strings
are accepted and garbage degrades to ``None`` instead of failing validation.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from farmwatch.domain.fields import METRICS, normalize_metric_keys
from farmwatch.domain.metric_ranges import parse_metric_value
from farmwatch.utils.time import coerce_datetime

_TIMESTAMP_KEYS = ("timestamp", "time")
_TEXT_KEYS = ("device", "farm", "label")


def _coerce_row(data: Any) -> Any:
    """Normalize aliases and coerce metric/timestamp values of a raw wire row."""
    if not isinstance(data, Mapping):
        return data
    row = normalize_metric_keys(dict(data))
    for metric in METRICS:
        if metric in row:
            row[metric] = parse_metric_value(row[metric])
    for key in _TIMESTAMP_KEYS:
        if key in row:
            original = row[key]
            row[key] = coerce_datetime(original)
            # Pre-formatted local strings ("01/05/2024, 17:00:00 ICT") are display-only
            if row[key] is None and isinstance(original, str) and original.strip():
                if not row.get("timestamp_local") and not row.get("timestampLocal"):
                    row["timestamp_local"] = original.strip()
    for key in _TEXT_KEYS:
        if row.get(key) is not None and not isinstance(row[key], str):
            row[key] = str(row[key])
    return row


class _MetricValues(BaseModel):
    """Per-metric values shared by readings and slots."""

    temperature: float | None = Field(default=None, description="Soil temperature (°C)")
    moisture: float | None = Field(default=None, description="Soil moisture (%)")
    ec: float | None = Field(default=None, description="Electrical conductivity (µS/cm)")
    ph: float | None = Field(default=None, description="Soil pH")
    n: float | None = Field(default=None, description="Nitrogen (mg/kg)")
    p: float | None = Field(default=None, description="Phosphorus (mg/kg)")
    k: float | None = Field(default=None, description="Potassium (mg/kg)")
    salinity: float | None = Field(default=None, description="Salinity (ppt or ppm as reported)")

    @model_validator(mode="before")
    @classmethod
    def _coerce_wire_row(cls, data: Any) -> Any:
        return _coerce_row(data)

    def metric_values(self) -> dict[str, float | None]:
        return {metric: getattr(self, metric) for metric in METRICS}


class RawReading(_MetricValues):
    """One immutable sample from a field sensor as delivered by the backend collector."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    device: str | None = Field(default=None, description="Sensor device id")
    timestamp: datetime | None = Field(
        default=None,
        validation_alias=AliasChoices("timestamp", "time"),
        description="Sample instant (UTC)",
    )
    timestamp_local: str | None = Field(
        default=None,
        validation_alias=AliasChoices("timestamp_local", "timestampLocal"),
        description="Backend-formatted local time",
    )
    farm: str | None = Field(default=None, description="Farm tag reported by the collector")


class MetricStats(BaseModel):
    """Min/avg/max of the finite values of one metric in one bucket."""

    model_config = ConfigDict(frozen=True)

    min: float
    avg: float
    max: float


class Slot(_MetricValues):
    """
    One fixed-width time bucket.

    Metric fields carry the bucket mean; ``stats`` carries min/avg/max and
    ``out_of_range`` the classification of each mean.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    label: str = Field(..., description="Display label for the bucket")
    time: datetime | None = Field(default=None, description="Bucket start (UTC)")
    timestamp_local: str | None = Field(
        default=None,
        validation_alias=AliasChoices("timestamp_local", "timestampLocal"),
        description="Bucket start in the display timezone, for tooltips",
    )
    stats: dict[str, MetricStats | None] = Field(default_factory=dict)
    out_of_range: dict[str, bool] = Field(default_factory=dict)
    reading_count: int = Field(default=0, description="Readings that fell into the bucket")
    relative_label: str | None = Field(default=None, description='Offset to "now", e.g. "3h ago"')


class DashboardPayload(BaseModel):
    """Unit of data fetched and cached per (farmer, device, range) tuple."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    latest: RawReading | None = None
    slots: list[Slot] = Field(default_factory=list)
    raw: list[RawReading] = Field(default_factory=list)
    series: list[RawReading] = Field(default_factory=list)
    allowed_devices: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("allowed_devices", "allowedDevices"),
    )
    device: str | None = None
    slot_range: str | None = Field(default=None, validation_alias=AliasChoices("slot_range", "slotRange"))
    units: dict[str, str] = Field(default_factory=dict)

    @field_validator("slots", "raw", "series", "allowed_devices", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return [] if value is None else value


class FarmerProfile(BaseModel):
    """Farmer record as returned by ``GET /farmers/{id}``."""

    model_config = ConfigDict(frozen=True, extra="ignore", alias_generator=to_camel, populate_by_name=True)

    id: int
    first_name: str = ""
    last_name: str = ""
    crop_type: str | None = None
    village_name: str | None = None
    district_name: str | None = None
    province_city: str | None = None
    sensor_devices: str | None = None
    ministry_feedback: str | None = None
    has_unviewed_feedback: bool = False

    @field_validator("first_name", "last_name", mode="before")
    @classmethod
    def _none_as_blank(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("has_unviewed_feedback", mode="before")
    @classmethod
    def _truthy(cls, value: Any) -> bool:
        return bool(value)

    @field_validator("sensor_devices", mode="before")
    @classmethod
    def _join_device_list(cls, value: Any) -> Any:
        if isinstance(value, (list, tuple)):
            return ",".join(str(v) for v in value)
        return value

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def devices(self) -> list[str]:
        """Assigned sensor devices, trimmed, in configured order."""
        if not self.sensor_devices:
            return []
        return [d.strip() for d in self.sensor_devices.split(",") if d.strip()]


class FarmerWithSensors(FarmerProfile):
    """
    Farmer record with recent sensor rows, as returned by ``GET /farmers/{id}/sensors``.

    ``crop_safety_score`` and ``cultivation_history`` are only filled when the
    request asked for them; the backend computes both on demand.
    """

    sensors: list[RawReading] = Field(default_factory=list)
    crop_safety_score: dict[str, Any] | None = None
    cultivation_history: list[dict[str, Any]] = Field(default_factory=list)

    @field_validator("sensors", "cultivation_history", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return [] if value is None else value
