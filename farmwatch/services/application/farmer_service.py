"""Farmer Service
==============

Application-facing access to farmer profiles and sensor dashboards.

Reads go through a :class:`RequestCoordinator` so that hover-prefetch, the
main view and polling refreshes share one round trip per logical resource.
Profile reads and telemetry reads live in separate caches with separate TTLs;
the farmer-with-sensors view counts as telemetry. Payloads that fail schema
validation surface as ``ExternalServiceError``.
CSV exports are never cached. "Mark feedback viewed" and prefetch warming are
best effort: their failures are logged and swallowed so they never disturb
the primary read path.

The blocking HTTP client runs in worker threads via ``asyncio.to_thread``.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any

import pydantic
import requests

from farmwatch.domain.exceptions import ExternalServiceError, FarmwatchError, ValidationError
from farmwatch.enums.telemetry import RangeSelector
from farmwatch.schemas.telemetry import DashboardPayload, FarmerProfile, FarmerWithSensors
from farmwatch.services.application.slot_aggregator import CUSTOM_RANGE
from farmwatch.services.utilities.request_coordinator import RequestCoordinator
from farmwatch.utils.cache import make_cache_key
from infrastructure.api.telemetry_client import TelemetryApiClient

logger = logging.getLogger(__name__)

DEFAULT_RANGE = RangeSelector.ONE_DAY.value
ALL_TIME_FILTER = "all"


def _as_param(value: Any) -> str:
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def _parse_payload(model: type[pydantic.BaseModel], data: Any, farmer_id: int) -> Any:
    """Validate a backend payload, reporting schema mismatches as ExternalServiceError."""
    try:
        return model.model_validate(data)
    except pydantic.ValidationError as exc:
        raise ExternalServiceError(
            f"Backend returned a malformed {model.__name__} payload",
            detail={"farmer_id": farmer_id, "errors": exc.error_count()},
        ) from exc


def build_farmer_sensor_params(
    *,
    time_filter: str | None = None,
    device: str | None = None,
    include_score: bool = False,
    include_history: bool = False,
) -> dict[str, str]:
    """Query parameters for ``GET /farmers/{id}/sensors``; ``"all"`` means latest row only."""
    params: dict[str, str] = {}
    if time_filter and str(time_filter) != ALL_TIME_FILTER:
        params["timeFilter"] = str(time_filter)
    if device:
        params["device"] = device
    if include_score:
        params["includeScore"] = "true"
    if include_history:
        params["includeHistory"] = "true"
    return params


def build_dashboard_params(
    *,
    device: str | None = None,
    range: str = DEFAULT_RANGE,
    view: str | None = None,
    slot_range: str | None = None,
    include_raw: bool | None = None,
    start: datetime | str | None = None,
    end: datetime | str | None = None,
) -> dict[str, str]:
    """
    Build dashboard query parameters the way the backend expects them.

    ``range`` is always sent; ``start``/``end`` only for a custom range, where
    both are required.

    Raises:
        ValidationError: custom range without start and end
    """
    params: dict[str, str] = {"range": str(range)}
    if device:
        params["device"] = device
    if view:
        params["view"] = view
    if slot_range:
        params["slotRange"] = str(slot_range)
    if include_raw is not None:
        params["includeRaw"] = "1" if include_raw else "0"
    if str(range) == CUSTOM_RANGE:
        if not start or not end:
            raise ValidationError("Custom range requires start and end", detail={"range": range})
        params["start"] = _as_param(start)
        params["end"] = _as_param(end)
    return params


class FarmerService:
    """Cached, deduplicated reads of farmer profiles and sensor dashboards."""

    def __init__(
        self,
        api_client: TelemetryApiClient,
        *,
        profile_requests: RequestCoordinator,
        telemetry_requests: RequestCoordinator,
    ) -> None:
        """
        Initialize the farmer service.

        Args:
            api_client: Backend HTTP client
            profile_requests: Coordinator over the long-TTL profile cache
            telemetry_requests: Coordinator over the short-TTL telemetry cache
        """
        self.api = api_client
        self.profile_requests = profile_requests
        self.telemetry_requests = telemetry_requests

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_farmer(self, farmer_id: int, *, signal: asyncio.Event | None = None) -> FarmerProfile:
        """Return the farmer profile (profile cache)."""
        key = make_cache_key(f"/farmers/{farmer_id}")

        async def _fetch() -> FarmerProfile:
            data = await asyncio.to_thread(self.api.get_farmer, farmer_id)
            return _parse_payload(FarmerProfile, data, farmer_id)

        return await self.profile_requests.fetch_deduplicated(key, _fetch, signal=signal)

    async def get_farmer_with_sensors(
        self,
        farmer_id: int,
        *,
        time_filter: str | None = None,
        device: str | None = None,
        include_score: bool = False,
        include_history: bool = False,
        signal: asyncio.Event | None = None,
    ) -> FarmerWithSensors:
        """
        Return the farmer together with recent sensor rows (telemetry cache).

        Args:
            farmer_id: Farmer to load
            time_filter: ``24h``, ``2d`` or ``7d``; None or ``all`` returns the latest row per device
            device: Restrict rows to one assigned device
            include_score: Ask the backend for the crop safety score (slow)
            include_history: Ask the backend for the cultivation history (slow)
            signal: Per-caller abort event

        Raises:
            RequestCancelled: ``signal`` fired before the fetch settled
            ExternalServiceError: backend payload does not match the schema
            requests.RequestException: network or backend failure, unchanged
        """
        params = build_farmer_sensor_params(
            time_filter=time_filter,
            device=device,
            include_score=include_score,
            include_history=include_history,
        )
        key = make_cache_key(f"/farmers/{farmer_id}/sensors", params)

        async def _fetch() -> FarmerWithSensors:
            data = await asyncio.to_thread(self.api.get_farmer_with_sensors, farmer_id, params)
            return _parse_payload(FarmerWithSensors, data, farmer_id)

        return await self.telemetry_requests.fetch_deduplicated(key, _fetch, signal=signal)

    async def get_allowed_devices(self, farmer_id: int, *, signal: asyncio.Event | None = None) -> list[str]:
        """Return the farmer's assigned sensor devices, in configured order."""
        farmer = await self.get_farmer(farmer_id, signal=signal)
        return farmer.devices

    async def get_sensor_dashboard(
        self,
        farmer_id: int,
        *,
        device: str | None = None,
        range: str = DEFAULT_RANGE,
        view: str | None = None,
        slot_range: str | None = None,
        include_raw: bool | None = None,
        start: datetime | str | None = None,
        end: datetime | str | None = None,
        signal: asyncio.Event | None = None,
    ) -> DashboardPayload:
        """
        Return the sensor dashboard payload (telemetry cache).

        The cache key covers every query parameter, so two views of the same
        device never share an entry.

        Raises:
            RequestCancelled: ``signal`` fired before the fetch settled
            ValidationError: custom range without start and end
            ExternalServiceError: backend payload does not match the schema
            requests.RequestException: network or backend failure, unchanged
        """
        params = build_dashboard_params(
            device=device,
            range=range,
            view=view,
            slot_range=slot_range,
            include_raw=include_raw,
            start=start,
            end=end,
        )
        key = make_cache_key(f"/farmers/{farmer_id}/sensors/dashboard", params)

        async def _fetch() -> DashboardPayload:
            data = await asyncio.to_thread(self.api.get_sensor_dashboard, farmer_id, params)
            return _parse_payload(DashboardPayload, data, farmer_id)

        return await self.telemetry_requests.fetch_deduplicated(key, _fetch, signal=signal)

    async def download_sensor_csv(self, farmer_id: int, device: str | None = None) -> bytes:
        """Return the full-history CSV export. Always a fresh request."""
        return await asyncio.to_thread(self.api.download_sensor_csv, farmer_id, device)

    # ------------------------------------------------------------------
    # Writes and best-effort side effects
    # ------------------------------------------------------------------

    async def update_farmer(self, farmer_id: int, data: dict[str, Any]) -> dict[str, Any]:
        """Update a farmer and drop every cached read for that farmer."""
        farmer = await asyncio.to_thread(self.api.update_farmer, farmer_id, data)
        self.invalidate_farmer(farmer_id)
        return farmer

    def invalidate_farmer(self, farmer_id: int) -> None:
        prefix = f"/farmers/{farmer_id}"
        removed = self.profile_requests.cache.invalidate_prefix(prefix)
        removed += self.telemetry_requests.cache.invalidate_prefix(prefix)
        logger.debug("Invalidated %d cached reads for farmer %s", removed, farmer_id)

    async def mark_feedback_viewed(self, farmer_id: int) -> bool:
        """Mark ministry feedback as viewed. Never raises on request failure."""
        try:
            await asyncio.to_thread(self.api.mark_feedback_viewed, farmer_id)
        except (requests.RequestException, FarmwatchError) as exc:
            logger.debug("Marking feedback viewed for farmer %s failed: %s", farmer_id, exc)
            return False
        return True

    async def prefetch_dashboard(self, farmer_id: int, **kwargs: Any) -> DashboardPayload | None:
        """Warm the telemetry cache (e.g. on card hover). Never raises on request failure."""
        try:
            return await self.get_sensor_dashboard(farmer_id, **kwargs)
        except (requests.RequestException, FarmwatchError) as exc:
            logger.debug("Prefetch of dashboard for farmer %s skipped: %s", farmer_id, exc)
            return None

    def clear_cache(self) -> None:
        """Forget every cached read and pending request (logout)."""
        self.profile_requests.clear()
        self.telemetry_requests.clear()

    def get_cache_stats(self) -> dict[str, dict[str, Any]]:
        return {
            "profile": self.profile_requests.cache.get_stats(),
            "telemetry": self.telemetry_requests.cache.get_stats(),
        }
