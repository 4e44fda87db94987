"""
Dashboard Session
=================

Caller-side state for one farmer's sensor dashboard.

Device and range switches are debounced; each new selection fires the abort
signal of the load it supersedes so stale responses never reach the view.
Cancelled loads resolve to ``None`` and leave the current payload untouched.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, tzinfo
from typing import Callable

from farmwatch.domain.exceptions import RequestCancelled
from farmwatch.schemas.telemetry import DashboardPayload, FarmerProfile, RawReading, Slot
from farmwatch.services.application.farmer_service import DEFAULT_RANGE, FarmerService
from farmwatch.services.application.slot_aggregator import CUSTOM_RANGE, aggregate, aggregate_custom
from farmwatch.utils.debounce import DEFAULT_DEBOUNCE_SECONDS, Debouncer
from farmwatch.utils.time import utc_now

logger = logging.getLogger(__name__)


class DashboardSession:
    """Debounced, supersedable dashboard loads for a single farmer."""

    def __init__(
        self,
        farmer_service: FarmerService,
        farmer_id: int,
        *,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        tz: tzinfo | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.farmer_service = farmer_service
        self.farmer_id = farmer_id
        self.tz = tz
        self._clock = clock
        self._debouncer = Debouncer(debounce_seconds)
        self._abort: asyncio.Event | None = None

        self.farmer: FarmerProfile | None = None
        self.selected_device: str | None = None
        self.range: str = DEFAULT_RANGE
        self.payload: DashboardPayload | None = None
        self.sensors: list[RawReading] = []
        # start/end of the window the current payload was loaded for
        self._window: tuple[object, object] = (None, None)

    async def open(self, *, mark_feedback: bool = False) -> FarmerProfile:
        """
        Load the farmer profile and select its first device.

        Args:
            mark_feedback: Mark pending ministry feedback as viewed (admin view)
        """
        farmer = await self.farmer_service.get_farmer(self.farmer_id)
        self.farmer = farmer
        if self.selected_device is None and farmer.devices:
            self.selected_device = farmer.devices[0]

        if mark_feedback and farmer.ministry_feedback:
            await self.farmer_service.mark_feedback_viewed(self.farmer_id)

        return farmer

    async def select(
        self,
        *,
        device: str | None = None,
        range: str | None = None,
        **params,
    ) -> DashboardPayload | None:
        """
        Switch device and/or range and load the dashboard.

        Returns:
            The new payload, or None if this load was superseded or cancelled
        """
        if device is not None:
            self.selected_device = device
        if range is not None:
            self.range = range
        return await self.load(**params)

    async def load(self, **params) -> DashboardPayload | None:
        """Load the dashboard for the current selection after the debounce period."""
        if self._abort is not None:
            self._abort.set()
        abort = asyncio.Event()
        self._abort = abort

        device, range_ = self.selected_device, self.range
        try:
            if not await self._debouncer.wait() or abort.is_set():
                return None
            payload = await self.farmer_service.get_sensor_dashboard(
                self.farmer_id,
                device=device,
                range=range_,
                signal=abort,
                **params,
            )
        except RequestCancelled:
            logger.debug("Dashboard load for farmer %s (%s, %s) superseded", self.farmer_id, device, range_)
            return None
        finally:
            if self._abort is abort:
                self._abort = None

        self.payload = payload
        self._window = (params.get("start"), params.get("end"))
        return payload

    async def load_sensors(self, *, time_filter: str | None = None) -> list[RawReading]:
        """Load recent sensor rows of the selected device (latest row only without ``time_filter``)."""
        farmer = await self.farmer_service.get_farmer_with_sensors(
            self.farmer_id,
            time_filter=time_filter,
            device=self.selected_device,
        )
        self.sensors = farmer.sensors
        return farmer.sensors

    def slots(self, payload: DashboardPayload | None = None) -> list[Slot]:
        """
        Display slots for ``payload`` (default: the current one).

        Server-computed slots are used as-is; otherwise raw readings (or the
        ``series`` rows of a series view) are aggregated locally for the
        selected range. A custom range is bucketed by the width of its window.
        """
        payload = payload or self.payload
        if payload is None:
            return []
        if payload.slots:
            return list(payload.slots)

        readings = payload.raw or payload.series
        selector = payload.slot_range or self.range
        if str(selector) == CUSTOM_RANGE:
            start, end = self._window
            return aggregate_custom(readings, start, end, tz=self.tz, now=self._clock())
        return aggregate(readings, selector, tz=self.tz, now=self._clock())

    def cancel(self) -> None:
        """Abandon any in-flight or pending load (view closed)."""
        if self._abort is not None:
            self._abort.set()
            self._abort = None
        self._debouncer.cancel()
