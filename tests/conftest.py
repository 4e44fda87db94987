"""
Shared test fixtures for the Farmwatch test suite.

Provides:
- A controllable monotonic clock for cache expiry
- Request caches and coordinators wired to that clock
- A stub backend API client that records every call
- A FarmerService built on top of the stub

Usage:
    async def test_example(farmer_service, stub_api):
        await farmer_service.get_farmer(7)
        assert stub_api.calls["get_farmer"] == 1
"""

from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from farmwatch.services.application.farmer_service import FarmerService
from farmwatch.services.utilities.request_coordinator import RequestCoordinator
from farmwatch.utils.cache import RequestCache

# ---------------------------------------------------------------------------
# Logging: keep test output clean
# ---------------------------------------------------------------------------
logging.getLogger("farmwatch").setLevel(logging.WARNING)
logging.getLogger("infrastructure").setLevel(logging.WARNING)


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class StubApi:
    """In-memory stand-in for ``TelemetryApiClient``."""

    def __init__(self) -> None:
        self.calls: Counter = Counter()
        self.requests: list[tuple[str, Any]] = []
        self.farmers: dict[int, dict[str, Any]] = {}
        self.dashboards: dict[int, dict[str, Any]] = {}
        self.sensor_views: dict[int, dict[str, Any]] = {}
        self.errors: dict[str, Exception] = {}
        self.closed = False
        self.token: str | None = "initial"

    def _record(self, name: str, payload: Any = None) -> None:
        self.calls[name] += 1
        self.requests.append((name, payload))
        if name in self.errors:
            raise self.errors[name]

    def get_farmer(self, farmer_id):
        self._record("get_farmer", farmer_id)
        return self.farmers[farmer_id]

    def get_farmer_with_sensors(self, farmer_id, params):
        self._record("get_farmer_with_sensors", dict(params))
        return {**self.farmers[farmer_id], **self.sensor_views.get(farmer_id, {})}

    def get_sensor_dashboard(self, farmer_id, params):
        self._record("get_sensor_dashboard", dict(params))
        return self.dashboards.get(farmer_id, {})

    def download_sensor_csv(self, farmer_id, device=None):
        self._record("download_sensor_csv", device)
        return b"timestamp,temperature\n"

    def update_farmer(self, farmer_id, data):
        self._record("update_farmer", data)
        self.farmers[farmer_id] = {**self.farmers.get(farmer_id, {}), **data}
        return self.farmers[farmer_id]

    def mark_feedback_viewed(self, farmer_id):
        self._record("mark_feedback_viewed", farmer_id)

    def set_token(self, token):
        self.token = token

    def close(self):
        self.closed = True


# ========================== Clock & Caches =================================


@pytest.fixture()
def fake_clock():
    return FakeClock()


@pytest.fixture()
def telemetry_cache(fake_clock):
    return RequestCache(name="telemetry", ttl_seconds=30, maxsize=128, clock=fake_clock)


@pytest.fixture()
def profile_cache(fake_clock):
    return RequestCache(name="profile", ttl_seconds=300, maxsize=128, clock=fake_clock)


@pytest.fixture()
def coordinator(telemetry_cache):
    return RequestCoordinator(telemetry_cache)


# ========================== Services =======================================


@pytest.fixture()
def stub_api():
    api = StubApi()
    api.farmers[7] = {
        "id": 7,
        "firstName": "Sokha",
        "lastName": "Chan",
        "cropType": "Rice",
        "sensorDevices": "dev-a, dev-b",
        "ministryFeedback": "Irrigate less",
        "hasUnviewedFeedback": 1,
    }
    api.dashboards[7] = {
        "latest": {"device": "dev-a", "timestamp": "2024-05-01T09:55:00Z", "temperature": 24.5},
        "raw": [],
        "allowedDevices": ["dev-a", "dev-b"],
        "device": "dev-a",
        "slotRange": "24h",
    }
    api.sensor_views[7] = {
        "sensors": [
            {
                "device": "dev-a",
                "timestamp": "01/05/2024, 17:00:00 ICT",
                "temperature": "24.5",
                "pH": 6.2,
                "nitrogen": 30,
            }
        ],
        "cropSafetyScore": None,
        "cultivationHistory": [],
    }
    return api


@pytest.fixture()
def farmer_service(stub_api, profile_cache, telemetry_cache):
    return FarmerService(
        stub_api,
        profile_requests=RequestCoordinator(profile_cache),
        telemetry_requests=RequestCoordinator(telemetry_cache),
    )


# ========================== Data Helpers ===================================


@pytest.fixture()
def reference_now():
    return datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc)


@pytest.fixture()
def make_readings():
    """Build ``count`` wire rows spaced ``step`` apart carrying ``values``."""

    def _make(start: datetime, count: int, step: timedelta, **values) -> list[dict[str, Any]]:
        return [
            {"timestamp": (start + i * step).isoformat(), "device": "dev-a", **values}
            for i in range(count)
        ]

    return _make
