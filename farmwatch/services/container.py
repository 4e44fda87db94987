from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import tzinfo

from farmwatch.config import AppConfig
from farmwatch.services.application.dashboard_session import DashboardSession
from farmwatch.services.application.farmer_service import FarmerService
from farmwatch.services.utilities.request_coordinator import RequestCoordinator
from farmwatch.utils.cache import RequestCache
from infrastructure.api.telemetry_client import TelemetryApiClient

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """Aggregate and manage the telemetry access services."""

    config: AppConfig
    api_client: TelemetryApiClient
    profile_cache: RequestCache
    telemetry_cache: RequestCache
    profile_requests: RequestCoordinator
    telemetry_requests: RequestCoordinator
    farmer_service: FarmerService
    display_tz: tzinfo | None = None

    @classmethod
    def build(cls, config: AppConfig) -> "ServiceContainer":
        """Construct the service container with all dependencies.

        Args:
            config: Application configuration
        """
        logger.info("Building ServiceContainer...")
        api_client = TelemetryApiClient(
            config.api_base_url,
            token=config.api_token or None,
            timeout=config.api_timeout_seconds,
        )
        profile_cache = RequestCache(
            name="profile",
            enabled=config.cache_enabled,
            ttl_seconds=config.profile_cache_ttl_seconds,
            maxsize=config.cache_maxsize,
        )
        telemetry_cache = RequestCache(
            name="telemetry",
            enabled=config.cache_enabled,
            ttl_seconds=config.telemetry_cache_ttl_seconds,
            maxsize=config.cache_maxsize,
        )
        profile_requests = RequestCoordinator(profile_cache)
        telemetry_requests = RequestCoordinator(telemetry_cache)
        farmer_service = FarmerService(
            api_client,
            profile_requests=profile_requests,
            telemetry_requests=telemetry_requests,
        )

        container = cls(
            config=config,
            api_client=api_client,
            profile_cache=profile_cache,
            telemetry_cache=telemetry_cache,
            profile_requests=profile_requests,
            telemetry_requests=telemetry_requests,
            farmer_service=farmer_service,
            display_tz=config.tz,
        )
        logger.info("ServiceContainer built successfully.")
        return container

    def dashboard_session(self, farmer_id: int) -> DashboardSession:
        """Create a dashboard session wired to this container's settings."""
        return DashboardSession(
            self.farmer_service,
            farmer_id,
            debounce_seconds=self.config.debounce_seconds,
            tz=self.display_tz,
        )

    def logout(self) -> None:
        """Forget every cached read, pending request and credential."""
        self.farmer_service.clear_cache()
        self.api_client.set_token(None)
        logger.info("Caches cleared on logout")

    def shutdown(self) -> None:
        """Release external resources before process exit."""
        self.farmer_service.clear_cache()
        try:
            self.api_client.close()
        except Exception as e:
            logger.warning("Failed to close API session: %s", e)
        logger.info("ServiceContainer shut down")
