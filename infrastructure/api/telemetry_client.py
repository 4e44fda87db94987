"""
Telemetry API Client
====================

Blocking HTTP client for the farmer/telemetry backend.

Every method performs exactly one request. Non-2xx responses raise
``requests.HTTPError`` through ``raise_for_status()`` and transport failures
raise the usual ``requests`` exceptions; nothing is translated or retried
here. Async callers run these methods in a worker thread.

Responses use the backend envelope ``{"success": bool, "data": ...}``.
"""

from __future__ import annotations

import logging
from typing import Any

import requests

from farmwatch.domain.exceptions import ExternalServiceError

logger = logging.getLogger(__name__)


class TelemetryApiClient:
    """Thin wrapper over a ``requests.Session`` bound to the backend base URL."""

    DEFAULT_TIMEOUT = 15  # seconds

    def __init__(
        self,
        base_url: str,
        *,
        token: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        session: requests.Session | None = None,
    ) -> None:
        """
        Initialize the API client.

        Args:
            base_url: Backend API root, e.g. ``http://localhost:5000/api``
            token: Optional bearer token sent with every request
            timeout: Per-request timeout in seconds
            session: Pre-configured session (tests inject a mock here)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        if token:
            self.session.headers["Authorization"] = f"Bearer {token}"

        logger.info("Telemetry API client initialized for %s", self.base_url)

    def set_token(self, token: str | None) -> None:
        """Replace (or drop) the bearer token used for subsequent requests."""
        if token:
            self.session.headers["Authorization"] = f"Bearer {token}"
        else:
            self.session.headers.pop("Authorization", None)

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def _request(self, method: str, path: str, **kwargs: Any) -> requests.Response:
        kwargs.setdefault("timeout", self.timeout)
        response = self.session.request(method, self._url(path), **kwargs)
        response.raise_for_status()
        return response

    @staticmethod
    def _json(response: requests.Response) -> dict[str, Any]:
        try:
            body = response.json()
        except ValueError as exc:
            raise ExternalServiceError(
                "Backend returned a non-JSON body", detail={"url": response.url}
            ) from exc
        if not isinstance(body, dict):
            raise ExternalServiceError("Backend returned an unexpected payload", detail={"url": response.url})
        return body

    # ------------------------------------------------------------------
    # Endpoints
    # ------------------------------------------------------------------

    def get_farmer(self, farmer_id: int | str) -> dict[str, Any]:
        """``GET /farmers/{id}`` and return the ``data`` object."""
        body = self._json(self._request("GET", f"/farmers/{farmer_id}"))
        return body.get("data") or {}

    def get_farmer_with_sensors(self, farmer_id: int | str, params: dict[str, Any]) -> dict[str, Any]:
        """``GET /farmers/{id}/sensors`` and return the ``data`` object."""
        body = self._json(self._request("GET", f"/farmers/{farmer_id}/sensors", params=params))
        return body.get("data") or {}

    def get_sensor_dashboard(self, farmer_id: int | str, params: dict[str, Any]) -> dict[str, Any]:
        """``GET /farmers/{id}/sensors/dashboard`` and return the ``data`` object."""
        body = self._json(self._request("GET", f"/farmers/{farmer_id}/sensors/dashboard", params=params))
        return body.get("data") or {}

    def download_sensor_csv(self, farmer_id: int | str, device: str | None = None) -> bytes:
        """``GET /farmers/{id}/sensors/download`` and return the CSV bytes."""
        params = {"device": device} if device else None
        response = self._request("GET", f"/farmers/{farmer_id}/sensors/download", params=params)
        return response.content

    def update_farmer(self, farmer_id: int | str, data: dict[str, Any]) -> dict[str, Any]:
        """``PUT /farmers/{id}`` and return the updated farmer."""
        body = self._json(self._request("PUT", f"/farmers/{farmer_id}", json=data))
        return body.get("farmer") or body.get("data") or {}

    def mark_feedback_viewed(self, farmer_id: int | str) -> None:
        """``POST /farmers/{id}/mark-viewed``."""
        self._request("POST", f"/farmers/{farmer_id}/mark-viewed")

    def close(self) -> None:
        self.session.close()
