"""Centralized exception hierarchy for Farmwatch.

All errors raised by the telemetry access layer inherit from
:class:`FarmwatchError` so that callers can catch a single base class when
they need a broad safety net, yet still match on specific subclasses where
narrower handling is appropriate.

Network and backend failures are **not** wrapped: the HTTP client lets
``requests`` exceptions through unchanged so that every waiter on a
coalesced request sees the original error.

Hierarchy
---------
::

    FarmwatchError (base)
    ├── ValidationError          (bad input from caller, e.g. range selector)
    ├── ConfigurationError       (missing / invalid config)
    ├── ServiceError             (business-logic failure)
    │   └── ExternalServiceError (backend answered with an unusable payload)
    └── RequestCancelled         (caller aborted its wait; not a failure)
"""

from __future__ import annotations


class FarmwatchError(Exception):
    """Base exception for all Farmwatch errors.

    Parameters
    ----------
    message:
        Human-readable description.
    detail:
        Optional machine-readable context dict attached to the error for
        structured logging.
    """

    is_cancellation: bool = False

    def __init__(self, message: str = "", *, detail: dict | None = None) -> None:
        super().__init__(message)
        self.detail = detail or {}


class ValidationError(FarmwatchError):
    """Caller supplied invalid or incomplete input."""


class ConfigurationError(FarmwatchError):
    """Missing or invalid application configuration."""


class ServiceError(FarmwatchError):
    """Business-logic failure in a service method."""


class ExternalServiceError(ServiceError):
    """Backend responded, but the payload could not be used."""


class RequestCancelled(FarmwatchError):
    """The caller's abort signal fired before the request settled.

    This is a distinguished outcome, not a failure: UI code should ignore it
    and never surface it to the user.
    """

    is_cancellation = True

    def __init__(self, key: str = "", *, detail: dict | None = None) -> None:
        super().__init__(f"Request cancelled: {key}" if key else "Request cancelled", detail=detail)
        self.key = key
