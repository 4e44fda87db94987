"""
Domain Layer for Telemetry Access
=================================
Metric names, range table and the exception hierarchy.
"""

from farmwatch.domain.exceptions import (
    ConfigurationError,
    ExternalServiceError,
    FarmwatchError,
    RequestCancelled,
    ServiceError,
    ValidationError,
)
from farmwatch.domain.fields import FIELD_ALIASES, METRICS, MetricField, get_standard_field
from farmwatch.domain.metric_ranges import (
    METRIC_RANGES,
    METRIC_UNITS,
    MetricRange,
    format_value,
    get_metric_range,
    get_metric_status,
    is_out_of_range,
    parse_metric_value,
)

__all__ = [
    "FIELD_ALIASES",
    "METRICS",
    "METRIC_RANGES",
    "METRIC_UNITS",
    "ConfigurationError",
    "ExternalServiceError",
    "FarmwatchError",
    "MetricField",
    "MetricRange",
    "RequestCancelled",
    "ServiceError",
    "ValidationError",
    "format_value",
    "get_metric_range",
    "get_metric_status",
    "get_standard_field",
    "is_out_of_range",
    "parse_metric_value",
]
