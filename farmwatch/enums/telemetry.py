"""
Telemetry Enumerations
======================

Enums shared by the slot aggregator, the range classifier and the farmer
service.
"""

from enum import Enum


class RangeSelector(str, Enum):
    """
    Display range selectors for the sensor dashboard.
    Used by: slot_aggregator, farmer_service, dashboard_session
    """

    LATEST = "latest"
    FIVE_MINUTES = "5m"
    FIFTEEN_MINUTES = "15m"
    ONE_HOUR = "1h"
    ONE_DAY = "24h"
    TWO_DAYS = "2d"
    SEVEN_DAYS = "7d"
    THIRTY_DAYS = "30d"

    def __str__(self) -> str:
        return self.value


class MetricStatus(str, Enum):
    """
    Badge categories for a single metric value.
    Used by: metric_ranges.get_metric_status, presentation code
    """

    PENDING = "pending"
    APPROPRIATE = "appropriate"
    NEEDS_ATTENTION = "needs_attention"
    CRITICAL = "critical"
    # Salinity bands (ppm)
    SALINITY_EXCELLENT = "salinity_excellent"
    SALINITY_SAFE = "salinity_safe"
    SALINITY_STRESS = "salinity_stress"
    SALINITY_HARMFUL = "salinity_harmful"

    def __str__(self) -> str:
        return self.value

    @property
    def out_of_range(self) -> bool:
        return self in {
            MetricStatus.NEEDS_ATTENTION,
            MetricStatus.CRITICAL,
            MetricStatus.SALINITY_STRESS,
            MetricStatus.SALINITY_HARMFUL,
        }
