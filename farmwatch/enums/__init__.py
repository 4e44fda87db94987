"""
Farmwatch Enumerations
======================
"""

from farmwatch.enums.telemetry import MetricStatus, RangeSelector

__all__ = [
    "MetricStatus",
    "RangeSelector",
]
