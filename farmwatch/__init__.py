"""
Farmwatch telemetry access layer.

Cached, deduplicated reads of farmer profiles and sensor dashboards, plus
range classification and display slot aggregation of raw readings.
"""

__version__ = "1.0.0"
