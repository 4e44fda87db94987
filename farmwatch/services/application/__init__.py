from .farmer_service import FarmerService, build_dashboard_params, build_farmer_sensor_params
from .slot_aggregator import (
    aggregate,
    aggregate_custom,
    bucket_width,
    custom_bucket_width,
    label_for_offset_minutes,
    parse_range_selector,
)

__all__ = [
    "FarmerService",
    "aggregate",
    "aggregate_custom",
    "bucket_width",
    "build_dashboard_params",
    "build_farmer_sensor_params",
    "custom_bucket_width",
    "label_for_offset_minutes",
    "parse_range_selector",
]
