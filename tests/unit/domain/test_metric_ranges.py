from __future__ import annotations

import math

import pytest

from farmwatch.domain.fields import get_standard_field, normalize_metric_keys
from farmwatch.domain.metric_ranges import (
    METRIC_RANGES,
    format_value,
    get_metric_status,
    is_out_of_range,
    parse_metric_value,
    salinity_ppm,
)
from farmwatch.enums.telemetry import MetricStatus


@pytest.mark.parametrize(
    "value, expected",
    [
        (None, None),
        ("", None),
        ("   ", None),
        ("abc", None),
        (True, None),
        (math.nan, None),
        (math.inf, None),
        (" 6.5 ", 6.5),
        (12, 12.0),
    ],
)
def test_parse_metric_value(value, expected):
    assert parse_metric_value(value) == expected


def test_range_bounds_are_inclusive():
    assert is_out_of_range("temperature", 15) is False
    assert is_out_of_range("temperature", 35) is False
    assert is_out_of_range("temperature", 14.999) is True
    assert is_out_of_range("temperature", 35.001) is True


def test_ph_out_of_range_examples():
    assert is_out_of_range("ph", 5.0) is True
    assert is_out_of_range("ph", 6.5) is False
    assert is_out_of_range("ph", 8.0) is True


def test_missing_values_and_unknown_metrics_are_never_out_of_range():
    assert is_out_of_range("ph", None) is False
    assert is_out_of_range("ph", "n/a") is False
    assert is_out_of_range("ph", math.nan) is False
    assert is_out_of_range("wind_speed", 9999) is False


def test_aliases_use_the_standard_range():
    assert is_out_of_range("pH", 8.0) is True
    assert is_out_of_range("soil_temp", 40) is True
    assert get_standard_field("nitrogen") == "n"


def test_numeric_strings_are_classified():
    assert is_out_of_range("moisture", "95") is True
    assert is_out_of_range("moisture", "55") is False


def test_every_range_has_min_below_max():
    for metric_range in METRIC_RANGES.values():
        if metric_range.min is not None and metric_range.max is not None:
            assert metric_range.min < metric_range.max


def test_format_value_two_decimals_with_unit():
    assert format_value("temperature", 24.456) == "24.46 °C"
    assert format_value("ph", 6.5) == "6.50"
    assert format_value("ph", "7") == "7.00"


def test_format_value_placeholder_and_passthrough():
    assert format_value("temperature", None) == "-"
    assert format_value("temperature", "offline") == "offline"


def test_salinity_scaled_from_ppt():
    assert salinity_ppm(0.5) == 500
    assert salinity_ppm(1800) == 1800
    assert format_value("salinity", 1.2) == "1200 ppm"


@pytest.mark.parametrize(
    "value, status",
    [
        (0.5, MetricStatus.SALINITY_EXCELLENT),
        (1000, MetricStatus.SALINITY_SAFE),
        (2.0, MetricStatus.SALINITY_STRESS),
        (3000, MetricStatus.SALINITY_HARMFUL),
        (None, MetricStatus.PENDING),
    ],
)
def test_salinity_bands(value, status):
    assert get_metric_status("salinity", value) is status


def test_salinity_stress_counts_as_out_of_range():
    assert is_out_of_range("salinity", 700) is False
    assert is_out_of_range("salinity", 2000) is True


def test_metric_status_deviation():
    assert get_metric_status("temperature", 25) is MetricStatus.APPROPRIATE
    # 36 is 1/35 above the max
    assert get_metric_status("temperature", 36) is MetricStatus.NEEDS_ATTENTION
    # 45 is ~29% above the max
    assert get_metric_status("temperature", 45) is MetricStatus.CRITICAL
    assert get_metric_status("temperature", 10) is MetricStatus.CRITICAL
    assert get_metric_status("temperature", None) is MetricStatus.PENDING
    assert get_metric_status("wind_speed", 3) is MetricStatus.PENDING


def test_normalize_metric_keys_prefers_standard_values():
    row = normalize_metric_keys({"temperature": 21.0, "temp": 99.0, "humidity": 40, "pH": 6.1})
    assert row["temperature"] == 21.0
    assert row["moisture"] == 40
    assert row["ph"] == 6.1


def test_normalize_metric_keys_alias_fills_missing_standard():
    row = normalize_metric_keys({"temperature": None, "soil_temp": 18.5})
    assert row["temperature"] == 18.5
