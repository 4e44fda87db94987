"""
Metric Range Table
==================

Static normal-range definitions for every supported soil/climate metric, and
the classifier/formatter built on top of them.

This module is the single source of truth for "normal" vs "anomalous": the
slot aggregator and any presentation code call the same functions, so a
value is classified identically wherever it is shown.

Absence of data is never "out of range". Every function here accepts raw
wire values (numbers, numeric strings, ``None``) and degrades gracefully on
anything it cannot interpret.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any

from farmwatch.domain.fields import MetricField, get_standard_field
from farmwatch.enums.telemetry import MetricStatus

PLACEHOLDER = "-"

# Deviation (relative to the violated bound) at which a value becomes critical
CRITICAL_DEVIATION = 0.2

# Salinity bands in ppm (vegetables)
SALINITY_SAFE_PPM = 800
SALINITY_STRESS_PPM = 1500
SALINITY_HARMFUL_PPM = 2500
# Salinity values at or below this are read as ppt
SALINITY_PPT_CEILING = 50


@dataclass(frozen=True)
class MetricRange:
    """Normal operating band for one metric. Bounds are inclusive."""

    metric: str
    min: float | None
    max: float | None
    unit: str = ""

    def contains(self, value: float) -> bool:
        if self.min is not None and value < self.min:
            return False
        if self.max is not None and value > self.max:
            return False
        return True


METRIC_RANGES: dict[str, MetricRange] = {
    r.metric: r
    for r in (
        MetricRange(MetricField.TEMPERATURE.value, 15, 35, "°C"),
        MetricRange(MetricField.MOISTURE.value, 20, 90, "%"),
        MetricRange(MetricField.EC.value, 0.2, 3.0, "µS/cm"),
        MetricRange(MetricField.PH.value, 5.5, 7.5, ""),
        MetricRange(MetricField.NITROGEN.value, 0, 200, "mg/kg"),
        MetricRange(MetricField.PHOSPHORUS.value, 0, 200, "mg/kg"),
        MetricRange(MetricField.POTASSIUM.value, 0, 300, "mg/kg"),
        # Salinity is classified by ppm bands, not by a min/max window
        MetricRange(MetricField.SALINITY.value, None, None, "ppm"),
    )
}

METRIC_UNITS: dict[str, str] = {metric: r.unit for metric, r in METRIC_RANGES.items()}


def parse_metric_value(value: Any) -> float | None:
    """
    Coerce a raw metric value to a finite float.

    This is the one place that decides what "no data" means.

    Args:
        value: Number, numeric string, or anything else received on the wire

    Returns:
        The value as float, or None when it is missing, empty, boolean,
        non-coercible, NaN or infinite
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    if not math.isfinite(number):
        return None
    return number


def get_metric_range(metric: str) -> MetricRange | None:
    """Return the configured range for ``metric`` (aliases accepted)."""
    return METRIC_RANGES.get(get_standard_field(metric))


def salinity_ppm(value: Any) -> float | None:
    """Normalize a salinity reading to ppm.

    Values up to 50 are treated as ppt (0.8, 1.5, 2.5); larger values are
    already ppm (800, 1500, 2500).
    """
    number = parse_metric_value(value)
    if number is None:
        return None
    if number <= SALINITY_PPT_CEILING:
        return number * 1000
    return number


def _salinity_status(value: Any) -> MetricStatus:
    ppm = salinity_ppm(value)
    if ppm is None:
        return MetricStatus.PENDING
    if ppm < SALINITY_SAFE_PPM:
        return MetricStatus.SALINITY_EXCELLENT
    if ppm < SALINITY_STRESS_PPM:
        return MetricStatus.SALINITY_SAFE
    if ppm < SALINITY_HARMFUL_PPM:
        return MetricStatus.SALINITY_STRESS
    return MetricStatus.SALINITY_HARMFUL


def get_metric_status(metric: str, value: Any) -> MetricStatus:
    """
    Classify a value into a badge category.

    Values inside the band are ``appropriate``. Values outside it are
    ``needs_attention`` while the deviation from the violated bound stays
    below 20% of that bound, and ``critical`` beyond. Missing values and
    unknown metrics are ``pending``.

    Args:
        metric: Metric name (aliases accepted)
        value: Raw value

    Returns:
        MetricStatus for the value
    """
    standard = get_standard_field(metric)
    if standard == MetricField.SALINITY.value:
        return _salinity_status(value)

    metric_range = METRIC_RANGES.get(standard)
    number = parse_metric_value(value)
    if metric_range is None or number is None:
        return MetricStatus.PENDING

    if metric_range.contains(number):
        return MetricStatus.APPROPRIATE

    if metric_range.min is not None and number < metric_range.min:
        deviation = (metric_range.min - number) / (abs(metric_range.min) or 1)
    else:
        deviation = (number - metric_range.max) / (abs(metric_range.max) or 1)

    if deviation >= CRITICAL_DEVIATION:
        return MetricStatus.CRITICAL
    return MetricStatus.NEEDS_ATTENTION


def is_out_of_range(metric: str, value: Any) -> bool:
    """
    Return True iff ``value`` lies outside the configured band for ``metric``.

    Missing or non-finite values and unrecognized metrics are never out of
    range.
    """
    standard = get_standard_field(metric)
    if standard == MetricField.SALINITY.value:
        return _salinity_status(value).out_of_range

    metric_range = METRIC_RANGES.get(standard)
    if metric_range is None:
        return False
    number = parse_metric_value(value)
    if number is None:
        return False
    return not metric_range.contains(number)


def format_value(metric: str, value: Any) -> str:
    """
    Render a metric value for display.

    ``None`` renders as ``"-"``; numbers get two decimals and the metric's
    unit (when it has one); anything else falls back to ``str(value)``.
    """
    if value is None:
        return PLACEHOLDER

    standard = get_standard_field(metric)
    if standard == MetricField.SALINITY.value:
        ppm = salinity_ppm(value)
        if ppm is None:
            return str(value)
        return f"{ppm:.0f} ppm"

    number = parse_metric_value(value)
    if number is None:
        return str(value)

    metric_range = METRIC_RANGES.get(standard)
    unit = metric_range.unit if metric_range else ""
    return f"{number:.2f} {unit}" if unit else f"{number:.2f}"
