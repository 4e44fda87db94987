"""
Slot Aggregator
===============

Turns irregular raw sensor readings into fixed-width display slots.

Bucket edges are anchored to the UTC epoch (``floor(t / width) * width``), not
to the first reading, so repeated calls over a sliding window produce stable
edges. For every bucket and every metric the finite values yield min, mean and
max; a metric without finite values is ``None``. Buckets with no finite value
in any metric are dropped so that charts never show empty bars.

Fixed range selectors map to fixed widths. Custom ``start``..``end`` windows
pick a width from the span: 5 minutes up to an hour, 30 minutes up to a day,
hourly up to a week and daily beyond.

The bucket width is for display grouping only. Which window of data gets
fetched is the backend's decision.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable, Mapping
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Any

from farmwatch.domain.exceptions import ValidationError
from farmwatch.domain.fields import METRICS, normalize_metric_keys
from farmwatch.domain.metric_ranges import is_out_of_range, parse_metric_value
from farmwatch.enums.telemetry import RangeSelector
from farmwatch.schemas.telemetry import MetricStats, RawReading, Slot
from farmwatch.utils.time import coerce_datetime, convert_utc_to_local, format_datetime, format_timestamp_local

logger = logging.getLogger(__name__)

LATEST_LABEL = "Latest"

BUCKET_WIDTHS: dict[RangeSelector, timedelta] = {
    RangeSelector.FIVE_MINUTES: timedelta(minutes=5),
    RangeSelector.FIFTEEN_MINUTES: timedelta(minutes=5),
    RangeSelector.ONE_HOUR: timedelta(minutes=5),
    RangeSelector.ONE_DAY: timedelta(hours=1),
    RangeSelector.TWO_DAYS: timedelta(hours=4),
    RangeSelector.SEVEN_DAYS: timedelta(days=1),
    RangeSelector.THIRTY_DAYS: timedelta(days=7),
}

# Legacy spelling still sent by older dashboards
_SELECTOR_ALIASES = {"now": RangeSelector.LATEST}

# Explicit start/end window; not a RangeSelector, its width depends on the span
CUSTOM_RANGE = "custom"

# (longest span, bucket width) for custom windows; longer spans use daily buckets
CUSTOM_BUCKET_WIDTHS: tuple[tuple[timedelta, timedelta], ...] = (
    (timedelta(hours=1), timedelta(minutes=5)),
    (timedelta(days=1), timedelta(minutes=30)),
    (timedelta(days=7), timedelta(hours=1)),
)
CUSTOM_MAX_BUCKET_WIDTH = timedelta(days=1)


def parse_range_selector(value: RangeSelector | str) -> RangeSelector:
    """
    Normalize a range selector.

    Accepts enum members, their string values, ``"now"`` for ``latest`` and
    tolerates a trailing ``":<digits>"`` suffix copied from browser devtools.

    Raises:
        ValidationError: for anything else
    """
    if isinstance(value, RangeSelector):
        return value
    text = str(value or "").strip()
    head, sep, tail = text.rpartition(":")
    if sep and tail.strip().isdigit():
        text = head.strip()
    if text in _SELECTOR_ALIASES:
        return _SELECTOR_ALIASES[text]
    try:
        return RangeSelector(text)
    except ValueError:
        raise ValidationError(f"Unsupported range selector: {value!r}", detail={"range": value}) from None


def bucket_width(selector: RangeSelector | str) -> timedelta | None:
    """Return the bucket width for ``selector`` (None for ``latest``)."""
    return BUCKET_WIDTHS.get(parse_range_selector(selector))


def custom_bucket_width(span: timedelta) -> timedelta:
    """Bucket width for a custom window spanning ``span`` (bounds inclusive)."""
    for longest, width in CUSTOM_BUCKET_WIDTHS:
        if span <= longest:
            return width
    return CUSTOM_MAX_BUCKET_WIDTH


def label_for_offset_minutes(minutes: int | None) -> str:
    """Render a bucket-end offset from now as ``"Latest"``, ``"15m ago"``, ``"3h ago"``..."""
    if minutes is None or minutes <= 0:
        return LATEST_LABEL
    week = 7 * 24 * 60
    day = 24 * 60
    if minutes % week == 0:
        return f"{minutes // week}w ago"
    if minutes % day == 0:
        return f"{minutes // day}d ago"
    if minutes % 60 == 0:
        return f"{minutes // 60}h ago"
    return f"{minutes}m ago"


def _label_format(width: timedelta) -> str:
    if width < timedelta(hours=4):
        return "%H:%M"
    if width < timedelta(days=1):
        return "%b %d %H:%M"
    return "%b %d"


def _field(reading: Any, name: str) -> Any:
    if isinstance(reading, Mapping):
        return reading.get(name)
    return getattr(reading, name, None)


def _reading_time(reading: Any) -> datetime | None:
    ts = _field(reading, "timestamp")
    if ts is None:
        ts = _field(reading, "time")
    return coerce_datetime(ts)


def _reading_values(reading: Any) -> dict[str, float | None]:
    if isinstance(reading, RawReading):
        # Already coerced on validation
        return reading.metric_values()
    if isinstance(reading, Mapping):
        row = normalize_metric_keys(dict(reading))
        return {metric: parse_metric_value(row.get(metric)) for metric in METRICS}
    return {metric: parse_metric_value(getattr(reading, metric, None)) for metric in METRICS}


def _build_slot(
    label: str,
    start: datetime,
    values: dict[str, list[float]],
    reading_count: int,
    *,
    tz: tzinfo | None,
    relative_label: str | None = None,
) -> Slot | None:
    stats: dict[str, MetricStats | None] = {}
    means: dict[str, float | None] = {}
    for metric in METRICS:
        finite = values.get(metric) or []
        if finite:
            avg = sum(finite) / len(finite)
            stats[metric] = MetricStats(min=min(finite), avg=avg, max=max(finite))
            means[metric] = avg
        else:
            stats[metric] = None
            means[metric] = None

    if all(mean is None for mean in means.values()):
        return None

    return Slot(
        label=label,
        time=start,
        timestamp_local=format_timestamp_local(start, tz),
        stats=stats,
        out_of_range={metric: is_out_of_range(metric, mean) for metric, mean in means.items()},
        reading_count=reading_count,
        relative_label=relative_label,
        **means,
    )


def _latest_slot(readings: list[Any], tz: tzinfo | None) -> list[Slot]:
    timed = [(ts, r) for r in readings if (ts := _reading_time(r)) is not None]
    if not timed:
        return []
    ts, reading = max(timed, key=lambda pair: pair[0])
    values = {metric: [v] for metric, v in _reading_values(reading).items() if v is not None}
    slot = _build_slot(LATEST_LABEL, ts, values, 1, tz=tz, relative_label=LATEST_LABEL)
    return [slot] if slot else []


def _bucketize(
    readings: list[Any],
    width: timedelta,
    *,
    tz: tzinfo | None,
    now: datetime | None,
) -> list[Slot]:
    width_seconds = int(width.total_seconds())
    label_fmt = _label_format(width)
    reference = coerce_datetime(now) if now is not None else None

    buckets: dict[int, dict[str, list[float]]] = defaultdict(lambda: defaultdict(list))
    counts: dict[int, int] = defaultdict(int)
    skipped = 0
    for reading in readings:
        ts = _reading_time(reading)
        if ts is None:
            skipped += 1
            continue
        # Round timestamp down to the bucket boundary
        bucket_epoch = int(ts.timestamp() // width_seconds) * width_seconds
        counts[bucket_epoch] += 1
        for metric, value in _reading_values(reading).items():
            if value is not None:
                buckets[bucket_epoch][metric].append(value)

    if skipped:
        logger.debug("Skipped %d readings without a usable timestamp", skipped)

    slots: list[Slot] = []
    for bucket_epoch in sorted(counts):
        start = datetime.fromtimestamp(bucket_epoch, tz=timezone.utc)
        relative = None
        if reference is not None:
            offset = (reference - (start + width)).total_seconds() // 60
            relative = label_for_offset_minutes(int(offset))
        slot = _build_slot(
            format_datetime(convert_utc_to_local(start, tz), label_fmt),
            start,
            buckets.get(bucket_epoch, {}),
            counts[bucket_epoch],
            tz=tz,
            relative_label=relative,
        )
        if slot is not None:
            slots.append(slot)

    return slots


def aggregate(
    readings: Iterable[RawReading | Mapping[str, Any]],
    range_selector: RangeSelector | str,
    *,
    tz: tzinfo | None = None,
    now: datetime | None = None,
) -> list[Slot]:
    """
    Aggregate raw readings into chronologically ordered display slots.

    Args:
        readings: RawReading models or plain wire mappings, in any order
        range_selector: One of ``latest, 5m, 15m, 1h, 24h, 2d, 7d, 30d``
        tz: Display timezone for labels (None = system local)
        now: Reference instant for ``relative_label``; omitted means no relative labels

    Returns:
        One Slot per non-empty bucket, ascending by bucket start. For
        ``latest`` at most one slot holding the most recent reading.

    Raises:
        ValidationError: if ``range_selector`` is not supported
    """
    selector = parse_range_selector(range_selector)
    readings = list(readings)
    if not readings:
        return []

    if selector is RangeSelector.LATEST:
        return _latest_slot(readings, tz)

    return _bucketize(readings, BUCKET_WIDTHS[selector], tz=tz, now=now)


def aggregate_custom(
    readings: Iterable[RawReading | Mapping[str, Any]],
    start: datetime | str | None = None,
    end: datetime | str | None = None,
    *,
    tz: tzinfo | None = None,
    now: datetime | None = None,
) -> list[Slot]:
    """
    Aggregate readings of a custom ``start``..``end`` window.

    The bucket width follows :func:`custom_bucket_width`. Without a usable
    window the span of the readings' own timestamps is used instead.
    """
    readings = list(readings)
    if not readings:
        return []

    window_start, window_end = coerce_datetime(start), coerce_datetime(end)
    if window_start is None or window_end is None:
        times = [ts for r in readings if (ts := _reading_time(r)) is not None]
        if not times:
            return []
        window_start, window_end = min(times), max(times)

    return _bucketize(readings, custom_bucket_width(window_end - window_start), tz=tz, now=now)
