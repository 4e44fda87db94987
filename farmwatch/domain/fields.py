from enum import Enum


class MetricField(str, Enum):
    """Standardized soil/climate metric names used throughout the access layer."""

    TEMPERATURE = "temperature"
    MOISTURE = "moisture"
    EC = "ec"
    PH = "ph"
    NITROGEN = "n"
    PHOSPHORUS = "p"
    POTASSIUM = "k"
    SALINITY = "salinity"


# Metrics carried by readings and aggregated into slots, in display order.
METRICS: tuple[str, ...] = tuple(field.value for field in MetricField)


# Aliases mapping: alias -> standard_field
# The backend collector and older payloads use several spellings.
FIELD_ALIASES: dict[str, str] = {
    # Temperature
    "temp": MetricField.TEMPERATURE,
    "soil_temp": MetricField.TEMPERATURE,
    # Moisture (older payloads used humidity for soil moisture)
    "humidity": MetricField.MOISTURE,
    "soil_moisture": MetricField.MOISTURE,
    # pH (InfluxDB may return any casing)
    "pH": MetricField.PH,
    "PH": MetricField.PH,
    "Ph": MetricField.PH,
    # Nutrients
    "nitrogen": MetricField.NITROGEN,
    "phosphorus": MetricField.PHOSPHORUS,
    "potassium": MetricField.POTASSIUM,
    # EC
    "ec_us_cm": MetricField.EC,
}


def get_standard_field(field_name: str) -> str:
    """
    Returns the standardized field name for a given alias.
    If no alias is found, returns the original field_name.
    """
    res = FIELD_ALIASES.get(field_name, field_name)
    return str(getattr(res, "value", res))


def normalize_metric_keys(row: dict) -> dict:
    """Return a copy of ``row`` with metric aliases folded onto standard names.

    A non-null standard key wins over any of its aliases; an alias only fills
    a standard key that is missing or null.
    """
    normalized: dict = {}
    for key, value in row.items():
        standard = get_standard_field(key)
        if standard == key:
            if value is not None or key not in normalized:
                normalized[key] = value
        elif normalized.get(standard) is None and row.get(standard) is None:
            normalized[standard] = value
    return normalized
