"""
Unit and coordinate normalization.

Pure functions that turn device-native encodings into canonical units
(decimal degrees, UTC datetimes, metres, metres per second, kilograms).
They never decide which unit a value is in; callers pass the unit the
source format declares.

The value-range helpers at the end let decoders drop one bad reading with a
warning instead of failing the whole document.
"""

from datetime import datetime, timedelta, timezone
from typing import Dict, Mapping, Optional

from pydantic import ValidationError

from domain.diagnostics import DiagnosticCollector
from domain.models import DiagnosticCategory, DistanceUnit, Telemetry, ensure_utc


SEMICIRCLE_MIN = -(2**31)
SEMICIRCLE_MAX = 2**31 - 1
DEGREES_PER_SEMICIRCLE = 180.0 / 2**31

# FIT timestamps count seconds from 1989-12-31T00:00:00Z.
FIT_EPOCH = datetime(1989, 12, 31, tzinfo=timezone.utc)
FIT_EPOCH_UNIX_OFFSET = 631065600
FIT_TIMESTAMP_MAX = 2**32 - 1

METERS_PER_MILE = 1609.344
METERS_PER_YARD = 0.9144
METERS_PER_FOOT = 0.3048
KG_PER_LB = 0.45359237

_METERS_PER_UNIT = {
    DistanceUnit.METERS: 1.0,
    DistanceUnit.KILOMETERS: 1000.0,
    DistanceUnit.YARDS: METERS_PER_YARD,
    DistanceUnit.MILES: METERS_PER_MILE,
    DistanceUnit.FEET: METERS_PER_FOOT,
}


# =============================================================================
# Coordinates
# =============================================================================


def semicircles_to_degrees(
    raw: int,
    diagnostics: Optional[DiagnosticCollector] = None,
    path: str = "",
) -> float:
    """
    Convert a signed 32-bit semicircle angle to decimal degrees.

    Values outside the signed 32-bit domain are clamped to it and reported
    as a warning.
    """
    value = int(raw)
    if value < SEMICIRCLE_MIN or value > SEMICIRCLE_MAX:
        clamped = max(SEMICIRCLE_MIN, min(SEMICIRCLE_MAX, value))
        if diagnostics is not None:
            diagnostics.warning(
                DiagnosticCategory.DECODE_ERROR,
                f"Semicircle value {value} outside signed 32-bit range; clamped to {clamped}",
                path=path,
            )
        value = clamped
    return value * DEGREES_PER_SEMICIRCLE


def degrees_to_semicircles(degrees: float) -> int:
    """Convert decimal degrees to the nearest semicircle value."""
    value = int(round(degrees / DEGREES_PER_SEMICIRCLE))
    return max(SEMICIRCLE_MIN, min(SEMICIRCLE_MAX, value))


# =============================================================================
# Time
# =============================================================================


def fit_timestamp_to_datetime(
    ticks: int,
    diagnostics: Optional[DiagnosticCollector] = None,
    path: str = "",
    previous: Optional[datetime] = None,
) -> Optional[datetime]:
    """
    Convert seconds since the FIT epoch to a UTC datetime.

    Args:
        ticks: Raw FIT timestamp.
        diagnostics: Collector for out-of-range and ordering errors.
        path: Source path for diagnostics.
        previous: Prior timestamp in the same segment; a result earlier than
            this is reported as a non-monotonic timestamp.

    Returns:
        The UTC datetime, or None when ``ticks`` is negative or overflows the
        32-bit FIT range.
    """
    value = int(ticks)
    if value < 0 or value > FIT_TIMESTAMP_MAX:
        if diagnostics is not None:
            reason = "negative" if value < 0 else "beyond the 32-bit FIT range"
            diagnostics.error(
                DiagnosticCategory.DECODE_ERROR,
                f"Timestamp {value} is {reason}",
                path=path,
            )
        return None

    result = FIT_EPOCH + timedelta(seconds=value)
    if previous is not None and result < ensure_utc(previous):
        if diagnostics is not None:
            diagnostics.error(
                DiagnosticCategory.DECODE_ERROR,
                f"Timestamp {result.isoformat()} goes backwards "
                f"(previous {ensure_utc(previous).isoformat()})",
                path=path,
            )
    return result


def datetime_to_fit_timestamp(value: datetime) -> int:
    """Seconds since the FIT epoch for ``value``."""
    return int((ensure_utc(value) - FIT_EPOCH).total_seconds())


def parse_iso_datetime(text: str) -> datetime:
    """
    Parse an ISO-8601 timestamp as used by TCX/GPX into a UTC datetime.

    Raises:
        ValueError: If the text is not a valid timestamp.
    """
    cleaned = text.strip()
    if cleaned.endswith("Z") or cleaned.endswith("z"):
        cleaned = cleaned[:-1] + "+00:00"
    return ensure_utc(datetime.fromisoformat(cleaned))


def format_iso_datetime(value: datetime) -> str:
    """UTC ISO-8601 with a trailing Z, the form TCX/GPX consumers expect."""
    text = ensure_utc(value).isoformat()
    return text.replace("+00:00", "Z")


# =============================================================================
# Distance, speed, mass
# =============================================================================


def convert_distance(value: float, from_unit: DistanceUnit, to_unit: DistanceUnit) -> float:
    """Linear conversion between any two distance units."""
    return value * _METERS_PER_UNIT[from_unit] / _METERS_PER_UNIT[to_unit]


def meters_to_kilometers(meters: float) -> float:
    return meters / 1000.0


def meters_to_miles(meters: float) -> float:
    return meters / METERS_PER_MILE


def miles_to_meters(miles: float) -> float:
    return miles * METERS_PER_MILE


def yards_to_meters(yards: float) -> float:
    return yards * METERS_PER_YARD


def meters_to_yards(meters: float) -> float:
    return meters / METERS_PER_YARD


def feet_to_meters(feet: float) -> float:
    return feet * METERS_PER_FOOT


def mps_to_kph(mps: float) -> float:
    return mps * 3.6


def kph_to_mps(kph: float) -> float:
    return kph / 3.6


def mps_to_mph(mps: float) -> float:
    return mps * 3600.0 / METERS_PER_MILE


def kg_to_lb(kg: float) -> float:
    return kg / KG_PER_LB


def lb_to_kg(lb: float) -> float:
    return lb * KG_PER_LB


# =============================================================================
# Value ranges
# =============================================================================

# Per-sample metrics that cannot be negative.
NON_NEGATIVE_METRICS = frozenset({
    "heart_rate",
    "power",
    "cadence",
    "speed_mps",
    "distance_m",
    "respiration_rate",
    "stroke_rate",
    "stroke_count",
    "swolf",
})


def valid_position(latitude: float, longitude: float) -> bool:
    return -90.0 <= latitude <= 90.0 and -180.0 <= longitude <= 180.0


def non_negative(
    value: Optional[float],
    diagnostics: DiagnosticCollector,
    path: str,
) -> Optional[float]:
    """Return ``value``, or None with a decode_error warning when it is negative."""
    if value is None or value >= 0:
        return value
    diagnostics.warning(
        DiagnosticCategory.DECODE_ERROR,
        f"Negative value {value} dropped",
        path=path,
    )
    return None


def checked_sample(
    sample: Dict[str, Optional[float]],
    diagnostics: DiagnosticCollector,
    path: str,
) -> Dict[str, Optional[float]]:
    """
    Remove negative readings of metrics that cannot be negative.

    Each metric is reported once per run, at the first sample it was seen in.
    """
    for name in [n for n, v in sample.items() if n in NON_NEGATIVE_METRICS and v is not None and v < 0]:
        diagnostics.report_once(
            ("negative_sample", name),
            DiagnosticCategory.DECODE_ERROR,
            f"Negative {name} samples dropped",
            path=path,
        )
        del sample[name]
    return sample


def checked_telemetry(
    fields: Mapping[str, Optional[float]],
    diagnostics: DiagnosticCollector,
    path: str,
) -> Telemetry:
    """
    Build Telemetry from source values one field at a time.

    A value the field rejects (a negative calorie count, say) is dropped with
    a decode_error warning at ``<path>.<field>``; the other fields are kept.
    """
    values: Dict[str, float] = {}
    for name, value in fields.items():
        if value is None:
            continue
        try:
            Telemetry(**{name: value})
        except ValidationError as e:
            diagnostics.warning(
                DiagnosticCategory.DECODE_ERROR,
                f"Invalid {name} {value} dropped: {e.errors()[0].get('msg', e)}",
                path=f"{path}.{name}",
            )
            continue
        values[name] = value
    return Telemetry(**values)
