"""
Canonical activity models.

These pydantic models are the shared in-memory representation that every
decoder produces and every encoder consumes. They are independent of any
file format and are immutable once constructed.

- CanonicalActivity: the aggregate root (one imported/exported activity)
- Segment: a single-sport portion; Transition links multisport segments
- ActivitySet: a lap/interval with optional swim lengths and time series
- Telemetry: sparse aggregate metrics
- TimeSeries: columnar per-sample data (TimeSeriesBuilder writes it)
- GpsRoute / GpsPosition: route with derived aggregates
- DeviceInfo: recording devices and sensors
- Diagnostic: one warning or error from a conversion run

Usage:
    >>> from domain.models import CanonicalActivity, Segment, ActivitySet, Sport

    >>> activity = CanonicalActivity(
    ...     started_at=datetime(2024, 6, 1, 7, 0, tzinfo=timezone.utc),
    ...     sport=Sport.CYCLING,
    ...     segments=[Segment(sport=Sport.CYCLING, sets=[ActivitySet(duration_sec=1800)])],
    ... )

    >>> # Serialize to JSON and back
    >>> activity = CanonicalActivity.model_validate_json(activity.model_dump_json())
"""

from domain.models.activity import CanonicalActivity
from domain.models.device import DeviceInfo
from domain.models.diagnostic import Diagnostic, DiagnosticCategory, Severity
from domain.models.gps import BoundingBox, GpsPosition, GpsRoute
from domain.models.segment import ActivitySet, Segment, Transition
from domain.models.sport import DeviceType, DistanceUnit, Sport, StrokeType
from domain.models.swimming import PoolConfig, SwimLengthDetail
from domain.models.telemetry import Telemetry
from domain.models.time_series import (
    TIME_SERIES_METRICS,
    TimeSeries,
    TimeSeriesBuilder,
    ensure_utc,
)

__all__ = [
    # Main entities
    "CanonicalActivity",
    "Segment",
    "ActivitySet",
    "Transition",
    "Telemetry",
    "TimeSeries",
    "TimeSeriesBuilder",
    "TIME_SERIES_METRICS",
    "SwimLengthDetail",
    "PoolConfig",
    "GpsRoute",
    "GpsPosition",
    "BoundingBox",
    "DeviceInfo",
    "Diagnostic",
    # Enums
    "Sport",
    "StrokeType",
    "DistanceUnit",
    "DeviceType",
    "Severity",
    "DiagnosticCategory",
    # Helpers
    "ensure_utc",
]
