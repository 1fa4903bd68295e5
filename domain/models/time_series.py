"""
Columnar time series.

A TimeSeries holds one shared timestamp array and one array per metric.
Every metric array must be exactly as long as the timestamp array; this is
checked when the model is constructed.

TimeSeriesBuilder is the write side used by decoders: samples are appended
straight into per-metric columns, so no per-sample objects are kept.
"""

from bisect import bisect_left
from datetime import datetime, timezone
from typing import Dict, Iterator, List, Mapping, Optional, Tuple

from pydantic import BaseModel, Field, field_validator, model_validator


# Per-sample metrics the canonical model knows about, in export column order.
TIME_SERIES_METRICS: Tuple[str, ...] = (
    "heart_rate",
    "power",
    "cadence",
    "speed_mps",
    "elevation_m",
    "latitude",
    "longitude",
    "distance_m",
    "temperature_c",
    "grade_percent",
    "respiration_rate",
    "core_temperature_c",
    "muscle_oxygen_percent",
    "power_balance",
    "left_pedal_smoothness",
    "right_pedal_smoothness",
    "left_torque_effectiveness",
    "right_torque_effectiveness",
    "stride_length_m",
    "vertical_oscillation_cm",
    "ground_contact_time_ms",
    "ground_contact_balance",
    "stroke_rate",
    "stroke_count",
    "swolf",
)

_KNOWN_METRICS = frozenset(TIME_SERIES_METRICS)


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class TimeSeries(BaseModel):
    """
    Per-sample data for one set, stored column by column.

    Examples:
        >>> ts = TimeSeries(
        ...     timestamps=[t0, t1, t2],
        ...     metrics={"heart_rate": [120, 124, None]},
        ... )
        >>> ts.column("heart_rate")
        (120.0, 124.0, None)
    """

    model_config = {"frozen": True}

    timestamps: Tuple[datetime, ...] = Field(..., description="Shared sample index (UTC)")
    metrics: Dict[str, Tuple[Optional[float], ...]] = Field(
        default_factory=dict,
        description="Metric name -> values aligned with timestamps",
    )

    @field_validator("timestamps")
    @classmethod
    def normalize_timestamps(cls, v: Tuple[datetime, ...]) -> Tuple[datetime, ...]:
        return tuple(ensure_utc(t) for t in v)

    @model_validator(mode="after")
    def check_columns(self) -> "TimeSeries":
        expected = len(self.timestamps)
        for name, values in self.metrics.items():
            if name not in _KNOWN_METRICS:
                raise ValueError(f"Unknown time-series metric: {name}")
            if len(values) != expected:
                raise ValueError(
                    f"Metric '{name}' has {len(values)} values, "
                    f"expected {expected} (one per timestamp)"
                )
        return self

    def __len__(self) -> int:
        return len(self.timestamps)

    @property
    def metric_names(self) -> List[str]:
        """Metric names in canonical column order."""
        return [name for name in TIME_SERIES_METRICS if name in self.metrics]

    def has_metric(self, name: str) -> bool:
        return name in self.metrics

    def column(self, name: str) -> Tuple[Optional[float], ...]:
        """Values for one metric; an all-None column when it was not recorded."""
        return self.metrics.get(name, (None,) * len(self.timestamps))

    def elapsed_seconds(self) -> List[float]:
        """Seconds since the first sample, one per timestamp."""
        if not self.timestamps:
            return []
        start = self.timestamps[0]
        return [(t - start).total_seconds() for t in self.timestamps]

    def rows(self) -> Iterator[Tuple[datetime, Dict[str, Optional[float]]]]:
        """Iterate samples as (timestamp, {metric: value}) pairs."""
        names = self.metric_names
        for i, timestamp in enumerate(self.timestamps):
            yield timestamp, {name: self.metrics[name][i] for name in names}


class TimeSeriesBuilder:
    """
    Accumulates samples into columns for later slicing into TimeSeries.

    Columns appear the first time a metric has a value and are back-filled
    with None for earlier samples, so all columns stay aligned.
    """

    def __init__(self) -> None:
        self._timestamps: List[datetime] = []
        self._columns: Dict[str, List[Optional[float]]] = {}

    def __len__(self) -> int:
        return len(self._timestamps)

    @property
    def timestamps(self) -> List[datetime]:
        return self._timestamps

    def append(self, timestamp: datetime, values: Mapping[str, Optional[float]]) -> None:
        """Add one sample. Metrics missing from ``values`` are recorded as None."""
        count = len(self._timestamps)
        for name, value in values.items():
            if value is None:
                continue
            if name not in _KNOWN_METRICS:
                raise ValueError(f"Unknown time-series metric: {name}")
            column = self._columns.get(name)
            if column is None:
                column = self._columns[name] = [None] * count
            column.append(float(value))
        self._timestamps.append(ensure_utc(timestamp))
        for column in self._columns.values():
            if len(column) == count:
                column.append(None)

    def index_range(
        self, start: Optional[datetime], end: Optional[datetime]
    ) -> Tuple[int, int]:
        """
        Index bounds of samples with start <= timestamp < end.

        Either bound may be None for an open interval. Assumes samples were
        appended in time order.
        """
        lo = 0 if start is None else bisect_left(self._timestamps, ensure_utc(start))
        hi = len(self._timestamps) if end is None else bisect_left(self._timestamps, ensure_utc(end))
        return lo, max(lo, hi)

    def build(self, start: int = 0, stop: Optional[int] = None) -> Optional[TimeSeries]:
        """
        Slice samples [start, stop) into a TimeSeries.

        Columns with no values inside the window are dropped. Returns None
        for an empty window.
        """
        stop = len(self._timestamps) if stop is None else stop
        if stop <= start:
            return None
        metrics = {}
        for name in TIME_SERIES_METRICS:
            column = self._columns.get(name)
            if column is None:
                continue
            window = column[start:stop]
            if any(v is not None for v in window):
                metrics[name] = tuple(window)
        return TimeSeries(timestamps=tuple(self._timestamps[start:stop]), metrics=metrics)
