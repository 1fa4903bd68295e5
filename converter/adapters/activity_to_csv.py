"""
CanonicalActivity -> CSV of per-sample data.

One row per time-series sample:

    activity,segment,set,timestamp,elapsed_sec,heart_rate,power,...

Metric columns are the recorded metrics in canonical order (or the
requested ``fields`` subset). Empty cells mean the metric was not recorded
for that sample.
"""

import csv
import io
import logging
from typing import List, Optional, Sequence

from converter.adapters.results import EncodeResult
from converter.core.units import format_iso_datetime
from domain.diagnostics import DiagnosticCollector
from domain.models import TIME_SERIES_METRICS, CanonicalActivity, DiagnosticCategory

logger = logging.getLogger(__name__)

BASE_COLUMNS = ["activity", "segment", "set", "timestamp", "elapsed_sec"]


def _cell(value: Optional[float], precision: int) -> str:
    if value is None:
        return ""
    value = round(float(value), precision)
    if value.is_integer():
        return str(int(value))
    return str(value)


def _columns(
    activities: Sequence[CanonicalActivity],
    fields: Optional[Sequence[str]],
    diagnostics: DiagnosticCollector,
) -> List[str]:
    if fields:
        known = []
        for name in fields:
            if name in TIME_SERIES_METRICS:
                known.append(name)
            else:
                diagnostics.warning(
                    DiagnosticCategory.ENCODE_UNSUPPORTED,
                    f"Unknown CSV field '{name}' ignored",
                    path="fields",
                )
        return list(dict.fromkeys(known))

    recorded = set()
    for activity in activities:
        for st in activity.all_sets:
            if st.time_series is not None:
                recorded.update(st.time_series.metric_names)
    return [name for name in TIME_SERIES_METRICS if name in recorded]


def activities_to_csv(
    activities: Sequence[CanonicalActivity],
    *,
    fields: Optional[Sequence[str]] = None,
    precision: int = 6,
) -> EncodeResult:
    """
    Write every sample of every activity as a CSV row.

    CSV carries only per-sample data. When no activity has a time series
    the output is None and an encode_unsupported error explains why.
    """
    diagnostics = DiagnosticCollector()

    if not any(activity.has_time_series for activity in activities):
        if any(activity.has_any_telemetry for activity in activities):
            message = (
                "No time-series data found for CSV export; "
                "only summary metrics are available"
            )
        else:
            message = "No telemetry data found for CSV export"
        diagnostics.error(DiagnosticCategory.ENCODE_UNSUPPORTED, message, path="activities")
        return EncodeResult(output=None, diagnostics=list(diagnostics.diagnostics))

    metrics = _columns(activities, fields, diagnostics)
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(BASE_COLUMNS + metrics)

    rows = 0
    for a, activity in enumerate(activities, start=1):
        origin = activity.started_at
        for s, segment in enumerate(activity.segments, start=1):
            for st in segment.sets:
                series = st.time_series
                if series is None or not len(series):
                    continue
                if origin is None:
                    origin = series.timestamps[0]
                columns = [series.column(name) for name in metrics]
                for i, timestamp in enumerate(series.timestamps):
                    elapsed = (timestamp - origin).total_seconds()
                    writer.writerow(
                        [a, s, st.set_number, format_iso_datetime(timestamp), _cell(elapsed, precision)]
                        + [_cell(column[i], precision) for column in columns]
                    )
                    rows += 1

    logger.info(f"Encoded {rows} CSV rows from {len(activities)} activities")
    return EncodeResult(output=buffer.getvalue().encode("utf-8"), diagnostics=list(diagnostics.diagnostics))
