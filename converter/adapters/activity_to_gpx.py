"""
CanonicalActivity -> GPX 1.1.

One <trk> per activity and one <trkseg> per set. Positions come from the
set's time series; when no set carries positions the activity's GPS route
is written as a single segment. GPX has no place for physiological data, so
every such metric present is reported once as encode_unsupported.
"""

import logging
from typing import List, Optional, Sequence

import gpxpy
import gpxpy.gpx

from converter.adapters.results import EncodeResult
from converter.core.vocabulary import VocabularyMapper, get_mapper
from domain.diagnostics import DiagnosticCollector
from domain.models import CanonicalActivity, DiagnosticCategory, TimeSeries

logger = logging.getLogger(__name__)

CREATOR = "activity-converter"
POSITION_METRICS = frozenset({"latitude", "longitude", "elevation_m"})


class _GpxEncoder:
    def __init__(self, diagnostics: DiagnosticCollector, mapper: VocabularyMapper):
        self.diagnostics = diagnostics
        self.mapper = mapper
        self.points = 0

    def unsupported(self, key: str, message: str, path: str) -> None:
        self.diagnostics.report_once(
            ("gpx_export", key), DiagnosticCategory.ENCODE_UNSUPPORTED, message, path=path
        )

    def encode(self, activities: Sequence[CanonicalActivity]) -> bytes:
        gpx = gpxpy.gpx.GPX()
        gpx.creator = CREATOR
        if activities and activities[0].started_at is not None:
            gpx.time = activities[0].started_at

        for i, activity in enumerate(activities):
            gpx.tracks.append(self._track(activity, f"activities[{i}]"))

        if not self.points:
            self.diagnostics.warning(
                DiagnosticCategory.ENCODE_UNSUPPORTED,
                "No GPS positions to export; wrote a GPX document without track points",
                path="activities",
            )
        return gpx.to_xml(version="1.1").encode("utf-8")

    def _track(self, activity: CanonicalActivity, path: str) -> gpxpy.gpx.GPXTrack:
        self._report_losses(activity, path)
        track = gpxpy.gpx.GPXTrack(name=activity.label, description=activity.notes)
        track.type = self.mapper.export_sport(
            "gpx", activity.sport, self.diagnostics, path=f"{path}.sport"
        )

        for st in activity.all_sets:
            if st.has_time_series:
                segment = self._series_segment(st.time_series)
                if segment.points:
                    track.segments.append(segment)

        if not track.segments and activity.gps_route is not None and activity.gps_route.has_positions:
            segment = gpxpy.gpx.GPXTrackSegment()
            for position in activity.gps_route.positions:
                segment.points.append(gpxpy.gpx.GPXTrackPoint(
                    latitude=position.latitude_deg,
                    longitude=position.longitude_deg,
                    elevation=position.elevation_m,
                    time=position.timestamp,
                ))
            track.segments.append(segment)

        self.points += sum(len(s.points) for s in track.segments)
        return track

    def _series_segment(self, series: TimeSeries) -> gpxpy.gpx.GPXTrackSegment:
        segment = gpxpy.gpx.GPXTrackSegment()
        latitudes = series.column("latitude")
        longitudes = series.column("longitude")
        elevations = series.column("elevation_m")
        for timestamp, lat, lon, elevation in zip(series.timestamps, latitudes, longitudes, elevations):
            if lat is None or lon is None:
                continue
            segment.points.append(gpxpy.gpx.GPXTrackPoint(
                latitude=lat, longitude=lon, elevation=elevation, time=timestamp
            ))
        return segment

    def _report_losses(self, activity: CanonicalActivity, path: str) -> None:
        lost: List[str] = []
        for st in activity.all_sets:
            if st.time_series is not None:
                lost.extend(n for n in st.time_series.metric_names if n not in POSITION_METRICS)
        for name in dict.fromkeys(lost):
            self.unsupported(
                f"metric:{name}",
                f"GPX has no field for '{name}'; per-sample values dropped",
                f"{path}.time_series.{name}",
            )

        aggregates = not activity.telemetry.is_empty or any(
            not segment.telemetry.is_empty for segment in activity.segments
        )
        if aggregates:
            self.unsupported(
                "telemetry", "GPX has no summary metrics; aggregate telemetry dropped",
                f"{path}.telemetry",
            )
        if activity.transitions:
            self.unsupported(
                "transitions", "GPX has no multisport structure; transitions dropped",
                f"{path}.segments",
            )
        if any(st.swim_lengths for st in activity.all_sets):
            self.unsupported(
                "swim_lengths", "GPX has no per-length swim data; swim lengths dropped",
                f"{path}.segments",
            )


def activities_to_gpx(
    activities: Sequence[CanonicalActivity],
    *,
    mapper: Optional[VocabularyMapper] = None,
) -> EncodeResult:
    """Encode activities as one GPX document, one track each."""
    diagnostics = DiagnosticCollector()
    output = _GpxEncoder(diagnostics, mapper or get_mapper()).encode(activities)
    logger.info(f"Encoded {len(activities)} activities as GPX ({len(diagnostics)} diagnostics)")
    return EncodeResult(output=output, diagnostics=list(diagnostics.diagnostics))
