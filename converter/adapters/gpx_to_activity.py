"""
GPX -> CanonicalActivity.

Each <trk> becomes one activity; its <trkseg> elements become sets. The
sport comes from <type>, falling back to keywords in the track name and
description. Garmin TrackPointExtension values (hr, cad, atemp) and a bare
<power> extension are imported into the time series.
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional, Tuple

import gpxpy
import gpxpy.gpx
from pydantic import ValidationError

from converter.adapters.results import DecodeResult
from converter.core.units import checked_sample, valid_position
from converter.core.vocabulary import VocabularyMapper, get_mapper
from domain.diagnostics import DiagnosticCollector
from domain.models import (
    ActivitySet,
    CanonicalActivity,
    DeviceInfo,
    DeviceType,
    DiagnosticCategory,
    GpsPosition,
    GpsRoute,
    Segment,
    Sport,
    Telemetry,
    TimeSeries,
    TimeSeriesBuilder,
    ensure_utc,
)

logger = logging.getLogger(__name__)

# Extension leaf element (local name) -> time-series metric
EXTENSION_METRICS: Dict[str, str] = {
    "hr": "heart_rate",
    "heartrate": "heart_rate",
    "cad": "cadence",
    "cadence": "cadence",
    "atemp": "temperature_c",
    "temp": "temperature_c",
    "power": "power",
    "speed": "speed_mps",
}


def _local(tag) -> str:
    if not isinstance(tag, str):
        return ""
    return tag.rsplit("}", 1)[-1]


def _column_stats(series: Optional[TimeSeries], name: str) -> Tuple[Optional[float], Optional[float]]:
    """(mean, max) of one column, ignoring gaps."""
    if series is None:
        return None, None
    values = [v for v in series.column(name) if v is not None]
    if not values:
        return None, None
    return sum(values) / len(values), max(values)


def _series_telemetry(series: Optional[TimeSeries], distance: Optional[float]) -> Telemetry:
    hr_avg, hr_max = _column_stats(series, "heart_rate")
    power_avg, power_max = _column_stats(series, "power")
    cadence_avg, cadence_max = _column_stats(series, "cadence")
    speed_avg, speed_max = _column_stats(series, "speed_mps")
    temperature, _ = _column_stats(series, "temperature_c")
    return Telemetry(
        heart_rate_avg=hr_avg,
        heart_rate_max=hr_max,
        power_avg=power_avg,
        power_max=power_max,
        cadence_avg=cadence_avg,
        cadence_max=cadence_max,
        speed_avg_mps=speed_avg,
        speed_max_mps=speed_max,
        temperature_c=temperature,
        distance_m=distance,
    )


class _GpxDecoder:
    def __init__(self, diagnostics: DiagnosticCollector, mapper: VocabularyMapper, summary_only: bool):
        self.diagnostics = diagnostics
        self.mapper = mapper
        self.summary_only = summary_only
        self.untimed_points = 0
        self.skipped_points = 0

    def decode(self, gpx: gpxpy.gpx.GPX) -> List[CanonicalActivity]:
        if gpx.routes:
            self.diagnostics.warning(
                DiagnosticCategory.MAPPING_GAP,
                f"GPX document has {len(gpx.routes)} route(s); planned routes are not imported",
                path="rte",
            )
        if gpx.waypoints:
            self.diagnostics.warning(
                DiagnosticCategory.MAPPING_GAP,
                f"GPX document has {len(gpx.waypoints)} waypoint(s); waypoints are not imported",
                path="wpt",
            )
        if not gpx.tracks:
            self.diagnostics.error(
                DiagnosticCategory.DECODE_ERROR,
                "GPX document contains no tracks",
                path="trk",
            )
            return []

        device = None
        if gpx.creator:
            device = DeviceInfo(device_index=0, device_type=DeviceType.RECORDER, product=gpx.creator)

        activities = [
            self._track(track, f"trk[{i}]", gpx.time, device)
            for i, track in enumerate(gpx.tracks)
        ]

        if self.untimed_points:
            self.diagnostics.warning(
                DiagnosticCategory.DECODE_ERROR,
                f"{self.untimed_points} track points have no time; "
                f"kept in the route but left out of the time series",
                path="trk",
            )
        if self.skipped_points:
            self.diagnostics.warning(
                DiagnosticCategory.TIME_SERIES_SKIPPED,
                f"Summary-only mode: {self.skipped_points} track points were not imported",
                path="trk",
            )
        return activities

    def _sport(self, track: gpxpy.gpx.GPXTrack, path: str) -> Sport:
        if track.type:
            return self.mapper.resolve_sport(
                "gpx", track.type, diagnostics=self.diagnostics, path=f"{path}/type"
            )
        inferred = self.mapper.infer_sport_from_text(track.name, track.description)
        if inferred is not None:
            return inferred
        self.diagnostics.warning(
            DiagnosticCategory.INFERENCE_UNCERTAIN,
            "Track has no <type> and no sport keyword in its name; classified as other",
            path=path,
        )
        return Sport.OTHER

    def _track(
        self,
        track: gpxpy.gpx.GPXTrack,
        path: str,
        document_time: Optional[datetime],
        device: Optional[DeviceInfo],
    ) -> CanonicalActivity:
        sport = self._sport(track, path)
        positions: List[GpsPosition] = []
        sets: List[ActivitySet] = []
        previous: List[Optional[datetime]] = [None]

        for j, track_segment in enumerate(track.segments):
            sets.append(self._segment(track_segment, j + 1, f"{path}/trkseg[{j}]", positions, previous))

        started_at = next((s.started_at for s in sets if s.started_at is not None), None)
        if started_at is None and document_time is not None:
            started_at = ensure_utc(document_time)
        if started_at is None:
            self.diagnostics.error(
                DiagnosticCategory.DECODE_ERROR,
                "Track has no timestamps; start time unknown",
                path=path,
            )

        durations = [s.duration_sec for s in sets if s.duration_sec is not None]
        distances = [s.distance_m for s in sets if s.distance_m is not None]
        distance = sum(distances) if distances else None
        telemetry = Telemetry.merge(
            [(s.telemetry, s.duration_sec) for s in sets if s.telemetry is not None]
        )
        segment = Segment(
            sport=sport,
            sets=sets,
            telemetry=telemetry,
            started_at=started_at,
            duration_sec=sum(durations) if durations else None,
            distance_m=distance,
        )
        route = GpsRoute(positions=positions, total_distance_m=distance) if positions else None
        return CanonicalActivity(
            started_at=started_at,
            duration_sec=segment.duration_sec,
            sport=sport,
            title=track.name,
            notes=track.description,
            segments=[segment],
            telemetry=telemetry,
            gps_route=route,
            devices=[device] if device else [],
            source_format="gpx",
        )

    def _segment(
        self,
        track_segment: gpxpy.gpx.GPXTrackSegment,
        number: int,
        path: str,
        positions: List[GpsPosition],
        previous: List[Optional[datetime]],
    ) -> ActivitySet:
        builder = TimeSeriesBuilder()
        times: List[datetime] = []

        for k, point in enumerate(track_segment.points):
            timestamp = ensure_utc(point.time) if point.time is not None else None
            if timestamp is not None:
                times.append(timestamp)
            if self.summary_only:
                self.skipped_points += 1
                continue

            point_path = f"{path}/trkpt[{k}]"
            sample = checked_sample(self._extensions(point, point_path), self.diagnostics, point_path)
            sample["elevation_m"] = point.elevation
            if valid_position(point.latitude, point.longitude):
                sample["latitude"] = point.latitude
                sample["longitude"] = point.longitude
                positions.append(GpsPosition(
                    latitude_deg=point.latitude,
                    longitude_deg=point.longitude,
                    timestamp=timestamp,
                    elevation_m=point.elevation,
                    speed_mps=sample.get("speed_mps"),
                    heart_rate=sample.get("heart_rate"),
                    power=sample.get("power"),
                    cadence=sample.get("cadence"),
                    temperature_c=sample.get("temperature_c"),
                ))
            else:
                self.diagnostics.warning(
                    DiagnosticCategory.DECODE_ERROR,
                    f"Position {point.latitude}, {point.longitude} out of range; dropped",
                    path=point_path,
                )

            if timestamp is None:
                self.untimed_points += 1
                continue
            if previous[0] is not None and timestamp < previous[0]:
                self.diagnostics.error(
                    DiagnosticCategory.DECODE_ERROR,
                    f"Track point time {timestamp.isoformat()} goes backwards",
                    path=f"{path}/trkpt[{k}]/time",
                )
                continue
            previous[0] = timestamp
            builder.append(timestamp, sample)

        series = builder.build() if len(builder) else None
        distance = track_segment.length_2d() if track_segment.points else None
        duration = (times[-1] - times[0]).total_seconds() if len(times) > 1 else None
        telemetry = _series_telemetry(series, distance)
        return ActivitySet(
            set_number=number,
            started_at=times[0] if times else None,
            duration_sec=duration if duration is None or duration >= 0 else None,
            distance_m=distance,
            telemetry=None if telemetry.is_empty else telemetry,
            time_series=series,
        )

    def _extensions(self, point: gpxpy.gpx.GPXTrackPoint, path: str) -> Dict[str, Optional[float]]:
        values: Dict[str, Optional[float]] = {}
        for extension in point.extensions or []:
            for element in extension.iter():
                name = _local(element.tag)
                if not name or len(element):
                    continue
                metric = EXTENSION_METRICS.get(name.lower())
                if metric is None:
                    self.diagnostics.report_once(
                        ("gpx_extension", name),
                        DiagnosticCategory.MAPPING_GAP,
                        f"GPX extension <{name}> has no canonical equivalent",
                        path=f"{path}/extensions/{name}",
                    )
                    continue
                try:
                    values[metric] = float((element.text or "").strip())
                except ValueError:
                    self.diagnostics.report_once(
                        ("gpx_extension_value", name),
                        DiagnosticCategory.DECODE_ERROR,
                        f"GPX extension <{name}> has a non-numeric value '{element.text}'",
                        path=f"{path}/extensions/{name}",
                    )
        return values


def gpx_to_activities(
    data: bytes,
    *,
    summary_only: bool = False,
    mapper: Optional[VocabularyMapper] = None,
) -> DecodeResult:
    """Decode a GPX document; one activity per track."""
    diagnostics = DiagnosticCollector()
    try:
        gpx = gpxpy.parse(data.decode("utf-8-sig"))
    except (UnicodeDecodeError, gpxpy.gpx.GPXException) as e:
        diagnostics.error(DiagnosticCategory.DECODE_ERROR, f"Malformed GPX: {e}", path="file")
        return DecodeResult(diagnostics=list(diagnostics.diagnostics))

    # Bad values are dropped point by point; this only catches what slips past.
    activities: List[CanonicalActivity] = []
    try:
        activities = _GpxDecoder(diagnostics, mapper or get_mapper(), summary_only).decode(gpx)
    except ValidationError as e:
        diagnostics.error(
            DiagnosticCategory.DECODE_ERROR,
            f"GPX data produced an invalid activity: {e.errors()[0].get('msg', e)}",
            path="file",
        )

    logger.info(f"Decoded {len(activities)} activities from GPX ({len(diagnostics)} diagnostics)")
    return DecodeResult(activities=activities, diagnostics=list(diagnostics.diagnostics))
