"""
TCX (Training Center XML) -> CanonicalActivity.

Each <Activity> becomes one activity with a single segment whose sets are
the laps. A <MultiSportSession> becomes one multi-discipline activity whose
segments are the contained activities, linked by the transition laps.

Elements are matched by local name so files written with unusual namespace
prefixes (or none) still decode. Elements with no canonical equivalent are
reported once per element name.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from lxml import etree
from pydantic import ValidationError

from converter.adapters.results import DecodeResult
from converter.core.units import (
    checked_sample,
    checked_telemetry,
    non_negative,
    parse_iso_datetime,
    valid_position,
)
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
    TimeSeriesBuilder,
    Transition,
)

logger = logging.getLogger(__name__)

TCX_NS = "http://www.garmin.com/xmlschemas/TrainingCenterDatabase/v2"
ACTIVITY_EXT_NS = "http://www.garmin.com/xmlschemas/ActivityExtension/v2"

ROOT_CHILDREN = {"Activities", "Author", "Extensions"}
ACTIVITIES_CHILDREN = {"Activity", "MultiSportSession"}
ACTIVITY_CHILDREN = {"Id", "Lap", "Notes", "Creator", "Extensions"}
LAP_CHILDREN = {
    "TotalTimeSeconds",
    "DistanceMeters",
    "MaximumSpeed",
    "Calories",
    "AverageHeartRateBpm",
    "MaximumHeartRateBpm",
    "Intensity",
    "Cadence",
    "TriggerMethod",
    "Track",
    "Notes",
    "Extensions",
}
LAP_EXTENSION_CHILDREN = {
    "AvgSpeed",
    "AvgRunCadence",
    "MaxRunCadence",
    "AvgWatts",
    "MaxWatts",
    "MaxBikeCadence",
}
TRACKPOINT_CHILDREN = {
    "Time",
    "Position",
    "AltitudeMeters",
    "DistanceMeters",
    "HeartRateBpm",
    "Cadence",
    "SensorState",
    "Extensions",
}
TRACKPOINT_EXTENSION_CHILDREN = {"Speed", "Watts", "RunCadence"}


# =============================================================================
# Element helpers
# =============================================================================


def _local(tag) -> str:
    if not isinstance(tag, str):
        return ""
    return etree.QName(tag).localname


def _child(element, name: str):
    if element is None:
        return None
    for child in element:
        if _local(child.tag) == name:
            return child
    return None


def _children(element, name: str) -> list:
    if element is None:
        return []
    return [child for child in element if _local(child.tag) == name]


def _find(element, *names: str):
    for name in names:
        element = _child(element, name)
        if element is None:
            return None
    return element


def _text(element, *names: str) -> Optional[str]:
    found = _find(element, *names)
    if found is None or found.text is None:
        return None
    text = found.text.strip()
    return text or None


def _float(element, *names: str) -> Optional[float]:
    text = _text(element, *names)
    if text is None:
        return None
    try:
        return float(text)
    except ValueError:
        return None


def _extension(element, name: str):
    """The first child of <Extensions> with the given local name (LX, TPX)."""
    return _find(element, "Extensions", name)


# =============================================================================
# Decoder
# =============================================================================


@dataclass
class _ActivityParts:
    segment: Segment
    started_at: Optional[datetime]
    positions: List[GpsPosition] = field(default_factory=list)
    notes: Optional[str] = None
    device: Optional[DeviceInfo] = None


class _TcxDecoder:
    def __init__(self, diagnostics: DiagnosticCollector, mapper: VocabularyMapper, summary_only: bool):
        self.diagnostics = diagnostics
        self.mapper = mapper
        self.summary_only = summary_only
        self.skipped_points = 0

    def check_children(self, element, known: set, path: str) -> None:
        for child in element:
            name = _local(child.tag)
            if name and name not in known:
                self.diagnostics.report_once(
                    ("tcx_element", _local(element.tag), name),
                    DiagnosticCategory.MAPPING_GAP,
                    f"TCX element <{name}> has no canonical equivalent",
                    path=f"{path}/{name}",
                )

    # -------------------------------------------------------------------------
    # Document
    # -------------------------------------------------------------------------

    def decode(self, root) -> List[CanonicalActivity]:
        self.check_children(root, ROOT_CHILDREN, "TrainingCenterDatabase")
        activities_el = _child(root, "Activities")
        activities: List[CanonicalActivity] = []
        if activities_el is not None:
            self.check_children(activities_el, ACTIVITIES_CHILDREN, "Activities")
            for i, element in enumerate(activities_el):
                name = _local(element.tag)
                if name == "Activity":
                    path = f"Activities/Activity[{i}]"
                    activities.append(self._single_activity(element, path))
                elif name == "MultiSportSession":
                    path = f"Activities/MultiSportSession[{i}]"
                    activities.append(self._multisport_activity(element, path))

        if self.summary_only and self.skipped_points:
            self.diagnostics.warning(
                DiagnosticCategory.TIME_SERIES_SKIPPED,
                f"Summary-only mode: {self.skipped_points} trackpoints were not imported",
                path="Activities",
            )
        if not activities:
            self.diagnostics.error(
                DiagnosticCategory.DECODE_ERROR,
                "TCX document contains no activities",
                path="Activities",
            )
        return activities

    def _single_activity(self, element, path: str) -> CanonicalActivity:
        parts = self._activity_parts(element, path)
        segment = parts.segment
        return CanonicalActivity(
            started_at=parts.started_at,
            duration_sec=segment.duration_sec,
            sport=segment.sport,
            segments=[segment],
            telemetry=segment.telemetry,
            gps_route=self._route(parts.positions, segment.distance_m),
            devices=[parts.device] if parts.device else [],
            notes=parts.notes,
            source_format="tcx",
        )

    def _multisport_activity(self, element, path: str) -> CanonicalActivity:
        self.check_children(element, {"Id", "FirstSport", "NextSport", "Notes"}, path)
        started_at = self._timestamp(_text(element, "Id"), f"{path}/Id", required=True)

        parts: List[_ActivityParts] = []
        transitions: List[Optional[Tuple[object, str]]] = []
        first = _find(element, "FirstSport", "Activity")
        if first is not None:
            parts.append(self._activity_parts(first, f"{path}/FirstSport/Activity"))
            transitions.append(None)
        for i, next_sport in enumerate(_children(element, "NextSport")):
            activity_el = _child(next_sport, "Activity")
            if activity_el is None:
                continue
            next_path = f"{path}/NextSport[{i}]"
            parts.append(self._activity_parts(activity_el, f"{next_path}/Activity"))
            lap = _child(next_sport, "Transition")
            transitions.append((lap, f"{next_path}/Transition") if lap is not None else None)

        segments: List[Segment] = []
        transition_count = 0
        for part, link in zip(parts, transitions):
            if link is not None and segments:
                lap, lap_path = link
                transition_count += 1
                segments[-1] = segments[-1].with_transition(Transition(
                    transition_id=f"T{transition_count}",
                    from_sport=segments[-1].sport,
                    to_sport=part.segment.sport,
                    started_at=self._timestamp(lap.get("StartTime"), f"{lap_path}@StartTime"),
                    duration_sec=non_negative(
                        _float(lap, "TotalTimeSeconds"), self.diagnostics, f"{lap_path}/TotalTimeSeconds"
                    ),
                    heart_rate_avg=non_negative(
                        _float(lap, "AverageHeartRateBpm", "Value"),
                        self.diagnostics,
                        f"{lap_path}/AverageHeartRateBpm",
                    ),
                ))
            segments.append(part.segment)

        durations = [s.duration_sec for s in segments if s.duration_sec is not None]
        durations += [t.duration_sec for t in (s.transition for s in segments) if t and t.duration_sec]
        positions = [p for part in parts for p in part.positions]
        devices = [part.device for part in parts if part.device is not None][:1]
        sports = {s.sport for s in segments}
        telemetry = Telemetry.merge([(s.telemetry, s.duration_sec) for s in segments])

        return CanonicalActivity(
            started_at=started_at or (parts[0].started_at if parts else None),
            duration_sec=sum(durations) if durations else None,
            sport=Sport.MULTISPORT if len(sports) > 1 else (segments[0].sport if segments else Sport.OTHER),
            segments=segments,
            telemetry=telemetry,
            gps_route=self._route(positions, telemetry.distance_m),
            devices=devices,
            notes=_text(element, "Notes"),
            source_format="tcx",
        )

    # -------------------------------------------------------------------------
    # Activity and laps
    # -------------------------------------------------------------------------

    def _activity_parts(self, element, path: str) -> _ActivityParts:
        self.check_children(element, ACTIVITY_CHILDREN, path)
        sport = self.mapper.resolve_sport(
            "tcx", element.get("Sport"), diagnostics=self.diagnostics, path=f"{path}@Sport"
        )
        started_at = self._timestamp(_text(element, "Id"), f"{path}/Id", required=True)

        sets: List[ActivitySet] = []
        positions: List[GpsPosition] = []
        previous: List[Optional[datetime]] = [None]
        for j, lap in enumerate(_children(element, "Lap")):
            sets.append(self._lap(lap, j + 1, f"{path}/Lap[{j}]", positions, previous))

        if started_at is None and sets and sets[0].started_at is not None:
            started_at = sets[0].started_at

        durations = [s.duration_sec for s in sets if s.duration_sec is not None]
        distances = [s.distance_m for s in sets if s.distance_m is not None]
        telemetry = Telemetry.merge(
            [(s.telemetry, s.duration_sec) for s in sets if s.telemetry is not None]
        )
        segment = Segment(
            sport=sport,
            sets=sets,
            telemetry=telemetry,
            started_at=started_at,
            duration_sec=sum(durations) if durations else None,
            distance_m=sum(distances) if distances else None,
        )
        return _ActivityParts(
            segment=segment,
            started_at=started_at,
            positions=positions,
            notes=_text(element, "Notes"),
            device=self._creator(_child(element, "Creator")),
        )

    def _lap(
        self,
        lap,
        number: int,
        path: str,
        positions: List[GpsPosition],
        previous: List[Optional[datetime]],
    ) -> ActivitySet:
        self.check_children(lap, LAP_CHILDREN, path)
        lx = _extension(lap, "LX")
        if lx is not None:
            self.check_children(lx, LAP_EXTENSION_CHILDREN, f"{path}/Extensions/LX")

        cadence_avg = _float(lap, "Cadence")
        if cadence_avg is None:
            cadence_avg = _float(lx, "AvgRunCadence")
        cadence_max = _float(lx, "MaxBikeCadence")
        if cadence_max is None:
            cadence_max = _float(lx, "MaxRunCadence")

        telemetry = checked_telemetry({
            "heart_rate_avg": _float(lap, "AverageHeartRateBpm", "Value"),
            "heart_rate_max": _float(lap, "MaximumHeartRateBpm", "Value"),
            "speed_max_mps": _float(lap, "MaximumSpeed"),
            "speed_avg_mps": _float(lx, "AvgSpeed"),
            "power_avg": _float(lx, "AvgWatts"),
            "power_max": _float(lx, "MaxWatts"),
            "cadence_avg": cadence_avg,
            "cadence_max": cadence_max,
            "calories": _float(lap, "Calories"),
            "distance_m": _float(lap, "DistanceMeters"),
        }, self.diagnostics, path)

        builder = TimeSeriesBuilder()
        for track in _children(lap, "Track"):
            for k, point in enumerate(_children(track, "Trackpoint")):
                if self.summary_only:
                    self.skipped_points += 1
                    continue
                self._trackpoint(point, f"{path}/Track/Trackpoint[{k}]", builder, positions, previous)

        return ActivitySet(
            set_number=number,
            started_at=self._timestamp(lap.get("StartTime"), f"{path}@StartTime"),
            duration_sec=non_negative(
                _float(lap, "TotalTimeSeconds"), self.diagnostics, f"{path}/TotalTimeSeconds"
            ),
            distance_m=telemetry.distance_m,
            telemetry=None if telemetry.is_empty else telemetry,
            time_series=builder.build() if len(builder) else None,
            notes=_text(lap, "Notes"),
        )

    def _trackpoint(
        self,
        point,
        path: str,
        builder: TimeSeriesBuilder,
        positions: List[GpsPosition],
        previous: List[Optional[datetime]],
    ) -> None:
        self.check_children(point, TRACKPOINT_CHILDREN, "Trackpoint")
        tpx = _extension(point, "TPX")
        if tpx is not None:
            self.check_children(tpx, TRACKPOINT_EXTENSION_CHILDREN, "Trackpoint/Extensions/TPX")

        time_text = _text(point, "Time")
        if time_text is None:
            self.diagnostics.report_once(
                ("tcx_trackpoint_time",),
                DiagnosticCategory.DECODE_ERROR,
                "Trackpoint without <Time> skipped",
                path=path,
            )
            return
        timestamp = self._timestamp(time_text, f"{path}/Time")
        if timestamp is None:
            return
        if previous[0] is not None and timestamp < previous[0]:
            self.diagnostics.error(
                DiagnosticCategory.DECODE_ERROR,
                f"Trackpoint time {timestamp.isoformat()} goes backwards",
                path=f"{path}/Time",
            )
            return
        previous[0] = timestamp

        cadence = _float(point, "Cadence")
        if cadence is None:
            cadence = _float(tpx, "RunCadence")
        sample = checked_sample({
            "heart_rate": _float(point, "HeartRateBpm", "Value"),
            "cadence": cadence,
            "elevation_m": _float(point, "AltitudeMeters"),
            "distance_m": _float(point, "DistanceMeters"),
            "speed_mps": _float(tpx, "Speed"),
            "power": _float(tpx, "Watts"),
        }, self.diagnostics, path)

        lat = _float(point, "Position", "LatitudeDegrees")
        lon = _float(point, "Position", "LongitudeDegrees")
        if lat is not None and lon is not None:
            if valid_position(lat, lon):
                sample["latitude"] = lat
                sample["longitude"] = lon
                positions.append(GpsPosition(
                    latitude_deg=lat,
                    longitude_deg=lon,
                    timestamp=timestamp,
                    elevation_m=sample.get("elevation_m"),
                    speed_mps=sample.get("speed_mps"),
                    heart_rate=sample.get("heart_rate"),
                    power=sample.get("power"),
                    cadence=sample.get("cadence"),
                ))
            else:
                self.diagnostics.warning(
                    DiagnosticCategory.DECODE_ERROR,
                    f"Position {lat}, {lon} out of range; dropped",
                    path=f"{path}/Position",
                )

        builder.append(timestamp, sample)

    # -------------------------------------------------------------------------
    # Small pieces
    # -------------------------------------------------------------------------

    def _timestamp(self, text: Optional[str], path: str, required: bool = False) -> Optional[datetime]:
        if text is None:
            if required:
                self.diagnostics.error(
                    DiagnosticCategory.DECODE_ERROR, "Missing start time", path=path
                )
            return None
        try:
            return parse_iso_datetime(text)
        except ValueError:
            self.diagnostics.error(
                DiagnosticCategory.DECODE_ERROR, f"Invalid timestamp '{text}'", path=path
            )
            return None

    def _creator(self, creator) -> Optional[DeviceInfo]:
        if creator is None:
            return None
        major = _text(creator, "Version", "VersionMajor")
        minor = _text(creator, "Version", "VersionMinor")
        version = f"{major}.{minor or 0}" if major is not None else None
        return DeviceInfo(
            device_index=0,
            device_type=DeviceType.RECORDER,
            product=_text(creator, "Name"),
            serial_number=_text(creator, "UnitId"),
            software_version=version,
        )

    def _route(self, positions: List[GpsPosition], distance: Optional[float]) -> Optional[GpsRoute]:
        if not positions:
            return None
        return GpsRoute(positions=positions, total_distance_m=distance)


def tcx_to_activities(
    data: bytes,
    *,
    summary_only: bool = False,
    mapper: Optional[VocabularyMapper] = None,
) -> DecodeResult:
    """
    Decode a TCX document into canonical activities.

    Never raises for malformed input: unparseable XML gives no activities
    and a decode_error diagnostic.
    """
    diagnostics = DiagnosticCollector()
    parser = etree.XMLParser(resolve_entities=False, no_network=True, huge_tree=True)
    try:
        root = etree.fromstring(data, parser=parser)
    except etree.XMLSyntaxError as e:
        diagnostics.error(DiagnosticCategory.DECODE_ERROR, f"Malformed TCX XML: {e}", path="file")
        return DecodeResult(diagnostics=list(diagnostics.diagnostics))

    if _local(root.tag) != "TrainingCenterDatabase":
        diagnostics.error(
            DiagnosticCategory.DECODE_ERROR,
            f"Not a TCX document (root element <{_local(root.tag)}>)",
            path="file",
        )
        return DecodeResult(diagnostics=list(diagnostics.diagnostics))

    # Bad values are dropped field by field; this only catches what slips past.
    activities: List[CanonicalActivity] = []
    try:
        activities = _TcxDecoder(diagnostics, mapper or get_mapper(), summary_only).decode(root)
    except ValidationError as e:
        diagnostics.error(
            DiagnosticCategory.DECODE_ERROR,
            f"TCX data produced an invalid activity: {e.errors()[0].get('msg', e)}",
            path="file",
        )

    logger.info(f"Decoded {len(activities)} activities from TCX ({len(diagnostics)} diagnostics)")
    return DecodeResult(activities=activities, diagnostics=list(diagnostics.diagnostics))
