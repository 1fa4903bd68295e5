"""
CanonicalActivity -> TCX (Training Center XML v2).

Single-sport activities become <Activity> elements with one <Lap> per set.
Multi-discipline activities become a <MultiSportSession>: the first segment
goes in <FirstSport>, each following one in a <NextSport> preceded by the
transition lap of the segment before it.

Data TCX has no element for (swim lengths, pool configuration, most
per-sample metrics) is reported once per kind as encode_unsupported.
"""

import logging
import math
from typing import List, Optional, Sequence, Tuple

from lxml import etree

from converter.adapters.results import EncodeResult
from converter.core.units import format_iso_datetime
from converter.core.vocabulary import VocabularyMapper, get_mapper
from domain.diagnostics import DiagnosticCollector
from domain.models import (
    ActivitySet,
    CanonicalActivity,
    DeviceInfo,
    DiagnosticCategory,
    GpsRoute,
    Segment,
    Telemetry,
    TimeSeries,
    Transition,
)

logger = logging.getLogger(__name__)

TCX_NS = "http://www.garmin.com/xmlschemas/TrainingCenterDatabase/v2"
ACTIVITY_EXT_NS = "http://www.garmin.com/xmlschemas/ActivityExtension/v2"
XSI_NS = "http://www.w3.org/2001/XMLSchema-instance"
SCHEMA_LOCATION = (
    "http://www.garmin.com/xmlschemas/TrainingCenterDatabase/v2 "
    "http://www.garmin.com/xmlschemas/TrainingCenterDatabasev2.xsd"
)
NSMAP = {None: TCX_NS, "ns3": ACTIVITY_EXT_NS, "xsi": XSI_NS}

# Time-series metrics with a trackpoint element
TRACKPOINT_METRICS = frozenset({
    "heart_rate",
    "cadence",
    "elevation_m",
    "latitude",
    "longitude",
    "distance_m",
    "speed_mps",
    "power",
})

# Telemetry fields a <Lap> (with its LX extension) can carry
LAP_TELEMETRY = frozenset({
    "distance_m",
    "speed_max_mps",
    "speed_avg_mps",
    "calories",
    "heart_rate_avg",
    "heart_rate_max",
    "cadence_avg",
    "cadence_max",
    "power_avg",
    "power_max",
})
# Written as whole numbers
ROUNDED_LAP_TELEMETRY = frozenset({"calories", "heart_rate_avg", "heart_rate_max", "cadence_avg"})


def _carried(name: str, value: float, written: Optional[float]) -> bool:
    """True when a reader of the written laps gets ``value`` back."""
    if written is None:
        return False
    if name in ROUNDED_LAP_TELEMETRY:
        return abs(value - written) <= 0.5
    return math.isclose(value, written, rel_tol=0.01, abs_tol=1e-6)


def _tcx(name: str) -> str:
    return f"{{{TCX_NS}}}{name}"


def _ext(name: str) -> str:
    return f"{{{ACTIVITY_EXT_NS}}}{name}"


def _fmt(value: float) -> str:
    value = float(value)
    if value.is_integer():
        return str(int(value))
    return str(round(value, 6))


def _sub(parent, tag: str, text=None):
    element = etree.SubElement(parent, tag)
    if text is not None:
        element.text = text if isinstance(text, str) else _fmt(text)
    return element


def _bpm(parent, tag: str, value: Optional[float]) -> None:
    if value is not None:
        _sub(_sub(parent, tag), _tcx("Value"), str(int(round(value))))


class _TcxEncoder:
    def __init__(self, diagnostics: DiagnosticCollector, mapper: VocabularyMapper):
        self.diagnostics = diagnostics
        self.mapper = mapper

    def unsupported(self, key: str, message: str, path: str) -> None:
        self.diagnostics.report_once(
            ("tcx_export", key), DiagnosticCategory.ENCODE_UNSUPPORTED, message, path=path
        )

    # -------------------------------------------------------------------------
    # Document
    # -------------------------------------------------------------------------

    def encode(self, activities: Sequence[CanonicalActivity]) -> bytes:
        root = etree.Element(_tcx("TrainingCenterDatabase"), nsmap=NSMAP)
        root.set(f"{{{XSI_NS}}}schemaLocation", SCHEMA_LOCATION)
        container = _sub(root, _tcx("Activities"))

        if not activities:
            self.diagnostics.warning(
                DiagnosticCategory.ENCODE_UNSUPPORTED,
                "No activities to export; wrote an empty TCX document",
                path="activities",
            )

        for i, activity in enumerate(activities):
            path = f"activities[{i}]"
            self._check_activity(activity, path)
            # Transitions only have a place inside a MultiSportSession.
            if activity.is_multisport or activity.transitions:
                self._multisport(container, activity, path)
            else:
                for j, segment in enumerate(activity.segments or [Segment(sport=activity.sport)]):
                    self._activity(
                        container, activity, segment, f"{path}.segments[{j}]", first=(j == 0)
                    )

        return etree.tostring(root, xml_declaration=True, encoding="UTF-8", pretty_print=True)

    def _check_activity(self, activity: CanonicalActivity, path: str) -> None:
        if not activity.segments:
            self.diagnostics.warning(
                DiagnosticCategory.ENCODE_UNSUPPORTED,
                "Activity has no segments; wrote a single empty lap",
                path=f"{path}.segments",
            )
        for j, segment in enumerate(activity.segments):
            if segment.pool is not None:
                self.unsupported(
                    "pool", "TCX has no pool configuration; pool length dropped",
                    f"{path}.segments[{j}].pool",
                )
            for k, st in enumerate(segment.sets):
                set_path = f"{path}.segments[{j}].sets[{k}]"
                if st.swim_lengths:
                    self.unsupported(
                        "swim_lengths", "TCX has no per-length swim data; swim lengths dropped",
                        f"{set_path}.swim_lengths",
                    )
                if st.time_series is not None:
                    for name in st.time_series.metric_names:
                        if name not in TRACKPOINT_METRICS:
                            self.unsupported(
                                f"metric:{name}",
                                f"TCX trackpoints have no field for '{name}'; values dropped",
                                f"{set_path}.time_series.{name}",
                            )
        self._check_telemetry(activity, path)
        if activity.segments and activity.segments[-1].transition is not None:
            self.unsupported(
                "trailing_transition",
                "TCX has no place for a transition after the last sport; transition dropped",
                f"{path}.segments[{len(activity.segments) - 1}].transition",
            )
        if len(activity.devices) > 1:
            self.unsupported(
                "devices", "TCX records only the recording device; sensor devices dropped",
                f"{path}.devices",
            )

    def _check_telemetry(self, activity: CanonicalActivity, path: str) -> None:
        """
        Report aggregate metrics the written laps do not carry.

        Set, segment and activity telemetry are each compared with what a
        reader rebuilds from the laps: the lap's own fields for a set, the
        merged laps for a segment and all laps for the activity.
        """
        everything: List[Tuple[Telemetry, Optional[float]]] = []
        for j, segment in enumerate(activity.segments):
            segment_path = f"{path}.segments[{j}]"
            written: List[Tuple[Telemetry, Optional[float]]] = []
            for k, (st, telemetry) in enumerate(self._laps(segment, None)):
                lap = self._written(st, telemetry)
                if st.telemetry is not None:
                    self._report_dropped(st.telemetry, lap, f"{segment_path}.sets[{k}].telemetry")
                written.append((lap, st.duration_sec))
            self._report_dropped(segment.telemetry, Telemetry.merge(written), f"{segment_path}.telemetry")
            everything.extend(written)
        self._report_dropped(activity.telemetry, Telemetry.merge(everything), f"{path}.telemetry")

    def _report_dropped(self, telemetry: Telemetry, written: Telemetry, path: str) -> None:
        for name, value in telemetry.recorded().items():
            if not _carried(name, value, getattr(written, name)):
                self.unsupported(
                    f"telemetry:{name}",
                    f"TCX laps have no field for '{name}' at this level; value dropped",
                    f"{path}.{name}",
                )

    @staticmethod
    def _written(st: ActivitySet, telemetry: Telemetry) -> Telemetry:
        """The part of ``telemetry`` that a lap for ``st`` writes out."""
        values = {k: v for k, v in telemetry.recorded().items() if k in LAP_TELEMETRY}
        distance = st.distance_m or telemetry.distance_m
        if distance is not None:
            values["distance_m"] = distance
        return Telemetry(**values)

    @staticmethod
    def _laps(segment: Segment, started_at) -> List[Tuple[ActivitySet, Telemetry]]:
        """Sets to write as laps, each with the telemetry its lap uses."""
        sets = list(segment.sets) or [ActivitySet(
            started_at=started_at,
            duration_sec=segment.duration_sec,
            distance_m=segment.distance_m,
        )]
        laps = []
        for st in sets:
            telemetry = st.telemetry
            # A lone lap stands for the whole segment.
            if telemetry is None and len(sets) == 1:
                telemetry = segment.telemetry
            laps.append((st, telemetry or Telemetry()))
        return laps

    def _multisport(self, container, activity: CanonicalActivity, path: str) -> None:
        session = _sub(container, _tcx("MultiSportSession"))
        if activity.started_at is not None:
            _sub(session, _tcx("Id"), format_iso_datetime(activity.started_at))

        previous: Optional[Segment] = None
        for j, segment in enumerate(activity.segments):
            segment_path = f"{path}.segments[{j}]"
            if previous is None:
                holder = _sub(session, _tcx("FirstSport"))
            else:
                holder = _sub(session, _tcx("NextSport"))
                if previous.transition is not None:
                    self._transition_lap(holder, previous.transition)
            self._activity(holder, activity, segment, segment_path, first=(j == 0), in_session=True)
            previous = segment

        if activity.notes:
            _sub(session, _tcx("Notes"), activity.notes)

    # -------------------------------------------------------------------------
    # Activity and laps
    # -------------------------------------------------------------------------

    def _activity(
        self,
        parent,
        activity: CanonicalActivity,
        segment: Segment,
        path: str,
        first: bool,
        in_session: bool = False,
    ) -> None:
        element = _sub(parent, _tcx("Activity"))
        element.set(
            "Sport",
            self.mapper.export_sport("tcx", segment.sport, self.diagnostics, path=f"{path}.sport"),
        )
        started_at = segment.started_at or activity.started_at
        if started_at is not None:
            _sub(element, _tcx("Id"), format_iso_datetime(started_at))

        fallback_route = None
        if first and not activity.has_time_series and activity.gps_route is not None:
            fallback_route = activity.gps_route

        for k, (st, telemetry) in enumerate(self._laps(segment, started_at)):
            self._lap(element, st, telemetry, started_at, fallback_route if k == 0 else None)

        if activity.notes and not in_session:
            _sub(element, _tcx("Notes"), activity.notes)
        recorder = next((d for d in activity.devices if d.device_index == 0), None)
        if recorder is None and activity.devices:
            recorder = activity.devices[0]
        if recorder is not None:
            self._creator(element, recorder)

    def _lap_header(self, lap, duration: Optional[float], distance: Optional[float], telemetry: Telemetry) -> None:
        _sub(lap, _tcx("TotalTimeSeconds"), duration or 0.0)
        _sub(lap, _tcx("DistanceMeters"), distance or 0.0)
        if telemetry.speed_max_mps is not None:
            _sub(lap, _tcx("MaximumSpeed"), telemetry.speed_max_mps)
        _sub(lap, _tcx("Calories"), str(int(round(telemetry.calories or 0))))
        _bpm(lap, _tcx("AverageHeartRateBpm"), telemetry.heart_rate_avg)
        _bpm(lap, _tcx("MaximumHeartRateBpm"), telemetry.heart_rate_max)
        _sub(lap, _tcx("Intensity"), "Active")

    def _lap(
        self,
        parent,
        st: ActivitySet,
        telemetry: Telemetry,
        default_start,
        fallback_route: Optional[GpsRoute],
    ) -> None:
        lap = _sub(parent, _tcx("Lap"))
        start = st.started_at or default_start
        if start is None and st.time_series is not None and len(st.time_series):
            start = st.time_series.timestamps[0]
        if start is not None:
            lap.set("StartTime", format_iso_datetime(start))

        self._lap_header(lap, st.duration_sec, st.distance_m or telemetry.distance_m, telemetry)
        if telemetry.cadence_avg is not None:
            _sub(lap, _tcx("Cadence"), str(min(254, int(round(telemetry.cadence_avg)))))
        _sub(lap, _tcx("TriggerMethod"), "Manual")

        if st.has_time_series:
            self._track(lap, st.time_series)
        elif fallback_route is not None:
            self._route_track(lap, fallback_route)

        if st.notes:
            _sub(lap, _tcx("Notes"), st.notes)

        lx_values: List[Tuple[str, Optional[float]]] = [
            ("AvgSpeed", telemetry.speed_avg_mps),
            ("MaxBikeCadence", telemetry.cadence_max),
            ("AvgWatts", telemetry.power_avg),
            ("MaxWatts", telemetry.power_max),
        ]
        if any(value is not None for _, value in lx_values):
            lx = _sub(_sub(lap, _tcx("Extensions")), _ext("LX"))
            for name, value in lx_values:
                if value is not None:
                    _sub(lx, _ext(name), value)

    def _transition_lap(self, parent, transition: Transition) -> None:
        lap = _sub(parent, _tcx("Transition"))
        if transition.started_at is not None:
            lap.set("StartTime", format_iso_datetime(transition.started_at))
        self._lap_header(
            lap,
            transition.duration_sec,
            None,
            Telemetry(heart_rate_avg=transition.heart_rate_avg),
        )
        _sub(lap, _tcx("TriggerMethod"), "Manual")

    # -------------------------------------------------------------------------
    # Trackpoints
    # -------------------------------------------------------------------------

    def _track(self, lap, series: TimeSeries) -> None:
        track = _sub(lap, _tcx("Track"))
        for timestamp, values in series.rows():
            self._trackpoint(
                track,
                timestamp,
                latitude=values.get("latitude"),
                longitude=values.get("longitude"),
                altitude=values.get("elevation_m"),
                distance=values.get("distance_m"),
                heart_rate=values.get("heart_rate"),
                cadence=values.get("cadence"),
                speed=values.get("speed_mps"),
                power=values.get("power"),
            )

    def _route_track(self, lap, route: GpsRoute) -> None:
        track = _sub(lap, _tcx("Track"))
        for position in route.positions:
            if position.timestamp is None:
                self.unsupported(
                    "untimed_position",
                    "TCX trackpoints require a time; untimed route positions dropped",
                    "gps_route.positions",
                )
                continue
            self._trackpoint(
                track,
                position.timestamp,
                latitude=position.latitude_deg,
                longitude=position.longitude_deg,
                altitude=position.elevation_m,
                heart_rate=position.heart_rate,
                cadence=position.cadence,
                speed=position.speed_mps,
                power=position.power,
            )

    def _trackpoint(
        self,
        track,
        timestamp,
        latitude=None,
        longitude=None,
        altitude=None,
        distance=None,
        heart_rate=None,
        cadence=None,
        speed=None,
        power=None,
    ) -> None:
        point = _sub(track, _tcx("Trackpoint"))
        _sub(point, _tcx("Time"), format_iso_datetime(timestamp))
        if latitude is not None and longitude is not None:
            position = _sub(point, _tcx("Position"))
            _sub(position, _tcx("LatitudeDegrees"), latitude)
            _sub(position, _tcx("LongitudeDegrees"), longitude)
        if altitude is not None:
            _sub(point, _tcx("AltitudeMeters"), altitude)
        if distance is not None:
            _sub(point, _tcx("DistanceMeters"), distance)
        _bpm(point, _tcx("HeartRateBpm"), heart_rate)
        if cadence is not None:
            _sub(point, _tcx("Cadence"), str(min(254, int(round(cadence)))))
        if speed is not None or power is not None:
            tpx = _sub(_sub(point, _tcx("Extensions")), _ext("TPX"))
            if speed is not None:
                _sub(tpx, _ext("Speed"), speed)
            if power is not None:
                _sub(tpx, _ext("Watts"), str(int(round(power))))

    def _creator(self, parent, device: DeviceInfo) -> None:
        creator = _sub(parent, _tcx("Creator"))
        creator.set(f"{{{XSI_NS}}}type", "Device_t")
        _sub(creator, _tcx("Name"), device.display_name)
        serial = device.serial_number if (device.serial_number or "").isdigit() else "0"
        _sub(creator, _tcx("UnitId"), serial)
        _sub(creator, _tcx("ProductID"), "0")
        major, _, minor = (device.software_version or "0.0").partition(".")
        version = _sub(creator, _tcx("Version"))
        _sub(version, _tcx("VersionMajor"), major if major.isdigit() else "0")
        _sub(version, _tcx("VersionMinor"), minor.split(".")[0] if minor.split(".")[0].isdigit() else "0")


def activities_to_tcx(
    activities: Sequence[CanonicalActivity],
    *,
    mapper: Optional[VocabularyMapper] = None,
) -> EncodeResult:
    """Encode activities as one TCX document."""
    diagnostics = DiagnosticCollector()
    output = _TcxEncoder(diagnostics, mapper or get_mapper()).encode(activities)
    logger.info(f"Encoded {len(activities)} activities as TCX ({len(diagnostics)} diagnostics)")
    return EncodeResult(output=output, diagnostics=list(diagnostics.diagnostics))
