"""
FIT activity file -> CanonicalActivity.

Decoding happens in two stages:

1. read_fit_messages() streams (message_name, {field: value}) pairs out of
   fitparse. Positions, timestamps and enum codes are taken as raw integers
   so that unit conversion and vocabulary mapping stay in this package;
   every other field uses fitparse's scaled value.
2. fit_messages_to_activities() assembles activities from those pairs. Record
   messages go straight into a TimeSeriesBuilder (one transient dict at a
   time); sessions, laps, lengths and devices are few and kept as dicts
   until the end of the stream.

Stage 2 is a pure function of its input, so tests can drive it with literal
message lists.
"""

import io
import logging
from bisect import bisect_right
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

import fitparse
from fitparse.utils import FitParseError
from pydantic import ValidationError

from converter.adapters.results import DecodeResult
from converter.core.segmentation import (
    RawLength,
    build_swim_lengths,
    group_sessions,
    infer_pool_length,
    measured_length,
)
from converter.core.units import (
    checked_sample,
    checked_telemetry,
    convert_distance,
    fit_timestamp_to_datetime,
    meters_to_yards,
    semicircles_to_degrees,
    valid_position,
)
from converter.core.vocabulary import VocabularyMapper, get_mapper
from converter.settings import Settings, get_settings
from domain.diagnostics import DiagnosticCollector
from domain.models import (
    ActivitySet,
    CanonicalActivity,
    DeviceInfo,
    DiagnosticCategory,
    DistanceUnit,
    GpsPosition,
    GpsRoute,
    PoolConfig,
    Segment,
    Sport,
    Telemetry,
    TimeSeriesBuilder,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Field tables
# =============================================================================

# Fields read as raw integers instead of fitparse's converted value.
RAW_FIELDS = frozenset({
    "timestamp",
    "start_time",
    "position_lat",
    "position_long",
    "sport",
    "sub_sport",
    "swim_stroke",
    "length_type",
    "pool_length_unit",
    "device_index",
    "device_type",
    "antplus_device_type",
    "source_type",
})

# When the enhanced field is present the plain one is a truncated duplicate.
SUPERSEDED_BY = {
    "speed": "enhanced_speed",
    "altitude": "enhanced_altitude",
    "respiration_rate": "enhanced_respiration_rate",
    "avg_speed": "enhanced_avg_speed",
    "max_speed": "enhanced_max_speed",
}

# record field -> (time-series metric, scale)
RECORD_METRICS = {
    "heart_rate": ("heart_rate", 1.0),
    "power": ("power", 1.0),
    "cadence": ("cadence", 1.0),
    "speed": ("speed_mps", 1.0),
    "enhanced_speed": ("speed_mps", 1.0),
    "altitude": ("elevation_m", 1.0),
    "enhanced_altitude": ("elevation_m", 1.0),
    "distance": ("distance_m", 1.0),
    "temperature": ("temperature_c", 1.0),
    "grade": ("grade_percent", 1.0),
    "respiration_rate": ("respiration_rate", 1.0),
    "enhanced_respiration_rate": ("respiration_rate", 1.0),
    "core_temperature": ("core_temperature_c", 1.0),
    "saturated_hemoglobin_percent": ("muscle_oxygen_percent", 1.0),
    "left_pedal_smoothness": ("left_pedal_smoothness", 1.0),
    "right_pedal_smoothness": ("right_pedal_smoothness", 1.0),
    "left_torque_effectiveness": ("left_torque_effectiveness", 1.0),
    "right_torque_effectiveness": ("right_torque_effectiveness", 1.0),
    "step_length": ("stride_length_m", 0.001),
    "vertical_oscillation": ("vertical_oscillation_cm", 0.1),
    "stance_time": ("ground_contact_time_ms", 1.0),
    "stance_time_balance": ("ground_contact_balance", 1.0),
}
RECORD_STRUCTURAL = frozenset({"timestamp", "position_lat", "position_long", "fractional_cadence"})

# session/lap field -> (Telemetry attribute, scale)
SUMMARY_TELEMETRY = {
    "avg_heart_rate": ("heart_rate_avg", 1.0),
    "max_heart_rate": ("heart_rate_max", 1.0),
    "min_heart_rate": ("heart_rate_min", 1.0),
    "avg_power": ("power_avg", 1.0),
    "max_power": ("power_max", 1.0),
    "normalized_power": ("normalized_power", 1.0),
    "threshold_power": ("ftp_watts", 1.0),
    "avg_cadence": ("cadence_avg", 1.0),
    "max_cadence": ("cadence_max", 1.0),
    "avg_speed": ("speed_avg_mps", 1.0),
    "enhanced_avg_speed": ("speed_avg_mps", 1.0),
    "max_speed": ("speed_max_mps", 1.0),
    "enhanced_max_speed": ("speed_max_mps", 1.0),
    "total_distance": ("distance_m", 1.0),
    "total_ascent": ("elevation_gain_m", 1.0),
    "total_descent": ("elevation_loss_m", 1.0),
    "avg_temperature": ("temperature_c", 1.0),
    "total_calories": ("calories", 1.0),
    "training_stress_score": ("training_stress_score", 1.0),
    "intensity_factor": ("intensity_factor", 1.0),
    "total_work": ("total_work_kj", 0.001),
    "total_training_effect": ("training_effect", 1.0),
    "total_anaerobic_training_effect": ("anaerobic_training_effect", 1.0),
    "avg_swimming_cadence": ("stroke_rate", 1.0),
}

_SUMMARY_STRUCTURAL = frozenset({
    "timestamp",
    "start_time",
    "sport",
    "sub_sport",
    "total_elapsed_time",
    "total_timer_time",
    "message_index",
    "event",
    "event_type",
    "start_position_lat",
    "start_position_long",
    "end_position_lat",
    "end_position_long",
    "num_active_lengths",
    "num_lengths",
    "first_length_index",
})
SESSION_FIELDS = _SUMMARY_STRUCTURAL | frozenset(SUMMARY_TELEMETRY) | frozenset({
    "pool_length",
    "pool_length_unit",
    "num_laps",
    "first_lap_index",
    "trigger",
    "sport_index",
    "nec_lat",
    "nec_long",
    "swc_lat",
    "swc_long",
})
LAP_FIELDS = _SUMMARY_STRUCTURAL | frozenset(SUMMARY_TELEMETRY) | frozenset({
    "lap_trigger",
    "intensity",
    "swim_stroke",
    "wkt_step_index",
})
LENGTH_FIELDS = frozenset({
    "timestamp",
    "start_time",
    "total_elapsed_time",
    "total_timer_time",
    "total_strokes",
    "swim_stroke",
    "length_type",
    "message_index",
    "event",
    "event_type",
})
# Manufacturer-specific product subfields (garmin_product, ...) are also read.
DEVICE_FIELDS = frozenset({
    "timestamp",
    "device_index",
    "device_type",
    "antplus_device_type",
    "source_type",
    "manufacturer",
    "product",
    "product_name",
    "serial_number",
    "software_version",
    "hardware_version",
    "battery_status",
})
SPORT_FIELDS = frozenset({"sport", "sub_sport"})

# Messages describing the file rather than the activity; consumed silently.
HOUSEKEEPING_MESSAGES = frozenset({
    "file_id",
    "file_creator",
    "event",
    "activity",
    "device_settings",
    "user_profile",
    "zones_target",
    "training_file",
    "developer_data_id",
    "field_description",
    "software",
    "capabilities",
    "file_capabilities",
    "mesg_capabilities",
    "field_capabilities",
    "timestamp_correlation",
})

LENGTH_TYPE_IDLE = 0
POOL_UNIT_STATUTE = 1
SOURCE_TYPE_ANTPLUS = 1


# =============================================================================
# Stage 1: fitparse -> message dicts
# =============================================================================


def _message_values(message) -> Dict[str, Any]:
    values: Dict[str, Any] = {}
    for field_data in message.fields:
        if field_data.name in RAW_FIELDS:
            value = field_data.raw_value
        else:
            value = field_data.value
        if value is not None:
            values[field_data.name] = value
    return values


def read_fit_messages(
    data: bytes, diagnostics: DiagnosticCollector
) -> Iterator[Tuple[str, Dict[str, Any]]]:
    """
    Stream (message_name, values) pairs from FIT bytes.

    A parse failure ends the stream with a decode_error; messages yielded
    before it remain usable.
    """
    try:
        fit_file = fitparse.FitFile(io.BytesIO(data))
        for message in fit_file.get_messages():
            yield message.name, _message_values(message)
    except FitParseError as e:
        logger.warning(f"FIT parse error: {e}")
        diagnostics.error(
            DiagnosticCategory.DECODE_ERROR,
            f"Unreadable FIT data: {e}",
            path="file",
        )


# =============================================================================
# Stage 2: message dicts -> activities
# =============================================================================


def _number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def _summary_telemetry(
    values: Dict[str, Any], diagnostics: DiagnosticCollector, path: str
) -> Telemetry:
    fields: Dict[str, float] = {}
    for name, (target, scale) in SUMMARY_TELEMETRY.items():
        if SUPERSEDED_BY.get(name) in values:
            continue
        number = _number(values.get(name))
        if number is not None:
            fields[target] = number * scale
    return checked_telemetry(fields, diagnostics, path)


def _within(moment: Optional[datetime], start: Optional[datetime], end: Optional[datetime]) -> bool:
    if moment is None:
        return False
    return (start is None or moment >= start) and (end is None or moment < end)


@dataclass
class _Window:
    """A time window [start, end) plus the index it was read from."""

    index: int
    values: Dict[str, Any]
    start: Optional[datetime] = None
    children: List["_Window"] = field(default_factory=list)


class _FitAssembler:
    """Accumulates one FIT stream and builds activities from it."""

    def __init__(
        self,
        diagnostics: DiagnosticCollector,
        mapper: VocabularyMapper,
        settings: Settings,
        summary_only: bool,
    ) -> None:
        self.diagnostics = diagnostics
        self.mapper = mapper
        self.settings = settings
        self.summary_only = summary_only

        self.sessions: List[Dict[str, Any]] = []
        self.laps: List[Dict[str, Any]] = []
        self.lengths: List[Dict[str, Any]] = []
        self.devices: List[Dict[str, Any]] = []
        self.sport_message: Dict[str, Any] = {}

        self._orphan_lengths: List[_Window] = []

        self.samples = TimeSeriesBuilder()
        self.record_count = 0
        self.first_record_ticks: Optional[int] = None
        self._last_record_time: Optional[datetime] = None

    # -------------------------------------------------------------------------
    # Streaming
    # -------------------------------------------------------------------------

    def consume(self, name: str, values: Dict[str, Any]) -> None:
        if name == "record":
            self._consume_record(values)
        elif name == "session":
            self._check_fields(name, values, SESSION_FIELDS)
            self.sessions.append(values)
        elif name == "lap":
            self._check_fields(name, values, LAP_FIELDS)
            self.laps.append(values)
        elif name == "length":
            self._check_fields(name, values, LENGTH_FIELDS)
            self.lengths.append(values)
        elif name == "device_info":
            self._check_fields(
                name, {k: v for k, v in values.items() if not k.endswith("_product")}, DEVICE_FIELDS
            )
            self.devices.append(values)
        elif name == "sport":
            self._check_fields(name, values, SPORT_FIELDS)
            self.sport_message = values
        elif name not in HOUSEKEEPING_MESSAGES:
            self.diagnostics.report_once(
                ("fit_message", name),
                DiagnosticCategory.MAPPING_GAP,
                f"FIT message '{name}' has no canonical equivalent",
                path=name,
            )

    def _check_fields(self, message: str, values: Dict[str, Any], known: frozenset) -> None:
        for name in values:
            if name not in known:
                self._report_field(message, name)

    def _report_field(self, message: str, name: str) -> None:
        self.diagnostics.report_once(
            ("fit_field", message, name),
            DiagnosticCategory.MAPPING_GAP,
            f"FIT {message} field '{name}' has no canonical equivalent",
            path=f"{message}.{name}",
        )

    def _consume_record(self, values: Dict[str, Any]) -> None:
        self.record_count += 1
        index = self.record_count - 1
        ticks = values.get("timestamp")
        if self.first_record_ticks is None:
            self.first_record_ticks = ticks
        if self.summary_only:
            return

        if ticks is None:
            self.diagnostics.report_once(
                ("fit_record_timestamp",),
                DiagnosticCategory.DECODE_ERROR,
                "Record without timestamp skipped",
                path=f"record[{index}].timestamp",
            )
            return

        timestamp = fit_timestamp_to_datetime(
            ticks,
            self.diagnostics,
            path=f"record[{index}].timestamp",
            previous=self._last_record_time,
        )
        if timestamp is None:
            return
        if self._last_record_time is not None and timestamp < self._last_record_time:
            # Reported above; the sample cannot be placed in the time index.
            return
        self._last_record_time = timestamp

        sample: Dict[str, Optional[float]] = {}
        for name, value in values.items():
            mapping = RECORD_METRICS.get(name)
            if mapping is None:
                if name not in RECORD_STRUCTURAL:
                    self._report_field("record", name)
                continue
            if SUPERSEDED_BY.get(name) in values:
                continue
            number = _number(value)
            if number is not None:
                metric, scale = mapping
                sample[metric] = number * scale

        checked_sample(sample, self.diagnostics, path=f"record[{index}]")

        lat, lon = values.get("position_lat"), values.get("position_long")
        if lat is not None and lon is not None and not (lat == 0 and lon == 0):
            lat_deg = semicircles_to_degrees(lat, self.diagnostics, path=f"record[{index}].position_lat")
            lon_deg = semicircles_to_degrees(lon, self.diagnostics, path=f"record[{index}].position_long")
            if valid_position(lat_deg, lon_deg):
                sample["latitude"] = lat_deg
                sample["longitude"] = lon_deg
            else:
                self.diagnostics.report_once(
                    ("fit_position_range",),
                    DiagnosticCategory.DECODE_ERROR,
                    f"Position {lat_deg:.5f}, {lon_deg:.5f} out of range; position dropped",
                    path=f"record[{index}].position_lat",
                )

        self.samples.append(timestamp, sample)

    # -------------------------------------------------------------------------
    # Assembly
    # -------------------------------------------------------------------------

    def finish(self) -> List[CanonicalActivity]:
        if self.summary_only and self.record_count:
            self.diagnostics.warning(
                DiagnosticCategory.TIME_SERIES_SKIPPED,
                f"Summary-only mode: {self.record_count} per-sample records "
                f"and the GPS route were not imported",
                path="record",
            )

        sessions = self._session_windows()
        if not sessions:
            # An unreadable file has already been reported.
            if not self.diagnostics.has_errors:
                self.diagnostics.error(
                    DiagnosticCategory.DECODE_ERROR,
                    "FIT file contains no session, lap or record data",
                    path="session",
                )
            return []

        self._assign_children(sessions, self._lap_windows())
        devices = self._build_devices()

        segments = [self._build_segment(session, sessions, i) for i, session in enumerate(sessions)]
        groups = group_sessions(segments, self.diagnostics)

        activities = []
        for i, group in enumerate(groups):
            next_start = groups[i + 1].segments[0].started_at if i + 1 < len(groups) else None
            activities.append(self._build_activity(list(group.segments), group.multisport, next_start, devices))
        return activities

    def _timestamp(self, values: Dict[str, Any], name: str, path: str) -> Optional[datetime]:
        ticks = values.get(name)
        if ticks is None:
            return None
        return fit_timestamp_to_datetime(ticks, self.diagnostics, path=f"{path}.{name}")

    def _session_windows(self) -> List[_Window]:
        raw_sessions = list(self.sessions)
        if not raw_sessions:
            first_ticks = next(
                (lap.get("start_time") for lap in self.laps if lap.get("start_time") is not None),
                self.first_record_ticks,
            )
            if first_ticks is None and not self.laps:
                return []
            self.diagnostics.warning(
                DiagnosticCategory.INFERENCE_UNCERTAIN,
                "No session message; activity reconstructed from laps and records",
                path="session",
            )
            raw_sessions = [{
                "start_time": first_ticks,
                "sport": self.sport_message.get("sport"),
                "sub_sport": self.sport_message.get("sub_sport"),
            }]

        windows = []
        for i, values in enumerate(raw_sessions):
            start = self._timestamp(values, "start_time", f"session[{i}]")
            if start is None:
                self.diagnostics.error(
                    DiagnosticCategory.DECODE_ERROR,
                    "Session has no start time",
                    path=f"session[{i}].start_time",
                )
            windows.append(_Window(index=i, values=values, start=start))

        # Undated sessions sort last so dated ones stay in time order.
        windows.sort(key=lambda w: (w.start is None, w.start or datetime.min, w.index))
        return windows

    def _lap_windows(self) -> List[_Window]:
        laps = [
            _Window(index=i, values=values, start=self._timestamp(values, "start_time", f"lap[{i}]"))
            for i, values in enumerate(self.laps)
        ]
        lengths = [
            _Window(index=i, values=values, start=self._timestamp(values, "start_time", f"length[{i}]"))
            for i, values in enumerate(self.lengths)
        ]
        if laps:
            self._assign_children(laps, lengths)
        else:
            self._orphan_lengths = lengths
        return laps

    @staticmethod
    def _assign_children(parents: List[_Window], children: List[_Window]) -> None:
        """Attach each child to the last parent starting at or before it."""
        if not parents:
            return
        dated = [p for p in parents if p.start is not None]
        starts = [p.start for p in dated]
        for child in children:
            if child.start is None or not dated:
                parents[0].children.append(child)
                continue
            position = bisect_right(starts, child.start) - 1
            dated[max(position, 0)].children.append(child)

    def _session_end(self, sessions: List[_Window], position: int) -> Optional[datetime]:
        for later in sessions[position + 1:]:
            if later.start is not None:
                return later.start
        return None

    def _build_segment(self, session: _Window, sessions: List[_Window], position: int) -> Segment:
        values = session.values
        path = f"session[{session.index}]"
        sport = self.mapper.resolve_sport(
            "fit", values.get("sport"), values.get("sub_sport"), self.diagnostics, path=f"{path}.sport"
        )
        session_end = self._session_end(sessions, position)

        laps = session.children
        sets: List[ActivitySet] = []
        if laps:
            for j, lap in enumerate(laps):
                lap_end = laps[j + 1].start if j + 1 < len(laps) else session_end
                lower = session.start if j == 0 else lap.start
                sets.append(self._build_set(lap, j + 1, lower, lap_end))
        else:
            self.diagnostics.warning(
                DiagnosticCategory.INFERENCE_UNCERTAIN,
                "Session has no laps; created a single set covering the session",
                path=f"{path}.laps",
            )
            lengths = [
                length for length in self._orphan_lengths
                if len(sessions) == 1 or _within(length.start, session.start, session_end)
            ]
            sets.append(self._build_set(
                session, 1, session.start, session_end, lengths_from=lengths, path=path
            ))

        telemetry = _summary_telemetry(values, self.diagnostics, path)
        duration = _number(values.get("total_elapsed_time"))
        if duration is None:
            duration = _number(values.get("total_timer_time"))
        if duration is None:
            lap_durations = [s.duration_sec for s in sets if s.duration_sec is not None]
            duration = sum(lap_durations) if lap_durations else None

        pool = None
        if sport == Sport.SWIMMING:
            pool = self._pool_config(values, sets, path)

        return Segment(
            sport=sport,
            sets=sets,
            telemetry=telemetry,
            started_at=session.start,
            duration_sec=duration,
            distance_m=telemetry.distance_m,
            pool=pool,
        )

    def _build_set(
        self,
        window: _Window,
        number: int,
        start: Optional[datetime],
        end: Optional[datetime],
        lengths_from: Optional[List[_Window]] = None,
        path: Optional[str] = None,
    ) -> ActivitySet:
        values = window.values
        path = path or f"lap[{window.index}]"
        duration = _number(values.get("total_timer_time"))
        if duration is None:
            duration = _number(values.get("total_elapsed_time"))

        raw_lengths = [
            RawLength(
                stroke=self.mapper.resolve_stroke(
                    "fit", length.values.get("swim_stroke"), self.diagnostics,
                    path=f"length[{length.index}].swim_stroke",
                ),
                duration_sec=_number(length.values.get("total_elapsed_time")),
                stroke_count=length.values.get("total_strokes"),
                active=length.values.get("length_type") != LENGTH_TYPE_IDLE,
                started_at=length.start,
            )
            for length in (window.children if lengths_from is None else lengths_from)
        ]
        swim_lengths = build_swim_lengths(
            raw_lengths, self.diagnostics, path=f"{path}.lengths",
            tolerance=self.settings.swolf_tolerance,
        )

        time_series = None
        if not self.summary_only and len(self.samples):
            lo, hi = self.samples.index_range(start, end)
            time_series = self.samples.build(lo, hi)

        telemetry = _summary_telemetry(values, self.diagnostics, path)
        return ActivitySet(
            set_number=number,
            started_at=window.start,
            duration_sec=duration,
            distance_m=telemetry.distance_m,
            telemetry=None if telemetry.is_empty else telemetry,
            swim_lengths=swim_lengths,
            time_series=time_series,
        )

    def _pool_config(
        self, values: Dict[str, Any], sets: List[ActivitySet], path: str
    ) -> Optional[PoolConfig]:
        declared = _number(values.get("pool_length"))
        if declared:
            if values.get("pool_length_unit") == POOL_UNIT_STATUTE:
                return PoolConfig(length=round(meters_to_yards(declared), 2), unit=DistanceUnit.YARDS)
            return PoolConfig(length=declared, unit=DistanceUnit.METERS)

        active = sum(len(s.active_lengths) for s in sets)
        if active == 0:
            return None
        unit = self.settings.pool_length_unit
        measured = measured_length(_number(values.get("total_distance")), active)
        if measured is not None:
            measured = convert_distance(measured, DistanceUnit.METERS, unit)
        return infer_pool_length(
            measured, unit, self.diagnostics,
            default=self.settings.default_pool_length,
            path=f"{path}.pool_length",
        )

    def _build_devices(self) -> List[DeviceInfo]:
        devices: List[DeviceInfo] = []
        seen = set()
        for i, values in enumerate(self.devices):
            device_index = values.get("device_index")
            antplus = values.get("antplus_device_type")
            if antplus is None and values.get("source_type") == SOURCE_TYPE_ANTPLUS:
                antplus = values.get("device_type")
            serial = values.get("serial_number")
            key = (device_index, serial, antplus)
            if key in seen:
                continue
            seen.add(key)

            manufacturer = values.get("manufacturer")
            if isinstance(manufacturer, int):
                manufacturer = f"manufacturer {manufacturer}"
            product = values.get("product_name") or next(
                (values[k] for k in values if k.endswith("_product")), values.get("product")
            )
            software = _number(values.get("software_version"))
            devices.append(DeviceInfo(
                device_index=device_index if isinstance(device_index, int) else None,
                device_type=self.mapper.resolve_device_type(
                    device_index, antplus, self.diagnostics, path=f"device_info[{i}].device_type"
                ),
                manufacturer=str(manufacturer) if manufacturer is not None else None,
                product=str(product) if product is not None else None,
                serial_number=str(serial) if serial is not None else None,
                software_version=f"{software:.2f}" if software is not None else None,
                hardware_version=(
                    str(values["hardware_version"]) if "hardware_version" in values else None
                ),
                battery_status=(
                    str(values["battery_status"]) if "battery_status" in values else None
                ),
            ))
        return devices

    def _build_activity(
        self,
        segments: List[Segment],
        multisport: bool,
        next_start: Optional[datetime],
        devices: List[DeviceInfo],
    ) -> CanonicalActivity:
        starts = [s.started_at for s in segments if s.started_at is not None]
        started_at = starts[0] if starts else None

        durations = [s.duration_sec for s in segments if s.duration_sec is not None]
        durations += [
            s.transition.duration_sec
            for s in segments
            if s.transition is not None and s.transition.duration_sec is not None
        ]

        if multisport:
            sport = Sport.MULTISPORT
            telemetry = Telemetry.merge([(s.telemetry, s.duration_sec) for s in segments])
        else:
            sport = segments[0].sport
            telemetry = segments[0].telemetry

        gps_route = None
        if not self.summary_only and len(self.samples):
            gps_route = self._gps_route(started_at, next_start, telemetry.distance_m)

        return CanonicalActivity(
            started_at=started_at,
            duration_sec=sum(durations) if durations else None,
            sport=sport,
            segments=segments,
            telemetry=telemetry,
            gps_route=gps_route,
            devices=devices,
            source_format="fit",
        )

    def _gps_route(
        self, start: Optional[datetime], end: Optional[datetime], distance: Optional[float]
    ) -> Optional[GpsRoute]:
        lo, hi = self.samples.index_range(start, end)
        series = self.samples.build(lo, hi)
        if series is None or not series.has_metric("latitude"):
            return None
        positions = []
        for timestamp, sample in series.rows():
            if sample.get("latitude") is None or sample.get("longitude") is None:
                continue
            positions.append(GpsPosition(
                latitude_deg=sample["latitude"],
                longitude_deg=sample["longitude"],
                timestamp=timestamp,
                elevation_m=sample.get("elevation_m"),
                speed_mps=sample.get("speed_mps"),
                heart_rate=sample.get("heart_rate"),
                power=sample.get("power"),
                cadence=sample.get("cadence"),
                temperature_c=sample.get("temperature_c"),
            ))
        if not positions:
            return None
        return GpsRoute(positions=positions, total_distance_m=distance)


def fit_messages_to_activities(
    messages: Iterable[Tuple[str, Dict[str, Any]]],
    diagnostics: DiagnosticCollector,
    *,
    mapper: Optional[VocabularyMapper] = None,
    settings: Optional[Settings] = None,
    summary_only: bool = False,
) -> List[CanonicalActivity]:
    """
    Build activities from a stream of FIT message dicts.

    Args:
        messages: (message_name, values) pairs in file order, with the raw
            integer encoding for the fields in RAW_FIELDS.
        diagnostics: Collector for this run.
        mapper: Vocabulary mapper (bundled tables by default).
        settings: Settings for pool inference and SWOLF tolerance.
        summary_only: Skip per-sample records and the GPS route.

    Returns:
        Activities in session order. Partial activities are returned even
        when errors were reported.
    """
    assembler = _FitAssembler(
        diagnostics,
        mapper or get_mapper(),
        settings or get_settings(),
        summary_only,
    )
    for name, values in messages:
        assembler.consume(name, values)
    return assembler.finish()


def fit_to_activities(
    data: bytes,
    *,
    summary_only: bool = False,
    mapper: Optional[VocabularyMapper] = None,
    settings: Optional[Settings] = None,
) -> DecodeResult:
    """
    Decode FIT bytes into canonical activities.

    Never raises for malformed input: unreadable files give no activities and
    a decode_error diagnostic.
    """
    diagnostics = DiagnosticCollector()
    # Bad values are dropped field by field; this only catches what slips past.
    activities: List[CanonicalActivity] = []
    try:
        activities = fit_messages_to_activities(
            read_fit_messages(data, diagnostics),
            diagnostics,
            mapper=mapper,
            settings=settings,
            summary_only=summary_only,
        )
    except ValidationError as e:
        diagnostics.error(
            DiagnosticCategory.DECODE_ERROR,
            f"FIT data produced an invalid activity: {e.errors()[0].get('msg', e)}",
            path="file",
        )

    logger.info(f"Decoded {len(activities)} activities from FIT ({len(diagnostics)} diagnostics)")
    return DecodeResult(activities=activities, diagnostics=list(diagnostics.diagnostics))
