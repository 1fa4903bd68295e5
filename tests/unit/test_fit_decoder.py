"""
Unit tests for FIT message assembly.

Drives fit_messages_to_activities() with literal (message, values) pairs,
in the raw encoding read_fit_messages() produces: timestamps as FIT epoch
ticks, positions as semicircles and enums as integer codes.

Tests for:
- Sessions, laps and records -> segments, sets and time-series windows
- Multisport grouping and single-sport multi-session files
- Pool swimming (declared and inferred pool, lengths, SWOLF)
- Devices, unknown messages/fields, summary-only mode
- Structural errors (no sessions, unreadable bytes)
"""

from datetime import timedelta

import pytest

from converter.adapters.fit_to_activity import fit_messages_to_activities, fit_to_activities
from converter.core.units import datetime_to_fit_timestamp, degrees_to_semicircles
from domain.models import DeviceType, DiagnosticCategory, DistanceUnit, Sport, StrokeType


def ticks(moment):
    return datetime_to_fit_timestamp(moment)


def record(moment, **values):
    return ("record", {"timestamp": ticks(moment), **values})


@pytest.fixture
def decode(settings, mapper, diagnostics):
    """Run stage two with isolated settings and return the activities."""

    def _decode(messages, **kwargs):
        return fit_messages_to_activities(
            messages, diagnostics, mapper=mapper, settings=settings, **kwargs
        )

    return _decode


@pytest.fixture
def run_messages(t0):
    """One running session, two laps, four GPS records."""
    lat = degrees_to_semicircles(52.0)
    lon = degrees_to_semicircles(4.0)
    return [
        ("file_id", {"type": 4, "manufacturer": "garmin"}),
        record(t0, position_lat=lat, position_long=lon, heart_rate=120, altitude=10.0, distance=0.0),
        record(t0 + timedelta(seconds=1), position_lat=lat + 1000, position_long=lon, heart_rate=122, distance=3.0),
        record(t0 + timedelta(seconds=2), position_lat=lat + 2000, position_long=lon, heart_rate=125, power=250),
        record(t0 + timedelta(seconds=3), heart_rate=126),
        ("lap", {"start_time": ticks(t0), "total_timer_time": 2.0, "total_distance": 6.0,
                 "avg_heart_rate": 121, "timestamp": ticks(t0 + timedelta(seconds=2))}),
        ("lap", {"start_time": ticks(t0 + timedelta(seconds=2)), "total_timer_time": 2.0,
                 "total_distance": 6.0, "timestamp": ticks(t0 + timedelta(seconds=4))}),
        ("session", {"start_time": ticks(t0), "sport": 1, "sub_sport": 0,
                     "total_elapsed_time": 4.0, "total_timer_time": 4.0, "total_distance": 12.0,
                     "avg_heart_rate": 123, "max_heart_rate": 126, "total_calories": 3,
                     "timestamp": ticks(t0 + timedelta(seconds=4))}),
        ("activity", {"num_sessions": 1}),
    ]


class TestSingleSession:
    """Tests for a plain single-sport file."""

    @pytest.mark.unit
    def test_structure(self, decode, run_messages, diagnostics, t0):
        activities = decode(run_messages)

        assert len(activities) == 1
        activity = activities[0]
        assert activity.sport == Sport.RUNNING
        assert activity.started_at == t0
        assert activity.duration_sec == 4.0
        assert activity.source_format == "fit"
        assert len(activity.segments) == 1
        assert [s.set_number for s in activity.segments[0].sets] == [1, 2]
        assert len(diagnostics) == 0

    @pytest.mark.unit
    def test_records_split_by_lap_start(self, decode, run_messages):
        sets = decode(run_messages)[0].segments[0].sets

        assert sets[0].time_series.column("heart_rate") == (120.0, 122.0)
        assert sets[1].time_series.column("heart_rate") == (125.0, 126.0)
        assert sets[1].time_series.column("power") == (250.0, None)

    @pytest.mark.unit
    def test_positions_converted_to_degrees(self, decode, run_messages):
        activity = decode(run_messages)[0]

        latitudes = activity.segments[0].sets[0].time_series.column("latitude")
        assert latitudes[0] == pytest.approx(52.0, abs=1e-6)
        assert len(activity.gps_route.positions) == 3
        assert activity.gps_route.positions[0].heart_rate == 120

    @pytest.mark.unit
    def test_summary_telemetry(self, decode, run_messages):
        activity = decode(run_messages)[0]

        assert activity.telemetry.heart_rate_avg == 123
        assert activity.telemetry.calories == 3
        assert activity.segments[0].sets[0].telemetry.heart_rate_avg == 121
        assert activity.segments[0].distance_m == 12.0

    @pytest.mark.unit
    def test_summary_only(self, decode, run_messages, diagnostics):
        activity = decode(run_messages, summary_only=True)[0]

        assert not activity.has_time_series
        assert activity.gps_route is None
        assert activity.telemetry.heart_rate_avg == 123
        skipped = [d for d in diagnostics if d.category == DiagnosticCategory.TIME_SERIES_SKIPPED]
        assert len(skipped) == 1
        assert "4 per-sample records" in skipped[0].message


class TestSessionGrouping:
    """Tests for multi-session files."""

    @pytest.mark.unit
    def test_swim_transition_bike(self, decode, diagnostics, t0):
        messages = [
            ("session", {"start_time": ticks(t0), "sport": 5, "sub_sport": 18, "total_elapsed_time": 600.0}),
            ("session", {"start_time": ticks(t0 + timedelta(minutes=10)), "sport": 3,
                         "total_elapsed_time": 90.0, "avg_heart_rate": 150}),
            ("session", {"start_time": ticks(t0 + timedelta(minutes=12)), "sport": 2,
                         "total_elapsed_time": 1800.0}),
        ]

        activities = decode(messages)

        assert len(activities) == 1
        activity = activities[0]
        assert activity.sport == Sport.MULTISPORT
        assert [s.sport for s in activity.segments] == [Sport.SWIMMING, Sport.CYCLING]
        assert activity.transitions[0].transition_id == "T1"
        assert activity.transitions[0].heart_rate_avg == 150
        assert activity.duration_sec == 600 + 1800 + 90

    @pytest.mark.unit
    def test_three_rides_are_three_activities(self, decode, t0):
        messages = [
            ("session", {"start_time": ticks(t0 + timedelta(hours=i)), "sport": 2,
                         "total_elapsed_time": 600.0})
            for i in range(3)
        ]

        activities = decode(messages)

        assert len(activities) == 3
        assert all(a.sport == Sport.CYCLING and not a.transitions for a in activities)

    @pytest.mark.unit
    def test_records_stay_with_their_session(self, decode, t0):
        later = t0 + timedelta(hours=1)
        messages = [
            record(t0, heart_rate=100),
            record(later, heart_rate=150),
            ("session", {"start_time": ticks(t0), "sport": 2}),
            ("session", {"start_time": ticks(later), "sport": 2}),
        ]

        first, second = decode(messages)

        assert first.segments[0].sets[0].time_series.column("heart_rate") == (100.0,)
        assert second.segments[0].sets[0].time_series.column("heart_rate") == (150.0,)


class TestPoolSwimming:
    """Tests for lengths, SWOLF and pool configuration."""

    def _swim(self, t0, session_extra=None, lengths=4, distance=100.0):
        messages = [("lap", {"start_time": ticks(t0), "total_timer_time": 130.0, "total_distance": distance})]
        for i in range(lengths):
            messages.append(("length", {
                "start_time": ticks(t0 + timedelta(seconds=32 * i)),
                "total_elapsed_time": 30.0,
                "total_strokes": 15,
                "swim_stroke": 0,
                "length_type": 1,
            }))
        session = {"start_time": ticks(t0), "sport": 5, "sub_sport": 17, "total_distance": distance}
        session.update(session_extra or {})
        messages.append(("session", session))
        return messages

    @pytest.mark.unit
    def test_lengths_and_swolf(self, decode, t0):
        st = decode(self._swim(t0))[0].segments[0].sets[0]

        assert [length.index for length in st.swim_lengths] == [1, 2, 3, 4]
        assert all(length.swolf == 45 for length in st.swim_lengths)
        assert st.swim_lengths[0].stroke == StrokeType.FREESTYLE

    @pytest.mark.unit
    def test_pool_inferred_from_distance(self, decode, diagnostics, t0):
        pool = decode(self._swim(t0))[0].segments[0].pool

        assert pool.length == 25.0
        assert pool.inferred is True
        assert pool.confidence == 1.0
        assert len(diagnostics) == 0

    @pytest.mark.unit
    def test_declared_pool_wins(self, decode, t0):
        pool = decode(self._swim(t0, {"pool_length": 50.0, "pool_length_unit": 0}))[0].segments[0].pool

        assert pool.length == 50.0
        assert pool.inferred is False

    @pytest.mark.unit
    def test_declared_pool_in_yards(self, decode, t0):
        pool = decode(self._swim(t0, {"pool_length": 22.86, "pool_length_unit": 1}))[0].segments[0].pool

        assert pool.unit == DistanceUnit.YARDS
        assert pool.length == pytest.approx(25.0)

    @pytest.mark.unit
    def test_unrecognised_pool_uses_default(self, decode, diagnostics, t0):
        pool = decode(self._swim(t0, lengths=4, distance=148.0))[0].segments[0].pool

        assert pool.length == 25.0
        assert pool.confidence == 0.0
        assert any(d.category == DiagnosticCategory.INFERENCE_UNCERTAIN for d in diagnostics)

    @pytest.mark.unit
    def test_unmapped_stroke(self, decode, diagnostics, t0):
        messages = self._swim(t0, lengths=1)
        messages[1][1]["swim_stroke"] = 42

        st = decode(messages)[0].segments[0].sets[0]

        assert st.swim_lengths[0].stroke == StrokeType.UNKNOWN
        assert any(d.category == DiagnosticCategory.MAPPING_GAP for d in diagnostics)


class TestDevicesAndGaps:
    """Tests for devices and unmodeled data."""

    @pytest.mark.unit
    def test_devices_deduplicated_and_classified(self, decode, run_messages):
        devices = [
            ("device_info", {"device_index": 0, "manufacturer": "garmin", "garmin_product": "fr965",
                             "serial_number": 3999999999, "software_version": 19.2}),
            ("device_info", {"device_index": 1, "source_type": 1, "device_type": 120, "serial_number": 42}),
            ("device_info", {"device_index": 1, "source_type": 1, "device_type": 120, "serial_number": 42}),
        ]

        activity = decode(devices + run_messages)[0]

        assert len(activity.devices) == 2
        recorder, strap = activity.devices
        assert recorder.device_type == DeviceType.RECORDER
        assert recorder.product == "fr965"
        assert recorder.software_version == "19.20"
        assert strap.device_type == DeviceType.HEART_RATE_MONITOR

    @pytest.mark.unit
    def test_unknown_message_reported_once(self, decode, run_messages, diagnostics):
        extra = [("unknown_65280", {"unknown_0": 1}), ("unknown_65280", {"unknown_0": 2})]

        decode(extra + run_messages)

        gaps = [d for d in diagnostics if d.category == DiagnosticCategory.MAPPING_GAP]
        assert len(gaps) == 1
        assert gaps[0].path == "unknown_65280"

    @pytest.mark.unit
    def test_unknown_field_reported_once_per_name(self, decode, t0, diagnostics):
        messages = [
            record(t0, heart_rate=100, unknown_99=7),
            record(t0 + timedelta(seconds=1), heart_rate=101, unknown_99=8),
            ("session", {"start_time": ticks(t0), "sport": 1, "unknown_150": 1}),
        ]

        decode(messages)

        paths = sorted(d.path for d in diagnostics if d.category == DiagnosticCategory.MAPPING_GAP)
        assert paths == ["record.unknown_99", "session.unknown_150"]

    @pytest.mark.unit
    def test_unmodelled_device_fields_reported_once(self, decode, run_messages, diagnostics):
        devices = [
            ("device_info", {"device_index": 0, "garmin_product": "fr965", "cum_operating_time": 12345,
                             "descriptor": "x"}),
            ("device_info", {"device_index": 2, "cum_operating_time": 99}),
        ]

        decode(devices + run_messages)

        paths = sorted(d.path for d in diagnostics if d.category == DiagnosticCategory.MAPPING_GAP)
        assert paths == ["device_info.cum_operating_time", "device_info.descriptor"]

    @pytest.mark.unit
    def test_unmodelled_sport_fields_reported(self, decode, run_messages, diagnostics):
        decode([("sport", {"sport": 1, "sub_sport": 0, "name": "Trail"})] + run_messages)

        assert [d.path for d in diagnostics] == ["sport.name"]


class TestOutOfRangeValues:
    """One bad value is dropped; the rest of the file still decodes."""

    @pytest.mark.unit
    def test_impossible_latitude_drops_only_that_position(self, decode, diagnostics, t0):
        lon = degrees_to_semicircles(4.0)
        messages = [
            record(t0, position_lat=1_500_000_000, position_long=lon, heart_rate=100),
            record(t0 + timedelta(seconds=1), position_lat=degrees_to_semicircles(52.0),
                   position_long=lon, heart_rate=101),
            ("session", {"start_time": ticks(t0), "sport": 1, "total_elapsed_time": 2.0}),
        ]

        activities = decode(messages)

        assert len(activities) == 1
        activity = activities[0]
        assert len(activity.gps_route.positions) == 1
        series = activity.segments[0].sets[0].time_series
        assert series.column("heart_rate") == (100.0, 101.0)
        assert series.column("latitude")[0] is None
        assert not diagnostics.has_errors
        bad = [d for d in diagnostics.warnings if d.category == DiagnosticCategory.DECODE_ERROR]
        assert [d.path for d in bad] == ["record[0].position_lat"]

    @pytest.mark.unit
    def test_negative_summary_value_dropped(self, decode, diagnostics, t0):
        messages = [
            ("lap", {"start_time": ticks(t0), "total_timer_time": 60.0, "total_calories": -5,
                     "avg_heart_rate": 140}),
            ("session", {"start_time": ticks(t0), "sport": 2, "total_distance": -1.0}),
        ]

        segment = decode(messages)[0].segments[0]

        assert segment.sets[0].telemetry.calories is None
        assert segment.sets[0].telemetry.heart_rate_avg == 140
        assert segment.distance_m is None
        paths = sorted(d.path for d in diagnostics.warnings if d.category == DiagnosticCategory.DECODE_ERROR)
        assert paths == ["lap[0].calories", "session[0].distance_m"]

    @pytest.mark.unit
    def test_negative_sample_dropped(self, decode, diagnostics, t0):
        messages = [
            record(t0, power=-20, heart_rate=100),
            record(t0 + timedelta(seconds=1), power=-30, heart_rate=101),
            ("session", {"start_time": ticks(t0), "sport": 2}),
        ]

        series = decode(messages)[0].segments[0].sets[0].time_series

        assert not series.has_metric("power")
        assert series.column("heart_rate") == (100.0, 101.0)
        assert [d.message for d in diagnostics.warnings if d.category == DiagnosticCategory.DECODE_ERROR] == [
            "Negative power samples dropped"
        ]


class TestStructuralProblems:
    """Tests for missing or broken structure."""

    @pytest.mark.unit
    def test_no_data_is_an_error(self, decode, diagnostics):
        assert decode([("file_id", {"type": 4})]) == []
        assert diagnostics.has_errors

    @pytest.mark.unit
    def test_missing_session_is_reconstructed(self, decode, diagnostics, t0):
        messages = [
            ("sport", {"sport": 2, "sub_sport": 0}),
            record(t0, heart_rate=100),
            ("lap", {"start_time": ticks(t0), "total_timer_time": 60.0}),
        ]

        activity = decode(messages)[0]

        assert activity.sport == Sport.CYCLING
        assert activity.started_at == t0
        assert any(d.category == DiagnosticCategory.INFERENCE_UNCERTAIN for d in diagnostics)
        assert not diagnostics.has_errors

    @pytest.mark.unit
    def test_session_without_laps_gets_one_set(self, decode, diagnostics, t0):
        messages = [
            record(t0, heart_rate=100),
            record(t0 + timedelta(seconds=1), heart_rate=101),
            ("session", {"start_time": ticks(t0), "sport": 1, "total_timer_time": 2.0}),
        ]

        sets = decode(messages)[0].segments[0].sets

        assert len(sets) == 1
        assert len(sets[0].time_series) == 2
        assert [d.category for d in diagnostics] == [DiagnosticCategory.INFERENCE_UNCERTAIN]

    @pytest.mark.unit
    def test_backwards_record_is_an_error(self, decode, diagnostics, t0):
        messages = [
            record(t0 + timedelta(seconds=5), heart_rate=100),
            record(t0, heart_rate=90),
            ("session", {"start_time": ticks(t0), "sport": 1}),
        ]

        activity = decode(messages)[0]

        assert diagnostics.has_errors
        assert activity.segments[0].sets[0].time_series.column("heart_rate") == (100.0,)

    @pytest.mark.unit
    def test_unreadable_bytes(self):
        result = fit_to_activities(b"definitely not a FIT file")

        assert result.activities == []
        assert len(result.diagnostics) == 1
        assert result.diagnostics[0].category == DiagnosticCategory.DECODE_ERROR
        assert result.diagnostics[0].message.startswith("Unreadable FIT data")
        assert result.status().exit_code == 2
