"""
Unit tests for the unit and coordinate normalizer.

Tests for:
- Semicircle <-> degree conversion and clamping
- FIT epoch timestamps (range and ordering checks)
- ISO-8601 parsing/formatting
- Distance and speed conversions
"""

from datetime import datetime, timedelta, timezone

import pytest

from converter.core.units import (
    FIT_EPOCH,
    convert_distance,
    datetime_to_fit_timestamp,
    degrees_to_semicircles,
    fit_timestamp_to_datetime,
    format_iso_datetime,
    mps_to_kph,
    parse_iso_datetime,
    semicircles_to_degrees,
    yards_to_meters,
)
from domain.diagnostics import DiagnosticCollector
from domain.models import DiagnosticCategory, DistanceUnit, Severity


class TestSemicircles:
    """Tests for position angle conversion."""

    @pytest.mark.unit
    def test_quarter_turn_is_ninety_degrees(self):
        assert semicircles_to_degrees(2**30) == pytest.approx(90.0)
        assert degrees_to_semicircles(90.0) == 2**30

    @pytest.mark.unit
    @pytest.mark.parametrize("degrees", [-89.5, -0.000001, 0.0, 4.895168, 52.370216, 179.99])
    def test_round_trip_within_one_unit(self, degrees):
        """Degrees -> semicircles -> degrees stays within one semicircle."""
        back = semicircles_to_degrees(degrees_to_semicircles(degrees))
        assert abs(back - degrees) <= 180.0 / 2**31

    @pytest.mark.unit
    def test_out_of_range_value_is_clamped_with_warning(self):
        diagnostics = DiagnosticCollector()
        degrees = semicircles_to_degrees(2**31 + 10, diagnostics, path="record[0].position_lat")

        assert degrees == pytest.approx(180.0, abs=1e-6)
        assert len(diagnostics) == 1
        assert diagnostics.diagnostics[0].severity == Severity.WARNING
        assert diagnostics.diagnostics[0].path == "record[0].position_lat"

    @pytest.mark.unit
    def test_degrees_beyond_range_clamp_to_max(self):
        assert degrees_to_semicircles(180.0) == 2**31 - 1


class TestFitTimestamps:
    """Tests for FIT epoch conversion."""

    @pytest.mark.unit
    def test_zero_is_fit_epoch(self):
        assert fit_timestamp_to_datetime(0) == datetime(1989, 12, 31, tzinfo=timezone.utc)

    @pytest.mark.unit
    def test_round_trip(self):
        moment = datetime(2024, 6, 1, 7, 0, tzinfo=timezone.utc)
        assert fit_timestamp_to_datetime(datetime_to_fit_timestamp(moment)) == moment

    @pytest.mark.unit
    @pytest.mark.parametrize("ticks", [-1, 2**32])
    def test_out_of_range_is_an_error(self, ticks):
        diagnostics = DiagnosticCollector()
        assert fit_timestamp_to_datetime(ticks, diagnostics, path="record[3].timestamp") is None
        assert diagnostics.has_errors
        assert diagnostics.errors[0].category == DiagnosticCategory.DECODE_ERROR

    @pytest.mark.unit
    def test_backwards_timestamp_reports_error_but_converts(self):
        diagnostics = DiagnosticCollector()
        previous = FIT_EPOCH + timedelta(seconds=100)

        result = fit_timestamp_to_datetime(50, diagnostics, previous=previous)

        assert result == FIT_EPOCH + timedelta(seconds=50)
        assert len(diagnostics.errors) == 1

    @pytest.mark.unit
    def test_forward_timestamp_is_silent(self):
        diagnostics = DiagnosticCollector()
        fit_timestamp_to_datetime(150, diagnostics, previous=FIT_EPOCH + timedelta(seconds=100))
        assert len(diagnostics) == 0


class TestIsoDatetimes:
    """Tests for TCX/GPX timestamp text."""

    @pytest.mark.unit
    def test_parse_z_suffix(self):
        assert parse_iso_datetime("2024-06-01T07:00:00Z") == datetime(2024, 6, 1, 7, tzinfo=timezone.utc)

    @pytest.mark.unit
    def test_parse_offset_normalizes_to_utc(self):
        assert parse_iso_datetime("2024-06-01T09:00:00+02:00") == datetime(2024, 6, 1, 7, tzinfo=timezone.utc)

    @pytest.mark.unit
    def test_parse_milliseconds(self):
        parsed = parse_iso_datetime("2024-06-01T07:00:00.500Z")
        assert parsed.microsecond == 500000

    @pytest.mark.unit
    def test_parse_invalid_raises(self):
        with pytest.raises(ValueError):
            parse_iso_datetime("yesterday")

    @pytest.mark.unit
    def test_format_uses_z(self):
        assert format_iso_datetime(datetime(2024, 6, 1, 7, tzinfo=timezone.utc)) == "2024-06-01T07:00:00Z"


class TestConversions:
    """Tests for distance and speed helpers."""

    @pytest.mark.unit
    def test_yards_to_meters(self):
        assert yards_to_meters(25) == pytest.approx(22.86)

    @pytest.mark.unit
    def test_convert_distance_between_units(self):
        assert convert_distance(1, DistanceUnit.MILES, DistanceUnit.METERS) == pytest.approx(1609.344)
        assert convert_distance(1000, DistanceUnit.METERS, DistanceUnit.KILOMETERS) == pytest.approx(1.0)

    @pytest.mark.unit
    def test_mps_to_kph(self):
        assert mps_to_kph(10) == pytest.approx(36.0)
