"""
Unit tests for GPX encoding.
"""

import gpxpy
import pytest

from converter.adapters.activity_to_gpx import CREATOR, activities_to_gpx
from domain.models import DiagnosticCategory


def reparse(output: bytes):
    return gpxpy.parse(output.decode("utf-8"))


class TestTracks:
    """Tests for track layout."""

    @pytest.mark.unit
    def test_one_segment_per_set(self, running_activity):
        gpx = reparse(activities_to_gpx([running_activity]).output)

        assert gpx.creator == CREATOR
        assert len(gpx.tracks) == 1
        track = gpx.tracks[0]
        assert track.name == "Morning Run"
        assert track.type == "running"
        assert [len(s.points) for s in track.segments] == [3, 2]
        point = track.segments[0].points[0]
        assert (point.latitude, point.longitude, point.elevation) == (52.0, 4.0, 10.0)
        assert point.time.isoformat().startswith("2024-06-01T07:00:00")

    @pytest.mark.unit
    def test_route_fallback(self, route_only_activity):
        result = activities_to_gpx([route_only_activity])

        assert result.diagnostics == []
        track = reparse(result.output).tracks[0]
        assert track.type == "hiking"
        assert len(track.segments) == 1
        assert track.segments[0].points[1].elevation == 1010.0

    @pytest.mark.unit
    def test_one_track_per_activity(self, running_activity, route_only_activity):
        gpx = reparse(activities_to_gpx([running_activity, route_only_activity]).output)

        assert [t.name for t in gpx.tracks] == ["Morning Run", route_only_activity.label]


class TestLossReporting:
    """Tests for what GPX drops."""

    @pytest.mark.unit
    def test_metrics_and_aggregates_reported(self, running_activity):
        result = activities_to_gpx([running_activity])

        assert all(d.category == DiagnosticCategory.ENCODE_UNSUPPORTED for d in result.diagnostics)
        paths = sorted(d.path for d in result.diagnostics)
        assert paths == [
            "activities[0].telemetry",
            "activities[0].time_series.distance_m",
            "activities[0].time_series.heart_rate",
            "activities[0].time_series.power",
        ]
        assert result.status().exit_code == 1

    @pytest.mark.unit
    def test_each_loss_reported_once(self, running_activity):
        result = activities_to_gpx([running_activity, running_activity])

        assert len(result.diagnostics) == 4

    @pytest.mark.unit
    def test_multisport_loses_transitions(self, multisport_activity):
        result = activities_to_gpx([multisport_activity])

        messages = [d.message for d in result.diagnostics]
        assert any("transitions dropped" in m for m in messages)

    @pytest.mark.unit
    def test_no_positions(self, swim_activity):
        result = activities_to_gpx([swim_activity])

        assert reparse(result.output).tracks[0].segments == []
        assert any("No GPS positions" in d.message for d in result.diagnostics)
