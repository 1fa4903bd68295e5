"""
Unit tests for the canonical YAML document (write and read).
"""

from datetime import datetime, timezone

import pytest
import yaml

from converter.adapters.activity_to_yaml import FORMAT_VERSION, activities_to_yaml
from converter.adapters.yaml_to_activity import yaml_to_activities
from domain.models import DiagnosticCategory

EXPORTED_AT = datetime(2024, 6, 2, 12, 0, tzinfo=timezone.utc)


class TestActivitiesToYaml:
    """Tests for writing the canonical document."""

    @pytest.mark.unit
    def test_document_header(self, running_activity):
        result = activities_to_yaml([running_activity], exported_at=EXPORTED_AT)

        doc = yaml.safe_load(result.output)
        assert doc["format_version"] == FORMAT_VERSION
        assert doc["exported_at"] == "2024-06-02T12:00:00Z"
        assert len(doc["activities"]) == 1
        assert result.diagnostics == []

    @pytest.mark.unit
    def test_fields_in_model_order(self, running_activity):
        text = activities_to_yaml([running_activity], exported_at=EXPORTED_AT).output.decode()

        assert text.startswith("format_version: 1\nexported_at:")
        assert "title: Morning Run" in text

    @pytest.mark.unit
    def test_empty_document_warns(self):
        result = activities_to_yaml([])

        assert yaml.safe_load(result.output)["activities"] == []
        assert result.diagnostics[0].category == DiagnosticCategory.ENCODE_UNSUPPORTED


class TestYamlToActivities:
    """Tests for reading the canonical document back."""

    @pytest.mark.unit
    def test_lossless(self, running_activity, swim_activity, multisport_activity, route_only_activity):
        originals = [running_activity, swim_activity, multisport_activity, route_only_activity]
        output = activities_to_yaml(originals).output

        result = yaml_to_activities(output)

        assert result.diagnostics == []
        assert result.activities == originals

    @pytest.mark.unit
    def test_summary_only_strips_samples(self, running_activity, route_only_activity):
        output = activities_to_yaml([running_activity, route_only_activity]).output

        result = yaml_to_activities(output, summary_only=True)

        assert not any(a.has_time_series for a in result.activities)
        assert all(a.gps_route is None for a in result.activities)
        assert result.activities[0].telemetry == running_activity.telemetry
        assert [d.category for d in result.diagnostics] == [DiagnosticCategory.TIME_SERIES_SKIPPED] * 2

    @pytest.mark.unit
    def test_version_mismatch_is_a_warning(self, running_activity):
        doc = yaml.safe_load(activities_to_yaml([running_activity]).output)
        doc["format_version"] = 99

        result = yaml_to_activities(yaml.safe_dump(doc).encode())

        assert len(result.activities) == 1
        assert not result.diagnostics[0].is_error
        assert "99" in result.diagnostics[0].message

    @pytest.mark.unit
    def test_invalid_activity_does_not_hide_others(self, running_activity):
        doc = yaml.safe_load(activities_to_yaml([running_activity, running_activity]).output)
        doc["activities"][0]["sport"] = "quidditch"

        result = yaml_to_activities(yaml.safe_dump(doc).encode())

        assert len(result.activities) == 1
        assert result.diagnostics[0].is_error
        assert result.diagnostics[0].path.startswith("activities[0].sport")

    @pytest.mark.unit
    @pytest.mark.parametrize("data", [b"activities: [", b"- just\n- a list\n", b""])
    def test_not_a_document(self, data):
        result = yaml_to_activities(data)

        assert result.activities == []
        assert result.diagnostics[0].category == DiagnosticCategory.DECODE_ERROR
