"""
Unit tests for ConvertActivityUseCase.

Tests for:
- Run classification and exit codes (success, loss, failure, strict)
- Validator integration through the SchemaValidator port
- Option defaults from Settings and per-run overrides
- Unsupported formats and unexpected internal failures
"""

import pytest

from application.use_cases import (
    ConversionResult,
    ConvertActivityUseCase,
    SourceFormat,
    TargetFormat,
    parse_source_format,
    parse_target_format,
)
from converter.adapters.activity_to_yaml import activities_to_yaml
from converter.errors import UnsupportedFormatError
from converter.settings import Settings
from domain.diagnostics import RunStatus
from domain.models import DiagnosticCategory
from tests.fakes.schema_validator import FakeSchemaValidator


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def use_case(settings) -> ConvertActivityUseCase:
    """Use case without a validator."""
    return ConvertActivityUseCase(settings=settings)


@pytest.fixture
def running_yaml(running_activity) -> bytes:
    return activities_to_yaml([running_activity]).output


@pytest.fixture
def swim_yaml(swim_activity) -> bytes:
    return activities_to_yaml([swim_activity]).output


# =============================================================================
# Format parsing
# =============================================================================


@pytest.mark.unit
class TestFormatParsing:
    """Test format name resolution."""

    def test_case_insensitive(self):
        assert parse_source_format("FIT") == SourceFormat.FIT
        assert parse_target_format("Csv") == TargetFormat.CSV

    def test_fit_is_read_only(self):
        with pytest.raises(UnsupportedFormatError) as exc_info:
            parse_target_format("fit")
        assert exc_info.value.direction == "target"
        assert "tcx" in str(exc_info.value)

    def test_csv_is_write_only(self):
        with pytest.raises(UnsupportedFormatError):
            parse_source_format("csv")


# =============================================================================
# Classification
# =============================================================================


@pytest.mark.unit
class TestRunStatus:
    """Test how runs are classified."""

    def test_lossless_run(self, use_case, running_yaml):
        result = use_case.execute(running_yaml, "yaml", "yaml")

        assert isinstance(result, ConversionResult)
        assert result.status == RunStatus.SUCCESS
        assert result.exit_code == 0
        assert result.success is True
        assert result.output is not None
        assert result.source_format == "yaml"
        assert result.target_format == "yaml"

    def test_run_with_loss(self, use_case, running_yaml):
        result = use_case.execute(running_yaml, "yaml", "gpx")

        assert result.exit_code == 1
        assert result.success is True
        assert result.output.startswith(b"<?xml")
        assert result.warnings and not result.errors

    def test_strict_blocks_on_warning(self, use_case, running_yaml):
        result = use_case.execute(running_yaml, "yaml", "gpx", strict=True)

        assert result.status == RunStatus.STRICT_BLOCKED
        assert result.exit_code == 3
        assert result.success is False

    def test_strict_from_settings(self, running_yaml):
        use_case = ConvertActivityUseCase(settings=Settings(strict=True, _env_file=None))

        assert use_case.execute(running_yaml, "yaml", "gpx").exit_code == 3
        assert use_case.execute(running_yaml, "yaml", "gpx", strict=False).exit_code == 1

    def test_strict_does_not_affect_clean_runs(self, use_case, running_yaml):
        assert use_case.execute(running_yaml, "yaml", "yaml", strict=True).exit_code == 0

    def test_encode_error_fails(self, use_case, swim_yaml):
        result = use_case.execute(swim_yaml, "yaml", "csv")

        assert result.exit_code == 2
        assert result.output is None
        assert result.errors[0].category == DiagnosticCategory.ENCODE_UNSUPPORTED

    def test_decode_error_fails(self, use_case):
        result = use_case.execute(b"\x00\x01 not fit", "fit", "tcx")

        assert result.exit_code == 2
        assert result.activities == []
        assert result.output is None
        assert result.errors[0].category == DiagnosticCategory.DECODE_ERROR

    def test_unsupported_format(self, use_case, running_yaml):
        result = use_case.execute(running_yaml, "yaml", "kml")

        assert result.exit_code == 2
        assert result.errors[0].path == "format"
        assert result.target_format == "kml"


# =============================================================================
# Validation
# =============================================================================


@pytest.mark.unit
class TestValidation:
    """Test the validator port integration."""

    def test_validator_errors_fail_the_run(self, settings, running_yaml):
        validator = FakeSchemaValidator(errors=["Activity has no start time"])
        use_case = ConvertActivityUseCase(validator=validator, settings=settings)

        result = use_case.execute(running_yaml, "yaml", "yaml")

        assert result.exit_code == 2
        assert result.errors[0].category == DiagnosticCategory.VALIDATION_FAILURE
        assert result.errors[0].path == "activities[0]"
        assert len(validator.calls) == 1

    def test_validator_warnings_are_loss(self, settings, running_yaml):
        validator = FakeSchemaValidator(warnings=["suspicious heart rate"])
        use_case = ConvertActivityUseCase(validator=validator, settings=settings)

        result = use_case.execute(running_yaml, "yaml", "yaml")

        assert result.exit_code == 1
        assert result.warnings[0].message == "suspicious heart rate"

    def test_validation_can_be_skipped(self, settings, running_yaml):
        validator = FakeSchemaValidator(errors=["never seen"])
        use_case = ConvertActivityUseCase(validator=validator, settings=settings)

        result = use_case.execute(running_yaml, "yaml", "yaml", validate=False)

        assert result.exit_code == 0
        assert validator.calls == []

    def test_validation_disabled_in_settings(self, running_yaml):
        validator = FakeSchemaValidator(errors=["never seen"])
        use_case = ConvertActivityUseCase(
            validator=validator, settings=Settings(validate_output=False, _env_file=None)
        )

        assert use_case.execute(running_yaml, "yaml", "yaml").exit_code == 0
        assert validator.calls == []


# =============================================================================
# Options
# =============================================================================


@pytest.mark.unit
class TestOptions:
    """Test per-run options."""

    def test_summary_only(self, use_case, running_yaml):
        result = use_case.execute(running_yaml, "yaml", "yaml", summary_only=True)

        assert not result.activities[0].has_time_series
        assert result.warnings[0].category == DiagnosticCategory.TIME_SERIES_SKIPPED

    def test_csv_fields(self, use_case, running_yaml):
        result = use_case.execute(running_yaml, "yaml", "csv", fields=["power"])

        header = result.output.decode().splitlines()[0]
        assert header.endswith("elapsed_sec,power")

    def test_csv_precision_from_settings(self, running_yaml):
        use_case = ConvertActivityUseCase(settings=Settings(csv_float_precision=1, _env_file=None))

        result = use_case.execute(running_yaml, "yaml", "csv", fields=["latitude"])

        assert result.output.decode().splitlines()[1].endswith(",52")


# =============================================================================
# Unexpected failures
# =============================================================================


@pytest.mark.unit
class TestInternalFailures:
    """Test that bugs in a codec become diagnostics, not crashes."""

    def test_decoder_exception(self, use_case, monkeypatch):
        def boom(*args, **kwargs):
            raise RuntimeError("decoder exploded")

        monkeypatch.setattr(use_case, "decode", boom)

        result = use_case.execute(b"", "tcx", "gpx")

        assert result.exit_code == 2
        assert "decoder exploded" in result.errors[0].message
        assert result.errors[0].category == DiagnosticCategory.DECODE_ERROR

    def test_encoder_exception(self, use_case, running_yaml, monkeypatch):
        def boom(*args, **kwargs):
            raise RuntimeError("encoder exploded")

        monkeypatch.setattr(use_case, "encode", boom)

        result = use_case.execute(running_yaml, "yaml", "tcx")

        assert result.exit_code == 2
        assert result.output is None
        assert result.errors[0].category == DiagnosticCategory.ENCODE_UNSUPPORTED
        assert len(result.activities) == 1
