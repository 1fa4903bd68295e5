"""
ConvertActivity Use Case.

Orchestrates one conversion run: decode the source document, optionally
validate the canonical activities, encode them into the target format and
classify the run from the diagnostics collected along the way.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence

from application.ports import SchemaValidator
from converter.adapters.activity_to_csv import activities_to_csv
from converter.adapters.activity_to_gpx import activities_to_gpx
from converter.adapters.activity_to_tcx import activities_to_tcx
from converter.adapters.activity_to_yaml import activities_to_yaml
from converter.adapters.fit_to_activity import fit_to_activities
from converter.adapters.gpx_to_activity import gpx_to_activities
from converter.adapters.results import DecodeResult, EncodeResult
from converter.adapters.tcx_to_activity import tcx_to_activities
from converter.adapters.yaml_to_activity import yaml_to_activities
from converter.core.vocabulary import VocabularyMapper, get_mapper
from converter.errors import UnsupportedFormatError
from converter.settings import Settings, get_settings
from domain.diagnostics import DiagnosticCollector, RunStatus, classify_run
from domain.models import CanonicalActivity, Diagnostic, DiagnosticCategory

logger = logging.getLogger(__name__)


class SourceFormat(str, Enum):
    """Formats that can be read."""

    FIT = "fit"
    TCX = "tcx"
    GPX = "gpx"
    YAML = "yaml"


class TargetFormat(str, Enum):
    """Formats that can be written."""

    TCX = "tcx"
    GPX = "gpx"
    CSV = "csv"
    YAML = "yaml"


def parse_source_format(name: str) -> SourceFormat:
    try:
        return SourceFormat(name.lower())
    except ValueError:
        raise UnsupportedFormatError(name, "source", [f.value for f in SourceFormat])


def parse_target_format(name: str) -> TargetFormat:
    try:
        return TargetFormat(name.lower())
    except ValueError:
        raise UnsupportedFormatError(name, "target", [f.value for f in TargetFormat])


@dataclass
class ConversionResult:
    """Result of the ConvertActivity use case execution."""

    status: RunStatus
    output: Optional[bytes] = None
    activities: List[CanonicalActivity] = field(default_factory=list)
    diagnostics: List[Diagnostic] = field(default_factory=list)
    source_format: Optional[str] = None
    target_format: Optional[str] = None

    @property
    def exit_code(self) -> int:
        return self.status.exit_code

    @property
    def success(self) -> bool:
        return self.status.succeeded

    @property
    def warnings(self) -> List[Diagnostic]:
        return [d for d in self.diagnostics if not d.is_error]

    @property
    def errors(self) -> List[Diagnostic]:
        return [d for d in self.diagnostics if d.is_error]


class ConvertActivityUseCase:
    """
    Use case for converting an activity document between formats.

    Orchestrates the following workflow:
    1. Resolve source and target formats
    2. Decode the source bytes into canonical activities
    3. Validate each activity (optional)
    4. Encode the activities into the target format
    5. Classify the run (strict mode turns warnings into a block)

    Dependencies are injected via constructor for testability.

    Usage:
        >>> use_case = ConvertActivityUseCase(validator=StructuralActivityValidator())
        >>> result = use_case.execute(data, "fit", "tcx")
        >>> result.exit_code
        0
    """

    def __init__(
        self,
        validator: Optional[SchemaValidator] = None,
        settings: Optional[Settings] = None,
        mapper: Optional[VocabularyMapper] = None,
    ) -> None:
        """
        Initialize the use case with its dependencies.

        Args:
            validator: Checks decoded activities; None skips validation
            settings: Run defaults; the cached environment settings if omitted
            mapper: Vocabulary mapper; the bundled tables if omitted
        """
        self._validator = validator
        self._settings = settings or get_settings()
        self._mapper = mapper or get_mapper()

    # -------------------------------------------------------------------------
    # Stages
    # -------------------------------------------------------------------------

    def decode(
        self,
        data: bytes,
        source_format: SourceFormat,
        *,
        summary_only: bool = False,
    ) -> DecodeResult:
        """Decode source bytes with the decoder for ``source_format``."""
        decoders: Dict[SourceFormat, Callable[[], DecodeResult]] = {
            SourceFormat.FIT: lambda: fit_to_activities(
                data, summary_only=summary_only, mapper=self._mapper, settings=self._settings
            ),
            SourceFormat.TCX: lambda: tcx_to_activities(
                data, summary_only=summary_only, mapper=self._mapper
            ),
            SourceFormat.GPX: lambda: gpx_to_activities(
                data, summary_only=summary_only, mapper=self._mapper
            ),
            SourceFormat.YAML: lambda: yaml_to_activities(data, summary_only=summary_only),
        }
        return decoders[source_format]()

    def encode(
        self,
        activities: Sequence[CanonicalActivity],
        target_format: TargetFormat,
        *,
        fields: Optional[Sequence[str]] = None,
    ) -> EncodeResult:
        """Encode canonical activities with the encoder for ``target_format``."""
        encoders: Dict[TargetFormat, Callable[[], EncodeResult]] = {
            TargetFormat.TCX: lambda: activities_to_tcx(activities, mapper=self._mapper),
            TargetFormat.GPX: lambda: activities_to_gpx(activities, mapper=self._mapper),
            TargetFormat.CSV: lambda: activities_to_csv(
                activities, fields=fields, precision=self._settings.csv_float_precision
            ),
            TargetFormat.YAML: lambda: activities_to_yaml(activities),
        }
        return encoders[target_format]()

    def validate(self, activities: Sequence[CanonicalActivity]) -> List[Diagnostic]:
        """Run the validator and translate its reports into diagnostics."""
        collector = DiagnosticCollector()
        if self._validator is None:
            return []
        for i, activity in enumerate(activities):
            report = self._validator.validate(activity)
            for message in report.errors:
                collector.error(DiagnosticCategory.VALIDATION_FAILURE, message, path=f"activities[{i}]")
            for message in report.warnings:
                collector.warning(DiagnosticCategory.VALIDATION_FAILURE, message, path=f"activities[{i}]")
        return list(collector.diagnostics)

    # -------------------------------------------------------------------------
    # Workflow
    # -------------------------------------------------------------------------

    def execute(
        self,
        data: bytes,
        source_format: str,
        target_format: str,
        *,
        strict: Optional[bool] = None,
        summary_only: Optional[bool] = None,
        validate: Optional[bool] = None,
        fields: Optional[Sequence[str]] = None,
    ) -> ConversionResult:
        """
        Execute one conversion run.

        Args:
            data: Source document bytes
            source_format: fit, tcx, gpx or yaml
            target_format: tcx, gpx, csv or yaml
            strict: Block the run on any warning (settings default if None)
            summary_only: Skip per-sample data (settings default if None)
            validate: Run the validator (settings default if None)
            fields: CSV column subset

        Returns:
            ConversionResult with the encoded output, diagnostics and status
        """
        strict = self._settings.strict if strict is None else strict
        summary_only = self._settings.summary_only if summary_only is None else summary_only
        validate = self._settings.validate_output if validate is None else validate
        diagnostics = DiagnosticCollector()

        try:
            source = parse_source_format(source_format)
            target = parse_target_format(target_format)
        except UnsupportedFormatError as e:
            logger.warning(str(e))
            diagnostics.error(DiagnosticCategory.DECODE_ERROR, str(e), path="format")
            return ConversionResult(
                status=classify_run(diagnostics, strict=strict),
                diagnostics=list(diagnostics.diagnostics),
                source_format=source_format,
                target_format=target_format,
            )

        # Step 1: Decode
        logger.info(f"Decoding {len(data)} bytes of {source.value}")
        activities: List[CanonicalActivity] = []
        try:
            decoded = self.decode(data, source, summary_only=summary_only)
            activities = decoded.activities
            diagnostics.extend(decoded.diagnostics)
        except Exception as e:
            logger.exception(f"Unexpected failure decoding {source.value}")
            diagnostics.error(
                DiagnosticCategory.DECODE_ERROR, f"Internal error while decoding: {e}", path="file"
            )

        # Step 2: Validate
        if validate and activities:
            diagnostics.extend(self.validate(activities))

        # Step 3: Encode
        output: Optional[bytes] = None
        if activities:
            logger.info(f"Encoding {len(activities)} activities as {target.value}")
            try:
                encoded = self.encode(activities, target, fields=fields)
                output = encoded.output
                diagnostics.extend(encoded.diagnostics)
            except Exception as e:
                logger.exception(f"Unexpected failure encoding {target.value}")
                diagnostics.error(
                    DiagnosticCategory.ENCODE_UNSUPPORTED,
                    f"Internal error while encoding: {e}",
                    path="output",
                )

        status = classify_run(diagnostics, strict=strict)
        if status is not RunStatus.SUCCESS:
            logger.warning(
                f"Conversion {source.value} -> {target.value} finished as {status.value} "
                f"({len(diagnostics.errors)} errors, {len(diagnostics.warnings)} warnings)"
            )
        return ConversionResult(
            status=status,
            output=output,
            activities=activities,
            diagnostics=list(diagnostics.diagnostics),
            source_format=source.value,
            target_format=target.value,
        )
