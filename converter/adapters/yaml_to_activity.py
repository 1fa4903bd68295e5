"""Canonical YAML -> CanonicalActivity (the reverse of activity_to_yaml)."""

import logging
from typing import List

import yaml
from pydantic import ValidationError

from converter.adapters.activity_to_yaml import FORMAT_VERSION
from converter.adapters.results import DecodeResult
from domain.diagnostics import DiagnosticCollector
from domain.models import CanonicalActivity, DiagnosticCategory

logger = logging.getLogger(__name__)


def _error_location(error: dict) -> str:
    return ".".join(str(part) for part in error.get("loc", ()))


def yaml_to_activities(data: bytes, *, summary_only: bool = False) -> DecodeResult:
    """
    Read a canonical YAML document.

    Each activity is validated on its own, so one malformed entry does not
    hide the others. With ``summary_only`` time series and GPS routes are
    dropped after loading.
    """
    diagnostics = DiagnosticCollector()
    try:
        doc = yaml.safe_load(data)
    except yaml.YAMLError as e:
        diagnostics.error(DiagnosticCategory.DECODE_ERROR, f"Malformed YAML: {e}", path="file")
        return DecodeResult(diagnostics=list(diagnostics.diagnostics))

    if not isinstance(doc, dict) or not isinstance(doc.get("activities"), list):
        diagnostics.error(
            DiagnosticCategory.DECODE_ERROR,
            "Not a canonical activity document (expected a mapping with an 'activities' list)",
            path="file",
        )
        return DecodeResult(diagnostics=list(diagnostics.diagnostics))

    version = doc.get("format_version")
    if version != FORMAT_VERSION:
        diagnostics.warning(
            DiagnosticCategory.DECODE_ERROR,
            f"Document format_version {version!r} differs from {FORMAT_VERSION}; reading anyway",
            path="format_version",
        )

    activities: List[CanonicalActivity] = []
    for i, raw in enumerate(doc["activities"]):
        try:
            activity = CanonicalActivity.model_validate(raw)
        except ValidationError as e:
            for error in e.errors():
                diagnostics.error(
                    DiagnosticCategory.DECODE_ERROR,
                    error.get("msg", "invalid value"),
                    path=f"activities[{i}].{_error_location(error)}",
                )
            continue
        if summary_only:
            activity = _strip_samples(activity, diagnostics, f"activities[{i}]")
        activities.append(activity)

    logger.info(f"Decoded {len(activities)} activities from canonical YAML")
    return DecodeResult(activities=activities, diagnostics=list(diagnostics.diagnostics))


def _strip_samples(
    activity: CanonicalActivity, diagnostics: DiagnosticCollector, path: str
) -> CanonicalActivity:
    if not activity.has_time_series and activity.gps_route is None:
        return activity
    segments = [
        segment.model_copy(update={
            "sets": [s.model_copy(update={"time_series": None}) for s in segment.sets]
        })
        for segment in activity.segments
    ]
    diagnostics.warning(
        DiagnosticCategory.TIME_SERIES_SKIPPED,
        "Summary-only mode: time series and GPS route were not imported",
        path=path,
    )
    return activity.model_copy(update={"segments": segments, "gps_route": None})
