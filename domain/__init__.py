"""
Domain layer for the activity converter.

This package contains the canonical activity model and the diagnostics
accumulator. Nothing here knows about file formats, I/O or configuration.
"""

from domain.diagnostics import DiagnosticCollector, RunStatus, classify_run
from domain.models import (
    ActivitySet,
    CanonicalActivity,
    Diagnostic,
    DiagnosticCategory,
    Segment,
    Severity,
    Sport,
    Telemetry,
    TimeSeries,
)

__all__ = [
    "ActivitySet",
    "CanonicalActivity",
    "Diagnostic",
    "DiagnosticCategory",
    "DiagnosticCollector",
    "RunStatus",
    "Segment",
    "Severity",
    "Sport",
    "Telemetry",
    "TimeSeries",
    "classify_run",
]
