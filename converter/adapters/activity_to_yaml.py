"""
CanonicalActivity -> canonical YAML.

The document is the lossless persistence form of the canonical model:

    format_version: 1
    exported_at: 2024-06-01T08:00:00Z
    activities:
      - started_at: ...
        segments: [...]
"""

import logging
from datetime import datetime, timezone
from typing import Optional, Sequence

import yaml

from converter.adapters.results import EncodeResult
from converter.core.units import format_iso_datetime
from domain.diagnostics import DiagnosticCollector
from domain.models import CanonicalActivity, DiagnosticCategory

logger = logging.getLogger(__name__)

FORMAT_VERSION = 1


def activities_to_document(
    activities: Sequence[CanonicalActivity],
    exported_at: Optional[datetime] = None,
) -> dict:
    """Plain-data document for the activities (JSON-compatible values only)."""
    exported_at = exported_at or datetime.now(timezone.utc)
    return {
        "format_version": FORMAT_VERSION,
        "exported_at": format_iso_datetime(exported_at),
        "activities": [
            activity.model_dump(mode="json", exclude_none=True) for activity in activities
        ],
    }


def activities_to_yaml(
    activities: Sequence[CanonicalActivity],
    exported_at: Optional[datetime] = None,
) -> EncodeResult:
    diagnostics = DiagnosticCollector()
    if not activities:
        diagnostics.warning(
            DiagnosticCategory.ENCODE_UNSUPPORTED,
            "No activities to export; wrote an empty document",
            path="activities",
        )
    doc = activities_to_document(activities, exported_at)
    text = yaml.safe_dump(doc, sort_keys=False, default_flow_style=False, allow_unicode=True)
    logger.info(f"Encoded {len(activities)} activities as canonical YAML")
    return EncodeResult(output=text.encode("utf-8"), diagnostics=list(diagnostics.diagnostics))
