"""
Diagnostic value object.

A Diagnostic records one piece of information that a conversion run could
not carry across faithfully, or one structural problem in the source.
"""

from enum import Enum

from pydantic import BaseModel, Field


class Severity(str, Enum):
    """Diagnostic severity."""

    WARNING = "warning"
    ERROR = "error"


class DiagnosticCategory(str, Enum):
    """
    Stable category codes for diagnostics.

    - DECODE_ERROR: malformed or unreadable source data
    - MAPPING_GAP: a source value with no canonical equivalent
    - INFERENCE_UNCERTAIN: a segmentation or pool-detection fallback was used
    - CONSISTENCY_VIOLATION: a computed value disagrees with an explicit source value
    - ENCODE_UNSUPPORTED: the target format cannot represent some present data
    - VALIDATION_FAILURE: the schema validator rejected or flagged the model
    - TIME_SERIES_SKIPPED: per-sample data dropped on request (summary-only runs)
    """

    DECODE_ERROR = "decode_error"
    MAPPING_GAP = "mapping_gap"
    INFERENCE_UNCERTAIN = "inference_uncertain"
    CONSISTENCY_VIOLATION = "consistency_violation"
    ENCODE_UNSUPPORTED = "encode_unsupported"
    VALIDATION_FAILURE = "validation_failure"
    TIME_SERIES_SKIPPED = "time_series_skipped"


class Diagnostic(BaseModel):
    """
    One warning or error produced during a conversion run.

    Examples:
        >>> Diagnostic(
        ...     severity=Severity.WARNING,
        ...     category=DiagnosticCategory.MAPPING_GAP,
        ...     message="Unmapped FIT sport code 99",
        ...     path="session[0].sport",
        ... )
    """

    model_config = {"frozen": True}

    severity: Severity = Field(..., description="warning or error")
    category: DiagnosticCategory = Field(..., description="Stable category code")
    message: str = Field(..., description="Human-readable explanation")
    path: str = Field(default="", description="Source field or path the diagnostic concerns")

    @property
    def is_error(self) -> bool:
        return self.severity == Severity.ERROR

    def __str__(self) -> str:
        location = f" [{self.path}]" if self.path else ""
        return f"{self.severity.value}: {self.category.value}{location}: {self.message}"
