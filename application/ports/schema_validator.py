"""
Schema Validator Interface (Port).

The conversion use case optionally checks every decoded activity against a
validator before encoding. Errors from the validator fail the run; warnings
are reported as data loss.
"""

from dataclasses import dataclass, field
from typing import List, Protocol

from domain.models import CanonicalActivity


@dataclass
class ValidationReport:
    """Outcome of validating one activity."""

    valid: bool = True
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


class SchemaValidator(Protocol):
    """
    Abstract interface for checking a canonical activity.

    Implementations must not raise for invalid activities; problems are
    returned in the report.
    """

    def validate(self, activity: CanonicalActivity) -> ValidationReport:
        """
        Validate one activity.

        Args:
            activity: Decoded canonical activity

        Returns:
            ValidationReport with ``valid`` False when any error was found
        """
        ...
