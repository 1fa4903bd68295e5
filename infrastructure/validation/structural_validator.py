"""
Structural validator for canonical activities.

Default SchemaValidator implementation. Checks what every encoder relies on:
a start time, at least one segment, sets that carry some data, and
physiologically plausible heart-rate values.
"""

import logging
from typing import List, Optional

from application.ports.schema_validator import ValidationReport
from domain.models import CanonicalActivity, Telemetry

logger = logging.getLogger(__name__)

MAX_PLAUSIBLE_HEART_RATE = 250.0
MIN_PLAUSIBLE_HEART_RATE = 25.0


class StructuralActivityValidator:
    """Validates the shape of a CanonicalActivity without any external schema."""

    def __init__(
        self,
        max_heart_rate: float = MAX_PLAUSIBLE_HEART_RATE,
        min_heart_rate: float = MIN_PLAUSIBLE_HEART_RATE,
    ) -> None:
        self._max_hr = max_heart_rate
        self._min_hr = min_heart_rate

    def validate(self, activity: CanonicalActivity) -> ValidationReport:
        errors: List[str] = []
        warnings: List[str] = []

        if activity.started_at is None:
            errors.append("Activity has no start time")
        if not activity.segments:
            errors.append("Activity has no segments")

        self._check_heart_rate(activity.telemetry, "telemetry", warnings)
        for i, segment in enumerate(activity.segments):
            self._check_heart_rate(segment.telemetry, f"segments[{i}].telemetry", warnings)
            for j, st in enumerate(segment.sets):
                path = f"segments[{i}].sets[{j}]"
                self._check_heart_rate(st.telemetry, f"{path}.telemetry", warnings)
                has_data = (
                    st.duration_sec is not None
                    or st.distance_m is not None
                    or (st.telemetry is not None and not st.telemetry.is_empty)
                    or st.swim_lengths
                    or st.has_time_series
                )
                if not has_data:
                    warnings.append(f"{path}: set carries no duration, distance or telemetry")

        if errors:
            logger.debug(f"Activity {activity.label} failed validation: {errors}")
        return ValidationReport(valid=not errors, errors=errors, warnings=warnings)

    def _check_heart_rate(self, telemetry: Optional[Telemetry], path: str, warnings: List[str]) -> None:
        if telemetry is None:
            return
        for name in ("heart_rate_avg", "heart_rate_max", "heart_rate_min"):
            value = getattr(telemetry, name)
            if value is not None and not (self._min_hr <= value <= self._max_hr):
                warnings.append(f"{path}.{name}: {value:g} bpm is outside {self._min_hr:g}-{self._max_hr:g}")
        avg, peak = telemetry.heart_rate_avg, telemetry.heart_rate_max
        if avg is not None and peak is not None and avg > peak:
            warnings.append(f"{path}: average heart rate {avg:g} exceeds maximum {peak:g}")
