"""
Telemetry value object: sparse aggregate metrics.

Every field is optional. None means "not recorded", which is different
from a recorded zero.
"""

from typing import Dict, Optional, Sequence, Tuple

from pydantic import BaseModel, Field


# Merge strategy per field when combining lap/segment telemetry.
_SUM_FIELDS = (
    "distance_m",
    "elevation_gain_m",
    "elevation_loss_m",
    "calories",
    "training_stress_score",
    "total_work_kj",
)
_MAX_FIELDS = (
    "heart_rate_max",
    "power_max",
    "cadence_max",
    "speed_max_mps",
    "ftp_watts",
    "training_effect",
    "anaerobic_training_effect",
)
_MIN_FIELDS = ("heart_rate_min",)
_MEAN_FIELDS = (
    "heart_rate_avg",
    "power_avg",
    "normalized_power",
    "cadence_avg",
    "speed_avg_mps",
    "temperature_c",
    "intensity_factor",
    "stroke_rate",
)


class Telemetry(BaseModel):
    """
    Aggregate metrics for an activity, segment or set.

    Examples:
        >>> Telemetry(heart_rate_avg=148, heart_rate_max=171, power_avg=212)
        >>> Telemetry()  # nothing recorded
    """

    model_config = {"frozen": True}

    # -------------------------------------------------------------------------
    # Heart rate (bpm)
    # -------------------------------------------------------------------------
    heart_rate_avg: Optional[float] = Field(default=None, ge=0)
    heart_rate_max: Optional[float] = Field(default=None, ge=0)
    heart_rate_min: Optional[float] = Field(default=None, ge=0)

    # -------------------------------------------------------------------------
    # Power (watts)
    # -------------------------------------------------------------------------
    power_avg: Optional[float] = Field(default=None, ge=0)
    power_max: Optional[float] = Field(default=None, ge=0)
    normalized_power: Optional[float] = Field(default=None, ge=0)
    ftp_watts: Optional[float] = Field(default=None, ge=0)

    # -------------------------------------------------------------------------
    # Cadence, speed, distance
    # -------------------------------------------------------------------------
    cadence_avg: Optional[float] = Field(default=None, ge=0, description="rpm or spm")
    cadence_max: Optional[float] = Field(default=None, ge=0)
    speed_avg_mps: Optional[float] = Field(default=None, ge=0)
    speed_max_mps: Optional[float] = Field(default=None, ge=0)
    distance_m: Optional[float] = Field(default=None, ge=0)
    stroke_rate: Optional[float] = Field(default=None, ge=0, description="Strokes per minute")

    # -------------------------------------------------------------------------
    # Elevation and environment
    # -------------------------------------------------------------------------
    elevation_gain_m: Optional[float] = Field(default=None, ge=0)
    elevation_loss_m: Optional[float] = Field(default=None, ge=0)
    temperature_c: Optional[float] = None

    # -------------------------------------------------------------------------
    # Load and training effect
    # -------------------------------------------------------------------------
    calories: Optional[float] = Field(default=None, ge=0)
    training_stress_score: Optional[float] = Field(default=None, ge=0)
    intensity_factor: Optional[float] = Field(default=None, ge=0)
    total_work_kj: Optional[float] = Field(default=None, ge=0)
    training_effect: Optional[float] = Field(default=None, ge=0)
    anaerobic_training_effect: Optional[float] = Field(default=None, ge=0)

    @property
    def is_empty(self) -> bool:
        """True when no metric was recorded."""
        return not self.recorded()

    def recorded(self) -> Dict[str, float]:
        """Return only the metrics that were recorded."""
        return self.model_dump(exclude_none=True)

    @classmethod
    def merge(cls, parts: Sequence[Tuple["Telemetry", Optional[float]]]) -> "Telemetry":
        """
        Combine several telemetry blocks into one.

        Args:
            parts: (telemetry, weight) pairs. The weight is usually the part's
                duration in seconds and is used for averaged fields; parts
                without a weight count equally.

        Returns:
            Aggregated Telemetry. Additive fields are summed, extremes take
            the max/min, averages are weighted means.
        """
        values: Dict[str, float] = {}

        for name in _SUM_FIELDS:
            present = [getattr(t, name) for t, _ in parts if getattr(t, name) is not None]
            if present:
                values[name] = sum(present)

        for name in _MAX_FIELDS:
            present = [getattr(t, name) for t, _ in parts if getattr(t, name) is not None]
            if present:
                values[name] = max(present)

        for name in _MIN_FIELDS:
            present = [getattr(t, name) for t, _ in parts if getattr(t, name) is not None]
            if present:
                values[name] = min(present)

        for name in _MEAN_FIELDS:
            pairs = [
                (getattr(t, name), weight)
                for t, weight in parts
                if getattr(t, name) is not None
            ]
            if not pairs:
                continue
            if all(weight for _, weight in pairs):
                total_weight = sum(weight for _, weight in pairs)
                values[name] = sum(v * w for v, w in pairs) / total_weight
            else:
                values[name] = sum(v for v, _ in pairs) / len(pairs)

        return cls(**values)
