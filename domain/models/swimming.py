"""Pool-swimming value objects."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from domain.models.sport import DistanceUnit, StrokeType
from domain.models.time_series import ensure_utc


class SwimLengthDetail(BaseModel):
    """
    One pool length inside a swim set.

    SWOLF is duration-seconds plus stroke count. It is filled in when both
    inputs are present and no explicit value was supplied; an explicit value
    is kept as given (the segmentation layer reports disagreements).
    """

    model_config = {"frozen": True}

    index: int = Field(..., ge=1, description="1-based position within the set")
    stroke: StrokeType = Field(default=StrokeType.UNKNOWN)
    duration_sec: Optional[float] = Field(default=None, ge=0)
    stroke_count: Optional[int] = Field(default=None, ge=0)
    swolf: Optional[float] = Field(default=None, ge=0)
    active: bool = Field(default=True, description="False for rest/idle lengths")
    started_at: Optional[datetime] = None

    @field_validator("started_at")
    @classmethod
    def to_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v) if v is not None else None

    @model_validator(mode="before")
    @classmethod
    def derive_swolf(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("swolf") is None:
            duration = data.get("duration_sec")
            strokes = data.get("stroke_count")
            if duration is not None and strokes is not None:
                data = {**data, "swolf": float(duration) + float(strokes)}
        return data

    @property
    def computed_swolf(self) -> Optional[float]:
        """SWOLF from duration and strokes, regardless of any explicit value."""
        if self.duration_sec is None or self.stroke_count is None:
            return None
        return self.duration_sec + self.stroke_count


class PoolConfig(BaseModel):
    """Pool length for a swim segment, declared by the source or inferred."""

    model_config = {"frozen": True}

    length: float = Field(..., gt=0)
    unit: DistanceUnit = Field(default=DistanceUnit.METERS)
    inferred: bool = Field(default=False, description="True when guessed from lap data")
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)

    @field_validator("unit")
    @classmethod
    def pool_unit(cls, v: DistanceUnit) -> DistanceUnit:
        if v not in (DistanceUnit.METERS, DistanceUnit.YARDS):
            raise ValueError(f"Pool length unit must be meters or yards, got {v.value}")
        return v
