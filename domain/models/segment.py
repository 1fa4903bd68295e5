"""
Segment, set and transition value objects.

A Segment is a contiguous single-sport portion of an activity. Its sets are
the laps (or track segments) recorded within it. In a multi-discipline
activity a segment may carry a Transition describing the changeover to the
next segment.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from domain.models.sport import Sport
from domain.models.swimming import PoolConfig, SwimLengthDetail
from domain.models.telemetry import Telemetry
from domain.models.time_series import TimeSeries, ensure_utc


class Transition(BaseModel):
    """Changeover between two segments of a multi-discipline activity."""

    model_config = {"frozen": True}

    transition_id: str = Field(..., description="T1, T2, ... in activity order")
    from_sport: Sport
    to_sport: Sport
    started_at: Optional[datetime] = None
    duration_sec: Optional[float] = Field(default=None, ge=0)
    heart_rate_avg: Optional[float] = Field(default=None, ge=0)

    @field_validator("started_at")
    @classmethod
    def to_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v) if v is not None else None


class ActivitySet(BaseModel):
    """
    One lap/interval within a segment.

    Examples:
        >>> ActivitySet(set_number=1, duration_sec=300, distance_m=1000)
        >>> ActivitySet(
        ...     set_number=2,
        ...     swim_lengths=[SwimLengthDetail(index=1, duration_sec=30, stroke_count=15)],
        ... )
    """

    model_config = {"frozen": True}

    set_number: int = Field(default=1, ge=1)
    started_at: Optional[datetime] = None
    duration_sec: Optional[float] = Field(default=None, ge=0)
    distance_m: Optional[float] = Field(default=None, ge=0)
    telemetry: Optional[Telemetry] = None
    swim_lengths: List[SwimLengthDetail] = Field(
        default_factory=list, description="Pool lengths, only for pool-swimming sets"
    )
    time_series: Optional[TimeSeries] = None
    notes: Optional[str] = None

    @field_validator("started_at")
    @classmethod
    def to_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v) if v is not None else None

    @field_validator("swim_lengths")
    @classmethod
    def sequential_lengths(cls, v: List[SwimLengthDetail]) -> List[SwimLengthDetail]:
        """Length indices must run 1, 2, 3, ... in order."""
        for expected, length in enumerate(v, start=1):
            if length.index != expected:
                raise ValueError(
                    f"Swim length indices must be sequential from 1; "
                    f"found {length.index} at position {expected}"
                )
        return v

    @property
    def has_time_series(self) -> bool:
        return self.time_series is not None and len(self.time_series) > 0

    @property
    def active_lengths(self) -> List[SwimLengthDetail]:
        return [length for length in self.swim_lengths if length.active]


class Segment(BaseModel):
    """A single-sport portion of an activity."""

    model_config = {"frozen": True}

    sport: Sport = Field(default=Sport.OTHER)
    sets: List[ActivitySet] = Field(default_factory=list)
    transition: Optional[Transition] = Field(
        default=None, description="Changeover to the next segment (multisport only)"
    )
    telemetry: Telemetry = Field(default_factory=Telemetry)
    started_at: Optional[datetime] = None
    duration_sec: Optional[float] = Field(default=None, ge=0)
    distance_m: Optional[float] = Field(default=None, ge=0)
    pool: Optional[PoolConfig] = None

    @field_validator("started_at")
    @classmethod
    def to_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v) if v is not None else None

    @property
    def has_time_series(self) -> bool:
        return any(s.has_time_series for s in self.sets)

    def with_transition(self, transition: Transition) -> "Segment":
        """Return a copy of this segment linked to the next one by ``transition``."""
        return self.model_copy(update={"transition": transition})
