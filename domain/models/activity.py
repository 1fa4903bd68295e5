"""
CanonicalActivity aggregate.

The single in-memory representation every decoder produces and every
encoder consumes.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from domain.models.device import DeviceInfo
from domain.models.gps import GpsRoute
from domain.models.segment import ActivitySet, Segment, Transition
from domain.models.sport import Sport
from domain.models.telemetry import Telemetry
from domain.models.time_series import ensure_utc


class CanonicalActivity(BaseModel):
    """
    One imported or exported unit of work.

    Examples:
        >>> activity = CanonicalActivity(
        ...     started_at=datetime(2024, 6, 1, 7, 0, tzinfo=timezone.utc),
        ...     duration_sec=3600,
        ...     sport=Sport.RUNNING,
        ...     segments=[Segment(sport=Sport.RUNNING, sets=[ActivitySet(duration_sec=3600)])],
        ... )
        >>> activity.is_multisport
        False
    """

    model_config = {"frozen": True}

    # -------------------------------------------------------------------------
    # Identity and timing
    # -------------------------------------------------------------------------
    started_at: Optional[datetime] = Field(
        default=None,
        description="Start time (UTC). Only None for partial decodes that reported an error.",
    )
    duration_sec: Optional[float] = Field(default=None, ge=0)
    sport: Sport = Field(default=Sport.OTHER, description="Primary classification")
    title: Optional[str] = None
    notes: Optional[str] = None
    source_format: Optional[str] = Field(default=None, description="Format this was decoded from")

    # -------------------------------------------------------------------------
    # Structure
    # -------------------------------------------------------------------------
    segments: List[Segment] = Field(default_factory=list)
    telemetry: Telemetry = Field(default_factory=Telemetry)
    gps_route: Optional[GpsRoute] = None
    devices: List[DeviceInfo] = Field(default_factory=list)

    @field_validator("started_at")
    @classmethod
    def to_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v) if v is not None else None

    @model_validator(mode="after")
    def check_segment_order(self) -> "CanonicalActivity":
        """Segment start times must be non-decreasing."""
        previous: Optional[datetime] = None
        for i, segment in enumerate(self.segments):
            if segment.started_at is None:
                continue
            if previous is not None and segment.started_at < previous:
                raise ValueError(
                    f"Segment {i} starts at {segment.started_at.isoformat()}, "
                    f"before the previous segment ({previous.isoformat()})"
                )
            previous = segment.started_at
        return self

    # -------------------------------------------------------------------------
    # Derived views
    # -------------------------------------------------------------------------

    @property
    def is_multisport(self) -> bool:
        """True when the activity spans more than one sport."""
        sports = {s.sport for s in self.segments if s.sport != Sport.TRANSITION}
        return len(sports) > 1

    @property
    def transitions(self) -> List[Transition]:
        return [s.transition for s in self.segments if s.transition is not None]

    @property
    def all_sets(self) -> List[ActivitySet]:
        return [st for segment in self.segments for st in segment.sets]

    @property
    def has_time_series(self) -> bool:
        return any(segment.has_time_series for segment in self.segments)

    @property
    def has_any_telemetry(self) -> bool:
        """True when any aggregate or per-sample metric was recorded anywhere."""
        if not self.telemetry.is_empty or self.has_time_series:
            return True
        for segment in self.segments:
            if not segment.telemetry.is_empty:
                return True
            if any(st.telemetry is not None and not st.telemetry.is_empty for st in segment.sets):
                return True
        return False

    @property
    def label(self) -> str:
        """Short human label used in exports and logs."""
        if self.title:
            return self.title
        when = self.started_at.strftime("%Y-%m-%d %H:%M") if self.started_at else "undated"
        return f"{self.sport.value} {when}"
