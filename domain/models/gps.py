"""
GPS route value objects.

The route's aggregates (ascent, descent, elevation range, bounding box) are
derived from its positions once, when the route is constructed. Values for
those fields passed by a caller are replaced by the computed ones.
"""

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from domain.models.time_series import ensure_utc


class GpsPosition(BaseModel):
    """A single track point in decimal degrees."""

    model_config = {"frozen": True}

    latitude_deg: float = Field(..., ge=-90.0, le=90.0)
    longitude_deg: float = Field(..., ge=-180.0, le=180.0)
    timestamp: Optional[datetime] = None
    elevation_m: Optional[float] = None
    speed_mps: Optional[float] = Field(default=None, ge=0)
    heading_deg: Optional[float] = None
    heart_rate: Optional[float] = Field(default=None, ge=0)
    power: Optional[float] = Field(default=None, ge=0)
    cadence: Optional[float] = Field(default=None, ge=0)
    temperature_c: Optional[float] = None

    @field_validator("timestamp")
    @classmethod
    def to_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v) if v is not None else None


class BoundingBox(BaseModel):
    model_config = {"frozen": True}

    min_latitude: float
    min_longitude: float
    max_latitude: float
    max_longitude: float


class GpsRoute(BaseModel):
    """
    Ordered GPS positions plus aggregates derived from them.

    Examples:
        >>> route = GpsRoute(positions=[
        ...     GpsPosition(latitude_deg=52.0, longitude_deg=4.0, elevation_m=10),
        ...     GpsPosition(latitude_deg=52.1, longitude_deg=4.1, elevation_m=25),
        ... ])
        >>> route.total_ascent_m
        15.0
    """

    model_config = {"frozen": True}

    positions: List[GpsPosition] = Field(default_factory=list)
    total_distance_m: Optional[float] = Field(
        default=None, ge=0, description="Distance reported by the source, if any"
    )

    # Derived at construction
    total_ascent_m: Optional[float] = None
    total_descent_m: Optional[float] = None
    min_elevation_m: Optional[float] = None
    max_elevation_m: Optional[float] = None
    bbox: Optional[BoundingBox] = None

    @model_validator(mode="before")
    @classmethod
    def derive_aggregates(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        positions = [
            p if isinstance(p, GpsPosition) else GpsPosition.model_validate(p)
            for p in data.get("positions") or []
        ]
        derived = {
            "positions": positions,
            "total_ascent_m": None,
            "total_descent_m": None,
            "min_elevation_m": None,
            "max_elevation_m": None,
            "bbox": None,
        }

        elevations = [p.elevation_m for p in positions if p.elevation_m is not None]
        if elevations:
            ascent = descent = 0.0
            for previous, current in zip(elevations, elevations[1:]):
                delta = current - previous
                if delta > 0:
                    ascent += delta
                else:
                    descent -= delta
            derived.update(
                total_ascent_m=ascent,
                total_descent_m=descent,
                min_elevation_m=min(elevations),
                max_elevation_m=max(elevations),
            )

        if positions:
            derived["bbox"] = BoundingBox(
                min_latitude=min(p.latitude_deg for p in positions),
                min_longitude=min(p.longitude_deg for p in positions),
                max_latitude=max(p.latitude_deg for p in positions),
                max_longitude=max(p.longitude_deg for p in positions),
            )

        return {**data, **derived}

    def __len__(self) -> int:
        return len(self.positions)

    @property
    def has_positions(self) -> bool:
        return bool(self.positions)
