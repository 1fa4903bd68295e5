"""
Structure inference over flat source records.

Three independent, pure passes:

- group_sessions: decide whether consecutive sessions form one
  multi-discipline activity and fold transition sessions into the segment
  they follow.
- infer_pool_length: classify a measured distance-per-length into a pool
  size using tolerance bands.
- build_swim_lengths: renumber per-length records and derive SWOLF.

Each pass takes literal lists and returns new values; the only side effect
is appending diagnostics.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Sequence, Tuple

from domain.diagnostics import DiagnosticCollector
from domain.models import (
    DiagnosticCategory,
    DistanceUnit,
    PoolConfig,
    Segment,
    Sport,
    StrokeType,
    SwimLengthDetail,
    Telemetry,
    Transition,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Multi-discipline grouping
# =============================================================================


@dataclass(frozen=True)
class SessionGroup:
    """Segments that make up one activity."""

    segments: Tuple[Segment, ...]
    multisport: bool = False


def is_multisport(sports: Sequence[Sport]) -> bool:
    """More than one session and at least two distinct non-transition sports."""
    distinct = {s for s in sports if s != Sport.TRANSITION}
    return len(sports) > 1 and len(distinct) > 1


def group_sessions(
    sessions: Sequence[Segment],
    diagnostics: DiagnosticCollector,
    path: str = "session",
) -> List[SessionGroup]:
    """
    Group per-session segments into activities.

    Single-sport input gives one group per session; a transition session
    there is kept with zero telemetry and an inference_uncertain warning.
    Multisport input gives a
    single group in which every transition session is folded into the
    preceding segment as a Transition (T1, T2, ...). A transition that has no
    segment before or after it, or that follows another transition, stays as
    its own zero-telemetry segment with an inference_uncertain warning.
    """
    if not sessions:
        return []

    if not is_multisport([s.sport for s in sessions]):
        groups = []
        for i, session in enumerate(sessions):
            if session.sport == Sport.TRANSITION:
                diagnostics.warning(
                    DiagnosticCategory.INFERENCE_UNCERTAIN,
                    "Transition session between sessions of one sport; kept as its own activity",
                    path=f"{path}[{i}]",
                )
                session = session.model_copy(update={"telemetry": Telemetry()})
            groups.append(SessionGroup(segments=(session,)))
        return groups

    grouped: List[Segment] = []
    transition_count = 0

    for i, session in enumerate(sessions):
        if session.sport != Sport.TRANSITION:
            grouped.append(session)
            continue

        previous = grouped[-1] if grouped else None
        following = next(
            (s for s in sessions[i + 1:] if s.sport != Sport.TRANSITION), None
        )

        reason = None
        if previous is None:
            reason = "no preceding segment"
        elif following is None:
            reason = "no following segment"
        elif previous.sport == Sport.TRANSITION or previous.transition is not None:
            reason = "a preceding transition already links that segment"

        if reason is not None:
            diagnostics.warning(
                DiagnosticCategory.INFERENCE_UNCERTAIN,
                f"Transition session has {reason}; kept as its own segment",
                path=f"{path}[{i}]",
            )
            grouped.append(session.model_copy(update={"telemetry": Telemetry()}))
            continue

        transition_count += 1
        transition = Transition(
            transition_id=f"T{transition_count}",
            from_sport=previous.sport,
            to_sport=following.sport,
            started_at=session.started_at,
            duration_sec=session.duration_sec,
            heart_rate_avg=session.telemetry.heart_rate_avg,
        )
        grouped[-1] = previous.with_transition(transition)

    logger.debug(
        f"Grouped {len(sessions)} sessions into a multisport activity "
        f"with {len(grouped)} segments and {transition_count} transitions"
    )
    return [SessionGroup(segments=tuple(grouped), multisport=True)]


# =============================================================================
# Pool configuration
# =============================================================================


@dataclass(frozen=True)
class PoolBand:
    center: float
    tolerance: float


# Checked in order, in the source's declared unit.
POOL_BANDS: Tuple[PoolBand, ...] = (
    PoolBand(center=50.0, tolerance=5.0),
    PoolBand(center=25.0, tolerance=3.0),
)


def measured_length(distance: Optional[float], active_lengths: int) -> Optional[float]:
    """Average distance per active length, or None when it cannot be measured."""
    if distance is None or active_lengths <= 0:
        return None
    return distance / active_lengths


def infer_pool_length(
    measured: Optional[float],
    unit: DistanceUnit,
    diagnostics: DiagnosticCollector,
    default: float = 25.0,
    path: str = "pool_length",
) -> PoolConfig:
    """
    Classify a measured distance-per-length into a pool size.

    A band match yields confidence 1.0 at the band center falling linearly
    to 0.0 at its edge. Without a match the default is used with confidence
    0.0 and an inference_uncertain warning naming the chosen value.
    """
    if measured is not None and measured > 0:
        for band in POOL_BANDS:
            offset = abs(measured - band.center)
            if offset <= band.tolerance:
                return PoolConfig(
                    length=band.center,
                    unit=unit,
                    inferred=True,
                    confidence=round(1.0 - offset / band.tolerance, 3),
                )

    measured_text = f"{measured:.2f}" if measured is not None else "unavailable"
    diagnostics.warning(
        DiagnosticCategory.INFERENCE_UNCERTAIN,
        f"Pool length not recognised (measured {measured_text}); "
        f"using default {default:g} {unit.value} with confidence 0.0",
        path=path,
    )
    return PoolConfig(length=default, unit=unit, inferred=True, confidence=0.0)


# =============================================================================
# Lengths and SWOLF
# =============================================================================


@dataclass(frozen=True)
class RawLength:
    """A per-length record as read from the source, before renumbering."""

    stroke: StrokeType = StrokeType.UNKNOWN
    duration_sec: Optional[float] = None
    stroke_count: Optional[int] = None
    swolf: Optional[float] = None
    active: bool = True
    started_at: Optional[datetime] = None


def build_swim_lengths(
    raw_lengths: Sequence[RawLength],
    diagnostics: DiagnosticCollector,
    path: str = "lengths",
    tolerance: float = 0.5,
) -> List[SwimLengthDetail]:
    """
    Renumber lengths 1..n in source order and settle their SWOLF.

    SWOLF is computed only when both duration and stroke count are present.
    An explicit source SWOLF that differs from the computed value by more
    than ``tolerance`` is kept, with one consistency_violation warning.
    """
    lengths: List[SwimLengthDetail] = []
    for position, raw in enumerate(raw_lengths, start=1):
        computed = None
        if raw.duration_sec is not None and raw.stroke_count is not None:
            computed = raw.duration_sec + raw.stroke_count

        swolf = computed
        if raw.swolf is not None:
            swolf = raw.swolf
            if computed is not None and abs(raw.swolf - computed) > tolerance:
                diagnostics.warning(
                    DiagnosticCategory.CONSISTENCY_VIOLATION,
                    f"Length {position}: source SWOLF {raw.swolf:g} disagrees with "
                    f"duration + strokes = {computed:g}; keeping source value",
                    path=f"{path}[{position - 1}].swolf",
                )

        lengths.append(
            SwimLengthDetail(
                index=position,
                stroke=raw.stroke,
                duration_sec=raw.duration_sec,
                stroke_count=raw.stroke_count,
                swolf=swolf,
                active=raw.active,
                started_at=raw.started_at,
            )
        )
    return lengths
