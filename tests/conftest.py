"""
Shared fixtures for the converter test suite.

Activities are built directly from the canonical models so encoder and use
case tests do not depend on any decoder.
"""

import os
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

import pytest

from converter.core.vocabulary import VocabularyMapper
from converter.settings import Settings, get_settings
from domain.diagnostics import DiagnosticCollector
from domain.models import (
    ActivitySet,
    CanonicalActivity,
    DeviceInfo,
    DeviceType,
    GpsPosition,
    GpsRoute,
    PoolConfig,
    Segment,
    Sport,
    StrokeType,
    SwimLengthDetail,
    Telemetry,
    TimeSeries,
    Transition,
)

T0 = datetime(2024, 6, 1, 7, 0, tzinfo=timezone.utc)


def make_series(
    start: datetime, columns: Dict[str, List[Optional[float]]], step_sec: int = 1
) -> TimeSeries:
    """TimeSeries with one sample every ``step_sec`` seconds from ``start``."""
    length = len(next(iter(columns.values())))
    timestamps = tuple(start + timedelta(seconds=i * step_sec) for i in range(length))
    return TimeSeries(timestamps=timestamps, metrics={k: tuple(v) for k, v in columns.items()})


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep CONVERTER_* variables and the settings cache out of every test."""
    for name in list(os.environ):
        if name.startswith("CONVERTER_"):
            monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def t0() -> datetime:
    return T0


@pytest.fixture
def series_factory():
    """The make_series helper, for tests that build their own samples."""
    return make_series


@pytest.fixture
def settings() -> Settings:
    """Isolated settings that ignore any .env file."""
    return Settings(_env_file=None, environment="test")


@pytest.fixture
def mapper() -> VocabularyMapper:
    return VocabularyMapper()


@pytest.fixture
def diagnostics() -> DiagnosticCollector:
    return DiagnosticCollector()


@pytest.fixture
def running_activity() -> CanonicalActivity:
    """Two-lap run with GPS, heart rate and power samples."""
    lap1 = make_series(T0, {
        "latitude": [52.0, 52.0001, 52.0002],
        "longitude": [4.0, 4.0001, 4.0002],
        "elevation_m": [10.0, 11.0, 12.5],
        "heart_rate": [120, 125, None],
        "power": [200, 210, 220],
        "distance_m": [0.0, 5.0, 10.0],
    })
    lap2 = make_series(T0 + timedelta(seconds=3), {
        "latitude": [52.0003, 52.0004],
        "longitude": [4.0003, 4.0004],
        "heart_rate": [130, 131],
        "distance_m": [15.0, 20.0],
    })
    sets = [
        ActivitySet(
            set_number=1, started_at=T0, duration_sec=3, distance_m=10,
            telemetry=Telemetry(heart_rate_avg=122.5, heart_rate_max=125, power_avg=210, calories=3),
            time_series=lap1,
        ),
        ActivitySet(
            set_number=2, started_at=T0 + timedelta(seconds=3), duration_sec=2, distance_m=10,
            telemetry=Telemetry(heart_rate_avg=130.5, heart_rate_max=131, calories=2),
            time_series=lap2,
        ),
    ]
    telemetry = Telemetry(heart_rate_avg=126, heart_rate_max=131, distance_m=20, calories=5)
    return CanonicalActivity(
        started_at=T0,
        duration_sec=5,
        sport=Sport.RUNNING,
        title="Morning Run",
        segments=[Segment(
            sport=Sport.RUNNING, sets=sets, telemetry=telemetry,
            started_at=T0, duration_sec=5, distance_m=20,
        )],
        telemetry=telemetry,
        devices=[DeviceInfo(
            device_index=0, device_type=DeviceType.RECORDER,
            manufacturer="garmin", product="fr965", serial_number="12345",
            software_version="19.20",
        )],
        source_format="fit",
    )


@pytest.fixture
def swim_activity() -> CanonicalActivity:
    """Pool swim with lengths and summary telemetry but no samples."""
    lengths = [
        SwimLengthDetail(index=1, stroke=StrokeType.FREESTYLE, duration_sec=30, stroke_count=15),
        SwimLengthDetail(index=2, stroke=StrokeType.FREESTYLE, duration_sec=32, stroke_count=16),
    ]
    telemetry = Telemetry(heart_rate_avg=140, distance_m=50, calories=20)
    return CanonicalActivity(
        started_at=T0,
        duration_sec=62,
        sport=Sport.SWIMMING,
        segments=[Segment(
            sport=Sport.SWIMMING,
            sets=[ActivitySet(set_number=1, started_at=T0, duration_sec=62, distance_m=50,
                              swim_lengths=lengths)],
            telemetry=telemetry,
            started_at=T0,
            duration_sec=62,
            distance_m=50,
            pool=PoolConfig(length=25, inferred=False, confidence=1.0),
        )],
        telemetry=telemetry,
    )


@pytest.fixture
def multisport_activity() -> CanonicalActivity:
    """Swim, T1, bike."""
    swim_start = T0
    bike_start = T0 + timedelta(minutes=12)
    swim = Segment(
        sport=Sport.SWIMMING,
        sets=[ActivitySet(set_number=1, started_at=swim_start, duration_sec=600, distance_m=750)],
        telemetry=Telemetry(heart_rate_avg=150),
        started_at=swim_start,
        duration_sec=600,
        distance_m=750,
        transition=Transition(
            transition_id="T1", from_sport=Sport.SWIMMING, to_sport=Sport.CYCLING,
            started_at=T0 + timedelta(minutes=10), duration_sec=120, heart_rate_avg=145,
        ),
    )
    bike = Segment(
        sport=Sport.CYCLING,
        sets=[ActivitySet(
            set_number=1, started_at=bike_start, duration_sec=2,
            time_series=make_series(bike_start, {
                "latitude": [52.1, 52.1001], "longitude": [4.1, 4.1001], "power": [250, 260],
            }),
        )],
        telemetry=Telemetry(power_avg=255),
        started_at=bike_start,
        duration_sec=2,
    )
    return CanonicalActivity(
        started_at=T0,
        duration_sec=722,
        sport=Sport.MULTISPORT,
        segments=[swim, bike],
        telemetry=Telemetry(heart_rate_avg=150, power_avg=255),
    )


@pytest.fixture
def route_only_activity() -> CanonicalActivity:
    """Hike whose positions live only on the GPS route."""
    positions = [
        GpsPosition(latitude_deg=46.0, longitude_deg=7.0, elevation_m=1000, timestamp=T0),
        GpsPosition(latitude_deg=46.001, longitude_deg=7.001, elevation_m=1010,
                    timestamp=T0 + timedelta(seconds=60)),
    ]
    return CanonicalActivity(
        started_at=T0,
        duration_sec=60,
        sport=Sport.HIKING,
        segments=[Segment(sport=Sport.HIKING, sets=[ActivitySet(set_number=1, duration_sec=60)])],
        gps_route=GpsRoute(positions=positions),
    )
