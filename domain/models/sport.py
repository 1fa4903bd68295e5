"""
Classification vocabularies shared by every format.

These enums are the canonical side of the vocabulary tables in
shared/dictionaries/. Format-specific codes and strings never leak into the
domain model; the vocabulary mapper translates them at the edges.
"""

from enum import Enum


class Sport(str, Enum):
    """Canonical sport/activity classification."""

    RUNNING = "running"
    CYCLING = "cycling"
    SWIMMING = "swimming"
    ROWING = "rowing"
    TRANSITION = "transition"
    STRENGTH = "strength"
    STRENGTH_TRAINING = "strength_training"
    HIKING = "hiking"
    WALKING = "walking"
    YOGA = "yoga"
    PILATES = "pilates"
    FUNCTIONAL_FITNESS = "functional_fitness"
    CALISTHENICS = "calisthenics"
    CARDIO = "cardio"
    CROSS_COUNTRY_SKIING = "cross_country_skiing"
    DOWNHILL_SKIING = "downhill_skiing"
    SNOWBOARDING = "snowboarding"
    STAND_UP_PADDLING = "stand_up_paddling"
    KAYAKING = "kayaking"
    ELLIPTICAL = "elliptical"
    STAIR_CLIMBING = "stair_climbing"
    MULTISPORT = "multisport"
    OTHER = "other"


class StrokeType(str, Enum):
    """Swim stroke classification for a single pool length."""

    FREESTYLE = "freestyle"
    BACKSTROKE = "backstroke"
    BREASTSTROKE = "breaststroke"
    BUTTERFLY = "butterfly"
    DRILL = "drill"
    MIXED = "mixed"
    INDIVIDUAL_MEDLEY = "individual_medley"
    UNKNOWN = "unknown"


class DistanceUnit(str, Enum):
    """Distance units a source format may declare."""

    METERS = "meters"
    KILOMETERS = "kilometers"
    YARDS = "yards"
    MILES = "miles"
    FEET = "feet"


class DeviceType(str, Enum):
    """Role of a recording device or sensor."""

    RECORDER = "recorder"
    WATCH = "watch"
    BIKE_COMPUTER = "bike_computer"
    HEART_RATE_MONITOR = "heart_rate_monitor"
    POWER_METER = "power_meter"
    SPEED_SENSOR = "speed_sensor"
    CADENCE_SENSOR = "cadence_sensor"
    SPEED_CADENCE_SENSOR = "speed_cadence_sensor"
    FOOT_POD = "foot_pod"
    SMART_TRAINER = "smart_trainer"
    MUSCLE_OXYGEN_SENSOR = "muscle_oxygen_sensor"
    RADAR = "radar"
    OTHER = "other"
