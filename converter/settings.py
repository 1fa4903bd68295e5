"""
Centralized settings configuration using Pydantic BaseSettings.

All environment variables are defined here with types, defaults, and
validation. Every variable is prefixed with ``CONVERTER_`` (for example
``CONVERTER_STRICT=true``). CLI flags override these values per run.

Usage:
    from converter.settings import get_settings, Settings

    settings = get_settings()
    print(settings.default_pool_length)

    # Isolated settings for tests
    settings = Settings(strict=True, _env_file=None)
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from domain.models import DistanceUnit


class Settings(BaseSettings):
    """Converter settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="CONVERTER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # -------------------------------------------------------------------------
    # Core Environment
    # -------------------------------------------------------------------------
    environment: str = Field(
        default="development",
        description="Runtime environment: development, test, production",
    )
    log_level: str = Field(
        default="WARNING",
        description="Root log level for the CLI (DEBUG, INFO, WARNING, ERROR)",
    )

    # -------------------------------------------------------------------------
    # Run behaviour
    # -------------------------------------------------------------------------
    strict: bool = Field(
        default=False,
        description="Treat any data-loss warning as a run failure",
    )
    summary_only: bool = Field(
        default=False,
        description="Skip per-sample data and GPS routes when decoding",
    )
    validate_output: bool = Field(
        default=True,
        description="Run the schema validator on decoded activities",
    )

    # -------------------------------------------------------------------------
    # Inference
    # -------------------------------------------------------------------------
    default_pool_length: float = Field(
        default=25.0,
        gt=0,
        description="Pool length used when no tolerance band matches",
    )
    pool_length_unit: DistanceUnit = Field(
        default=DistanceUnit.METERS,
        description="Unit of default_pool_length",
    )
    swolf_tolerance: float = Field(
        default=0.5,
        ge=0,
        description="Allowed gap between explicit and computed SWOLF",
    )

    # -------------------------------------------------------------------------
    # Export
    # -------------------------------------------------------------------------
    csv_float_precision: int = Field(
        default=6,
        ge=0,
        le=12,
        description="Maximum decimal places written to CSV cells",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate and normalize log level."""
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        level = v.upper()
        if level not in valid:
            raise ValueError(f"log_level must be one of {sorted(valid)}, got {v!r}")
        return level

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate environment is a known value."""
        valid_environments = {"development", "test", "production"}
        env = v.lower()
        if env not in valid_environments:
            raise ValueError(
                f"environment must be one of {sorted(valid_environments)}, got {v!r}"
            )
        return env

    @field_validator("pool_length_unit")
    @classmethod
    def validate_pool_unit(cls, v: DistanceUnit) -> DistanceUnit:
        if v not in (DistanceUnit.METERS, DistanceUnit.YARDS):
            raise ValueError("pool_length_unit must be meters or yards")
        return v


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns the same Settings instance on every call (singleton pattern).
    Call get_settings.cache_clear() in tests after changing the environment.
    """
    return Settings()
