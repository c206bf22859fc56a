"""Configuration settings using Pydantic for type safety and validation."""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Risk engine settings, overridable through ``VAR_*`` environment variables."""

    model_config = SettingsConfigDict(
        extra="ignore",
        env_prefix="VAR_",
        env_file=".env",
        env_file_encoding="utf-8",
    )

    # Price history in long date,symbol,price form
    data_path: Path = Field(default=Path("data") / "instrument_data.csv")

    # 95% one-day VaR unless overridden
    confidence: float = Field(default=0.95)
    holding_period: int = Field(default=1, ge=1)

    log_level: str = Field(default="INFO", pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")

    @field_validator("confidence")
    @classmethod
    def check_confidence(cls, v: float) -> float:
        return validate_confidence_level(v)


def validate_confidence_level(confidence: float) -> float:
    """Validate that the confidence level is within [0.50, 0.9999]."""
    if not (0.50 <= float(confidence) <= 0.9999):
        raise ValueError(
            f"Invalid confidence level {confidence}. Must be between 0.50 and 0.9999."
        )
    return float(confidence)


def validate_holding_period(holding_period: int) -> int:
    """Validate that the holding period is a positive whole number of days."""
    if isinstance(holding_period, bool) or int(holding_period) != holding_period or holding_period < 1:
        raise ValueError(
            f"Invalid holding period {holding_period}. Must be a positive number of days."
        )
    return int(holding_period)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
