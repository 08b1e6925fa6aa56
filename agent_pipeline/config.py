from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Pipeline settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="Agent Pipeline")
    app_version: str = Field(default="0.1.0")
    debug: bool = Field(default=False)
    log_level: str = Field(default="INFO")

    # Per-agent timeouts for each stage
    analyst_timeout_seconds: float = Field(default=300.0, gt=0)
    research_timeout_seconds: float = Field(default=600.0, gt=0)
    trading_timeout_seconds: float = Field(default=300.0, gt=0)
    reflection_timeout_seconds: float = Field(default=180.0, gt=0)

    # Aggregation weights by agent role
    analyst_weight: float = Field(default=1.0, gt=0)
    researcher_weight: float = Field(default=1.5, gt=0)
    trader_weight: float = Field(default=2.0, gt=0)
    reflector_weight: float = Field(default=2.5, gt=0)

    # Summary limits
    summary_max_items: int = Field(default=10, ge=1)
    quick_key_points: int = Field(default=3, ge=0)
    quick_main_risks: int = Field(default=2, ge=0)

    # Quick pipeline
    quick_core_analysts: int = Field(default=2, ge=0)

    # Requests and batches
    default_lookback_days: int = Field(default=30, ge=1)
    watchlist_delay_seconds: float = Field(default=1.0, ge=0)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.
    
    Returns:
        Settings: Pipeline settings loaded from environment.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Drop the cached settings so the next call re-reads the environment."""
    get_settings.cache_clear()
