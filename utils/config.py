"""
Configuration Utility - Environment Variables Management

Centralized configuration loading from .env files using pydantic-settings.
Type-safe access to all environment variables with validation.

Usage:
    from utils.config import settings

    api_url = settings.WAGE_API_URL
    workers = settings.SCRAPE_WORKERS

List fields (SCRAPE_LOCATIONS, SCRAPE_YEARS) are read from the environment
as JSON arrays, e.g. SCRAPE_YEARS='[2023, 2024]'.
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_LOCATIONS = [
    "ASUCLA",
    "Berkeley",
    "Davis",
    "UC SF Law",
    "Irvine",
    "Los Angeles",
    "Merced",
    "Riverside",
    "San Diego",
    "San Francisco",
    "Santa Barbara",
    "Santa Cruz",
    "UCOP",
]

DEFAULT_YEARS = list(range(2024, 2009, -1))


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Remote API Configuration
    WAGE_API_URL: str = Field(default="https://ucannualwage.ucop.edu/wage/search")
    API_TIMEOUT: float = Field(default=30.0)

    # Scrape Configuration
    SCRAPE_ROWS: int = Field(default=100)
    SCRAPE_WORKERS: int = Field(default=5, ge=1)
    SCRAPE_DELAY: float = Field(default=1.0, ge=0)
    SCRAPE_LOCATIONS: list[str] = Field(default_factory=lambda: list(DEFAULT_LOCATIONS))
    SCRAPE_YEARS: list[int] = Field(default_factory=lambda: list(DEFAULT_YEARS))
    MIN_YEAR: int = Field(default=2010)
    MAX_YEAR: int = Field(default=2024)

    # Scheduler Configuration
    SCRAPE_SCHEDULE_CRON: str = Field(default="0 3 * * 0")
    RUN_ONCE: bool = Field(default=True)

    # File System Paths
    DATA_DIR: str = Field(default="data")
    PROGRESS_FILE: str = Field(default="scrape_progress.json")

    # Redis Configuration
    PUBLISH_EVENTS: bool = Field(default=False)
    REDIS_URL: str = Field(default="redis://localhost:6379/0")
    REDIS_MAX_CONNECTIONS: int = Field(default=10)
    REDIS_CHANNEL_SNAPSHOTS: str = Field(default="files.wage_snapshots")

    # Logging Configuration
    LOG_LEVEL: str = Field(default="INFO")
    LOG_FORMAT: str = Field(default="text")

    # Application Metadata
    APP_NAME: str = Field(default="ucwages-scraper")
    APP_VERSION: str = Field(default="0.1.0")


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance.

    Returns:
        Singleton Settings instance
    """
    return Settings()


# Global settings instance
settings = get_settings()
