"""Application configuration via Pydantic Settings."""

from typing import List
from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Global ingestion settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./partcatalog.db"

    @model_validator(mode="after")
    def fix_database_url(self) -> "Settings":
        """Hosted Postgres hands out postgresql:// but asyncpg needs postgresql+asyncpg://"""
        url = self.DATABASE_URL
        if url.startswith("postgresql://"):
            self.DATABASE_URL = url.replace("postgresql://", "postgresql+asyncpg://", 1)
        elif url.startswith("postgres://"):
            self.DATABASE_URL = url.replace("postgres://", "postgresql+asyncpg://", 1)
        return self

    # App
    DEBUG: bool = False

    # Fetcher
    SCRAPER_USER_AGENT: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    )
    REQUEST_TIMEOUT_SECONDS: float = 30.0
    FETCH_MAX_RETRIES: int = 3

    # Per-retailer page caps (0 or negative = unlimited)
    BERMOR_MAX_PAGES: int = 5
    DATABLITZ_MAX_PAGES: int = 50
    PCWORTH_MAX_PAGES: int = 50

    # Politeness delays for the HTML crawl
    HTML_PAGE_DELAY_SECONDS: float = 1.0
    HTML_CATEGORY_DELAY_SECONDS: float = 2.0

    # Scheduler
    SCHEDULER_ENABLED: bool = False
    SCHEDULER_INTERVAL_HOURS: float = 6.0
    SCHEDULER_STAGGER_SECONDS: int = 30
    SCHEDULER_RETAILERS: str = "BERMOR"  # Comma-separated list of retailer codes

    # Staleness sweep
    STALE_LISTING_DAYS: int = 30

    def get_scheduler_retailers(self) -> List[str]:
        """Parse SCHEDULER_RETAILERS into a list of upper-cased retailer codes.

        Returns:
            List of retailer code strings, empty if SCHEDULER_RETAILERS is not set
        """
        if not self.SCHEDULER_RETAILERS:
            return []
        return [r.strip().upper() for r in self.SCHEDULER_RETAILERS.split(",") if r.strip()]


settings = Settings()
