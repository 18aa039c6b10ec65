"""Application configuration using Pydantic settings."""

from datetime import datetime, timezone
from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

PACKAGE_DIR = Path(__file__).resolve().parent


def utc_now() -> datetime:
    """Current time in UTC (the upstream site runs its seasons on UTC)."""
    return datetime.now(timezone.utc)


def utc_now_naive() -> datetime:
    """Current UTC time as naive datetime (for SQLAlchemy defaults).

    SQLite doesn't handle timezone-aware datetimes well, so we store
    UTC as naive datetime.
    """
    return utc_now().replace(tzinfo=None)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="HNPLUS_",
        extra="ignore",
    )

    # Database
    db_path: Path = Path("./data/hnplus.db")

    # App
    debug: bool = False
    log_level: str = "INFO"

    # Upstream site
    base_url: str = "https://www.harnessnation.com"
    request_timeout: float = 30.0

    # Response cache (seconds). Anything under 60 disables the cache.
    cache_ttl: int = 14_400

    # Throttle: cool down for `cooldown_timeout` seconds every
    # `throttle_batch_size` requests made within `throttle_window` seconds.
    cooldown_timeout: float = 15.0
    throttle_batch_size: int = 15
    throttle_window: float = 30.0

    # Catalog generation
    catalog_enabled: bool = True
    fetch_batch_size: int = 3
    watermark_path: Path = PACKAGE_DIR / "static" / "pdf-watermark.png"

    @property
    def database_url(self) -> str:
        """SQLite database URL for SQLAlchemy."""
        return f"sqlite+aiosqlite:///{self.db_path}"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Export for convenience
settings = get_settings()
