"""Database setup and session management."""

import logging
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from hnplus.config import settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


# Create async engine with SQLite timeout for concurrent access
engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    connect_args={"timeout": 30},
)

# Session factory
async_session = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def init_db() -> None:
    """Initialize the database, creating all tables."""
    # Import models to ensure they're registered with Base
    from hnplus.models import cache, settings as settings_models  # noqa: F401

    settings.db_path.parent.mkdir(parents=True, exist_ok=True)

    async with engine.begin() as conn:
        _text = __import__("sqlalchemy").text

        # Enable WAL mode and busy timeout for concurrent access
        await conn.execute(_text("PRAGMA journal_mode=WAL"))
        await conn.execute(_text("PRAGMA busy_timeout=30000"))

        await conn.run_sync(Base.metadata.create_all)

        for idx in [
            "CREATE INDEX IF NOT EXISTS ix_api_cache_expires_at ON api_cache(expires_at)",
        ]:
            try:
                await conn.execute(_text(idx))
            except Exception as e:
                logger.debug(f"Index note: {e}")

    async with async_session() as db:
        await settings_models.seed_defaults(db)

