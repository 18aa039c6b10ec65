"""Key/value application state shared across requests and processes."""

import json
from typing import Any

from sqlalchemy import Column, DateTime, String, Text, select, update
from sqlalchemy.dialects.sqlite import insert
from sqlalchemy.ext.asyncio import AsyncSession

from hnplus.config import utc_now_naive
from hnplus.models.database import Base


class AppSettings(Base):
    """General application state."""

    __tablename__ = "app_settings"

    key = Column(String, primary_key=True)
    value = Column(Text)
    description = Column(String)
    updated_at = Column(DateTime, default=utc_now_naive, onupdate=utc_now_naive)

    # Default settings
    DEFAULTS = {
        "catalog.running": {
            "value": "false",
            "description": "True while a pedigree catalog is being generated",
        },
        "catalog.telemetry": {
            "value": json.dumps({"total_runs": 0, "total_run_time": 0.0, "pages_generated": 0}),
            "description": "Running totals used to estimate catalog durations",
        },
    }

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "key": self.key,
            "value": self.value,
            "description": self.description,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


async def get_setting(db: AsyncSession, key: str, fallback: str | None = None) -> str | None:
    """Read a value from AppSettings, falling back to its default."""
    result = await db.execute(select(AppSettings).where(AppSettings.key == key))
    setting = result.scalar_one_or_none()
    if setting is not None and setting.value is not None:
        return setting.value
    if key in AppSettings.DEFAULTS:
        return AppSettings.DEFAULTS[key]["value"]
    return fallback


async def set_setting(db: AsyncSession, key: str, value: str | None) -> None:
    """Create or update a value in AppSettings and commit."""
    result = await db.execute(select(AppSettings).where(AppSettings.key == key))
    setting = result.scalar_one_or_none()
    if setting is None:
        description = AppSettings.DEFAULTS.get(key, {}).get("description")
        db.add(AppSettings(key=key, value=value, description=description))
    else:
        setting.value = value
    await db.commit()


async def seed_defaults(db: AsyncSession) -> None:
    """Insert any missing DEFAULTS rows, leaving existing values alone."""
    for key, default in AppSettings.DEFAULTS.items():
        await db.execute(
            insert(AppSettings)
            .values(key=key, value=default["value"], description=default["description"])
            .on_conflict_do_nothing(index_elements=["key"])
        )
    await db.commit()


async def compare_and_set(db: AsyncSession, key: str, expected: str, value: str) -> bool:
    """Atomically change ``key`` from ``expected`` to ``value``.

    Returns False when the stored value was not ``expected``. The row must
    already exist (see ``seed_defaults``).
    """
    result = await db.execute(
        update(AppSettings)
        .where(AppSettings.key == key, AppSettings.value == expected)
        .values(value=value, updated_at=utc_now_naive())
    )
    await db.commit()
    return result.rowcount == 1
