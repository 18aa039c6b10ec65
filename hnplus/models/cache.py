"""Cached upstream responses."""

from datetime import datetime
from typing import Any

from sqlalchemy import Column, DateTime, String, Text

from hnplus.config import utc_now_naive
from hnplus.models.database import Base


class CacheEntry(Base):
    """A cached HarnessNation response, keyed by resource path."""

    __tablename__ = "api_cache"

    key = Column(String, primary_key=True)
    # Base64-encoded response body
    response = Column(Text, nullable=False)
    expires_at = Column(DateTime, nullable=False, index=True)

    def is_expired(self, now: datetime | None = None) -> bool:
        return self.expires_at < (now or utc_now_naive())

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "key": self.key,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
        }
