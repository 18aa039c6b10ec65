"""Expiring response cache for upstream documents.

Two implementations share one interface: ``SqlResponseCache`` stores entries
in the ``api_cache`` table, ``NullResponseCache`` stores nothing. Callers
never need to know which one they hold; ``open_response_cache`` picks the
null cache whenever the backing store can't be used.

Cache faults are never raised to the caller. A failed read is a miss and a
failed write is dropped, so the worst case is a slower, less polite client.
"""

import base64
import logging
from datetime import timedelta
from typing import Callable, Optional, Protocol

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from hnplus.config import utc_now_naive
from hnplus.models.cache import CacheEntry
from hnplus.models.database import Base

logger = logging.getLogger(__name__)

# Below this TTL (seconds) caching is disabled entirely
MIN_CACHE_TTL = 60


def encode_body(value: str) -> str:
    return base64.b64encode(value.encode("utf-8")).decode("ascii")


def decode_body(value: str) -> str:
    return base64.b64decode(value.encode("ascii")).decode("utf-8")


class ResponseCache(Protocol):
    """Capability interface for the response cache."""

    ttl: int

    async def get(self, key: str) -> Optional[str]: ...

    async def put(self, key: str, value: str, ttl: Optional[int] = None) -> None: ...

    async def sweep_expired(self) -> int: ...

    async def clear(self) -> None: ...

    async def scan(self, predicate: Callable[[str], bool]) -> Optional[str]: ...


class NullResponseCache:
    """Cache that never stores anything. Used when the real store is unavailable."""

    ttl = 0

    async def get(self, key: str) -> Optional[str]:
        return None

    async def put(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        return None

    async def sweep_expired(self) -> int:
        return 0

    async def clear(self) -> None:
        return None

    async def scan(self, predicate: Callable[[str], bool]) -> Optional[str]:
        return None


class SqlResponseCache:
    """Response cache stored in the ``api_cache`` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], ttl: int):
        self._session_factory = session_factory
        self.ttl = ttl

    async def get(self, key: str) -> Optional[str]:
        """Return the cached body for key, or None if missing or expired."""
        try:
            async with self._session_factory() as db:
                entry = await db.get(CacheEntry, key)
                if entry is None:
                    return None
                if entry.is_expired():
                    await db.delete(entry)
                    await db.commit()
                    return None
                return decode_body(entry.response)
        except Exception as e:
            logger.error(f"Failed to read from api response cache: {e}")
            return None

    async def put(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        ttl = self.ttl if ttl is None else ttl
        if ttl <= 0:
            return
        try:
            async with self._session_factory() as db:
                await db.merge(CacheEntry(
                    key=key,
                    response=encode_body(value),
                    expires_at=utc_now_naive() + timedelta(seconds=ttl),
                ))
                await db.commit()
        except Exception as e:
            logger.error(f"Failed to write to api response cache: {e}")

    async def sweep_expired(self) -> int:
        """Delete every expired entry. Returns the number removed."""
        try:
            async with self._session_factory() as db:
                result = await db.execute(
                    delete(CacheEntry).where(CacheEntry.expires_at < utc_now_naive())
                )
                await db.commit()
                removed = result.rowcount or 0
                logger.debug(f"Pruned {removed} expired api cache entries")
                return removed
        except Exception as e:
            logger.error(f"Failed to prune api response cache: {e}")
            return 0

    async def clear(self) -> None:
        try:
            async with self._session_factory() as db:
                await db.execute(delete(CacheEntry))
                await db.commit()
        except Exception as e:
            logger.error(f"Failed to clear api response cache: {e}")

    async def scan(self, predicate: Callable[[str], bool]) -> Optional[str]:
        """Return the first unexpired cached body matching predicate."""
        try:
            async with self._session_factory() as db:
                result = await db.stream_scalars(
                    select(CacheEntry).where(CacheEntry.expires_at >= utc_now_naive())
                )
                async for entry in result:
                    body = decode_body(entry.response)
                    if predicate(body):
                        return body
        except Exception as e:
            logger.error(f"Failed to scan api response cache: {e}")
        return None


async def open_response_cache(
    session_factory: Optional[async_sessionmaker[AsyncSession]],
    ttl: int,
) -> ResponseCache:
    """Open the SQL-backed cache, degrading to the null cache on any problem."""
    if session_factory is None:
        logger.debug("No cache store configured: disabling api cache")
        return NullResponseCache()

    if ttl < MIN_CACHE_TTL:
        logger.debug(f"Setting cache_ttl={ttl}: disabling api cache")
        return NullResponseCache()

    try:
        async with session_factory() as db:
            conn = await db.connection()
            await conn.run_sync(Base.metadata.create_all, tables=[CacheEntry.__table__])
            await db.commit()
    except Exception as e:
        logger.error(f"Failed to open api cache: {e}")
        return NullResponseCache()

    return SqlResponseCache(session_factory, ttl)
