"""Catalog run lock and duration telemetry, persisted in ``app_settings``."""

import json
import logging
from dataclasses import asdict, dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from hnplus.errors import CatalogAlreadyRunningError
from hnplus.models.settings import compare_and_set, get_setting, seed_defaults, set_setting

logger = logging.getLogger(__name__)

RUNNING_KEY = "catalog.running"
TELEMETRY_KEY = "catalog.telemetry"


@dataclass
class CatalogTelemetry:
    """Running totals used to estimate how long a catalog will take."""

    total_runs: int = 0
    total_run_time: float = 0.0
    pages_generated: int = 0

    @classmethod
    def from_json(cls, value: Optional[str]) -> "CatalogTelemetry":
        try:
            data = json.loads(value or "{}")
        except json.JSONDecodeError:
            logger.warning(f"Discarding unreadable catalog telemetry: {value!r}")
            return cls()
        return cls(
            total_runs=int(data.get("total_runs", 0)),
            total_run_time=float(data.get("total_run_time", 0.0)),
            pages_generated=int(data.get("pages_generated", 0)),
        )

    def to_json(self) -> str:
        return json.dumps(asdict(self))

    def record(self, duration: float, pages: int) -> None:
        """Add one completed run."""
        self.total_runs += 1
        self.total_run_time += duration
        self.pages_generated += pages

    @property
    def seconds_per_page(self) -> Optional[float]:
        if self.pages_generated <= 0:
            return None
        return self.total_run_time / self.pages_generated

    def estimate(self, pages: int) -> Optional[float]:
        """Estimated seconds for a catalog of ``pages`` pages, or None with no history."""
        per_page = self.seconds_per_page
        return None if per_page is None else per_page * pages


class RunStateStore:
    """Reads and writes catalog state through the app settings table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def is_running(self) -> bool:
        async with self._session_factory() as db:
            return (await get_setting(db, RUNNING_KEY, "false")).lower() == "true"

    async def claim_running(self) -> bool:
        """Flip the running flag from false to true in one statement.

        Returns False when another run already holds it.
        """
        async with self._session_factory() as db:
            await seed_defaults(db)
            return await compare_and_set(db, RUNNING_KEY, "false", "true")

    async def set_running(self, running: bool) -> None:
        async with self._session_factory() as db:
            await set_setting(db, RUNNING_KEY, "true" if running else "false")

    async def load_telemetry(self) -> CatalogTelemetry:
        async with self._session_factory() as db:
            return CatalogTelemetry.from_json(await get_setting(db, TELEMETRY_KEY))

    async def save_telemetry(self, telemetry: CatalogTelemetry) -> None:
        async with self._session_factory() as db:
            await set_setting(db, TELEMETRY_KEY, telemetry.to_json())

    async def record_run(self, duration: float, pages: int) -> CatalogTelemetry:
        telemetry = await self.load_telemetry()
        telemetry.record(duration, pages)
        await self.save_telemetry(telemetry)
        return telemetry


class CatalogRunLock:
    """Allows one catalog run at a time.

    Usage::

        async with run_lock:
            ...

    A second caller is rejected straight away with
    ``CatalogAlreadyRunningError`` rather than queued. The persisted flag is
    cleared on the way out whether the run succeeded or not.
    """

    def __init__(self, store: RunStateStore):
        self.store = store
        self._held = False

    @property
    def locked(self) -> bool:
        return self._held

    async def __aenter__(self) -> "CatalogRunLock":
        if self._held:
            raise CatalogAlreadyRunningError()
        self._held = True

        try:
            if not await self.store.claim_running():
                raise CatalogAlreadyRunningError()
        except BaseException:
            self._held = False
            raise

        logger.debug("Catalog run lock acquired")
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        try:
            await self.store.set_running(False)
        finally:
            self._held = False
            logger.debug("Catalog run lock released")
