"""Tests for the catalog run lock and duration telemetry."""

import asyncio

import pytest

from hnplus.catalog.run_state import CatalogRunLock, CatalogTelemetry, RunStateStore
from hnplus.errors import CatalogAlreadyRunningError
from hnplus.models.settings import compare_and_set, get_setting, seed_defaults, set_setting


@pytest.fixture
def store(session_factory) -> RunStateStore:
    return RunStateStore(session_factory)


class TestCatalogTelemetry:
    def test_no_history_no_estimate(self):
        assert CatalogTelemetry().estimate(10) is None

    def test_estimate_scales_with_pages(self):
        telemetry = CatalogTelemetry()
        telemetry.record(30.0, 3)
        telemetry.record(10.0, 1)
        assert telemetry.seconds_per_page == 10.0
        assert telemetry.estimate(5) == 50.0

    def test_json_round_trip(self):
        telemetry = CatalogTelemetry(total_runs=2, total_run_time=12.5, pages_generated=4)
        assert CatalogTelemetry.from_json(telemetry.to_json()) == telemetry

    def test_unreadable_json_resets(self):
        assert CatalogTelemetry.from_json("{not json") == CatalogTelemetry()

    def test_missing_json(self):
        assert CatalogTelemetry.from_json(None) == CatalogTelemetry()


class TestAppSettingsHelpers:
    @pytest.mark.asyncio
    async def test_seed_keeps_existing_values(self, db_session):
        await set_setting(db_session, "catalog.running", "true")
        await seed_defaults(db_session)

        assert await get_setting(db_session, "catalog.running") == "true"
        assert "total_runs" in await get_setting(db_session, "catalog.telemetry")

    @pytest.mark.asyncio
    async def test_compare_and_set(self, db_session):
        await seed_defaults(db_session)

        assert await compare_and_set(db_session, "catalog.running", "false", "true")
        assert not await compare_and_set(db_session, "catalog.running", "false", "true")
        assert await get_setting(db_session, "catalog.running") == "true"

    @pytest.mark.asyncio
    async def test_compare_and_set_missing_row(self, db_session):
        assert not await compare_and_set(db_session, "catalog.running", "false", "true")


class TestRunStateStore:
    @pytest.mark.asyncio
    async def test_not_running_by_default(self, store):
        assert not await store.is_running()

    @pytest.mark.asyncio
    async def test_running_flag(self, store):
        await store.set_running(True)
        assert await store.is_running()
        await store.set_running(False)
        assert not await store.is_running()

    @pytest.mark.asyncio
    async def test_claim_running_only_once(self, store):
        assert await store.claim_running()
        assert not await store.claim_running()
        assert await store.is_running()

        await store.set_running(False)
        assert await store.claim_running()

    @pytest.mark.asyncio
    async def test_record_run_accumulates(self, store):
        await store.record_run(20.0, 2)
        telemetry = await store.record_run(10.0, 1)

        assert telemetry.total_runs == 2
        assert (await store.load_telemetry()).estimate(3) == 30.0


class TestCatalogRunLock:
    @pytest.mark.asyncio
    async def test_second_request_rejected_third_succeeds(self, store):
        lock = CatalogRunLock(store)
        started = asyncio.Event()
        release = asyncio.Event()

        async def first_run():
            async with lock:
                started.set()
                await release.wait()

        first = asyncio.ensure_future(first_run())
        await started.wait()

        with pytest.raises(CatalogAlreadyRunningError, match="already being generated"):
            async with lock:
                pass
        assert not first.done()

        release.set()
        await first

        async with lock:
            assert lock.locked
        assert not lock.locked

    @pytest.mark.asyncio
    async def test_simultaneous_entry_only_one_wins(self, store):
        lock = CatalogRunLock(store)

        async def run():
            async with lock:
                await asyncio.sleep(0.01)

        results = await asyncio.gather(run(), run(), return_exceptions=True)
        assert sum(isinstance(r, CatalogAlreadyRunningError) for r in results) == 1

    @pytest.mark.asyncio
    async def test_persisted_flag_blocks_other_processes(self, store):
        await store.set_running(True)
        lock = CatalogRunLock(store)

        with pytest.raises(CatalogAlreadyRunningError):
            async with lock:
                pass
        assert not lock.locked

    @pytest.mark.asyncio
    async def test_released_after_failure(self, store):
        lock = CatalogRunLock(store)

        with pytest.raises(ValueError):
            async with lock:
                assert await store.is_running()
                raise ValueError("boom")

        assert not lock.locked
        assert not await store.is_running()

    @pytest.mark.asyncio
    async def test_locks_sharing_a_store_admit_one_run(self, store, session_factory):
        async with session_factory() as db:
            await seed_defaults(db)
        first, second = CatalogRunLock(store), CatalogRunLock(store)

        results = await asyncio.gather(first.__aenter__(), second.__aenter__(), return_exceptions=True)

        assert sum(isinstance(r, CatalogRunLock) for r in results) == 1
        assert sum(isinstance(r, CatalogAlreadyRunningError) for r in results) == 1
        assert [first.locked, second.locked].count(True) == 1

    @pytest.mark.asyncio
    async def test_first_claim_on_empty_table_rejects_cleanly(self, store):
        first, second = CatalogRunLock(store), CatalogRunLock(store)

        results = await asyncio.gather(first.__aenter__(), second.__aenter__(), return_exceptions=True)

        assert sum(isinstance(r, CatalogRunLock) for r in results) == 1
        assert sum(isinstance(r, CatalogAlreadyRunningError) for r in results) == 1
