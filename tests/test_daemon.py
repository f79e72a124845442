"""Tests for the enrichment daemon and scheduler."""

import asyncio
import tempfile
from pathlib import Path

import pytest
from sqlalchemy import create_engine, update
from sqlalchemy.orm import sessionmaker

from wine_pipeline.core.enums import EnrichmentStatus
from wine_pipeline.core.schema import WineRecord
from wine_pipeline.db.models import Base, WineDB
from wine_pipeline.db.repositories import WineRepository
from wine_pipeline.enrichment.daemon import EnrichmentDaemon, EnrichmentScheduler, TaskStatus
from wine_pipeline.enrichment.engine import EnrichmentEngine
from wine_pipeline.ingestion.settings import DaemonConfig, EnrichmentConfig


class BrokenEngine(EnrichmentEngine):
    """Engine whose batch entry point always raises."""

    async def enrich_batch(self, limit=None, wine_ids=None):
        raise RuntimeError("store unavailable")


@pytest.fixture
def temp_db_path():
    """Create a temporary database file."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir) / "test.db"


@pytest.fixture
def session_factory(temp_db_path):
    """Create a session factory bound to a fresh database."""
    engine = create_engine(f"sqlite:///{temp_db_path}", echo=False)
    Base.metadata.create_all(engine)
    yield sessionmaker(bind=engine)
    engine.dispose()


@pytest.fixture
def engine(session_factory) -> EnrichmentEngine:
    """Engine without AI; only knowledge base wines succeed."""
    return EnrichmentEngine(session_factory, config=EnrichmentConfig(inter_call_delay_ms=0))


def _seed(session_factory, **kwargs) -> str:
    data = {"wine_name": "Barolo Cannubi", "producer": "Brezza", "vintage": "2016"}
    data.update(kwargs)
    session = session_factory()
    try:
        record = WineRepository(session).create(WineRecord(**data))
        session.commit()
        return str(record.id)
    finally:
        session.close()


def _status(session_factory, wine_id: str) -> EnrichmentStatus:
    session = session_factory()
    try:
        return WineRepository(session).get_by_id(wine_id).enrichment_status
    finally:
        session.close()


class TestEnrichmentDaemon:
    """Tests for EnrichmentDaemon."""

    @pytest.mark.asyncio
    async def test_run_once_processes_pending(self, session_factory, engine) -> None:
        """Test that one poll enriches the pending page."""
        first = _seed(session_factory, vintage="2015")
        second = _seed(session_factory, vintage="2016")
        daemon = EnrichmentDaemon(engine, DaemonConfig(page_size=10))

        processed = await daemon.run_once()

        assert processed == 2
        assert daemon.processed_count == 2
        assert daemon.last_poll_at is not None
        assert daemon.current_wine_id is None
        assert _status(session_factory, first) == EnrichmentStatus.COMPLETED
        assert _status(session_factory, second) == EnrichmentStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_run_once_respects_page_size(self, session_factory, engine) -> None:
        """Test that one poll processes at most a page of wines."""
        for vintage in ("2013", "2014", "2015"):
            _seed(session_factory, vintage=vintage)
        daemon = EnrichmentDaemon(engine, DaemonConfig(page_size=2))

        assert await daemon.run_once() == 2
        assert daemon.get_status().pending_count == 1

    @pytest.mark.asyncio
    async def test_run_once_reclaims_stuck(self, session_factory, engine) -> None:
        """Test that an abandoned processing wine is reset and enriched."""
        wine_id = _seed(session_factory)
        session = session_factory()
        session.execute(
            update(WineDB)
            .where(WineDB.id == wine_id)
            .values(enrichment_status="processing", enrichment_started_at=None)
        )
        session.commit()
        session.close()
        daemon = EnrichmentDaemon(engine)

        assert await daemon.run_once() == 1
        assert _status(session_factory, wine_id) == EnrichmentStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_failed_wine_retried_until_max_attempts(
        self, session_factory, engine
    ) -> None:
        """Test that failed wines are retried and then left alone."""
        wine_id = _seed(session_factory, wine_name="Opus One", producer="Opus One Winery")
        daemon = EnrichmentDaemon(engine, DaemonConfig(retry_failed=True, max_attempts=2))

        assert await daemon.run_once() == 1
        assert daemon.failed_count == 1
        assert daemon.get_status().pending_count == 1

        assert await daemon.run_once() == 1
        assert daemon.failed_count == 2
        assert await daemon.run_once() == 0
        assert _status(session_factory, wine_id) == EnrichmentStatus.FAILED

    @pytest.mark.asyncio
    async def test_failed_wine_not_retried_when_disabled(
        self, session_factory, engine
    ) -> None:
        """Test that retry_failed=False leaves failed wines alone."""
        _seed(session_factory, wine_name="Opus One", producer="Opus One Winery")
        daemon = EnrichmentDaemon(engine, DaemonConfig(retry_failed=False))

        assert await daemon.run_once() == 1
        assert await daemon.run_once() == 0

    @pytest.mark.asyncio
    async def test_start_and_stop(self, session_factory, engine) -> None:
        """Test that start is idempotent and stop halts the loop."""
        wine_id = _seed(session_factory)
        daemon = EnrichmentDaemon(engine, DaemonConfig(poll_interval_seconds=0.05))

        assert daemon.start() is True
        assert daemon.start() is False
        assert daemon.running is True

        for _ in range(50):
            if daemon.processed_count:
                break
            await asyncio.sleep(0.05)

        assert await daemon.stop() is True
        assert daemon.running is False
        assert await daemon.stop() is False
        assert _status(session_factory, wine_id) == EnrichmentStatus.COMPLETED

    def test_status_snapshot(self, session_factory, engine) -> None:
        """Test the status of an idle daemon."""
        _seed(session_factory)
        daemon = EnrichmentDaemon(engine, DaemonConfig(poll_interval_seconds=2.5))

        status = daemon.get_status()

        assert status.running is False
        assert status.pending_count == 1
        assert status.processed_count == 0
        assert status.interval_seconds == 2.5


class TestEnrichmentScheduler:
    """Tests for EnrichmentScheduler."""

    @pytest.mark.asyncio
    async def test_task_completes(self, session_factory, engine) -> None:
        """Test that a scheduled batch runs and records its result."""
        wine_id = _seed(session_factory)
        scheduler = EnrichmentScheduler(engine)

        task_id = scheduler.schedule(wine_ids=[wine_id])
        assert scheduler.get_task(task_id).status == TaskStatus.RUNNING
        await scheduler.wait_all()

        task = scheduler.get_task(task_id)
        assert task.status == TaskStatus.COMPLETED
        assert task.result["succeeded"] == 1
        assert task.completed_at is not None
        assert task.to_dict()["wine_ids"] == [wine_id]
        assert _status(session_factory, wine_id) == EnrichmentStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_task_failure_recorded(self, session_factory) -> None:
        """Test that a batch error is visible on the task."""
        scheduler = EnrichmentScheduler(BrokenEngine(session_factory))

        task_id = scheduler.schedule(limit=5)
        await scheduler.wait_all()

        task = scheduler.get_task(task_id)
        assert task.status == TaskStatus.FAILED
        assert task.error == "store unavailable"

    @pytest.mark.asyncio
    async def test_finished_tasks_pruned(self, session_factory, engine) -> None:
        """Test that only max_tracked tasks are kept."""
        scheduler = EnrichmentScheduler(engine, max_tracked=2)

        for _ in range(3):
            scheduler.schedule(wine_ids=[])
            await scheduler.wait_all()

        assert len(scheduler.list_tasks()) == 2

    def test_unknown_task(self, engine) -> None:
        """Test that unknown task ids return None."""
        assert EnrichmentScheduler(engine).get_task("missing") is None
