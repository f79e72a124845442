"""
Enrichment Daemon and Scheduler
===============================

EnrichmentDaemon is the long-lived background loop: every poll it
returns stuck records to pending, then enriches a bounded page of
pending records one at a time.

EnrichmentScheduler runs one-off enrichment batches (post-ingestion
kick-offs, the batch endpoint) as tracked asyncio tasks, so every
background run has a visible status and error.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import Any
from uuid import uuid4

from wine_pipeline.core.schema import DaemonStatus
from wine_pipeline.db.repositories import WineRepository
from wine_pipeline.enrichment.engine import EnrichmentEngine, get_enrichment_engine
from wine_pipeline.ingestion.settings import DaemonConfig, get_default_settings

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(UTC)


# ============================================================================
# Daemon
# ============================================================================


class EnrichmentDaemon:
    """
    Background enrichment loop.

    start() is idempotent. stop() lets the wine in flight finish and
    then halts; it never interrupts a write.
    """

    def __init__(
        self,
        engine: EnrichmentEngine | None = None,
        config: DaemonConfig | None = None,
    ) -> None:
        self._engine = engine
        self.config = config or DaemonConfig()
        self._task: asyncio.Task[None] | None = None
        self._stop_event: asyncio.Event | None = None

        self.last_poll_at: datetime | None = None
        self.processed_count = 0
        self.failed_count = 0
        self.current_wine_id: str | None = None

    @property
    def engine(self) -> EnrichmentEngine:
        if self._engine is None:
            self._engine = get_enrichment_engine()
        return self._engine

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> bool:
        """
        Start the loop on the running event loop.

        Returns:
            True if started, False if it was already running
        """
        if self.running:
            return False

        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._run(), name="enrichment-daemon")
        logger.info(
            f"Enrichment daemon started (interval {self.config.poll_interval_seconds}s, "
            f"page size {self.config.page_size})"
        )
        return True

    async def stop(self) -> bool:
        """
        Stop the loop after the wine in flight completes.

        Returns:
            True if the daemon was running
        """
        if not self.running:
            return False

        self._stop_event.set()
        await self._task
        logger.info("Enrichment daemon stopped")
        return True

    def get_status(self) -> DaemonStatus:
        """Snapshot of the daemon state and the pending backlog."""
        with self.engine.session_scope() as session:
            pending = WineRepository(session).count_pending(
                include_failed=self.config.retry_failed,
                max_attempts=self.config.max_attempts,
            )
        return DaemonStatus(
            running=self.running,
            last_poll_at=self.last_poll_at,
            pending_count=pending,
            processed_count=self.processed_count,
            failed_count=self.failed_count,
            current_wine_id=self.current_wine_id,
            interval_seconds=self.config.poll_interval_seconds,
        )

    @property
    def _stop_requested(self) -> bool:
        return self._stop_event is not None and self._stop_event.is_set()

    async def run_once(self) -> int:
        """
        Run one poll: reclaim stuck records, then enrich one page.

        Returns:
            Number of wines processed
        """
        self.last_poll_at = _utc_now()
        threshold = timedelta(minutes=self.config.stuck_threshold_minutes)

        with self.engine.session_scope() as session:
            repo = WineRepository(session)
            repo.reset_stuck(None, threshold)
            page = repo.list_pending(
                self.config.page_size,
                include_failed=self.config.retry_failed,
                max_attempts=self.config.max_attempts,
            )
            session.commit()

        processed = 0
        for record in page:
            if self._stop_requested:
                break
            if processed:
                await self.engine.pause()
            if not self.engine.claim(record.id):
                continue

            self.current_wine_id = str(record.id)
            try:
                outcome = await self.engine.enrich_claimed(record.id)
            finally:
                self.current_wine_id = None

            processed += 1
            if outcome.success:
                self.processed_count += 1
            else:
                self.failed_count += 1

        return processed

    async def _run(self) -> None:
        while not self._stop_requested:
            try:
                processed = await self.run_once()
            except Exception:
                logger.exception("Enrichment daemon poll failed")
                processed = 0

            if self._stop_requested:
                break
            if processed >= self.config.page_size:
                continue

            try:
                await asyncio.wait_for(
                    self._stop_event.wait(), timeout=self.config.poll_interval_seconds
                )
            except TimeoutError:
                continue


# ============================================================================
# Scheduler
# ============================================================================


class TaskStatus(str, Enum):
    """Status of a scheduled enrichment task."""

    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class EnrichmentTask:
    """A tracked background enrichment batch."""

    task_id: str
    wine_ids: list[str] | None = None
    limit: int | None = None
    status: TaskStatus = TaskStatus.RUNNING
    created_at: datetime = field(default_factory=_utc_now)
    completed_at: datetime | None = None
    result: dict[str, Any] | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "task_id": self.task_id,
            "wine_ids": self.wine_ids,
            "limit": self.limit,
            "status": self.status.value,
            "created_at": self.created_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "result": self.result,
            "error": self.error,
        }


class EnrichmentScheduler:
    """Runs enrichment batches in the background and tracks their outcome."""

    def __init__(self, engine: EnrichmentEngine | None = None, max_tracked: int = 100) -> None:
        self._engine = engine
        self.max_tracked = max_tracked
        self._tasks: dict[str, EnrichmentTask] = {}
        self._running: dict[str, asyncio.Task[None]] = {}

    @property
    def engine(self) -> EnrichmentEngine:
        if self._engine is None:
            self._engine = get_enrichment_engine()
        return self._engine

    def schedule(self, wine_ids: list[str] | None = None, limit: int | None = None) -> str:
        """
        Start an enrichment batch in the background.

        Args:
            wine_ids: Specific wines to enrich; pending wines when omitted
            limit: Maximum wines to process

        Returns:
            The task id
        """
        task = EnrichmentTask(
            task_id=str(uuid4()),
            wine_ids=[str(w) for w in wine_ids] if wine_ids is not None else None,
            limit=limit,
        )
        self._tasks[task.task_id] = task
        self._prune()

        running = asyncio.create_task(self._run(task), name=f"enrichment-{task.task_id}")
        self._running[task.task_id] = running
        running.add_done_callback(lambda _: self._running.pop(task.task_id, None))
        logger.info(f"Scheduled enrichment task {task.task_id}")
        return task.task_id

    async def _run(self, task: EnrichmentTask) -> None:
        try:
            result = await self.engine.enrich_batch(limit=task.limit, wine_ids=task.wine_ids)
        except Exception as e:
            logger.exception(f"Enrichment task {task.task_id} failed")
            task.status = TaskStatus.FAILED
            task.error = str(e)
        else:
            task.status = TaskStatus.COMPLETED
            task.result = result.to_dict()
            logger.info(
                f"Enrichment task {task.task_id} finished: "
                f"{result.succeeded} completed, {result.failed} failed"
            )
        finally:
            task.completed_at = _utc_now()

    def get_task(self, task_id: str) -> EnrichmentTask | None:
        return self._tasks.get(task_id)

    def list_tasks(self) -> list[EnrichmentTask]:
        """Tracked tasks, newest first."""
        return sorted(self._tasks.values(), key=lambda t: t.created_at, reverse=True)

    async def wait_all(self) -> None:
        """Wait for every running task to finish."""
        if self._running:
            await asyncio.gather(*list(self._running.values()))

    def _prune(self) -> None:
        finished = [t for t in self.list_tasks() if t.status != TaskStatus.RUNNING]
        excess = len(self._tasks) - self.max_tracked
        for task in reversed(finished):
            if excess <= 0:
                break
            del self._tasks[task.task_id]
            excess -= 1


# Global instances
_daemon: EnrichmentDaemon | None = None
_scheduler: EnrichmentScheduler | None = None


def get_daemon() -> EnrichmentDaemon:
    """Get the process-wide enrichment daemon."""
    global _daemon
    if _daemon is None:
        _daemon = EnrichmentDaemon(config=get_default_settings().daemon)
    return _daemon


def get_scheduler() -> EnrichmentScheduler:
    """Get the process-wide enrichment scheduler."""
    global _scheduler
    if _scheduler is None:
        _scheduler = EnrichmentScheduler()
    return _scheduler


def reset_daemon() -> None:
    """Reset the daemon and scheduler (useful for testing)."""
    global _daemon, _scheduler
    _daemon = None
    _scheduler = None
