"""Wine list service: the interface used by the web app and the CLI.

This service provides business logic for:
- Ingesting wine lists from text and uploaded files
- Catalog statistics, listings and duplicate diagnostics
- Enriching wines on demand and controlling the background daemon
- Restaurant list maintenance and upload history
"""

import logging
from uuid import UUID

from sqlalchemy.orm import Session

from wine_pipeline.core.errors import NotFoundError
from wine_pipeline.core.schema import (
    DaemonStatus,
    UploadRecord,
    WineListQuery,
    WinePage,
    WineRecord,
    WineStats,
)
from wine_pipeline.db.repositories import RestaurantWineRepository, UploadRepository, WineRepository
from wine_pipeline.enrichment.daemon import (
    EnrichmentDaemon,
    EnrichmentScheduler,
    EnrichmentTask,
    get_daemon,
    get_scheduler,
)
from wine_pipeline.enrichment.engine import EnrichmentEngine, get_enrichment_engine
from wine_pipeline.ingestion.extractor import TextExtractor
from wine_pipeline.ingestion.matcher import SimilarityMatcher
from wine_pipeline.ingestion.pipeline import IngestionPipeline, IngestionResult
from wine_pipeline.ingestion.readers import read_wine_list_file
from wine_pipeline.ingestion.settings import PipelineSettings, get_default_settings
from wine_pipeline.services.ai.client import AIClient

logger = logging.getLogger(__name__)


class WineListService:
    """Service for wine list ingestion, catalog queries and enrichment control."""

    def __init__(
        self,
        session: Session,
        ai_client: AIClient | None = None,
        engine: EnrichmentEngine | None = None,
        scheduler: EnrichmentScheduler | None = None,
        daemon: EnrichmentDaemon | None = None,
        settings: PipelineSettings | None = None,
    ):
        """
        Initialize the wine list service.

        Args:
            session: SQLAlchemy session for catalog reads and ingestion writes
            ai_client: Language model client used for line extraction
            engine: Enrichment engine for enrich-now requests
            scheduler: Receives post-ingestion and batch enrichment tasks
            daemon: Background enrichment loop
            settings: Pipeline settings (defaults when omitted)
        """
        self.session = session
        self.ai_client = ai_client
        self.settings = settings or get_default_settings()
        self._engine = engine
        self._scheduler = scheduler
        self._daemon = daemon
        self.wines = WineRepository(session)
        self.links = RestaurantWineRepository(session)
        self.uploads = UploadRepository(session)

    @property
    def engine(self) -> EnrichmentEngine:
        if self._engine is None:
            self._engine = get_enrichment_engine()
        return self._engine

    @property
    def scheduler(self) -> EnrichmentScheduler:
        if self._scheduler is None:
            self._scheduler = get_scheduler()
        return self._scheduler

    @property
    def daemon(self) -> EnrichmentDaemon:
        if self._daemon is None:
            self._daemon = get_daemon()
        return self._daemon

    def matcher(self) -> SimilarityMatcher:
        return SimilarityMatcher.from_config(self.session, self.settings.matching)

    # =========================================================================
    # Ingestion
    # =========================================================================

    async def ingest(
        self,
        text: str,
        uploaded_by: str,
        file_name: str | None = None,
        restaurant_id: str | None = None,
        file_size: int | None = None,
        auto_enrich: bool = True,
    ) -> IngestionResult:
        """
        Ingest wine list text.

        Args:
            text: Raw wine list text, one wine per line
            uploaded_by: Id of the uploading user
            file_name: Original file name
            restaurant_id: Restaurant to link every wine to
            file_size: Uploaded file size in bytes
            auto_enrich: Kick off enrichment for the first new wines

        Returns:
            IngestionResult with batch counts
        """
        pipeline = IngestionPipeline(
            self.session,
            extractor=TextExtractor(self.ai_client, self.settings.extraction),
            matcher=self.matcher(),
            scheduler=self.scheduler if auto_enrich else None,
            config=self.settings.ingestion,
        )
        return await pipeline.ingest(
            text,
            uploaded_by,
            file_name=file_name,
            restaurant_id=restaurant_id,
            file_size=file_size,
        )

    async def ingest_file(
        self,
        filename: str,
        content: bytes,
        uploaded_by: str,
        restaurant_id: str | None = None,
        auto_enrich: bool = True,
    ) -> IngestionResult:
        """
        Ingest an uploaded .txt or .csv wine list.

        Raises:
            ValidationError: For unsupported or empty files
        """
        text = read_wine_list_file(filename, content)
        return await self.ingest(
            text,
            uploaded_by,
            file_name=filename,
            restaurant_id=restaurant_id,
            file_size=len(content),
            auto_enrich=auto_enrich,
        )

    def list_uploads(self, limit: int = 20, restaurant_id: str | None = None) -> list[UploadRecord]:
        return self.uploads.list_recent(limit=limit, restaurant_id=restaurant_id)

    # =========================================================================
    # Catalog queries
    # =========================================================================

    def get_stats(self, restaurant_id: str | None = None) -> WineStats:
        return self.wines.get_stats(restaurant_id)

    def list_wines(self, restaurant_id: str | None, query: WineListQuery) -> WinePage:
        return self.wines.list_wines(restaurant_id, query)

    def get_wine(self, wine_id: UUID | str) -> WineRecord:
        """
        Get a wine by id.

        Raises:
            NotFoundError: If the wine does not exist
        """
        record = self.wines.get_by_id(wine_id)
        if record is None:
            raise NotFoundError(f"Wine {wine_id} not found")
        return record

    def find_duplicate_groups(self) -> list[list[str]]:
        """Groups of catalog wine ids believed to be the same wine."""
        groups = self.matcher().find_duplicate_groups()
        logger.info(f"Found {len(groups)} duplicate group(s)")
        return groups

    def deactivate(self, restaurant_id: str, wine_id: UUID | str) -> None:
        """
        Remove a wine from a restaurant's list; the catalog record stays.

        Raises:
            NotFoundError: If the wine is not on the restaurant's list
        """
        if not self.links.deactivate(restaurant_id, wine_id):
            raise NotFoundError(f"Wine {wine_id} is not on restaurant {restaurant_id}'s list")
        self.session.commit()

    # =========================================================================
    # Enrichment
    # =========================================================================

    async def enrich_one(self, wine_id: UUID | str, force: bool = False) -> WineRecord:
        """
        Enrich one wine and wait for the result.

        Raises:
            NotFoundError: If the wine does not exist
        """
        return await self.engine.enrich_wine(wine_id, force=force)

    def schedule_enrichment(
        self,
        wine_ids: list[str] | None = None,
        limit: int | None = None,
    ) -> str:
        """Start a background enrichment batch and return its task id."""
        return self.scheduler.schedule(wine_ids=wine_ids, limit=limit)

    def get_task(self, task_id: str) -> EnrichmentTask:
        """
        Get a background enrichment task.

        Raises:
            NotFoundError: If the task is unknown
        """
        task = self.scheduler.get_task(task_id)
        if task is None:
            raise NotFoundError(f"Enrichment task {task_id} not found")
        return task

    def start_daemon(self) -> bool:
        return self.daemon.start()

    async def stop_daemon(self) -> bool:
        return await self.daemon.stop()

    def daemon_status(self) -> DaemonStatus:
        return self.daemon.get_status()


def get_wine_list_service(session: Session) -> WineListService:
    """
    Build the service with the process-wide engine, scheduler and daemon.

    Extraction shares the engine's language model client.
    """
    engine = get_enrichment_engine()
    return WineListService(
        session,
        ai_client=engine.ai_client,
        engine=engine,
        scheduler=get_scheduler(),
        daemon=get_daemon(),
    )
