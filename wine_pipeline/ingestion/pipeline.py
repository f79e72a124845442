"""
Ingestion Pipeline Module
=========================

Orchestrates one wine list batch: split the text into lines, extract a
candidate per line, match it against the catalog, persist new wines and
link every wine to the uploading restaurant.

Lines are independent. A line that cannot be extracted is counted and
skipped; only store failures abort the batch, and rows committed before
the failure remain.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from sqlalchemy.orm import Session

from wine_pipeline.core.enums import UploadStatus
from wine_pipeline.core.errors import (
    DuplicateKeyError,
    ExtractionFailure,
    PersistenceError,
    ValidationError,
)
from wine_pipeline.core.schema import AssociationPricing, UploadRecord, WineCandidate, WineRecord
from wine_pipeline.db.repositories import RestaurantWineRepository, UploadRepository, WineRepository
from wine_pipeline.ingestion.extractor import TextExtractor
from wine_pipeline.ingestion.matcher import SimilarityMatcher
from wine_pipeline.ingestion.settings import IngestionConfig, MatchingConfig

if TYPE_CHECKING:
    from wine_pipeline.enrichment.daemon import EnrichmentScheduler

logger = logging.getLogger(__name__)

# Each duplicate avoids one extraction call and one enrichment call
API_CALLS_PER_DUPLICATE = 2


@dataclass
class IngestionResult:
    """Summary of one ingestion batch."""

    upload_id: str
    processed_count: int = 0
    error_count: int = 0
    skipped_count: int = 0
    duplicates_found: int = 0
    new_wines_count: int = 0
    total_in_database: int = 0
    sample_records: list[dict[str, Any]] = field(default_factory=list)
    new_wine_ids: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    processing_time_ms: int = 0
    enrichment_task_id: str | None = None

    @property
    def api_calls_saved(self) -> int:
        return self.duplicates_found * API_CALLS_PER_DUPLICATE

    @property
    def message(self) -> str:
        return (
            f"Processed {self.processed_count} wines: {self.new_wines_count} new, "
            f"{self.duplicates_found} duplicates, {self.error_count} errors"
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "upload_id": self.upload_id,
            "processed_count": self.processed_count,
            "error_count": self.error_count,
            "skipped_count": self.skipped_count,
            "duplicates_found": self.duplicates_found,
            "new_wines_count": self.new_wines_count,
            "total_in_database": self.total_in_database,
            "api_calls_saved": self.api_calls_saved,
            "sample_records": self.sample_records,
            "new_wine_ids": self.new_wine_ids,
            "errors": self.errors,
            "processing_time_ms": self.processing_time_ms,
            "enrichment_task_id": self.enrichment_task_id,
            "message": self.message,
        }


def split_lines(text: str) -> list[str]:
    """Split wine list text into non-empty trimmed lines, in input order."""
    return [line.strip() for line in text.splitlines() if line.strip()]


class IngestionPipeline:
    """
    Runs wine list batches against the catalog.

    The session is committed after the upload record is created and
    after every stored line, so a later failure never loses earlier rows.
    """

    def __init__(
        self,
        session: Session,
        extractor: TextExtractor,
        matcher: SimilarityMatcher | None = None,
        scheduler: EnrichmentScheduler | None = None,
        config: IngestionConfig | None = None,
    ) -> None:
        """
        Initialize the pipeline.

        Args:
            session: SQLAlchemy database session
            extractor: Line extractor
            matcher: Duplicate matcher (default thresholds when omitted)
            scheduler: Receives the post-ingestion enrichment kick-off
            config: Batch settings
        """
        self.session = session
        self.extractor = extractor
        self.matcher = matcher or SimilarityMatcher.from_config(session, MatchingConfig())
        self.scheduler = scheduler
        self.config = config or IngestionConfig()
        self.wines = WineRepository(session)
        self.links = RestaurantWineRepository(session)
        self.uploads = UploadRepository(session)

    async def ingest(
        self,
        text: str,
        uploaded_by: str,
        file_name: str | None = None,
        restaurant_id: str | None = None,
        file_size: int | None = None,
    ) -> IngestionResult:
        """
        Ingest a wine list.

        Args:
            text: Raw wine list text, one wine per line
            uploaded_by: Id of the uploading user
            file_name: Original file name for file uploads
            restaurant_id: Restaurant to link every wine to
            file_size: Uploaded file size in bytes

        Returns:
            IngestionResult with per-batch counts

        Raises:
            ValidationError: If the text has no lines or the uploader is missing
            PersistenceError: If the store fails; the upload is finalized as failed
        """
        if not uploaded_by or not uploaded_by.strip():
            raise ValidationError("uploaded_by is required")
        if restaurant_id is not None and not restaurant_id.strip():
            raise ValidationError("restaurant_id must not be blank")
        lines = split_lines(text or "")
        if not lines:
            raise ValidationError("Wine list text is empty")

        started = time.perf_counter()
        upload = self.uploads.create(
            UploadRecord(
                restaurant_id=restaurant_id,
                uploaded_by=uploaded_by,
                original_filename=file_name,
                file_size=file_size,
                total_lines=len(lines),
            )
        )
        self.session.commit()
        logger.info(
            f"Ingesting {len(lines)} lines (upload {upload.id}, restaurant {restaurant_id})"
        )

        result = IngestionResult(upload_id=str(upload.id))
        try:
            for line_number, line in enumerate(lines, start=1):
                if self.extractor.skip_reason(line) is not None:
                    result.skipped_count += 1
                    continue

                try:
                    candidate = await self.extractor.extract(line)
                except ExtractionFailure as e:
                    result.error_count += 1
                    result.errors.append(f"Line {line_number}: {e.reason}")
                    logger.warning(f"Line {line_number} skipped: {e}")
                    continue

                record, created = self._store(candidate, restaurant_id, uploaded_by)
                self.session.commit()

                if created:
                    result.new_wines_count += 1
                    result.new_wine_ids.append(str(record.id))
                else:
                    result.duplicates_found += 1
                if len(result.sample_records) < self.config.sample_size:
                    result.sample_records.append(record.to_summary())

            result.processed_count = result.new_wines_count + result.duplicates_found
            result.total_in_database = self.wines.count()
            result.processing_time_ms = _elapsed_ms(started)
            self.uploads.finalize(
                upload.id,
                UploadStatus.COMPLETED,
                total_lines=len(lines),
                new_wines=result.new_wines_count,
                duplicates_found=result.duplicates_found,
                error_count=result.error_count,
                skipped_lines=result.skipped_count,
                processing_time_ms=result.processing_time_ms,
            )
            self.session.commit()
        except Exception as e:
            self.session.rollback()
            logger.exception(f"Ingestion batch {upload.id} failed")
            self.uploads.finalize(
                upload.id,
                UploadStatus.FAILED,
                total_lines=len(lines),
                new_wines=result.new_wines_count,
                duplicates_found=result.duplicates_found,
                error_count=result.error_count,
                skipped_lines=result.skipped_count,
                processing_time_ms=_elapsed_ms(started),
                error_message=str(e),
            )
            self.session.commit()
            raise

        logger.info(f"Upload {upload.id}: {result.message}")

        if self.scheduler is not None and result.new_wine_ids:
            kickoff = result.new_wine_ids[: self.config.auto_enrich_count]
            if kickoff:
                result.enrichment_task_id = self.scheduler.schedule(wine_ids=kickoff)

        return result

    def _store(
        self,
        candidate: WineCandidate,
        restaurant_id: str | None,
        uploaded_by: str,
    ) -> tuple[WineRecord, bool]:
        """
        Find or create the catalog wine for a candidate and link it.

        Returns:
            Tuple of (record, created)
        """
        match = self.matcher.match(candidate)
        if match.is_duplicate:
            record, created = match.record, False
        else:
            new_record = WineRecord.from_candidate(candidate, restaurant_id)
            try:
                record, created = self.wines.create(new_record), True
            except DuplicateKeyError as e:
                logger.warning(f"{e}; linking the existing record")
                record = self.wines.find_by_identity(
                    restaurant_id, new_record.wine_name, new_record.producer, new_record.vintage
                )
                if record is None:
                    raise PersistenceError(
                        f"Wine {new_record.wine_name!r} reported as duplicate but not found"
                    ) from e
                created = False

        if restaurant_id is not None:
            self.links.link(
                restaurant_id,
                record.id,
                pricing=AssociationPricing(
                    price=candidate.price,
                    by_the_glass=candidate.by_the_glass,
                    active=True,
                ),
                added_by=uploaded_by,
            )
        return record, created


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)
