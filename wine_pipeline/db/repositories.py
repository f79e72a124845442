"""Repository classes for database operations."""

import logging
from datetime import UTC, datetime, timedelta
from uuid import UUID

from sqlalchemy import ScalarResult, Select, and_, func, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from wine_pipeline.core.enums import EnrichmentStatus, UploadStatus, WineSort
from wine_pipeline.core.errors import DuplicateKeyError, NotFoundError, PersistenceError
from wine_pipeline.core.schema import (
    ENRICHMENT_FIELDS,
    AssociationPricing,
    EnrichmentProfile,
    RestaurantWineAssociation,
    UploadRecord,
    WinePage,
    WineListQuery,
    WineRecord,
    WineStats,
    build_search_text,
    coerce_wine_type,
)
from wine_pipeline.db.models import RestaurantWineDB, WineDB, WineListUploadDB

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    """Return current UTC datetime."""
    return datetime.now(UTC)


def _search_text_for(db_wine: WineDB) -> str:
    """Recompute search_text from a wine row."""
    return build_search_text(
        db_wine.producer,
        db_wine.wine_name,
        db_wine.vintage,
        db_wine.varietal,
        db_wine.region,
        db_wine.country,
        db_wine.appellation,
        db_wine.wine_type,
    )


# ============================================================================
# Catalog
# ============================================================================


class WineRepository:
    """Repository for catalog wine records."""

    def __init__(self, session: Session):
        self.session = session

    def create(self, record: WineRecord) -> WineRecord:
        """
        Insert a new wine in the pending enrichment state.

        Args:
            record: The WineRecord domain model to insert.

        Returns:
            The stored WineRecord with its computed search_text.

        Raises:
            DuplicateKeyError: If the restaurant already holds a wine with the
                same name, producer and vintage.
            PersistenceError: If the write fails for any other reason.
        """
        if record.restaurant_id is not None:
            existing = self.find_by_identity(
                record.restaurant_id, record.wine_name, record.producer, record.vintage
            )
            if existing is not None:
                raise DuplicateKeyError(
                    record.restaurant_id, record.wine_name, record.producer, record.vintage
                )

        db_wine = WineDB(
            id=str(record.id),
            restaurant_id=record.restaurant_id,
            producer=record.producer,
            wine_name=record.wine_name,
            vintage=record.vintage,
            varietal=record.varietal,
            region=record.region,
            country=record.country,
            appellation=record.appellation,
            wine_type=record.wine_type.value if record.wine_type else None,
            wine_style=record.wine_style,
            enrichment_status=EnrichmentStatus.PENDING.value,
            verified=False,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )
        db_wine.search_text = _search_text_for(db_wine)
        self.session.add(db_wine)

        try:
            self.session.flush()
        except IntegrityError as e:
            self.session.rollback()
            raise DuplicateKeyError(
                record.restaurant_id, record.wine_name, record.producer, record.vintage
            ) from e
        except SQLAlchemyError as e:
            self.session.rollback()
            raise PersistenceError(f"Failed to insert wine '{record.wine_name}': {e}") from e

        return self._to_domain(db_wine)

    def get_by_id(self, wine_id: UUID | str) -> WineRecord | None:
        """
        Get a wine by ID.

        Args:
            wine_id: The wine UUID.

        Returns:
            The WineRecord if found, None otherwise.
        """
        db_wine = self._get_db(wine_id)
        return self._to_domain(db_wine) if db_wine else None

    def find_by_identity(
        self,
        restaurant_id: str | None,
        wine_name: str,
        producer: str = "",
        vintage: str = "",
    ) -> WineRecord | None:
        """
        Find the wine holding a restaurant-scoped identity.

        Args:
            restaurant_id: Restaurant owning the isolated collection.
            wine_name: Wine name.
            producer: Producer (empty string when unknown).
            vintage: Vintage (empty string when unknown).

        Returns:
            The WineRecord if present, None otherwise.
        """
        stmt = select(WineDB).where(
            WineDB.wine_name == wine_name,
            WineDB.producer == (producer or ""),
            WineDB.vintage == (vintage or ""),
        )
        if restaurant_id is None:
            stmt = stmt.where(WineDB.restaurant_id.is_(None))
        else:
            stmt = stmt.where(WineDB.restaurant_id == restaurant_id)
        db_wine = self._scalars(stmt.limit(1)).first()
        return self._to_domain(db_wine) if db_wine else None

    def find_exact(self, wine_name: str, producer: str, vintage: str) -> WineRecord | None:
        """
        Find a catalog wine with the same name, producer and vintage.

        The name must match exactly; producer and vintage are compared
        case-insensitively.

        Returns:
            The oldest matching WineRecord, or None.
        """
        stmt = (
            select(WineDB)
            .where(WineDB.wine_name == wine_name)
            .order_by(WineDB.created_at.asc())
        )
        producer_key = producer.casefold()
        vintage_key = vintage.casefold()
        for db_wine in self._scalars(stmt):
            if (
                db_wine.producer.casefold() == producer_key
                and db_wine.vintage.casefold() == vintage_key
            ):
                return self._to_domain(db_wine)
        return None

    def search_candidates(self, tokens: list[str], limit: int = 50) -> list[WineRecord]:
        """
        List wines whose search_text contains every token.

        The limit applies after all tokens have narrowed the result.

        Args:
            tokens: Search tokens, ANDed together.
            limit: Maximum number of candidates.

        Returns:
            Matching WineRecords, oldest first.
        """
        if not tokens:
            return []
        conditions = [
            WineDB.search_text.contains(token.lower(), autoescape=True) for token in tokens
        ]
        stmt = (
            select(WineDB)
            .where(and_(*conditions))
            .order_by(WineDB.created_at.asc())
            .limit(limit)
        )
        result = self._scalars(stmt).all()
        return [self._to_domain(w) for w in result]

    def list_all(self) -> list[WineRecord]:
        """List every catalog wine, oldest first."""
        stmt = select(WineDB).order_by(WineDB.created_at.asc())
        result = self._scalars(stmt).all()
        return [self._to_domain(w) for w in result]

    def count(self, restaurant_id: str | None = None) -> int:
        """Count catalog wines, optionally those on a restaurant's active list."""
        stmt = select(func.count(WineDB.id))
        if restaurant_id is not None:
            stmt = stmt.where(WineDB.id.in_(self._active_wine_ids(restaurant_id)))
        return self.session.execute(stmt).scalar_one()

    # ------------------------------------------------------------------
    # Enrichment state
    # ------------------------------------------------------------------

    def list_pending(
        self,
        limit: int,
        include_failed: bool = False,
        max_attempts: int = 3,
    ) -> list[WineRecord]:
        """
        List wines waiting for enrichment, oldest first.

        Args:
            limit: Maximum number of records.
            include_failed: Also return failed wines below max_attempts.
            max_attempts: Attempt ceiling for failed wines.

        Returns:
            Pending (and optionally retryable failed) WineRecords.
        """
        stmt = (
            select(WineDB)
            .where(self._pending_clause(include_failed, max_attempts))
            .order_by(WineDB.created_at.asc(), WineDB.id.asc())
            .limit(limit)
        )
        result = self._scalars(stmt).all()
        return [self._to_domain(w) for w in result]

    def count_pending(self, include_failed: bool = False, max_attempts: int = 3) -> int:
        """Count wines that list_pending would eventually return."""
        stmt = select(func.count(WineDB.id)).where(
            self._pending_clause(include_failed, max_attempts)
        )
        return self.session.execute(stmt).scalar_one()

    def try_claim(
        self,
        wine_id: UUID | str,
        from_statuses: tuple[EnrichmentStatus, ...] = (
            EnrichmentStatus.PENDING,
            EnrichmentStatus.FAILED,
        ),
    ) -> bool:
        """
        Atomically move a wine into processing.

        The status check and the update happen in one UPDATE statement, so
        two callers racing for the same wine cannot both claim it.

        Args:
            wine_id: The wine UUID.
            from_statuses: Statuses a claim may start from.

        Returns:
            True if this caller claimed the wine.
        """
        now = _utc_now()
        stmt = (
            update(WineDB)
            .where(
                WineDB.id == str(wine_id),
                WineDB.enrichment_status.in_([s.value for s in from_statuses]),
            )
            .values(
                enrichment_status=EnrichmentStatus.PROCESSING.value,
                enrichment_started_at=now,
                enrichment_attempts=WineDB.enrichment_attempts + 1,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        try:
            result = self.session.execute(stmt)
        except SQLAlchemyError as e:
            self.session.rollback()
            raise PersistenceError(f"Failed to claim wine {wine_id}: {e}") from e
        return result.rowcount == 1

    def reset_stuck(
        self,
        restaurant_id: str | None,
        staleness_threshold: timedelta,
    ) -> int:
        """
        Return abandoned processing wines to pending.

        A wine is abandoned when it is processing and either has no start
        time or started longer ago than the threshold.

        Args:
            restaurant_id: Limit to one restaurant's wines (None for all).
            staleness_threshold: Age after which processing counts as stuck.

        Returns:
            Number of wines reset.
        """
        cutoff = _utc_now() - staleness_threshold
        stmt = update(WineDB).where(
            WineDB.enrichment_status == EnrichmentStatus.PROCESSING.value,
            or_(
                WineDB.enrichment_started_at.is_(None),
                WineDB.enrichment_started_at < cutoff,
            ),
        )
        if restaurant_id is not None:
            stmt = stmt.where(
                or_(
                    WineDB.restaurant_id == restaurant_id,
                    WineDB.id.in_(
                        select(RestaurantWineDB.wine_id).where(
                            RestaurantWineDB.restaurant_id == restaurant_id
                        )
                    ),
                )
            )
        stmt = stmt.values(
            enrichment_status=EnrichmentStatus.PENDING.value,
            enrichment_started_at=None,
            updated_at=_utc_now(),
        ).execution_options(synchronize_session=False)

        try:
            result = self.session.execute(stmt)
        except SQLAlchemyError as e:
            self.session.rollback()
            raise PersistenceError(f"Failed to reset stuck wines: {e}") from e

        if result.rowcount:
            logger.info(f"Reset {result.rowcount} stuck wine(s) to pending")
        return result.rowcount

    def update_enrichment(
        self,
        wine_id: UUID | str,
        profile: EnrichmentProfile,
        verified: bool | None = None,
        verified_source: str | None = None,
    ) -> WineRecord:
        """
        Merge enrichment fields and mark the wine completed.

        Enrichment text fields overwrite stored values; descriptive fields
        (type, style, region) only fill gaps. Rating overwrites.

        Raises:
            NotFoundError: If the wine does not exist.
            PersistenceError: If the write fails.
        """
        db_wine = self._get_db(wine_id)
        if db_wine is None:
            raise NotFoundError(f"Wine {wine_id} not found")

        for name in ENRICHMENT_FIELDS:
            value = getattr(profile, name)
            if value is not None:
                setattr(db_wine, name, value)
        if profile.wine_rating is not None:
            db_wine.wine_rating = profile.wine_rating
        if profile.wine_type is not None and not db_wine.wine_type:
            db_wine.wine_type = profile.wine_type.value
        if profile.wine_style and not db_wine.wine_style:
            db_wine.wine_style = profile.wine_style
        if profile.region and not db_wine.region:
            db_wine.region = profile.region

        if verified is not None:
            db_wine.verified = verified
        if verified_source is not None:
            db_wine.verified_source = verified_source

        now = _utc_now()
        db_wine.enrichment_status = EnrichmentStatus.COMPLETED.value
        db_wine.enrichment_completed_at = now
        db_wine.last_error = None
        db_wine.updated_at = now
        db_wine.search_text = _search_text_for(db_wine)

        try:
            self.session.flush()
        except SQLAlchemyError as e:
            self.session.rollback()
            raise PersistenceError(f"Failed to store enrichment for wine {wine_id}: {e}") from e
        return self._to_domain(db_wine)

    def mark_failed(self, wine_id: UUID | str, error_message: str) -> WineRecord | None:
        """
        Mark a wine as failed so the scheduler can retry it later.

        Returns:
            The updated WineRecord, or None if not found.
        """
        db_wine = self._get_db(wine_id)
        if db_wine is None:
            return None

        db_wine.enrichment_status = EnrichmentStatus.FAILED.value
        db_wine.last_error = error_message[:2000]
        db_wine.updated_at = _utc_now()
        try:
            self.session.flush()
        except SQLAlchemyError as e:
            self.session.rollback()
            raise PersistenceError(f"Failed to mark wine {wine_id} as failed: {e}") from e
        return self._to_domain(db_wine)

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def get_stats(self, restaurant_id: str | None = None) -> WineStats:
        """
        Compute enrichment statistics.

        Args:
            restaurant_id: Limit to a restaurant's active list (None for all).

        Returns:
            WineStats with totals per status and the completion percentage.
        """
        scope = []
        if restaurant_id is not None:
            scope.append(WineDB.id.in_(self._active_wine_ids(restaurant_id)))

        stmt = (
            select(WineDB.enrichment_status, func.count(WineDB.id))
            .where(*scope)
            .group_by(WineDB.enrichment_status)
        )
        counts = {status: count for status, count in self.session.execute(stmt).all()}

        premium_stmt = select(func.count(WineDB.id)).where(
            *scope,
            WineDB.enrichment_status == EnrichmentStatus.COMPLETED.value,
            WineDB.what_makes_special.is_not(None),
        )
        premium = self.session.execute(premium_stmt).scalar_one()

        total = sum(counts.values())
        enriched = counts.get(EnrichmentStatus.COMPLETED.value, 0)
        return WineStats(
            total=total,
            enriched=enriched,
            premium=premium,
            pending=counts.get(EnrichmentStatus.PENDING.value, 0),
            processing=counts.get(EnrichmentStatus.PROCESSING.value, 0),
            failed=counts.get(EnrichmentStatus.FAILED.value, 0),
            completion_percentage=round(enriched / total * 100) if total else 0,
        )

    def list_wines(self, restaurant_id: str | None, query: WineListQuery) -> WinePage:
        """
        List wines with search, status filter, sorting and pagination.

        Search splits on whitespace; every word must appear in search_text.

        Args:
            restaurant_id: Limit to a restaurant's active list (None for all).
            query: Paging and filter options.

        Returns:
            A WinePage with the requested slice and the total match count.
        """
        conditions = []
        if restaurant_id is not None:
            conditions.append(WineDB.id.in_(self._active_wine_ids(restaurant_id)))
        if query.search:
            for word in query.search.lower().split():
                conditions.append(WineDB.search_text.contains(word, autoescape=True))
        if query.status_filter is not None:
            conditions.append(WineDB.enrichment_status == query.status_filter.value)

        total = self.session.execute(
            select(func.count(WineDB.id)).where(*conditions)
        ).scalar_one()

        stmt = select(WineDB).where(*conditions)
        stmt = self._apply_sort(stmt, query.sort)
        stmt = stmt.offset((query.page - 1) * query.page_size).limit(query.page_size)
        result = self._scalars(stmt).all()

        return WinePage(
            items=[self._to_domain(w) for w in result],
            total=total,
            page=query.page,
            page_size=query.page_size,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _scalars(self, stmt: Select) -> ScalarResult[WineDB]:
        # Claims and resets are bulk UPDATEs that bypass the identity map
        return self.session.execute(
            stmt.execution_options(populate_existing=True)
        ).scalars()

    def _get_db(self, wine_id: UUID | str) -> WineDB | None:
        stmt = select(WineDB).where(WineDB.id == str(wine_id))
        return self._scalars(stmt).first()

    @staticmethod
    def _pending_clause(include_failed: bool, max_attempts: int):
        clause = WineDB.enrichment_status == EnrichmentStatus.PENDING.value
        if include_failed:
            clause = or_(
                clause,
                and_(
                    WineDB.enrichment_status == EnrichmentStatus.FAILED.value,
                    WineDB.enrichment_attempts < max_attempts,
                ),
            )
        return clause

    @staticmethod
    def _active_wine_ids(restaurant_id: str) -> Select:
        return select(RestaurantWineDB.wine_id).where(
            RestaurantWineDB.restaurant_id == restaurant_id,
            RestaurantWineDB.active == True,  # noqa: E712
        )

    @staticmethod
    def _apply_sort(stmt: Select, sort: WineSort) -> Select:
        if sort == WineSort.OLDEST:
            return stmt.order_by(WineDB.created_at.asc())
        if sort == WineSort.NAME:
            return stmt.order_by(WineDB.wine_name.asc(), WineDB.vintage.desc())
        if sort == WineSort.PRODUCER:
            return stmt.order_by(WineDB.producer.asc(), WineDB.wine_name.asc())
        if sort == WineSort.VINTAGE:
            return stmt.order_by(WineDB.vintage.desc(), WineDB.wine_name.asc())
        return stmt.order_by(WineDB.created_at.desc())

    def _to_domain(self, db_wine: WineDB) -> WineRecord:
        """Convert DB model to domain model."""
        return WineRecord(
            id=UUID(db_wine.id),
            restaurant_id=db_wine.restaurant_id,
            producer=db_wine.producer or "",
            wine_name=db_wine.wine_name,
            vintage=db_wine.vintage or "",
            varietal=db_wine.varietal,
            region=db_wine.region,
            country=db_wine.country,
            appellation=db_wine.appellation,
            wine_type=coerce_wine_type(db_wine.wine_type),
            wine_style=db_wine.wine_style,
            tasting_notes=db_wine.tasting_notes,
            flavor_notes=db_wine.flavor_notes,
            aroma_notes=db_wine.aroma_notes,
            body_description=db_wine.body_description,
            texture=db_wine.texture,
            balance=db_wine.balance,
            tannin_level=db_wine.tannin_level,
            acidity=db_wine.acidity,
            finish_length=db_wine.finish_length,
            food_pairing=db_wine.food_pairing,
            serving_temp=db_wine.serving_temp,
            aging_potential=db_wine.aging_potential,
            blend_description=db_wine.blend_description,
            what_makes_special=db_wine.what_makes_special,
            wine_rating=db_wine.wine_rating,
            enrichment_status=EnrichmentStatus(db_wine.enrichment_status),
            verified=bool(db_wine.verified),
            verified_source=db_wine.verified_source,
            enrichment_started_at=db_wine.enrichment_started_at,
            enrichment_completed_at=db_wine.enrichment_completed_at,
            enrichment_attempts=db_wine.enrichment_attempts or 0,
            last_error=db_wine.last_error,
            search_text=db_wine.search_text or "",
            created_at=db_wine.created_at,
            updated_at=db_wine.updated_at,
        )


# ============================================================================
# Restaurant associations
# ============================================================================


class RestaurantWineRepository:
    """Repository for restaurant wine associations."""

    def __init__(self, session: Session):
        self.session = session

    def link(
        self,
        restaurant_id: str,
        wine_id: UUID | str,
        pricing: AssociationPricing | None = None,
        added_by: str | None = None,
    ) -> tuple[RestaurantWineAssociation, bool]:
        """
        Link a wine to a restaurant, updating the link if it exists.

        Args:
            restaurant_id: The restaurant.
            wine_id: The catalog wine.
            pricing: Optional values to set; None fields leave stored values.
            added_by: User creating the link (new links only).

        Returns:
            Tuple of (association, created).

        Raises:
            PersistenceError: If the write fails.
        """
        db_link = self._get_db(restaurant_id, wine_id)
        created = db_link is None
        if created:
            db_link = RestaurantWineDB(
                restaurant_id=restaurant_id,
                wine_id=str(wine_id),
                added_by=added_by,
            )
            self.session.add(db_link)

        if pricing is not None:
            for name, value in pricing.model_dump(exclude_none=True).items():
                setattr(db_link, name, value)
        if not created:
            db_link.updated_at = _utc_now()

        try:
            self.session.flush()
        except SQLAlchemyError as e:
            self.session.rollback()
            raise PersistenceError(
                f"Failed to link wine {wine_id} to restaurant {restaurant_id}: {e}"
            ) from e
        return self._to_domain(db_link), created

    def get(self, restaurant_id: str, wine_id: UUID | str) -> RestaurantWineAssociation | None:
        """Get the association between a restaurant and a wine."""
        db_link = self._get_db(restaurant_id, wine_id)
        return self._to_domain(db_link) if db_link else None

    def list_for_restaurant(
        self,
        restaurant_id: str,
        active_only: bool = True,
    ) -> list[RestaurantWineAssociation]:
        """List a restaurant's wine associations, newest first."""
        stmt = (
            select(RestaurantWineDB)
            .where(RestaurantWineDB.restaurant_id == restaurant_id)
            .order_by(RestaurantWineDB.created_at.desc())
        )
        if active_only:
            stmt = stmt.where(RestaurantWineDB.active == True)  # noqa: E712
        result = self.session.execute(stmt).scalars().all()
        return [self._to_domain(link) for link in result]

    def deactivate(self, restaurant_id: str, wine_id: UUID | str) -> bool:
        """
        Remove a wine from a restaurant's list without deleting anything.

        Returns:
            True if the association existed.
        """
        db_link = self._get_db(restaurant_id, wine_id)
        if db_link is None:
            return False
        db_link.active = False
        db_link.updated_at = _utc_now()
        self.session.flush()
        return True

    def _get_db(self, restaurant_id: str, wine_id: UUID | str) -> RestaurantWineDB | None:
        stmt = select(RestaurantWineDB).where(
            RestaurantWineDB.restaurant_id == restaurant_id,
            RestaurantWineDB.wine_id == str(wine_id),
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def _to_domain(self, db_link: RestaurantWineDB) -> RestaurantWineAssociation:
        """Convert DB model to domain model."""
        return RestaurantWineAssociation(
            id=UUID(db_link.id),
            restaurant_id=db_link.restaurant_id,
            wine_id=UUID(db_link.wine_id),
            price=db_link.price,
            by_the_glass=bool(db_link.by_the_glass),
            featured=bool(db_link.featured),
            active=bool(db_link.active),
            inventory_count=db_link.inventory_count or 0,
            custom_description=db_link.custom_description,
            added_by=db_link.added_by,
            created_at=db_link.created_at,
            updated_at=db_link.updated_at,
        )


# ============================================================================
# Uploads
# ============================================================================


class UploadRepository:
    """Repository for wine list upload audit records."""

    def __init__(self, session: Session):
        self.session = session

    def create(self, upload: UploadRecord) -> UploadRecord:
        """
        Create an upload record in the processing state.

        Args:
            upload: The UploadRecord domain model to create.

        Returns:
            The created UploadRecord.
        """
        db_upload = WineListUploadDB(
            id=str(upload.id),
            restaurant_id=upload.restaurant_id,
            uploaded_by=upload.uploaded_by,
            original_filename=upload.original_filename,
            file_size=upload.file_size,
            status=UploadStatus.PROCESSING.value,
            total_lines=upload.total_lines,
            created_at=upload.created_at,
        )
        self.session.add(db_upload)
        try:
            self.session.flush()
        except SQLAlchemyError as e:
            self.session.rollback()
            raise PersistenceError(f"Failed to create upload record: {e}") from e
        return self._to_domain(db_upload)

    def get_by_id(self, upload_id: UUID | str) -> UploadRecord | None:
        """Get an upload record by ID."""
        db_upload = self._get_db(upload_id)
        return self._to_domain(db_upload) if db_upload else None

    def finalize(
        self,
        upload_id: UUID | str,
        status: UploadStatus,
        total_lines: int = 0,
        new_wines: int = 0,
        duplicates_found: int = 0,
        error_count: int = 0,
        skipped_lines: int = 0,
        processing_time_ms: int | None = None,
        error_message: str | None = None,
    ) -> UploadRecord:
        """
        Move an upload record to a terminal status.

        Raises:
            NotFoundError: If the upload does not exist.
            ValueError: If the upload was already finalized.
            PersistenceError: If the write fails.
        """
        db_upload = self._get_db(upload_id)
        if db_upload is None:
            raise NotFoundError(f"Upload {upload_id} not found")
        if db_upload.status != UploadStatus.PROCESSING.value:
            raise ValueError(f"Upload {upload_id} is already {db_upload.status}")

        db_upload.status = status.value
        db_upload.total_lines = total_lines
        db_upload.new_wines = new_wines
        db_upload.duplicates_found = duplicates_found
        db_upload.error_count = error_count
        db_upload.skipped_lines = skipped_lines
        db_upload.processing_time_ms = processing_time_ms
        db_upload.error_message = error_message
        db_upload.completed_at = _utc_now()

        try:
            self.session.flush()
        except SQLAlchemyError as e:
            self.session.rollback()
            raise PersistenceError(f"Failed to finalize upload {upload_id}: {e}") from e
        return self._to_domain(db_upload)

    def list_recent(self, limit: int = 20, restaurant_id: str | None = None) -> list[UploadRecord]:
        """List the most recent uploads, optionally for one restaurant."""
        stmt = select(WineListUploadDB).order_by(WineListUploadDB.created_at.desc()).limit(limit)
        if restaurant_id is not None:
            stmt = stmt.where(WineListUploadDB.restaurant_id == restaurant_id)
        result = self.session.execute(stmt).scalars().all()
        return [self._to_domain(u) for u in result]

    def _get_db(self, upload_id: UUID | str) -> WineListUploadDB | None:
        stmt = select(WineListUploadDB).where(WineListUploadDB.id == str(upload_id))
        return self.session.execute(stmt).scalar_one_or_none()

    def _to_domain(self, db_upload: WineListUploadDB) -> UploadRecord:
        """Convert DB model to domain model."""
        return UploadRecord(
            id=UUID(db_upload.id),
            restaurant_id=db_upload.restaurant_id,
            uploaded_by=db_upload.uploaded_by,
            original_filename=db_upload.original_filename,
            file_size=db_upload.file_size,
            status=UploadStatus(db_upload.status),
            total_lines=db_upload.total_lines or 0,
            new_wines=db_upload.new_wines or 0,
            duplicates_found=db_upload.duplicates_found or 0,
            error_count=db_upload.error_count or 0,
            skipped_lines=db_upload.skipped_lines or 0,
            processing_time_ms=db_upload.processing_time_ms,
            error_message=db_upload.error_message,
            created_at=db_upload.created_at,
            completed_at=db_upload.completed_at,
        )
