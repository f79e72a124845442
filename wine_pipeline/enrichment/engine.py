"""
Enrichment Engine
=================

Fills a wine's tasting profile through a staged source chain:

1. Verification - external rating/review lookup by producer, name, vintage
2. Knowledge - deterministic grape and region archetypes
3. Research - language model profile, accepted only when certified
4. Educational - short language model note, the last resort

A wine is claimed (moved to processing) before the slow work starts.
Any failure is caught per wine and recorded as status failed so the
daemon can retry it later.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Generator, Iterable
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any
from uuid import UUID

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session, sessionmaker

from wine_pipeline.core.certification import certify
from wine_pipeline.core.enums import EnrichmentSource, EnrichmentStatus
from wine_pipeline.core.errors import NotFoundError, UpstreamServiceError
from wine_pipeline.core.schema import EnrichmentProfile, WineRecord
from wine_pipeline.db.engine import get_session_factory
from wine_pipeline.db.repositories import WineRepository
from wine_pipeline.enrichment.knowledge import build_knowledge_profile, match_archetype
from wine_pipeline.enrichment.verification import (
    NullVerificationClient,
    VerificationClient,
    VerificationResult,
    create_verification_client,
)
from wine_pipeline.ingestion.settings import EnrichmentConfig, get_default_settings
from wine_pipeline.services.ai.client import AIClient, create_ai_client_from_env
from wine_pipeline.services.ai.prompts import (
    RESEARCH_SYSTEM_PROMPT,
    build_educational_prompt,
    build_research_prompt,
)

logger = logging.getLogger(__name__)

CLAIMABLE = (EnrichmentStatus.PENDING, EnrichmentStatus.FAILED)


@dataclass
class ChainResult:
    """Profile produced by the source chain for one wine."""

    profile: EnrichmentProfile
    source: str
    verified: bool


@dataclass
class WineEnrichmentOutcome:
    """Result of enriching one wine."""

    wine_id: str
    success: bool
    source: str | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "wine_id": self.wine_id,
            "success": self.success,
            "source": self.source,
            "error": self.error,
        }


@dataclass
class EnrichmentBatchResult:
    """Summary of one enrichment batch."""

    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    outcomes: list[WineEnrichmentOutcome] = field(default_factory=list)

    def add(self, outcome: WineEnrichmentOutcome) -> None:
        self.outcomes.append(outcome)
        self.processed += 1
        if outcome.success:
            self.succeeded += 1
        else:
            self.failed += 1

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "processed": self.processed,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "skipped": self.skipped,
            "outcomes": [o.to_dict() for o in self.outcomes],
        }


class EnrichmentEngine:
    """
    Runs the enrichment chain for catalog wines.

    Each database step uses its own short-lived session so no transaction
    stays open across slow upstream calls.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session] | None = None,
        ai_client: AIClient | None = None,
        verification_client: VerificationClient | None = None,
        config: EnrichmentConfig | None = None,
    ) -> None:
        """
        Initialize the engine.

        Args:
            session_factory: Session factory (the global one when omitted)
            ai_client: Language model client for research and educational stages
            verification_client: External verification service
            config: Enrichment settings
        """
        self.session_factory = session_factory or get_session_factory()
        self.ai_client = ai_client
        self.verification_client = verification_client or NullVerificationClient()
        self.config = config or EnrichmentConfig()

    @contextmanager
    def session_scope(self) -> Generator[Session, None, None]:
        session = self.session_factory()
        try:
            yield session
        finally:
            session.close()

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def enrich_wine(self, wine_id: UUID | str, force: bool = False) -> WineRecord:
        """
        Enrich one wine now and return the stored record.

        A wine already being processed by another caller, or already
        completed (unless force is set), is returned unchanged.

        Args:
            wine_id: The wine to enrich
            force: Re-enrich a completed wine

        Returns:
            The WineRecord after enrichment

        Raises:
            NotFoundError: If the wine does not exist
        """
        record = self._get(wine_id)
        if record is None:
            raise NotFoundError(f"Wine {wine_id} not found")

        statuses = CLAIMABLE + ((EnrichmentStatus.COMPLETED,) if force else ())
        if self.claim(wine_id, statuses):
            await self.enrich_claimed(wine_id)
        else:
            logger.info(f"Wine {wine_id} is {record.enrichment_status.value}; not claimed")

        return self._get(wine_id)

    async def enrich_batch(
        self,
        limit: int | None = None,
        wine_ids: Iterable[UUID | str] | None = None,
    ) -> EnrichmentBatchResult:
        """
        Enrich a bounded batch of wines sequentially.

        Args:
            limit: Maximum wines to process (capped by the batch ceiling)
            wine_ids: Specific wines to process; pending wines when omitted

        Returns:
            EnrichmentBatchResult with per-wine outcomes
        """
        ceiling = self.config.batch_ceiling
        limit = min(limit, ceiling) if limit else ceiling

        if wine_ids is None:
            with self.session_scope() as session:
                ids = [str(r.id) for r in WineRepository(session).list_pending(limit)]
        else:
            ids = [str(wine_id) for wine_id in wine_ids][:limit]

        logger.info(f"Enrichment batch starting for {len(ids)} wine(s)")
        result = EnrichmentBatchResult()
        for index, wine_id in enumerate(ids):
            if index:
                await self.pause()
            if not self.claim(wine_id):
                result.skipped += 1
                continue
            result.add(await self.enrich_claimed(wine_id))

        logger.info(
            f"Enrichment batch finished: {result.succeeded} completed, "
            f"{result.failed} failed, {result.skipped} skipped"
        )
        return result

    def claim(
        self,
        wine_id: UUID | str,
        statuses: tuple[EnrichmentStatus, ...] = CLAIMABLE,
    ) -> bool:
        """Atomically move a wine into processing; True if this caller won."""
        with self.session_scope() as session:
            claimed = WineRepository(session).try_claim(wine_id, statuses)
            session.commit()
        return claimed

    async def enrich_claimed(self, wine_id: UUID | str) -> WineEnrichmentOutcome:
        """
        Run the source chain for a wine this caller has claimed.

        Never raises for upstream or chain failures; the wine is marked
        failed instead.
        """
        wine_id = str(wine_id)
        try:
            record = self._get(wine_id)
            if record is None:
                raise NotFoundError(f"Wine {wine_id} not found")

            chain = await self.run_chain(record)
            with self.session_scope() as session:
                WineRepository(session).update_enrichment(
                    wine_id,
                    chain.profile,
                    verified=chain.verified,
                    verified_source=chain.source,
                )
                session.commit()
        except Exception as e:
            logger.exception(f"Enrichment failed for wine {wine_id}")
            with self.session_scope() as session:
                WineRepository(session).mark_failed(wine_id, str(e))
                session.commit()
            return WineEnrichmentOutcome(wine_id=wine_id, success=False, error=str(e))

        logger.info(f"Enriched wine {wine_id} from {chain.source}")
        return WineEnrichmentOutcome(wine_id=wine_id, success=True, source=chain.source)

    async def pause(self) -> None:
        """Wait the configured inter-call delay."""
        if self.config.inter_call_delay_ms > 0:
            await asyncio.sleep(self.config.inter_call_delay_ms / 1000)

    # ------------------------------------------------------------------
    # Source chain
    # ------------------------------------------------------------------

    async def run_chain(self, record: WineRecord) -> ChainResult:
        """
        Produce a profile for a wine, stage by stage.

        Raises:
            UpstreamServiceError: If every stage is exhausted
        """
        thresholds = self.config.certification
        profile = EnrichmentProfile()
        verified = False
        verified_source = None

        # Stage 1: verification lookup
        verification = await self._verify(record)
        if verification is not None:
            verified = True
            verified_source = verification.source or self.verification_client.source_name
            profile = EnrichmentProfile(
                tasting_notes=verification.notes,
                wine_rating=verification.rating,
                wine_type=verification.wine_type,
                wine_style=verification.wine_style,
                region=verification.region,
            )
            if certify(profile, thresholds).passed:
                return ChainResult(profile=profile, source=verified_source, verified=True)

        # Stage 2: knowledge archetypes
        archetype = match_archetype(record)
        if archetype is not None:
            logger.info(f"Wine {record.id} matches the {archetype.name} archetype")
            knowledge = build_knowledge_profile(record, archetype)
            return ChainResult(
                profile=profile.merge(knowledge),
                source=verified_source or EnrichmentSource.KNOWLEDGE_BASE.value,
                verified=verified,
            )

        if self.ai_client is None:
            raise UpstreamServiceError("language model", "no AI client configured")

        # Stage 3: research pass; a verification match stays the recorded source
        research = await self._research(record)
        if research is not None:
            return ChainResult(
                profile=research.merge(profile),
                source=verified_source or EnrichmentSource.RESEARCH.value,
                verified=True,
            )

        # Stage 4: educational fallback
        educational = await self._educational(record)
        return ChainResult(
            profile=educational.merge(profile),
            source=EnrichmentSource.EDUCATIONAL.value,
            verified=False,
        )

    async def _verify(self, record: WineRecord) -> VerificationResult | None:
        """Return a confident verification result, or None."""
        try:
            result = await self.verification_client.lookup(
                record.producer, record.wine_name, record.vintage
            )
        except UpstreamServiceError as e:
            logger.warning(f"Verification lookup failed for wine {record.id}: {e}")
            return None

        if not result.found:
            return None
        if result.confidence < self.config.verification_confidence:
            logger.debug(
                f"Verification match for wine {record.id} below confidence "
                f"({result.confidence:.2f})"
            )
            return None
        return result

    async def _research(self, record: WineRecord) -> EnrichmentProfile | None:
        """Ask for a full profile; return the first certified answer."""
        thresholds = self.config.certification
        prompt = build_research_prompt(
            record,
            tasting_min=thresholds.tasting_notes,
            core_min=max(
                thresholds.flavor_notes, thresholds.aroma_notes, thresholds.body_description
            ),
            special_min=thresholds.what_makes_special,
        )

        for attempt in range(1, self.config.research_attempts + 1):
            result = await self.ai_client.complete_json(
                prompt, system_prompt=RESEARCH_SYSTEM_PROMPT, max_tokens=4000
            )
            if not result.success:
                logger.warning(
                    f"Research attempt {attempt} for wine {record.id} failed: "
                    f"{result.error_message}"
                )
                continue

            try:
                profile = EnrichmentProfile.model_validate(result.parsed_json)
            except PydanticValidationError as e:
                logger.warning(f"Research attempt {attempt} returned an invalid profile: {e}")
                continue

            certification = certify(profile, thresholds)
            if certification.passed:
                logger.debug(f"Research profile certified via {certification.path} path")
                return profile
            logger.warning(
                f"Research attempt {attempt} for wine {record.id} not certified: "
                f"{', '.join(certification.shortfalls)}"
            )

        return None

    async def _educational(self, record: WineRecord) -> EnrichmentProfile:
        """
        Ask for the short educational note.

        Raises:
            UpstreamServiceError: If the model call fails or returns nothing usable
        """
        result = await self.ai_client.complete_json(
            build_educational_prompt(record), max_tokens=1000
        )
        if not result.success:
            raise UpstreamServiceError("language model", result.error_message or "no response")

        try:
            profile = EnrichmentProfile.model_validate(result.parsed_json)
        except PydanticValidationError as e:
            raise UpstreamServiceError("language model", f"invalid educational note: {e}") from e

        if profile.is_empty():
            raise UpstreamServiceError("language model", "educational note is empty")
        return profile

    def _get(self, wine_id: UUID | str) -> WineRecord | None:
        with self.session_scope() as session:
            return WineRepository(session).get_by_id(wine_id)


# Global engine instance
_engine: EnrichmentEngine | None = None


def get_enrichment_engine() -> EnrichmentEngine:
    """
    Get the default enrichment engine.

    Built from the default settings, the AI client configured in the
    environment and the configured verification service.
    """
    global _engine
    if _engine is None:
        settings = get_default_settings()
        _engine = EnrichmentEngine(
            ai_client=create_ai_client_from_env(),
            verification_client=create_verification_client(settings.verification),
            config=settings.enrichment,
        )
    return _engine


def reset_enrichment_engine() -> None:
    """Reset the default engine (useful for testing)."""
    global _engine
    _engine = None
