"""
Wine Enrichment
===============

Fills tasting profiles for catalog wines through a staged source chain
(verification, knowledge archetypes, language model research, educational
fallback) and runs it in the background.
"""

from wine_pipeline.enrichment.daemon import (
    EnrichmentDaemon,
    EnrichmentScheduler,
    EnrichmentTask,
    TaskStatus,
    get_daemon,
    get_scheduler,
    reset_daemon,
)
from wine_pipeline.enrichment.engine import (
    EnrichmentBatchResult,
    EnrichmentEngine,
    WineEnrichmentOutcome,
    get_enrichment_engine,
    reset_enrichment_engine,
)
from wine_pipeline.enrichment.knowledge import match_archetype
from wine_pipeline.enrichment.verification import (
    HttpVerificationClient,
    NullVerificationClient,
    VerificationClient,
    VerificationResult,
)

__all__ = [
    # Engine
    "EnrichmentEngine",
    "EnrichmentBatchResult",
    "WineEnrichmentOutcome",
    "get_enrichment_engine",
    "reset_enrichment_engine",
    # Background
    "EnrichmentDaemon",
    "EnrichmentScheduler",
    "EnrichmentTask",
    "TaskStatus",
    "get_daemon",
    "get_scheduler",
    "reset_daemon",
    # Sources
    "match_archetype",
    "VerificationClient",
    "VerificationResult",
    "HttpVerificationClient",
    "NullVerificationClient",
]
