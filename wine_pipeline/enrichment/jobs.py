"""
Background Jobs Module
======================

Defines arq tasks for Redis-backed deployments, where ingestion and
enrichment run in a separate worker process instead of the web app.
"""

from __future__ import annotations

import logging
import os
from typing import Any

from arq import create_pool
from arq.connections import RedisSettings
from arq.jobs import Job

from wine_pipeline.db.engine import get_session
from wine_pipeline.enrichment.engine import get_enrichment_engine
from wine_pipeline.ingestion.extractor import TextExtractor
from wine_pipeline.ingestion.matcher import SimilarityMatcher
from wine_pipeline.ingestion.pipeline import IngestionPipeline
from wine_pipeline.ingestion.settings import get_default_settings
from wine_pipeline.services.ai.client import create_ai_client_from_env

logger = logging.getLogger(__name__)


def get_redis_settings() -> RedisSettings:
    """Get Redis connection settings from environment."""
    return RedisSettings(
        host=os.environ.get("REDIS_HOST", "localhost"),
        port=int(os.environ.get("REDIS_PORT", "6379")),
        database=int(os.environ.get("REDIS_DB", "0")),
    )


async def ingest_wine_list(
    ctx: dict[str, Any],
    text: str,
    uploaded_by: str,
    file_name: str | None = None,
    restaurant_id: str | None = None,
) -> dict[str, Any]:
    """
    Ingest a wine list and enqueue enrichment for the first new wines.

    Args:
        ctx: arq context (contains Redis connection)
        text: Raw wine list text
        uploaded_by: Id of the uploading user
        file_name: Original file name
        restaurant_id: Restaurant to link the wines to

    Returns:
        IngestionResult as dictionary
    """
    settings = get_default_settings()
    with get_session() as session:
        pipeline = IngestionPipeline(
            session,
            extractor=TextExtractor(create_ai_client_from_env(), settings.extraction),
            matcher=SimilarityMatcher.from_config(session, settings.matching),
            config=settings.ingestion,
        )
        result = await pipeline.ingest(
            text, uploaded_by, file_name=file_name, restaurant_id=restaurant_id
        )

    kickoff = result.new_wine_ids[: settings.ingestion.auto_enrich_count]
    redis = ctx.get("redis")
    if kickoff and redis is not None:
        job = await redis.enqueue_job("enrich_wines", kickoff)
        result.enrichment_task_id = job.job_id if job else None

    return result.to_dict()


async def enrich_wines(ctx: dict[str, Any], wine_ids: list[str]) -> dict[str, Any]:
    """
    Enrich specific wines.

    Args:
        ctx: arq context
        wine_ids: Wines to enrich

    Returns:
        EnrichmentBatchResult as dictionary
    """
    result = await get_enrichment_engine().enrich_batch(wine_ids=wine_ids)
    return result.to_dict()


async def enrich_pending(ctx: dict[str, Any], limit: int | None = None) -> dict[str, Any]:
    """
    Enrich the oldest pending wines.

    Args:
        ctx: arq context
        limit: Maximum wines to process (capped by the batch ceiling)

    Returns:
        EnrichmentBatchResult as dictionary
    """
    result = await get_enrichment_engine().enrich_batch(limit=limit)
    return result.to_dict()


async def enqueue_ingestion(
    text: str,
    uploaded_by: str,
    file_name: str | None = None,
    restaurant_id: str | None = None,
) -> str:
    """
    Enqueue an ingestion job for async processing.

    Returns:
        Job ID
    """
    redis = await create_pool(get_redis_settings())
    try:
        job = await redis.enqueue_job(
            "ingest_wine_list", text, uploaded_by, file_name, restaurant_id
        )
    finally:
        await redis.close()
    return job.job_id


async def enqueue_enrichment(
    wine_ids: list[str] | None = None,
    limit: int | None = None,
) -> str:
    """
    Enqueue enrichment of specific wines, or of pending wines.

    Returns:
        Job ID
    """
    redis = await create_pool(get_redis_settings())
    try:
        if wine_ids:
            job = await redis.enqueue_job("enrich_wines", wine_ids)
        else:
            job = await redis.enqueue_job("enrich_pending", limit)
    finally:
        await redis.close()
    return job.job_id


async def get_job_status(job_id: str) -> dict[str, Any]:
    """
    Get the status of a queued job.

    Args:
        job_id: Job ID to look up

    Returns:
        Job info dict
    """
    redis = await create_pool(get_redis_settings())
    try:
        job = Job(job_id, redis)
        status = await job.status()
        info = await job.result_info()
    finally:
        await redis.close()

    return {
        "job_id": job_id,
        "status": status.value,
        "result": info.result if info else None,
        "success": info.success if info else None,
    }


class WorkerSettings:
    """arq worker settings."""

    functions = [ingest_wine_list, enrich_wines, enrich_pending]
    redis_settings = get_redis_settings()
    max_jobs = 1  # wines are enriched one at a time
    job_timeout = 3600  # 1 hour
    keep_result = 86400  # 24 hours
