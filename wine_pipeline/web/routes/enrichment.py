"""Enrichment routes: enrich-now, background batches and the daemon."""

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from wine_pipeline.core.errors import WinePipelineError
from wine_pipeline.db.engine import get_session
from wine_pipeline.services.wine_list_service import get_wine_list_service
from wine_pipeline.web.dependencies import http_error

router = APIRouter(tags=["enrichment"])


class BatchEnrichRequest(BaseModel):
    """Body of a batch enrichment request; pending wines when empty."""

    wine_ids: list[str] | None = None
    limit: int | None = Field(default=None, ge=1)


@router.post("/wines/enrich/batch")
async def enrich_batch(body: BatchEnrichRequest | None = None) -> JSONResponse:
    """
    Start a background enrichment batch.

    Returns immediately with the task id; poll /enrichment/tasks/{task_id}
    for the outcome.
    """
    body = body or BatchEnrichRequest()
    with get_session() as session:
        service = get_wine_list_service(session)
        task_id = service.schedule_enrichment(wine_ids=body.wine_ids, limit=body.limit)

    return JSONResponse({"task_id": task_id, "status": "running"}, status_code=202)


@router.post("/wines/{wine_id}/enrich")
async def enrich_wine(wine_id: str, force: bool = False) -> JSONResponse:
    """Enrich one wine now and return the stored record."""
    with get_session() as session:
        service = get_wine_list_service(session)
        try:
            wine = await service.enrich_one(wine_id, force=force)
        except WinePipelineError as e:
            raise http_error(e) from e

    return JSONResponse(wine.model_dump(mode="json"))


@router.get("/enrichment/tasks/{task_id}")
async def get_task(task_id: str) -> JSONResponse:
    """Status and result of a background enrichment task."""
    with get_session() as session:
        service = get_wine_list_service(session)
        try:
            task = service.get_task(task_id)
        except WinePipelineError as e:
            raise http_error(e) from e

    return JSONResponse(task.to_dict())


@router.post("/enrichment/daemon/start")
async def start_daemon() -> JSONResponse:
    with get_session() as session:
        service = get_wine_list_service(session)
        started = service.start_daemon()

    return JSONResponse({"started": started, "running": True})


@router.post("/enrichment/daemon/stop")
async def stop_daemon() -> JSONResponse:
    """Stop the daemon once the wine in flight is finished."""
    with get_session() as session:
        service = get_wine_list_service(session)
        stopped = await service.stop_daemon()

    return JSONResponse({"stopped": stopped, "running": False})


@router.get("/enrichment/daemon/status")
async def daemon_status() -> JSONResponse:
    with get_session() as session:
        service = get_wine_list_service(session)
        status = service.daemon_status()

    return JSONResponse(status.model_dump(mode="json"))
