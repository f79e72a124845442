"""Wine list routes: ingestion, catalog listings and restaurant lists."""

from fastapi import APIRouter, File, Form, HTTPException, Query, UploadFile
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from wine_pipeline.core.enums import EnrichmentStatus, WineSort
from wine_pipeline.core.errors import WinePipelineError
from wine_pipeline.core.schema import WineListQuery, WinePage
from wine_pipeline.db.engine import get_session
from wine_pipeline.services.wine_list_service import get_wine_list_service
from wine_pipeline.web.dependencies import http_error

router = APIRouter(tags=["wines"])


class IngestRequest(BaseModel):
    """Body of a text ingestion request."""

    text: str
    uploaded_by: str
    file_name: str | None = None
    restaurant_id: str | None = None


def _page_response(page: WinePage) -> JSONResponse:
    return JSONResponse({
        "items": [w.model_dump(mode="json") for w in page.items],
        "total": page.total,
        "page": page.page,
        "page_size": page.page_size,
        "total_pages": page.total_pages,
    })


def _list_wines(
    restaurant_id: str | None,
    page: int,
    page_size: int,
    search: str | None,
    status: EnrichmentStatus | None,
    sort: WineSort,
) -> JSONResponse:
    query = WineListQuery(
        page=page,
        page_size=page_size,
        search=search or None,
        status_filter=status,
        sort=sort,
    )
    with get_session() as session:
        service = get_wine_list_service(session)
        result = service.list_wines(restaurant_id, query)
    return _page_response(result)


# ============================================================================
# Ingestion
# ============================================================================


@router.post("/wines/ingest")
async def ingest_text(body: IngestRequest, auto_enrich: bool = True) -> JSONResponse:
    """
    Ingest a wine list sent as text, one wine per line.

    Returns the batch counts, a few sample records and the id of the
    enrichment task started for the first new wines.
    """
    with get_session() as session:
        service = get_wine_list_service(session)
        try:
            result = await service.ingest(
                body.text,
                body.uploaded_by,
                file_name=body.file_name,
                restaurant_id=body.restaurant_id,
                auto_enrich=auto_enrich,
            )
        except WinePipelineError as e:
            raise http_error(e) from e

    return JSONResponse(result.to_dict())


@router.post("/restaurants/{restaurant_id}/wines/upload")
async def upload_wine_list(
    restaurant_id: str,
    file: UploadFile = File(...),
    uploaded_by: str = Form(...),
    auto_enrich: bool = True,
) -> JSONResponse:
    """Ingest an uploaded .txt or .csv wine list into a restaurant's list."""
    content = await file.read()

    with get_session() as session:
        service = get_wine_list_service(session)
        try:
            result = await service.ingest_file(
                file.filename or "",
                content,
                uploaded_by,
                restaurant_id=restaurant_id,
                auto_enrich=auto_enrich,
            )
        except WinePipelineError as e:
            raise http_error(e) from e

    return JSONResponse(result.to_dict())


@router.get("/uploads")
async def list_uploads(
    limit: int = Query(default=20, ge=1, le=200),
    restaurant_id: str | None = None,
) -> JSONResponse:
    """Recent upload audit records, newest first."""
    with get_session() as session:
        service = get_wine_list_service(session)
        uploads = service.list_uploads(limit=limit, restaurant_id=restaurant_id)

    return JSONResponse({"uploads": [u.model_dump(mode="json") for u in uploads]})


# ============================================================================
# Catalog
# ============================================================================


@router.get("/wines")
async def list_wines(
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=25, ge=1, le=200),
    search: str | None = None,
    status: EnrichmentStatus | None = None,
    sort: WineSort = WineSort.NEWEST,
) -> JSONResponse:
    """List catalog wines with search, status filter, sorting and paging."""
    return _list_wines(None, page, page_size, search, status, sort)


@router.get("/wines/stats")
async def wine_stats(restaurant_id: str | None = None) -> JSONResponse:
    """Enrichment statistics for the catalog or one restaurant."""
    with get_session() as session:
        service = get_wine_list_service(session)
        stats = service.get_stats(restaurant_id)

    return JSONResponse(stats.model_dump(mode="json"))


@router.get("/wines/duplicates")
async def wine_duplicates() -> JSONResponse:
    """Groups of catalog records that look like the same wine."""
    with get_session() as session:
        service = get_wine_list_service(session)
        groups = service.find_duplicate_groups()

    return JSONResponse({"groups": groups, "count": len(groups)})


@router.get("/wines/{wine_id}")
async def get_wine(wine_id: str) -> JSONResponse:
    """Get a wine by ID."""
    with get_session() as session:
        service = get_wine_list_service(session)
        try:
            wine = service.get_wine(wine_id)
        except WinePipelineError as e:
            raise http_error(e) from e

    return JSONResponse(wine.model_dump(mode="json"))


# ============================================================================
# Restaurant lists
# ============================================================================


@router.get("/restaurants/{restaurant_id}/wines")
async def list_restaurant_wines(
    restaurant_id: str,
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=25, ge=1, le=200),
    search: str | None = None,
    status: EnrichmentStatus | None = None,
    sort: WineSort = WineSort.NEWEST,
) -> JSONResponse:
    """List the active wines on a restaurant's list."""
    if not restaurant_id.strip():
        raise HTTPException(status_code=400, detail="restaurant_id must not be blank")
    return _list_wines(restaurant_id, page, page_size, search, status, sort)


@router.delete("/restaurants/{restaurant_id}/wines/{wine_id}")
async def remove_restaurant_wine(restaurant_id: str, wine_id: str) -> JSONResponse:
    """Take a wine off a restaurant's list; the catalog record is kept."""
    with get_session() as session:
        service = get_wine_list_service(session)
        try:
            service.deactivate(restaurant_id, wine_id)
        except WinePipelineError as e:
            raise http_error(e) from e

    return JSONResponse({"success": True, "wine_id": wine_id, "restaurant_id": restaurant_id})
