"""FastAPI application factory for the wine list pipeline."""

import logging
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI

from wine_pipeline import __version__
from wine_pipeline.db.engine import init_db

logger = logging.getLogger(__name__)

# Load .env file from project root
_project_root = Path(__file__).parent.parent.parent
_env_file = _project_root / ".env"
if _env_file.exists():
    load_dotenv(_env_file)


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Wine Pipeline",
        description="Wine list ingestion, deduplication and tasting profile enrichment",
        version=__version__,
    )

    # Initialize database tables
    init_db()

    # Include routers (import here to avoid circular imports)
    from wine_pipeline.web.routes import enrichment, wines

    app.include_router(wines.router)
    app.include_router(enrichment.router)

    @app.on_event("shutdown")
    async def stop_background_work() -> None:
        from wine_pipeline.enrichment.daemon import get_daemon, get_scheduler

        if await get_daemon().stop():
            logger.info("Enrichment daemon stopped on shutdown")
        await get_scheduler().wait_all()

    return app


# Application instance
app = create_app()
