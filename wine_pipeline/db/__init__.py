"""Database initialization and persistence layer."""

from wine_pipeline.db.engine import (
    Database,
    get_database,
    get_database_url,
    get_session,
    get_session_factory,
    init_db,
    reset_engine,
)
from wine_pipeline.db.models import (
    Base,
    RestaurantWineDB,
    WineDB,
    WineListUploadDB,
)
from wine_pipeline.db.repositories import (
    RestaurantWineRepository,
    UploadRepository,
    WineRepository,
)

__all__ = [
    # Engine
    "Database",
    "get_database",
    "get_database_url",
    "get_session",
    "get_session_factory",
    "init_db",
    "reset_engine",
    # Models
    "Base",
    "WineDB",
    "RestaurantWineDB",
    "WineListUploadDB",
    # Repositories
    "WineRepository",
    "RestaurantWineRepository",
    "UploadRepository",
]
