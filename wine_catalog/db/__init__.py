"""Database initialization and persistence layer."""

from wine_catalog.db.engine import (
    create_db_engine,
    get_database_url,
    get_engine,
    get_session_factory,
    init_db,
    reset_engine,
    run_migrations,
)
from wine_catalog.db.models import Base, RestaurantWineDB, WineRecordDB
from wine_catalog.db.repositories import WineRecordRepository

__all__ = [
    # Engine
    "create_db_engine",
    "get_database_url",
    "get_engine",
    "get_session_factory",
    "init_db",
    "reset_engine",
    "run_migrations",
    # Models
    "Base",
    "WineRecordDB",
    "RestaurantWineDB",
    # Repositories
    "WineRecordRepository",
]
