"""Catalog database engine and session factory.

SQLite is the default backend; any SQLAlchemy URL (for example
PostgreSQL) can be supplied through ``DATABASE_URL``.
"""

import logging
import os
from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = Path.home() / ".wine_catalog" / "wine_catalog.db"

MIGRATIONS_DIR = Path(__file__).parent / "migrations"


def get_database_url(db_path: Path | str | None = None) -> str:
    """
    Resolve the catalog database URL.

    Order: explicit ``db_path``, then ``DATABASE_URL`` (a full URL or a
    bare SQLite path), then ``~/.wine_catalog/wine_catalog.db``.
    """
    if db_path is None:
        configured = os.environ.get("DATABASE_URL", "").strip()
        if "://" in configured:
            # Heroku/Railway style URLs use the legacy scheme name
            if configured.startswith("postgres://"):
                configured = "postgresql://" + configured[len("postgres://") :]
            return configured
        db_path = configured or DEFAULT_DB_PATH

    path = Path(db_path).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    return f"sqlite:///{path}"


def _configure_sqlite(engine: Engine) -> None:
    @event.listens_for(engine, "connect")
    def set_pragmas(dbapi_connection, connection_record) -> None:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA busy_timeout=5000")
        cursor.close()


def create_db_engine(db_path: Path | str | None = None, echo: bool = False) -> Engine:
    """
    Create an engine for the catalog database.

    SQLite connections may be used from the worker threads the pipelines
    hand store calls to, and run in WAL mode so readers do not block the
    writer.
    """
    url = get_database_url(db_path)
    if not url.startswith("sqlite"):
        return create_engine(url, echo=echo, pool_pre_ping=True)

    engine = create_engine(url, echo=echo, connect_args={"check_same_thread": False})
    _configure_sqlite(engine)
    return engine


_engine: Engine | None = None
_session_factory: sessionmaker[Session] | None = None


def get_engine(db_path: Path | str | None = None, echo: bool = False) -> Engine:
    """Get the process-wide engine, creating it on first use."""
    global _engine
    if _engine is None:
        _engine = create_db_engine(db_path, echo)
        logger.debug(f"Catalog database: {_engine.url.render_as_string(hide_password=True)}")
    return _engine


def get_session_factory(db_path: Path | str | None = None) -> sessionmaker[Session]:
    """Get the process-wide session factory used by ``SqlCatalogStore``."""
    global _session_factory
    if _session_factory is None:
        _session_factory = sessionmaker(
            bind=get_engine(db_path), autoflush=False, expire_on_commit=False
        )
    return _session_factory


def reset_engine() -> None:
    """Dispose of the process-wide engine (used when switching databases)."""
    global _engine, _session_factory
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _session_factory = None


def init_db(db_path: Path | str | None = None) -> None:
    """Create any missing catalog tables from the ORM metadata."""
    from wine_catalog.db.models import Base

    Base.metadata.create_all(bind=get_engine(db_path))


def run_migrations(db_path: Path | str | None = None, revision: str = "head") -> None:
    """
    Upgrade the catalog schema with Alembic.

    Uses the project's alembic.ini when running from a checkout and a
    programmatic config otherwise.
    """
    alembic_ini = Path(__file__).resolve().parents[2] / "alembic.ini"
    config = Config(str(alembic_ini)) if alembic_ini.exists() else Config()
    config.set_main_option("script_location", str(MIGRATIONS_DIR))
    config.set_main_option("sqlalchemy.url", get_database_url(db_path))

    logger.info(f"Upgrading catalog schema to {revision}")
    command.upgrade(config, revision)
