"""FastAPI application factory for Wine Catalog."""

import logging
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.responses import RedirectResponse

from wine_catalog import __version__
from wine_catalog.db.engine import init_db

# Load .env file from project root
_project_root = Path(__file__).parent.parent.parent
_env_file = _project_root / ".env"
if _env_file.exists():
    load_dotenv(_env_file)

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Wine Catalog",
        description="Turns restaurant wine lists into a deduplicated, enriched wine catalog",
        version=__version__,
    )

    # Initialize database tables
    init_db()

    # Include routers (import here to avoid circular imports)
    from wine_catalog.web.routes import wines

    app.include_router(wines.router)

    @app.get("/", include_in_schema=False)
    async def root() -> RedirectResponse:
        return RedirectResponse(url="/docs")

    return app
