"""Catalog query service.

Read-only access to the wine catalog for downstream consumers:
- Paginated free-text search
- Lookup by ID
- Verification statistics
"""

import logging
import math
from uuid import UUID

from wine_catalog.core.schema import CatalogPage, VerificationStats, WineRecord
from wine_catalog.ingestion.store import CatalogStore, SqlCatalogStore

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


class CatalogQueryService:
    """Paginated, searchable reads over a catalog store."""

    def __init__(self, store: CatalogStore):
        self.store = store

    def list_wines(
        self,
        page: int = 1,
        page_size: int = DEFAULT_PAGE_SIZE,
        search: str = "",
    ) -> CatalogPage:
        """
        Return one page of wines, optionally filtered by ``search``.

        The search term is matched case-insensitively as a substring of
        name, vintage, producer, region, country or varietals. Page size
        is clamped to 1..100 and an out-of-range page to the last (or
        first) valid page.

        Args:
            page: 1-based page number.
            page_size: Wines per page.
            search: Free-text filter; blank returns everything.

        Returns:
            CatalogPage with the wines and pagination totals.
        """
        page_size = max(1, min(page_size, MAX_PAGE_SIZE))
        search = (search or "").strip()

        requested = max(1, page)

        wines, total = self.store.search(
            search, offset=(requested - 1) * page_size, limit=page_size
        )
        total_pages = math.ceil(total / page_size) or 1

        current = min(requested, total_pages)
        if current != requested:
            # Past the end; serve the last page instead
            wines, total = self.store.search(
                search, offset=(current - 1) * page_size, limit=page_size
            )
            total_pages = math.ceil(total / page_size) or 1

        return CatalogPage(
            wines=wines,
            total=total,
            total_pages=total_pages,
            current_page=current,
            page_size=page_size,
        )

    def get_wine(self, wine_id: UUID | str) -> WineRecord | None:
        """Get a wine by ID, or None if it does not exist."""
        return self.store.get(wine_id)

    def verification_stats(self) -> VerificationStats:
        return self.store.verification_stats()


def get_catalog_service(store: CatalogStore | None = None) -> CatalogQueryService:
    """Get a catalog query service, backed by the SQL store by default."""
    return CatalogQueryService(store or SqlCatalogStore())
