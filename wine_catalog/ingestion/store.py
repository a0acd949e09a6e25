"""
Catalog Store Module
====================

Provides the store-adapter interface the pipelines write through, a
SQLAlchemy-backed implementation, and an in-memory implementation used
for tests and dry runs.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from collections.abc import Callable, Generator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy.exc import DBAPIError, DisconnectionError, InterfaceError, SQLAlchemyError
from sqlalchemy.orm import Session

from wine_catalog.core.errors import CatalogUnavailable, StoreFailure
from wine_catalog.core.schema import (
    SEARCHABLE_FIELDS,
    ExtractedWine,
    UnverifiedCursor,
    VerificationStats,
    WineProfile,
    WineRecord,
)
from wine_catalog.ingestion.dedup import make_dedup_key
from wine_catalog.ingestion.merge import merge_attributes

logger = logging.getLogger(__name__)


@dataclass
class UpsertResult:
    """Outcome of a single upsert."""

    record: WineRecord
    created: bool

    @property
    def record_id(self) -> UUID:
        return self.record.id


class CatalogStore(ABC):
    """
    Abstract base class for the persistent wine catalog.

    Implementations must make ``upsert`` atomic per dedup key and raise
    ``StoreFailure`` (never return silently) when a write is rejected.
    """

    @abstractmethod
    def upsert(self, extracted: ExtractedWine) -> UpsertResult:
        """
        Insert a wine or merge it into the existing record with the same key.

        Args:
            extracted: Extractor output carrying at least a name

        Returns:
            UpsertResult with the stored record
        """
        pass

    @abstractmethod
    def link_restaurant(self, restaurant_id: str, wine_id: UUID | str) -> bool:
        """Associate a stored wine with a restaurant."""
        pass

    @abstractmethod
    def get(self, wine_id: UUID | str) -> WineRecord | None:
        """Retrieve a wine by ID."""
        pass

    @abstractmethod
    def count(self) -> int:
        """Total wines in the catalog."""
        pass

    @abstractmethod
    def search(self, query: str, offset: int, limit: int) -> tuple[list[WineRecord], int]:
        """
        Case-insensitive substring search across the searchable fields.

        Returns:
            (records for the requested window, total matches)
        """
        pass

    @abstractmethod
    def list_unverified(
        self,
        limit: int,
        after: UnverifiedCursor | None = None,
    ) -> list[WineRecord]:
        """
        List wines that have not yet passed enrichment, in (created_at, id)
        order, starting strictly after the ``after`` cursor.
        """
        pass

    @abstractmethod
    def apply_profile(
        self,
        wine_id: UUID | str,
        profile: WineProfile,
        verified_source: str,
    ) -> WineRecord | None:
        """Persist an accepted profile and mark the wine verified."""
        pass

    @abstractmethod
    def verification_stats(self) -> VerificationStats:
        """Counts of verified and unverified wines."""
        pass


def _translate_error(exc: SQLAlchemyError) -> StoreFailure:
    """Map a SQLAlchemy error onto the store error taxonomy."""
    lost_connection = isinstance(exc, (DisconnectionError, InterfaceError)) or (
        isinstance(exc, DBAPIError) and exc.connection_invalidated
    )
    if lost_connection:
        return CatalogUnavailable(f"Catalog database unreachable: {exc}")
    return StoreFailure(f"Catalog write failed: {exc}")


class SqlCatalogStore(CatalogStore):
    """
    Catalog store backed by SQLAlchemy.

    Each operation runs in its own short transaction so that a failed
    write never poisons the next item of a run.
    """

    def __init__(self, session_factory: Callable[[], Session] | None = None) -> None:
        """
        Initialize the SQL store.

        Args:
            session_factory: Callable returning a new Session. Defaults to
                the global factory from ``wine_catalog.db.engine``.
        """
        if session_factory is None:
            from wine_catalog.db.engine import get_session_factory

            session_factory = get_session_factory()
        self._session_factory = session_factory

    @contextmanager
    def _transaction(self) -> Generator[Session, None, None]:
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            raise _translate_error(e) from e
        except ValueError as e:
            session.rollback()
            raise StoreFailure(f"Catalog rejected write: {e}") from e
        finally:
            session.close()

    def _repo(self, session: Session):
        from wine_catalog.db.repositories import WineRecordRepository

        return WineRecordRepository(session)

    def upsert(self, extracted: ExtractedWine) -> UpsertResult:
        with self._transaction() as session:
            record, created = self._repo(session).upsert(extracted)
        return UpsertResult(record=record, created=created)

    def link_restaurant(self, restaurant_id: str, wine_id: UUID | str) -> bool:
        with self._transaction() as session:
            return self._repo(session).link_restaurant(restaurant_id, wine_id)

    def get(self, wine_id: UUID | str) -> WineRecord | None:
        with self._transaction() as session:
            return self._repo(session).get_by_id(wine_id)

    def count(self) -> int:
        with self._transaction() as session:
            return self._repo(session).count()

    def search(self, query: str, offset: int, limit: int) -> tuple[list[WineRecord], int]:
        with self._transaction() as session:
            return self._repo(session).search(query, offset, limit)

    def list_unverified(
        self,
        limit: int,
        after: UnverifiedCursor | None = None,
    ) -> list[WineRecord]:
        with self._transaction() as session:
            return self._repo(session).list_unverified(limit, after)

    def apply_profile(
        self,
        wine_id: UUID | str,
        profile: WineProfile,
        verified_source: str,
    ) -> WineRecord | None:
        with self._transaction() as session:
            return self._repo(session).apply_profile(wine_id, profile, verified_source)

    def verification_stats(self) -> VerificationStats:
        with self._transaction() as session:
            repo = self._repo(session)
            return VerificationStats.from_counts(repo.count(), repo.count(verified=True))


class InMemoryCatalogStore(CatalogStore):
    """
    Catalog store kept in process memory.

    A single lock guards every mutation, which gives the same per-key
    atomicity as the SQL store's row lock.
    """

    def __init__(self) -> None:
        self._by_key: dict[str, WineRecord] = {}
        self._by_id: dict[str, str] = {}
        self._links: set[tuple[str, str]] = set()
        self._lock = threading.Lock()

    def upsert(self, extracted: ExtractedWine) -> UpsertResult:
        if not extracted.name:
            raise StoreFailure("Catalog rejected write: Cannot store a wine without a name")

        key = make_dedup_key(extracted.name, extracted.vintage, extracted.producer)
        with self._lock:
            existing = self._by_key.get(key)
            if existing is None:
                record = WineRecord(
                    dedup_key=key,
                    name=extracted.name,
                    attributes=dict(extracted.fields),
                    **self._columns_from(extracted.fields, include_name=False),
                )
                self._by_key[key] = record
                self._by_id[str(record.id)] = key
                return UpsertResult(record=record.model_copy(deep=True), created=True)

            merged, changed = merge_attributes(existing.attributes, extracted.fields)
            if changed:
                existing = existing.model_copy(
                    update={
                        "attributes": merged,
                        "updated_at": datetime.now(UTC),
                        **self._columns_from(merged, include_name=True),
                    }
                )
                self._by_key[key] = existing
            return UpsertResult(record=existing.model_copy(deep=True), created=False)

    def link_restaurant(self, restaurant_id: str, wine_id: UUID | str) -> bool:
        with self._lock:
            link = (restaurant_id, str(wine_id))
            if link in self._links:
                return False
            self._links.add(link)
            return True

    def get(self, wine_id: UUID | str) -> WineRecord | None:
        key = self._by_id.get(str(wine_id))
        return self._by_key[key].model_copy(deep=True) if key else None

    def count(self) -> int:
        return len(self._by_key)

    def search(self, query: str, offset: int, limit: int) -> tuple[list[WineRecord], int]:
        term = query.strip().lower()
        matches = [
            record
            for record in self._by_key.values()
            if not term
            or any(term in (getattr(record, f) or "").lower() for f in SEARCHABLE_FIELDS)
        ]
        matches.sort(key=lambda r: (r.name, r.vintage or "", str(r.id)))
        return [r.model_copy(deep=True) for r in matches[offset : offset + limit]], len(matches)

    def list_unverified(
        self,
        limit: int,
        after: UnverifiedCursor | None = None,
    ) -> list[WineRecord]:
        pending = sorted(
            (r for r in self._by_key.values() if not r.verified), key=lambda r: r.cursor
        )
        if after is not None:
            pending = [r for r in pending if r.cursor > after]
        return [r.model_copy(deep=True) for r in pending[:limit]]

    def apply_profile(
        self,
        wine_id: UUID | str,
        profile: WineProfile,
        verified_source: str,
    ) -> WineRecord | None:
        with self._lock:
            key = self._by_id.get(str(wine_id))
            if key is None:
                return None
            updated = self._by_key[key].model_copy(
                update={
                    "profile": profile,
                    "verified": True,
                    "verified_source": verified_source,
                    "updated_at": datetime.now(UTC),
                }
            )
            self._by_key[key] = updated
            return updated.model_copy(deep=True)

    def verification_stats(self) -> VerificationStats:
        verified = sum(1 for r in self._by_key.values() if r.verified)
        return VerificationStats.from_counts(len(self._by_key), verified)

    def restaurant_links(self) -> set[tuple[str, str]]:
        return set(self._links)

    @staticmethod
    def _columns_from(attributes, include_name: bool) -> dict[str, str | None]:
        columns = {
            field: (attributes[field].value if field in attributes else None)
            for field in SEARCHABLE_FIELDS
            if field != "name"
        }
        if include_name and "name" in attributes:
            columns["name"] = attributes["name"].value
        return columns
