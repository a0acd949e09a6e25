"""Repository classes for catalog database operations."""

import json
from datetime import UTC, datetime
from uuid import UUID, uuid4

from sqlalchemy import and_, func, insert, or_, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from wine_catalog.core.schema import (
    SEARCHABLE_FIELDS,
    ExtractedWine,
    FieldValue,
    UnverifiedCursor,
    WineProfile,
    WineRecord,
)
from wine_catalog.db.models import RestaurantWineDB, WineRecordDB
from wine_catalog.ingestion.dedup import make_dedup_key
from wine_catalog.ingestion.merge import merge_attributes


def _utc_now() -> datetime:
    """Return current UTC datetime."""
    return datetime.now(UTC)


def _escape_like(term: str) -> str:
    """Escape LIKE wildcards so user input matches literally."""
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _dump_attributes(attributes: dict[str, FieldValue]) -> str:
    return json.dumps({k: v.model_dump(mode="json") for k, v in attributes.items()})


def _load_attributes(raw: str | None) -> dict[str, FieldValue]:
    if not raw:
        return {}
    return {k: FieldValue.model_validate(v) for k, v in json.loads(raw).items()}


class WineRecordRepository:
    """
    Repository for catalog wine records.

    Methods flush but never commit; the caller owns the transaction.
    """

    def __init__(self, session: Session):
        self.session = session

    # =========================================================================
    # Writes
    # =========================================================================

    def upsert(self, extracted: ExtractedWine) -> tuple[WineRecord, bool]:
        """
        Insert a wine or merge it into the record with the same dedup key.

        The row is claimed with an insert-if-absent first, then re-read
        under a row lock before merging, so concurrent writers to the
        same key serialize instead of overwriting each other.

        Args:
            extracted: Extractor output; must carry a name.

        Returns:
            (resulting record, True if a new row was created)

        Raises:
            ValueError: if the extraction has no name.
        """
        if not extracted.name:
            raise ValueError("Cannot store a wine without a name")

        key = make_dedup_key(extracted.name, extracted.vintage, extracted.producer)
        now = _utc_now()
        values = {
            "id": str(uuid4()),
            "dedup_key": key,
            "attributes_json": _dump_attributes(extracted.fields),
            "verified": False,
            "created_at": now,
            "updated_at": now,
        }
        values.update(self._columns_from(extracted.fields))

        created = self._insert_if_absent(WineRecordDB, values, ["dedup_key"])

        stmt = (
            select(WineRecordDB)
            .where(WineRecordDB.dedup_key == key)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        db_wine = self.session.execute(stmt).scalar_one()

        if not created:
            existing = _load_attributes(db_wine.attributes_json)
            merged, changed = merge_attributes(existing, extracted.fields)
            if changed:
                db_wine.attributes_json = _dump_attributes(merged)
                for column, value in self._columns_from(merged).items():
                    setattr(db_wine, column, value)
                db_wine.updated_at = now

        self.session.flush()
        return self._to_domain(db_wine), created

    def apply_profile(
        self,
        wine_id: UUID | str,
        profile: WineProfile,
        verified_source: str,
    ) -> WineRecord | None:
        """
        Write an accepted enrichment profile and mark the wine verified.

        Returns:
            The updated record, or None if the wine does not exist.
        """
        stmt = select(WineRecordDB).where(WineRecordDB.id == str(wine_id)).with_for_update()
        db_wine = self.session.execute(stmt).scalar_one_or_none()
        if db_wine is None:
            return None

        db_wine.profile_json = profile.model_dump_json()
        db_wine.verified = True
        db_wine.verified_source = verified_source
        db_wine.updated_at = _utc_now()
        self.session.flush()
        return self._to_domain(db_wine)

    def link_restaurant(self, restaurant_id: str, wine_id: UUID | str) -> bool:
        """
        Associate a wine with a restaurant.

        Returns:
            True if a new link was created, False if it already existed.
        """
        values = {
            "id": str(uuid4()),
            "restaurant_id": restaurant_id,
            "wine_id": str(wine_id),
            "created_at": _utc_now(),
        }
        created = self._insert_if_absent(
            RestaurantWineDB, values, ["restaurant_id", "wine_id"]
        )
        self.session.flush()
        return created

    # =========================================================================
    # Reads
    # =========================================================================

    def get_by_id(self, wine_id: UUID | str) -> WineRecord | None:
        stmt = select(WineRecordDB).where(WineRecordDB.id == str(wine_id))
        db_wine = self.session.execute(stmt).scalar_one_or_none()
        return self._to_domain(db_wine) if db_wine else None

    def get_by_key(self, dedup_key: str) -> WineRecord | None:
        stmt = select(WineRecordDB).where(WineRecordDB.dedup_key == dedup_key)
        db_wine = self.session.execute(stmt).scalar_one_or_none()
        return self._to_domain(db_wine) if db_wine else None

    def count(self, verified: bool | None = None) -> int:
        """Count wines, optionally only verified or unverified ones."""
        stmt = select(func.count()).select_from(WineRecordDB)
        if verified is not None:
            stmt = stmt.where(WineRecordDB.verified == verified)
        return self.session.execute(stmt).scalar_one()

    def search(self, query: str, offset: int, limit: int) -> tuple[list[WineRecord], int]:
        """
        Case-insensitive substring search across the searchable columns.

        Args:
            query: Free text; blank matches everything.
            offset: Rows to skip.
            limit: Maximum rows to return.

        Returns:
            (matching records for the page, total match count)
        """
        conditions = []
        term = query.strip()
        if term:
            pattern = f"%{_escape_like(term)}%"
            conditions.append(
                or_(
                    *(
                        getattr(WineRecordDB, column).ilike(pattern, escape="\\")
                        for column in SEARCHABLE_FIELDS
                    )
                )
            )

        count_stmt = select(func.count()).select_from(WineRecordDB).where(*conditions)
        total = self.session.execute(count_stmt).scalar_one()

        stmt = (
            select(WineRecordDB)
            .where(*conditions)
            .order_by(WineRecordDB.name, WineRecordDB.vintage, WineRecordDB.id)
            .offset(offset)
            .limit(limit)
        )
        rows = self.session.execute(stmt).scalars().all()
        return [self._to_domain(row) for row in rows], total

    def list_unverified(
        self,
        limit: int,
        after: UnverifiedCursor | None = None,
    ) -> list[WineRecord]:
        """
        List unverified wines in (created_at, id) order.

        Args:
            limit: Maximum rows to return.
            after: Position of the last wine already seen; only wines
                strictly after it are returned.
        """
        stmt = select(WineRecordDB).where(WineRecordDB.verified == False)  # noqa: E712
        if after is not None:
            created_at, wine_id = after
            stmt = stmt.where(
                or_(
                    WineRecordDB.created_at > created_at,
                    and_(WineRecordDB.created_at == created_at, WineRecordDB.id > wine_id),
                )
            )
        stmt = stmt.order_by(WineRecordDB.created_at, WineRecordDB.id).limit(limit)
        rows = self.session.execute(stmt).scalars().all()
        return [self._to_domain(row) for row in rows]

    def list_restaurant_wines(self, restaurant_id: str) -> list[WineRecord]:
        stmt = (
            select(WineRecordDB)
            .join(RestaurantWineDB, RestaurantWineDB.wine_id == WineRecordDB.id)
            .where(RestaurantWineDB.restaurant_id == restaurant_id)
            .order_by(WineRecordDB.name)
        )
        return [self._to_domain(row) for row in self.session.execute(stmt).scalars().all()]

    # =========================================================================
    # Helpers
    # =========================================================================

    def _insert_if_absent(self, model, values: dict, conflict_columns: list[str]) -> bool:
        """
        Insert a row unless one with the same unique columns exists.

        Returns:
            True if the row was inserted.
        """
        dialect = self.session.get_bind().dialect.name
        if dialect == "sqlite":
            stmt = sqlite_insert(model).values(**values).on_conflict_do_nothing(
                index_elements=conflict_columns
            )
        elif dialect == "postgresql":
            stmt = pg_insert(model).values(**values).on_conflict_do_nothing(
                index_elements=conflict_columns
            )
        else:
            try:
                with self.session.begin_nested():
                    self.session.execute(insert(model).values(**values))
                return True
            except IntegrityError:
                return False

        result = self.session.execute(stmt)
        return result.rowcount == 1

    @staticmethod
    def _columns_from(attributes: dict[str, FieldValue]) -> dict[str, str | None]:
        """Mirror the searchable attribute values onto their columns."""
        return {
            field: (attributes[field].value if field in attributes else None)
            for field in SEARCHABLE_FIELDS
        }

    def _to_domain(self, db_wine: WineRecordDB) -> WineRecord:
        """Convert DB model to domain model."""
        return WineRecord(
            id=UUID(db_wine.id),
            dedup_key=db_wine.dedup_key,
            name=db_wine.name,
            vintage=db_wine.vintage,
            producer=db_wine.producer,
            region=db_wine.region,
            country=db_wine.country,
            varietals=db_wine.varietals,
            attributes=_load_attributes(db_wine.attributes_json),
            verified=db_wine.verified,
            verified_source=db_wine.verified_source,
            profile=(
                WineProfile.model_validate_json(db_wine.profile_json)
                if db_wine.profile_json
                else None
            ),
            created_at=db_wine.created_at,
            updated_at=db_wine.updated_at,
        )

