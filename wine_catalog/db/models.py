"""SQLAlchemy ORM models for the wine catalog database."""

from datetime import UTC, datetime
from uuid import uuid4

from sqlalchemy import Boolean, DateTime, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _utc_now() -> datetime:
    """Return current UTC datetime (timezone-aware)."""
    return datetime.now(UTC)


def _generate_uuid() -> str:
    """Generate a UUID string."""
    return str(uuid4())


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class WineRecordDB(Base):
    """
    Database model for catalog wines.

    Searchable fields are plain columns; the per-field confidence bag
    and the enrichment profile are stored as JSON text.
    """

    __tablename__ = "wines"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_generate_uuid)
    dedup_key: Mapped[str] = mapped_column(Text, nullable=False, unique=True, index=True)

    name: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    vintage: Mapped[str | None] = mapped_column(Text, nullable=True)
    producer: Mapped[str | None] = mapped_column(Text, nullable=True)
    region: Mapped[str | None] = mapped_column(Text, nullable=True)
    country: Mapped[str | None] = mapped_column(Text, nullable=True)
    varietals: Mapped[str | None] = mapped_column(Text, nullable=True)

    attributes_json: Mapped[str] = mapped_column(Text, default="{}")

    # Enrichment
    verified: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    verified_source: Mapped[str | None] = mapped_column(String(100), nullable=True)
    profile_json: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utc_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utc_now, onupdate=_utc_now)

    def __repr__(self) -> str:
        return f"<WineRecordDB(id={self.id}, name='{self.name}', vintage={self.vintage})>"


class RestaurantWineDB(Base):
    """Association between an uploading restaurant and a catalog wine."""

    __tablename__ = "restaurant_wines"
    __table_args__ = (UniqueConstraint("restaurant_id", "wine_id", name="uq_restaurant_wine"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_generate_uuid)
    restaurant_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    wine_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utc_now)

    def __repr__(self) -> str:
        return f"<RestaurantWineDB(restaurant={self.restaurant_id}, wine={self.wine_id})>"
