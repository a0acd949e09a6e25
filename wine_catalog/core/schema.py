"""Pydantic v2 domain models for the wine catalog.

These models define:
- CandidateLine: an ephemeral fragment of raw wine-list text
- FieldValue / ExtractedWine: extractor output with per-field confidence
- WineRecord: the persisted catalog entity
- WineProfile: tasting/serving metadata produced by enrichment
- CatalogPage / VerificationStats: read-side results
"""

from datetime import UTC, datetime
from typing import Any
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

from wine_catalog.core.enums import ConfidenceLabel, ExtractionSource


def _utc_now() -> datetime:
    """Return current UTC datetime (timezone-aware)."""
    return datetime.now(UTC)


# Fields requested from the knowledge-extraction service, in schema order
EXTRACTED_FIELDS: tuple[str, ...] = (
    "name",
    "vintage",
    "producer",
    "region",
    "country",
    "varietals",
    "price",
    "style",
    "aroma",
    "taste",
    "food_pairings",
)

# Fields mirrored to indexed columns and matched by free-text search
SEARCHABLE_FIELDS: tuple[str, ...] = (
    "name",
    "vintage",
    "producer",
    "region",
    "country",
    "varietals",
)

PROFILE_FIELDS: tuple[str, ...] = (
    "tasting_notes",
    "flavor_notes",
    "aroma_notes",
    "body_description",
    "food_pairing",
    "serving_temp",
    "aging_potential",
    "blend_description",
)


def _coerce_text(value: Any) -> str | None:
    """Flatten an AI-provided value into a trimmed string, or None if blank."""
    if value is None:
        return None
    if isinstance(value, (list, tuple)):
        parts = [str(v).strip() for v in value if v is not None and str(v).strip()]
        value = ", ".join(parts)
    elif isinstance(value, dict):
        raise ValueError("expected a scalar or list, got an object")
    text = str(value).strip()
    return text or None


class CandidateLine(BaseModel):
    """A trimmed, non-empty fragment of raw input considered as a possible wine."""

    model_config = ConfigDict(frozen=True)

    text: str
    index: int


class FieldValue(BaseModel):
    """One extracted field with its confidence and provenance."""

    value: str
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    source: ExtractionSource = ExtractionSource.KNOWLEDGE_SERVICE


class WineExtractionPayload(BaseModel):
    """
    Validated shape of a knowledge-extraction response.

    Lists are flattened to comma-separated strings and numbers to text,
    since the service is loose about types. ``wine_name`` is accepted
    as an alias of ``name``.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    name: str | None = None
    vintage: str | None = None
    producer: str | None = None
    region: str | None = None
    country: str | None = None
    varietals: str | None = None
    price: str | None = None
    style: str | None = None
    aroma: str | None = None
    taste: str | None = None
    food_pairings: str | None = None

    @field_validator(*EXTRACTED_FIELDS, mode="before")
    @classmethod
    def flatten(cls, v: Any) -> str | None:
        return _coerce_text(v)

    @classmethod
    def from_response(cls, data: dict[str, Any]) -> "WineExtractionPayload":
        """Validate a parsed JSON object, honouring the ``wine_name`` alias."""
        data = dict(data)
        if not data.get("name") and data.get("wine_name"):
            data["name"] = data["wine_name"]
        if not data.get("food_pairings") and data.get("food_pairing"):
            data["food_pairings"] = data["food_pairing"]
        return cls.model_validate(data)


class ExtractedWine(BaseModel):
    """Output of an extractor for one candidate line."""

    source: ExtractionSource
    fields: dict[str, FieldValue] = Field(default_factory=dict)
    line_index: int | None = None

    @classmethod
    def from_values(
        cls,
        values: dict[str, str | None],
        source: ExtractionSource,
        confidences: dict[str, float],
        line_index: int | None = None,
    ) -> "ExtractedWine":
        """Build from plain values, dropping blanks and tagging each field."""
        fields: dict[str, FieldValue] = {}
        for key, raw in values.items():
            text = _coerce_text(raw)
            if text is None:
                continue
            fields[key] = FieldValue(
                value=text,
                confidence=confidences.get(key, 0.0),
                source=source,
            )
        return cls(source=source, fields=fields, line_index=line_index)

    def value(self, field: str) -> str | None:
        fv = self.fields.get(field)
        return fv.value if fv else None

    @property
    def name(self) -> str | None:
        return self.value("name")

    @property
    def vintage(self) -> str | None:
        return self.value("vintage")

    @property
    def producer(self) -> str | None:
        return self.value("producer")


class WineProfile(BaseModel):
    """Tasting and serving metadata generated for a catalog entry."""

    tasting_notes: str = ""
    flavor_notes: str = ""
    aroma_notes: str = ""
    body_description: str = ""
    food_pairing: str = ""
    serving_temp: str = ""
    aging_potential: str = ""
    blend_description: str = ""
    confidence_level: ConfidenceLabel | None = None

    @field_validator(*PROFILE_FIELDS, mode="before")
    @classmethod
    def flatten(cls, v: Any) -> str:
        return _coerce_text(v) or ""

    @field_validator("confidence_level", mode="before")
    @classmethod
    def normalize_label(cls, v: Any) -> Any:
        if v is None:
            return None
        if isinstance(v, ConfidenceLabel):
            return v
        label = str(v).strip().lower()
        if label not in {c.value for c in ConfidenceLabel}:
            return None
        return label


# Position in the (created_at, id) order used to page through unverified wines
UnverifiedCursor = tuple[datetime, str]


class WineRecord(BaseModel):
    """
    Persisted catalog entity.

    ``attributes`` carries every extracted field with confidence and
    provenance; the searchable columns mirror the winning values.
    """

    id: UUID = Field(default_factory=uuid4)
    dedup_key: str
    name: str
    vintage: str | None = None
    producer: str | None = None
    region: str | None = None
    country: str | None = None
    varietals: str | None = None
    attributes: dict[str, FieldValue] = Field(default_factory=dict)
    verified: bool = False
    verified_source: str | None = None
    profile: WineProfile | None = None
    created_at: datetime = Field(default_factory=_utc_now)
    updated_at: datetime = Field(default_factory=_utc_now)

    @field_validator("name")
    @classmethod
    def name_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("name cannot be empty")
        return v.strip()

    def attribute(self, field: str) -> str | None:
        fv = self.attributes.get(field)
        return fv.value if fv else None

    @property
    def cursor(self) -> UnverifiedCursor:
        return (self.created_at, str(self.id))

    def to_summary(self) -> dict[str, Any]:
        """Serialize for the HTTP boundary."""
        return {
            "id": str(self.id),
            "name": self.name,
            "vintage": self.vintage,
            "producer": self.producer,
            "region": self.region,
            "country": self.country,
            "varietals": self.varietals,
            "price": self.attribute("price"),
            "style": self.attribute("style"),
            "aroma": self.attribute("aroma"),
            "taste": self.attribute("taste"),
            "foodPairings": self.attribute("food_pairings"),
            "attributes": {k: v.model_dump(mode="json") for k, v in self.attributes.items()},
            "verified": self.verified,
            "verifiedSource": self.verified_source,
            "profile": self.profile.model_dump(mode="json") if self.profile else None,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }


class CatalogPage(BaseModel):
    """One page of catalog search results."""

    wines: list[WineRecord] = Field(default_factory=list)
    total: int = 0
    total_pages: int = 1
    current_page: int = 1
    page_size: int = 20

    def to_dict(self) -> dict[str, Any]:
        return {
            "wines": [w.to_summary() for w in self.wines],
            "pagination": {
                "total": self.total,
                "totalPages": self.total_pages,
                "currentPage": self.current_page,
                "pageSize": self.page_size,
            },
        }


class VerificationStats(BaseModel):
    """Counts of verified vs. unverified catalog entries."""

    total_wines: int = 0
    verified_wines: int = 0
    unverified_wines: int = 0
    verification_rate: float = 0.0

    @classmethod
    def from_counts(cls, total: int, verified: int) -> "VerificationStats":
        rate = (verified / total) * 100 if total > 0 else 0.0
        return cls(
            total_wines=total,
            verified_wines=verified,
            unverified_wines=total - verified,
            verification_rate=round(rate, 2),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalWines": self.total_wines,
            "verifiedWines": self.verified_wines,
            "unverifiedWines": self.unverified_wines,
            "verificationRate": self.verification_rate,
        }
