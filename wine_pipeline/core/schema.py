"""Pydantic v2 domain models for the wine list pipeline."""

import re
from datetime import UTC, datetime
from typing import Any
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, field_validator

from wine_pipeline.core.enums import (
    EnrichmentStatus,
    ExtractionMethod,
    UploadStatus,
    WineSort,
    WineType,
)


def _utc_now() -> datetime:
    """Return current UTC datetime (timezone-aware)."""
    return datetime.now(UTC)


# Descriptive fields concatenated into search_text, in this order
SEARCH_TEXT_FIELDS = (
    "producer",
    "wine_name",
    "vintage",
    "varietal",
    "region",
    "country",
    "appellation",
    "wine_type",
)

# Fields produced by the enrichment chain
ENRICHMENT_FIELDS = (
    "tasting_notes",
    "flavor_notes",
    "aroma_notes",
    "body_description",
    "texture",
    "balance",
    "tannin_level",
    "acidity",
    "finish_length",
    "food_pairing",
    "serving_temp",
    "aging_potential",
    "blend_description",
    "what_makes_special",
)

_PRICE_RE = re.compile(r"(\d+(?:[.,]\d{1,2})?)")


def build_search_text(*parts: Any) -> str:
    """Join the populated descriptive parts into lower-cased search text."""
    values = []
    for part in parts:
        if part is None:
            continue
        if isinstance(part, WineType):
            part = part.value
        text = str(part).strip()
        if text:
            values.append(text)
    return " ".join(values).lower()


def coerce_wine_type(value: Any) -> WineType | None:
    """Map a loose wine type string onto WineType, or None when unknown."""
    if value is None or isinstance(value, WineType):
        return value
    text = str(value).strip().lower()
    if text in ("rose", "rosado", "rosato"):
        text = WineType.ROSE.value
    try:
        return WineType(text)
    except ValueError:
        return None


def _clean_optional_str(value: Any) -> Any:
    """Strip strings, turn blanks into None, stringify bare numbers."""
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        stripped = re.sub(r"\s+", " ", value).strip()
        if not stripped or stripped.lower() in ("null", "none", "n/a", "unknown"):
            return None
        return stripped
    return value


class WineCandidate(BaseModel):
    """
    Structured wine candidate extracted from one wine-list line.

    Every field is optional; the extractor rejects candidates without a
    wine name before they reach matching.
    """

    producer: str | None = None
    wine_name: str | None = None
    vintage: str | None = None
    varietal: str | None = None
    region: str | None = None
    country: str | None = None
    appellation: str | None = None
    wine_type: WineType | None = None
    wine_style: str | None = None
    price: float | None = None
    by_the_glass: bool = False
    extraction_method: ExtractionMethod = ExtractionMethod.LLM

    @field_validator(
        "producer",
        "wine_name",
        "vintage",
        "varietal",
        "region",
        "country",
        "appellation",
        "wine_style",
        mode="before",
    )
    @classmethod
    def clean_strings(cls, v: Any) -> Any:
        """Normalize whitespace and drop placeholder values."""
        if isinstance(v, list):
            v = ", ".join(str(item) for item in v if item)
        return _clean_optional_str(v)

    @field_validator("wine_type", mode="before")
    @classmethod
    def parse_wine_type(cls, v: Any) -> WineType | None:
        """Accept loose type strings, dropping unknown values."""
        return coerce_wine_type(v)

    @field_validator("price", mode="before")
    @classmethod
    def parse_price(cls, v: Any) -> float | None:
        """Accept prices like "$45" or "45,00"."""
        if v is None or isinstance(v, (int, float)):
            return v
        match = _PRICE_RE.search(str(v))
        if match is None:
            return None
        return float(match.group(1).replace(",", "."))

    @property
    def has_name(self) -> bool:
        """True when the candidate carries a name-like string."""
        return bool(self.wine_name and re.search(r"[^\W\d_]", self.wine_name))

    @property
    def search_text(self) -> str:
        """Lower-cased concatenation of the descriptive fields."""
        return build_search_text(*(getattr(self, name) for name in SEARCH_TEXT_FIELDS))


class EnrichmentProfile(BaseModel):
    """Tasting profile fields produced by one enrichment stage."""

    tasting_notes: str | None = None
    flavor_notes: str | None = None
    aroma_notes: str | None = None
    body_description: str | None = None
    texture: str | None = None
    balance: str | None = None
    tannin_level: str | None = None
    acidity: str | None = None
    finish_length: str | None = None
    food_pairing: str | None = None
    serving_temp: str | None = None
    aging_potential: str | None = None
    blend_description: str | None = None
    what_makes_special: str | None = None
    wine_rating: float | None = None
    wine_type: WineType | None = None
    wine_style: str | None = None
    region: str | None = None

    @field_validator(*ENRICHMENT_FIELDS, "wine_style", "region", mode="before")
    @classmethod
    def flatten_text(cls, v: Any) -> Any:
        """Join list answers and drop blanks."""
        if isinstance(v, list):
            v = ", ".join(str(item) for item in v if item)
        if isinstance(v, dict):
            v = "; ".join(f"{key}: {val}" for key, val in v.items() if val)
        return _clean_optional_str(v)

    @field_validator("wine_type", mode="before")
    @classmethod
    def parse_wine_type(cls, v: Any) -> WineType | None:
        """Accept loose type strings, dropping unknown values."""
        return coerce_wine_type(v)

    @field_validator("wine_rating", mode="before")
    @classmethod
    def parse_rating(cls, v: Any) -> float | None:
        """Accept numeric strings, dropping anything else."""
        if v is None or isinstance(v, (int, float)):
            return v
        try:
            return float(str(v).strip())
        except ValueError:
            return None

    def merge(self, other: "EnrichmentProfile") -> "EnrichmentProfile":
        """Return a copy with fields missing here filled from other."""
        data = self.model_dump()
        for key, value in other.model_dump().items():
            if data.get(key) is None and value is not None:
                data[key] = value
        return EnrichmentProfile(**data)

    def field_length(self, name: str) -> int:
        """Character length of a text field (0 when unset)."""
        value = getattr(self, name)
        return len(value) if isinstance(value, str) else 0

    def is_empty(self) -> bool:
        """True when no enrichment text field is populated."""
        return all(getattr(self, name) is None for name in ENRICHMENT_FIELDS)


class WineRecord(BaseModel):
    """Global catalog entry for one wine."""

    id: UUID = Field(default_factory=uuid4)
    restaurant_id: str | None = None

    # Identity (empty string when unknown)
    producer: str = ""
    wine_name: str
    vintage: str = ""

    # Descriptive
    varietal: str | None = None
    region: str | None = None
    country: str | None = None
    appellation: str | None = None
    wine_type: WineType | None = None
    wine_style: str | None = None

    # Enrichment
    tasting_notes: str | None = None
    flavor_notes: str | None = None
    aroma_notes: str | None = None
    body_description: str | None = None
    texture: str | None = None
    balance: str | None = None
    tannin_level: str | None = None
    acidity: str | None = None
    finish_length: str | None = None
    food_pairing: str | None = None
    serving_temp: str | None = None
    aging_potential: str | None = None
    blend_description: str | None = None
    what_makes_special: str | None = None
    wine_rating: float | None = None

    # Status
    enrichment_status: EnrichmentStatus = EnrichmentStatus.PENDING
    verified: bool = False
    verified_source: str | None = None
    enrichment_started_at: datetime | None = None
    enrichment_completed_at: datetime | None = None
    enrichment_attempts: int = 0
    last_error: str | None = None

    search_text: str = ""
    created_at: datetime = Field(default_factory=_utc_now)
    updated_at: datetime = Field(default_factory=_utc_now)

    @classmethod
    def from_candidate(
        cls,
        candidate: WineCandidate,
        restaurant_id: str | None = None,
    ) -> "WineRecord":
        """Build a new pending record from an extracted candidate."""
        return cls(
            restaurant_id=restaurant_id,
            producer=candidate.producer or "",
            wine_name=candidate.wine_name or "",
            vintage=candidate.vintage or "",
            varietal=candidate.varietal,
            region=candidate.region,
            country=candidate.country,
            appellation=candidate.appellation,
            wine_type=candidate.wine_type,
            wine_style=candidate.wine_style,
            search_text=candidate.search_text,
        )

    @property
    def display_name(self) -> str:
        """Human readable "Producer Name Vintage" label."""
        return " ".join(p for p in (self.producer, self.wine_name, self.vintage) if p)

    def to_summary(self) -> dict[str, Any]:
        """Short dictionary used for ingestion samples."""
        return {
            "id": str(self.id),
            "wine_name": self.wine_name,
            "producer": self.producer or None,
            "vintage": self.vintage or None,
            "region": self.region,
            "wine_type": self.wine_type.value if self.wine_type else None,
            "enrichment_status": self.enrichment_status.value,
        }


class AssociationPricing(BaseModel):
    """Optional restaurant-specific values applied when linking a wine."""

    price: float | None = None
    by_the_glass: bool | None = None
    featured: bool | None = None
    active: bool | None = None
    inventory_count: int | None = None
    custom_description: str | None = None


class RestaurantWineAssociation(BaseModel):
    """Link between a restaurant and a catalog wine."""

    id: UUID = Field(default_factory=uuid4)
    restaurant_id: str
    wine_id: UUID
    price: float | None = None
    by_the_glass: bool = False
    featured: bool = False
    active: bool = True
    inventory_count: int = 0
    custom_description: str | None = None
    added_by: str | None = None
    created_at: datetime = Field(default_factory=_utc_now)
    updated_at: datetime = Field(default_factory=_utc_now)


class UploadRecord(BaseModel):
    """Audit record for one ingestion batch."""

    id: UUID = Field(default_factory=uuid4)
    restaurant_id: str | None = None
    uploaded_by: str
    original_filename: str | None = None
    file_size: int | None = None
    status: UploadStatus = UploadStatus.PROCESSING
    total_lines: int = 0
    new_wines: int = 0
    duplicates_found: int = 0
    error_count: int = 0
    skipped_lines: int = 0
    processing_time_ms: int | None = None
    error_message: str | None = None
    created_at: datetime = Field(default_factory=_utc_now)
    completed_at: datetime | None = None


class WineStats(BaseModel):
    """Catalog enrichment statistics."""

    total: int = 0
    enriched: int = 0
    premium: int = 0
    pending: int = 0
    processing: int = 0
    failed: int = 0
    completion_percentage: int = 0


class WineListQuery(BaseModel):
    """Paging, filtering and sorting options for wine listings."""

    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=25, ge=1, le=200)
    search: str | None = None
    status_filter: EnrichmentStatus | None = None
    sort: WineSort = WineSort.NEWEST


class WinePage(BaseModel):
    """One page of wine records."""

    items: list[WineRecord] = Field(default_factory=list)
    total: int = 0
    page: int = 1
    page_size: int = 25

    @property
    def total_pages(self) -> int:
        """Number of pages for the current page size."""
        if self.total == 0:
            return 1
        return (self.total + self.page_size - 1) // self.page_size


class DaemonStatus(BaseModel):
    """Snapshot of the enrichment daemon state."""

    running: bool = False
    last_poll_at: datetime | None = None
    pending_count: int = 0
    processed_count: int = 0
    failed_count: int = 0
    current_wine_id: str | None = None
    interval_seconds: float = 5.0
