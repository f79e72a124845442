"""SQLAlchemy ORM models for the wine list pipeline database."""

from datetime import UTC, datetime
from uuid import uuid4

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def _utc_now() -> datetime:
    """Return current UTC datetime (timezone-aware)."""
    return datetime.now(UTC)


def _generate_uuid() -> str:
    """Generate a UUID string."""
    return str(uuid4())


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


# ============================================================================
# Catalog
# ============================================================================


class WineDB(Base):
    """
    Database model for catalog wines.

    Identity columns are non-null strings so the restaurant-scoped unique
    constraint also covers wines without a producer or vintage.
    """

    __tablename__ = "wines"
    __table_args__ = (
        UniqueConstraint(
            "restaurant_id",
            "wine_name",
            "producer",
            "vintage",
            name="uq_wines_restaurant_identity",
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_generate_uuid)
    restaurant_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)

    # Identity
    producer: Mapped[str] = mapped_column(String(255), default="", index=True)
    wine_name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    vintage: Mapped[str] = mapped_column(String(10), default="", index=True)

    # Descriptive
    varietal: Mapped[str | None] = mapped_column(String(255), nullable=True)
    region: Mapped[str | None] = mapped_column(String(255), nullable=True)
    country: Mapped[str | None] = mapped_column(String(100), nullable=True)
    appellation: Mapped[str | None] = mapped_column(String(255), nullable=True)
    wine_type: Mapped[str | None] = mapped_column(String(20), nullable=True)
    wine_style: Mapped[str | None] = mapped_column(String(100), nullable=True)

    # Enrichment
    tasting_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    flavor_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    aroma_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    body_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    texture: Mapped[str | None] = mapped_column(Text, nullable=True)
    balance: Mapped[str | None] = mapped_column(Text, nullable=True)
    tannin_level: Mapped[str | None] = mapped_column(String(100), nullable=True)
    acidity: Mapped[str | None] = mapped_column(String(100), nullable=True)
    finish_length: Mapped[str | None] = mapped_column(String(100), nullable=True)
    food_pairing: Mapped[str | None] = mapped_column(Text, nullable=True)
    serving_temp: Mapped[str | None] = mapped_column(String(100), nullable=True)
    aging_potential: Mapped[str | None] = mapped_column(Text, nullable=True)
    blend_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    what_makes_special: Mapped[str | None] = mapped_column(Text, nullable=True)
    wine_rating: Mapped[float | None] = mapped_column(Float, nullable=True)

    # Status
    enrichment_status: Mapped[str] = mapped_column(String(20), default="pending", index=True)
    verified: Mapped[bool] = mapped_column(Boolean, default=False)
    verified_source: Mapped[str | None] = mapped_column(String(100), nullable=True)
    enrichment_started_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    enrichment_completed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    enrichment_attempts: Mapped[int] = mapped_column(Integer, default=0)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)

    search_text: Mapped[str] = mapped_column(Text, default="", index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utc_now, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utc_now, onupdate=_utc_now)

    # Relationships
    restaurant_links: Mapped[list["RestaurantWineDB"]] = relationship(
        "RestaurantWineDB", back_populates="wine"
    )

    def __repr__(self) -> str:
        return (
            f"<WineDB(id={self.id}, name='{self.wine_name}', "
            f"vintage='{self.vintage}', status={self.enrichment_status})>"
        )


class RestaurantWineDB(Base):
    """
    Database model for restaurant wine associations.

    One row per (restaurant, wine); removal from a list clears `active`.
    """

    __tablename__ = "restaurant_wines"
    __table_args__ = (
        UniqueConstraint("restaurant_id", "wine_id", name="uq_restaurant_wines_link"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_generate_uuid)
    restaurant_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    wine_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("wines.id"), nullable=False, index=True
    )
    price: Mapped[float | None] = mapped_column(Float, nullable=True)
    by_the_glass: Mapped[bool] = mapped_column(Boolean, default=False)
    featured: Mapped[bool] = mapped_column(Boolean, default=False)
    active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    inventory_count: Mapped[int] = mapped_column(Integer, default=0)
    custom_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    added_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utc_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utc_now, onupdate=_utc_now)

    # Relationships
    wine: Mapped["WineDB"] = relationship("WineDB", back_populates="restaurant_links")

    def __repr__(self) -> str:
        return (
            f"<RestaurantWineDB(restaurant_id={self.restaurant_id}, "
            f"wine_id={self.wine_id}, active={self.active})>"
        )


# ============================================================================
# Audit
# ============================================================================


class WineListUploadDB(Base):
    """
    Database model for wine list upload audit records.

    Created when a batch starts and finalized once it completes or fails.
    """

    __tablename__ = "wine_list_uploads"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_generate_uuid)
    restaurant_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    uploaded_by: Mapped[str] = mapped_column(String(64), nullable=False)
    original_filename: Mapped[str | None] = mapped_column(String(255), nullable=True)
    file_size: Mapped[int | None] = mapped_column(Integer, nullable=True)
    status: Mapped[str] = mapped_column(String(20), default="processing", index=True)
    total_lines: Mapped[int] = mapped_column(Integer, default=0)
    new_wines: Mapped[int] = mapped_column(Integer, default=0)
    duplicates_found: Mapped[int] = mapped_column(Integer, default=0)
    error_count: Mapped[int] = mapped_column(Integer, default=0)
    skipped_lines: Mapped[int] = mapped_column(Integer, default=0)
    processing_time_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utc_now, index=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    def __repr__(self) -> str:
        return f"<WineListUploadDB(id={self.id}, status={self.status})>"
