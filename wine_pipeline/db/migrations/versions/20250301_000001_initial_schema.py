"""Initial schema for the wine list pipeline.

Revision ID: 0001
Revises:
Create Date: 2025-03-01

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Catalog wines
    op.create_table(
        "wines",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("restaurant_id", sa.String(64), nullable=True),
        # Identity
        sa.Column("producer", sa.String(255), nullable=False, server_default=""),
        sa.Column("wine_name", sa.String(255), nullable=False),
        sa.Column("vintage", sa.String(10), nullable=False, server_default=""),
        # Descriptive
        sa.Column("varietal", sa.String(255), nullable=True),
        sa.Column("region", sa.String(255), nullable=True),
        sa.Column("country", sa.String(100), nullable=True),
        sa.Column("appellation", sa.String(255), nullable=True),
        sa.Column("wine_type", sa.String(20), nullable=True),
        sa.Column("wine_style", sa.String(100), nullable=True),
        # Enrichment
        sa.Column("tasting_notes", sa.Text(), nullable=True),
        sa.Column("flavor_notes", sa.Text(), nullable=True),
        sa.Column("aroma_notes", sa.Text(), nullable=True),
        sa.Column("body_description", sa.Text(), nullable=True),
        sa.Column("texture", sa.Text(), nullable=True),
        sa.Column("balance", sa.Text(), nullable=True),
        sa.Column("tannin_level", sa.String(100), nullable=True),
        sa.Column("acidity", sa.String(100), nullable=True),
        sa.Column("finish_length", sa.String(100), nullable=True),
        sa.Column("food_pairing", sa.Text(), nullable=True),
        sa.Column("serving_temp", sa.String(100), nullable=True),
        sa.Column("aging_potential", sa.Text(), nullable=True),
        sa.Column("blend_description", sa.Text(), nullable=True),
        sa.Column("what_makes_special", sa.Text(), nullable=True),
        sa.Column("wine_rating", sa.Float(), nullable=True),
        # Status
        sa.Column("enrichment_status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("verified_source", sa.String(100), nullable=True),
        sa.Column("enrichment_started_at", sa.DateTime(), nullable=True),
        sa.Column("enrichment_completed_at", sa.DateTime(), nullable=True),
        sa.Column("enrichment_attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column("search_text", sa.Text(), nullable=False, server_default=""),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint(
            "restaurant_id",
            "wine_name",
            "producer",
            "vintage",
            name="uq_wines_restaurant_identity",
        ),
    )
    op.create_index("ix_wines_restaurant_id", "wines", ["restaurant_id"])
    op.create_index("ix_wines_producer", "wines", ["producer"])
    op.create_index("ix_wines_wine_name", "wines", ["wine_name"])
    op.create_index("ix_wines_vintage", "wines", ["vintage"])
    op.create_index("ix_wines_enrichment_status", "wines", ["enrichment_status"])
    op.create_index("ix_wines_search_text", "wines", ["search_text"])
    op.create_index("ix_wines_created_at", "wines", ["created_at"])

    # Restaurant associations
    op.create_table(
        "restaurant_wines",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("restaurant_id", sa.String(64), nullable=False),
        sa.Column("wine_id", sa.String(36), sa.ForeignKey("wines.id"), nullable=False),
        sa.Column("price", sa.Float(), nullable=True),
        sa.Column("by_the_glass", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("featured", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("inventory_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("custom_description", sa.Text(), nullable=True),
        sa.Column("added_by", sa.String(64), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("restaurant_id", "wine_id", name="uq_restaurant_wines_link"),
    )
    op.create_index("ix_restaurant_wines_restaurant_id", "restaurant_wines", ["restaurant_id"])
    op.create_index("ix_restaurant_wines_wine_id", "restaurant_wines", ["wine_id"])
    op.create_index("ix_restaurant_wines_active", "restaurant_wines", ["active"])

    # Upload audit records
    op.create_table(
        "wine_list_uploads",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("restaurant_id", sa.String(64), nullable=True),
        sa.Column("uploaded_by", sa.String(64), nullable=False),
        sa.Column("original_filename", sa.String(255), nullable=True),
        sa.Column("file_size", sa.Integer(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="processing"),
        sa.Column("total_lines", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("new_wines", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("duplicates_found", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("error_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("skipped_lines", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("processing_time_ms", sa.Integer(), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_wine_list_uploads_restaurant_id", "wine_list_uploads", ["restaurant_id"])
    op.create_index("ix_wine_list_uploads_status", "wine_list_uploads", ["status"])
    op.create_index("ix_wine_list_uploads_created_at", "wine_list_uploads", ["created_at"])


def downgrade() -> None:
    op.drop_table("wine_list_uploads")
    op.drop_table("restaurant_wines")
    op.drop_table("wines")
