"""Initial schema for Wine Catalog.

Revision ID: 0001
Revises:
Create Date: 2026-10-19

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
    # Catalog wines, one row per dedup key
    op.create_table(
        "wines",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("dedup_key", sa.Text(), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("vintage", sa.Text(), nullable=True),
        sa.Column("producer", sa.Text(), nullable=True),
        sa.Column("region", sa.Text(), nullable=True),
        sa.Column("country", sa.Text(), nullable=True),
        sa.Column("varietals", sa.Text(), nullable=True),
        sa.Column("attributes_json", sa.Text(), default="{}"),
        sa.Column("verified", sa.Boolean(), default=False),
        sa.Column("verified_source", sa.String(100), nullable=True),
        sa.Column("profile_json", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_wines_dedup_key", "wines", ["dedup_key"], unique=True)
    op.create_index("ix_wines_name", "wines", ["name"])
    op.create_index("ix_wines_verified", "wines", ["verified"])

    # Restaurant associations
    op.create_table(
        "restaurant_wines",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("restaurant_id", sa.String(64), nullable=False),
        sa.Column("wine_id", sa.String(36), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("restaurant_id", "wine_id", name="uq_restaurant_wine"),
    )
    op.create_index("ix_restaurant_wines_restaurant_id", "restaurant_wines", ["restaurant_id"])
    op.create_index("ix_restaurant_wines_wine_id", "restaurant_wines", ["wine_id"])


def downgrade() -> None:
    op.drop_index("ix_restaurant_wines_wine_id", table_name="restaurant_wines")
    op.drop_index("ix_restaurant_wines_restaurant_id", table_name="restaurant_wines")
    op.drop_table("restaurant_wines")

    op.drop_index("ix_wines_verified", table_name="wines")
    op.drop_index("ix_wines_name", table_name="wines")
    op.drop_index("ix_wines_dedup_key", table_name="wines")
    op.drop_table("wines")
