# ruff: noqa: I001
"""Spending core tables and default keyword rules.

Revision ID: 0001_st_core
Revises: None
Create Date: 2025-12-14
"""

from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op


# revision identifiers, used by Alembic.
revision: str = "0001_st_core"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "st_purchases",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("occurred_at", sa.DateTime(timezone=False), nullable=False),
        sa.Column("merchant", sa.Text(), nullable=False),
        sa.Column("amount", sa.BigInteger(), nullable=False),
        sa.Column("category", sa.String(), nullable=False, server_default=sa.text("''")),
        sa.Column("payment_method", sa.String(), nullable=False),
        sa.Column("source_id", sa.String(), nullable=False),
        sa.Column("raw_text", sa.Text(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.CheckConstraint("amount >= 0", name="ck_st_purchase_amount_non_negative"),
        sa.UniqueConstraint("source_id", name="uq_st_purchases_source_id"),
    )
    # The sweep scans for empty categories; keep that lookup cheap.
    op.create_index("ix_st_purchases_category", "st_purchases", ["category"], unique=False)

    rules = op.create_table(
        "st_keyword_rules",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("keyword", sa.String(), nullable=True),
        sa.Column("category", sa.String(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
    )

    # Seed rules mirrored from spend_tracker.rules.DEFAULT_RULES
    op.bulk_insert(
        rules,
        [
            {"keyword": "Uber", "category": "Transporte"},
            {"keyword": "Jumbo", "category": "Supermercado"},
            {"keyword": "Netflix", "category": "Suscripciones"},
            {"keyword": "Paris", "category": "Tiendas"},
            {"keyword": "Starbucks", "category": "Café"},
        ],
    )


def downgrade() -> None:
    op.drop_table("st_keyword_rules")
    op.drop_index("ix_st_purchases_category", table_name="st_purchases")
    op.drop_table("st_purchases")
