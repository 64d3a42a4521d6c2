# ruff: noqa: I001
"""Reconciliation results and submitted proofs.

Revision ID: 0001_recon_core
Revises: None
Create Date: 2026-10-18
"""

from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op


# revision identifiers, used by Alembic.
revision: str = "0001_recon_core"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "recon_results",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("row_id", sa.String(length=32), nullable=False),
        sa.Column("date", sa.String(), nullable=True),
        sa.Column("narration", sa.Text(), nullable=True),
        sa.Column("original_amount", sa.String(), nullable=True),
        sa.Column("signed_amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("is_negative", sa.Boolean(), nullable=False),
        sa.Column("first15", sa.String(length=15), nullable=True),
        sa.Column("last15", sa.String(length=15), nullable=True),
        sa.Column("helper_key1", sa.String(), nullable=True),
        sa.Column("helper_key2", sa.String(), nullable=True),
        sa.Column("side", sa.String(length=6), nullable=True),
        sa.Column("status", sa.String(length=8), nullable=False),
        sa.Column("branch_code", sa.String(), nullable=False),
        sa.Column("branch_name", sa.String(), nullable=True),
        sa.Column("account_no", sa.String(), nullable=True),
        sa.Column("account_name", sa.String(), nullable=True),
        sa.Column("currency", sa.String(length=8), nullable=True),
        sa.Column("proof_total", sa.Numeric(18, 2), nullable=True),
        sa.Column("system_balance", sa.Numeric(18, 2), nullable=True),
        sa.Column("maker", sa.String(), nullable=True),
        sa.Column("checker", sa.String(), nullable=True),
        sa.Column("rico", sa.String(), nullable=True),
        sa.Column("clco", sa.String(), nullable=True),
        sa.Column("user_id", sa.String(), nullable=True),
        sa.Column("sheet_name", sa.String(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.CheckConstraint(
            "status IN ('pending','matched','auto')", name="ck_recon_results_status"
        ),
        sa.CheckConstraint(
            "side IS NULL OR side IN ('debit','credit')", name="ck_recon_results_side"
        ),
    )
    op.create_index("ix_recon_results_sheet_user", "recon_results", ["sheet_name", "user_id"])

    op.create_table(
        "recon_proofs",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("sheet_name", sa.String(), nullable=False),
        sa.Column("matched_sum", sa.Numeric(18, 2), nullable=False),
        sa.Column("item_count", sa.Integer(), nullable=False),
        sa.Column("pending_sum", sa.Numeric(18, 2), nullable=True),
        sa.Column("system_balance", sa.Numeric(18, 2), nullable=True),
        sa.Column("branch_code", sa.String(), nullable=True),
        sa.Column("account_no", sa.String(), nullable=True),
        sa.Column("account_name", sa.String(), nullable=True),
        sa.Column("user_id", sa.String(), nullable=True),
        sa.Column(
            "submitted_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.CheckConstraint("item_count >= 0", name="ck_recon_proofs_item_count_nonneg"),
    )


def downgrade() -> None:
    op.drop_table("recon_proofs")
    op.drop_index("ix_recon_results_sheet_user", table_name="recon_results")
    op.drop_table("recon_results")
