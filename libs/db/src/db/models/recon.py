from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# SQLite only autoincrements INTEGER PRIMARY KEY columns
_PK = BigInteger().with_variant(Integer(), "sqlite")


class Base(DeclarativeBase):
    pass


# ---------------------------
# recon_results
# ---------------------------


class ReconResult(Base):
    """One result row of a reconciliation run, with batch metadata denormalized."""

    __tablename__ = "recon_results"

    id: Mapped[int] = mapped_column(_PK, primary_key=True, autoincrement=True)
    row_id: Mapped[str] = mapped_column(String(32), nullable=False)
    date: Mapped[str | None] = mapped_column(String, nullable=True)
    narration: Mapped[str | None] = mapped_column(Text, nullable=True)
    original_amount: Mapped[str | None] = mapped_column(String, nullable=True)
    signed_amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    is_negative: Mapped[bool] = mapped_column(Boolean, nullable=False)
    first15: Mapped[str | None] = mapped_column(String(15), nullable=True)
    last15: Mapped[str | None] = mapped_column(String(15), nullable=True)
    helper_key1: Mapped[str | None] = mapped_column(String, nullable=True)
    helper_key2: Mapped[str | None] = mapped_column(String, nullable=True)
    side: Mapped[str | None] = mapped_column(String(6), nullable=True)
    status: Mapped[str] = mapped_column(String(8), nullable=False)

    branch_code: Mapped[str] = mapped_column(String, nullable=False)
    branch_name: Mapped[str | None] = mapped_column(String, nullable=True)
    account_no: Mapped[str | None] = mapped_column(String, nullable=True)
    account_name: Mapped[str | None] = mapped_column(String, nullable=True)
    currency: Mapped[str | None] = mapped_column(String(8), nullable=True)
    proof_total: Mapped[Decimal | None] = mapped_column(Numeric(18, 2), nullable=True)
    system_balance: Mapped[Decimal | None] = mapped_column(Numeric(18, 2), nullable=True)
    maker: Mapped[str | None] = mapped_column(String, nullable=True)
    checker: Mapped[str | None] = mapped_column(String, nullable=True)
    rico: Mapped[str | None] = mapped_column(String, nullable=True)
    clco: Mapped[str | None] = mapped_column(String, nullable=True)

    user_id: Mapped[str | None] = mapped_column(String, nullable=True)
    sheet_name: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        CheckConstraint("status IN ('pending','matched','auto')", name="ck_recon_results_status"),
        CheckConstraint(
            "side IS NULL OR side IN ('debit','credit')", name="ck_recon_results_side"
        ),
        Index("ix_recon_results_sheet_user", "sheet_name", "user_id"),
    )


# ---------------------------
# recon_proofs
# ---------------------------


class ReconProof(Base):
    """A submitted per-sheet proof."""

    __tablename__ = "recon_proofs"

    id: Mapped[int] = mapped_column(_PK, primary_key=True, autoincrement=True)
    sheet_name: Mapped[str] = mapped_column(String, nullable=False)
    matched_sum: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    item_count: Mapped[int] = mapped_column(Integer, nullable=False)
    pending_sum: Mapped[Decimal | None] = mapped_column(Numeric(18, 2), nullable=True)
    system_balance: Mapped[Decimal | None] = mapped_column(Numeric(18, 2), nullable=True)
    branch_code: Mapped[str | None] = mapped_column(String, nullable=True)
    account_no: Mapped[str | None] = mapped_column(String, nullable=True)
    account_name: Mapped[str | None] = mapped_column(String, nullable=True)
    user_id: Mapped[str | None] = mapped_column(String, nullable=True)
    submitted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        CheckConstraint("item_count >= 0", name="ck_recon_proofs_item_count_nonneg"),
    )
