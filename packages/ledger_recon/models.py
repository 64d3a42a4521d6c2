"""Data models and type aliases for ``ledger_recon``.

Raw import rows (:data:`TransactionRecord`) are opaque mappings straight from
a spreadsheet or CSV. They are connected to the closed
:class:`TransactionRow` model only through
:func:`ledger_recon.normalizers.normalize_row`.

Every model here is a frozen dataclass. Matching and manual operations never
mutate a row; they build copies with :func:`dataclasses.replace`, keyed by the
row ``id`` rather than by position.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, fields, replace
from decimal import Decimal
from typing import Any, Literal, NamedTuple

# ---------------------------------------------------------------------------
# Raw records and literals
# ---------------------------------------------------------------------------

type TransactionRecord = Mapping[str, Any]
"""A single raw row: column name -> raw cell value (text, number or date)."""

Side = Literal["debit", "credit"]
Status = Literal["pending", "matched", "auto"]
BatchRole = Literal["previous", "current", "all"]
SubmissionStatus = Literal["pending", "submitted"]


# ---------------------------------------------------------------------------
# Canonical transaction row
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class TransactionRow:
    """One canonical ledger entry.

    ``signed_amount`` carries the only sign information: negative is a debit,
    positive a credit, zero is unknown and never matched. ``amount_type`` is
    derived strictly from that sign at normalization time, while ``side`` is
    assigned when the row enters a matching run (a row can be relabelled when
    merged with another sheet's rows). ``partner_id`` names the row a
    ``matched`` row was paired with and is cleared on every status change.
    """

    id: str
    date: str
    narration: str
    original_amount: str
    signed_amount: Decimal
    amount_abs: Decimal
    amount_type: Side
    is_negative: bool
    first15: str
    last15: str
    fingerprint_prefix: str
    fingerprint_suffix: str
    sheet: str
    status: Status = "pending"
    side: Side | None = None
    age: str | None = None
    partner_id: str | None = None

    @property
    def sign(self) -> int:
        if self.signed_amount > 0:
            return 1
        if self.signed_amount < 0:
            return -1
        return 0

    def with_status(
        self,
        status: Status,
        *,
        side: Side | None = None,
        sheet: str | None = None,
        partner_id: str | None = None,
    ) -> TransactionRow:
        """Return a copy tagged with ``status`` (and optionally ``side``/``sheet``)."""

        changes: dict[str, Any] = {"status": status, "partner_id": partner_id}
        if side is not None:
            changes["side"] = side
        if sheet is not None:
            changes["sheet"] = sheet
        return replace(self, **changes)


class MatchedPair(NamedTuple):
    """A debit row and a credit row judged to be the same transaction."""

    debit: TransactionRow
    credit: TransactionRow


# ---------------------------------------------------------------------------
# Batches and header metadata
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class BatchMetadata:
    """Header-like metadata shared by every row of a batch.

    Denormalized onto exported and persisted rows for audit.
    """

    branch_code: str | None = None
    branch_name: str | None = None
    account_name: str | None = None
    account_no: str | None = None
    currency: str | None = None
    maker: str | None = None
    checker: str | None = None
    rico: str | None = None
    clco: str | None = None
    teller_id: str | None = None
    system_balance: Decimal | None = None

    def fill_missing(self, other: BatchMetadata) -> BatchMetadata:
        """Return a copy where empty fields are taken from ``other``."""

        changes: dict[str, Any] = {}
        for f in fields(self):
            mine = getattr(self, f.name)
            if mine is None or mine == "":
                theirs = getattr(other, f.name)
                if theirs is not None and theirs != "":
                    changes[f.name] = theirs
        return replace(self, **changes) if changes else self


@dataclass(frozen=True, slots=True)
class Batch:
    """An uploaded set of rows sharing one source.

    ``rows`` is immutable once stored. For ``current`` batches ``remaining``
    holds the rows left after auto knock-off and ``knocked_off`` the rows it
    consumed; for other roles ``remaining`` equals ``rows``.
    """

    sheet: str
    role: BatchRole
    rows: tuple[TransactionRow, ...]
    metadata: BatchMetadata = field(default_factory=BatchMetadata)
    proof_total: Decimal = Decimal("0")
    file_name: str | None = None
    remaining: tuple[TransactionRow, ...] = ()
    knocked_off: tuple[TransactionRow, ...] = ()


# ---------------------------------------------------------------------------
# Aggregates
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ReconciliationSummary:
    matched_count: int = 0
    pending_debit_count: int = 0
    pending_credit_count: int = 0

    def plus(
        self, *, matched: int, pending_debits: int, pending_credits: int
    ) -> ReconciliationSummary:
        return ReconciliationSummary(
            matched_count=self.matched_count + matched,
            pending_debit_count=self.pending_debit_count + pending_debits,
            pending_credit_count=self.pending_credit_count + pending_credits,
        )

    def minus(self, other: ReconciliationSummary) -> ReconciliationSummary:
        """Subtract ``other``; counts never go below zero."""

        return ReconciliationSummary(
            matched_count=max(0, self.matched_count - other.matched_count),
            pending_debit_count=max(0, self.pending_debit_count - other.pending_debit_count),
            pending_credit_count=max(0, self.pending_credit_count - other.pending_credit_count),
        )


@dataclass(frozen=True, slots=True)
class ProofRecord:
    matched_sum: Decimal = Decimal("0")
    item_count: int = 0
    submission_status: SubmissionStatus = "pending"


class MatchedSummary(NamedTuple):
    count: int
    amount: Decimal


__all__ = [
    "Batch",
    "BatchMetadata",
    "BatchRole",
    "MatchedPair",
    "MatchedSummary",
    "ProofRecord",
    "ReconciliationSummary",
    "Side",
    "Status",
    "SubmissionStatus",
    "TransactionRecord",
    "TransactionRow",
]
