"""Local cache: session snapshots and the persistence fallback file.

Layout (relative to the cache root, default ``./.cache``):

- ``<cache_root>/session.json``: default session snapshot location
- ``<cache_root>/recon_results_temp.jsonl``: result rows that could not be
  written to the database, one JSON object per line, appended

Snapshots are validated with Pydantic on read (strict, unknown keys rejected)
and written atomically: ``.tmp`` first, then ``os.replace`` into place.
Amounts are stored as strings so ``Decimal`` values round-trip exactly.
"""

from __future__ import annotations

import contextlib
import json
import os
from collections.abc import Iterable, Mapping
from decimal import Decimal
from os import PathLike
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, ValidationError

from .logging_setup import get_logger
from .models import Batch, BatchMetadata, ProofRecord, ReconciliationSummary, TransactionRow

# Bump only when the on-disk snapshot shape changes.
SCHEMA_VERSION: int = 1

FALLBACK_FILENAME = "recon_results_temp.jsonl"
SNAPSHOT_FILENAME = "session.json"

_logger = get_logger("ledger_recon.cache")


# ----------------------------------------------------------------------------
# Cache root
# ----------------------------------------------------------------------------


def get_cache_root() -> Path:
    """Return the cache root directory.

    Default: ``./.cache`` under the current working directory.
    Override: ``RECON_CACHE_DIR`` environment variable (absolute or relative).
    """

    root = os.getenv("RECON_CACHE_DIR")
    if root and root.strip():
        return Path(root).expanduser().resolve()
    return (Path.cwd() / ".cache").resolve()


def default_snapshot_path() -> Path:
    return get_cache_root() / SNAPSHOT_FILENAME


def fallback_path() -> Path:
    return get_cache_root() / FALLBACK_FILENAME


# ----------------------------------------------------------------------------
# Snapshot schema
# ----------------------------------------------------------------------------


class RowModel(BaseModel):
    model_config = ConfigDict(strict=True, extra="forbid")

    id: str
    date: str
    narration: str
    original_amount: str
    signed_amount: str
    amount_abs: str
    amount_type: Literal["debit", "credit"]
    is_negative: bool
    first15: str
    last15: str
    fingerprint_prefix: str
    fingerprint_suffix: str
    sheet: str
    status: Literal["pending", "matched", "auto"]
    side: Literal["debit", "credit"] | None = None
    age: str | None = None
    partner_id: str | None = None


class MetadataModel(BaseModel):
    model_config = ConfigDict(strict=True, extra="forbid", str_strip_whitespace=True)

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
    system_balance: str | None = None


class BatchModel(BaseModel):
    model_config = ConfigDict(strict=True, extra="forbid")

    sheet: str
    role: Literal["previous", "current", "all"]
    rows: list[RowModel]
    metadata: MetadataModel
    proof_total: str
    file_name: str | None = None
    remaining_ids: list[str]
    knocked_off: list[RowModel]


class ProofModel(BaseModel):
    model_config = ConfigDict(strict=True, extra="forbid")

    matched_sum: str
    item_count: int
    submission_status: Literal["pending", "submitted"]


class SummaryModel(BaseModel):
    model_config = ConfigDict(strict=True, extra="forbid")

    matched_count: int
    pending_debit_count: int
    pending_credit_count: int


class SessionSnapshot(BaseModel):
    """Top-level schema for a saved reconciliation session."""

    model_config = ConfigDict(strict=True, extra="forbid")

    schema_version: int
    user_id: str | None = None
    header: MetadataModel

    batches: list[BatchModel]
    active_previous: str | None = None
    active_current: str | None = None

    result_rows: list[RowModel]
    summary: SummaryModel

    proofs: dict[str, ProofModel]
    sheet_balances: dict[str, str]
    system_balance: str | None = None
    locked: bool
    locked_sheets: list[str]


# ----------------------------------------------------------------------------
# Model <-> domain conversion
# ----------------------------------------------------------------------------


def _dec(v: Decimal | None) -> str | None:
    return None if v is None else str(v)


def row_to_model(row: TransactionRow) -> RowModel:
    return RowModel(
        id=row.id,
        date=row.date,
        narration=row.narration,
        original_amount=row.original_amount,
        signed_amount=str(row.signed_amount),
        amount_abs=str(row.amount_abs),
        amount_type=row.amount_type,
        is_negative=row.is_negative,
        first15=row.first15,
        last15=row.last15,
        fingerprint_prefix=row.fingerprint_prefix,
        fingerprint_suffix=row.fingerprint_suffix,
        sheet=row.sheet,
        status=row.status,
        side=row.side,
        age=row.age,
        partner_id=row.partner_id,
    )


def row_from_model(m: RowModel) -> TransactionRow:
    return TransactionRow(
        id=m.id,
        date=m.date,
        narration=m.narration,
        original_amount=m.original_amount,
        signed_amount=Decimal(m.signed_amount),
        amount_abs=Decimal(m.amount_abs),
        amount_type=m.amount_type,
        is_negative=m.is_negative,
        first15=m.first15,
        last15=m.last15,
        fingerprint_prefix=m.fingerprint_prefix,
        fingerprint_suffix=m.fingerprint_suffix,
        sheet=m.sheet,
        status=m.status,
        side=m.side,
        age=m.age,
        partner_id=m.partner_id,
    )


def metadata_to_model(meta: BatchMetadata) -> MetadataModel:
    return MetadataModel(
        branch_code=meta.branch_code,
        branch_name=meta.branch_name,
        account_name=meta.account_name,
        account_no=meta.account_no,
        currency=meta.currency,
        maker=meta.maker,
        checker=meta.checker,
        rico=meta.rico,
        clco=meta.clco,
        teller_id=meta.teller_id,
        system_balance=_dec(meta.system_balance),
    )


def metadata_from_model(m: MetadataModel) -> BatchMetadata:
    return BatchMetadata(
        branch_code=m.branch_code,
        branch_name=m.branch_name,
        account_name=m.account_name,
        account_no=m.account_no,
        currency=m.currency,
        maker=m.maker,
        checker=m.checker,
        rico=m.rico,
        clco=m.clco,
        teller_id=m.teller_id,
        system_balance=None if m.system_balance is None else Decimal(m.system_balance),
    )


def batch_to_model(batch: Batch) -> BatchModel:
    return BatchModel(
        sheet=batch.sheet,
        role=batch.role,
        rows=[row_to_model(r) for r in batch.rows],
        metadata=metadata_to_model(batch.metadata),
        proof_total=str(batch.proof_total),
        file_name=batch.file_name,
        remaining_ids=[r.id for r in batch.remaining],
        knocked_off=[row_to_model(r) for r in batch.knocked_off],
    )


def batch_from_model(m: BatchModel) -> Batch:
    rows = tuple(row_from_model(r) for r in m.rows)
    by_id = {r.id: r for r in rows}
    return Batch(
        sheet=m.sheet,
        role=m.role,
        rows=rows,
        metadata=metadata_from_model(m.metadata),
        proof_total=Decimal(m.proof_total),
        file_name=m.file_name,
        remaining=tuple(by_id[i] for i in m.remaining_ids if i in by_id),
        knocked_off=tuple(row_from_model(r) for r in m.knocked_off),
    )


def proof_to_model(p: ProofRecord) -> ProofModel:
    return ProofModel(
        matched_sum=str(p.matched_sum),
        item_count=p.item_count,
        submission_status=p.submission_status,
    )


def proof_from_model(m: ProofModel) -> ProofRecord:
    return ProofRecord(
        matched_sum=Decimal(m.matched_sum),
        item_count=m.item_count,
        submission_status=m.submission_status,
    )


def summary_to_model(s: ReconciliationSummary) -> SummaryModel:
    return SummaryModel(
        matched_count=s.matched_count,
        pending_debit_count=s.pending_debit_count,
        pending_credit_count=s.pending_credit_count,
    )


def summary_from_model(m: SummaryModel) -> ReconciliationSummary:
    return ReconciliationSummary(
        matched_count=m.matched_count,
        pending_debit_count=m.pending_debit_count,
        pending_credit_count=m.pending_credit_count,
    )


# ----------------------------------------------------------------------------
# Snapshot I/O
# ----------------------------------------------------------------------------


def _atomic_write_text(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    try:
        tmp.write_text(text, encoding="utf-8")
        os.replace(tmp, path)
    except Exception:
        with contextlib.suppress(FileNotFoundError):
            tmp.unlink()
        raise


def write_snapshot(snapshot: SessionSnapshot, path: str | PathLike[str] | None = None) -> Path:
    target = Path(path) if path is not None else default_snapshot_path()
    _atomic_write_text(
        target,
        json.dumps(snapshot.model_dump(mode="json"), ensure_ascii=False, separators=(",", ":")),
    )
    _logger.debug("snapshot:written path=%s rows=%d", os.fspath(target), len(snapshot.result_rows))
    return target


def read_snapshot(path: str | PathLike[str] | None = None) -> SessionSnapshot | None:
    """Return the stored snapshot, or ``None`` when missing, unreadable or stale."""

    target = Path(path) if path is not None else default_snapshot_path()
    if not target.exists():
        return None
    try:
        parsed = SessionSnapshot.model_validate_json(target.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, ValidationError):
        _logger.warning("snapshot:read_failed path=%s", os.fspath(target), exc_info=True)
        return None
    if parsed.schema_version != SCHEMA_VERSION:
        _logger.info(
            "snapshot:schema_mismatch path=%s found=%d expected=%d",
            os.fspath(target),
            parsed.schema_version,
            SCHEMA_VERSION,
        )
        return None
    return parsed


# ----------------------------------------------------------------------------
# Persistence fallback
# ----------------------------------------------------------------------------


def append_fallback(records: Iterable[Mapping[str, Any]]) -> Path:
    """Append JSON-serializable records to the fallback JSONL file."""

    path = fallback_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    count = 0
    with path.open("a", encoding="utf-8") as f:
        for rec in records:
            f.write(json.dumps(dict(rec), ensure_ascii=False, default=str, separators=(",", ":")))
            f.write("\n")
            count += 1
    _logger.info("fallback:appended path=%s records=%d", os.fspath(path), count)
    return path


def read_fallback() -> list[dict[str, Any]]:
    path = fallback_path()
    if not path.exists():
        return []
    out: list[dict[str, Any]] = []
    with path.open(encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if line:
                out.append(json.loads(line))
    return out


__all__ = [
    "FALLBACK_FILENAME",
    "SCHEMA_VERSION",
    "SessionSnapshot",
    "append_fallback",
    "batch_from_model",
    "batch_to_model",
    "default_snapshot_path",
    "fallback_path",
    "get_cache_root",
    "metadata_from_model",
    "metadata_to_model",
    "proof_from_model",
    "proof_to_model",
    "read_fallback",
    "read_snapshot",
    "row_from_model",
    "row_to_model",
    "summary_from_model",
    "summary_to_model",
    "write_snapshot",
]
