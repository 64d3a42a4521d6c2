# ruff: noqa: I001
"""Persistence integration for ledger_recon.

Functions here write reconciliation results and submitted proofs to the shared
database owned by ``libs/db``. They rely on SQLAlchemy ORM models defined in
``db.models.recon`` and a session provided by ``db.client``.

Saving is best effort. ``save_results`` never raises for database trouble: on
``SQLAlchemyError`` (or a missing ``DATABASE_URL``) the rows are appended to
the local fallback file (see :mod:`ledger_recon.cache`) and the caller keeps
its in-memory result.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING, Any

from sqlalchemy import insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from db.client import session_scope
from db.models.recon import ReconProof, ReconResult
from .cache import append_fallback
from .export import result_records
from .ledger import ProofLedger
from .logging_setup import get_logger
from .models import BatchMetadata, TransactionRow

if TYPE_CHECKING:
    from .session import ReconciliationSession

CHUNK_SIZE = 200
DEFAULT_BRANCH = "DEFAULT_BRANCH"

_logger = get_logger("ledger_recon.persistence")


def _to_decimal_2(raw: Decimal | None) -> Decimal | None:
    if raw is None:
        return None
    return raw.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def _chunks[T](items: Sequence[T], size: int) -> Iterable[Sequence[T]]:
    for i in range(0, len(items), size):
        yield items[i : i + size]


def result_payload(
    row: TransactionRow,
    *,
    header: BatchMetadata,
    ledger: ProofLedger | None = None,
    user_id: str | None = None,
) -> dict[str, Any]:
    """Column values for one ``recon_results`` row."""

    proof = ledger.proof(row.sheet) if ledger is not None else None
    balance = ledger.system_balance(row.sheet) if ledger is not None else None
    return {
        "row_id": row.id,
        "date": row.date or None,
        "narration": row.narration or None,
        "original_amount": row.original_amount or None,
        "signed_amount": _to_decimal_2(row.signed_amount),
        "is_negative": row.is_negative,
        "first15": row.first15 or None,
        "last15": row.last15 or None,
        "helper_key1": row.fingerprint_prefix,
        "helper_key2": row.fingerprint_suffix,
        "side": row.side,
        "status": row.status,
        "branch_code": header.branch_code or DEFAULT_BRANCH,
        "branch_name": header.branch_name,
        "account_no": header.account_no,
        "account_name": header.account_name,
        "currency": header.currency,
        "proof_total": _to_decimal_2(proof.matched_sum) if proof is not None else None,
        "system_balance": _to_decimal_2(balance),
        "maker": header.maker,
        "checker": header.checker,
        "rico": header.rico,
        "clco": header.clco,
        "user_id": user_id,
        "sheet_name": row.sheet,
    }


def insert_results(
    session: Session,
    rows: Sequence[TransactionRow],
    *,
    header: BatchMetadata,
    ledger: ProofLedger | None = None,
    user_id: str | None = None,
    chunk_size: int = CHUNK_SIZE,
) -> int:
    """Insert result rows into ``recon_results`` in chunks; return the row count."""

    if chunk_size <= 0:
        raise ValueError("chunk_size must be a positive integer")
    total = 0
    for chunk in _chunks(rows, chunk_size):
        payloads = [
            result_payload(r, header=header, ledger=ledger, user_id=user_id) for r in chunk
        ]
        session.execute(insert(ReconResult), payloads)
        total += len(payloads)
        _logger.debug("persist:chunk_inserted size=%d total=%d", len(payloads), total)
    return total


def insert_proofs(
    session: Session,
    sheets: Iterable[str],
    *,
    ledger: ProofLedger,
    rows: Sequence[TransactionRow],
    header: BatchMetadata,
    user_id: str | None = None,
) -> int:
    count = 0
    for sheet in sheets:
        proof = ledger.proof(sheet)
        if proof is None:
            continue
        session.add(
            ReconProof(
                sheet_name=sheet,
                matched_sum=_to_decimal_2(proof.matched_sum),
                item_count=proof.item_count,
                pending_sum=_to_decimal_2(ledger.pending_sum(rows, sheet)),
                system_balance=_to_decimal_2(ledger.system_balance(sheet)),
                branch_code=header.branch_code,
                account_no=header.account_no,
                account_name=header.account_name,
                user_id=user_id,
            )
        )
        count += 1
    session.flush()
    return count


def _fallback_records(
    rows: Sequence[TransactionRow],
    *,
    header: BatchMetadata,
    ledger: ProofLedger | None,
    user_id: str | None,
) -> list[dict[str, Any]]:
    records = result_records(rows, header=header, ledger=ledger)
    for r, rec in zip(rows, records, strict=True):
        rec["RowId"] = r.id
        rec["UserId"] = user_id
    return records


def save_results(
    rows: Sequence[TransactionRow],
    *,
    header: BatchMetadata,
    ledger: ProofLedger | None = None,
    user_id: str | None = None,
    database_url: str | None = None,
) -> bool:
    """Persist ``rows``; return ``True`` when they reached the database.

    Without a ``user_id`` nothing is attributed, so rows go straight to the
    local fallback file.
    """

    if not rows:
        return True
    if user_id is None:
        _logger.info("persist:no_user rows=%d; writing local fallback", len(rows))
        append_fallback(_fallback_records(rows, header=header, ledger=ledger, user_id=None))
        return False
    try:
        with session_scope(database_url=database_url) as session:
            n = insert_results(session, rows, header=header, ledger=ledger, user_id=user_id)
    except (SQLAlchemyError, RuntimeError):
        _logger.warning(
            "persist:save_failed rows=%d; writing local fallback", len(rows), exc_info=True
        )
        append_fallback(_fallback_records(rows, header=header, ledger=ledger, user_id=user_id))
        return False
    _logger.info("persist:saved rows=%d user_id=%s", n, user_id)
    return True


def save_proofs(
    sheets: Sequence[str],
    *,
    ledger: ProofLedger,
    rows: Sequence[TransactionRow],
    header: BatchMetadata,
    user_id: str | None = None,
    database_url: str | None = None,
) -> bool:
    try:
        with session_scope(database_url=database_url) as session:
            n = insert_proofs(
                session, sheets, ledger=ledger, rows=rows, header=header, user_id=user_id
            )
    except (SQLAlchemyError, RuntimeError):
        _logger.warning("persist:proofs_failed sheets=%s", list(sheets), exc_info=True)
        return False
    _logger.info("persist:proofs_saved count=%d", n)
    return True


def results_persister(
    *, database_url: str | None = None
) -> Callable[[ReconciliationSession, tuple[TransactionRow, ...]], bool]:
    """Adapter for ``ReconciliationSession.run_reconciliation(persist=...)``."""

    def _persist(session: ReconciliationSession, rows: tuple[TransactionRow, ...]) -> bool:
        return save_results(
            rows,
            header=session.header,
            ledger=session.ledger,
            user_id=session.user_id,
            database_url=database_url,
        )

    return _persist


def proofs_persister(
    *, database_url: str | None = None
) -> Callable[[ReconciliationSession, list[str]], bool]:
    """Adapter for ``ReconciliationSession.submit(persist=...)``."""

    def _persist(session: ReconciliationSession, sheets: list[str]) -> bool:
        return save_proofs(
            sheets,
            ledger=session.ledger,
            rows=session.result_rows,
            header=session.header,
            user_id=session.user_id,
            database_url=database_url,
        )

    return _persist


__all__ = [
    "CHUNK_SIZE",
    "insert_proofs",
    "insert_results",
    "proofs_persister",
    "result_payload",
    "results_persister",
    "save_proofs",
    "save_results",
]
