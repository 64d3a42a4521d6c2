"""Operator-directed matching by amount and narration fragment.

This path bypasses fingerprint keys: the operator's narration fragment is the
disambiguation signal. Among pending rows with the exact amount whose
narration contains the fragment (case-insensitive), the first debit and the
first credit in result-set order are matched.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal

from .errors import OperationResult
from .logging_setup import get_logger
from .models import TransactionRow
from .normalizers import parse_strict_amount

_logger = get_logger("ledger_recon.manual")


@dataclass(frozen=True, slots=True)
class ManualMatch:
    debit: TransactionRow
    credit: TransactionRow
    amount: Decimal
    result_rows: tuple[TransactionRow, ...]


def pending_debits(rows: Sequence[TransactionRow]) -> list[TransactionRow]:
    return [r for r in rows if r.status == "pending" and r.signed_amount < 0]


def pending_credits(rows: Sequence[TransactionRow]) -> list[TransactionRow]:
    return [r for r in rows if r.status == "pending" and r.signed_amount > 0]


def pending_amounts(rows: Sequence[TransactionRow]) -> list[Decimal]:
    """Distinct absolute amounts across pending debits and credits, ascending."""

    amounts = {r.amount_abs for r in pending_debits(rows)}
    amounts.update(r.amount_abs for r in pending_credits(rows))
    return sorted(amounts)


def find_manual_candidates(
    rows: Sequence[TransactionRow], amount: Decimal, fragment: str
) -> tuple[list[TransactionRow], list[TransactionRow]]:
    needle = fragment.strip().casefold()

    def _hit(r: TransactionRow) -> bool:
        return r.amount_abs == amount and needle in r.narration.casefold()

    return (
        [r for r in pending_debits(rows) if _hit(r)],
        [r for r in pending_credits(rows) if _hit(r)],
    )


def commit_manual_match(
    rows: Sequence[TransactionRow], debit_id: str, credit_id: str
) -> OperationResult[tuple[TransactionRow, ...]]:
    """Mark the two rows ``matched`` by id, returning a new result tuple.

    A missing id is an internal-consistency error; ``rows`` is not touched.
    """

    positions = {r.id: pos for pos, r in enumerate(rows)}
    d_pos = positions.get(debit_id)
    c_pos = positions.get(credit_id)
    if d_pos is None or c_pos is None:
        missing = debit_id if d_pos is None else credit_id
        _logger.error("manual:commit_missing_row id=%s", missing)
        return OperationResult.failure("internal", f"row {missing!r} not found in result set")

    updated = list(rows)
    updated[d_pos] = updated[d_pos].with_status("matched", side="debit", partner_id=credit_id)
    updated[c_pos] = updated[c_pos].with_status("matched", side="credit", partner_id=debit_id)
    return OperationResult.success(tuple(updated))


def manual_match(
    rows: Sequence[TransactionRow], amount: object, fragment: str | None
) -> OperationResult[ManualMatch]:
    """Validate operator input, pick the first candidates and commit them."""

    value = parse_strict_amount(amount)
    if value is None or value <= 0:
        return OperationResult.failure("validation", f"enter a valid positive amount, got {amount!r}")
    needle = (fragment or "").strip()
    if not needle:
        return OperationResult.failure("validation", "enter a narration fragment")

    debits, credits = find_manual_candidates(rows, value, needle)
    if not debits or not credits:
        return OperationResult.failure(
            "no_candidates", f"no matching rows for amount {value} and narration {needle!r}"
        )

    debit, credit = debits[0], credits[0]
    committed = commit_manual_match(rows, debit.id, credit.id)
    if not committed.ok:
        return OperationResult(error=committed.error)
    result_rows = committed.unwrap()
    _logger.info(
        "manual:matched amount=%s debit_id=%s credit_id=%s", value, debit.id, credit.id
    )
    return OperationResult.success(
        ManualMatch(
            debit=next(r for r in result_rows if r.id == debit.id),
            credit=next(r for r in result_rows if r.id == credit.id),
            amount=value,
            result_rows=result_rows,
        )
    )


__all__ = [
    "ManualMatch",
    "commit_manual_match",
    "find_manual_candidates",
    "manual_match",
    "pending_amounts",
    "pending_credits",
    "pending_debits",
]
