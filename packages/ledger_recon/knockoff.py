"""Intra-batch deduplication ("auto knock-off").

Removes same-file reversal/correction pairs (e.g. a teller's own debit and
credit of the same transaction) before a batch takes part in cross-batch
matching. Greedy and first-fit: a row pairs with the first later row that
qualifies, and a consumed row is never reconsidered.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from .fingerprints import keys_overlap
from .logging_setup import get_logger
from .models import TransactionRow

_logger = get_logger("ledger_recon.knockoff")


@dataclass(frozen=True, slots=True)
class KnockOffResult:
    remaining: tuple[TransactionRow, ...]
    knocked_off: tuple[TransactionRow, ...]


def _keys(row: TransactionRow) -> tuple[str, str]:
    return row.fingerprint_prefix, row.fingerprint_suffix


def is_knock_off_pair(a: TransactionRow, b: TransactionRow) -> bool:
    """Equal absolute amounts, strictly opposite signs and overlapping keys."""

    if a.amount_abs != b.amount_abs:
        return False
    # Zero amounts have sign 0, so the product is never negative for them.
    if a.sign * b.sign >= 0:
        return False
    return keys_overlap(_keys(a), _keys(b))


def auto_knock_off(rows: Sequence[TransactionRow]) -> KnockOffResult:
    """Pair off opposite-sign duplicates within a single batch.

    Knocked-off rows are returned as copies tagged ``status="auto"`` in pair
    order (``a`` then its partner ``b``); ``remaining`` preserves input order.
    """

    used: set[int] = set()
    knocked: list[TransactionRow] = []
    n = len(rows)
    for i in range(n):
        if i in used:
            continue
        a = rows[i]
        for j in range(i + 1, n):
            if j in used:
                continue
            b = rows[j]
            if is_knock_off_pair(a, b):
                used.add(i)
                used.add(j)
                knocked.append(a.with_status("auto", side=a.amount_type))
                knocked.append(b.with_status("auto", side=b.amount_type))
                break

    remaining = tuple(r for idx, r in enumerate(rows) if idx not in used)
    if knocked:
        _logger.info(
            "knockoff:done rows=%d pairs=%d remaining=%d",
            n,
            len(knocked) // 2,
            len(remaining),
        )
    return KnockOffResult(remaining=remaining, knocked_off=tuple(knocked))


__all__ = ["KnockOffResult", "auto_knock_off", "is_knock_off_pair"]
