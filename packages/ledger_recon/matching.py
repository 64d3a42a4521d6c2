"""Cross-batch greedy matching.

Credits are indexed under both of their fingerprint keys. Each debit, in input
order, tries its prefix key then its suffix key and takes the first credit in
that bucket that is still unconsumed and of strictly opposite sign. There is no
cost optimization: outcomes depend on key specificity and row order
(first-fit, not best-fit).

:func:`match_two_pass` re-runs the same pass over the first pass's leftovers.
The second pass is deterministic over inputs the first pass already failed to
pair, so under normal conditions it adds nothing; it is kept for parity with
the established reconciliation output.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from decimal import Decimal

from .logging_setup import get_logger
from .models import MatchedPair, TransactionRow

_logger = get_logger("ledger_recon.matching")


@dataclass(frozen=True, slots=True)
class MatchOutcome:
    matched_pairs: tuple[MatchedPair, ...]
    pending_debits: tuple[TransactionRow, ...]
    pending_credits: tuple[TransactionRow, ...]


def _build_credit_index(credits: Sequence[TransactionRow]) -> dict[str, list[int]]:
    index: dict[str, list[int]] = defaultdict(list)
    for pos, c in enumerate(credits):
        index[c.fingerprint_prefix].append(pos)
        if c.fingerprint_suffix != c.fingerprint_prefix:
            index[c.fingerprint_suffix].append(pos)
    return index


def match_pairs(
    debits: Sequence[TransactionRow], credits: Sequence[TransactionRow]
) -> MatchOutcome:
    """Single greedy left-to-right pass over ``debits``."""

    index = _build_credit_index(credits)
    used: set[int] = set()
    pairs: list[MatchedPair] = []
    pending_debits: list[TransactionRow] = []

    for d in debits:
        found: int | None = None
        if d.sign != 0:
            for key in (d.fingerprint_prefix, d.fingerprint_suffix):
                for pos in index.get(key, ()):
                    if pos in used or credits[pos].sign != -d.sign:
                        continue
                    found = pos
                    break
                if found is not None:
                    break
        if found is None:
            pending_debits.append(d)
            continue
        used.add(found)
        pairs.append(MatchedPair(debit=d, credit=credits[found]))

    pending_credits = tuple(c for pos, c in enumerate(credits) if pos not in used)
    return MatchOutcome(
        matched_pairs=tuple(pairs),
        pending_debits=tuple(pending_debits),
        pending_credits=pending_credits,
    )


def match_two_pass(
    debits: Sequence[TransactionRow], credits: Sequence[TransactionRow]
) -> MatchOutcome:
    """Run :func:`match_pairs` twice, the second time on the leftovers."""

    first = match_pairs(debits, credits)
    second = match_pairs(first.pending_debits, first.pending_credits)
    if second.matched_pairs:
        _logger.info("matching:second_pass_paired count=%d", len(second.matched_pairs))
    outcome = MatchOutcome(
        matched_pairs=first.matched_pairs + second.matched_pairs,
        pending_debits=second.pending_debits,
        pending_credits=second.pending_credits,
    )
    _logger.info(
        "matching:done debits=%d credits=%d pairs=%d pending_debits=%d pending_credits=%d",
        len(debits),
        len(credits),
        len(outcome.matched_pairs),
        len(outcome.pending_debits),
        len(outcome.pending_credits),
    )
    return outcome


def matched_sum(pairs: Iterable[MatchedPair]) -> Decimal:
    """Total attributed to a run: debit side only, never both legs."""

    return sum((p.debit.amount_abs for p in pairs), Decimal("0"))


def build_result_rows(
    outcome: MatchOutcome,
    *,
    debit_sheet: str | None = None,
    credit_sheet: str | None = None,
) -> tuple[TransactionRow, ...]:
    """Flatten an outcome into tagged result rows.

    Order: each matched pair (debit, then credit), then pending debits, then
    pending credits. ``debit_sheet``/``credit_sheet`` relabel the rows' sheet
    when given; otherwise each row keeps its own.
    """

    rows: list[TransactionRow] = []
    for p in outcome.matched_pairs:
        rows.append(
            p.debit.with_status(
                "matched", side="debit", sheet=debit_sheet, partner_id=p.credit.id
            )
        )
        rows.append(
            p.credit.with_status(
                "matched", side="credit", sheet=credit_sheet, partner_id=p.debit.id
            )
        )
    rows.extend(
        r.with_status("pending", side="debit", sheet=debit_sheet) for r in outcome.pending_debits
    )
    rows.extend(
        r.with_status("pending", side="credit", sheet=credit_sheet)
        for r in outcome.pending_credits
    )
    return tuple(rows)


__all__ = [
    "MatchOutcome",
    "build_result_rows",
    "match_pairs",
    "match_two_pass",
    "matched_sum",
]
