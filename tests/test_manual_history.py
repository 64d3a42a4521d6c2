from __future__ import annotations

from decimal import Decimal

import pytest

from ledger_recon.history import UndoHistory, UndoSnapshot
from ledger_recon.models import ReconciliationSummary
from ledger_recon.session import ReconciliationSession

from tests.helpers.rows import raw


def _session_with_pending(debit_narration: str, credit_narration: str) -> ReconciliationSession:
    """One pending debit and one pending credit of 200 on sheet S1."""

    session = ReconciliationSession()
    session.add_batch([raw(-200, debit_narration)], sheet="S1", role="previous")
    session.add_batch([raw(200, credit_narration)], sheet="S1", role="current")
    session.run_reconciliation("multi").unwrap()
    assert len(session.pending_debits()) == 1
    assert len(session.pending_credits()) == 1
    return session


# ---------------------------------------------------------------------------
# Manual match
# ---------------------------------------------------------------------------


def test_manual_match_without_candidates_changes_nothing():
    session = _session_with_pending("POS LAGOS", "CASH DEPOSIT")
    before_rows = session.result_rows
    before_summary = session.summary

    res = session.manual_match("200", "ATM")

    assert not res.ok
    assert res.error is not None and res.error.kind == "no_candidates"
    assert session.result_rows == before_rows
    assert session.summary == before_summary
    assert len(session.history) == 0


def test_manual_match_needs_both_sides():
    session = _session_with_pending("ATM WDL IKEJA", "CASH DEPOSIT")
    res = session.manual_match(200, "atm")
    assert res.error is not None and res.error.kind == "no_candidates"


@pytest.mark.parametrize(
    "amount,fragment",
    [("abc", "ATM"), ("0", "ATM"), ("-5", "ATM"), ("200", ""), ("200", None)],
)
def test_manual_match_rejects_bad_input(amount, fragment):
    session = _session_with_pending("REVERSAL ATM 001", "ATM REFUND")
    res = session.manual_match(amount, fragment)
    assert res.error is not None and res.error.kind == "validation"
    assert len(session.history) == 0


def test_manual_match_pairs_first_candidates_and_can_be_undone():
    session = _session_with_pending("REVERSAL ATM 001", "ATM REFUND")
    before_rows = session.result_rows
    before_summary = session.summary
    assert before_summary == ReconciliationSummary(0, 1, 1)

    res = session.manual_match("200", "atm")

    assert res.ok and res.value is not None
    assert res.value.amount == Decimal("200")
    assert res.value.debit.status == "matched"
    assert res.value.credit.status == "matched"
    assert res.value.debit.partner_id == res.value.credit.id
    assert res.value.credit.partner_id == res.value.debit.id
    assert session.pending_debits() == []
    assert session.pending_credits() == []
    assert session.summary == ReconciliationSummary(1, 0, 0)
    assert session.ledger.proof("S1").matched_sum == Decimal("200")  # type: ignore[union-attr]
    assert len(session.history) == 1

    undone = session.undo()
    assert undone.ok
    assert session.result_rows == before_rows
    assert session.summary == before_summary
    assert session.ledger.proof("S1").matched_sum == Decimal("0")  # type: ignore[union-attr]


def test_manual_match_only_touches_pending_rows():
    session = _session_with_pending("REVERSAL ATM 001", "ATM REFUND")
    session.manual_match("200", "ATM").unwrap()
    again = session.manual_match("200", "ATM")
    assert again.error is not None and again.error.kind == "no_candidates"


# ---------------------------------------------------------------------------
# Undo history
# ---------------------------------------------------------------------------


def _snap(n: int) -> UndoSnapshot:
    return UndoSnapshot(result_rows=(), summary=ReconciliationSummary(matched_count=n))


def test_history_drops_oldest_past_capacity():
    history = UndoHistory(5)
    for n in range(1, 7):
        history.push(_snap(n))

    assert len(history) == 5
    popped = [history.pop() for _ in range(5)]
    assert [s.summary.matched_count for s in popped if s is not None] == [6, 5, 4, 3, 2]
    assert history.pop() is None


def test_history_rejects_non_positive_capacity():
    with pytest.raises(ValueError):
        UndoHistory(0)


def test_session_undo_reports_nothing_to_undo_after_capacity():
    session = _session_with_pending("REVERSAL ATM 001", "ATM REFUND")
    for _ in range(6):
        assert session.reset_matches().ok
    assert len(session.history) == 5

    for _ in range(5):
        assert session.undo().ok
    last = session.undo()
    assert not last.ok
    assert last.error is not None and last.error.kind == "nothing_to_undo"
