from __future__ import annotations

from decimal import Decimal

from ledger_recon.ledger import ProofLedger
from ledger_recon.matching import build_result_rows, match_two_pass

from tests.helpers.rows import row


def _pending_rows():
    outcome = match_two_pass([row(-3000, "CHQ 0001", sheet="S1")], [row(2000, "DEPOSIT", sheet="S1")])
    return build_result_rows(outcome)


def test_locked_balance_equal_to_pending_sum_proves_zero_diff():
    ledger = ProofLedger()
    rows = _pending_rows()
    assert ledger.pending_sum(rows) == Decimal("5000")

    locked = ledger.lock_system_balance("5,000")
    assert locked.ok
    assert locked.value == Decimal("5000")
    assert ledger.locked
    assert ledger.diff(rows) == Decimal("0")
    assert ledger.is_balanced(rows)


def test_diff_is_none_without_balance():
    ledger = ProofLedger()
    rows = _pending_rows()
    assert ledger.diff(rows) is None
    assert not ledger.is_balanced(rows)


def test_lock_is_rejected_when_locked_or_invalid():
    ledger = ProofLedger()

    bad = ledger.lock_system_balance("abc")
    assert not bad.ok
    assert bad.error is not None and bad.error.kind == "validation"
    assert not ledger.locked
    assert ledger.system_balance() is None

    assert ledger.lock_system_balance("100").ok
    again = ledger.lock_system_balance("200")
    assert again.error is not None and again.error.kind == "validation"
    assert ledger.system_balance() == Decimal("100")

    assert ledger.unlock_system_balance().ok
    assert ledger.system_balance() is None
    assert ledger.lock_system_balance("200").ok
    assert ledger.system_balance() == Decimal("200")


def test_unlock_without_lock_fails():
    res = ProofLedger().unlock_system_balance()
    assert res.error is not None and res.error.kind == "validation"


def test_sheet_balance_takes_precedence_over_global():
    ledger = ProofLedger()
    ledger.register_batch("S1", item_count=2, system_balance=Decimal("750"))
    ledger.register_batch("S2", item_count=1)
    assert ledger.system_balance("S1") == Decimal("750")
    assert ledger.system_balance("S2") is None

    ledger.lock_system_balance("900", sheets=["S2"])
    assert ledger.system_balance("S2") == Decimal("900")
    assert ledger.system_balance("S1") == Decimal("750")
    assert ledger.system_balance("OTHER") == Decimal("900")
    assert ledger.locked_sheets == ["S2"]


def test_matched_summary_halves_the_listed_amount():
    outcome = match_two_pass([row(-400, "SALARY")], [row(400, "SALARY")])
    rows = build_result_rows(outcome)
    summary = ProofLedger.matched_summary(rows)
    assert summary.count == 2
    assert summary.amount == Decimal("400")


def test_record_run_and_submit():
    ledger = ProofLedger()
    outcome = match_two_pass([row(-400, "SALARY"), row(-10, "FEE")], [row(400, "SALARY")])
    rows = build_result_rows(outcome)

    record = ledger.record_run("S1", outcome.matched_pairs, rows)
    assert record.matched_sum == Decimal("400")
    assert record.item_count == 3
    assert record.submission_status == "pending"

    missing = ledger.submit("NOPE")
    assert missing.error is not None and missing.error.kind == "not_found"

    assert ledger.submit("S1").ok
    proof = ledger.proof("S1")
    assert proof is not None and proof.submission_status == "submitted"

    twice = ledger.submit("S1")
    assert twice.error is not None and twice.error.kind == "validation"
    assert not ledger.submit_all().ok


def test_manual_match_adds_to_matched_sum_and_reset_zeroes_it():
    ledger = ProofLedger()
    ledger.register_batch("S1", item_count=4)
    ledger.add_manual_match("S1", Decimal("200"))
    ledger.add_manual_match("S1", Decimal("50"))
    assert ledger.proof("S1").matched_sum == Decimal("250")  # type: ignore[union-attr]

    ledger.reset_matched()
    assert ledger.proof("S1").matched_sum == Decimal("0")  # type: ignore[union-attr]
    assert ledger.proof("S1").item_count == 4  # type: ignore[union-attr]


def test_submitted_proof_is_kept_when_the_sheet_comes_back():
    ledger = ProofLedger()
    outcome = match_two_pass([row(-400, "SALARY")], [row(400, "SALARY")])
    ledger.record_run("S1", outcome.matched_pairs, build_result_rows(outcome))
    assert ledger.submit("S1").ok
    submitted = ledger.proof("S1")

    refused = ledger.register_batch("S1", item_count=9, system_balance=Decimal("1"))
    assert refused.error is not None and refused.error.kind == "validation"
    assert ledger.proof("S1") == submitted
    assert ledger.system_balance("S1") is None

    assert ledger.record_run("S1", (), ()) == submitted
    assert ledger.is_submitted("S1")
    assert ledger.register_batch("S2", item_count=1).ok
    assert not ledger.is_submitted("S2")
