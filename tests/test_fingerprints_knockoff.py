from __future__ import annotations

from decimal import Decimal

from ledger_recon.fingerprints import fingerprint_keys, keys_overlap, narration_ends, render_amount
from ledger_recon.knockoff import auto_knock_off, is_knock_off_pair
from ledger_recon.session import ReconciliationSession

from tests.helpers.rows import raw, row


def test_render_amount_drops_trailing_zeros():
    assert render_amount(Decimal("1000.00")) == "1000"
    assert render_amount(Decimal("1000.50")) == "1000.5"
    assert render_amount(Decimal("0.00")) == "0"


def test_fingerprint_keys_use_both_narration_ends():
    assert fingerprint_keys("JOHN DOE TRANSFER", Decimal("1000")) == (
        "JOHN DOE TRANSF_1000",
        "HN DOE TRANSFER_1000",
    )
    # Short narrations produce identical prefix and suffix parts
    assert narration_ends("atm") == ("ATM", "ATM")
    assert narration_ends("") == ("", "")


def test_keys_overlap_checks_cross_combinations():
    assert keys_overlap(("A_1", "B_1"), ("C_1", "A_1"))
    assert not keys_overlap(("A_1", "B_1"), ("C_1", "D_1"))


def test_knock_off_pair_requires_opposite_signs_and_equal_amounts():
    debit = row(-500, "X")
    credit = row(500, "X")
    assert is_knock_off_pair(debit, credit)
    assert not is_knock_off_pair(debit, row(-500, "X"))
    assert not is_knock_off_pair(debit, row(400, "X"))
    assert not is_knock_off_pair(row(0, "X"), row(0, "X"))
    assert not is_knock_off_pair(debit, row(500, "SOMETHING ELSE"))


def test_auto_knock_off_is_first_fit_and_keeps_order():
    rows = [
        row(-500, "X", row_id="a"),
        row(100, "FEE", row_id="b"),
        row(500, "X", row_id="c"),
        row(500, "X", row_id="d"),
    ]
    result = auto_knock_off(rows)

    assert [r.id for r in result.knocked_off] == ["a", "c"]
    assert all(r.status == "auto" for r in result.knocked_off)
    assert [r.side for r in result.knocked_off] == ["debit", "credit"]
    assert [r.id for r in result.remaining] == ["b", "d"]
    # Inputs are not mutated
    assert rows[0].status == "pending"


def test_auto_knock_off_without_pairs_returns_everything():
    rows = [row(10, "A"), row(20, "B")]
    result = auto_knock_off(rows)
    assert result.knocked_off == ()
    assert result.remaining == tuple(rows)


def test_knocked_off_rows_stay_out_of_cross_batch_counts():
    session = ReconciliationSession()
    session.add_batch([raw(-120, "CHQ 0001")], sheet="S1", role="previous")
    added = session.add_batch([raw(-500, "X"), raw(500, "X")], sheet="S1", role="current")
    batch = added.unwrap()
    assert len(batch.knocked_off) == 2
    assert batch.remaining == ()
    assert len(batch.rows) == 2

    report = session.run_reconciliation("multi").unwrap()

    assert report.auto_rows == 2
    assert report.matched_pairs == 0
    assert session.summary.matched_count == 0
    assert session.summary.pending_debit_count == 1
    assert session.summary.pending_credit_count == 0
    auto = [r for r in session.result_rows if r.status == "auto"]
    assert len(auto) == 2
    assert session.pending_sum() == Decimal("120")
