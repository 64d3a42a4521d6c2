from __future__ import annotations

import csv
from pathlib import Path

from openpyxl import load_workbook

from ledger_recon.export import EXPORT_COLUMNS, SHEET_TITLE, export_results, result_record
from ledger_recon.models import BatchMetadata
from ledger_recon.session import ReconciliationSession

from tests.helpers.rows import raw, row


def _reconciled_session() -> ReconciliationSession:
    session = ReconciliationSession()
    session.add_batch(
        [raw(-1000, "JOHN DOE TRANSFER"), raw(-300, "CHQ 0001")],
        sheet="S1",
        role="previous",
        metadata=BatchMetadata(branch_code="001", maker="ADA"),
    )
    session.add_batch([raw(1000, "JOHN DOE TRANSFER")], sheet="S1", role="current")
    session.lock_system_balance("300", sheets=["S1"])
    session.run_reconciliation("multi").unwrap()
    return session


def test_result_record_defaults():
    rec = result_record(row(-5, "FEE", sheet="GL1"), header=BatchMetadata())
    assert list(rec) == list(EXPORT_COLUMNS)
    assert rec["Currency"] == "NGN"
    assert rec["AccountName"] == "GL1"
    assert rec["Side"] == "debit"
    assert rec["Status"] == "pending"
    assert rec["ProofTotal"] is None


def test_export_csv(tmp_path: Path):
    session = _reconciled_session()
    target = tmp_path / "out" / "results.csv"

    res = export_results(session.result_rows, target, header=session.header, ledger=session.ledger)

    assert res.unwrap() == target
    with target.open(encoding="utf-8", newline="") as f:
        reader = csv.DictReader(f)
        assert tuple(reader.fieldnames or ()) == EXPORT_COLUMNS
        records = list(reader)
    assert len(records) == 3
    first = records[0]
    assert first["Narration"] == "JOHN DOE TRANSFER"
    assert first["Status"] == "matched"
    assert first["Side"] == "debit"
    assert first["IsNegative"] == "TRUE"
    assert first["BranchCode"] == "001"
    assert first["Maker"] == "ADA"
    assert first["ProofTotal"] == "1000"
    assert first["SystemBalance"] == "300"
    assert records[2]["Status"] == "pending"
    assert records[1]["IsNegative"] == "FALSE"


def test_export_xlsx(tmp_path: Path):
    session = _reconciled_session()
    target = tmp_path / "results.xlsx"

    assert export_results(session.result_rows, target, header=session.header).ok

    wb = load_workbook(target)
    try:
        ws = wb[SHEET_TITLE]
        values = [list(r) for r in ws.iter_rows(values_only=True)]
    finally:
        wb.close()
    assert tuple(values[0]) == EXPORT_COLUMNS
    assert len(values) == 4
    signed = values[1][EXPORT_COLUMNS.index("SignedAmount")]
    assert signed == -1000
    assert values[1][EXPORT_COLUMNS.index("IsNegative")] is True


def test_export_empty_result_set_is_rejected(tmp_path: Path):
    target = tmp_path / "none.csv"
    res = export_results((), target)
    assert res.error is not None and res.error.kind == "validation"
    assert not target.exists()
