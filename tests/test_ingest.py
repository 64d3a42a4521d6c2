from __future__ import annotations

from decimal import Decimal
from pathlib import Path

import pytest
from openpyxl import Workbook

from ledger_recon.ingest.adapters.statement_sheet import extract_metadata, find_header, read_sheet
from ledger_recon.ingest.utils import (
    PendingImportContext,
    list_sheet_names,
    load_statement,
    load_workbook_grids,
)
from ledger_recon.session import ReconciliationSession
from ledger_recon.workflows.reconcile_flow import load_side

STATEMENT_GRID = [
    ["Branch Code", "001"],
    ["Account No", "", "0123456789"],
    ["Currency", "NGN"],
    ["Maker", "ADA"],
    [],
    ["Tran Date", "Narration", "Amount", "Age"],
    ["01-Jan-2025", "JOHN DOE TRANSFER", "-1,000.00", "3"],
    ["", "", "", ""],
    ["PROOF TOTAL", "", "-1000"],
    ["02-Jan-2025", "ATM WDL", "(250.00)", ""],
    ["SYSTEM BALANCE", "", "1,250.00"],
    ["03-Jan-2025", "AFTER THE BALANCE ROW", "5"],
]


def _write_csv(path: Path, text: str) -> Path:
    path.write_text(text, encoding="utf-8")
    return path


def _write_workbook(path: Path, sheets: dict[str, list[list[object]]]) -> Path:
    wb = Workbook()
    first = True
    for name, rows in sheets.items():
        ws = wb.active if first else wb.create_sheet()
        ws.title = name
        for r in rows:
            ws.append(r)
        first = False
    wb.save(path)
    return path


def test_extract_metadata_reads_label_value_pairs():
    meta, log = extract_metadata(STATEMENT_GRID)
    assert meta.branch_code == "001"
    # Value may sit two cells to the right of its label
    assert meta.account_no == "0123456789"
    assert meta.currency == "NGN"
    assert meta.maker == "ADA"
    assert meta.system_balance == Decimal("1250.00")
    assert any("branch_code" in line for line in log)


def test_find_header_locates_columns():
    found = find_header(STATEMENT_GRID)
    assert found is not None
    header_row, cols = found
    assert header_row == 5
    assert (cols.date, cols.narration, cols.amount, cols.age) == (0, 1, 2, 3)


def test_read_sheet_skips_proof_rows_and_stops_at_system_balance():
    parsed = read_sheet(STATEMENT_GRID)

    assert [r["narration"] for r in parsed.records] == ["JOHN DOE TRANSFER", "ATM WDL"]
    assert parsed.skipped == 1
    assert parsed.header_row == 5
    assert parsed.proof_total == Decimal("-1250.00")
    assert parsed.metadata.system_balance == Decimal("1250.00")
    assert parsed.metadata.branch_code == "001"


def test_read_sheet_without_header_uses_positional_columns():
    parsed = read_sheet([["01-Jan-2025", "X", "100"], ["02-Jan-2025", "Y", "-100"]])
    assert parsed.header_row is None
    assert [r["amount"] for r in parsed.records] == ["100", "-100"]
    assert parsed.proof_total == Decimal("0")


def test_reordered_header_columns():
    grid = [
        ["Amount", "Narration", "Transaction Date"],
        ["-40", "FEE", "05-Jan-2025"],
    ]
    parsed = read_sheet(grid)
    assert parsed.records == [{"date": "05-Jan-2025", "narration": "FEE", "amount": "-40", "age": ""}]


def test_load_statement_from_csv(tmp_path: Path):
    p = _write_csv(
        tmp_path / "ACC1.csv",
        "Tran Date,Narration,Amount\n01-Jan-2025,JOHN DOE TRANSFER,-1000\n\n02-Jan-2025,FEE,-10\n",
    )
    assert list_sheet_names(p) == ["ACC1"]
    parsed = load_statement(p)
    assert len(parsed.records) == 2
    assert parsed.proof_total == Decimal("-1010")


def test_load_statement_from_workbook(tmp_path: Path):
    p = _write_workbook(
        tmp_path / "prev.xlsx",
        {
            "S1": [["Tran Date", "Narration", "Amount"], ["01-Jan-2025", "JOHN DOE TRANSFER", -1000]],
            "S2": [["Tran Date", "Narration", "Amount"], ["02-Jan-2025", "ATM WDL", -80.5]],
        },
    )
    assert list_sheet_names(p) == ["S1", "S2"]

    parsed = load_statement(p, "S2")
    assert len(parsed.records) == 1
    assert parsed.proof_total == Decimal("-80.5")

    with pytest.raises(KeyError):
        load_workbook_grids(p, ["NOPE"])


def test_pending_import_context_selection():
    ctx = PendingImportContext(role="current", file_name="curr.xlsx", sheet_names=("A", "B"))
    assert ctx.validate_selection(["B", "A", "B"]) == ["B", "A"]
    with pytest.raises(KeyError):
        ctx.validate_selection(["C"])


def test_load_side_imports_every_workbook_sheet(tmp_path: Path):
    p = _write_workbook(
        tmp_path / "curr.xlsx",
        {
            "S1": [["Tran Date", "Narration", "Amount"], ["01-Jan-2025", "JOHN DOE TRANSFER", 1000]],
            "S2": [["Tran Date", "Narration", "Amount"], ["02-Jan-2025", "ATM WDL", 80]],
        },
    )
    session = ReconciliationSession()
    added = load_side(session, p, role="current")
    assert added.unwrap() == ["S1", "S2"]
    assert session.current["S2"].file_name == "curr.xlsx"

    only = load_side(ReconciliationSession(), p, role="current", sheets=["S2"])
    assert only.unwrap() == ["S2"]


def test_load_side_names_csv_after_requested_sheet(tmp_path: Path):
    p = _write_csv(tmp_path / "export.csv", "Tran Date,Narration,Amount\n01-Jan-2025,X,5\n")
    session = ReconciliationSession()
    assert load_side(session, p, role="previous", sheets=["GL100"]).unwrap() == ["GL100"]
    assert load_side(session, p, role="current").unwrap() == ["export"]
