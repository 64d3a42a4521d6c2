"""Tabular export of the result set.

Rows are flattened to records carrying the batch header fields, the sheet's
proof total and system balance, then written as CSV (stdlib ``csv``) or XLSX
(``openpyxl``) depending on the target suffix.
"""

from __future__ import annotations

import csv
import os
from collections.abc import Mapping, Sequence
from decimal import Decimal
from os import PathLike
from pathlib import Path
from typing import Any

from openpyxl import Workbook

from .errors import OperationResult
from .ledger import ProofLedger
from .logging_setup import get_logger
from .models import BatchMetadata, TransactionRow

_logger = get_logger("ledger_recon.export")

EXPORT_COLUMNS: tuple[str, ...] = (
    "Date",
    "Narration",
    "OriginalAmount",
    "SignedAmount",
    "IsNegative",
    "Side",
    "Status",
    "BranchCode",
    "BranchName",
    "AccountName",
    "AccountNo",
    "Currency",
    "ProofTotal",
    "SystemBalance",
    "Maker",
    "Checker",
    "Rico",
    "Clco",
    "SheetName",
)
SHEET_TITLE = "ReconciliationResults"
DEFAULT_CURRENCY = "NGN"


def result_record(
    row: TransactionRow,
    *,
    header: BatchMetadata,
    proof_total: Decimal | None = None,
    system_balance: Decimal | None = None,
) -> dict[str, Any]:
    """One export/persistence record for ``row`` (keys are ``EXPORT_COLUMNS``)."""

    return {
        "Date": row.date,
        "Narration": row.narration,
        "OriginalAmount": row.original_amount,
        "SignedAmount": row.signed_amount,
        "IsNegative": row.is_negative,
        "Side": row.side or row.amount_type,
        "Status": row.status,
        "BranchCode": header.branch_code,
        "BranchName": header.branch_name,
        "AccountName": header.account_name or row.sheet,
        "AccountNo": header.account_no,
        "Currency": header.currency or DEFAULT_CURRENCY,
        "ProofTotal": proof_total,
        "SystemBalance": system_balance,
        "Maker": header.maker,
        "Checker": header.checker,
        "Rico": header.rico,
        "Clco": header.clco,
        "SheetName": row.sheet,
    }


def result_records(
    rows: Sequence[TransactionRow],
    *,
    header: BatchMetadata,
    ledger: ProofLedger | None = None,
) -> list[dict[str, Any]]:
    """Flatten rows, looking up each sheet's proof total and balance in ``ledger``."""

    out: list[dict[str, Any]] = []
    for r in rows:
        proof = ledger.proof(r.sheet) if ledger is not None else None
        out.append(
            result_record(
                r,
                header=header,
                proof_total=proof.matched_sum if proof is not None else None,
                system_balance=ledger.system_balance(r.sheet) if ledger is not None else None,
            )
        )
    return out


def _cell(v: Any) -> Any:
    # openpyxl writes Decimal as a number; None as an empty cell
    if isinstance(v, Decimal):
        return float(v)
    return v


def _csv_cell(v: Any) -> str:
    if v is None:
        return ""
    if isinstance(v, bool):
        return "TRUE" if v else "FALSE"
    return str(v)


def write_csv(records: Sequence[Mapping[str, Any]], path: Path) -> None:
    with path.open("w", encoding="utf-8", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(EXPORT_COLUMNS)
        for rec in records:
            writer.writerow([_csv_cell(rec.get(c)) for c in EXPORT_COLUMNS])


def write_xlsx(records: Sequence[Mapping[str, Any]], path: Path) -> None:
    wb = Workbook()
    ws = wb.active
    ws.title = SHEET_TITLE
    ws.append(list(EXPORT_COLUMNS))
    for rec in records:
        ws.append([_cell(rec.get(c)) for c in EXPORT_COLUMNS])
    wb.save(path)


def export_results(
    rows: Sequence[TransactionRow],
    path: str | PathLike[str],
    *,
    header: BatchMetadata | None = None,
    ledger: ProofLedger | None = None,
) -> OperationResult[Path]:
    """Write the result set to ``path`` (``.xlsx`` or anything else as CSV).

    An empty result set is a validation failure and nothing is written.
    """

    if not rows:
        return OperationResult.failure("validation", "no results to export")
    target = Path(path)
    records = result_records(rows, header=header or BatchMetadata(), ledger=ledger)
    target.parent.mkdir(parents=True, exist_ok=True)
    if target.suffix.lower() == ".xlsx":
        write_xlsx(records, target)
    else:
        write_csv(records, target)
    _logger.info("export:written path=%s rows=%d", os.fspath(target), len(records))
    return OperationResult.success(target)


__all__ = [
    "DEFAULT_CURRENCY",
    "EXPORT_COLUMNS",
    "SHEET_TITLE",
    "export_results",
    "result_record",
    "result_records",
    "write_csv",
    "write_xlsx",
]
