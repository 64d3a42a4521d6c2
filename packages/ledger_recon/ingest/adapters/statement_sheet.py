"""Adapter for core-banking statement sheets (a grid of cell rows).

Sheet layout handled:

- A free-form preamble in the first 50 rows holding ``Label | value`` pairs
  (``Branch Code``, ``Account No``, ``Currency``, ``Maker``, ``Checker``,
  ``RICO``, ``CLCO``, ``System Balance`` ...). The value is the first
  non-empty cell of the next two to the right.
- A header row within the first 40 rows whose text contains ``tran``,
  ``narr`` and ``amount``. Without one, data starts at row 9 (or row 1 when the
  sheet is shorter than 9 rows) and columns are positional:
  date, narration, amount, age.
- ``PROOF TOTAL`` rows are skipped. A ``SYSTEM BALANCE`` row ends the data and
  supplies the sheet's system balance.

Output records use the keys ``date``, ``narration``, ``amount`` and ``age`` so
they feed straight into :func:`ledger_recon.normalizers.normalize_rows`.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass, fields
from decimal import Decimal
from typing import Any

from ...logging_setup import get_logger
from ...models import BatchMetadata
from ...normalizers import is_blank_record, parse_amount, parse_strict_amount

_logger = get_logger("ledger_recon.ingest.statement_sheet")

META_SCAN_ROWS = 50
HEADER_SCAN_ROWS = 40
DEFAULT_DATA_START = 8

# Normalized label -> BatchMetadata field
_META_LABELS: dict[str, str] = {
    "branchcode": "branch_code",
    "branchname": "branch_name",
    "accountname": "account_name",
    "accountno": "account_no",
    "accountnumber": "account_no",
    "currency": "currency",
    "maker": "maker",
    "checker": "checker",
    "rico": "rico",
    "clco": "clco",
    "tellerid": "teller_id",
    "teller": "teller_id",
    "systembalance": "system_balance",
}

_META_FIELDS = {f.name for f in fields(BatchMetadata)}


@dataclass(frozen=True, slots=True)
class HeaderColumns:
    date: int = 0
    narration: int = 1
    amount: int = 2
    age: int = 3


@dataclass(frozen=True, slots=True)
class SheetParse:
    records: list[dict[str, Any]]
    metadata: BatchMetadata
    proof_total: Decimal
    header_row: int | None
    skipped: int
    log: tuple[str, ...] = ()


def _cell_text(v: Any) -> str:
    return "" if v is None else str(v).strip()


def _normalize_label(s: str) -> str:
    return re.sub(r"[^a-z0-9]", "", s.lower())


def _cell(row: Sequence[Any], idx: int) -> Any:
    if 0 <= idx < len(row):
        v = row[idx]
        return "" if v is None else v
    return ""


def extract_metadata(grid: Sequence[Sequence[Any]]) -> tuple[BatchMetadata, list[str]]:
    """Scan the preamble for ``Label | value`` pairs; the first hit per field wins."""

    found: dict[str, Any] = {}
    log: list[str] = []
    for r, row in enumerate(grid[:META_SCAN_ROWS]):
        for c, raw in enumerate(row):
            label = _normalize_label(_cell_text(raw))
            field_name = _META_LABELS.get(label)
            if field_name is None or field_name in found:
                continue
            value = _cell_text(_cell(row, c + 1)) or _cell_text(_cell(row, c + 2))
            if not value:
                continue
            if field_name == "system_balance":
                parsed = parse_strict_amount(value)
                if parsed is None:
                    continue
                found[field_name] = parsed
            else:
                found[field_name] = value
            log.append(f"meta {field_name} -> {value!r} at r{r + 1}")
    return BatchMetadata(**{k: v for k, v in found.items() if k in _META_FIELDS}), log


def find_header(grid: Sequence[Sequence[Any]]) -> tuple[int, HeaderColumns] | None:
    for r, row in enumerate(grid[:HEADER_SCAN_ROWS]):
        lower = [_cell_text(c).lower() for c in row]
        joined = "|".join(lower)
        if not ("tran" in joined and "narr" in joined and "amount" in joined):
            continue

        def _find(*needles: str, exact: tuple[str, ...] = ()) -> int:
            for i, h in enumerate(lower):
                if h in exact or any(n in h for n in needles):
                    return i
            return -1

        date_idx = _find("tran_date", "tran date", "transaction date", exact=("date",))
        if date_idx < 0:
            date_idx = _find("tran")
        narration_idx = _find("narr", "description")
        amount_idx = _find("amount", "amt")
        age_idx = _find("age", "days")
        cols = HeaderColumns(
            date=date_idx if date_idx >= 0 else 0,
            narration=narration_idx if narration_idx >= 0 else 1,
            amount=amount_idx if amount_idx >= 0 else 2,
            age=age_idx if age_idx >= 0 else 3,
        )
        return r, cols
    return None


def _system_balance_from_row(row: Sequence[Any]) -> Decimal | None:
    label_idx = -1
    for c, raw in enumerate(row):
        text = _cell_text(raw).upper()
        if "SYSTEM" in text and "BALANCE" in text:
            label_idx = c
            break
    if label_idx >= 0:
        for c in range(label_idx + 1, len(row)):
            value = parse_strict_amount(_cell(row, c)) if _cell_text(_cell(row, c)) else None
            if value is not None:
                return value
        return None
    # Label split across cells: take the right-most numeric cell.
    for c in range(len(row) - 1, -1, -1):
        if _cell_text(row[c]):
            value = parse_strict_amount(row[c])
            if value is not None:
                return value
    return None


def read_sheet(grid: Sequence[Sequence[Any]]) -> SheetParse:
    """Parse one sheet grid into raw records plus batch metadata."""

    metadata, log = extract_metadata(grid)
    header = find_header(grid)
    if header is not None:
        header_row, cols = header
        start = header_row + 1
        log.append(f"header r{header_row + 1} => {cols}")
    else:
        header_row, cols = None, HeaderColumns()
        start = DEFAULT_DATA_START if len(grid) >= DEFAULT_DATA_START + 1 else 0
        log.append(f"no header; data starts at r{start + 1}")

    records: list[dict[str, Any]] = []
    proof_total = Decimal("0")
    skipped = 0
    sheet_balance: Decimal | None = None

    for row in grid[start:]:
        joined = " ".join(_cell_text(c) for c in row).upper()
        if "PROOF TOTAL" in joined:
            continue
        if "SYSTEM BALANCE" in joined:
            sheet_balance = _system_balance_from_row(row)
            log.append(f"system balance {sheet_balance}")
            break

        record = {
            "date": _cell(row, cols.date),
            "narration": _cell(row, cols.narration),
            "amount": _cell(row, cols.amount),
            "age": _cell(row, cols.age),
        }
        if is_blank_record(record):
            skipped += 1
            continue
        records.append(record)
        proof_total += parse_amount(record["amount"]).value

    if sheet_balance is not None:
        metadata = BatchMetadata(
            **{f: getattr(metadata, f) for f in _META_FIELDS if f != "system_balance"},
            system_balance=sheet_balance,
        )

    log.append(f"parsed {len(records)}; skipped {skipped}")
    log.append(f"running proof {proof_total}")
    _logger.debug(
        "sheet:parsed records=%d skipped=%d header_row=%s proof_total=%s",
        len(records),
        skipped,
        header_row,
        proof_total,
    )
    return SheetParse(
        records=records,
        metadata=metadata,
        proof_total=proof_total,
        header_row=header_row,
        skipped=skipped,
        log=tuple(log),
    )


__all__ = ["HeaderColumns", "SheetParse", "extract_metadata", "find_header", "read_sheet"]
