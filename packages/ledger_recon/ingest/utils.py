"""Ingest utilities shared by CLI commands and the session.

Statement files arrive either as CSV (one sheet, read with the stdlib ``csv``
module) or as XLSX workbooks (one grid per worksheet, read with ``openpyxl``).
Both are turned into plain cell grids and handed to
:func:`ledger_recon.ingest.adapters.statement_sheet.read_sheet`.

Multi-sheet workbooks go through an explicit two-step import: the caller gets a
:class:`PendingImportContext` listing the sheet names, the operator picks some,
and the context is passed back to confirm the import.
"""

from __future__ import annotations

import csv
from collections.abc import Sequence
from dataclasses import dataclass
from os import PathLike
from pathlib import Path
from typing import Any

from openpyxl import load_workbook

from ..logging_setup import get_logger
from ..models import BatchRole
from .adapters.statement_sheet import SheetParse, read_sheet

_logger = get_logger("ledger_recon.ingest")

type Grid = list[list[Any]]

_WORKBOOK_SUFFIXES = {".xlsx", ".xlsm"}


def is_workbook(path: str | PathLike[str]) -> bool:
    return Path(path).suffix.lower() in _WORKBOOK_SUFFIXES


def load_grid_from_csv(csv_path: str | PathLike[str]) -> Grid:
    """Read a CSV file into a list of cell rows (strings, unparsed)."""

    p = Path(csv_path)
    # utf-8-sig drops the BOM that spreadsheet exports often prepend
    with p.open(encoding="utf-8-sig", newline="") as f:
        return [list(row) for row in csv.reader(f)]


def list_sheet_names(path: str | PathLike[str]) -> list[str]:
    """Worksheet names of an XLSX workbook, or the file stem for a CSV."""

    p = Path(path)
    if not is_workbook(p):
        return [p.stem]
    wb = load_workbook(p, read_only=True, data_only=True)
    try:
        return list(wb.sheetnames)
    finally:
        wb.close()


def load_workbook_grids(
    path: str | PathLike[str], sheets: Sequence[str] | None = None
) -> dict[str, Grid]:
    """Return ``{sheet_name: grid}`` for the requested (or all) worksheets.

    Unknown sheet names raise ``KeyError``; cell values are the cached results
    of formulas (``data_only=True``).
    """

    wb = load_workbook(Path(path), read_only=True, data_only=True)
    try:
        names = list(sheets) if sheets is not None else list(wb.sheetnames)
        grids: dict[str, Grid] = {}
        for name in names:
            if name not in wb.sheetnames:
                raise KeyError(f"worksheet {name!r} not found in {Path(path).name}")
            ws = wb[name]
            grids[name] = [list(row) for row in ws.iter_rows(values_only=True)]
        return grids
    finally:
        wb.close()


def load_grid(path: str | PathLike[str], sheet: str | None = None) -> Grid:
    """Load one sheet's grid; the first worksheet when ``sheet`` is omitted."""

    if not is_workbook(path):
        return load_grid_from_csv(path)
    name = sheet if sheet is not None else list_sheet_names(path)[0]
    return load_workbook_grids(path, [name])[name]


def load_statement(path: str | PathLike[str], sheet: str | None = None) -> SheetParse:
    parsed = read_sheet(load_grid(path, sheet))
    _logger.info(
        "ingest:loaded path=%s sheet=%s records=%d",
        Path(path).name,
        sheet or "-",
        len(parsed.records),
    )
    return parsed


@dataclass(frozen=True, slots=True)
class PendingImportContext:
    """An import awaiting sheet selection.

    Holds everything needed to finish the import so that no state is parked in
    module globals between the two steps.
    """

    role: BatchRole
    file_name: str
    sheet_names: tuple[str, ...]

    def validate_selection(self, selected: Sequence[str]) -> list[str]:
        """Return the selection de-duplicated in order; unknown names raise ``KeyError``."""

        chosen: list[str] = []
        for name in selected:
            if name not in self.sheet_names:
                raise KeyError(f"sheet {name!r} is not in {self.file_name}")
            if name not in chosen:
                chosen.append(name)
        return chosen


__all__ = [
    "Grid",
    "PendingImportContext",
    "is_workbook",
    "list_sheet_names",
    "load_grid",
    "load_grid_from_csv",
    "load_statement",
    "load_workbook_grids",
]
