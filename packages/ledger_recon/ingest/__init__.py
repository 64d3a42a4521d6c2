"""Statement ingest: sheet grids -> raw records plus batch metadata."""

from .adapters.statement_sheet import SheetParse, read_sheet
from .utils import (
    PendingImportContext,
    list_sheet_names,
    load_grid,
    load_grid_from_csv,
    load_statement,
    load_workbook_grids,
)

__all__ = [
    "PendingImportContext",
    "SheetParse",
    "list_sheet_names",
    "load_grid",
    "load_grid_from_csv",
    "load_statement",
    "load_workbook_grids",
    "read_sheet",
]
