"""Row builders shared by the unit tests."""

from __future__ import annotations

from typing import Any

from ledger_recon.models import TransactionRow
from ledger_recon.normalizers import normalize_row


def raw(amount: Any, narration: str = "", date: Any = "01-Jan-2025") -> dict[str, Any]:
    return {"Date": date, "Narration": narration, "Amount": amount}


def row(amount: Any, narration: str, *, sheet: str = "S1", row_id: str | None = None) -> TransactionRow:
    return normalize_row(raw(amount, narration), sheet=sheet, row_id=row_id)
