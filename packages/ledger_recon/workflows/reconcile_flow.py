"""Workflow orchestrators for end-to-end reconciliation runs.

This module composes ingest, the session and persistence behind one importable
function so that the CLI (and any host application) stays thin.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from functools import partial
from os import PathLike
from pathlib import Path

from ..errors import OperationResult
from ..ingest.utils import is_workbook, list_sheet_names, load_statement
from ..logging_setup import get_logger
from ..models import BatchRole
from ..session import Persister, ReconciliationSession, RunMode, RunReport

_logger = get_logger("ledger_recon.workflows.reconcile")


@dataclass(frozen=True, slots=True)
class ReconcileOutcome:
    session: ReconciliationSession
    reports: tuple[RunReport, ...]


def load_side(
    session: ReconciliationSession,
    path: str | PathLike[str],
    *,
    role: BatchRole,
    sheets: Sequence[str] | None = None,
) -> OperationResult[list[str]]:
    """Import one statement file for ``role`` through the two-step sheet import.

    ``sheets=None`` selects every sheet in the file. Returns the names added.
    """

    p = Path(path)
    if is_workbook(p):
        names = list_sheet_names(p)
    else:
        # A CSV holds one sheet; name it after the requested sheet so both sides line up
        names = [sheets[0]] if sheets else list_sheet_names(p)
    ctx = session.begin_import(names, role=role, file_name=p.name)
    if not ctx.ok or ctx.value is None:
        return OperationResult(error=ctx.error)
    chosen = list(sheets) if sheets else names
    res = session.confirm_import(ctx.value, chosen, partial(load_statement, p))
    if not res.ok or res.value is None:
        return OperationResult(error=res.error)
    added = [b.sheet for b in res.value.added]
    if not added:
        return OperationResult.failure("validation", f"no sheets could be loaded from {p.name}")
    return OperationResult.success(added)


def _sheet_pairs(session: ReconciliationSession, sheet: str | None) -> list[tuple[str, str]]:
    if sheet is not None:
        return [(sheet, sheet)]
    shared = [n for n in session.previous if n in session.current]
    if shared:
        return [(n, n) for n in shared]
    if session.active_previous is None or session.active_current is None:
        return []
    return [(session.active_previous, session.active_current)]


def reconcile_statement_files(
    previous: str | PathLike[str],
    current: str | PathLike[str],
    *,
    sheet: str | None = None,
    system_balance: str | None = None,
    mode: RunMode = "multi",
    user_id: str | None = None,
    persist: Persister | None = None,
    on_progress: Callable[[str], None] | None = None,
) -> OperationResult[ReconcileOutcome]:
    """End-to-end: statement files -> batches -> matching run(s) -> ledger.

    Parameters
    ----------
    previous / current:
        CSV or XLSX statement files. Workbooks may hold several sheets.
    sheet:
        Reconcile only this sheet name (must exist on both sides). When
        omitted, every sheet name present on both sides is reconciled in
        ``multi`` mode; otherwise the first sheet of each file is used.
    system_balance:
        Operator-entered balance to lock before running. Required for
        ``single`` mode.
    persist:
        Optional best-effort persister (see
        :func:`ledger_recon.persistence.results_persister`).
    """

    session = ReconciliationSession(user_id=user_id)
    wanted = [sheet] if sheet else None
    for path, role in ((previous, "previous"), (current, "current")):
        loaded = load_side(session, path, role=role, sheets=wanted)
        if not loaded.ok:
            return OperationResult(error=loaded.error)
        if on_progress:
            on_progress(f"Loaded {role}: {', '.join(loaded.unwrap())}")

    pairs = _sheet_pairs(session, sheet)
    if mode == "single":
        pairs = pairs[:1]

    if system_balance is not None:
        locked = session.lock_system_balance(system_balance, sheets=[p for p, _ in pairs])
        if not locked.ok:
            return OperationResult(error=locked.error)

    reports: list[RunReport] = []
    for prev_name, curr_name in pairs:
        for role, name in (("previous", prev_name), ("current", curr_name)):
            active = session.set_active(role, name)
            if not active.ok:
                return OperationResult(error=active.error)
        run = session.run_reconciliation(mode, persist=persist)
        if not run.ok or run.value is None:
            return OperationResult(error=run.error)
        reports.append(run.value)
        if on_progress:
            on_progress(
                f"Reconciled {run.value.debit_sheet}: {run.value.matched_pairs} pairs, "
                f"{run.value.matched_sum} matched"
            )

    _logger.info("workflow:reconciled runs=%d results=%d", len(reports), len(session.result_rows))
    return OperationResult.success(ReconcileOutcome(session=session, reports=tuple(reports)))


__all__ = ["ReconcileOutcome", "load_side", "reconcile_statement_files"]
