"""Reconciliation session: batches, result set, ledger and undo history.

A :class:`ReconciliationSession` is the single owner of the mutable working
state. Every operation that changes state returns an
:class:`~ledger_recon.errors.OperationResult`; expected failures (bad operator
input, missing sheets, empty history) are reported there and never raised.

Run modes:

- ``multi``: the active previous sheet's rows are the debit side and the
  active current sheet's rows (after auto knock-off) the credit side. Results
  are appended to the result set and counters accumulate. The proof is keyed
  by the previous sheet and checked against that sheet's own system balance.
  A credit matched by an earlier run of another previous sheet is not
  offered again.
- ``single``: same inputs, but a locked system balance is required and the
  result set and counters are replaced.
- ``all``: one all-in-one batch split by sign into debits and credits.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from decimal import Decimal
from typing import Literal

from . import manual as manual_ops
from .cache import (
    SCHEMA_VERSION,
    SessionSnapshot,
    batch_from_model,
    batch_to_model,
    metadata_from_model,
    metadata_to_model,
    proof_from_model,
    proof_to_model,
    row_from_model,
    row_to_model,
    summary_from_model,
    summary_to_model,
)
from .errors import OperationResult
from .history import UNDO_CAPACITY, UndoHistory, UndoSnapshot
from .ingest.adapters.statement_sheet import SheetParse
from .ingest.utils import PendingImportContext
from .knockoff import auto_knock_off
from .ledger import ProofLedger
from .logging_setup import get_logger
from .matching import build_result_rows, match_two_pass, matched_sum
from .models import (
    Batch,
    BatchMetadata,
    BatchRole,
    MatchedSummary,
    ReconciliationSummary,
    TransactionRecord,
    TransactionRow,
)
from .normalizers import normalize_rows

_logger = get_logger("ledger_recon.session")

RunMode = Literal["multi", "single", "all"]
RUN_MODES: tuple[str, ...] = ("multi", "single", "all")
_ROLES: tuple[str, ...] = ("previous", "current", "all")

type Persister = Callable[[ReconciliationSession, tuple[TransactionRow, ...]], object]
type ProofPersister = Callable[[ReconciliationSession, list[str]], object]
type SheetLoader = Callable[[str], SheetParse]


@dataclass(frozen=True, slots=True)
class RunReport:
    mode: RunMode
    debit_sheet: str
    credit_sheet: str
    matched_pairs: int
    matched_sum: Decimal
    pending_debits: int
    pending_credits: int
    auto_rows: int
    rows: tuple[TransactionRow, ...]


@dataclass(frozen=True, slots=True)
class ImportOutcome:
    added: tuple[Batch, ...]
    skipped: tuple[str, ...]


def tally(rows: Iterable[TransactionRow]) -> ReconciliationSummary:
    """Counters as the matcher reports them: pairs and pending rows per side."""

    matched = pending_debits = pending_credits = 0
    for r in rows:
        if r.status == "matched" and r.side == "debit":
            matched += 1
        elif r.status == "pending" and r.side == "debit":
            pending_debits += 1
        elif r.status == "pending" and r.side == "credit":
            pending_credits += 1
    return ReconciliationSummary(matched, pending_debits, pending_credits)


class ReconciliationSession:
    """Owns batches, the result set, summary counters, ledger and history."""

    def __init__(
        self,
        *,
        user_id: str | None = None,
        header: BatchMetadata | None = None,
        undo_capacity: int = UNDO_CAPACITY,
    ) -> None:
        self.user_id = user_id
        self.header = header or BatchMetadata()
        self.previous: dict[str, Batch] = {}
        self.current: dict[str, Batch] = {}
        self.all_batch: Batch | None = None
        self.active_previous: str | None = None
        self.active_current: str | None = None
        self.result_rows: tuple[TransactionRow, ...] = ()
        self.summary = ReconciliationSummary()
        self.ledger = ProofLedger()
        self.history = UndoHistory(undo_capacity)

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def add_batch(
        self,
        raws: Iterable[TransactionRecord],
        *,
        sheet: str,
        role: BatchRole,
        metadata: BatchMetadata | None = None,
        file_name: str | None = None,
        proof_total: Decimal | None = None,
    ) -> OperationResult[Batch]:
        """Normalize raw records into a stored batch.

        Current batches are auto knocked off first. Header fields that are
        still empty are filled from ``metadata``. Loading a sheet name that is
        already present for ``role`` replaces it, unless that sheet's proof was
        already submitted.
        """

        name = (sheet or "").strip()
        if not name:
            return OperationResult.failure("validation", "sheet name is required")
        if role not in _ROLES:
            return OperationResult.failure("validation", f"unknown batch role {role!r}")

        meta = metadata or BatchMetadata()
        rows = tuple(normalize_rows(raws, sheet=name))
        registered = self.ledger.register_batch(
            name, item_count=len(rows), system_balance=meta.system_balance
        )
        if not registered.ok:
            return OperationResult(error=registered.error)
        if role == "current":
            ko = auto_knock_off(rows)
            remaining, knocked = ko.remaining, ko.knocked_off
        else:
            remaining, knocked = rows, ()

        batch = Batch(
            sheet=name,
            role=role,
            rows=rows,
            metadata=meta,
            proof_total=(
                proof_total
                if proof_total is not None
                else sum((r.signed_amount for r in rows), Decimal("0"))
            ),
            file_name=file_name,
            remaining=remaining,
            knocked_off=knocked,
        )

        if role == "previous":
            replaced = name in self.previous
            self.previous[name] = batch
            if self.active_previous is None:
                self.active_previous = name
        elif role == "current":
            replaced = name in self.current
            self.current[name] = batch
            if self.active_current is None:
                self.active_current = name
        else:
            replaced = self.all_batch is not None
            self.all_batch = batch

        self.header = self.header.fill_missing(meta)
        _logger.info(
            "session:batch_added sheet=%s role=%s rows=%d knocked_off=%d replaced=%s",
            name,
            role,
            len(rows),
            len(knocked),
            replaced,
        )
        return OperationResult.success(batch)

    def begin_import(
        self, sheet_names: Sequence[str], *, role: BatchRole, file_name: str
    ) -> OperationResult[PendingImportContext]:
        """First step of a multi-sheet import: list the sheets to choose from."""

        if role not in ("previous", "current"):
            return OperationResult.failure(
                "validation", f"multi-sheet import needs a previous or current role, got {role!r}"
            )
        names = tuple(n for n in sheet_names if n)
        if not names:
            return OperationResult.failure("validation", f"{file_name} has no sheets")
        return OperationResult.success(
            PendingImportContext(role=role, file_name=file_name, sheet_names=names)
        )

    def confirm_import(
        self,
        context: PendingImportContext,
        selected: Sequence[str],
        loader: SheetLoader,
    ) -> OperationResult[ImportOutcome]:
        """Second step: parse and add the chosen sheets.

        Parameters
        ----------
        context:
            The value returned by :meth:`begin_import`.
        selected:
            Sheet names picked by the operator; order is kept, repeats ignored.
        loader:
            Callable that parses one sheet by name (typically a
            :func:`functools.partial` over
            :func:`ledger_recon.ingest.utils.load_statement`).

        Sheets already loaded for the same role are skipped, as are sheets
        whose file cannot be read; both are listed in ``skipped``.
        """

        if not selected:
            return OperationResult.failure("validation", "no sheets selected")
        try:
            chosen = context.validate_selection(selected)
        except KeyError as e:
            return OperationResult.failure("validation", str(e.args[0]))

        existing = self.previous if context.role == "previous" else self.current
        added: list[Batch] = []
        skipped: list[str] = []
        for name in chosen:
            if name in existing:
                _logger.info("session:import_skip_duplicate sheet=%s role=%s", name, context.role)
                skipped.append(name)
                continue
            try:
                parsed = loader(name)
            except (OSError, KeyError, ValueError):
                _logger.warning(
                    "session:import_sheet_failed sheet=%s file=%s",
                    name,
                    context.file_name,
                    exc_info=True,
                )
                skipped.append(name)
                continue
            res = self.add_batch(
                parsed.records,
                sheet=name,
                role=context.role,
                metadata=parsed.metadata,
                file_name=context.file_name,
                proof_total=parsed.proof_total,
            )
            if res.ok and res.value is not None:
                added.append(res.value)
            else:
                skipped.append(name)
        return OperationResult.success(ImportOutcome(added=tuple(added), skipped=tuple(skipped)))

    def set_active(self, role: BatchRole, sheet: str) -> OperationResult[BatchMetadata]:
        """Select the active sheet for a side; its metadata takes over the header."""

        if role == "previous":
            batch = self.previous.get(sheet)
        elif role == "current":
            batch = self.current.get(sheet)
        else:
            return OperationResult.failure("validation", f"cannot activate a sheet for role {role!r}")
        if batch is None:
            return OperationResult.failure("not_found", f"no {role} sheet named {sheet!r}")

        if role == "previous":
            self.active_previous = sheet
        else:
            self.active_current = sheet
        self.header = batch.metadata.fill_missing(self.header)
        return OperationResult.success(self.header)

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    def _run_inputs(
        self, mode: RunMode
    ) -> OperationResult[
        tuple[Sequence[TransactionRow], Sequence[TransactionRow], tuple[TransactionRow, ...], str, str]
    ]:
        if mode == "all":
            if self.all_batch is None or not self.all_batch.rows:
                return OperationResult.failure("validation", "load the all-in-one sheet first")
            b = self.all_batch
            debits = [r for r in b.rows if r.amount_type == "debit"]
            credits = [r for r in b.rows if r.amount_type == "credit"]
            return OperationResult.success((debits, credits, (), b.sheet, b.sheet))

        if self.active_previous is None or self.active_current is None:
            return OperationResult.failure(
                "validation", "load and select a previous and a current sheet first"
            )
        prev = self.previous.get(self.active_previous)
        curr = self.current.get(self.active_current)
        if prev is None or curr is None:
            return OperationResult.failure("not_found", "active sheet is missing")
        if mode == "single" and not self.ledger.locked:
            return OperationResult.failure(
                "validation", "lock the system balance before running a single reconciliation"
            )
        if prev.sheet != curr.sheet:
            _logger.info("session:sheet_names_differ previous=%s current=%s", prev.sheet, curr.sheet)
        return OperationResult.success(
            (prev.rows, curr.remaining, curr.knocked_off, prev.sheet, curr.sheet)
        )

    def _unconsumed_credits(
        self, debits: Sequence[TransactionRow], credits: Sequence[TransactionRow]
    ) -> list[TransactionRow]:
        """Drop credits already matched to a debit outside this run.

        Credits paired with one of ``debits`` by an earlier run are released
        again, so re-running a sheet can rebuild its own pairs.
        """

        debit_ids = {d.id for d in debits}
        consumed = {
            r.id
            for r in self.result_rows
            if r.status == "matched" and r.side == "credit" and r.partner_id not in debit_ids
        }
        if consumed:
            _logger.info("session:credits_consumed count=%d", len(consumed))
        return [c for c in credits if c.id not in consumed]

    def run_reconciliation(
        self, mode: RunMode = "multi", *, persist: Persister | None = None
    ) -> OperationResult[RunReport]:
        """Match the selected batches and record the outcome.

        ``persist`` is called with the session and the rows produced by this
        run. It is best effort: a failure is logged and the in-memory result
        stands.
        """

        if mode not in RUN_MODES:
            return OperationResult.failure("validation", f"unknown run mode {mode!r}")
        inputs = self._run_inputs(mode)
        if not inputs.ok:
            return OperationResult(error=inputs.error)
        debits, credits, auto_rows, debit_sheet, credit_sheet = inputs.unwrap()
        if self.ledger.is_submitted(debit_sheet):
            return OperationResult.failure(
                "validation", f"proof for {debit_sheet!r} already submitted"
            )
        if mode != "single":
            credits = self._unconsumed_credits(debits, credits)

        outcome = match_two_pass(debits, credits)
        new_rows = build_result_rows(
            outcome, debit_sheet=debit_sheet, credit_sheet=credit_sheet
        ) + tuple(auto_rows)
        new_counts = tally(new_rows)

        if mode == "single":
            self.result_rows = new_rows
            self.summary = new_counts
        else:
            # Re-running the same sheets replaces their earlier rows so ids stay unique.
            new_ids = {r.id for r in new_rows}
            kept = tuple(r for r in self.result_rows if r.id not in new_ids)
            dropped = tuple(r for r in self.result_rows if r.id in new_ids)
            self.result_rows = kept + new_rows
            self.summary = self.summary.minus(tally(dropped)).plus(
                matched=new_counts.matched_count,
                pending_debits=new_counts.pending_debit_count,
                pending_credits=new_counts.pending_credit_count,
            )

        record = self.ledger.record_run(debit_sheet, outcome.matched_pairs, new_rows)
        report = RunReport(
            mode=mode,
            debit_sheet=debit_sheet,
            credit_sheet=credit_sheet,
            matched_pairs=len(outcome.matched_pairs),
            matched_sum=matched_sum(outcome.matched_pairs),
            pending_debits=len(outcome.pending_debits),
            pending_credits=len(outcome.pending_credits),
            auto_rows=len(auto_rows),
            rows=new_rows,
        )
        _logger.info(
            "session:run mode=%s sheet=%s pairs=%d matched_sum=%s results=%d",
            mode,
            debit_sheet,
            report.matched_pairs,
            record.matched_sum,
            len(self.result_rows),
        )

        if persist is not None:
            try:
                persist(self, new_rows)
            except Exception:
                _logger.warning("session:persist_failed sheet=%s", debit_sheet, exc_info=True)
        return OperationResult.success(report)

    # ------------------------------------------------------------------
    # Manual match / reset / undo
    # ------------------------------------------------------------------

    def _push_undo(self) -> None:
        self.history.push(
            UndoSnapshot(
                result_rows=self.result_rows,
                summary=self.summary,
                proofs=self.ledger.proofs,
            )
        )

    def manual_match(self, amount: object, narration: str | None) -> OperationResult[manual_ops.ManualMatch]:
        res = manual_ops.manual_match(self.result_rows, amount, narration)
        if not res.ok or res.value is None:
            return res
        m = res.value
        self._push_undo()
        self.result_rows = m.result_rows
        self.summary = self.summary.minus(ReconciliationSummary(0, 1, 1)).plus(
            matched=1, pending_debits=0, pending_credits=0
        )
        self.ledger.add_manual_match(m.debit.sheet, m.amount)
        return res

    def reset_matches(self) -> OperationResult[ReconciliationSummary]:
        """Put every result row back to ``pending`` and zero the matched totals."""

        if not self.result_rows:
            return OperationResult.failure("validation", "no results to reset")
        self._push_undo()
        self.result_rows = tuple(r.with_status("pending") for r in self.result_rows)
        self.summary = ReconciliationSummary(
            matched_count=0,
            pending_debit_count=sum(1 for r in self.result_rows if r.signed_amount < 0),
            pending_credit_count=sum(1 for r in self.result_rows if r.signed_amount > 0),
        )
        self.ledger.reset_matched()
        _logger.info("session:reset rows=%d", len(self.result_rows))
        return OperationResult.success(self.summary)

    def undo(self) -> OperationResult[UndoSnapshot]:
        snapshot = self.history.pop()
        if snapshot is None:
            return OperationResult.failure("nothing_to_undo", "nothing to undo")
        self.result_rows = snapshot.result_rows
        self.summary = snapshot.summary
        self.ledger.restore_proofs(snapshot.proofs)
        _logger.info("session:undo remaining=%d", len(self.history))
        return OperationResult.success(snapshot)

    # ------------------------------------------------------------------
    # System balance and submission
    # ------------------------------------------------------------------

    def lock_system_balance(
        self, text: object, *, sheets: Iterable[str] = ()
    ) -> OperationResult[Decimal]:
        return self.ledger.lock_system_balance(text, sheets=sheets)

    def unlock_system_balance(self) -> OperationResult[None]:
        return self.ledger.unlock_system_balance()

    def submit(
        self, sheet: str | None = None, *, persist: ProofPersister | None = None
    ) -> OperationResult[list[str]]:
        """Submit one sheet's proof, or every pending proof when ``sheet`` is None."""

        if sheet is None:
            res = self.ledger.submit_all()
            if not res.ok:
                return res
            submitted = res.unwrap()
        else:
            one = self.ledger.submit(sheet)
            if not one.ok:
                return OperationResult(error=one.error)
            submitted = [sheet]

        if persist is not None:
            try:
                persist(self, submitted)
            except Exception:
                _logger.warning("session:proof_persist_failed sheets=%s", submitted, exc_info=True)
        return OperationResult.success(submitted)

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    def pending_debits(self) -> list[TransactionRow]:
        return manual_ops.pending_debits(self.result_rows)

    def pending_credits(self) -> list[TransactionRow]:
        return manual_ops.pending_credits(self.result_rows)

    def matched_rows(self) -> list[TransactionRow]:
        return [r for r in self.result_rows if r.status in ("matched", "auto")]

    def pending_sum(self, sheet: str | None = None) -> Decimal:
        return self.ledger.pending_sum(self.result_rows, sheet)

    def matched_summary(self, sheet: str | None = None) -> MatchedSummary:
        return self.ledger.matched_summary(self.result_rows, sheet)

    def diff(self, sheet: str | None = None) -> Decimal | None:
        return self.ledger.diff(self.result_rows, sheet)

    def sheets(self) -> list[str]:
        names = list(self.previous)
        names.extend(n for n in self.current if n not in self.previous)
        if self.all_batch is not None and self.all_batch.sheet not in names:
            names.append(self.all_batch.sheet)
        return names

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def to_snapshot(self) -> SessionSnapshot:
        batches = [*self.previous.values(), *self.current.values()]
        if self.all_batch is not None:
            batches.append(self.all_batch)
        balance = self.ledger.system_balance()
        return SessionSnapshot(
            schema_version=SCHEMA_VERSION,
            user_id=self.user_id,
            header=metadata_to_model(self.header),
            batches=[batch_to_model(b) for b in batches],
            active_previous=self.active_previous,
            active_current=self.active_current,
            result_rows=[row_to_model(r) for r in self.result_rows],
            summary=summary_to_model(self.summary),
            proofs={s: proof_to_model(p) for s, p in self.ledger.proofs.items()},
            sheet_balances={s: str(v) for s, v in self.ledger.sheet_balances.items()},
            system_balance=None if balance is None else str(balance),
            locked=self.ledger.locked,
            locked_sheets=self.ledger.locked_sheets,
        )

    @classmethod
    def from_snapshot(cls, snapshot: SessionSnapshot) -> ReconciliationSession:
        """Rebuild a session; the undo history starts empty."""

        session = cls(user_id=snapshot.user_id, header=metadata_from_model(snapshot.header))
        for bm in snapshot.batches:
            batch = batch_from_model(bm)
            if batch.role == "previous":
                session.previous[batch.sheet] = batch
            elif batch.role == "current":
                session.current[batch.sheet] = batch
            else:
                session.all_batch = batch
        session.active_previous = snapshot.active_previous
        session.active_current = snapshot.active_current
        session.result_rows = tuple(row_from_model(r) for r in snapshot.result_rows)
        session.summary = summary_from_model(snapshot.summary)
        session.ledger.restore_proofs(
            {s: proof_from_model(p) for s, p in snapshot.proofs.items()}
        )
        session.ledger.restore_balances(
            sheet_balances={s: Decimal(v) for s, v in snapshot.sheet_balances.items()},
            system_balance=(
                None if snapshot.system_balance is None else Decimal(snapshot.system_balance)
            ),
            locked=snapshot.locked,
            locked_sheets=snapshot.locked_sheets,
        )
        return session


__all__ = [
    "RUN_MODES",
    "ImportOutcome",
    "ReconciliationSession",
    "RunMode",
    "RunReport",
    "tally",
]
