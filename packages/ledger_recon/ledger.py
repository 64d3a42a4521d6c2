"""Proof ledger: per-sheet matched totals and the system-balance proof.

The operator proves a reconciliation by showing that the pending (unmatched)
total equals an externally asserted system balance. The balance is entered and
explicitly locked; while locked it cannot be changed, only unlocked by a
deliberate action. A missing balance yields ``diff() is None``, which callers
must render differently from a zero difference.

Row-based figures (:meth:`ProofLedger.pending_sum`,
:meth:`ProofLedger.matched_summary`, :meth:`ProofLedger.diff`) are computed
from the result rows passed in, so they are always consistent with whatever
result set the caller currently holds.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import replace
from decimal import Decimal

from .errors import OperationResult
from .logging_setup import get_logger
from .matching import matched_sum
from .models import MatchedPair, MatchedSummary, ProofRecord, TransactionRow
from .normalizers import parse_strict_amount

_logger = get_logger("ledger_recon.ledger")

_ZERO = Decimal("0")


def _in_scope(row: TransactionRow, sheet: str | None) -> bool:
    return sheet is None or row.sheet == sheet


class ProofLedger:
    """Per-sheet proof bookkeeping plus the locked system balance."""

    def __init__(self) -> None:
        self._proofs: dict[str, ProofRecord] = {}
        self._sheet_balances: dict[str, Decimal] = {}
        self._system_balance: Decimal | None = None
        self._locked = False
        self._locked_sheets: set[str] = set()

    # ------------------------------------------------------------------
    # Proof records
    # ------------------------------------------------------------------

    @property
    def proofs(self) -> dict[str, ProofRecord]:
        return dict(self._proofs)

    def proof(self, sheet: str) -> ProofRecord | None:
        return self._proofs.get(sheet)

    def restore_proofs(self, proofs: Mapping[str, ProofRecord]) -> None:
        self._proofs = dict(proofs)

    def is_submitted(self, sheet: str) -> bool:
        current = self._proofs.get(sheet)
        return current is not None and current.submission_status == "submitted"

    def register_batch(
        self, sheet: str, *, item_count: int, system_balance: Decimal | None = None
    ) -> OperationResult[ProofRecord]:
        """Start a pending proof for a freshly loaded sheet.

        A sheet whose proof was already submitted is refused and left as is.
        """

        if self.is_submitted(sheet):
            _logger.warning("ledger:register_refused sheet=%s status=submitted", sheet)
            return OperationResult.failure(
                "validation", f"proof for {sheet!r} already submitted; it cannot be reloaded"
            )
        record = ProofRecord(matched_sum=_ZERO, item_count=item_count)
        self._proofs[sheet] = record
        if system_balance is not None and sheet not in self._locked_sheets:
            self._sheet_balances[sheet] = system_balance
        return OperationResult.success(record)

    def record_run(
        self,
        sheet: str,
        matched_pairs: Sequence[MatchedPair],
        result_rows: Sequence[TransactionRow],
    ) -> ProofRecord:
        """Replace the sheet's proof with this run's totals; submitted proofs stay."""

        if self.is_submitted(sheet):
            _logger.warning("ledger:record_run_skipped sheet=%s status=submitted", sheet)
            return self._proofs[sheet]
        record = ProofRecord(
            matched_sum=matched_sum(matched_pairs),
            item_count=len(result_rows),
            submission_status="pending",
        )
        self._proofs[sheet] = record
        _logger.info(
            "ledger:record_run sheet=%s matched_sum=%s items=%d",
            sheet,
            record.matched_sum,
            record.item_count,
        )
        return record

    def add_manual_match(self, sheet: str, amount: Decimal) -> ProofRecord:
        current = self._proofs.get(sheet) or ProofRecord()
        record = replace(current, matched_sum=current.matched_sum + amount)
        self._proofs[sheet] = record
        return record

    def reset_matched(self) -> None:
        """Zero every sheet's matched total (used when matches are reset)."""

        self._proofs = {
            s: replace(p, matched_sum=_ZERO) for s, p in self._proofs.items()
        }

    def submit(self, sheet: str) -> OperationResult[ProofRecord]:
        """Mark a sheet's proof as submitted; irreversible from here."""

        current = self._proofs.get(sheet)
        if current is None:
            return OperationResult.failure("not_found", f"no proof recorded for sheet {sheet!r}")
        if current.submission_status == "submitted":
            return OperationResult.failure("validation", f"proof for {sheet!r} already submitted")
        record = replace(current, submission_status="submitted")
        self._proofs[sheet] = record
        _logger.info("ledger:submitted sheet=%s matched_sum=%s", sheet, record.matched_sum)
        return OperationResult.success(record)

    def submit_all(self) -> OperationResult[list[str]]:
        pending = [s for s, p in self._proofs.items() if p.submission_status == "pending"]
        if not pending:
            return OperationResult.failure("validation", "no pending proofs to submit")
        for sheet in pending:
            self.submit(sheet)
        return OperationResult.success(pending)

    # ------------------------------------------------------------------
    # System balance
    # ------------------------------------------------------------------

    @property
    def locked(self) -> bool:
        return self._locked

    @property
    def sheet_balances(self) -> dict[str, Decimal]:
        return dict(self._sheet_balances)

    def lock_system_balance(
        self, raw: object, *, sheets: Iterable[str] = ()
    ) -> OperationResult[Decimal]:
        """Validate and lock the operator-entered balance.

        Rejected, with no state change, when a balance is already locked or
        ``raw`` is not numeric.
        """

        if self._locked:
            return OperationResult.failure(
                "validation", "system balance is locked; unlock it before entering a new one"
            )
        value = parse_strict_amount(raw)
        if value is None:
            return OperationResult.failure("validation", f"invalid system balance: {raw!r}")

        self._system_balance = value
        for sheet in sheets:
            self._sheet_balances[sheet] = value
            self._locked_sheets.add(sheet)
        self._locked = True
        _logger.info("ledger:balance_locked value=%s sheets=%s", value, sorted(self._locked_sheets))
        return OperationResult.success(value)

    def unlock_system_balance(self) -> OperationResult[None]:
        if not self._locked:
            return OperationResult.failure("validation", "system balance is not locked")
        self._locked = False
        self._system_balance = None
        self._locked_sheets.clear()
        _logger.info("ledger:balance_unlocked")
        return OperationResult.success(None)

    def system_balance(self, sheet: str | None = None) -> Decimal | None:
        """Sheet-specific balance when known, else the locked global balance."""

        if sheet is not None and sheet in self._sheet_balances:
            return self._sheet_balances[sheet]
        return self._system_balance

    def restore_balances(
        self,
        *,
        sheet_balances: Mapping[str, Decimal],
        system_balance: Decimal | None,
        locked: bool,
        locked_sheets: Iterable[str] = (),
    ) -> None:
        self._sheet_balances = dict(sheet_balances)
        self._system_balance = system_balance
        self._locked = locked
        self._locked_sheets = set(locked_sheets)

    @property
    def locked_sheets(self) -> list[str]:
        return sorted(self._locked_sheets)

    # ------------------------------------------------------------------
    # Row-based figures
    # ------------------------------------------------------------------

    @staticmethod
    def pending_sum(rows: Iterable[TransactionRow], sheet: str | None = None) -> Decimal:
        return sum(
            (r.amount_abs for r in rows if r.status == "pending" and _in_scope(r, sheet)),
            _ZERO,
        )

    @staticmethod
    def matched_summary(rows: Iterable[TransactionRow], sheet: str | None = None) -> MatchedSummary:
        """Count and amount of matched/auto rows; amount halved (both legs listed)."""

        scoped = [r for r in rows if r.status in ("matched", "auto") and _in_scope(r, sheet)]
        total = sum((r.amount_abs for r in scoped), _ZERO)
        return MatchedSummary(count=len(scoped), amount=total / 2)

    def diff(self, rows: Iterable[TransactionRow], sheet: str | None = None) -> Decimal | None:
        balance = self.system_balance(sheet)
        if balance is None:
            return None
        return self.pending_sum(rows, sheet) - balance

    def is_balanced(self, rows: Iterable[TransactionRow], sheet: str | None = None) -> bool:
        d = self.diff(rows, sheet)
        return d is not None and d == 0


__all__ = ["ProofLedger"]
