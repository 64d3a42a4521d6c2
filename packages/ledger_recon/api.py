"""Public API surface for the ``ledger_recon`` package.

This module serves as a stable import surface. The session driver lives in
``ledger_recon.session``, the end-to-end file workflow in
``ledger_recon.workflows.reconcile_flow``; both are re-exported here together
with the pure matching functions.
"""

from __future__ import annotations

from .errors import OperationResult, ReconciliationError
from .export import export_results
from .knockoff import KnockOffResult, auto_knock_off
from .ledger import ProofLedger
from .manual import ManualMatch, manual_match
from .matching import MatchOutcome, build_result_rows, match_pairs, match_two_pass
from .models import Batch, BatchMetadata, ReconciliationSummary, TransactionRow
from .normalizers import normalize_row, normalize_rows, parse_amount
from .session import ReconciliationSession, RunReport
from .workflows.reconcile_flow import ReconcileOutcome, reconcile_statement_files

# DB and persistence imports stay in ``ledger_recon.persistence`` so importing
# the API does not require a configured database.

__all__ = [
    "Batch",
    "BatchMetadata",
    "KnockOffResult",
    "ManualMatch",
    "MatchOutcome",
    "OperationResult",
    "ProofLedger",
    "ReconcileOutcome",
    "ReconciliationError",
    "ReconciliationSession",
    "ReconciliationSummary",
    "RunReport",
    "TransactionRow",
    "auto_knock_off",
    "build_result_rows",
    "export_results",
    "manual_match",
    "match_pairs",
    "match_two_pass",
    "normalize_row",
    "normalize_rows",
    "parse_amount",
    "reconcile_statement_files",
]
