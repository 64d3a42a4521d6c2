"""ledger_recon: bank ledger reconciliation engine (matching, proofs, undo)."""
