"""Shared SQLAlchemy models registry for the workspace database.

Currently includes the reconciliation models used by ``ledger_recon``.
"""

from .recon import Base, ReconProof, ReconResult

__all__ = [
    "Base",
    "ReconProof",
    "ReconResult",
]
