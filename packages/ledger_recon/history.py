"""Bounded undo history of result-set snapshots."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field

from .models import ProofRecord, ReconciliationSummary, TransactionRow

UNDO_CAPACITY = 5


@dataclass(frozen=True, slots=True)
class UndoSnapshot:
    """State captured immediately before a mutating operation.

    Rows and proof records are frozen, so holding the tuple/dict by value is
    a full copy of the state.
    """

    result_rows: tuple[TransactionRow, ...]
    summary: ReconciliationSummary
    proofs: dict[str, ProofRecord] = field(default_factory=dict)


class UndoHistory:
    """Most-recent-first stack; pushing past capacity drops the oldest entry."""

    def __init__(self, capacity: int = UNDO_CAPACITY) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be a positive integer")
        self._items: deque[UndoSnapshot] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._items.maxlen or 0

    def push(self, snapshot: UndoSnapshot) -> None:
        self._items.appendleft(snapshot)

    def pop(self) -> UndoSnapshot | None:
        """Remove and return the newest snapshot, or ``None`` when empty."""

        if not self._items:
            return None
        return self._items.popleft()

    def peek(self) -> UndoSnapshot | None:
        return self._items[0] if self._items else None

    def clear(self) -> None:
        self._items.clear()

    def __len__(self) -> int:
        return len(self._items)


__all__ = ["UNDO_CAPACITY", "UndoHistory", "UndoSnapshot"]
