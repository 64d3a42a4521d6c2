"""Error taxonomy and the result wrapper returned by mutating operations.

Session operations never raise for expected failures (bad operator input, no
candidates, empty history). They return an :class:`OperationResult` carrying
either a value or a :class:`ReconciliationError`, and callers decide how to
surface it. ``ReconciliationError`` is still an ``Exception`` so a caller that
prefers exceptions can simply ``raise result.error``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, Literal, TypeVar

ErrorKind = Literal[
    "validation",
    "not_found",
    "no_candidates",
    "nothing_to_undo",
    "internal",
    "persistence",
]

T = TypeVar("T")


class ReconciliationError(Exception):
    """A failed reconciliation operation with a machine-readable ``kind``."""

    def __init__(self, kind: ErrorKind, message: str) -> None:
        super().__init__(message)
        self.kind: ErrorKind = kind
        self.message = message

    def __repr__(self) -> str:
        return f"ReconciliationError(kind={self.kind!r}, message={self.message!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ReconciliationError):
            return NotImplemented
        return (self.kind, self.message) == (other.kind, other.message)

    def __hash__(self) -> int:
        return hash((self.kind, self.message))


@dataclass(frozen=True, slots=True)
class OperationResult(Generic[T]):
    value: T | None = None
    error: ReconciliationError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> OperationResult[T]:
        return cls(value=value)

    @classmethod
    def failure(cls, kind: ErrorKind, message: str) -> OperationResult[T]:
        return cls(error=ReconciliationError(kind, message))

    def unwrap(self) -> T:
        """Return the value or raise the carried error."""

        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]


__all__ = ["ErrorKind", "OperationResult", "ReconciliationError"]
