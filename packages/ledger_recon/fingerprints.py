"""Fingerprint keys used to propose candidate matches.

A fingerprint key is the uppercased first or last 15 characters of a
narration joined to the absolute amount, e.g. ``"JOHN DOE TRANSF_1000"``.
Source systems truncate or pad narrations differently, so each row carries
both a prefix key and a suffix key and matchers try every cross-combination.
"""

from __future__ import annotations

from decimal import Decimal

FINGERPRINT_WIDTH = 15


def render_amount(amount_abs: Decimal) -> str:
    """Render an amount for use inside a key: no exponent, no trailing zeros.

    ``Decimal("1000.00")`` renders as ``"1000"`` and ``Decimal("1000.50")`` as
    ``"1000.5"`` so equal amounts typed with different precision share a key.
    """

    if amount_abs == 0:
        return "0"
    return format(amount_abs.normalize(), "f")


def narration_ends(narration: str, *, width: int = FINGERPRINT_WIDTH) -> tuple[str, str]:
    """Return the uppercased, trimmed first and last ``width`` characters."""

    first = narration[:width].upper().strip()
    last = narration[-width:].upper().strip() if narration else ""
    return first, last


def fingerprint_keys(narration: str, amount_abs: Decimal) -> tuple[str, str]:
    """Return ``(prefix_key, suffix_key)`` for a normalized narration and amount."""

    first, last = narration_ends(narration)
    amount = render_amount(amount_abs)
    return f"{first}_{amount}", f"{last}_{amount}"


def keys_overlap(a: tuple[str, str], b: tuple[str, str]) -> bool:
    """True when any of the four prefix/suffix cross-combinations are equal."""

    return bool(set(a) & set(b))


__all__ = [
    "FINGERPRINT_WIDTH",
    "fingerprint_keys",
    "keys_overlap",
    "narration_ends",
    "render_amount",
]
