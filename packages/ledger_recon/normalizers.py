"""Raw record -> :class:`TransactionRow` normalization.

Amount parsing accepts plain numbers, comma-grouped strings, parenthesized
negatives such as ``"(123.45)"`` and stray currency symbols. Parsing never
raises: unparseable input degrades to a zero amount, and zero-amount rows are
kept but never matched.

Column lookup is tolerant of the header spellings seen across core-banking
exports (``Tran Date``, ``TRAN_DATE``, ``Narrative``, ``Description``,
``LCY Amt`` ...). Exact aliases win over substring matches.
"""

from __future__ import annotations

import re
import uuid
from collections.abc import Iterable, Iterator, Mapping
from datetime import date, datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any, NamedTuple

from .fingerprints import fingerprint_keys, narration_ends
from .models import TransactionRecord, TransactionRow

# ---------------------------------------------------------------------------
# Amounts
# ---------------------------------------------------------------------------

_ZERO = Decimal("0")
_NOT_NUMERIC_RE = re.compile(r"[^0-9\-().,+]")
_LEADING_NUMBER_RE = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)")


class ParsedAmount(NamedTuple):
    value: Decimal
    is_negative: bool
    original: str


def parse_amount(raw: Any) -> ParsedAmount:
    """Parse an amount cell into a signed ``Decimal``.

    Returns ``ParsedAmount(0, False, original)`` for empty or unparseable input
    instead of raising.
    """

    if raw is None or isinstance(raw, bool):
        return ParsedAmount(_ZERO, False, "")
    if isinstance(raw, Decimal):
        if not raw.is_finite():
            return ParsedAmount(_ZERO, False, str(raw))
        return ParsedAmount(raw, raw < 0, str(raw))
    if isinstance(raw, (int, float)):
        # str() first so 0.1 stays 0.1 rather than its binary expansion
        try:
            d = Decimal(str(raw))
        except InvalidOperation:
            return ParsedAmount(_ZERO, False, str(raw))
        if not d.is_finite():
            return ParsedAmount(_ZERO, False, str(raw))
        return ParsedAmount(d, d < 0, str(raw))

    original = str(raw).strip()
    s = _NOT_NUMERIC_RE.sub("", original).strip()

    # Parentheses mean negative wherever they sit, so "-(1,234.56)" and
    # "(1,234.56)" both read as -1234.56.
    negative = "(" in s and ")" in s
    s = s.replace("(", "").replace(")", "").replace(",", "")
    if s in {"", "-", "-.", "+", "."}:
        return ParsedAmount(_ZERO, False, original)

    # Take the leading numeric prefix, mirroring lenient spreadsheet parsers:
    # "12.50-" reads as 12.50, "1.2.3" as 1.2.
    m = _LEADING_NUMBER_RE.match(s)
    if m is None:
        return ParsedAmount(_ZERO, False, original)
    value = Decimal(m.group(0))
    if negative:
        value = -abs(value)
    return ParsedAmount(value, value < 0, original)


def parse_strict_amount(raw: Any) -> Decimal | None:
    """Parse an operator-entered amount, returning ``None`` when not numeric.

    Unlike :func:`parse_amount`, text with no digits is rejected instead of
    degrading to zero. Used for values that must be validated before any
    state changes (system balance, manual match amount).
    """

    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float, Decimal)):
        d = Decimal(str(raw)) if not isinstance(raw, Decimal) else raw
        return d if d.is_finite() else None
    text = str(raw).strip()
    if not any(ch.isdigit() for ch in text):
        return None
    return parse_amount(text).value


# ---------------------------------------------------------------------------
# Narration and dates
# ---------------------------------------------------------------------------

_WS_RE = re.compile(r"\s+")
_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")
_EXCEL_EPOCH = datetime(1899, 12, 30)


def normalize_narration(raw: Any) -> str:
    if raw is None:
        return ""
    return _WS_RE.sub(" ", str(raw)).strip()


def _fmt_date(d: date) -> str:
    return f"{d.day:02d}-{_MONTHS[d.month - 1]}-{d.year:04d}"


def format_display_date(raw: Any) -> str:
    """Render a date cell as ``DD-Mon-YYYY``.

    ``date``/``datetime`` objects and Excel serial numbers are formatted;
    anything else is returned as trimmed text (possibly empty).
    """

    if raw is None or raw == "":
        return ""
    if isinstance(raw, (datetime, date)):
        return _fmt_date(raw)
    if isinstance(raw, (int, float, Decimal)) and not isinstance(raw, bool):
        try:
            return _fmt_date(_EXCEL_EPOCH + timedelta(days=float(raw)))
        except (OverflowError, ValueError):
            return str(raw).strip()
    return str(raw).strip()


# ---------------------------------------------------------------------------
# Column lookup
# ---------------------------------------------------------------------------

_DATE_ALIASES = ("date", "tran date", "transaction date", "value date", "posting date", "txn date")
_NARRATION_ALIASES = ("narration", "narrative", "description", "details", "particulars", "remarks")
_AMOUNT_ALIASES = ("amount", "amt", "lcy amount", "lcy amt", "signed amount", "tran amount")
_AGE_ALIASES = ("age", "days", "age days")

_DATE_TOKENS = ("tran", "date")
_NARRATION_TOKENS = ("narr", "desc")
_AMOUNT_TOKENS = ("amount", "amt")
_AGE_TOKENS = ("age", "days")


def _norm_key(key: Any) -> str:
    return " ".join(re.sub(r"[^a-z0-9]+", " ", str(key).lower()).split())


def _lookup(
    raw: TransactionRecord, aliases: tuple[str, ...], tokens: tuple[str, ...]
) -> Any:
    normalized = {_norm_key(k): k for k in raw.keys() if k is not None}
    for alias in aliases:
        if alias in normalized:
            return raw[normalized[alias]]
    for token in tokens:
        for nk, original_key in normalized.items():
            if token in nk:
                return raw[original_key]
    return None


def _is_empty(v: Any) -> bool:
    return v is None or (isinstance(v, str) and v.strip() == "")


# ---------------------------------------------------------------------------
# Row normalization
# ---------------------------------------------------------------------------


def new_row_id() -> str:
    return uuid.uuid4().hex


def normalize_row(raw: TransactionRecord, *, sheet: str, row_id: str | None = None) -> TransactionRow:
    """Map one raw record onto a canonical :class:`TransactionRow`.

    Missing or misnamed fields degrade to blanks and a zero amount.
    """

    raw_date = _lookup(raw, _DATE_ALIASES, _DATE_TOKENS)
    raw_narration = _lookup(raw, _NARRATION_ALIASES, _NARRATION_TOKENS)
    raw_amount = _lookup(raw, _AMOUNT_ALIASES, _AMOUNT_TOKENS)
    raw_age = _lookup(raw, _AGE_ALIASES, _AGE_TOKENS)

    parsed = parse_amount(raw_amount)
    narration = normalize_narration(raw_narration)
    amount_abs = abs(parsed.value)
    first15, last15 = narration_ends(narration)
    prefix_key, suffix_key = fingerprint_keys(narration, amount_abs)

    return TransactionRow(
        id=row_id or new_row_id(),
        date=format_display_date(raw_date),
        narration=narration,
        original_amount=parsed.original,
        signed_amount=parsed.value,
        amount_abs=amount_abs,
        amount_type="debit" if parsed.value < 0 else "credit",
        is_negative=parsed.is_negative,
        first15=first15,
        last15=last15,
        fingerprint_prefix=prefix_key,
        fingerprint_suffix=suffix_key,
        sheet=sheet,
        age=None if _is_empty(raw_age) else str(raw_age).strip(),
    )


def is_blank_record(raw: TransactionRecord) -> bool:
    """True for spreadsheet rows that carry no transaction at all.

    A row is blank when date, narration and amount are all empty, or when the
    amount parses to zero and both date and narration are empty.
    """

    raw_date = _lookup(raw, _DATE_ALIASES, _DATE_TOKENS)
    raw_narration = _lookup(raw, _NARRATION_ALIASES, _NARRATION_TOKENS)
    raw_amount = _lookup(raw, _AMOUNT_ALIASES, _AMOUNT_TOKENS)
    if all(_is_empty(v) for v in (raw_date, raw_narration, raw_amount)):
        return True
    return (
        parse_amount(raw_amount).value == 0
        and _is_empty(raw_date)
        and normalize_narration(raw_narration) == ""
    )


def iter_normalized(raws: Iterable[TransactionRecord], *, sheet: str) -> Iterator[TransactionRow]:
    for raw in raws:
        if not isinstance(raw, Mapping) or is_blank_record(raw):
            continue
        yield normalize_row(raw, sheet=sheet)


def normalize_rows(raws: Iterable[TransactionRecord], *, sheet: str) -> list[TransactionRow]:
    """Normalize a batch, dropping blank spreadsheet rows."""

    return list(iter_normalized(raws, sheet=sheet))


__all__ = [
    "ParsedAmount",
    "format_display_date",
    "is_blank_record",
    "iter_normalized",
    "new_row_id",
    "normalize_narration",
    "normalize_row",
    "normalize_rows",
    "parse_amount",
    "parse_strict_amount",
]
