from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from ledger_recon.normalizers import (
    format_display_date,
    is_blank_record,
    normalize_row,
    normalize_rows,
    parse_amount,
    parse_strict_amount,
)


def test_parse_amount_handles_bank_formats():
    assert parse_amount("1,000").value == Decimal("1000")
    assert parse_amount("-2,500.75").value == Decimal("-2500.75")

    paren = parse_amount("(1,234.56)")
    assert paren.value == Decimal("-1234.56")
    assert paren.is_negative is True
    assert paren.original == "(1,234.56)"

    # Currency symbols and stray spaces are ignored
    assert parse_amount("NGN 2,500.00").value == Decimal("2500.00")
    assert parse_amount("₦ 75").value == Decimal("75")

    # Native numbers keep their decimal rendering
    assert parse_amount(0.1).value == Decimal("0.1")
    assert parse_amount(-50).value == Decimal("-50")


def test_parse_amount_never_raises():
    for raw in (None, "", "abc", "-", "()", True, float("nan"), Decimal("Infinity")):
        parsed = parse_amount(raw)
        assert parsed.value == Decimal("0")
        assert parsed.is_negative is False


def test_parse_strict_amount_rejects_text_without_digits():
    assert parse_strict_amount("abc") is None
    assert parse_strict_amount("") is None
    assert parse_strict_amount(None) is None
    assert parse_strict_amount("5,000") == Decimal("5000")
    assert parse_strict_amount("(10)") == Decimal("-10")
    assert parse_strict_amount(12.5) == Decimal("12.5")


def test_format_display_date():
    assert format_display_date(datetime(2025, 1, 5, 13, 45)) == "05-Jan-2025"
    assert format_display_date(date(2024, 12, 31)) == "31-Dec-2024"
    # Excel serial day number
    assert format_display_date(45658) == "01-Jan-2025"
    assert format_display_date("  2025/01/02 ") == "2025/01/02"
    assert format_display_date(None) == ""


def test_normalize_row_maps_columns_and_fingerprints():
    raw = {"Tran Date": "01-Jan-2025", "Narration": "  John   Doe  transfer ", "Amount": "-1,000.00"}
    row = normalize_row(raw, sheet="ACC1", row_id="r1")

    assert row.id == "r1"
    assert row.sheet == "ACC1"
    assert row.date == "01-Jan-2025"
    assert row.narration == "John Doe transfer"
    assert row.signed_amount == Decimal("-1000.00")
    assert row.amount_abs == Decimal("1000.00")
    assert row.amount_type == "debit"
    assert row.is_negative is True
    assert row.status == "pending"
    assert row.side is None
    assert row.first15 == "JOHN DOE TRANSF"
    assert row.last15 == "HN DOE TRANSFER"
    assert row.fingerprint_prefix == "JOHN DOE TRANSF_1000"
    assert row.fingerprint_suffix == "HN DOE TRANSFER_1000"


def test_normalize_row_tolerates_header_variants():
    raw = {"TRAN_DATE": "02-Jan-2025", "Description": "POS PURCHASE", "LCY Amt": "250", "Age Days": 4}
    row = normalize_row(raw, sheet="S")
    assert row.date == "02-Jan-2025"
    assert row.narration == "POS PURCHASE"
    assert row.signed_amount == Decimal("250")
    assert row.amount_type == "credit"
    assert row.age == "4"
    assert len(row.id) == 32


def test_missing_fields_degrade_to_zero_amount():
    row = normalize_row({"Memo": "nothing useful"}, sheet="S")
    assert row.signed_amount == Decimal("0")
    assert row.sign == 0
    assert row.narration == ""
    assert row.fingerprint_prefix == "_0"


def test_blank_records_are_dropped():
    assert is_blank_record({"Date": "", "Narration": "", "Amount": ""})
    assert is_blank_record({"Date": None, "Narration": "  ", "Amount": "0.00"})
    assert not is_blank_record({"Date": "", "Narration": "FEE", "Amount": "0"})

    rows = normalize_rows(
        [
            {"Date": "01-Jan-2025", "Narration": "A", "Amount": "10"},
            {"Date": "", "Narration": "", "Amount": ""},
            "not a mapping",  # type: ignore[list-item]
            {"Date": "02-Jan-2025", "Narration": "B", "Amount": "-10"},
        ],
        sheet="S",
    )
    assert [r.narration for r in rows] == ["A", "B"]
    assert len({r.id for r in rows}) == 2


def test_fingerprints_are_stable_across_normalizations():
    raw = {"Date": "01-Jan-2025", "Narration": "NIP TRF FROM ADA OBI\tREF 991", "Amount": "(2,000)"}
    a = normalize_row(raw, sheet="S")
    b = normalize_row(dict(raw), sheet="OTHER")
    assert a.id != b.id
    assert (a.fingerprint_prefix, a.fingerprint_suffix) == (b.fingerprint_prefix, b.fingerprint_suffix)
    assert a.fingerprint_prefix == "NIP TRF FROM AD_2000"
