"""Unit tests for charge sheet row validation."""

from decimal import Decimal

from app.services.row_validator import (
    REASON_MISSING,
    REASON_NON_NUMERIC,
    parse_amount,
    validate_rows,
)
from app.services.spreadsheet_parser import (
    AMOUNT_COLUMN,
    HOUSE_NO_COLUMN,
    MEMBER_NAME_COLUMN,
    REMARK_COLUMN,
    ParsedRow,
)


def _row(number, house_no, member_name, amount, remark=None):
    return ParsedRow(
        row_number=number,
        values={
            HOUSE_NO_COLUMN: house_no,
            MEMBER_NAME_COLUMN: member_name,
            AMOUNT_COLUMN: amount,
            REMARK_COLUMN: remark,
        },
    )


def _sheet_rows():
    return [
        _row(1, "10/05", "Alice", 1500),
        _row(2, "10/06", "Bob", 2000, "late"),
        _row(3, "10/07", "Carol", "abc"),
    ]


def test_happy_path_classification():
    report = validate_rows(_sheet_rows())

    assert [row.house_no for row in report.valid_rows] == ["10/05", "10/06"]
    assert report.valid_rows[1].remark == "late"
    assert report.total_amount == Decimal("3500")
    assert report.invalid_count == 1
    skipped = report.skipped_rows[0]
    assert skipped.row_number == 3
    assert skipped.reason == REASON_NON_NUMERIC
    assert skipped.amount == "abc"


def test_excluded_rows_win():
    report = validate_rows(_sheet_rows(), excluded_rows=[1, 3])

    assert [row.member_name for row in report.valid_rows] == ["Bob"]
    assert report.excluded_rows == [1, 3]
    assert report.skipped_rows == []


def test_every_row_has_exactly_one_outcome():
    rows = _sheet_rows() + [_row(4, None, "Dan", 10), _row(5, "10/09", "", 10)]
    report = validate_rows(rows, excluded_rows=[2])

    seen = (
        [row.row_number for row in report.valid_rows]
        + [row.row_number for row in report.skipped_rows]
        + report.excluded_rows
    )
    assert sorted(seen) == [1, 2, 3, 4, 5]


def test_missing_fields_reason():
    report = validate_rows([_row(1, "10/05", None, 100), _row(2, "10/06", "Bob", None)])

    assert [row.reason for row in report.skipped_rows] == [REASON_MISSING, REASON_MISSING]
    assert report.skipped_rows[0].member_name is None
    assert report.skipped_rows[1].amount is None


def test_whole_float_unit_numbers():
    report = validate_rows([_row(1, 101.0, "Alice", 1500.0)])
    assert report.valid_rows[0].house_no == "101"
    assert report.valid_rows[0].total_price == Decimal("1500.0")


def test_diagnostics_shape():
    diagnostics = validate_rows(_sheet_rows(), excluded_rows=[1]).diagnostics()

    assert diagnostics["valid_count"] == 1
    assert diagnostics["invalid_count"] == 1
    assert diagnostics["total_amount"] == "2000"
    assert diagnostics["excluded_rows"] == [1]
    assert diagnostics["skipped_rows"][0]["reason"] == REASON_NON_NUMERIC


def test_parse_amount():
    assert parse_amount("1,500") == Decimal("1500")
    assert parse_amount(" 12.50 ") == Decimal("12.50")
    assert parse_amount(7) == Decimal("7")
    assert parse_amount("abc") is None
    assert parse_amount("NaN") is None
    assert parse_amount("Infinity") is None
    assert parse_amount(True) is None
