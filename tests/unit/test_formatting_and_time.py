"""Unit tests for money formatting, percentages and date helpers."""

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from app.utils.formatting import format_number, format_price, percent
from app.utils.time import (
    add_formatted_dates,
    business_now,
    end_of_day_utc,
    format_date,
    format_datetime,
    parse_iso_datetime,
    to_naive_utc,
)


def test_format_price():
    assert format_price(1500) == "฿1,500"
    assert format_price(Decimal("1200.06")) == "฿1,200.06"
    assert format_price("1000000.5") == "฿1,000,000.50"
    assert format_price(Decimal("0")) == "฿0"


def test_format_number_rounds_half_up():
    assert format_number(Decimal("2.345")) == "2.35"


@pytest.mark.parametrize("part, total, expected", [
    (1, 3, 33),
    (2, 3, 67),
    (1, 8, 13),
    (0, 5, 0),
    (5, 5, 100),
    (3, 0, 0),
])
def test_percent(part, total, expected):
    assert percent(part, total) == expected


@pytest.mark.parametrize("value", [
    "2025-06-30",
    "2025-06-30T00:00:00Z",
    "2025-06-30T17:45:00+07:00",
    "2025-06-30T23:59:59.999",
    date(2025, 6, 30),
    datetime(2025, 6, 30, 8, 15),
])
def test_end_of_day_utc_keeps_the_written_day(value):
    assert end_of_day_utc(value) == datetime(2025, 6, 30, 23, 59, 59)


def test_parse_iso_datetime_rejects_garbage():
    with pytest.raises(ValueError):
        parse_iso_datetime("next tuesday")


def test_to_naive_utc():
    aware = datetime(2025, 6, 30, 7, 0, tzinfo=timezone.utc)
    assert to_naive_utc(aware) == datetime(2025, 6, 30, 7, 0)
    assert to_naive_utc(datetime(2025, 6, 30)) == datetime(2025, 6, 30)


def test_business_now_is_bangkok_day():
    local = business_now(datetime(2025, 6, 29, 18, 30))
    assert (local.year, local.month, local.day, local.hour) == (2025, 6, 30, 1)


def test_display_formats():
    assert format_datetime(datetime(2025, 6, 30, 2, 0, 0)) == "30/06/2025 09:00:00"
    assert format_date(datetime(2025, 6, 30, 23, 59, 59)) == "30/06/2025"
    assert format_datetime(None) is None


def test_expire_date_is_rendered_without_shift():
    record = add_formatted_dates(
        {"expire_date": datetime(2025, 6, 30, 23, 59, 59), "send_date": datetime(2025, 6, 30, 2, 0), "update_date": None},
        ("expire_date", "send_date", "update_date"),
    )
    assert record["expire_date_formatted"] == "30/06/2025 23:59:59"
    assert record["send_date_formatted"] == "30/06/2025 09:00:00"
    assert "update_date_formatted" not in record
