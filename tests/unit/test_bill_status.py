"""Unit tests for the read-time unit charge status projection."""

from datetime import datetime
from decimal import Decimal

from sqlalchemy.dialects import postgresql

from app.models.enums import BillRoomStatus
from app.services.bill_status import (
    paid_sum_subquery,
    project_status,
    projected_status_expr,
    status_object,
)

EXPIRED = datetime(2020, 1, 1, 23, 59, 59)
READ_AT = datetime(2025, 1, 1, 0, 0, 0)


def test_pending_past_due_reads_overdue():
    assert project_status(0, EXPIRED, None, Decimal("1000"), READ_AT) == BillRoomStatus.OVERDUE


def test_partial_payment_wins_over_overdue():
    assert project_status(0, EXPIRED, Decimal("500"), Decimal("1000"), READ_AT) == BillRoomStatus.PARTIAL


def test_paid_is_stored_as_is():
    assert project_status(1, EXPIRED, Decimal("1000"), Decimal("1000"), READ_AT) == BillRoomStatus.PAID


def test_pending_before_due_date():
    assert project_status(0, datetime(2025, 6, 30, 23, 59, 59), None, Decimal("10"), READ_AT) == 0


def test_full_payment_still_pending_until_marked_paid():
    # Payments collaborator flips status to 1; until then the row is plain pending/overdue
    assert project_status(0, EXPIRED, Decimal("1000"), Decimal("1000"), READ_AT) == BillRoomStatus.OVERDUE


def test_projection_is_idempotent():
    for stored in (0, 1, 2, 3, 4):
        once = project_status(stored, EXPIRED, Decimal("500"), Decimal("1000"), READ_AT)
        assert project_status(once, EXPIRED, Decimal("500"), Decimal("1000"), READ_AT) == once


def test_deleted_and_partial_pass_through():
    assert project_status(2, EXPIRED, None, Decimal("1"), READ_AT) == 2
    assert project_status(4, None, None, Decimal("1"), READ_AT) == 4


def test_status_object():
    overdue = status_object(3)
    assert overdue["id"] == 3
    assert overdue["text"] == "เกินกำหนด"
    assert overdue["text_color"].startswith("#")
    assert status_object(99)["text"] == "ไม่ทราบสถานะ"


def test_projected_status_expr_compiles():
    paid = paid_sum_subquery()
    sql = str(projected_status_expr(paid.c.paid_sum, READ_AT).compile(dialect=postgresql.dialect()))
    assert "CASE" in sql
    assert "bill_information.expire_date" in sql
    assert "coalesce(paid.paid_sum" in sql
