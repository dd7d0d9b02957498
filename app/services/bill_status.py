"""
Read-time status projection for unit charges.

The stored status of a unit charge only ever says Pending, Paid, Partial or
Deleted. What residents and operators see also depends on the clock and on
payments recorded so far:

- Pending with 0 < paid < total_price reads as Partial (4)
- otherwise Pending past its bill's expire_date reads as Overdue (3)
- anything else reads as stored

``project_status`` applies the rule to one row in Python and
``projected_status_expr`` builds the same rule as a SQL CASE so filters and
counters agree with what rows display.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional, Union

from sqlalchemy import and_, case, func, literal, select
from sqlalchemy.sql.elements import ColumnElement

from app.models.base import DELETED_STATUS
from app.models.billing import Bill, BillRoom, BillTransaction
from app.models.enums import BillRoomStatus, BILL_ROOM_STATUS_LABELS
from app.utils.time import get_utc_now

_STATUS_COLOURS = {
    BillRoomStatus.PENDING: ("#D27500", "#FFECD5"),
    BillRoomStatus.PAID: ("#0F7D3E", "#D5F5E3"),
    BillRoomStatus.OVERDUE: ("#C0392B", "#FADBD8"),
    BillRoomStatus.PARTIAL: ("#0075FF", "#DAEBFF"),
}

UNPAID_STATUSES = (BillRoomStatus.PENDING, BillRoomStatus.OVERDUE, BillRoomStatus.PARTIAL)


def project_status(
    stored: int,
    expire_date: Optional[datetime],
    paid_sum: Optional[Decimal],
    total_price: Optional[Decimal],
    now: Optional[datetime] = None,
) -> int:
    """Observable status of one unit charge. Idempotent on its own output."""
    if stored != BillRoomStatus.PENDING:
        return int(stored)
    paid = Decimal(str(paid_sum or 0))
    total = Decimal(str(total_price or 0))
    if 0 < paid < total:
        return int(BillRoomStatus.PARTIAL)
    current = now or get_utc_now()
    if expire_date is not None and current > expire_date:
        return int(BillRoomStatus.OVERDUE)
    return int(stored)


def paid_sum_subquery():
    """Sum of non-deleted transaction amounts per unit charge."""
    return (
        select(
            BillTransaction.bill_room_id.label("bill_room_id"),
            func.sum(BillTransaction.transaction_amount).label("paid_sum"),
        )
        .where(BillTransaction.status != DELETED_STATUS)
        .group_by(BillTransaction.bill_room_id)
        .subquery("paid")
    )


def projected_status_expr(paid_sum: ColumnElement, now: Union[datetime, ColumnElement]) -> ColumnElement:
    """
    SQL form of ``project_status`` over BillRoom joined with its Bill.

    ``now`` is either an application timestamp (bound) or a database clock expression.
    """
    paid = func.coalesce(paid_sum, 0)
    return case(
        (
            and_(
                BillRoom.status == BillRoomStatus.PENDING.value,
                paid > 0,
                paid < BillRoom.total_price,
            ),
            literal(BillRoomStatus.PARTIAL.value),
        ),
        (
            and_(
                BillRoom.status == BillRoomStatus.PENDING.value,
                Bill.expire_date < now,
            ),
            literal(BillRoomStatus.OVERDUE.value),
        ),
        else_=BillRoom.status,
    )


def status_object(status: int) -> Dict[str, Any]:
    """Display metadata for a projected status, as the resident app renders it."""
    try:
        key = BillRoomStatus(status)
    except ValueError:
        return {"id": status, "text": "ไม่ทราบสถานะ", "text_color": "#000000", "background_color": "#FFFFFF"}
    text_color, background = _STATUS_COLOURS.get(key, ("#000000", "#FFFFFF"))
    return {
        "id": int(key),
        "text": BILL_ROOM_STATUS_LABELS.get(key, "ไม่ทราบสถานะ"),
        "text_color": text_color,
        "background_color": background,
    }
