"""
Bill Query Service - read models for the operator dashboard and resident app.

Every statement filters out status 2 at each joined level and applies the
virtual status projection before any status filter the caller asks for.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import Select, and_, func, literal_column, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundError
from app.models.base import DELETED_STATUS
from app.models.billing import Bill, BillAttachment, BillRoom, BillType
from app.models.enums import BillRoomStatus, BillStatus
from app.services.bill_status import (
    UNPAID_STATUSES,
    paid_sum_subquery,
    project_status,
    projected_status_expr,
    status_object,
)
from app.services.notification_service import (
    BILL_ROOM_TABLE,
    NotificationService,
    evaluate_resend_window,
    latest_audit_subquery,
)
from app.utils.formatting import format_price, percent
from app.utils.pagination import PageParams, keyword_filter, paginate
from app.utils.time import add_formatted_dates, format_datetime, get_utc_now

BILL_DATE_FIELDS = ("create_date", "update_date", "expire_date", "send_date")
BILL_ROOM_DATE_FIELDS = ("create_date", "update_date", "expire_date", "send_date")


def parse_status_filter(status: Optional[str]) -> List[int]:
    """'1' or '0,3,4' -> [ints]; blanks and junk are ignored."""
    if status is None:
        return []
    values = []
    for part in str(status).split(","):
        part = part.strip()
        if part.lstrip("-").isdigit():
            values.append(int(part))
    return values


def normalize_house_no(house_no: str) -> str:
    """The resident app sends 11-01 for unit 11/01."""
    return house_no.strip().replace("-", "/")


def _db_now():
    return func.timezone("UTC", func.now())


def _this_month(column):
    """create_date inside the current month on the database clock."""
    month_start = func.date_trunc("month", _db_now())
    month_end = month_start + literal_column("INTERVAL '1 month'")
    return and_(column >= month_start, column < month_end)


def _room_aggregates():
    return (
        select(
            BillRoom.bill_id.label("bill_id"),
            func.count(BillRoom.id).label("room_count"),
            func.sum(BillRoom.total_price).label("total_amount"),
            func.count(BillRoom.id).filter(BillRoom.status == BillRoomStatus.PAID.value).label("paid_count"),
        )
        .where(BillRoom.status != DELETED_STATUS)
        .group_by(BillRoom.bill_id)
        .subquery("rooms")
    )


def _bill_select() -> Select:
    rooms = _room_aggregates()
    return (
        select(
            Bill.id,
            Bill.bill_no,
            Bill.upload_key,
            Bill.title,
            Bill.bill_type_id,
            Bill.detail,
            Bill.expire_date,
            Bill.send_date,
            Bill.remark,
            Bill.customer_id,
            Bill.status,
            Bill.create_date,
            Bill.create_by,
            Bill.update_date,
            Bill.update_by,
            BillType.title.label("bill_type_title"),
            func.coalesce(rooms.c.room_count, 0).label("room_count"),
            func.coalesce(rooms.c.total_amount, 0).label("total_amount"),
            func.coalesce(rooms.c.paid_count, 0).label("paid_count"),
        )
        .select_from(Bill)
        .outerjoin(BillType, and_(BillType.id == Bill.bill_type_id, BillType.status != DELETED_STATUS))
        .outerjoin(rooms, rooms.c.bill_id == Bill.id)
        .where(Bill.status != DELETED_STATUS)
    )


def _bill_room_select(now) -> Tuple[Select, Any]:
    """Unit charges of live bills with payment sums and the projected status."""
    paid = paid_sum_subquery()
    projected = projected_status_expr(paid.c.paid_sum, now)
    paid_amount = func.coalesce(paid.c.paid_sum, 0)
    stmt = (
        select(
            BillRoom.id,
            BillRoom.bill_id,
            BillRoom.bill_no,
            BillRoom.house_no,
            BillRoom.member_name,
            BillRoom.total_price,
            BillRoom.remark,
            BillRoom.customer_id,
            BillRoom.status.label("stored_status"),
            projected.label("status"),
            paid_amount.label("paid_amount"),
            (BillRoom.total_price - paid_amount).label("remaining_amount"),
            BillRoom.create_date,
            BillRoom.create_by,
            BillRoom.update_date,
            BillRoom.update_by,
            Bill.bill_no.label("parent_bill_no"),
            Bill.title.label("bill_title"),
            Bill.detail.label("bill_detail"),
            Bill.expire_date,
            Bill.send_date,
            Bill.status.label("bill_status"),
        )
        .select_from(BillRoom)
        .join(Bill, and_(Bill.id == BillRoom.bill_id, Bill.status != DELETED_STATUS))
        .outerjoin(paid, paid.c.bill_room_id == BillRoom.id)
        .where(BillRoom.status != DELETED_STATUS)
    )
    return stmt, projected


def serialize_bill(row: Dict[str, Any]) -> Dict[str, Any]:
    record = dict(row)
    record["total_amount_formatted"] = format_price(record["total_amount"])
    return add_formatted_dates(record, BILL_DATE_FIELDS)


def serialize_bill_room(
    row: Dict[str, Any],
    now: datetime,
    interval_minutes: Optional[float] = None,
) -> Dict[str, Any]:
    record = dict(row)
    record["status"] = project_status(
        record["stored_status"], record["expire_date"], record["paid_amount"], record["total_price"], now
    )
    record["status_formatted"] = status_object(record["status"])
    record["total_price_formatted"] = format_price(record["total_price"])
    record["paid_amount_formatted"] = format_price(record["paid_amount"])
    record["remaining_amount_formatted"] = format_price(record["remaining_amount"])
    if interval_minutes is not None:
        last_sent_at = record.get("last_sent_at")
        allowed, remaining = evaluate_resend_window(last_sent_at, now, interval_minutes)
        record["can_send_notification"] = allowed
        record["remaining_minutes"] = remaining
        record["last_sent_at_formatted"] = format_datetime(last_sent_at)
    return add_formatted_dates(record, BILL_ROOM_DATE_FIELDS)


class BillQueryService:
    @staticmethod
    async def list_bills(
        db: AsyncSession,
        customer_id: str,
        params: PageParams,
        keyword: Optional[str] = None,
        status: Optional[str] = None,
        bill_type_id: Optional[int] = None,
    ) -> Tuple[List[Dict[str, Any]], int]:
        stmt = _bill_select().where(Bill.customer_id == customer_id)
        statuses = parse_status_filter(status)
        if statuses:
            stmt = stmt.where(Bill.status.in_(statuses))
        if bill_type_id:
            stmt = stmt.where(Bill.bill_type_id == bill_type_id)
        condition = keyword_filter(keyword, Bill.title, Bill.detail, Bill.bill_no)
        if condition is not None:
            stmt = stmt.where(condition)
        stmt = stmt.order_by(Bill.create_date.desc(), Bill.id.desc())

        rows, total = await paginate(db, stmt, params)
        return [serialize_bill(row) for row in rows], total

    @staticmethod
    async def get_bill(db: AsyncSession, bill_id: int, customer_id: Optional[str] = None) -> Dict[str, Any]:
        stmt = _bill_select().where(Bill.id == bill_id)
        if customer_id:
            stmt = stmt.where(Bill.customer_id == customer_id)
        row = (await db.execute(stmt)).mappings().first()
        if row is None:
            raise NotFoundError("ไม่พบข้อมูลบิล", code="BILL_NOT_FOUND", details={"id": bill_id})
        return serialize_bill(row)

    @staticmethod
    def _bill_room_filters(
        stmt: Select,
        projected,
        keyword: Optional[str],
        status: Optional[str],
    ) -> Select:
        statuses = parse_status_filter(status)
        if statuses:
            stmt = stmt.where(projected.in_(statuses))
        condition = keyword_filter(keyword, BillRoom.bill_no, BillRoom.house_no, BillRoom.member_name)
        if condition is not None:
            stmt = stmt.where(condition)
        return stmt

    @staticmethod
    async def list_bill_rooms(
        db: AsyncSession,
        customer_id: str,
        bill_id: int,
        params: PageParams,
        keyword: Optional[str] = None,
        status: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Tuple[List[Dict[str, Any]], int]:
        """Unit charges of one bill with notification eligibility per row"""
        current = now or get_utc_now()
        last = latest_audit_subquery(BILL_ROOM_TABLE, customer_id)
        stmt, projected = _bill_room_select(current)
        stmt = (
            stmt.add_columns(last.c.last_sent_at)
            .outerjoin(last, last.c.rows_id == BillRoom.id)
            .where(BillRoom.customer_id == customer_id, BillRoom.bill_id == bill_id)
        )
        stmt = BillQueryService._bill_room_filters(stmt, projected, keyword, status)
        stmt = stmt.order_by(BillRoom.create_date, BillRoom.id)

        rows, total = await paginate(db, stmt, params)
        interval = await NotificationService.get_resend_interval(db, customer_id)
        return [serialize_bill_room(row, current, interval) for row in rows], total

    @staticmethod
    async def export_bill_rooms(
        db: AsyncSession,
        customer_id: str,
        bill_id: int,
        keyword: Optional[str] = None,
        status: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> List[Dict[str, Any]]:
        """Every row ``list_bill_rooms`` would page through, for the workbook export"""
        current = now or get_utc_now()
        stmt, projected = _bill_room_select(current)
        stmt = stmt.where(BillRoom.customer_id == customer_id, BillRoom.bill_id == bill_id)
        stmt = BillQueryService._bill_room_filters(stmt, projected, keyword, status)
        stmt = stmt.order_by(BillRoom.create_date, BillRoom.id)
        rows = (await db.execute(stmt)).mappings().all()
        return [serialize_bill_room(row, current) for row in rows]

    @staticmethod
    async def list_bill_rooms_for_unit(
        db: AsyncSession,
        customer_id: str,
        house_no: str,
        params: PageParams,
        keyword: Optional[str] = None,
        status: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Tuple[List[Dict[str, Any]], int]:
        """Charge history of one unit across sent bills, newest first"""
        current = now or get_utc_now()
        stmt, projected = _bill_room_select(current)
        stmt = stmt.where(
            BillRoom.customer_id == customer_id,
            BillRoom.house_no == normalize_house_no(house_no),
            Bill.status == BillStatus.SENT.value,
        )
        stmt = BillQueryService._bill_room_filters(stmt, projected, keyword, status)
        stmt = stmt.order_by(BillRoom.create_date.desc(), BillRoom.id.desc())

        rows, total = await paginate(db, stmt, params)
        return [serialize_bill_room(row, current) for row in rows], total

    @staticmethod
    async def list_pending_bill_rooms(
        db: AsyncSession,
        customer_id: str,
        params: PageParams,
        keyword: Optional[str] = None,
        house_no: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Tuple[List[Dict[str, Any]], int]:
        """Unpaid charges (pending, overdue or partial) of sent bills, earliest due first"""
        current = now or get_utc_now()
        stmt, projected = _bill_room_select(current)
        stmt = stmt.where(
            BillRoom.customer_id == customer_id,
            Bill.status == BillStatus.SENT.value,
            projected.in_([s.value for s in UNPAID_STATUSES]),
        )
        if house_no and house_no.strip():
            stmt = stmt.where(BillRoom.house_no == normalize_house_no(house_no))
        stmt = BillQueryService._bill_room_filters(stmt, projected, keyword, None)
        stmt = stmt.order_by(Bill.expire_date, BillRoom.create_date, BillRoom.id)

        rows, total = await paginate(db, stmt, params)
        return [serialize_bill_room(row, current) for row in rows], total

    @staticmethod
    async def list_excel_bills(
        db: AsyncSession,
        customer_id: str,
        params: PageParams,
        keyword: Optional[str] = None,
        status: Optional[str] = None,
    ) -> Tuple[List[Dict[str, Any]], int]:
        """Bills created from uploads, each with its latest attachment"""
        attachment = (
            select(
                BillAttachment.upload_key.label("upload_key"),
                BillAttachment.id.label("attachment_id"),
                BillAttachment.file_name.label("file_name"),
                BillAttachment.file_path.label("file_path"),
                BillAttachment.file_ext.label("file_ext"),
                BillAttachment.file_size.label("file_size"),
                BillAttachment.create_date.label("uploaded_at"),
            )
            .where(BillAttachment.status != DELETED_STATUS)
            .distinct(BillAttachment.upload_key)
            .order_by(BillAttachment.upload_key, BillAttachment.create_date.desc(), BillAttachment.id.desc())
            .subquery("attachment")
        )
        stmt = (
            _bill_select()
            .add_columns(
                attachment.c.attachment_id,
                attachment.c.file_name,
                attachment.c.file_path,
                attachment.c.file_ext,
                attachment.c.file_size,
                attachment.c.uploaded_at,
            )
            .join(attachment, attachment.c.upload_key == Bill.upload_key)
            .where(Bill.customer_id == customer_id)
        )
        statuses = parse_status_filter(status)
        if statuses:
            stmt = stmt.where(Bill.status.in_(statuses))
        condition = keyword_filter(keyword, Bill.title, Bill.bill_no, attachment.c.file_name)
        if condition is not None:
            stmt = stmt.where(condition)
        stmt = stmt.order_by(Bill.create_date.desc(), Bill.id.desc())

        rows, total = await paginate(db, stmt, params)
        return [add_formatted_dates(serialize_bill(row), ("uploaded_at",)) for row in rows], total

    @staticmethod
    async def get_summary(db: AsyncSession, customer_id: str) -> Dict[str, Any]:
        """Five dashboard cards; 'this month' follows the database clock"""
        bill_counts = (await db.execute(
            select(
                func.count(Bill.id).label("total"),
                func.count(Bill.id).filter(_this_month(Bill.create_date)).label("total_this_month"),
                func.count(Bill.id).filter(Bill.status == BillStatus.SENT.value).label("sent"),
                func.count(Bill.id).filter(
                    and_(Bill.status == BillStatus.SENT.value, _this_month(Bill.create_date))
                ).label("sent_this_month"),
            ).where(Bill.customer_id == customer_id, Bill.status != DELETED_STATUS)
        )).mappings().one()

        paid = paid_sum_subquery()
        projected = projected_status_expr(paid.c.paid_sum, _db_now())
        unpaid = projected.in_([s.value for s in UNPAID_STATUSES])
        is_paid = projected == BillRoomStatus.PAID.value
        room_counts = (await db.execute(
            select(
                func.count(BillRoom.id).filter(unpaid).label("pending"),
                func.count(BillRoom.id).filter(and_(unpaid, _this_month(BillRoom.create_date))).label("pending_this_month"),
                func.count(BillRoom.id).filter(is_paid).label("paid"),
                func.count(BillRoom.id).filter(and_(is_paid, _this_month(BillRoom.create_date))).label("paid_this_month"),
            )
            .select_from(BillRoom)
            .join(Bill, and_(Bill.id == BillRoom.bill_id, Bill.status == BillStatus.SENT.value))
            .outerjoin(paid, paid.c.bill_room_id == BillRoom.id)
            .where(BillRoom.customer_id == customer_id, BillRoom.status != DELETED_STATUS)
        )).mappings().one()

        first_seen = (
            select(BillRoom.house_no, func.min(BillRoom.create_date).label("first_seen"))
            .join(Bill, and_(Bill.id == BillRoom.bill_id, Bill.status != DELETED_STATUS))
            .where(BillRoom.customer_id == customer_id, BillRoom.status != DELETED_STATUS)
            .group_by(BillRoom.house_no)
            .subquery("first_seen")
        )
        unit_counts = (await db.execute(
            select(
                func.count().label("total"),
                func.count().filter(_this_month(first_seen.c.first_seen)).label("this_month"),
            ).select_from(first_seen)
        )).mappings().one()

        def card(label: str, value: int, this_month: int) -> Dict[str, Any]:
            return {"value": value, "this_month": this_month, "label": label, "change": f"+{this_month} เดือนนี้"}

        rooms_card = card("ห้องที่มีบิล", unit_counts["total"], unit_counts["this_month"])
        rooms_card["percent"] = percent(unit_counts["this_month"], unit_counts["total"])
        return {
            "total_bills": card("บิลทั้งหมด", bill_counts["total"], bill_counts["total_this_month"]),
            "sent_bills": card("บิลที่ส่งแล้ว", bill_counts["sent"], bill_counts["sent_this_month"]),
            "pending_bill_rooms": card("รอชำระ", room_counts["pending"], room_counts["pending_this_month"]),
            "paid_bill_rooms": card("ชำระแล้ว", room_counts["paid"], room_counts["paid_this_month"]),
            "rooms": rooms_card,
        }

    @staticmethod
    async def get_status_counters(
        db: AsyncSession,
        customer_id: str,
        bill_id: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """Projected status counts over unit charges of sent bills"""
        current = now or get_utc_now()
        paid = paid_sum_subquery()
        inner = (
            select(projected_status_expr(paid.c.paid_sum, current).label("status"))
            .select_from(BillRoom)
            .join(Bill, and_(Bill.id == BillRoom.bill_id, Bill.status == BillStatus.SENT.value))
            .outerjoin(paid, paid.c.bill_room_id == BillRoom.id)
            .where(BillRoom.customer_id == customer_id, BillRoom.status != DELETED_STATUS)
        )
        if bill_id:
            inner = inner.where(BillRoom.bill_id == bill_id)
        projected = inner.subquery("projected")
        rows = (await db.execute(
            select(projected.c.status, func.count().label("count")).group_by(projected.c.status)
        )).all()
        return build_status_counters({int(status): count for status, count in rows})


def build_status_counters(counts: Dict[int, int], statuses: Sequence[BillRoomStatus] = (
    BillRoomStatus.PENDING, BillRoomStatus.PAID, BillRoomStatus.OVERDUE, BillRoomStatus.PARTIAL,
)) -> Dict[str, Any]:
    total = sum(counts.get(int(s), 0) for s in statuses)
    result: Dict[str, Any] = {"total": total}
    for status in statuses:
        count = counts.get(int(status), 0)
        result[f"status_{int(status)}"] = {
            **status_object(int(status)),
            "count": count,
            "percent": percent(count, total),
        }
    return result
