"""
Bill Service - materializes uploaded charge sheets into bills and drives the
bill status state machine (send, cancel-send, edit, delete).

Every write runs inside ``transaction_scope``; notification fan-out is queued
with ``after_commit`` so a failed fan-out never undoes a committed bill.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundError, StateConflictError, ValidationError
from app.models.base import DELETED_STATUS
from app.models.billing import Bill, BillAttachment, BillAudit, BillRoom
from app.models.enums import BillRoomStatus, BillStatus, SpreadsheetType
from app.schemas.billing import BillCreate, BillExcelCreate, BillUpdate
from app.services.bill_number_service import BillNumberService
from app.services.notification_service import (
    REMARK_CREATE_AND_SEND,
    REMARK_SEND,
    NotificationService,
)
from app.services.row_validator import ValidationReport, validate_rows
from app.services.spreadsheet_parser import parse_upload
from app.utils.time import end_of_day_utc, get_utc_now
from app.utils.transaction import TransactionScope, transaction_scope

logger = logging.getLogger(__name__)

NOTIFICATION_ACTION = "notification"

CREATE_STATUSES = (BillStatus.DRAFT, BillStatus.SENT)
EDIT_STATUSES = (BillStatus.DRAFT, BillStatus.SENT, BillStatus.CANCELLED_SEND)
SENDABLE_STATUSES = (BillStatus.DRAFT, BillStatus.CANCELLED_SEND)


def coerce_status(value: int, allowed: Sequence[BillStatus]) -> BillStatus:
    """
    Raises:
        ValidationError: ``value`` is not one of ``allowed``
    """
    try:
        status = BillStatus(int(value))
    except (TypeError, ValueError):
        status = None
    if status is None or status not in allowed:
        raise ValidationError(
            f"Invalid bill status: {value}",
            code="INVALID_STATUS",
            details={"status": value, "allowed": [int(s) for s in allowed]},
        )
    return status


def send_date_for(status: BillStatus, current: Optional[datetime], now: datetime) -> Optional[datetime]:
    """Sent keeps an existing send_date or stamps now; Draft and CancelledSend clear it."""
    if status is BillStatus.SENT:
        return current or now
    return None


def resolve_delete_rows(child_ids: Sequence[int], delete_rows: Iterable[int]) -> List[int]:
    """
    Map 1-based positions over the ordered live children to their ids.

    Raises:
        ValidationError: a position is out of range
        StateConflictError: every remaining child would be deleted
    """
    positions = sorted(set(int(row) for row in delete_rows))
    if not positions:
        return []
    out_of_range = [row for row in positions if row < 1 or row > len(child_ids)]
    if out_of_range:
        raise ValidationError(
            "delete_rows contains rows that do not exist on this bill",
            code="INVALID_DELETE_ROWS",
            details={"invalid_rows": out_of_range, "room_count": len(child_ids)},
        )
    if len(positions) >= len(child_ids):
        raise StateConflictError(
            "ไม่สามารถลบรายการทั้งหมดได้ ต้องเหลืออย่างน้อย 1 รายการ",
            code="DELETE_ALL_FORBIDDEN",
            details={"room_count": len(child_ids), "delete_rows": positions},
        )
    return [child_ids[row - 1] for row in positions]


def _notification_summary(tx: TransactionScope) -> Optional[Dict[str, Any]]:
    result = tx.result(NOTIFICATION_ACTION)
    if result is None:
        return None
    summary = {"ok": result.ok, "count": result.value if result.ok else 0}
    if not result.ok:
        summary["error"] = result.error
    return summary


class BillService:
    @staticmethod
    async def get_latest_attachment(db: AsyncSession, upload_key: str) -> Optional[BillAttachment]:
        return await db.scalar(
            select(BillAttachment)
            .where(
                BillAttachment.upload_key == upload_key,
                BillAttachment.status != DELETED_STATUS,
            )
            .order_by(BillAttachment.create_date.desc(), BillAttachment.id.desc())
            .limit(1)
        )

    @staticmethod
    async def load_upload(
        db: AsyncSession,
        upload_key: str,
        excluded_rows: Iterable[int] = (),
    ) -> Tuple[BillAttachment, ValidationReport]:
        """
        Attachment lookup, parse and row validation for an upload key.

        Raises:
            NotFoundError: no live attachment for the key
            ValidationError: unsupported extension, missing columns, empty sheet
            SpreadsheetParseError: the file is not a readable sheet
        """
        attachment = await BillService.get_latest_attachment(db, upload_key)
        if attachment is None:
            raise NotFoundError(
                "ไม่พบไฟล์ที่ upload_key นี้",
                code="ATTACHMENT_MISSING",
                details={"upload_key": upload_key},
            )

        file_ext = (attachment.file_ext or "").lower().lstrip(".")
        if file_ext not in {t.value for t in SpreadsheetType}:
            raise ValidationError(
                "ไฟล์ต้องเป็น .xlsx, .xls หรือ .csv เท่านั้น",
                code="INVALID_FILE_TYPE",
                details={"file_ext": attachment.file_ext, "allowed": [t.value for t in SpreadsheetType]},
            )

        sheet = await parse_upload(attachment.file_path, file_ext)
        report = validate_rows(sheet.rows, excluded_rows)
        return attachment, report

    @staticmethod
    async def preview(db: AsyncSession, upload_key: str, excluded_rows: Iterable[int] = ()) -> Dict[str, Any]:
        """Validation report for an upload without writing anything"""
        attachment, report = await BillService.load_upload(db, upload_key, excluded_rows)
        return {
            "upload_key": upload_key,
            "file_name": attachment.file_name,
            "file_ext": attachment.file_ext,
            "rows": [
                {
                    "row_number": row.row_number,
                    "house_no": row.house_no,
                    "member_name": row.member_name,
                    "total_price": row.total_price,
                    "remark": row.remark,
                }
                for row in report.valid_rows
            ],
            **report.diagnostics(),
        }

    @staticmethod
    async def materialize(
        db: AsyncSession,
        data: BillExcelCreate,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        Create a bill and one unit charge per valid sheet row, atomically.

        Raises:
            ValidationError: bad status, unusable upload or no valid rows
            NotFoundError: attachment or file missing
            SpreadsheetParseError: unreadable sheet
            StateConflictError: identifiers for the day are exhausted
        """
        status = coerce_status(data.status, CREATE_STATUSES)
        customer_id = data.customer_id

        async with transaction_scope(db) as tx:
            _, report = await BillService.load_upload(db, data.upload_key, data.excluded_rows)
            if not report.valid_rows:
                raise ValidationError(
                    "ไม่มีข้อมูลที่ถูกต้องในไฟล์",
                    code="NO_VALID_DATA",
                    details=report.diagnostics(),
                )

            current = now or get_utc_now()
            expire_date = end_of_day_utc(data.expire_date)
            send_date = send_date_for(status, None, current)
            bill_no = await BillNumberService.next_bill_no(db, customer_id, current)
            bill = Bill(
                bill_no=bill_no,
                customer_id=customer_id,
                upload_key=data.upload_key,
                title=data.title,
                bill_type_id=data.bill_type_id,
                detail=data.detail,
                expire_date=expire_date,
                send_date=send_date,
                remark=data.remark,
                status=status.value,
                create_by=data.uid,
                create_date=current,
            )
            db.add(bill)
            await db.flush()
            bill_id = bill.id

            db.add(BillAudit(bill_id=bill_id, status=status.value, create_by=data.uid, create_date=current))

            invoice_nos = await BillNumberService.next_invoice_nos(
                db, customer_id, len(report.valid_rows), current
            )
            await db.execute(
                insert(BillRoom).values([
                    {
                        "bill_id": bill_id,
                        "bill_no": invoice_no,
                        "customer_id": customer_id,
                        "house_no": row.house_no,
                        "member_name": row.member_name,
                        "total_price": row.total_price,
                        "remark": row.remark,
                        "status": BillRoomStatus.PENDING.value,
                        "create_by": data.uid,
                        "create_date": current,
                    }
                    for invoice_no, row in zip(invoice_nos, report.valid_rows)
                ])
            )

            if status is BillStatus.SENT:
                tx.after_commit(
                    NOTIFICATION_ACTION,
                    lambda: NotificationService.fan_out_for_bill(
                        db, bill_id, customer_id, data.uid, REMARK_CREATE_AND_SEND
                    ),
                )

        logger.info(
            "Bill materialized from upload",
            extra={
                "bill_id": bill_id,
                "bill_no": bill_no,
                "customer_id": customer_id,
                "status": status.value,
                "rooms": report.valid_count,
                "skipped": report.invalid_count,
            },
        )
        return {
            "bill_id": bill_id,
            "bill_no": bill_no,
            "upload_key": data.upload_key,
            "title": data.title,
            "customer_id": customer_id,
            "status": status.value,
            "expire_date": expire_date,
            "send_date": send_date,
            "total_rooms_inserted": report.valid_count,
            "invoice_nos": invoice_nos,
            **report.diagnostics(),
            "notification": _notification_summary(tx),
        }

    @staticmethod
    async def insert(db: AsyncSession, data: BillCreate, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Create a bill with no unit charges"""
        status = coerce_status(data.status, CREATE_STATUSES)

        async with transaction_scope(db):
            current = now or get_utc_now()
            bill = Bill(
                bill_no=await BillNumberService.next_bill_no(db, data.customer_id, current),
                customer_id=data.customer_id,
                upload_key=data.upload_key,
                title=data.title,
                bill_type_id=data.bill_type_id,
                detail=data.detail,
                expire_date=end_of_day_utc(data.expire_date),
                send_date=send_date_for(status, None, current),
                remark=data.remark,
                status=status.value,
                create_by=data.uid,
                create_date=current,
            )
            db.add(bill)
            await db.flush()
            db.add(BillAudit(bill_id=bill.id, status=status.value, create_by=data.uid, create_date=current))

        logger.info("Bill inserted", extra={"bill_id": bill.id, "bill_no": bill.bill_no, "customer_id": data.customer_id})
        return {
            "id": bill.id,
            "bill_no": bill.bill_no,
            "upload_key": bill.upload_key,
            "title": bill.title,
            "bill_type_id": bill.bill_type_id,
            "detail": bill.detail,
            "expire_date": bill.expire_date,
            "send_date": bill.send_date,
            "remark": bill.remark,
            "customer_id": bill.customer_id,
            "status": bill.status,
            "create_by": bill.create_by,
        }

    @staticmethod
    async def _get_bill_for_update(db: AsyncSession, bill_id: int, customer_id: Optional[str] = None) -> Bill:
        stmt = select(Bill).where(Bill.id == bill_id, Bill.status != DELETED_STATUS)
        if customer_id:
            stmt = stmt.where(Bill.customer_id == customer_id)
        bill = await db.scalar(stmt.with_for_update())
        if bill is None:
            raise NotFoundError("ไม่พบข้อมูลบิล", code="BILL_NOT_FOUND", details={"id": bill_id})
        return bill

    @staticmethod
    async def _live_child_ids(db: AsyncSession, bill_id: int) -> List[int]:
        """Ids of non-deleted unit charges in creation order"""
        return list((await db.execute(
            select(BillRoom.id)
            .where(BillRoom.bill_id == bill_id, BillRoom.status != DELETED_STATUS)
            .order_by(BillRoom.create_date, BillRoom.id)
            .with_for_update()
        )).scalars().all())

    @staticmethod
    async def _soft_delete_children(
        db: AsyncSession, bill_id: int, actor: int, now: datetime, ids: Optional[List[int]] = None
    ) -> int:
        stmt = (
            update(BillRoom)
            .where(BillRoom.bill_id == bill_id, BillRoom.status != DELETED_STATUS)
            .values(status=DELETED_STATUS, delete_date=now, delete_by=actor)
        )
        if ids is not None:
            if not ids:
                return 0
            stmt = stmt.where(BillRoom.id.in_(ids))
        result = await db.execute(stmt)
        return result.rowcount or 0

    @staticmethod
    def _queue_send_fan_out(tx: TransactionScope, db: AsyncSession, bill: Bill, actor: int) -> None:
        bill_id, customer_id = bill.id, bill.customer_id
        tx.after_commit(
            NOTIFICATION_ACTION,
            lambda: NotificationService.fan_out_for_bill(db, bill_id, customer_id, actor, REMARK_SEND),
        )

    @staticmethod
    async def update(db: AsyncSession, data: BillUpdate, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Edit bill fields and status, optionally removing unit charges by position.

        Nothing changes when the edit is rejected.
        """
        new_status = coerce_status(data.status, EDIT_STATUSES)

        async with transaction_scope(db) as tx:
            current = now or get_utc_now()
            bill = await BillService._get_bill_for_update(db, data.id, data.customer_id)
            old_status = BillStatus(bill.status)
            had_send_date = bill.send_date is not None

            delete_ids: List[int] = []
            if data.delete_rows:
                child_ids = await BillService._live_child_ids(db, bill.id)
                delete_ids = resolve_delete_rows(child_ids, data.delete_rows)

            bill.title = data.title
            bill.detail = data.detail
            if data.bill_type_id is not None:
                bill.bill_type_id = data.bill_type_id
            bill.expire_date = end_of_day_utc(data.expire_date)
            bill.remark = data.remark
            bill.status = new_status.value
            bill.send_date = send_date_for(new_status, bill.send_date, current)
            bill.update_by = data.uid
            bill.update_date = current

            deleted = await BillService._soft_delete_children(db, bill.id, data.uid, current, delete_ids)

            status_changed = old_status is not new_status
            if status_changed:
                db.add(BillAudit(bill_id=bill.id, status=new_status.value, create_by=data.uid, create_date=current))
            if new_status is BillStatus.SENT and old_status is not BillStatus.SENT:
                BillService._queue_send_fan_out(tx, db, bill, data.uid)

            # Snapshot before post-commit actions run; a failed action rolls back and expires the instance
            result = {
                "id": bill.id,
                "bill_no": bill.bill_no,
                "title": bill.title,
                "detail": bill.detail,
                "expire_date": bill.expire_date,
                "remark": bill.remark,
                "status": bill.status,
                "send_date": bill.send_date,
                "send_date_updated": new_status is BillStatus.SENT and not had_send_date,
                "status_changed": status_changed,
                "deleted_room_ids": delete_ids,
                "update_by": data.uid,
            }

        logger.info(
            "Bill updated",
            extra={
                "bill_id": result["id"],
                "old_status": old_status.value,
                "new_status": new_status.value,
                "rooms_deleted": deleted,
                "actor": data.uid,
            },
        )
        result["notification"] = _notification_summary(tx)
        return result

    @staticmethod
    async def send(
        db: AsyncSession, bill_id: int, actor: int, customer_id: Optional[str] = None, now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        """
        Raises:
            StateConflictError: the bill is already Sent
        """
        async with transaction_scope(db) as tx:
            current = now or get_utc_now()
            bill = await BillService._get_bill_for_update(db, bill_id, customer_id)
            if bill.status not in SENDABLE_STATUSES:
                raise StateConflictError(
                    f"บิลนี้ถูกส่งแล้ว (สถานะปัจจุบัน: {bill.status})",
                    code="ALREADY_SENT",
                    details={"current_status": bill.status},
                )
            bill.status = BillStatus.SENT.value
            bill.send_date = current
            bill.update_by = actor
            bill.update_date = current
            db.add(BillAudit(bill_id=bill.id, status=BillStatus.SENT.value, create_by=actor, create_date=current))
            BillService._queue_send_fan_out(tx, db, bill, actor)
            result = {"id": bill.id, "status": bill.status, "send_date": bill.send_date, "update_by": actor}
            customer_id = bill.customer_id

        logger.info("Bill sent", extra={"bill_id": bill_id, "customer_id": customer_id, "actor": actor})
        result["notification"] = _notification_summary(tx)
        return result

    @staticmethod
    async def cancel_send(
        db: AsyncSession, bill_id: int, actor: int, customer_id: Optional[str] = None, now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        """
        Raises:
            StateConflictError: the bill is not Sent
        """
        async with transaction_scope(db):
            current = now or get_utc_now()
            bill = await BillService._get_bill_for_update(db, bill_id, customer_id)
            if bill.status != BillStatus.SENT:
                raise StateConflictError(
                    f"บิลนี้ยังไม่ได้ส่ง (สถานะปัจจุบัน: {bill.status})",
                    code="NOT_SENT",
                    details={"current_status": bill.status},
                )
            bill.status = BillStatus.CANCELLED_SEND.value
            bill.send_date = None
            bill.update_by = actor
            bill.update_date = current
            db.add(BillAudit(
                bill_id=bill.id, status=BillStatus.CANCELLED_SEND.value, create_by=actor, create_date=current
            ))

        logger.info("Bill send cancelled", extra={"bill_id": bill.id, "actor": actor})
        return {"id": bill.id, "status": bill.status, "send_date": None, "update_by": actor}

    @staticmethod
    async def delete(
        db: AsyncSession, bill_id: int, actor: int, customer_id: Optional[str] = None, now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        """Soft-delete a bill together with its unit charges"""
        async with transaction_scope(db):
            current = now or get_utc_now()
            bill = await BillService._get_bill_for_update(db, bill_id, customer_id)
            bill.status = DELETED_STATUS
            bill.delete_date = current
            bill.delete_by = actor
            rooms_deleted = await BillService._soft_delete_children(db, bill.id, actor, current)
            db.add(BillAudit(bill_id=bill.id, status=BillStatus.DELETED.value, create_by=actor, create_date=current))

        logger.info(
            "Bill deleted",
            extra={"bill_id": bill.id, "rooms_deleted": rooms_deleted, "actor": actor},
        )
        return {"id": bill.id, "delete_by": actor, "rooms_deleted": rooms_deleted}
