"""
Notification Gate - per-row resend throttling over the notification audit log.

Delivery itself belongs to another service; this module only decides whether
a notification may be recorded and appends the audit rows that service reads.
"""

import logging
import math
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from sqlalchemy import func, insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.exceptions import NotFoundError, ThrottledError, ValidationError
from app.models.base import DELETED_STATUS
from app.models.billing import Bill, BillRoom
from app.models.notification import NotificationAudit
from app.services.customer_config_service import RESEND_INTERVAL_KEY, CustomerConfigService
from app.utils.time import get_utc_now
from app.utils.transaction import transaction_scope

logger = logging.getLogger(__name__)

BILL_ROOM_TABLE = "bill_room_information"
BILL_TABLE = "bill_information"

REMARK_CREATE_AND_SEND = "สร้างและส่งบิล"
REMARK_SEND = "ส่งบิล"
REMARK_RESEND = "ส่งอีกครั้ง"

# Fixed message fields the delivery service renders for bill reminders
BILL_NOTIFICATION_FIELDS = {
    "title": "แจ้งเตือนบิล",
    "detail": "กรุณาชำระบิล",
    "topic": "billing",
    "type": "billing",
}

_NOTIFIABLE_TABLES = {
    BILL_ROOM_TABLE: BillRoom,
    BILL_TABLE: Bill,
}


def evaluate_resend_window(
    last_sent_at: Optional[datetime],
    now: datetime,
    interval_minutes: float,
) -> Tuple[bool, Optional[int]]:
    """
    (allowed, remaining_minutes) for a row last notified at ``last_sent_at``.

    remaining_minutes is the ceiling of what is left of the interval, or
    None when a send is allowed.
    """
    if last_sent_at is None:
        return True, None
    elapsed = (now - last_sent_at).total_seconds() / 60
    if elapsed >= interval_minutes:
        return True, None
    return False, max(1, math.ceil(interval_minutes - elapsed))


def latest_audit_subquery(table_name: str, customer_id: str):
    """Most recent notification time per rows_id for one table and tenant."""
    return (
        select(
            NotificationAudit.rows_id.label("rows_id"),
            func.max(NotificationAudit.create_date).label("last_sent_at"),
        )
        .where(
            NotificationAudit.table_name == table_name,
            NotificationAudit.customer_id == customer_id,
        )
        .group_by(NotificationAudit.rows_id)
        .subquery("last_notification")
    )


class NotificationService:
    @staticmethod
    async def get_resend_interval(db: AsyncSession, customer_id: str) -> float:
        value = await CustomerConfigService.get_config_value(
            db, customer_id, RESEND_INTERVAL_KEY, settings.NOTIFICATION_RESEND_INTERVAL_MINUTES
        )
        try:
            interval = float(value)
        except (TypeError, ValueError):
            return float(settings.NOTIFICATION_RESEND_INTERVAL_MINUTES)
        return interval if interval >= 0 else float(settings.NOTIFICATION_RESEND_INTERVAL_MINUTES)

    @staticmethod
    async def last_sent_at(
        db: AsyncSession, table_name: str, rows_id: int, customer_id: str
    ) -> Optional[datetime]:
        return await db.scalar(
            select(func.max(NotificationAudit.create_date)).where(
                NotificationAudit.table_name == table_name,
                NotificationAudit.rows_id == rows_id,
                NotificationAudit.customer_id == customer_id,
            )
        )

    @staticmethod
    async def resend_notification(
        db: AsyncSession,
        table_name: str,
        rows_id: int,
        customer_id: str,
        actor: int,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        Record one more notification for a row, unless the last one is too recent.

        Raises:
            ValidationError: table_name is not a notifiable table
            NotFoundError: the row does not exist for this tenant
            ThrottledError: the resend interval has not elapsed
        """
        model = _NOTIFIABLE_TABLES.get(table_name)
        if model is None:
            raise ValidationError(
                f"Notifications are not supported for table {table_name}",
                code="INVALID_TABLE_NAME",
                details={"allowed": sorted(_NOTIFIABLE_TABLES)},
            )

        async with transaction_scope(db):
            exists = await db.scalar(
                select(model.id).where(
                    model.id == rows_id,
                    model.customer_id == customer_id,
                    model.status != DELETED_STATUS,
                ).with_for_update()
            )
            if exists is None:
                raise NotFoundError(
                    "ไม่พบข้อมูลที่ต้องการส่งแจ้งเตือน",
                    code="BILL_ROOM_NOT_FOUND" if model is BillRoom else "BILL_NOT_FOUND",
                    details={"table_name": table_name, "id": rows_id},
                )

            current = now or get_utc_now()
            interval = await NotificationService.get_resend_interval(db, customer_id)
            last = await NotificationService.last_sent_at(db, table_name, rows_id, customer_id)
            allowed, remaining = evaluate_resend_window(last, current, interval)
            if not allowed:
                raise ThrottledError(
                    f"กรุณารออีก {remaining} นาทีก่อนส่งแจ้งเตือนอีกครั้ง",
                    remaining_minutes=remaining,
                )

            audit = NotificationAudit(
                table_name=table_name,
                rows_id=rows_id,
                customer_id=customer_id,
                remark=REMARK_RESEND,
                create_by=actor,
                create_date=current,
                **BILL_NOTIFICATION_FIELDS,
            )
            db.add(audit)

        logger.info(
            "Notification resent",
            extra={"table_name": table_name, "rows_id": rows_id, "customer_id": customer_id, "actor": actor},
        )
        return {
            "table_name": table_name,
            "id": rows_id,
            "remark": REMARK_RESEND,
            "interval_minutes": interval,
            "sent_at": current,
        }

    @staticmethod
    async def fan_out_for_bill(
        db: AsyncSession,
        bill_id: int,
        customer_id: str,
        actor: Optional[int],
        remark: str,
    ) -> int:
        """Append one notification audit per non-deleted unit charge of a bill. Returns the count."""
        room_ids = (await db.execute(
            select(BillRoom.id).where(
                BillRoom.bill_id == bill_id,
                BillRoom.customer_id == customer_id,
                BillRoom.status != DELETED_STATUS,
            ).order_by(BillRoom.id)
        )).scalars().all()
        if not room_ids:
            logger.debug("No unit charges to notify", extra={"bill_id": bill_id})
            return 0

        now = get_utc_now()
        await db.execute(
            insert(NotificationAudit),
            [
                {
                    "table_name": BILL_ROOM_TABLE,
                    "rows_id": room_id,
                    "customer_id": customer_id,
                    "remark": remark,
                    "receiver": None,
                    "create_by": actor,
                    "create_date": now,
                    **BILL_NOTIFICATION_FIELDS,
                }
                for room_id in room_ids
            ],
        )
        logger.info(
            "Notification audit fan-out",
            extra={"bill_id": bill_id, "customer_id": customer_id, "count": len(room_ids), "remark": remark},
        )
        return len(room_ids)
