"""
Human-readable bill identifiers: PREFIX-YYYY-MMDD-NNN.

The counter is per tenant, per prefix and per business day. Allocation runs
inside the caller's transaction: a transaction-scoped advisory lock on
(prefix, customer_id, day) serializes concurrent writers, then the current
maximum is read and the next ``count`` counters are handed out. The lock is
released by the database at commit or rollback.
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import StateConflictError
from app.models.base import DELETED_STATUS
from app.models.billing import Bill, BillRoom
from app.utils.time import business_now

BILL_PREFIX = "BILL"
INVOICE_PREFIX = "INV"
COUNTER_MODULUS = 1000

_PREFIX_MODELS = {
    BILL_PREFIX: Bill,
    INVOICE_PREFIX: BillRoom,
}


def day_stem(prefix: str, now: datetime) -> str:
    """e.g. INV-2025-0630"""
    return f"{prefix}-{now:%Y}-{now:%m%d}"


def format_bill_no(prefix: str, now: datetime, counter: int) -> str:
    return f"{day_stem(prefix, now)}-{counter % COUNTER_MODULUS:03d}"


def parse_counter(bill_no: Optional[str]) -> Optional[int]:
    """Trailing counter of a PREFIX-YYYY-MMDD-NNN identifier, None if it is not one."""
    if not bill_no:
        return None
    parts = bill_no.split("-")
    if len(parts) != 4 or not parts[3].isdigit():
        return None
    return int(parts[3])


def next_counters(last_bill_no: Optional[str], count: int) -> List[int]:
    """Counters following ``last_bill_no`` (or starting at 0), wrapping at 1000."""
    last = parse_counter(last_bill_no)
    start = 0 if last is None else (last + 1) % COUNTER_MODULUS
    return [(start + offset) % COUNTER_MODULUS for offset in range(count)]


def wraps(last_bill_no: Optional[str], count: int) -> bool:
    """True when allocating ``count`` after ``last_bill_no`` passes 999."""
    last = parse_counter(last_bill_no)
    return last is not None and last + count >= COUNTER_MODULUS


class BillNumberService:
    """Allocates BILL-/INV- numbers inside an open transaction"""

    @staticmethod
    async def _lock_day(db: AsyncSession, prefix: str, customer_id: str, stem: str) -> None:
        lock_key = f"{prefix}:{customer_id}:{stem}"
        await db.execute(select(func.pg_advisory_xact_lock(func.hashtext(lock_key))))

    @staticmethod
    async def allocate(
        db: AsyncSession,
        prefix: str,
        customer_id: str,
        count: int = 1,
        now: Optional[datetime] = None,
    ) -> List[str]:
        """
        Reserve ``count`` consecutive identifiers for ``customer_id``.

        Raises:
            StateConflictError: the day's counter wrapped into identifiers still in use
        """
        if count < 1:
            return []
        model = _PREFIX_MODELS[prefix]
        local_now = business_now(now)
        stem = day_stem(prefix, local_now)

        await BillNumberService._lock_day(db, prefix, customer_id, stem)

        last_bill_no = await db.scalar(
            select(func.max(model.bill_no)).where(
                model.customer_id == customer_id,
                model.bill_no.like(f"{stem}-%"),
            )
        )
        counters = next_counters(last_bill_no, count)
        if len(set(counters)) != len(counters):
            raise StateConflictError(
                f"Cannot allocate {count} {prefix} numbers in one day",
                code="BILL_NUMBER_EXHAUSTED",
                details={"prefix": prefix, "requested": count},
            )
        candidates = [format_bill_no(prefix, local_now, counter) for counter in counters]

        if wraps(last_bill_no, count):
            # Past 999 the counter restarts at 000; never hand out a number that is still live
            collisions = (await db.execute(
                select(model.bill_no).where(
                    model.customer_id == customer_id,
                    model.bill_no.in_(candidates),
                    model.status != DELETED_STATUS,
                )
            )).scalars().all()
            if collisions:
                raise StateConflictError(
                    f"Daily {prefix} counter exhausted for this customer",
                    code="BILL_NUMBER_EXHAUSTED",
                    details={"prefix": prefix, "colliding": sorted(collisions)[:10]},
                )
        return candidates

    @staticmethod
    async def next_bill_no(db: AsyncSession, customer_id: str, now: Optional[datetime] = None) -> str:
        return (await BillNumberService.allocate(db, BILL_PREFIX, customer_id, 1, now))[0]

    @staticmethod
    async def next_invoice_nos(
        db: AsyncSession, customer_id: str, count: int, now: Optional[datetime] = None
    ) -> List[str]:
        return await BillNumberService.allocate(db, INVOICE_PREFIX, customer_id, count, now)
