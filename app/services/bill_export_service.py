"""Workbook export of a bill's unit charges"""

import io
import logging
from datetime import datetime
from typing import Any, Dict, Iterable, Optional

import pandas as pd

from app.services.bill_status import status_object
from app.utils.formatting import format_price
from app.utils.time import business_now, format_date

logger = logging.getLogger(__name__)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
SHEET_NAME = "bill_room_list"

EXPORT_COLUMNS = ("เลขที่บิล", "เลขห้อง", "ชื่อลูกบ้าน", "ยอดเงิน", "วันครบกำหนด", "สถานะชำระ")


def export_filename(bill_id: int, now: Optional[datetime] = None) -> str:
    return f"bill_room_list_{bill_id}_{business_now(now):%Y%m%d}.xlsx"


def content_disposition(filename: str) -> str:
    return f'attachment; filename="{filename}"'


def export_row(record: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "เลขที่บิล": record["bill_no"],
        "เลขห้อง": record["house_no"],
        "ชื่อลูกบ้าน": record["member_name"],
        "ยอดเงิน": format_price(record["total_price"]),
        "วันครบกำหนด": format_date(record.get("expire_date")) or "",
        "สถานะชำระ": status_object(record["status"])["text"],
    }


def build_bill_room_workbook(records: Iterable[Dict[str, Any]]) -> bytes:
    """Serialize projected unit-charge rows into an .xlsx workbook"""
    frame = pd.DataFrame([export_row(record) for record in records], columns=list(EXPORT_COLUMNS))
    buffer = io.BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        frame.to_excel(writer, sheet_name=SHEET_NAME, index=False)
        sheet = writer.sheets[SHEET_NAME]
        for idx, column in enumerate(EXPORT_COLUMNS):
            longest = max([len(column)] + [len(str(value)) for value in frame[column]])
            sheet.column_dimensions[chr(ord("A") + idx)].width = min(longest + 4, 50)
    logger.info("Bill room workbook built", extra={"rows": len(frame)})
    return buffer.getvalue()
