"""Billing request schemas"""

import json
from datetime import datetime
from typing import Annotated, Any, List, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field

from app.utils.time import end_of_day_utc


def parse_row_numbers(value: Any) -> List[int]:
    """
    Row lists arrive as JSON arrays, JSON text ("[1, 3]") or CSV text ("1,3")
    depending on whether the client posts JSON or form data.
    """
    if value is None or value == "":
        return []
    if isinstance(value, str):
        text = value.strip()
        if text.startswith("["):
            value = json.loads(text)
        else:
            value = [part for part in text.split(",") if part.strip()]
    if isinstance(value, (int, float)):
        value = [value]
    if not isinstance(value, (list, tuple)):
        raise ValueError("expected a list of row numbers")
    numbers = []
    for item in value:
        number = int(str(item).strip())
        if number < 1:
            raise ValueError("row numbers start at 1")
        numbers.append(number)
    return numbers


def _normalize_expire_date(value: Any) -> datetime:
    """Any ISO date or datetime becomes 23:59:59 of that calendar day"""
    if value is None or value == "":
        raise ValueError("expire_date is required")
    return end_of_day_utc(value)


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


ExpireDate = Annotated[datetime, BeforeValidator(_normalize_expire_date)]
OptionalText = Annotated[Optional[str], BeforeValidator(_blank_to_none)]
RowNumbers = Annotated[List[int], BeforeValidator(parse_row_numbers)]


class _BillRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)


class BillMeta(_BillRequest):
    """Fields shared by every bill write"""
    title: str = Field(..., min_length=1, max_length=255)
    bill_type_id: int
    detail: str = Field(..., min_length=1)
    expire_date: ExpireDate
    status: int
    remark: OptionalText = None
    uid: int


class BillExcelCreate(BillMeta):
    """POST /bill/insert_with_excel"""
    upload_key: str = Field(..., min_length=1, max_length=255)
    customer_id: str = Field(..., min_length=1, max_length=64)
    excluded_rows: RowNumbers = Field(default_factory=list)


class BillCreate(BillMeta):
    """POST /bill/insert (bill without unit charges)"""
    upload_key: OptionalText = Field(None, max_length=255)
    customer_id: str = Field(..., min_length=1, max_length=64)


class BillUpdate(_BillRequest):
    """PUT /bill/update"""
    id: int
    title: str = Field(..., min_length=1, max_length=255)
    bill_type_id: Optional[int] = None
    detail: str = Field(..., min_length=1)
    expire_date: ExpireDate
    status: int
    remark: OptionalText = None
    uid: int
    customer_id: OptionalText = None
    delete_rows: RowNumbers = Field(default_factory=list)


class BillAction(_BillRequest):
    """Body of send / cancel_send / delete"""
    id: int
    uid: int
    customer_id: OptionalText = None


class NotificationResend(_BillRequest):
    """POST /bill/send_notification_each"""
    customer_id: str = Field(..., min_length=1, max_length=64)
    table_name: str = Field("bill_room_information", min_length=1)
    id: int
    uid: int
