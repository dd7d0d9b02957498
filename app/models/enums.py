"""Centralized Enum Definitions"""

import enum


class BillStatus(int, enum.Enum):
    """Parent bill lifecycle"""
    DRAFT = 0
    SENT = 1
    DELETED = 2
    CANCELLED_SEND = 3


class BillRoomStatus(int, enum.Enum):
    """
    Unit charge status.

    OVERDUE is never stored; it only appears in projected reads.
    """
    PENDING = 0
    PAID = 1
    DELETED = 2
    OVERDUE = 3
    PARTIAL = 4


class RecordStatus(int, enum.Enum):
    """Generic status for collaborator-owned rows (attachments, transactions, types)"""
    ACTIVE = 1
    DELETED = 2


class ConfigDataType(str, enum.Enum):
    """Declared type of a config value"""
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    JSON = "json"


class SpreadsheetType(str, enum.Enum):
    """Accepted charge sheet formats"""
    XLSX = "xlsx"
    XLS = "xls"
    CSV = "csv"


BILL_ROOM_STATUS_LABELS = {
    BillRoomStatus.PENDING: "รอชำระ",
    BillRoomStatus.PAID: "ชำระแล้ว",
    BillRoomStatus.OVERDUE: "เกินกำหนด",
    BillRoomStatus.PARTIAL: "ชำระบางส่วน",
}
