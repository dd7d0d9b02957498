"""Unit tests for BillService rules (pure logic and mocked sessions)."""

from datetime import datetime
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from app.core.exceptions import NotFoundError, StateConflictError, ValidationError
from app.models.enums import BillStatus
from app.schemas.billing import BillExcelCreate
from app.services.bill_service import (
    CREATE_STATUSES,
    EDIT_STATUSES,
    BillService,
    coerce_status,
    resolve_delete_rows,
    send_date_for,
)
from app.services.row_validator import SkippedRow, ValidationReport

NOW = datetime(2025, 6, 30, 3, 0, 0)


def test_coerce_status():
    assert coerce_status(1, CREATE_STATUSES) is BillStatus.SENT
    assert coerce_status(3, EDIT_STATUSES) is BillStatus.CANCELLED_SEND


@pytest.mark.parametrize("value, allowed", [(3, CREATE_STATUSES), (2, EDIT_STATUSES), (9, EDIT_STATUSES)])
def test_coerce_status_rejects(value, allowed):
    with pytest.raises(ValidationError) as exc_info:
        coerce_status(value, allowed)
    assert exc_info.value.code == "INVALID_STATUS"


def test_send_date_for():
    earlier = datetime(2025, 6, 1)
    assert send_date_for(BillStatus.SENT, None, NOW) == NOW
    assert send_date_for(BillStatus.SENT, earlier, NOW) == earlier
    assert send_date_for(BillStatus.DRAFT, earlier, NOW) is None
    assert send_date_for(BillStatus.CANCELLED_SEND, earlier, NOW) is None


def test_resolve_delete_rows_maps_positions():
    assert resolve_delete_rows([11, 12, 13], [3, 1, 1]) == [11, 13]
    assert resolve_delete_rows([11, 12, 13], []) == []


def test_resolve_delete_rows_out_of_range():
    with pytest.raises(ValidationError) as exc_info:
        resolve_delete_rows([11, 12], [2, 5])
    assert exc_info.value.code == "INVALID_DELETE_ROWS"
    assert exc_info.value.details["invalid_rows"] == [5]


def test_resolve_delete_rows_refuses_deleting_everything():
    with pytest.raises(StateConflictError) as exc_info:
        resolve_delete_rows([11, 12, 13], [1, 2, 3])
    assert exc_info.value.code == "DELETE_ALL_FORBIDDEN"


def _excel_request(**overrides):
    payload = {
        "title": "ค่าส่วนกลาง",
        "bill_type_id": 1,
        "detail": "มิถุนายน",
        "expire_date": "2025-06-30",
        "status": 1,
        "uid": 7,
        "upload_key": "U1",
        "customer_id": "c1",
    }
    payload.update(overrides)
    return BillExcelCreate(**payload)


def _session():
    db = MagicMock()
    db.commit = AsyncMock()
    db.rollback = AsyncMock()
    db.flush = AsyncMock()
    db.execute = AsyncMock()
    db.scalar = AsyncMock()
    return db


@pytest.mark.asyncio
async def test_materialize_rejects_status_before_touching_db():
    db = _session()
    with pytest.raises(ValidationError) as exc_info:
        await BillService.materialize(db, _excel_request(status=3))
    assert exc_info.value.code == "INVALID_STATUS"
    db.commit.assert_not_awaited()


@pytest.mark.asyncio
async def test_materialize_without_valid_rows_rolls_back():
    db = _session()
    report = ValidationReport(skipped_rows=[SkippedRow(row_number=1, reason="NON_NUMERIC", amount="abc")])
    with patch.object(BillService, "load_upload", AsyncMock(return_value=(MagicMock(), report))):
        with pytest.raises(ValidationError) as exc_info:
            await BillService.materialize(db, _excel_request())

    assert exc_info.value.code == "NO_VALID_DATA"
    assert exc_info.value.details["invalid_count"] == 1
    db.rollback.assert_awaited_once()
    db.commit.assert_not_awaited()
    db.add.assert_not_called()


@pytest.mark.asyncio
async def test_load_upload_missing_attachment():
    db = _session()
    db.scalar.return_value = None
    with pytest.raises(NotFoundError) as exc_info:
        await BillService.load_upload(db, "U-missing")
    assert exc_info.value.code == "ATTACHMENT_MISSING"


@pytest.mark.asyncio
async def test_load_upload_wrong_extension():
    db = _session()
    db.scalar.return_value = MagicMock(file_ext="pdf", file_path="/tmp/u1.pdf")
    with pytest.raises(ValidationError) as exc_info:
        await BillService.load_upload(db, "U1")
    assert exc_info.value.code == "INVALID_FILE_TYPE"


@pytest.mark.asyncio
async def test_send_rejects_already_sent_bill():
    db = _session()
    bill = MagicMock(id=5, status=BillStatus.SENT.value, customer_id="c1")
    with patch.object(BillService, "_get_bill_for_update", AsyncMock(return_value=bill)):
        with pytest.raises(StateConflictError) as exc_info:
            await BillService.send(db, 5, 7)
    assert exc_info.value.code == "ALREADY_SENT"
    db.rollback.assert_awaited_once()


@pytest.mark.asyncio
async def test_cancel_send_requires_sent_bill():
    db = _session()
    bill = MagicMock(id=5, status=BillStatus.DRAFT.value, customer_id="c1")
    with patch.object(BillService, "_get_bill_for_update", AsyncMock(return_value=bill)):
        with pytest.raises(StateConflictError) as exc_info:
            await BillService.cancel_send(db, 5, 7)
    assert exc_info.value.code == "NOT_SENT"


@pytest.mark.asyncio
async def test_send_stamps_send_date_and_reports_fan_out():
    db = _session()
    db.add = MagicMock()
    bill = MagicMock(id=5, status=BillStatus.CANCELLED_SEND.value, customer_id="c1", send_date=None)
    with patch.object(BillService, "_get_bill_for_update", AsyncMock(return_value=bill)), \
            patch("app.services.bill_service.NotificationService.fan_out_for_bill", AsyncMock(return_value=3)):
        result = await BillService.send(db, 5, 7, now=NOW)

    assert result["status"] == BillStatus.SENT.value
    assert result["send_date"] == NOW
    assert result["notification"] == {"ok": True, "count": 3}
    assert db.commit.await_count == 2


@pytest.mark.asyncio
async def test_send_survives_failed_fan_out():
    db = _session()
    db.add = MagicMock()
    bill = MagicMock(id=5, status=BillStatus.DRAFT.value, customer_id="c1", send_date=None)
    failing = AsyncMock(side_effect=RuntimeError("audit table locked"))
    with patch.object(BillService, "_get_bill_for_update", AsyncMock(return_value=bill)), \
            patch("app.services.bill_service.NotificationService.fan_out_for_bill", failing):
        result = await BillService.send(db, 5, 7, now=NOW)

    assert result["status"] == BillStatus.SENT.value
    assert result["notification"] == {"ok": False, "count": 0, "error": "audit table locked"}
    db.commit.assert_awaited_once()
    db.rollback.assert_awaited_once()
