"""Bill endpoints - charge sheet ingestion, bill lifecycle and read models"""

from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, Query
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.core.exceptions import ValidationError
from app.schemas.billing import (
    BillAction,
    BillCreate,
    BillExcelCreate,
    BillUpdate,
    NotificationResend,
    parse_row_numbers,
)
from app.schemas.responses import PaginatedResponse, SuccessResponse
from app.services.bill_export_service import (
    XLSX_MEDIA_TYPE,
    build_bill_room_workbook,
    content_disposition,
    export_filename,
)
from app.services.bill_query_service import BillQueryService
from app.services.bill_service import BillService
from app.services.notification_service import NotificationService
from app.utils.pagination import PageParams, pagination_meta

router = APIRouter()


def _paginated(rows, total: int, params: PageParams) -> PaginatedResponse:
    return PaginatedResponse(data=rows, pagination=pagination_meta(params, total))


@router.post("/insert_with_excel", response_model=SuccessResponse)
async def insert_bill_with_excel(
    bill_in: BillExcelCreate,
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    """
    Create a bill from an uploaded charge sheet.

    One unit charge is created per valid row; invalid and excluded rows are
    reported back. Sending (status 1) records a notification per unit after
    the bill is committed.
    """
    result = await BillService.materialize(db, bill_in)
    return SuccessResponse(data=result, message="Bill and bill rooms inserted successfully")


@router.post("/insert", response_model=SuccessResponse)
async def insert_bill(
    bill_in: BillCreate,
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    """Create a bill without unit charges."""
    result = await BillService.insert(db, bill_in)
    return SuccessResponse(data=result, message="Bill inserted successfully")


@router.put("/update", response_model=SuccessResponse)
async def update_bill(
    bill_in: BillUpdate,
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    """Edit a bill; delete_rows removes unit charges by 1-based position."""
    result = await BillService.update(db, bill_in)
    return SuccessResponse(data=result, message="Bill updated successfully")


@router.post("/send", response_model=SuccessResponse)
async def send_bill(
    action: BillAction,
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    result = await BillService.send(db, action.id, action.uid, action.customer_id)
    return SuccessResponse(data=result, message="Bill sent successfully")


@router.post("/cancel_send", response_model=SuccessResponse)
async def cancel_send_bill(
    action: BillAction,
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    result = await BillService.cancel_send(db, action.id, action.uid, action.customer_id)
    return SuccessResponse(data=result, message="Bill send cancelled successfully")


@router.delete("/delete", response_model=SuccessResponse)
async def delete_bill(
    action: BillAction = Body(...),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    result = await BillService.delete(db, action.id, action.uid, action.customer_id)
    return SuccessResponse(data=result, message="Bill deleted successfully")


@router.post("/send_notification_each", response_model=SuccessResponse)
async def send_notification_each(
    body: NotificationResend,
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    """Resend one notification, throttled per row by the tenant's interval."""
    result = await NotificationService.resend_notification(
        db, body.table_name, body.id, body.customer_id, body.uid
    )
    return SuccessResponse(data=result, message="ส่งแจ้งเตือนสำเร็จ")


@router.get("/preview_excel", response_model=SuccessResponse)
async def preview_excel(
    upload_key: str = Query(..., min_length=1),
    excluded_rows: Optional[str] = Query(None, description="JSON array or comma separated row numbers"),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    """Validate an uploaded sheet without creating anything."""
    try:
        excluded = parse_row_numbers(excluded_rows)
    except ValueError as exc:
        raise ValidationError(
            f"Invalid excluded_rows: {exc}",
            code="VALIDATION",
            details={"excluded_rows": excluded_rows},
        ) from exc
    result = await BillService.preview(db, upload_key.strip(), excluded)
    return SuccessResponse(data=result)


@router.get("/list", response_model=PaginatedResponse)
async def list_bills(
    customer_id: str = Depends(deps.customer_id_query),
    params: PageParams = Depends(deps.get_page_params),
    keyword: Optional[str] = None,
    status: Optional[str] = None,
    bill_type_id: Optional[int] = None,
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    rows, total = await BillQueryService.list_bills(
        db, customer_id, params, keyword=keyword, status=status, bill_type_id=bill_type_id
    )
    return _paginated(rows, total, params)


@router.get("/bill_room_list", response_model=None)
async def list_bill_rooms(
    bill_id: int = Query(...),
    customer_id: str = Depends(deps.customer_id_query),
    params: PageParams = Depends(deps.get_page_params),
    keyword: Optional[str] = None,
    status: Optional[str] = None,
    type: Optional[str] = Query(None, description="'excel' downloads the list as .xlsx"),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    """
    Unit charges of one bill, with projected status and resend eligibility.
    ``type=excel`` returns the whole filtered list as a workbook.
    """
    if type == "excel":
        records = await BillQueryService.export_bill_rooms(
            db, customer_id, bill_id, keyword=keyword, status=status
        )
        content = build_bill_room_workbook(records)
        return Response(
            content=content,
            media_type=XLSX_MEDIA_TYPE,
            headers={"Content-Disposition": content_disposition(export_filename(bill_id))},
        )

    rows, total = await BillQueryService.list_bill_rooms(
        db, customer_id, bill_id, params, keyword=keyword, status=status
    )
    return _paginated(rows, total, params)


@router.get("/bill_room_each_list", response_model=PaginatedResponse)
async def list_bill_rooms_for_unit(
    house_no: str = Query(..., min_length=1),
    customer_id: str = Depends(deps.customer_id_query),
    params: PageParams = Depends(deps.get_page_params),
    keyword: Optional[str] = None,
    status: Optional[str] = None,
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    rows, total = await BillQueryService.list_bill_rooms_for_unit(
        db, customer_id, house_no, params, keyword=keyword, status=status
    )
    return _paginated(rows, total, params)


@router.get("/bill_room_pending_list", response_model=PaginatedResponse)
async def list_pending_bill_rooms(
    customer_id: str = Depends(deps.customer_id_query),
    params: PageParams = Depends(deps.get_page_params),
    keyword: Optional[str] = None,
    house_no: Optional[str] = None,
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    rows, total = await BillQueryService.list_pending_bill_rooms(
        db, customer_id, params, keyword=keyword, house_no=house_no
    )
    return _paginated(rows, total, params)


@router.get("/bill_excel_list", response_model=PaginatedResponse)
async def list_excel_bills(
    customer_id: str = Depends(deps.customer_id_query),
    params: PageParams = Depends(deps.get_page_params),
    keyword: Optional[str] = None,
    status: Optional[str] = None,
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    rows, total = await BillQueryService.list_excel_bills(db, customer_id, params, keyword=keyword, status=status)
    return _paginated(rows, total, params)


@router.get("/get_summary_data", response_model=SuccessResponse)
async def get_summary_data(
    customer_id: str = Depends(deps.customer_id_query),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    summary = await BillQueryService.get_summary(db, customer_id)
    return SuccessResponse(data=summary)


@router.get("/bill_status", response_model=SuccessResponse)
async def get_bill_status(
    customer_id: str = Depends(deps.customer_id_query),
    bill_id: Optional[int] = None,
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    """Pending / paid / overdue / partial counters with percentages."""
    counters = await BillQueryService.get_status_counters(db, customer_id, bill_id=bill_id)
    return SuccessResponse(data=counters)


@router.get("/{bill_id}", response_model=SuccessResponse)
async def get_bill(
    bill_id: int,
    customer_id: Optional[str] = None,
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    bill = await BillQueryService.get_bill(db, bill_id, customer_id)
    return SuccessResponse(data=bill)
