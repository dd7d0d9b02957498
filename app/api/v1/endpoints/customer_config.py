"""Customer config endpoints"""

from typing import Any, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.schemas.customer_config import ConfigInit, ConfigUpdate
from app.schemas.responses import PaginatedResponse, SuccessResponse
from app.services.customer_config_service import CustomerConfigService
from app.utils.pagination import PageParams, pagination_meta

router = APIRouter()


@router.post("/init_config", response_model=SuccessResponse)
async def init_config(
    body: ConfigInit,
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    """Insert the default config entries a tenant is missing."""
    result = await CustomerConfigService.init_config(db, body.customer_id, body.uid)
    return SuccessResponse(data=result, message="App customer config initialized successfully")


@router.put("/update", response_model=SuccessResponse)
async def update_config(
    body: ConfigUpdate,
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    result = await CustomerConfigService.update_config(db, body.id, body.config_value, body.uid)
    return SuccessResponse(data=result, message="อัปเดตข้อมูล config สำเร็จ")


@router.get("/list", response_model=PaginatedResponse)
async def list_configs(
    params: PageParams = Depends(deps.get_page_params),
    customer_id: Optional[str] = None,
    is_active: Optional[bool] = None,
    keyword: Optional[str] = None,
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    rows, total = await CustomerConfigService.list_configs(
        db,
        params,
        customer_id=customer_id.strip() if customer_id else None,
        is_active=is_active,
        keyword=keyword,
    )
    return PaginatedResponse(data=rows, pagination=pagination_meta(params, total))
