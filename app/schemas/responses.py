"""Standardized API Response Schemas"""

from datetime import datetime, timezone
from typing import Any, Dict, Generic, Optional, TypeVar

from pydantic import BaseModel, Field


T = TypeVar('T')


def _utc_timestamp() -> datetime:
    return datetime.now(timezone.utc)


class SuccessResponse(BaseModel, Generic[T]):
    """
    Standard success response envelope.

    Example:
        {
            "success": true,
            "data": {...},
            "message": "Operation successful",
            "timestamp": "2025-06-30T09:15:00Z"
        }
    """
    success: bool = True
    data: Optional[T] = None
    message: str = "Operation successful"
    timestamp: datetime = Field(default_factory=_utc_timestamp)


class ErrorDetail(BaseModel):
    """Error details structure"""
    kind: str
    code: str
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)


class ErrorResponse(BaseModel):
    """
    Standard error response envelope.

    Example:
        {
            "success": false,
            "error": {
                "kind": "NOT_FOUND",
                "code": "BILL_NOT_FOUND",
                "message": "ไม่พบข้อมูลบิล",
                "details": {"id": 123}
            },
            "message": "ไม่พบข้อมูลบิล",
            "timestamp": "2025-06-30T09:15:00Z"
        }
    """
    success: bool = False
    error: ErrorDetail
    message: str
    timestamp: datetime = Field(default_factory=_utc_timestamp)


class PaginationMeta(BaseModel):
    """Pagination metadata"""
    current_page: int = Field(..., ge=1, description="Current page number")
    per_page: int = Field(..., ge=1, description="Items per page")
    total: int = Field(..., ge=0, description="Total number of items")
    total_pages: int = Field(..., ge=0, description="Total number of pages")
    has_next: bool
    has_prev: bool


class PaginatedResponse(BaseModel, Generic[T]):
    """
    Paginated response with metadata.

    Example:
        {
            "success": true,
            "data": [...],
            "pagination": {
                "current_page": 1,
                "per_page": 10,
                "total": 50,
                "total_pages": 5,
                "has_next": true,
                "has_prev": false
            },
            "message": "Operation successful",
            "timestamp": "2025-06-30T09:15:00Z"
        }
    """
    success: bool = True
    data: list[T]
    pagination: PaginationMeta
    message: str = "Operation successful"
    timestamp: datetime = Field(default_factory=_utc_timestamp)
