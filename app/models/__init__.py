"""Models Package - Export all models for easy imports"""

from app.models.base import BaseModel, TenantScopedMixin, SoftDeleteMixin, StatusMixin, DELETED_STATUS
from app.models.enums import *
from app.models.billing import Bill, BillRoom, BillType, BillAttachment, BillAudit, BillTransaction
from app.models.notification import NotificationAudit
from app.models.customer_config import AppConfig, AppCustomerConfig


__all__ = [
    # Base classes
    "BaseModel",
    "TenantScopedMixin",
    "SoftDeleteMixin",
    "StatusMixin",
    "DELETED_STATUS",

    # Billing
    "Bill",
    "BillRoom",
    "BillType",
    "BillAttachment",
    "BillAudit",
    "BillTransaction",

    # Notifications
    "NotificationAudit",

    # Config
    "AppConfig",
    "AppCustomerConfig",
]
