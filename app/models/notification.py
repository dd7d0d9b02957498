"""Notification audit log"""

from sqlalchemy import Column, Index, Integer, String, Text

from app.models.base import BaseModel, TenantScopedMixin


class NotificationAudit(BaseModel, TenantScopedMixin):
    """
    Append-only log of notification attempts.
    The latest row per (table_name, rows_id, customer_id) drives resend throttling.
    """
    __tablename__ = "notification_audit_information"
    __table_args__ = (
        Index(
            "ix_notification_audit_target_latest",
            "table_name", "rows_id", "customer_id", "create_date",
        ),
    )

    table_name = Column(String(64), nullable=False)
    rows_id = Column(Integer, nullable=False)
    title = Column(String(255), nullable=True)
    detail = Column(Text, nullable=True)
    topic = Column(String(64), nullable=True)
    type = Column(String(64), nullable=True)
    receiver = Column(String(255), nullable=True)
    remark = Column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<NotificationAudit {self.table_name}:{self.rows_id} {self.remark}>"
