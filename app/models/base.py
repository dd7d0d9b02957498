"""Base Models and Mixins shared by the billing tables"""

from sqlalchemy import Column, DateTime, Integer, SmallInteger, String
from sqlalchemy.orm import declared_attr

from app.database import Base
from app.utils.time import get_utc_now

# Every table uses status 2 as the soft-delete marker
DELETED_STATUS = 2


class BaseModel(Base):
    """
    Base model class with common fields for all models.

    Provides:
    - integer primary key
    - create_date / create_by
    - update_date / update_by
    """
    __abstract__ = True

    id = Column(Integer, primary_key=True, autoincrement=True)
    create_date = Column(DateTime, default=get_utc_now, nullable=False)
    create_by = Column(Integer, nullable=True)
    update_date = Column(DateTime, nullable=True, onupdate=get_utc_now)
    update_by = Column(Integer, nullable=True)


class TenantScopedMixin:
    """
    Mixin for rows partitioned by property operator.

    Provides:
    - customer_id (tenant key, always part of every query)
    """

    @declared_attr
    def customer_id(cls):
        return Column(String(64), nullable=False, index=True)


class SoftDeleteMixin:
    """
    Mixin for status-column soft delete.

    Provides:
    - delete_date / delete_by stamped when status moves to 2
    """
    delete_date = Column(DateTime, nullable=True)
    delete_by = Column(Integer, nullable=True)

    def soft_delete(self, actor: int) -> None:
        """Mark record as deleted without removing from database"""
        self.status = DELETED_STATUS
        self.delete_date = get_utc_now()
        self.delete_by = actor

    @property
    def is_deleted(self) -> bool:
        return self.status == DELETED_STATUS


class StatusMixin:
    """Plain status column; concrete models narrow its meaning through enums."""
    status = Column(SmallInteger, default=0, nullable=False, index=True)
