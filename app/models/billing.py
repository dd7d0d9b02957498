"""Billing Models: bills, unit charges and the collaborator tables they join"""

from sqlalchemy import BigInteger, Column, DateTime, ForeignKey, Index, Integer, Numeric, String, Text, text
from sqlalchemy.orm import relationship

from app.models.base import BaseModel, TenantScopedMixin, SoftDeleteMixin, StatusMixin
from app.models.enums import BillStatus, BillRoomStatus


class BillType(BaseModel, StatusMixin):
    """Master data owned by the bill-type collaborator; joined for titles only."""
    __tablename__ = "bill_type_information"

    title = Column(String(255), nullable=False)

    def __repr__(self) -> str:
        return f"<BillType {self.id} {self.title}>"


class Bill(BaseModel, TenantScopedMixin, SoftDeleteMixin, StatusMixin):
    """
    Parent bill sent to a tenant's residents.
    Owns its unit charges; expire_date is always 23:59:59 UTC of its day.
    """
    __tablename__ = "bill_information"
    __table_args__ = (
        Index(
            "ux_bill_information_customer_bill_no", "customer_id", "bill_no",
            unique=True, postgresql_where=text("status <> 2"),
        ),
    )

    bill_no = Column(String(32), nullable=False)
    upload_key = Column(String(255), nullable=True, index=True)
    title = Column(String(255), nullable=False)
    bill_type_id = Column(Integer, ForeignKey("bill_type_information.id"), nullable=True)
    detail = Column(Text, nullable=True)
    expire_date = Column(DateTime, nullable=False)
    send_date = Column(DateTime, nullable=True)
    remark = Column(Text, nullable=True)

    # Relationships
    bill_type = relationship("BillType", lazy="raise")
    rooms = relationship("BillRoom", back_populates="bill", lazy="raise")

    @property
    def bill_status(self) -> BillStatus:
        return BillStatus(self.status)

    def __repr__(self) -> str:
        return f"<Bill {self.bill_no} - {self.status}>"


class BillRoom(BaseModel, TenantScopedMixin, SoftDeleteMixin, StatusMixin):
    """One unit's charge inside a bill"""
    __tablename__ = "bill_room_information"
    __table_args__ = (
        Index(
            "ux_bill_room_information_customer_bill_no", "customer_id", "bill_no",
            unique=True, postgresql_where=text("status <> 2"),
        ),
        Index("ix_bill_room_information_customer_house_no", "customer_id", "house_no"),
    )

    bill_id = Column(Integer, ForeignKey("bill_information.id"), nullable=False, index=True)
    bill_no = Column(String(32), nullable=False)
    house_no = Column(String(64), nullable=False)
    member_name = Column(String(255), nullable=False)
    total_price = Column(Numeric(12, 2), nullable=False)
    remark = Column(Text, nullable=True)

    # Relationships
    bill = relationship("Bill", back_populates="rooms", lazy="raise")

    @property
    def room_status(self) -> BillRoomStatus:
        return BillRoomStatus(self.status)

    def __repr__(self) -> str:
        return f"<BillRoom {self.bill_no} {self.house_no} - {self.status}>"


class BillAttachment(BaseModel, StatusMixin):
    """Upload descriptor written by the upload collaborator"""
    __tablename__ = "bill_attachment"

    upload_key = Column(String(255), nullable=False, index=True)
    file_name = Column(String(255), nullable=False)
    file_path = Column(Text, nullable=False)
    file_ext = Column(String(16), nullable=False)
    file_size = Column(BigInteger, nullable=True)


class BillAudit(BaseModel):
    """Append-only record of each status a bill was put into"""
    __tablename__ = "bill_audit_information"

    bill_id = Column(Integer, ForeignKey("bill_information.id"), nullable=False, index=True)
    status = Column(Integer, nullable=False)


class BillTransaction(BaseModel, TenantScopedMixin, StatusMixin):
    """Payment rows written by the payments collaborator; summed read-only here"""
    __tablename__ = "bill_transaction_information"

    bill_room_id = Column(Integer, ForeignKey("bill_room_information.id"), nullable=False, index=True)
    transaction_amount = Column(Numeric(12, 2), nullable=False)
    pay_date = Column(DateTime, nullable=True)
    remark = Column(Text, nullable=True)
