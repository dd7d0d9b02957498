"""Typed key/value configuration: global defaults and per-tenant entries"""

from sqlalchemy import Boolean, Column, Index, String, Text

from app.models.base import BaseModel, TenantScopedMixin


class AppConfig(BaseModel):
    """Global config; fallback when a tenant has no entry for a key."""
    __tablename__ = "app_config"

    config_key = Column(String(128), nullable=False, unique=True)
    config_value = Column(Text, nullable=False)
    data_type = Column(String(16), nullable=False, default="string")
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)


class AppCustomerConfig(BaseModel, TenantScopedMixin):
    """Per-tenant config entry; values are stored as canonical strings tagged with data_type."""
    __tablename__ = "app_customer_config"
    __table_args__ = (
        Index("ux_app_customer_config_customer_key", "customer_id", "config_key", unique=True),
    )

    config_key = Column(String(128), nullable=False)
    config_value = Column(Text, nullable=False)
    data_type = Column(String(16), nullable=False, default="string")
    title = Column(String(255), nullable=True)
    description = Column(Text, nullable=True)
    icon = Column(Text, nullable=True)
    background_color = Column(String(32), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<AppCustomerConfig {self.customer_id}:{self.config_key}={self.config_value}>"
