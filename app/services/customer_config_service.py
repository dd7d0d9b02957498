"""Tenant Config Service - typed key/value entries per customer"""

import json
import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundError, ValidationError
from app.models.customer_config import AppConfig, AppCustomerConfig
from app.models.enums import ConfigDataType
from app.utils.pagination import PageParams, keyword_filter, paginate
from app.utils.time import add_formatted_dates, get_utc_now
from app.utils.transaction import transaction_scope

logger = logging.getLogger(__name__)

RESEND_INTERVAL_KEY = "notification_resend_interval_minutes"

DEFAULT_CONFIGS: List[Dict[str, Any]] = [
    {
        "config_key": "bank_transfer",
        "value": True,
        "data_type": ConfigDataType.BOOLEAN,
        "title": "โอนเงินผ่านธนาคาร",
        "description": "ลูกบ้านโอนเงินและส่งสลิปมาตรวจสอบ",
        "icon": '<i class="fas fa-university text-xl"></i>',
        "background_color": "#193cb8",
    },
    {
        "config_key": RESEND_INTERVAL_KEY,
        "value": 30,
        "data_type": ConfigDataType.NUMBER,
        "title": "ระยะเวลาส่งแจ้งเตือนซ้ำ (นาที)",
        "description": "ส่งแจ้งเตือนบิลซ้ำให้ห้องเดิมได้เมื่อพ้นระยะเวลานี้",
        "icon": '<i class="fas fa-bell text-xl"></i>',
        "background_color": "#0f766e",
    },
]

_TRUE_WORDS = {"true", "1"}
_FALSE_WORDS = {"false", "0"}


def _canonical_number(value: Any) -> str:
    if isinstance(value, bool):
        raise ValueError("boolean is not a number")
    try:
        number = Decimal(str(value).strip())
    except InvalidOperation as exc:
        raise ValueError(f"{value!r} is not a number") from exc
    if not number.is_finite():
        raise ValueError(f"{value!r} is not a finite number")
    if number == number.to_integral_value():
        return str(int(number))
    return format(number.normalize(), "f")


def _canonical_boolean(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int) and value in (0, 1):
        return "true" if value else "false"
    if isinstance(value, str):
        word = value.strip().lower()
        if word in _TRUE_WORDS:
            return "true"
        if word in _FALSE_WORDS:
            return "false"
    raise ValueError(f"{value!r} is not a boolean")


def _canonical_json(value: Any) -> str:
    if isinstance(value, str):
        # Already JSON text; re-dump so the stored form is canonical
        value = json.loads(value)
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"))


@dataclass(frozen=True)
class ConfigValue:
    """
    A config value as stored: the declared kind plus its canonical string.

    ``encode`` is the only way in and ``decode`` the only way out, so every
    writer produces the same canonical text for a given value.
    """
    kind: ConfigDataType
    raw: str

    @classmethod
    def encode(cls, kind: ConfigDataType, value: Any) -> "ConfigValue":
        """
        Raises:
            ValidationError: value cannot be coerced to ``kind``
        """
        kind = ConfigDataType(kind)
        if value is None:
            raise ValidationError(
                f"config_value is required for type {kind.value}",
                code="INVALID_CONFIG_VALUE",
                details={"data_type": kind.value},
            )
        try:
            if kind is ConfigDataType.BOOLEAN:
                raw = _canonical_boolean(value)
            elif kind is ConfigDataType.NUMBER:
                raw = _canonical_number(value)
            elif kind is ConfigDataType.JSON:
                raw = _canonical_json(value)
            elif isinstance(value, (dict, list)):
                raw = json.dumps(value, ensure_ascii=False)
            else:
                raw = str(value)
        except (TypeError, ValueError) as exc:
            raise ValidationError(
                f"ค่า config_value ไม่ถูกต้องสำหรับประเภท {kind.value}",
                code="INVALID_CONFIG_VALUE",
                details={"data_type": kind.value, "error": str(exc)},
            ) from exc
        return cls(kind=kind, raw=raw)

    def decode(self) -> Tuple[Any, Optional[str]]:
        """Typed value and a warning; on mismatch the raw string comes back with the warning."""
        raw = self.raw
        try:
            if self.kind is ConfigDataType.BOOLEAN:
                word = raw.strip().lower()
                if word in _TRUE_WORDS:
                    return True, None
                if word in _FALSE_WORDS:
                    return False, None
                raise ValueError(f"{raw!r} is not a boolean")
            if self.kind is ConfigDataType.NUMBER:
                number = Decimal(raw.strip())
                if not number.is_finite():
                    raise ValueError(f"{raw!r} is not a finite number")
                if number == number.to_integral_value():
                    return int(number), None
                return float(number), None
            if self.kind is ConfigDataType.JSON:
                return json.loads(raw), None
            return raw, None
        except (InvalidOperation, ValueError) as exc:
            return raw, f"Stored value does not match data_type {self.kind.value}: {exc}"


def encode_config_value(data_type: str, value: Any) -> str:
    return ConfigValue.encode(ConfigDataType(data_type), value).raw


def decode_config_value(data_type: str, raw: str) -> Tuple[Any, Optional[str]]:
    try:
        kind = ConfigDataType(data_type)
    except ValueError:
        return raw, f"Unknown data_type {data_type!r}"
    return ConfigValue(kind=kind, raw=raw).decode()


def serialize_config(row: Dict[str, Any]) -> Dict[str, Any]:
    record = dict(row)
    parsed, warning = decode_config_value(record["data_type"], record["config_value"])
    record["config_value_parsed"] = parsed
    if warning:
        logger.warning(
            "Config value does not match its data type",
            extra={"config_key": record.get("config_key"), "customer_id": record.get("customer_id")},
        )
        record["config_value_warning"] = warning
    return add_formatted_dates(record, ("create_date", "update_date"))


class CustomerConfigService:
    """Read/write access to app_customer_config with a global app_config fallback"""

    @staticmethod
    async def init_config(db: AsyncSession, customer_id: str, actor: Optional[int] = None) -> Dict[str, Any]:
        """Insert the default entries a tenant does not have yet. Safe to repeat."""
        now = get_utc_now()
        values = []
        for default in DEFAULT_CONFIGS:
            encoded = ConfigValue.encode(default["data_type"], default["value"])
            values.append({
                "customer_id": customer_id,
                "config_key": default["config_key"],
                "config_value": encoded.raw,
                "data_type": encoded.kind.value,
                "title": default["title"],
                "description": default["description"],
                "icon": default["icon"],
                "background_color": default["background_color"],
                "is_active": True,
                "create_date": now,
                "create_by": actor,
            })

        stmt = (
            pg_insert(AppCustomerConfig)
            .values(values)
            .on_conflict_do_nothing(index_elements=["customer_id", "config_key"])
            .returning(
                AppCustomerConfig.id,
                AppCustomerConfig.config_key,
                AppCustomerConfig.config_value,
                AppCustomerConfig.data_type,
                AppCustomerConfig.title,
                AppCustomerConfig.description,
                AppCustomerConfig.icon,
                AppCustomerConfig.background_color,
                AppCustomerConfig.customer_id,
            )
        )
        async with transaction_scope(db):
            inserted = [dict(row) for row in (await db.execute(stmt)).mappings().all()]

        logger.info(
            "Customer config initialized",
            extra={"customer_id": customer_id, "inserted": len(inserted)},
        )
        return {
            "customer_id": customer_id,
            "configs_inserted": inserted,
            "total_configs": len(inserted),
        }

    @staticmethod
    async def update_config(db: AsyncSession, config_id: int, config_value: Any, actor: int) -> Dict[str, Any]:
        async with transaction_scope(db):
            config = await db.scalar(
                select(AppCustomerConfig).where(AppCustomerConfig.id == config_id).with_for_update()
            )
            if config is None:
                raise NotFoundError("ไม่พบข้อมูล config", code="CONFIG_NOT_FOUND", details={"id": config_id})

            encoded = ConfigValue.encode(ConfigDataType(config.data_type), config_value)
            old_value = config.config_value
            config.config_value = encoded.raw
            config.update_by = actor
            config.update_date = get_utc_now()

        logger.info(
            "Customer config updated",
            extra={
                "config_id": config_id,
                "config_key": config.config_key,
                "old_value": old_value,
                "new_value": encoded.raw,
                "actor": actor,
            },
        )
        return {"id": config_id, "config_key": config.config_key, "config_value": encoded.raw}

    @staticmethod
    async def list_configs(
        db: AsyncSession,
        params: PageParams,
        customer_id: Optional[str] = None,
        is_active: Optional[bool] = None,
        keyword: Optional[str] = None,
    ) -> Tuple[List[Dict[str, Any]], int]:
        stmt = select(
            AppCustomerConfig.id,
            AppCustomerConfig.config_key,
            AppCustomerConfig.config_value,
            AppCustomerConfig.data_type,
            AppCustomerConfig.title,
            AppCustomerConfig.description,
            AppCustomerConfig.icon,
            AppCustomerConfig.background_color,
            AppCustomerConfig.customer_id,
            AppCustomerConfig.is_active,
            AppCustomerConfig.create_date,
            AppCustomerConfig.update_date,
            AppCustomerConfig.update_by,
        )
        if customer_id:
            stmt = stmt.where(AppCustomerConfig.customer_id == customer_id)
        if is_active is not None:
            stmt = stmt.where(AppCustomerConfig.is_active.is_(is_active))
        condition = keyword_filter(keyword, AppCustomerConfig.config_key, AppCustomerConfig.title)
        if condition is not None:
            stmt = stmt.where(condition)
        stmt = stmt.order_by(AppCustomerConfig.create_date.desc(), AppCustomerConfig.id.desc())

        rows, total = await paginate(db, stmt, params)
        return [serialize_config(row) for row in rows], total

    @staticmethod
    async def get_config_value(db: AsyncSession, customer_id: str, config_key: str, default: Any = None) -> Any:
        """
        Typed value for ``config_key``: the tenant's active entry, else the
        active global entry, else ``default``. Undecodable values fall through.
        """
        tenant_row = (await db.execute(
            select(AppCustomerConfig.config_value, AppCustomerConfig.data_type).where(
                AppCustomerConfig.customer_id == customer_id,
                AppCustomerConfig.config_key == config_key,
                AppCustomerConfig.is_active.is_(True),
            )
        )).first()
        global_row = None
        if tenant_row is None:
            global_row = (await db.execute(
                select(AppConfig.config_value, AppConfig.data_type).where(
                    AppConfig.config_key == config_key,
                    AppConfig.is_active.is_(True),
                )
            )).first()

        row = tenant_row or global_row
        if row is None:
            return default
        value, warning = decode_config_value(row.data_type, row.config_value)
        if warning:
            logger.warning(
                "Ignoring undecodable config value",
                extra={"customer_id": customer_id, "config_key": config_key, "warning": warning},
            )
            return default
        return value
