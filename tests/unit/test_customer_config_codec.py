"""Unit tests for typed config values."""

from datetime import datetime
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.dialects import postgresql

from app.core.exceptions import ValidationError
from app.models.enums import ConfigDataType
from app.services.customer_config_service import (
    DEFAULT_CONFIGS,
    RESEND_INTERVAL_KEY,
    ConfigValue,
    CustomerConfigService,
    decode_config_value,
    encode_config_value,
    serialize_config,
)
from app.services import customer_config_service
from app.utils.pagination import PageParams


@pytest.mark.parametrize("value, raw", [
    (True, "true"),
    (False, "false"),
    (1, "true"),
    ("0", "false"),
    (" TRUE ", "true"),
])
def test_encode_boolean(value, raw):
    assert encode_config_value("boolean", value) == raw


@pytest.mark.parametrize("value, raw", [
    (30, "30"),
    ("45", "45"),
    (1.5, "1.5"),
    ("2.50", "2.5"),
    (10.0, "10"),
])
def test_encode_number(value, raw):
    assert encode_config_value("number", value) == raw


def test_encode_json_is_canonical():
    assert encode_config_value("json", {"a": [1, 2], "b": "ไทย"}) == '{"a":[1,2],"b":"ไทย"}'
    assert encode_config_value("json", '{ "a" : 1 }') == '{"a":1}'


def test_encode_string():
    assert encode_config_value("string", 12) == "12"
    assert encode_config_value("string", "hello") == "hello"


@pytest.mark.parametrize("data_type, value", [
    ("boolean", "yes"),
    ("boolean", 2),
    ("number", "abc"),
    ("number", True),
    ("number", "NaN"),
    ("json", "{not json"),
    ("string", None),
])
def test_encode_rejects_bad_values(data_type, value):
    with pytest.raises(ValidationError) as exc_info:
        encode_config_value(data_type, value)
    assert exc_info.value.code == "INVALID_CONFIG_VALUE"


def test_decode_typed_values():
    assert decode_config_value("boolean", "true") == (True, None)
    assert decode_config_value("number", "30") == (30, None)
    assert decode_config_value("number", "1.5") == (1.5, None)
    assert decode_config_value("json", '{"a":1}') == ({"a": 1}, None)
    assert decode_config_value("string", "x") == ("x", None)


def test_decode_mismatch_returns_raw_with_warning():
    value, warning = decode_config_value("number", "thirty")
    assert value == "thirty"
    assert "number" in warning

    value, warning = decode_config_value("boolean", "maybe")
    assert value == "maybe"
    assert warning


def test_decode_unknown_type():
    value, warning = decode_config_value("date", "2025-01-01")
    assert value == "2025-01-01"
    assert "date" in warning


def test_encode_decode_agree():
    encoded = ConfigValue.encode(ConfigDataType.NUMBER, "015")
    assert encoded.raw == "15"
    assert encoded.decode() == (15, None)


def test_serialize_config():
    record = serialize_config({
        "id": 1,
        "config_key": RESEND_INTERVAL_KEY,
        "config_value": "30",
        "data_type": "number",
        "create_date": datetime(2025, 6, 30, 2, 0, 0),
        "update_date": None,
    })
    assert record["config_value_parsed"] == 30
    assert "config_value_warning" not in record
    assert record["create_date_formatted"] == "30/06/2025 09:00:00"


def test_defaults_include_resend_interval():
    keys = {entry["config_key"] for entry in DEFAULT_CONFIGS}
    assert {"bank_transfer", RESEND_INTERVAL_KEY} <= keys


def _result(row):
    result = MagicMock()
    result.first.return_value = row
    return result


@pytest.mark.asyncio
async def test_get_config_value_prefers_tenant_entry():
    db = MagicMock()
    db.execute = AsyncMock(return_value=_result(MagicMock(config_value="15", data_type="number")))

    assert await CustomerConfigService.get_config_value(db, "c1", RESEND_INTERVAL_KEY, 30) == 15
    assert db.execute.await_count == 1


@pytest.mark.asyncio
async def test_get_config_value_falls_back_to_global_then_default():
    db = MagicMock()
    db.execute = AsyncMock(side_effect=[_result(None), _result(MagicMock(config_value="45", data_type="number"))])
    assert await CustomerConfigService.get_config_value(db, "c1", RESEND_INTERVAL_KEY, 30) == 45

    db.execute = AsyncMock(side_effect=[_result(None), _result(None)])
    assert await CustomerConfigService.get_config_value(db, "c1", RESEND_INTERVAL_KEY, 30) == 30


@pytest.mark.asyncio
async def test_get_config_value_ignores_undecodable_value():
    db = MagicMock()
    db.execute = AsyncMock(return_value=_result(MagicMock(config_value="soon", data_type="number")))
    assert await CustomerConfigService.get_config_value(db, "c1", RESEND_INTERVAL_KEY, 30) == 30


@pytest.mark.asyncio
async def test_list_configs_filters_by_keyword(monkeypatch):
    captured = {}

    async def fake_paginate(db, stmt, params):
        captured["sql"] = str(stmt.compile(dialect=postgresql.dialect()))
        return [], 0

    monkeypatch.setattr(customer_config_service, "paginate", fake_paginate)

    rows, total = await CustomerConfigService.list_configs(
        MagicMock(), PageParams(), customer_id="c1", keyword=" interval "
    )

    assert (rows, total) == ([], 0)
    assert "app_customer_config.config_key ILIKE" in captured["sql"]
    assert "app_customer_config.title ILIKE" in captured["sql"]
