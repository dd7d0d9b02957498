"""Integration tests: resend throttling and tenant config."""

import asyncio

import pytest
from httpx import AsyncClient

from app.core.exceptions import ThrottledError
from app.database import AsyncSessionLocal
from app.services.notification_service import BILL_ROOM_TABLE, NotificationService
from tests.conftest import requires_db

pytestmark = requires_db

SHEET = "เลขห้อง,ชื่อลูกบ้าน,ยอดเงิน\n10/05,Alice,1500\n"


async def _first_room(async_client, api_base, customer_id, bill_type_id, upload_key):
    resp = await async_client.post(
        f"{api_base}/bill/insert_with_excel",
        json={
            "title": "ค่าน้ำ",
            "bill_type_id": bill_type_id,
            "detail": "มิถุนายน",
            "expire_date": "2099-06-30",
            "status": 0,
            "uid": 7,
            "upload_key": upload_key,
            "customer_id": customer_id,
        },
    )
    assert resp.status_code == 200, resp.text
    bill_id = resp.json()["data"]["bill_id"]
    resp = await async_client.get(
        f"{api_base}/bill/bill_room_list", params={"bill_id": bill_id, "customer_id": customer_id}
    )
    return resp.json()["data"][0]


@pytest.mark.asyncio
async def test_resend_is_throttled(async_client: AsyncClient, api_base: str, customer_id: str, bill_type_id: int, charge_sheet_upload):
    room = await _first_room(async_client, api_base, customer_id, bill_type_id, await charge_sheet_upload(SHEET))
    assert room["can_send_notification"] is True
    body = {"customer_id": customer_id, "table_name": "bill_room_information", "id": room["id"], "uid": 7}

    resp = await async_client.post(f"{api_base}/bill/send_notification_each", json=body)
    assert resp.status_code == 200, resp.text
    assert resp.json()["data"]["remark"] == "ส่งอีกครั้ง"

    resp = await async_client.post(f"{api_base}/bill/send_notification_each", json=body)
    assert resp.status_code == 400
    error = resp.json()["error"]
    assert error["kind"] == "THROTTLED"
    assert 1 <= error["details"]["remaining_minutes"] <= 30

    resp = await async_client.get(
        f"{api_base}/bill/bill_room_list", params={"bill_id": room["bill_id"], "customer_id": customer_id}
    )
    listed = resp.json()["data"][0]
    assert listed["can_send_notification"] is False
    assert listed["last_sent_at_formatted"]


@pytest.mark.asyncio
async def test_resend_unknown_table_and_row(async_client: AsyncClient, api_base: str, customer_id: str):
    resp = await async_client.post(
        f"{api_base}/bill/send_notification_each",
        json={"customer_id": customer_id, "table_name": "users", "id": 1, "uid": 7},
    )
    assert resp.json()["error"]["code"] == "INVALID_TABLE_NAME"

    resp = await async_client.post(
        f"{api_base}/bill/send_notification_each",
        json={"customer_id": customer_id, "id": 999999999, "uid": 7},
    )
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "BILL_ROOM_NOT_FOUND"


@pytest.mark.asyncio
async def test_config_init_is_idempotent(async_client: AsyncClient, api_base: str, customer_id: str):
    resp = await async_client.post(f"{api_base}/app_customer_config/init_config", json={"customer_id": customer_id})
    assert resp.status_code == 200, resp.text
    assert resp.json()["data"]["total_configs"] == 2

    resp = await async_client.post(f"{api_base}/app_customer_config/init_config", json={"customer_id": customer_id})
    assert resp.json()["data"]["total_configs"] == 0

    resp = await async_client.get(f"{api_base}/app_customer_config/list", params={"customer_id": customer_id})
    configs = {row["config_key"]: row for row in resp.json()["data"]}
    assert configs["bank_transfer"]["config_value_parsed"] is True
    assert configs["notification_resend_interval_minutes"]["config_value_parsed"] == 30


@pytest.mark.asyncio
async def test_config_update_coerces_and_validates(async_client: AsyncClient, api_base: str, customer_id: str):
    await async_client.post(f"{api_base}/app_customer_config/init_config", json={"customer_id": customer_id})
    resp = await async_client.get(f"{api_base}/app_customer_config/list", params={"customer_id": customer_id})
    configs = {row["config_key"]: row for row in resp.json()["data"]}
    interval_id = configs["notification_resend_interval_minutes"]["id"]

    resp = await async_client.put(
        f"{api_base}/app_customer_config/update", json={"id": interval_id, "uid": 7, "config_value": "abc"}
    )
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "INVALID_CONFIG_VALUE"

    resp = await async_client.put(
        f"{api_base}/app_customer_config/update", json={"id": interval_id, "uid": 7, "config_value": "0"}
    )
    assert resp.status_code == 200, resp.text
    assert resp.json()["data"]["config_value"] == "0"

    resp = await async_client.put(
        f"{api_base}/app_customer_config/update", json={"id": 999999999, "uid": 7, "config_value": 1}
    )
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "CONFIG_NOT_FOUND"


@pytest.mark.asyncio
async def test_zero_interval_disables_throttle(
    async_client: AsyncClient, api_base: str, customer_id: str, bill_type_id: int, charge_sheet_upload
):
    await async_client.post(f"{api_base}/app_customer_config/init_config", json={"customer_id": customer_id})
    resp = await async_client.get(f"{api_base}/app_customer_config/list", params={"customer_id": customer_id})
    interval_id = next(
        row["id"] for row in resp.json()["data"] if row["config_key"] == "notification_resend_interval_minutes"
    )
    await async_client.put(
        f"{api_base}/app_customer_config/update", json={"id": interval_id, "uid": 7, "config_value": 0}
    )

    room = await _first_room(async_client, api_base, customer_id, bill_type_id, await charge_sheet_upload(SHEET))
    body = {"customer_id": customer_id, "id": room["id"], "uid": 7}
    for _ in range(2):
        resp = await async_client.post(f"{api_base}/bill/send_notification_each", json=body)
        assert resp.status_code == 200, resp.text


@pytest.mark.asyncio
async def test_concurrent_resends_record_one_notification(
    async_client: AsyncClient, api_base: str, customer_id: str, bill_type_id: int, charge_sheet_upload
):
    room = await _first_room(async_client, api_base, customer_id, bill_type_id, await charge_sheet_upload(SHEET))

    async def resend():
        async with AsyncSessionLocal() as db:
            return await NotificationService.resend_notification(db, BILL_ROOM_TABLE, room["id"], customer_id, 7)

    results = await asyncio.gather(resend(), resend(), return_exceptions=True)

    sent = [r for r in results if isinstance(r, dict)]
    throttled = [r for r in results if isinstance(r, ThrottledError)]
    assert len(sent) == 1, results
    assert len(throttled) == 1, results


@pytest.mark.asyncio
async def test_config_list_keyword(async_client: AsyncClient, api_base: str, customer_id: str):
    await async_client.post(f"{api_base}/app_customer_config/init_config", json={"customer_id": customer_id})

    resp = await async_client.get(
        f"{api_base}/app_customer_config/list", params={"customer_id": customer_id, "keyword": "resend"}
    )

    assert resp.status_code == 200
    assert [row["config_key"] for row in resp.json()["data"]] == ["notification_resend_interval_minutes"]
