"""Shared pytest fixtures for unit and integration tests."""

import os
import uuid
import pytest

# Tests must not share pooled connections across event loops or trip the rate limiter
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

# Load .env so DATABASE_URL is available for the requires_db check
from dotenv import load_dotenv  # noqa: E402

load_dotenv()

from httpx import ASGITransport, AsyncClient  # noqa: E402

from app.main import app  # noqa: E402
from app.config import settings  # noqa: E402

# Skip integration tests if DATABASE_URL is not set
requires_db = pytest.mark.skipif(
    not os.getenv("DATABASE_URL"),
    reason="DATABASE_URL must be set",
)


def _get_api_base() -> str:
    """API base URL. In CI (TEST_USE_LIVE_SERVER=true), hit running server to avoid async teardown issues."""
    if os.getenv("TEST_USE_LIVE_SERVER", "").lower() == "true":
        base = os.getenv("LIVE_SERVER_URL", "http://localhost:8000")
        return f"{base}{settings.API_PREFIX}"
    return f"http://test{settings.API_PREFIX}"


@pytest.fixture
def api_base() -> str:
    """Base URL for API requests."""
    return _get_api_base()


@pytest.fixture
async def async_client(api_base: str):
    """Async HTTP client. Uses live server in CI to avoid RuntimeError: Task pending during teardown."""
    use_live = os.getenv("TEST_USE_LIVE_SERVER", "").lower() == "true"
    if use_live:
        client = AsyncClient(base_url=api_base, timeout=30.0)
    else:
        transport = ASGITransport(app=app)
        client = AsyncClient(transport=transport, base_url=api_base, timeout=30.0)
    yield client
    await client.aclose()


@pytest.fixture
def unique_suffix() -> str:
    """Unique suffix for test data to avoid collisions."""
    return str(uuid.uuid4())[:8]


@pytest.fixture
def customer_id(unique_suffix: str) -> str:
    """Fresh tenant per test so identifiers and counters never collide."""
    return f"cust_{unique_suffix}"


@pytest.fixture
async def db_session():
    """Session on the test database with the billing tables in place."""
    from app.database import AsyncSessionLocal, init_db

    await init_db()
    async with AsyncSessionLocal() as session:
        yield session


@pytest.fixture
async def charge_sheet_upload(db_session, tmp_path, unique_suffix: str):
    """
    Write a CSV charge sheet and register it as an attachment.

    Returns a callable taking the CSV text and returning the upload key.
    """
    from app.models.billing import BillAttachment
    from app.models.enums import RecordStatus

    async def _upload(csv_text: str, file_ext: str = "csv") -> str:
        upload_key = f"upload_{unique_suffix}_{uuid.uuid4().hex[:6]}"
        path = tmp_path / f"{upload_key}.{file_ext}"
        path.write_text(csv_text, encoding="utf-8")
        db_session.add(BillAttachment(
            upload_key=upload_key,
            file_name=path.name,
            file_path=str(path),
            file_ext=file_ext,
            file_size=path.stat().st_size,
            status=RecordStatus.ACTIVE.value,
        ))
        await db_session.commit()
        return upload_key

    return _upload


@pytest.fixture
async def bill_type_id(db_session) -> int:
    """Active bill type row for bills created in a test."""
    from app.models.billing import BillType
    from app.models.enums import RecordStatus

    bill_type = BillType(title="ค่าส่วนกลาง", status=RecordStatus.ACTIVE.value)
    db_session.add(bill_type)
    await db_session.commit()
    return bill_type.id
