"""Shared fixtures: a real SQLite-backed adapter and an app wired to it."""
import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from webhook_ingester.adapters.sqlite import SqliteAdapter
from webhook_ingester.config import Settings
from webhook_ingester.main import create_app
from webhook_ingester.verifier import SIGNATURE_HEADER, sign_payload

TEST_SECRET = "whsec_test_secret"


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "events.db")


@pytest.fixture
def settings(db_path):
    return Settings(
        WEBHOOK_SECRET=TEST_SECRET,
        DATABASE_TYPE="sqlite",
        DATABASE_URL=db_path,
        LOG_JSON=False,
        _env_file=None,
    )


@pytest_asyncio.fixture
async def sqlite_adapter(db_path):
    adapter = SqliteAdapter(db_path)
    await adapter.connect()
    await adapter.create_schema()
    yield adapter
    await adapter.close()


@pytest.fixture
def app(settings, sqlite_adapter):
    return create_app(settings, sqlite_adapter)


@pytest_asyncio.fixture
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest.fixture
def signed_headers():
    """Build request headers carrying a valid signature for a body."""

    def _sign(body: bytes, secret: str = TEST_SECRET) -> dict:
        return {
            SIGNATURE_HEADER: sign_payload(body, secret),
            "content-type": "application/json",
        }

    return _sign
