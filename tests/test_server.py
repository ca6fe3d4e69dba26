"""Tests for the uvicorn server lifecycle over a real socket."""
import asyncio
import httpx
import orjson
import pytest
from webhook_ingester.adapters.base import DatabaseAdapter
from webhook_ingester.errors import UninitializedError
from webhook_ingester.server import IngesterServer
from webhook_ingester.verifier import sign_payload


class SlowAdapter(DatabaseAdapter):
    """Wraps a real adapter, delaying inserts and recording the call order."""

    def __init__(self, inner: DatabaseAdapter, delay: float):
        self.inner = inner
        self.delay = delay
        self.backend = inner.backend
        self.calls = []
        self.insert_started = asyncio.Event()

    async def connect(self):
        await self.inner.connect()

    async def create_schema(self):
        await self.inner.create_schema()

    async def insert(self, event):
        self.insert_started.set()
        await asyncio.sleep(self.delay)
        await self.inner.insert(event)
        self.calls.append("insert_done")

    async def query(self, options=None):
        return await self.inner.query(options)

    async def close(self):
        if "close" not in self.calls:
            self.calls.append("close")
        await self.inner.close()


@pytest.fixture
def server_settings(settings):
    return settings.model_copy(update={"PORT": 0})


@pytest.mark.asyncio
async def test_server_serves_and_closes_adapter(server_settings, sqlite_adapter):
    server = IngesterServer(server_settings, sqlite_adapter, host="127.0.0.1")
    await server.start()
    try:
        async with httpx.AsyncClient(base_url=f"http://127.0.0.1:{server.port}") as client:
            response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["database"] == "sqlite"
    finally:
        await server.stop()

    with pytest.raises(UninitializedError):
        await sqlite_adapter.query()


@pytest.mark.asyncio
async def test_stop_drains_in_flight_requests_before_closing(server_settings, sqlite_adapter):
    """An insert already in progress completes before the adapter is closed."""
    adapter = SlowAdapter(sqlite_adapter, delay=0.3)
    server = IngesterServer(server_settings, adapter, host="127.0.0.1")
    await server.start()
    body = orjson.dumps({"type": "email.delivered", "id": "evt_drain"})

    async with httpx.AsyncClient(base_url=f"http://127.0.0.1:{server.port}") as client:
        request = asyncio.create_task(
            client.post(
                "/webhook",
                content=body,
                headers={"x-veilmail-signature": sign_payload(body, server_settings.WEBHOOK_SECRET)},
            )
        )
        await asyncio.wait_for(adapter.insert_started.wait(), timeout=5)
        await server.stop()
        response = await request

    assert response.status_code == 200
    assert adapter.calls == ["insert_done", "close"]


@pytest.mark.asyncio
async def test_stop_without_start_still_closes_adapter(server_settings, sqlite_adapter):
    server = IngesterServer(server_settings, sqlite_adapter, host="127.0.0.1")

    await server.stop()

    with pytest.raises(UninitializedError):
        await sqlite_adapter.query()
