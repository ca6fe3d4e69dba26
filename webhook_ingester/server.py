"""
uvicorn-backed server lifecycle with ordered shutdown.

Stopping first stops accepting connections, then waits for in-flight
requests, and only then closes the storage adapter.
"""
import asyncio
import uvicorn
from .adapters.base import DatabaseAdapter
from .config import Settings
from .logging import get_logger
from .main import create_app
from .metrics import Metrics

logger = get_logger()


class IngesterServer:
    """Runs the ingester app on uvicorn and owns the adapter's shutdown."""

    def __init__(
        self,
        settings: Settings,
        adapter: DatabaseAdapter,
        host: str = "0.0.0.0",
        metrics: Metrics | None = None,
    ):
        self.settings = settings
        self.adapter = adapter
        self.app = create_app(settings, adapter, metrics=metrics)
        self.config = uvicorn.Config(
            self.app,
            host=host,
            port=settings.PORT,
            log_config=None,
            access_log=False,
        )
        self._server = uvicorn.Server(self.config)
        self._serve_task: asyncio.Task | None = None

    @property
    def port(self) -> int:
        """Port actually bound (differs from the configured one when it is 0)."""
        for server in self._server.servers:
            for sock in server.sockets:
                return sock.getsockname()[1]
        return self.settings.PORT

    async def start(self) -> None:
        """Begin serving in the background; returns once the socket is listening."""
        if self._serve_task is not None:
            return

        self._serve_task = asyncio.create_task(self._server.serve())
        while not self._server.started:
            if self._serve_task.done():
                task, self._serve_task = self._serve_task, None
                await task
                raise RuntimeError("Server exited before it started listening")
            await asyncio.sleep(0.01)

        logger.info("server.listening", host=self.config.host, port=self.port)

    async def stop(self) -> None:
        """Stop accepting connections, let in-flight requests finish, then close the adapter."""
        if self._serve_task is not None:
            self._server.should_exit = True
            task, self._serve_task = self._serve_task, None
            await task
            logger.info("server.stopped")
        await self.adapter.close()

    async def serve(self) -> None:
        """Serve until uvicorn exits (e.g. on SIGINT/SIGTERM), then close the adapter."""
        try:
            await self._server.serve()
        finally:
            await self.adapter.close()
