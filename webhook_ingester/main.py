"""
VeilMail Webhook Ingester - receive, verify and store webhook events.

Features:
- HMAC-SHA256 signature verification
- Idempotent storage in PostgreSQL, MySQL or SQLite
- Filtered, paginated event retrieval
- Structured logging with correlation IDs
- Optional Prometheus metrics
"""
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from prometheus_client import make_asgi_app
from starlette.exceptions import HTTPException as StarletteHTTPException
from . import __version__
from .adapters.base import DatabaseAdapter
from .api.router import router
from .api.schemas import HealthResponse
from .config import Settings
from .health import HealthChecker
from .logging import get_logger
from .metrics import Metrics
from .middleware import CorrelationIdMiddleware, ErrorHandlerMiddleware, MetricsMiddleware, error_response

logger = get_logger()


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    # Unknown paths and known paths with the wrong method are both "not found"
    if exc.status_code in (404, 405):
        return error_response(404, "Not found")
    return error_response(exc.status_code, str(exc.detail))


def create_app(settings: Settings, adapter: DatabaseAdapter, metrics: Metrics | None = None) -> FastAPI:
    """
    Build the ingester application around an already-connected adapter.

    The adapter is closed on application shutdown, after uvicorn has
    drained in-flight requests.

    Args:
        settings: Fully resolved configuration
        adapter: Storage adapter shared by all requests
        metrics: Metrics registry (a fresh one is created if omitted)
    """
    metrics = metrics or Metrics()
    health_checker = HealthChecker(database_type=settings.DATABASE_TYPE)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            "service_starting",
            version=__version__,
            env=settings.ENV,
            database=settings.DATABASE_TYPE,
            table=settings.TABLE_NAME,
        )
        yield
        logger.info("service_stopping")
        metrics.app_up.labels(service=metrics.service_name, version=metrics.version).set(0)
        await adapter.close()

    app = FastAPI(
        title="VeilMail Webhook Ingester",
        version=__version__,
        description="Receives signed VeilMail webhooks and stores them in a database",
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.settings = settings
    app.state.adapter = adapter
    app.state.metrics = metrics

    # Last added runs first: correlation ID, then metrics, then error translation
    app.add_middleware(ErrorHandlerMiddleware)
    app.add_middleware(MetricsMiddleware, metrics=metrics)
    app.add_middleware(CorrelationIdMiddleware)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)

    app.include_router(router)

    if settings.METRICS_ENABLED:
        app.mount("/metrics", make_asgi_app(registry=metrics.registry))

    @app.get("/health", response_model=HealthResponse)
    async def health():
        """
        Liveness probe.

        Returns 200 whenever the process is serving; never touches the database.
        """
        logger.debug("health_check_liveness")
        return health_checker.liveness()

    return app
