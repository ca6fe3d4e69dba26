"""
Middleware for correlation IDs, error translation and HTTP metrics.
"""
import uuid
import time
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse
import structlog
from .errors import IngesterError

KNOWN_PATHS = frozenset({"/webhook", "/events", "/health"})


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """
    Middleware to add correlation IDs to all requests.

    - Extracts correlation ID from X-Correlation-ID header if present
    - Generates new UUID if not present
    - Binds correlation ID to structlog context
    - Adds correlation ID to response headers
    """

    async def dispatch(self, request: Request, call_next):
        correlation_id = request.headers.get("x-correlation-id") or str(uuid.uuid4())

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            correlation_id=correlation_id,
            http_method=request.method,
            http_path=request.url.path,
        )

        response = await call_next(request)
        response.headers["x-correlation-id"] = correlation_id
        return response


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """
    Converts every exception raised by a route into exactly one JSON response.

    IngesterError subclasses map to their own status and public message;
    anything else becomes a generic 500. Backend details never reach the
    caller, only the server-side log.
    """

    async def dispatch(self, request: Request, call_next):
        log = structlog.get_logger()
        try:
            return await call_next(request)
        except IngesterError as exc:
            if exc.status_code >= 500:
                log.error(
                    "request.failed",
                    status_code=exc.status_code,
                    error=str(exc),
                    error_type=exc.__class__.__name__,
                    exc_info=True,
                )
            else:
                log.warning(
                    "request.rejected",
                    status_code=exc.status_code,
                    error_type=exc.__class__.__name__,
                )
            return error_response(exc.status_code, exc.public_message)
        except Exception as exc:
            log.error(
                "unhandled.exception",
                error=str(exc),
                error_type=exc.__class__.__name__,
                exc_info=True,
            )
            return error_response(500, IngesterError.public_message)


class MetricsMiddleware(BaseHTTPMiddleware):
    """
    Middleware to collect HTTP metrics for Prometheus.

    - Records request count by method, path, status
    - Records request duration histogram
    - Tracks active requests
    """

    def __init__(self, app, metrics):
        super().__init__(app)
        self.metrics = metrics

    async def dispatch(self, request: Request, call_next):
        if request.url.path.startswith("/metrics"):
            return await call_next(request)

        # Unknown paths share one label to bound cardinality
        path = request.url.path if request.url.path in KNOWN_PATHS else "unmatched"
        active = self.metrics.http_requests_active.labels(service=self.metrics.service_name)
        active.inc()
        start_time = time.time()
        logger = structlog.get_logger()
        status = 500

        try:
            response = await call_next(request)
            status = response.status_code
            return response
        finally:
            duration = time.time() - start_time
            active.dec()

            self.metrics.http_requests_total.labels(
                service=self.metrics.service_name,
                method=request.method,
                path=path,
                status=status,
            ).inc()

            self.metrics.http_request_duration.labels(
                service=self.metrics.service_name,
                method=request.method,
                path=path,
            ).observe(duration)

            logger.info(
                "http_request",
                http_status=status,
                duration_ms=round(duration * 1000, 2),
            )
