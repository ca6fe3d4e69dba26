"""
Prometheus metrics for the webhook ingester.
"""
from prometheus_client import Counter, Histogram, Gauge, Info, CollectorRegistry, ProcessCollector
from . import __version__
from .logging import SERVICE_NAME


class Metrics:
    """
    Centralized metrics for the webhook ingester.

    Each instance owns its registry so several apps (e.g. in tests) can
    coexist in one process.
    """

    def __init__(self, service_name: str = SERVICE_NAME, version: str = __version__, registry=None):
        self.service_name = service_name
        self.version = version
        self.registry = registry or CollectorRegistry()

        # HTTP Metrics
        self.http_requests_total = Counter(
            "http_requests_total",
            "Total HTTP requests",
            ["service", "method", "path", "status"],
            registry=self.registry,
        )

        self.http_request_duration = Histogram(
            "http_request_duration_seconds",
            "HTTP request duration in seconds",
            ["service", "method", "path"],
            registry=self.registry,
        )

        self.http_requests_active = Gauge(
            "http_requests_active",
            "Number of active HTTP requests",
            ["service"],
            registry=self.registry,
        )
        self.http_requests_active.labels(service=service_name).set(0)

        # Application Info
        self.app_info = Info(
            "app",
            "Application information",
            registry=self.registry,
        )
        self.app_info.info({"service": service_name, "version": version})

        self.app_up = Gauge(
            "app_up",
            "Application up status (1=up, 0=down)",
            ["service", "version"],
            registry=self.registry,
        )
        self.app_up.labels(service=service_name, version=version).set(1)

        # Business Metrics
        self.webhook_events_received_total = Counter(
            "webhook_events_received_total",
            "Total verified webhook events accepted for storage",
            ["event_type"],
            registry=self.registry,
        )

        self.webhook_rejections_total = Counter(
            "webhook_rejections_total",
            "Total webhook requests rejected before storage",
            ["reason"],
            registry=self.registry,
        )

        self.webhook_payload_size_bytes = Histogram(
            "webhook_payload_size_bytes",
            "Webhook body size in bytes",
            ["event_type"],
            registry=self.registry,
        )

        # Process metrics (CPU, memory, fds) from /proc where available
        ProcessCollector(registry=self.registry)

    def record_event_received(self, event_type: str, size_bytes: int):
        """Record an accepted webhook event."""
        self.webhook_events_received_total.labels(event_type=event_type).inc()
        self.webhook_payload_size_bytes.labels(event_type=event_type).observe(size_bytes)

    def record_rejection(self, reason: str):
        """Record a webhook rejected for a missing/invalid signature or bad JSON."""
        self.webhook_rejections_total.labels(reason=reason).inc()
