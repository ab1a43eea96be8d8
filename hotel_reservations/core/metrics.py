"""Prometheus metrics.

Metrics live in an explicitly created registry so each application instance
(and each test) gets its own set. The booking core never touches them; the
HTTP middleware and the API routes record outcomes.
"""

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)


class Metrics:
    """Process-wide request and operation metrics."""

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self.registry = registry or CollectorRegistry()

        self.http_request_duration = Histogram(
            "http_request_duration_seconds",
            "Duration of HTTP requests in seconds",
            ["method", "route", "status_code"],
            buckets=(0.1, 0.5, 1, 2, 5, 10),
            registry=self.registry,
        )
        self.http_requests_total = Counter(
            "http_requests_total",
            "Total number of HTTP requests",
            ["method", "route", "status_code"],
            registry=self.registry,
        )
        self.active_requests = Gauge(
            "active_requests",
            "Number of requests in flight",
            registry=self.registry,
        )
        self.booking_operations_total = Counter(
            "booking_operations_total",
            "Total number of booking operations",
            ["operation", "status"],
            registry=self.registry,
        )
        self.food_order_operations_total = Counter(
            "food_order_operations_total",
            "Total number of food order operations",
            ["operation", "status"],
            registry=self.registry,
        )

    def export(self) -> tuple[bytes, str]:
        """Render the registry in Prometheus text format."""
        return generate_latest(self.registry), CONTENT_TYPE_LATEST


_metrics: Metrics | None = None


def init_metrics(registry: CollectorRegistry | None = None) -> Metrics:
    """Create the metrics set used by the running application."""
    global _metrics
    _metrics = Metrics(registry)
    return _metrics


def get_metrics() -> Metrics:
    """Current metrics, created on first use."""
    global _metrics
    if _metrics is None:
        _metrics = Metrics()
    return _metrics
